"""Search result data models for the retrieval core."""

from typing import Any, Dict, List, Optional
from dataclasses import dataclass

from .document import Document, DocumentMetadata, DocumentSource


@dataclass
class SearchResult:
    """Container for hybrid search results."""
    document: Document
    semantic_score: float
    keyword_score: float
    hybrid_score: float
    highlights: Optional[List[str]] = None

    @property
    def id(self) -> str:
        return self.document.id

    @property
    def source(self) -> DocumentSource:
        return self.document.source

    @property
    def text(self) -> str:
        return self.document.text

    @property
    def metadata(self) -> Optional[DocumentMetadata]:
        return self.document.metadata

    def to_dict(self) -> Dict[str, Any]:
        return {
            **self.document.to_dict(),
            "semantic_score": self.semantic_score,
            "keyword_score": self.keyword_score,
            "hybrid_score": self.hybrid_score,
            "highlights": self.highlights[:2] if self.highlights else None
        }
