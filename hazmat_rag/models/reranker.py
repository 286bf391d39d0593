"""Reranker data models for the retrieval core."""

from typing import Any, Dict, List, Optional, Tuple
from dataclasses import dataclass

from .search import SearchResult


@dataclass
class RerankedResult(SearchResult):
    """Container for rerank results."""
    reranker_score: float = 0.0
    final_score: float = 0.0
    relevance_features: Optional[Dict[str, float]] = None
    explanation: Optional[List[Tuple[str, float]]] = None

    def format_explanation(self) -> str:
        """Render the top contributing features as a single line."""
        if not self.explanation:
            return ""
        return "Top factors: " + ", ".join(
            f"{name}({contribution:.2f})" for name, contribution in self.explanation
        )

    def to_dict(self) -> Dict[str, Any]:
        data = super().to_dict()
        data.update({
            "reranker_score": self.reranker_score,
            "final_score": self.final_score,
            "explanation": self.format_explanation() or None,
            "features": self.relevance_features
        })
        return data
