"""Corpus document models for the retrieval core."""

from dataclasses import asdict, dataclass, field, fields
from enum import Enum
from functools import cached_property
from typing import Any, Dict, List, Mapping, Optional

from ..parsing.tokenizer import tokenize


class DocumentSource(str, Enum):
    """Closed set of corpus source tags."""
    HMT = "hmt"            # Hazardous Materials Table
    CFR = "cfr"            # 49 CFR regulation text
    ERG = "erg"            # Emergency Response Guidebook
    PRODUCTS = "products"  # product catalogue
    OTHER = "other"

    @classmethod
    def parse(cls, value: Any) -> "DocumentSource":
        """Map a raw tag onto the enum; unknown tags land on OTHER."""
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).strip().lower())
        except ValueError:
            return cls.OTHER


# camelCase keys used by the JSON corpus index
_METADATA_ALIASES = {
    "unNumber": "un_number",
    "casNumber": "cas_number",
    "hazardClass": "hazard_class",
    "packingGroup": "packing_group",
    "nmfcCode": "nmfc_code",
    "freightClass": "freight_class",
    "isHazardous": "is_hazardous",
}


@dataclass(frozen=True)
class DocumentMetadata:
    """Structured identifiers attached to a document; every field may be absent."""
    un_number: Optional[str] = None
    cas_number: Optional[str] = None
    hazard_class: Optional[str] = None
    packing_group: Optional[str] = None
    section: Optional[str] = None
    nmfc_code: Optional[str] = None
    freight_class: Optional[str] = None
    name: Optional[str] = None
    is_hazardous: Optional[bool] = None

    IMPORTANT_FIELDS = (
        "un_number", "cas_number", "hazard_class", "packing_group",
        "section", "nmfc_code", "freight_class", "name",
    )

    @classmethod
    def from_dict(cls, data: Optional[Mapping[str, Any]]) -> Optional["DocumentMetadata"]:
        """Build metadata from an index record, ignoring unknown keys."""
        if data is None:
            return None

        known = {f.name for f in fields(cls)}
        values: Dict[str, Any] = {}
        for key, value in data.items():
            name = _METADATA_ALIASES.get(key, key)
            if name not in known or value is None:
                continue
            if name == "is_hazardous":
                values[name] = bool(value)
            else:
                values[name] = str(value)
        return cls(**values)

    def completeness(self) -> float:
        """Fraction of the important identifier fields that are populated."""
        present = sum(1 for name in self.IMPORTANT_FIELDS if getattr(self, name))
        return present / len(self.IMPORTANT_FIELDS)


@dataclass(frozen=True, eq=False)
class Document:
    """Container for one corpus passage with its precomputed embedding."""
    id: str
    source: DocumentSource
    text: str
    embedding: List[float] = field(default_factory=list)
    metadata: Optional[DocumentMetadata] = None

    @cached_property
    def tokens(self) -> List[str]:
        """Lexical tokens, computed on first access."""
        return tokenize(self.text)

    @cached_property
    def length(self) -> int:
        return len(self.tokens)

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "Document":
        """Build a document from a corpus index record."""
        return cls(
            id=str(data["id"]),
            source=DocumentSource.parse(data.get("source")),
            text=data.get("text") or "",
            embedding=list(data.get("embedding") or []),
            metadata=DocumentMetadata.from_dict(data.get("metadata"))
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "source": self.source.value,
            "text": self.text[:200] + "..." if len(self.text) > 200 else self.text,
            "metadata": asdict(self.metadata) if self.metadata else None
        }
