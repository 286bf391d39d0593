"""Query understanding data models."""

from dataclasses import dataclass, field, asdict
from enum import Enum
from typing import Any, Dict, List, NamedTuple


class QueryIntent(str, Enum):
    """Intent categories, in classification priority order."""
    CLASSIFICATION = "classification"
    EMERGENCY_RESPONSE = "emergency_response"
    SHIPPING_REQUIREMENTS = "shipping_requirements"
    PACKAGING = "packaging"
    DOCUMENTATION = "documentation"
    COMPLIANCE = "compliance"
    PRODUCT_LOOKUP = "product_lookup"
    GENERAL = "general"


class Measurement(NamedTuple):
    """A numeric value with its unit as written in the text."""
    value: float
    unit: str


@dataclass
class ExtractedEntities:
    """Structured identifiers found in free text, in document order."""
    un_numbers: List[str] = field(default_factory=list)
    cas_numbers: List[str] = field(default_factory=list)
    packing_groups: List[str] = field(default_factory=list)
    hazard_classes: List[str] = field(default_factory=list)
    nmfc_codes: List[str] = field(default_factory=list)
    freight_classes: List[str] = field(default_factory=list)
    erg_guides: List[str] = field(default_factory=list)
    section_refs: List[str] = field(default_factory=list)
    chemicals: List[str] = field(default_factory=list)
    quantities: List[Measurement] = field(default_factory=list)
    temperatures: List[Measurement] = field(default_factory=list)
    percentages: List[float] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass
class QueryContext:
    """Routing flags derived from intent and entities, overridable by the caller."""
    is_freight_booking: bool = False
    needs_hazmat_data: bool = False
    requires_classification: bool = False
    needs_emergency_info: bool = False
    extras: Dict[str, Any] = field(default_factory=dict)

    FLAG_NAMES = (
        "is_freight_booking",
        "needs_hazmat_data",
        "requires_classification",
        "needs_emergency_info",
    )

    def merged_with(self, overrides: Dict[str, Any]) -> "QueryContext":
        """Return a copy where caller-supplied keys win over derived flags."""
        flags = {name: getattr(self, name) for name in self.FLAG_NAMES}
        extras = dict(self.extras)
        for key, value in overrides.items():
            if key in flags:
                flags[key] = bool(value)
            else:
                extras[key] = value
        return QueryContext(extras=extras, **flags)


@dataclass
class ProcessedQuery:
    """Unified query understanding output consumed by retrieval and reranking."""
    original: str
    normalized: str
    entities: ExtractedEntities
    intent: QueryIntent
    expanded_terms: List[str]
    keywords: List[str]
    is_structured: bool
    confidence: float
    context: QueryContext = field(default_factory=QueryContext)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "original": self.original,
            "normalized": self.normalized,
            "intent": self.intent.value,
            "entities": self.entities.to_dict(),
            "expanded_terms": self.expanded_terms[:10],
            "keywords": self.keywords,
            "is_structured": self.is_structured,
            "confidence": self.confidence,
        }
