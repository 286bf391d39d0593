"""Comparison of query entities against document metadata identifiers."""

from typing import Callable, Dict, NamedTuple, Optional

from ..models.document import DocumentMetadata
from ..models.query import ExtractedEntities
from ..parsing.identifiers import (
    canonical_hazard_class,
    canonical_number,
    canonical_packing_group,
    canonical_section,
    canonical_text,
    canonical_un_number
)


class EntityField(NamedTuple):
    entities_attr: str
    metadata_attr: str
    canonical: Callable[[Optional[str]], Optional[str]]


ENTITY_FIELDS: Dict[str, EntityField] = {
    "un_number": EntityField("un_numbers", "un_number", canonical_un_number),
    "cas_number": EntityField("cas_numbers", "cas_number", canonical_text),
    "hazard_class": EntityField("hazard_classes", "hazard_class", canonical_hazard_class),
    "packing_group": EntityField("packing_groups", "packing_group", canonical_packing_group),
    "section": EntityField("section_refs", "section", canonical_section),
    "nmfc_code": EntityField("nmfc_codes", "nmfc_code", canonical_text),
    "freight_class": EntityField("freight_classes", "freight_class", canonical_number),
}


def entity_match_ratio(
    kind: str,
    entities: ExtractedEntities,
    metadata: Optional[DocumentMetadata]
) -> float:
    """
    Share of the query's entities of one kind that equal the document's value.

    Duplicated query entities count once per occurrence. Returns 0 when the
    query has none of that kind or the document carries no value for it.
    """
    entity_field = ENTITY_FIELDS[kind]
    query_values = getattr(entities, entity_field.entities_attr)
    if not query_values:
        return 0.0

    doc_value = entity_field.canonical(getattr(metadata, entity_field.metadata_attr)) if metadata else None
    if doc_value is None:
        return 0.0

    matches = sum(1 for value in query_values if entity_field.canonical(value) == doc_value)
    return matches / len(query_values)


def has_entity_match(
    kind: str,
    entities: ExtractedEntities,
    metadata: Optional[DocumentMetadata]
) -> bool:
    return entity_match_ratio(kind, entities, metadata) > 0
