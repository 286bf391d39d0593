"""Relevance features for (query, candidate) pairs."""

from typing import Dict, FrozenSet, List, Optional, Sequence, Tuple

from ...models.document import DocumentMetadata, DocumentSource
from ...models.query import ProcessedQuery, QueryIntent
from ...models.search import SearchResult
from ...parsing.tokenizer import normalize_text
from ..entity_matching import entity_match_ratio


# Default weights; entity matches carry the most signal
DEFAULT_FEATURE_WEIGHTS: Dict[str, float] = {
    "exact_match": 2.0,
    "word_overlap": 1.5,
    "bigram_overlap": 1.2,
    "trigram_overlap": 1.1,
    "un_number_match": 3.0,
    "cas_number_match": 2.5,
    "hazard_class_match": 2.0,
    "packing_group_match": 1.8,
    "section_match": 2.2,
    "nmfc_code_match": 2.2,
    "freight_class_match": 1.6,
    "source_relevance": 1.5,
    "is_regulation": 1.2,
    "is_hazmat_table": 1.3,
    "is_emergency_guide": 1.1,
    "is_product": 1.0,
    "has_metadata": 1.1,
    "metadata_completeness": 1.3,
    "intent_alignment": 1.8,
    "document_length": 0.5,
    "query_term_density": 1.4,
    "query_term_proximity": 1.6,
    "semantic_score": 1.5,
    "keyword_score": 1.3,
    "hybrid_score": 1.4,
    "has_hazmat_info": 1.2,
    "has_emergency_info": 1.2,
    "has_freight_class": 1.3,
    "has_nmfc_code": 1.3,
    "has_shipping_info": 1.1,
}

FEATURE_NAMES: Tuple[str, ...] = tuple(DEFAULT_FEATURE_WEIGHTS)

ENTITY_MATCH_FEATURES = (
    ("un_number_match", "un_number"),
    ("cas_number_match", "cas_number"),
    ("hazard_class_match", "hazard_class"),
    ("packing_group_match", "packing_group"),
    ("section_match", "section"),
    ("nmfc_code_match", "nmfc_code"),
    ("freight_class_match", "freight_class"),
)

DEFAULT_SOURCE_RELEVANCE = 0.5

SOURCE_RELEVANCE: Dict[QueryIntent, Dict[DocumentSource, float]] = {
    QueryIntent.CLASSIFICATION: {
        DocumentSource.HMT: 1.0, DocumentSource.PRODUCTS: 0.8,
        DocumentSource.CFR: 0.7, DocumentSource.ERG: 0.3,
    },
    QueryIntent.EMERGENCY_RESPONSE: {
        DocumentSource.ERG: 1.0, DocumentSource.CFR: 0.6,
        DocumentSource.HMT: 0.5, DocumentSource.PRODUCTS: 0.3,
    },
    QueryIntent.SHIPPING_REQUIREMENTS: {
        DocumentSource.CFR: 1.0, DocumentSource.HMT: 0.8,
        DocumentSource.PRODUCTS: 0.5, DocumentSource.ERG: 0.3,
    },
    QueryIntent.PACKAGING: {
        DocumentSource.CFR: 1.0, DocumentSource.HMT: 0.7,
        DocumentSource.PRODUCTS: 0.5, DocumentSource.ERG: 0.2,
    },
    QueryIntent.DOCUMENTATION: {
        DocumentSource.CFR: 1.0, DocumentSource.HMT: 0.6,
        DocumentSource.PRODUCTS: 0.4, DocumentSource.ERG: 0.2,
    },
    QueryIntent.COMPLIANCE: {
        DocumentSource.CFR: 1.0, DocumentSource.HMT: 0.7,
        DocumentSource.PRODUCTS: 0.4, DocumentSource.ERG: 0.3,
    },
    QueryIntent.PRODUCT_LOOKUP: {
        DocumentSource.PRODUCTS: 1.0, DocumentSource.HMT: 0.7,
        DocumentSource.CFR: 0.4, DocumentSource.ERG: 0.3,
    },
    QueryIntent.GENERAL: {
        DocumentSource.CFR: 0.6, DocumentSource.HMT: 0.6,
        DocumentSource.PRODUCTS: 0.6, DocumentSource.ERG: 0.6,
    },
}

HAZMAT_INDICATORS = (
    "hazard", "dangerous", "class", "division", "packing group",
    "un number", "proper shipping name", "hazmat", "subsidiary risk",
)
EMERGENCY_INDICATORS = (
    "emergency", "spill", "leak", "fire", "explosion", "evacuate",
    "first aid", "response", "cleanup", "contain", "neutralize",
)
SHIPPING_INDICATORS = (
    "ship", "transport", "freight", "carrier", "package", "label",
    "placard", "manifest", "documentation", "consignment",
)
CLASSIFICATION_INDICATORS = (
    "classify", "classification", "hazard class", "packing group",
    "nmfc", "freight class", "commodity", "identification",
)
PACKAGING_INDICATORS = (
    "packaging", "packing", "container", "drum", "tote", "ibc",
    "bulk", "closure", "inner packaging",
)
DOCUMENTATION_INDICATORS = (
    "shipping paper", "manifest", "bill of lading", "label", "placard",
    "marking", "declaration", "certification",
)
COMPLIANCE_INDICATORS = (
    "must", "shall", "prohibited", "required", "exception",
    "violation", "penalty", "authorized",
)

INTENT_INDICATORS: Dict[QueryIntent, Tuple[str, ...]] = {
    QueryIntent.EMERGENCY_RESPONSE: EMERGENCY_INDICATORS,
    QueryIntent.SHIPPING_REQUIREMENTS: SHIPPING_INDICATORS,
    QueryIntent.CLASSIFICATION: CLASSIFICATION_INDICATORS,
    QueryIntent.PACKAGING: PACKAGING_INDICATORS,
    QueryIntent.DOCUMENTATION: DOCUMENTATION_INDICATORS,
    QueryIntent.COMPLIANCE: COMPLIANCE_INDICATORS,
}

ALIGNED_SCORE = 1.0
MISALIGNED_SCORE = 0.3
NEUTRAL_ALIGNMENT = 0.5

DOCUMENT_LENGTH_SCALE = 1000


def source_relevance(intent: QueryIntent, source: DocumentSource) -> float:
    return SOURCE_RELEVANCE.get(intent, {}).get(source, DEFAULT_SOURCE_RELEVANCE)


def contains_any(text: str, indicators: Sequence[str]) -> bool:
    return any(indicator in text for indicator in indicators)


def ngrams(words: Sequence[str], n: int) -> FrozenSet[Tuple[str, ...]]:
    return frozenset(tuple(words[i:i + n]) for i in range(len(words) - n + 1))


def overlap_ratio(query_items: FrozenSet, text_items: FrozenSet) -> float:
    if not query_items:
        return 0.0
    return len(query_items & text_items) / len(query_items)


def term_density(keywords: Sequence[str], words: Sequence[str]) -> float:
    """Keyword occurrences per text word, capped at 1."""
    if not words:
        return 0.0
    occurrences = sum(words.count(keyword) for keyword in keywords)
    return min(occurrences / len(words), 1.0)


def term_proximity(keywords: Sequence[str], words: Sequence[str]) -> float:
    """
    Closeness of the two nearest distinct keywords, as 1 - distance / text length.

    Zero unless at least two distinct keywords occur in the text.
    """
    positions: Dict[str, List[int]] = {}
    wanted = set(keywords)
    for index, word in enumerate(words):
        if word in wanted:
            positions.setdefault(word, []).append(index)

    if len(positions) < 2:
        return 0.0

    min_distance = len(words)
    found = list(positions.values())
    for i in range(len(found) - 1):
        for j in range(i + 1, len(found)):
            for first in found[i]:
                for second in found[j]:
                    min_distance = min(min_distance, abs(first - second))

    return 1.0 - min_distance / len(words)


def metadata_completeness(metadata: Optional[DocumentMetadata]) -> float:
    return metadata.completeness() if metadata else 0.0


class FeatureExtractor:
    """Computes the fixed-name feature map used by the reranker."""

    def intent_alignment(self, intent: QueryIntent, text: str) -> float:
        indicators = INTENT_INDICATORS.get(intent)
        if indicators is None:
            return NEUTRAL_ALIGNMENT
        return ALIGNED_SCORE if contains_any(text, indicators) else MISALIGNED_SCORE

    def extract(self, processed: ProcessedQuery, result: SearchResult) -> Dict[str, float]:
        """
        Feature values for one candidate, mostly in [0, 1].

        Domain-gated features appear only when the query context asks for
        them, so they never dilute scores of unrelated queries.
        """
        text = normalize_text(result.text)
        query_text = processed.normalized
        text_words = text.split()
        query_words = query_text.split()
        keywords = processed.keywords
        metadata = result.metadata
        source = result.source

        features: Dict[str, float] = {
            "exact_match": 1.0 if query_text and query_text in text else 0.0,
            "word_overlap": overlap_ratio(frozenset(query_words), frozenset(text_words)),
            "bigram_overlap": overlap_ratio(ngrams(query_words, 2), ngrams(text_words, 2)),
            "trigram_overlap": overlap_ratio(ngrams(query_words, 3), ngrams(text_words, 3)),
        }

        for name, kind in ENTITY_MATCH_FEATURES:
            features[name] = entity_match_ratio(kind, processed.entities, metadata)

        features.update({
            "source_relevance": source_relevance(processed.intent, source),
            "is_regulation": 1.0 if source == DocumentSource.CFR else 0.0,
            "is_hazmat_table": 1.0 if source == DocumentSource.HMT else 0.0,
            "is_emergency_guide": 1.0 if source == DocumentSource.ERG else 0.0,
            "is_product": 1.0 if source == DocumentSource.PRODUCTS else 0.0,
            "has_metadata": 1.0 if metadata else 0.0,
            "metadata_completeness": metadata_completeness(metadata),
            "intent_alignment": self.intent_alignment(processed.intent, text),
            "document_length": min(len(result.text) / DOCUMENT_LENGTH_SCALE, 1.0),
            "query_term_density": term_density(keywords, text_words),
            "query_term_proximity": term_proximity(keywords, text_words),
            "semantic_score": result.semantic_score,
            "keyword_score": result.keyword_score,
            "hybrid_score": result.hybrid_score,
        })

        if processed.context.needs_hazmat_data:
            features["has_hazmat_info"] = 1.0 if contains_any(text, HAZMAT_INDICATORS) else 0.0
            features["has_emergency_info"] = 1.0 if contains_any(text, EMERGENCY_INDICATORS) else 0.0

        if processed.context.is_freight_booking:
            features["has_freight_class"] = 1.0 if metadata and metadata.freight_class else 0.0
            features["has_nmfc_code"] = 1.0 if metadata and metadata.nmfc_code else 0.0
            features["has_shipping_info"] = 1.0 if contains_any(text, SHIPPING_INDICATORS) else 0.0

        return features
