"""
Rule-based query understanding for hazmat regulatory questions.

Turns a raw question into a ProcessedQuery for retrieval and reranking:
- Entity extraction: UN/CAS/NMFC identifiers, hazard and freight classes,
  ERG guides, 49 CFR section references, chemical names, measurements
- Intent classification by keyword pattern counts
- Synonym-based query expansion and keyword selection
"""

import re
from typing import Any, Dict, List, Mapping, Optional, Pattern

from ..core.logging_config import get_logger
from ..models.query import (
    ExtractedEntities,
    Measurement,
    ProcessedQuery,
    QueryContext,
    QueryIntent
)
from ..parsing.tokenizer import normalize_text


logger = get_logger(__name__, "query_processor")


STANDARD_FREIGHT_CLASSES = (
    "50", "55", "60", "65", "70", "77.5", "85", "92.5", "100",
    "110", "125", "150", "175", "200", "250", "300", "400", "500",
)

_FREIGHT_CLASS_ALTERNATION = "|".join(re.escape(c) for c in STANDARD_FREIGHT_CLASSES)


class EntityExtractor:
    """Pattern-based extractor for domain identifiers."""

    # Compiled patterns hold no match state; every call iterates with a fresh finditer
    PATTERNS: Dict[str, Pattern] = {
        'un_number': re.compile(r'\bUN\s*(\d{4})\b', re.IGNORECASE),
        'cas_number': re.compile(r'\b(\d{1,7}-\d{2}-\d)\b'),
        'packing_group': re.compile(r'\bpacking\s+group\s+(I{1,3})\b', re.IGNORECASE),
        'hazard_class': re.compile(r'\b(class|division)\s+([1-9](?:\.\d)?)\b', re.IGNORECASE),
        'nmfc_code': re.compile(r'\bNMFC\s*(\d{5,6})\b', re.IGNORECASE),
        'freight_class': re.compile(
            r'\bclass\s+(' + _FREIGHT_CLASS_ALTERNATION + r')\b', re.IGNORECASE
        ),
        'erg_guide': re.compile(r'\bguide\s+(\d{3})\b', re.IGNORECASE),
        'section_ref': re.compile(r'\b(?:49\s+CFR\s+)?(?:§\s*)?(\d{3}\.\d+)\b', re.IGNORECASE),
        'chemical': re.compile(
            r'\b(acid|hydroxide|chloride|sulfate|nitrate|oxide|peroxide|carbonate|phosphate)\b',
            re.IGNORECASE
        ),
        'quantity': re.compile(r'\b(\d+(?:\.\d+)?)\s*(kg|g|mg|lb|oz|L|mL|gal)\b', re.IGNORECASE),
        'temperature': re.compile(r'\b(-?\d+(?:\.\d+)?)\s*°?\s*([CF])\b', re.IGNORECASE),
        'percentage': re.compile(r'\b(\d+(?:\.\d+)?)\s*%'),
    }

    def extract(self, text: str) -> ExtractedEntities:
        """Collect every non-overlapping match per entity kind, in document order."""
        entities = ExtractedEntities()
        patterns = self.PATTERNS

        for match in patterns['un_number'].finditer(text):
            entities.un_numbers.append(f"UN{match.group(1)}")

        for match in patterns['cas_number'].finditer(text):
            entities.cas_numbers.append(match.group(1))

        for match in patterns['packing_group'].finditer(text):
            entities.packing_groups.append(match.group(1).upper())

        for match in patterns['hazard_class'].finditer(text):
            entities.hazard_classes.append(match.group(2))

        for match in patterns['nmfc_code'].finditer(text):
            entities.nmfc_codes.append(match.group(1))

        for match in patterns['freight_class'].finditer(text):
            entities.freight_classes.append(match.group(1))

        for match in patterns['erg_guide'].finditer(text):
            entities.erg_guides.append(match.group(1))

        for match in patterns['section_ref'].finditer(text):
            entities.section_refs.append(match.group(1))

        for match in patterns['chemical'].finditer(text):
            entities.chemicals.append(match.group(1).lower())

        entities.quantities.extend(self._measurements(patterns['quantity'], text))
        entities.temperatures.extend(
            Measurement(m.value, m.unit.upper()) for m in self._measurements(patterns['temperature'], text)
        )

        for match in patterns['percentage'].finditer(text):
            value = _parse_number(match.group(1))
            if value is not None:
                entities.percentages.append(value)

        return entities

    @staticmethod
    def _measurements(pattern: Pattern, text: str) -> List[Measurement]:
        measurements = []
        for match in pattern.finditer(text):
            value = _parse_number(match.group(1))
            if value is not None:
                measurements.append(Measurement(value, match.group(2)))
        return measurements


def _parse_number(raw: str) -> Optional[float]:
    try:
        return float(raw)
    except ValueError:
        return None


class IntentClassifier:
    """Keyword-pattern intent classifier; ties go to the earlier category."""

    INTENT_PATTERNS = {
        QueryIntent.CLASSIFICATION: r'\b(classify|classification|class|hazard|category|nmfc|freight class)\b',
        QueryIntent.EMERGENCY_RESPONSE: r'\b(emergency|spill|leak|accident|response|erg|guide|cleanup|contain)\b',
        QueryIntent.SHIPPING_REQUIREMENTS: r'\b(ship|transport|requirements|regulations|rules|allowed|prohibited)\b',
        QueryIntent.PACKAGING: r'\b(package|packing|container|drum|tote|ibc|bulk|non-bulk)\b',
        QueryIntent.DOCUMENTATION: r'\b(document|paper|manifest|bol|label|placard|marking|declaration)\b',
        QueryIntent.COMPLIANCE: r'\b(comply|compliance|violation|requirement|regulation|legal|dot|cfr)\b',
        QueryIntent.PRODUCT_LOOKUP: r'\b(product|sku|cas|un\d{4}|lookup|find|search)\b',
    }

    def __init__(self):
        self.compiled = {
            intent: re.compile(pattern) for intent, pattern in self.INTENT_PATTERNS.items()
        }

    def score(self, text: str) -> Dict[QueryIntent, int]:
        """Count pattern matches per intent on the lower-cased text."""
        lowered = text.lower()
        return {
            intent: sum(1 for _ in pattern.finditer(lowered))
            for intent, pattern in self.compiled.items()
        }

    def detect(self, text: str) -> QueryIntent:
        best_intent = QueryIntent.GENERAL
        max_score = 0

        for intent, count in self.score(text).items():
            if count > max_score:
                max_score = count
                best_intent = intent

        return best_intent


class QueryExpander:
    """Synonym-table query expansion."""

    QUERY_EXPANSIONS = {
        # Chemical synonyms
        'sulfuric acid': ['H2SO4', 'oil of vitriol', 'battery acid', 'UN1830'],
        'hydrochloric acid': ['HCl', 'muriatic acid', 'UN1789'],
        'sodium hydroxide': ['NaOH', 'caustic soda', 'lye', 'UN1823', 'UN1824'],
        'nitric acid': ['HNO3', 'aqua fortis', 'UN2031'],

        # Shipping terms
        'shipping': ['transportation', 'transport', 'freight', 'shipment'],
        'requirements': ['regulations', 'rules', 'requirements', 'compliance'],
        'emergency': ['spill', 'accident', 'incident', 'response', 'ERG'],
        'classification': ['class', 'category', 'hazard class', 'division'],
        'packaging': ['packing', 'container', 'package', 'drum', 'tote', 'IBC'],

        # Regulatory terms
        'dot': ['Department of Transportation', '49 CFR', 'HMR'],
        'hazmat': ['hazardous material', 'dangerous goods', 'DG'],
        'placard': ['label', 'marking', 'sign', 'placard'],
        'manifest': ['shipping paper', 'BOL', 'bill of lading'],

        # Modal terms
        'highway': ['road', 'truck', 'motor carrier', 'Part 177'],
        'rail': ['train', 'railroad', 'Part 174'],
        'air': ['aircraft', 'aviation', 'IATA', 'Part 175'],
        'vessel': ['ship', 'marine', 'water', 'Part 176'],
    }

    def expand(self, text: str) -> List[str]:
        """Original query, matched synonyms, then individual words; deduplicated in order."""
        expanded: Dict[str, None] = {text: None}
        lowered = text.lower()

        for term, synonyms in self.QUERY_EXPANSIONS.items():
            if term in lowered:
                for synonym in synonyms:
                    expanded.setdefault(synonym, None)

        for word in text.split():
            if len(word) > 2:
                expanded.setdefault(word, None)

        return list(expanded)


class QueryProcessor:
    """Entry point combining extraction, intent detection and expansion."""

    STOPWORDS = {
        'the', 'is', 'at', 'which', 'on', 'a', 'an', 'and', 'or', 'but',
        'in', 'with', 'to', 'for', 'of', 'as', 'by'
    }

    INTENT_SEARCH_TERMS = {
        QueryIntent.EMERGENCY_RESPONSE: 'emergency response guide ERG spill cleanup',
        QueryIntent.SHIPPING_REQUIREMENTS: 'shipping requirements transportation regulations',
        QueryIntent.CLASSIFICATION: 'classification hazard class packing group',
        QueryIntent.PACKAGING: 'packaging requirements container specifications',
    }

    MAX_SEARCH_KEYWORDS = 5

    def __init__(
        self,
        extractor: Optional[EntityExtractor] = None,
        classifier: Optional[IntentClassifier] = None,
        expander: Optional[QueryExpander] = None
    ):
        self.extractor = extractor or EntityExtractor()
        self.classifier = classifier or IntentClassifier()
        self.expander = expander or QueryExpander()

    def extract_entities(self, text: str) -> ExtractedEntities:
        return self.extractor.extract(text)

    def detect_intent(self, text: str) -> QueryIntent:
        return self.classifier.detect(text)

    def expand_query(self, text: str) -> List[str]:
        return self.expander.expand(text)

    @staticmethod
    def normalize(text: str) -> str:
        return normalize_text(text)

    @staticmethod
    def is_structured_query(entities: ExtractedEntities) -> bool:
        """True when a high-precision identifier was found."""
        return bool(
            entities.un_numbers
            or entities.cas_numbers
            or entities.nmfc_codes
            or entities.section_refs
        )

    def process(self, text: str, context: Optional[Mapping[str, Any]] = None) -> ProcessedQuery:
        """
        Run the full query understanding pass.

        Args:
            text: Raw user question
            context: Optional caller flags; these win over derived flags

        Returns:
            ProcessedQuery consumed by hybrid search and reranking
        """
        entities = self.extract_entities(text)
        intent = self.detect_intent(text)
        expanded_terms = self.expand_query(text)
        normalized = self.normalize(text)
        is_structured = self.is_structured_query(entities)

        confidence = 0.5
        if is_structured:
            confidence += 0.3
        if intent != QueryIntent.GENERAL:
            confidence += 0.2

        derived = QueryContext(
            is_freight_booking=(
                intent == QueryIntent.CLASSIFICATION
                or bool(entities.nmfc_codes)
                or bool(entities.freight_classes)
            ),
            needs_hazmat_data=(
                bool(entities.un_numbers)
                or bool(entities.hazard_classes)
                or 'hazmat' in text.lower()
            ),
            requires_classification=(
                intent == QueryIntent.CLASSIFICATION or bool(entities.chemicals)
            ),
            needs_emergency_info=(
                intent == QueryIntent.EMERGENCY_RESPONSE or bool(entities.erg_guides)
            ),
        )
        query_context = derived.merged_with(dict(context)) if context else derived

        keywords = [
            word for word in normalized.split()
            if len(word) > 2 and word not in self.STOPWORDS
        ]

        processed = ProcessedQuery(
            original=text,
            normalized=normalized,
            entities=entities,
            intent=intent,
            expanded_terms=expanded_terms,
            keywords=keywords,
            is_structured=is_structured,
            confidence=round(confidence, 2),
            context=query_context
        )

        logger.debug(
            f"Query processed with intent {intent.value}",
            extra={
                "query_length": len(text),
                "intent": intent.value,
                "is_structured": is_structured,
                "keyword_count": len(keywords),
                "confidence": processed.confidence
            }
        )

        return processed

    def generate_search_query(self, processed: ProcessedQuery) -> str:
        """Build the retrieval string handed to the external embedding provider."""
        parts: List[str] = []

        if processed.entities.un_numbers:
            parts.append(' '.join(processed.entities.un_numbers))

        if processed.entities.chemicals:
            parts.append(' '.join(processed.entities.chemicals))

        intent_terms = self.INTENT_SEARCH_TERMS.get(processed.intent)
        if intent_terms:
            parts.append(intent_terms)

        parts.extend(processed.keywords[:self.MAX_SEARCH_KEYWORDS])

        return ' '.join(parts)
