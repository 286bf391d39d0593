"""Unit tests for query understanding."""

import pytest

from hazmat_rag.inference.query_processor import (
    EntityExtractor,
    IntentClassifier,
    QueryExpander,
    QueryProcessor
)
from hazmat_rag.models.query import ExtractedEntities, Measurement, QueryIntent


class TestEntityExtractor:
    """Test suite for EntityExtractor."""

    def setup_method(self):
        self.extractor = EntityExtractor()

    def test_un_numbers_are_prefixed_in_document_order(self):
        """Test UN number extraction."""
        entities = self.extractor.extract("Ship un 1830 and UN1789, then UN1830 again")

        assert entities.un_numbers == ["UN1830", "UN1789", "UN1830"]

    def test_cas_number(self):
        """Test CAS number extraction."""
        entities = self.extractor.extract("Sulfuric acid CAS 7664-93-9")

        assert entities.cas_numbers == ["7664-93-9"]

    def test_packing_group_is_upper_cased(self):
        """Test packing group extraction."""
        entities = self.extractor.extract("assigned to packing group ii")

        assert entities.packing_groups == ["II"]

    def test_hazard_classes_and_divisions(self):
        """Test hazard class and division extraction."""
        entities = self.extractor.extract("Class 8 corrosive with division 2.1 subsidiary")

        assert entities.hazard_classes == ["8", "2.1"]

    def test_freight_class_is_not_a_hazard_class(self):
        """Test freight class extraction."""
        entities = self.extractor.extract("rated freight class 77.5 and class 500")

        assert entities.freight_classes == ["77.5", "500"]
        assert entities.hazard_classes == []

    def test_nmfc_guide_and_section(self):
        """Test NMFC code, ERG guide and section extraction."""
        entities = self.extractor.extract("NMFC 48580, ERG guide 154, see 49 CFR §173.242")

        assert entities.nmfc_codes == ["48580"]
        assert entities.erg_guides == ["154"]
        assert entities.section_refs == ["173.242"]

    def test_chemical_tokens_are_lower_cased(self):
        """Test chemical name token extraction."""
        entities = self.extractor.extract("Sulfuric ACID mixed with sodium Hydroxide")

        assert entities.chemicals == ["acid", "hydroxide"]

    def test_measurements(self):
        """Test quantity, temperature and percentage extraction."""
        entities = self.extractor.extract("Ship 5 gal drums of 20 kg each, store at 25 °C, 98% purity")

        assert entities.quantities == [Measurement(5.0, "gal"), Measurement(20.0, "kg")]
        assert entities.temperatures == [Measurement(25.0, "C")]
        assert entities.percentages == [98.0]

    def test_no_entities(self):
        """Test text without entities."""
        entities = self.extractor.extract("what are the rules")

        assert entities == ExtractedEntities()

    def test_repeated_calls_do_not_share_state(self):
        """Test repeated extraction on the same extractor."""
        first = self.extractor.extract("UN1830")
        second = self.extractor.extract("UN1830")

        assert first.un_numbers == second.un_numbers == ["UN1830"]


class TestIntentClassifier:
    """Test suite for IntentClassifier."""

    def setup_method(self):
        self.classifier = IntentClassifier()

    @pytest.mark.parametrize("text,expected", [
        ("How do I classify sodium hydroxide?", QueryIntent.CLASSIFICATION),
        ("Spill cleanup for nitric acid", QueryIntent.EMERGENCY_RESPONSE),
        ("Which drum or tote container works?", QueryIntent.PACKAGING),
        ("What goes on the manifest and placard", QueryIntent.DOCUMENTATION),
        ("hello world", QueryIntent.GENERAL),
    ])
    def test_detect(self, text, expected):
        """Test intent detection."""
        assert self.classifier.detect(text) == expected

    def test_tie_goes_to_earlier_category(self):
        """Test intent tie breaking."""
        scores = self.classifier.score("UN1830 shipping requirements")

        assert scores[QueryIntent.SHIPPING_REQUIREMENTS] == 1
        assert scores[QueryIntent.PRODUCT_LOOKUP] == 1
        assert self.classifier.detect("UN1830 shipping requirements") == QueryIntent.SHIPPING_REQUIREMENTS

    def test_highest_count_wins(self):
        """Test that the highest match count wins."""
        # one classification keyword against two emergency keywords
        assert self.classifier.detect("hazard spill response") == QueryIntent.EMERGENCY_RESPONSE


class TestQueryExpander:
    """Test suite for QueryExpander."""

    def test_expansion_order_and_dedup(self):
        """Test synonym expansion order and deduplication."""
        terms = QueryExpander().expand("sulfuric acid shipping")

        assert terms[0] == "sulfuric acid shipping"
        assert "H2SO4" in terms
        assert "transportation" in terms
        assert terms[-3:] == ["sulfuric", "acid", "shipping"]
        assert len(terms) == len(set(terms))

    def test_short_words_are_not_added(self):
        """Test that short words are not expanded."""
        terms = QueryExpander().expand("is it ok")

        assert terms == ["is it ok"]


class TestQueryProcessor:
    """Test suite for QueryProcessor."""

    def setup_method(self):
        self.processor = QueryProcessor()

    def test_normalize(self):
        """Test query normalization."""
        assert self.processor.normalize("  Sulfuric-Acid, 98%!!  ") == "sulfuric-acid 98"

    def test_structured_query_detection(self):
        """Test structured query detection."""
        assert self.processor.is_structured_query(ExtractedEntities(section_refs=["172.101"]))
        assert not self.processor.is_structured_query(ExtractedEntities(hazard_classes=["8"]))

    def test_process_structured_query(self):
        """Test processing a structured query."""
        processed = self.processor.process("UN1830 shipping requirements")

        assert processed.intent == QueryIntent.SHIPPING_REQUIREMENTS
        assert processed.is_structured
        assert processed.confidence == pytest.approx(1.0)
        assert processed.keywords == ["un1830", "shipping", "requirements"]
        assert processed.context.needs_hazmat_data
        assert not processed.context.is_freight_booking

    def test_process_general_query_confidence(self):
        """Test confidence for a general query."""
        processed = self.processor.process("hello world")

        assert processed.intent == QueryIntent.GENERAL
        assert processed.confidence == pytest.approx(0.5)

    def test_keywords_drop_stopwords_and_short_tokens(self):
        """Test keyword selection."""
        processed = self.processor.process("What is the class of an acid with water")

        assert processed.keywords == ["what", "class", "acid", "water"]

    def test_context_flags(self):
        """Test derived query context flags."""
        processed = self.processor.process("NMFC 48580 freight class 85 for nitric acid, ERG guide 157")

        assert processed.context.is_freight_booking
        assert processed.context.requires_classification
        assert processed.context.needs_emergency_info

    def test_caller_context_wins(self):
        """Test caller context overrides."""
        processed = self.processor.process(
            "hazmat drums",
            context={"needs_hazmat_data": False, "customer": "acme"}
        )

        assert not processed.context.needs_hazmat_data
        assert processed.context.extras == {"customer": "acme"}

    def test_generate_search_query_for_structured_query(self):
        """Test the retrieval string for a structured query."""
        processed = self.processor.process("UN1830 shipping requirements")

        search_query = self.processor.generate_search_query(processed)

        assert search_query.startswith("UN1830 shipping requirements transportation regulations")
        assert search_query.endswith("un1830 shipping requirements")

    def test_generate_search_query_for_emergency(self):
        """Test the retrieval string for an emergency query."""
        processed = self.processor.process("Sulfuric acid spill response")

        search_query = self.processor.generate_search_query(processed)

        assert search_query.startswith("acid emergency response guide ERG spill cleanup")

    def test_to_dict(self):
        """Test processed query serialization."""
        data = self.processor.process("UN1830 shipping requirements").to_dict()

        assert data["intent"] == "shipping_requirements"
        assert data["entities"]["un_numbers"] == ["UN1830"]
