"""Integration tests for the end-to-end search pipeline."""

import pytest

from hazmat_rag.core.exceptions import InferenceException, RerankerException
from hazmat_rag.inference.pipeline import SearchPipeline, generate_insights
from hazmat_rag.models.document import Document, DocumentMetadata, DocumentSource
from hazmat_rag.models.query import QueryIntent
from hazmat_rag.models.reranker import RerankedResult


class FakeEmbedder:
    """Returns a fixed, deliberately unnormalized query vector and records calls."""

    def __init__(self, vector):
        self.vector = vector
        self.calls = []

    def __call__(self, text):
        self.calls.append(text)
        return self.vector


class TestSearchPipelineIntegration:
    """Integration tests for SearchPipeline."""

    def setup_method(self):
        self.corpus = [
            Document(
                id="A",
                source=DocumentSource.HMT,
                text="UN1830 sulfuric acid Class 8 corrosive",
                embedding=[2.0, 3.5, 1.5, 0.5],
                metadata=DocumentMetadata(un_number="UN1830", hazard_class="8", name="Sulfuric acid")
            ),
            Document(
                id="B",
                source=DocumentSource.PRODUCTS,
                text="general corrosive liquid handling",
                embedding=[3.0, 1.0, 0.0, 2.0]
            ),
            Document(
                id="C",
                source=DocumentSource.ERG,
                text="ERG Guide 154 emergency response for corrosives",
                embedding=[1.0, 1.0, 0.0, 1.0]
            ),
        ]
        self.pipeline = SearchPipeline(self.corpus)
        self.embed = FakeEmbedder([1.0, 2.0, 0.5, 0.0])

    def test_un_number_query_ranks_hazmat_table_entry_first(self):
        """Test ranking for a UN number shipping query."""
        response = self.pipeline.search("UN1830 shipping requirements", self.embed)

        assert response.query.intent == QueryIntent.SHIPPING_REQUIREMENTS
        assert response.results[0].id == "A"
        assert {r.id for r in response.results} <= {"A", "B", "C"}
        top = response.scores["A"]
        assert all(response.scores[r.id] < top for r in response.results[1:])
        assert response.results[0].hybrid_score == pytest.approx(1.0)

    def test_reranked_results_respect_threshold(self):
        """Test reranked results against the minimum score."""
        response = self.pipeline.search("UN1830 shipping requirements", self.embed, min_score=0.2)

        assert all(isinstance(r, RerankedResult) for r in response.results)
        assert all(r.final_score >= 0.2 for r in response.results)

    def test_embedder_receives_search_query(self):
        """Test the string passed to the embedder."""
        self.pipeline.search("UN1830 shipping requirements", self.embed)

        assert len(self.embed.calls) == 1
        assert self.embed.calls[0].startswith("UN1830 shipping requirements transportation regulations")

    def test_context_and_insights(self):
        """Test assembled context and insights."""
        response = self.pipeline.search("UN1830 shipping requirements", self.embed)

        assert response.context.startswith("[hmt]\n")
        assert "UN1830" in response.context
        assert "Exact UN number match found" in response.insights.summary
        assert "No specific CFR regulations found - verify compliance requirements" in response.insights.warnings
        assert "Hazardous material information available" in response.insights.summary

    def test_source_filter(self):
        """Test filtering by source."""
        response = self.pipeline.search("UN1830 shipping requirements", self.embed, sources=["erg"])

        assert [r.id for r in response.results] == ["C"]

    def test_without_reranking(self):
        """Test the pipeline without reranking."""
        response = self.pipeline.search("UN1830 shipping requirements", self.embed, use_reranking=False, limit=2)

        assert len(response.results) <= 2
        assert not any(isinstance(r, RerankedResult) for r in response.results)
        assert response.results[0].id == "A"
        assert response.stats["reranked"] is False

    def test_explanations_are_attached(self):
        """Test explanations in the response."""
        response = self.pipeline.search("UN1830 shipping requirements", self.embed, explain_scores=True)

        assert response.results[0].explanation
        assert response.to_dict()["results"][0]["explanation"].startswith("Top factors: ")

    def test_stats(self):
        """Test response statistics."""
        response = self.pipeline.search("UN1830 shipping requirements", self.embed)

        assert response.stats["total_matches"] >= len(response.results)
        assert response.stats["top_score"] == pytest.approx(response.top_score)
        assert "hybrid_search_ms" in response.stats

    def test_record_click_adapts_weights(self):
        """Test click feedback on a returned result."""
        response = self.pipeline.search("UN1830 shipping requirements", self.embed)
        before = self.pipeline.reranker.weights

        after = self.pipeline.record_click(response, "A", learning_rate=0.1)

        assert after != before
        assert after["un_number_match"] > before["un_number_match"]
        assert all(weight >= 0.0 for weight in after.values())

    def test_record_click_on_unknown_result(self):
        """Test click feedback on a result not in the response."""
        response = self.pipeline.search("UN1830 shipping requirements", self.embed)

        with pytest.raises(RerankerException):
            self.pipeline.record_click(response, "missing")

    def test_empty_query_is_rejected(self):
        """Test rejection of an empty query."""
        with pytest.raises(InferenceException):
            self.pipeline.search("   ", self.embed)

    def test_embedder_failure_is_wrapped(self):
        """Test wrapping of embedder failures."""
        def failing_embed(text):
            raise RuntimeError("provider unavailable")

        with pytest.raises(InferenceException) as exc_info:
            self.pipeline.search("UN1830 shipping requirements", failing_embed)

        assert exc_info.value.details["stage"] == "embedding"

    def test_interval_correction_prefers_matching_threshold(self):
        """Test interval correction in the pipeline."""
        corpus = [
            Document(
                id="dilute",
                source=DocumentSource.HMT,
                text="Sulfuric acid with not more than 51% free sulfur trioxide",
                embedding=[1.0, 1.0]
            ),
            Document(
                id="oleum",
                source=DocumentSource.HMT,
                text="Oleum, with more than 51 percent free sulfur trioxide",
                embedding=[1.0, 1.0]
            ),
        ]
        pipeline = SearchPipeline(corpus)

        response = pipeline.search(
            "oleum with more than 51 percent",
            FakeEmbedder([2.0, 2.0]),
            use_reranking=False
        )

        assert [r.id for r in response.results] == ["oleum", "dilute"]


class TestGenerateInsights:
    """Tests for insight generation on its own."""

    def test_emergency_without_erg(self):
        """Test insights for an emergency query without ERG results."""
        pipeline = SearchPipeline([])
        processed = pipeline.query_processor.process("spill cleanup steps")

        insights = generate_insights(processed, [])

        assert "Consider checking ERG guides for emergency procedures" in insights.recommendations
        assert "Low confidence results - consider refining your query" in insights.warnings
