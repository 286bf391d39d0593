"""Unit tests for the percentage-threshold correction pass."""

import math

import pytest

from hazmat_rag.inference.interval_corrector import (
    PercentInterval,
    ScoredPassage,
    extract_intervals,
    interval_affinity,
    local_rerank,
    numeric_affinity,
    parse_percents
)
from hazmat_rag.models.document import Document, DocumentSource
from hazmat_rag.models.search import SearchResult


def passage(doc_id, text, score=0.5):
    document = Document(id=doc_id, source=DocumentSource.HMT, text=text)
    return ScoredPassage(SearchResult(document, 0.0, 0.0, score), score)


class TestPercentParsing:
    """Test suite for percent literal parsing."""

    def test_parse_percents(self):
        """Test parsing of percent literals."""
        assert parse_percents("98% acid, 51 percent oleum and 0.5% water") == [98.0, 51.0, 0.5]

    def test_parse_percents_without_literals(self):
        """Test text without percent literals."""
        assert parse_percents("Class 8 corrosive") == []

    def test_numeric_affinity(self):
        """Test affinity between nearby percentages."""
        assert numeric_affinity("70% solution", "65% solution") == pytest.approx(0.9)
        assert numeric_affinity("10%", "90%") == 0.0
        assert numeric_affinity("sulfuric acid", "65% solution") == 0.0


class TestIntervals:
    """Test suite for interval extraction and affinity."""

    def test_closed_interval(self):
        """Test extraction of a closed percentage range."""
        intervals = extract_intervals("At least 20 but not more than 60 percent nitric acid")

        assert PercentInterval(20.0, 60.0, True, True) in intervals
        assert PercentInterval(-math.inf, 60.0, False, True) in intervals
        assert all(not (i.low == 60.0 and i.high == math.inf) for i in intervals)

    def test_more_than_is_not_read_inside_not_more_than(self):
        """Test that "not more than" is not read as a lower bound."""
        assert extract_intervals("with not more than 51% free sulfur trioxide") == [
            PercentInterval(-math.inf, 51.0, False, True)
        ]

    def test_more_than_and_exact(self):
        """Test open lower bounds and exact values."""
        assert extract_intervals("more than 51 percent") == [PercentInterval(51.0, math.inf, False, False)]
        assert extract_intervals("exactly 35%") == [PercentInterval(35.0, 35.0, True, True)]

    def test_interval_distance(self):
        """Test distance from a value to an interval."""
        interval = PercentInterval(51.0, math.inf, False, False)

        assert interval.distance(60.0) == 0.0
        assert interval.distance(51.0) == 40.0
        assert interval.distance(41.0) == 10.0

    def test_value_inside_closed_interval(self):
        """Test a query value inside a passage range."""
        text = "at least 20 but not more than 60 percent"

        assert interval_affinity("45 percent solution", text) == 1.0

    def test_value_on_excluded_bound_is_a_near_miss(self):
        """Test a query bound that the passage excludes."""
        affinity = interval_affinity("more than 51 percent", "not more than 51 percent")

        assert affinity < 1.0
        assert affinity == pytest.approx(0.2)

    def test_matching_exclusive_bounds(self):
        """Test identical exclusive bounds."""
        assert interval_affinity("more than 51 percent", "oleum with more than 51 percent") == 1.0

    def test_outside_interval_decays_with_distance(self):
        """Test affinity decay outside an interval."""
        assert interval_affinity("70%", "not more than 60 percent") == pytest.approx(0.8)

    def test_nothing_to_compare(self):
        """Test affinity without values or intervals."""
        assert interval_affinity("sulfuric acid", "not more than 60 percent") == 0.0
        assert interval_affinity("45%", "no thresholds here") == 0.0


class TestLocalRerank:
    """Test suite for local_rerank."""

    def test_oleum_threshold_ordering(self):
        """Test oleum passages ordered by free sulfur trioxide threshold."""
        dilute = passage("dilute", "Sulfuric acid with not more than 51% free sulfur trioxide")
        oleum = passage("oleum", "Oleum, with more than 51 percent free sulfur trioxide")

        ranked = local_rerank("oleum with more than 51 percent", [dilute, oleum])

        assert [p.result.id for p in ranked] == ["oleum", "dilute"]
        assert ranked[0].rerank_bonus == pytest.approx(0.15 + 0.35 + 0.4)
        assert ranked[1].rerank_bonus == pytest.approx(0.15 + 0.35 * 0.2 - 0.2)
        assert ranked[0].score == pytest.approx(0.5 + ranked[0].rerank_bonus)

    def test_red_fuming_nitric_acid(self):
        """Test the red fuming nitric acid variant rule."""
        other = passage("other", "Nitric acid other than red fuming")
        red = passage("red", "Nitric acid, red fuming")

        ranked = local_rerank("red fuming nitric acid", [other, red])

        assert [p.result.id for p in ranked] == ["red", "other"]
        assert ranked[0].rerank_bonus == pytest.approx(0.6)
        assert ranked[1].rerank_bonus == pytest.approx(0.1)

    def test_custom_weights(self):
        """Test correction with custom weights."""
        item = passage("a", "at least 20 but not more than 60 percent")

        ranked = local_rerank("45 percent", [item], weights={"interval": 1.0, "numeric": 0.0})

        assert ranked[0].rerank_bonus == pytest.approx(1.0)

    def test_inputs_are_not_mutated(self):
        """Test that input passages are left unchanged."""
        item = passage("a", "exactly 35%")

        local_rerank("35%", [item])

        assert item.score == 0.5
        assert item.rerank_bonus == 0.0

    def test_plain_query_keeps_order_and_scores(self):
        """Test a query without thresholds."""
        first = passage("first", "Class 8 corrosive", score=0.9)
        second = passage("second", "Class 3 flammable", score=0.4)

        ranked = local_rerank("corrosive shipping", [second, first])

        assert [p.result.id for p in ranked] == ["first", "second"]
        assert all(p.rerank_bonus == 0.0 for p in ranked)
