"""
Percentage-threshold correction applied after reranking.

Regulatory entries often differ only by a concentration threshold
("not more than 51 percent" vs "more than 51 percent"). This pass reads
percent literals and qualitative intervals from the query and from each
passage, then nudges passage scores toward entries whose thresholds
actually contain the queried value.
"""

import math
import re
from dataclasses import dataclass, replace
from typing import Any, List, Mapping, NamedTuple, Optional, Sequence

from ..core.config import settings
from ..core.logging_config import get_logger


logger = get_logger(__name__, "interval_corrector")


_NUMBER = r"(\d{1,3}(?:\.\d+)?)"
_UNIT = r"\s*(?:%|percent)"

PERCENT_PATTERN = re.compile(r"(?<![\d.])(\d{1,3})(?:\.(\d+))?\s*(?:%|percent)")

CLOSED_PATTERN = re.compile(r"at least\s*" + _NUMBER + r"(?:" + _UNIT + r")?[^%]*?not more than\s*" + _NUMBER + _UNIT)
AT_MOST_PATTERN = re.compile(r"not more than\s*" + _NUMBER + _UNIT)
MORE_THAN_PATTERN = re.compile(r"(?<!not )more than\s*" + _NUMBER + _UNIT)
EXACT_PATTERN = re.compile(r"(?:exactly|with)\s*" + _NUMBER + _UNIT)

RFNA_QUERY = re.compile(r"red\s+fuming|rfna")
RFNA_PRESENT = re.compile(r"red\s+fuming")
RFNA_EXCLUDED = re.compile(r"other than red fuming")
OLEUM_QUERY = re.compile(r"oleum|fuming\s+sulfuric")
OLEUM_PRESENT = re.compile(r"oleum|fuming")
OLEUM_EXCLUDED = re.compile(r"not\s+fuming|with not more than 51%")

RFNA_BONUS = 0.6
RFNA_PENALTY = 0.5
OLEUM_BONUS = 0.4
OLEUM_PENALTY = 0.2

AFFINITY_SCALE = 50.0
OPEN_BOUND_DISTANCE = 40.0
BOUND_PROBE = 1e-6


class PercentInterval(NamedTuple):
    """A percentage range with independently inclusive or exclusive bounds."""
    low: float
    high: float
    include_low: bool
    include_high: bool

    def contains(self, value: float) -> bool:
        above = value >= self.low if self.include_low else value > self.low
        below = value <= self.high if self.include_high else value < self.high
        return above and below

    def distance(self, value: float) -> float:
        """0 inside; fixed penalty on an excluded bound; otherwise the gap to the range."""
        if self.contains(value):
            return 0.0
        if not self.include_low and value == self.low:
            return OPEN_BOUND_DISTANCE
        if not self.include_high and value == self.high:
            return OPEN_BOUND_DISTANCE
        if value < self.low:
            return self.low - value
        if value > self.high:
            return value - self.high
        return 0.0

    def excludes_bound(self, value: float) -> Optional[float]:
        """For a value sitting on an exclusive bound, a point just inside the range; else None."""
        if not self.include_low and value == self.low:
            return value + BOUND_PROBE
        if not self.include_high and value == self.high:
            return value - BOUND_PROBE
        return None


def _to_float(raw: str) -> Optional[float]:
    try:
        value = float(raw)
    except ValueError:
        return None
    return value if math.isfinite(value) else None


def parse_percents(text: str) -> List[float]:
    """Every 'N%' / 'N percent' literal, in order."""
    values = []
    for match in PERCENT_PATTERN.finditer(text or ""):
        raw = match.group(1) + (f".{match.group(2)}" if match.group(2) else "")
        value = _to_float(raw)
        if value is not None:
            values.append(value)
    return values


def _affinity(distance: float) -> float:
    return max(0.0, 1.0 - distance / AFFINITY_SCALE)


def numeric_affinity(query: str, text: str) -> float:
    """Best pairwise closeness between query and text percentages."""
    query_values = parse_percents(query)
    text_values = parse_percents(text)
    if not query_values or not text_values:
        return 0.0

    return max(
        _affinity(abs(q - t))
        for q in query_values
        for t in text_values
    )


def extract_intervals(text: str) -> List[PercentInterval]:
    """Qualitative percentage ranges stated in text."""
    lowered = (text or "").lower()
    intervals: List[PercentInterval] = []

    for match in CLOSED_PATTERN.finditer(lowered):
        low, high = _to_float(match.group(1)), _to_float(match.group(2))
        if low is not None and high is not None:
            intervals.append(PercentInterval(low, high, True, True))

    for match in AT_MOST_PATTERN.finditer(lowered):
        high = _to_float(match.group(1))
        if high is not None:
            intervals.append(PercentInterval(-math.inf, high, False, True))

    for match in MORE_THAN_PATTERN.finditer(lowered):
        low = _to_float(match.group(1))
        if low is not None:
            intervals.append(PercentInterval(low, math.inf, False, False))

    for match in EXACT_PATTERN.finditer(lowered):
        value = _to_float(match.group(1))
        if value is not None:
            intervals.append(PercentInterval(value, value, True, True))

    return intervals


def _query_probe(value: float, query_intervals: Sequence[PercentInterval]) -> Optional[float]:
    for interval in query_intervals:
        probe = interval.excludes_bound(value)
        if probe is not None:
            return probe
    return None


def interval_affinity(query: str, text: str) -> float:
    """
    How well the query's percentages fall inside the ranges the text states.

    1.0 for a value inside a range. A value the query itself states as an
    exclusive bound ("more than 51 percent") matches only a range that
    holds the values just past that bound; a range that merely touches
    the bound counts as the fixed open-bound penalty distance.
    """
    query_values = parse_percents(query)
    intervals = extract_intervals(text)
    if not query_values or not intervals:
        return 0.0

    query_intervals = extract_intervals(query)
    best = 0.0

    for value in query_values:
        probe = _query_probe(value, query_intervals)
        for interval in intervals:
            if probe is not None:
                if interval.contains(probe):
                    return 1.0
                distance = OPEN_BOUND_DISTANCE if interval.contains(value) else interval.distance(value)
            else:
                if interval.contains(value):
                    return 1.0
                distance = interval.distance(value)
            best = max(best, _affinity(distance))

    return best


@dataclass
class ScoredPassage:
    """A ranked result with a mutable-by-copy score for post-processing."""
    result: Any
    score: float
    rerank_bonus: float = 0.0

    @property
    def text(self) -> str:
        return getattr(self.result, "text", "") or ""


def _variant_delta(query: str, text: str) -> float:
    delta = 0.0
    if RFNA_QUERY.search(query):
        if RFNA_PRESENT.search(text):
            delta += RFNA_BONUS
        if RFNA_EXCLUDED.search(text):
            delta -= RFNA_PENALTY
    if OLEUM_QUERY.search(query):
        if OLEUM_PRESENT.search(text):
            delta += OLEUM_BONUS
        if OLEUM_EXCLUDED.search(text):
            delta -= OLEUM_PENALTY
    return delta


def local_rerank(
    query_text: str,
    scored: Sequence[ScoredPassage],
    weights: Optional[Mapping[str, float]] = None
) -> List[ScoredPassage]:
    """
    Add interval and numeric affinity bonuses, plus variant adjustments, and re-sort.

    Args:
        query_text: Raw query
        scored: Passages with their current scores
        weights: 'interval' and 'numeric' multipliers

    Returns:
        New passages sorted by adjusted score, each carrying its bonus
    """
    weights = weights or {}
    interval_weight = weights.get("interval", settings.interval_weight)
    numeric_weight = weights.get("numeric", settings.numeric_weight)
    query = (query_text or "").lower()

    adjusted = []
    for passage in scored:
        text = passage.text
        delta = (
            numeric_weight * numeric_affinity(query_text or "", text)
            + interval_weight * interval_affinity(query_text or "", text)
        )
        delta += _variant_delta(query, text.lower())
        adjusted.append(replace(passage, score=passage.score + delta, rerank_bonus=delta))

    adjusted.sort(key=lambda p: p.score, reverse=True)

    logger.debug(
        f"Interval correction applied to {len(adjusted)} passages",
        extra={
            "passages": len(adjusted),
            "adjusted": sum(1 for p in adjusted if p.rerank_bonus)
        }
    )

    return adjusted
