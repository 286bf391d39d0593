"""Weighted linear reranker with online weight adaptation from click feedback."""

import math
import threading
import time
from typing import Dict, List, Mapping, Optional, Sequence, Tuple

from ...core.config import settings
from ...core.exceptions import RerankerException
from ...core.logging_config import get_logger, log_performance
from ...models.query import ProcessedQuery
from ...models.reranker import RerankedResult
from ...models.search import SearchResult
from .features import DEFAULT_FEATURE_WEIGHTS, FEATURE_NAMES, FeatureExtractor


EXPLANATION_SIZE = 5
MIN_EXPLAINED_CONTRIBUTION = 0.1


def validate_weights(feature_weights: Mapping[str, float]) -> Dict[str, float]:
    """Check a weight table covers exactly the known features with finite, non-negative weights."""
    expected = set(FEATURE_NAMES)
    provided = set(feature_weights)
    missing = sorted(expected - provided)
    unknown = sorted(provided - expected)

    if missing or unknown:
        raise RerankerException(
            "Feature weight table does not match the known feature names",
            component="reranker",
            error_code="INVALID_FEATURE_WEIGHTS",
            details={"missing": missing, "unknown": unknown}
        )

    weights = {}
    for name in FEATURE_NAMES:
        try:
            weight = float(feature_weights[name])
        except (TypeError, ValueError):
            weight = float("nan")
        if not math.isfinite(weight) or weight < 0:
            raise RerankerException(
                f"Feature weight for '{name}' must be a finite non-negative number",
                component="reranker",
                error_code="INVALID_FEATURE_WEIGHTS",
                details={"feature": name, "weight": str(feature_weights[name])}
            )
        weights[name] = weight

    return weights


def _finite(value: float) -> float:
    return value if isinstance(value, (int, float)) and math.isfinite(value) else 0.0


class Reranker:
    """
    Feature-based reranker.

    The weight table is the only mutable state. Writers hold the lock and
    publish a fresh dict; readers take the current dict reference once per
    call, so a rerank never sees a half-updated table.
    """

    def __init__(
        self,
        feature_weights: Optional[Mapping[str, float]] = None,
        feature_extractor: Optional[FeatureExtractor] = None,
        blend: float = None
    ):
        self.logger = get_logger(__name__, "reranker")
        self.feature_extractor = feature_extractor or FeatureExtractor()
        self.blend = settings.reranker_blend if blend is None else blend

        if not 0.0 <= self.blend <= 1.0:
            raise RerankerException(
                "Reranker blend must lie in [0, 1]",
                component="reranker",
                error_code="INVALID_BLEND",
                details={"blend": self.blend}
            )

        self._weights: Dict[str, float] = validate_weights(
            DEFAULT_FEATURE_WEIGHTS if feature_weights is None else feature_weights
        )
        self._lock = threading.RLock()

    @property
    def weights(self) -> Dict[str, float]:
        """Copy of the current weight table."""
        return dict(self._weights)

    def score_features(self, features: Mapping[str, float], weights: Mapping[str, float] = None) -> float:
        """Weighted mean of the present features, capped at 1."""
        weights = self._weights if weights is None else weights
        score = 0.0
        total_weight = 0.0

        for name, value in features.items():
            weight = weights.get(name, 0.0)
            score += _finite(value) * weight
            total_weight += weight

        return min(score / total_weight, 1.0) if total_weight > 0 else 0.0

    @staticmethod
    def explain(features: Mapping[str, float], weights: Mapping[str, float]) -> List[Tuple[str, float]]:
        """Top contributing features, largest first."""
        contributions = [
            (name, _finite(value) * weights.get(name, 0.0))
            for name, value in features.items()
        ]
        important = [item for item in contributions if item[1] > MIN_EXPLAINED_CONTRIBUTION]
        important.sort(key=lambda item: item[1], reverse=True)
        return important[:EXPLANATION_SIZE]

    def rerank(
        self,
        processed: ProcessedQuery,
        results: Sequence[SearchResult],
        top_k: int = None,
        threshold: float = None,
        explain_scores: bool = False
    ) -> List[RerankedResult]:
        """
        Rescore hybrid results with the weighted feature model.

        Args:
            processed: Processed query the results were retrieved for
            results: Hybrid search results
            top_k: Maximum number of results to return
            threshold: Minimum final score to keep a result
            explain_scores: Attach raw features and top contributions

        Returns:
            Results sorted by final score, highest first
        """
        if not results:
            return []

        top_k = top_k or settings.rerank_top_k
        threshold = settings.rerank_threshold if threshold is None else threshold

        start_time = time.time()
        weights = self._weights

        reranked = []
        for result in results:
            features = self.feature_extractor.extract(processed, result)
            reranker_score = self.score_features(features, weights)
            final_score = self.blend * reranker_score + (1 - self.blend) * _finite(result.hybrid_score)

            reranked.append(RerankedResult(
                document=result.document,
                semantic_score=result.semantic_score,
                keyword_score=result.keyword_score,
                hybrid_score=result.hybrid_score,
                highlights=result.highlights,
                reranker_score=reranker_score,
                final_score=final_score,
                relevance_features=features if explain_scores else None,
                explanation=self.explain(features, weights) if explain_scores else None
            ))

        kept = [r for r in reranked if r.final_score >= threshold]
        kept.sort(key=lambda r: r.final_score, reverse=True)
        kept = kept[:top_k]

        duration = (time.time() - start_time) * 1000

        log_performance(
            self.logger,
            "rerank",
            duration,
            metadata={
                "candidate_count": len(results),
                "result_count": len(kept),
                "threshold": threshold,
                "top_k": top_k
            }
        )

        self.logger.debug(
            f"Reranked {len(results)} candidates to top {len(kept)}",
            extra={
                "query_length": len(processed.original),
                "candidate_count": len(results),
                "result_count": len(kept),
                "intent": processed.intent.value
            }
        )

        return kept

    def adapt_weights(
        self,
        processed: ProcessedQuery,
        clicked: SearchResult,
        not_clicked: Sequence[SearchResult],
        learning_rate: float = None
    ) -> Dict[str, float]:
        """
        Move weights toward features that separate the clicked result from the rest.

        Each weight changes by learning_rate times the difference between the
        clicked feature value and the mean over the non-clicked results, and
        is then clamped at zero.

        Returns:
            The newly published weight table
        """
        learning_rate = settings.learning_rate if learning_rate is None else learning_rate

        clicked_features = self.feature_extractor.extract(processed, clicked)
        mean_not_clicked: Dict[str, float] = {}
        if not_clicked:
            for result in not_clicked:
                for name, value in self.feature_extractor.extract(processed, result).items():
                    mean_not_clicked[name] = mean_not_clicked.get(name, 0.0) + _finite(value) / len(not_clicked)

        with self._lock:
            current = self._weights
            updated = {}
            for name in FEATURE_NAMES:
                diff = _finite(clicked_features.get(name, 0.0)) - mean_not_clicked.get(name, 0.0)
                updated[name] = max(0.0, current[name] + learning_rate * diff)
            self._weights = updated

        changed = {
            name: round(updated[name] - current[name], 4)
            for name in FEATURE_NAMES
            if updated[name] != current[name]
        }

        self.logger.info(
            f"Adapted reranker weights from click on {clicked.id}",
            extra={
                "clicked_id": clicked.id,
                "not_clicked_count": len(not_clicked),
                "learning_rate": learning_rate,
                "changed_features": len(changed)
            }
        )

        return dict(updated)

    def reset_weights(self, feature_weights: Optional[Mapping[str, float]] = None) -> None:
        """Replace the weight table, validating it first."""
        weights = validate_weights(DEFAULT_FEATURE_WEIGHTS if feature_weights is None else feature_weights)
        with self._lock:
            self._weights = weights
