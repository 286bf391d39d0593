"""Hybrid search combining embedding similarity and BM25 keyword matching."""

import math
import time
from typing import Dict, Iterable, List, Optional, Sequence

import numpy as np

from ..chunking.sliding_window import WindowBuilder
from ..core.config import settings
from ..core.exceptions import SearchException
from ..core.logging_config import get_logger, log_performance
from ..models.document import Document, DocumentSource
from ..models.query import ProcessedQuery, QueryIntent
from ..models.search import SearchResult
from .entity_matching import has_entity_match
from .lexical_index import LexicalIndex


DEFAULT_SOURCE_BOOST = 1.0

SOURCE_INTENT_BOOSTS: Dict[QueryIntent, Dict[DocumentSource, float]] = {
    QueryIntent.CLASSIFICATION: {
        DocumentSource.HMT: 1.3,
        DocumentSource.PRODUCTS: 1.2,
        DocumentSource.CFR: 1.1,
        DocumentSource.ERG: 0.9,
    },
    QueryIntent.EMERGENCY_RESPONSE: {
        DocumentSource.ERG: 1.5,
        DocumentSource.CFR: 1.1,
        DocumentSource.HMT: 1.0,
        DocumentSource.PRODUCTS: 0.8,
    },
    QueryIntent.SHIPPING_REQUIREMENTS: {
        DocumentSource.CFR: 1.4,
        DocumentSource.HMT: 1.2,
        DocumentSource.PRODUCTS: 1.0,
        DocumentSource.ERG: 0.8,
    },
    QueryIntent.PRODUCT_LOOKUP: {
        DocumentSource.PRODUCTS: 1.5,
        DocumentSource.HMT: 1.1,
        DocumentSource.CFR: 0.9,
        DocumentSource.ERG: 0.8,
    },
}

# Multiplicative boosts for exact metadata matches; they compound
ENTITY_BOOSTS = (
    ("un_number", 1.5),
    ("cas_number", 1.4),
    ("section", 1.3),
    ("freight_class", 1.3),
)

TOKENS_PER_CHAR = 0.25
CONTEXT_BUDGET_FILL = 0.9
CONTEXT_SEPARATOR = "\n\n---\n\n"


def source_intent_boost(intent: QueryIntent, source: DocumentSource) -> float:
    """Source relevance multiplier; unlisted pairs get DEFAULT_SOURCE_BOOST."""
    return SOURCE_INTENT_BOOSTS.get(intent, {}).get(source, DEFAULT_SOURCE_BOOST)


def cosine_similarity(a: Sequence[float], b: Sequence[float]) -> float:
    """Cosine of two vectors; 0 for mismatched lengths, zero or non-finite vectors."""
    try:
        vec_a = np.asarray(a, dtype=float)
        vec_b = np.asarray(b, dtype=float)
    except (TypeError, ValueError):
        return 0.0

    if vec_a.ndim != 1 or vec_a.shape != vec_b.shape or vec_a.size == 0:
        return 0.0
    if not (np.all(np.isfinite(vec_a)) and np.all(np.isfinite(vec_b))):
        return 0.0

    # Scale to max-abs 1 before squaring; raw 1e200 or 1e-170 components overflow or underflow
    scale_a = np.max(np.abs(vec_a))
    scale_b = np.max(np.abs(vec_b))
    if scale_a == 0 or scale_b == 0:
        return 0.0
    vec_a = vec_a / scale_a
    vec_b = vec_b / scale_b

    norm_a = np.linalg.norm(vec_a)
    norm_b = np.linalg.norm(vec_b)

    similarity = float(np.dot(vec_a, vec_b) / (norm_a * norm_b))
    return similarity if math.isfinite(similarity) else 0.0


def estimate_tokens(text: str) -> float:
    return len(text) * TOKENS_PER_CHAR


def _clamp(value: float, low: float = 0.0, high: float = 1.0) -> float:
    if not math.isfinite(value):
        return low
    return max(low, min(value, high))


class HybridSearch:
    """Hybrid search over a fixed, pre-embedded corpus snapshot."""

    def __init__(
        self,
        corpus: Iterable[Document],
        semantic_weight: float = None,
        keyword_weight: float = None,
        window_builder: Optional[WindowBuilder] = None
    ):
        self.logger = get_logger(__name__, "hybrid_search")

        semantic_weight = settings.semantic_weight if semantic_weight is None else semantic_weight
        keyword_weight = settings.keyword_weight if keyword_weight is None else keyword_weight

        if semantic_weight < 0 or keyword_weight < 0:
            raise SearchException(
                "Fusion weights must be non-negative",
                component="hybrid_search",
                error_code="INVALID_WEIGHTS",
                details={"semantic_weight": semantic_weight, "keyword_weight": keyword_weight}
            )

        # Ensure weights sum to 1.0
        total_weight = semantic_weight + keyword_weight
        if total_weight <= 0:
            raise SearchException(
                "Fusion weights must not both be zero",
                component="hybrid_search",
                error_code="INVALID_WEIGHTS",
                details={"semantic_weight": semantic_weight, "keyword_weight": keyword_weight}
            )
        self.semantic_weight = semantic_weight / total_weight
        self.keyword_weight = keyword_weight / total_weight

        self.keyword_score_normalizer = settings.keyword_score_normalizer
        self.corpus: List[Document] = list(corpus)
        self.index = LexicalIndex(self.corpus)
        self.window_builder = window_builder or WindowBuilder()

    def search(
        self,
        processed: ProcessedQuery,
        documents: Optional[Sequence[Document]],
        query_embedding: Sequence[float],
        limit: int = None,
        min_score: float = None,
        use_windowing: bool = True,
        boost_exact_match: bool = True
    ) -> List[SearchResult]:
        """
        Score documents against a processed query.

        Args:
            processed: Output of QueryProcessor.process
            documents: Candidates to score; None scores the whole corpus
            query_embedding: Query vector from the caller's embedding provider
            limit: Maximum number of results
            min_score: Minimum hybrid score to keep a result
            use_windowing: Attach keyword context windows as highlights
            boost_exact_match: Apply entity and source relevance boosts

        Returns:
            Results sorted by hybrid score, highest first
        """
        limit = limit or settings.search_limit
        min_score = settings.min_score if min_score is None else min_score
        candidates = self.corpus if documents is None else documents

        start_time = time.time()
        results = []

        for document in candidates:
            semantic_score = _clamp(cosine_similarity(query_embedding, document.embedding))
            raw_keyword_score = self.index.score(processed.normalized, document)
            keyword_score = _clamp(raw_keyword_score / self.keyword_score_normalizer)

            hybrid_score = (
                self.semantic_weight * semantic_score
                + self.keyword_weight * keyword_score
            )

            if boost_exact_match:
                hybrid_score *= self._boost(processed, document)

            hybrid_score = _clamp(hybrid_score)
            if hybrid_score < min_score:
                continue

            results.append(SearchResult(
                document=document,
                semantic_score=semantic_score,
                keyword_score=keyword_score,
                hybrid_score=hybrid_score
            ))

        results.sort(key=lambda r: r.hybrid_score, reverse=True)
        results = results[:limit]

        if use_windowing:
            for result in results:
                result.highlights = self._highlights(processed.normalized, result.text)

        duration = (time.time() - start_time) * 1000

        log_performance(
            self.logger,
            "hybrid_search",
            duration,
            metadata={
                "candidates": len(candidates),
                "final_results": len(results),
                "intent": processed.intent.value,
                "limit": limit
            }
        )

        self.logger.debug(
            f"Hybrid search completed: {len(results)} results",
            extra={
                "candidates": len(candidates),
                "final_results": len(results),
                "query": processed.original[:100]
            }
        )

        return results

    def _boost(self, processed: ProcessedQuery, document: Document) -> float:
        boost = 1.0

        for kind, multiplier in ENTITY_BOOSTS:
            if has_entity_match(kind, processed.entities, document.metadata):
                boost *= multiplier

        boost *= source_intent_boost(processed.intent, document.source)
        return boost

    def _highlights(self, query: str, text: str) -> Optional[List[str]]:
        positions = self.index.find_match_positions(query, text)
        windows = self.window_builder.create_context_windows(text, positions)
        return windows[:self.window_builder.max_windows] or None

    def create_context(self, results: Sequence[SearchResult], max_tokens: int = None) -> str:
        """
        Assemble a token-budgeted context for the language model.

        Highlight windows are merged per result; results without highlights
        contribute their text truncated to the remaining budget. Assembly
        stops once 90% of the budget is used.
        """
        max_tokens = max_tokens or settings.max_context_tokens
        blocks = []
        current_tokens = 0.0

        for result in results:
            header = self._context_header(result)

            if result.highlights:
                merged = self.window_builder.merge_windows(result.highlights)
                estimated = estimate_tokens(merged)
                if current_tokens + estimated <= max_tokens:
                    blocks.append(f"{header}\n{merged}")
                    current_tokens += estimated
            else:
                remaining_chars = max(0, int((max_tokens - current_tokens) / TOKENS_PER_CHAR))
                truncated = result.text[:remaining_chars]
                blocks.append(f"{header}\n{truncated}")
                current_tokens += estimate_tokens(truncated)

            if current_tokens >= max_tokens * CONTEXT_BUDGET_FILL:
                break

        self.logger.debug(
            f"Context assembled from {len(blocks)} blocks",
            extra={"blocks": len(blocks), "estimated_tokens": round(current_tokens), "max_tokens": max_tokens}
        )

        return CONTEXT_SEPARATOR.join(blocks)

    @staticmethod
    def _context_header(result: SearchResult) -> str:
        section = result.metadata.section if result.metadata else None
        if section:
            return f"[{result.source.value} §{section}]"
        return f"[{result.source.value}]"

    def get_search_config(self) -> Dict[str, float]:
        """Get hybrid search configuration."""
        return {
            "semantic_weight": self.semantic_weight,
            "keyword_weight": self.keyword_weight,
            "keyword_score_normalizer": self.keyword_score_normalizer,
            "corpus_size": len(self.corpus),
            "avg_doc_length": self.index.avg_doc_length
        }
