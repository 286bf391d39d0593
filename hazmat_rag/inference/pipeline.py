"""Search pipeline orchestrator: query understanding, retrieval, reranking, context."""

import time
import uuid
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional, Sequence

from ..core.config import settings
from ..core.exceptions import HazmatRAGException, InferenceException, RerankerException
from ..core.logging_config import get_logger, log_exception, log_performance
from ..models.document import Document, DocumentSource
from ..models.query import ProcessedQuery, QueryIntent
from ..models.reranker import RerankedResult
from ..models.search import SearchResult
from ..parsing.identifiers import canonical_un_number
from .hybrid_search import HybridSearch
from .interval_corrector import ScoredPassage, local_rerank
from .query_processor import QueryProcessor
from .reranker.weighted_reranker import Reranker


Embedder = Callable[[str], Sequence[float]]

DEFAULT_SOURCES = (
    DocumentSource.HMT,
    DocumentSource.CFR,
    DocumentSource.ERG,
    DocumentSource.PRODUCTS,
)

RERANK_CANDIDATE_FACTOR = 3
LOW_CONFIDENCE_SCORE = 0.5
HIGH_CONFIDENCE_SCORE = 0.8
DIVERSE_SOURCE_COUNT = 3


class SearchPipelineStage(Enum):
    """Stages of the search pipeline."""
    QUERY_PROCESSING = "query_processing"
    EMBEDDING = "embedding"
    HYBRID_SEARCH = "hybrid_search"
    RERANKING = "reranking"
    INTERVAL_CORRECTION = "interval_correction"
    CONTEXT_ASSEMBLY = "context_assembly"
    COMPLETED = "completed"


@dataclass
class Insights:
    """Human-readable observations about a result set."""
    summary: List[str] = field(default_factory=list)
    recommendations: List[str] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, List[str]]:
        return {
            "summary": list(self.summary),
            "recommendations": list(self.recommendations),
            "warnings": list(self.warnings)
        }


@dataclass
class SearchResponse:
    """Container for a completed search."""
    request_id: str
    query: ProcessedQuery
    results: List[SearchResult]
    scores: Dict[str, float]
    context: str
    insights: Insights
    stats: Dict[str, Any]

    @property
    def top_score(self) -> float:
        if not self.results:
            return 0.0
        return self.scores.get(self.results[0].id, 0.0)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "request_id": self.request_id,
            "query": self.query.to_dict(),
            "results": [
                {**result.to_dict(), "score": round(self.scores.get(result.id, 0.0), 4)}
                for result in self.results
            ],
            "context": self.context,
            "insights": self.insights.to_dict(),
            "stats": self.stats
        }


def result_score(result: SearchResult) -> float:
    """Final score for reranked results, hybrid score otherwise."""
    if isinstance(result, RerankedResult):
        return result.final_score
    return result.hybrid_score


def generate_insights(processed: ProcessedQuery, results: Sequence[SearchResult]) -> Insights:
    """Summaries, recommendations and warnings for a result set."""
    insights = Insights()
    entities = processed.entities
    sources = {result.source for result in results}

    if processed.intent == QueryIntent.EMERGENCY_RESPONSE:
        if DocumentSource.ERG in sources:
            insights.summary.append("Found emergency response guidance")
        else:
            insights.recommendations.append("Consider checking ERG guides for emergency procedures")

    elif processed.intent == QueryIntent.CLASSIFICATION:
        if entities.un_numbers:
            insights.summary.append(f"Classification found for {', '.join(entities.un_numbers)}")
        if not any(r.metadata and r.metadata.freight_class for r in results):
            insights.recommendations.append("May need to determine freight class for shipping")

    elif processed.intent == QueryIntent.SHIPPING_REQUIREMENTS:
        if DocumentSource.CFR not in sources:
            insights.warnings.append("No specific CFR regulations found - verify compliance requirements")

    if entities.un_numbers:
        wanted = {canonical_un_number(un) for un in entities.un_numbers}
        found = any(
            r.metadata and canonical_un_number(r.metadata.un_number) in wanted
            for r in results
        )
        if found:
            insights.summary.append("Exact UN number match found")
        else:
            insights.warnings.append("No exact match for specified UN number")

    if processed.context.needs_hazmat_data:
        has_hazmat = any(
            r.metadata and (r.metadata.is_hazardous or r.metadata.hazard_class)
            for r in results
        )
        if has_hazmat:
            insights.summary.append("Hazardous material information available")
            insights.recommendations.append("Ensure proper placarding and documentation")

    if processed.context.is_freight_booking:
        has_freight = any(
            r.metadata and (r.metadata.freight_class or r.metadata.nmfc_code)
            for r in results
        )
        if has_freight:
            insights.summary.append("Freight classification data found")
        else:
            insights.recommendations.append("Manual freight classification may be required")

    top_score = result_score(results[0]) if results else 0.0
    if top_score < LOW_CONFIDENCE_SCORE:
        insights.warnings.append("Low confidence results - consider refining your query")
    elif top_score > HIGH_CONFIDENCE_SCORE:
        insights.summary.append("High confidence match found")

    if len(sources) >= DIVERSE_SOURCE_COUNT:
        insights.summary.append("Information from multiple authoritative sources")

    return insights


class SearchPipeline:
    """End-to-end retrieval over one corpus snapshot."""

    def __init__(
        self,
        corpus: Iterable[Document],
        reranker: Optional[Reranker] = None,
        semantic_weight: float = None,
        keyword_weight: float = None,
        query_processor: Optional[QueryProcessor] = None
    ):
        self.logger = get_logger(__name__, "search_pipeline")

        start_time = time.time()

        self.corpus: List[Document] = list(corpus)
        self.query_processor = query_processor or QueryProcessor()
        self.hybrid_search = HybridSearch(
            self.corpus,
            semantic_weight=semantic_weight,
            keyword_weight=keyword_weight
        )
        self.reranker = reranker or Reranker()

        self.logger.info(
            f"Search pipeline initialized with {len(self.corpus)} documents",
            extra={
                "init_time_ms": (time.time() - start_time) * 1000,
                "documents": len(self.corpus),
                **self.hybrid_search.get_search_config()
            }
        )

    def search(
        self,
        query: str,
        embed: Embedder,
        limit: int = None,
        sources: Optional[Iterable[Any]] = None,
        min_score: float = None,
        use_reranking: bool = True,
        use_windowing: bool = True,
        explain_scores: bool = False,
        use_interval_correction: bool = True,
        context: Optional[Mapping[str, Any]] = None,
        max_context_tokens: int = None
    ) -> SearchResponse:
        """
        Run a query through every stage of the pipeline.

        Args:
            query: Raw user question
            embed: Caller-supplied embedding function for the retrieval string
            limit: Number of results to return
            sources: Source tags to search; defaults to hmt, cfr, erg and products
            min_score: Minimum hybrid score, also used as the rerank threshold
            use_reranking: Apply the feature reranker
            use_windowing: Attach highlight windows to results
            explain_scores: Include reranker features and top factors
            use_interval_correction: Apply the percentage-threshold correction
            context: Caller flags overriding the derived query context
            max_context_tokens: Token budget for the assembled context

        Returns:
            SearchResponse with ranked results, context, insights and stats
        """
        if not query or not query.strip():
            raise InferenceException(
                "Empty query provided",
                component="search_pipeline",
                error_code="EMPTY_QUERY"
            )

        limit = limit or settings.search_limit
        min_score = settings.min_score if min_score is None else min_score
        max_context_tokens = max_context_tokens or settings.max_context_tokens
        wanted_sources = {DocumentSource.parse(s) for s in (sources or DEFAULT_SOURCES)}

        request_id = str(uuid.uuid4())
        start_time = time.time()
        stage_metrics: Dict[str, Any] = {}
        current_stage = SearchPipelineStage.QUERY_PROCESSING

        try:
            stage_start = time.time()
            processed = self.query_processor.process(query.strip(), context)
            search_query = self.query_processor.generate_search_query(processed)
            stage_metrics["query_processing_ms"] = (time.time() - stage_start) * 1000

            current_stage = SearchPipelineStage.EMBEDDING
            stage_start = time.time()
            query_embedding = embed(search_query)
            stage_metrics["embedding_ms"] = (time.time() - stage_start) * 1000

            current_stage = SearchPipelineStage.HYBRID_SEARCH
            stage_start = time.time()
            documents = [doc for doc in self.corpus if doc.source in wanted_sources]
            search_results = self.hybrid_search.search(
                processed,
                documents,
                query_embedding,
                limit=limit * RERANK_CANDIDATE_FACTOR if use_reranking else limit,
                min_score=min_score,
                use_windowing=use_windowing,
                boost_exact_match=True
            )
            stage_metrics["hybrid_search_ms"] = (time.time() - stage_start) * 1000
            stage_metrics["search_candidates_count"] = len(search_results)

            final_results: List[SearchResult] = search_results[:limit]
            if use_reranking and search_results:
                current_stage = SearchPipelineStage.RERANKING
                stage_start = time.time()
                final_results = self.reranker.rerank(
                    processed,
                    search_results,
                    top_k=limit,
                    threshold=min_score,
                    explain_scores=explain_scores
                )
                stage_metrics["reranking_ms"] = (time.time() - stage_start) * 1000

            scores = {result.id: result_score(result) for result in final_results}
            if use_interval_correction and final_results:
                current_stage = SearchPipelineStage.INTERVAL_CORRECTION
                stage_start = time.time()
                corrected = local_rerank(
                    query,
                    [ScoredPassage(result, result_score(result)) for result in final_results]
                )
                final_results = [passage.result for passage in corrected]
                scores = {passage.result.id: passage.score for passage in corrected}
                stage_metrics["interval_correction_ms"] = (time.time() - stage_start) * 1000

            current_stage = SearchPipelineStage.CONTEXT_ASSEMBLY
            stage_start = time.time()
            context_text = self.hybrid_search.create_context(final_results, max_context_tokens)
            stage_metrics["context_assembly_ms"] = (time.time() - stage_start) * 1000

            current_stage = SearchPipelineStage.COMPLETED
            total_time = (time.time() - start_time) * 1000

        except HazmatRAGException:
            raise
        except Exception as e:
            error = InferenceException(
                f"Search pipeline failed at {current_stage.value}: {str(e)}",
                component="search_pipeline",
                error_code="PIPELINE_EXECUTION_FAILED",
                details={"request_id": request_id, "stage": current_stage.value}
            )
            log_exception(self.logger, error, {"query": query[:100]})
            raise error from e

        stats = {
            "total_matches": len(search_results),
            "reranked": use_reranking,
            "interval_corrected": use_interval_correction,
            "top_score": scores.get(final_results[0].id, 0.0) if final_results else 0.0,
            "processing_time_ms": total_time,
            **stage_metrics
        }

        response = SearchResponse(
            request_id=request_id,
            query=processed,
            results=final_results,
            scores=scores,
            context=context_text,
            insights=generate_insights(processed, final_results),
            stats=stats
        )

        log_performance(
            self.logger,
            "search_pipeline",
            total_time,
            metadata={
                "request_id": request_id,
                "intent": processed.intent.value,
                "results": len(final_results),
                "candidates": len(search_results)
            }
        )

        self.logger.info(
            f"Search completed for request {request_id}",
            extra={
                "request_id": request_id,
                "query": query[:100],
                "intent": processed.intent.value,
                "result_count": len(final_results)
            }
        )

        return response

    def record_click(
        self,
        response: SearchResponse,
        clicked_id: str,
        learning_rate: float = None
    ) -> Dict[str, float]:
        """Feed a click on one result back into the reranker weights."""
        clicked = next((r for r in response.results if r.id == clicked_id), None)
        if clicked is None:
            raise RerankerException(
                f"Clicked result {clicked_id} is not part of the response",
                component="search_pipeline",
                error_code="UNKNOWN_CLICKED_RESULT",
                details={"request_id": response.request_id, "clicked_id": clicked_id}
            )

        not_clicked = [r for r in response.results if r.id != clicked_id]
        return self.reranker.adapt_weights(
            response.query,
            clicked,
            not_clicked,
            learning_rate=learning_rate
        )
