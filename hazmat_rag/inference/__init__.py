"""Online retrieval: query understanding, hybrid search, reranking and correction."""

from .query_processor import EntityExtractor, IntentClassifier, QueryExpander, QueryProcessor
from .lexical_index import LexicalIndex
from .hybrid_search import HybridSearch, cosine_similarity
from .reranker import FeatureExtractor, Reranker
from .interval_corrector import (
    PercentInterval,
    ScoredPassage,
    extract_intervals,
    interval_affinity,
    local_rerank,
    numeric_affinity,
    parse_percents
)
from .pipeline import SearchPipeline, SearchResponse, Insights, generate_insights

__all__ = [
    'EntityExtractor',
    'IntentClassifier',
    'QueryExpander',
    'QueryProcessor',
    'LexicalIndex',
    'HybridSearch',
    'cosine_similarity',
    'FeatureExtractor',
    'Reranker',
    'PercentInterval',
    'ScoredPassage',
    'extract_intervals',
    'interval_affinity',
    'local_rerank',
    'numeric_affinity',
    'parse_percents',
    'SearchPipeline',
    'SearchResponse',
    'Insights',
    'generate_insights'
]
