"""Retrieval and ranking core for hazardous-materials regulatory questions."""

from .models import Document, DocumentMetadata, DocumentSource, ProcessedQuery, QueryIntent
from .inference import (
    HybridSearch,
    QueryProcessor,
    Reranker,
    SearchPipeline,
    local_rerank
)

__version__ = "0.1.0"

__all__ = [
    'Document',
    'DocumentMetadata',
    'DocumentSource',
    'ProcessedQuery',
    'QueryIntent',
    'HybridSearch',
    'QueryProcessor',
    'Reranker',
    'SearchPipeline',
    'local_rerank'
]
