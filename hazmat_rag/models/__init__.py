"""Data models for documents, queries and ranked results."""

from .document import Document, DocumentMetadata, DocumentSource
from .query import ExtractedEntities, Measurement, ProcessedQuery, QueryContext, QueryIntent
from .search import SearchResult
from .reranker import RerankedResult

__all__ = [
    'Document',
    'DocumentMetadata',
    'DocumentSource',
    'ExtractedEntities',
    'Measurement',
    'ProcessedQuery',
    'QueryContext',
    'QueryIntent',
    'SearchResult',
    'RerankedResult'
]
