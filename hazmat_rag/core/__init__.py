"""Configuration, logging and exceptions shared across the retrieval core."""

from .config import Settings, settings
from .exceptions import (
    HazmatRAGException,
    ChunkingException,
    SearchException,
    RerankerException,
    InferenceException
)
from .logging_config import setup_logging, get_logger, log_exception, log_performance

__all__ = [
    'Settings',
    'settings',
    'HazmatRAGException',
    'ChunkingException',
    'SearchException',
    'RerankerException',
    'InferenceException',
    'setup_logging',
    'get_logger',
    'log_exception',
    'log_performance'
]
