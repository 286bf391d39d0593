"""Feature-based reranking with online weight adaptation."""

from .features import DEFAULT_FEATURE_WEIGHTS, FEATURE_NAMES, FeatureExtractor
from .weighted_reranker import Reranker, validate_weights

__all__ = [
    'DEFAULT_FEATURE_WEIGHTS',
    'FEATURE_NAMES',
    'FeatureExtractor',
    'Reranker',
    'validate_weights'
]
