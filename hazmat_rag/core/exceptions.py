"""Custom exceptions for the hazmat retrieval core."""

from typing import Any, Dict, Optional
import traceback
from datetime import datetime, timezone


class HazmatRAGException(Exception):
    """Base exception for hazmat retrieval errors."""

    def __init__(
        self,
        message: str,
        component: str = "unknown",
        error_code: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None
    ):
        self.message = message
        self.component = component
        self.error_code = error_code
        self.details = details or {}
        self.timestamp = datetime.now(timezone.utc).isoformat()
        super().__init__(message)

    def to_dict(self) -> Dict[str, Any]:
        """Convert exception to dictionary for JSON logging."""
        return {
            "error_type": self.__class__.__name__,
            "message": self.message,
            "component": self.component,
            "error_code": self.error_code,
            "details": self.details,
            "timestamp": self.timestamp,
            "traceback": traceback.format_exc()
        }


class ChunkingException(HazmatRAGException):
    """Exception for windowing operations."""
    pass


class SearchException(HazmatRAGException):
    """Exception for search operations."""
    pass


class RerankerException(HazmatRAGException):
    """Exception for reranking operations."""
    pass


class InferenceException(HazmatRAGException):
    """Exception for search pipeline operations."""
    pass
