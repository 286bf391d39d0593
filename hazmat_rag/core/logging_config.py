"""JSON logging configuration for the hazmat retrieval core."""

import logging
import sys
from datetime import datetime, timezone
from typing import Any, Dict, Optional
from pythonjsonlogger import jsonlogger

from .config import settings


class HazmatJSONFormatter(jsonlogger.JsonFormatter):
    """Custom JSON formatter for retrieval logs."""

    def add_fields(self, log_record: Dict[str, Any], record: logging.LogRecord, message_dict: Dict[str, Any]) -> None:
        super().add_fields(log_record, record, message_dict)

        # Add standard fields
        log_record['timestamp'] = datetime.now(timezone.utc).isoformat()
        log_record['level'] = record.levelname
        log_record['logger'] = record.name
        log_record['component'] = getattr(record, 'component', 'unknown')

        if hasattr(record, 'request_id'):
            log_record['request_id'] = record.request_id


def setup_logging() -> None:
    """Setup JSON logging configuration."""

    formatter = HazmatJSONFormatter(
        fmt='%(timestamp)s %(level)s %(logger)s %(component)s %(message)s'
    )

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setFormatter(formatter)

    handlers = [console_handler]

    if settings.log_file:
        file_handler = logging.FileHandler(settings.log_file)
        file_handler.setFormatter(formatter)
        handlers.append(file_handler)

    logging.basicConfig(
        level=getattr(logging, settings.log_level.upper()),
        handlers=handlers,
        force=True
    )


class ComponentLoggerAdapter(logging.LoggerAdapter):
    """LoggerAdapter that keeps per-call extra fields next to the component."""

    def process(self, msg: Any, kwargs: Dict[str, Any]):
        kwargs['extra'] = {**self.extra, **(kwargs.get('extra') or {})}
        return msg, kwargs


def get_logger(name: str, component: str = "unknown") -> logging.LoggerAdapter:
    """Get a logger with component context."""
    logger = logging.getLogger(name)
    return ComponentLoggerAdapter(logger, {'component': component})


def log_exception(
    logger: logging.LoggerAdapter,
    exception: Exception,
    context: Optional[Dict[str, Any]] = None
) -> None:
    """Log an exception with full context."""
    from .exceptions import HazmatRAGException

    if isinstance(exception, HazmatRAGException):
        # LogRecord reserves 'message', so the payload is nested
        log_data = {'error': exception.to_dict()}
        if context:
            log_data['context'] = context
        logger.error("Retrieval exception occurred", extra=log_data)
    else:
        logger.error(
            f"Unexpected exception: {str(exception)}",
            extra={
                'exception_type': type(exception).__name__,
                'exception_message': str(exception),
                'context': context or {}
            },
            exc_info=True
        )


def log_performance(
    logger: logging.LoggerAdapter,
    operation: str,
    duration_ms: float,
    success: bool = True,
    metadata: Optional[Dict[str, Any]] = None
) -> None:
    """Log performance metrics."""
    logger.info(
        f"Performance metric: {operation}",
        extra={
            'operation': operation,
            'duration_ms': duration_ms,
            'success': success,
            'metadata': metadata or {}
        }
    )
