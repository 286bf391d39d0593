"""Word-window chunking for highlights and context assembly."""

from .sliding_window import GAP_MARKER, WindowBuilder

__all__ = [
    'GAP_MARKER',
    'WindowBuilder'
]
