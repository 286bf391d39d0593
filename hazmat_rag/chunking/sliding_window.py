"""Overlapping word windows for indexing, highlights and context assembly."""

from typing import List, Sequence, Tuple

from ..core.config import settings
from ..core.exceptions import ChunkingException
from ..core.logging_config import get_logger
from ..parsing.tokenizer import split_words


GAP_MARKER = "[...]"


class WindowBuilder:
    """Word-granular sliding and context windows."""

    def __init__(
        self,
        window_size: int = None,
        overlap_size: int = None,
        max_windows: int = None,
        context_size: int = None,
        min_merge_overlap: int = None
    ):
        self.logger = get_logger(__name__, "chunking")

        self.window_size = window_size or settings.window_size
        self.overlap_size = settings.window_overlap if overlap_size is None else overlap_size
        self.max_windows = max_windows or settings.max_windows
        self.context_size = context_size or settings.context_window_words
        self.min_merge_overlap = min_merge_overlap or settings.min_merge_overlap

        self._validate(self.window_size, self.overlap_size)

    @staticmethod
    def _validate(window_size: int, overlap_size: int) -> None:
        if window_size <= 0 or overlap_size < 0 or overlap_size >= window_size:
            raise ChunkingException(
                "Window overlap must be non-negative and smaller than the window size",
                component="chunking",
                error_code="INVALID_WINDOW_CONFIG",
                details={"window_size": window_size, "overlap_size": overlap_size}
            )

    def create_windows(
        self,
        text: str,
        window_size: int = None,
        overlap_size: int = None,
        max_windows: int = None
    ) -> List[str]:
        """
        Slide a fixed-size word window over the text.

        Args:
            text: Document text
            window_size: Words per window
            overlap_size: Words shared by consecutive windows
            max_windows: Upper bound on the number of windows

        Returns:
            The whole text when it fits in one window, otherwise the windows in order
        """
        window_size = window_size or self.window_size
        overlap_size = self.overlap_size if overlap_size is None else overlap_size
        max_windows = max_windows or self.max_windows
        self._validate(window_size, overlap_size)

        words = split_words(text)
        if len(words) <= window_size:
            return [text]

        step = window_size - overlap_size
        windows = []
        start = 0

        while len(windows) < max_windows:
            end = min(start + window_size, len(words))
            windows.append(" ".join(words[start:end]))
            if end >= len(words):
                break
            start += step

        return windows

    def context_ranges(
        self,
        word_count: int,
        match_positions: Sequence[int],
        context_size: int = None
    ) -> List[Tuple[int, int]]:
        """Unique [start, end) word ranges around each match, in match order."""
        context_size = context_size or self.context_size
        ranges: List[Tuple[int, int]] = []
        seen = set()

        for position in match_positions:
            if position < 0 or position >= word_count:
                continue
            window = (max(0, position - context_size), min(word_count, position + context_size + 1))
            if window not in seen:
                seen.add(window)
                ranges.append(window)

        return ranges

    def create_context_windows(
        self,
        text: str,
        match_positions: Sequence[int],
        context_size: int = None
    ) -> List[str]:
        """One window string per unique range around the match positions."""
        words = split_words(text)
        return [
            " ".join(words[start:end])
            for start, end in self.context_ranges(len(words), match_positions, context_size)
        ]

    def merge_windows(self, windows: Sequence[str]) -> str:
        """Splice windows on their longest shared word run, or join with a gap marker."""
        if not windows:
            return ""

        merged = split_words(windows[0])

        for window in windows[1:]:
            following = split_words(window)
            overlap = self._longest_overlap(merged, following)

            if overlap >= self.min_merge_overlap:
                merged.extend(following[overlap:])
            else:
                merged.append(GAP_MARKER)
                merged.extend(following)

        return " ".join(merged)

    def _longest_overlap(self, left: List[str], right: List[str]) -> int:
        """Length of the longest suffix of left equal to a prefix of right."""
        for size in range(min(len(left), len(right)), self.min_merge_overlap - 1, -1):
            if size > 0 and left[-size:] == right[:size]:
                return size
        return 0
