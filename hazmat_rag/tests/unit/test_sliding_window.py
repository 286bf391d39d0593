"""Unit tests for word-window chunking."""

import pytest

from hazmat_rag.chunking.sliding_window import GAP_MARKER, WindowBuilder
from hazmat_rag.core.exceptions import ChunkingException


def numbered_words(count):
    return [f"w{i}" for i in range(count)]


class TestWindowBuilder:
    """Test suite for WindowBuilder."""

    @pytest.fixture
    def builder(self):
        return WindowBuilder(window_size=512, overlap_size=128, max_windows=10, context_size=256)

    def test_thousand_word_document_is_fully_covered(self, builder):
        """Test window coverage of a long document."""
        words = numbered_words(1000)

        windows = builder.create_windows(" ".join(words), window_size=512, overlap_size=128)

        covered = set()
        for window in windows:
            covered.update(window.split())

        assert covered == set(words)
        assert len(windows) <= 10
        assert len(windows) == 3
        assert all(len(window.split()) <= 512 for window in windows)

    def test_short_document_is_returned_whole(self, builder):
        """Test a document shorter than one window."""
        text = "Sulfuric acid,  Class 8"

        assert builder.create_windows(text) == [text]

    def test_window_count_is_capped(self, builder):
        """Test the window count limit."""
        windows = builder.create_windows(" ".join(numbered_words(1000)), window_size=100, overlap_size=50, max_windows=3)

        assert len(windows) == 3
        assert windows[1].split()[0] == "w50"

    def test_non_advancing_configuration_fails(self):
        """Test rejection of a non-advancing window configuration."""
        with pytest.raises(ChunkingException) as exc_info:
            WindowBuilder(window_size=100, overlap_size=100)

        assert exc_info.value.error_code == "INVALID_WINDOW_CONFIG"

    def test_context_windows_are_deduplicated(self, builder):
        """Test deduplication of context windows."""
        words = numbered_words(50)

        windows = builder.create_context_windows(" ".join(words), [10, 10, 40], context_size=5)

        assert windows == [" ".join(words[5:16]), " ".join(words[35:46])]

    def test_context_windows_clamp_to_text(self, builder):
        """Test context windows at the text edges."""
        words = numbered_words(8)

        windows = builder.create_context_windows(" ".join(words), [0, 7], context_size=3)

        assert windows == [" ".join(words[0:4]), " ".join(words[4:8])]

    def test_merge_splices_on_long_overlap(self, builder):
        """Test merging windows with a long overlap."""
        words = numbered_words(60)

        merged = builder.merge_windows([" ".join(words[0:40]), " ".join(words[15:60])])

        assert merged == " ".join(words)

    def test_merge_marks_gap_on_short_overlap(self, builder):
        """Test the gap marker for short overlaps."""
        words = numbered_words(40)

        merged = builder.merge_windows([" ".join(words[0:30]), " ".join(words[25:40])])

        assert f" {GAP_MARKER} " in merged
        assert len(merged.split()) == 30 + 1 + 15

    def test_merge_of_nothing(self, builder):
        """Test merging no windows."""
        assert builder.merge_windows([]) == ""
