"""Shared text normalisation and tokenisation helpers."""

import re
from typing import List

_NON_TOKEN_CHARS = re.compile(r"[^\w\s-]")
_WHITESPACE = re.compile(r"\s+")

MIN_TOKEN_LENGTH = 3


def normalize_text(text: str) -> str:
    """Lower-case, blank out punctuation and collapse whitespace."""
    cleaned = _NON_TOKEN_CHARS.sub(" ", text.lower())
    return _WHITESPACE.sub(" ", cleaned).strip()


def split_words(text: str) -> List[str]:
    """Split on whitespace, dropping empty strings."""
    return text.split()


def tokenize(text: str) -> List[str]:
    """Tokenize for lexical scoring: normalised words longer than two characters."""
    return [token for token in normalize_text(text).split() if len(token) >= MIN_TOKEN_LENGTH]
