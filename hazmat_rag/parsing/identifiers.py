"""Canonical forms for regulatory identifiers compared across queries and metadata."""

import re
from typing import Optional

_UN_DIGITS = re.compile(r"(\d{4})")
_SECTION = re.compile(r"(\d{3}\.\d+)")
_HAZARD_CLASS = re.compile(r"([1-9](?:\.\d)?)")
_PACKING_GROUP = re.compile(r"\b(I{1,3})\b", re.IGNORECASE)


def canonical_un_number(value: Optional[str]) -> Optional[str]:
    """'un 1830', '1830' and 'UN1830' all become 'UN1830'."""
    if not value:
        return None
    match = _UN_DIGITS.search(value)
    return f"UN{match.group(1)}" if match else None


def canonical_section(value: Optional[str]) -> Optional[str]:
    """Pull the bare part.section number out of '49 CFR §172.101' style references."""
    if not value:
        return None
    match = _SECTION.search(value)
    return match.group(1) if match else None


def canonical_hazard_class(value: Optional[str]) -> Optional[str]:
    """'Class 8', 'division 2.1' and '8' reduce to the bare class number."""
    if not value:
        return None
    match = _HAZARD_CLASS.search(value)
    return match.group(1) if match else None


def canonical_packing_group(value: Optional[str]) -> Optional[str]:
    """'PG II', 'ii' and 'II' all become 'II'."""
    if not value:
        return None
    match = _PACKING_GROUP.search(value)
    return match.group(1).upper() if match else None


def canonical_number(value: Optional[str]) -> Optional[str]:
    """Numeric identifiers such as freight classes compared by value: '85.0' equals '85'."""
    if value is None:
        return None
    text = str(value).strip()
    try:
        number = float(text)
    except ValueError:
        return text.lower() or None
    return f"{number:g}"


def canonical_text(value: Optional[str]) -> Optional[str]:
    if value is None:
        return None
    text = str(value).strip().upper()
    return text or None
