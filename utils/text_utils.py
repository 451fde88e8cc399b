"""
Text utilities for handling accented names.

Used to build login names from first/last name columns.
"""

import re
import unicodedata
from typing import Any, Optional

_NON_LETTERS = re.compile(r"[^a-z]")


def strip_accents(text: Optional[str]) -> str:
    """
    Remove accent marks while keeping the base characters.

    - "Marie-Ève" → "Marie-Eve"
    - "Hélène" → "Helene"

    Args:
        text: Original text (may have accents)

    Returns:
        Text without combining marks, or "" for empty input
    """
    if not text:
        return ""

    # Normalize unicode (NFD decomposition separates base chars from accents)
    normalized = unicodedata.normalize('NFD', text)

    # Remove accent marks (combining characters in Unicode category 'Mn')
    return ''.join(
        c for c in normalized
        if unicodedata.category(c) != 'Mn'
    )


def clean_name_part(name: Optional[str]) -> str:
    """
    Reduce a name to lowercase ASCII letters only.

    - "Marie-Ève" → "marieeve"
    - "O'Brien" → "obrien"
    - "  Jean Paul " → "jeanpaul"

    Args:
        name: Raw first or last name from the spreadsheet

    Returns:
        Lowercase a-z string, possibly empty
    """
    return _NON_LETTERS.sub("", strip_accents(name).lower())


def to_text(value: Any) -> str:
    """Coerce a cell value to str, mapping None to ""."""
    if value is None:
        return ""
    if isinstance(value, str):
        return value
    return str(value)


def humanize(identifier: str) -> str:
    """
    Turn an enum-like identifier into words.

    - "CREATE_USER" → "CREATE USER"
    - "createClassFolder" → "create Class Folder"
    """
    spaced = identifier.replace("_", " ")
    spaced = re.sub(r"(?<=[a-z0-9])([A-Z])", r" \1", spaced)
    return re.sub(r"\s+", " ", spaced).strip()
