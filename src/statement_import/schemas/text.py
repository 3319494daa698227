"""
Text normalization for descriptions (SSOT).

Used by the grouping heuristics (keyword search) and by the duplicate
matcher (description similarity). Both must see the same normalized form.
"""

from __future__ import annotations

import logging
import re
import unicodedata
from collections.abc import Callable
from difflib import SequenceMatcher

logger = logging.getLogger(__name__)

_NON_ALNUM = re.compile(r"[^a-z0-9\s]")
_WHITESPACE = re.compile(r"\s+")


def transliterate_ascii(value: str) -> str:
    """Best-effort ASCII transliteration (drops combining marks)."""
    decomposed = unicodedata.normalize("NFKD", value)
    return decomposed.encode("ascii", "ignore").decode("ascii")


def normalize_text(
    value: str | None,
    transliterate: Callable[[str], str] | None = transliterate_ascii,
) -> str:
    """
    Normalize free text for comparison.

    Steps: lower-case, transliterate to ASCII, replace every character that
    is not a letter, digit or whitespace with a space, collapse whitespace,
    trim.

    Args:
        value: Text to normalize
        transliterate: Pluggable transliteration function. If it fails or
            returns an empty string, the lower-cased text is used as is.

    Returns:
        Normalized text (may be empty)

    Examples:
        >>> normalize_text("  Café  Olé!! #12 ")
        'cafe ole 12'
    """
    if not value:
        return ""

    normalized = value.lower()

    if transliterate is not None:
        try:
            ascii_value = transliterate(normalized)
        except (UnicodeError, ValueError, LookupError) as e:
            logger.debug("Transliteration failed for %r: %s", value, e)
            ascii_value = ""
        if ascii_value:
            normalized = ascii_value

    without_symbols = _NON_ALNUM.sub(" ", normalized)
    return _WHITESPACE.sub(" ", without_symbols).strip()


def description_similarity(first: str | None, second: str | None) -> float:
    """
    Character-based similarity percentage between two descriptions.

    The score is 2*M / (len(a) + len(b)) * 100, where M is the number of
    characters covered by the recursive longest-common-substring matching.

    Returns:
        100.0 for identical normalized text, 0.0 if either side is empty
    """
    normalized_a = normalize_text(first)
    normalized_b = normalize_text(second)

    if not normalized_a or not normalized_b:
        return 0.0

    if normalized_a == normalized_b:
        return 100.0

    matcher = SequenceMatcher(a=normalized_a, b=normalized_b, autojunk=False)
    return matcher.ratio() * 100
