"""Name normalization for element matching.

Two names refer to the same element when their normalized forms are equal:
- Unicode NFKC (full-width and compatibility forms fold together)
- Case-insensitive (casefold)
- Whitespace trimmed and collapsed to single spaces
"""

from __future__ import annotations

import re
import unicodedata

_WHITESPACE = re.compile(r"\s+")


def normalize_name(name: str | None) -> str:
    """Normalize an element name to its comparison form.

    Args:
        name: Raw element name as detected or stored

    Returns:
        Normalized name ("" for None/blank input)
    """
    if not name:
        return ""

    text = unicodedata.normalize("NFKC", name)
    text = text.casefold()
    text = _WHITESPACE.sub(" ", text)

    return text.strip()


def merge_pages(*page_lists: list[int] | None) -> list[int]:
    """Union page lists into a sorted, de-duplicated list."""
    pages: set[int] = set()
    for page_list in page_lists:
        if page_list:
            pages.update(page_list)
    return sorted(pages)
