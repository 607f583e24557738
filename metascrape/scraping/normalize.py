"""Deterministic text canonicalization for query building and title matching.

No web calls. The same options object is applied to both sides of a
comparison so that escaping differences (``&amp;`` vs ``&``) never decide
a match.
"""

import re
from dataclasses import dataclass
from typing import Optional, Tuple


_SYMBOL_RE = re.compile(r"[^\w\s]|_")
_NEWLINE_RE = re.compile(r"\r\n|\r|\n")
_WHITESPACE_RE = re.compile(r"\s+")


@dataclass(frozen=True)
class NormalizeOptions:
    """Switches for `normalize`.

    Attributes:
        remove_strings: Literal substrings to delete, in order
        remove_symbols: Delete every character that is not a letter, digit or whitespace
        remove_newlines: Delete line breaks
        remove_whitespace: Delete all whitespace
        lowercase: Case-fold the result
        trim: Strip leading/trailing whitespace
    """
    remove_strings: Tuple[str, ...] = ()
    remove_symbols: bool = False
    remove_newlines: bool = False
    remove_whitespace: bool = False
    lowercase: bool = False
    trim: bool = True


# Used on both the record title and each candidate title.
TITLE_MATCH = NormalizeOptions(
    remove_strings=("&amp",),
    remove_symbols=True,
    remove_newlines=True,
    remove_whitespace=True,
    lowercase=True,
)

QUERY_CLEANUP = NormalizeOptions(remove_strings=("&amp", "&"))


def _apply(text: str, options: NormalizeOptions) -> str:
    if options.lowercase:
        text = text.lower()
    for needle in options.remove_strings:
        if needle:
            text = text.replace(needle, "")
    if options.remove_symbols:
        text = _SYMBOL_RE.sub("", text)
    if options.remove_newlines:
        text = _NEWLINE_RE.sub("", text)
    if options.remove_whitespace:
        text = _WHITESPACE_RE.sub("", text)
    if options.trim:
        text = text.strip()
    return text


def normalize(text: Optional[str], options: NormalizeOptions = NormalizeOptions()) -> str:
    """Canonicalize text according to `options`.

    Transforms are reapplied until the text stops changing, which makes the
    function idempotent even when a removal exposes a new match
    (``"&&ampamp"`` -> ``"&amp"`` -> ``""``).

    Args:
        text: Input text; None is treated as empty
        options: Which transforms to apply

    Returns:
        Normalized string
    """
    if not text:
        return ""

    current = text
    while True:
        updated = _apply(current, options)
        if updated == current:
            return updated
        current = updated


def matches(left: Optional[str], right: Optional[str], options: NormalizeOptions = TITLE_MATCH) -> bool:
    """Exact equality after normalizing both sides with the same options."""
    return normalize(left, options) == normalize(right, options)


def build_query(title: Optional[str]) -> str:
    """Turn a record title into a search query string.

    Strips HTML ampersand entities and bare ampersands, and maps em dashes
    to hyphens.
    """
    return normalize(title, QUERY_CLEANUP).replace("\u2014", "-")
