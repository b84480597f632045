"""
Manual numbering markers: detection patterns, stripping and content fingerprints.

"145. (a) Text" carries a stray main number left behind by earlier incorrect numbering
followed by the real sub-point marker. Stripping for level 1 removes both. Stripping
only ever removes a prefix, so styled spans after the marker are left alone.

A capital letter with a dot before a capitalised word ("J. Bloggs", "I. Jones") is an
initial, not a marker.
"""

import re

from witness_format.utils.paragraph_types import LEVEL_MAIN, LEVEL_SUB_LETTER, LEVEL_SUB_ROMAN

# Stray main number left by a previous numbering pass: "145. ", "145) ", "145: ", "145 "
STRAY_NUMBER_PREFIX = r"(?:\d+[.):]?\s*)?"

# Multi-letter roman numerals only: a lone "i" is ambiguous with the pronoun and the letter
MULTI_ROMAN = r"(?:ii|iii|iv|vi|vii|viii|ix|xi|xii|xv|xx)[ivx]*"

# Case-sensitive even inside re.I patterns
NOT_AN_INITIAL = r"(?!(?-i:[A-Z]\.\s*[A-Z]))"

LEVEL_2_MARKERS = (
    re.compile(r"^" + STRAY_NUMBER_PREFIX + r"\(" + MULTI_ROMAN + r"\)", re.I),
    re.compile(r"^" + STRAY_NUMBER_PREFIX + MULTI_ROMAN + r"\)", re.I),
    re.compile(r"^" + STRAY_NUMBER_PREFIX + MULTI_ROMAN + r"\.", re.I),
)

# "a. " needs a space, "a.X" needs a capital: plain abbreviations ("e.g.") are not markers
LEVEL_1_MARKERS = (
    re.compile(r"^" + STRAY_NUMBER_PREFIX + r"\([a-zA-Z]\)"),
    re.compile(r"^" + STRAY_NUMBER_PREFIX + r"[a-zA-Z]\)"),
    re.compile(r"^" + STRAY_NUMBER_PREFIX + NOT_AN_INITIAL + r"[a-zA-Z]\.\s+"),
    re.compile(r"^" + STRAY_NUMBER_PREFIX + NOT_AN_INITIAL + r"[a-zA-Z]\.[A-Z]"),
)

# Lone "(i)": treated as a sub-point, not a sub-sub-point
SINGLE_ROMAN_MARKER = re.compile(r"^" + STRAY_NUMBER_PREFIX + r"\([ivx]\)", re.I)

# Strip patterns per level (marker plus trailing whitespace)
_STRIP_LEVEL_1 = re.compile(
    r"^\s*" + STRAY_NUMBER_PREFIX
    + r"(?:\([a-zA-Z]\)|[a-zA-Z]\)|" + NOT_AN_INITIAL + r"[a-zA-Z]\.(?=\s|[A-Z]))\s*"
)
_STRIP_LEVEL_2 = re.compile(
    r"^\s*" + STRAY_NUMBER_PREFIX
    + r"(?:\([ivx]+\)|[ivx]+\)|" + NOT_AN_INITIAL + r"[ivx]+\.(?=\s|[A-Z]))\s*",
    re.I,
)
_STRIP_MAIN = re.compile(r"^\s*\d{1,3}[.)]\s+")

# Leading markers removed before comparing content across passes
_NORMALIZE_MARKERS = (
    re.compile(r"^\s*\d+[.)]\s*"),
    re.compile(r"^\s*\([a-z]\)\s*", re.I),
    re.compile(r"^\s*[a-z][).]\s*", re.I),
    re.compile(r"^\s*\([ivx]+\)\s*", re.I),
    re.compile(r"^\s*[ivx]+[).]\s*", re.I),
)

FINGERPRINT_CHARS = 80


def _strip_pattern(level: int, strip_main: bool):
    if level == LEVEL_SUB_ROMAN:
        return _STRIP_LEVEL_2
    if level == LEVEL_SUB_LETTER:
        return _STRIP_LEVEL_1
    if level == LEVEL_MAIN and strip_main:
        return _STRIP_MAIN
    return None


def strip_marker(text: str, level: int, strip_main: bool = False) -> str:
    """
    Remove one leading manual marker for level (and one stray number before it).
    Level 0 is only stripped when strip_main is set. Returns text unchanged when nothing
    matches; applying it twice gives the same result as applying it once.
    """
    if not text:
        return text
    pattern = _strip_pattern(level, strip_main)
    if pattern is None:
        return text
    stripped = pattern.sub("", text, count=1)
    # A bare "(a)" keeps its text: never strip a paragraph down to nothing
    if not stripped or stripped == text:
        return text
    # "(a) (b) ..." is ambiguous: leave both markers rather than guess
    if pattern.match(stripped):
        return text
    return stripped


def marker_prefix_length(text: str, level: int, strip_main: bool = False) -> int:
    """Number of leading characters strip_marker removes from text."""
    if not text:
        return 0
    return len(text) - len(strip_marker(text, level, strip_main=strip_main))


def normalize_for_matching(text: str) -> str:
    """Lowercase, drop leading numbering markers, collapse whitespace."""
    result = (text or "").lower()
    for pattern in _NORMALIZE_MARKERS:
        result = pattern.sub("", result, count=1)
    return " ".join(result.split())


def fingerprint(text: str, length: int = FINGERPRINT_CHARS) -> str:
    """Normalized content prefix used to re-find a paragraph in a later pass."""
    return normalize_for_matching(text)[:length]
