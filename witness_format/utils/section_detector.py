"""
Rule-based structure detection for witness statements.
Walks the paragraphs once, left to right, through four scan states (header, pre-body,
body, back matter) and assigns each paragraph a role from paragraph_types. An external
override map may replace the role of individual paragraphs; the scan state still moves
on the heuristic result.
"""

import re

from witness_format.utils.override_map import ClassificationOverride
from witness_format.utils.paragraph_types import (
    BODY,
    HEADER,
    HEADING,
    INTRO,
    SIGNATURE,
    STATEMENT_OF_TRUTH,
    TITLE,
    UNKNOWN,
    Paragraph,
)

# Scan states
STATE_HEADER = "header"
STATE_PRE_BODY = "pre_body"
STATE_BODY = "body"
STATE_BACK_MATTER = "back_matter"

HEADER_KEYWORDS = (
    "case no",
    "case ref",
    "claim no",
    "in the",
    "tribunal",
    "between:",
    "applicant",
    "respondent",
    "-v-",
    "-and-",
)
TITLE_KEYWORDS = ("witness statement",)
INTRO_KEYWORDS = ("will say as follows", "states as follows", "say as follows")
TRUTH_KEYWORDS = ("statement of truth", "believe that the facts")

# Paragraphs starting before this character offset are header unless they start the narrative
EARLY_HEADER_OFFSET = 800
# A pre-body paragraph this long is narrative, not a continuing intro
LONG_INTRO_FAILSAFE_CHARS = 200

HEADING_MAX_CHARS = 100
HEADING_MIN_UPPER_RATIO = 0.4
_HEADING_MARKER = re.compile(r"^[A-Za-z0-9IVX]+\.\s")


def contains_any(text: str, keywords) -> bool:
    return any(k in text for k in keywords)


def uppercase_ratio(text: str) -> float:
    letters = [c for c in text or "" if c.isalpha()]
    if not letters:
        return 0.0
    return sum(1 for c in letters if c.isupper()) / len(letters)


def is_heading(text: str) -> bool:
    """
    Short "A. BACKGROUND" style line. The uppercase-density check keeps numbered body
    paragraphs ("1. I am the Claimant.") out.
    """
    t = (text or "").strip()
    if not t or len(t) >= HEADING_MAX_CHARS:
        return False
    if not _HEADING_MARKER.match(t):
        return False
    return uppercase_ratio(t) > HEADING_MIN_UPPER_RATIO


def is_header_line(text: str) -> bool:
    lower = (text or "").lower()
    return contains_any(lower, HEADER_KEYWORDS) or contains_any(lower, TITLE_KEYWORDS)


def is_intro_line(text: str) -> bool:
    return contains_any((text or "").lower(), INTRO_KEYWORDS)


def is_truth_line(text: str) -> bool:
    return contains_any((text or "").lower(), TRUTH_KEYWORDS)


def classify_step(state: str, para: Paragraph) -> tuple[str, str]:
    """One transition of the scan: (state, paragraph) -> (paragraph type, next state)."""
    text = para.text
    lower = text.lower()
    if state == STATE_HEADER:
        if contains_any(lower, TITLE_KEYWORDS):
            return TITLE, STATE_PRE_BODY
        if contains_any(lower, INTRO_KEYWORDS):
            return INTRO, STATE_BODY
        if contains_any(lower, HEADER_KEYWORDS) or para.offset < EARLY_HEADER_OFFSET:
            return HEADER, STATE_HEADER
        return INTRO, STATE_PRE_BODY
    if state == STATE_PRE_BODY:
        if contains_any(lower, INTRO_KEYWORDS):
            return INTRO, STATE_BODY
        if contains_any(lower, TITLE_KEYWORDS):
            return TITLE, STATE_PRE_BODY
        if len(text) > LONG_INTRO_FAILSAFE_CHARS:
            return BODY, STATE_BODY
        return INTRO, STATE_PRE_BODY
    if state == STATE_BODY:
        if contains_any(lower, TRUTH_KEYWORDS):
            return STATEMENT_OF_TRUTH, STATE_BACK_MATTER
        if is_heading(text):
            return HEADING, STATE_BODY
        return BODY, STATE_BODY
    if state == STATE_BACK_MATTER:
        if contains_any(lower, TRUTH_KEYWORDS):
            return STATEMENT_OF_TRUTH, STATE_BACK_MATTER
        return SIGNATURE, STATE_BACK_MATTER
    # Unknown state: treat as body text
    return BODY, STATE_BODY


def classify(paragraphs: list[Paragraph], override: ClassificationOverride | None = None) -> list[str]:
    """
    Return one paragraph type per input paragraph (blank paragraphs -> unknown).
    Deterministic for a given input; never raises on content.
    """
    if override:
        override.check_pass(paragraphs)
    state = STATE_HEADER
    out = []
    for para in paragraphs:
        if para.is_empty:
            out.append(UNKNOWN)
            continue
        ptype, state = classify_step(state, para)
        forced = override.type_for(para.index) if override else None
        out.append(forced or ptype)
    return out


def detect_blocks(paragraphs: list[Paragraph], override: ClassificationOverride | None = None) -> list[tuple[str, str]]:
    """(type, text) for every non-empty paragraph, for previews."""
    types = classify(paragraphs, override)
    return [(t, p.text) for p, t in zip(paragraphs, types) if not p.is_empty]
