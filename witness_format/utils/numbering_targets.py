"""
Build the ordered list of paragraphs that receive native numbering.

Everything before the body-start boundary is skipped; after it, a paragraph is a target
only if it is a body paragraph with a level and none of the exclusion rules fire.
"""

import logging

from witness_format.utils.marker_stripper import fingerprint
from witness_format.utils.override_map import ClassificationOverride
from witness_format.utils.paragraph_types import (
    BODY,
    HEADER,
    HEADING,
    NON_NUMBERED_TYPES,
    TITLE,
    NumberingTarget,
    Paragraph,
)
from witness_format.utils.section_detector import (
    HEADING_MAX_CHARS,
    is_header_line,
    is_heading,
    is_intro_line,
    is_truth_line,
)

logger = logging.getLogger(__name__)

TABLE_FRAGMENT_MAX_WORDS = 3
CAPS_HEADING_MIN_LETTERS = 3


def is_table_fragment(text: str) -> bool:
    """Short label such as "Date" or "Claimant name" picked up from a form layout."""
    t = (text or "").strip()
    return len(t.split()) <= TABLE_FRAGMENT_MAX_WORDS and "." not in t


def is_caps_heading(text: str) -> bool:
    t = (text or "").strip()
    if not t or len(t) >= HEADING_MAX_CHARS:
        return False
    letters = [c for c in t if c.isalpha()]
    return len(letters) >= CAPS_HEADING_MIN_LETTERS and all(c.isupper() for c in letters)


def find_body_start(
    paragraphs: list[Paragraph],
    classifications: list[str],
    override: ClassificationOverride | None = None,
) -> int | None:
    """
    Index of the first paragraph eligible for numbering, or None when nothing marks it.

    An override that types any paragraph as body or heading decides on its own. Otherwise
    the boundary is the earlier of the first upper-case heading and the first paragraph
    after the "will say as follows" line; header and title lines never qualify.
    """
    if override:
        override.check_pass(paragraphs)
        forced = [p.index for p in paragraphs if override.type_for(p.index) in (BODY, HEADING)]
        if forced:
            return min(forced)

    caps_heading = None
    after_intro = None
    intro_seen = False
    for para, ptype in zip(paragraphs, classifications):
        if para.is_empty:
            continue
        text = para.text
        # Keyword test only for non-body lines: body text mentions "the Respondent" freely
        header_like = ptype in (HEADER, TITLE) or (ptype != BODY and is_header_line(text))
        if caps_heading is None and not header_like and is_caps_heading(text):
            caps_heading = para.index
        if after_intro is None and intro_seen and not header_like and not is_intro_line(text):
            after_intro = para.index
        if is_intro_line(text):
            intro_seen = True
        if caps_heading is not None and after_intro is not None:
            break

    candidates = [i for i in (caps_heading, after_intro) if i is not None]
    return min(candidates) if candidates else None


def exclusion_reason(para: Paragraph, ptype: str, level: int | None) -> str | None:
    """Why para is not numbered, or None if it should be."""
    if para.is_empty:
        return "empty"
    if ptype in NON_NUMBERED_TYPES:
        return ptype
    if ptype != BODY or level is None:
        return "not body"
    if is_heading(para.text):
        return "heading pattern"
    if is_intro_line(para.text) or is_truth_line(para.text):
        return "intro or truth phrase"
    if is_table_fragment(para.text):
        return "fragment"
    return None


def build_targets(
    paragraphs: list[Paragraph],
    classifications: list[str],
    levels: list[int | None],
    override: ClassificationOverride | None = None,
) -> list[NumberingTarget]:
    """Ordered, one-per-paragraph numbering targets with content fingerprints."""
    if not (len(paragraphs) == len(classifications) == len(levels)):
        raise ValueError("paragraphs, classifications and levels must be the same length")
    body_start = find_body_start(paragraphs, classifications, override)
    targets = []
    seen = set()
    excluded = 0
    for para, ptype, level in zip(paragraphs, classifications, levels):
        if body_start is not None and para.index < body_start:
            continue
        if para.index in seen:
            continue
        reason = exclusion_reason(para, ptype, level)
        if reason is not None:
            if not para.is_empty:
                excluded += 1
                logger.debug("Not numbered (%s): %.40s", reason, para.text)
            continue
        seen.add(para.index)
        targets.append(NumberingTarget(
            paragraph_index=para.index,
            level=level,
            fingerprint=fingerprint(para.text),
        ))
    logger.info(
        "Numbering targets: %d (body start %s, %d excluded)",
        len(targets), body_start, excluded,
    )
    return targets
