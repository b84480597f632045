"""
Numbering depth for body paragraphs: 0 = main (1.), 1 = sub-letter ((a)), 2 = sub-roman ((i)).

Signals, strongest first: external override level, explicit text markers, colon/semicolon
list context, existing native list level, indentation. Manually drafted statements mix all
of them, so each paragraph takes the first signal that fires.
"""

import logging

from witness_format.utils.marker_stripper import (
    LEVEL_1_MARKERS,
    LEVEL_2_MARKERS,
    SINGLE_ROMAN_MARKER,
)
from witness_format.utils.override_map import ClassificationOverride
from witness_format.utils.paragraph_types import (
    BODY,
    LEVEL_MAIN,
    LEVEL_SUB_LETTER,
    LEVEL_SUB_ROMAN,
    Paragraph,
)

logger = logging.getLogger(__name__)

# Indentation past the body baseline, in points
SUB_ROMAN_INDENT_PT = 70.0
SUB_LETTER_INDENT_PT = 36.0

LIST_ITEM_ENDINGS = ("; and", "; or", ";")
JOINED_ITEM_ENDINGS = ("; and", "; or")


def detect_level_from_text(text: str) -> int:
    """Level implied by an explicit leading marker; 0 when there is none."""
    t = (text or "").strip()
    if not t:
        return LEVEL_MAIN
    if any(p.match(t) for p in LEVEL_2_MARKERS):
        return LEVEL_SUB_ROMAN
    if any(p.match(t) for p in LEVEL_1_MARKERS):
        return LEVEL_SUB_LETTER
    if SINGLE_ROMAN_MARKER.match(t):
        # Lone "(i)" reads as a sub-point in witness statements
        return LEVEL_SUB_LETTER
    return LEVEL_MAIN


def has_explicit_marker(text: str) -> bool:
    t = (text or "").strip()
    return bool(
        any(p.match(t) for p in LEVEL_2_MARKERS)
        or any(p.match(t) for p in LEVEL_1_MARKERS)
        or SINGLE_ROMAN_MARKER.match(t)
    )


def opens_list(text: str) -> bool:
    return (text or "").rstrip().endswith(":")


def ends_list_item(text: str) -> bool:
    lower = (text or "").rstrip().lower()
    return lower.endswith(LIST_ITEM_ENDINGS)


def ends_joined_item(text: str) -> bool:
    lower = (text or "").rstrip().lower()
    return lower.endswith(JOINED_ITEM_ENDINGS)


def ends_sentence(text: str) -> bool:
    return (text or "").rstrip().endswith(".")


def body_indent_baseline(paragraphs: list[Paragraph], classifications: list[str]) -> float:
    """Smallest left indent among body paragraphs (0 when no paragraph carries layout hints)."""
    indents = [
        p.hints.left_indent_pt or 0.0
        for p, t in zip(paragraphs, classifications)
        if t == BODY and not p.is_empty and p.hints is not None
    ]
    return min(indents) if indents else 0.0


def level_from_layout(para: Paragraph, baseline: float) -> int | None:
    """Existing native list level first, then left indent past the baseline."""
    hints = para.hints
    if hints is None:
        return None
    if hints.list_level is not None:
        return min(max(hints.list_level, LEVEL_MAIN), LEVEL_SUB_ROMAN)
    if hints.left_indent_pt is None:
        return None
    relative = hints.left_indent_pt - baseline
    if relative >= SUB_ROMAN_INDENT_PT:
        return LEVEL_SUB_ROMAN
    if relative >= SUB_LETTER_INDENT_PT:
        return LEVEL_SUB_LETTER
    return None


class _ListContext:
    """Colon-opened list state carried from one body paragraph to the next."""

    def __init__(self):
        self.active = False
        self.after_joined_item = False

    def reset(self):
        self.active = False
        self.after_joined_item = False

    def level_for(self, text: str) -> int | None:
        if not self.active:
            return None
        if ends_list_item(text):
            return LEVEL_SUB_LETTER
        # "...; and" followed by the last item of the list, closed with a full stop
        if self.after_joined_item and ends_sentence(text):
            return LEVEL_SUB_LETTER
        return None

    def advance(self, text: str):
        if opens_list(text):
            self.active = True
            self.after_joined_item = False
        elif self.active and ends_list_item(text):
            self.after_joined_item = ends_joined_item(text)
        elif ends_sentence(text):
            self.reset()
        else:
            self.after_joined_item = False


def heuristic_level(para: Paragraph, context: _ListContext, baseline: float) -> int:
    text = para.text
    if has_explicit_marker(text):
        return detect_level_from_text(text)
    level = context.level_for(text)
    if level is not None:
        return level
    level = level_from_layout(para, baseline)
    if level is not None:
        return level
    return LEVEL_MAIN


def detect_levels(
    paragraphs: list[Paragraph],
    classifications: list[str],
    override: ClassificationOverride | None = None,
) -> list[int | None]:
    """
    One entry per paragraph: a level for body paragraphs, None for everything else.

    An override level is used as given, except that an explicit deeper marker in the
    paragraph's own text upgrades it (never downgrades). Blank paragraphs do not break
    list context; any other non-body paragraph does.
    """
    if len(classifications) != len(paragraphs):
        raise ValueError("classifications must have one entry per paragraph")
    if override:
        override.check_pass(paragraphs)
    baseline = body_indent_baseline(paragraphs, classifications)
    context = _ListContext()
    levels: list[int | None] = []
    for para, ptype in zip(paragraphs, classifications):
        if para.is_empty:
            levels.append(None)
            continue
        if ptype != BODY:
            levels.append(None)
            context.reset()
            continue
        forced = override.level_for(para.index) if override else None
        if forced is not None:
            level = max(forced, detect_level_from_text(para.text))
        else:
            level = heuristic_level(para, context, baseline)
        levels.append(level)
        context.advance(para.text)
    logger.debug(
        "Levels: %d main, %d sub-letter, %d sub-roman",
        levels.count(LEVEL_MAIN), levels.count(LEVEL_SUB_LETTER), levels.count(LEVEL_SUB_ROMAN),
    )
    return levels
