"""
Witness-statement paragraph ontology: the roles the structure classifier emits, the
numbering levels a body paragraph can take, and the records passed between the
extractor, classifier, level detector, target builder and numbering patcher.
"""

from dataclasses import dataclass

# Paragraph roles (output of section_detector.classify)
HEADER = "header"
TITLE = "title"
INTRO = "intro"
HEADING = "heading"
BODY = "body"
QUOTE = "quote"
STATEMENT_OF_TRUTH = "statementOfTruth"
SIGNATURE = "signature"
UNKNOWN = "unknown"

PARAGRAPH_TYPES = frozenset({
    HEADER,
    TITLE,
    INTRO,
    HEADING,
    BODY,
    QUOTE,
    STATEMENT_OF_TRUTH,
    SIGNATURE,
    UNKNOWN,
})

# Roles that never receive native numbering
NON_NUMBERED_TYPES = frozenset({
    HEADER,
    TITLE,
    INTRO,
    HEADING,
    STATEMENT_OF_TRUTH,
    SIGNATURE,
    QUOTE,
})

# Numbering levels: 1. / (a) / (i)
LEVEL_MAIN = 0
LEVEL_SUB_LETTER = 1
LEVEL_SUB_ROMAN = 2
NUMBERING_LEVELS = (LEVEL_MAIN, LEVEL_SUB_LETTER, LEVEL_SUB_ROMAN)

# Extraction pass identities. Indices from one pass are never valid in another.
PLAIN_PASS = "plain"
SERIALIZED_PASS = "serialized"


def is_paragraph_type(value) -> bool:
    return isinstance(value, str) and value in PARAGRAPH_TYPES


def is_numbering_level(value) -> bool:
    return isinstance(value, int) and not isinstance(value, bool) and value in NUMBERING_LEVELS


@dataclass(frozen=True)
class ParagraphHints:
    """Layout signals read from the source paragraph. Signal only; never written back."""

    bold: bool = False
    all_caps: bool = False
    centered: bool = False
    word_count: int = 0
    left_indent_pt: float | None = None
    first_line_indent_pt: float | None = None
    list_level: int | None = None

    def as_prompt_dict(self) -> dict:
        """Compact form sent to the external classifier."""
        return {
            "bold": self.bold,
            "caps": self.all_caps,
            "center": self.centered,
            "words": self.word_count,
        }


@dataclass(frozen=True)
class Paragraph:
    """
    One paragraph of one extraction pass.
    offset/length are in the coordinate space of the pass named by pass_id.
    """

    index: int
    text: str
    offset: int
    length: int
    pass_id: str = PLAIN_PASS
    hints: ParagraphHints | None = None

    @property
    def is_empty(self) -> bool:
        return not self.text

    @property
    def end(self) -> int:
        return self.offset + self.length


@dataclass(frozen=True)
class NumberingTarget:
    """A paragraph that should receive native numbering, re-locatable by fingerprint."""

    paragraph_index: int
    level: int
    fingerprint: str
