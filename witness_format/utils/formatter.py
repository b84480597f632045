import logging
from dataclasses import dataclass

from docx.enum.text import WD_ALIGN_PARAGRAPH
from docx.shared import Pt, RGBColor

from witness_format.utils.level_detector import detect_level_from_text
from witness_format.utils.marker_stripper import marker_prefix_length
from witness_format.utils.paragraph_types import (
    BODY,
    HEADER,
    HEADING,
    INTRO,
    QUOTE,
    SIGNATURE,
    STATEMENT_OF_TRUTH,
    TITLE,
)

logger = logging.getLogger(__name__)


class LegalFormattingDefaults:
    FONT_FAMILY = "Times New Roman"
    FONT_SIZE_PT = 12
    # Multiple of single spacing, applied to every formatted paragraph
    LINE_SPACING = 1.2


@dataclass(frozen=True)
class LegalHeaderMetadata:
    """Court header details entered by the user. Empty fields render as blank lines."""

    tribunal_name: str = ""
    case_reference: str = ""
    applicant_name: str = ""
    respondent_name: str = ""

    @property
    def is_empty(self) -> bool:
        return not any(
            (v or "").strip()
            for v in (self.tribunal_name, self.case_reference, self.applicant_name, self.respondent_name)
        )

    @classmethod
    def from_mapping(cls, data) -> "LegalHeaderMetadata":
        data = data or {}
        return cls(
            tribunal_name=(data.get("tribunal_name") or "").strip(),
            case_reference=(data.get("case_reference") or "").strip(),
            applicant_name=(data.get("applicant_name") or "").strip(),
            respondent_name=(data.get("respondent_name") or "").strip(),
        )


# Paragraph format per role (points; alignment is a WD_ALIGN_PARAGRAPH member name)
ROLE_PARAGRAPH_FORMATS = {
    HEADER: {"alignment": "CENTER", "space_before": 0, "space_after": 0},
    TITLE: {"alignment": "CENTER", "space_before": 24, "space_after": 24},
    HEADING: {"alignment": "LEFT", "space_before": 18, "space_after": 6},
    INTRO: {"alignment": "JUSTIFY", "space_after": 12},
    BODY: {"alignment": "JUSTIFY", "space_after": 12},
    QUOTE: {"alignment": "JUSTIFY", "left_indent": 36, "right_indent": 36, "space_after": 12},
    STATEMENT_OF_TRUTH: {"alignment": "JUSTIFY", "space_before": 24, "space_after": 12},
    SIGNATURE: {"alignment": "LEFT", "space_after": 0},
}

ROLE_RUN_FORMATS = {
    TITLE: {"bold": True, "all_caps": True},
    HEADING: {"bold": True},
    STATEMENT_OF_TRUTH: {"bold": True},
}


def _apply_run_format(run, fmt: dict):
    """Legal font on every run plus the role's emphasis. Text is always black."""
    font = run.font
    font.name = fmt.get("name", LegalFormattingDefaults.FONT_FAMILY)
    font.size = Pt(fmt.get("size_pt", LegalFormattingDefaults.FONT_SIZE_PT))
    if "bold" in fmt:
        font.bold = fmt["bold"]
    if "italic" in fmt:
        font.italic = fmt["italic"]
    if "all_caps" in fmt:
        font.all_caps = fmt["all_caps"]
    font.color.rgb = RGBColor(0, 0, 0)


def _apply_paragraph_format(paragraph, fmt: dict):
    if not fmt:
        return
    pf = paragraph.paragraph_format
    alignment = getattr(WD_ALIGN_PARAGRAPH, fmt.get("alignment") or "", None)
    if alignment is not None:
        pf.alignment = alignment
    for attr in ("space_before", "space_after", "left_indent", "right_indent", "first_line_indent"):
        val = fmt.get(attr)
        if val is not None:
            setattr(pf, attr, Pt(val))
    pf.line_spacing = LegalFormattingDefaults.LINE_SPACING


def apply_role_formatting(paragraph, ptype: str, numbered: bool = False):
    """
    Format one paragraph for its role. Numbered paragraphs lose their direct indents so the
    list definition positions them.
    """
    _apply_paragraph_format(paragraph, ROLE_PARAGRAPH_FORMATS.get(ptype, ROLE_PARAGRAPH_FORMATS[BODY]))
    if numbered:
        pf = paragraph.paragraph_format
        pf.left_indent = None
        pf.first_line_indent = None
    run_fmt = ROLE_RUN_FORMATS.get(ptype, {})
    for run in paragraph.runs:
        _apply_run_format(run, run_fmt)


def strip_marker_from_runs(paragraph, strip_main: bool = True) -> int:
    """
    Remove the leading manual marker ("12.", "(a)", "145. (ii)") from the paragraph's runs,
    keeping every run's formatting. The marker's own level decides the pattern; a plain
    "N." is only removed with strip_main. Returns the number of characters removed.
    """
    runs = list(paragraph.runs)
    text = "".join(r.text for r in runs)
    marker_level = detect_level_from_text(text)
    remaining = marker_prefix_length(text, marker_level, strip_main=strip_main)
    removed = remaining
    for run in runs:
        if remaining <= 0:
            break
        cut = min(remaining, len(run.text))
        if cut:
            run.text = run.text[cut:]
        remaining -= cut
    return removed


def remove_paragraph(paragraph):
    p_el = paragraph._element
    p_el.getparent().remove(p_el)


def header_lines(metadata: LegalHeaderMetadata) -> list[tuple[str, bool]]:
    """(text, bold) lines of the standard court header block."""
    return [
        (f"IN THE {metadata.tribunal_name.upper()}", True),
        (f"Case Reference: {metadata.case_reference}", False),
        ("", False),
        ("BETWEEN:", True),
        (metadata.applicant_name.upper(), True),
        ("Applicant", False),
        ("-and-", True),
        (metadata.respondent_name.upper(), True),
        ("Respondent", False),
        ("", False),
    ]


def insert_court_header(doc, metadata: LegalHeaderMetadata) -> int:
    """Insert the header block at the very top of the body. Returns the number of paragraphs added."""
    body = doc.element.body
    lines = header_lines(metadata)
    for position, (text, bold) in enumerate(lines):
        paragraph = doc.add_paragraph()
        if text:
            _apply_run_format(paragraph.add_run(text), {"bold": bold})
        _apply_paragraph_format(paragraph, ROLE_PARAGRAPH_FORMATS[HEADER])
        # add_paragraph appends at the end; move it into header position
        body.remove(paragraph._p)
        body.insert(position, paragraph._p)
    logger.debug("Inserted court header (%d lines)", len(lines))
    return len(lines)
