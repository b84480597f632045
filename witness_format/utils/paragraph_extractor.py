"""
Split document text into ordered Paragraph records.

Blank paragraphs are kept so paragraph indices stay aligned with any external
classification map built over the same pass. The python-docx adapter below reads the
body paragraphs of a loaded Document (tables excluded, as doc.paragraphs does) and
attaches layout hints for the classifier and level detector.
"""

import re

from docx.enum.text import WD_ALIGN_PARAGRAPH

from witness_format.utils.paragraph_types import PLAIN_PASS, Paragraph, ParagraphHints

# Hard paragraph boundaries. \r\n first so it counts as one break.
_PARAGRAPH_BREAK = re.compile(r"\r\n|\r|\n|\u2029")

# Characters inside one paragraph's text that would otherwise look like a paragraph break
_SOFT_BREAKS = re.compile(r"[\r\n\u2029]+")


def extract_paragraphs(text: str, start_offset: int = 0, pass_id: str = PLAIN_PASS) -> list[Paragraph]:
    """
    Return every paragraph of text in order (blank ones included).
    With start_offset > 0 only paragraphs starting at or after that character offset are
    returned; they keep their global index and offset.
    """
    if text is None:
        return []
    out = []
    pos = 0
    index = 0
    for match in _PARAGRAPH_BREAK.finditer(text):
        raw = text[pos:match.start()]
        if pos >= start_offset:
            out.append(Paragraph(index=index, text=raw.strip(), offset=pos, length=len(raw), pass_id=pass_id))
        index += 1
        pos = match.end()
    # Text after the last break (an empty trailing paragraph when text ends with a break)
    raw = text[pos:]
    if pos >= start_offset:
        out.append(Paragraph(index=index, text=raw.strip(), offset=pos, length=len(raw), pass_id=pass_id))
    return out


def _paragraph_text(paragraph) -> str:
    """Paragraph text with soft line breaks flattened so it stays one paragraph."""
    return _SOFT_BREAKS.sub(" ", paragraph.text or "")


def document_plain_text(doc) -> str:
    """Plain text of the document body, one line per python-docx paragraph."""
    return "\n".join(_paragraph_text(p) for p in doc.paragraphs)


def _style_chain(paragraph):
    style = paragraph.style
    seen = 0
    while style is not None and seen < 20:
        yield style
        style = style.base_style
        seen += 1


def _effective_paragraph_attr(paragraph, attr: str):
    """Direct paragraph formatting first, then the style chain."""
    value = getattr(paragraph.paragraph_format, attr, None)
    if value is not None:
        return value
    for style in _style_chain(paragraph):
        pf = getattr(style, "paragraph_format", None)
        value = getattr(pf, attr, None) if pf is not None else None
        if value is not None:
            return value
    return None


def _run_is_bold(run, paragraph) -> bool:
    if run.bold is not None:
        return bool(run.bold)
    if run.style is not None and run.style.font.bold is not None:
        return bool(run.style.font.bold)
    for style in _style_chain(paragraph):
        if style.font.bold is not None:
            return bool(style.font.bold)
    return False


def _existing_list_level(paragraph) -> int | None:
    """ilvl of a native numPr already on the paragraph, if any."""
    p_pr = paragraph._p.pPr
    if p_pr is None or p_pr.numPr is None:
        return None
    ilvl = p_pr.numPr.ilvl
    if ilvl is None or ilvl.val is None:
        return 0
    return int(ilvl.val)


def _to_pt(length) -> float | None:
    if length is None:
        return None
    return float(length.pt)


def paragraph_hints(paragraph) -> ParagraphHints:
    """Read the layout signals the classifier and level detector use."""
    text = _paragraph_text(paragraph).strip()
    text_runs = [r for r in paragraph.runs if (r.text or "").strip()]
    bold = bool(text_runs) and all(_run_is_bold(r, paragraph) for r in text_runs)
    letters = [c for c in text if c.isalpha()]
    all_caps = bool(letters) and all(c.isupper() for c in letters)
    if not all_caps and text_runs:
        all_caps = all(bool(r.font.all_caps) for r in text_runs)
    alignment = _effective_paragraph_attr(paragraph, "alignment")
    return ParagraphHints(
        bold=bold,
        all_caps=all_caps,
        centered=alignment == WD_ALIGN_PARAGRAPH.CENTER,
        word_count=len(text.split()),
        left_indent_pt=_to_pt(_effective_paragraph_attr(paragraph, "left_indent")),
        first_line_indent_pt=_to_pt(_effective_paragraph_attr(paragraph, "first_line_indent")),
        list_level=_existing_list_level(paragraph),
    )


def extract_document_paragraphs(doc, pass_id: str = PLAIN_PASS) -> list[Paragraph]:
    """
    Plain-text pass over a python-docx Document: same indices as doc.paragraphs, with hints.
    """
    body = list(doc.paragraphs)
    plain = extract_paragraphs("\n".join(_paragraph_text(p) for p in body), pass_id=pass_id)
    out = []
    for para, source in zip(plain, body):
        out.append(Paragraph(
            index=para.index,
            text=para.text,
            offset=para.offset,
            length=para.length,
            pass_id=pass_id,
            hints=paragraph_hints(source),
        ))
    return out
