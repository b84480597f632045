from docx import Document
from docx.enum.text import WD_ALIGN_PARAGRAPH
from docx.shared import Pt

from witness_format.utils.formatter import (
    LegalFormattingDefaults,
    LegalHeaderMetadata,
    apply_role_formatting,
    header_lines,
    insert_court_header,
    strip_marker_from_runs,
)
from witness_format.utils.paragraph_types import BODY, TITLE

HEADER = LegalHeaderMetadata("Employment Tribunal", "123/2025", "John Smith", "Acme Ltd")


def test_header_metadata_from_form_values():
    meta = LegalHeaderMetadata.from_mapping({"tribunal_name": "  Employment Tribunal ", "case_reference": None})
    assert meta.tribunal_name == "Employment Tribunal"
    assert meta.case_reference == ""
    assert not meta.is_empty
    assert LegalHeaderMetadata.from_mapping({"applicant_name": "   "}).is_empty
    assert LegalHeaderMetadata().is_empty


def test_header_lines():
    lines = [text for text, _ in header_lines(HEADER)]
    assert lines[0] == "IN THE EMPLOYMENT TRIBUNAL"
    assert lines[1] == "Case Reference: 123/2025"
    assert lines[3:9] == ["BETWEEN:", "JOHN SMITH", "Applicant", "-and-", "ACME LTD", "Respondent"]


def test_court_header_goes_to_the_top():
    doc = Document()
    doc.add_paragraph("Existing body text.")
    added = insert_court_header(doc, HEADER)
    paras = doc.paragraphs
    assert added == 10
    assert paras[0].text == "IN THE EMPLOYMENT TRIBUNAL"
    assert paras[0].runs[0].bold is True
    assert paras[1].runs[0].bold is False
    assert paras[0].alignment == WD_ALIGN_PARAGRAPH.CENTER
    assert paras[2].text == ""
    assert paras[10].text == "Existing body text."


def test_marker_split_over_runs_keeps_run_formatting():
    doc = Document()
    para = doc.add_paragraph()
    para.add_run("(")
    para.add_run("a) ")
    bold = para.add_run("Bold text")
    bold.bold = True
    assert strip_marker_from_runs(para) == 4
    assert para.text == "Bold text"
    assert para.runs[2].bold is True


def test_main_number_is_only_stripped_on_request():
    doc = Document()
    para = doc.add_paragraph("12. Text of the paragraph")
    assert strip_marker_from_runs(para, strip_main=False) == 0
    assert para.text == "12. Text of the paragraph"
    assert strip_marker_from_runs(para) == 4
    assert para.text == "Text of the paragraph"


def test_title_formatting():
    doc = Document()
    para = doc.add_paragraph("Witness statement of John Smith")
    apply_role_formatting(para, TITLE)
    run = para.runs[0]
    assert para.alignment == WD_ALIGN_PARAGRAPH.CENTER
    assert run.bold is True
    assert run.font.all_caps is True
    assert run.font.name == LegalFormattingDefaults.FONT_FAMILY
    assert run.font.size == Pt(LegalFormattingDefaults.FONT_SIZE_PT)


def test_numbered_body_loses_direct_indents():
    doc = Document()
    para = doc.add_paragraph("Indented body text.")
    para.paragraph_format.left_indent = Pt(36)
    para.paragraph_format.first_line_indent = Pt(18)
    apply_role_formatting(para, BODY, numbered=True)
    assert para.paragraph_format.left_indent is None
    assert para.paragraph_format.first_line_indent is None
    assert para.alignment == WD_ALIGN_PARAGRAPH.JUSTIFY


def test_unknown_role_formats_as_body():
    doc = Document()
    para = doc.add_paragraph("Something.")
    apply_role_formatting(para, "unknown")
    assert para.alignment == WD_ALIGN_PARAGRAPH.JUSTIFY


def test_every_role_gets_legal_line_spacing():
    doc = Document()
    for ptype in (TITLE, BODY, "unknown"):
        para = doc.add_paragraph("Some text.")
        apply_role_formatting(para, ptype, numbered=ptype == BODY)
        assert para.paragraph_format.line_spacing == LegalFormattingDefaults.LINE_SPACING == 1.2


def test_court_header_lines_get_legal_line_spacing():
    doc = Document()
    insert_court_header(doc, HEADER)
    assert all(p.paragraph_format.line_spacing == 1.2 for p in doc.paragraphs)
