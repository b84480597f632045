import io
import json
import re
import zipfile

import pytest
from docx import Document

from witness_format.backend import (
    analyse_document,
    format_witness_statement,
    get_document_preview_text,
    load_document,
    make_output_name,
    process_document,
)
from witness_format.utils.formatter import LegalHeaderMetadata
from witness_format.utils.numbering_patcher import DocumentStructureError
from witness_format.utils.paragraph_types import BODY, QUOTE
from witness_format.utils.rebuild_strategy import RebuildStrategy

HEADER = LegalHeaderMetadata("Employment Tribunal", "123/2025", "John Smith", "Acme Ltd")


def _num_pr(doc, text):
    for para in doc.paragraphs:
        if para.text == text:
            p_pr = para._p.pPr
            return None if p_pr is None else p_pr.numPr
    raise AssertionError(f"paragraph not found: {text}")


@pytest.mark.parametrize(
    "filename,expected",
    [("statement.docx", "statement_UKLegal.docx"), ("Statement v2.docx", "Statement v2_UKLegal.docx"), (None, "document_UKLegal.docx")],
)
def test_make_output_name(filename, expected):
    assert make_output_name(filename) == expected


def test_unreadable_input_is_a_structure_error():
    with pytest.raises(DocumentStructureError):
        load_document(b"not a word document")
    with pytest.raises(ValueError):
        load_document(None)


def test_format_numbers_body_paragraphs(statement_docx):
    result = format_witness_statement(statement_docx, header=HEADER)
    assert result.report.numbered == 6
    assert result.report.dropped == 0

    doc = Document(io.BytesIO(result.docx_bytes))
    main = _num_pr(doc, "I am the Claimant in these proceedings.")
    assert main.ilvl.val == 0
    assert main.numId.val == result.report.num_id
    assert _num_pr(doc, "pay my wages on time;").ilvl.val == 1
    assert _num_pr(doc, "respond to my grievance.").ilvl.val == 1
    for text in ("A. BACKGROUND", "WITNESS STATEMENT OF JOHN SMITH", "Signed: John Smith"):
        assert _num_pr(doc, text) is None


def test_initials_after_sub_markers_survive(docx_builder, statement_lines):
    lines = statement_lines[:10] + [
        "3. The following people were present:",
        "(a) J. Bloggs, the site manager, who opened the office;",
        "(b) K. Jones, the supervisor, who arrived later.",
    ] + statement_lines[14:]
    result = format_witness_statement(docx_builder(lines), header=HEADER)
    doc = Document(io.BytesIO(result.docx_bytes))
    texts = [p.text for p in doc.paragraphs]
    assert "J. Bloggs, the site manager, who opened the office;" in texts
    assert "K. Jones, the supervisor, who arrived later." in texts
    assert _num_pr(doc, "J. Bloggs, the site manager, who opened the office;").ilvl.val == 1
    assert _num_pr(doc, "K. Jones, the supervisor, who arrived later.").ilvl.val == 1
    assert result.report.numbered == 5


def test_court_header_line_does_not_take_a_body_number(docx_builder, statement_lines):
    body = "In the Employment Tribunal hearing in 2021 I was represented by counsel."
    statement_lines[9] = "2. " + body
    result = format_witness_statement(docx_builder(statement_lines), header=HEADER)
    doc = Document(io.BytesIO(result.docx_bytes))
    assert _num_pr(doc, "IN THE EMPLOYMENT TRIBUNAL") is None
    assert _num_pr(doc, body).ilvl.val == 0
    assert result.report.numbered == 6
    assert result.report.dropped == 0


def test_soft_break_inside_a_body_paragraph_is_numbered(statement_lines):
    doc = Document()
    for i, line in enumerate(statement_lines):
        doc.add_paragraph(line)
        if i == 9:
            para = doc.add_paragraph("My address is")
            para.runs[0].add_break()
            para.add_run("12 High Street, Leeds.")
    buf = io.BytesIO()
    doc.save(buf)

    result = format_witness_statement(buf.getvalue(), header=HEADER)
    assert result.report.targets == 7
    assert result.report.numbered == 7
    assert result.report.dropped == 0
    out = Document(io.BytesIO(result.docx_bytes))
    assert _num_pr(out, "My address is\n12 High Street, Leeds.").ilvl.val == 0


def test_format_replaces_header_and_drops_blank_lines(statement_docx):
    result = format_witness_statement(statement_docx, header=HEADER)
    texts = [p.text for p in Document(io.BytesIO(result.docx_bytes)).paragraphs]
    assert texts[0] == "IN THE EMPLOYMENT TRIBUNAL"
    assert "IN THE EMPLOYMENT TRIBUNAL LONDON" not in texts
    assert texts[10] == "WITNESS STATEMENT OF JOHN SMITH"
    # Only the two spacer lines of the header block stay blank
    assert texts.count("") == 2
    assert len(texts) == 22


def test_format_without_header_keeps_original_header(statement_docx):
    result = format_witness_statement(statement_docx)
    texts = [p.text for p in Document(io.BytesIO(result.docx_bytes)).paragraphs]
    assert texts[0] == "IN THE EMPLOYMENT TRIBUNAL LONDON"


def test_numbering_definition_is_added(statement_docx):
    result = format_witness_statement(statement_docx)
    with zipfile.ZipFile(io.BytesIO(result.docx_bytes)) as z:
        rels = z.read("word/_rels/document.xml.rels").decode("utf-8")
        assert "relationships/numbering" in rels
        numbering = z.read("word/numbering.xml").decode("utf-8")
    assert f'<w:abstractNum w:abstractNumId="{result.report.num_id}">' in numbering


def test_document_without_targets_is_saved_unnumbered(docx_builder):
    result = format_witness_statement(docx_builder(["WITNESS STATEMENT", "Date"]))
    assert result.targets == []
    assert result.report.numbered == 0
    Document(io.BytesIO(result.docx_bytes))


def test_rows_and_summary(statement_docx):
    result = format_witness_statement(statement_docx)
    rows = result.rows()
    assert len(rows) == 14
    first = next(r for r in rows if r["text"].startswith("1. I am"))
    assert first == {"index": 7, "text": "1. I am the Claimant in these proceedings.", "type": BODY, "level": 0, "numbered": True}
    summary = result.summary()
    assert summary["targets"] == 6
    assert summary["numbered"] == 6
    assert summary["levels"] == {"0": 3, "1": 3}


def test_analyse_document_changes_nothing(statement_docx):
    rows = analyse_document(statement_docx)
    assert [r["index"] for r in rows if r["numbered"]] == [7, 9, 10, 11, 12, 13]
    assert rows[0]["type"] == "header"


def test_ai_override_is_applied(statement_docx, fake_llm, ai_config):
    def respond(prompt):
        index = int(re.search(r"\[(\d+)\] 2\. I started", prompt).group(1))
        return json.dumps({"items": [{"i": index, "type": "quote"}]})

    llm = fake_llm(respond)
    result = format_witness_statement(statement_docx, use_ai=True, config=ai_config, llm_client=llm)
    assert len(llm.prompts) == 1
    assert result.types[9] == QUOTE
    assert result.report.numbered == 5


def test_failed_ai_batch_falls_back_to_heuristics(statement_docx, fake_llm, ai_config):
    def respond(prompt):
        raise RuntimeError("Cannot reach OpenAI/Azure")

    result = format_witness_statement(statement_docx, use_ai=True, config=ai_config, llm_client=fake_llm(respond))
    assert result.report.numbered == 6


def test_ai_without_credentials_uses_heuristics(statement_docx, ai_config):
    ai_config.AI_AVAILABLE = False
    result = format_witness_statement(statement_docx, use_ai=True, config=ai_config)
    assert result.report.numbered == 6


def test_process_document_writes_output(statement_docx, tmp_path, ai_config):
    path, preview, result = process_document(
        statement_docx, filename="statement.docx", header=HEADER, config=ai_config, output_dir=str(tmp_path)
    )
    assert path == str(tmp_path / "statement_UKLegal.docx")
    with open(path, "rb") as f:
        assert f.read() == result.docx_bytes
    assert preview.startswith("IN THE EMPLOYMENT TRIBUNAL")
    assert preview == get_document_preview_text(result.docx_bytes)


def test_base_strategy_has_no_emitter(statement_docx):
    with pytest.raises(NotImplementedError):
        format_witness_statement(statement_docx, strategy=RebuildStrategy())
