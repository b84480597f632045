"""Shared fixtures: in-memory DOCX builders and the sample witness statement."""

import io
from types import SimpleNamespace

import pytest
from docx import Document

SCENARIO_A_TEXT = (
    "IN THE EMPLOYMENT TRIBUNAL LONDON\n"
    "Case Reference: 123/2025\n"
    "\n"
    "WITNESS STATEMENT OF JOHN SMITH\n"
    "\n"
    "I, John Smith, will say as follows:\n"
    "\n"
    "1. I am the Claimant.\n"
    "\n"
    "A. BACKGROUND\n"
    "\n"
    "2. I started work in 2020.\n"
)

STATEMENT_LINES = [
    "IN THE EMPLOYMENT TRIBUNAL LONDON",
    "Case Reference: 123/2025",
    "",
    "WITNESS STATEMENT OF JOHN SMITH",
    "",
    "I, John Smith, will say as follows:",
    "",
    "1. I am the Claimant in these proceedings.",
    "A. BACKGROUND",
    "2. I started work for the Respondent in 2020.",
    "3. The Respondent failed to do the following:",
    "(a) pay my wages on time;",
    "(b) provide a written contract; and",
    "(c) respond to my grievance.",
    "STATEMENT OF TRUTH",
    "I believe that the facts stated in this witness statement are true.",
    "Signed: John Smith",
]


def build_docx(lines, table_rows=None) -> bytes:
    """DOCX bytes with one paragraph per line, plus an optional trailing table."""
    doc = Document()
    for line in lines:
        doc.add_paragraph(line)
    if table_rows:
        table = doc.add_table(rows=len(table_rows), cols=len(table_rows[0]))
        for r, row in enumerate(table_rows):
            for c, value in enumerate(row):
                table.cell(r, c).text = value
    buf = io.BytesIO()
    doc.save(buf)
    return buf.getvalue()


@pytest.fixture
def scenario_a_text():
    return SCENARIO_A_TEXT


@pytest.fixture
def statement_lines():
    return list(STATEMENT_LINES)


@pytest.fixture
def statement_docx():
    return build_docx(STATEMENT_LINES)


@pytest.fixture
def docx_builder():
    return build_docx


@pytest.fixture
def ai_config():
    """Minimal config for AI runs with an injected fake LLM."""
    return SimpleNamespace(AI_BATCH_SIZE=40, AI_AVAILABLE=True)


class FakeLLM:
    """Stands in for LLMClient: records prompts and answers from a callable."""

    def __init__(self, respond):
        self._respond = respond
        self.prompts = []

    def generate(self, prompt, **kwargs):
        self.prompts.append(prompt)
        return self._respond(prompt)


@pytest.fixture
def fake_llm():
    return FakeLLM
