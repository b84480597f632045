"""
Prompts for the paragraph classifier. The model sees each paragraph as "[index] text"
with its layout hints and answers with one item per paragraph it can place.
"""
import json

CLASSIFIER_SYSTEM_PROMPT = "You are a legal document structure analyzer for UK witness statements."

PARAGRAPH_TYPES_GUIDE = """Types:
- "header": court name, case reference, parties (BETWEEN ... -and- ...), before the title.
- "title": the document title (e.g. "WITNESS STATEMENT OF ...").
- "intro": the introductory paragraph ("I, Name, ... will say as follows").
- "heading": section headings (e.g. "A. BACKGROUND").
- "body": numbered narrative paragraphs, including lettered sub-points.
- "quote": block quotes or indented quoted text.
- "statementOfTruth": the statement of truth.
- "signature": signature, name and date lines after the statement of truth.
"""

LEVELS_GUIDE = """Levels (body paragraphs only):
level 0 = main numbered paragraph (1, 2, 3)
level 1 = sub-paragraph ((a), (b), (c)), including unmarked items of a list introduced by a colon
level 2 = sub-sub-paragraph ((i), (ii), (iii))
"""


def format_paragraph_line(index: int, text: str, hints: dict | None = None) -> str:
    clean = " ".join((text or "").split())
    if hints:
        return f"[{index}] {clean} {json.dumps(hints, separators=(',', ':'))}"
    return f"[{index}] {clean}"


def build_paragraph_prompt(paragraphs) -> str:
    """paragraphs: Paragraph records of one batch (indices are kept as given)."""
    lines = [
        format_paragraph_line(p.index, p.text, p.hints.as_prompt_dict() if p.hints else None)
        for p in paragraphs
    ]
    joined = "\n".join(lines)
    return f"""Classify each paragraph of this witness statement extract.

{PARAGRAPH_TYPES_GUIDE}
{LEVELS_GUIDE}
Each line is "[index] text" followed by layout hints (bold, caps, center, words).
Use the marker, indentation hints and the surrounding list context to decide the level.

Return ONLY valid JSON in this format:
{{"items": [{{"i": 12, "type": "body", "level": 0}}, {{"i": 13, "type": "heading"}}]}}

Rules:
1. Use the exact index shown in brackets.
2. "level" is required for "body" and must be omitted for every other type.
3. Do not invent indices; omit a paragraph if you cannot classify it.

Paragraphs:
{joined}"""
