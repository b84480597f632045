import json

import pytest

from witness_ai.paragraph_classifier import ParagraphClassifier
from witness_ai.prompts import build_paragraph_prompt, format_paragraph_line
from witness_format.utils.paragraph_extractor import extract_paragraphs
from witness_format.utils.paragraph_types import BODY, HEADER, SERIALIZED_PASS, ParagraphHints


def test_prompt_lines_carry_index_and_hints():
    hints = ParagraphHints(bold=True, all_caps=True, centered=True, word_count=2)
    assert format_paragraph_line(3, "A.  BACKGROUND", hints.as_prompt_dict()) == (
        '[3] A. BACKGROUND {"bold":true,"caps":true,"center":true,"words":2}'
    )
    assert format_paragraph_line(4, "plain") == "[4] plain"


def test_items_become_an_override(fake_llm):
    paras = extract_paragraphs("IN THE TRIBUNAL\n\n1. I am the Claimant.\nOther text here.")
    answer = {"items": [
        {"i": 0, "type": "header"},
        {"i": 2, "type": "body", "level": 1},
        {"i": 1, "type": "body"},
        {"i": 3, "type": "nonsense"},
        {"i": 99, "type": "body"},
    ]}
    llm = fake_llm(lambda prompt: json.dumps(answer))
    override = ParagraphClassifier(llm).classify_paragraphs(paras)
    assert override.types == {0: HEADER, 2: BODY}
    assert override.levels == {2: 1}
    # Blank paragraphs are not sent
    assert "[1]" not in llm.prompts[0]
    assert "[2] 1. I am the Claimant." in llm.prompts[0]


def test_bare_list_answer_is_accepted(fake_llm):
    paras = extract_paragraphs("Some paragraph.")
    llm = fake_llm(lambda prompt: '```json\n[{"i": 0, "type": "body", "level": 0}]\n```')
    assert ParagraphClassifier(llm).classify_paragraphs(paras).levels == {0: 0}


def test_paragraphs_are_sent_in_batches(fake_llm):
    paras = extract_paragraphs("\n".join(f"Paragraph number {n}." for n in range(85)))
    llm = fake_llm(lambda prompt: '{"items": []}')
    ParagraphClassifier(llm, batch_size=40).classify_paragraphs(paras)
    assert len(llm.prompts) == 3
    assert "[40] Paragraph number 40." in llm.prompts[1]


def test_failed_batch_contributes_nothing(fake_llm):
    paras = extract_paragraphs("\n".join(f"Paragraph number {n}." for n in range(6)))
    calls = []

    def respond(prompt):
        calls.append(prompt)
        if len(calls) == 2:
            raise RuntimeError("Cannot reach OpenAI/Azure: timeout")
        if len(calls) == 3:
            return "not json at all"
        first = int(prompt.split("Paragraphs:\n", 1)[1][1:].split("]", 1)[0])
        return json.dumps({"items": [{"i": first, "type": "body", "level": 0}]})

    override = ParagraphClassifier(fake_llm(respond), batch_size=2).classify_paragraphs(paras)
    assert override.types == {0: BODY}


def test_answer_without_items_is_rejected(fake_llm):
    classifier = ParagraphClassifier(fake_llm(lambda prompt: '{"result": "ok"}'))
    with pytest.raises(ValueError):
        classifier.classify_batch(extract_paragraphs("text"))


def test_override_keeps_the_pass_of_its_paragraphs(fake_llm):
    paras = extract_paragraphs("Some paragraph.", pass_id=SERIALIZED_PASS)
    llm = fake_llm(lambda prompt: '{"items": [{"i": 0, "type": "body", "level": 0}]}')
    assert ParagraphClassifier(llm).classify_paragraphs(paras).pass_id == SERIALIZED_PASS


def test_prompt_lists_every_paragraph():
    prompt = build_paragraph_prompt(extract_paragraphs("one\ntwo"))
    assert prompt.endswith("[0] one\n[1] two")
