import pytest

from witness_format.utils.override_map import ClassificationOverride, IndexSpaceMismatchError
from witness_format.utils.paragraph_extractor import extract_paragraphs
from witness_format.utils.paragraph_types import (
    BODY,
    HEADER,
    HEADING,
    INTRO,
    QUOTE,
    SERIALIZED_PASS,
    SIGNATURE,
    STATEMENT_OF_TRUTH,
    TITLE,
    UNKNOWN,
)
from witness_format.utils.section_detector import classify, detect_blocks, is_heading


def test_scenario_a_structure(scenario_a_text):
    blocks = detect_blocks(extract_paragraphs(scenario_a_text))
    assert [t for t, _ in blocks] == [HEADER, HEADER, TITLE, INTRO, BODY, HEADING, BODY]
    assert blocks[4][1] == "1. I am the Claimant."


def test_blank_paragraphs_are_unknown(scenario_a_text):
    paras = extract_paragraphs(scenario_a_text)
    types = classify(paras)
    assert len(types) == len(paras)
    assert all(t == UNKNOWN for p, t in zip(paras, types) if p.is_empty)


def test_classification_is_deterministic(scenario_a_text):
    paras = extract_paragraphs(scenario_a_text)
    assert classify(paras) == classify(paras)


def test_override_type_wins_but_scan_continues(scenario_a_text):
    paras = extract_paragraphs(scenario_a_text)
    override = ClassificationOverride(types={5: BODY, 11: QUOTE})
    types = classify(paras, override)
    assert types[5] == BODY
    assert types[7] == BODY
    assert types[9] == HEADING
    assert types[11] == QUOTE


def test_override_from_another_pass_is_refused(scenario_a_text):
    paras = extract_paragraphs(scenario_a_text)
    override = ClassificationOverride(pass_id=SERIALIZED_PASS, types={0: BODY})
    with pytest.raises(IndexSpaceMismatchError):
        classify(paras, override)


def test_empty_override_is_ignored(scenario_a_text):
    paras = extract_paragraphs(scenario_a_text)
    assert classify(paras, ClassificationOverride(pass_id=SERIALIZED_PASS)) == classify(paras)


def test_long_pre_body_paragraph_starts_the_body():
    text = "WITNESS STATEMENT\n" + "I joined the company after many years in the trade. " * 5
    types = classify(extract_paragraphs(text))
    assert types == [TITLE, BODY]


def test_intro_before_any_title_starts_the_body():
    text = "I, Jane Doe, will say as follows:\n1. I work in Leeds."
    assert classify(extract_paragraphs(text)) == [INTRO, BODY]


def test_back_matter():
    text = (
        "WITNESS STATEMENT\n"
        "I, Jane Doe, will say as follows:\n"
        "1. I work in Leeds.\n"
        "Statement of Truth\n"
        "I believe that the facts stated in this witness statement are true.\n"
        "Signed: Jane Doe\n"
        "Dated: 1 March 2025"
    )
    types = classify(extract_paragraphs(text))
    assert types == [TITLE, INTRO, BODY, STATEMENT_OF_TRUTH, STATEMENT_OF_TRUTH, SIGNATURE, SIGNATURE]


@pytest.mark.parametrize(
    "text,expected",
    [
        ("A. BACKGROUND", True),
        ("IV. THE DISMISSAL", True),
        ("1. I am the Claimant.", False),
        ("BACKGROUND", False),
        ("B. " + "LONG HEADING " * 10, False),
    ],
)
def test_is_heading(text, expected):
    assert is_heading(text) is expected
