"""
Formatting backend: UK witness statement DOCX in, formatted DOCX out.
Input: (1) the source statement (bytes, file-like or path), (2) optional court header details.
Output: a DOCX with the standard header, role formatting and native 1 / (a) / (i) numbering.

The AI classifier is optional. Without it (or when it fails) every decision comes from the
heuristics in witness_format.utils.
"""
import logging
import os
import zipfile
from io import BytesIO
from pathlib import Path

from docx import Document
from docx.opc.exceptions import PackageNotFoundError

from witness_format.utils.formatter import LegalHeaderMetadata
from witness_format.utils.numbering_patcher import DocumentStructureError
from witness_format.utils.override_map import ClassificationOverride
from witness_format.utils.paragraph_extractor import extract_document_paragraphs
from witness_format.utils.paragraph_types import PLAIN_PASS
from witness_format.utils.rebuild_strategy import (
    RebuildResult,
    RebuildStrategy,
    XmlPatchStrategy,
    analyse_paragraphs,
)

logger = logging.getLogger(__name__)

OUTPUT_SUFFIX = "_UKLegal"


def _ensure_seekable_stream(source):
    """Return a seekable file-like object. Handles bytes, file-like objects and paths."""
    if source is None:
        raise ValueError("source document is required")
    if isinstance(source, (bytes, bytearray)):
        return BytesIO(source)
    if getattr(source, "seek", None) is not None and getattr(source, "read", None) is not None:
        source.seek(0)
        return source
    if isinstance(source, (str, os.PathLike)):
        with open(source, "rb") as f:
            return BytesIO(f.read())
    raise TypeError("source must be bytes, a file-like object with seek()/read(), or a path")


def load_document(source):
    """python-docx Document from source; unreadable packages raise DocumentStructureError."""
    stream = _ensure_seekable_stream(source)
    try:
        return Document(stream)
    except (PackageNotFoundError, zipfile.BadZipFile, KeyError, ValueError) as e:
        raise DocumentStructureError(f"Cannot read DOCX: {e}") from e


def make_output_name(filename: str | None) -> str:
    """statement.docx -> statement_UKLegal.docx"""
    stem = Path(filename or "document").stem or "document"
    return f"{stem}{OUTPUT_SUFFIX}.docx"


def classify_with_ai(doc, config, llm_client=None) -> ClassificationOverride | None:
    """
    Override map from the AI classifier for doc's plain pass, or None when AI is not
    configured. Model selection happens here, once per run.
    """
    from witness_ai.llm_client import LLMClient, resolve_model
    from witness_ai.paragraph_classifier import ParagraphClassifier

    if llm_client is None:
        if not config.AI_AVAILABLE:
            logger.warning("AI classification requested but no OpenAI/Azure credentials are configured")
            return None
        llm_client = LLMClient(config, model=resolve_model(config))
    paragraphs = extract_document_paragraphs(doc, PLAIN_PASS)
    classifier = ParagraphClassifier(llm_client, batch_size=config.AI_BATCH_SIZE)
    override = classifier.classify_paragraphs(paragraphs)
    return override or None


def analyse_document(source, use_ai: bool = False, config=None, llm_client=None) -> list[dict]:
    """Classification preview without changing anything: one row per non-empty paragraph."""
    doc = load_document(source)
    override = _override_for(doc, use_ai, config, llm_client)
    paragraphs = extract_document_paragraphs(doc, PLAIN_PASS)
    types, levels, targets = analyse_paragraphs(paragraphs, override)
    numbered = {t.paragraph_index for t in targets}
    return [
        {"index": p.index, "text": p.text, "type": t, "level": lvl, "numbered": p.index in numbered}
        for p, t, lvl in zip(paragraphs, types, levels)
        if not p.is_empty
    ]


def _override_for(doc, use_ai, config, llm_client):
    if not use_ai:
        return None
    if config is None:
        from witness_ai.config import Config
        config = Config()
    return classify_with_ai(doc, config, llm_client)


def format_witness_statement(
    source,
    header: LegalHeaderMetadata | None = None,
    use_ai: bool = False,
    config=None,
    llm_client=None,
    strategy: RebuildStrategy | None = None,
) -> RebuildResult:
    """Run the whole pipeline in memory. result.docx_bytes holds the formatted document."""
    doc = load_document(source)
    override = _override_for(doc, use_ai, config, llm_client)
    strategy = strategy or XmlPatchStrategy()
    result = strategy.rebuild(doc, override=override, header=header)
    logger.info("Formatting complete: %s", result.summary())
    return result


def get_document_preview_text(docx_bytes: bytes) -> str:
    """Plain-text preview of the formatted DOCX, one paragraph per block."""
    doc = Document(BytesIO(docx_bytes))
    return "\n\n".join((p.text or "").strip() for p in doc.paragraphs).strip()


def process_document(
    source,
    filename: str | None = None,
    header: LegalHeaderMetadata | None = None,
    use_ai: bool = False,
    config=None,
    output_dir: str | None = None,
    llm_client=None,
):
    """
    Format source and save it as <stem>_UKLegal.docx in output_dir (default: config.OUTPUT_DIR).
    Returns (output_path, preview_text, result).
    """
    if config is None:
        from witness_ai.config import Config
        config = Config()
    result = format_witness_statement(source, header=header, use_ai=use_ai, config=config, llm_client=llm_client)
    out_dir = output_dir or config.OUTPUT_DIR
    os.makedirs(out_dir, exist_ok=True)
    output_path = os.path.join(out_dir, make_output_name(filename))
    with open(output_path, "wb") as f:
        f.write(result.docx_bytes)
    logger.info("Saved %s", output_path)
    return output_path, get_document_preview_text(result.docx_bytes), result
