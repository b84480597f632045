"""
Rebuild a loaded witness statement: classify -> level -> strip -> emit.

RebuildStrategy fixes the order of the steps; a concrete strategy decides how the result
is emitted. XmlPatchStrategy formats the python-docx document (header, roles, manual
markers removed), saves it, then patches native numbering into the saved XML.
"""

import io
import logging
from dataclasses import dataclass, field

from witness_format.utils.formatter import (
    LegalHeaderMetadata,
    apply_role_formatting,
    insert_court_header,
    remove_paragraph,
    strip_marker_from_runs,
)
from witness_format.utils.level_detector import detect_levels
from witness_format.utils.numbering_patcher import PatchReport, patch_docx_numbering
from witness_format.utils.numbering_targets import build_targets
from witness_format.utils.override_map import ClassificationOverride
from witness_format.utils.paragraph_extractor import extract_document_paragraphs
from witness_format.utils.paragraph_types import HEADER, PLAIN_PASS, NumberingTarget, Paragraph
from witness_format.utils.section_detector import classify

logger = logging.getLogger(__name__)

# Blank paragraphs holding these are layout, not spacing
_LAYOUT_XPATH = ".//w:drawing | .//w:pict | .//w:object | .//w:sectPr | .//w:br[@w:type='page']"


@dataclass
class RebuildResult:
    docx_bytes: bytes
    paragraphs: list[Paragraph]
    types: list[str]
    levels: list[int | None]
    targets: list[NumberingTarget]
    report: PatchReport = field(default_factory=PatchReport)

    def rows(self) -> list[dict]:
        """One row per non-empty source paragraph, for previews."""
        numbered = {t.paragraph_index: t.level for t in self.targets}
        return [
            {
                "index": p.index,
                "text": p.text,
                "type": t,
                "level": lvl,
                "numbered": p.index in numbered,
            }
            for p, t, lvl in zip(self.paragraphs, self.types, self.levels)
            if not p.is_empty
        ]

    def summary(self) -> dict:
        return {
            "paragraphs": sum(1 for p in self.paragraphs if not p.is_empty),
            "targets": len(self.targets),
            **self.report.as_dict(),
        }


def analyse_paragraphs(paragraphs: list[Paragraph], override: ClassificationOverride | None = None):
    """classify + detect_levels + build_targets over one pass. Returns (types, levels, targets)."""
    types = classify(paragraphs, override)
    levels = detect_levels(paragraphs, types, override)
    targets = build_targets(paragraphs, types, levels, override)
    return types, levels, targets


class RebuildStrategy:
    """Template method over a python-docx Document. Subclasses implement emit()."""

    name = "base"

    def rebuild(
        self,
        doc,
        override: ClassificationOverride | None = None,
        header: LegalHeaderMetadata | None = None,
    ) -> RebuildResult:
        paragraphs = extract_document_paragraphs(doc, PLAIN_PASS)
        logger.info(
            "%s rebuild: %d paragraphs (%d non-empty), override=%s",
            self.name, len(paragraphs), sum(1 for p in paragraphs if not p.is_empty),
            "yes" if override else "no",
        )
        types, levels, targets = analyse_paragraphs(paragraphs, override)
        self.strip(doc, targets)
        data, report = self.emit(doc, paragraphs, types, targets, header)
        return RebuildResult(
            docx_bytes=data,
            paragraphs=paragraphs,
            types=types,
            levels=levels,
            targets=targets,
            report=report,
        )

    def strip(self, doc, targets: list[NumberingTarget]):
        """Remove manual markers from the paragraphs that will receive native numbering."""
        body = list(doc.paragraphs)
        stripped = 0
        for target in targets:
            if strip_marker_from_runs(body[target.paragraph_index], strip_main=True):
                stripped += 1
        logger.info("Removed manual markers from %d of %d numbered paragraphs", stripped, len(targets))

    def emit(self, doc, paragraphs, types, targets, header) -> tuple[bytes, PatchReport]:
        raise NotImplementedError


class XmlPatchStrategy(RebuildStrategy):
    """Role formatting through python-docx, numbering through an XML patch of the saved file."""

    name = "xml-patch"

    def __init__(self, drop_blank_lines: bool = True):
        self.drop_blank_lines = drop_blank_lines

    def emit(self, doc, paragraphs, types, targets, header) -> tuple[bytes, PatchReport]:
        body = list(doc.paragraphs)
        numbered = {t.paragraph_index for t in targets}
        replace_header = header is not None and not header.is_empty
        removed = 0
        for para, ptype, source in zip(paragraphs, types, body):
            if para.is_empty:
                if self.drop_blank_lines and not source._p.xpath(_LAYOUT_XPATH):
                    remove_paragraph(source)
                    removed += 1
                continue
            if ptype == HEADER and replace_header:
                remove_paragraph(source)
                removed += 1
                continue
            apply_role_formatting(source, ptype, numbered=para.index in numbered)
        if replace_header:
            insert_court_header(doc, header)
        logger.info("Formatted document: %d paragraphs removed, header %s",
                    removed, "replaced" if replace_header else "kept")

        buf = io.BytesIO()
        doc.save(buf)
        return patch_docx_numbering(buf.getvalue(), targets)
