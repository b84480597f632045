"""
Inject Word-native list numbering into a saved DOCX by patching its XML parts.

The serialized pass (paragraphs of word/document.xml) is a different enumeration from the
plain pass the targets were built on: the rebuild inserts a header, drops blank lines and
interleaves table paragraphs. Targets are therefore re-found by content fingerprint only,
each target at most once. Table content is never numbered.

The zip is patched in memory: every entry is copied unchanged except the parts rewritten
here (document, numbering, document rels, content types).
"""

import html
import io
import logging
import re
import zipfile
from bisect import bisect_right
from collections import Counter
from dataclasses import dataclass, field
from xml.sax.saxutils import escape

from witness_format.utils.level_detector import detect_level_from_text
from witness_format.utils.marker_stripper import fingerprint, marker_prefix_length
from witness_format.utils.paragraph_types import (
    LEVEL_MAIN,
    SERIALIZED_PASS,
    NumberingTarget,
    Paragraph,
)

logger = logging.getLogger(__name__)

DOCUMENT_PART = "word/document.xml"
DEFAULT_NUMBERING_PART = "word/numbering.xml"
RELS_PART = "word/_rels/document.xml.rels"
CONTENT_TYPES_PART = "[Content_Types].xml"

W_NAMESPACE = "http://schemas.openxmlformats.org/wordprocessingml/2006/main"
NUMBERING_REL_TYPE = "http://schemas.openxmlformats.org/officeDocument/2006/relationships/numbering"
NUMBERING_CONTENT_TYPE = "application/vnd.openxmlformats-officedocument.wordprocessingml.numbering+xml"
NUMBERING_REL_ID = "rIdNumbering"

# New numbering ids sit well clear of anything the document already uses
ID_SAFETY_OFFSET = 100
DEFAULT_NUMBERING_ID = 100

# Fingerprints shorter than this are too generic to match on
MIN_FINGERPRINT_CHARS = 10
# A serialized paragraph that is a prefix of a target fingerprint must be at least this long
MIN_REVERSE_MATCH_CHARS = 15
BUCKET_CHARS = MIN_FINGERPRINT_CHARS

NUMBER_FONT = "Times New Roman"

# (ilvl, numFmt, lvlText, left indent in twips, lvlRestart)
LEVEL_FORMATS = (
    (0, "decimal", "%1.", 720, None),
    (1, "lowerLetter", "(%2)", 1440, 1),
    (2, "lowerRoman", "(%3)", 2160, 2),
)
HANGING_TWIPS = 360

_BODY_OPEN = re.compile(r"<w:body(?:\s[^>]*)?>")
_TABLE_OPEN = re.compile(r"<w:tbl(?:\s[^>]*)?>")
_TABLE_CLOSE = re.compile(r"</w:tbl>")
_TEXT_BOX_OPEN = re.compile(r"<w:txbxContent(?:\s[^>]*)?>")
_TEXT_BOX_CLOSE = re.compile(r"</w:txbxContent>")
# Non-empty paragraphs only; self-closing <w:p/> has nothing to number
_PARAGRAPH = re.compile(r"<w:p(?:\s[^>]*)?(?<!/)>(?:(?!</w:p>).)*</w:p>", re.S)
_NESTED_PARAGRAPH = re.compile(r"<w:p[\s>]")
_TEXT_RUN = re.compile(r"(<w:t(?:\s[^>]*)?>)([^<]*)(</w:t>)")
# Run text with its tabs and breaks in document order; pPr tab stops carry attributes and never match
_RUN_CONTENT = re.compile(
    r"<w:t(?:\s[^>]*)?>(?P<text>[^<]*)</w:t>|<w:tab\s*/>|<w:cr\s*/>|<w:br(?P<br>\s[^>]*)?/>"
)
_NO_TEXT_BREAK = re.compile(r'w:type="(?:page|column)"')
_NUM_PR = re.compile(r"<w:numPr(?:\s[^>]*)?>.*?</w:numPr>|<w:numPr\s*/>", re.S)
_P_PR_OPEN = re.compile(r"<w:pPr(\s[^>]*?)?(/?)>")
_CHILD_TAG = re.compile(r"<w:([A-Za-z]+)[\s/>]")
_ID_ATTRS = re.compile(r'w:(?:numId|abstractNumId)="(\d+)"')
_ID_VALUES = re.compile(r'<w:(?:numId|abstractNumId)\s+w:val="(\d+)"')
_NUM_ELEMENT = re.compile(r"<w:num\s")
_NUMBERING_SELF_CLOSED = re.compile(r"(<w:numbering\b[^>]*?)\s*/>")
_NUMBERING_REL = re.compile(r"<Relationship\b[^>]*/numbering\"[^>]*>")
_REL_TARGET = re.compile(r'Target="([^"]+)"')

# pPr children that follow numPr in schema order
_AFTER_NUM_PR = frozenset({
    "suppressLineNumbers",
    "pBdr",
    "shd",
    "tabs",
    "suppressAutoHyphens",
    "kinsoku",
    "wordWrap",
    "overflowPunct",
    "topLinePunct",
    "autoSpaceDE",
    "autoSpaceDN",
    "bidi",
    "adjustRightInd",
    "snapToGrid",
    "spacing",
    "ind",
    "contextualSpacing",
    "mirrorIndents",
    "suppressOverlap",
    "jc",
    "textDirection",
    "textAlignment",
    "textboxTightWrap",
    "outlineLvl",
    "divId",
    "cnfStyle",
    "rPr",
    "sectPr",
    "pPrChange",
})


class DocumentStructureError(RuntimeError):
    """The serialized document lacks a part or container the patch cannot do without."""


@dataclass(frozen=True)
class SerializedParagraph:
    """A <w:p> of document.xml outside any table; start/end are offsets into the XML."""

    index: int
    start: int
    end: int
    xml: str
    text: str

    def as_paragraph(self) -> Paragraph:
        return Paragraph(
            index=self.index,
            text=self.text.strip(),
            offset=self.start,
            length=self.end - self.start,
            pass_id=SERIALIZED_PASS,
        )


@dataclass
class PatchReport:
    num_id: int | None = None
    paragraphs_scanned: int = 0
    targets: int = 0
    numbered: int = 0
    upgraded: int = 0
    dropped: int = 0
    skipped_malformed: int = 0
    levels: Counter = field(default_factory=Counter)

    def as_dict(self) -> dict:
        return {
            "num_id": self.num_id,
            "paragraphs_scanned": self.paragraphs_scanned,
            "targets": self.targets,
            "numbered": self.numbered,
            "upgraded": self.upgraded,
            "dropped": self.dropped,
            "skipped_malformed": self.skipped_malformed,
            "levels": {str(k): v for k, v in sorted(self.levels.items())},
        }


# ---------------------------------------------------------------------------
# Serialized paragraphs
# ---------------------------------------------------------------------------

def _find_ranges(xml: str, open_re, close_re, what: str) -> list[tuple[int, int]]:
    events = [(m.start(), 1, m.end()) for m in open_re.finditer(xml)]
    events += [(m.start(), -1, m.end()) for m in close_re.finditer(xml)]
    events.sort()
    ranges = []
    stack = []
    for pos, kind, end in events:
        if kind == 1:
            stack.append(pos)
        elif stack:
            start = stack.pop()
            if not stack:
                ranges.append((start, end))
    if stack:
        logger.warning("Unbalanced %s markup: %d never closed", what, len(stack))
        # An unclosed region runs to the end of the document
        ranges.append((stack[0], len(xml)))
        ranges.sort()
    return ranges


def find_table_ranges(xml: str) -> list[tuple[int, int]]:
    """Outermost <w:tbl> regions as (start, end) offsets; nested tables fall inside them."""
    return _find_ranges(xml, _TABLE_OPEN, _TABLE_CLOSE, "table")


def find_text_box_ranges(xml: str) -> list[tuple[int, int]]:
    """Outermost <w:txbxContent> regions as (start, end) offsets."""
    return _find_ranges(xml, _TEXT_BOX_OPEN, _TEXT_BOX_CLOSE, "text box")


def _merge_ranges(ranges: list[tuple[int, int]]) -> list[tuple[int, int]]:
    merged = []
    for start, end in sorted(ranges):
        if merged and start < merged[-1][1]:
            merged[-1] = (merged[-1][0], max(merged[-1][1], end))
        else:
            merged.append((start, end))
    return merged


def _in_ranges(offset: int, starts: list[int], ranges: list[tuple[int, int]]) -> bool:
    i = bisect_right(starts, offset) - 1
    return i >= 0 and offset < ranges[i][1]


def paragraph_xml_text(p_xml: str) -> str:
    """
    Unescaped text of one paragraph. Run tabs and line breaks read as a space, page and
    column breaks as nothing, so the text lines up with the python-docx view.
    """
    parts = []
    for m in _RUN_CONTENT.finditer(p_xml):
        if m.group("text") is not None:
            parts.append(html.unescape(m.group("text")))
        elif not (m.group("br") and _NO_TEXT_BREAK.search(m.group("br"))):
            parts.append(" ")
    return "".join(parts)


def iter_serialized_paragraphs(xml: str, report: PatchReport | None = None) -> list[SerializedParagraph]:
    """
    Body paragraphs of document.xml in document order, table and text box paragraphs
    excluded. Raises DocumentStructureError when there is no <w:body>.
    """
    body = _BODY_OPEN.search(xml or "")
    if body is None:
        raise DocumentStructureError("document.xml has no <w:body> element")
    ranges = _merge_ranges(find_table_ranges(xml) + find_text_box_ranges(xml))
    starts = [r[0] for r in ranges]
    out = []
    for m in _PARAGRAPH.finditer(xml, body.end()):
        if _in_ranges(m.start(), starts, ranges):
            continue
        p_xml = m.group(0)
        # The paragraph hosting a text box ends the match early; leave it alone
        if _NESTED_PARAGRAPH.search(p_xml, 4):
            logger.warning("Skipping paragraph at offset %d: nested paragraph markup", m.start())
            if report is not None:
                report.skipped_malformed += 1
            continue
        out.append(SerializedParagraph(
            index=len(out),
            start=m.start(),
            end=m.end(),
            xml=p_xml,
            text=paragraph_xml_text(p_xml),
        ))
    return out


# ---------------------------------------------------------------------------
# Numbering ids and definitions
# ---------------------------------------------------------------------------

def collect_numbering_ids(*xml_parts: str | None) -> set[int]:
    """Every numId / abstractNumId used in the given parts (attributes and w:val references)."""
    ids = set()
    for xml in xml_parts:
        if not xml:
            continue
        ids.update(int(v) for v in _ID_ATTRS.findall(xml))
        ids.update(int(v) for v in _ID_VALUES.findall(xml))
    return ids


def allocate_numbering_id(existing_ids) -> int:
    """max(existing) + 100, or the default id for a document without numbering."""
    ids = [int(i) for i in existing_ids or ()]
    if not ids:
        return DEFAULT_NUMBERING_ID
    return max(max(ids), 0) + ID_SAFETY_OFFSET


def numbering_definition_xml(abstract_num_id: int) -> str:
    """Three-level 1. / (a) / (i) abstract definition."""
    levels = []
    for ilvl, num_fmt, lvl_text, left, restart in LEVEL_FORMATS:
        restart_xml = f'<w:lvlRestart w:val="{restart}"/>' if restart is not None else ""
        levels.append(
            f'<w:lvl w:ilvl="{ilvl}">'
            f'<w:start w:val="1"/>'
            f'<w:numFmt w:val="{num_fmt}"/>'
            f"{restart_xml}"
            f'<w:lvlText w:val="{lvl_text}"/>'
            f'<w:lvlJc w:val="left"/>'
            f'<w:pPr><w:ind w:left="{left}" w:hanging="{HANGING_TWIPS}"/></w:pPr>'
            f'<w:rPr><w:rFonts w:ascii="{NUMBER_FONT}" w:hAnsi="{NUMBER_FONT}" w:cs="{NUMBER_FONT}"/></w:rPr>'
            f"</w:lvl>"
        )
    return (
        f'<w:abstractNum w:abstractNumId="{abstract_num_id}">'
        f'<w:multiLevelType w:val="multilevel"/>'
        + "".join(levels)
        + "</w:abstractNum>"
    )


def num_instance_xml(num_id: int, abstract_num_id: int) -> str:
    return f'<w:num w:numId="{num_id}"><w:abstractNumId w:val="{abstract_num_id}"/></w:num>'


def numbering_template(num_id: int) -> str:
    """A complete numbering part holding only the new definition."""
    return (
        '<?xml version="1.0" encoding="UTF-8" standalone="yes"?>\n'
        f'<w:numbering xmlns:w="{W_NAMESPACE}">'
        f"{numbering_definition_xml(num_id)}"
        f"{num_instance_xml(num_id, num_id)}"
        "</w:numbering>"
    )


def add_numbering_definition(numbering_xml: str | None, num_id: int) -> str:
    """
    Add the definition (abstractNumId == numId == num_id) to an existing numbering part,
    or create the part. abstractNum goes before the first <w:num>, the num before
    <w:numIdMacAtCleanup> when present, else at the end.
    """
    if not numbering_xml:
        return numbering_template(num_id)
    xml = _NUMBERING_SELF_CLOSED.sub(r"\1></w:numbering>", numbering_xml, count=1)
    end = xml.rfind("</w:numbering>")
    if end < 0:
        raise DocumentStructureError("numbering part has no <w:numbering> root")
    abstract_xml = numbering_definition_xml(num_id)
    first_num = _NUM_ELEMENT.search(xml)
    insert_at = first_num.start() if first_num else end
    xml = xml[:insert_at] + abstract_xml + xml[insert_at:]
    cleanup = xml.find("<w:numIdMacAtCleanup")
    insert_at = cleanup if cleanup >= 0 else xml.rfind("</w:numbering>")
    return xml[:insert_at] + num_instance_xml(num_id, num_id) + xml[insert_at:]


def numbering_part_name(rels_xml: str | None) -> str:
    """Zip path of the numbering part the document relationships point at."""
    if rels_xml:
        rel = _NUMBERING_REL.search(rels_xml)
        if rel:
            target = _REL_TARGET.search(rel.group(0))
            if target:
                value = target.group(1)
                if value.startswith("/"):
                    return value.lstrip("/")
                return "word/" + value
    return DEFAULT_NUMBERING_PART


def ensure_numbering_relationship(rels_xml: str | None) -> str:
    if not rels_xml:
        rels_xml = (
            '<?xml version="1.0" encoding="UTF-8" standalone="yes"?>\n'
            '<Relationships xmlns="http://schemas.openxmlformats.org/package/2006/relationships">'
            "</Relationships>"
        )
    if _NUMBERING_REL.search(rels_xml):
        return rels_xml
    rel_id = NUMBERING_REL_ID
    while f'Id="{rel_id}"' in rels_xml:
        rel_id += "1"
    rel = f'<Relationship Id="{rel_id}" Type="{NUMBERING_REL_TYPE}" Target="numbering.xml"/>'
    logger.debug("Adding numbering relationship %s", rel_id)
    return rels_xml.replace("</Relationships>", rel + "</Relationships>", 1)


def ensure_numbering_content_type(ctypes_xml: str, part_name: str = DEFAULT_NUMBERING_PART) -> str:
    part = "/" + part_name.lstrip("/")
    if f'PartName="{part}"' in ctypes_xml:
        return ctypes_xml
    override = f'<Override PartName="{part}" ContentType="{NUMBERING_CONTENT_TYPE}"/>'
    logger.debug("Adding content type override for %s", part)
    return ctypes_xml.replace("</Types>", override + "</Types>", 1)


# ---------------------------------------------------------------------------
# Paragraph edits
# ---------------------------------------------------------------------------

def remove_existing_numbering(p_xml: str) -> str:
    return _NUM_PR.sub("", p_xml)


def strip_marker_from_paragraph_xml(p_xml: str, level: int) -> str:
    """
    Remove the leading manual marker for level from the paragraph's text runs. The marker
    may be split over several <w:t> elements; run properties are left untouched.
    Level 0 text is never changed here.
    """
    if level == LEVEL_MAIN:
        return p_xml
    runs = list(_TEXT_RUN.finditer(p_xml))
    if not runs:
        return p_xml
    texts = [html.unescape(m.group(2)) for m in runs]
    remaining = marker_prefix_length("".join(texts), level)
    if remaining <= 0:
        return p_xml
    pieces = []
    pos = 0
    for m, text in zip(runs, texts):
        if remaining <= 0:
            break
        cut = min(remaining, len(text))
        remaining -= cut
        pieces.append(p_xml[pos:m.start(2)])
        pieces.append(escape(text[cut:]))
        pos = m.end(2)
    pieces.append(p_xml[pos:])
    return "".join(pieces)


def inject_num_pr(p_xml: str, level: int, num_id: int) -> str:
    """Insert <w:numPr> in schema position inside pPr, creating pPr when absent."""
    num_pr = f'<w:numPr><w:ilvl w:val="{level}"/><w:numId w:val="{num_id}"/></w:numPr>'
    p_pr = _P_PR_OPEN.search(p_xml)
    if p_pr is not None:
        attrs = p_pr.group(1) or ""
        if p_pr.group(2):
            return p_xml[:p_pr.start()] + f"<w:pPr{attrs}>{num_pr}</w:pPr>" + p_xml[p_pr.end():]
        close = p_xml.find("</w:pPr>", p_pr.end())
        if close < 0:
            raise ValueError("unterminated <w:pPr>")
        insert_at = close
        for child in _CHILD_TAG.finditer(p_xml, p_pr.end(), close):
            if child.group(1) in _AFTER_NUM_PR:
                insert_at = child.start()
                break
        return p_xml[:insert_at] + num_pr + p_xml[insert_at:]
    open_end = p_xml.find(">") + 1
    return p_xml[:open_end] + f"<w:pPr>{num_pr}</w:pPr>" + p_xml[open_end:]


def apply_replacements(xml: str, replacements: list[tuple[int, int, str]]) -> str:
    """Apply non-overlapping (start, end, new) edits, last edit first, so offsets stay valid."""
    pieces = []
    tail = len(xml)
    for start, end, new in sorted(replacements, reverse=True):
        pieces.append(xml[end:tail])
        pieces.append(new)
        tail = start
    pieces.append(xml[:tail])
    return "".join(reversed(pieces))


# ---------------------------------------------------------------------------
# Matching
# ---------------------------------------------------------------------------

class _TargetIndex:
    """Targets bucketed by fingerprint head; each target is claimed at most once."""

    def __init__(self, targets: list[NumberingTarget]):
        self.targets = targets
        self.used = [False] * len(targets)
        self.buckets: dict[str, list[int]] = {}
        self.unusable = 0
        for pos, target in enumerate(targets):
            if len(target.fingerprint) < MIN_FINGERPRINT_CHARS:
                self.unusable += 1
                continue
            self.buckets.setdefault(target.fingerprint[:BUCKET_CHARS], []).append(pos)

    def claim(self, normalized: str, reverse: bool = False) -> NumberingTarget | None:
        """
        Earliest unused target that normalized starts with. With reverse, the earliest
        unused target that starts with normalized instead.
        """
        if len(normalized) < BUCKET_CHARS:
            return None
        if reverse and len(normalized) < MIN_REVERSE_MATCH_CHARS:
            return None
        for pos in self.buckets.get(normalized[:BUCKET_CHARS], ()):
            if self.used[pos]:
                continue
            fp = self.targets[pos].fingerprint
            if (fp.startswith(normalized) if reverse else normalized.startswith(fp)):
                self.used[pos] = True
                return self.targets[pos]
        return None

    def unclaimed(self) -> list[NumberingTarget]:
        return [t for t, used in zip(self.targets, self.used) if not used]


def apply_numbering(document_xml: str, targets: list[NumberingTarget], num_id: int) -> tuple[str, PatchReport]:
    """
    Number the serialized paragraphs that match targets. Returns the new document XML and
    a report; targets that match nothing are dropped, not errors.
    """
    report = PatchReport(num_id=num_id, targets=len(targets))
    paragraphs = iter_serialized_paragraphs(document_xml, report)
    report.paragraphs_scanned = len(paragraphs)
    index = _TargetIndex(targets)
    # Prefix matches only after every full match, so a short inserted line cannot take a body target
    normalized = [fingerprint(sp.text) for sp in paragraphs]
    matched: dict[int, NumberingTarget] = {}
    for reverse in (False, True):
        for sp, norm in zip(paragraphs, normalized):
            if not norm or sp.index in matched:
                continue
            target = index.claim(norm, reverse=reverse)
            if target is not None:
                matched[sp.index] = target
    replacements = []
    for sp in paragraphs:
        target = matched.get(sp.index)
        if target is None:
            continue
        level = target.level
        text_level = detect_level_from_text(sp.text)
        if text_level > level:
            logger.debug(
                "Serialized paragraph %d: level %d -> %d from text marker",
                sp.index, level, text_level,
            )
            level = text_level
            report.upgraded += 1
        new_xml = remove_existing_numbering(sp.xml)
        if text_level > LEVEL_MAIN:
            new_xml = strip_marker_from_paragraph_xml(new_xml, text_level)
        try:
            new_xml = inject_num_pr(new_xml, level, num_id)
        except ValueError as e:
            logger.warning("Skipping serialized paragraph %d: %s", sp.index, e)
            report.skipped_malformed += 1
            continue
        replacements.append((sp.start, sp.end, new_xml))
        report.numbered += 1
        report.levels[level] += 1
    for target in index.unclaimed():
        logger.debug("Unmatched target %d: %.40s", target.paragraph_index, target.fingerprint)
    report.dropped = report.targets - report.numbered
    logger.info(
        "Numbered %d of %d targets (numId=%s, %d dropped, %d upgraded, %d unusable fingerprints)",
        report.numbered, report.targets, num_id, report.dropped, report.upgraded, index.unusable,
    )
    return apply_replacements(document_xml, replacements), report


# ---------------------------------------------------------------------------
# Zip-level patch
# ---------------------------------------------------------------------------

def _read_source(source) -> bytes:
    if isinstance(source, (bytes, bytearray)):
        return bytes(source)
    if hasattr(source, "read"):
        if hasattr(source, "seek"):
            source.seek(0)
        return source.read()
    with open(source, "rb") as f:
        return f.read()


def patch_docx_numbering(source, targets: list[NumberingTarget]) -> tuple[bytes, PatchReport]:
    """
    source: DOCX bytes, a binary file-like object or a path. Returns the patched DOCX bytes.
    A document where nothing gets numbered is returned byte-for-byte unchanged.
    """
    data = _read_source(source)
    try:
        zin = zipfile.ZipFile(io.BytesIO(data))
    except zipfile.BadZipFile as e:
        raise DocumentStructureError(f"not a DOCX (zip) container: {e}") from e
    with zin:
        names = set(zin.namelist())
        if DOCUMENT_PART not in names:
            raise DocumentStructureError(f"{DOCUMENT_PART} not found in the package")
        document_xml = zin.read(DOCUMENT_PART).decode("utf-8")
        rels_xml = zin.read(RELS_PART).decode("utf-8") if RELS_PART in names else None
        numbering_part = numbering_part_name(rels_xml)
        numbering_xml = zin.read(numbering_part).decode("utf-8") if numbering_part in names else None
        ctypes_xml = zin.read(CONTENT_TYPES_PART).decode("utf-8") if CONTENT_TYPES_PART in names else None

        num_id = allocate_numbering_id(collect_numbering_ids(numbering_xml, document_xml))
        logger.info(
            "Patching numbering: %d targets, numId=%d (%s numbering part)",
            len(targets), num_id, "existing" if numbering_xml else "new",
        )
        new_document_xml, report = apply_numbering(document_xml, targets, num_id)
        if report.numbered == 0:
            return data, report

        replacements = {
            DOCUMENT_PART: new_document_xml,
            numbering_part: add_numbering_definition(numbering_xml, num_id),
            RELS_PART: ensure_numbering_relationship(rels_xml),
        }
        if ctypes_xml is not None:
            replacements[CONTENT_TYPES_PART] = ensure_numbering_content_type(ctypes_xml, numbering_part)

        out = io.BytesIO()
        with zipfile.ZipFile(out, "w") as zout:
            zout.comment = zin.comment
            for info in zin.infolist():
                new = replacements.get(info.filename)
                payload = new.encode("utf-8") if new is not None else zin.read(info.filename)
                zout.writestr(info, payload, compress_type=info.compress_type)
            for name, new in replacements.items():
                if name not in names:
                    zout.writestr(name, new.encode("utf-8"), compress_type=zipfile.ZIP_DEFLATED)
    return out.getvalue(), report
