"""
External per-paragraph classification overrides.

An override map is keyed by paragraph index, and an index only means something within
the extraction pass that produced it. Every map therefore records its pass; applying it
to paragraphs of another pass is refused, and moving it to another pass goes through
content fingerprints, never raw index equality.
"""

import logging
from dataclasses import dataclass, field

from witness_format.utils.marker_stripper import fingerprint
from witness_format.utils.paragraph_types import (
    PLAIN_PASS,
    Paragraph,
    is_numbering_level,
    is_paragraph_type,
)

logger = logging.getLogger(__name__)

# Shortest fingerprint trusted when re-keying an override onto another pass
MIN_REALIGN_CHARS = 15


class IndexSpaceMismatchError(ValueError):
    """An override map was applied to paragraphs from a different extraction pass."""


@dataclass
class ClassificationOverride:
    """paragraph index -> type and/or level, valid only for paragraphs of pass_id."""

    pass_id: str = PLAIN_PASS
    types: dict[int, str] = field(default_factory=dict)
    levels: dict[int, int] = field(default_factory=dict)

    def __bool__(self) -> bool:
        return bool(self.types or self.levels)

    def type_for(self, index: int) -> str | None:
        return self.types.get(index)

    def level_for(self, index: int) -> int | None:
        return self.levels.get(index)

    def check_pass(self, paragraphs: list[Paragraph]) -> None:
        """Raise IndexSpaceMismatchError if any paragraph belongs to another pass."""
        for para in paragraphs:
            if para.pass_id != self.pass_id:
                raise IndexSpaceMismatchError(
                    f"Override for pass '{self.pass_id}' applied to paragraph {para.index} "
                    f"of pass '{para.pass_id}'; realign it first."
                )

    def merge(self, other: "ClassificationOverride") -> "ClassificationOverride":
        """Entries from other win. Both maps must belong to the same pass."""
        if other.pass_id != self.pass_id:
            raise IndexSpaceMismatchError(
                f"Cannot merge override for pass '{other.pass_id}' into pass '{self.pass_id}'."
            )
        return ClassificationOverride(
            pass_id=self.pass_id,
            types={**self.types, **other.types},
            levels={**self.levels, **other.levels},
        )


def override_from_items(items, pass_id: str = PLAIN_PASS, valid_indices=None) -> ClassificationOverride:
    """
    Build an override from loosely-typed items such as {"i": 3, "type": "body", "level": 1}.
    Entries with an unknown type, an out-of-range level or an index outside valid_indices
    are dropped, so a malformed external answer degrades to "no override" for those entries.
    """
    types = {}
    levels = {}
    dropped = 0
    for item in items or []:
        if not isinstance(item, dict):
            dropped += 1
            continue
        raw_index = item.get("i", item.get("index"))
        try:
            index = int(raw_index)
        except (TypeError, ValueError):
            dropped += 1
            continue
        if valid_indices is not None and index not in valid_indices:
            dropped += 1
            continue
        ptype = item.get("type")
        if ptype is not None:
            if is_paragraph_type(ptype):
                types[index] = ptype
            else:
                dropped += 1
        level = item.get("level")
        if level is not None:
            try:
                level = int(level)
            except (TypeError, ValueError):
                level = None
            if is_numbering_level(level):
                levels[index] = level
            else:
                dropped += 1
    if dropped:
        logger.debug("Dropped %d malformed override entries", dropped)
    return ClassificationOverride(pass_id=pass_id, types=types, levels=levels)


def realign_override(
    override: ClassificationOverride,
    source: list[Paragraph],
    target: list[Paragraph],
) -> ClassificationOverride:
    """
    Re-key override (built over source) onto the indices of target by fingerprint.
    Source paragraphs are consumed in order and each target paragraph is claimed at most
    once; entries whose paragraph cannot be found are dropped.
    """
    override.check_pass(source)
    target_pass = target[0].pass_id if target else override.pass_id
    buckets: dict[str, list[int]] = {}
    for para in target:
        fp = fingerprint(para.text)
        if len(fp) >= MIN_REALIGN_CHARS:
            buckets.setdefault(fp, []).append(para.index)
    claimed = set()
    types = {}
    levels = {}
    for para in source:
        if para.index not in override.types and para.index not in override.levels:
            continue
        fp = fingerprint(para.text)
        if len(fp) < MIN_REALIGN_CHARS:
            continue
        candidates = [i for i in buckets.get(fp, []) if i not in claimed]
        if not candidates:
            continue
        new_index = candidates[0]
        claimed.add(new_index)
        if para.index in override.types:
            types[new_index] = override.types[para.index]
        if para.index in override.levels:
            levels[new_index] = override.levels[para.index]
    logger.info(
        "Realigned override %s -> %s: %d of %d entries kept",
        override.pass_id, target_pass, len(claimed),
        len(set(override.types) | set(override.levels)),
    )
    return ClassificationOverride(pass_id=target_pass, types=types, levels=levels)
