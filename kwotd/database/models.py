"""KWOTD Notifier — Data Models.

Dataclasses for the records that flow through a run: the quote parsed
from the feed and the dictionary entry it resolves to.

Dictionary entries carry their part of speech in the store's compact
form "base[:attr,attr...]" (e.g. "v", "n:name", "n:pro,inhps"). The
pre-rendered name and definition markup is derived from it here, the
same way the dictionary displays entries.
"""

from __future__ import annotations

import html
import re
from dataclasses import dataclass, field
from typing import Any, Optional

# ── Part of speech ────────────────────────────────────────
# Display labels for base parts of speech. "sen" (sentences) is
# deliberately absent: sentences are shown without a label.
_BASE_POS_LABELS = {
    "n": "n",
    "v": "v",
    "adv": "adv",
    "conj": "conj",
    "ques": "ques",
    "excl": "excl",
}
# Noun subtypes override the "n" label.
_NOUN_TYPE_LABELS = {"name": "name", "num": "num", "pro": "pro"}
# Usage attributes shown after the entry name, in this order.
_USAGE_ATTRIBUTES = (("archaic", "archaic"), ("reg", "regional"), ("slang", "slang"))
# Entries not (or not fully) attested in canon.
_UNCERTAIN_ATTRIBUTES = frozenset({"hyp", "extcan"})
_ATTRIBUTE_SEPARATOR = ", "

# {word} or {word:pos} links inside definitions.
_LINK_PATTERN = re.compile(r"\{([^{}]+)\}")


def split_part_of_speech(part_of_speech: str) -> tuple[str, list[str]]:
    """Split "base:attr1,attr2" into ("base", ["attr1", "attr2"]).

    Args:
        part_of_speech: Part of speech in store form. May be empty.

    Returns:
        Tuple of base part of speech and its attribute list.
    """
    base, _, attrs = part_of_speech.partition(":")
    attributes = [a for a in attrs.split(",") if a] if attrs else []
    return base, attributes


def _specific_label(part_of_speech: str) -> str:
    """Label shown before a definition, or "" when none applies."""
    base, attributes = split_part_of_speech(part_of_speech)
    label = _BASE_POS_LABELS.get(base, "")
    if base == "n":
        for attr in attributes:
            if attr in _NOUN_TYPE_LABELS:
                return _NOUN_TYPE_LABELS[attr]
    return label


def _is_name(part_of_speech: str) -> bool:
    base, attributes = split_part_of_speech(part_of_speech)
    return base == "n" and "name" in attributes


def format_entry_name(headword: str, part_of_speech: str) -> str:
    """Render the entry name markup with its usage attributes.

    Archaic, regional and slang entries, and names, get their labels in
    a small parenthesis after the name. Hypothetical and extended-canon
    entries are prefixed with a small superscript "?".

    Args:
        headword: The entry name.
        part_of_speech: Part of speech in store form.

    Returns:
        Markup such as "Qo'noS <small>(<i>name</i>)</small>" or
        "<sup><small>?</small></sup>Hol <small>(<i>slang</i>)</small>".
    """
    _, attributes = split_part_of_speech(part_of_speech)
    labels = [label for attr, label in _USAGE_ATTRIBUTES if attr in attributes]
    if _is_name(part_of_speech):
        labels.append("name")

    name = headword
    if labels:
        marked = _ATTRIBUTE_SEPARATOR.join(f"<i>{label}</i>" for label in labels)
        name = f"{name} <small>({marked})</small>"
    if _UNCERTAIN_ATTRIBUTES.intersection(attributes):
        name = f"<sup><small>?</small></sup>{name}"
    return name


def format_definition(definition: str, part_of_speech: str) -> str:
    """Render the definition markup, prefixed by its part-of-speech label.

    Names and sentences carry no label. Linked entries written as
    {word:pos} are replaced by the bold word.

    Args:
        definition: The plain definition text.
        part_of_speech: Part of speech in store form.

    Returns:
        Markup such as "<i>v.</i> fly".
    """
    linked = _LINK_PATTERN.sub(
        lambda m: f"<b>{m.group(1).split(':', 1)[0]}</b>", definition
    )
    label = "" if _is_name(part_of_speech) else _specific_label(part_of_speech)
    if not label:
        return linked
    return f"<i>{label}.</i> {linked}"


# ═══════════════════════════════════════════════════════════
# Pipeline Models
# ═══════════════════════════════════════════════════════════


@dataclass(frozen=True)
class QuoteRecord:
    """One word-of-the-day record as published by the feed.

    Attributes:
        headword: The Klingon word.
        part_of_speech: Feed part-of-speech tag (e.g. "verb", "excl").
        translation: The English definition given by the feed.
    """

    headword: str
    part_of_speech: str
    translation: str


@dataclass(frozen=True)
class ReferenceEntry:
    """A dictionary entry, either read from the store or synthesized.

    Synthesized entries (feed words missing from the dictionary) have
    `id` set to None.

    Attributes:
        id: Store row id, or None for a synthesized entry.
        headword: Entry name.
        part_of_speech: Part of speech in store form.
        definition: Plain English definition, compared against the feed.
        formatted_name: Pre-rendered markup for the entry name.
        formatted_definition: Pre-rendered markup for the definition.
    """

    id: Optional[int]
    headword: str
    part_of_speech: str
    definition: str
    formatted_name: str = field(default="")
    formatted_definition: str = field(default="")

    @classmethod
    def build(
        cls,
        id: Optional[int],
        headword: str,
        part_of_speech: str,
        definition: str,
    ) -> "ReferenceEntry":
        """Construct an entry with its markup rendered."""
        return cls(
            id=id,
            headword=headword,
            part_of_speech=part_of_speech,
            definition=definition,
            formatted_name=format_entry_name(headword, part_of_speech),
            formatted_definition=format_definition(definition, part_of_speech),
        )

    @classmethod
    def from_db_row(cls, row: dict[str, Any]) -> "ReferenceEntry":
        """Construct an entry from an `entries` table row."""
        return cls.build(
            id=row["id"],
            headword=row["entry_name"],
            part_of_speech=row.get("part_of_speech") or "",
            definition=row.get("definition") or "",
        )

    @classmethod
    def synthesize(cls, query_key: str, translation: str) -> "ReferenceEntry":
        """Build a stand-in entry for a word the dictionary does not have.

        The query key is split at its first colon: the head is the
        entry name, the rest is the part of speech in store form.

        Args:
            query_key: Lookup key such as "Qapla':excl".
            translation: Definition to display, taken from the feed.

        Returns:
            A ReferenceEntry with id None.
        """
        headword, _, part_of_speech = query_key.partition(":")
        # Feed text is plain, not markup.
        return cls(
            id=None,
            headword=headword,
            part_of_speech=part_of_speech,
            definition=translation,
            formatted_name=format_entry_name(
                html.escape(headword, quote=False), part_of_speech,
            ),
            formatted_definition=format_definition(
                html.escape(translation, quote=False), part_of_speech,
            ),
        )

    def to_db_dict(self) -> dict[str, Any]:
        """Convert to a dictionary for SQLite insertion."""
        return {
            "id": self.id,
            "entry_name": self.headword,
            "part_of_speech": self.part_of_speech,
            "definition": self.definition,
        }
