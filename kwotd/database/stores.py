"""KWOTD Notifier — SQLite-backed Stores.

Adapters that give the pipeline its two storage collaborators:
  - SqliteStateStore: the last-seen canonical payload
  - SqliteReferenceStore: keyed lookups against the dictionary

Both translate aiosqlite failures into StoreQueryError so the pipeline
only ever sees its own error types.
"""

from __future__ import annotations

from typing import Optional

import aiosqlite

from kwotd.database import queries
from kwotd.database.db import Database
from kwotd.database.models import ReferenceEntry, split_part_of_speech
from kwotd.errors import StoreQueryError
from kwotd.utils.logger import get_logger

logger = get_logger(__name__)

# Key for storing the previously retrieved feed data.
KEY_KWOTD_DATA = "kwotd_data"

# Query tags that the candidate's attributes must also carry.
_REQUIRED_ATTRIBUTES = ("name", "num", "pro")

# Question words that may stand in for the nouns they ask about.
_NOUN_STANDIN_WORDS = ("nuq", "'Iv")


class SqliteStateStore:
    """Persists the canonical last-seen payload under a fixed key."""

    def __init__(self, db: Database, key: str = KEY_KWOTD_DATA) -> None:
        self.db = db
        self.key = key

    async def get_canonical_payload(self) -> Optional[str]:
        try:
            return await queries.get_state_value(self.db, self.key)
        except aiosqlite.Error as e:
            raise StoreQueryError(f"Failed to read sync state: {e}") from e

    async def set_canonical_payload(self, value: str) -> None:
        try:
            await queries.set_state_value(self.db, self.key, value)
        except aiosqlite.Error as e:
            raise StoreQueryError(f"Failed to write sync state: {e}") from e


def entry_satisfies(query_part_of_speech: str, candidate: ReferenceEntry) -> bool:
    """Decide whether a same-named candidate satisfies a query's tags.

    With no part of speech in the query, any entry with the right name
    matches. Otherwise the base parts of speech must agree, except that
    a pronoun may answer a verb query, and the question words {nuq} and
    {'Iv} or an epithet may answer a noun query. Query attributes among
    name/num/pro must also be present on the candidate.

    Args:
        query_part_of_speech: Everything after the name in the query key,
            e.g. "n:name" for "Qo'noS:n:name".
        candidate: An entry whose name already matched.

    Returns:
        True if the candidate belongs in the lookup result.
    """
    if not query_part_of_speech:
        return True

    # Query keys join tags with ":", the store joins attributes with ",".
    query_base, _, query_tags = query_part_of_speech.partition(":")
    query_attrs = [t for t in query_tags.replace(",", ":").split(":") if t]
    cand_base, cand_attrs = split_part_of_speech(candidate.part_of_speech)

    if query_base != cand_base:
        pronoun_as_verb = query_base == "v" and cand_base == "n" and "pro" in cand_attrs
        standin_as_noun = query_base == "n" and (
            candidate.headword in _NOUN_STANDIN_WORDS or "epithet" in cand_attrs
        )
        if not (pronoun_as_verb or standin_as_noun):
            return False

    for attr in query_attrs:
        if attr in _REQUIRED_ATTRIBUTES and attr not in cand_attrs:
            return False
    return True


class SqliteReferenceStore:
    """Answers keyed dictionary queries from the entries table."""

    def __init__(self, db: Database) -> None:
        self.db = db

    async def lookup(self, key: str) -> list[ReferenceEntry]:
        """Return the entries matching a query key, in store order.

        Args:
            key: Query key such as "Qapla':excl" or "tlhIngan:n".

        Raises:
            StoreQueryError: If the database cannot be queried.
        """
        entry_name, _, part_of_speech = key.partition(":")
        try:
            rows = await queries.get_entries_by_name(self.db, entry_name)
        except aiosqlite.Error as e:
            raise StoreQueryError(f"Lookup failed for {key!r}: {e}") from e

        candidates = [ReferenceEntry.from_db_row(r) for r in rows]
        matches = [c for c in candidates if entry_satisfies(part_of_speech, c)]
        logger.debug(
            "lookup(%s): %d by name, %d after tag filter",
            key, len(candidates), len(matches),
        )
        return matches

    async def fetch_by_id(self, entry_id: int) -> ReferenceEntry:
        """Return the entry with the given id.

        Raises:
            StoreQueryError: If the entry does not exist or the query fails.
        """
        try:
            row = await queries.get_entry_by_id(self.db, entry_id)
        except aiosqlite.Error as e:
            raise StoreQueryError(f"Fetch failed for entry {entry_id}: {e}") from e
        if row is None:
            raise StoreQueryError(f"No entry with id {entry_id}")
        return ReferenceEntry.from_db_row(row)
