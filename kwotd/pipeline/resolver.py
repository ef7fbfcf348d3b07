"""KWOTD Notifier — Dictionary Resolver.

Looks the quote up in the dictionary and picks the entry the
notification will show, together with what tapping it should do.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Optional, Protocol

from kwotd.database.models import ReferenceEntry
from kwotd.utils.logger import get_logger

logger = get_logger(__name__)


class ReferenceStore(Protocol):
    """Read-only dictionary queries."""

    async def lookup(self, key: str) -> list[ReferenceEntry]: ...

    async def fetch_by_id(self, entry_id: int) -> ReferenceEntry: ...


class TapAction(str, Enum):
    OPEN_ENTRY = "open_entry"
    SEARCH = "search"


@dataclass(frozen=True)
class TapTarget:
    """What happens when the notification is tapped.

    Attributes:
        action: Open a dictionary entry, or run a search.
        entry_id: Entry to open (OPEN_ENTRY only).
        query: Raw headword to search for (SEARCH only).
    """

    action: TapAction
    entry_id: Optional[int] = None
    query: Optional[str] = None

    @classmethod
    def open_entry(cls, entry_id: int) -> "TapTarget":
        return cls(TapAction.OPEN_ENTRY, entry_id=entry_id)

    @classmethod
    def search(cls, query: str) -> "TapTarget":
        return cls(TapAction.SEARCH, query=query)


@dataclass(frozen=True)
class Resolution:
    entry: ReferenceEntry
    tap_target: TapTarget


def select_best_match(
    candidates: list[ReferenceEntry], translation: str
) -> ReferenceEntry:
    """Pick the candidate whose definition equals the feed translation.

    Scans in store order and returns the first exact match, or the first
    candidate when nothing matches. Exact string comparison is the
    current tie-break; an edit-distance comparison would tolerate small
    wording differences between the feed and the dictionary.

    Args:
        candidates: Non-empty lookup result, in store order.
        translation: Definition published by the feed.

    Returns:
        The selected entry.
    """
    for candidate in candidates:
        if candidate.definition == translation:
            return candidate
    return candidates[0]


class Resolver:
    """Resolves a query key against the dictionary."""

    def __init__(self, store: ReferenceStore) -> None:
        self.store = store

    async def resolve(
        self, query_key: str, headword: str, translation: str
    ) -> Resolution:
        """Find the entry for a quote, or synthesize one.

        Args:
            query_key: Headword plus dictionary tags, e.g. "Qapla':excl".
            headword: The bare headword, used for the search fallback.
            translation: The feed's definition.

        Returns:
            The selected entry and its tap target. When the dictionary has
            no match, the entry is synthesized from the query key and
            translation and tapping searches for the headword.

        Raises:
            StoreQueryError: If the dictionary cannot be queried.
        """
        results = await self.store.lookup(query_key)

        if not results:
            logger.info("No dictionary entry for %s; falling back to search", query_key)
            return Resolution(
                entry=ReferenceEntry.synthesize(query_key, translation),
                tap_target=TapTarget.search(headword),
            )

        if len(results) == 1:
            entry = results[0]
        else:
            entry = select_best_match(results, translation)
            logger.info(
                "%d entries for %s; selected id=%s (%s)",
                len(results), query_key, entry.id, entry.definition,
            )

        return Resolution(entry=entry, tap_target=TapTarget.open_entry(entry.id))
