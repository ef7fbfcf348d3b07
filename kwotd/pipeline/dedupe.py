"""KWOTD Notifier — Payload Deduplication.

Compares a freshly fetched payload with the one seen last time.
Payloads are compared and stored with every line separator removed,
since the same content can come back with different line breaks.
"""

from __future__ import annotations

import re
from enum import Enum
from typing import Optional, Protocol

from kwotd.utils.logger import get_logger

logger = get_logger(__name__)

_LINE_SEPARATORS = re.compile(r"[\r\n\u2028\u2029]")


class StateStore(Protocol):
    """Persisted state the deduplicator reads and writes."""

    async def get_canonical_payload(self) -> Optional[str]: ...

    async def set_canonical_payload(self, value: str) -> None: ...


class DedupeOutcome(str, Enum):
    PROCEED = "proceed"
    DUPLICATE = "duplicate"


def canonicalize(payload: str) -> str:
    """Strip all line-separator characters from a payload."""
    return _LINE_SEPARATORS.sub("", payload)


class Deduplicator:
    """Decides whether a payload is new, and remembers it if so."""

    def __init__(self, store: StateStore) -> None:
        self.store = store

    async def check(self, payload: str, force: bool = False) -> DedupeOutcome:
        """Compare `payload` with the stored one and persist it when new.

        A forced run skips the comparison (the stored value is not even
        read) but still stores the new payload.

        Args:
            payload: Raw payload from the fetcher.
            force: True for a user-initiated one-off run.

        Returns:
            DUPLICATE if unforced and unchanged, PROCEED otherwise.
        """
        canonical = canonicalize(payload)

        if not force:
            stored = await self.store.get_canonical_payload()
            if stored is not None and stored == canonical:
                logger.info("No new word-of-the-day data")
                return DedupeOutcome.DUPLICATE

        logger.info("Saving new word-of-the-day data (%d chars)", len(canonical))
        await self.store.set_canonical_payload(canonical)
        return DedupeOutcome.PROCEED
