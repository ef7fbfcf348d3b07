"""KWOTD Notifier — Error Types.

Every failure a run can hit is one of these. The pipeline catches them
at the top level, logs them, and turns them into a rescheduled run.
"""

from __future__ import annotations

from enum import Enum


class KwotdError(Exception):
    """Base class for all pipeline failures."""


class NetworkError(KwotdError):
    """The feed could not be connected to or read."""

    def __init__(self, url: str, reason: str) -> None:
        self.url = url
        self.reason = reason
        super().__init__(f"Failed to read {url}: {reason}")


class ParseErrorKind(str, Enum):
    """Why a payload could not be turned into a QuoteRecord."""

    MISSING_FIELD = "missing_field"
    NO_MATCH = "no_match"
    MALFORMED = "malformed"


class ParseError(KwotdError):
    """The fetched payload did not contain a usable record."""

    def __init__(self, kind: ParseErrorKind, detail: str) -> None:
        self.kind = kind
        self.detail = detail
        super().__init__(f"{kind.value}: {detail}")


class StoreQueryError(KwotdError):
    """The reference or state store could not be queried."""


class NotifyError(KwotdError):
    """The notification surface rejected or failed the post."""
