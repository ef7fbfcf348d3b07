"""KWOTD Notifier — Feed Payload Parsers.

The feed is published in two shapes and a deployment reads exactly
one of them:
  - json: a JSON object with headword, part-of-speech and translation keys
  - rss:  plain text containing the three labelled lines

Both parsers trim every field and raise ParseError on bad input.
"""

from __future__ import annotations

import json
import re
from typing import Any, Protocol

from kwotd.config import FeedConfig
from kwotd.database.models import QuoteRecord
from kwotd.errors import ParseError, ParseErrorKind
from kwotd.utils.logger import get_logger

logger = get_logger(__name__)

KWOTD_RSS_PATTERN = re.compile(
    r"Klingon word: (.*)\nPart of speech: (.*)\nDefinition: (.*)\n"
)


class QuoteParser(Protocol):
    def parse(self, payload: str) -> QuoteRecord: ...


class StructuredQuoteParser:
    """Reads the three fields from a JSON object payload."""

    def __init__(
        self,
        headword_field: str = "kword",
        part_of_speech_field: str = "type",
        translation_field: str = "eword",
    ) -> None:
        self.fields = (headword_field, part_of_speech_field, translation_field)

    def parse(self, payload: str) -> QuoteRecord:
        """Parse a JSON payload into a QuoteRecord.

        Raises:
            ParseError: MALFORMED if the payload is not a JSON object,
                MISSING_FIELD if a required key is absent or null.
        """
        try:
            data: Any = json.loads(payload)
        except json.JSONDecodeError as e:
            raise ParseError(ParseErrorKind.MALFORMED, f"invalid JSON: {e}") from e
        if not isinstance(data, dict):
            raise ParseError(
                ParseErrorKind.MALFORMED,
                f"expected a JSON object, got {type(data).__name__}",
            )

        values = []
        for name in self.fields:
            value = data.get(name)
            if value is None:
                raise ParseError(ParseErrorKind.MISSING_FIELD, f"no '{name}' in payload")
            values.append(str(value).strip())

        headword, part_of_speech, translation = values
        logger.debug("Parsed JSON quote: %s (%s)", headword, part_of_speech)
        return QuoteRecord(headword, part_of_speech, translation)


class PatternQuoteParser:
    """Extracts the three labelled lines from a text payload."""

    def parse(self, payload: str) -> QuoteRecord:
        """Parse a text payload into a QuoteRecord.

        Raises:
            ParseError: NO_MATCH if the labelled lines are not present.
        """
        m = KWOTD_RSS_PATTERN.search(payload)
        if m is None:
            raise ParseError(
                ParseErrorKind.NO_MATCH,
                f"labelled lines not found in payload: {payload[:200]!r}",
            )
        headword, part_of_speech, translation = (g.strip() for g in m.groups())
        logger.debug("Parsed RSS quote: %s (%s)", headword, part_of_speech)
        return QuoteRecord(headword, part_of_speech, translation)


def build_parser(config: FeedConfig) -> QuoteParser:
    """Pick the parser for the configured feed format."""
    if config.format == "json":
        return StructuredQuoteParser(
            headword_field=config.headword_field,
            part_of_speech_field=config.part_of_speech_field,
            translation_field=config.translation_field,
        )
    return PatternQuoteParser()
