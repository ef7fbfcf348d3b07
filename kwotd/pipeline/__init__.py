"""KWOTD Notifier — Pipeline Package.

The decision-making stages of a run:
  - dedupe: newline-insensitive comparison with the last payload
  - parser: JSON and RSS payload parsers
  - query_key: part-of-speech → dictionary tag mapping
  - resolver: dictionary lookup and best-match selection

The runner (kwotd.pipeline.runner) wires these to the fetcher and the
notifier and is imported from there directly.
"""

from kwotd.pipeline.dedupe import DedupeOutcome, Deduplicator, canonicalize
from kwotd.pipeline.parser import PatternQuoteParser, StructuredQuoteParser, build_parser
from kwotd.pipeline.query_key import build_query_key
from kwotd.pipeline.resolver import Resolution, Resolver, TapAction, TapTarget

__all__ = [
    "DedupeOutcome",
    "Deduplicator",
    "canonicalize",
    "PatternQuoteParser",
    "StructuredQuoteParser",
    "build_parser",
    "build_query_key",
    "Resolution",
    "Resolver",
    "TapAction",
    "TapTarget",
]
