"""KWOTD Notifier — Dictionary Import.

Seeds the `entries` table from a YAML (or JSON) file holding a list of
entries:

    - entry_name: Qapla'
      part_of_speech: excl
      definition: success!
    - entry_name: Qo'noS
      part_of_speech: n:name
      definition: Kronos, Klingon homeworld

`id` is optional; without it rows are numbered in file order.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any, Optional

import yaml

from kwotd.database import queries
from kwotd.database.db import Database
from kwotd.database.models import ReferenceEntry
from kwotd.utils.logger import get_logger

logger = get_logger(__name__)

REQUIRED_FIELDS = ("entry_name", "definition")


def _entry_from_item(index: int, item: Any) -> ReferenceEntry:
    if not isinstance(item, dict):
        raise ValueError(f"Dictionary item {index} is not a mapping")
    missing = [f for f in REQUIRED_FIELDS if not item.get(f)]
    if missing:
        raise ValueError(f"Dictionary item {index} is missing: {', '.join(missing)}")
    entry_id = item.get("id")
    if entry_id is not None and not isinstance(entry_id, int):
        raise ValueError(f"Dictionary item {index} has a non-integer id: {entry_id!r}")
    return ReferenceEntry.build(
        id=entry_id,
        headword=str(item["entry_name"]),
        part_of_speech=str(item.get("part_of_speech") or ""),
        definition=str(item["definition"]),
    )


def load_dictionary_file(path: Path) -> list[ReferenceEntry]:
    """Read and validate a dictionary file.

    Args:
        path: YAML or JSON file with a list of entries.

    Returns:
        The entries, in file order.

    Raises:
        FileNotFoundError: If the file does not exist.
        ValueError: If the file is not a list of valid entries.
    """
    if not path.exists():
        raise FileNotFoundError(f"Dictionary file not found: {path}")
    with open(path, "r", encoding="utf-8") as f:
        try:
            data = yaml.safe_load(f)
        except yaml.YAMLError as e:
            raise ValueError(f"Invalid dictionary file {path}: {e}") from e

    if not isinstance(data, list):
        raise ValueError(f"Dictionary file {path} must contain a list of entries")
    return [_entry_from_item(i, item) for i, item in enumerate(data)]


async def import_dictionary(db: Database, path: Path, replace: bool = False) -> int:
    """Load a dictionary file into the store.

    Args:
        db: Active database instance.
        path: Dictionary file.
        replace: Delete existing entries first.

    Returns:
        Number of entries imported.
    """
    entries = load_dictionary_file(path)
    if replace:
        removed = await queries.clear_entries(db)
        logger.info("Removed %d existing dictionary entries", removed)
    count = await queries.insert_entries(db, entries)
    logger.info("Imported %d dictionary entries from %s", count, path)
    return count


async def seed_if_empty(db: Database, path: Optional[Path]) -> int:
    """Import `path` when the dictionary is empty; warn if it stays empty.

    Returns:
        Number of entries in the store afterwards.
    """
    count = await queries.count_entries(db)
    if count == 0 and path is not None:
        if path.exists():
            await import_dictionary(db, path)
            count = await queries.count_entries(db)
        else:
            logger.warning("Dictionary file %s not found, skipping import", path)
    if count == 0:
        logger.warning(
            "Dictionary is empty: words will be posted without entry links. "
            "Load one with --import-dictionary FILE"
        )
    else:
        logger.info("Dictionary ready: %d entries", count)
    return count
