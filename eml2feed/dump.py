"""
JSON dump and restore of built entries.

Allows two-phase runs: build entries from messages with --dump and --dry,
then later load the dump and synchronize it with the database.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Iterable, List, Union

from pydantic import TypeAdapter, ValidationError

from .errors import DumpError
from .models import Entry

logger = logging.getLogger(__name__)

_ENTRY_LIST = TypeAdapter(List[Entry])


def dump_entries(entries: Iterable[Entry], path: Union[str, Path]) -> int:
    """
    Write entries to path as a JSON array.

    Returns:
        Number of entries written

    Raises:
        DumpError: If the file cannot be written
    """
    entries = list(entries)
    data = _ENTRY_LIST.dump_json(entries, indent=2)
    try:
        Path(path).write_bytes(data)
    except OSError as e:
        raise DumpError(f"cannot write JSON to file: {e}") from e
    logger.info(f"Dumped {len(entries)} entries to {path}")
    return len(entries)


def load_entries(path: Union[str, Path]) -> List[Entry]:
    """
    Read entries previously written by dump_entries.

    Raises:
        DumpError: If the file cannot be read or does not hold an entry list
    """
    try:
        data = Path(path).read_bytes()
    except OSError as e:
        raise DumpError(f"cannot read message file: {e}") from e

    try:
        return _ENTRY_LIST.validate_json(data)
    except ValidationError as e:
        raise DumpError(f"cannot unmarshal JSON: {e}") from e
