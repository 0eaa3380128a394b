"""
Catalog row sources.

The catalog reads rows (mappings of column name to cell text) from a
RowSource. The production spreadsheet lives outside this repository;
what ships here is a JSON-file source and an in-memory source.
"""

import asyncio
import json
import logging
from pathlib import Path
from typing import List, Mapping, Optional, Protocol, Sequence, Tuple

logger = logging.getLogger(__name__)

Row = Mapping[str, str]


class RowSourceError(Exception):
    """The backing store could not be read."""


class RowSource(Protocol):
    async def fetch_rows(self, offset: int, limit: int) -> Tuple[List[Row], int]:
        """Return one page of rows and the total row count."""
        ...


class InMemoryRowSource:
    def __init__(self, rows: Sequence[Row]):
        self._rows = list(rows)

    async def fetch_rows(self, offset: int, limit: int) -> Tuple[List[Row], int]:
        return self._rows[offset:offset + limit], len(self._rows)


class JsonFileRowSource:
    """
    Rows from a JSON file holding a list of objects.

    The file is re-read when its mtime changes, so edits show up
    without a restart.
    """

    def __init__(self, path: Path):
        self.path = Path(path)
        self._rows: List[Row] = []
        self._mtime: Optional[float] = None

    def _load(self) -> List[Row]:
        try:
            mtime = self.path.stat().st_mtime
        except OSError as e:
            raise RowSourceError(f"Cannot read rows file {self.path}: {e}")

        if mtime == self._mtime:
            return self._rows

        try:
            with open(self.path, "r", encoding="utf-8") as f:
                data = json.load(f)
        except (OSError, ValueError) as e:
            raise RowSourceError(f"Invalid rows file {self.path}: {e}")

        if not isinstance(data, list):
            raise RowSourceError(f"Rows file {self.path} must hold a JSON list")

        self._rows = [
            {str(k): "" if v is None else str(v) for k, v in row.items()}
            for row in data
            if isinstance(row, dict)
        ]
        self._mtime = mtime
        logger.info(f"[Catalog] Loaded {len(self._rows)} rows from {self.path}")
        return self._rows

    async def fetch_rows(self, offset: int, limit: int) -> Tuple[List[Row], int]:
        rows = await asyncio.to_thread(self._load)
        return rows[offset:offset + limit], len(rows)
