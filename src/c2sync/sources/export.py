"""Readers over a directory of Component2020 table exports.

Each source entity is exported as ``<source_entity>.jsonl`` (one JSON object
per line) or ``<source_entity>.json`` (a JSON array). Column names are
normalized to snake_case (``UnitID`` becomes ``unit_id``) and the key column
is exposed as a string under ``id``.
"""

import json
import re
from collections.abc import AsyncIterator, Iterator
from pathlib import Path
from typing import Any

import structlog

from c2sync.sources.base import ConnectionInfo, RawRow
from c2sync.utils.exceptions import ConnectivityError
from c2sync.utils.ordering import natural_key

logger = structlog.get_logger(__name__)

_WORD_BOUNDARY = re.compile(r"(?<=[a-z0-9])(?=[A-Z])|(?<=[A-Z])(?=[A-Z][a-z])")


def column_to_field(column: str) -> str:
    """Convert an Access column name to a snake_case field name."""
    return _WORD_BOUNDARY.sub("_", column.strip()).lower()


def normalize_row(raw: dict[str, Any]) -> RawRow:
    """Normalize column names and the key column of an exported row."""
    row = {column_to_field(k): v for k, v in raw.items()}
    if row.get("id") is not None:
        row["id"] = str(row["id"]).strip()
    return row


def find_export(source_path: str, source_entity: str) -> Path:
    """Locate the export file for a source entity.

    Raises:
        ConnectivityError: If no export exists for the entity.
    """
    base = Path(source_path)
    for suffix in (".jsonl", ".json"):
        candidate = base / f"{source_entity}{suffix}"
        if candidate.is_file():
            return candidate
    raise ConnectivityError(f"No export found for {source_entity} in {source_path}")


def _iter_file(path: Path) -> Iterator[Any]:
    if path.suffix == ".jsonl":
        with path.open(encoding="utf-8") as fh:
            for line_no, line in enumerate(fh, start=1):
                line = line.strip()
                if not line:
                    continue
                try:
                    yield json.loads(line)
                except json.JSONDecodeError as e:
                    raise ConnectivityError(f"Malformed export {path.name} line {line_no}: {e}") from e
    else:
        try:
            data = json.loads(path.read_text(encoding="utf-8"))
        except json.JSONDecodeError as e:
            raise ConnectivityError(f"Malformed export {path.name}: {e}") from e
        if not isinstance(data, list):
            raise ConnectivityError(f"Export {path.name} must contain a JSON array")
        yield from data


class ExportSnapshotReader:
    """Snapshot reader returning rows in export order."""

    async def read_snapshot(self, connection: ConnectionInfo, source_entity: str) -> AsyncIterator[RawRow]:
        path = find_export(connection.source_path, source_entity)
        logger.debug("Reading snapshot", source_entity=source_entity, path=str(path))
        for raw in _iter_file(path):
            yield normalize_row(raw)


class ExportDeltaReader:
    """Delta reader returning rows after a cursor, sorted by key."""

    async def read_delta(
        self,
        connection: ConnectionInfo,
        source_entity: str,
        last_key: str | None,
    ) -> AsyncIterator[RawRow]:
        path = find_export(connection.source_path, source_entity)
        logger.debug(
            "Reading delta",
            source_entity=source_entity,
            path=str(path),
            last_key=last_key,
        )

        rows = [normalize_row(raw) for raw in _iter_file(path)]
        if last_key is not None:
            threshold = natural_key(last_key)
            rows = [r for r in rows if natural_key(r.get("id")) > threshold]
        rows.sort(key=lambda r: natural_key(r.get("id")))

        for row in rows:
            yield row
