"""Durable store of permission grants keyed by (tool, type, scope)."""

from __future__ import annotations

import json
import logging
import os
import tempfile
from datetime import datetime, timezone
from enum import Enum
from pathlib import Path

from pydantic import BaseModel, TypeAdapter, ValidationError

from forq.core.errors import PermissionStoreError

_log = logging.getLogger(__name__)


class PermissionType(str, Enum):
    FILE_SYSTEM = "FileSystem"
    SHELL_COMMAND = "ShellCommand"
    EMBEDDING = "Embedding"


class PermissionRecord(BaseModel):
    tool: str
    type: PermissionType
    scope: str | None = None
    granted: bool = True
    timestamp: datetime

    @property
    def key(self) -> tuple[str, PermissionType, str | None]:
        return (self.tool, self.type, self.scope)


_RECORDS = TypeAdapter(list[PermissionRecord])


class PermissionStore:
    """Ordered collection of permission records, persisted as a JSON array.

    Only grants are stored. A record is updated in place when the same key is
    granted again. With ``path=None`` the store lives in memory only.
    """

    def __init__(self, path: Path | None = None) -> None:
        self._path = path
        self._records: list[PermissionRecord] = []

    @property
    def path(self) -> Path | None:
        return self._path

    @property
    def records(self) -> list[PermissionRecord]:
        return list(self._records)

    def _read(self) -> list[PermissionRecord]:
        if self._path is None or not self._path.exists():
            return []
        raw = self._path.read_text(encoding="utf-8")
        if not raw.strip():
            return []
        try:
            return _RECORDS.validate_python(json.loads(raw))
        except (json.JSONDecodeError, ValidationError) as e:
            raise PermissionStoreError(
                f"Permission store {self._path} is corrupt: {e}"
            ) from e

    def load(self) -> "PermissionStore":
        """Read records from disk. Raises PermissionStoreError on corruption."""
        self._records = self._read()
        _log.debug("Loaded %d permission records from %s", len(self._records), self._path)
        return self

    def has_permission(
        self, tool: str, permission_type: PermissionType, scope: str | None = None
    ) -> bool:
        for record in self._records:
            if not record.granted or record.tool != tool or record.type != permission_type:
                continue
            if record.scope is None or record.scope == scope:
                return True
        return False

    def grant(
        self, tool: str, permission_type: PermissionType, scope: str | None = None
    ) -> PermissionRecord:
        """Record a grant and persist it. Memory changes only once the write succeeds."""
        record = PermissionRecord(
            tool=tool,
            type=permission_type,
            scope=scope,
            granted=True,
            timestamp=datetime.now(timezone.utc),
        )
        records = list(self._records)
        self._upsert(records, record)
        self._records = self._save(records)
        return record

    @staticmethod
    def _upsert(records: list[PermissionRecord], record: PermissionRecord) -> None:
        for i, existing in enumerate(records):
            if existing.key == record.key:
                records[i] = record
                return
        records.append(record)

    def _save(self, records: list[PermissionRecord]) -> list[PermissionRecord]:
        """Write ``records`` merged with the file's current content; return the merge."""
        if self._path is None:
            return records
        # Grants are monotonic: fold in anything another process wrote since load.
        merged = self._read()
        for record in records:
            self._upsert(merged, record)

        self._path.parent.mkdir(parents=True, exist_ok=True)
        data = json.dumps(
            [r.model_dump(mode="json") for r in merged], indent=2
        )
        fd, tmp_name = tempfile.mkstemp(
            dir=self._path.parent, prefix=f".{self._path.name}.", suffix=".tmp"
        )
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                f.write(data)
            os.replace(tmp_name, str(self._path))
        except BaseException:
            if os.path.exists(tmp_name):
                os.unlink(tmp_name)
            raise
        return merged
