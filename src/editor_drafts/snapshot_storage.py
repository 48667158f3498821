from __future__ import annotations

import json
import logging
import os
import tempfile
import threading
from pathlib import Path
from typing import Any, Dict, Protocol

from pydantic import ValidationError as PydanticValidationError

from .errors import LocalPersistenceError
from .models.draft import DEFAULT_PROJECT_NAME, Draft

logger = logging.getLogger(__name__)

SNAPSHOT_SCHEMA_VERSION = 1
SCHEMA_VERSION_FIELD = "schemaVersion"

# Keys written by the first mobile release, before the snapshot was versioned.
_LEGACY_DRAFT_KEYS = {"installedFromAdmin": "installGrant", "previewUri": "previewRef"}
_LEGACY_MEDIA_KEYS = {"uri": "locationRef"}
# Fields the first release stored as empty strings or nulls to mean "unset".
_LEGACY_OPTIONAL_IDS = ("ownerId", "projectId", "installGrant", "previewRef")


class SnapshotStorage(Protocol):
    def read(self, key: str) -> dict[str, Any] | None:
        ...

    def write(self, key: str, payload: dict[str, Any]) -> None:
        ...


class LocalSnapshotStorage:
    """One JSON file per key under ``base_path``, replaced atomically on write."""

    def __init__(self, *, base_path: Path) -> None:
        self._base_path = base_path

    def path_for(self, key: str) -> Path:
        safe = key.replace("/", "-")
        return self._base_path / f"{safe}.json"

    def read(self, key: str) -> dict[str, Any] | None:
        file_path = self.path_for(key)
        if not file_path.exists():
            return None
        try:
            with file_path.open("r", encoding="utf-8") as fp:
                data = json.load(fp)
        except (OSError, ValueError) as exc:
            raise LocalPersistenceError(f"Unreadable snapshot {file_path}: {exc}") from exc
        if not isinstance(data, dict):
            raise LocalPersistenceError(f"Snapshot {file_path} is not a JSON object")
        return data

    def write(self, key: str, payload: dict[str, Any]) -> None:
        file_path = self.path_for(key)
        text = json.dumps(payload, indent=2, ensure_ascii=False) + "\n"
        try:
            file_path.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp_path = tempfile.mkstemp(prefix=".tmp_", dir=file_path.parent)
        except OSError as exc:
            raise LocalPersistenceError(f"Snapshot directory unavailable: {exc}") from exc
        try:
            with os.fdopen(fd, "w", encoding="utf-8", newline="") as fp:
                fp.write(text)
                fp.flush()
                os.fsync(fp.fileno())
            os.replace(tmp_path, file_path)
        except OSError as exc:
            raise LocalPersistenceError(f"Failed to write snapshot {file_path}: {exc}") from exc
        finally:
            if os.path.exists(tmp_path):
                os.remove(tmp_path)


class InMemorySnapshotStorage:
    def __init__(self) -> None:
        self._entries: Dict[str, str] = {}
        self._lock = threading.Lock()

    def read(self, key: str) -> dict[str, Any] | None:
        with self._lock:
            raw = self._entries.get(key)
        if raw is None:
            return None
        return json.loads(raw)

    def write(self, key: str, payload: dict[str, Any]) -> None:
        # Stored as text so later mutations of the caller's dict never leak in.
        raw = json.dumps(payload)
        with self._lock:
            self._entries[key] = raw

    def keys(self) -> list[str]:
        with self._lock:
            return list(self._entries)


def encode_snapshot(draft: Draft) -> dict[str, Any]:
    return {SCHEMA_VERSION_FIELD: SNAPSHOT_SCHEMA_VERSION, **draft.to_snapshot()}


def decode_snapshot(data: dict[str, Any]) -> Draft:
    """Turn a stored snapshot back into a Draft.

    Unversioned snapshots are treated as version 1 and have their legacy keys
    renamed. A missing or blank project name falls back to the default.
    Snapshots written by a newer schema are rejected.
    """
    payload = dict(data)
    version = payload.pop(SCHEMA_VERSION_FIELD, None)
    if version is None:
        payload = _migrate_legacy(payload)
        version = 1
    if not isinstance(version, int) or version > SNAPSHOT_SCHEMA_VERSION or version < 1:
        raise LocalPersistenceError(f"Unsupported snapshot version: {version!r}")
    name = payload.get("projectName")
    if not isinstance(name, str) or not name.strip():
        payload["projectName"] = DEFAULT_PROJECT_NAME
    try:
        return Draft.model_validate(payload)
    except PydanticValidationError as exc:
        raise LocalPersistenceError(f"Invalid snapshot: {exc}") from exc


def _migrate_legacy(payload: dict[str, Any]) -> dict[str, Any]:
    migrated = {_LEGACY_DRAFT_KEYS.get(key, key): value for key, value in payload.items()}
    media = migrated.get("media") or []
    if isinstance(media, list):
        media = [
            {_LEGACY_MEDIA_KEYS.get(key, key): value for key, value in item.items()}
            if isinstance(item, dict)
            else item
            for item in media
        ]
    migrated["media"] = media
    for key in _LEGACY_OPTIONAL_IDS:
        migrated[key] = migrated.get(key) or None
    logger.debug("Migrated unversioned snapshot", extra={"keys": sorted(payload)})
    return migrated


__all__ = [
    "InMemorySnapshotStorage",
    "LocalSnapshotStorage",
    "SNAPSHOT_SCHEMA_VERSION",
    "SnapshotStorage",
    "decode_snapshot",
    "encode_snapshot",
]
