from __future__ import annotations

import asyncio
import logging
import time
from typing import Any, Iterable
from urllib.parse import urlparse

from .autosave import AutosaveHandle
from .config import DEFAULT_AUTOSAVE_INTERVAL, DEFAULT_AUTOSAVE_KEY, DraftSettings
from .errors import LocalPersistenceError, RemoteCallError, ValidationError
from .models.draft import DEFAULT_MIME_TYPE, Draft, MediaRef, PickedFile
from .models.remote import InstallGrantResult, MembershipResult, SaveResult, SignInResult
from .remote_client import RemoteDraftClient
from .snapshot_storage import (
    LocalSnapshotStorage,
    SnapshotStorage,
    decode_snapshot,
    encode_snapshot,
)

logger = logging.getLogger(__name__)

VIDEO_EXTENSIONS = (".mp4", ".mov", ".webm", ".mkv")
NETWORK_SCHEMES = ("http", "https")


class DraftStore:
    """Owns the current project draft, its local snapshot and its remote copy."""

    def __init__(
        self,
        *,
        storage: SnapshotStorage,
        remote: RemoteDraftClient,
        autosave_key: str = DEFAULT_AUTOSAVE_KEY,
        autosave_interval: float = DEFAULT_AUTOSAVE_INTERVAL,
    ) -> None:
        self._storage = storage
        self._remote = remote
        self._autosave_key = autosave_key
        self._autosave_interval = autosave_interval
        self._draft = Draft()
        self._autosave: AutosaveHandle | None = None
        self._save_lock = asyncio.Lock()
        self._last_media_id = 0
        self._closed = False

    @classmethod
    def from_settings(cls, settings: DraftSettings) -> "DraftStore":
        return cls(
            storage=LocalSnapshotStorage(base_path=settings.storage_dir),
            remote=RemoteDraftClient.from_settings(settings),
            autosave_key=settings.autosave_key,
            autosave_interval=settings.autosave_interval,
        )

    @property
    def draft(self) -> Draft:
        return self._draft

    @property
    def autosave(self) -> AutosaveHandle | None:
        return self._autosave

    @property
    def closed(self) -> bool:
        return self._closed

    async def __aenter__(self) -> "DraftStore":
        self.restore()
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.close()

    # Local persistence

    def restore(self) -> Draft:
        """Load the last snapshot into the store, falling back to an empty draft."""
        draft = Draft()
        try:
            data = self._storage.read(self._autosave_key)
            if data is not None:
                draft = decode_snapshot(data)
        except LocalPersistenceError as exc:
            logger.warning(
                "Discarding unusable snapshot",
                extra={"key": self._autosave_key, "error": exc.message},
            )
        except Exception:
            logger.exception("Snapshot storage failed during restore")
        else:
            logger.info(
                "Restored draft" if data is not None else "No snapshot found, starting empty",
                extra={"key": self._autosave_key, "media_count": len(draft.media)},
            )
        self._draft = draft
        return draft

    def persist_local(self, draft: Draft | None = None) -> None:
        """Write ``draft`` (the current draft when omitted) to local storage.

        Best effort: failures are logged, never raised.
        """
        if self._closed:
            logger.warning("Ignoring persist on a closed draft store")
            return
        target = draft if draft is not None else self._draft
        try:
            self._storage.write(self._autosave_key, encode_snapshot(target))
        except LocalPersistenceError as exc:
            logger.warning("Local autosave failed", extra={"error": exc.message})
        except Exception:
            logger.exception("Local autosave failed")
        else:
            logger.debug("Autosaved locally", extra={"key": self._autosave_key})

    def schedule_autosave(self, interval: float | None = None) -> AutosaveHandle:
        """Start persisting the current draft every ``interval`` seconds.

        Must be called from a running event loop. A previously scheduled
        autosave is cancelled first.
        """
        if self._closed:
            raise RuntimeError("draft store is closed")
        if self._autosave is not None:
            self._autosave.cancel()
        self._autosave = AutosaveHandle(
            self.persist_local, interval if interval is not None else self._autosave_interval
        )
        return self._autosave.start()

    async def close(self) -> None:
        if self._closed:
            return
        if self._autosave is not None:
            await self._autosave.stop()
            self._autosave = None
        self.persist_local()
        self._closed = True
        await self._remote.aclose()
        logger.info("Draft store closed")

    # Draft mutations

    def rename(self, name: str, *, persist: bool = False) -> Draft:
        cleaned = (name or "").strip()
        if not cleaned:
            raise ValidationError("Project name must not be empty", field="projectName")
        self._draft.project_name = cleaned
        if persist:
            self.persist_local()
        return self._draft

    def add_media(self, media_ref: MediaRef, *, persist: bool = True) -> MediaRef:
        if self._draft.has_media(media_ref.id):
            raise ValidationError(f"Duplicate media id: {media_ref.id}", field="id")
        self._draft.media.append(media_ref)
        if media_ref.id.isdigit():
            self._last_media_id = max(self._last_media_id, int(media_ref.id))
        if persist:
            self.persist_local()
        return media_ref

    def import_media(
        self, picked_files: Iterable[PickedFile], *, persist: bool = True
    ) -> list[MediaRef]:
        """Append picker results in order; the last imported video becomes the preview."""
        imported: list[MediaRef] = []
        for picked in picked_files:
            media_ref = MediaRef(
                id=self._next_media_id(),
                name=picked.name,
                location_ref=picked.location_ref,
                mime_type=picked.mime_type or DEFAULT_MIME_TYPE,
            )
            self.add_media(media_ref, persist=False)
            if picked.name.lower().endswith(VIDEO_EXTENSIONS):
                self._draft.preview_ref = picked.location_ref
            imported.append(media_ref)
        if imported:
            logger.info("Imported media", extra={"count": len(imported)})
            if persist:
                self.persist_local()
        return imported

    def select_preview(self, location_ref: str | None, *, persist: bool = False) -> Draft:
        self._draft.preview_ref = location_ref or None
        if persist:
            self.persist_local()
        return self._draft

    # Remote reconciliation

    async def save_remote(self) -> SaveResult:
        """Push the current draft to the backend and record its project id."""
        async with self._save_lock:
            draft = self._draft
            existing_id = draft.project_id
            response = await self._remote.save_project(
                project_id=existing_id,
                owner_id=draft.owner_id,
                project_data=self._project_data(draft),
            )
            project_id = response.project_id
            if existing_id and project_id != existing_id:
                logger.error(
                    "Backend returned a new identity for a saved project",
                    extra={"project_id": existing_id, "returned_id": project_id},
                )
                raise RemoteCallError(
                    f"Backend returned project id {project_id} for project {existing_id}",
                    endpoint=self._remote.endpoints.save,
                )
            self._draft.project_id = project_id
            self.persist_local()

        logger.info(
            "Saved project to server",
            extra={"project_id": project_id, "first_save": existing_id is None},
        )
        return SaveResult(project_id=project_id, first_save=existing_id is None)

    async def sign_in(self, email: str) -> SignInResult:
        email = _required(email, "email", "Enter email")
        response = await self._remote.sign_in(email=email, name=_local_part(email))
        self._draft.owner_id = response.id
        self.persist_local()
        logger.info("Signed in", extra={"owner_id": response.id})
        return SignInResult(owner_id=response.id)

    async def claim_install(self, token: str, email: str = "") -> InstallGrantResult:
        token = _required(token, "installToken", "Enter install token")
        email = (email or "").strip()
        response = await self._remote.claim_install(
            install_token=token, email=email, desired_name=_local_part(email)
        )
        self._draft.install_grant = response.admin_key
        self.persist_local()
        logger.info("Install claimed", extra={"install_grant": response.admin_key})
        return InstallGrantResult(install_grant=response.admin_key)

    async def verify_membership(self, code: str, email: str = "") -> MembershipResult:
        code = _required(code, "code", "Enter monthly code")
        response = await self._remote.verify_code(code=code, email=(email or "").strip())
        return MembershipResult(member_label=response.member or "unknown")

    # Helpers

    def _project_data(self, draft: Draft) -> dict[str, Any]:
        snapshot = draft.to_snapshot()
        media = []
        for item in snapshot["media"]:
            if urlparse(item["locationRef"]).scheme not in NETWORK_SCHEMES:
                item = {key: value for key, value in item.items() if key != "locationRef"}
            media.append(item)
        return {
            "projectName": snapshot["projectName"],
            "media": media,
            "installGrant": snapshot["installGrant"],
            "previewRef": snapshot["previewRef"],
        }

    def _next_media_id(self) -> str:
        candidate = max(time.time_ns() // 1_000_000, self._last_media_id + 1)
        while self._draft.has_media(str(candidate)):
            candidate += 1
        self._last_media_id = candidate
        return str(candidate)


def _required(value: str | None, field: str, message: str) -> str:
    cleaned = (value or "").strip()
    if not cleaned:
        raise ValidationError(message, field=field)
    return cleaned


def _local_part(email: str) -> str:
    return email.split("@")[0]


__all__ = ["DraftStore", "NETWORK_SCHEMES", "VIDEO_EXTENSIONS"]
