import json

import pytest

from editor_drafts.errors import LocalPersistenceError
from editor_drafts.models.draft import Draft, MediaRef
from editor_drafts.snapshot_storage import (
    SNAPSHOT_SCHEMA_VERSION,
    InMemorySnapshotStorage,
    LocalSnapshotStorage,
    decode_snapshot,
    encode_snapshot,
)


def sample_draft() -> Draft:
    return Draft(
        project_name="Launch video",
        media=[MediaRef(id="1", name="intro.mp4", location_ref="file:///intro.mp4", mime_type="video/mp4")],
        owner_id="u-1",
        preview_ref="file:///intro.mp4",
    )


def test_local_storage_writes_camel_case_snapshot(tmp_path):
    storage = LocalSnapshotStorage(base_path=tmp_path / "drafts")
    storage.write("editor_autosave_v1", encode_snapshot(sample_draft()))

    on_disk = json.loads((tmp_path / "drafts" / "editor_autosave_v1.json").read_text(encoding="utf-8"))

    assert on_disk == {
        "schemaVersion": SNAPSHOT_SCHEMA_VERSION,
        "projectName": "Launch video",
        "media": [
            {"id": "1", "name": "intro.mp4", "locationRef": "file:///intro.mp4", "mimeType": "video/mp4"}
        ],
        "ownerId": "u-1",
        "projectId": None,
        "installGrant": None,
        "previewRef": "file:///intro.mp4",
    }
    assert [p.name for p in (tmp_path / "drafts").iterdir()] == ["editor_autosave_v1.json"]


def test_local_storage_round_trip(tmp_path):
    storage = LocalSnapshotStorage(base_path=tmp_path)
    storage.write("key", encode_snapshot(sample_draft()))

    assert decode_snapshot(storage.read("key")) == sample_draft()


def test_local_storage_missing_key_returns_none(tmp_path):
    assert LocalSnapshotStorage(base_path=tmp_path).read("absent") is None


def test_local_storage_corrupt_file_raises(tmp_path):
    storage = LocalSnapshotStorage(base_path=tmp_path)
    storage.path_for("key").write_text("{not json", encoding="utf-8")

    with pytest.raises(LocalPersistenceError):
        storage.read("key")


def test_local_storage_non_object_raises(tmp_path):
    storage = LocalSnapshotStorage(base_path=tmp_path)
    storage.path_for("key").write_text("[1, 2]", encoding="utf-8")

    with pytest.raises(LocalPersistenceError):
        storage.read("key")


def test_in_memory_storage_isolates_payload():
    storage = InMemorySnapshotStorage()
    payload = encode_snapshot(sample_draft())
    storage.write("key", payload)
    payload["projectName"] = "changed afterwards"

    assert storage.read("key")["projectName"] == "Launch video"
    assert storage.keys() == ["key"]


def test_decode_migrates_unversioned_mobile_snapshot():
    legacy = {
        "projectName": "",
        "media": [{"id": "1700000000000", "name": "a.mp4", "uri": "file:///a.mp4", "mimeType": "video/mp4"}],
        "ownerId": None,
        "projectId": "p-3",
        "installedFromAdmin": "speedy",
        "previewUri": "file:///a.mp4",
    }

    draft = decode_snapshot(legacy)

    assert draft.project_name == "Untitled Project"
    assert draft.media[0].location_ref == "file:///a.mp4"
    assert draft.install_grant == "speedy"
    assert draft.preview_ref == "file:///a.mp4"
    assert draft.project_id == "p-3"


def test_decode_rejects_duplicate_media_ids():
    data = encode_snapshot(sample_draft())
    data["media"] = data["media"] * 2

    with pytest.raises(LocalPersistenceError):
        decode_snapshot(data)


def test_decode_rejects_unknown_version():
    data = encode_snapshot(sample_draft())
    data["schemaVersion"] = SNAPSHOT_SCHEMA_VERSION + 1

    with pytest.raises(LocalPersistenceError):
        decode_snapshot(data)


def test_decode_blank_versioned_name_falls_back_to_default():
    data = encode_snapshot(sample_draft())
    data["projectName"] = "   "

    draft = decode_snapshot(data)

    assert draft.project_name == "Untitled Project"
    assert draft.media_ids() == ["1"]


def test_draft_model_rejects_blank_name():
    with pytest.raises(ValueError):
        Draft(project_name="")


def test_decode_legacy_snapshot_treats_falsy_values_as_unset():
    legacy = {
        "projectName": "Trip",
        "media": None,
        "ownerId": "",
        "projectId": "",
        "installedFromAdmin": None,
        "previewUri": "",
    }

    draft = decode_snapshot(legacy)

    assert draft.project_name == "Trip"
    assert draft.media == []
    assert draft.owner_id is None
    assert draft.project_id is None
    assert draft.install_grant is None
    assert draft.preview_ref is None


def test_decode_legacy_snapshot_keeps_mime_type():
    legacy = {
        "projectName": "Trip",
        "media": [
            {"id": "1", "name": "a.mp4", "uri": "file:///a.mp4", "mimeType": "video/mp4", "type": "success"}
        ],
    }

    assert decode_snapshot(legacy).media[0].mime_type == "video/mp4"
