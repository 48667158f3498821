import importlib.util
import sys
from pathlib import Path

import pytest
from fastapi.testclient import TestClient

from editor_drafts.config import DraftSettings

API_MAIN = Path(__file__).resolve().parents[1] / "services" / "api" / "main.py"
KEY = "editor_autosave_v1"


@pytest.fixture(scope="module")
def api_module():
    spec = importlib.util.spec_from_file_location("drafts_api_main", API_MAIN)
    module = importlib.util.module_from_spec(spec)
    sys.modules[spec.name] = module
    spec.loader.exec_module(module)
    yield module
    sys.modules.pop(spec.name, None)


@pytest.fixture
def client(api_module, make_store, tmp_path):
    app = api_module.create_app(
        settings=DraftSettings(storage_dir=tmp_path, autosave_interval=60),
        store=make_store(),
    )
    with TestClient(app) as test_client:
        yield test_client


def test_health(client):
    assert client.get("/health").json() == {"status": "ok"}


def test_fresh_draft_is_default(client):
    response = client.get("/v1/draft")

    assert response.status_code == 200
    assert response.json() == {
        "projectName": "Untitled Project",
        "media": [],
        "ownerId": None,
        "projectId": None,
        "installGrant": None,
        "previewRef": None,
    }


def test_rename_import_and_preview(client, storage):
    assert client.patch("/v1/draft", json={"projectName": "Vlog"}).status_code == 200

    imported = client.post(
        "/v1/draft/media",
        json={"files": [{"name": "a.webm", "locationRef": "file:///a.webm", "mimeType": "video/webm"}]},
    ).json()
    preview = client.put("/v1/draft/preview", json={"previewRef": "file:///other.mp4"}).json()

    assert imported[0]["name"] == "a.webm"
    assert preview["projectName"] == "Vlog"
    assert preview["previewRef"] == "file:///other.mp4"
    assert storage.read(KEY)["previewRef"] == "file:///other.mp4"


def test_blank_rename_is_bad_request(client):
    response = client.patch("/v1/draft", json={"projectName": " "})

    assert response.status_code == 400
    assert response.json()["field"] == "projectName"


def test_save_maps_remote_failure_to_bad_gateway(client, backend):
    backend.route("/api/project/save", lambda body: {"ok": False, "error": "quota"})

    response = client.post("/v1/draft:save")

    assert response.status_code == 502
    assert response.json() == {"error": "quota"}
    assert client.get("/v1/draft").json()["projectId"] is None


def test_save_and_account_flow(client, backend):
    backend.route("/api/project/save", lambda body: {"ok": True, "projectId": "p-1"})
    backend.route("/api/login", lambda body: {"ok": True, "id": "u-1"})
    backend.route("/api/claim-install", lambda body: {"ok": True, "adminKey": "SNM_Gaming"})
    backend.route("/api/verify-code", lambda body: {"ok": True, "member": "monthly"})

    assert client.post("/v1/account:sign-in", json={"email": "me@example.com"}).json() == {"ownerId": "u-1"}
    assert client.post("/v1/draft:save").json() == {"projectId": "p-1", "firstSave": True}
    assert client.post(
        "/v1/install:claim", json={"installToken": "tok", "email": "me@example.com"}
    ).json() == {"installGrant": "SNM_Gaming"}
    assert client.post(
        "/v1/membership:verify", json={"code": "C-1", "email": "me@example.com"}
    ).json() == {"memberLabel": "monthly"}
    assert backend.bodies("/api/project/save")[0]["ownerId"] == "u-1"


def test_claim_without_token_is_rejected_before_network(client, backend):
    response = client.post("/v1/install:claim", json={"email": "me@example.com"})

    assert response.status_code == 400
    assert backend.requests == []


def test_shutdown_writes_final_snapshot(api_module, make_store, storage, tmp_path):
    app = api_module.create_app(
        settings=DraftSettings(storage_dir=tmp_path, autosave_interval=60),
        store=make_store(),
    )
    with TestClient(app) as test_client:
        test_client.patch("/v1/draft", json={"projectName": "Closing"})
        app.state.store.select_preview("file:///late.mp4")

    assert storage.read(KEY)["previewRef"] == "file:///late.mp4"
