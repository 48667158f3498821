from __future__ import annotations

import logging
import uuid
from contextlib import asynccontextmanager
from typing import AsyncIterator

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from editor_drafts.config import DraftSettings
from editor_drafts.draft_store import DraftStore
from editor_drafts.errors import RemoteCallError, ValidationError
from editor_drafts.logging_config import set_trace_id, setup_logging
from editor_drafts.models.draft import Draft, MediaRef, PickedFile
from editor_drafts.models.remote import (
    InstallGrantResult,
    MembershipResult,
    SaveResult,
    SignInResult,
)

logger = logging.getLogger(__name__)


class _CamelRequest(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class RenameRequest(_CamelRequest):
    project_name: str


class ImportMediaRequest(_CamelRequest):
    files: list[PickedFile] = Field(default_factory=list)


class PreviewRequest(_CamelRequest):
    preview_ref: str | None = None


class SignInRequest(_CamelRequest):
    email: str = ""


class ClaimInstallRequest(_CamelRequest):
    install_token: str = ""
    email: str = ""


class VerifyMembershipRequest(_CamelRequest):
    code: str = ""
    email: str = ""


def create_app(
    *,
    settings: DraftSettings | None = None,
    store: DraftStore | None = None,
) -> FastAPI:
    """Build the local draft service.

    The store is restored and its autosave scheduled when the app starts, and
    closed when it shuts down.
    """
    settings = settings or DraftSettings.from_env()

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        draft_store = store or DraftStore.from_settings(settings)
        draft_store.restore()
        draft_store.schedule_autosave(settings.autosave_interval)
        app.state.store = draft_store
        try:
            yield
        finally:
            await draft_store.close()

    app = FastAPI(title="Editor Drafts API", version="0.1.0", lifespan=lifespan)

    @app.middleware("http")
    async def trace_requests(request: Request, call_next):
        set_trace_id(request.headers.get("X-Cloud-Trace-Context") or str(uuid.uuid4()))
        try:
            return await call_next(request)
        finally:
            set_trace_id(None)

    @app.exception_handler(ValidationError)
    async def validation_error_handler(request: Request, exc: ValidationError) -> JSONResponse:
        return JSONResponse(status_code=400, content={"error": exc.message, "field": exc.field})

    @app.exception_handler(RemoteCallError)
    async def remote_error_handler(request: Request, exc: RemoteCallError) -> JSONResponse:
        logger.warning(
            "Remote call failed",
            extra={"endpoint": exc.endpoint, "status_code": exc.status_code, "error": exc.message},
        )
        return JSONResponse(status_code=502, content={"error": exc.message})

    def current_store(request: Request) -> DraftStore:
        return request.app.state.store

    @app.get("/v1/draft", response_model=Draft)
    async def get_draft(request: Request) -> Draft:
        return current_store(request).draft

    @app.patch("/v1/draft", response_model=Draft)
    async def rename_draft(body: RenameRequest, request: Request) -> Draft:
        return current_store(request).rename(body.project_name, persist=True)

    @app.post("/v1/draft/media", response_model=list[MediaRef])
    async def import_media(body: ImportMediaRequest, request: Request) -> list[MediaRef]:
        return current_store(request).import_media(body.files)

    @app.put("/v1/draft/preview", response_model=Draft)
    async def select_preview(body: PreviewRequest, request: Request) -> Draft:
        return current_store(request).select_preview(body.preview_ref, persist=True)

    @app.post("/v1/draft:persist", response_model=Draft)
    async def persist_draft(request: Request) -> Draft:
        draft_store = current_store(request)
        draft_store.persist_local()
        return draft_store.draft

    @app.post("/v1/draft:save", response_model=SaveResult)
    async def save_draft(request: Request) -> SaveResult:
        return await current_store(request).save_remote()

    @app.post("/v1/account:sign-in", response_model=SignInResult)
    async def sign_in(body: SignInRequest, request: Request) -> SignInResult:
        return await current_store(request).sign_in(body.email)

    @app.post("/v1/install:claim", response_model=InstallGrantResult)
    async def claim_install(body: ClaimInstallRequest, request: Request) -> InstallGrantResult:
        return await current_store(request).claim_install(body.install_token, body.email)

    @app.post("/v1/membership:verify", response_model=MembershipResult)
    async def verify_membership(
        body: VerifyMembershipRequest, request: Request
    ) -> MembershipResult:
        return await current_store(request).verify_membership(body.code, body.email)

    @app.get("/health")
    async def healthcheck() -> JSONResponse:
        return JSONResponse({"status": "ok"})

    return app


# Environment configuration
SETTINGS = DraftSettings.from_env()

# Setup logging
setup_logging(environment=SETTINGS.environment, project_id=SETTINGS.project_id)

app = create_app(settings=SETTINGS)
