from __future__ import annotations

import os
from pathlib import Path

from pydantic import BaseModel, Field

DEFAULT_AUTOSAVE_KEY = "editor_autosave_v1"
DEFAULT_AUTOSAVE_INTERVAL = 8.0


class EndpointPaths(BaseModel):
    save: str = "/api/project/save"
    sign_in: str = "/api/login"
    claim_install: str = "/api/claim-install"
    verify_code: str = "/api/verify-code"


class DraftSettings(BaseModel):
    environment: str = "dev"
    project_id: str | None = Field(default=None, description="GCP project used for Cloud Logging")
    api_url: str = "http://localhost:8080"
    storage_dir: Path = Path(".drafts")
    autosave_key: str = DEFAULT_AUTOSAVE_KEY
    autosave_interval: float = Field(default=DEFAULT_AUTOSAVE_INTERVAL, gt=0)
    request_timeout: float = Field(default=10.0, gt=0)
    request_attempts: int = Field(default=1, ge=1)
    retry_backoff: float = Field(default=0.5, ge=0)
    endpoints: EndpointPaths = Field(default_factory=EndpointPaths)

    @classmethod
    def from_env(cls) -> "DraftSettings":
        """Build settings from ``DRAFTS_*`` environment variables."""
        defaults = EndpointPaths()
        return cls(
            environment=os.getenv("ENVIRONMENT", "dev"),
            project_id=os.getenv("PROJECT_ID"),
            api_url=os.getenv("DRAFTS_API_URL", "http://localhost:8080"),
            storage_dir=Path(os.getenv("DRAFTS_STORAGE_DIR", ".drafts")),
            autosave_key=os.getenv("DRAFTS_AUTOSAVE_KEY", DEFAULT_AUTOSAVE_KEY),
            autosave_interval=float(
                os.getenv("DRAFTS_AUTOSAVE_INTERVAL", str(DEFAULT_AUTOSAVE_INTERVAL))
            ),
            request_timeout=float(os.getenv("DRAFTS_REQUEST_TIMEOUT", "10")),
            request_attempts=int(os.getenv("DRAFTS_REQUEST_ATTEMPTS", "1")),
            retry_backoff=float(os.getenv("DRAFTS_RETRY_BACKOFF", "0.5")),
            endpoints=EndpointPaths(
                save=os.getenv("DRAFTS_SAVE_PATH", defaults.save),
                sign_in=os.getenv("DRAFTS_SIGN_IN_PATH", defaults.sign_in),
                claim_install=os.getenv("DRAFTS_CLAIM_PATH", defaults.claim_install),
                verify_code=os.getenv("DRAFTS_VERIFY_PATH", defaults.verify_code),
            ),
        )


__all__ = ["DEFAULT_AUTOSAVE_INTERVAL", "DEFAULT_AUTOSAVE_KEY", "DraftSettings", "EndpointPaths"]
