from __future__ import annotations

from typing import Any, Mapping

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class _WireModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class RemoteResponse(_WireModel):
    ok: bool = False
    error: str | None = None


class SaveProjectRequest(_WireModel):
    project_id: str | None = None
    owner_id: str | None = None
    project_data: Mapping[str, Any]


class SaveProjectResponse(RemoteResponse):
    project_id: str | None = None


class SignInRequest(_WireModel):
    email: str
    name: str


class SignInResponse(RemoteResponse):
    id: str | None = None


class ClaimInstallRequest(_WireModel):
    install_token: str
    email: str = ""
    desired_name: str = ""


class ClaimInstallResponse(RemoteResponse):
    admin_key: str | None = None


class VerifyCodeRequest(_WireModel):
    code: str
    email: str = ""


class VerifyCodeResponse(RemoteResponse):
    member: str | None = None


class SaveResult(_WireModel):
    project_id: str
    first_save: bool = Field(description="True when this save assigned the project id")


class SignInResult(_WireModel):
    owner_id: str


class InstallGrantResult(_WireModel):
    install_grant: str


class MembershipResult(_WireModel):
    member_label: str


__all__ = [
    "ClaimInstallRequest",
    "ClaimInstallResponse",
    "InstallGrantResult",
    "MembershipResult",
    "RemoteResponse",
    "SaveProjectRequest",
    "SaveProjectResponse",
    "SaveResult",
    "SignInRequest",
    "SignInResponse",
    "SignInResult",
    "VerifyCodeRequest",
    "VerifyCodeResponse",
]
