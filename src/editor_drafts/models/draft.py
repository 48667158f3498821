from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator
from pydantic.alias_generators import to_camel

DEFAULT_PROJECT_NAME = "Untitled Project"
DEFAULT_MIME_TYPE = "application/octet-stream"


class _CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class MediaRef(_CamelModel):
    id: str
    name: str
    location_ref: str = Field(description="Opaque handle to the underlying file")
    mime_type: str = DEFAULT_MIME_TYPE


class PickedFile(_CamelModel):
    """A file returned by the document picker, before it gets a media id."""

    name: str
    location_ref: str
    mime_type: str | None = None


class Draft(_CamelModel):
    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "projectName": "Holiday cut",
                "media": [
                    {
                        "id": "1718000000000",
                        "name": "beach.mp4",
                        "locationRef": "file:///cache/beach.mp4",
                        "mimeType": "video/mp4",
                    }
                ],
                "ownerId": "u_42",
                "projectId": None,
                "installGrant": None,
                "previewRef": "file:///cache/beach.mp4",
            }
        },
    )

    project_name: str = DEFAULT_PROJECT_NAME
    media: list[MediaRef] = Field(default_factory=list)
    owner_id: str | None = None
    project_id: str | None = None
    install_grant: str | None = None
    # May point at a media entry or at any other location handle.
    preview_ref: str | None = None

    @field_validator("project_name")
    @classmethod
    def _check_project_name(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("project name must not be empty")
        return value

    @model_validator(mode="after")
    def _check_unique_media_ids(self) -> "Draft":
        seen: set[str] = set()
        for item in self.media:
            if item.id in seen:
                raise ValueError(f"duplicate media id: {item.id}")
            seen.add(item.id)
        return self

    def media_ids(self) -> list[str]:
        return [item.id for item in self.media]

    def has_media(self, media_id: str) -> bool:
        return any(item.id == media_id for item in self.media)

    def to_snapshot(self) -> dict:
        return self.model_dump(by_alias=True, mode="json")


__all__ = ["DEFAULT_MIME_TYPE", "DEFAULT_PROJECT_NAME", "Draft", "MediaRef", "PickedFile"]
