"""Schema of the registry index file."""
from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter, field_validator


class IndexEntry(BaseModel):
    """One picture as recorded in ``list.json``."""

    model_config = ConfigDict(populate_by_name=True)

    file_name: str = Field(..., alias="fileName", min_length=1, description="Canonical file name inside the folder")
    width: int = Field(0, ge=0, description="Last known width in pixels, 0 if unknown")
    height: int = Field(0, ge=0, description="Last known height in pixels, 0 if unknown")

    @field_validator("file_name")
    @classmethod
    def _bare_name(cls, value: str) -> str:
        if "/" in value or "\\" in value:
            raise ValueError("fileName must not contain path separators")
        return value


IndexFile = TypeAdapter(list[IndexEntry])


def dump_index(entries: list[IndexEntry]) -> list[dict]:
    return [entry.model_dump(by_alias=True) for entry in entries]
