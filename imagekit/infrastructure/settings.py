from __future__ import annotations

import os
from pathlib import Path

from pydantic import BaseModel, ConfigDict, Field


class ImageKitSettings(BaseModel):
    """Explicit configuration shared by a registry and the pictures it owns.

    Passed at construction time instead of living in module globals so two
    registries in one process can run with different settings.
    """

    model_config = ConfigDict(frozen=True)

    document_folder: Path = Field(
        Path(".imagekit"), description="Base folder that relative registry folders resolve under"
    )
    temp_folder_name: str = Field("_temp_", min_length=1, description="Name of the private temp folder")
    index_file_name: str = Field("list.json", min_length=1, description="Registry index file name")
    compress: float = Field(0.8, ge=0.0, le=1.0, description="Encoder quality for edited images")
    base64: bool = Field(
        False, description="Accepted for parity with callers that pass it; nothing in imagekit reads it"
    )
    scratch_folder: Path | None = Field(
        None, description="Where ImageOps writes results before they are moved; system temp if unset"
    )
    download_timeout: float = Field(60.0, gt=0.0, description="Seconds before a remote import gives up")

    @classmethod
    def from_env(cls) -> ImageKitSettings:
        values: dict[str, object] = {}
        document_dir = os.getenv("IMAGEKIT_DOCUMENT_DIR")
        if document_dir:
            values["document_folder"] = Path(document_dir)
        temp_name = os.getenv("IMAGEKIT_TEMP_FOLDER")
        if temp_name:
            values["temp_folder_name"] = temp_name
        index_name = os.getenv("IMAGEKIT_INDEX_FILE")
        if index_name:
            values["index_file_name"] = index_name
        compress = os.getenv("IMAGEKIT_COMPRESS")
        if compress:
            values["compress"] = float(compress)
        scratch = os.getenv("IMAGEKIT_SCRATCH_DIR")
        if scratch:
            values["scratch_folder"] = Path(scratch)
        timeout = os.getenv("IMAGEKIT_DOWNLOAD_TIMEOUT")
        if timeout:
            values["download_timeout"] = float(timeout)
        return cls(**values)
