from __future__ import annotations

from dataclasses import dataclass

from imagekit.infrastructure.imaging.pillow_image_ops import (
    ImageOps,
    PillowImageOps,
    PillowSizeProbe,
    SizeProbe,
)
from imagekit.infrastructure.settings import ImageKitSettings
from imagekit.infrastructure.storage.path_fs import PathFS


@dataclass
class PictureServices:
    """Collaborators shared by a registry and its pictures."""

    settings: ImageKitSettings
    fs: PathFS
    image_ops: ImageOps
    size_probe: SizeProbe


def get_settings() -> ImageKitSettings:
    return ImageKitSettings.from_env()


def get_path_fs(settings: ImageKitSettings) -> PathFS:
    return PathFS(download_timeout=settings.download_timeout)


def get_image_ops(settings: ImageKitSettings) -> ImageOps:
    return PillowImageOps(scratch_folder=settings.scratch_folder)


def get_size_probe() -> SizeProbe:
    return PillowSizeProbe()


def get_picture_services(settings: ImageKitSettings | None = None) -> PictureServices:
    settings = settings or get_settings()
    return PictureServices(
        settings=settings,
        fs=get_path_fs(settings),
        image_ops=get_image_ops(settings),
        size_probe=get_size_probe(),
    )
