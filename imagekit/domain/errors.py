from __future__ import annotations


class ImageKitError(Exception):
    """Base class for errors raised by imagekit."""


class PictureConstructionError(ImageKitError):
    """The source can not back a picture (not local, unsupported type, or not copyable)."""


class RegistryInitError(ImageKitError):
    """The registry folder or its temp folder can not be used."""
