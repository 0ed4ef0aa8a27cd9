from __future__ import annotations

import asyncio
import tempfile
import uuid
from pathlib import Path
from typing import Protocol

import numpy as np
from PIL import Image

from imagekit.domain.entities.operation import ManipulationResult, Operation
from imagekit.domain.services.processing_service import ProcessingService
from imagekit.infrastructure.logger import get_logger
from imagekit.infrastructure.storage import path_utils

_logger = get_logger("image_ops")

_PIL_FORMATS = {"png": "PNG", "jpeg": "JPEG"}


class ImageOps(Protocol):
    async def apply(
        self, source_uri: str, operations: list[Operation], *, quality: float, format: str
    ) -> ManipulationResult: ...


class SizeProbe(Protocol):
    async def get_size(self, uri: str) -> tuple[int, int]: ...


class PillowImageOps:
    """Default ImageOps: Pillow decode/encode around NumPy transforms.

    Results are written to ``scratch_folder`` (system temp dir when None) under a
    fresh name; the caller takes ownership of that file.
    """

    def __init__(
        self, scratch_folder: Path | None = None, processing: ProcessingService | None = None
    ) -> None:
        self.scratch_folder = Path(scratch_folder) if scratch_folder else Path(tempfile.gettempdir())
        self.processing = processing or ProcessingService()

    async def apply(
        self, source_uri: str, operations: list[Operation], *, quality: float, format: str
    ) -> ManipulationResult:
        return await asyncio.to_thread(self._apply, source_uri, list(operations), quality, format)

    def _apply(
        self, source_uri: str, operations: list[Operation], quality: float, format: str
    ) -> ManipulationResult:
        fmt = _PIL_FORMATS.get(format.lower())
        if fmt is None:
            raise ValueError(f"Unsupported output format: {format}")
        src = self._decode(path_utils.to_local_path(source_uri))
        out = self.processing.apply(src, operations)
        image_bytes = self._encode_image(out, fmt, quality)
        height, width = out.shape[:2]
        self.scratch_folder.mkdir(parents=True, exist_ok=True)
        target = self.scratch_folder / f"{uuid.uuid4()}.{format.lower()}"
        target.write_bytes(image_bytes)
        _logger.debug(
            "applied %d operation(s) to %s -> %s (%dx%d)", len(operations), source_uri, target, width, height
        )
        return ManipulationResult(uri=str(target), width=int(width), height=int(height))

    @staticmethod
    def _decode(path: str) -> np.ndarray:
        with Image.open(path) as img:
            has_alpha = img.mode in ("RGBA", "LA") or (img.mode == "P" and "transparency" in img.info)
            arr = np.asarray(img.convert("RGBA" if has_alpha else "RGB")).astype(np.float32) / 255.0
        return arr

    @staticmethod
    def _encode_image(array: np.ndarray, fmt: str, quality: float) -> bytes:
        arr = np.clip(array, 0.0, 1.0).astype(np.float32)
        # JPEG has no alpha channel
        if arr.ndim == 3 and not (arr.shape[2] == 4 and fmt == "PNG"):
            arr = arr[..., :3]
        img = Image.fromarray(np.ascontiguousarray((arr * 255.0).round().astype("uint8")))
        from io import BytesIO

        buf = BytesIO()
        if fmt == "JPEG":
            img.save(buf, format=fmt, quality=max(1, min(95, int(round(quality * 100)))))
        else:
            img.save(buf, format=fmt)
        return buf.getvalue()


class PillowSizeProbe:
    """Reads image dimensions from the file header."""

    async def get_size(self, uri: str) -> tuple[int, int]:
        return await asyncio.to_thread(self._size, path_utils.to_local_path(uri))

    @staticmethod
    def _size(path: str) -> tuple[int, int]:
        with Image.open(path) as img:
            return int(img.width), int(img.height)
