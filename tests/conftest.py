import os
import sys
from collections.abc import Callable
from pathlib import Path

import numpy as np
import pytest
from PIL import Image

# Ensure project root is on sys.path so 'imagekit' is importable during tests
ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

os.environ.setdefault("IMAGEKIT_LOG_LEVEL", "warning")

from imagekit.infrastructure.dependencies import PictureServices, get_picture_services  # noqa: E402
from imagekit.infrastructure.settings import ImageKitSettings  # noqa: E402


@pytest.fixture()
def settings(tmp_path: Path) -> ImageKitSettings:
    return ImageKitSettings(document_folder=tmp_path / "documents", scratch_folder=tmp_path / "scratch")


@pytest.fixture()
def services(settings: ImageKitSettings) -> PictureServices:
    return get_picture_services(settings)


@pytest.fixture()
def make_image(tmp_path: Path) -> Callable[..., Path]:
    """Write a gradient image and return its path.

    ``make_image("a.png", 80, 60)`` writes into the documents folder unless an
    absolute path is given.
    """

    def _make(name: str = "sample.png", width: int = 8, height: int = 6, folder: Path | None = None) -> Path:
        target = Path(name)
        if not target.is_absolute():
            target = (folder or tmp_path / "documents") / target
        target.parent.mkdir(parents=True, exist_ok=True)
        xs = np.linspace(0, 255, width, dtype=np.float32)[None, :].repeat(height, axis=0)
        ys = np.linspace(0, 255, height, dtype=np.float32)[:, None].repeat(width, axis=1)
        rgb = np.stack([xs, ys, np.full_like(xs, 128)], axis=-1).astype(np.uint8)
        fmt = "PNG" if target.suffix.lower() == ".png" else "JPEG"
        Image.fromarray(rgb).save(target, format=fmt)
        return target

    return _make
