from __future__ import annotations

import asyncio
import math
from pathlib import Path
from typing import Any

from imagekit.domain.entities.edit_result import EditResult
from imagekit.domain.entities.operation import CropOp, FlipOp, Operation, ResizeOp, RotateOp
from imagekit.domain.entities.version import Version
from imagekit.domain.errors import PictureConstructionError
from imagekit.infrastructure.dependencies import PictureServices, get_picture_services
from imagekit.infrastructure.logger import get_logger
from imagekit.infrastructure.storage import path_utils

_logger = get_logger("versioned_picture")

# Only jpg and png files are supported.
IMAGE_TYPES = frozenset({"jpeg", "jpg", "png"})


def _parse_number(value: Any) -> float | None:
    if isinstance(value, bool):
        return None
    try:
        number = float(value)
    except (TypeError, ValueError):
        return None
    if math.isnan(number) or math.isinf(number):
        return None
    return number


def _parse_int(value: Any) -> int | None:
    number = _parse_number(value)
    if number is None:
        return None
    return math.floor(number + 0.5)


class VersionedPicture:
    """A local image plus the undo history of its edits.

    ``source`` is the canonical file the user sees. Every retained state,
    including the current one, is a private copy in ``temp_folder``; after each
    successful operation the canonical file is overwritten with the front of
    the history, so ``source`` always shows the latest state.

    Build one with ``await VersionedPicture.open(uri)``. The constructor only
    validates the uri; ``initialize()`` creates the first history entry.
    """

    def __init__(
        self,
        uri: str | Path,
        width: Any = 0,
        height: Any = 0,
        *,
        services: PictureServices | None = None,
        temp_folder: str | Path | None = None,
    ) -> None:
        text = str(uri)
        if not (path_utils.is_local(text) and self.available_type(text)):
            raise PictureConstructionError(
                f"Bad uri {text!r}. Image file must be a local file of png or jpg type."
            )
        self.services = services or get_picture_services()
        self._source = path_utils.to_local_path(text)
        self._history: list[Version] = []
        self._temp_folder = str(temp_folder) if temp_folder else self._default_temp_folder()
        self._initial_size = (_parse_int(width) or 0, _parse_int(height) or 0)
        self._size_task: asyncio.Task[bool] | None = None
        self.selected = False

    @classmethod
    async def open(
        cls,
        uri: str | Path,
        width: Any = 0,
        height: Any = 0,
        *,
        services: PictureServices | None = None,
        temp_folder: str | Path | None = None,
    ) -> VersionedPicture:
        picture = cls(uri, width, height, services=services, temp_folder=temp_folder)
        return await picture.initialize()

    @classmethod
    async def fetch(
        cls,
        source: str | Path,
        width: Any = 0,
        height: Any = 0,
        target: str | Path | None = None,
        *,
        services: PictureServices | None = None,
        temp_folder: str | Path | None = None,
    ) -> VersionedPicture | None:
        """Import ``source`` into ``target`` and open it as a picture.

        Remote sources are downloaded, local ones are moved. ``target`` may be
        a full path or a bare name under the document folder; it defaults to
        the source's own file name. Returns None when the target type is not
        supported, the transfer fails, or the imported file can not be opened;
        in the last case a moved source is put back.
        """
        services = services or get_picture_services()
        fs = services.fs
        target_text = str(target) if target else path_utils.file_name(source)
        if not cls.available_type(target_text):
            return None
        if not path_utils.is_full_path(target_text):
            target_text = str(Path(services.settings.document_folder) / target_text)
        target_text = path_utils.to_local_path(target_text)
        parent = path_utils.path(target_text)
        if parent and not await fs.confirm_folder_exists(parent):
            return None

        if path_utils.is_remote(source):
            status = await fs.download(str(source), target_text)
            if not 200 <= status < 300:
                _logger.warning("fetch: download of %s returned status %d", source, status)
                return None
        elif path_utils.is_local(source):
            if not await fs.move(source, target_text):
                return None
        else:
            _logger.warning("fetch: unsupported source %s", source)
            return None
        try:
            return await cls.open(target_text, width, height, services=services, temp_folder=temp_folder)
        except PictureConstructionError as exc:
            _logger.warning("fetch: can not open %s: %s", target_text, exc)
        # Hand a moved file back to its owner; a downloaded one is dropped
        if path_utils.is_local(source):
            await fs.move(target_text, path_utils.to_local_path(source))
        else:
            await fs.delete(target_text)
        return None

    async def initialize(self) -> VersionedPicture:
        if self._history:
            return self
        fs = self.services.fs
        if not await fs.confirm_folder_exists(self._temp_folder):
            raise PictureConstructionError(f"Can not create temp folder {self._temp_folder}")
        target = self._new_temp_uri()
        if not await fs.copy(self._source, target):
            raise PictureConstructionError(f"Can not create history for {self._source}")
        width, height = self._initial_size
        self._history = [Version(target, width, height)]
        if width == 0 or height == 0:
            self._schedule_size_probe()
        return self

    # --------- state ---------
    @property
    def length(self) -> int:
        return len(self._history)

    def __len__(self) -> int:
        return len(self._history)

    @property
    def history(self) -> tuple[Version, ...]:
        return tuple(self._history)

    @property
    def width(self) -> int:
        if not self._history:
            return 0
        return self._history[0].width

    @width.setter
    def width(self, value: int) -> None:
        if self._history:
            self._history[0] = self._history[0].with_size(value, self._history[0].height)

    @property
    def height(self) -> int:
        if not self._history:
            return 0
        return self._history[0].height

    @height.setter
    def height(self, value: int) -> None:
        if self._history:
            self._history[0] = self._history[0].with_size(self._history[0].width, value)

    @property
    def uri(self) -> str:
        if self._history:
            return self._history[0].uri
        return self._source

    @property
    def source(self) -> str:
        return self._source

    @property
    def path(self) -> str:
        return path_utils.path(self._source)

    @property
    def file_name(self) -> str:
        return path_utils.file_name(self._source)

    @property
    def ext(self) -> str:
        return path_utils.extension(self._source)

    @property
    def format(self) -> str:
        return self.type_of(self._source)

    @property
    def temp_folder(self) -> str:
        return self._temp_folder

    @staticmethod
    def available_type(file_name: str | Path) -> bool:
        return path_utils.extension(file_name) in IMAGE_TYPES

    @staticmethod
    def type_of(file_name: str | Path) -> str:
        ext = path_utils.extension(file_name)
        if ext not in IMAGE_TYPES:
            return ""
        return "png" if ext == "png" else "jpeg"

    async def exists(self) -> bool:
        return await self.services.fs.exists(self._source)

    def __repr__(self) -> str:
        return f"VersionedPicture({self._source!r}, {self.width}x{self.height}, length={self.length})"

    def _default_temp_folder(self) -> str:
        temp_name = self.services.settings.temp_folder_name
        document_folder = Path(self.services.settings.document_folder).expanduser().resolve(strict=False)
        parent = Path(self._source).expanduser().resolve(strict=False).parent
        if parent.is_relative_to(document_folder):
            return str(Path(path_utils.path(self._source) or ".") / temp_name)
        return str(document_folder / temp_name)

    def _new_temp_uri(self) -> str:
        return str(Path(self._temp_folder) / f"{path_utils.unique_name()}.{self.ext}")

    # --------- size probing ---------
    def _schedule_size_probe(self) -> None:
        if self._size_task is not None and not self._size_task.done():
            return
        self._size_task = asyncio.get_running_loop().create_task(self.calc_size())

    async def calc_size(self) -> bool:
        """Probe the front version's file and record its dimensions."""
        if not self._history:
            return False
        front = self._history[0]
        try:
            width, height = await self.services.size_probe.get_size(front.uri)
        except Exception as exc:
            _logger.warning("calc_size failed for %s: %s", front.uri, exc)
            return False
        # The history may have moved on while the probe was running
        if self._history and self._history[0] is front:
            self._history[0] = front.with_size(width, height)
            return True
        return False

    async def wait_for_size(self) -> None:
        """Wait for a pending background size probe, if any."""
        task = self._size_task
        if task is not None:
            await task

    # --------- editing ---------
    def _fail(self, operation: str, reason: str) -> EditResult:
        _logger.warning("%s failed for %s: %s", operation, self._source, reason)
        return EditResult.failure(reason)

    async def manipulate(self, operations: list[Operation]) -> EditResult:
        """Apply ``operations`` through ImageOps and push the result as the new front.

        The new version is committed only after the canonical file has been
        updated; on any failure the history is left as it was.
        """
        fmt = self.format
        if not fmt:
            return self._fail("manipulate", f"unsupported format {self.ext!r}")
        if not self._history:
            return self._fail("manipulate", "picture has been removed")
        fs = self.services.fs
        front = self._history[0]
        try:
            result = await self.services.image_ops.apply(
                front.uri, list(operations), quality=self.services.settings.compress, format=fmt
            )
        except Exception as exc:
            _logger.warning("manipulate failed for %s: %s, operations: %s", self._source, exc, operations)
            return EditResult.failure(f"image processing failed: {exc}")

        target = self._new_temp_uri()
        if not await fs.move(result.uri, target):
            await fs.delete(result.uri)
            return self._fail("manipulate", "can not keep the processed image")
        if not await fs.copy(target, self._source):
            await fs.delete(target)
            return self._fail("manipulate", "can not update original image")

        self._history.insert(0, Version(target, result.width, result.height))
        if not result.width or not result.height:
            await self.calc_size()
        return EditResult.success(size_changed=not self._history[0].same_size(front))

    async def resize(self, width: Any, height: Any) -> EditResult:
        w, h = _parse_int(width), _parse_int(height)
        if w is None or h is None or w <= 0 or h <= 0:
            return EditResult.failure(f"invalid resize target {width!r}x{height!r}")
        return await self.manipulate([ResizeOp(width=w, height=h)])

    async def rotate(self, angle: Any) -> EditResult:
        degrees = _parse_number(angle)
        if degrees is None or degrees == 0:
            return EditResult.failure(f"invalid rotation angle {angle!r}")
        return await self.manipulate([RotateOp(angle=degrees)])

    async def clockwise(self) -> EditResult:
        return await self.rotate(90)

    async def counter_clockwise(self) -> EditResult:
        return await self.rotate(270)

    async def crop(self, origin_x: Any, origin_y: Any, width: Any, height: Any) -> EditResult:
        x, y = _parse_int(origin_x), _parse_int(origin_y)
        w, h = _parse_int(width), _parse_int(height)
        if x is None or y is None or w is None or h is None or w <= 0 or h <= 0:
            return EditResult.failure(f"invalid crop rectangle {origin_x!r},{origin_y!r} {width!r}x{height!r}")
        return await self.manipulate([CropOp(origin_x=x, origin_y=y, width=w, height=h)])

    async def vertical_flip(self) -> EditResult:
        return await self.manipulate([FlipOp(vertical=True)])

    async def horizontal_flip(self) -> EditResult:
        return await self.manipulate([FlipOp(vertical=False)])

    # --------- history ---------
    async def undo(self) -> EditResult:
        """Drop the front version and restore the canonical file to the next one."""
        if self.length <= 1:
            return EditResult.success()
        fs = self.services.fs
        last, new_front = self._history[0], self._history[1]
        if not await fs.copy(new_front.uri, self._source):
            return self._fail("undo", "can not restore original image")
        self._history.pop(0)
        await fs.delete(last.uri)
        return EditResult.success(size_changed=not last.same_size(new_front))

    async def reset(self) -> EditResult:
        """Jump back to the oldest retained version in one step."""
        if self.length <= 1:
            return EditResult.success()
        fs = self.services.fs
        front, oldest = self._history[0], self._history[-1]
        if not await fs.copy(oldest.uri, self._source):
            return self._fail("reset", "can not restore original image")
        dropped = self._history[:-1]
        self._history = [oldest]
        for item in dropped:
            await fs.delete(item.uri)
        return EditResult.success(size_changed=not oldest.same_size(front))

    async def cleanup(self) -> EditResult:
        """Forget every state but the current one and delete their files."""
        if self.length <= 1:
            return EditResult.success()
        fs = self.services.fs
        dropped = self._history[1:]
        self._history = self._history[:1]
        ok = True
        for item in dropped:
            ok = await fs.delete(item.uri) and ok
        if not ok:
            return EditResult.failure("some history files could not be deleted")
        return EditResult.success()

    async def remove(self) -> VersionedPicture:
        """Delete every version file and the canonical file. The picture is unusable afterwards."""
        fs = self.services.fs
        for item in self._history:
            await fs.delete(item.uri)
        self._history = []
        await fs.delete(self._source)
        return self

    async def copy(self) -> VersionedPicture | None:
        """Duplicate the current content into a sibling file with its own history."""
        fs = self.services.fs
        new_path = str(Path(self.path or ".") / f"{path_utils.unique_name()}.{self.ext}")
        if not await fs.copy(self._source, new_path):
            return None
        try:
            return await VersionedPicture.open(
                new_path, self.width, self.height, services=self.services, temp_folder=self._temp_folder
            )
        except PictureConstructionError as exc:
            _logger.warning("copy failed for %s: %s", self._source, exc)
            await fs.delete(new_path)
            return None

    async def spawn(self) -> VersionedPicture | None:
        """Fork into a working copy carrying the current state and an original reset to its oldest state."""
        picture = await self.copy()
        if picture is not None:
            await self.reset()
        return picture
