from __future__ import annotations

from collections.abc import Callable, Iterator
from pathlib import Path
from typing import Any, TypeVar

from pydantic import ValidationError

from imagekit.application.dtos.index_dto import IndexEntry, IndexFile, dump_index
from imagekit.application.versioned_picture import VersionedPicture
from imagekit.domain.entities.edit_result import EditResult
from imagekit.domain.entities.lookup import ByName, ByPosition, ByUri, LookupKey, lookup_key
from imagekit.domain.errors import PictureConstructionError, RegistryInitError
from imagekit.infrastructure.dependencies import PictureServices, get_picture_services
from imagekit.infrastructure.logger import get_logger
from imagekit.infrastructure.storage import path_utils

_logger = get_logger("picture_registry")

T = TypeVar("T")


class PictureRegistry:
    """Ordered, selectable collection of pictures stored in one folder.

    The folder holds the canonical image files, a private temp folder shared
    by the pictures' histories, and an index file listing the pictures in
    display order. The index is rewritten after every change to membership,
    order, or recorded dimensions; when it is missing or disagrees with the
    folder it is rebuilt from a directory scan.

    Build one with ``await PictureRegistry.open(folder)``.
    """

    def __init__(self, folder: str | Path = "images", *, services: PictureServices | None = None) -> None:
        self.services = services or get_picture_services()
        folder_path = Path(path_utils.to_local_path(folder))
        if not folder_path.is_absolute():
            folder_path = Path(self.services.settings.document_folder) / folder_path
        self._folder = str(folder_path)
        self._list: list[VersionedPicture] = []
        self._current_index = 0

    @classmethod
    async def open(
        cls, folder: str | Path = "images", *, services: PictureServices | None = None
    ) -> PictureRegistry:
        registry = cls(folder, services=services)
        await registry.initialize()
        return registry

    # --------- folder layout ---------
    @property
    def folder(self) -> str:
        return self._folder

    @property
    def temp_folder(self) -> str:
        return str(Path(self._folder) / self.services.settings.temp_folder_name)

    @property
    def index_uri(self) -> str:
        return str(Path(self._folder) / self.services.settings.index_file_name)

    def _uri_of(self, file_name: str) -> str:
        return str(Path(self._folder) / file_name)

    async def initialize(self) -> None:
        """Prepare the folder and load or rebuild the index.

        Must complete before any other operation. Leftover files in the temp
        folder belong to a previous session and are deleted.
        """
        fs = self.services.fs
        if not await fs.confirm_folder_exists(self._folder):
            raise RegistryInitError(f"Can not use folder {self._folder}")
        if not await fs.confirm_folder_exists(self.temp_folder):
            raise RegistryInitError(f"Can not use folder {self.temp_folder}")
        await fs.clear_folder(self.temp_folder)
        if await fs.exists(self.index_uri) and await self._read_index():
            _logger.debug("loaded %d picture(s) from %s", len(self._list), self.index_uri)
            return
        await self._rebuild_index()

    async def clear_temp_folder(self) -> bool:
        return await self.services.fs.clear_folder(self.temp_folder)

    # --------- index ---------
    async def write_index(self) -> bool:
        entries = [IndexEntry(file_name=item.file_name, width=item.width, height=item.height) for item in self._list]
        return await self.services.fs.write_json(self.index_uri, dump_index(entries))

    async def _read_index(self) -> bool:
        """Load the index. Any unusable entry rejects the whole file."""
        fs = self.services.fs
        raw = await fs.read_json(self.index_uri)
        if raw is None:
            _logger.info("index %s is unreadable, rebuilding", self.index_uri)
            return False
        try:
            entries = IndexFile.validate_python(raw)
        except ValidationError as exc:
            _logger.info("index %s does not match the schema, rebuilding: %s", self.index_uri, exc)
            return False
        seen: set[str] = set()
        for entry in entries:
            # Each canonical file belongs to exactly one picture
            if entry.file_name in seen:
                _logger.info("index lists %s twice, rebuilding", entry.file_name)
                return False
            seen.add(entry.file_name)
            if not VersionedPicture.available_type(entry.file_name):
                _logger.info("index lists unsupported file %s, rebuilding", entry.file_name)
                return False
            if not await fs.exists(self._uri_of(entry.file_name)):
                _logger.info("index lists missing file %s, rebuilding", entry.file_name)
                return False

        pictures: list[VersionedPicture] = []
        try:
            for entry in entries:
                pictures.append(await self._open_picture(self._uri_of(entry.file_name), entry.width, entry.height))
        except PictureConstructionError as exc:
            _logger.info("index entry can not be opened, rebuilding: %s", exc)
            await self._discard(pictures)
            return False
        self._list = pictures
        self._current_index = 0
        return True

    async def _rebuild_index(self) -> None:
        fs = self.services.fs
        pictures: list[VersionedPicture] = []
        names = await fs.list_directory(self._folder)
        for name in names or []:
            uri = self._uri_of(name)
            if not VersionedPicture.available_type(name) or await fs.is_directory(uri):
                continue
            try:
                pictures.append(await self._open_picture(uri))
            except PictureConstructionError as exc:
                _logger.warning("skipping %s: %s", uri, exc)
        for picture in pictures:
            await picture.wait_for_size()
        self._list = pictures
        self._current_index = 0
        await self.write_index()
        _logger.info("rebuilt index %s with %d picture(s)", self.index_uri, len(pictures))

    async def _open_picture(self, uri: str, width: Any = 0, height: Any = 0) -> VersionedPicture:
        return await VersionedPicture.open(uri, width, height, services=self.services, temp_folder=self.temp_folder)

    async def _discard(self, pictures: list[VersionedPicture]) -> None:
        # Drop only the temp copies; the canonical files stay for the rescan
        for picture in pictures:
            for version in picture.history:
                await self.services.fs.delete(version.uri)

    # --------- selection ---------
    def __len__(self) -> int:
        return len(self._list)

    def __iter__(self) -> Iterator[VersionedPicture]:
        return iter(list(self._list))

    @property
    def length(self) -> int:
        return len(self._list)

    @property
    def items(self) -> tuple[VersionedPicture, ...]:
        return tuple(self._list)

    def map(self, func: Callable[[VersionedPicture], T]) -> list[T]:
        return [func(item) for item in self._list]

    @property
    def current_index(self) -> int:
        if not self._list:
            return -1
        return self._current_index

    @current_index.setter
    def current_index(self, idx: int) -> None:
        # Out-of-range positions leave the cursor where it was
        if 0 <= idx < len(self._list):
            self._current_index = idx

    @property
    def current(self) -> VersionedPicture | None:
        if not self._list:
            return None
        return self._list[self._current_index]

    def next(self) -> VersionedPicture | None:
        if not self._list:
            return None
        idx = self._current_index + 1
        self.current_index = 0 if idx >= len(self._list) else idx
        return self.current

    def prev(self) -> VersionedPicture | None:
        if not self._list:
            return None
        idx = self._current_index - 1
        self.current_index = len(self._list) - 1 if idx < 0 else idx
        return self.current

    # --------- lookup ---------
    def find(self, predicate: Callable[[VersionedPicture], bool]) -> VersionedPicture | None:
        return next((item for item in self._list if predicate(item)), None)

    def find_index(self, predicate: Callable[[VersionedPicture], bool]) -> int:
        return next((i for i, item in enumerate(self._list) if predicate(item)), -1)

    def find_by_name(self, file_name: str) -> VersionedPicture | None:
        return self.find(lambda item: item.file_name == file_name)

    def find_index_by_name(self, file_name: str) -> int:
        return self.find_index(lambda item: item.file_name == file_name)

    def find_by_uri(self, uri: str) -> VersionedPicture | None:
        return self.find(lambda item: item.source == uri)

    def find_index_by_uri(self, uri: str) -> int:
        return self.find_index(lambda item: item.source == uri)

    def get_index(self, key: LookupKey | int | str | None = None) -> int:
        """Resolve ``key`` to a position, -1 when nothing matches. None means the current picture."""
        if key is None:
            return self.current_index
        key = lookup_key(key)
        if isinstance(key, ByPosition):
            return key.index if 0 <= key.index < len(self._list) else -1
        if isinstance(key, ByUri):
            idx = self.find_index_by_uri(path_utils.to_local_path(key.uri))
            if idx < 0:
                idx = self.find_index_by_name(path_utils.file_name(key.uri))
            return idx
        if isinstance(key, ByName):
            return self.find_index_by_name(key.file_name)
        return -1

    def get(self, key: LookupKey | int | str) -> VersionedPicture | None:
        idx = self.get_index(key)
        if idx < 0:
            return None
        return self._list[idx]

    # --------- membership ---------
    async def insert(self, source: str | Path, width: Any = 0, height: Any = 0) -> VersionedPicture | None:
        """Import ``source`` under a fresh name and put it at the front."""
        if not VersionedPicture.available_type(source):
            return None
        target = self._uri_of(f"{path_utils.unique_name()}.{path_utils.extension(source)}")
        picture = await VersionedPicture.fetch(
            source, width, height, target, services=self.services, temp_folder=self.temp_folder
        )
        if picture is None:
            return None
        await picture.wait_for_size()
        self._list.insert(0, picture)
        await self.write_index()
        return picture

    async def remove(self, key: LookupKey | int | str | None = None) -> VersionedPicture | None:
        idx = self.get_index(key)
        if idx < 0:
            return None
        picture = self._list[idx]
        await picture.remove()
        del self._list[idx]
        if idx <= self._current_index and self._current_index > 0:
            self._current_index -= 1
        await self.write_index()
        return picture

    async def spawn(self) -> VersionedPicture | None:
        current = self.current
        if current is None:
            return None
        picture = await current.spawn()
        if picture is None:
            _logger.warning("spawn failed for %s", current.source)
            return None
        self._list.insert(0, picture)
        self._current_index = 0
        await self.write_index()
        return picture

    async def check(self) -> list[VersionedPicture]:
        """Drop pictures whose canonical file vanished from the folder."""
        ghosts: list[VersionedPicture] = []
        for item in self._list:
            present = await item.exists()
            if present:
                await item.calc_size()
            else:
                ghosts.append(item)
            _logger.debug("check: %s present=%s", item.file_name, present)
        removed: list[VersionedPicture] = []
        for ghost in ghosts:
            picture = await self.remove(ByUri(ghost.source))
            if picture is not None:
                removed.append(picture)
        if not removed:
            await self.write_index()
        return removed

    async def reset(self) -> bool:
        ok = True
        for item in self._list:
            if not (await item.reset()).ok:
                ok = False
        await self.write_index()
        return ok

    async def cleanup(self) -> bool:
        ok = True
        for item in self._list:
            if not (await item.cleanup()).ok:
                ok = False
        await self.write_index()
        return ok

    # --------- editing the current picture ---------
    async def _edit_current(self, verb: str, *args: Any) -> EditResult | None:
        current = self.current
        if current is None:
            return None
        result: EditResult = await getattr(current, verb)(*args)
        if result.size_changed:
            await self.write_index()
        return result

    async def undo(self) -> EditResult | None:
        return await self._edit_current("undo")

    async def resize(self, width: Any, height: Any) -> EditResult | None:
        return await self._edit_current("resize", width, height)

    async def rotate(self, angle: Any) -> EditResult | None:
        return await self._edit_current("rotate", angle)

    async def clockwise(self) -> EditResult | None:
        return await self._edit_current("clockwise")

    async def counter_clockwise(self) -> EditResult | None:
        return await self._edit_current("counter_clockwise")

    async def crop(self, origin_x: Any, origin_y: Any, width: Any, height: Any) -> EditResult | None:
        return await self._edit_current("crop", origin_x, origin_y, width, height)

    async def vertical_flip(self) -> EditResult | None:
        return await self._edit_current("vertical_flip")

    async def horizontal_flip(self) -> EditResult | None:
        return await self._edit_current("horizontal_flip")
