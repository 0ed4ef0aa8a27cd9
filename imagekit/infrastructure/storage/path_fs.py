from __future__ import annotations

import asyncio
import http.client
import json
import shutil
import urllib.request
from pathlib import Path
from typing import Any

from imagekit.infrastructure.logger import get_logger
from imagekit.infrastructure.storage import path_utils

_logger = get_logger("path_fs")


class PathFS:
    """Async filesystem adapter for local picture storage.

    Blocking calls run in a worker thread. Mutating methods report success as a
    boolean and log OS errors instead of raising, so callers can turn a failed
    step into a recoverable result.
    """

    file_name = staticmethod(path_utils.file_name)
    path = staticmethod(path_utils.path)
    extension = staticmethod(path_utils.extension)
    pure_file_name = staticmethod(path_utils.pure_file_name)
    is_full_path = staticmethod(path_utils.is_full_path)
    is_file_name_only = staticmethod(path_utils.is_file_name_only)
    is_remote = staticmethod(path_utils.is_remote)
    is_local = staticmethod(path_utils.is_local)
    to_local_path = staticmethod(path_utils.to_local_path)
    unique_name = staticmethod(path_utils.unique_name)

    def __init__(self, download_timeout: float = 60.0) -> None:
        self.download_timeout = download_timeout

    @staticmethod
    def _local(uri: str | Path) -> Path:
        return Path(path_utils.to_local_path(uri))

    async def exists(self, uri: str | Path) -> bool:
        try:
            return await asyncio.to_thread(self._local(uri).exists)
        except OSError as exc:
            _logger.warning("exists failed for %s: %s", uri, exc)
            return False

    async def is_directory(self, uri: str | Path) -> bool:
        try:
            return await asyncio.to_thread(self._local(uri).is_dir)
        except OSError as exc:
            _logger.warning("is_directory failed for %s: %s", uri, exc)
            return False

    async def copy(self, src: str | Path, target: str | Path) -> bool:
        src_path, target_path = self._local(src), self._local(target)
        try:
            await asyncio.to_thread(shutil.copyfile, src_path, target_path)
            _logger.debug("copy success: %s -> %s", src_path, target_path)
            return True
        except OSError as exc:
            _logger.warning("copy failed: %s -> %s, error: %s", src_path, target_path, exc)
            return False

    async def move(self, src: str | Path, target: str | Path) -> bool:
        src_path, target_path = self._local(src), self._local(target)
        try:
            await asyncio.to_thread(shutil.move, str(src_path), str(target_path))
            _logger.debug("move success: %s -> %s", src_path, target_path)
            return True
        except OSError as exc:
            _logger.warning("move failed: %s -> %s, error: %s", src_path, target_path, exc)
            return False

    async def delete(self, uri: str | Path) -> bool:
        """Delete a file or directory tree. A missing path counts as deleted."""
        target = self._local(uri)

        def _delete() -> None:
            if target.is_dir() and not target.is_symlink():
                shutil.rmtree(target)
            else:
                target.unlink(missing_ok=True)

        try:
            await asyncio.to_thread(_delete)
            return True
        except OSError as exc:
            _logger.warning("delete failed for %s: %s", target, exc)
            return False

    async def make_directory(self, uri: str | Path) -> bool:
        try:
            await asyncio.to_thread(self._local(uri).mkdir, parents=True, exist_ok=True)
            return True
        except OSError as exc:
            _logger.warning("make_directory failed for %s: %s", uri, exc)
            return False

    async def confirm_folder_exists(self, uri: str | Path) -> bool:
        """Make sure ``uri`` is a usable directory, creating it when absent.

        Returns False when the path is taken by a regular file.
        """
        if await self.exists(uri):
            if await self.is_directory(uri):
                return True
            _logger.warning("%s exists but is not a folder", uri)
            return False
        await self.make_directory(uri)
        return await self.is_directory(uri)

    async def list_directory(self, uri: str | Path) -> list[str] | None:
        folder = self._local(uri)
        try:
            names = await asyncio.to_thread(lambda: sorted(p.name for p in folder.iterdir()))
        except OSError as exc:
            _logger.warning("list_directory failed for %s: %s", folder, exc)
            return None
        return names

    async def clear_folder(self, uri: str | Path) -> bool:
        """Delete every entry inside ``uri`` but keep the folder itself."""
        if not await self.is_directory(uri):
            _logger.warning("clear_folder: %s is not a folder", uri)
            return False
        names = await self.list_directory(uri)
        if names is None:
            return False
        ok = True
        for name in names:
            if not await self.delete(self._local(uri) / name):
                _logger.warning("clear_folder: %s can not be deleted", name)
                ok = False
        return ok

    async def download(self, src: str, target: str | Path) -> int:
        """Fetch a remote uri into ``target``. Returns the HTTP status, 0 on failure."""
        target_path = self._local(target)

        def _download() -> int:
            req = urllib.request.Request(src, headers={"User-Agent": "imagekit"})
            with urllib.request.urlopen(req, timeout=self.download_timeout) as resp, open(
                target_path, "wb"
            ) as out:
                shutil.copyfileobj(resp, out)
                return int(getattr(resp, "status", 200))

        try:
            status = await asyncio.to_thread(_download)
            _logger.debug("download %s -> %s status=%d", src, target_path, status)
            return status
        except (OSError, ValueError, http.client.HTTPException) as exc:
            _logger.warning("download failed: %s -> %s, error: %s", src, target_path, exc)
            await self.delete(target_path)
            return 0

    async def read_text(self, uri: str | Path) -> str | None:
        try:
            return await asyncio.to_thread(self._local(uri).read_text, encoding="utf-8")
        except (OSError, UnicodeDecodeError) as exc:
            _logger.warning("read_text failed for %s: %s", uri, exc)
            return None

    async def write_text(self, uri: str | Path, data: str) -> bool:
        try:
            await asyncio.to_thread(self._local(uri).write_text, data, encoding="utf-8")
            return True
        except OSError as exc:
            _logger.warning("write_text failed for %s: %s", uri, exc)
            return False

    async def read_json(self, uri: str | Path) -> Any | None:
        text = await self.read_text(uri)
        if not text:
            return None
        try:
            return json.loads(text)
        except json.JSONDecodeError as exc:
            _logger.warning("read_json failed for %s: %s", uri, exc)
            return None

    async def write_json(self, uri: str | Path, obj: Any) -> bool:
        return await self.write_text(uri, json.dumps(obj, indent=2))
