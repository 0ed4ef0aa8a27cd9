import asyncio
from pathlib import Path
from unittest.mock import patch

from imagekit.infrastructure.storage.path_fs import PathFS


def test_copy_move_delete(tmp_path: Path):
    fs = PathFS()
    src = tmp_path / "a.txt"
    src.write_text("hello")

    async def run():
        assert await fs.copy(src, tmp_path / "b.txt")
        assert await fs.move(tmp_path / "b.txt", tmp_path / "c.txt")
        assert not await fs.exists(tmp_path / "b.txt")
        assert (tmp_path / "c.txt").read_text() == "hello"
        assert await fs.delete(tmp_path / "c.txt")
        # deleting twice is fine
        assert await fs.delete(tmp_path / "c.txt")

    asyncio.run(run())
    assert src.exists()


def test_copy_missing_source_returns_false(tmp_path: Path):
    fs = PathFS()
    assert asyncio.run(fs.copy(tmp_path / "missing.png", tmp_path / "x.png")) is False


def test_confirm_folder_exists(tmp_path: Path):
    fs = PathFS()
    blocker = tmp_path / "taken"
    blocker.write_text("")

    async def run():
        assert await fs.confirm_folder_exists(tmp_path / "new" / "nested")
        assert await fs.confirm_folder_exists(tmp_path / "new")
        assert not await fs.confirm_folder_exists(blocker)

    asyncio.run(run())
    assert (tmp_path / "new" / "nested").is_dir()


def test_list_and_clear_folder(tmp_path: Path):
    fs = PathFS()
    folder = tmp_path / "box"
    (folder / "sub").mkdir(parents=True)
    (folder / "b.png").write_bytes(b"b")
    (folder / "a.png").write_bytes(b"a")
    (folder / "sub" / "c.png").write_bytes(b"c")

    async def run():
        assert await fs.list_directory(folder) == ["a.png", "b.png", "sub"]
        assert await fs.clear_folder(folder)
        assert await fs.list_directory(folder) == []
        assert await fs.list_directory(tmp_path / "nope") is None
        assert not await fs.clear_folder(tmp_path / "nope")

    asyncio.run(run())
    assert folder.is_dir()


def test_json_round_trip_and_bad_json(tmp_path: Path):
    fs = PathFS()
    target = tmp_path / "list.json"

    async def run():
        assert await fs.write_json(target, [{"fileName": "a.png", "width": 1, "height": 2}])
        assert await fs.read_json(target) == [{"fileName": "a.png", "width": 1, "height": 2}]
        target.write_text("{not json")
        assert await fs.read_json(target) is None
        assert await fs.read_json(tmp_path / "missing.json") is None

    asyncio.run(run())


def test_download_failure_returns_zero_and_cleans_up(tmp_path: Path):
    fs = PathFS(download_timeout=1)
    target = tmp_path / "remote.png"
    with patch("urllib.request.urlopen", side_effect=OSError("unreachable")):
        status = asyncio.run(fs.download("https://example.invalid/a.png", target))
    assert status == 0
    assert not target.exists()


def test_static_helpers_are_exposed():
    assert PathFS.file_name("/x/y.png") == "y.png"
    assert PathFS.extension("y.JPEG") == "jpeg"
    assert PathFS.is_remote("https://a/b.png")
