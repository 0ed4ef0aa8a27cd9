"""
Tests for PictureRegistry: index loading, self-healing, selection and sweeps.
"""
from __future__ import annotations

import asyncio
import json
from pathlib import Path
from unittest.mock import AsyncMock, patch

import pytest

from imagekit.application.picture_registry import PictureRegistry
from imagekit.domain.entities.edit_result import EditResult
from imagekit.domain.entities.lookup import ByName, ByPosition, ByUri
from imagekit.domain.errors import RegistryInitError


@pytest.fixture()
def folder(settings) -> Path:
    return Path(settings.document_folder) / "images"


@pytest.fixture()
def three_images(folder, make_image) -> list[Path]:
    return [
        make_image("a.png", 8, 6, folder=folder),
        make_image("b.jpg", 10, 4, folder=folder),
        make_image("c.png", 3, 3, folder=folder),
    ]


def _read_index(folder: Path) -> list[dict]:
    return json.loads((folder / "list.json").read_text())


def _open(services, folder="images") -> PictureRegistry:
    return asyncio.run(PictureRegistry.open(folder, services=services))


class TestInitialization:
    """Loading and rebuilding the index."""

    def test_rebuilds_index_from_folder(self, services, folder, three_images, make_image):
        make_image("notes.png", folder=folder / "sub.png")
        (folder / "readme.txt").write_text("not an image")

        registry = _open(services)

        assert len(registry) == 3
        assert registry.map(lambda p: p.file_name) == ["a.png", "b.jpg", "c.png"]
        assert _read_index(folder) == [
            {"fileName": "a.png", "width": 8, "height": 6},
            {"fileName": "b.jpg", "width": 10, "height": 4},
            {"fileName": "c.png", "width": 3, "height": 3},
        ]
        assert registry.current_index == 0

    def test_relative_folder_resolves_under_document_folder(self, services, settings):
        registry = _open(services, "albums/trip")
        assert registry.folder == str(Path(settings.document_folder) / "albums" / "trip")
        assert Path(registry.temp_folder).is_dir()
        assert _read_index(Path(registry.folder)) == []

    def test_absolute_folder_is_used_as_given(self, services, tmp_path):
        registry = _open(services, tmp_path / "abs")
        assert registry.folder == str(tmp_path / "abs")

    def test_loads_valid_index_in_stored_order(self, services, folder, three_images):
        (folder / "list.json").write_text(
            json.dumps(
                [
                    {"fileName": "c.png", "width": 30, "height": 30},
                    {"fileName": "a.png", "width": 80, "height": 60},
                ]
            )
        )

        registry = _open(services)

        # stored sizes are trusted, files not listed are ignored
        assert registry.map(lambda p: (p.file_name, p.width, p.height)) == [
            ("c.png", 30, 30),
            ("a.png", 80, 60),
        ]

    @pytest.mark.parametrize(
        "content",
        [
            json.dumps([{"fileName": "a.png", "width": 8, "height": 6}, {"fileName": "gone.png"}]),
            json.dumps([{"fileName": "readme.txt", "width": 1, "height": 1}]),
            json.dumps([{"fileName": "a.png", "width": -1, "height": 6}]),
            json.dumps({"fileName": "a.png"}),
            "[{broken",
            "",
        ],
    )
    def test_bad_index_triggers_rebuild(self, services, folder, three_images, content):
        (folder / "readme.txt").write_text("not an image")
        (folder / "list.json").write_text(content)

        registry = _open(services)

        assert registry.map(lambda p: p.file_name) == ["a.png", "b.jpg", "c.png"]
        assert [e["fileName"] for e in _read_index(folder)] == ["a.png", "b.jpg", "c.png"]

    def test_duplicate_index_entry_triggers_rebuild(self, services, folder, three_images):
        (folder / "list.json").write_text(
            json.dumps(
                [
                    {"fileName": "a.png", "width": 8, "height": 6},
                    {"fileName": "a.png", "width": 8, "height": 6},
                ]
            )
        )

        registry = _open(services)

        assert registry.map(lambda p: p.file_name) == ["a.png", "b.jpg", "c.png"]
        asyncio.run(registry.remove(0))
        assert all(asyncio.run(p.exists()) for p in registry)
        assert [e["fileName"] for e in _read_index(folder)] == ["b.jpg", "c.png"]

    def test_leftover_temp_files_are_cleared(self, services, settings, folder, three_images):
        leftover = folder / settings.temp_folder_name / "stale.png"
        leftover.parent.mkdir(parents=True)
        leftover.write_bytes(b"stale")

        registry = _open(services)

        assert not leftover.exists()
        assert len(list(Path(registry.temp_folder).iterdir())) == 3

    def test_pictures_share_registry_temp_folder(self, services, three_images):
        registry = _open(services)
        assert {p.temp_folder for p in registry} == {registry.temp_folder}

    def test_folder_taken_by_file_raises(self, services, folder):
        folder.parent.mkdir(parents=True)
        folder.write_text("")
        with pytest.raises(RegistryInitError):
            _open(services)

    def test_temp_folder_taken_by_file_raises(self, services, settings, folder):
        folder.mkdir(parents=True)
        (folder / settings.temp_folder_name).write_text("")
        with pytest.raises(RegistryInitError):
            _open(services)


class TestSelection:
    """Cursor movement and lookups."""

    def test_empty_registry(self, services):
        registry = _open(services)
        assert registry.current is None
        assert registry.current_index == -1
        assert registry.next() is None
        assert registry.prev() is None
        assert registry.get(0) is None
        assert asyncio.run(registry.remove()) is None
        assert asyncio.run(registry.resize(2, 2)) is None
        assert asyncio.run(registry.spawn()) is None

    def test_next_and_prev_wrap_around(self, services, three_images):
        registry = _open(services)
        assert registry.prev().file_name == "c.png"
        assert registry.next().file_name == "a.png"
        assert registry.next().file_name == "b.jpg"
        assert registry.current_index == 1

    def test_out_of_range_index_is_ignored(self, services, three_images):
        registry = _open(services)
        registry.current_index = 2
        registry.current_index = 3
        registry.current_index = -1
        assert registry.current_index == 2
        assert registry.current.file_name == "c.png"

    def test_lookups(self, services, folder, three_images):
        registry = _open(services)
        b_uri = str(folder / "b.jpg")

        assert registry.get(1).file_name == "b.jpg"
        assert registry.get(ByPosition(5)) is None
        assert registry.get(b_uri).file_name == "b.jpg"
        assert registry.get(ByUri("file://" + b_uri)).file_name == "b.jpg"
        assert registry.get_index("somewhere/else/c.png") == 2
        assert registry.get(ByName("a.png")).file_name == "a.png"
        assert registry.get_index(ByName("zzz.png")) == -1
        assert registry.get_index() == 0
        assert registry.find_by_uri(b_uri) is registry.get(1)
        assert registry.find_index(lambda p: p.width == 3) == 2
        assert registry.find(lambda p: p.width == 99) is None
        with pytest.raises(TypeError):
            registry.get(True)

    def test_iteration_is_a_snapshot(self, services, three_images):
        registry = _open(services)
        items = registry.items
        assert [p.file_name for p in registry] == [p.file_name for p in items]
        assert registry.length == 3


class TestMutations:
    """Membership changes keep the index in sync."""

    def test_insert_puts_picture_in_front(self, services, folder, three_images, make_image, tmp_path):
        source = make_image(tmp_path / "inbox" / "new.PNG", 5, 5)
        registry = _open(services)
        registry.current_index = 2

        picture = asyncio.run(registry.insert(source))

        assert picture is not None
        assert registry.get(0) is picture
        assert picture.file_name != "new.PNG"
        assert picture.ext == "png"
        assert Path(picture.source).parent == folder
        assert not source.exists()
        index = _read_index(folder)
        assert index[0] == {"fileName": picture.file_name, "width": 5, "height": 5}
        assert len(index) == 4

    def test_insert_rejects_unsupported_type(self, services, tmp_path):
        source = tmp_path / "doc.pdf"
        source.write_bytes(b"%PDF")
        registry = _open(services)
        assert asyncio.run(registry.insert(source)) is None
        assert source.exists()
        assert len(registry) == 0

    def test_insert_missing_source(self, services, tmp_path):
        registry = _open(services)
        assert asyncio.run(registry.insert(tmp_path / "missing.png")) is None
        assert len(registry) == 0

    def test_insert_puts_source_back_when_history_can_not_start(self, services, folder, make_image, tmp_path):
        source = make_image(tmp_path / "inbox" / "new.png", 5, 5)
        registry = _open(services)

        with patch.object(services.fs, "copy", AsyncMock(return_value=False)):
            assert asyncio.run(registry.insert(source)) is None

        assert source.exists()
        assert [p.name for p in folder.iterdir() if p.is_file() and p.suffix == ".png"] == []
        assert len(registry) == 0
        assert _read_index(folder) == []

    def test_remove_moves_cursor_back(self, services, folder, three_images):
        registry = _open(services)
        registry.current_index = 2

        removed = asyncio.run(registry.remove(0))

        assert removed.file_name == "a.png"
        assert removed.length == 0
        assert not (folder / "a.png").exists()
        assert registry.current_index == 1
        assert registry.current.file_name == "c.png"
        assert [e["fileName"] for e in _read_index(folder)] == ["b.jpg", "c.png"]

    def test_remove_current_and_after_cursor(self, services, three_images):
        registry = _open(services)
        registry.current_index = 1

        assert asyncio.run(registry.remove(2)).file_name == "c.png"
        assert registry.current_index == 1
        assert asyncio.run(registry.remove()).file_name == "b.jpg"
        assert registry.current_index == 0
        assert asyncio.run(registry.remove()).file_name == "a.png"
        assert registry.current_index == -1
        assert asyncio.run(registry.remove(ByName("a.png"))) is None

    def test_check_drops_vanished_files(self, services, folder, three_images):
        registry = _open(services)
        (folder / "b.jpg").unlink()

        removed = asyncio.run(registry.check())

        assert [p.file_name for p in removed] == ["b.jpg"]
        assert registry.map(lambda p: p.file_name) == ["a.png", "c.png"]
        assert [e["fileName"] for e in _read_index(folder)] == ["a.png", "c.png"]

    def test_check_refreshes_sizes(self, services, folder, three_images):
        registry = _open(services)
        picture = registry.get(ByName("a.png"))
        picture.width = 0
        picture.height = 0

        assert asyncio.run(registry.check()) == []

        assert (picture.width, picture.height) == (8, 6)
        assert _read_index(folder)[0] == {"fileName": "a.png", "width": 8, "height": 6}

    def test_spawn_adds_working_copy_in_front(self, services, folder, three_images):
        registry = _open(services)
        registry.current_index = 1

        async def run():
            await registry.resize(5, 2)
            return await registry.spawn()

        spawned = asyncio.run(run())

        assert spawned is not None
        assert registry.current_index == 0
        assert registry.current is spawned
        assert (spawned.width, spawned.height) == (5, 2)
        original = registry.get(ByName("b.jpg"))
        assert (original.width, original.height, original.length) == (10, 4, 1)
        assert len(_read_index(folder)) == 4

    def test_edit_current_persists_new_size(self, services, folder, three_images):
        registry = _open(services)

        async def run():
            result = await registry.resize(4, 3)
            assert result.ok and result.size_changed
            assert _read_index(folder)[0] == {"fileName": "a.png", "width": 4, "height": 3}
            assert (await registry.vertical_flip()).same_size
            assert (await registry.undo()).same_size
            assert (await registry.undo()).size_changed

        asyncio.run(run())
        assert _read_index(folder)[0] == {"fileName": "a.png", "width": 8, "height": 6}

    def test_reset_sweep_reports_partial_failure(self, services, three_images):
        registry = _open(services)
        first, second, third = registry.items

        async def run():
            for picture in registry:
                await picture.clockwise()
            with patch.object(second, "reset", AsyncMock(return_value=EditResult.failure("disk full"))):
                return await registry.reset()

        assert asyncio.run(run()) is False
        assert (first.length, second.length, third.length) == (1, 2, 1)

    def test_cleanup_sweep(self, services, three_images):
        registry = _open(services)

        async def run():
            for picture in registry:
                await picture.vertical_flip()
                await picture.horizontal_flip()
            return await registry.cleanup()

        assert asyncio.run(run()) is True
        assert registry.map(len) == [1, 1, 1]

    def test_clear_temp_folder(self, services, three_images):
        registry = _open(services)
        assert asyncio.run(registry.clear_temp_folder())
        assert list(Path(registry.temp_folder).iterdir()) == []
