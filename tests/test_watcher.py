"""Tests for watching library files."""

from unittest.mock import MagicMock, patch

from watchdog.events import FileCreatedEvent, FileModifiedEvent, FileMovedEvent

from hlsl2mat.diagnostics import DiagnosticSink
from hlsl2mat.library import UpdateReport
from hlsl2mat.models import Include
from hlsl2mat.watcher import LibraryChangeHandler, ProjectWatcher, watched_files


class TestLibraryChangeHandler:
    """Tests for LibraryChangeHandler."""

    def test_events_are_coalesced(self, library, source_path):
        """Test that several events trigger a single update."""
        handler = LibraryChangeHandler(library)
        handler.set_files([source_path])

        assert not handler.poll()
        handler.on_modified(FileModifiedEvent(str(source_path)))
        handler.on_modified(FileModifiedEvent(str(source_path)))
        handler.on_created(FileCreatedEvent(str(source_path)))
        assert handler.poll()
        assert not handler.poll()

    def test_other_files_are_ignored(self, library, source_path):
        handler = LibraryChangeHandler(library)
        handler.set_files([source_path])
        handler.on_modified(FileModifiedEvent(str(source_path.with_name("Other.hlsl"))))
        assert not handler.poll()

    def test_save_by_rename(self, library, source_path):
        """Test that renaming a temporary file over the source counts as a change."""
        handler = LibraryChangeHandler(library)
        handler.set_files([source_path])
        handler.on_moved(FileMovedEvent(str(source_path) + "~", str(source_path)))
        assert handler.poll()


def test_watched_files(project, library, source_path):
    report = UpdateReport(
        library="Noise",
        includes=[
            Include(virtual_path="/Project/Common.ush", disk_path="/shaders/Common.ush"),
            Include(virtual_path="/Engine/Random.ush"),
        ],
    )
    assert [str(p) for p in watched_files(project, library, report)] == [
        str(source_path.resolve()),
        "/shaders/Common.ush",
    ]
    assert watched_files(project, library, None) == [source_path.resolve()]

    library.update_on_include_change = False
    assert watched_files(project, library, report) == [source_path.resolve()]

    library.update_on_file_change = False
    assert watched_files(project, library, report) == []


class TestProjectWatcher:
    """Tests for ProjectWatcher with a mocked observer."""

    def test_start(self, project, source_path):
        """Test that starting updates the libraries and schedules their directory."""
        observer = MagicMock()
        watcher = ProjectWatcher(project, DiagnosticSink(), observer_factory=lambda: observer)

        (report,) = watcher.start()

        assert report.updated == ["Scale", "Pick"]
        observer.start.assert_called_once()
        observer.schedule.assert_called_once_with(
            watcher.handlers["Noise"], path=str(source_path.resolve().parent), recursive=False
        )
        assert watcher.handlers["Noise"].files == {
            str(source_path.resolve()),
            str(source_path.resolve().parent / "Common.ush"),
        }

    def test_tick(self, project, source_path):
        """Test that a change regenerates the library and renews its watches."""
        observer = MagicMock()
        watcher = ProjectWatcher(project, DiagnosticSink(), observer_factory=lambda: observer)
        watcher.start()
        assert watcher.tick() == []

        source_path.write_text(source_path.read_text().replace("Color * Amount", "Color"))
        watcher.handlers["Noise"].on_modified(FileModifiedEvent(str(source_path.resolve())))
        (report,) = watcher.tick()

        assert report.updated == ["Scale"]
        assert report.skipped == ["Pick"]
        observer.unschedule.assert_called_once_with(observer.schedule.return_value)
        assert watcher.tick() == []

    def test_handler_kept_across_updates(self, project, source_path):
        """Test that a library keeps one handler for the lifetime of the watcher."""
        observer = MagicMock()
        watcher = ProjectWatcher(project, DiagnosticSink(), observer_factory=lambda: observer)
        with patch(
            "hlsl2mat.watcher.LibraryChangeHandler", wraps=LibraryChangeHandler
        ) as handler_class:
            watcher.start()
            handler = watcher.handlers["Noise"]
            handler.on_modified(FileModifiedEvent(str(source_path.resolve())))
            watcher.tick()

        handler_class.assert_called_once()
        assert watcher.handlers["Noise"] is handler
        assert observer.schedule.call_args.args[0] is handler

    def test_unwatched_library(self, project, library):
        library.update_on_file_change = False
        library.update_on_include_change = False
        observer = MagicMock()
        watcher = ProjectWatcher(project, DiagnosticSink(), observer_factory=lambda: observer)

        assert watcher.start() == []
        observer.schedule.assert_not_called()

    def test_stop(self, project):
        observer = MagicMock()
        watcher = ProjectWatcher(project, DiagnosticSink(), observer_factory=lambda: observer)
        watcher.stop()
        observer.stop.assert_called_once()
        observer.join.assert_called_once()
