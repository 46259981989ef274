"""
File watching for libraries that update on change.

Each library gets one handler that tracks the files it depends on. Bursts of
filesystem events only raise a flag, which is consumed on the next poll so
that an editor saving several times regenerates the library once. The set of
watched files is refreshed after each update since the includes may change.
"""

import os
import time
from collections.abc import Callable
from pathlib import Path
from typing import Any

import watchdog.events
import watchdog.observers
from loguru import logger
from watchdog.events import FileSystemEventHandler

from hlsl2mat.diagnostics import DiagnosticSink
from hlsl2mat.library import UpdateReport, project_store, update_library
from hlsl2mat.settings import LibraryConfig, ProjectConfig


class LibraryChangeHandler(FileSystemEventHandler):  # type: ignore
    """Event handler flagging a library when one of its files changes."""

    def __init__(self, library: LibraryConfig):
        self.library = library
        self.files: set[str] = set()
        self.needs_update = False

    def set_files(self, paths: list[str | Path]) -> None:
        self.files = {os.path.abspath(path) for path in paths}

    def _handle(self, path: str | bytes) -> None:
        path = os.path.abspath(os.fsdecode(path))
        if path in self.files:
            logger.info(f"Detected changes in {path}")
            self.needs_update = True

    def on_modified(self, event: watchdog.events.FileSystemEvent) -> None:
        self._handle(event.src_path)

    def on_created(self, event: watchdog.events.FileSystemEvent) -> None:
        self._handle(event.src_path)

    def on_moved(self, event: watchdog.events.FileSystemEvent) -> None:
        # Editors often save by renaming a temporary file over the original
        self._handle(event.dest_path)

    def poll(self) -> bool:
        """Consume the pending update flag."""
        if self.needs_update:
            self.needs_update = False
            return True
        return False


def watched_files(
    project: ProjectConfig, library: LibraryConfig, report: UpdateReport | None
) -> list[Path]:
    """Files whose changes trigger an update of a library."""
    files: list[Path] = []
    if library.update_on_file_change:
        files.append(project.source_path(library).resolve())
    if library.update_on_include_change and report is not None:
        files.extend(Path(i.disk_path) for i in report.includes if i.disk_path)
    return files


class ProjectWatcher:
    """Regenerates the libraries of a project when their files change."""

    def __init__(
        self,
        project: ProjectConfig,
        diagnostics: DiagnosticSink,
        observer_factory: Callable[[], Any] = watchdog.observers.Observer,
    ):
        self.project = project
        self.diagnostics = diagnostics
        self.observer = observer_factory()
        self.handlers: dict[str, LibraryChangeHandler] = {}
        self.watches: dict[str, list[Any]] = {}

    def refresh(self, library: LibraryConfig, report: UpdateReport | None) -> None:
        """Re-establish the watches of a library after an update."""
        if library.name not in self.handlers:
            self.handlers[library.name] = LibraryChangeHandler(library)
        handler = self.handlers[library.name]
        for watch in self.watches.pop(library.name, []):
            self.observer.unschedule(watch)

        files = watched_files(self.project, library, report)
        handler.set_files(files)

        # Watch directories, not the files themselves
        directories = sorted({str(path.parent) for path in files if path.parent.is_dir()})
        self.watches[library.name] = [
            self.observer.schedule(handler, path=directory, recursive=False)
            for directory in directories
        ]
        logger.debug(f"Watching {len(files)} files for {library.name}")

    def update(self, library: LibraryConfig) -> UpdateReport:
        report = update_library(
            library, self.project, project_store(self.project, library), self.diagnostics
        )
        self.refresh(library, report)
        return report

    def start(self) -> list[UpdateReport]:
        """Update every watched library once, then start the observer."""
        reports = [
            self.update(library)
            for library in self.project.libraries
            if library.update_on_file_change or library.update_on_include_change
        ]
        self.observer.start()
        return reports

    def tick(self) -> list[UpdateReport]:
        """Update the libraries whose files changed since the last tick."""
        reports = []
        for handler in list(self.handlers.values()):
            if handler.poll():
                reports.append(self.update(handler.library))
        return reports

    def stop(self) -> None:
        self.observer.stop()
        self.observer.join()

    def run(self, interval: float = 0.1) -> None:
        """Watch until interrupted."""
        self.start()
        logger.info("Watching for changes (press Ctrl+C to exit)...")
        try:
            while True:
                self.tick()
                time.sleep(interval)
        except KeyboardInterrupt:
            logger.info("Keyboard interrupt received, stopping...")
        finally:
            self.stop()
