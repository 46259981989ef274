"""
Preprocessor dependencies of a library source.

Finds #include and #define directives and maps virtual include paths to files
on disk. Unresolved includes are reported but never stop the generation.
"""

import posixpath
import re
from collections.abc import Mapping
from pathlib import Path

from loguru import logger

from hlsl2mat.diagnostics import DiagnosticSink
from hlsl2mat.errors import DependencyWarning
from hlsl2mat.models import Define, Include

_INCLUDE_PATTERN = re.compile(r'^[ \t]*#include[ \t]*"([^"]+)"', re.MULTILINE)
_DEFINE_PATTERN = re.compile(r"^[ \t]*#define[ \t]+(\w+)[ \t]+(.*)$", re.MULTILINE)


class VirtualPathResolver:
    """Bidirectional mapping between virtual shader roots and disk directories.

    A virtual root such as ``/Project`` maps to one directory on disk. When
    several roots match a path, the longest one wins.
    """

    def __init__(self, roots: Mapping[str, str | Path] | None = None):
        self.roots: dict[str, Path] = {}
        for virtual_root, directory in (roots or {}).items():
            self.add_root(virtual_root, directory)

    def add_root(self, virtual_root: str, directory: str | Path) -> None:
        """Register a virtual root.

        Args:
            virtual_root: Absolute virtual path, eg /Project
            directory: Directory on disk the root maps to
        """
        if not virtual_root.startswith("/"):
            virtual_root = "/" + virtual_root
        self.roots[virtual_root.rstrip("/") or "/"] = Path(directory).resolve()

    def to_disk(self, virtual_path: str) -> Path | None:
        """Map a virtual path to a file on disk, None if no root matches."""
        for virtual_root in sorted(self.roots, key=len, reverse=True):
            if virtual_path == virtual_root:
                return self.roots[virtual_root]
            if virtual_path.startswith(virtual_root.rstrip("/") + "/"):
                relative = virtual_path[len(virtual_root) :].lstrip("/")
                return self.roots[virtual_root] / relative
        return None

    def to_virtual(self, disk_path: str | Path) -> str | None:
        """Map a file on disk to its virtual path, None if outside every root."""
        disk_path = Path(disk_path).resolve()
        best: tuple[str, Path] | None = None
        for virtual_root, directory in self.roots.items():
            if disk_path == directory or directory in disk_path.parents:
                if best is None or len(directory.parts) > len(best[1].parts):
                    best = (virtual_root, directory)
        if best is None:
            return None

        virtual_root, directory = best
        relative = disk_path.relative_to(directory).as_posix()
        if relative == ".":
            return virtual_root
        return posixpath.join(virtual_root, relative)


def extract_includes(
    file_path: str | Path,
    text: str,
    resolver: VirtualPathResolver,
    diagnostics: DiagnosticSink | None = None,
) -> list[Include]:
    """Find the #include directives of a library source.

    Relative include paths are resolved against the virtual directory of the
    source file.

    Args:
        file_path: Path of the library source on disk
        text: Content of the library source
        resolver: Virtual path mapping
        diagnostics: Sink receiving a warning for every unresolved include

    Returns:
        Includes in file order; disk_path is None when it could not be mapped
    """
    virtual_file = resolver.to_virtual(file_path)
    virtual_folder = posixpath.dirname(virtual_file) if virtual_file else ""

    includes: list[Include] = []
    for match in _INCLUDE_PATTERN.finditer(text):
        virtual_path = match.group(1)
        if not virtual_path.startswith("/") and virtual_folder:
            virtual_path = posixpath.normpath(posixpath.join(virtual_folder, virtual_path))

        disk_path = resolver.to_disk(virtual_path)
        if disk_path is None:
            warning = DependencyWarning(f"Failed to map include {virtual_path}")
            if diagnostics is not None:
                diagnostics.warning(warning.message, file_path=file_path)
            else:
                logger.warning(str(warning))
            includes.append(Include(virtual_path=virtual_path))
            continue

        includes.append(Include(virtual_path=virtual_path, disk_path=str(disk_path)))

    return includes


def extract_defines(text: str) -> list[Define]:
    """Find the #define NAME VALUE directives of a library source."""
    return [
        Define(name=match.group(1), value=match.group(2).strip())
        for match in _DEFINE_PATTERN.finditer(text)
    ]
