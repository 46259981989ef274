"""
Compiler error remapping.

Errors raised by generated code carry the library source between the markers
emitted by the #line directives, errors raised by shader files carry their
virtual path. Both are rewritten to path:line:char so that they can be opened
in an external editor.
"""

import os
import re
import shlex
import subprocess
from dataclasses import dataclass
from pathlib import Path

from loguru import logger

from hlsl2mat.errors import EditorLaunchError
from hlsl2mat.generator import PATH_PREFIX, PATH_SUFFIX
from hlsl2mat.settings import EditorSettings, ProjectConfig

# [FeatureLevel] /Virtual/Path(line info): error
_SHADER_FILE_PATTERN = re.compile(r"(\[.*\] )(/.*?)(\(.*\): .*)")
# (line,char) or (line,char-char)
_LINE_CHAR_PATTERN = re.compile(r"\(([0-9]*),([0-9]*)(-([0-9]*))?\)(.*)")
# (line): error or (line): (char) error
_LINE_PATTERN = re.compile(r"\(([0-9]*)\): (\(([0-9]*)\))?(.*)")
_ENVIRONMENT_VARIABLE_PATTERN = re.compile(r"%(\w+)%")


@dataclass
class RemappedError:
    """A compiler error pointing at a file on disk.

    Attributes:
        prefix: Text before the location
        path: Location as written in the message
        full_path: File on disk
        line: Line of the error
        char_start: First column, if known
        char_end: Last column, if known
        suffix: Text after the location
    """

    prefix: str
    path: str
    full_path: Path
    line: int
    char_start: int | None = None
    char_end: int | None = None
    suffix: str = ""

    @property
    def display_text(self) -> str:
        text = f"{self.path}:{self.line}:{self.char_start if self.char_start is not None else ''}"
        if self.char_end is not None:
            text += f"-{self.char_end}"
        return text

    def __str__(self) -> str:
        return f"{self.prefix}{self.display_text}{self.suffix}"


def _optional_int(text: str | None) -> int | None:
    return int(text) if text else None


def remap_error(message: str, project: ProjectConfig) -> RemappedError | None:
    """Find the source location of a compiler error.

    Args:
        message: One compiler message
        project: Project used to map paths to disk

    Returns:
        The remapped error, or None if the message does not point at an
        existing file
    """
    if PATH_PREFIX in message:
        prefix, rest = message.split(PATH_PREFIX, 1)
        if PATH_SUFFIX not in rest:
            return None
        path, suffix = rest.split(PATH_SUFFIX, 1)
        full_path = project.resolve(path)
    else:
        match = _SHADER_FILE_PATTERN.search(message)
        if not match:
            return None
        prefix, path, suffix = match.groups()
        full_path = project.path_resolver().to_disk(path)
        if full_path is None:
            return None

    # Generated files are not worth opening
    if not full_path.is_file():
        return None

    line = char_start = char_end = None
    if match := _LINE_CHAR_PATTERN.search(suffix):
        line = match.group(1)
        char_start = match.group(2)
        char_end = match.group(4)
        suffix = match.group(5)
    elif match := _LINE_PATTERN.search(suffix):
        line = match.group(1)
        char_start = match.group(3)
        suffix = match.group(4)

    if not line:
        logger.debug(f"No line information in {message!r}")
        return None

    return RemappedError(
        prefix=prefix,
        path=path,
        full_path=full_path,
        line=int(line),
        char_start=_optional_int(char_start),
        char_end=_optional_int(char_end),
        suffix=suffix,
    )


def expand_environment_variables(text: str) -> str:
    """Replace %VAR% with the value of the environment variable VAR."""
    return _ENVIRONMENT_VARIABLE_PATTERN.sub(
        lambda match: os.environ.get(match.group(1), ""), text
    )


def build_editor_command(settings: EditorSettings, error: RemappedError) -> list[str]:
    """Command line opening an error in the external editor."""
    arguments = (
        settings.arguments.replace("%FILE%", str(error.full_path))
        .replace("%LINE%", str(error.line))
        .replace("%CHAR%", str(error.char_start or 0))
    )
    return [expand_environment_variables(settings.path), *shlex.split(arguments)]


def open_in_editor(settings: EditorSettings, error: RemappedError) -> subprocess.Popen[bytes]:
    """Start the external editor on the location of an error.

    Raises:
        EditorLaunchError: If the editor could not be started
    """
    command = build_editor_command(settings, error)
    logger.info(f"Opening {error.display_text}: {' '.join(command)}")
    try:
        return subprocess.Popen(command)
    except OSError as e:
        raise EditorLaunchError(f"Failed to start {command[0]}: {e}") from e
