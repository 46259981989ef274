"""
Exceptions and error handling for the HLSL function library generator.

This module defines the exceptions raised while reading, scanning and generating
a function library. File-level errors (ParseError, SourceReadError) abort the
whole file, function-level errors (PinError) only abort one function.
"""

import os


class Hlsl2MatError(Exception):
    """Base exception for all hlsl2mat errors.

    The class keeps the bare message and optionally the source file and line
    the error relates to, and formats them the same way everywhere.

    Examples:
        >>> raise Hlsl2MatError("Unknown type", file_path="lib.hlsl", lineno=3)
        Hlsl2MatError: Unknown type in lib.hlsl at line 3
    """

    def __init__(
        self,
        message: str,
        file_path: str | os.PathLike[str] | None = None,
        lineno: int | None = None,
    ):
        """Initialize the exception with a message and optional location.

        Args:
            message: The error message
            file_path: Optional source file the error relates to
            lineno: Optional 1-based line number in that file
        """
        self.message = message
        self.file_path = os.fspath(file_path) if file_path is not None else None
        self.lineno = lineno

        location_info = ""
        if self.file_path:
            location_info = f" in {os.path.basename(self.file_path)}"
        if self.lineno is not None:
            location_info += f" at line {self.lineno}"

        super().__init__(f"{message}{location_info}")

    def with_file(self, file_path: str | os.PathLike[str]) -> "Hlsl2MatError":
        """Create a new error of the same type bound to a source file.

        Args:
            file_path: Source file to associate with the error

        Returns:
            A new instance with the same message and line
        """
        return type(self)(self.message, file_path=file_path, lineno=self.lineno)


class ParseError(Hlsl2MatError):
    """Malformed brace or parenthesis nesting. Fatal for the whole file."""


class PinError(Hlsl2MatError):
    """Invalid function signature. Fatal for one function only."""


class DependencyWarning(Hlsl2MatError):
    """An include could not be resolved or read. Never fatal."""


class SourceReadError(Hlsl2MatError):
    """A source file could not be read, even after retrying."""


class ConfigError(Hlsl2MatError):
    """Invalid or unsupported configuration file."""


class EditorLaunchError(Hlsl2MatError):
    """The external editor could not be started."""
