"""Diagnostic sink collecting user-facing messages."""

import os
from dataclasses import dataclass, field
from enum import Enum

from loguru import logger


class Severity(Enum):
    """Severity of a diagnostic."""

    INFO = "INFO"
    WARNING = "WARNING"
    ERROR = "ERROR"


@dataclass(frozen=True)
class Diagnostic:
    """A message reported while updating a library.

    Attributes:
        severity: How serious the message is
        message: Human readable text
        file_path: Source file the message relates to, if any
    """

    severity: Severity
    message: str
    file_path: str | None = None

    def __str__(self) -> str:
        if self.file_path:
            return f"{self.file_path}: {self.message}"
        return self.message


@dataclass
class DiagnosticSink:
    """Collects diagnostics and forwards them to the log.

    Every call takes the originating file explicitly so that messages can be
    prefixed with it.
    """

    diagnostics: list[Diagnostic] = field(default_factory=list)

    def report(
        self,
        severity: Severity,
        message: str,
        file_path: str | os.PathLike[str] | None = None,
    ) -> Diagnostic:
        diagnostic = Diagnostic(
            severity=severity,
            message=message,
            file_path=os.fspath(file_path) if file_path is not None else None,
        )
        self.diagnostics.append(diagnostic)
        logger.log(severity.value, str(diagnostic))
        return diagnostic

    def info(
        self, message: str, file_path: str | os.PathLike[str] | None = None
    ) -> Diagnostic:
        return self.report(Severity.INFO, message, file_path)

    def warning(
        self, message: str, file_path: str | os.PathLike[str] | None = None
    ) -> Diagnostic:
        return self.report(Severity.WARNING, message, file_path)

    def error(
        self, message: str, file_path: str | os.PathLike[str] | None = None
    ) -> Diagnostic:
        return self.report(Severity.ERROR, message, file_path)

    @property
    def errors(self) -> list[Diagnostic]:
        return [d for d in self.diagnostics if d.severity is Severity.ERROR]

    @property
    def warnings(self) -> list[Diagnostic]:
        return [d for d in self.diagnostics if d.severity is Severity.WARNING]

    def clear(self) -> None:
        self.diagnostics.clear()
