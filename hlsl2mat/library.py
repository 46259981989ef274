"""
Incremental generation of a function library.

Scans a library source, fingerprints every function and regenerates only the
functions whose fingerprint is not found in their previous artifact. Errors in
one function are reported and do not prevent the other functions from being
generated; errors affecting the whole file stop the update of that library.
"""

import time
from dataclasses import dataclass, field
from enum import Enum, auto
from pathlib import Path

from loguru import logger

from hlsl2mat.artifacts import ArtifactStore, GeneratedArtifact, JsonArtifactStore
from hlsl2mat.dependencies import extract_defines, extract_includes
from hlsl2mat.diagnostics import DiagnosticSink
from hlsl2mat.errors import ParseError, PinError, SourceReadError
from hlsl2mat.generator import GenerationContext, generate
from hlsl2mat.hashing import compute_base_hash, fingerprint
from hlsl2mat.models import Include
from hlsl2mat.parser import parse_functions
from hlsl2mat.pins import resolve_signature
from hlsl2mat.settings import LibraryConfig, ProjectConfig


class ReconcileAction(Enum):
    SKIP = auto()
    REGENERATE = auto()


def reconcile(previous: GeneratedArtifact | None, fingerprint: str) -> ReconcileAction:
    """Decide whether a function needs to be regenerated.

    Args:
        previous: Artifact generated by an earlier run, if any
        fingerprint: Fingerprint of the function as it is now

    Returns:
        SKIP if the previous artifact was generated from the same content
    """
    if previous is not None and fingerprint in previous.comment:
        return ReconcileAction.SKIP
    return ReconcileAction.REGENERATE


def read_source(path: str | Path, retries: int = 1, delay: float = 0.1) -> str:
    """Read a text file, retrying when it is still being written by an editor.

    Raises:
        SourceReadError: If the file still cannot be read after the retries
    """
    path = Path(path)
    attempt = 0
    while True:
        try:
            return path.read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError) as e:
            if attempt >= retries:
                raise SourceReadError(f"Failed to read {path}: {e}") from e
            attempt += 1
            logger.debug(f"Failed to read {path}, retrying in {delay}s")
            time.sleep(delay)


@dataclass
class UpdateReport:
    """Outcome of one library update.

    Attributes:
        library: Library name
        updated: Regenerated functions
        skipped: Functions already up to date
        failed: Function name -> error message
        removed: Functions dropped from the manifest
        includes: Includes of the source, used to watch them
        error: File level error, the update was aborted when set
    """

    library: str
    updated: list[str] = field(default_factory=list)
    skipped: list[str] = field(default_factory=list)
    failed: dict[str, str] = field(default_factory=dict)
    removed: list[str] = field(default_factory=list)
    includes: list[Include] = field(default_factory=list)
    error: str | None = None

    @property
    def ok(self) -> bool:
        return self.error is None and not self.failed


def _file_error(
    report: UpdateReport,
    diagnostics: DiagnosticSink,
    message: str,
    file_path: Path,
) -> UpdateReport:
    report.error = message
    diagnostics.error(message, file_path=file_path)
    return report


def update_library(
    library: LibraryConfig,
    project: ProjectConfig,
    store: ArtifactStore,
    diagnostics: DiagnosticSink,
) -> UpdateReport:
    """Regenerate the out of date functions of a library.

    Args:
        library: Library to update
        project: Project the library belongs to
        store: Storage of the generated artifacts
        diagnostics: Sink receiving errors and warnings

    Returns:
        What was regenerated, skipped and failed
    """
    report = UpdateReport(library=library.name)
    source_path = project.source_path(library)
    if not source_path.is_file():
        return _file_error(
            report, diagnostics, f"{library.name}: invalid path {library.file}", source_path
        )

    try:
        text = read_source(source_path)
    except SourceReadError as e:
        return _file_error(report, diagnostics, str(e), source_path)

    try:
        functions = parse_functions(text)
    except ParseError as e:
        return _file_error(report, diagnostics, str(e.with_file(source_path)), source_path)

    includes = extract_includes(source_path, text, project.path_resolver(), diagnostics)
    report.includes = includes
    defines = extract_defines(text)

    include_texts = []
    for include in includes:
        if include.disk_path is None:
            continue
        try:
            include_texts.append(read_source(include.disk_path))
        except SourceReadError as e:
            return _file_error(report, diagnostics, str(e), source_path)

    base_hash = compute_base_hash(include_texts, defines)
    context = GenerationContext(
        source_file=Path(library.file).as_posix(),
        library_name=library.name,
        accurate_errors=library.accurate_errors,
        categories=list(library.categories),
        include_file_paths=[
            *library.include_file_paths,
            *(include.virtual_path for include in includes),
        ],
        additional_defines=[*library.additional_defines, *defines],
    )
    metadata = library.generation_metadata()

    manifest = store.load_manifest(library.name)
    dirty = manifest.source_file != context.source_file
    manifest.source_file = context.source_file

    for function in functions:
        if function.name not in manifest.functions:
            manifest.functions.append(function.name)
            dirty = True

        tag = fingerprint(
            function,
            base_hash,
            accurate_errors=library.accurate_errors,
            metadata=metadata,
        )
        previous = store.load(function.name)
        if reconcile(previous, tag) is ReconcileAction.SKIP:
            logger.info(f"{function.name} already up to date")
            report.skipped.append(function.name)
            continue

        try:
            signature = resolve_signature(function)
        except PinError as e:
            message = f"Function {function.name}: {e}"
            report.failed[function.name] = message
            diagnostics.error(message, file_path=source_path)
            continue

        artifact = generate(
            function,
            signature,
            tag,
            context,
            previous.identifiers if previous is not None else None,
        )
        store.save(artifact)
        dirty = True
        report.updated.append(function.name)
        logger.info(f"{function.name} updated")

    # Functions removed from the source
    names = {function.name for function in functions}
    report.removed = [name for name in manifest.functions if name not in names]
    if report.removed:
        manifest.functions = [name for name in manifest.functions if name in names]
        dirty = True

    if dirty:
        store.save_manifest(manifest)

    return report


def update_project(
    project: ProjectConfig,
    diagnostics: DiagnosticSink,
    names: list[str] | None = None,
) -> list[UpdateReport]:
    """Update the libraries of a project, all of them when names is None."""
    libraries = project.libraries if names is None else [project.library(n) for n in names]
    return [
        update_library(library, project, project_store(project, library), diagnostics)
        for library in libraries
    ]


def project_store(project: ProjectConfig, library: LibraryConfig) -> ArtifactStore:
    """Artifact store of a library in a project."""
    return JsonArtifactStore(
        project.output_directory(library), manifest_directory=project.manifest_directory()
    )
