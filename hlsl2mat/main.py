"""Command line interface for hlsl2mat.

This module provides commands to create a project configuration, generate the
function libraries it lists, watch them for changes, inspect a library source
and remap compiler errors to source locations.
"""

import sys
from collections.abc import Callable
from pathlib import Path
from typing import Any, TypeVar, cast

import arrow
import typer
from loguru import logger

from hlsl2mat import __version__
from hlsl2mat.diagnostics import DiagnosticSink
from hlsl2mat.error_remap import open_in_editor, remap_error
from hlsl2mat.errors import (
    ConfigError,
    EditorLaunchError,
    ParseError,
    PinError,
    SourceReadError,
)
from hlsl2mat.hashing import compute_base_hash, fingerprint
from hlsl2mat.library import UpdateReport, read_source, update_project
from hlsl2mat.parser import parse_functions
from hlsl2mat.pins import resolve_signature
from hlsl2mat.settings import (
    DEFAULT_CONFIG_NAME,
    LibraryConfig,
    ProjectConfig,
    load_config,
    save_config,
)
from hlsl2mat.watcher import ProjectWatcher

F = TypeVar("F", bound=Callable[..., Any])


def typed_command(app_command: Any) -> Callable[[F], F]:
    """Wrap typer command with proper typing for mypy."""

    def decorator(func: F) -> F:
        return cast(F, app_command(func))

    return decorator


app = typer.Typer(
    name="hlsl2mat",
    help=(
        "Generate material functions from HLSL function libraries. "
        "Commands: init, generate, watch, inspect, remap-errors."
    ),
    add_completion=False,
)

CONFIG_OPTION = typer.Option(
    Path(DEFAULT_CONFIG_NAME), "--config", "-c", help="Project configuration file"
)


@app.callback()
def main(
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Show debug logs"),
) -> None:
    """Configure logging for every command."""
    logger.remove()
    logger.add(
        lambda message: sys.stderr.write(message),
        level="DEBUG" if verbose else "INFO",
        format="<level>{level: <8}</level> {message}",
    )


def _load(config: Path) -> ProjectConfig:
    try:
        return load_config(config)
    except ConfigError as e:
        logger.error(str(e))
        raise typer.Exit(1) from e


def _print_reports(reports: list[UpdateReport]) -> bool:
    ok = True
    for report in reports:
        if report.error:
            typer.echo(f"{report.library}: {report.error}")
            ok = False
            continue
        typer.echo(
            f"{report.library}: {len(report.updated)} updated, "
            f"{len(report.skipped)} up to date, {len(report.failed)} failed"
        )
        for message in report.failed.values():
            typer.echo(f"  {message}")
        ok = ok and not report.failed
    return ok


@typed_command(app.command("init"))
def init_project(
    config: Path = CONFIG_OPTION,
    library: str = typer.Option(..., "--library", "-l", help="Library name"),
    file: str = typer.Option(..., "--file", "-f", help="Library source file"),
    output_dir: str = typer.Option(
        "generated", "--output-dir", "-o", help="Directory receiving the artifacts"
    ),
    force: bool = typer.Option(False, "--force", help="Overwrite an existing file"),
) -> None:
    """Create a project configuration with one library.

    Example: hlsl2mat init --library Noise --file Shaders/Noise.hlsl
    """
    if config.exists() and not force:
        logger.error(f"{config} already exists, use --force to overwrite it")
        raise typer.Exit(1)

    project = ProjectConfig(
        root=config.resolve().parent,
        output_dir=output_dir,
        libraries=[LibraryConfig(name=library, file=file)],
    )
    save_config(project, config)
    typer.echo(f"Created {config}")


@typed_command(app.command("generate"))
def generate_libraries(
    config: Path = CONFIG_OPTION,
    libraries: list[str] | None = typer.Option(
        None, "--library", "-l", help="Only generate these libraries"
    ),
) -> None:
    """Generate the out of date functions of the project libraries.

    Example: hlsl2mat generate --library Noise
    """
    project = _load(config)
    diagnostics = DiagnosticSink()
    try:
        reports = update_project(project, diagnostics, libraries or None)
    except ConfigError as e:
        logger.error(str(e))
        raise typer.Exit(1) from e

    if not _print_reports(reports):
        raise typer.Exit(1)


@typed_command(app.command("watch"))
def watch_libraries(
    config: Path = CONFIG_OPTION,
    interval: float = typer.Option(0.1, "--interval", help="Poll interval in seconds"),
) -> None:
    """Watch the library sources and their includes, regenerating on changes.

    Only libraries with update_on_file_change or update_on_include_change are
    watched.

    Example: hlsl2mat watch
    """
    project = _load(config)
    watcher = ProjectWatcher(project, DiagnosticSink())
    watcher.run(interval=interval)


@typed_command(app.command("inspect"))
def inspect_source(
    source: Path = typer.Argument(..., help="Library source file"),
    accurate_errors: bool = typer.Option(
        True, "--accurate-errors/--no-accurate-errors", help="Hash line numbers"
    ),
) -> None:
    """Show the functions of a library source, their pins and fingerprints.

    Example: hlsl2mat inspect Shaders/Noise.hlsl
    """
    try:
        functions = parse_functions(read_source(source))
    except ParseError as e:
        logger.error(str(e.with_file(source)))
        raise typer.Exit(1) from e
    except SourceReadError as e:
        logger.error(str(e))
        raise typer.Exit(1) from e

    timestamp = arrow.utcnow().format("YYYY-MM-DD HH:mm:ss UTC")
    typer.echo(f"// hlsl2mat v{__version__}, {timestamp}")
    typer.echo(f"// {source}: {len(functions)} functions")

    # Includes are not resolved without a project
    base_hash = compute_base_hash([], [])
    failed = False
    for function in functions:
        tag = fingerprint(function, base_hash, accurate_errors=accurate_errors)
        typer.echo(f"\n{function.name} ({tag})")
        try:
            signature = resolve_signature(function)
        except PinError as e:
            typer.echo(f"  error: {e}")
            failed = True
            continue

        for pin in signature.inputs:
            default = f" = {pin.default_text}" if pin.has_default else ""
            flags = " [exposed]" if pin.is_exposed else ""
            typer.echo(f"  in  {pin.kind.name:<20} {pin.name}{default}{flags}")
        for pin in signature.outputs:
            typer.echo(f"  out {pin.kind.name:<20} {pin.name}")
        typer.echo(f"  variants: {2 ** len(signature.bool_inputs)}")

    if failed:
        raise typer.Exit(1)


@typed_command(app.command("remap-errors"))
def remap_errors(
    log_file: Path | None = typer.Argument(
        None, help="File containing compiler messages, stdin if omitted"
    ),
    config: Path = CONFIG_OPTION,
    open_first: bool = typer.Option(
        False, "--open", help="Open the first error in the external editor"
    ),
) -> None:
    """Rewrite compiler messages to point at the library sources.

    Example: hlsl2mat remap-errors build.log --open
    """
    project = _load(config)
    text = log_file.read_text(encoding="utf-8") if log_file else sys.stdin.read()

    first = None
    for line in text.splitlines():
        error = remap_error(line, project)
        if error is None:
            typer.echo(line)
            continue
        typer.echo(str(error))
        first = first or error

    if open_first and first is not None:
        try:
            open_in_editor(project.editor, first)
        except EditorLaunchError as e:
            logger.error(str(e))
            raise typer.Exit(1) from e


if __name__ == "__main__":
    app()
