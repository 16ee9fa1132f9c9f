from __future__ import annotations

import asyncio
import logging
from pathlib import Path
from typing import Any

import typer
from rich.console import Console
from rich.logging import RichHandler

from .config import GraphConfig, load_config
from .errors import DirectoryNotFoundError
from .graph.build import BuildOptions
from .graph.garden import Garden, create_garden
from .ingest.repository import RepositoryOptions
from .report import err_console, report_error
from .watcher import FileChanged, GraphWatcher, GraphWritten, WatchEvent, WatchOptions


app = typer.Typer(add_completion=False, help="Build a JSON knowledge graph from a directory of markdown notes.")
console = Console()


def configure_logging(verbose: bool = False, quiet: bool = False) -> None:
    level = logging.DEBUG if verbose else logging.WARNING if quiet else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=err_console, show_path=verbose, rich_tracebacks=verbose)],
        force=True,
    )


def _cli_options(
    *,
    directory: Path | None,
    output: Path | None,
    exclude: list[str] | None,
    include_hidden: bool,
    just_node_names: bool,
    no_sections: bool,
    no_natural_language: bool,
    verbose: bool,
    quiet: bool,
    debounce: int | None = None,
) -> dict[str, Any]:
    # Unset flags stay None so a config file can still supply them.
    return {
        "target_directory": str(directory) if directory is not None else None,
        "output_file": str(output) if output is not None else None,
        "excludes": list(exclude) if exclude else None,
        "include_hidden": True if include_hidden else None,
        "just_node_names": True if just_node_names else None,
        "no_sections": True if no_sections else None,
        "natural_language": False if no_natural_language else None,
        "verbose": True if verbose else None,
        "quiet": True if quiet else None,
        "debounce_ms": debounce,
    }


def _load(options: dict[str, Any]) -> GraphConfig:
    try:
        return load_config(options)
    except Exception as e:
        report_error(e, bool(options.get("verbose")))
        raise typer.Exit(code=1)


def _build_options(config: GraphConfig) -> BuildOptions:
    return BuildOptions(
        just_node_names=config.just_node_names,
        no_sections=config.no_sections,
        natural_language=config.natural_language,
    )


async def _generate(config: GraphConfig, target: Path) -> Garden:
    garden = await create_garden(
        RepositoryOptions(
            type="file",
            path=target,
            excludes=config.excludes,
            include_hidden=config.include_hidden,
        ),
        _build_options(config),
        output_path=config.output_file,
    )
    await garden.save()
    return garden


@app.command()
def generate(
    directory: Path | None = typer.Argument(None, help="Directory of markdown files (default: current directory)"),
    output: Path | None = typer.Option(None, "--output", "-o", help="Output JSON file"),
    exclude: list[str] | None = typer.Option(None, "--exclude", "-e", help="File or directory name to skip (repeatable)"),
    include_hidden: bool = typer.Option(False, "--include-hidden", help="Also scan dot-files and dot-directories"),
    just_node_names: bool = typer.Option(False, "--just-node-names", help="Emit node ids only"),
    no_sections: bool = typer.Option(False, "--no-sections", help="One node per document"),
    no_natural_language: bool = typer.Option(False, "--no-natural-language", help="Skip implicit noun-phrase links"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Debug logging"),
    quiet: bool = typer.Option(False, "--quiet", "-q", help="Only warnings and errors"),
):
    """Scan a directory once and write the graph JSON."""
    config = _load(
        _cli_options(
            directory=directory,
            output=output,
            exclude=exclude,
            include_hidden=include_hidden,
            just_node_names=just_node_names,
            no_sections=no_sections,
            no_natural_language=no_natural_language,
            verbose=verbose,
            quiet=quiet,
        )
    )
    configure_logging(config.verbose, config.quiet)
    target = Path(config.target_directory or ".").resolve()

    try:
        garden = asyncio.run(_generate(config, target))
    except Exception as e:
        report_error(e, config.verbose)
        raise typer.Exit(code=1)

    if not config.quiet:
        stats = garden.graph.stats()
        console.print(
            f"Wrote {stats.node_count} nodes and {stats.link_count} links to {garden.output_path}",
            style="green",
            markup=False,
        )


def _print_event(event: WatchEvent) -> None:
    if isinstance(event, GraphWritten):
        console.print(
            f"Graph written: {event.node_count} nodes, {event.link_count} links -> {event.output_file}",
            style="green",
            markup=False,
        )
    elif isinstance(event, FileChanged):
        console.print(f"{event.change_type}: {event.file_path}", style="dim", markup=False)


@app.command()
def watch(
    directory: Path | None = typer.Argument(None, help="Directory of markdown files (default: current directory)"),
    output: Path | None = typer.Option(None, "--output", "-o", help="Output JSON file"),
    exclude: list[str] | None = typer.Option(None, "--exclude", "-e", help="File or directory name to skip (repeatable)"),
    include_hidden: bool = typer.Option(False, "--include-hidden", help="Also scan dot-files and dot-directories"),
    just_node_names: bool = typer.Option(False, "--just-node-names", help="Emit node ids only"),
    no_sections: bool = typer.Option(False, "--no-sections", help="One node per document"),
    no_natural_language: bool = typer.Option(False, "--no-natural-language", help="Skip implicit noun-phrase links"),
    debounce: int | None = typer.Option(None, "--debounce", help="Milliseconds to wait before rewriting the graph"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Debug logging"),
    quiet: bool = typer.Option(False, "--quiet", "-q", help="Only warnings and errors"),
):
    """Build the graph, then keep it up to date as files change."""
    config = _load(
        _cli_options(
            directory=directory,
            output=output,
            exclude=exclude,
            include_hidden=include_hidden,
            just_node_names=just_node_names,
            no_sections=no_sections,
            no_natural_language=no_natural_language,
            verbose=verbose,
            quiet=quiet,
            debounce=debounce,
        )
    )
    configure_logging(config.verbose, config.quiet)
    target = Path(config.target_directory or ".")

    if not target.is_dir():
        report_error(DirectoryNotFoundError(str(target)), config.verbose)
        raise typer.Exit(code=1)

    watcher = GraphWatcher(
        WatchOptions(
            target_directory=target,
            output_file=config.output_file,
            excludes=config.excludes,
            include_hidden=config.include_hidden,
            debounce_ms=config.debounce_ms,
            build=_build_options(config),
        )
    )
    if not config.quiet:
        watcher.subscribe(_print_event)
        console.print(f"Watching {watcher.target} (Ctrl+C to stop)", style="yellow", markup=False)

    try:
        asyncio.run(watcher.run_forever())
    except KeyboardInterrupt:
        console.print("Stopped.", style="yellow")
    except Exception as e:
        report_error(e, config.verbose)
        raise typer.Exit(code=1)


if __name__ == "__main__":
    app()
