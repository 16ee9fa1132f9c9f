from __future__ import annotations

import traceback
from dataclasses import dataclass

from rich.console import Console

from .errors import (
    ConfigurationError,
    DirectoryNotFoundError,
    DocumentNotFoundError,
    FileNotFoundError,
    MarkdownGraphError,
    MarkdownParsingError,
)


err_console = Console(stderr=True)


@dataclass(frozen=True)
class Suggestion:
    message: str
    action: str | None = None


_GENERIC = [
    Suggestion("Try running with verbose logging for more details", "Use -v or --verbose flag"),
    Suggestion("Check the documentation for troubleshooting tips"),
]


def suggestions_for(error: BaseException) -> list[Suggestion]:
    if isinstance(error, DirectoryNotFoundError):
        return [
            Suggestion("Check that the directory path is correct", "Verify the path exists and you have read permissions"),
            Suggestion("Use an absolute path to avoid confusion", "Try using the full path like /home/username/notes"),
            Suggestion("Create the directory if it should exist", "mkdir -p <directory-path>"),
        ]
    if isinstance(error, FileNotFoundError):
        return [
            Suggestion("Check that the file exists and you have read permissions"),
            Suggestion("Verify the file hasn't been moved or deleted"),
            Suggestion("Check if the file is in a hidden directory", "Use --include-hidden to scan hidden directories"),
        ]
    if isinstance(error, DocumentNotFoundError):
        return [
            Suggestion("The document ID might be incorrect", "Check available document IDs in your repository"),
            Suggestion("The document might have been deleted or moved"),
        ]
    if isinstance(error, MarkdownParsingError):
        return [
            Suggestion("Check the markdown file for syntax errors", "Review frontmatter YAML syntax"),
            Suggestion("Verify the file encoding is UTF-8"),
        ]
    if isinstance(error, ConfigurationError):
        return [
            Suggestion("Check your configuration file syntax", "Verify JSON syntax in mdgraph.config.json"),
            Suggestion("Review configuration options", "Run 'mdgraph --help' for available options"),
            Suggestion("Check MDGRAPH_* environment variables and your .env file"),
        ]
    return list(_GENERIC)


def format_error(error: BaseException, context: str | None = None) -> str:
    suffix = f" ({context})" if context else ""
    return f"{type(error).__name__}: {error}{suffix}"


def is_recoverable_error(error: BaseException) -> bool:
    """True for errors the user can fix by changing paths, files or config."""
    return isinstance(error, (DirectoryNotFoundError, FileNotFoundError, ConfigurationError, MarkdownParsingError))


def report_error(error: BaseException, verbose: bool = False, *, console: Console | None = None) -> None:
    console = console or err_console

    if not isinstance(error, MarkdownGraphError):
        console.print(f"Unexpected error: {error}", style="red", markup=False)
        if verbose:
            trace = "".join(traceback.format_exception(type(error), error, error.__traceback__))
            console.print(trace, style="dim", markup=False)
        return

    console.print(format_error(error), style="red", markup=False)
    suggestions = suggestions_for(error)
    if suggestions:
        console.print("Suggestions:", style="yellow")
        for i, suggestion in enumerate(suggestions, start=1):
            console.print(f"  {i}. {suggestion.message}", markup=False)
            if suggestion.action:
                console.print(f"     -> {suggestion.action}", style="dim", markup=False)

    if verbose and error.cause is not None:
        console.print(f"Caused by: {error.cause}", style="dim", markup=False)
