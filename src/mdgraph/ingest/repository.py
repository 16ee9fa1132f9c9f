"""Markdown document repositories.

A repository enumerates document references and resolves them to parsed
documents. Two variants exist: one backed by a directory tree on disk and one
backed by an in-memory mapping (handy for tests and generated content).
"""

from __future__ import annotations

import abc
import builtins
import logging
from collections.abc import AsyncIterator
from dataclasses import dataclass, field
from pathlib import Path, PurePosixPath

import anyio

from ..errors import (
    ConfigurationError,
    DirectoryNotFoundError,
    DocumentNotFoundError,
    FileNotFoundError,
    MarkdownParsingError,
)
from .document import DocumentReference, MarkdownDocument, to_document
from .utils import cheap_hash, relpath


logger = logging.getLogger(__name__)

MARKDOWN_EXT = ".md"
DEFAULT_EXCLUDES = ("node_modules", "dist", ".git")


def strip_markdown_ext(name: str) -> str:
    if name.lower().endswith(MARKDOWN_EXT):
        return name[: -len(MARKDOWN_EXT)]
    return name


class MarkdownRepository(abc.ABC):
    @abc.abstractmethod
    def to_document_reference(self, identifier: str) -> DocumentReference:
        """Canonicalize an external identifier (file name, path or id)."""

    @abc.abstractmethod
    def find_all(self) -> AsyncIterator[DocumentReference]:
        """Lazily enumerate every document. Each call starts a fresh scan."""

    @abc.abstractmethod
    async def load_document(self, reference: DocumentReference) -> MarkdownDocument:
        ...

    async def find(self, document_id: str) -> MarkdownDocument:
        return await self.load_document(self.to_document_reference(document_id))


class FileRepository(MarkdownRepository):
    """Markdown files below a directory.

    Enumeration is depth-first with entries sorted by name and files listed
    before subdirectories, so the order is stable for a given tree. The root
    is only checked on first use.
    """

    def __init__(
        self,
        directory: str | Path,
        *,
        excludes: list[str] | tuple[str, ...] | None = None,
        include_hidden: bool = False,
    ):
        self.directory = Path(directory)
        self.excludes = tuple(DEFAULT_EXCLUDES if excludes is None else excludes)
        self.include_hidden = include_hidden

    def __repr__(self) -> str:
        return f"FileRepository({str(self.directory)!r})"

    def to_document_reference(self, identifier: str) -> DocumentReference:
        filename = Path(identifier).as_posix()
        doc_id = strip_markdown_ext(PurePosixPath(filename).name).lower()
        return DocumentReference(id=doc_id, hash=cheap_hash(filename), filename=filename)

    def should_scan(self, name: str) -> bool:
        if name in self.excludes:
            return False
        return self.include_hidden or not name.startswith(".")

    async def _validate_directory(self) -> None:
        root = anyio.Path(self.directory)
        if not await root.is_dir():
            raise DirectoryNotFoundError(str(self.directory))

    async def find_all(self) -> AsyncIterator[DocumentReference]:
        await self._validate_directory()
        async for ref in self._scan(anyio.Path(self.directory)):
            yield ref

    async def _list(self, directory: anyio.Path) -> tuple[list[anyio.Path], list[anyio.Path]]:
        files: list[anyio.Path] = []
        dirs: list[anyio.Path] = []
        async for child in directory.iterdir():
            if not self.should_scan(child.name):
                continue
            if await child.is_dir():
                dirs.append(child)
            elif await child.is_file():
                files.append(child)
        files.sort(key=lambda p: p.name)
        dirs.sort(key=lambda p: p.name)
        return files, dirs

    async def _scan(self, directory: anyio.Path) -> AsyncIterator[DocumentReference]:
        try:
            files, dirs = await self._list(directory)
        except OSError as e:
            logger.warning("Could not read directory %s: %s", directory, e)
            return

        for child in files:
            if child.name.lower().endswith(MARKDOWN_EXT):
                yield self.to_document_reference(relpath(child, self.directory))
        for child in dirs:
            async for ref in self._scan(child):
                yield ref

    async def load_document(self, reference: DocumentReference) -> MarkdownDocument:
        filename = reference.filename or f"{reference.id}{MARKDOWN_EXT}"
        filepath = self.directory / filename
        try:
            text = await anyio.Path(filepath).read_text(encoding="utf-8")
        except builtins.FileNotFoundError as e:
            raise FileNotFoundError(str(filepath), e) from e
        except (OSError, UnicodeDecodeError) as e:
            raise MarkdownParsingError(filename, e) from e
        return to_document(reference, filename, text)

    async def _find_in_directory(self, relative_dir: PurePosixPath, wanted: str) -> str | None:
        try:
            files, dirs = await self._list(anyio.Path(self.directory / relative_dir))
        except OSError as e:
            logger.warning("Could not read directory %s: %s", relative_dir, e)
            return None

        for child in files:
            if child.name.lower() == wanted:
                return (relative_dir / child.name).as_posix()
        for child in dirs:
            found = await self._find_in_directory(relative_dir / child.name, wanted)
            if found:
                return found
        return None

    async def find(self, document_id: str) -> MarkdownDocument:
        await self._validate_directory()
        wanted = f"{strip_markdown_ext(document_id).lower()}{MARKDOWN_EXT}"
        filename = await self._find_in_directory(PurePosixPath(""), wanted)
        if not filename:
            raise FileNotFoundError(document_id)
        return await self.load_document(self.to_document_reference(filename))


class InMemoryRepository(MarkdownRepository):
    def __init__(self, content: dict[str, str] | None = None):
        self._content: dict[str, str] = {self._normalize(k): v for k, v in (content or {}).items()}

    def __repr__(self) -> str:
        return f"InMemoryRepository({len(self._content)} documents)"

    @staticmethod
    def _normalize(identifier: str) -> str:
        return strip_markdown_ext(identifier).lower()

    def to_document_reference(self, identifier: str) -> DocumentReference:
        return DocumentReference(id=self._normalize(identifier), hash=cheap_hash(identifier))

    async def find_all(self) -> AsyncIterator[DocumentReference]:
        for key in list(self._content):
            yield self.to_document_reference(key)

    async def load_document(self, reference: DocumentReference) -> MarkdownDocument:
        text = self._content.get(reference.id)
        if text is None:
            raise DocumentNotFoundError(reference.id, "in-memory repository")
        return to_document(reference, reference.id, text)

    def put(self, identifier: str, text: str) -> None:
        self._content[self._normalize(identifier)] = text

    def delete(self, identifier: str) -> None:
        self._content.pop(self._normalize(identifier), None)

    def size(self) -> int:
        return len(self._content)

    def has_document(self, identifier: str) -> bool:
        return self._normalize(identifier) in self._content

    def document_ids(self) -> list[str]:
        return list(self._content)


@dataclass
class RepositoryOptions:
    type: str = "file"
    path: str | Path | None = None
    content: dict[str, str] = field(default_factory=dict)
    excludes: list[str] | None = None
    include_hidden: bool = False


def to_repository(options: RepositoryOptions) -> MarkdownRepository:
    if options.type == "file":
        if not options.path:
            raise ConfigurationError("File repository requires a path to be specified")
        return FileRepository(options.path, excludes=options.excludes, include_hidden=options.include_hidden)
    if options.type == "inmemory":
        return InMemoryRepository(options.content)
    raise ConfigurationError(f"Unknown repository type: {options.type}")
