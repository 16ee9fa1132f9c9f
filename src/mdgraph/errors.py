from __future__ import annotations

import builtins


class MarkdownGraphError(Exception):
    """Base class for errors raised while building a markdown graph."""

    def __init__(self, message: str, cause: BaseException | None = None):
        super().__init__(message)
        self.message = message
        self.cause = cause
        if cause is not None:
            self.__cause__ = cause


class ConfigurationError(MarkdownGraphError):
    pass


# Name used by the repository factory and config loader.
RepositoryConfigurationError = ConfigurationError


class DirectoryNotFoundError(MarkdownGraphError):
    def __init__(self, directory: str, cause: BaseException | None = None):
        super().__init__(f"Directory does not exist: {directory}", cause)
        self.directory = directory


class FileNotFoundError(MarkdownGraphError, builtins.FileNotFoundError):
    def __init__(self, filepath: str, cause: BaseException | None = None):
        MarkdownGraphError.__init__(self, f"File not found: {filepath}", cause)
        self.filepath = filepath

    def __str__(self) -> str:
        return self.message


class DocumentNotFoundError(MarkdownGraphError):
    def __init__(self, document_id: str, repository_description: str):
        super().__init__(f"Cannot load document {document_id}: does not exist in {repository_description}")
        self.document_id = document_id


class MarkdownParsingError(MarkdownGraphError):
    def __init__(self, filename: str, cause: BaseException):
        super().__init__(f"Failed to parse markdown in {filename}: {cause}", cause)
        self.filename = filename
