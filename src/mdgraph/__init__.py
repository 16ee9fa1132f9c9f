"""Build a JSON knowledge graph from a directory of markdown notes."""

from .errors import (
    ConfigurationError,
    DirectoryNotFoundError,
    DocumentNotFoundError,
    FileNotFoundError,
    MarkdownGraphError,
    MarkdownParsingError,
)
from .graph.build import BuildOptions, GraphBuilder
from .graph.garden import Garden, create_garden, generate_graph
from .graph.manager import GraphManager
from .graph.model import Graph, GraphStats, Link, Node
from .ingest.repository import FileRepository, InMemoryRepository, RepositoryOptions, to_repository


__version__ = "0.1.0"

__all__ = [
    "BuildOptions",
    "ConfigurationError",
    "DirectoryNotFoundError",
    "DocumentNotFoundError",
    "FileNotFoundError",
    "FileRepository",
    "Garden",
    "Graph",
    "GraphBuilder",
    "GraphManager",
    "GraphStats",
    "InMemoryRepository",
    "Link",
    "MarkdownGraphError",
    "MarkdownParsingError",
    "Node",
    "RepositoryOptions",
    "create_garden",
    "generate_graph",
    "to_repository",
]
