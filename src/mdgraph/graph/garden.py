from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from pathlib import Path

from ..errors import MarkdownGraphError
from ..ingest.repository import MarkdownRepository, RepositoryOptions, to_repository
from .build import BuildOptions, GraphBuilder
from .model import Graph
from .store import DEFAULT_OUTPUT_NAME, save_graph


logger = logging.getLogger(__name__)


@dataclass
class Garden:
    """A corpus: its repository, the graph built from it and where to save it."""

    graph: Graph
    repository: MarkdownRepository
    output_path: Path

    async def save(self) -> None:
        await save_graph(self.graph, self.output_path)


async def generate_graph(repository: MarkdownRepository, options: BuildOptions | None = None) -> Graph:
    builder = GraphBuilder(options)

    if builder.options.fast_path:
        # Only ids are needed, so skip loading and parsing altogether.
        async for ref in repository.find_all():
            builder.add_document_reference(ref)
        return builder.build()

    references = [ref async for ref in repository.find_all()]
    results = await asyncio.gather(
        *(repository.load_document(ref) for ref in references),
        return_exceptions=True,
    )
    for ref, result in zip(references, results):
        if isinstance(result, MarkdownGraphError):
            logger.warning("Failed to load document %s: %s", ref.filename or ref.id, result)
            continue
        if isinstance(result, BaseException):
            raise result
        builder.add_document(result)

    return builder.build()


def default_output_path(options: RepositoryOptions) -> Path:
    base = Path(options.path) if options.path else Path.cwd()
    return base / DEFAULT_OUTPUT_NAME


async def create_garden(
    options: RepositoryOptions,
    build_options: BuildOptions | None = None,
    *,
    output_path: str | Path | None = None,
) -> Garden:
    repository = to_repository(options)
    graph = await generate_graph(repository, build_options)
    return Garden(
        graph=graph,
        repository=repository,
        output_path=Path(output_path) if output_path else default_output_path(options),
    )
