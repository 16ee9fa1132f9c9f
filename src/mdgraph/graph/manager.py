from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from pathlib import Path

from ..errors import MarkdownGraphError
from ..ingest.document import DocumentReference
from ..ingest.repository import MarkdownRepository
from ..ingest.utils import relpath
from .build import BuildOptions, DocumentContribution, GraphBuilder
from .model import Graph, GraphStats


logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class DocumentNodeMapping:
    """What one document last contributed to the graph."""

    document_id: str
    node_ids: tuple[str, ...]
    file_path: str


class GraphManager:
    """Keeps a graph in step with a repository one document at a time.

    Every document's node ids are recorded so that an edited or deleted file
    can be retracted (its nodes plus every link touching them) and re-merged
    without rebuilding the whole graph.
    """

    def __init__(
        self,
        repository: MarkdownRepository,
        base_directory: str | Path | None = None,
        options: BuildOptions | None = None,
        *,
        builder: GraphBuilder | None = None,
    ):
        self.repository = repository
        self.base_directory = Path(base_directory) if base_directory is not None else None
        self.builder = builder or GraphBuilder(options)
        self._graph = Graph()
        self._mappings: dict[str, DocumentNodeMapping] = {}

    @property
    def options(self) -> BuildOptions:
        return self.builder.options

    async def initialize(self) -> Graph:
        """Build the whole graph from scratch.

        Documents are loaded concurrently but merged in enumeration order. When
        two files share an id the one enumerated last wins.
        """
        self._mappings.clear()
        self.builder.reset()

        references = [ref async for ref in self.repository.find_all()]
        if self.options.fast_path:
            results = [self.builder.contribute_reference(ref) for ref in references]
        else:
            results = await asyncio.gather(*(self._contribution_for(ref) for ref in references))

        latest: dict[str, tuple[DocumentReference, DocumentContribution]] = {}
        for ref, contribution in zip(references, results):
            if contribution is None:
                continue
            if ref.id in latest:
                previous = latest.pop(ref.id)[0]
                logger.warning(
                    "Document id %s is used by %s and %s; keeping %s",
                    ref.id,
                    previous.filename or previous.id,
                    ref.filename or ref.id,
                    ref.filename or ref.id,
                )
            latest[ref.id] = (ref, contribution)

        for ref, contribution in latest.values():
            self.builder.add_contribution(contribution)
            self._record(contribution, ref.filename or ref.id)

        self._graph = self.builder.build()
        self.builder.reset()
        logger.debug("Initialized graph with %d documents", len(self._mappings))
        return self.get_graph()

    async def update_file(self, file_path: str | Path) -> Graph:
        """Replace a document's contribution with its current content.

        The new content is loaded first; retraction and merge then happen
        together. If loading fails the old contribution is still retracted.
        """
        ref = self._reference_for(file_path)
        contribution = await self._contribution_for(ref)

        self._retract(ref.id)
        if contribution is not None:
            self._merge(contribution, str(file_path))
        return self.get_graph()

    def remove_file(self, file_path: str | Path) -> Graph:
        ref = self._reference_for(file_path)
        self._retract(ref.id)
        return self.get_graph()

    def get_graph(self) -> Graph:
        return self._graph.copy()

    def stats(self) -> GraphStats:
        return self._graph.stats()

    def mapping_for(self, document_id: str) -> DocumentNodeMapping | None:
        return self._mappings.get(document_id)

    @property
    def document_ids(self) -> list[str]:
        return list(self._mappings)

    def _reference_for(self, file_path: str | Path) -> DocumentReference:
        path = Path(file_path)
        if self.base_directory is not None and path.is_absolute():
            return self.repository.to_document_reference(relpath(path, self.base_directory))
        return self.repository.to_document_reference(path.as_posix())

    async def _contribution_for(self, ref: DocumentReference) -> DocumentContribution | None:
        try:
            document = await self.repository.load_document(ref)
            if self.options.fast_path:
                return self.builder.contribute_reference(ref)
            return self.builder.contribute(document)
        except MarkdownGraphError as e:
            logger.warning("Failed to load document %s: %s", ref.filename or ref.id, e)
            return None

    def _record(self, contribution: DocumentContribution, file_path: str) -> None:
        self._mappings[contribution.document_id] = DocumentNodeMapping(
            document_id=contribution.document_id,
            node_ids=tuple(contribution.node_ids),
            file_path=file_path,
        )

    def _merge(self, contribution: DocumentContribution, file_path: str) -> None:
        for nid, node in contribution.nodes.items():
            self._graph.nodes[nid] = node.copy()
        self._graph.links.extend(contribution.links)
        self._graph.links.extend(link for link in contribution.candidates if link.target in self._graph.nodes)
        self._record(contribution, file_path)

    def _retract(self, document_id: str) -> None:
        mapping = self._mappings.pop(document_id, None)
        if mapping is None:
            return
        owned = set(mapping.node_ids)
        for nid in owned:
            self._graph.nodes.pop(nid, None)
        self._graph.links = [
            link for link in self._graph.links if link.source not in owned and link.target not in owned
        ]
