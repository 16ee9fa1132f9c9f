"""Graph construction from markdown documents.

Building happens in two phases. Each document is first turned into a
:class:`DocumentContribution` (its nodes, explicit and parent links, and
candidate implicit links) independently of every other document. ``build()``
then reduces all contributions and resolves candidates once every node id is
known, so the result does not depend on the order documents were added in
beyond last-writer-wins for duplicate ids.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field

from ..errors import MarkdownParsingError
from ..ingest.document import DocumentReference, MarkdownDocument
from ..ingest.markdown import ROOT_DEPTH, Section, SectionParser
from .extract import LinkInferrer
from .model import Graph, GraphStats, Link, Node


logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class BuildOptions:
    # Emit bare node keys only: no label, no meta, no links of any kind.
    just_node_names: bool = False
    # Keep only depth-1 (document) sections.
    no_sections: bool = False
    natural_language: bool = True

    @property
    def fast_path(self) -> bool:
        return self.just_node_names and self.no_sections


@dataclass
class DocumentContribution:
    document_id: str
    nodes: dict[str, Node] = field(default_factory=dict)
    links: list[Link] = field(default_factory=list)
    candidates: list[Link] = field(default_factory=list)

    @property
    def node_ids(self) -> list[str]:
        return list(self.nodes)


class GraphBuilder:
    def __init__(
        self,
        options: BuildOptions | None = None,
        *,
        parser: SectionParser | None = None,
        inferrer: LinkInferrer | None = None,
    ):
        self.options = options or BuildOptions()
        self.parser = parser or SectionParser()
        self._inferrer = inferrer
        self._contributions: list[DocumentContribution] = []

    @property
    def inferrer(self) -> LinkInferrer:
        if self._inferrer is None:
            self._inferrer = LinkInferrer()
        return self._inferrer

    def node_id(self, document_id: str, section: Section) -> str:
        if section.depth == ROOT_DEPTH:
            return document_id
        return f"{document_id}#{self.parser.slug(section.title)}"

    def contribute(self, document: MarkdownDocument) -> DocumentContribution:
        """Phase one: everything one document adds to the graph.

        Raises MarkdownParsingError if the document cannot be processed.
        """
        try:
            return self._contribute(document)
        except MarkdownParsingError:
            raise
        except Exception as e:
            raise MarkdownParsingError(document.filename, e) from e

    def _contribute(self, document: MarkdownDocument) -> DocumentContribution:
        opts = self.options
        out = DocumentContribution(document_id=document.id)

        sections = self.parser.parse(document)
        if opts.no_sections:
            sections = [s for s in sections if s.depth == ROOT_DEPTH]

        for section in sections:
            nid = self.node_id(document.id, section)
            if opts.just_node_names:
                out.nodes[nid] = Node()
                continue

            out.nodes[nid] = Node(label=section.title, meta=dict(document.frontmatter) or None)
            out.links.extend(Link(source=nid, target=target) for target in section.links)
            if section.depth != ROOT_DEPTH:
                out.links.append(Link(source=nid, target=document.id))

            if opts.natural_language and section.brief:
                for target in self.inferrer.infer(section.brief):
                    if target != document.id:
                        out.candidates.append(Link(source=document.id, target=target))

        return out

    def contribute_reference(self, reference: DocumentReference) -> DocumentContribution:
        return DocumentContribution(document_id=reference.id, nodes={reference.id: Node()})

    def add_contribution(self, contribution: DocumentContribution) -> GraphBuilder:
        self._contributions.append(contribution)
        return self

    def add_document(self, document: MarkdownDocument) -> GraphBuilder:
        try:
            self.add_contribution(self.contribute(document))
        except MarkdownParsingError as e:
            logger.warning("Ignoring %s since error during parsing: %s", document.filename, e)
        return self

    def add_document_reference(self, reference: DocumentReference) -> GraphBuilder:
        """Add a node for a reference without loading it (fast path only)."""
        if self.options.fast_path:
            self.add_contribution(self.contribute_reference(reference))
        return self

    def build(self) -> Graph:
        """Phase two: reduce contributions into a fresh, independent graph."""
        graph = Graph()
        candidates: list[Link] = []
        for contribution in self._contributions:
            for nid, node in contribution.nodes.items():
                graph.nodes[nid] = node.copy()
            graph.links.extend(contribution.links)
            candidates.extend(contribution.candidates)

        if not self.options.just_node_names:
            graph.links.extend(link for link in candidates if link.target in graph.nodes)
        return graph

    def reset(self) -> GraphBuilder:
        self._contributions = []
        return self

    def stats(self) -> GraphStats:
        return self.build().stats()
