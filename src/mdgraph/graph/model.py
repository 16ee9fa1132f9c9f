from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any


@dataclass
class Node:
    label: str | None = None
    meta: dict[str, str] | None = None

    def to_dict(self) -> dict[str, Any]:
        out: dict[str, Any] = {}
        if self.label is not None:
            out["label"] = self.label
        if self.meta:
            out["meta"] = dict(self.meta)
        return out

    def copy(self) -> Node:
        return Node(label=self.label, meta=dict(self.meta) if self.meta is not None else None)


@dataclass(frozen=True)
class Link:
    source: str
    target: str

    def to_dict(self) -> dict[str, str]:
        return {"source": self.source, "target": self.target}


@dataclass(frozen=True)
class GraphStats:
    node_count: int
    link_count: int


@dataclass
class Graph:
    nodes: dict[str, Node] = field(default_factory=dict)
    links: list[Link] = field(default_factory=list)

    def copy(self) -> Graph:
        # Links are immutable, nodes are not.
        return Graph(nodes={k: n.copy() for k, n in self.nodes.items()}, links=list(self.links))

    def stats(self) -> GraphStats:
        return GraphStats(node_count=len(self.nodes), link_count=len(self.links))

    def to_dict(self) -> dict[str, Any]:
        return {
            "nodes": {k: n.to_dict() for k, n in self.nodes.items()},
            "links": [link.to_dict() for link in self.links],
        }
