from __future__ import annotations

import json
from pathlib import Path
from typing import Any

import anyio

from .model import Graph, Link, Node


JSON_INDENT = 2
DEFAULT_OUTPUT_NAME = ".garden-graph.json"


def dumps_graph(graph: Graph) -> str:
    return json.dumps(graph.to_dict(), indent=JSON_INDENT, ensure_ascii=False)


async def save_graph(graph: Graph, path: str | Path) -> None:
    """Write the graph as JSON. Plain overwrite, no atomic rename."""
    out = anyio.Path(path)
    await out.parent.mkdir(parents=True, exist_ok=True)
    await out.write_text(dumps_graph(graph), encoding="utf-8")


def _node_from(value: Any) -> Node:
    if not isinstance(value, dict):
        return Node()
    meta = value.get("meta")
    return Node(
        label=value.get("label"),
        meta={str(k): str(v) for k, v in meta.items()} if isinstance(meta, dict) else None,
    )


def graph_from_dict(data: dict[str, Any], *, drop_dangling: bool = False) -> Graph:
    """Inverse of ``Graph.to_dict``.

    Nodes may be a mapping of id -> node or a list of nodes carrying an
    ``id`` key; both shapes show up in files written by other tools.
    """
    graph = Graph()
    raw_nodes = data.get("nodes") or {}
    if isinstance(raw_nodes, dict):
        for nid, value in raw_nodes.items():
            graph.nodes[str(nid)] = _node_from(value)
    elif isinstance(raw_nodes, list):
        for value in raw_nodes:
            if isinstance(value, dict) and value.get("id") is not None:
                graph.nodes[str(value["id"])] = _node_from(value)

    for raw in data.get("links") or []:
        if not isinstance(raw, dict) or "source" not in raw or "target" not in raw:
            continue
        link = Link(source=str(raw["source"]), target=str(raw["target"]))
        if drop_dangling and (link.source not in graph.nodes or link.target not in graph.nodes):
            continue
        graph.links.append(link)
    return graph


def loads_graph(text: str, *, drop_dangling: bool = False) -> Graph:
    return graph_from_dict(json.loads(text), drop_dangling=drop_dangling)


async def load_graph(path: str | Path, *, drop_dangling: bool = False) -> Graph:
    text = await anyio.Path(path).read_text(encoding="utf-8")
    return loads_graph(text, drop_dangling=drop_dangling)
