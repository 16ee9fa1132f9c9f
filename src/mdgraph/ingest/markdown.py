"""Split a markdown document into a tree of titled sections.

The body is parsed into a block tree with markdown-it (CommonMark plus a
``[[wiki link]]`` inline rule). A level-1 heading always belongs to the
document's root section; deeper headings open nested sections, but only once a
level-1 heading has been seen. Headings before that are dropped.
"""

from __future__ import annotations

from collections.abc import Callable, Iterator
from dataclasses import dataclass, field

import mdurl
from markdown_it import MarkdownIt
from markdown_it.rules_inline import StateInline
from markdown_it.tree import SyntaxTreeNode

from ..errors import MarkdownParsingError
from .document import MarkdownDocument
from .slug import SlugCache


ROOT_DEPTH = 1
NO_TITLE = "no title"


@dataclass(frozen=True)
class Section:
    depth: int
    title: str
    brief: str | None = None
    links: list[str] = field(default_factory=list)
    sections: list[Section] = field(default_factory=list)


@dataclass
class _Draft:
    depth: int
    blocks: list[SyntaxTreeNode] = field(default_factory=list)
    children: list[_Draft] = field(default_factory=list)


def _wikilink_rule(state: StateInline, silent: bool) -> bool:
    start = state.pos
    if not state.src.startswith("[[", start):
        return False
    end = state.src.find("]]", start + 2)
    if end < 0:
        return False
    inner = state.src[start + 2 : end]
    if not inner.strip() or "\n" in inner or "[" in inner:
        return False

    if not silent:
        target, _, alias = inner.partition("|")
        token = state.push("wikilink", "", 0)
        token.content = target.strip()
        token.markup = "[["
        token.meta = {"target": target.strip(), "alias": alias.strip() or None}

    state.pos = end + 2
    return True


def wikilink_plugin(md: MarkdownIt) -> None:
    md.inline.ruler.before("link", "wikilink", _wikilink_rule)


def _is_autolink(node: SyntaxTreeNode) -> bool:
    if node.type != "link":
        return False
    if node.markup == "autolink":
        return True
    return _text(node) == _href(node)


def _href(node: SyntaxTreeNode) -> str:
    # markdown-it stores destinations percent-encoded.
    return mdurl.decode(str(node.attrs.get("href", "")))


def _is_wikilink(node: SyntaxTreeNode) -> bool:
    return node.type == "wikilink"


def _skip_links(node: SyntaxTreeNode) -> bool:
    return _is_autolink(node) or _is_wikilink(node)


def _text(node: SyntaxTreeNode, skip: Callable[[SyntaxTreeNode], bool] | None = None) -> str:
    if skip is not None and skip(node):
        return ""
    if node.type in ("softbreak", "hardbreak"):
        return "\n"
    if node.children:
        return "".join(_text(child, skip) for child in node.children)
    if node.type in ("text", "code_inline", "wikilink", "html_inline"):
        return node.content
    return ""


def _walk(node: SyntaxTreeNode) -> Iterator[SyntaxTreeNode]:
    yield node
    for child in node.children:
        yield from _walk(child)


def file_stem_from_url(url: str) -> str:
    """``./notes/foo.md`` -> ``foo``"""
    clean = url.rstrip("/")
    if clean.endswith(".md"):
        clean = clean[:-3]
    return clean.rsplit("/", 1)[-1]


class SectionParser:
    """Parses documents into sections; owns its markdown parser and slug cache."""

    def __init__(self) -> None:
        self.md = MarkdownIt("commonmark").use(wikilink_plugin)
        self.slug = SlugCache()

    def parse(self, document: MarkdownDocument) -> list[Section]:
        """Return sections in document order; index 0 is the root section."""
        try:
            tree = SyntaxTreeNode(self.md.parse(document.body))
            drafts = self._split(tree)
            return self._finish(drafts)
        except Exception as e:
            raise MarkdownParsingError(document.filename, e) from e

    def _split(self, tree: SyntaxTreeNode) -> list[_Draft]:
        root = _Draft(depth=ROOT_DEPTH)
        drafts = [root]
        open_sections: dict[int, _Draft] = {ROOT_DEPTH: root}
        current = root
        found_main_heading = False

        for block in tree.children:
            if block.type == "heading":
                level = int(block.tag[1:])
                if level == ROOT_DEPTH:
                    found_main_heading = True
                    current = root
                    open_sections = {ROOT_DEPTH: root}
                elif not found_main_heading:
                    continue
                else:
                    draft = _Draft(depth=level)
                    drafts.append(draft)
                    parent = open_sections[max(d for d in open_sections if d < level)]
                    parent.children.append(draft)
                    open_sections = {d: s for d, s in open_sections.items() if d < level}
                    open_sections[level] = draft
                    current = draft
            current.blocks.append(block)

        return drafts

    def _finish(self, drafts: list[_Draft]) -> list[Section]:
        # Children always come after their parent, so build back to front.
        built: dict[int, Section] = {}
        for draft in reversed(drafts):
            built[id(draft)] = Section(
                depth=draft.depth,
                title=self._title(draft),
                brief=self._first_paragraph_text(draft, _skip_links),
                links=self._links(draft),
                sections=[built[id(child)] for child in draft.children],
            )
        return [built[id(draft)] for draft in drafts]

    def _title(self, draft: _Draft) -> str:
        for block in draft.blocks:
            if block.type == "heading":
                return _text(block, _is_autolink)
        title = self._first_paragraph_text(draft, _is_autolink)
        return NO_TITLE if title is None else title

    @staticmethod
    def _first_paragraph_text(draft: _Draft, skip: Callable[[SyntaxTreeNode], bool]) -> str | None:
        for block in draft.blocks:
            if block.type == "paragraph":
                return _text(block, skip)
        return None

    def _links(self, draft: _Draft) -> list[str]:
        links: list[str] = []
        for block in draft.blocks:
            for node in _walk(block):
                if node.type == "wikilink":
                    links.append(self.slug(node.meta["target"]))
                elif node.type == "link":
                    href = _href(node)
                    if href.startswith("./"):
                        links.append(file_stem_from_url(href))
        return links
