# cs2_stats/scraper/document.py
"""
Immutable snapshot of a rendered stats page.

The browser hands over the final HTML once; everything the extraction rules
need (text, parent, children, siblings) is materialized here so extraction
never talks to a live page.
"""

from dataclasses import dataclass
from typing import Iterator, List, Optional, Tuple

from bs4 import BeautifulSoup
from bs4.element import Tag

SKIPPED_TAGS = frozenset({'script', 'style', 'noscript', 'template'})


@dataclass(frozen=True)
class DocNode:
    """One element of the page. `text` is the trimmed text of the whole subtree."""

    index: int
    tag: str
    text: str
    parent: Optional[int] = None
    children: Tuple[int, ...] = ()
    classes: Tuple[str, ...] = ()

    def has_class(self, name: str) -> bool:
        return name in self.classes


class DocumentSnapshot:
    """Read-only element tree in document order."""

    def __init__(self, nodes: Tuple[DocNode, ...], url: str = '', title: str = ''):
        self._nodes = tuple(nodes)
        self.url = url
        self.title = title

    def __len__(self) -> int:
        return len(self._nodes)

    @classmethod
    def from_html(cls, html: str, url: str = '') -> 'DocumentSnapshot':
        """
        Build a snapshot from rendered page HTML.

        Args:
            html: Page content (e.g. Playwright page.content())
            url: Final page URL

        Returns:
            DocumentSnapshot with every element in document order
        """
        try:
            soup = BeautifulSoup(html or '', 'html.parser')
        except RecursionError:
            raise ValueError("Page markup is nested too deeply to snapshot")

        title_tag = soup.find('title')
        title = title_tag.get_text().strip() if title_tag else ''

        # Mutable build records: [tag, text, parent, children, classes]
        records: List[list] = []

        # Explicit stack keeps arbitrarily deep markup off the call stack.
        stack = [
            (element, None)
            for element in reversed(soup.find_all(recursive=False))
            if element.name.lower() not in SKIPPED_TAGS
        ]
        try:
            while stack:
                element, parent_index = stack.pop()
                index = len(records)
                classes = element.get('class') or []
                if isinstance(classes, str):
                    classes = classes.split()
                records.append([
                    element.name.lower(),
                    element.get_text().strip(),
                    parent_index,
                    [],
                    tuple(classes),
                ])
                if parent_index is not None:
                    records[parent_index][3].append(index)
                children = [
                    child for child in element.children
                    if isinstance(child, Tag) and child.name.lower() not in SKIPPED_TAGS
                ]
                stack.extend((child, index) for child in reversed(children))
        except RecursionError:
            raise ValueError("Page markup is nested too deeply to snapshot")

        nodes = tuple(
            DocNode(
                index=i,
                tag=tag,
                text=text,
                parent=parent,
                children=tuple(children),
                classes=classes,
            )
            for i, (tag, text, parent, children, classes) in enumerate(records)
        )
        return cls(nodes, url=url, title=title)

    def iter_nodes(self) -> Iterator[DocNode]:
        return iter(self._nodes)

    def node(self, index: int) -> DocNode:
        return self._nodes[index]

    def parent_of(self, node: DocNode) -> Optional[DocNode]:
        if node.parent is None:
            return None
        return self._nodes[node.parent]

    def children_of(self, node: DocNode) -> List[DocNode]:
        return [self._nodes[i] for i in node.children]

    def siblings_of(self, node: DocNode) -> List[DocNode]:
        """All children of the node's parent, the node included."""
        parent = self.parent_of(node)
        if parent is None:
            return [node]
        return self.children_of(parent)

    def closest(self, node: DocNode, tag: str) -> Optional[DocNode]:
        """Nearest ancestor-or-self with the given tag name."""
        current: Optional[DocNode] = node
        while current is not None:
            if current.tag == tag:
                return current
            current = self.parent_of(current)
        return None

    def parent_text(self, node: DocNode) -> str:
        parent = self.parent_of(node)
        return parent.text if parent else ''
