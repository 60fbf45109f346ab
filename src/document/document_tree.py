"""
Document tree for one spine item.

Nodes live in a flat arena and refer to each other by index, so paths into
the tree are plain values with no back-references. Each node is either a
TextLeaf or a Container.
"""
import logging
from dataclasses import dataclass
from enum import Enum
from typing import List, Optional, Tuple, Union

from bs4 import BeautifulSoup, Tag
from bs4.element import Comment, Declaration, Doctype, NavigableString, ProcessingInstruction
from lxml import etree

from src.utils.errors import StructuralInconsistency

logger = logging.getLogger(__name__)


class NodeKind(str, Enum):
    TEXT = "text"
    CONTAINER = "container"


@dataclass(frozen=True)
class TextLeaf:
    text: str
    parent: Optional[int] = None

    @property
    def kind(self) -> NodeKind:
        return NodeKind.TEXT


@dataclass(frozen=True)
class Container:
    tag: str
    children: Tuple[int, ...] = ()
    parent: Optional[int] = None
    element_id: Optional[str] = None

    @property
    def kind(self) -> NodeKind:
        return NodeKind.CONTAINER


Node = Union[TextLeaf, Container]

# Markup nodes that carry no document text of their own
_SKIPPED_SOUP_NODES = (Comment, Declaration, Doctype, ProcessingInstruction)


class DocumentTree:
    """Read-only arena of nodes; index `root` is the document element."""

    def __init__(self, nodes: List[Node], root: int = 0):
        self._nodes = tuple(nodes)
        if not 0 <= root < len(self._nodes):
            raise StructuralInconsistency(f"Root index {root} is not in a tree of {len(self._nodes)} nodes")
        self.root = root

    def __len__(self):
        return len(self._nodes)

    def node(self, index: int) -> Node:
        if not 0 <= index < len(self._nodes):
            raise StructuralInconsistency(f"Node index {index} does not exist")
        return self._nodes[index]

    def children(self, index: int) -> Tuple[int, ...]:
        node = self.node(index)
        if node.kind is NodeKind.TEXT:
            return ()
        return node.children

    def is_text(self, index: int) -> bool:
        return self.node(index).kind is NodeKind.TEXT

    def text(self, index: int) -> str:
        node = self.node(index)
        if node.kind is not NodeKind.TEXT:
            raise StructuralInconsistency(f"Node {index} <{node.tag}> is not a text leaf")
        return node.text

    def find_element(self, element_id: str) -> Optional[int]:
        for index, node in enumerate(self._nodes):
            if node.kind is NodeKind.CONTAINER and node.element_id == element_id:
                return index
        return None

    @classmethod
    def from_text(cls, text: str) -> "DocumentTree":
        """A document made of one implicit text container."""
        return cls([TextLeaf(text)])

    @classmethod
    def from_markup(cls, content: Union[str, bytes]) -> "DocumentTree":
        """
        Parse XHTML with lxml. Content that is not well-formed XML falls back
        to BeautifulSoup's html.parser, which keeps every character of text.
        """
        raw = content.encode("utf-8") if isinstance(content, str) else content
        parser = etree.XMLParser(resolve_entities=False, no_network=True, remove_comments=False)
        try:
            root = etree.fromstring(raw, parser=parser)
        except etree.XMLSyntaxError as e:
            logger.debug(f"Strict XHTML parse failed, using html.parser: {e}")
            return cls.from_soup(BeautifulSoup(raw, "html.parser"))
        return cls.from_element(root)

    @classmethod
    def from_element(cls, root) -> "DocumentTree":
        builder = _TreeBuilder()
        builder.add_lxml_element(root, None)
        return builder.build()

    @classmethod
    def from_soup(cls, soup: BeautifulSoup) -> "DocumentTree":
        root = soup.find(True)
        if root is None:
            raise StructuralInconsistency("Markup has no document element")
        builder = _TreeBuilder()
        builder.add_soup_tag(root, None)
        return builder.build()


class _TreeBuilder:
    """Collects nodes in document order, merging text split by comments."""

    def __init__(self):
        self._nodes = []

    def _add_container(self, tag: str, parent: Optional[int], element_id: Optional[str]) -> int:
        index = len(self._nodes)
        self._nodes.append({"kind": NodeKind.CONTAINER, "tag": tag, "parent": parent,
                            "element_id": element_id, "children": []})
        if parent is not None:
            self._nodes[parent]["children"].append(index)
        return index

    def _add_text(self, text: Optional[str], parent: int):
        if not text:
            return
        siblings = self._nodes[parent]["children"]
        if siblings and self._nodes[siblings[-1]]["kind"] is NodeKind.TEXT:
            self._nodes[siblings[-1]]["text"] += text
            return
        self._nodes.append({"kind": NodeKind.TEXT, "text": text, "parent": parent})
        siblings.append(len(self._nodes) - 1)

    def add_lxml_element(self, element, parent: Optional[int]):
        tag = etree.QName(element).localname
        index = self._add_container(tag, parent, element.get("id"))
        self._add_text(element.text, index)
        for child in element:
            # Comments, PIs and entities have a non-string tag; only their tail is text
            if isinstance(child.tag, str):
                self.add_lxml_element(child, index)
            self._add_text(child.tail, index)

    def add_soup_tag(self, tag: Tag, parent: Optional[int]):
        index = self._add_container(tag.name, parent, tag.get("id"))
        for child in tag.children:
            if isinstance(child, Tag):
                self.add_soup_tag(child, index)
            elif isinstance(child, _SKIPPED_SOUP_NODES):
                continue
            elif isinstance(child, NavigableString):
                self._add_text(str(child), index)

    def build(self) -> DocumentTree:
        nodes = []
        for raw in self._nodes:
            if raw["kind"] is NodeKind.TEXT:
                nodes.append(TextLeaf(raw["text"], raw["parent"]))
            else:
                nodes.append(Container(raw["tag"], tuple(raw["children"]), raw["parent"], raw["element_id"]))
        return DocumentTree(nodes, root=0)
