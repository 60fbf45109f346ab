import logging
from typing import Iterable, Iterator, List

from src.cfi.models import EMPTY_PATH, LeafSpan, Step, StructuralPath
from src.document.document_tree import DocumentTree, NodeKind
from src.utils.errors import StructuralInconsistency

logger = logging.getLogger(__name__)


class TreeWalker:
    """
    Pre-order, depth-first walk over the text leaves of a DocumentTree.

    Each call to walk() starts from scratch; nothing is retained between walks.
    Offsets are positions in the flattened text, i.e. every leaf's text
    concatenated in document order with no separator.
    """

    def __init__(self, tree: DocumentTree):
        self.tree = tree

    def walk(self) -> Iterator[LeafSpan]:
        tree = self.tree
        root = tree.node(tree.root)
        if root.kind is NodeKind.TEXT:
            yield LeafSpan(EMPTY_PATH, 0, len(root.text), root.text)
            return

        cursor = 0
        seen = {tree.root}
        # Children are pushed in reverse so they pop in document order
        stack = list(reversed(self._child_entries(tree.root, EMPTY_PATH, seen)))
        while stack:
            index, path = stack.pop()
            node = tree.node(index)
            if node.kind is NodeKind.TEXT:
                start = cursor
                cursor += len(node.text)
                yield LeafSpan(path, start, cursor, node.text)
            else:
                stack.extend(reversed(self._child_entries(index, path, seen)))

    def _child_entries(self, index: int, path: StructuralPath, seen: set) -> list:
        tree = self.tree
        entries = []
        elements_before = 0
        previous_was_text = False
        for child_index in tree.children(index):
            child = tree.node(child_index)
            if child.parent != index:
                raise StructuralInconsistency(
                    f"Node {child_index} is listed under {index} but names {child.parent} as its parent"
                )
            if child_index in seen:
                raise StructuralInconsistency(f"Node {child_index} is reachable more than once")
            seen.add(child_index)

            if child.kind is NodeKind.TEXT:
                if previous_was_text:
                    raise StructuralInconsistency(
                        f"Adjacent text leaves under node {index} would share the address "
                        f"/{2 * elements_before + 1}"
                    )
                step = Step.text(elements_before)
                previous_was_text = True
            else:
                step = Step.element(elements_before, child.element_id)
                elements_before += 1
                previous_was_text = False
            entries.append((child_index, path.child(step)))
        return entries


def walk_tree(tree: DocumentTree) -> List[LeafSpan]:
    """Materialize one full walk so it can be reused across queries."""
    spans = list(TreeWalker(tree).walk())
    logger.debug(f"Walked {len(spans)} text leaves")
    return spans


def flatten(spans: Iterable[LeafSpan]) -> str:
    return "".join(span.text for span in spans)
