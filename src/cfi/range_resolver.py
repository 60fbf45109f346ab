import logging
from bisect import bisect_left, bisect_right
from typing import Dict, Iterable, List, Optional, Tuple

from src.cfi.models import (
    EMPTY_PATH, CfiAddress, CfiPoint, CfiRange, CfiSegment, LeafSpan, StructuralPath,
)
from src.document.document_tree import DocumentTree
from src.document.tree_walker import walk_tree
from src.utils.errors import AddressNotFound, AddressOutOfRange, InvalidRange

logger = logging.getLogger(__name__)


class RangeResolver:
    """Converts between structured CFI addresses and absolute flattened-text offsets."""

    def resolve(self, address: CfiAddress, tree: Optional[DocumentTree] = None,
                spans: Optional[Iterable[LeafSpan]] = None) -> Tuple[int, int]:
        """
        Resolve an address against a tree (one walk) or an already walked span table.
        A point resolves to (offset, offset).
        """
        leaves = self._index_by_path(self._spans(tree, spans))

        if isinstance(address, CfiRange):
            start = self._absolute(leaves, address.start_path, address.start.offset)
            end = self._absolute(leaves, address.end_path, address.end.offset)
            if start > end:
                raise InvalidRange(f"Range resolves backwards ({start} > {end})")
            return start, end

        position = self._absolute(leaves, address.path, address.offset)
        return position, position

    def from_offsets(self, start: int, end: int, spans: Iterable[LeafSpan],
                     base: StructuralPath = EMPTY_PATH) -> CfiAddress:
        """
        Build the address for [start, end) in flattened-text coordinates.
        A start on a leaf boundary belongs to the following leaf, an end on a
        boundary to the preceding one.
        """
        if start > end:
            raise InvalidRange(f"Start offset {start} follows end offset {end}")

        # Empty leaves hold no characters and cannot anchor an offset
        leaves = [span for span in spans if span.end > span.start]
        if not leaves:
            raise AddressNotFound("Document has no text to address")
        total = leaves[-1].end
        if start < 0 or end > total:
            raise AddressOutOfRange(f"Offsets ({start}, {end}) fall outside the text [0, {total}]")

        starts = [leaf.start for leaf in leaves]
        ends = [leaf.end for leaf in leaves]

        start_leaf = leaves[max(bisect_right(starts, start) - 1, 0)]
        if start == end:
            return CfiPoint(path=start_leaf.path, offset=start - start_leaf.start, base=base)

        end_leaf = leaves[bisect_left(ends, end)]
        start_path, end_path = start_leaf.path, end_leaf.path

        shared = len(start_path.common_prefix(end_path))
        # Both ends keep at least their own leaf step
        shared = max(min(shared, len(start_path) - 1, len(end_path) - 1), 0)

        return CfiRange(
            path=start_path[:shared],
            start=CfiSegment(start_path[shared:], start - start_leaf.start),
            end=CfiSegment(end_path[shared:], end - end_leaf.start),
            base=base,
        )

    def _spans(self, tree, spans) -> List[LeafSpan]:
        if spans is not None:
            return list(spans)
        if tree is None:
            raise ValueError("Either a tree or a span table is required")
        return walk_tree(tree)

    def _index_by_path(self, spans: List[LeafSpan]) -> Dict[StructuralPath, LeafSpan]:
        return {span.path: span for span in spans}

    def _absolute(self, leaves: Dict[StructuralPath, LeafSpan], path: StructuralPath,
                  offset: Optional[int]) -> int:
        leaf = leaves.get(path)
        if leaf is None:
            raise AddressNotFound(f"No text leaf at {path.values}")
        offset = offset or 0
        if offset > len(leaf.text):
            raise AddressOutOfRange(
                f"Offset {offset} exceeds the {len(leaf.text)} characters of leaf {path.values}"
            )
        return leaf.start + offset
