import logging
import unicodedata
from dataclasses import dataclass
from typing import Iterable, List, Optional

from src.cfi.codec import serialize
from src.cfi.models import EMPTY_PATH, LeafSpan, StructuralPath
from src.cfi.range_resolver import RangeResolver
from src.document.document_tree import DocumentTree
from src.document.tree_walker import flatten, walk_tree
from src.utils.config_loader import ConfigLoader
from src.utils.errors import EmptyQuery
from src.utils.logging_utils import sanitize_log_data
from src.utils.polisher import Polisher

logger = logging.getLogger(__name__)

ELLIPSIS = "..."


@dataclass
class SearchResult:
    cfi: str
    excerpt: str
    # absolute offsets of the match in the flattened section text
    start: Optional[int] = None
    end: Optional[int] = None


class SearchService:
    """
    Literal substring search over one section.

    find()   - leaf-local; a hit must sit inside a single text leaf, whitespace exact.
    search() - over the flattened text with whitespace runs collapsed, so hits
               may cross leaf boundaries (e.g. a sentence split by <em>).

    Both scan left to right and resume after the end of the previous hit, so
    results are ordered and never overlap.
    """

    def __init__(self, excerpt_context: Optional[int] = None, resolver: Optional[RangeResolver] = None,
                 polisher: Optional[Polisher] = None):
        if excerpt_context is None:
            excerpt_context = ConfigLoader.get_int("SEARCH_EXCERPT_CONTEXT")
        self.excerpt_context = max(0, excerpt_context)
        self.resolver = resolver or RangeResolver()
        self.polisher = polisher or Polisher()

    def walk(self, tree: DocumentTree) -> List[LeafSpan]:
        return walk_tree(tree)

    def find(self, query: str, tree: Optional[DocumentTree] = None, spans: Optional[Iterable[LeafSpan]] = None,
             base: StructuralPath = EMPTY_PATH, match_case: bool = True) -> List[SearchResult]:
        self._check_query(query)
        spans = self._spans(tree, spans)
        flat = flatten(spans)
        needle = query if match_case else self.polisher.fold_case(query)

        results = []
        for span in spans:
            haystack = span.text if match_case else self.polisher.fold_case(span.text)
            position = haystack.find(needle)
            while position != -1:
                start = span.start + position
                end = start + len(needle)
                results.append(self._result(start, end, spans, flat, base))
                position = haystack.find(needle, position + len(needle))

        logger.debug(f"find('{sanitize_log_data(query)}') -> {len(results)} matches")
        return results

    def search(self, query: str, tree: Optional[DocumentTree] = None, spans: Optional[Iterable[LeafSpan]] = None,
               base: StructuralPath = EMPTY_PATH, match_case: bool = True) -> List[SearchResult]:
        self._check_query(query)
        spans = self._spans(tree, spans)
        flat = flatten(spans)

        canonical, offsets = self.polisher.canonicalize(flat, match_case)
        needle, _ = self.polisher.canonicalize(query, match_case)

        results = []
        position = canonical.find(needle)
        while position != -1:
            end = position + len(needle)
            start, stop = self.polisher.source_span(flat, offsets, position, end)
            results.append(self._result(start, stop, spans, flat, base))
            position = canonical.find(needle, end)

        logger.debug(f"search('{sanitize_log_data(query)}') -> {len(results)} matches")
        return results

    def excerpt(self, flat: str, start: int, end: int) -> str:
        """
        Surrounding text for a hit; '...' marks a side where the window stops
        short of the section's own start or end.
        """
        window_start = max(0, start - self.excerpt_context)
        window_end = min(len(flat), end + self.excerpt_context)

        # Keep combining marks attached to their base character
        while window_start > 0 and unicodedata.combining(flat[window_start]):
            window_start -= 1
        while window_end < len(flat) and unicodedata.combining(flat[window_end]):
            window_end += 1

        text = flat[window_start:window_end]
        if window_start > 0:
            text = ELLIPSIS + text
        if window_end < len(flat):
            text = text + ELLIPSIS
        return text

    def _result(self, start: int, end: int, spans: List[LeafSpan], flat: str, base: StructuralPath) -> SearchResult:
        address = self.resolver.from_offsets(start, end, spans, base=base)
        return SearchResult(cfi=serialize(address), excerpt=self.excerpt(flat, start, end), start=start, end=end)

    def _check_query(self, query: str):
        if not query:
            raise EmptyQuery("Search query must not be empty")

    def _spans(self, tree, spans) -> List[LeafSpan]:
        if spans is not None:
            return list(spans)
        if tree is None:
            raise ValueError("Either a tree or a span table is required")
        return self.walk(tree)
