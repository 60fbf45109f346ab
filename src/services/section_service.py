"""
Section of a book (usually one chapter): a document tree plus its spine
identity, with search and CFI conversion on top.
"""
import logging
from typing import List, Optional, Tuple, Union

from src.cfi.codec import parse, parse_component, serialize
from src.cfi.models import EMPTY_PATH, CfiAddress, CfiPoint, LeafSpan, StructuralPath
from src.document.document_tree import DocumentTree
from src.document.tree_walker import flatten, walk_tree
from src.services.search_service import SearchResult, SearchService
from src.utils.config_loader import ConfigLoader
from src.utils.errors import AddressNotFound

logger = logging.getLogger(__name__)


class Section:
    def __init__(self, tree: DocumentTree, index: int = 0, idref: Optional[str] = None,
                 href: Optional[str] = None, cfi_base: Optional[str] = None,
                 search_service: Optional[SearchService] = None, linear: bool = True):
        self.tree = tree
        self.index = index
        self.idref = idref
        self.href = href
        self.linear = linear
        self.cfi_base = cfi_base
        self.base = parse_component(cfi_base) if cfi_base else EMPTY_PATH
        self.search_service = search_service or SearchService()
        self.resolver = self.search_service.resolver
        self.match_case = ConfigLoader.get_bool("SEARCH_MATCH_CASE")
        self._spans: Optional[List[LeafSpan]] = None

    @classmethod
    def from_markup(cls, content, **kwargs) -> "Section":
        return cls(DocumentTree.from_markup(content), **kwargs)

    def leaf_spans(self) -> List[LeafSpan]:
        """The walk of this section, computed once and reused by every query."""
        if self._spans is None:
            self._spans = walk_tree(self.tree)
        return self._spans

    @property
    def flattened_text(self) -> str:
        return flatten(self.leaf_spans())

    def find(self, query: str, match_case: Optional[bool] = None) -> List[SearchResult]:
        """Find a string inside single text leaves of the section."""
        return self.search_service.find(query, spans=self.leaf_spans(), base=self.base,
                                        match_case=self._match_case(match_case))

    def search(self, query: str, match_case: Optional[bool] = None) -> List[SearchResult]:
        """Search a string across text leaves, whitespace runs collapsed."""
        return self.search_service.search(query, spans=self.leaf_spans(), base=self.base,
                                          match_case=self._match_case(match_case))

    def resolve_cfi(self, cfi: Union[str, CfiAddress]) -> Tuple[int, int]:
        address = parse(cfi) if isinstance(cfi, str) else cfi
        if address.base and self.base and address.base != self.base:
            raise AddressNotFound(
                f"CFI base {address.base.values} belongs to another spine item than {self.cfi_base}"
            )
        return self.resolver.resolve(address, spans=self.leaf_spans())

    def cfi_from_offsets(self, start: int, end: int) -> str:
        return serialize(self.resolver.from_offsets(start, end, self.leaf_spans(), base=self.base))

    def cfi_from_path(self, path: StructuralPath, offset: Optional[int] = None) -> str:
        """CFI for an element or text leaf, optionally with a character offset."""
        return serialize(CfiPoint(path=path, offset=offset, base=self.base))

    def unload(self):
        """Drop the cached walk."""
        self._spans = None

    def _match_case(self, match_case: Optional[bool]) -> bool:
        return self.match_case if match_case is None else match_case

    def __repr__(self):
        return f"Section(index={self.index}, idref={self.idref!r}, href={self.href!r})"


def _service() -> SearchService:
    # Built per call so SEARCH_* settings changed at runtime apply
    return SearchService()


def find(tree: DocumentTree, query: str) -> List[SearchResult]:
    return _service().find(query, tree=tree)


def search(tree: DocumentTree, query: str) -> List[SearchResult]:
    return _service().search(query, tree=tree)


def resolve_cfi(cfi: str, tree: DocumentTree) -> Tuple[int, int]:
    return _service().resolver.resolve(parse(cfi), tree=tree)


def cfi_from_offsets(start: int, end: int, tree: DocumentTree) -> str:
    return serialize(_service().resolver.from_offsets(start, end, walk_tree(tree)))
