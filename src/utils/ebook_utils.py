"""
Ebook Utilities for epub-search

Opens EPUB files and exposes each spine item as a searchable Section.
"""
from typing import List, Optional

import ebooklib
from ebooklib import epub
from lxml import etree
import glob
import logging
import zipfile
from pathlib import Path
from collections import OrderedDict

from src.cfi.codec import generate_chapter_component, parse, spine_position
from src.services.search_service import SearchResult, SearchService
from src.services.section_service import Section
from src.utils.config_loader import ConfigLoader
from src.utils.errors import AddressNotFound, StructuralInconsistency
from src.utils.logging_utils import sanitize_log_data, time_execution

logger = logging.getLogger(__name__)

# <spine> is the third child of <package> in practically every OPF (/6)
DEFAULT_SPINE_NODE_INDEX = 2


class LRUCache:
    def __init__(self, capacity: int = 3):
        self.cache = OrderedDict()
        self.capacity = capacity

    def get(self, key):
        if key not in self.cache:
            return None
        self.cache.move_to_end(key)
        return self.cache[key]

    def put(self, key, value):
        if key in self.cache:
            self.cache.move_to_end(key)
        self.cache[key] = value
        while len(self.cache) > self.capacity:
            self.cache.popitem(last=False)

    def clear(self):
        self.cache.clear()


class EbookParser:
    def __init__(self, books_dir, epub_cache_dir=None, search_service: Optional[SearchService] = None):
        self.books_dir = Path(books_dir)
        self.epub_cache_dir = Path(epub_cache_dir) if epub_cache_dir else None

        cache_size = ConfigLoader.get_int("EBOOK_CACHE_SIZE")
        self.cache = LRUCache(capacity=cache_size)
        self.search_service = search_service or SearchService()

        logger.info(f"✅ EbookParser initialized (cache={cache_size}, books_dir={self.books_dir})")

    def resolve_book_path(self, filename):
        try:
            safe_name = glob.escape(filename)
            return next(self.books_dir.glob(f"**/{safe_name}"))
        except StopIteration:
            pass

        for f in self.books_dir.rglob("*"):
            if f.name == filename:
                return f

        if self.epub_cache_dir and self.epub_cache_dir.exists():
            cached_path = self.epub_cache_dir / filename
            if cached_path.exists():
                return cached_path

        raise FileNotFoundError(f"Could not locate {filename}")

    def _find_opf_path(self, zf: zipfile.ZipFile) -> Optional[str]:
        try:
            container = zf.read('META-INF/container.xml')
            root = etree.fromstring(container)
            for rootfile in root.iter():
                if isinstance(rootfile.tag, str) and rootfile.tag.endswith('rootfile'):
                    return rootfile.get('full-path')
        except (KeyError, etree.XMLSyntaxError) as e:
            logger.debug(f"Failed to read OPF path from container.xml: {e}")
        return None

    def get_spine_node_index(self, filepath) -> int:
        """Position of <spine> among the element children of <package>."""
        try:
            with zipfile.ZipFile(filepath, 'r') as zf:
                opf_path = self._find_opf_path(zf)
                if not opf_path:
                    return DEFAULT_SPINE_NODE_INDEX
                package = etree.fromstring(zf.read(opf_path))
        except (KeyError, zipfile.BadZipFile, etree.XMLSyntaxError) as e:
            logger.debug(f"Could not inspect OPF of {Path(filepath).name}: {e}")
            return DEFAULT_SPINE_NODE_INDEX

        children = [child for child in package if isinstance(child.tag, str)]
        for position, child in enumerate(children):
            if etree.QName(child).localname == 'spine':
                return position
        return DEFAULT_SPINE_NODE_INDEX

    def load_sections(self, filepath) -> List[Section]:
        """
        Build one Section per spine item, in spine order.
        Sections are cached per book; a book that cannot be read yields [].
        """
        filepath = Path(filepath)
        if not filepath.exists():
            filepath = self.resolve_book_path(filepath.name)
        str_path = str(filepath)

        cached = self.cache.get(str_path)
        if cached is not None:
            return cached

        logger.info(f"Parsing EPUB: {filepath.name}")

        try:
            book = epub.read_epub(str_path)
        except Exception as e:
            logger.error(f"❌ Failed to parse EPUB '{filepath}': {e}")
            return []

        spine_node_index = self.get_spine_node_index(filepath)
        sections = []
        for i, item_ref in enumerate(book.spine):
            idref = item_ref[0] if isinstance(item_ref, (tuple, list)) else item_ref
            linear = item_ref[1] if isinstance(item_ref, (tuple, list)) and len(item_ref) > 1 else 'yes'

            item = book.get_item_with_id(idref)
            if item is None or item.get_type() != ebooklib.ITEM_DOCUMENT:
                logger.debug(f"Skipping spine item {i} ({idref}): not a document")
                continue

            try:
                section = Section.from_markup(
                    item.get_content(),
                    index=i,
                    idref=idref,
                    href=item.get_name(),
                    cfi_base=generate_chapter_component(spine_node_index, i, idref),
                    search_service=self.search_service,
                    linear=str(linear).lower() != 'no',
                )
            except StructuralInconsistency as e:
                logger.warning(f"⚠️ Skipping spine item {i} ({idref}) in '{filepath.name}': {e}")
                continue
            sections.append(section)

        self.cache.put(str_path, sections)
        return sections

    def get_section(self, filename, index: int) -> Optional[Section]:
        for section in self.load_sections(filename):
            if section.index == index:
                return section
        return None

    @time_execution
    def search_book(self, filename, query: str, mode: str = "search",
                    match_case: Optional[bool] = None) -> List[SearchResult]:
        """
        Run find() or search() over every spine item. CFIs carry the spine
        item's base, so results from different sections never collide.
        """
        if mode not in ("find", "search"):
            raise ValueError(f"Unknown search mode '{mode}'")

        results = []
        for section in self.load_sections(filename):
            method = section.find if mode == "find" else section.search
            results.extend(method(query, match_case=match_case))

        logger.info(f"🔍 {mode} '{sanitize_log_data(query)}' in '{filename}': {len(results)} matches")
        return results

    def get_text_around_cfi(self, filename, cfi, context=50) -> Optional[str]:
        """
        Returns the text of the addressed position (or range) with `context`
        characters on either side.

        Example supported CFI: epubcfi(/6/8[chapter_001]!/4/2/16,/1:275,/1:323)
        """
        address = parse(cfi)
        position = spine_position(address)
        if position is None:
            raise AddressNotFound(f"CFI '{cfi}' does not name a spine item")

        section = self.get_section(filename, position)
        if section is None:
            logger.error(f"❌ Spine index {position} out of range for CFI '{cfi}'")
            return None

        start, end = section.resolve_cfi(address)
        text = section.flattened_text
        snippet = text[max(0, start - context):min(len(text), end + context)]
        logger.debug(f"Snippet extracted: {snippet[:30]}...")
        return snippet
