import logging

import pytest

from src.services.section_service import Section
from src.utils.ebook_utils import EbookParser, LRUCache
from src.utils.errors import AddressNotFound


@pytest.fixture
def parser(tmp_path):
    return EbookParser(books_dir=tmp_path)


def test_lru_cache_evicts_oldest():
    cache = LRUCache(capacity=2)
    cache.put("a", 1)
    cache.put("b", 2)
    assert cache.get("a") == 1
    cache.put("c", 3)
    assert cache.get("b") is None
    assert cache.get("a") == 1
    assert cache.get("c") == 3
    cache.clear()
    assert cache.get("a") is None


def test_resolve_book_path(parser, tmp_path):
    shelf = tmp_path / "shelf"
    shelf.mkdir()
    book = shelf / "alice [1865].epub"
    book.write_bytes(b"")
    assert parser.resolve_book_path("alice [1865].epub") == book
    with pytest.raises(FileNotFoundError):
        parser.resolve_book_path("missing.epub")


def test_resolve_book_path_from_cache_dir(tmp_path):
    cache_dir = tmp_path / "epub_cache"
    cache_dir.mkdir()
    (cache_dir / "cached.epub").write_bytes(b"")
    parser = EbookParser(books_dir=tmp_path / "books", epub_cache_dir=cache_dir)
    assert parser.resolve_book_path("cached.epub") == cache_dir / "cached.epub"


def test_spine_node_index(parser, sample_epub):
    assert parser.get_spine_node_index(sample_epub) == 2


def test_spine_node_index_of_unreadable_file(parser, tmp_path):
    broken = tmp_path / "broken.epub"
    broken.write_bytes(b"not a zip")
    assert parser.get_spine_node_index(broken) == 2


def test_load_sections(parser, sample_epub):
    sections = parser.load_sections(sample_epub)
    assert [s.idref for s in sections] == ["chapter_001", "chapter_002"]
    assert [s.index for s in sections] == [0, 1]
    assert sections[0].cfi_base == "/6/2[chapter_001]"
    assert sections[1].cfi_base == "/6/4[chapter_002]"
    assert all(isinstance(s, Section) for s in sections)
    assert "white rabbit" in sections[0].flattened_text


def test_load_sections_is_cached(parser, sample_epub):
    assert parser.load_sections(sample_epub) is parser.load_sections(sample_epub)


def test_load_sections_by_name(parser, sample_epub):
    sections = parser.load_sections("alice.epub")
    assert len(sections) == 2


def test_unreadable_book_yields_no_sections(parser, tmp_path, caplog):
    broken = tmp_path / "broken.epub"
    broken.write_bytes(b"not a zip")
    with caplog.at_level(logging.ERROR):
        assert parser.load_sections(broken) == []
    assert "Failed to parse EPUB" in caplog.text


def test_get_section(parser, sample_epub):
    assert parser.get_section(sample_epub, 1).idref == "chapter_002"
    assert parser.get_section(sample_epub, 5) is None


def test_search_book(parser, sample_epub):
    results = parser.search_book(sample_epub, "white rabbit")
    assert len(results) == 1
    assert results[0].cfi.startswith("epubcfi(/6/2[chapter_001]!/4/")
    assert "white rabbit" in results[0].excerpt


def test_search_book_modes(parser, sample_epub):
    assert parser.search_book(sample_epub, "I beg", mode="find") == []

    results = parser.search_book(sample_epub, "I beg", mode="search")
    assert len(results) == 1
    assert results[0].cfi.startswith("epubcfi(/6/4[chapter_002]!/4/")
    assert results[0].cfi.endswith(",/1:5,/2/1:3)")


def test_search_book_ignore_case(parser, sample_epub):
    assert parser.search_book(sample_epub, "WHITE RABBIT") == []
    assert len(parser.search_book(sample_epub, "WHITE RABBIT", match_case=False)) == 1


def test_search_book_rejects_unknown_mode(parser, sample_epub):
    with pytest.raises(ValueError):
        parser.search_book(sample_epub, "rabbit", mode="fuzzy")


def test_get_text_around_cfi(parser, sample_epub):
    result = parser.search_book(sample_epub, "I beg")[0]
    snippet = parser.get_text_around_cfi(sample_epub, result.cfi, context=5)
    assert "I beg" in snippet
    assert len(snippet) <= len("I beg") + 10


def test_get_text_around_cfi_outside_spine(parser, sample_epub, caplog):
    with caplog.at_level(logging.ERROR):
        assert parser.get_text_around_cfi(sample_epub, "epubcfi(/6/20[chapter_099]!/4/2/1:0)") is None
    assert "out of range" in caplog.text


def test_get_text_around_cfi_needs_spine_component(parser, sample_epub):
    with pytest.raises(AddressNotFound):
        parser.get_text_around_cfi(sample_epub, "epubcfi(/4/2/1:0)")
