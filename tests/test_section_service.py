import pytest

from src.cfi.models import StructuralPath
from src.document.document_tree import DocumentTree
from src.services import section_service
from src.services.search_service import SearchService
from src.services.section_service import Section
from src.utils.errors import AddressNotFound, MalformedCfi

CHAPTER_010 = (
    '<html xmlns="http://www.w3.org/1999/xhtml"><head><title>X</title></head><body><div>'
    '<p>The Lobster Quadrille</p>'
    '<p>The Mock Turtle sighed deeply.</p>'
    '<p>"Oh, I <em>beg</em> your pardon!" she exclaimed in a tone of great dismay.</p>'
    '</div></body></html>'
)


@pytest.fixture
def section():
    return Section.from_markup(
        CHAPTER_010,
        index=12,
        idref="chapter_010",
        href="chapter_010.xhtml",
        cfi_base="/6/26[chapter_010]",
        search_service=SearchService(excerpt_context=20),
    )


def test_search_carries_spine_base(section):
    results = section.search("I beg")
    assert [r.cfi for r in results] == ["epubcfi(/6/26[chapter_010]!/4/2/6,/1:5,/2/1:3)"]


def test_find_carries_spine_base(section):
    results = section.find("Mock Turtle")
    assert len(results) == 1
    assert results[0].cfi.startswith("epubcfi(/6/26[chapter_010]!/4/2/4,/1:4,")


def test_match_case_override(section):
    assert section.search("i beg") == []
    assert len(section.search("i beg", match_case=False)) == 1


def test_match_case_default_from_config(monkeypatch):
    monkeypatch.setenv("SEARCH_MATCH_CASE", "false")
    section = Section.from_markup(CHAPTER_010)
    assert len(section.search("i beg")) == 1


def test_resolve_cfi_round_trip(section):
    result = section.search("I beg")[0]
    assert section.resolve_cfi(result.cfi) == (result.start, result.end)
    assert section.flattened_text[result.start:result.end] == "I beg"


def test_resolve_cfi_rejects_other_spine_item(section):
    with pytest.raises(AddressNotFound):
        section.resolve_cfi("epubcfi(/6/28[chapter_011]!/4/2/6/1:0)")


def test_resolve_cfi_without_base(section):
    # "X" from <title> precedes the first paragraph
    assert section.resolve_cfi("epubcfi(/4/2/2/1:4)") == (5, 5)


def test_resolve_cfi_malformed(section):
    with pytest.raises(MalformedCfi):
        section.resolve_cfi("epubcfi(/6/26!/4/2/6/1:x)")


def test_cfi_from_offsets(section):
    text = section.flattened_text
    start = text.index("Lobster")
    cfi = section.cfi_from_offsets(start, start + len("Lobster"))
    assert cfi == "epubcfi(/6/26[chapter_010]!/4/2/2,/1:4,/1:11)"


def test_cfi_from_path(section):
    assert section.cfi_from_path(StructuralPath.of(4, 2, 6)) == "epubcfi(/6/26[chapter_010]!/4/2/6)"
    assert section.cfi_from_path(StructuralPath.of(4, 2, 6, 1), 5) == "epubcfi(/6/26[chapter_010]!/4/2/6/1:5)"


def test_walk_is_cached_until_unload(section):
    spans = section.leaf_spans()
    assert section.leaf_spans() is spans
    section.unload()
    assert section.leaf_spans() is not spans
    assert section.leaf_spans() == spans


def test_repr(section):
    assert repr(section) == "Section(index=12, idref='chapter_010', href='chapter_010.xhtml')"


def test_module_functions():
    tree = DocumentTree.from_markup(CHAPTER_010)
    results = section_service.search(tree, "I beg")
    assert [r.cfi for r in results] == ["epubcfi(/4/2/6,/1:5,/2/1:3)"]
    assert section_service.find(tree, "I beg") == []
    assert section_service.resolve_cfi(results[0].cfi, tree) == (results[0].start, results[0].end)
    assert section_service.cfi_from_offsets(results[0].start, results[0].end, tree) == results[0].cfi


def test_module_functions_follow_config_changes(monkeypatch):
    tree = DocumentTree.from_text("abcdefghijklmnopqrstuvwxyz")
    monkeypatch.setenv("SEARCH_EXCERPT_CONTEXT", "2")
    assert section_service.search(tree, "mno")[0].excerpt == "...klmnopq..."
    monkeypatch.setenv("SEARCH_EXCERPT_CONTEXT", "1")
    assert section_service.search(tree, "mno")[0].excerpt == "...lmnop..."
    assert section_service.find(tree, "mno")[0].excerpt == "...lmnop..."
