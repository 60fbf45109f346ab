import pytest
from ebooklib import epub


def write_sample_book(path):
    book = epub.EpubBook()
    book.set_identifier("alice-sample")
    book.set_title("Alice's Adventures in Wonderland")
    book.set_language("en")

    chapter_1 = epub.EpubHtml(title="Down the Rabbit-Hole", file_name="chapter_001.xhtml",
                              uid="chapter_001", lang="en")
    chapter_1.content = (
        "<html><body><h1>Down the Rabbit-Hole</h1>"
        "<p>Suddenly a white rabbit with pink eyes ran close by her.</p></body></html>"
    )
    chapter_2 = epub.EpubHtml(title="The Lobster Quadrille", file_name="chapter_002.xhtml",
                              uid="chapter_002", lang="en")
    chapter_2.content = (
        '<html><body><p>"Oh, I <em>beg</em> your pardon!" she exclaimed in a tone of great dismay.</p>'
        "</body></html>"
    )

    book.add_item(chapter_1)
    book.add_item(chapter_2)
    book.toc = (
        epub.Link("chapter_001.xhtml", "Down the Rabbit-Hole", "chapter_001"),
        epub.Link("chapter_002.xhtml", "The Lobster Quadrille", "chapter_002"),
    )
    book.add_item(epub.EpubNcx())
    book.add_item(epub.EpubNav())
    book.spine = [chapter_1, chapter_2]

    epub.write_epub(str(path), book)
    return path


@pytest.fixture
def sample_epub(tmp_path):
    return write_sample_book(tmp_path / "alice.epub")
