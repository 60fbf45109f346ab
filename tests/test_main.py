import logging

import pytest

import main


@pytest.fixture(autouse=True)
def isolated_env(tmp_path, monkeypatch):
    monkeypatch.setenv("DATA_DIR", str(tmp_path))
    monkeypatch.setenv("BOOKS_DIR", str(tmp_path))
    root_handlers = list(logging.getLogger().handlers)
    yield
    root = logging.getLogger()
    for handler in list(root.handlers):
        if handler not in root_handlers:
            root.removeHandler(handler)
            handler.close()


def test_search_prints_cfis(sample_epub, capsys):
    assert main.main([str(sample_epub), "I beg"]) == 0
    out = capsys.readouterr().out
    assert "epubcfi(/6/4[chapter_002]!/4/" in out
    assert '"Oh, I beg your pardon!"' in out


def test_find_mode(sample_epub, capsys):
    assert main.main([str(sample_epub), "I beg", "--mode", "find"]) == 0
    assert "epubcfi(" not in capsys.readouterr().out


def test_ignore_case(sample_epub, capsys):
    assert main.main([str(sample_epub), "WHITE RABBIT", "--ignore-case"]) == 0
    assert "epubcfi(/6/2[chapter_001]!/4/" in capsys.readouterr().out


def test_cfi_lookup(sample_epub, capsys):
    main.main([str(sample_epub), "white rabbit"])
    cfi = capsys.readouterr().out.splitlines()[0]
    assert main.main([str(sample_epub), "--cfi", cfi, "--context", "3"]) == 0
    assert "white rabbit" in capsys.readouterr().out


def test_malformed_cfi_fails(sample_epub):
    assert main.main([str(sample_epub), "--cfi", "/6/2!/4"]) == 1


def test_missing_book_fails():
    assert main.main(["nowhere.epub", "rabbit"]) == 1


def test_nothing_to_do(sample_epub):
    assert main.main([str(sample_epub)]) == 2


def test_file_log_written(sample_epub, tmp_path):
    main.main([str(sample_epub), "rabbit"])
    assert (tmp_path / "logs" / "epub_search.log").exists()
