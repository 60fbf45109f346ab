"""
epub-search - command line entry point

Search an EPUB's spine items for a phrase, or print the text around a CFI.

    python main.py book.epub "white rabbit"
    python main.py book.epub "I beg" --mode find --ignore-case
    python main.py book.epub --cfi "epubcfi(/6/8[chapter_001]!/4/2/16,/1:275,/1:323)"
"""

import argparse
import logging
import sys

from src.utils.config_loader import ConfigLoader
from src.utils.ebook_utils import EbookParser
from src.utils.errors import CfiError
from src.utils.logging_utils import setup_console_logging, setup_file_logging

logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Search EPUB sections and resolve EPUB CFIs.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument("book", help="EPUB file path, or a file name under BOOKS_DIR")
    parser.add_argument("query", nargs="?", help="Literal text to look for")
    parser.add_argument("--mode", choices=("find", "search"), default="search",
                        help="find: inside single text nodes; search: across node boundaries")
    parser.add_argument("--ignore-case", action="store_true", help="Case-insensitive matching")
    parser.add_argument("--cfi", help="Print the text around this CFI instead of searching")
    parser.add_argument("--context", type=int, default=50, help="Characters of context for --cfi")
    parser.add_argument("--settings", help="JSON settings file applied over the environment")
    return parser


def main(argv=None) -> int:
    args = build_parser().parse_args(argv)

    if args.settings:
        ConfigLoader.load_settings(args.settings)
    setup_console_logging()
    setup_file_logging()

    if not args.query and not args.cfi:
        logger.error("❌ Nothing to do: give a query or --cfi")
        return 2

    ebook_parser = EbookParser(ConfigLoader.get("BOOKS_DIR"))
    try:
        if args.cfi:
            snippet = ebook_parser.get_text_around_cfi(args.book, args.cfi, context=args.context)
            if snippet is None:
                return 1
            print(snippet)
            return 0

        match_case = False if args.ignore_case else None
        results = ebook_parser.search_book(args.book, args.query, mode=args.mode, match_case=match_case)
    except (CfiError, FileNotFoundError) as e:
        logger.error(f"❌ {e}")
        return 1

    for result in results:
        print(result.cfi)
        print(f"    {' '.join(result.excerpt.split())}")
    return 0


if __name__ == "__main__":
    sys.exit(main())
