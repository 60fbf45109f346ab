"""
Polisher Utility for Text Canonicalization.
Collapses whitespace for span-aware search while keeping an exact map back
to the original character positions.
"""

import re
import logging
from typing import List, Tuple

logger = logging.getLogger(__name__)

WHITESPACE_RUN = re.compile(r'\s+')


class Polisher:
    """
    Canonicalizes text for search. Every canonical character remembers where
    it came from, so a match found in canonical text maps back without re-searching.
    """

    def __init__(self, whitespace_witness: str = ' '):
        self.whitespace_witness = whitespace_witness

    def collapse_whitespace(self, text: str) -> str:
        """Reduces every whitespace run to a single witness character."""
        return WHITESPACE_RUN.sub(self.whitespace_witness, text)

    def fold_char(self, char: str) -> str:
        """
        Lower-cases one codepoint, unless lower-casing would change its length
        ('İ' -> 'i̇'), which would break the offset map.
        """
        lowered = char.lower()
        return lowered if len(lowered) == 1 else char

    def fold_case(self, text: str) -> str:
        return ''.join(self.fold_char(c) for c in text)

    def canonicalize(self, text: str, match_case: bool = True) -> Tuple[str, List[int]]:
        """
        Collapse whitespace (and optionally fold case) and build the offset map.

        Returns (canonical_text, offsets) where offsets[i] is the position in
        `text` of the first source character behind canonical character i, and
        offsets[len(canonical_text)] == len(text). A match [i, j) in canonical
        text therefore covers text[offsets[i]:offsets[j]].
        """
        out = []
        offsets = []
        position = 0
        for run in WHITESPACE_RUN.finditer(text):
            self._copy(text, position, run.start(), match_case, out, offsets)
            out.append(self.whitespace_witness)
            offsets.append(run.start())
            position = run.end()
        self._copy(text, position, len(text), match_case, out, offsets)
        offsets.append(len(text))
        return ''.join(out), offsets

    def source_span(self, text: str, offsets: List[int], start: int, end: int) -> Tuple[int, int]:
        """
        Map canonical match [start, end) back onto `text`.

        Whitespace runs inside the match are covered whole. A run cut by an
        edge of the match contributes only its character next to the match,
        the same span a literal search would report for that edge.
        """
        source_start, source_end = offsets[start], offsets[end]
        if end - start == 1 and self._from_run(text, offsets, start):
            return source_start, source_start + 1
        if end > start and self._from_run(text, offsets, start):
            source_start = offsets[start + 1] - 1
        if end > start and self._from_run(text, offsets, end - 1):
            source_end = offsets[end - 1] + 1
        return source_start, source_end

    def _from_run(self, text, offsets, i) -> bool:
        return text[offsets[i]].isspace()

    def _copy(self, text, start, end, match_case, out, offsets):
        for i in range(start, end):
            out.append(text[i] if match_case else self.fold_char(text[i]))
            offsets.append(i)
