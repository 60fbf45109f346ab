"""
EPUB CFI codec.

Parsing and creation of canonical fragment identifiers:
- Character offset: epubcfi(/6/4[chap01ref]!/4[body01]/10[para05]/2/1:3)
- Simple range:     epubcfi(/6/4[chap01ref]!/4[body01]/10[para05],/2/1:1,/3:4)

Tokenizing and printing is done by the epubcfi package; this module maps its
parse tree onto CfiPoint / CfiRange and enforces what the package allows but
this project does not: step 0, more than one indirection, offsets on the
shared path of a range, and temporal (~) or spatial (@) offsets.
"""
import logging
from typing import List, Optional, Tuple, Union

import epubcfi

from src.cfi.models import (
    EMPTY_PATH, CfiAddress, CfiPoint, CfiRange, CfiSegment, Step, StructuralPath, document_order_key,
)
from src.utils.errors import InvalidRange, MalformedCfi

logger = logging.getLogger(__name__)

CFI_PREFIX = "epubcfi("

# The package reports grammar problems as ParserException / TokenizerException,
# and a step or offset without digits as a bare ValueError from int()
_LIBRARY_ERRORS = (epubcfi.ParserException, epubcfi.TokenizerException, ValueError)

# epubcfi needs at least one step before the first ','; ranges whose ends share
# no path are parsed under this step and it is dropped again
_PLACEHOLDER_STEP = "/2"


def is_cfi_string(value) -> bool:
    """Check if a value is a string wrapped with epubcfi()."""
    if not isinstance(value, str):
        return False
    value = value.strip()
    return value.startswith(CFI_PREFIX) and value.endswith(")")


def _library_parse(text: str, original: str):
    try:
        parsed = epubcfi.parse(text)
    except _LIBRARY_ERRORS as e:
        raise MalformedCfi(f"Not a valid CFI: '{original}' ({e})") from e
    # epubcfi.parse hands back a (text, None) tuple for strings it cannot unwrap
    if not isinstance(parsed, (epubcfi.Path, epubcfi.PathRange)):
        raise MalformedCfi(f"Not a valid CFI: '{original}'")
    return parsed


def _steps(steps, original: str) -> StructuralPath:
    path = []
    for step in steps:
        if not isinstance(step, epubcfi.Step):
            raise MalformedCfi(f"Unexpected '{step}' inside a path in '{original}'")
        # Step() rejects index 0
        path.append(Step(step.index, step.assertion))
    return StructuralPath(path)


def _split_redirect(steps: List, original: str) -> Tuple[StructuralPath, StructuralPath]:
    """Split '/6/4[id]!/4/2' into the spine component and the in-document path."""
    redirects = [i for i, step in enumerate(steps) if isinstance(step, epubcfi.Redirect)]
    if not redirects:
        return EMPTY_PATH, _steps(steps, original)
    if len(redirects) > 1:
        raise MalformedCfi(f"Only one '!' indirection is supported: '{original}'")
    at = redirects[0]
    if at == 0:
        raise MalformedCfi(f"'!' must follow a spine path: '{original}'")
    return _steps(steps[:at], original), _steps(steps[at + 1:], original)


def _offset(offset, original: str) -> Tuple[Optional[int], Optional[str]]:
    if offset is None:
        return None, None
    if not isinstance(offset, epubcfi.CharacterOffset):
        raise MalformedCfi(f"Only character offsets are supported, got '{offset}' in '{original}'")
    return offset.value, offset.assertion


def _segment(path, original: str) -> CfiSegment:
    offset, assertion = _offset(path.offset, original)
    return CfiSegment(_steps(path.steps, original), offset, assertion)


def parse(cfi_str: str) -> CfiAddress:
    """
    Parse an epubcfi(...) string into a CfiPoint or CfiRange.
    Raises MalformedCfi for anything outside the grammar.
    """
    if not isinstance(cfi_str, str):
        raise MalformedCfi(f"CFI must be a string, got {type(cfi_str).__name__}")
    text = cfi_str.strip()
    if not is_cfi_string(text):
        raise MalformedCfi(f"Not a valid CFI: '{cfi_str}'")

    body = text[len(CFI_PREFIX):-1]
    placeholder = body.startswith(",")
    if placeholder:
        text = f"{CFI_PREFIX}{_PLACEHOLDER_STEP}{body})"

    parsed = _library_parse(text, cfi_str)

    if isinstance(parsed, epubcfi.Path):
        base, path = _split_redirect(parsed.steps, cfi_str)
        offset, assertion = _offset(parsed.offset, cfi_str)
        return CfiPoint(path=path, offset=offset, base=base, offset_assertion=assertion)

    if parsed.parent.offset is not None:
        raise MalformedCfi(f"The shared path of a range cannot carry an offset: '{cfi_str}'")
    parent_steps = parsed.parent.steps[1:] if placeholder else parsed.parent.steps
    base, path = _split_redirect(parent_steps, cfi_str)
    start, end = _segment(parsed.start, cfi_str), _segment(parsed.end, cfi_str)
    if path and not start.path and not end.path:
        raise MalformedCfi(f"Range ends must keep at least one step below the shared path: '{cfi_str}'")
    try:
        return CfiRange(path=path, start=start, end=end, base=base)
    except InvalidRange:
        logger.debug(f"Rejected out-of-order range '{cfi_str}'")
        raise


def _library_steps(path: StructuralPath) -> list:
    return [epubcfi.Step(index=step.index, assertion=step.assertion or None) for step in path]


def _library_offset(offset: Optional[int], assertion: Optional[str]):
    if offset is None:
        return None
    return epubcfi.CharacterOffset(assertion=assertion or None, value=offset)


def serialize(address: CfiAddress) -> str:
    """Convert a CfiPoint or CfiRange to its epubcfi(...) string."""
    steps = []
    if address.base:
        steps = _library_steps(address.base) + [epubcfi.Redirect()]
    steps += _library_steps(address.path)

    if isinstance(address, CfiRange):
        cfi = epubcfi.PathRange(
            parent=epubcfi.Path(steps=steps, offset=None),
            start=epubcfi.Path(steps=_library_steps(address.start.path),
                               offset=_library_offset(address.start.offset, address.start.assertion)),
            end=epubcfi.Path(steps=_library_steps(address.end.path),
                             offset=_library_offset(address.end.offset, address.end.assertion)),
        )
    else:
        cfi = epubcfi.Path(steps=steps, offset=_library_offset(address.offset, address.offset_assertion))

    return f"{CFI_PREFIX}{cfi})"


def _as_address(value: Union[str, CfiAddress]) -> CfiAddress:
    return parse(value) if isinstance(value, str) else value


def compare(first: Union[str, CfiAddress], second: Union[str, CfiAddress]) -> int:
    """
    Compare which of two CFIs is earlier in the publication.
    Returns -1 when the first is earlier, 1 when the second is, 0 when equal.
    Ranges are compared by their start; a missing offset counts as 0.
    """
    first, second = _as_address(first), _as_address(second)
    key_a = (first.base.values,) + document_order_key(first.start_path, first.start_offset)
    key_b = (second.base.values,) + document_order_key(second.start_path, second.start_offset)
    if key_a < key_b:
        return -1
    if key_a > key_b:
        return 1
    return 0


def build_range(path: StructuralPath, start: CfiSegment, end: CfiSegment,
                base: StructuralPath = EMPTY_PATH) -> CfiRange:
    """Construct a range, enforcing start <= end in document order."""
    return CfiRange(path=path, start=start, end=end, base=base)


def spine_position(address: Union[str, CfiAddress]) -> Optional[int]:
    """0-based spine index named by the base component (/6/8 -> 3)."""
    address = _as_address(address)
    if len(address.base) < 2:
        return None
    return address.base[1].child_index


def generate_chapter_component(spine_node_index: int, position: int, idref: Optional[str] = None) -> str:
    """Base component for a spine item, e.g. /6/8[chapter_001]."""
    spine = epubcfi.Step(index=(spine_node_index + 1) * 2, assertion=None)
    item = epubcfi.Step(index=(position + 1) * 2, assertion=idref or None)
    return f"{spine}{item}"


def parse_component(component: str) -> StructuralPath:
    """Parse a bare path component such as /6/8[chapter_001]."""
    text = (component or "").strip()
    if not text.startswith("/"):
        raise MalformedCfi(f"Not a valid CFI path component: '{component}'")
    parsed = _library_parse(f"{CFI_PREFIX}{text})", component)
    if not isinstance(parsed, epubcfi.Path) or parsed.offset is not None:
        raise MalformedCfi(f"Not a valid CFI path component: '{component}'")
    return _steps(parsed.steps, component)
