from dataclasses import dataclass, field
from typing import Optional, Tuple, Union

from src.utils.errors import InvalidRange, MalformedCfi


@dataclass(frozen=True)
class Step:
    """
    One step of a CFI path.

    `index` is the encoded CFI value: even for the k-th element child
    ((k + 1) * 2), odd for the text run after k element siblings (2k + 1).
    The assertion is informational only and is ignored by equality.
    """
    index: int
    assertion: Optional[str] = field(default=None, compare=False)

    def __post_init__(self):
        if not isinstance(self.index, int) or isinstance(self.index, bool) or self.index < 1:
            raise MalformedCfi(f"Step index must be a positive integer, got {self.index!r}")

    @property
    def is_text(self) -> bool:
        return self.index % 2 == 1

    @property
    def child_index(self) -> int:
        """0-based position among element children, or preceding element count for text."""
        if self.is_text:
            return (self.index - 1) // 2
        return self.index // 2 - 1

    @classmethod
    def element(cls, position: int, assertion: Optional[str] = None) -> "Step":
        return cls((position + 1) * 2, assertion)

    @classmethod
    def text(cls, preceding_elements: int) -> "Step":
        return cls(2 * preceding_elements + 1)


@dataclass(frozen=True)
class StructuralPath:
    steps: Tuple[Step, ...] = ()

    def __post_init__(self):
        # Accept lists/generators but always store an immutable tuple
        object.__setattr__(self, "steps", tuple(self.steps))

    def __len__(self):
        return len(self.steps)

    def __iter__(self):
        return iter(self.steps)

    def __getitem__(self, item):
        if isinstance(item, slice):
            return StructuralPath(self.steps[item])
        return self.steps[item]

    def __add__(self, other: "StructuralPath") -> "StructuralPath":
        return StructuralPath(self.steps + tuple(other))

    @property
    def values(self) -> Tuple[int, ...]:
        return tuple(step.index for step in self.steps)

    def child(self, step: Step) -> "StructuralPath":
        return StructuralPath(self.steps + (step,))

    def common_prefix(self, other: "StructuralPath") -> "StructuralPath":
        shared = []
        for mine, theirs in zip(self.steps, other.steps):
            if mine != theirs:
                break
            shared.append(mine)
        return StructuralPath(shared)

    def is_prefix_of(self, other: "StructuralPath") -> bool:
        return len(self) <= len(other) and other.values[:len(self)] == self.values

    @classmethod
    def of(cls, *indices: int) -> "StructuralPath":
        return cls(tuple(Step(i) for i in indices))


EMPTY_PATH = StructuralPath()


def _check_offset(offset):
    if offset is None:
        return
    if not isinstance(offset, int) or isinstance(offset, bool) or offset < 0:
        raise MalformedCfi(f"Character offset must be a non-negative integer, got {offset!r}")


@dataclass(frozen=True)
class CfiSegment:
    """Trailing path suffix plus terminal offset for one end of a range."""
    path: StructuralPath
    offset: Optional[int] = 0
    assertion: Optional[str] = field(default=None, compare=False)

    def __post_init__(self):
        _check_offset(self.offset)


@dataclass(frozen=True)
class CfiPoint:
    path: StructuralPath
    offset: Optional[int] = 0
    base: StructuralPath = EMPTY_PATH
    offset_assertion: Optional[str] = field(default=None, compare=False)

    def __post_init__(self):
        _check_offset(self.offset)

    @property
    def is_range(self) -> bool:
        return False

    @property
    def start_path(self) -> StructuralPath:
        return self.path

    @property
    def start_offset(self) -> Optional[int]:
        return self.offset


@dataclass(frozen=True)
class CfiRange:
    path: StructuralPath
    start: CfiSegment
    end: CfiSegment
    base: StructuralPath = EMPTY_PATH

    def __post_init__(self):
        if not self.start.path and not self.end.path and self.path:
            raise InvalidRange("Range ends must keep at least one step below the shared path")
        if document_order_key(self.start_path, self.start.offset) > document_order_key(self.end_path, self.end.offset):
            raise InvalidRange(
                f"Range start {self.start_path.values}:{self.start.offset} "
                f"follows end {self.end_path.values}:{self.end.offset}"
            )

    @property
    def is_range(self) -> bool:
        return True

    @property
    def start_path(self) -> StructuralPath:
        return self.path + self.start.path

    @property
    def end_path(self) -> StructuralPath:
        return self.path + self.end.path

    @property
    def start_offset(self) -> Optional[int]:
        return self.start.offset

    def collapse(self, to_start: bool = False) -> CfiPoint:
        segment = self.start if to_start else self.end
        return CfiPoint(
            path=self.path + segment.path,
            offset=segment.offset,
            base=self.base,
            offset_assertion=segment.assertion,
        )


CfiAddress = Union[CfiPoint, CfiRange]


def document_order_key(path: StructuralPath, offset: Optional[int]):
    """
    Sort key for a position: step indices compared lexicographically (an
    ancestor sorts before its descendants), then the character offset.
    """
    return path.values, offset or 0


@dataclass(frozen=True)
class LeafSpan:
    path: StructuralPath
    start: int
    end: int
    text: str

    def __len__(self):
        return self.end - self.start

    def contains(self, offset: int) -> bool:
        return self.start <= offset <= self.end
