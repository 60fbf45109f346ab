"""
Error taxonomy for CFI addressing and section search.

Every error is scoped to the single operation that raised it; the tree and
any cached walk are left untouched.
"""


class CfiError(Exception):
    """Base class for all addressing and search failures."""


class MalformedCfi(CfiError, ValueError):
    """The string does not follow the epubcfi(...) grammar."""


class InvalidRange(CfiError, ValueError):
    """A range whose start follows its end, or whose ends are unusable."""


class AddressNotFound(CfiError, LookupError):
    """No text leaf in the document matches the structural path."""


class AddressOutOfRange(CfiError, IndexError):
    """The character offset falls outside the addressed text."""


class StructuralInconsistency(CfiError):
    """The document tree handed to the walker is malformed."""


class EmptyQuery(CfiError, ValueError):
    """Search was asked for an empty string."""
