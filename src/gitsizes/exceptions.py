"""Exceptions for gitsizes."""


class GitSizesError(Exception):
    """Base class for errors raised while sizing objects."""


class ObjectNotFound(GitSizesError, KeyError):
    """Raised when the store reports an object as missing."""

    def __init__(self, oid):
        super().__init__(oid)
        self.oid = oid

    def __str__(self) -> str:
        return f"missing object {self.oid}"


class TypeMismatch(GitSizesError, TypeError):
    """Raised when an object exists but has the wrong type for the request."""

    def __init__(self, oid, actual: str, expected: str):
        super().__init__(oid, actual, expected)
        self.oid = oid
        self.actual = actual
        self.expected = expected

    def __str__(self) -> str:
        return f"object {self.oid} is a {self.actual}, not a {self.expected}"


class UnexpectedType(TypeMismatch):
    """Raised by ``SizeCache.object_size`` for commits and tags.

    Only trees and blobs are sized.
    """

    def __init__(self, oid, actual: str):
        super().__init__(oid, actual, "tree or blob")

    def __str__(self) -> str:
        return f"object {self.oid} has unexpected type '{self.actual}'"


class TreeFormatError(GitSizesError, ValueError):
    """Raised when a tree payload cannot be decoded."""


class ProtocolError(GitSizesError):
    """Raised when the store process sends a malformed or unexpected reply.

    The channel is out of sync afterwards; restart the store.
    """


class ChannelError(ProtocolError, OSError):
    """Raised when reading from or writing to a store channel fails."""


class InvariantViolation(AssertionError):
    """The traversal finished without producing a record it guaranteed.

    This is a bug in gitsizes, not a problem with the repository, and is
    never caught by the package.
    """
