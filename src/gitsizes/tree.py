"""Decoding of git tree objects.

A tree payload is a concatenation of records, each
``<octal mode> SP <name> NUL <20-byte object id>``, with no separator.
"""

from __future__ import annotations

from typing import Iterator, NamedTuple

from .exceptions import TreeFormatError
from .oid import OID_LENGTH, Oid

GIT_FILEMODE_MASK = 0o170000
GIT_FILEMODE_TREE = 0o040000
GIT_FILEMODE_BLOB = 0o100644
GIT_FILEMODE_BLOB_EXECUTABLE = 0o100755
GIT_FILEMODE_LINK = 0o120000
GIT_FILEMODE_COMMIT = 0o160000

KIND_TREE = "tree"
KIND_BLOB = "blob"
KIND_LINK = "link"
KIND_SUBMODULE = "submodule"


def entry_kind(filemode: int) -> str:
    """Classify a tree entry by the type bits of its filemode."""
    kind = filemode & GIT_FILEMODE_MASK
    if kind == GIT_FILEMODE_TREE:
        return KIND_TREE
    if kind == GIT_FILEMODE_COMMIT:
        return KIND_SUBMODULE
    if kind == GIT_FILEMODE_LINK:
        return KIND_LINK
    return KIND_BLOB


class TreeEntry(NamedTuple):
    """A single entry yielded by :func:`iter_tree`.

    *name* is kept as raw bytes; path lengths are measured in bytes.
    """

    name: bytes
    oid: Oid
    filemode: int

    @property
    def kind(self) -> str:
        return entry_kind(self.filemode)


def iter_tree(data: bytes) -> Iterator[TreeEntry]:
    """Yield the entries of a serialized tree, in order.

    The iterator is forward-only; decode *data* again to re-scan it.
    Raises :class:`TreeFormatError` as soon as a malformed record is hit.
    """
    view = memoryview(data)
    end = len(data)
    pos = 0
    while pos < end:
        sp = data.find(b" ", pos)
        if sp < 0:
            raise TreeFormatError("failed to find SP after mode")
        mode_text = data[pos:sp]
        if not mode_text.isdigit():
            raise TreeFormatError(f"invalid mode {mode_text!r}")
        try:
            filemode = int(mode_text, 8)
        except ValueError:
            raise TreeFormatError(f"invalid mode {mode_text!r}") from None

        nul = data.find(b"\x00", sp + 1)
        if nul < 0:
            raise TreeFormatError("failed to find NUL after filename")
        name = data[sp + 1:nul]

        pos = nul + 1
        if end - pos < OID_LENGTH:
            raise TreeFormatError("tree entry ends unexpectedly")
        oid = Oid(view[pos:pos + OID_LENGTH])
        pos += OID_LENGTH

        yield TreeEntry(name, oid, filemode)
