"""Size records and saturating arithmetic.

Every counter is an unsigned 64-bit magnitude.  Sums are capped at
:data:`MAX_COUNT` instead of wrapping, so a pathological repository can
never make a total look small.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass, fields
from typing import NamedTuple, Union

MAX_COUNT = 2**64 - 1


def add_capped(n1: int, n2: int) -> int:
    """Return ``n1 + n2``, capped at :data:`MAX_COUNT`."""
    n = n1 + n2
    if n > MAX_COUNT:
        return MAX_COUNT
    return n


@dataclass(frozen=True)
class BlobSize:
    """The size in bytes of a single blob."""

    size: int

    def __int__(self) -> int:
        return self.size

    def __str__(self) -> str:
        return f"blob_size={self.size}"

    def to_dict(self) -> dict:
        return {"blob_size": self.size}


@dataclass(frozen=True)
class TreeSize:
    """Recursive statistics for one tree.

    Instances are only produced by :meth:`TreeSizeBuilder.finalize` and are
    never modified afterwards.
    """

    # The maximum depth of items starting at this tree (including the tree).
    max_depth: int = 0
    # The maximum length of any path relative to this tree.
    max_path_length: int = 0
    tree_count: int = 1
    # The maximum number of entries in any single tree.
    max_tree_entries: int = 0
    blob_count: int = 0
    blob_size: int = 0
    link_count: int = 0
    submodule_count: int = 0

    def to_dict(self) -> dict:
        return asdict(self)

    def __str__(self) -> str:
        return ", ".join(f"{f.name}={getattr(self, f.name)}" for f in fields(self))


class TreeSizeBuilder:
    """Accumulates the statistics of a tree's direct entries.

    Depth and path length are maxima over descendants; the counts and byte
    totals are sums.
    """

    __slots__ = (
        "max_depth", "max_path_length", "tree_count", "max_tree_entries",
        "blob_count", "blob_size", "link_count", "submodule_count", "_done",
    )

    def __init__(self):
        self.max_depth = 0
        self.max_path_length = 0
        self.tree_count = 1
        self.max_tree_entries = 0
        self.blob_count = 0
        self.blob_size = 0
        self.link_count = 0
        self.submodule_count = 0
        self._done = False

    def _record_depth(self, depth: int) -> None:
        if depth > self.max_depth:
            self.max_depth = depth

    def _record_path_length(self, length: int) -> None:
        if length > self.max_path_length:
            self.max_path_length = length

    def _record_leaf(self, name: bytes) -> None:
        self._record_depth(1)
        self._record_path_length(len(name))

    def add_blob(self, name: bytes, size: BlobSize | int) -> None:
        """Record a blob of *size* bytes as a direct entry."""
        self._record_leaf(name)
        self.blob_count = add_capped(self.blob_count, 1)
        self.blob_size = add_capped(self.blob_size, int(size))

    def add_link(self, name: bytes) -> None:
        self._record_leaf(name)
        self.link_count = add_capped(self.link_count, 1)

    def add_submodule(self, name: bytes) -> None:
        self._record_leaf(name)
        self.submodule_count = add_capped(self.submodule_count, 1)

    def add_descendant(self, name: bytes, child: TreeSize) -> None:
        """Fold the finished record of subtree *name* into this one."""
        self._record_depth(child.max_depth)
        if child.max_path_length > 0:
            self._record_path_length(add_capped(len(name) + 1, child.max_path_length))
        else:
            # An empty subtree contributes its own name but no separator.
            self._record_path_length(len(name))
        self.tree_count = add_capped(self.tree_count, child.tree_count)
        if child.max_tree_entries > self.max_tree_entries:
            self.max_tree_entries = child.max_tree_entries
        self.blob_count = add_capped(self.blob_count, child.blob_count)
        self.blob_size = add_capped(self.blob_size, child.blob_size)
        self.link_count = add_capped(self.link_count, child.link_count)
        self.submodule_count = add_capped(self.submodule_count, child.submodule_count)

    def finalize(self, entry_count: int) -> TreeSize:
        """Account for the tree's own level and return the finished record."""
        if self._done:
            raise RuntimeError("TreeSizeBuilder already finalized")
        self._done = True
        return TreeSize(
            max_depth=add_capped(self.max_depth, 1),
            max_path_length=self.max_path_length,
            tree_count=self.tree_count,
            max_tree_entries=max(self.max_tree_entries, entry_count),
            blob_count=self.blob_count,
            blob_size=self.blob_size,
            link_count=self.link_count,
            submodule_count=self.submodule_count,
        )


class ObjectSize(NamedTuple):
    """Result of ``SizeCache.object_size``: the object type and its size."""

    type: str
    size: Union[BlobSize, TreeSize]
