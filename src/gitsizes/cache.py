"""Memoized, non-recursive computation of tree and blob sizes."""

from __future__ import annotations

import logging

from .exceptions import InvariantViolation, ProtocolError, TypeMismatch, UnexpectedType
from .oid import Oid
from .protocol import ObjectStore
from .sizes import MAX_COUNT, BlobSize, ObjectSize, TreeSize, TreeSizeBuilder
from .tree import KIND_LINK, KIND_SUBMODULE, KIND_TREE, iter_tree

logger = logging.getLogger(__name__)


class ToDoList:
    """LIFO of trees whose sizes are being computed."""

    __slots__ = ("_list",)

    def __init__(self):
        self._list: list[Oid] = []

    def __len__(self) -> int:
        return len(self._list)

    def push(self, oid: Oid) -> None:
        self._list.append(oid)

    def peek(self) -> Oid:
        return self._list[-1]

    def drop(self) -> None:
        self._list.pop()

    def dump(self) -> str:
        """Return a listing of the pending trees, bottom first."""
        lines = [f"todo list has {len(self._list)} items"]
        for i, oid in enumerate(self._list):
            lines.append(f"{i:8d} {oid}")
        return "\n".join(lines)


class _NotYetKnown(Exception):
    """Some subtrees of the tree being sized have no record yet."""


class SizeCache:
    """Compute and remember the sizes of objects in one store.

    Usage::

        with CatFileStore.spawn(path) as store:
            cache = SizeCache(store)
            size = cache.tree_size(root_tree_oid)

    A cache is not thread safe.  Run one per thread, each with its own
    store, to size independent starting points concurrently.
    """

    def __init__(self, store: ObjectStore):
        self._store = store
        # The sizes of blobs looked up so far.
        self.blob_sizes: dict[Oid, BlobSize] = {}
        # The recursive sizes of trees computed so far.
        self.tree_sizes: dict[Oid, TreeSize] = {}
        # Trees whose sizes are being computed; roughly the call stack.
        self._todo = ToDoList()

    # -- public API ----------------------------------------------------------

    def object_size(self, oid: Oid) -> ObjectSize:
        """Return the size of a blob or tree.

        Raises :class:`UnexpectedType` for commits and tags.
        """
        obj_type, size = self._store.read_header(oid)
        if obj_type == "blob":
            blob_size = self.blob_sizes.get(oid)
            if blob_size is None:
                blob_size = self.blob_sizes[oid] = BlobSize(min(size, MAX_COUNT))
            return ObjectSize("blob", blob_size)
        if obj_type == "tree":
            return ObjectSize("tree", self.tree_size(oid))
        if obj_type in ("commit", "tag"):
            raise UnexpectedType(oid, obj_type)
        raise ProtocolError(f"object {oid} has unknown type {obj_type!r}")

    def blob_size(self, oid: Oid) -> BlobSize:
        size = self.blob_sizes.get(oid)
        if size is None:
            obj_type, n = self._store.read_header(oid)
            if obj_type != "blob":
                raise TypeMismatch(oid, obj_type, "blob")
            size = self.blob_sizes[oid] = BlobSize(min(n, MAX_COUNT))
        return size

    def tree_size(self, oid: Oid) -> TreeSize:
        """Return the recursive size of tree *oid*.

        Store and decoding errors propagate; nothing partial is cached.
        """
        size = self.tree_sizes.get(oid)
        if size is not None:
            return size

        self._todo.push(oid)
        try:
            self._fill()
        except Exception:
            logger.debug("sizing %s failed; %s", oid, self._todo.dump())
            self._todo = ToDoList()
            raise

        size = self.tree_sizes.get(oid)
        if size is None:
            raise InvariantViolation(f"_fill() did not compute the size of tree {oid}")
        return size

    # -- traversal -----------------------------------------------------------

    def _fill(self) -> None:
        """Size every tree on the todo list, without recursion."""
        todo = self._todo
        while todo:
            oid = todo.peek()

            # Computed via another path through the DAG since it was pushed.
            if oid in self.tree_sizes:
                todo.drop()
                continue

            try:
                size = self._queue_tree(oid)
            except _NotYetKnown:
                # Its missing subtrees are now on top of it.
                continue
            self.tree_sizes[oid] = size
            todo.drop()

    def _queue_tree(self, oid: Oid) -> TreeSize:
        """Size *oid* if all of its subtrees are known.

        Otherwise push the unknown subtrees and raise :class:`_NotYetKnown`.
        """
        data = self._store.read_tree_bytes(oid)

        ok = True
        entry_count = 0
        builder = TreeSizeBuilder()

        for entry in iter_tree(data):
            entry_count += 1
            kind = entry.kind
            if kind == KIND_TREE:
                subsize = self.tree_sizes.get(entry.oid)
                if subsize is None:
                    ok = False
                    self._todo.push(entry.oid)
                elif ok:
                    builder.add_descendant(entry.name, subsize)
            elif kind == KIND_SUBMODULE:
                if ok:
                    builder.add_submodule(entry.name)
            elif kind == KIND_LINK:
                if ok:
                    builder.add_link(entry.name)
            else:
                builder.add_blob(entry.name, self.blob_size(entry.oid))

        if not ok:
            logger.debug("tree %s waits for subtrees (%d pending)", oid, len(self._todo))
            raise _NotYetKnown(oid)

        return builder.finalize(entry_count)
