"""In-process :class:`ObjectStore` over a dulwich object store.

Headers are answered without loading full content where possible:

* non-delta packed objects: only the pack entry header is read;
* loose objects: only the zlib-compressed object header is inflated;
* delta objects and anything else: full resolution via dulwich.
"""

from __future__ import annotations

import logging
import os
import zlib
from pathlib import Path

from dulwich.repo import Repo

from .exceptions import ObjectNotFound, ProtocolError, TypeMismatch
from .oid import Oid
from .protocol import ObjectStore

logger = logging.getLogger(__name__)

# Pack entry type numbers; OFS_DELTA=6 and REF_DELTA=7 need resolution.
_PACK_TYPE_NAMES = {1: "commit", 2: "tree", 3: "blob", 4: "tag"}


class DulwichStore(ObjectStore):
    """Answer header and tree queries from a dulwich object store.

    Usage::

        with DulwichStore.open("/path/to/repo.git") as store:
            obj_type, size = store.read_header(oid)
    """

    def __init__(self, object_store, *, repo: Repo | None = None):
        self._store = object_store
        self._repo = repo
        self._pack_fds: dict[str, object] = {}
        self._pack_index: dict[bytes, tuple[str, int]] | None = None

    @classmethod
    def open(cls, path: str | Path) -> DulwichStore:
        """Open the repository at *path* (bare or not)."""
        path = Path(path)
        if not path.exists():
            raise FileNotFoundError(f"Repository not found: {path}")
        repo = Repo(str(path))
        return cls(repo.object_store, repo=repo)

    # -- ObjectStore ---------------------------------------------------------

    def read_header(self, oid: Oid) -> tuple[str, int]:
        if self._pack_index is None:
            self._build_pack_index()

        entry = self._pack_index.get(oid.raw)  # type: ignore[union-attr]
        if entry is not None:
            fname, offset = entry
            type_num, size = self._read_pack_header(fname, offset)
            if type_num in _PACK_TYPE_NAMES:
                return _PACK_TYPE_NAMES[type_num], size
            return self._read_full_header(oid)

        header = self._read_loose_header(oid)
        if header is not None:
            return header
        return self._read_full_header(oid)

    def read_tree_bytes(self, oid: Oid) -> bytes:
        obj = self._lookup(oid)
        type_name = obj.type_name.decode()
        if type_name != "tree":
            raise TypeMismatch(oid, type_name, "tree")
        return obj.as_raw_string()

    # -- internals -----------------------------------------------------------

    def _lookup(self, oid: Oid):
        try:
            return self._store[str(oid).encode("ascii")]
        except KeyError:
            raise ObjectNotFound(oid) from None

    def _read_full_header(self, oid: Oid) -> tuple[str, int]:
        obj = self._lookup(oid)
        return obj.type_name.decode(), obj.raw_length()

    def _build_pack_index(self):
        self._pack_index = {}
        for pack in getattr(self._store, "packs", ()):
            fname = getattr(pack.data, "_filename", None)
            if fname is None:
                continue
            for sha_raw, offset, _crc32 in pack.index.iterentries():
                self._pack_index[sha_raw] = (fname, offset)
        logger.debug("indexed %d packed objects", len(self._pack_index))

    def _read_pack_header(self, filename: str, offset: int) -> tuple[int, int]:
        """Read type and decompressed size from a pack entry header."""
        f = self._pack_fds.get(filename)
        if f is None:
            f = open(filename, "rb")
            self._pack_fds[filename] = f

        f.seek(offset)
        byte = f.read(1)[0]
        type_num = (byte >> 4) & 0x07
        size = byte & 0x0F
        shift = 4
        while byte & 0x80:
            byte = f.read(1)[0]
            size |= (byte & 0x7F) << shift
            shift += 7
        return type_num, size

    def _read_loose_header(self, oid: Oid) -> tuple[str, int] | None:
        """Read type and size from a loose object, or None if not loose."""
        root = getattr(self._store, "path", None)
        if root is None:
            return None
        h = str(oid)
        path = os.path.join(root, h[:2], h[2:])
        try:
            with open(path, "rb") as f:
                d = zlib.decompressobj()
                header = d.decompress(f.read(64), 256)
        except FileNotFoundError:
            return None
        except zlib.error as exc:
            raise ProtocolError(f"corrupt loose object {oid}: {exc}") from exc
        nul = header.find(b"\x00")
        if nul < 0:
            raise ProtocolError(f"corrupt loose object header for {oid}")
        type_name, _, size_str = header[:nul].partition(b" ")
        if not size_str.isdigit():
            raise ProtocolError(f"invalid size {size_str!r} in loose object {oid}")
        return type_name.decode("ascii", "replace"), int(size_str)

    # -- context manager -----------------------------------------------------

    def close(self):
        for fd in self._pack_fds.values():
            fd.close()
        self._pack_fds.clear()
        self._pack_index = None
        if self._repo is not None:
            self._repo.close()
            self._repo = None
