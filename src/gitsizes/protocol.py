"""Client for the ``git cat-file --batch`` request/response protocol.

Two independent channels are used: one answering with headers only
(``--batch-check``) and one answering with headers followed by the raw
payload (``--batch``).  Each channel is a single ordered stream with no
request ids, so a channel must never have more than one request in flight.
"""

from __future__ import annotations

import logging
import os
import subprocess
from typing import BinaryIO

from .exceptions import ChannelError, ObjectNotFound, ProtocolError, TypeMismatch
from .oid import HEX_OID_LENGTH, Oid

logger = logging.getLogger(__name__)

OBJECT_TYPES = ("blob", "tree", "commit", "tag")

# Largest read used when discarding an unwanted payload.
SKIP_CHUNK_SIZE = 65536


class ObjectStore:
    """The two queries the size cache needs from an object store."""

    def read_header(self, oid: Oid) -> tuple[str, int]:
        """Return ``(type, size)`` for *oid*.

        Raises :class:`ObjectNotFound` if the object does not exist.
        """
        raise NotImplementedError(self.read_header)

    def read_tree_bytes(self, oid: Oid) -> bytes:
        """Return the serialized payload of tree *oid*.

        Raises :class:`ObjectNotFound` or :class:`TypeMismatch`.
        """
        raise NotImplementedError(self.read_tree_bytes)

    def close(self) -> None:
        pass

    def __enter__(self):
        return self

    def __exit__(self, *args):
        self.close()


class Channel:
    """One request/response stream to a cooperating process."""

    def __init__(self, stdin: BinaryIO, stdout: BinaryIO, *, name: str = "channel"):
        self._stdin = stdin
        self._stdout = stdout
        self.name = name

    def request(self, oid: Oid) -> tuple[str, int | None]:
        """Send *oid* and parse the header line of the reply.

        Returns ``(type, size)``, or ``("missing", None)``.
        """
        try:
            self._stdin.write(b"%s\n" % str(oid).encode("ascii"))
            self._stdin.flush()
            line = self._stdout.readline()
        except (OSError, ValueError) as exc:
            raise ChannelError(f"{self.name}: I/O failure requesting {oid}: {exc}") from exc
        if not line.endswith(b"\n"):
            raise ProtocolError(f"{self.name}: unexpected EOF (last request: {oid})")
        return _parse_header(oid, line[:-1])

    def read_exactly(self, size: int) -> bytes:
        """Read exactly *size* bytes; a short read is a protocol error."""
        chunks = []
        remaining = size
        try:
            while remaining > 0:
                chunk = self._stdout.read(remaining)
                if not chunk:
                    break
                chunks.append(chunk)
                remaining -= len(chunk)
        except (OSError, ValueError) as exc:
            raise ChannelError(f"{self.name}: I/O failure reading payload: {exc}") from exc
        if remaining:
            raise ProtocolError(
                f"{self.name}: short read: expected {size} bytes, got {size - remaining}"
            )
        return b"".join(chunks)

    def skip(self, size: int) -> None:
        """Discard exactly *size* bytes without holding them in memory."""
        remaining = size
        try:
            while remaining > 0:
                chunk = self._stdout.read(min(remaining, SKIP_CHUNK_SIZE))
                if not chunk:
                    break
                remaining -= len(chunk)
        except (OSError, ValueError) as exc:
            raise ChannelError(f"{self.name}: I/O failure reading payload: {exc}") from exc
        if remaining:
            raise ProtocolError(
                f"{self.name}: short read: expected {size} bytes, got {size - remaining}"
            )

    def close(self) -> None:
        try:
            self._stdin.close()
        finally:
            self._stdout.close()


def _parse_header(oid: Oid, line: bytes) -> tuple[str, int | None]:
    words = line.split(b" ")
    if len(words[0]) != HEX_OID_LENGTH or words[0].decode("ascii", "replace") != str(oid):
        raise ProtocolError(f"reply {line!r} does not match request {oid}")
    if len(words) == 2 and words[1] == b"missing":
        return "missing", None
    if len(words) != 3:
        raise ProtocolError(f"expected object (id, type, size), got {line!r}")
    obj_type = words[1].decode("ascii", "replace")
    if obj_type not in OBJECT_TYPES:
        raise ProtocolError(f"unknown object type {obj_type!r} for {oid}")
    if not words[2].isdigit():
        raise ProtocolError(f"invalid size {words[2]!r} for {oid}")
    return obj_type, int(words[2])


class CatFileStore(ObjectStore):
    """:class:`ObjectStore` backed by ``git cat-file`` channels.

    Usage::

        with CatFileStore.spawn("/path/to/repo.git") as store:
            obj_type, size = store.read_header(oid)

    Not thread safe; use one instance per thread.
    """

    def __init__(self, header_channel: Channel, payload_channel: Channel, *, processes=()):
        self._header = header_channel
        self._payload = payload_channel
        self._processes = list(processes)

    @classmethod
    def spawn(cls, repo_path: str | os.PathLike[str], *, git: str = "git") -> CatFileStore:
        """Start ``git cat-file --batch-check`` and ``--batch`` for *repo_path*."""
        repo_path = os.fspath(repo_path)
        if not os.path.isdir(repo_path):
            raise FileNotFoundError(f"Repository not found: {repo_path}")
        procs = []
        channels = []
        for mode in ("--batch-check", "--batch"):
            argv = [git, "-C", repo_path, "cat-file", mode]
            logger.debug("starting %s", " ".join(argv))
            p = subprocess.Popen(
                argv,
                stdin=subprocess.PIPE,
                stdout=subprocess.PIPE,
                close_fds=True,
                bufsize=4096,
            )
            procs.append(p)
            channels.append(Channel(p.stdin, p.stdout, name=f"cat-file {mode}"))
        return cls(channels[0], channels[1], processes=procs)

    def read_header(self, oid: Oid) -> tuple[str, int]:
        obj_type, size = self._header.request(oid)
        if obj_type == "missing":
            raise ObjectNotFound(oid)
        return obj_type, size

    def read_tree_bytes(self, oid: Oid) -> bytes:
        obj_type, size = self._payload.request(oid)
        if obj_type == "missing":
            raise ObjectNotFound(oid)
        if obj_type != "tree":
            # Drain the payload so the next reply lines up with its request.
            self._payload.skip(size + 1)
            raise TypeMismatch(oid, obj_type, "tree")
        data = self._payload.read_exactly(size + 1)
        if data[-1:] != b"\n":
            raise ProtocolError(f"tree {oid} payload not terminated by LF")
        return data[:-1]

    def close(self) -> None:
        for channel in (self._header, self._payload):
            channel.close()
        for p in self._processes:
            p.wait()
            logger.debug("cat-file process %d exited with %s", p.pid, p.returncode)
        self._processes.clear()
