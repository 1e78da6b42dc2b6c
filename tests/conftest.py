"""Shared fixtures for gitsizes tests."""

import hashlib
import logging
from types import SimpleNamespace

import pytest
from click.testing import CliRunner
from dulwich.objects import Blob, Commit, Tag, Tree
from dulwich.repo import Repo

from gitsizes.exceptions import ObjectNotFound, TypeMismatch
from gitsizes.oid import Oid
from gitsizes.protocol import ObjectStore


class FakeStore(ObjectStore):
    """In-memory object store that counts the requests it answers."""

    def __init__(self):
        self.objects: dict[Oid, tuple[str, bytes]] = {}
        self.header_requests = 0
        self.tree_requests: list[Oid] = []

    @property
    def requests(self) -> int:
        return self.header_requests + len(self.tree_requests)

    def add(self, obj_type: str, data: bytes) -> Oid:
        raw = hashlib.sha1(b"%s %d\x00" % (obj_type.encode(), len(data)) + data).digest()
        oid = Oid(raw)
        self.objects[oid] = (obj_type, data)
        return oid

    def add_blob(self, data: bytes) -> Oid:
        return self.add("blob", data)

    def add_tree(self, entries) -> Oid:
        """Add a tree from ``(name, filemode, oid)`` triples, in the order given."""
        return self.add("tree", serialize_tree(entries))

    def read_header(self, oid):
        self.header_requests += 1
        try:
            obj_type, data = self.objects[oid]
        except KeyError:
            raise ObjectNotFound(oid) from None
        return obj_type, len(data)

    def read_tree_bytes(self, oid):
        self.tree_requests.append(oid)
        try:
            obj_type, data = self.objects[oid]
        except KeyError:
            raise ObjectNotFound(oid) from None
        if obj_type != "tree":
            raise TypeMismatch(oid, obj_type, "tree")
        return data


def serialize_tree(entries) -> bytes:
    return b"".join(
        b"%o %s\x00%s" % (filemode, name, oid.raw) for name, filemode, oid in entries
    )


@pytest.fixture
def fake_store():
    return FakeStore()


@pytest.fixture
def runner():
    return CliRunner()


@pytest.fixture(autouse=True)
def _restore_gitsizes_logger():
    """Undo the handler and level that ``gitsizes -v`` installs."""
    log = logging.getLogger("gitsizes")
    handlers, level = list(log.handlers), log.level
    yield
    log.handlers[:] = handlers
    log.setLevel(level)


def _commit(repo, tree_id, message=b"commit", parents=()):
    c = Commit()
    c.tree = tree_id
    c.parents = list(parents)
    c.author = c.committer = b"gitsizes <gitsizes@localhost>"
    c.author_time = c.commit_time = 1700000000
    c.author_timezone = c.commit_timezone = 0
    c.message = message
    repo.object_store.add_object(c)
    return c


@pytest.fixture
def dulwich_repo(tmp_path):
    """Bare repo with a small history, built in-process with dulwich.

    main:    hello.txt (11 bytes), link -> hello.txt,
             src/main.py (4 bytes), src/sub/deep.txt (4 bytes)
    old:     hello.txt only
    v1:      annotated tag of main
    """
    repo = Repo.init_bare(str(tmp_path / "test.git"), mkdir=True)
    store = repo.object_store

    hello = Blob.from_string(b"hello world")
    main_py = Blob.from_string(b"main")
    deep = Blob.from_string(b"deep")
    target = Blob.from_string(b"hello.txt")

    sub = Tree()
    sub.add(b"deep.txt", 0o100644, deep.id)
    src = Tree()
    src.add(b"main.py", 0o100755, main_py.id)
    src.add(b"sub", 0o040000, sub.id)
    root = Tree()
    root.add(b"hello.txt", 0o100644, hello.id)
    root.add(b"link", 0o120000, target.id)
    root.add(b"src", 0o040000, src.id)
    old_root = Tree()
    old_root.add(b"hello.txt", 0o100644, hello.id)

    for obj in (hello, main_py, deep, target, sub, src, root, old_root):
        store.add_object(obj)

    old = _commit(repo, old_root.id, b"old")
    head = _commit(repo, root.id, b"main", parents=[old.id])

    tag = Tag()
    tag.name = b"v1"
    tag.object = (Commit, head.id)
    tag.tagger = b"gitsizes <gitsizes@localhost>"
    tag.tag_time = 1700000000
    tag.tag_timezone = 0
    tag.message = b"v1"
    store.add_object(tag)

    repo.refs[b"refs/heads/main"] = head.id
    repo.refs[b"refs/heads/old"] = old.id
    repo.refs[b"refs/tags/v1"] = tag.id
    repo.refs.set_symbolic_ref(b"HEAD", b"refs/heads/main")

    yield SimpleNamespace(
        repo=repo, path=str(tmp_path / "test.git"),
        root=root.id, src=src.id, sub=sub.id, old_root=old_root.id,
        hello=hello.id, target=target.id, head=head.id, tag=tag.id,
    )
    repo.close()
