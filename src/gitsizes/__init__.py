"""Structural statistics for the trees and blobs of a git repository."""

import logging

from .oid import Oid
from .exceptions import (
    GitSizesError, ObjectNotFound, TypeMismatch, UnexpectedType,
    TreeFormatError, ProtocolError, ChannelError, InvariantViolation,
)
from .sizes import MAX_COUNT, BlobSize, TreeSize, ObjectSize, add_capped
from .tree import TreeEntry, iter_tree
from .protocol import ObjectStore, CatFileStore
from .backend import DulwichStore
from .cache import SizeCache

logging.getLogger(__name__).addHandler(logging.NullHandler())

__all__ = [
    "Oid", "SizeCache", "ObjectStore", "CatFileStore", "DulwichStore",
    "BlobSize", "TreeSize", "ObjectSize", "MAX_COUNT", "add_capped",
    "TreeEntry", "iter_tree",
    "GitSizesError", "ObjectNotFound", "TypeMismatch", "UnexpectedType",
    "TreeFormatError", "ProtocolError", "ChannelError", "InvariantViolation",
]
