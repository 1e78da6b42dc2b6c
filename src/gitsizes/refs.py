"""Reference selection for the command line.

Include and exclude rules are folded, in order, into a single predicate
over reference names.  The size cache never sees these; they only decide
which starting points the CLI hands to it.
"""

from __future__ import annotations

import re
from collections.abc import Iterable, Mapping


class ReferenceFilter:
    """A predicate over full reference names such as ``refs/heads/main``."""

    def __call__(self, refname: str) -> bool:
        raise NotImplementedError(self.__call__)


class _Constant(ReferenceFilter):
    def __init__(self, value: bool):
        self._value = value

    def __call__(self, refname: str) -> bool:
        return self._value

    def __repr__(self) -> str:
        return "ALL" if self._value else "NONE"


ALL = _Constant(True)
NONE = _Constant(False)


class PrefixFilter(ReferenceFilter):
    """Match *prefix* itself and anything below it in the ref hierarchy.

    ``refs/heads`` matches ``refs/heads/main`` but not ``refs/headsup``.
    """

    def __init__(self, prefix: str):
        self.prefix = prefix

    def __call__(self, refname: str) -> bool:
        if self.prefix.endswith("/"):
            return refname.startswith(self.prefix)
        return refname == self.prefix or refname.startswith(self.prefix + "/")

    def __repr__(self) -> str:
        return f"PrefixFilter({self.prefix!r})"


class RegexpFilter(ReferenceFilter):
    """Match reference names that the regular expression fully matches."""

    def __init__(self, pattern: str):
        try:
            self._re = re.compile(pattern)
        except re.error as exc:
            raise ValueError(f"invalid regexp: {pattern!r}: {exc}") from exc
        self.pattern = pattern

    def __call__(self, refname: str) -> bool:
        return self._re.fullmatch(refname) is not None

    def __repr__(self) -> str:
        return f"RegexpFilter({self.pattern!r})"


class _Include(ReferenceFilter):
    def __init__(self, base: ReferenceFilter, other: ReferenceFilter):
        self._base = base
        self._other = other

    def __call__(self, refname: str) -> bool:
        return self._base(refname) or self._other(refname)


class _Exclude(ReferenceFilter):
    def __init__(self, base: ReferenceFilter, other: ReferenceFilter):
        self._base = base
        self._other = other

    def __call__(self, refname: str) -> bool:
        return self._base(refname) and not self._other(refname)


def parse_filter(text: str) -> ReferenceFilter:
    """Interpret a pattern flexibly.

    ``/.../`` is a regular expression; anything else is a prefix.
    """
    if len(text) >= 2 and text.startswith("/") and text.endswith("/"):
        return RegexpFilter(text[1:-1])
    if not text:
        raise ValueError("empty reference pattern")
    return PrefixFilter(text)


# Prefixes behind the fixed-pattern command line flags (--branches, ...).
REF_GROUPS = {
    "branches": "refs/heads/",
    "tags": "refs/tags/",
    "remotes": "refs/remotes/",
    "notes": "refs/notes/",
}


def group_rule(group: str, value: bool = True) -> tuple[bool, ReferenceFilter]:
    """Return the ``(include, filter)`` rule for a named reference group.

    A true *value* includes the group's references and a false one excludes
    them, so ``--no-tags`` is the inverse of ``--tags``.
    """
    try:
        prefix = REF_GROUPS[group]
    except KeyError:
        raise ValueError(f"unknown reference group: {group!r}") from None
    return value, PrefixFilter(prefix)


def build_filter(rules: Iterable[tuple[bool, ReferenceFilter]]) -> ReferenceFilter:
    """Fold ``(include, filter)`` rules into one predicate.

    With no rules every reference is selected.  If the first rule is an
    include, selection starts from nothing; if it is an exclude, it starts
    from everything.  Later rules override earlier ones.
    """
    current: ReferenceFilter | None = None
    for include, f in rules:
        if current is None:
            current = NONE if include else ALL
        current = _Include(current, f) if include else _Exclude(current, f)
    return ALL if current is None else current


def select_refs(refs: Mapping[str, bytes], predicate: ReferenceFilter) -> list[tuple[str, bytes]]:
    """Return the ``(name, sha)`` pairs of *refs* accepted by *predicate*, sorted."""
    return [(name, refs[name]) for name in sorted(refs) if predicate(name)]
