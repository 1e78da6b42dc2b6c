"""Sizing commands: size, scan."""

from __future__ import annotations

import json

import click

from ..cache import SizeCache
from ..refs import REF_GROUPS, build_filter, group_rule, parse_filter, select_refs
from ..sizes import TreeSize
from ._helpers import (
    main,
    _format_option,
    _object_size,
    _open_repo,
    _open_store,
    _peel_to_tree,
    _repo_option,
    _require_repo,
    _resolve_object,
    _size_dict,
    _status,
)


# ---------------------------------------------------------------------------
# size
# ---------------------------------------------------------------------------

@main.command()
@_repo_option
@click.argument("objects", nargs=-1, required=True)
@_format_option
@click.pass_context
def size(ctx, objects, fmt):
    """Show the size of each OBJECT.

    OBJECT is a hex object id or a branch, tag, or ref name.  Commits and
    tags are peeled to their root tree.
    """
    repo = _open_repo(_require_repo(ctx))
    try:
        targets = [(spec, _peel_to_tree(repo, _resolve_object(repo, spec))) for spec in objects]
        with _open_store(ctx, repo) as store:
            cache = SizeCache(store)
            results = []
            for spec, oid in targets:
                _status(ctx, f"Sizing {spec} ({oid})")
                results.append((spec, oid, _object_size(cache, oid)))
    finally:
        repo.close()

    if fmt == "json":
        click.echo(json.dumps([_size_dict(*r) for r in results]))
    elif fmt == "jsonl":
        for r in results:
            click.echo(json.dumps(_size_dict(*r)))
    else:
        for spec, oid, result in results:
            click.echo(f"{spec} {result.type} {oid}: {result.size}")


# ---------------------------------------------------------------------------
# scan
# ---------------------------------------------------------------------------

class _ReferenceFilterType(click.ParamType):
    name = "pattern"

    def convert(self, value, param, ctx):
        try:
            return parse_filter(value)
        except ValueError as exc:
            self.fail(str(exc), param, ctx)


_RULE_ORDER = "gitsizes.ref_rule_order"
_RULE_PARAMS = {"include", "exclude"} | set(REF_GROUPS) | {f"no_{g}" for g in REF_GROUPS}


class _RefSelectionCommand(click.Command):
    """Command that records the command-line order of its selection options.

    Click hands a ``multiple`` option all of its values at once, so the
    interleaving of ``--include``, ``--exclude`` and the group flags is only
    visible while parsing.
    """

    def parse_args(self, ctx, args):
        parser = self.make_parser(ctx)
        _, _, order = parser.parse_args(args=list(args))
        ctx.meta[_RULE_ORDER] = [p.name for p in order if p.name in _RULE_PARAMS]
        return super().parse_args(ctx, args)


def _ref_group_options(f):
    """Add --GROUP/--no-GROUP flags for each fixed reference group."""
    for group, prefix in reversed(REF_GROUPS.items()):
        f = click.option(f"--no-{group}", count=True, expose_value=False,
                         help=f"Skip references under {prefix} (repeatable).")(f)
        f = click.option(f"--{group}", count=True, expose_value=False,
                         help=f"Scan references under {prefix} (repeatable).")(f)
    return f


def _ordered_rules(ctx, includes, excludes) -> list:
    """Pair every selection option occurrence with its filter, in argv order."""
    values = {"include": iter(includes), "exclude": iter(excludes)}
    rules = []
    for name in ctx.meta.get(_RULE_ORDER, ()):
        if name in values:
            rules.append((name == "include", next(values[name])))
        elif name.startswith("no_"):
            rules.append(group_rule(name[3:], False))
        else:
            rules.append(group_rule(name))
    return rules


@main.command(cls=_RefSelectionCommand)
@_repo_option
@click.option("--include", multiple=True, type=_ReferenceFilterType(),
              help="Scan references matching PATTERN (repeatable).")
@click.option("--exclude", multiple=True, type=_ReferenceFilterType(),
              help="Skip references matching PATTERN (repeatable).")
@_ref_group_options
@_format_option
@click.pass_context
def scan(ctx, include, exclude, fmt):
    """Size the root tree of every selected reference.

    Reports, for each statistic, the largest value found and the reference
    it was found under.

    \b
    Selection options apply in the order given; later ones win:
      gitsizes scan --branches --exclude refs/heads/wip --include refs/heads/wip/keep
    """
    repo = _open_repo(_require_repo(ctx))
    refs = {
        name.decode("utf-8", "replace"): sha
        for name, sha in repo.get_refs().items()
        if name != b"HEAD"
    }
    selected = select_refs(refs, build_filter(_ordered_rules(ctx, include, exclude)))
    _status(ctx, f"Scanning {len(selected)} of {len(refs)} references")

    worst: dict[str, tuple[int, str]] = {}
    try:
        with _open_store(ctx, repo) as store:
            cache = SizeCache(store)
            for name, sha in selected:
                oid = _peel_to_tree(repo, _resolve_object(repo, sha.decode("ascii")))
                result = _object_size(cache, oid)
                if not isinstance(result.size, TreeSize):
                    continue
                for key, value in result.size.to_dict().items():
                    if key not in worst or value > worst[key][0]:
                        worst[key] = (value, name)
            _status(ctx, f"Sized {len(cache.tree_sizes)} trees, {len(cache.blob_sizes)} blobs")
    finally:
        repo.close()

    if fmt in ("json", "jsonl"):
        click.echo(json.dumps(
            {key: {"value": value, "ref": name} for key, (value, name) in worst.items()}
        ))
    else:
        for key, (value, name) in worst.items():
            click.echo(f"{key:<18} {value:>12}  {name}")
