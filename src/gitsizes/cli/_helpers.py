"""Shared helpers, option decorators, and the main CLI group."""

from __future__ import annotations

import logging
import re

import click
from dulwich.errors import NotGitRepository
from dulwich.objects import Commit, Tag
from dulwich.repo import Repo

from ..backend import DulwichStore
from ..cache import SizeCache
from ..exceptions import GitSizesError
from ..oid import Oid
from ..protocol import CatFileStore, ObjectStore
from ..sizes import ObjectSize

_HEX_OID = re.compile(r"[0-9a-fA-F]{40}")


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def _status(ctx, msg):
    """Emit a status message to stderr when verbose mode (-v) is on."""
    if ctx.obj.get("verbose"):
        click.echo(msg, err=True)


class _ClickHandler(logging.Handler):
    """Send log records to stderr through click."""

    def emit(self, record):
        click.echo(self.format(record), err=True)


def _configure_logging(verbose: bool) -> None:
    """Show gitsizes debug records on stderr; only -v touches logging."""
    if not verbose:
        return
    log = logging.getLogger("gitsizes")
    if not any(isinstance(h, _ClickHandler) for h in log.handlers):
        handler = _ClickHandler()
        handler.setFormatter(logging.Formatter("%(name)s: %(message)s"))
        log.addHandler(handler)
    log.setLevel(logging.DEBUG)


def _store_repo(ctx, param, value):
    """Click callback: store --repo value in the context."""
    ctx.ensure_object(dict)
    if value is not None:
        ctx.obj["repo_path"] = value
    return value


def _repo_option(f):
    """Shared --repo/-r option decorator for all commands."""
    return click.option(
        "--repo", "-r", type=click.Path(), envvar="GITSIZES_REPO",
        help="Path to the git repository (or set GITSIZES_REPO).",
        expose_value=False, callback=_store_repo, is_eager=True,
    )(f)


def _format_option(f):
    """Shared --format option for commands with structured output."""
    return click.option(
        "--format", "fmt", type=click.Choice(["text", "json", "jsonl"]),
        default="text", show_default=True, help="Output format.",
    )(f)


def _require_repo(ctx) -> str:
    """Get the repo path from context, raising a clear error if missing."""
    repo = ctx.obj.get("repo_path")
    if not repo:
        raise click.ClickException(
            "No repository specified. Use --repo or set GITSIZES_REPO."
        )
    return repo


def _open_repo(repo_path: str) -> Repo:
    try:
        return Repo(repo_path)
    except (FileNotFoundError, NotGitRepository):
        raise click.ClickException(f"Repository not found: {repo_path}")


def _open_store(ctx, repo: Repo) -> ObjectStore:
    """Open the object store selected by --backend."""
    backend = ctx.obj.get("backend", "git")
    if backend == "dulwich":
        return DulwichStore(repo.object_store)
    try:
        return CatFileStore.spawn(repo.path, git=ctx.obj.get("git", "git"))
    except FileNotFoundError as exc:
        raise click.ClickException(str(exc))


def _resolve_object(repo: Repo, spec: str) -> Oid:
    """Resolve a hex object id or a ref name; try branches, then tags."""
    if _HEX_OID.fullmatch(spec):
        return Oid.from_hex(spec)
    for name in (spec, f"refs/heads/{spec}", f"refs/tags/{spec}", f"refs/{spec}"):
        try:
            return Oid.from_hex(repo.refs[name.encode()])
        except KeyError:
            continue
    raise click.ClickException(f"Unknown ref: {spec}")


def _peel_to_tree(repo: Repo, oid: Oid) -> Oid:
    """Follow tags and commits until reaching a tree (or blob).

    Objects the repository does not have are returned unchanged; sizing
    them reports the missing object.
    """
    sha = str(oid).encode("ascii")
    for _ in range(50):  # safety limit
        try:
            obj = repo[sha]
        except KeyError:
            break
        if isinstance(obj, Tag):
            sha = obj.object[1]
        elif isinstance(obj, Commit):
            sha = obj.tree
        else:
            break
    return Oid.from_hex(sha)


def _object_size(cache: SizeCache, oid: Oid) -> ObjectSize:
    """Size *oid*, turning sizing errors into a ClickException."""
    try:
        return cache.object_size(oid)
    except GitSizesError as exc:
        raise click.ClickException(str(exc))


def _size_dict(name: str, oid: Oid, result: ObjectSize) -> dict:
    return {"name": name, "oid": str(oid), "type": result.type, **result.size.to_dict()}


# ---------------------------------------------------------------------------
# Main group
# ---------------------------------------------------------------------------

@click.group()
@click.option("--repo", "-r", type=click.Path(), envvar="GITSIZES_REPO",
              help="Path to the git repository (or set GITSIZES_REPO).",
              expose_value=False, callback=_store_repo, is_eager=True)
@click.option("--backend", type=click.Choice(["git", "dulwich"]), default="git",
              envvar="GITSIZES_BACKEND", show_default=True,
              help="Read objects via 'git cat-file' or in-process via dulwich.")
@click.option("--git", "git_cmd", default="git", envvar="GITSIZES_GIT",
              help="git executable used by the 'git' backend.")
@click.option("-v", "--verbose", is_flag=True, help="Verbose output on stderr.")
@click.pass_context
def main(ctx, backend, git_cmd, verbose):
    """gitsizes: find oversized blobs and pathological trees.

    \b
    Quick start:
      gitsizes size -r repo.git main
      gitsizes scan -r repo.git --include refs/heads
      gitsizes scan -r repo.git --exclude '/refs/pull/.*/'

    \b
    Reference patterns are prefixes (refs/tags matches every tag) or
    regular expressions between slashes (/refs/heads/release-.*/).
    Set GITSIZES_REPO to avoid passing --repo on every call.
    """
    ctx.ensure_object(dict)
    ctx.obj["backend"] = backend
    ctx.obj["git"] = git_cmd
    ctx.obj["verbose"] = verbose
    _configure_logging(verbose)
