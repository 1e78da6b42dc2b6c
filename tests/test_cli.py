"""Tests for the gitsizes CLI."""

import json
import logging
import shutil

import pytest

from gitsizes.cli import main


@pytest.fixture(params=[
    "dulwich",
    pytest.param("git", marks=pytest.mark.skipif(
        shutil.which("git") is None, reason="git not installed")),
])
def backend(request):
    return request.param


class TestSize:
    def test_branch_json(self, runner, dulwich_repo, backend):
        result = runner.invoke(main, [
            "--backend", backend, "size", "--repo", dulwich_repo.path,
            "--format", "json", "main",
        ])
        assert result.exit_code == 0, result.output
        (entry,) = json.loads(result.output)
        assert entry["type"] == "tree"
        assert entry["oid"] == dulwich_repo.root.decode()
        assert entry["max_depth"] == 4
        assert entry["blob_size"] == 19
        assert entry["link_count"] == 1

    def test_blob_text(self, runner, dulwich_repo, backend):
        hello = dulwich_repo.hello.decode()
        result = runner.invoke(main, [
            "--backend", backend, "size", "--repo", dulwich_repo.path, hello,
        ])
        assert result.exit_code == 0, result.output
        assert result.output.strip() == f"{hello} blob {hello}: blob_size=11"

    def test_annotated_tag_peels_to_tree(self, runner, dulwich_repo):
        result = runner.invoke(main, [
            "--backend", "dulwich", "size", "--repo", dulwich_repo.path,
            "--format", "jsonl", "v1", "old",
        ])
        assert result.exit_code == 0, result.output
        lines = [json.loads(line) for line in result.output.splitlines()]
        assert [e["oid"] for e in lines] == [
            dulwich_repo.root.decode(), dulwich_repo.old_root.decode(),
        ]
        assert lines[1]["tree_count"] == 1

    def test_missing_object(self, runner, dulwich_repo, backend):
        result = runner.invoke(main, [
            "--backend", backend, "size", "--repo", dulwich_repo.path, "0" * 40,
        ])
        assert result.exit_code == 1
        assert "missing object" in result.output

    def test_unknown_ref(self, runner, dulwich_repo):
        result = runner.invoke(main, ["--backend", "dulwich", "size", "--repo", dulwich_repo.path, "nope"])
        assert result.exit_code == 1
        assert "Unknown ref" in result.output

    def test_repo_from_env(self, runner, dulwich_repo):
        result = runner.invoke(
            main, ["size", "main"],
            env={"GITSIZES_REPO": dulwich_repo.path, "GITSIZES_BACKEND": "dulwich"},
        )
        assert result.exit_code == 0, result.output

    def test_no_repo(self, runner, monkeypatch):
        monkeypatch.delenv("GITSIZES_REPO", raising=False)
        result = runner.invoke(main, ["size", "main"])
        assert result.exit_code == 1
        assert "No repository specified" in result.output

    def test_repo_not_found(self, runner, tmp_path):
        result = runner.invoke(main, ["size", "--repo", str(tmp_path / "x.git"), "main"])
        assert result.exit_code == 1
        assert "Repository not found" in result.output


class TestScan:
    def test_scan_all(self, runner, dulwich_repo, backend):
        result = runner.invoke(main, [
            "--backend", backend, "scan", "--repo", dulwich_repo.path, "--format", "json",
        ])
        assert result.exit_code == 0, result.output
        worst = json.loads(result.output)
        assert worst["max_depth"] == {"value": 4, "ref": "refs/heads/main"}
        assert worst["blob_count"]["value"] == 3

    def test_scan_include(self, runner, dulwich_repo):
        result = runner.invoke(main, [
            "--backend", "dulwich", "scan", "--repo", dulwich_repo.path,
            "--include", "refs/heads/old", "--format", "json",
        ])
        assert result.exit_code == 0, result.output
        worst = json.loads(result.output)
        assert worst["max_depth"] == {"value": 2, "ref": "refs/heads/old"}

    def test_scan_exclude_regexp(self, runner, dulwich_repo):
        result = runner.invoke(main, [
            "--backend", "dulwich", "scan", "--repo", dulwich_repo.path,
            "--exclude", "/refs/(heads/main|tags/.*)/",
        ])
        assert result.exit_code == 0, result.output
        assert "refs/heads/old" in result.output
        assert "refs/heads/main" not in result.output

    def test_scan_bad_regexp(self, runner, dulwich_repo):
        result = runner.invoke(main, [
            "scan", "--repo", dulwich_repo.path, "--include", "/(/",
        ])
        assert result.exit_code == 2
        assert "invalid regexp" in result.output

    def test_verbose_status(self, runner, dulwich_repo):
        result = runner.invoke(main, [
            "--backend", "dulwich", "-v", "scan", "--repo", dulwich_repo.path,
        ])
        assert result.exit_code == 0, result.output
        assert "Scanning 3 of 3 references" in result.output

    def test_rules_fold_in_command_line_order(self, runner, dulwich_repo):
        refs = dulwich_repo.repo.refs
        refs[b"refs/heads/wip/x"] = dulwich_repo.head
        refs[b"refs/heads/wip/keep"] = dulwich_repo.head
        result = runner.invoke(main, [
            "--backend", "dulwich", "-v", "scan", "--repo", dulwich_repo.path,
            "--include", "refs/heads", "--exclude", "refs/heads/wip",
            "--include", "refs/heads/wip/keep",
        ])
        assert result.exit_code == 0, result.output
        # main, old and wip/keep; wip/x stays excluded.
        assert "Scanning 3 of 5 references" in result.output

    def test_only_selected_by_last_rule(self, runner, dulwich_repo):
        dulwich_repo.repo.refs[b"refs/heads/wip/keep"] = dulwich_repo.head
        result = runner.invoke(main, [
            "--backend", "dulwich", "-v", "scan", "--repo", dulwich_repo.path,
            "--include", "refs/heads", "--exclude", "refs/heads/wip",
            "--include", "refs/heads/wip/keep", "--exclude", "refs/heads/main",
            "--exclude", "refs/heads/old",
        ])
        assert result.exit_code == 0, result.output
        assert "Scanning 1 of 4 references" in result.output

    @pytest.mark.parametrize("args, selected", [
        (["--tags"], 1),
        (["--branches"], 2),
        (["--no-tags"], 2),
        (["--branches", "--no-branches", "--tags"], 1),
        (["--tags", "--include", "refs/heads/old"], 2),
        (["--no-branches", "--include", "refs/heads/main"], 2),
        (["--remotes"], 0),
    ])
    def test_group_flags(self, runner, dulwich_repo, args, selected):
        result = runner.invoke(main, [
            "--backend", "dulwich", "-v", "scan", "--repo", dulwich_repo.path, *args,
        ])
        assert result.exit_code == 0, result.output
        assert f"Scanning {selected} of 3 references" in result.output

    def test_tags_only_json(self, runner, dulwich_repo):
        result = runner.invoke(main, [
            "--backend", "dulwich", "scan", "--repo", dulwich_repo.path,
            "--tags", "--format", "json",
        ])
        assert result.exit_code == 0, result.output
        worst = json.loads(result.output)
        assert worst["max_depth"] == {"value": 4, "ref": "refs/tags/v1"}


class TestLogging:
    def test_quiet_run_leaves_logging_alone(self, runner, dulwich_repo):
        log = logging.getLogger("gitsizes")
        log.setLevel(logging.INFO)
        handlers = list(log.handlers)
        result = runner.invoke(main, [
            "--backend", "dulwich", "size", "--repo", dulwich_repo.path, "main",
        ])
        assert result.exit_code == 0, result.output
        assert log.level == logging.INFO
        assert log.handlers == handlers

    def test_verbose_shows_debug_records(self, runner, dulwich_repo):
        result = runner.invoke(main, [
            "--backend", "dulwich", "-v", "size", "--repo", dulwich_repo.path, "main",
        ])
        assert result.exit_code == 0, result.output
        assert logging.getLogger("gitsizes").level == logging.DEBUG
        assert "gitsizes.cache: tree" in result.output
