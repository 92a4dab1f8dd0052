from __future__ import annotations

import json
import logging
import subprocess
from pathlib import Path

import pytest
from conftest import make_workspace

from ws import config, gh_ops, git_ops, hooks, ide, services, tmux
from ws.gh_ops import GhError
from ws.git_ops import GitError
from ws.hooks import HookError
from ws.log import setup_logging
from ws.models import CapsuleInfo, PullRequest
from ws.services import Services
from ws.workspace import GROUND_DIR, WorkspaceError


@pytest.fixture
def live(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Services:
    monkeypatch.delenv("TMUX", raising=False)
    workspace = make_workspace(tmp_path / "ws", {"api": [GROUND_DIR, "fix-db"]})
    return Services(workspace, cache_dir=tmp_path / "cache")


def test_prs_are_cached(live: Services, monkeypatch: pytest.MonkeyPatch) -> None:
    prs = [PullRequest(number=3, title="Fix db", branch="fix-db")]
    monkeypatch.setattr(gh_ops, "prs_for_repo", lambda org, repo: prs)

    assert live.cached_prs("api") == []
    assert live.prs_for_repo("api") == prs
    assert live.cached_prs("api") == prs


def test_pr_error_propagates(live: Services, monkeypatch: pytest.MonkeyPatch) -> None:
    def fail(org: str, repo: str) -> list[PullRequest]:
        raise GhError("rate limited")

    monkeypatch.setattr(gh_ops, "prs_for_repo", fail)
    with pytest.raises(GhError):
        live.prs_for_repo("api")


def test_current_user_cached_after_first_lookup(
    live: Services, monkeypatch: pytest.MonkeyPatch
) -> None:
    calls = []
    monkeypatch.setattr(gh_ops, "current_user", lambda: calls.append(1) or "alice")
    assert live.current_user() == "alice"
    assert live.current_user() == "alice"
    assert len(calls) == 1


def test_query_status_missing_capsule(live: Services) -> None:
    with pytest.raises(WorkspaceError):
        live.query_status("api", "gone")


def test_dock_runs_hook_in_new_capsule(live: Services, monkeypatch: pytest.MonkeyPatch) -> None:
    added = []
    hook_runs = []
    monkeypatch.setattr(git_ops, "fetch_all", lambda git_dir: None)
    monkeypatch.setattr(
        git_ops, "worktree_add", lambda git_dir, path, branch: added.append((path, branch))
    )
    monkeypatch.setattr(
        hooks, "run_after_create_hook", lambda cmd, cwd: hook_runs.append((cmd, cwd))
    )
    live.workspace.after_create_hooks["api"] = "make setup"
    (live.workspace.repo_dir("api") / "upgrade").mkdir()

    name = live.dock("api", "deps/upgrade")

    path = live.workspace.capsule_path("api", "upgrade-2")
    assert name == "upgrade-2"
    assert added == [(path, "deps/upgrade")]
    assert hook_runs == [("make setup", path)]


def test_dock_survives_fetch_failure(live: Services, monkeypatch: pytest.MonkeyPatch) -> None:
    def offline(git_dir: Path) -> None:
        raise GitError(["fetch"], "could not resolve host")

    monkeypatch.setattr(git_ops, "fetch_all", offline)
    monkeypatch.setattr(git_ops, "worktree_add", lambda git_dir, path, branch: None)
    assert live.dock("api", "feat") == "feat"


def test_fetch_all_reports_failures(live: Services, monkeypatch: pytest.MonkeyPatch) -> None:
    live.workspace.repo_names = ["api", "web"]

    def fetch(git_dir: Path) -> None:
        if git_dir.parent.name == "web":
            raise GitError(["fetch"], "denied")

    monkeypatch.setattr(git_ops, "fetch_all", fetch)
    assert live.fetch_all() == ["web"]


def test_remove_abandoned_skips_failures(live: Services, monkeypatch: pytest.MonkeyPatch) -> None:
    def info(name: str, merged: bool, dirty: bool = False) -> CapsuleInfo:
        return CapsuleInfo(
            repo="api",
            name=name,
            path=live.workspace.capsule_path("api", name),
            branch=name,
            dirty=dirty,
            boarded=False,
            last_commit_ts=1,
            merged=merged,
            inactive=False,
            ahead=0,
            behind=0,
        )

    found = [info("done", True), info("wip", True, dirty=True), info("stuck", True)]
    monkeypatch.setattr(live.workspace, "find_all_capsules", lambda max_days: found)

    def remove(git_dir: Path, path: Path) -> None:
        if path.name == "stuck":
            raise GitError(["worktree", "remove"], "locked")

    monkeypatch.setattr(git_ops, "worktree_remove", remove)
    assert [c.name for c in live.remove_abandoned()] == ["done"]


def test_persist_boarded_writes_local_and_ide(live: Services) -> None:
    root = live.workspace.root
    (root / ide.VSCODE_FILE).write_text('{"folders": []}')
    live.workspace.board("api", "fix-db")

    live.persist_boarded()

    assert config.load_local(root).boarded == {"api": ["fix-db"]}
    folders = json.loads((root / ide.VSCODE_FILE).read_text())["folders"]
    assert folders == [{"name": "api (fix-db)", "path": "repos/api/fix-db"}]


def test_go_to_window_creates_or_selects(live: Services, monkeypatch: pytest.MonkeyPatch) -> None:
    actions = []
    windows = {}
    monkeypatch.setattr(tmux, "list_windows", lambda: windows)
    monkeypatch.setattr(
        tmux, "new_window", lambda name, path, command=(): actions.append(("new", name))
    )
    monkeypatch.setattr(tmux, "select_window", lambda wid: actions.append(("select", wid)))
    panes = [tmux.Pane("%1", "vim"), tmux.Pane("%2", "zsh")]
    monkeypatch.setattr(tmux, "list_panes", lambda wid: panes)
    monkeypatch.setattr(tmux, "select_pane", lambda pid: actions.append(("pane", pid)))

    live.go_to_window("api", "fix-db")
    windows["api:fix-db"] = "@7"
    live.go_to_window("api", "fix-db")

    assert actions == [("new", "api:fix-db"), ("select", "@7"), ("pane", "%2")]


def test_editor_argv(live: Services, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("EDITOR", "nvim")
    assert live.editor_argv("api", "fix-db") == [
        "nvim",
        str(live.workspace.capsule_path("api", "fix-db")),
    ]
    monkeypatch.delenv("EDITOR")
    assert live.editor_argv("api", "fix-db")[0] == "vim"


def test_copy_text_falls_through_commands(live: Services, monkeypatch: pytest.MonkeyPatch) -> None:
    tried = []

    def fake_run(cmd, **kwargs):
        tried.append(cmd[0])
        if cmd[0] == "pbcopy":
            raise FileNotFoundError(cmd[0])
        return subprocess.CompletedProcess(cmd, 0 if cmd[0] == "xclip" else 1)

    monkeypatch.setattr(services.subprocess, "run", fake_run)
    assert live.copy_text("/tmp/x")
    assert tried == ["pbcopy", "wl-copy", "xclip"]


def test_hook_failure_raises(tmp_path: Path) -> None:
    with pytest.raises(HookError, match="Hook failed"):
        hooks.run_after_create_hook("echo nope >&2; exit 3", tmp_path)
    hooks.run_after_create_hook("   ", tmp_path)


def test_setup_logging_writes_file(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("WS_LOG_LEVEL", "debug")
    path = setup_logging(tmp_path / "logs")
    setup_logging(tmp_path / "logs")

    logger = logging.getLogger("ws")
    assert len(logger.handlers) == 1
    logging.getLogger("ws.services").debug("hello %s", "log")
    logger.handlers[0].flush()
    assert "DEBUG ws.services: hello log" in path.read_text()


def test_undock_keeps_window_when_removal_fails(
    live: Services, monkeypatch: pytest.MonkeyPatch
) -> None:
    monkeypatch.setenv("TMUX", "/tmp/tmux-1000/default,1,0")
    killed = []
    monkeypatch.setattr(tmux, "list_windows", lambda: {"api:fix-db": "@4"})
    monkeypatch.setattr(tmux, "kill_window", killed.append)

    def locked(git_dir: Path, path: Path) -> None:
        raise GitError(["worktree", "remove"], "locked")

    monkeypatch.setattr(git_ops, "worktree_remove", locked)
    with pytest.raises(GitError):
        live.undock("api", "fix-db")
    assert killed == []

    monkeypatch.setattr(git_ops, "worktree_remove", lambda git_dir, path: None)
    live.undock("api", "fix-db")
    assert killed == ["@4"]
