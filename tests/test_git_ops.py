from __future__ import annotations

import shutil
import subprocess
from pathlib import Path

import pytest

from ws import git_ops
from ws.git_ops import GitError

GIT_AVAILABLE = shutil.which("git") is not None

pytestmark = pytest.mark.skipif(not GIT_AVAILABLE, reason="git missing")


def _run(cmd: list[str], cwd: Path | None = None) -> None:
    subprocess.run(cmd, cwd=str(cwd) if cwd else None, check=True, capture_output=True)


def _init_repo(repo_dir: Path) -> tuple[Path, Path]:
    """A bare clone at repo_dir/.bare with a ground worktree on main."""
    seed = repo_dir.parent / f"{repo_dir.name}-seed"
    seed.mkdir(parents=True)
    _run(["git", "init", "-b", "main", str(seed)])
    _run(["git", "-C", str(seed), "config", "user.email", "test@example.com"])
    _run(["git", "-C", str(seed), "config", "user.name", "Test"])
    (seed / "README.md").write_text("hello")
    _run(["git", "-C", str(seed), "add", "."])
    _run(["git", "-C", str(seed), "commit", "-m", "init"])

    repo_dir.mkdir(parents=True)
    bare = repo_dir / ".bare"
    _run(["git", "clone", "--bare", str(seed), str(bare)])
    _run(["git", "config", "user.email", "test@example.com"], cwd=bare)
    _run(["git", "config", "user.name", "Test"], cwd=bare)
    ground = repo_dir / ".ground"
    _run(["git", "worktree", "add", str(ground), "main"], cwd=bare)
    return bare, ground


def test_query_status(tmp_path: Path) -> None:
    _, ground = _init_repo(tmp_path / "api")
    status = git_ops.query_status(ground)
    assert (status.name, status.branch, status.dirty) == (".ground", "main", False)
    assert (status.ahead, status.behind) == (0, 0)

    (ground / "new.txt").write_text("x")
    assert git_ops.dirty_count(ground) == 1
    assert git_ops.query_status(ground).dirty


def test_worktree_add_and_remove(tmp_path: Path) -> None:
    bare, ground = _init_repo(tmp_path / "api")
    _run(["git", "-C", str(ground), "branch", "feat/auth"])

    capsule = tmp_path / "api" / "auth"
    git_ops.worktree_add(bare, capsule, "feat/auth")
    assert git_ops.current_branch(capsule) == "feat/auth"
    assert "feat/auth" in git_ops.merged_branches(bare, "main")

    git_ops.worktree_remove(bare, capsule)
    assert not capsule.exists()


def test_recent_commits_since_base(tmp_path: Path) -> None:
    bare, ground = _init_repo(tmp_path / "api")
    _run(["git", "-C", str(ground), "branch", "feat"])
    capsule = tmp_path / "api" / "feat"
    git_ops.worktree_add(bare, capsule, "feat")
    (capsule / "a.txt").write_text("a")
    _run(["git", "-C", str(capsule), "add", "."])
    _run(["git", "-C", str(capsule), "commit", "-m", "add a"])

    commits = git_ops.recent_commits(capsule, 4, "main")
    assert len(commits) == 1
    assert commits[0].endswith("add a")
    assert len(git_ops.recent_commits(ground, 4, "main")) == 1
    assert git_ops.get_last_commit_ts(capsule) > 0
    assert git_ops.stash_count(capsule) == 0


def test_run_raises_git_error(tmp_path: Path) -> None:
    with pytest.raises(GitError) as excinfo:
        git_ops.run(["rev-parse", "HEAD"], cwd=tmp_path)
    assert excinfo.value.cmd == ["rev-parse", "HEAD"]
    assert git_ops.try_run(["rev-parse", "HEAD"], cwd=tmp_path) is None
