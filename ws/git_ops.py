"""Git subprocess operations."""

import subprocess
from pathlib import Path
from typing import Sequence

from ws.models import AheadBehind, WorktreeStatus


class GitError(Exception):
    """Git command failed."""

    def __init__(self, cmd: Sequence[str], stderr: str) -> None:
        self.cmd = cmd
        self.stderr = stderr
        super().__init__(f"git {' '.join(cmd)}: {stderr}")


def run(args: Sequence[str], cwd: Path | None = None) -> str:
    """Run a git command and return stdout."""
    try:
        result = subprocess.run(
            ["git", *args],
            cwd=cwd,
            check=True,
            stdout=subprocess.PIPE,
            stderr=subprocess.PIPE,
            text=True,
        )
    except subprocess.CalledProcessError as exc:
        stderr = (exc.stderr or exc.stdout or "").strip() or "unknown error"
        raise GitError(args, stderr) from exc
    return result.stdout.strip()


def try_run(args: Sequence[str], cwd: Path | None = None) -> str | None:
    """Run a git command, returning None on failure."""
    try:
        return run(args, cwd=cwd)
    except (GitError, OSError):
        return None


def current_branch(worktree_path: Path) -> str:
    """Get the checked-out branch name ("HEAD" when detached, "" on failure)."""
    return try_run(["rev-parse", "--abbrev-ref", "HEAD"], cwd=worktree_path) or ""


def dirty_count(worktree_path: Path) -> int:
    """Count modified, staged and untracked files."""
    status = try_run(["status", "--porcelain"], cwd=worktree_path)
    if not status:
        return 0
    return len(status.splitlines())


def is_dirty(worktree_path: Path) -> bool:
    """Check if the working tree has uncommitted or untracked changes."""
    return dirty_count(worktree_path) > 0


def count_ahead_behind(worktree_path: Path) -> AheadBehind:
    """Count commits ahead and behind the upstream of HEAD."""
    out = try_run(["rev-list", "--left-right", "--count", "HEAD...@{u}"], cwd=worktree_path)
    if not out:
        return AheadBehind(0, 0)
    parts = out.split()
    if len(parts) != 2 or not all(p.isdigit() for p in parts):
        return AheadBehind(0, 0)
    return AheadBehind(ahead=int(parts[0]), behind=int(parts[1]))


def query_status(worktree_path: Path) -> WorktreeStatus:
    """Run the git queries for a single capsule. This is the slow part."""
    ab = count_ahead_behind(worktree_path)
    return WorktreeStatus(
        name=worktree_path.name,
        branch=current_branch(worktree_path),
        dirty=is_dirty(worktree_path),
        ahead=ab.ahead,
        behind=ab.behind,
    )


def merged_branches(git_dir: Path, base: str) -> list[str]:
    """List branch names fully merged into base."""
    out = try_run(["branch", "--merged", base], cwd=git_dir)
    if not out:
        return []
    branches: list[str] = []
    for line in out.splitlines():
        # "* " marks the current branch, "+ " a branch checked out in a worktree.
        name = line.strip().removeprefix("* ").removeprefix("+ ").strip()
        if name:
            branches.append(name)
    return branches


def recent_commits(worktree_path: Path, count: int, base_branch: str = "") -> list[str]:
    """Get the last commits as one-line summaries.

    When base_branch is given and differs from the current branch, only
    commits not reachable from base_branch are listed.
    """
    args = ["log", "--oneline", "-n", str(count)]
    if base_branch:
        branch = current_branch(worktree_path)
        if branch and branch != base_branch:
            args.append(f"{base_branch}..HEAD")
    out = try_run(args, cwd=worktree_path)
    if not out:
        return []
    return out.splitlines()


def diff_stat(worktree_path: Path) -> str:
    """Get the --stat summary for uncommitted changes."""
    return try_run(["diff", "--stat"], cwd=worktree_path) or ""


def stash_count(worktree_path: Path) -> int:
    """Count stash entries."""
    out = try_run(["stash", "list"], cwd=worktree_path)
    if not out:
        return 0
    return len(out.splitlines())


def get_last_commit_ts(worktree_path: Path) -> int:
    """Get the timestamp of the last commit on HEAD."""
    last_commit = try_run(["log", "-1", "--format=%ct"], cwd=worktree_path)
    return int(last_commit) if last_commit and last_commit.isdigit() else 0


def rev_parse(cwd: Path, ref: str) -> str:
    """Resolve a ref to a commit hash ("" when unknown)."""
    return try_run(["rev-parse", ref], cwd=cwd) or ""


def fetch_all(git_dir: Path) -> None:
    """Fetch all remotes with prune."""
    run(["fetch", "--all", "--prune"], cwd=git_dir)


def worktree_add(git_dir: Path, path: Path, branch: str) -> None:
    """Check out an existing branch into a new worktree."""
    path.parent.mkdir(parents=True, exist_ok=True)
    run(["worktree", "add", str(path), branch], cwd=git_dir)


def worktree_remove(git_dir: Path, path: Path) -> None:
    """Remove a worktree."""
    run(["worktree", "remove", str(path)], cwd=git_dir)
