"""Live collaborators behind the dashboard: git, gh, tmux, cache, config and IDE files."""

import logging
import os
import sqlite3
import subprocess
import webbrowser
from pathlib import Path

from ws import config, gh_ops, git_ops, hooks, ide, tmux
from ws.cache_db import CacheDB
from ws.models import (
    CapsuleInfo,
    PullRequest,
    PullRequestDetail,
    RepoOutline,
    WorkflowRun,
    WorktreeStatus,
)
from ws.workspace import Workspace, WorkspaceError, unique_capsule_name

logger = logging.getLogger(__name__)

DEBRIEF_MAX_DAYS = 14
CLIPBOARD_COMMANDS = (
    ["pbcopy"],
    ["wl-copy"],
    ["xclip", "-selection", "clipboard", "-in"],
)


class Services:
    """Everything the dashboard needs from the outside world, for one workspace."""

    def __init__(self, workspace: Workspace, cache_dir: Path | None = None) -> None:
        self.workspace = workspace
        self.cache_dir = cache_dir

    def _cache(self) -> CacheDB:
        return CacheDB(self.workspace.root, self.cache_dir)

    # --- outline -----------------------------------------------------------

    def outline(self) -> list[RepoOutline]:
        return self.workspace.status_outline(recent_first=True)

    def cached_prs(self, repo: str) -> list[PullRequest]:
        try:
            with self._cache() as db:
                return db.read_prs(self.workspace.org, repo)
        except (sqlite3.Error, OSError) as exc:
            logger.warning("reading PR cache for %s: %s", repo, exc)
            return []

    # --- background queries ------------------------------------------------

    def query_status(self, repo: str, capsule: str) -> WorktreeStatus:
        path = self.workspace.capsule_path(repo, capsule)
        if not path.is_dir():
            raise WorkspaceError(f"capsule {repo}/{capsule} does not exist")
        return git_ops.query_status(path)

    def record_branches(self, repo: str, branches: dict[str, str]) -> None:
        """Persist a repo's capsule -> branch map (best effort)."""
        try:
            with self._cache() as db:
                db.write_branches(self.workspace.org, repo, branches)
        except (sqlite3.Error, OSError) as exc:
            logger.warning("writing branch cache for %s: %s", repo, exc)

    def prs_for_repo(self, repo: str) -> list[PullRequest]:
        prs = gh_ops.prs_for_repo(self.workspace.org, repo)
        try:
            with self._cache() as db:
                db.write_prs(self.workspace.org, repo, prs)
        except (sqlite3.Error, OSError) as exc:
            logger.warning("writing PR cache for %s: %s", repo, exc)
        return prs

    def merged_branches(self, repo: str) -> list[str]:
        return git_ops.merged_branches(self.workspace.bare_dir(repo), self.workspace.default_branch)

    def current_user(self) -> str:
        try:
            with self._cache() as db:
                login = db.read_user()
        except (sqlite3.Error, OSError) as exc:
            logger.warning("reading user cache: %s", exc)
            login = ""
        if login:
            return login

        login = gh_ops.current_user()
        if login:
            try:
                with self._cache() as db:
                    db.write_user(login)
            except (sqlite3.Error, OSError) as exc:
                logger.warning("writing user cache: %s", exc)
        return login

    def in_tmux(self) -> bool:
        return tmux.in_tmux()

    def list_windows(self) -> dict[str, str]:
        return tmux.list_windows()

    def window_name(self, repo: str, capsule: str) -> str:
        return tmux.window_name(self.workspace.display_name_for(repo), capsule)

    # --- detail ------------------------------------------------------------

    def landings(self, repo: str, limit: int) -> list[PullRequest]:
        return gh_ops.merged_prs_for_repo(self.workspace.org, repo)[:limit]

    def workflow_runs(self, repo: str, limit: int) -> list[WorkflowRun]:
        return gh_ops.workflow_runs(
            self.workspace.org, repo, self.workspace.default_branch, limit
        )

    def recent_commits(self, repo: str, capsule: str, count: int) -> list[str]:
        return git_ops.recent_commits(
            self.workspace.capsule_path(repo, capsule), count, self.workspace.default_branch
        )

    def diff_stat(self, repo: str, capsule: str) -> str:
        return git_ops.diff_stat(self.workspace.capsule_path(repo, capsule))

    def stash_count(self, repo: str, capsule: str) -> int:
        return git_ops.stash_count(self.workspace.capsule_path(repo, capsule))

    def pr_detail(self, repo: str, number: int) -> PullRequestDetail:
        return gh_ops.pr_detail(self.workspace.org, repo, number)

    # --- dock / undock -----------------------------------------------------

    def dock(self, repo: str, branch: str) -> str:
        """Create a capsule checked out on branch and return its name."""
        bare_dir = self.workspace.bare_dir(repo)
        try:
            git_ops.fetch_all(bare_dir)
        except git_ops.GitError as exc:
            logger.warning("fetch before dock of %s/%s failed: %s", repo, branch, exc)

        name = unique_capsule_name(self.workspace.repo_dir(repo), branch)
        path = self.workspace.capsule_path(repo, name)
        git_ops.worktree_add(bare_dir, path, branch)
        logger.info("docked %s/%s as %s", repo, branch, name)

        hook = self.workspace.after_create_hooks.get(repo, "")
        if hook:
            hooks.run_after_create_hook(hook, path)
        return name

    def undock(self, repo: str, capsule: str) -> None:
        """Remove a capsule, then close its tmux window."""
        git_ops.worktree_remove(
            self.workspace.bare_dir(repo), self.workspace.capsule_path(repo, capsule)
        )
        if tmux.in_tmux():
            self.kill_window(repo, capsule)
        logger.info("undocked %s/%s", repo, capsule)

    def kill_window(self, repo: str, capsule: str) -> None:
        window_id = tmux.list_windows().get(self.window_name(repo, capsule))
        if window_id is None:
            return
        try:
            tmux.kill_window(window_id)
        except tmux.TmuxError as exc:
            logger.warning("killing window for %s/%s: %s", repo, capsule, exc)

    # --- debrief -----------------------------------------------------------

    def find_abandoned(self) -> list[CapsuleInfo]:
        return [
            c for c in self.workspace.find_all_capsules(DEBRIEF_MAX_DAYS) if c.abandoned
        ]

    def remove_abandoned(self) -> list[CapsuleInfo]:
        """Remove every abandoned capsule and return the ones actually removed."""
        removed: list[CapsuleInfo] = []
        in_session = tmux.in_tmux()
        for capsule in self.find_abandoned():
            if in_session:
                self.kill_window(capsule.repo, capsule.name)
            try:
                git_ops.worktree_remove(self.workspace.bare_dir(capsule.repo), capsule.path)
            except git_ops.GitError as exc:
                logger.warning("debrief: removing %s/%s: %s", capsule.repo, capsule.name, exc)
                continue
            logger.info("debrief: removed %s/%s", capsule.repo, capsule.name)
            removed.append(capsule)
        return removed

    # --- fetch -------------------------------------------------------------

    def fetch_repo(self, repo: str) -> None:
        git_ops.fetch_all(self.workspace.bare_dir(repo))

    def fetch_all(self) -> list[str]:
        """Fetch every repo and return the names that failed."""
        failed: list[str] = []
        for repo in self.workspace.repo_names:
            try:
                self.fetch_repo(repo)
            except git_ops.GitError as exc:
                logger.warning("fetch %s: %s", repo, exc)
                failed.append(repo)
        return failed

    # --- board -------------------------------------------------------------

    def persist_boarded(self) -> None:
        """Write the boarded set to ws.local.toml and regenerate IDE files."""
        config.save_boarded(self.workspace.root, self.workspace.boarded)
        ide.regenerate(self.workspace.root, self.workspace.boarded, self.workspace.display_names)

    # --- tmux navigation ---------------------------------------------------

    def go_to_window(self, repo: str, capsule: str) -> None:
        """Select the capsule's window (finding or making a shell pane), or create it."""
        name = self.window_name(repo, capsule)
        path = self.workspace.capsule_path(repo, capsule)
        window_id = tmux.list_windows().get(name)
        if window_id is None:
            tmux.new_window(name, path)
            return

        tmux.select_window(window_id)
        pane_id = tmux.find_idle_pane(tmux.list_panes(window_id))
        if pane_id is not None:
            tmux.select_pane(pane_id)
        else:
            tmux.split_window(window_id, path)

    def editor_argv(self, repo: str, capsule: str) -> list[str]:
        editor = os.environ.get("EDITOR") or "vim"
        return [editor, str(self.workspace.capsule_path(repo, capsule))]

    def open_editor_in_tmux(self, repo: str, capsule: str) -> None:
        name = self.window_name(repo, capsule)
        path = self.workspace.capsule_path(repo, capsule)
        argv = self.editor_argv(repo, capsule)
        window_id = tmux.list_windows().get(name)
        if window_id is None:
            tmux.new_window(name, path, argv)
        else:
            tmux.select_window(window_id)
            tmux.split_window(window_id, path, argv)

    # --- effects -----------------------------------------------------------

    def capsule_path(self, repo: str, capsule: str) -> Path:
        return self.workspace.capsule_path(repo, capsule)

    def repo_url(self, repo: str) -> str:
        return f"https://github.com/{self.workspace.org}/{repo}"

    def open_url(self, url: str) -> bool:
        return webbrowser.open(url)

    def copy_text(self, text: str) -> bool:
        for cmd in CLIPBOARD_COMMANDS:
            try:
                result = subprocess.run(cmd, input=text, text=True, check=False)
            except OSError:
                continue
            if result.returncode == 0:
                return True
        return False
