"""Background tasks for mission control.

A Task is a description of work to run off the event loop. Running it
yields at most one message, which the runtime hands back to
``mc_update.update``. Tasks catch the errors they expect; anything else
is logged by the runtime and produces no message.
"""

import logging
from collections.abc import Callable
from dataclasses import dataclass

from ws.gh_ops import GhError
from ws.git_ops import GitError
from ws.hooks import HookError
from ws.mc_messages import (
    CapsuleStatusMsg,
    CleanupDoneMsg,
    DetailDataMsg,
    DetailTickMsg,
    DockedMsg,
    FetchedAllMsg,
    FetchedMsg,
    MergedMsg,
    Message,
    NoticeMsg,
    PullRequestsMsg,
    UndockedMsg,
    UserMsg,
    WindowsMsg,
)
from ws.mc_model import CapsuleRow, DetailData, GhostRow, McState, Row
from ws.services import Services
from ws.workspace import WorkspaceError

logger = logging.getLogger(__name__)

DETAIL_DELAY = 0.2
LANDINGS_LIMIT = 8
RUNS_LIMIT = 8
COMMITS_LIMIT = 4


@dataclass(frozen=True)
class Task:
    label: str
    run: Callable[[], Message | None]
    delay: float = 0.0


def status_task(services: Services, repo: str, capsule: str) -> Task:
    def run() -> Message | None:
        try:
            status = services.query_status(repo, capsule)
        except (GitError, WorkspaceError) as exc:
            logger.warning("status %s/%s: %s", repo, capsule, exc)
            return None
        return CapsuleStatusMsg(repo=repo, status=status)

    return Task(f"status {repo}/{capsule}", run)


def prs_task(services: Services, repo: str) -> Task:
    def run() -> Message:
        try:
            prs = services.prs_for_repo(repo)
        except GhError as exc:
            return PullRequestsMsg(repo=repo, error=str(exc))
        return PullRequestsMsg(repo=repo, prs=prs)

    return Task(f"prs {repo}", run)


def merged_task(services: Services, repo: str) -> Task:
    def run() -> Message:
        return MergedMsg(repo=repo, branches=frozenset(services.merged_branches(repo)))

    return Task(f"merged {repo}", run)


def user_task(services: Services) -> Task:
    return Task("gh user", lambda: UserMsg(login=services.current_user()))


def windows_task(services: Services) -> Task:
    return Task("tmux windows", lambda: WindowsMsg(windows=services.list_windows()))


def record_branches_task(services: Services, repo: str, branches: dict[str, str]) -> Task:
    def run() -> None:
        services.record_branches(repo, branches)

    return Task(f"branch cache {repo}", run)


def detail_tick_task(seq: int) -> Task:
    return Task(f"detail tick {seq}", lambda: DetailTickMsg(seq=seq), delay=DETAIL_DELAY)


def fetch_detail(services: Services, row: Row) -> DetailData:
    """Collect the detail pane for a row. Each part fails on its own to an empty value."""
    detail = DetailData()
    repo = row.repo

    if isinstance(row, CapsuleRow) and row.is_ground:
        try:
            detail.landings = services.landings(repo, LANDINGS_LIMIT)
        except GhError as exc:
            logger.debug("landings %s: %s", repo, exc)
        try:
            detail.runs = services.workflow_runs(repo, RUNS_LIMIT)
        except GhError as exc:
            logger.debug("workflow runs %s: %s", repo, exc)
    elif isinstance(row, CapsuleRow):
        detail.commits = services.recent_commits(repo, row.capsule, COMMITS_LIMIT)
        detail.diff_stat = services.diff_stat(repo, row.capsule)
        detail.stash_count = services.stash_count(repo, row.capsule)

    pr = getattr(row, "pr", None)
    if pr is not None:
        try:
            pr_detail = services.pr_detail(repo, pr.number)
        except GhError as exc:
            logger.debug("pr detail %s#%d: %s", repo, pr.number, exc)
        else:
            detail.pr_title = pr_detail.title
            detail.pr_body = pr_detail.body
            detail.checks = list(pr_detail.checks)
            if isinstance(row, GhostRow):
                detail.commits = list(pr_detail.commits[-COMMITS_LIMIT:])

    detail.loaded = True
    return detail


def detail_task(services: Services, row: Row, row_idx: int, seq: int) -> Task:
    snapshot = _snapshot(row)

    def run() -> Message:
        return DetailDataMsg(row_idx=row_idx, seq=seq, data=fetch_detail(services, snapshot))

    return Task(f"detail {row_idx}", run)


def _snapshot(row: Row) -> Row:
    # Rows are mutated in place by the loop; the worker reads a private copy.
    if isinstance(row, CapsuleRow):
        return CapsuleRow(repo=row.repo, capsule=row.capsule, branch=row.branch, pr=row.pr)
    if isinstance(row, GhostRow):
        return GhostRow(repo=row.repo, branch=row.branch, pr=row.pr)
    return row


def dock_task(services: Services, repo: str, branch: str) -> Task:
    def run() -> Message:
        try:
            capsule = services.dock(repo, branch)
        except (GitError, HookError, OSError) as exc:
            logger.error("dock %s/%s failed: %s", repo, branch, exc)
            return DockedMsg(repo=repo, branch=branch, error=str(exc))
        return DockedMsg(repo=repo, branch=branch, capsule=capsule)

    return Task(f"dock {repo}/{branch}", run)


def undock_task(services: Services, repo: str, capsule: str) -> Task:
    def run() -> Message:
        try:
            services.undock(repo, capsule)
        except GitError as exc:
            logger.error("undock %s/%s failed: %s", repo, capsule, exc)
            return UndockedMsg(repo=repo, capsule=capsule, error=str(exc))
        return UndockedMsg(repo=repo, capsule=capsule)

    return Task(f"undock {repo}/{capsule}", run)


def cleanup_task(services: Services) -> Task:
    def run() -> Message:
        try:
            removed = services.remove_abandoned()
        except (GitError, OSError) as exc:
            logger.error("debrief failed: %s", exc)
            return CleanupDoneMsg(error=str(exc))
        return CleanupDoneMsg(removed=removed)

    return Task("debrief", run)


def fetch_task(services: Services, repo: str) -> Task:
    def run() -> Message:
        try:
            services.fetch_repo(repo)
        except GitError as exc:
            logger.warning("fetch %s: %s", repo, exc)
            return FetchedMsg(repo=repo, error=str(exc))
        return FetchedMsg(repo=repo)

    return Task(f"fetch {repo}", run)


def fetch_all_task(services: Services) -> Task:
    return Task("fetch all", lambda: FetchedAllMsg(failed=services.fetch_all()))


def open_url_task(services: Services, url: str) -> Task:
    def run() -> Message:
        if services.open_url(url):
            return NoticeMsg(f"Opened {url}")
        return NoticeMsg(f"Could not open {url}")

    return Task(f"open {url}", run)


def copy_task(services: Services, text: str) -> Task:
    def run() -> Message:
        if services.copy_text(text):
            return NoticeMsg(f"Copied {text}")
        return NoticeMsg("No clipboard command available")

    return Task("copy", run)


def repo_tasks(services: Services, repo: str, capsules: list[str]) -> list[Task]:
    """Status for every capsule plus the PR list and merged set of one repo."""
    tasks = [status_task(services, repo, capsule) for capsule in capsules]
    tasks.append(prs_task(services, repo))
    tasks.append(merged_task(services, repo))
    return tasks


def initial_tasks(state: McState) -> list[Task]:
    """Everything a freshly built dashboard needs to fill itself in."""
    services = state.services
    tasks: list[Task] = []
    for repo in state.repos:
        if repo.error is not None:
            continue
        tasks.extend(repo_tasks(services, repo.name, repo.capsules))
    tasks.append(detail_tick_task(state.detail_seq))
    tasks.append(user_task(services))
    if services.in_tmux():
        tasks.append(windows_task(services))
    return tasks
