"""The mission control update loop.

``update(state, msg)`` applies one background result to the dashboard
state and returns the follow-up tasks. It is only ever called from the
event loop, so state is mutated in place without locks. Every result is
matched to rows by identity (repo plus capsule or branch), never by the
position it had when the task was dispatched.
"""

import dataclasses
import logging
from collections.abc import Callable
from pathlib import Path

from ws import mc_fetch
from ws.config import ConfigError
from ws.ide import IdeError
from ws.mc_fetch import Task
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
from ws.mc_model import (
    CapsuleRow,
    DetailData,
    Filter,
    GhostRow,
    McState,
    RepoHeader,
    Row,
    build_rows,
    initial_cursor,
)
from ws.mc_nav import (
    cursor_identity,
    cursor_key,
    ensure_cursor_on_visible,
    find_capsule_row,
    find_ghost_row,
    remove_row,
    restore_cursor,
)
from ws.models import PullRequest
from ws.services import Services
from ws.workspace import WorkspaceError

logger = logging.getLogger(__name__)


# --- construction ----------------------------------------------------------


def build_state(services: Services, cwd: Path) -> McState:
    """Build the dashboard from the filesystem outline and the cached PR lists."""
    rows, repos = build_rows(services.outline())
    state = McState(services=services, cwd=cwd, rows=rows, repos=repos)
    state.cursor = initial_cursor(rows, services.workspace.detect_repo(cwd))
    state.wt_total = sum(len(r.capsules) for r in repos if r.error is None)
    state.pr_total = sum(1 for r in repos if r.error is None)

    for repo in repos:
        if repo.error is not None:
            continue
        cached = services.cached_prs(repo.name)
        if cached:
            process_prs(state, repo.name, cached)
    return state


def rebuild(state: McState) -> list[Task]:
    """Replace the whole model with a fresh outline, keeping filters and the gh login."""
    fresh = build_state(state.services, state.cwd)
    fresh.filter_text = state.filter_text
    fresh.filter_editing = state.filter_editing
    fresh.active_filters = state.active_filters
    fresh.gh_user = state.gh_user
    fresh.show_help = state.show_help
    fresh.notice = state.notice
    fresh.detail_seq = state.detail_seq + 1
    for f in dataclasses.fields(McState):
        setattr(state, f.name, getattr(fresh, f.name))

    if state.active_filters or state.filter_text:
        ensure_cursor_on_visible(state)
    return mc_fetch.initial_tasks(state)


# --- detail debounce -------------------------------------------------------


def track_detail(state: McState, step: Callable[[], list[Task]]) -> list[Task]:
    """Run one transition; if the row under the cursor changed, reset the detail and refetch.

    The row can change without the cursor moving (an undock or a dock in
    place), and the cursor can move while staying on the same row (ghosts
    inserted above it). Loaded detail follows its row in the second case.
    """
    prev_cursor = state.cursor
    prev_key = cursor_key(state)
    tasks = step()
    key = cursor_key(state)
    if state.cursor == prev_cursor and key == prev_key:
        return tasks
    if key is not None and key == state.detail_key and state.detail.loaded:
        state.detail_for = state.cursor
        return tasks

    state.detail = DetailData()
    state.detail_for = -1
    state.detail_key = None
    state.detail_seq += 1
    state.detail_scroll = 0
    tasks.append(mc_fetch.detail_tick_task(state.detail_seq))
    return tasks


def update(state: McState, msg: Message) -> list[Task]:
    return track_detail(state, lambda: handle_msg(state, msg))


def handle_msg(state: McState, msg: Message) -> list[Task]:
    handler = _HANDLERS.get(type(msg))
    if handler is None:
        logger.debug("ignoring unknown message %r", msg)
        return []
    return handler(state, msg)


# --- PR / ghost lifecycle --------------------------------------------------


def clear_repo_prs(state: McState, repo: str) -> tuple[str, str] | None:
    """Drop a repo's ghost rows and capsule PR refs; return the cursor identity from before."""
    identity = cursor_identity(state)

    for i in range(len(state.rows) - 1, -1, -1):
        row = state.rows[i]
        if isinstance(row, GhostRow) and row.repo == repo:
            remove_row(state, i)

    for row in state.rows:
        if isinstance(row, CapsuleRow) and row.repo == repo:
            row.pr = None
    return identity


def process_prs(state: McState, repo: str, prs: list[PullRequest]) -> None:
    """Index a repo's PRs by branch, attach them to capsules and add ghosts for the rest."""
    repo_data = state.repo_data(repo)
    if repo_data is None:
        return
    repo_data.prs = {pr.branch: pr for pr in prs}

    matched: set[str] = set()
    for row in state.rows:
        if not isinstance(row, CapsuleRow) or row.repo != repo:
            continue
        if row.branch and row.branch in repo_data.prs:
            row.pr = repo_data.prs[row.branch]
            matched.add(row.branch)
        elif row.capsule in repo_data.prs:
            row.pr = repo_data.prs[row.capsule]
            matched.add(row.capsule)

    ghosts: list[Row] = [
        GhostRow(repo=repo, branch=branch, pr=pr)
        for branch, pr in repo_data.prs.items()
        if branch not in matched
    ]
    if ghosts:
        insert_ghost_rows(state, repo, ghosts)


def match_capsule_pr(state: McState, idx: int) -> None:
    """Link a capsule to its PR once its branch is known, removing the ghost for that PR."""
    row = state.rows[idx]
    if not isinstance(row, CapsuleRow) or row.pr is not None or not row.branch:
        return
    repo_data = state.repo_data(row.repo)
    if repo_data is None or row.branch not in repo_data.prs:
        return
    row.pr = repo_data.prs[row.branch]

    ghost_idx = find_ghost_row(state, row.repo, row.branch)
    if ghost_idx is None:
        return
    on_ghost = state.cursor == ghost_idx
    remove_row(state, ghost_idx)
    if on_ghost:
        state.cursor = idx if idx < ghost_idx else idx - 1


def insert_ghost_rows(state: McState, repo: str, ghosts: list[Row]) -> None:
    """Insert ghosts after the repo's last row, shifting the cursor when it sits below."""
    insert_at = -1
    for i in range(len(state.rows) - 1, -1, -1):
        if state.rows[i].repo == repo:
            insert_at = i + 1
            break
    if insert_at < 0:
        return

    state.rows[insert_at:insert_at] = ghosts
    if state.cursor >= insert_at:
        state.cursor += len(ghosts)


# --- handlers --------------------------------------------------------------


def _on_status(state: McState, msg: CapsuleStatusMsg) -> list[Task]:
    idx = find_capsule_row(state, msg.repo, msg.status.name)
    if idx is None:
        return []

    row = state.rows[idx]
    assert isinstance(row, CapsuleRow)
    row.branch = msg.status.branch
    row.dirty = msg.status.dirty
    row.ahead = msg.status.ahead
    row.behind = msg.status.behind
    row.loaded = True
    state.wt_done += 1
    match_capsule_pr(state, idx)

    if state.active_filters:
        ensure_cursor_on_visible(state)

    branches = {
        r.capsule: r.branch
        for r in state.rows
        if isinstance(r, CapsuleRow) and r.repo == msg.repo and r.branch
    }
    return [mc_fetch.record_branches_task(state.services, msg.repo, branches)]


def _on_prs(state: McState, msg: PullRequestsMsg) -> list[Task]:
    state.pr_done += 1
    repo_data = state.repo_data(msg.repo)
    if repo_data is None:
        return []

    if msg.error is not None:
        logger.warning("PR list for %s failed: %s", msg.repo, msg.error)
        state.pr_errors += 1
        repo_data.prs_loaded = True
        return []

    identity = clear_repo_prs(state, msg.repo)
    process_prs(state, msg.repo, msg.prs)
    repo_data.prs_loaded = True
    restore_cursor(state, identity)
    return []


def _on_merged(state: McState, msg: MergedMsg) -> list[Task]:
    for row in state.rows:
        if isinstance(row, CapsuleRow) and row.repo == msg.repo and row.branch in msg.branches:
            row.merged = True
    return []


def _on_user(state: McState, msg: UserMsg) -> list[Task]:
    state.gh_user = msg.login
    if Filter.MINE in state.active_filters:
        ensure_cursor_on_visible(state)
    return []


def _on_windows(state: McState, msg: WindowsMsg) -> list[Task]:
    for row in state.rows:
        if isinstance(row, RepoHeader):
            continue
        row.live = state.services.window_name(row.repo, row.capsule) in msg.windows
    return []


def _on_detail_tick(state: McState, msg: DetailTickMsg) -> list[Task]:
    if msg.seq != state.detail_seq:
        return []
    row = state.current_row()
    if row is None or isinstance(row, RepoHeader):
        return []
    return [mc_fetch.detail_task(state.services, row, state.cursor, msg.seq)]


def _on_detail_data(state: McState, msg: DetailDataMsg) -> list[Task]:
    if msg.row_idx != state.cursor or msg.seq != state.detail_seq:
        return []
    state.detail = msg.data
    state.detail_for = msg.row_idx
    state.detail_key = cursor_key(state)
    return []


def _on_docked(state: McState, msg: DockedMsg) -> list[Task]:
    state.action = None
    if msg.error is not None:
        state.notice = f"Dock failed: {msg.error}"
        return []

    idx = find_ghost_row(state, msg.repo, msg.branch)
    if idx is None:
        return []
    ghost = state.rows[idx]
    assert isinstance(ghost, GhostRow)
    state.rows[idx] = CapsuleRow(
        repo=msg.repo, capsule=msg.capsule, branch=msg.branch, pr=ghost.pr, live=ghost.live
    )

    repo_data = state.repo_data(msg.repo)
    if repo_data is not None and msg.capsule not in repo_data.capsules:
        repo_data.capsules.append(msg.capsule)
    state.wt_total += 1
    state.notice = f"Docked {msg.branch} as {msg.capsule}"
    return [mc_fetch.status_task(state.services, msg.repo, msg.capsule)]


def _on_undocked(state: McState, msg: UndockedMsg) -> list[Task]:
    state.action = None
    if msg.error is not None:
        state.notice = f"Undock failed: {msg.error}"
        return []

    idx = find_capsule_row(state, msg.repo, msg.capsule)
    if idx is None:
        return []
    remove_row(state, idx)

    repo_data = state.repo_data(msg.repo)
    if repo_data is not None and msg.capsule in repo_data.capsules:
        repo_data.capsules.remove(msg.capsule)
    state.notice = f"Undocked {msg.repo}/{msg.capsule}"
    ensure_cursor_on_visible(state)
    return []


def _on_cleanup_done(state: McState, msg: CleanupDoneMsg) -> list[Task]:
    if msg.error is not None:
        state.notice = f"Debrief failed: {msg.error}"
        return []

    workspace = state.services.workspace
    board_changed = False
    for capsule in msg.removed:
        if workspace.is_boarded(capsule.repo, capsule.name):
            workspace.unboard(capsule.repo, capsule.name)
            board_changed = True
    if board_changed:
        try:
            state.services.persist_boarded()
        except (ConfigError, IdeError, WorkspaceError, OSError) as exc:
            logger.warning("saving board after debrief: %s", exc)

    state.notice = f"Debriefed {len(msg.removed)} capsule(s)"
    return rebuild(state)


def _on_fetched(state: McState, msg: FetchedMsg) -> list[Task]:
    if msg.error is not None:
        state.notice = f"Fetch {msg.repo} failed: {msg.error}"
        return []
    repo_data = state.repo_data(msg.repo)
    if repo_data is None or repo_data.error is not None:
        return []
    state.notice = f"Fetched {msg.repo}"
    return mc_fetch.repo_tasks(state.services, msg.repo, repo_data.capsules)


def _on_fetched_all(state: McState, msg: FetchedAllMsg) -> list[Task]:
    if msg.failed:
        state.notice = f"Fetch failed for {', '.join(msg.failed)}"
    else:
        state.notice = "Fetched all repos"
    return rebuild(state)


def _on_notice(state: McState, msg: NoticeMsg) -> list[Task]:
    state.notice = msg.text
    return []


_HANDLERS: dict[type, Callable[[McState, Message], list[Task]]] = {
    CapsuleStatusMsg: _on_status,
    PullRequestsMsg: _on_prs,
    MergedMsg: _on_merged,
    UserMsg: _on_user,
    WindowsMsg: _on_windows,
    DetailTickMsg: _on_detail_tick,
    DetailDataMsg: _on_detail_data,
    DockedMsg: _on_docked,
    UndockedMsg: _on_undocked,
    CleanupDoneMsg: _on_cleanup_done,
    FetchedMsg: _on_fetched,
    FetchedAllMsg: _on_fetched_all,
    NoticeMsg: _on_notice,
}
