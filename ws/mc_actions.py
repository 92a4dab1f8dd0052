"""User actions on the dashboard: navigate, go, open, board, dock/undock, refresh, fetch."""

import logging

from ws import mc_fetch
from ws.config import ConfigError
from ws.ide import IdeError
from ws.mc_fetch import Task
from ws.mc_model import CapsuleRow, Filter, GhostRow, McState, RepoHeader
from ws.mc_nav import (
    ensure_cursor_on_visible,
    find_capsule_row,
    find_ground_row,
    is_row_visible,
    move_cursor,
    row_key,
)
from ws.tmux import TmuxError
from ws.workspace import WorkspaceError

logger = logging.getLogger(__name__)

DETAIL_SCROLL_STEP = 3


def _current_capsule(state: McState) -> CapsuleRow | None:
    row = state.current_row()
    return row if isinstance(row, CapsuleRow) else None


def navigate(state: McState, delta: int) -> list[Task]:
    move_cursor(state, delta)
    return []


def scroll_detail(state: McState, delta: int) -> list[Task]:
    state.detail_scroll = max(0, state.detail_scroll + delta * DETAIL_SCROLL_STEP)
    return []


def select_ground(state: McState) -> list[Task]:
    row = state.current_row()
    if row is None or isinstance(row, RepoHeader):
        return []
    idx = find_ground_row(state, row.repo)
    if idx is not None and is_row_visible(state, idx):
        state.cursor = idx
    return []


def go(state: McState) -> list[Task]:
    """Switch to the capsule's tmux window, or exit and hand the path to the shell."""
    row = _current_capsule(state)
    if row is None:
        return []
    services = state.services

    if services.in_tmux():
        try:
            services.go_to_window(row.repo, row.capsule)
        except TmuxError as exc:
            logger.warning("go %s/%s: %s", row.repo, row.capsule, exc)
            state.notice = f"tmux: {exc}"
        return [mc_fetch.windows_task(services)]

    state.jump_path = services.capsule_path(row.repo, row.capsule)
    state.quit = True
    return []


def open_capsule(state: McState) -> list[Task]:
    """Open $EDITOR on the capsule, in tmux when available, otherwise in this terminal."""
    row = _current_capsule(state)
    if row is None:
        return []
    services = state.services

    if services.in_tmux():
        try:
            services.open_editor_in_tmux(row.repo, row.capsule)
        except TmuxError as exc:
            logger.warning("open %s/%s: %s", row.repo, row.capsule, exc)
            state.notice = f"tmux: {exc}"
        return [mc_fetch.windows_task(services)]

    state.exec_argv = services.editor_argv(row.repo, row.capsule)
    return []


def open_pr(state: McState) -> list[Task]:
    row = state.current_row()
    pr = getattr(row, "pr", None)
    if pr is None or not pr.url:
        return []
    return [mc_fetch.open_url_task(state.services, pr.url)]


def open_repo(state: McState) -> list[Task]:
    row = state.current_row()
    if row is None or isinstance(row, RepoHeader):
        return []
    return [mc_fetch.open_url_task(state.services, state.services.repo_url(row.repo))]


def copy_path(state: McState) -> list[Task]:
    row = _current_capsule(state)
    if row is None:
        return []
    path = state.services.capsule_path(row.repo, row.capsule)
    return [mc_fetch.copy_task(state.services, str(path))]


def toggle_board(state: McState) -> list[Task]:
    """Board or unboard the capsule under the cursor and persist the change."""
    row = _current_capsule(state)
    if row is None:
        return []
    workspace = state.services.workspace
    if workspace.is_protected(row.capsule):
        return []

    before = list(workspace.boarded.get(row.repo, []))
    try:
        if row.capsule in before:
            workspace.unboard(row.repo, row.capsule)
        else:
            workspace.board(row.repo, row.capsule)
    except WorkspaceError as exc:
        logger.warning("board toggle %s/%s: %s", row.repo, row.capsule, exc)
        state.notice = str(exc)
        return []

    try:
        state.services.persist_boarded()
    except (ConfigError, IdeError, OSError) as exc:
        logger.warning("saving board: %s", exc)
        if before:
            workspace.boarded[row.repo] = before
        else:
            workspace.boarded.pop(row.repo, None)
        state.notice = f"Board not saved: {exc}"
        return []

    for other in state.rows:
        if isinstance(other, CapsuleRow) and other.repo == row.repo:
            other.boarded = workspace.is_boarded(other.repo, other.capsule)
    repo_data = state.repo_data(row.repo)
    if repo_data is not None:
        repo_data.boarded = list(workspace.boarded.get(row.repo, []))
    return []


def request_undock(state: McState) -> list[Task]:
    row = _current_capsule(state)
    if row is None or state.services.workspace.is_protected(row.capsule):
        return []
    state.confirm = (row.repo, row.capsule)
    return []


def confirm_undock(state: McState) -> list[Task]:
    if state.confirm is None:
        return []
    repo, capsule = state.confirm
    state.confirm = None
    idx = find_capsule_row(state, repo, capsule)
    if idx is None:
        return []
    state.action = row_key(state.rows[idx])
    return [mc_fetch.undock_task(state.services, repo, capsule)]


def cancel_undock(state: McState) -> list[Task]:
    state.confirm = None
    return []


def dock(state: McState) -> list[Task]:
    """Create a capsule for the ghost under the cursor. One dock runs at a time."""
    row = state.current_row()
    if not isinstance(row, GhostRow) or state.action is not None:
        return []
    state.action = row_key(row)
    return [mc_fetch.dock_task(state.services, row.repo, row.branch)]


def dock_or_undock(state: McState) -> list[Task]:
    if isinstance(state.current_row(), GhostRow):
        return dock(state)
    return request_undock(state)


def refresh(state: McState) -> list[Task]:
    """Clean up abandoned capsules in the background; the model is rebuilt when it finishes."""
    state.notice = "Debriefing..."
    return [mc_fetch.cleanup_task(state.services)]


def fetch_repo(state: McState) -> list[Task]:
    row = state.current_row()
    if row is None or isinstance(row, RepoHeader):
        return []
    state.notice = f"Fetching {row.repo}..."
    return [mc_fetch.fetch_task(state.services, row.repo)]


def fetch_all(state: McState) -> list[Task]:
    state.notice = "Fetching all repos..."
    return [mc_fetch.fetch_all_task(state.services)]


def toggle_filter(state: McState, flag: Filter) -> list[Task]:
    state.active_filters ^= flag
    ensure_cursor_on_visible(state)
    return []


def clear_filters(state: McState) -> list[Task]:
    state.active_filters = Filter.NONE
    state.filter_text = ""
    state.filter_editing = False
    ensure_cursor_on_visible(state)
    return []


def toggle_help(state: McState) -> list[Task]:
    state.show_help = not state.show_help
    return []


def quit_app(state: McState) -> list[Task]:
    state.quit = True
    return []
