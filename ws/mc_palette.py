"""Command palette: the dashboard actions, scoped to the row under the cursor."""

import enum
from collections.abc import Callable
from dataclasses import dataclass

from ws import mc_actions
from ws.mc_fetch import Task
from ws.mc_model import CapsuleRow, Filter, GhostRow, McState, RepoHeader, Row
from ws.workspace import fuzzy_match

MAX_VISIBLE = 8


class Scope(enum.Enum):
    ALWAYS = "always"
    CAPSULE = "capsule"
    GHOST = "ghost"
    HAS_PR = "pr"
    REPO = "repo"


@dataclass(frozen=True)
class Command:
    name: str
    label: str
    description: str
    key: str
    scope: Scope
    run: Callable[[McState], list[Task]]


def _filter_toggle(flag: Filter) -> Callable[[McState], list[Task]]:
    return lambda state: mc_actions.toggle_filter(state, flag)


COMMANDS: list[Command] = [
    Command("go", "Go", "cd into capsule", "⏎", Scope.CAPSULE, mc_actions.go),
    Command(
        "open",
        "Open in Editor",
        "open in $EDITOR",
        "o",
        Scope.CAPSULE,
        mc_actions.open_capsule,
    ),
    Command("github", "View on GitHub", "open PR in browser", "", Scope.HAS_PR, mc_actions.open_pr),
    Command("board", "Board", "add to IDE workspace", "b", Scope.CAPSULE, mc_actions.toggle_board),
    Command(
        "unboard",
        "Unboard",
        "remove from IDE workspace",
        "b",
        Scope.CAPSULE,
        mc_actions.toggle_board,
    ),
    Command("undock", "Undock", "remove capsule", "d", Scope.CAPSULE, mc_actions.request_undock),
    Command("dock", "Dock", "create capsule from PR", "d", Scope.GHOST, mc_actions.dock),
    Command("copy-path", "Copy Path", "copy capsule path", "", Scope.CAPSULE, mc_actions.copy_path),
    Command(
        "open-repo",
        "View Repo on GitHub",
        "open repo in browser",
        "",
        Scope.REPO,
        mc_actions.open_repo,
    ),
    Command("fetch", "Fetch", "fetch repo and requery", "", Scope.REPO, mc_actions.fetch_repo),
    Command(
        "filter-local",
        "Filter: Local",
        "toggle local filter",
        "1",
        Scope.ALWAYS,
        _filter_toggle(Filter.LOCAL),
    ),
    Command(
        "filter-mine",
        "Filter: Mine",
        "toggle my PRs filter",
        "2",
        Scope.ALWAYS,
        _filter_toggle(Filter.MINE),
    ),
    Command(
        "filter-review",
        "Filter: Review Requested",
        "toggle review filter",
        "3",
        Scope.ALWAYS,
        _filter_toggle(Filter.REVIEW),
    ),
    Command(
        "filter-dirty",
        "Filter: Dirty",
        "toggle dirty filter",
        "4",
        Scope.ALWAYS,
        _filter_toggle(Filter.DIRTY),
    ),
    Command("refresh", "Refresh", "refresh all data", "r", Scope.ALWAYS, mc_actions.refresh),
    Command("debrief", "Debrief", "clean up merged capsules", "", Scope.ALWAYS, mc_actions.refresh),
    Command("fetch-all", "Fetch All", "fetch all repos", "", Scope.ALWAYS, mc_actions.fetch_all),
]


def _in_scope(scope: Scope, row: Row | None) -> bool:
    if scope is Scope.ALWAYS:
        return True
    if scope is Scope.CAPSULE:
        return isinstance(row, CapsuleRow)
    if scope is Scope.GHOST:
        return isinstance(row, GhostRow)
    if scope is Scope.HAS_PR:
        return getattr(row, "pr", None) is not None
    return row is not None and not isinstance(row, RepoHeader)


def available_commands(state: McState) -> list[Command]:
    """Commands for the current row matching the palette text, context-scoped ones first."""
    row = state.current_row()
    boarded = isinstance(row, CapsuleRow) and row.boarded

    out: list[Command] = []
    for command in COMMANDS:
        if state.palette_text and not fuzzy_match(state.palette_text, command.label):
            continue
        if not _in_scope(command.scope, row):
            continue
        if command.name == "board" and boarded:
            continue
        if command.name == "unboard" and not boarded:
            continue
        out.append(command)

    out.sort(key=lambda c: c.scope is Scope.ALWAYS)
    return out


def open_palette(state: McState) -> list[Task]:
    state.palette_active = True
    state.palette_text = ""
    state.palette_cursor = 0
    state.palette_offset = 0
    return []


def close_palette(state: McState) -> None:
    state.palette_active = False
    state.palette_text = ""
    state.palette_cursor = 0
    state.palette_offset = 0


def handle_key(state: McState, key: str) -> list[Task]:
    """Keys while the palette is open: type to filter, up/down to pick, enter to run."""
    if key == "esc":
        close_palette(state)
        return []

    if key == "enter":
        commands = available_commands(state)
        if not 0 <= state.palette_cursor < len(commands):
            return []
        selected = commands[state.palette_cursor]
        close_palette(state)
        return selected.run(state)

    if key == "up":
        state.palette_cursor = max(state.palette_cursor - 1, 0)
        state.palette_offset = min(state.palette_offset, state.palette_cursor)
        return []

    if key == "down":
        commands = available_commands(state)
        if state.palette_cursor < len(commands) - 1:
            state.palette_cursor += 1
        if state.palette_cursor >= state.palette_offset + MAX_VISIBLE:
            state.palette_offset = state.palette_cursor - MAX_VISIBLE + 1
        return []

    if key == "backspace":
        state.palette_text = state.palette_text[:-1]
    elif len(key) == 1 and key.isprintable():
        state.palette_text += key
    else:
        return []
    state.palette_cursor = 0
    state.palette_offset = 0
    return []
