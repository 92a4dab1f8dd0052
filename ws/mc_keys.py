"""Key dispatch for mission control.

Keys are plain strings: single printable characters as typed ("j", "J",
"/", "?") and named keys otherwise ("enter", "esc", "up", "backspace").
"""

from collections.abc import Callable

from ws import mc_actions, mc_palette
from ws.mc_fetch import Task
from ws.mc_model import Filter, McState
from ws.mc_nav import ensure_cursor_on_visible
from ws.mc_update import track_detail

KEYMAP: dict[str, Callable[[McState], list[Task]]] = {
    "q": mc_actions.quit_app,
    "ctrl+c": mc_actions.quit_app,
    ":": mc_palette.open_palette,
    "1": lambda state: mc_actions.toggle_filter(state, Filter.LOCAL),
    "2": lambda state: mc_actions.toggle_filter(state, Filter.MINE),
    "3": lambda state: mc_actions.toggle_filter(state, Filter.REVIEW),
    "4": lambda state: mc_actions.toggle_filter(state, Filter.DIRTY),
    "esc": mc_actions.clear_filters,
    "j": lambda state: mc_actions.navigate(state, 1),
    "down": lambda state: mc_actions.navigate(state, 1),
    "k": lambda state: mc_actions.navigate(state, -1),
    "up": lambda state: mc_actions.navigate(state, -1),
    "J": lambda state: mc_actions.scroll_detail(state, 1),
    "shift+down": lambda state: mc_actions.scroll_detail(state, 1),
    "K": lambda state: mc_actions.scroll_detail(state, -1),
    "shift+up": lambda state: mc_actions.scroll_detail(state, -1),
    "l": mc_actions.select_ground,
    "right": mc_actions.select_ground,
    "enter": mc_actions.go,
    "o": mc_actions.open_capsule,
    "b": mc_actions.toggle_board,
    "d": mc_actions.dock_or_undock,
    "r": mc_actions.refresh,
    "?": mc_actions.toggle_help,
}

HELP = [
    ("j/k", "move"),
    ("J/K", "scroll detail"),
    ("l", "ground"),
    ("enter", "go"),
    ("o", "open in editor"),
    ("b", "board/unboard"),
    ("d", "dock/undock"),
    ("r", "refresh"),
    ("/", "filter"),
    ("1-4", "local/mine/review/dirty"),
    (":", "palette"),
    ("esc", "clear filters"),
    ("?", "help"),
    ("q", "quit"),
]


def _filter_key(state: McState, key: str) -> list[Task]:
    if key == "esc":
        return mc_actions.clear_filters(state)
    if key == "enter":
        state.filter_editing = False
        return []
    if key == "ctrl+c":
        return mc_actions.quit_app(state)

    if key == "backspace":
        state.filter_text = state.filter_text[:-1]
    elif len(key) == 1 and key.isprintable():
        state.filter_text += key
    else:
        return []
    ensure_cursor_on_visible(state)
    return []


def _confirm_key(state: McState, key: str) -> list[Task]:
    if key == "y":
        return mc_actions.confirm_undock(state)
    if key in ("n", "esc"):
        return mc_actions.cancel_undock(state)
    return []


def handle_key(state: McState, key: str) -> list[Task]:
    if state.filter_editing:
        return _filter_key(state, key)
    if state.palette_active:
        if key == "ctrl+c":
            return mc_actions.quit_app(state)
        return mc_palette.handle_key(state, key)
    if state.confirm is not None:
        return _confirm_key(state, key)

    if key == "/":
        state.filter_editing = True
        return []
    action = KEYMAP.get(key)
    if action is None:
        return []
    return action(state)


def press(state: McState, key: str) -> list[Task]:
    """Apply one key press, scheduling a detail fetch when the cursor moved."""
    return track_detail(state, lambda: handle_key(state, key))
