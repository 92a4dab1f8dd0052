"""Row visibility, cursor movement and identity-based cursor restoration."""

from ws.mc_model import CapsuleRow, Filter, GhostRow, McState, RepoHeader, Row
from ws.workspace import fuzzy_match

REVIEW_REQUIRED = "REVIEW_REQUIRED"


def is_row_visible(state: McState, i: int) -> bool:
    """A non-header row is visible when the text filter and every active preset pass."""
    row = state.rows[i]
    if isinstance(row, RepoHeader):
        return False

    if state.filter_text and not fuzzy_match(state.filter_text, row.label):
        return False

    active = state.active_filters
    if Filter.LOCAL in active and not isinstance(row, CapsuleRow):
        return False
    if Filter.MINE in active and state.gh_user:
        if row.pr is None or row.pr.author != state.gh_user:
            return False
    if Filter.REVIEW in active:
        if row.pr is None or row.pr.review_decision != REVIEW_REQUIRED:
            return False
    if Filter.DIRTY in active:
        if not isinstance(row, CapsuleRow) or (not row.dirty and row.ahead <= 0):
            return False

    return True


def repo_has_visible(state: McState, header_idx: int) -> bool:
    """Whether a repo header has at least one visible child (and so is drawn)."""
    for j in range(header_idx + 1, len(state.rows)):
        if isinstance(state.rows[j], RepoHeader):
            return False
        if is_row_visible(state, j):
            return True
    return False


def filtered_row_count(state: McState) -> tuple[int, int]:
    """Return (visible, total) over non-header rows."""
    visible = total = 0
    for i, row in enumerate(state.rows):
        if isinstance(row, RepoHeader):
            continue
        total += 1
        if is_row_visible(state, i):
            visible += 1
    return visible, total


def move_cursor(state: McState, delta: int) -> None:
    """Step to the next visible row in the given direction; stop at the ends."""
    new_cursor = state.cursor
    while True:
        new_cursor += delta
        if new_cursor < 0 or new_cursor >= len(state.rows):
            return
        if is_row_visible(state, new_cursor):
            state.cursor = new_cursor
            return


def ensure_cursor_on_visible(state: McState) -> None:
    """Snap the cursor to the nearest visible row if it is not on one.

    Ties go to the row below. The cursor is left alone when nothing is
    visible.
    """
    if not state.rows:
        state.cursor = 0
        return
    state.cursor = min(max(state.cursor, 0), len(state.rows) - 1)
    if is_row_visible(state, state.cursor):
        return

    for distance in range(1, len(state.rows)):
        below = state.cursor + distance
        above = state.cursor - distance
        if below < len(state.rows) and is_row_visible(state, below):
            state.cursor = below
            return
        if above >= 0 and is_row_visible(state, above):
            state.cursor = above
            return


def row_identity(row: Row) -> tuple[str, str] | None:
    """(repo, branch) for a row, using the capsule name while the branch is unknown."""
    if isinstance(row, RepoHeader):
        return None
    if isinstance(row, CapsuleRow):
        return row.repo, row.branch or row.capsule
    return row.repo, row.branch


def cursor_identity(state: McState) -> tuple[str, str] | None:
    row = state.current_row()
    return row_identity(row) if row is not None else None


def row_key(row: Row | None) -> tuple[str, str, str] | None:
    """A key that stays fixed for the life of a row, even when its branch arrives later."""
    if row is None or isinstance(row, RepoHeader):
        return None
    if isinstance(row, CapsuleRow):
        return row.repo, "capsule", row.capsule
    return row.repo, "ghost", row.branch


def cursor_key(state: McState) -> tuple[str, str, str] | None:
    return row_key(state.current_row())


def restore_cursor(state: McState, identity: tuple[str, str] | None) -> None:
    """Put the cursor back on the row with this identity, else the nearest visible row."""
    if identity is not None:
        repo, key = identity
        for i, row in enumerate(state.rows):
            if isinstance(row, RepoHeader) or row.repo != repo:
                continue
            capsule = row.capsule if isinstance(row, CapsuleRow) else ""
            if key in (row.branch, capsule) and is_row_visible(state, i):
                state.cursor = i
                return
    ensure_cursor_on_visible(state)


def remove_row(state: McState, i: int) -> Row:
    """Delete a row, keeping the cursor on the same logical row when it is elsewhere.

    When the cursor was on the deleted row it snaps to the nearest visible
    row, so it never lands on the next repo's header.
    """
    row = state.rows.pop(i)
    if state.cursor > i:
        state.cursor -= 1
    elif state.cursor == i:
        ensure_cursor_on_visible(state)
    return row


def find_capsule_row(state: McState, repo: str, capsule: str) -> int | None:
    for i, row in enumerate(state.rows):
        if isinstance(row, CapsuleRow) and row.repo == repo and row.capsule == capsule:
            return i
    return None


def find_ghost_row(state: McState, repo: str, branch: str) -> int | None:
    for i, row in enumerate(state.rows):
        if isinstance(row, GhostRow) and row.repo == repo and row.branch == branch:
            return i
    return None


def find_ground_row(state: McState, repo: str) -> int | None:
    for i, row in enumerate(state.rows):
        if isinstance(row, CapsuleRow) and row.repo == repo and row.is_ground:
            return i
    return None
