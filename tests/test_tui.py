from __future__ import annotations

from conftest import pr

from ws.mc_messages import PullRequestsMsg
from ws.mc_model import DetailData, Filter, GhostRow, McState
from ws.mc_update import update
from ws.tui import engine_key, format_row, prompt_text, render_detail, render_list, title_text


def test_engine_key() -> None:
    assert engine_key("escape", None) == "esc"
    assert engine_key("j", "j") == "j"
    assert engine_key("J", "J") == "J"
    assert engine_key("question_mark", "?") == "?"
    assert engine_key("enter", "\r") == "enter"
    assert engine_key("shift+down", None) == "shift+down"


def test_render_list_groups_and_marks_cursor(frontend_state: McState) -> None:
    update(frontend_state, PullRequestsMsg(repo="frontend", prs=[pr(2, "deps/upgrade")]))
    frontend_state.cursor = 2

    text, cursor_line = render_list(frontend_state)
    lines = text.plain.splitlines()
    assert lines[0] == "Frontend"
    assert lines[2].strip() == ".ground"
    assert "feat-auth" in lines[3]
    assert "deps/upgrade" in lines[4] and "#2" in lines[4]
    assert cursor_line == 3


def test_render_list_hides_empty_groups(frontend_state: McState) -> None:
    frontend_state.filter_text = "zzz"
    text, _ = render_list(frontend_state)
    assert text.plain == "no matching capsules"


def test_format_row_flags(frontend_state: McState) -> None:
    row = frontend_state.rows[2]
    row.branch = "feat/auth"
    row.loaded = True
    row.dirty = True
    row.ahead = 2
    row.boarded = True
    row.pr = pr(5, "feat/auth", status_rollup="failure")
    assert format_row(row, "|").plain.strip() == "feat/auth * ↑2 ◆  #5 ✗ |"


def test_spinner_follows_action_row_when_rows_shift(frontend_state: McState) -> None:
    update(frontend_state, PullRequestsMsg(repo="frontend", prs=[pr(2, "deps/upgrade")]))
    frontend_state.action = ("frontend", "ghost", "deps/upgrade")
    frontend_state.rows.insert(1, GhostRow(repo="frontend", branch="x", pr=pr(9, "x")))

    text, _ = render_list(frontend_state, "@")
    spinning = [line for line in text.plain.splitlines() if line.rstrip().endswith("@")]
    assert len(spinning) == 1
    assert "deps/upgrade" in spinning[0]


def test_render_detail_loading_then_loaded(frontend_state: McState) -> None:
    frontend_state.cursor = 2
    assert "loading" in render_detail(frontend_state).plain

    frontend_state.detail = DetailData(commits=["abc fix"], stash_count=2, loaded=True)
    assert "loading" in render_detail(frontend_state).plain

    frontend_state.detail_key = ("frontend", "capsule", "feat-auth")
    plain = render_detail(frontend_state).plain
    assert "abc fix" in plain
    assert "2 stash entries" in plain


def test_title_text_progress_and_filters(frontend_state: McState) -> None:
    assert title_text(frontend_state) == "acme  ·  status 0/2  ·  PRs 0/1"

    frontend_state.wt_done = 2
    frontend_state.pr_done = 1
    frontend_state.active_filters = Filter.DIRTY
    assert title_text(frontend_state) == "acme  ·  0/2 shown  ·  filters: dirty"


def test_prompt_text(frontend_state: McState) -> None:
    assert prompt_text(frontend_state).plain == ""
    frontend_state.confirm = ("frontend", "feat-auth")
    assert prompt_text(frontend_state).plain.startswith("Undock frontend/feat-auth?")
    frontend_state.confirm = None
    frontend_state.filter_editing = True
    frontend_state.filter_text = "au"
    assert prompt_text(frontend_state).plain == "/ au"
