"""Textual TUI for ws mission control."""

import logging
import subprocess
import threading
from pathlib import Path

from rich.text import Text
from textual import events
from textual.app import App, ComposeResult, SuspendNotSupported
from textual.binding import Binding
from textual.containers import Horizontal, VerticalScroll
from textual.widgets import Static

from ws import mc_fetch, mc_keys, mc_palette, mc_update
from ws.mc_fetch import Task
from ws.mc_messages import Message
from ws.mc_model import CapsuleRow, Filter, GhostRow, McState, RepoHeader, Row
from ws.mc_nav import filtered_row_count, is_row_visible, repo_has_visible, row_key
from ws.workspace import fuzzy_match_positions

logger = logging.getLogger(__name__)

SPINNER = "|/-\\"
FILTER_LABELS = [
    (Filter.LOCAL, "local"),
    (Filter.MINE, "mine"),
    (Filter.REVIEW, "review"),
    (Filter.DIRTY, "dirty"),
]
ROLLUP_GLYPHS = {
    "success": ("✓", "green"),
    "failure": ("✗", "red"),
    "pending": ("•", "yellow"),
}


CSS = """
Screen {
    layout: vertical;
}

#title_line {
    padding: 0 1;
    height: 1;
    text-style: bold;
}

#panes {
    height: 1fr;
}

#list_pane {
    width: 2fr;
    border-right: solid $primary-darken-2;
}

#detail_pane {
    width: 3fr;
    padding: 0 1;
}

#help {
    display: none;
    padding: 1 2;
    border: thick $primary;
    background: $surface;
}

#help.visible {
    display: block;
}

#prompt_line {
    padding: 0 1;
    height: auto;
    max-height: 12;
}

#status_line {
    padding: 0 1;
    height: 1;
    color: $text-muted;
}
"""


def engine_key(key: str, character: str | None) -> str:
    """Translate a Textual key event into the dashboard's key names."""
    if key == "escape":
        return "esc"
    if character and len(character) == 1 and character.isprintable():
        return character
    return key


def format_row(row: Row, spinning: str | None = None) -> Text:
    """One list line for a capsule or ghost row."""
    text = Text("  ")
    if isinstance(row, GhostRow):
        text.append("○ ", style="dim")
        text.append(row.branch, style="dim italic")
    elif isinstance(row, CapsuleRow):
        text.append("● " if row.live else "  ", style="green")
        text.append(row.capsule if row.is_ground else row.label, style="" if row.loaded else "dim")
        if row.dirty:
            text.append(" *", style="yellow")
        if row.ahead:
            text.append(f" ↑{row.ahead}", style="cyan")
        if row.behind:
            text.append(f" ↓{row.behind}", style="magenta")
        if row.boarded:
            text.append(" ◆", style="blue")
        if row.merged:
            text.append(" merged", style="dim green")

    pr = getattr(row, "pr", None)
    if pr is not None:
        text.append(f"  #{pr.number}", style="bold")
        glyph = ROLLUP_GLYPHS.get(pr.status_rollup)
        if glyph:
            text.append(f" {glyph[0]}", style=glyph[1])
        if pr.review_decision == "REVIEW_REQUIRED":
            text.append(" review", style="yellow")
    if spinning:
        text.append(f" {spinning}", style="bold yellow")
    return text


def render_list(state: McState, spinner: str = "") -> tuple[Text, int]:
    """Render the visible rows grouped under their repo headers; return (text, cursor line)."""
    workspace = state.services.workspace
    out = Text()
    line = 0
    cursor_line = 0
    first_group = True
    show_repo = False

    for i, row in enumerate(state.rows):
        if isinstance(row, RepoHeader):
            show_repo = repo_has_visible(state, i)
            if not show_repo:
                continue
            if not first_group:
                out.append("\n")
                line += 1
            first_group = False
            color = workspace.repo_colors.get(row.repo, "")
            out.append(workspace.display_name_for(row.repo), style=f"bold {color}".strip())
            out.append("\n")
            out.append("─" * 24, style="dim")
            out.append("\n")
            line += 2
            continue
        if not show_repo or not is_row_visible(state, i):
            continue

        spinning = spinner if state.action is not None and row_key(row) == state.action else None
        rendered = format_row(row, spinning)
        if i == state.cursor:
            rendered.stylize("reverse")
            cursor_line = line
        out.append_text(rendered)
        out.append("\n")
        line += 1

    if line == 0:
        out.append("no matching capsules", style="dim")
    return out, cursor_line


def render_detail(state: McState) -> Text:
    row = state.current_row()
    out = Text()
    if row is None or isinstance(row, RepoHeader):
        return out

    workspace = state.services.workspace
    out.append(f"{workspace.display_name_for(row.repo)} / {row.label}\n", style="bold")
    if isinstance(row, CapsuleRow):
        status = "dirty" if row.dirty else "clean"
        out.append(f"{row.capsule}  {status}  ↑{row.ahead} ↓{row.behind}\n", style="dim")
    else:
        out.append("remote only: d to dock\n", style="dim")

    detail = state.detail
    if not detail.loaded or state.detail_key != row_key(row):
        out.append("\nloading…", style="dim")
        return out

    if detail.landings:
        out.append("\nRecently landed\n", style="bold")
        for pr in detail.landings:
            out.append(f"  #{pr.number} {pr.title}\n")
    if detail.runs:
        out.append("\nWorkflow runs\n", style="bold")
        for run in detail.runs:
            state_text = run.conclusion or run.status
            out.append(f"  {run.name}: {state_text}\n")
    if detail.commits:
        out.append("\nCommits\n", style="bold")
        for commit in detail.commits:
            out.append(f"  {commit}\n")
    if detail.diff_stat:
        out.append("\nChanges\n", style="bold")
        out.append(detail.diff_stat + "\n")
    if detail.stash_count:
        noun = "entry" if detail.stash_count == 1 else "entries"
        out.append(f"\n{detail.stash_count} stash {noun}\n")
    if detail.pr_title:
        out.append(f"\n{detail.pr_title}\n", style="bold")
        if detail.pr_body:
            out.append(detail.pr_body.strip() + "\n")
    if detail.checks:
        out.append("\nChecks\n", style="bold")
        for check in detail.checks:
            out.append(f"  {check.name}: {check.conclusion or check.status}\n")
    return out


def render_palette(state: McState) -> Text:
    commands = mc_palette.available_commands(state)
    out = Text()
    if not commands:
        out.append("  no matches\n", style="dim")
    end = min(state.palette_offset + mc_palette.MAX_VISIBLE, len(commands))
    if state.palette_offset > 0:
        out.append("  ▲\n", style="dim")
    for i in range(state.palette_offset, end):
        command = commands[i]
        label = Text(command.label, style="bold" if i == state.palette_cursor else "")
        positions = fuzzy_match_positions(state.palette_text, command.label) or []
        for pos in positions:
            label.stylize("bold dark_orange", pos, pos + 1)
        line = Text(f"  {command.key:>3}  ", style="dim")
        line.append_text(label)
        line.append(f"  {command.description}", style="dim")
        if command.scope is not mc_palette.Scope.ALWAYS:
            line.append(f"  [{command.scope.value}]", style="dim")
        if i == state.palette_cursor:
            line.stylize("on grey23")
        out.append_text(line)
        out.append("\n")
    if end < len(commands):
        out.append("  ▼\n", style="dim")
    out.append(f": {state.palette_text}")
    return out


def title_text(state: McState) -> str:
    workspace = state.services.workspace
    visible, total = filtered_row_count(state)
    parts = [workspace.title]
    if state.wt_done < state.wt_total:
        parts.append(f"status {state.wt_done}/{state.wt_total}")
    if state.pr_done < state.pr_total:
        parts.append(f"PRs {state.pr_done}/{state.pr_total}")
    if state.pr_errors:
        parts.append(f"{state.pr_errors} PR error(s)")
    active = [label for flag, label in FILTER_LABELS if flag in state.active_filters]
    if active or state.filter_text:
        parts.append(f"{visible}/{total} shown")
    if active:
        parts.append("filters: " + ",".join(active))
    return "  ·  ".join(parts)


def prompt_text(state: McState) -> Text:
    if state.palette_active:
        return render_palette(state)
    if state.confirm is not None:
        repo, capsule = state.confirm
        return Text(f"Undock {repo}/{capsule}? y to confirm, n or Esc to cancel", style="bold")
    if state.filter_editing or state.filter_text:
        return Text(f"/ {state.filter_text}")
    return Text("")


def help_text() -> Text:
    out = Text("Keys\n\n", style="bold")
    for key, desc in mc_keys.HELP:
        out.append(f"  {key:>6}  ", style="bold")
        out.append(f"{desc}\n")
    return out


class ListPane(VerticalScroll, can_focus=False):
    pass


class DetailPane(VerticalScroll, can_focus=False):
    pass


class MissionControlApp(App[Path | None]):
    """Live workspace dashboard. Owns the state; background tasks run on threads."""

    CSS = CSS
    BINDINGS = [Binding("ctrl+c", "quit_dashboard", "Quit", show=False, priority=True)]

    def __init__(self, state: McState) -> None:
        super().__init__()
        self.state = state
        self._spinner_index = 0

    def compose(self) -> ComposeResult:
        yield Static("", id="title_line")
        with Horizontal(id="panes"):
            with ListPane(id="list_pane"):
                yield Static("", id="list")
            with DetailPane(id="detail_pane"):
                yield Static("", id="detail")
        yield Static(help_text(), id="help")
        yield Static("", id="prompt_line")
        yield Static("", id="status_line")

    def on_mount(self) -> None:
        self.title = "Mission Control"
        self._dispatch(mc_fetch.initial_tasks(self.state))
        self._render_state()
        self.set_interval(0.25, self._tick)

    def _tick(self) -> None:
        if self.state.action is not None:
            self._spinner_index += 1
            self._render_state()

    # --- task runtime ----------------------------------------------------

    def _dispatch(self, tasks: list[Task]) -> None:
        for task in tasks:
            if task.delay > 0:
                self.set_timer(task.delay, lambda task=task: self._start(task))
            else:
                self._start(task)

    def _start(self, task: Task) -> None:
        def runner() -> None:
            try:
                msg = task.run()
            except Exception:
                logger.exception("task %s failed", task.label)
                return
            if msg is None:
                return
            try:
                self.call_from_thread(self._deliver, msg)
            except RuntimeError:
                logger.debug("dropping %s result: app is not running", task.label)

        threading.Thread(target=runner, name=task.label, daemon=True).start()

    def _deliver(self, msg: Message) -> None:
        self._after(mc_update.update(self.state, msg))

    def _after(self, tasks: list[Task]) -> None:
        self._dispatch(tasks)

        if self.state.exec_argv:
            argv = self.state.exec_argv
            self.state.exec_argv = None
            self._exec(argv)

        if self.state.quit:
            self.exit(self.state.jump_path)
            return
        self._render_state()

    def _exec(self, argv: list[str]) -> None:
        try:
            with self.suspend():
                subprocess.run(argv, check=False)
        except (OSError, SuspendNotSupported) as exc:
            logger.warning("running %s: %s", argv[0], exc)
            self.state.notice = f"Could not run {argv[0]}: {exc}"

    # --- input -----------------------------------------------------------

    def on_key(self, event: events.Key) -> None:
        event.stop()
        event.prevent_default()
        key = engine_key(event.key, event.character)
        self._after(mc_keys.press(self.state, key))

    def action_quit_dashboard(self) -> None:
        self.exit(None)

    # --- rendering -------------------------------------------------------

    def _render_state(self) -> None:
        state = self.state
        spinner = SPINNER[self._spinner_index % len(SPINNER)]
        list_text, cursor_line = render_list(state, spinner)

        self.query_one("#title_line", Static).update(title_text(state))
        self.query_one("#list", Static).update(list_text)
        self.query_one("#detail", Static).update(render_detail(state))
        self.query_one("#prompt_line", Static).update(prompt_text(state))
        self.query_one("#status_line", Static).update(state.notice or "? help  : commands  q quit")
        self.query_one("#help", Static).set_class(state.show_help, "visible")

        list_pane = self.query_one("#list_pane", ListPane)
        top = list_pane.scroll_offset.y
        height = list_pane.size.height
        if height:
            if cursor_line < top:
                list_pane.scroll_to(y=cursor_line, animate=False)
            elif cursor_line >= top + height:
                list_pane.scroll_to(y=cursor_line - height + 1, animate=False)
        self.query_one("#detail_pane", DetailPane).scroll_to(y=state.detail_scroll, animate=False)


def run_mission_control(state: McState) -> Path | None:
    """Run the dashboard and return the capsule path to jump to, if any."""
    app = MissionControlApp(state)
    return app.run()
