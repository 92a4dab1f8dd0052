"""Row model and dashboard state for mission control."""

import enum
from dataclasses import dataclass, field
from pathlib import Path
from typing import TYPE_CHECKING

from ws.models import CheckRun, PullRequest, RepoOutline, WorkflowRun
from ws.workspace import GROUND_DIR, capsule_name

if TYPE_CHECKING:
    from ws.services import Services


class Filter(enum.Flag):
    """Preset filters; every active flag must pass for a row to be visible."""

    NONE = 0
    LOCAL = enum.auto()  # hide ghost rows
    MINE = enum.auto()  # only PRs authored by the gh user
    REVIEW = enum.auto()  # only PRs waiting on review
    DIRTY = enum.auto()  # only dirty or ahead


@dataclass
class RepoHeader:
    repo: str


@dataclass
class CapsuleRow:
    """A checked-out capsule. Branch and counts arrive with the status query."""

    repo: str
    capsule: str
    branch: str = ""
    dirty: bool = False
    ahead: int = 0
    behind: int = 0
    loaded: bool = False
    boarded: bool = False
    merged: bool = False
    live: bool = False
    pr: PullRequest | None = None

    @property
    def label(self) -> str:
        return self.branch or self.capsule

    @property
    def is_ground(self) -> bool:
        return self.capsule == GROUND_DIR


@dataclass
class GhostRow:
    """An open PR with no local capsule."""

    repo: str
    branch: str
    pr: PullRequest
    loaded: bool = True
    live: bool = False

    @property
    def label(self) -> str:
        return self.branch

    @property
    def capsule(self) -> str:
        # The name a capsule docked from this branch would get.
        return capsule_name(self.branch)


Row = RepoHeader | CapsuleRow | GhostRow


@dataclass
class RepoData:
    name: str
    capsules: list[str] = field(default_factory=list)
    boarded: list[str] = field(default_factory=list)
    prs: dict[str, PullRequest] = field(default_factory=dict)
    prs_loaded: bool = False
    error: str | None = None


@dataclass
class DetailData:
    """Lazily fetched detail for the row under the cursor."""

    commits: list[str] = field(default_factory=list)
    diff_stat: str = ""
    stash_count: int = 0
    pr_title: str = ""
    pr_body: str = ""
    checks: list[CheckRun] = field(default_factory=list)
    landings: list[PullRequest] = field(default_factory=list)
    runs: list[WorkflowRun] = field(default_factory=list)
    loaded: bool = False


@dataclass
class McState:
    """Everything the dashboard shows. Only the event loop mutates it."""

    services: "Services"
    cwd: Path
    rows: list[Row] = field(default_factory=list)
    cursor: int = 0
    repos: list[RepoData] = field(default_factory=list)

    wt_total: int = 0
    wt_done: int = 0
    pr_total: int = 0
    pr_done: int = 0
    pr_errors: int = 0

    detail: DetailData = field(default_factory=DetailData)
    detail_for: int = -1
    # row_key of the row the loaded detail belongs to
    detail_key: tuple[str, str, str] | None = None
    detail_seq: int = 0
    detail_scroll: int = 0

    filter_text: str = ""
    filter_editing: bool = False
    active_filters: Filter = Filter.NONE
    gh_user: str = ""

    palette_active: bool = False
    palette_text: str = ""
    palette_cursor: int = 0
    palette_offset: int = 0

    # (repo, capsule) awaiting a y/n answer before it is undocked
    confirm: tuple[str, str] | None = None
    # row_key of the row a dock or undock is running for
    action: tuple[str, str, str] | None = None
    show_help: bool = False
    notice: str = ""

    jump_path: Path | None = None
    exec_argv: list[str] | None = None
    quit: bool = False

    def repo_data(self, name: str) -> RepoData | None:
        for repo in self.repos:
            if repo.name == name:
                return repo
        return None

    def current_row(self) -> Row | None:
        if 0 <= self.cursor < len(self.rows):
            return self.rows[self.cursor]
        return None


def build_rows(outlines: list[RepoOutline]) -> tuple[list[Row], list[RepoData]]:
    """Shape the filesystem outline into header and capsule rows."""
    rows: list[Row] = []
    repos: list[RepoData] = []
    for outline in outlines:
        repos.append(
            RepoData(
                name=outline.name,
                capsules=list(outline.capsules),
                boarded=list(outline.boarded),
                error=outline.error,
            )
        )
        rows.append(RepoHeader(repo=outline.name))
        if outline.error is not None:
            continue

        for capsule in outline.capsules:
            rows.append(
                CapsuleRow(
                    repo=outline.name, capsule=capsule, boarded=capsule in outline.boarded
                )
            )
    return rows, repos


def initial_cursor(rows: list[Row], detected: tuple[str, str] | None) -> int:
    """The row for the invoking directory's capsule, else the first non-header row."""
    if detected is not None:
        repo, capsule = detected
        for i, row in enumerate(rows):
            if isinstance(row, CapsuleRow) and row.repo == repo and row.capsule == capsule:
                return i
    for i, row in enumerate(rows):
        if not isinstance(row, RepoHeader):
            return i
    return 0
