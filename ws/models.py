"""Data models for ws."""

from dataclasses import asdict, dataclass, field
from pathlib import Path


@dataclass(frozen=True)
class PullRequest:
    """An open pull request, keyed by its head branch."""

    number: int
    title: str
    branch: str
    state: str = "OPEN"
    review_decision: str = ""
    status_rollup: str = ""  # "success", "failure", "pending", or ""
    url: str = ""
    author: str = ""
    merged_at: str = ""

    def to_dict(self) -> dict[str, object]:
        return asdict(self)

    @classmethod
    def from_dict(cls, raw: dict[str, object]) -> "PullRequest":
        return cls(
            number=int(raw.get("number") or 0),
            title=str(raw.get("title") or ""),
            branch=str(raw.get("branch") or ""),
            state=str(raw.get("state") or "OPEN"),
            review_decision=str(raw.get("review_decision") or ""),
            status_rollup=str(raw.get("status_rollup") or ""),
            url=str(raw.get("url") or ""),
            author=str(raw.get("author") or ""),
            merged_at=str(raw.get("merged_at") or ""),
        )


@dataclass(frozen=True)
class CheckRun:
    """A single CI check on a pull request."""

    name: str
    conclusion: str
    status: str


@dataclass(frozen=True)
class WorkflowRun:
    """A GitHub Actions workflow run."""

    name: str
    status: str  # completed, in_progress, queued
    conclusion: str
    created_at: str


@dataclass(frozen=True)
class PullRequestDetail:
    """Body, checks and commit headlines for one pull request."""

    title: str
    body: str
    checks: list[CheckRun] = field(default_factory=list)
    commits: list[str] = field(default_factory=list)


@dataclass(frozen=True)
class AheadBehind:
    """Commit counts ahead/behind a reference."""

    ahead: int
    behind: int


@dataclass(frozen=True)
class WorktreeStatus:
    """Git state for a single capsule."""

    name: str
    branch: str
    dirty: bool
    ahead: int
    behind: int


@dataclass
class RepoOutline:
    """The fast, filesystem-only structure of a repo."""

    name: str
    capsules: list[str]
    boarded: list[str]
    last_activity: float = 0.0
    error: str | None = None


@dataclass
class CapsuleInfo:
    """A capsule as seen by the debrief scan."""

    repo: str
    name: str
    path: Path
    branch: str
    dirty: bool
    boarded: bool
    last_commit_ts: int
    merged: bool
    inactive: bool
    ahead: int
    behind: int

    @property
    def abandoned(self) -> bool:
        """Merged or inactive, and safe to remove because nothing is uncommitted."""
        return (self.merged or self.inactive) and not self.dirty
