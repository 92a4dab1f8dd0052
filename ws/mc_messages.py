"""Messages produced by background tasks and consumed by the update loop."""

from dataclasses import dataclass, field

from ws.mc_model import DetailData
from ws.models import CapsuleInfo, PullRequest, WorktreeStatus


@dataclass(frozen=True)
class CapsuleStatusMsg:
    repo: str
    status: WorktreeStatus


@dataclass(frozen=True)
class PullRequestsMsg:
    repo: str
    prs: list[PullRequest] = field(default_factory=list)
    error: str | None = None


@dataclass(frozen=True)
class MergedMsg:
    repo: str
    branches: frozenset[str] = frozenset()


@dataclass(frozen=True)
class UserMsg:
    login: str


@dataclass(frozen=True)
class WindowsMsg:
    windows: dict[str, str] = field(default_factory=dict)


@dataclass(frozen=True)
class DetailTickMsg:
    seq: int


@dataclass(frozen=True)
class DetailDataMsg:
    row_idx: int
    seq: int
    data: DetailData


@dataclass(frozen=True)
class DockedMsg:
    repo: str
    branch: str
    capsule: str = ""
    error: str | None = None


@dataclass(frozen=True)
class UndockedMsg:
    repo: str
    capsule: str
    error: str | None = None


@dataclass(frozen=True)
class CleanupDoneMsg:
    """Abandoned capsules removed by a debrief scan."""

    removed: list[CapsuleInfo] = field(default_factory=list)
    error: str | None = None


@dataclass(frozen=True)
class FetchedMsg:
    repo: str
    error: str | None = None


@dataclass(frozen=True)
class FetchedAllMsg:
    failed: list[str] = field(default_factory=list)


@dataclass(frozen=True)
class NoticeMsg:
    text: str


Message = (
    CapsuleStatusMsg
    | PullRequestsMsg
    | MergedMsg
    | UserMsg
    | WindowsMsg
    | DetailTickMsg
    | DetailDataMsg
    | DockedMsg
    | UndockedMsg
    | CleanupDoneMsg
    | FetchedMsg
    | FetchedAllMsg
    | NoticeMsg
)
