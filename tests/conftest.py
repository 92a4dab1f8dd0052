from __future__ import annotations

from pathlib import Path

import pytest

from ws import tmux
from ws.mc_fetch import Task
from ws.mc_model import McState
from ws.mc_update import build_state, update
from ws.models import (
    CapsuleInfo,
    PullRequest,
    PullRequestDetail,
    RepoOutline,
    WorkflowRun,
    WorktreeStatus,
)
from ws.workspace import GROUND_DIR, Workspace


def pr(number: int, branch: str, **kwargs: object) -> PullRequest:
    kwargs.setdefault("title", f"PR {number}")
    kwargs.setdefault("url", f"https://github.com/acme/frontend/pull/{number}")
    return PullRequest(number=number, branch=branch, **kwargs)  # type: ignore[arg-type]


class FakeServices:
    """Stands in for git, gh, tmux and the cache; records what the dashboard asked for."""

    def __init__(self, workspace: Workspace, outlines: list[RepoOutline]) -> None:
        self.workspace = workspace
        self.outlines = outlines
        self.cache: dict[str, list[PullRequest]] = {}
        self.statuses: dict[tuple[str, str], WorktreeStatus] = {}
        self.prs: dict[str, list[PullRequest]] = {}
        self.merged: dict[str, list[str]] = {}
        self.login = "alice"
        self.tmux = False
        self.windows: dict[str, str] = {}
        self.detail = PullRequestDetail(title="", body="")
        self.docked_as: dict[tuple[str, str], str] = {}
        self.abandoned: list[CapsuleInfo] = []
        self.calls: list[tuple[object, ...]] = []
        self.persisted = 0

    def outline(self) -> list[RepoOutline]:
        return self.outlines

    def cached_prs(self, repo: str) -> list[PullRequest]:
        return list(self.cache.get(repo, []))

    def query_status(self, repo: str, capsule: str) -> WorktreeStatus:
        self.calls.append(("status", repo, capsule))
        return self.statuses.get(
            (repo, capsule),
            WorktreeStatus(name=capsule, branch=capsule, dirty=False, ahead=0, behind=0),
        )

    def record_branches(self, repo: str, branches: dict[str, str]) -> None:
        self.calls.append(("record_branches", repo, dict(branches)))

    def prs_for_repo(self, repo: str) -> list[PullRequest]:
        self.calls.append(("prs", repo))
        return list(self.prs.get(repo, []))

    def merged_branches(self, repo: str) -> list[str]:
        return list(self.merged.get(repo, []))

    def current_user(self) -> str:
        return self.login

    def in_tmux(self) -> bool:
        return self.tmux

    def list_windows(self) -> dict[str, str]:
        return dict(self.windows)

    def window_name(self, repo: str, capsule: str) -> str:
        return tmux.window_name(self.workspace.display_name_for(repo), capsule)

    def landings(self, repo: str, limit: int) -> list[PullRequest]:
        return [pr(90 + i, f"landed-{i}") for i in range(10)][:limit]

    def workflow_runs(self, repo: str, limit: int) -> list[WorkflowRun]:
        return [WorkflowRun(name="ci", status="completed", conclusion="success", created_at="")]

    def recent_commits(self, repo: str, capsule: str, count: int) -> list[str]:
        return [f"abc123 work on {capsule}"]

    def diff_stat(self, repo: str, capsule: str) -> str:
        return " 1 file changed"

    def stash_count(self, repo: str, capsule: str) -> int:
        return 1

    def pr_detail(self, repo: str, number: int) -> PullRequestDetail:
        return self.detail

    def dock(self, repo: str, branch: str) -> str:
        self.calls.append(("dock", repo, branch))
        return self.docked_as.get((repo, branch), branch.rsplit("/", 1)[-1])

    def undock(self, repo: str, capsule: str) -> None:
        self.calls.append(("undock", repo, capsule))

    def remove_abandoned(self) -> list[CapsuleInfo]:
        self.calls.append(("remove_abandoned",))
        return list(self.abandoned)

    def fetch_repo(self, repo: str) -> None:
        self.calls.append(("fetch", repo))

    def fetch_all(self) -> list[str]:
        self.calls.append(("fetch_all",))
        return []

    def persist_boarded(self) -> None:
        self.persisted += 1

    def go_to_window(self, repo: str, capsule: str) -> None:
        self.calls.append(("go_to_window", repo, capsule))

    def editor_argv(self, repo: str, capsule: str) -> list[str]:
        return ["vim", str(self.capsule_path(repo, capsule))]

    def open_editor_in_tmux(self, repo: str, capsule: str) -> None:
        self.calls.append(("open_editor_in_tmux", repo, capsule))

    def capsule_path(self, repo: str, capsule: str) -> Path:
        return self.workspace.capsule_path(repo, capsule)

    def repo_url(self, repo: str) -> str:
        return f"https://github.com/{self.workspace.org}/{repo}"

    def open_url(self, url: str) -> bool:
        self.calls.append(("open_url", url))
        return True

    def copy_text(self, text: str) -> bool:
        self.calls.append(("copy", text))
        return True


def make_workspace(root: Path, layout: dict[str, list[str]]) -> Workspace:
    """Create repos/<repo>/<capsule> directories and a Workspace over them."""
    for repo, capsules in layout.items():
        for capsule in capsules:
            (root / "repos" / repo / capsule).mkdir(parents=True, exist_ok=True)
    return Workspace(
        root=root,
        org="acme",
        default_branch="main",
        repo_names=sorted(layout),
        display_names={"frontend": "Frontend"},
    )


def run_tasks(state: McState, tasks: list[Task], skip: tuple[str, ...] = ()) -> list[str]:
    """Run tasks synchronously, feeding every message back into update. Returns labels run."""
    labels: list[str] = []
    queue = list(tasks)
    while queue:
        task = queue.pop(0)
        if task.label.startswith(skip):
            continue
        labels.append(task.label)
        msg = task.run()
        if msg is not None:
            queue.extend(update(state, msg))
    return labels


@pytest.fixture
def frontend(tmp_path: Path) -> FakeServices:
    """repo "frontend" with capsules [.ground, feat-auth]."""
    workspace = make_workspace(tmp_path, {"frontend": [GROUND_DIR, "feat-auth"]})
    outline = RepoOutline(name="frontend", capsules=[GROUND_DIR, "feat-auth"], boarded=[])
    return FakeServices(workspace, [outline])


@pytest.fixture
def frontend_state(frontend: FakeServices) -> McState:
    return build_state(frontend, frontend.workspace.root)
