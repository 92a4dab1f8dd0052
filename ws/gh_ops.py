"""GitHub CLI operations."""

import json
import subprocess
from typing import Sequence

from ws.models import CheckRun, PullRequest, PullRequestDetail, WorkflowRun

PR_FIELDS = "number,title,headRefName,state,reviewDecision,url,statusCheckRollup,author"

FAILED_CONCLUSIONS = {"FAILURE", "ERROR", "CANCELLED", "TIMED_OUT", "ACTION_REQUIRED"}
PENDING_STATUSES = {"IN_PROGRESS", "QUEUED", "PENDING"}


class GhError(Exception):
    """gh command failed or returned unparseable output."""


def _run_gh(args: Sequence[str]) -> str:
    try:
        result = subprocess.run(
            ["gh", *args],
            check=True,
            stdout=subprocess.PIPE,
            stderr=subprocess.PIPE,
            text=True,
        )
    except subprocess.CalledProcessError as exc:
        stderr = (exc.stderr or exc.stdout or "").strip() or "unknown error"
        raise GhError(f"gh {' '.join(args)}: {stderr}") from exc
    except OSError as exc:
        raise GhError(f"gh unavailable: {exc}") from exc
    return result.stdout.strip()


def _load_json(output: str, default: object) -> object:
    try:
        return json.loads(output or json.dumps(default))
    except json.JSONDecodeError as exc:
        raise GhError(f"parsing gh output: {exc}") from exc


def derive_status(rollup: list[dict[str, object]] | None) -> str:
    """Collapse a statusCheckRollup into "failure", "pending", "success" or ""."""
    if not rollup:
        return ""

    failed = False
    pending = False
    for check in rollup:
        conclusion = check.get("conclusion") or ""
        status = check.get("status") or ""
        if conclusion in FAILED_CONCLUSIONS:
            failed = True
        elif not conclusion and status in PENDING_STATUSES:
            pending = True

    if failed:
        return "failure"
    if pending:
        return "pending"
    return "success"


def parse_pull_request(raw: dict[str, object]) -> PullRequest:
    """Build a PullRequest from one element of gh's JSON output."""
    author = raw.get("author")
    login = author.get("login", "") if isinstance(author, dict) else ""
    rollup = raw.get("statusCheckRollup")
    return PullRequest(
        number=int(raw.get("number") or 0),
        title=str(raw.get("title") or ""),
        branch=str(raw.get("headRefName") or ""),
        state=str(raw.get("state") or "OPEN"),
        review_decision=str(raw.get("reviewDecision") or ""),
        status_rollup=derive_status(rollup if isinstance(rollup, list) else None),
        url=str(raw.get("url") or ""),
        author=str(login or ""),
        merged_at=str(raw.get("mergedAt") or ""),
    )


def parse_pull_requests(output: str) -> list[PullRequest]:
    """Parse the JSON array printed by gh pr list."""
    raw = _load_json(output, [])
    if not isinstance(raw, list):
        raise GhError("parsing gh output: expected a list")
    return [parse_pull_request(item) for item in raw if isinstance(item, dict)]


def prs_for_repo(org: str, repo: str) -> list[PullRequest]:
    """List open pull requests for org/repo."""
    output = _run_gh(
        ["pr", "list", "--repo", f"{org}/{repo}", "--state", "open", "--json", PR_FIELDS]
    )
    return parse_pull_requests(output)


def merged_prs_for_repo(org: str, repo: str) -> list[PullRequest]:
    """List recently merged pull requests for org/repo."""
    output = _run_gh(
        [
            "pr",
            "list",
            "--repo",
            f"{org}/{repo}",
            "--state",
            "merged",
            "--json",
            f"{PR_FIELDS},mergedAt",
        ]
    )
    return parse_pull_requests(output)


def pr_detail(org: str, repo: str, number: int) -> PullRequestDetail:
    """Fetch the body, check runs and commit headlines for a pull request."""
    output = _run_gh(
        [
            "pr",
            "view",
            str(number),
            "--repo",
            f"{org}/{repo}",
            "--json",
            "title,body,statusCheckRollup,commits",
        ]
    )
    raw = _load_json(output, {})
    if not isinstance(raw, dict):
        raise GhError("parsing gh output: expected an object")

    checks = [
        CheckRun(
            name=str(item.get("name") or item.get("context") or ""),
            conclusion=str(item.get("conclusion") or ""),
            status=str(item.get("status") or ""),
        )
        for item in raw.get("statusCheckRollup") or []
        if isinstance(item, dict)
    ]
    commits = [
        str(item.get("messageHeadline") or "")
        for item in raw.get("commits") or []
        if isinstance(item, dict)
    ]
    return PullRequestDetail(
        title=str(raw.get("title") or ""),
        body=str(raw.get("body") or ""),
        checks=checks,
        commits=commits,
    )


def workflow_runs(org: str, repo: str, branch: str, limit: int) -> list[WorkflowRun]:
    """List recent workflow runs on a branch."""
    output = _run_gh(
        [
            "run",
            "list",
            "--repo",
            f"{org}/{repo}",
            "--branch",
            branch,
            "--limit",
            str(limit),
            "--json",
            "name,status,conclusion,createdAt",
        ]
    )
    raw = _load_json(output, [])
    if not isinstance(raw, list):
        raise GhError("parsing gh output: expected a list")
    return [
        WorkflowRun(
            name=str(item.get("name") or ""),
            status=str(item.get("status") or ""),
            conclusion=str(item.get("conclusion") or ""),
            created_at=str(item.get("createdAt") or ""),
        )
        for item in raw
        if isinstance(item, dict)
    ]


def current_user() -> str:
    """Get the authenticated user's login ("" when unknown)."""
    try:
        return _run_gh(["api", "user", "-q", ".login"])
    except GhError:
        return ""
