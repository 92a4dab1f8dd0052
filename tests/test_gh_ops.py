from __future__ import annotations

import json
import subprocess

import pytest

from ws import gh_ops
from ws.gh_ops import GhError


def test_derive_status() -> None:
    assert gh_ops.derive_status(None) == ""
    assert gh_ops.derive_status([{"conclusion": "SUCCESS"}]) == "success"
    assert gh_ops.derive_status([{"conclusion": "SUCCESS"}, {"status": "IN_PROGRESS"}]) == "pending"
    assert (
        gh_ops.derive_status([{"status": "QUEUED"}, {"conclusion": "TIMED_OUT"}]) == "failure"
    )


def test_parse_pull_requests() -> None:
    output = json.dumps(
        [
            {
                "number": 42,
                "title": "Add login",
                "headRefName": "feat/auth",
                "state": "OPEN",
                "reviewDecision": "REVIEW_REQUIRED",
                "url": "https://github.com/acme/frontend/pull/42",
                "statusCheckRollup": [{"conclusion": "FAILURE"}],
                "author": {"login": "alice"},
            },
            "junk",
        ]
    )
    prs = gh_ops.parse_pull_requests(output)
    assert len(prs) == 1
    pr = prs[0]
    assert (pr.number, pr.branch, pr.author) == (42, "feat/auth", "alice")
    assert pr.review_decision == "REVIEW_REQUIRED"
    assert pr.status_rollup == "failure"


def test_parse_pull_requests_empty_and_invalid() -> None:
    assert gh_ops.parse_pull_requests("") == []
    with pytest.raises(GhError):
        gh_ops.parse_pull_requests("{")
    with pytest.raises(GhError, match="expected a list"):
        gh_ops.parse_pull_requests("{}")


def test_gh_failure_becomes_gh_error(monkeypatch: pytest.MonkeyPatch) -> None:
    def fake_run(args, **kwargs):
        raise subprocess.CalledProcessError(1, args, stderr="HTTP 401: Bad credentials")

    monkeypatch.setattr(gh_ops.subprocess, "run", fake_run)
    with pytest.raises(GhError, match="Bad credentials"):
        gh_ops.prs_for_repo("acme", "frontend")
    assert gh_ops.current_user() == ""


def test_missing_gh_binary(monkeypatch: pytest.MonkeyPatch) -> None:
    def fake_run(args, **kwargs):
        raise FileNotFoundError("gh")

    monkeypatch.setattr(gh_ops.subprocess, "run", fake_run)
    with pytest.raises(GhError, match="gh unavailable"):
        gh_ops.prs_for_repo("acme", "frontend")


def test_pr_detail(monkeypatch: pytest.MonkeyPatch) -> None:
    payload = {
        "title": "Add login",
        "body": "Adds OAuth.",
        "statusCheckRollup": [
            {"name": "test", "conclusion": "SUCCESS", "status": "COMPLETED"},
            {"context": "lint", "status": "PENDING"},
        ],
        "commits": [{"messageHeadline": "wip"}, {"messageHeadline": "fix tests"}],
    }
    seen = []

    def fake_run(args, **kwargs):
        seen.append(args)
        return subprocess.CompletedProcess(args, 0, stdout=json.dumps(payload), stderr="")

    monkeypatch.setattr(gh_ops.subprocess, "run", fake_run)
    detail = gh_ops.pr_detail("acme", "frontend", 42)

    assert seen[0][:4] == ["gh", "pr", "view", "42"]
    assert detail.body == "Adds OAuth."
    assert [c.name for c in detail.checks] == ["test", "lint"]
    assert detail.checks[1].status == "PENDING"
    assert detail.commits == ["wip", "fix tests"]


def test_workflow_runs(monkeypatch: pytest.MonkeyPatch) -> None:
    runs = [{"name": "ci", "status": "completed", "conclusion": "success", "createdAt": "t"}]

    def fake_run(args, **kwargs):
        assert "--branch" in args and "main" in args
        return subprocess.CompletedProcess(args, 0, stdout=json.dumps(runs), stderr="")

    monkeypatch.setattr(gh_ops.subprocess, "run", fake_run)
    got = gh_ops.workflow_runs("acme", "frontend", "main", 8)
    assert got[0].conclusion == "success"
    assert got[0].created_at == "t"
