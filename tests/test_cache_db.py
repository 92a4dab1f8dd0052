from __future__ import annotations

from pathlib import Path

from ws.cache_db import CacheDB
from ws.models import PullRequest


def test_pr_cache_roundtrip(tmp_path: Path) -> None:
    prs = [
        PullRequest(number=12, title="Add login", branch="feat/auth", author="alice"),
        PullRequest(number=13, title="Bump deps", branch="deps/upgrade", status_rollup="failure"),
    ]
    with CacheDB(tmp_path / "ws", tmp_path / "cache") as db:
        db.write_prs("acme", "frontend", prs)

    with CacheDB(tmp_path / "ws", tmp_path / "cache") as db:
        assert db.read_prs("acme", "frontend") == prs
        assert db.read_prs("acme", "api") == []


def test_pr_cache_replaces(tmp_path: Path) -> None:
    with CacheDB(tmp_path / "ws", tmp_path / "cache") as db:
        db.write_prs("acme", "frontend", [PullRequest(number=1, title="a", branch="a")])
        db.write_prs("acme", "frontend", [])
        assert db.read_prs("acme", "frontend") == []


def test_corrupt_payload_reads_empty(tmp_path: Path) -> None:
    with CacheDB(tmp_path / "ws", tmp_path / "cache") as db:
        db.conn.execute(
            "INSERT INTO pr_cache (org, repo, payload) VALUES (?, ?, ?)",
            ("acme", "frontend", "{not json"),
        )
        assert db.read_prs("acme", "frontend") == []


def test_branch_cache_upserts(tmp_path: Path) -> None:
    with CacheDB(tmp_path / "ws", tmp_path / "cache") as db:
        db.write_branches("acme", "frontend", {"feat-auth": "feat/auth", ".ground": "main"})
        db.write_branches("acme", "frontend", {"feat-auth": "feat/auth-v2"})
        assert db.read_branches("acme", "frontend") == {
            "feat-auth": "feat/auth-v2",
            ".ground": "main",
        }


def test_user_cache(tmp_path: Path) -> None:
    with CacheDB(tmp_path / "ws", tmp_path / "cache") as db:
        assert db.read_user() == ""
        db.write_user("alice")
        db.write_user("bob")
        assert db.read_user() == "bob"


def test_workspaces_do_not_share_a_db(tmp_path: Path) -> None:
    one = CacheDB(tmp_path / "one", tmp_path / "cache")
    two = CacheDB(tmp_path / "two", tmp_path / "cache")
    assert one.db_path != two.db_path
