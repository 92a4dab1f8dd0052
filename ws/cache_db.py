"""SQLite cache for PR lists, capsule branches and the gh login."""

import hashlib
import json
import sqlite3
import threading
import time
from pathlib import Path
from typing import Self

from ws.models import PullRequest

_DB_LOCK = threading.Lock()
_SCHEMA_ENSURED: set[str] = set()


def default_cache_dir() -> Path:
    """Get or create the cache directory."""
    cache_dir = Path.home() / ".cache" / "ws"
    cache_dir.mkdir(parents=True, exist_ok=True)
    return cache_dir


def _get_db_path(cache_dir: Path, root: Path) -> Path:
    """Get the database path for a workspace."""
    workspace_id = hashlib.sha1(str(root).encode("utf-8")).hexdigest()
    return cache_dir / f"{workspace_id}.sqlite"


def _ensure_schema(conn: sqlite3.Connection) -> None:
    """Ensure the database schema exists."""
    conn.executescript(
        """
        CREATE TABLE IF NOT EXISTS pr_cache (
          org TEXT NOT NULL,
          repo TEXT NOT NULL,
          payload TEXT NOT NULL,
          updated_at INTEGER,
          PRIMARY KEY (org, repo)
        );
        CREATE TABLE IF NOT EXISTS branch_cache (
          org TEXT NOT NULL,
          repo TEXT NOT NULL,
          capsule TEXT NOT NULL,
          branch TEXT NOT NULL,
          updated_at INTEGER,
          PRIMARY KEY (org, repo, capsule)
        );
        CREATE TABLE IF NOT EXISTS user_cache (
          id INTEGER PRIMARY KEY CHECK (id = 1),
          login TEXT NOT NULL,
          updated_at INTEGER
        );
        """
    )
    conn.commit()


class CacheDB:
    """Context manager for SQLite cache database access."""

    def __init__(self, root: Path, cache_dir: Path | None = None) -> None:
        self.root = root
        self.db_path = _get_db_path(cache_dir or default_cache_dir(), root)
        self._conn: sqlite3.Connection | None = None
        self._lock_acquired = False

    def __enter__(self) -> Self:
        _DB_LOCK.acquire()
        self._lock_acquired = True
        try:
            self.db_path.parent.mkdir(parents=True, exist_ok=True)
            self._conn = sqlite3.connect(str(self.db_path), timeout=5)
            self._conn.row_factory = sqlite3.Row
            self._conn.execute("PRAGMA journal_mode=WAL")
            self._conn.execute("PRAGMA busy_timeout=5000")

            db_key = str(self.db_path)
            if db_key not in _SCHEMA_ENSURED:
                _ensure_schema(self._conn)
                _SCHEMA_ENSURED.add(db_key)

            return self
        except Exception:
            if self._conn:
                self._conn.close()
                self._conn = None
            if self._lock_acquired:
                _DB_LOCK.release()
                self._lock_acquired = False
            raise

    def __exit__(self, *args: object) -> None:
        try:
            if self._conn:
                self._conn.commit()
                self._conn.close()
                self._conn = None
        finally:
            if self._lock_acquired:
                _DB_LOCK.release()
                self._lock_acquired = False

    @property
    def conn(self) -> sqlite3.Connection:
        """Get the connection (must be inside context)."""
        if self._conn is None:
            raise RuntimeError("CacheDB must be used as a context manager")
        return self._conn

    def read_prs(self, org: str, repo: str) -> list[PullRequest]:
        """Cached PR list for a repo ([] on miss or corruption)."""
        row = self.conn.execute(
            "SELECT payload FROM pr_cache WHERE org = ? AND repo = ?", (org, repo)
        ).fetchone()
        if not row:
            return []
        try:
            raw = json.loads(row["payload"])
        except json.JSONDecodeError:
            return []
        if not isinstance(raw, list):
            return []
        return [PullRequest.from_dict(item) for item in raw if isinstance(item, dict)]

    def write_prs(self, org: str, repo: str, prs: list[PullRequest]) -> None:
        """Replace the cached PR list for a repo."""
        payload = json.dumps([pr.to_dict() for pr in prs])
        self.conn.execute(
            """
            INSERT INTO pr_cache (org, repo, payload, updated_at)
            VALUES (?, ?, ?, ?)
            ON CONFLICT(org, repo) DO UPDATE SET
              payload = excluded.payload,
              updated_at = excluded.updated_at
            """,
            (org, repo, payload, int(time.time())),
        )

    def read_branches(self, org: str, repo: str) -> dict[str, str]:
        """Cached capsule -> branch mapping for a repo."""
        rows = self.conn.execute(
            "SELECT capsule, branch FROM branch_cache WHERE org = ? AND repo = ?", (org, repo)
        ).fetchall()
        return {row["capsule"]: row["branch"] for row in rows}

    def write_branches(self, org: str, repo: str, branches: dict[str, str]) -> None:
        """Upsert capsule -> branch mappings for a repo."""
        now = int(time.time())
        self.conn.executemany(
            """
            INSERT INTO branch_cache (org, repo, capsule, branch, updated_at)
            VALUES (?, ?, ?, ?, ?)
            ON CONFLICT(org, repo, capsule) DO UPDATE SET
              branch = excluded.branch,
              updated_at = excluded.updated_at
            """,
            [(org, repo, capsule, branch, now) for capsule, branch in branches.items()],
        )

    def read_user(self) -> str:
        row = self.conn.execute("SELECT login FROM user_cache WHERE id = 1").fetchone()
        return row["login"] if row else ""

    def write_user(self, login: str) -> None:
        self.conn.execute(
            """
            INSERT INTO user_cache (id, login, updated_at)
            VALUES (1, ?, ?)
            ON CONFLICT(id) DO UPDATE SET
              login = excluded.login,
              updated_at = excluded.updated_at
            """,
            (login, int(time.time())),
        )
