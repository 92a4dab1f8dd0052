"""Workspace layout, board state and filesystem scans."""

import time
from dataclasses import dataclass, field
from pathlib import Path

from ws import git_ops
from ws.config import Config, ConfigError
from ws.models import CapsuleInfo, RepoOutline

GROUND_DIR = ".ground"
BARE_DIR = ".bare"
DAY_SECONDS = 86400


class WorkspaceError(Exception):
    """A workspace operation was refused."""


def fuzzy_match(pattern: str, target: str) -> bool:
    """Check that every character of pattern appears in target, in order (case-insensitive)."""
    return fuzzy_match_positions(pattern, target) is not None


def fuzzy_match_positions(pattern: str, target: str) -> list[int] | None:
    """Return the indexes in target matched by pattern, or None when it does not match."""
    needle = pattern.lower()
    positions: list[int] = []
    pi = 0
    for i, ch in enumerate(target.lower()):
        if pi == len(needle):
            break
        if ch == needle[pi]:
            positions.append(i)
            pi += 1
    if pi < len(needle):
        return None
    return positions


def capsule_name(branch: str) -> str:
    """Directory name for a branch: everything after the last slash."""
    return branch.rsplit("/", 1)[-1]


def unique_capsule_name(repo_dir: Path, branch: str) -> str:
    """A capsule name that does not collide with an existing directory in repo_dir."""
    base = capsule_name(branch)
    candidate = base
    n = 2
    while (repo_dir / candidate).exists():
        candidate = f"{base}-{n}"
        n += 1
    return candidate


def list_capsules(repo_dir: Path) -> list[str]:
    """List capsule directories, with .ground first when present."""
    names = sorted(
        entry.name
        for entry in repo_dir.iterdir()
        if entry.is_dir() and not entry.name.startswith(".")
    )
    if (repo_dir / GROUND_DIR).is_dir():
        names.insert(0, GROUND_DIR)
    return names


def head_mtime(worktree_path: Path) -> float:
    """Modification time of a worktree's HEAD file, a proxy for "last used"."""
    git_path = worktree_path / ".git"
    try:
        if git_path.is_dir():
            return (git_path / "HEAD").stat().st_mtime
        line = git_path.read_text(encoding="utf-8").strip()
    except OSError:
        return 0.0
    if not line.startswith("gitdir: "):
        return 0.0
    gitdir = Path(line.removeprefix("gitdir: "))
    if not gitdir.is_absolute():
        gitdir = worktree_path / gitdir
    try:
        return (gitdir / "HEAD").stat().st_mtime
    except OSError:
        return 0.0


@dataclass
class Workspace:
    """A resolved workspace with config-derived state."""

    root: Path
    org: str
    default_branch: str = "main"
    name: str = ""
    repo_names: list[str] = field(default_factory=list)
    alias_map: dict[str, str] = field(default_factory=dict)
    display_names: dict[str, str] = field(default_factory=dict)
    repo_colors: dict[str, str] = field(default_factory=dict)
    after_create_hooks: dict[str, str] = field(default_factory=dict)
    boarded: dict[str, list[str]] = field(default_factory=dict)

    @classmethod
    def from_config(cls, config: Config, root: Path) -> "Workspace":
        alias_map: dict[str, str] = {}
        for name, repo in config.repos.items():
            for alias in repo.aliases:
                if alias in config.repos:
                    raise ConfigError(
                        f'alias "{alias}" for repo "{name}" collides with a canonical repo name'
                    )
                if alias in alias_map:
                    raise ConfigError(
                        f'alias "{alias}" is used by both "{alias_map[alias]}" and "{name}"'
                    )
                alias_map[alias] = name

        return cls(
            root=root,
            org=config.org,
            default_branch=config.default_branch,
            name=config.display_name,
            repo_names=sorted(config.repos),
            alias_map=alias_map,
            display_names={n: r.display_name for n, r in config.repos.items() if r.display_name},
            repo_colors={n: r.color for n, r in config.repos.items() if r.color},
            after_create_hooks={
                n: r.after_create for n, r in config.repos.items() if r.after_create
            },
            boarded={repo: list(capsules) for repo, capsules in config.boarded.items()},
        )

    @property
    def title(self) -> str:
        return self.name or self.org

    @property
    def repos_dir(self) -> Path:
        return self.root / "repos"

    def repo_dir(self, repo: str) -> Path:
        return self.repos_dir / repo

    def bare_dir(self, repo: str) -> Path:
        return self.repo_dir(repo) / BARE_DIR

    def capsule_path(self, repo: str, capsule: str) -> Path:
        return self.repo_dir(repo) / capsule

    def display_name_for(self, repo: str) -> str:
        return self.display_names.get(repo, repo)

    def is_protected(self, capsule: str) -> bool:
        """The ground capsule and one named after the default branch cannot be removed."""
        return capsule in (GROUND_DIR, self.default_branch)

    def is_boarded(self, repo: str, capsule: str) -> bool:
        return capsule in self.boarded.get(repo, [])

    def board(self, repo: str, capsule: str) -> None:
        """Add a capsule to the boarded set (no-op when already boarded)."""
        if not self.capsule_path(repo, capsule).is_dir():
            raise WorkspaceError(f"capsule {repo}/{capsule} does not exist")
        if self.is_boarded(repo, capsule):
            return
        self.boarded.setdefault(repo, []).append(capsule)

    def unboard(self, repo: str, capsule: str) -> None:
        """Remove a capsule from the boarded set."""
        capsules = self.boarded.get(repo, [])
        if capsule not in capsules:
            raise WorkspaceError(f"capsule {repo}/{capsule} is not boarded")
        capsules.remove(capsule)
        if not capsules:
            del self.boarded[repo]

    def detect_repo(self, cwd: Path) -> tuple[str, str] | None:
        """Resolve cwd to the (repo, capsule) it sits in, if any."""
        try:
            rel = cwd.resolve().relative_to(self.repos_dir.resolve())
        except ValueError:
            return None
        if len(rel.parts) < 2:
            return None
        return rel.parts[0], rel.parts[1]

    def status_outline(self, recent_first: bool = True) -> list[RepoOutline]:
        """Repo structure without any git queries, sorted by activity."""
        outlines: list[RepoOutline] = []
        for name in self.repo_names:
            repo_dir = self.repo_dir(name)
            try:
                capsules = list_capsules(repo_dir)
            except OSError as exc:
                outlines.append(
                    RepoOutline(name=name, capsules=[], boarded=[], error=str(exc))
                )
                continue

            mtimes = {c: head_mtime(repo_dir / c) for c in capsules}
            others = [c for c in capsules if c != GROUND_DIR]
            others.sort(key=lambda c: mtimes[c], reverse=recent_first)
            ordered = [GROUND_DIR, *others] if GROUND_DIR in capsules else others

            outlines.append(
                RepoOutline(
                    name=name,
                    capsules=ordered,
                    boarded=list(self.boarded.get(name, [])),
                    last_activity=max(mtimes.values(), default=0.0),
                )
            )

        outlines.sort(key=lambda o: o.last_activity, reverse=recent_first)
        return outlines

    def find_all_capsules(self, max_days: int) -> list[CapsuleInfo]:
        """Scan every repo for non-ground capsules with their merge/activity state."""
        cutoff = time.time() - max_days * DAY_SECONDS
        capsules: list[CapsuleInfo] = []

        for repo in self.repo_names:
            repo_dir = self.repo_dir(repo)
            bare_dir = self.bare_dir(repo)
            try:
                names = [c for c in list_capsules(repo_dir) if not self.is_protected(c)]
            except OSError:
                continue

            merged = set(git_ops.merged_branches(bare_dir, self.default_branch))
            default_tip = git_ops.rev_parse(bare_dir, self.default_branch)

            for name in names:
                path = repo_dir / name
                branch = git_ops.current_branch(path)
                last_commit_ts = git_ops.get_last_commit_ts(path)
                # A branch still at the default tip was just created from it, not landed.
                branch_tip = git_ops.rev_parse(path, "HEAD")
                ab = git_ops.count_ahead_behind(path)
                capsules.append(
                    CapsuleInfo(
                        repo=repo,
                        name=name,
                        path=path,
                        branch=branch,
                        dirty=git_ops.is_dirty(path),
                        boarded=self.is_boarded(repo, name),
                        last_commit_ts=last_commit_ts,
                        merged=branch in merged and branch_tip != default_tip,
                        inactive=0 < last_commit_ts < cutoff,
                        ahead=ab.ahead,
                        behind=ab.behind,
                    )
                )

        return capsules
