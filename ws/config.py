"""Workspace configuration: ws.toml plus the uncommitted ws.local.toml."""

import json
import os
import re
import tempfile
import tomllib
from dataclasses import dataclass, field
from pathlib import Path
from typing import cast

FILE_NAME = "ws.toml"
LOCAL_FILE_NAME = "ws.local.toml"
GIT_PROTOCOLS = {"ssh", "https"}

_BARE_KEY = re.compile(r"^[A-Za-z0-9_-]+$")


class ConfigError(Exception):
    """Configuration is missing or invalid."""


@dataclass
class RepoConfig:
    display_name: str = ""
    aliases: list[str] = field(default_factory=list)
    color: str = ""
    after_create: str = ""


@dataclass
class Config:
    org: str
    default_branch: str = "main"
    display_name: str = ""
    repos: dict[str, RepoConfig] = field(default_factory=dict)
    boarded: dict[str, list[str]] = field(default_factory=dict)
    git: str = ""


@dataclass
class LocalConfig:
    git: str = ""
    repos: dict[str, RepoConfig] = field(default_factory=dict)
    boarded: dict[str, list[str]] = field(default_factory=dict)


def _read_toml(path: Path) -> dict[str, object]:
    try:
        with path.open("rb") as fh:
            return tomllib.load(fh)
    except tomllib.TOMLDecodeError as exc:
        raise ConfigError(f"parsing {path}: {exc}") from exc
    except OSError as exc:
        raise ConfigError(f"reading {path}: {exc}") from exc


def _expect_table(value: object, section: str) -> dict[str, object]:
    if not isinstance(value, dict):
        raise ConfigError(f"Invalid [{section}] section.")
    return cast(dict[str, object], value)


def _expect_str_list(value: object, section: str) -> list[str]:
    if not isinstance(value, list) or not all(isinstance(v, str) for v in value):
        raise ConfigError(f"Invalid {section}: expected a list of strings.")
    return list(value)


def _parse_repos(raw: object) -> dict[str, RepoConfig]:
    repos: dict[str, RepoConfig] = {}
    for name, entry in _expect_table(raw, "repos").items():
        table = _expect_table(entry, f"repos.{name}")
        repos[name] = RepoConfig(
            display_name=str(table.get("display_name", "")),
            aliases=_expect_str_list(table.get("aliases", []), f"repos.{name}.aliases"),
            color=str(table.get("color", "")),
            after_create=str(table.get("after_create", "")),
        )
    return repos


def _parse_boarded(raw: object) -> dict[str, list[str]]:
    return {
        repo: _expect_str_list(capsules, f"boarded.{repo}")
        for repo, capsules in _expect_table(raw, "boarded").items()
    }


def discover(start_dir: Path) -> Path:
    """Walk up from start_dir to the directory holding ws.toml."""
    current = start_dir.resolve()
    for candidate in (current, *current.parents):
        if (candidate / FILE_NAME).is_file():
            return candidate
    raise ConfigError(f"{FILE_NAME} not found in any parent directory")


def parse(path: Path) -> Config:
    """Parse a ws.toml file."""
    raw = _read_toml(path)
    workspace = _expect_table(raw.get("workspace", {}), "workspace")
    org = str(workspace.get("org", ""))
    if not org:
        raise ConfigError(f"{path}: [workspace] org is required")
    return Config(
        org=org,
        default_branch=str(workspace.get("default_branch", "") or "main"),
        display_name=str(workspace.get("display_name", "")),
        repos=_parse_repos(raw.get("repos", {})),
    )


def load_local(root: Path) -> LocalConfig:
    """Parse ws.local.toml, returning an empty config when it is absent."""
    path = root / LOCAL_FILE_NAME
    if not path.is_file():
        return LocalConfig()
    raw = _read_toml(path)
    return LocalConfig(
        git=str(raw.get("git", "")),
        repos=_parse_repos(raw.get("repos", {})),
        boarded=_parse_boarded(raw.get("boarded", {})),
    )


def merge(base: Config, local: LocalConfig) -> Config:
    """Apply local repo overrides on top of base.

    Unknown repos in local are skipped. Aliases are appended; display name,
    color and after_create replace when non-empty.
    """
    repos = {name: RepoConfig(**vars(rc)) for name, rc in base.repos.items()}
    for name, override in local.repos.items():
        repo = repos.get(name)
        if repo is None:
            continue
        if override.display_name:
            repo.display_name = override.display_name
        if override.color:
            repo.color = override.color
        if override.after_create:
            repo.after_create = override.after_create
        repo.aliases = [*repo.aliases, *override.aliases]

    return Config(
        org=base.org,
        default_branch=base.default_branch,
        display_name=base.display_name,
        repos=repos,
        boarded={repo: list(capsules) for repo, capsules in local.boarded.items()},
        git=local.git,
    )


def load(start_dir: Path) -> tuple[Config, Path]:
    """Discover, parse and merge the workspace configuration."""
    root = discover(start_dir)
    config = merge(parse(root / FILE_NAME), load_local(root))
    if config.git and config.git not in GIT_PROTOCOLS:
        raise ConfigError(
            f'invalid git protocol "{config.git}" in {LOCAL_FILE_NAME}: must be "ssh" or "https"'
        )
    return config, root


def _key(name: str) -> str:
    return name if _BARE_KEY.match(name) else json.dumps(name)


def _str_list(values: list[str]) -> str:
    return "[" + ", ".join(json.dumps(v) for v in values) + "]"


def dump_local(local: LocalConfig) -> str:
    """Render a LocalConfig as TOML text."""
    lines: list[str] = []
    if local.git:
        lines.append(f"git = {json.dumps(local.git)}")

    for name in sorted(local.repos):
        repo = local.repos[name]
        if lines:
            lines.append("")
        lines.append(f"[repos.{_key(name)}]")
        if repo.display_name:
            lines.append(f"display_name = {json.dumps(repo.display_name)}")
        if repo.aliases:
            lines.append(f"aliases = {_str_list(repo.aliases)}")
        if repo.color:
            lines.append(f"color = {json.dumps(repo.color)}")
        if repo.after_create:
            lines.append(f"after_create = {json.dumps(repo.after_create)}")

    boarded = {repo: capsules for repo, capsules in local.boarded.items() if capsules}
    if boarded:
        if lines:
            lines.append("")
        lines.append("[boarded]")
        for repo in sorted(boarded):
            lines.append(f"{_key(repo)} = {_str_list(boarded[repo])}")

    return "\n".join(lines) + "\n" if lines else ""


def save_local(root: Path, local: LocalConfig) -> None:
    """Write ws.local.toml atomically (temp file, fsync, rename)."""
    path = root / LOCAL_FILE_NAME
    fd, tmp_name = tempfile.mkstemp(dir=root, prefix=".ws.local.", suffix=".tmp")
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as fh:
            fh.write(dump_local(local))
            fh.flush()
            os.fsync(fh.fileno())
        os.replace(tmp_name, path)
    except OSError:
        Path(tmp_name).unlink(missing_ok=True)
        raise


def save_boarded(root: Path, boarded: dict[str, list[str]]) -> None:
    """Persist the boarded set, keeping the rest of ws.local.toml."""
    local = load_local(root)
    local.boarded = {repo: list(capsules) for repo, capsules in boarded.items() if capsules}
    save_local(root, local)
