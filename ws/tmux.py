"""tmux subprocess operations."""

import os
import subprocess
from dataclasses import dataclass
from pathlib import Path
from typing import Sequence

IDLE_SHELLS = {"zsh", "bash", "fish", "sh", "dash", "ksh"}


class TmuxError(Exception):
    """tmux command failed."""


@dataclass(frozen=True)
class Pane:
    """A single tmux pane."""

    id: str
    command: str


def in_tmux() -> bool:
    """Check if we are running inside a tmux session."""
    return bool(os.environ.get("TMUX"))


def window_name(display_name: str, capsule: str) -> str:
    """Build the canonical window name for a capsule."""
    return f"{display_name}:{capsule}"


def _run(args: Sequence[str]) -> str:
    try:
        result = subprocess.run(
            ["tmux", *args],
            check=True,
            stdout=subprocess.PIPE,
            stderr=subprocess.PIPE,
            text=True,
        )
    except subprocess.CalledProcessError as exc:
        raise TmuxError((exc.stderr or "").strip() or "unknown error") from exc
    except OSError as exc:
        raise TmuxError(str(exc)) from exc
    return result.stdout


def _spawn(args: Sequence[str]) -> None:
    # Window and pane creation returns immediately; tmux owns the child.
    try:
        subprocess.Popen(
            ["tmux", *args], stdout=subprocess.DEVNULL, stderr=subprocess.DEVNULL
        )
    except OSError as exc:
        raise TmuxError(str(exc)) from exc


def parse_list_windows(output: str) -> dict[str, str]:
    """Parse "name id" lines into a name -> window id mapping."""
    windows: dict[str, str] = {}
    for line in output.strip().splitlines():
        name, sep, window_id = line.rpartition(" ")
        if not sep or not name:
            continue
        windows[name] = window_id
    return windows


def list_windows() -> dict[str, str]:
    """Map window name to window id in the current session ({} on failure)."""
    try:
        return parse_list_windows(_run(["list-windows", "-F", "#{window_name} #{window_id}"]))
    except TmuxError:
        return {}


def parse_list_panes(output: str) -> list[Pane]:
    """Parse "id command" lines into panes."""
    panes: list[Pane] = []
    for line in output.strip().splitlines():
        pane_id, sep, command = line.partition(" ")
        if not sep:
            continue
        panes.append(Pane(id=pane_id, command=command))
    return panes


def list_panes(window_id: str) -> list[Pane]:
    """List the panes of a window ([] on failure)."""
    try:
        return parse_list_panes(
            _run(["list-panes", "-t", window_id, "-F", "#{pane_id} #{pane_current_command}"])
        )
    except TmuxError:
        return []


def find_idle_pane(panes: list[Pane]) -> str | None:
    """Return the id of the first pane sitting at a shell prompt."""
    for pane in panes:
        if pane.command in IDLE_SHELLS:
            return pane.id
    return None


def select_window(window_id: str) -> None:
    _run(["select-window", "-t", window_id])


def select_pane(pane_id: str) -> None:
    _run(["select-pane", "-t", pane_id])


def split_window(window_id: str, path: Path, command: Sequence[str] = ()) -> None:
    _spawn(["split-window", "-t", window_id, "-c", str(path), *command])


def new_window(name: str, path: Path, command: Sequence[str] = ()) -> None:
    _spawn(["new-window", "-n", name, "-c", str(path), *command])


def kill_window(window_id: str) -> None:
    _run(["kill-window", "-t", window_id])
