"""IDE workspace file regeneration from board state."""

import json
from pathlib import Path

VSCODE_FILE = "workspace.code-workspace"


class IdeError(Exception):
    """An IDE workspace file could not be updated."""


def generate_vscode(
    root: Path, boarded: dict[str, list[str]], display_names: dict[str, str]
) -> None:
    """Rewrite the folders of an existing .code-workspace file.

    No-op when the file does not exist. Only plain JSON is supported
    (no comments or trailing commas); unknown keys are preserved.
    """
    path = root / VSCODE_FILE
    if not path.is_file():
        return

    try:
        workspace = json.loads(path.read_text(encoding="utf-8"))
    except json.JSONDecodeError as exc:
        raise IdeError(
            f"failed to parse {path}: {exc}. "
            "Only standard JSON is supported (no comments or trailing commas)"
        ) from exc
    if not isinstance(workspace, dict):
        raise IdeError(f"failed to parse {path}: expected a JSON object")

    folders: list[dict[str, str]] = []
    for repo in sorted(boarded):
        display_name = display_names.get(repo, repo)
        for capsule in boarded[repo]:
            folders.append(
                {
                    "name": f"{display_name} ({capsule})",
                    "path": str(Path("repos") / repo / capsule),
                }
            )

    workspace["folders"] = folders
    path.write_text(json.dumps(workspace, indent=2) + "\n", encoding="utf-8")


def regenerate(root: Path, boarded: dict[str, list[str]], display_names: dict[str, str]) -> None:
    """Update every detected IDE workspace file."""
    generate_vscode(root, boarded, display_names)
