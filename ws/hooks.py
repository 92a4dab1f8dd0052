"""after_create hook execution."""

import logging
import subprocess
from pathlib import Path

logger = logging.getLogger(__name__)


class HookError(Exception):
    """Hook execution failed."""


def run_after_create_hook(command: str, cwd: Path) -> None:
    """Run a repo's after_create shell command inside a new capsule."""
    command = command.strip()
    if not command:
        return

    logger.info("running after_create hook in %s: %s", cwd, command)
    try:
        subprocess.run(
            command,
            cwd=cwd,
            shell=True,
            check=True,
            stdout=subprocess.PIPE,
            stderr=subprocess.PIPE,
            text=True,
        )
    except subprocess.CalledProcessError as exc:
        stderr = (exc.stderr or exc.stdout or "").strip() or "unknown error"
        raise HookError(f"Hook failed: `{command}`: {stderr}") from exc
