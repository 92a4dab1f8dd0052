"""Command line entry point for ws."""

from pathlib import Path

import click

from ws import config
from ws.cache_db import default_cache_dir
from ws.log import setup_logging
from ws.mc_update import build_state
from ws.services import Services
from ws.tui import run_mission_control
from ws.workspace import Workspace

SHELLS = ("bash", "zsh")

SHELL_FUNCTION = r'''ws() {
  case "$1" in
    mc)
      local out
      out="$(command ws "$@")" || return $?
      case "$out" in
        "cd '"*) eval "$out" ;;
        *) [ -n "$out" ] && printf '%s\n' "$out" ;;
      esac
      ;;
    *)
      command ws "$@"
      ;;
  esac
}
'''


def cd_command(path: Path) -> str:
    """The line the shell wrapper evals to jump into a capsule."""
    quoted = str(path).replace("'", "'\\''")
    return f"cd '{quoted}'"


def load_workspace(start_dir: Path) -> Workspace:
    try:
        cfg, root = config.load(start_dir)
        return Workspace.from_config(cfg, root)
    except config.ConfigError as exc:
        raise click.ClickException(str(exc)) from exc


@click.group(context_settings={"help_option_names": ["-h", "--help"]})
def main() -> None:
    """ws: multi-repo workspace of git worktree capsules."""


@main.command("mc")
def mission_control() -> None:
    """Mission control: live dashboard of capsules, PRs and tmux windows."""
    cwd = Path.cwd()
    workspace = load_workspace(cwd)
    setup_logging(default_cache_dir())

    state = build_state(Services(workspace), cwd)
    jump_path = run_mission_control(state)
    if jump_path:
        click.echo(cd_command(jump_path))


@main.command("shell-init")
@click.argument("shell", type=click.Choice(SHELLS))
def shell_init(shell: str) -> None:
    """Print the ws() shell function that follows `ws mc` into the chosen capsule."""
    click.echo(f"# {shell}\n" + SHELL_FUNCTION, nl=False)


if __name__ == "__main__":
    main()
