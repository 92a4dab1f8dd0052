from __future__ import annotations

from pathlib import Path

from click.testing import CliRunner

from ws import cli


def test_cd_command_quotes() -> None:
    assert cli.cd_command(Path("/ws/repos/api/fix-db")) == "cd '/ws/repos/api/fix-db'"
    assert cli.cd_command(Path("/tmp/it's")) == "cd '/tmp/it'\\''s'"


def test_shell_init() -> None:
    result = CliRunner().invoke(cli.main, ["shell-init", "zsh"])
    assert result.exit_code == 0
    assert result.output.startswith("# zsh\nws() {")
    assert 'eval "$out"' in result.output


def test_shell_init_rejects_unknown_shell() -> None:
    result = CliRunner().invoke(cli.main, ["shell-init", "tcsh"])
    assert result.exit_code != 0


def test_mc_outside_workspace(tmp_path: Path, monkeypatch) -> None:
    monkeypatch.chdir(tmp_path)
    result = CliRunner().invoke(cli.main, ["mc"])
    assert result.exit_code == 1
    assert "ws.toml not found" in result.output


def test_mc_echoes_jump_path(tmp_path: Path, monkeypatch) -> None:
    (tmp_path / "ws.toml").write_text('[workspace]\norg = "acme"\n')
    monkeypatch.chdir(tmp_path)
    monkeypatch.setattr(cli, "default_cache_dir", lambda: tmp_path / "cache")
    monkeypatch.setattr(cli, "run_mission_control", lambda state: tmp_path / "repos" / "api")

    result = CliRunner().invoke(cli.main, ["mc"])

    assert result.exit_code == 0, result.output
    assert result.output == f"cd '{tmp_path / 'repos' / 'api'}'\n"
