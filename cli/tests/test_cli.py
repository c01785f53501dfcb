from __future__ import annotations

from pathlib import Path

import click
import pytest
import typer
from typer.testing import CliRunner

from moltbot_installer import config, entrypoint, main
from moltbot_installer.commands import install_cmd, status_cmd
from moltbot_installer.environment import TargetIdentity


class _RecordingInstaller:
    instances: list["_RecordingInstaller"] = []

    def __init__(self, cfg, identity, *, interactive):
        self.cfg = cfg
        self.identity = identity
        self.interactive = interactive
        _RecordingInstaller.instances.append(self)

    def run(self):
        return install_cmd.InstallReport()


@pytest.fixture
def isolated(tmp_path, monkeypatch):
    monkeypatch.setattr(config, "user_config_dir", lambda _: str(tmp_path / "cfg"))
    identity = TargetIdentity(user="alice", home=tmp_path / "home", uid=1000, gid=1000, privileged=False)
    monkeypatch.setattr(install_cmd, "resolve_target_identity", lambda: identity)
    monkeypatch.setattr(install_cmd, "stdin_is_tty", lambda: False)
    monkeypatch.setattr(install_cmd, "Installer", _RecordingInstaller)
    monkeypatch.delenv("MOLTBOT_INSTALL_DIR", raising=False)
    _RecordingInstaller.instances = []
    return tmp_path


def test_help_lists_install_flags() -> None:
    runner = CliRunner()
    result = runner.invoke(main._build_app(), ["--help"])
    assert result.exit_code == 0
    for flag in ("--install-dir", "--no-start", "--skip-onboard", "--pull-only"):
        assert flag in result.output
    assert "settings" in result.output


def test_install_flags_reach_installer(isolated) -> None:
    runner = CliRunner()
    result = runner.invoke(
        main._build_app(),
        ["--install-dir", str(isolated / "custom"), "--no-start", "--skip-onboard"],
    )
    assert result.exit_code == 0, result.output
    (installer,) = _RecordingInstaller.instances
    assert installer.cfg.install_dir == isolated / "custom"
    assert installer.cfg.no_start
    assert installer.cfg.skip_onboard
    assert not installer.cfg.pull_only
    assert not installer.interactive


def test_install_dir_env_override(isolated, monkeypatch) -> None:
    monkeypatch.setenv("MOLTBOT_INSTALL_DIR", str(isolated / "from-env"))
    result = CliRunner().invoke(main._build_app(), ["--pull-only"])
    assert result.exit_code == 0, result.output
    (installer,) = _RecordingInstaller.instances
    assert installer.cfg.install_dir == isolated / "from-env"
    assert installer.cfg.pull_only


def test_default_install_dir_under_target_home(isolated) -> None:
    result = CliRunner().invoke(main._build_app(), [])
    assert result.exit_code == 0, result.output
    (installer,) = _RecordingInstaller.instances
    assert installer.cfg.install_dir == Path(isolated / "home" / "moltbot")


def test_unknown_brand_exits_1(isolated) -> None:
    result = CliRunner().invoke(main._build_app(), ["--brand", "nope"])
    assert result.exit_code == 1
    assert "Unknown brand" in result.output
    assert _RecordingInstaller.instances == []


def test_entrypoint_unknown_flag_exits_1(isolated) -> None:
    with pytest.raises(SystemExit) as exc:
        entrypoint.main(["--bogus"])
    assert exc.value.code == 1
    assert _RecordingInstaller.instances == []


def test_entrypoint_catches_the_exceptions_typer_raises() -> None:
    command = typer.main.get_command(main._build_app())
    assert isinstance(command, click.Command)
    assert issubclass(typer.BadParameter, click.UsageError)
    assert typer.Abort is click.Abort


def test_entrypoint_help_exits_0() -> None:
    with pytest.raises(SystemExit) as exc:
        entrypoint.main(["-h"])
    assert exc.value.code == 0


def test_entrypoint_propagates_fatal_exit_code(isolated, monkeypatch) -> None:
    class _FailingInstaller(_RecordingInstaller):
        def run(self):
            raise typer.Exit(code=1)

    monkeypatch.setattr(install_cmd, "Installer", _FailingInstaller)
    with pytest.raises(SystemExit) as exc:
        entrypoint.main([])
    assert exc.value.code == 1


def test_entrypoint_success_exits_0(isolated) -> None:
    with pytest.raises(SystemExit) as exc:
        entrypoint.main(["--no-start"])
    assert exc.value.code == 0
    assert len(_RecordingInstaller.instances) == 1


def test_settings_set_and_show(isolated) -> None:
    runner = CliRunner()
    app = main._build_app()

    result = runner.invoke(app, ["settings", "set", "--brand", "clawdbot", "--health-timeout", "45"])
    assert result.exit_code == 0, result.output
    assert "Settings updated" in result.output

    result = runner.invoke(app, ["settings", "show"])
    assert result.exit_code == 0
    assert "brand=clawdbot" in result.output
    assert "health_timeout_s=45" in result.output

    result = runner.invoke(app, [])
    assert result.exit_code == 0, result.output
    installer = _RecordingInstaller.instances[-1]
    assert installer.cfg.brand.name == "clawdbot"
    assert installer.cfg.health_timeout_s == 45


def test_settings_set_rejects_unknown_brand(isolated) -> None:
    result = CliRunner().invoke(main._build_app(), ["settings", "set", "--brand", "nope"])
    assert result.exit_code == 1
    assert not (isolated / "cfg" / "config.toml").exists()


def test_settings_reset(isolated) -> None:
    runner = CliRunner()
    app = main._build_app()
    runner.invoke(app, ["settings", "set", "--image", "example/image:1"])
    assert (isolated / "cfg" / "config.toml").exists()

    result = runner.invoke(app, ["settings", "reset"])
    assert result.exit_code == 0
    assert not (isolated / "cfg" / "config.toml").exists()


def test_status_healthy(isolated, monkeypatch) -> None:
    seen = {}

    def _probe(url, *, timeout_s):
        seen["url"] = url
        return True

    monkeypatch.setattr(status_cmd, "probe", _probe)
    result = CliRunner().invoke(main._build_app(), ["status"])
    assert result.exit_code == 0
    assert seen["url"] == "http://localhost:18789/health"
    assert "healthy" in result.output
    assert _RecordingInstaller.instances == []


def test_status_unreachable(isolated, monkeypatch) -> None:
    monkeypatch.setattr(status_cmd, "probe", lambda url, *, timeout_s: False)
    result = CliRunner().invoke(main._build_app(), ["status"])
    assert result.exit_code == 1
    assert "docker logs moltbot-gateway" in result.output
