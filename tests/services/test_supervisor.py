import subprocess

from temboardautoconf.services.filesystem import FileSystemService
from temboardautoconf.services.supervisor import SystemdService


class DummyLogger:
    def debug(self, *_args, **_kwargs):
        return None

    def info(self, *_args, **_kwargs):
        return None


def _fake_systemctl(tmp_path):
    systemctl = tmp_path / "systemctl"
    systemctl.write_text("#!/bin/sh\n", encoding="utf-8")
    systemctl.chmod(0o755)
    return systemctl


def _service(tmp_path, systemctl) -> SystemdService:
    return SystemdService(
        logger=DummyLogger(),
        filesystem_service=FileSystemService(logger=DummyLogger()),
        systemctl=str(systemctl),
        unit_dir=str(tmp_path / "system"),
    )


def _recording_run_cmd(commands):
    def fake_run_cmd(cmd, check=True, capture_output=True):
        commands.append(cmd)
        if cmd[0] == "systemd-escape":
            return subprocess.CompletedProcess(cmd, 0, stdout="12-main\n", stderr="")
        return subprocess.CompletedProcess(cmd, 0, stdout="", stderr="")

    return fake_run_cmd


def test_register_enables_escaped_unit(tmp_path):
    systemctl = _fake_systemctl(tmp_path)
    service = _service(tmp_path, systemctl)
    commands = []

    unit = service.register("12/main", "postgres", "postgres", _recording_run_cmd(commands))

    assert unit == "temboard-agent@12-main.service"
    assert commands == [
        ["systemd-escape", "12/main"],
        [str(systemctl), "enable", "temboard-agent@12-main.service"],
    ]
    assert not (tmp_path / "system").exists()
    assert service.start_command(unit, "postgres", "/etc/x.conf") == (
        "systemctl start temboard-agent@12-main.service"
    )


def test_register_writes_user_override_for_other_sysuser(tmp_path):
    service = _service(tmp_path, _fake_systemctl(tmp_path))

    unit = service.register("12/main", "pgadmin", "dba", _recording_run_cmd([]))

    dropin = tmp_path / "system" / f"{unit}.d" / "user.conf"
    assert dropin.read_text(encoding="utf-8") == "[Service]\nUser=pgadmin\nGroup=dba\n"


def test_register_without_systemd_returns_manual_command(tmp_path):
    service = _service(tmp_path, tmp_path / "missing-systemctl")

    def fail_run_cmd(*_args, **_kwargs):
        raise AssertionError("no command should run without systemd")

    unit = service.register("12/main", "postgres", "postgres", fail_run_cmd)

    assert unit is None
    assert service.start_command(unit, "postgres", "/etc/temboard-agent/12/main/temboard-agent.conf") == (
        "sudo -u postgres temboard-agent -c /etc/temboard-agent/12/main/temboard-agent.conf"
    )
