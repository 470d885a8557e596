import subprocess
from pathlib import Path

import pytest

from temboardautoconf.core import AutoConfigurator
from temboardautoconf.models import AutoConfigureSettings


@pytest.fixture
def host(tmp_path):
    """A fake host: Postgres data directory, PKI roots and agent directories."""
    pgdata = tmp_path / "pghome" / "12" / "main"
    pgdata.mkdir(parents=True)
    (pgdata / "PG_VERSION").write_text("12\n", encoding="utf-8")
    (tmp_path / "ssl").mkdir()
    return tmp_path


@pytest.fixture
def commands():
    return []


def build_configurator(host, commands, listening="", **kwargs) -> AutoConfigurator:
    values = {
        "etc_dir": str(host / "etc" / "temboard-agent"),
        "var_dir": str(host / "var" / "lib" / "temboard-agent"),
        "log_dir": str(host / "var" / "log" / "temboard-agent"),
        "sysuser": "postgres",
        "hostname": "db1.example.com",
    }
    values.update(kwargs)
    configurator = AutoConfigurator(AutoConfigureSettings(**values))

    def fake_run_cmd(cmd, check=True, capture_output=False, env=None):
        commands.append(cmd)
        if "psql" in cmd:
            sql = cmd[-1]
            value = ""
            if "'unix_socket_directories'" in sql:
                value = "/var/run/postgresql"
            elif "'data_directory'" in sql:
                value = str(host / "pghome" / "12" / "main")
            return subprocess.CompletedProcess(cmd, 0, stdout=f"{value}\n", stderr="")
        if cmd[0] == "ss":
            return subprocess.CompletedProcess(cmd, 0, stdout=listening, stderr="")
        if cmd[0] == "systemd-escape":
            return subprocess.CompletedProcess(cmd, 0, stdout=cmd[1].replace("/", "-"), stderr="")
        if cmd[0] == "openssl":
            Path(cmd[cmd.index("-out") + 1]).write_text("cert", encoding="utf-8")
            Path(cmd[cmd.index("-keyout") + 1]).write_text("key", encoding="utf-8")
        return subprocess.CompletedProcess(cmd, 0, stdout="", stderr="")

    configurator._run_cmd = fake_run_cmd
    configurator.logrotate_file = str(host / "logrotate.d" / "temboard-agent")
    configurator.validation_service.resolve_sysgroup = lambda sysuser, sysgroup: "postgres"
    configurator.filesystem_service.set_owner = lambda *_args: None
    configurator.discovery_service.which = lambda name, path=None: "/usr/bin/pg_ctl"
    configurator.discovery_service.resolve_home = lambda _sysuser: str(host / "pghome")
    configurator.tls_service.system_dirs = (str(host / "pki" / "tls"), str(host / "ssl"))
    configurator.systemd_service.systemctl = str(host / "bin" / "systemctl")
    return configurator


def test_run_provisions_agent_end_to_end(host, commands):
    configurator = build_configurator(host, commands)

    assert configurator.run() == 0

    result = configurator.result
    etc = host / "etc" / "temboard-agent" / "12" / "main"
    assert result.cluster_name == "12/main"
    assert result.port == 2345
    assert result.tls.generated is True
    assert result.tls.cert_file == str(host / "ssl" / "certs" / "temboard-agent-12-main.pem")
    assert len(result.secret_key) == 32
    int(result.secret_key, 16)

    overlay = (etc / "temboard-agent.conf.d" / "auto.conf").read_text(encoding="utf-8")
    assert "[temboard]\n" in overlay
    assert "port = 2345\n" in overlay
    assert f"ssl_cert_file = {result.tls.cert_file}\n" in overlay
    assert f"ssl_key_file = {result.tls.key_file}\n" in overlay
    assert f"key = {result.secret_key}\n" in overlay
    assert "instance = 12/main\n" in overlay
    assert "pg_ctl = '/usr/bin/pg_ctl %s -D " in overlay

    assert (etc / "temboard-agent.conf").exists()
    assert (etc / "users").read_text(encoding="utf-8") == ""
    assert (host / "var" / "lib" / "temboard-agent" / "12" / "main").is_dir()
    assert (host / "logrotate.d" / "temboard-agent").exists()
    assert result.unit is None
    assert result.start_command == f"sudo -u postgres temboard-agent -c {etc / 'temboard-agent.conf'}"


def test_second_run_is_refused_without_touching_files(host, commands):
    assert build_configurator(host, commands).run() == 0
    etc = host / "etc" / "temboard-agent" / "12" / "main"
    overlay = etc / "temboard-agent.conf.d" / "auto.conf"
    config = etc / "temboard-agent.conf"
    config.write_text("# edited by hand\n", encoding="utf-8")
    overlay_before = overlay.read_text(encoding="utf-8")

    second = build_configurator(host, commands)
    second.create_directories = lambda *_: pytest.fail("directories must not be touched")

    assert second.run() == 1
    assert second.result is None
    assert config.read_text(encoding="utf-8") == "# edited by hand\n"
    assert overlay.read_text(encoding="utf-8") == overlay_before


def test_run_fails_before_writing_when_no_pki_directory(host, commands):
    (host / "ssl").rmdir()
    configurator = build_configurator(host, commands)

    assert configurator.run() == 1
    assert not (host / "etc").exists()
    assert not (host / "var").exists()
    assert not any(cmd[0] == "openssl" for cmd in commands)


def test_run_reuses_snakeoil_certificate(host, commands):
    (host / "ssl" / "certs").mkdir()
    (host / "ssl" / "private").mkdir()
    (host / "ssl" / "certs" / "ssl-cert-snakeoil.pem").write_text("cert", encoding="utf-8")
    (host / "ssl" / "private" / "ssl-cert-snakeoil.key").write_text("key", encoding="utf-8")
    configurator = build_configurator(host, commands)

    assert configurator.run() == 0
    assert configurator.result.tls.cert_file.endswith("ssl-cert-snakeoil.pem")
    assert not any(cmd[0] == "openssl" for cmd in commands)


def test_run_picks_next_free_port(host, commands):
    listening = (
        "State Recv-Q Send-Q Local Address:Port Peer Address:Port\n"
        "LISTEN 0 128 0.0.0.0:2345 0.0.0.0:*\n"
    )
    configurator = build_configurator(host, commands, listening=listening)

    assert configurator.run() == 0
    assert configurator.result.port == 2346


def test_run_rejects_unqualified_hostname(host, commands):
    configurator = build_configurator(host, commands, hostname="db1")

    assert configurator.run() == 1
    assert commands == []


def test_run_registers_systemd_unit(host, commands):
    systemctl = host / "bin" / "systemctl"
    systemctl.parent.mkdir()
    systemctl.write_text("#!/bin/sh\n", encoding="utf-8")
    systemctl.chmod(0o755)
    configurator = build_configurator(host, commands)

    assert configurator.run() == 0
    assert [str(systemctl), "enable", configurator.result.unit] in commands
    assert configurator.result.start_command == "systemctl start temboard-agent@12-main.service"


def test_logrotate_policy_is_not_overwritten(host, commands):
    policy = host / "logrotate.d" / "temboard-agent"
    policy.parent.mkdir()
    policy.write_text("# custom\n", encoding="utf-8")

    assert build_configurator(host, commands).run() == 0
    assert policy.read_text(encoding="utf-8") == "# custom\n"
