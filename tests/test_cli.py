import os

import pytest

from stackup import cli
from stackup.errors import StackStartError
from stackup.installer import cloudflared


@pytest.fixture
def regular_user(monkeypatch):
    monkeypatch.setattr(os, "geteuid", lambda: 1000)


def test_install_as_root_exits_1(monkeypatch):
    monkeypatch.setattr(os, "geteuid", lambda: 0)
    with pytest.raises(SystemExit) as exc:
        cli.main(["install", "n8n"])
    assert exc.value.code == 1


def test_missing_env_file_exits_1(regular_user, tmp_path):
    assert cli.main(["import-workflows", "--env-file", str(tmp_path / ".env")]) == 1


def test_env_without_folder_exits_1(regular_user, tmp_path):
    env = tmp_path / ".env"
    env.write_text('DOMAIN="example.com"\n')
    assert cli.main(["import-workflows", "--env-file", str(env)]) == 1


def test_step_failure_exits_1(regular_user, monkeypatch, make_config):
    cfg = make_config("n8n")
    monkeypatch.setattr(cli, "collect_config", lambda selection: cfg)

    def fail(cfg):
        raise StackStartError("Container n8n not ready after 60s")
    monkeypatch.setattr(cli, "run_install", fail)
    assert cli.main(["install", "n8n", "--yes"]) == 1


def test_ctrl_c_exits_130(regular_user, monkeypatch):
    def interrupt(selection):
        raise KeyboardInterrupt
    monkeypatch.setattr(cli, "collect_config", interrupt)
    assert cli.main(["install"]) == 130


def test_backup_command(tmp_path):
    data = tmp_path / "data"
    data.mkdir()
    (data / "file").write_text("x")
    rc = cli.main([
        "backup",
        "--data-dir", str(data),
        "--backup-dir", str(tmp_path / "backups"),
        "--prefix", "n8n_backup",
    ])
    assert rc == 0
    assert len(list((tmp_path / "backups").glob("n8n_backup_*.tar.gz"))) == 1


def test_setup_env_command(answers, tmp_path):
    env = tmp_path / ".env"
    answers(["example.com", "", "", "folder123", "", "n"])
    assert cli.main(["setup-env", "--env-file", str(env)]) == 0
    text = env.read_text()
    assert 'DOMAIN="example.com"' in text
    assert 'GOOGLE_DRIVE_FOLDER_ID="folder123"' in text


def test_setup_env_can_start_install(answers, monkeypatch, tmp_path):
    calls = []

    def install(args):
        calls.append((args.selection, args.yes))
        return 0
    monkeypatch.setattr(cli, "cmd_install", install)
    answers(["example.com", "", "", "folder123", "", "y"])
    assert cli.main(["setup-env", "--env-file", str(tmp_path / ".env")]) == 0
    assert calls == [("n8n", False)]


def _record_steps(monkeypatch, home):
    steps = []

    def record(name, result=None):
        def _step(*args, **kwargs):
            steps.append(name)
            return result
        return _step

    tunnel = cloudflared.TunnelRecord("multi-tunnel", "tid", home / "tid.json", "create")
    monkeypatch.setattr(cli.deps, "install_prereqs", record("prereqs"))
    monkeypatch.setattr(cli.deps, "install_docker", record("docker"))
    monkeypatch.setattr(cli.compose, "write_all", record("compose"))
    monkeypatch.setattr(cli.launcher, "start_stack", record("start"))
    monkeypatch.setattr(cli.cloudflared, "install_cloudflared", record("cloudflared"))
    monkeypatch.setattr(cli.cloudflared, "authenticate", record("login"))
    monkeypatch.setattr(cli.cloudflared, "provision_tunnel", record("tunnel", tunnel))
    monkeypatch.setattr(cli.cloudflared, "write_markers", record("markers"))
    monkeypatch.setattr(cli.ingress, "configure_ingress", record("ingress"))
    monkeypatch.setattr(cli.cloudflared, "route_all", record("dns"))
    monkeypatch.setattr(cli.service, "install_service", record("service"))
    monkeypatch.setattr(cli.backup, "write_backup_script", record("backup-script"))
    monkeypatch.setattr(cli.restore, "restore_n8n", record("restore"))
    return steps


def test_install_steps_run_in_order(monkeypatch, make_config, home):
    steps = _record_steps(monkeypatch, home)
    cli.run_install(make_config("both"))
    assert steps == [
        "prereqs", "docker", "compose", "start", "start",
        "cloudflared", "login", "tunnel", "markers",
        "ingress", "dns", "service",
        "backup-script", "backup-script",
    ]


def test_restore_step_only_when_chosen(monkeypatch, make_config, home):
    steps = _record_steps(monkeypatch, home)
    cli.run_install(make_config("n8n", restore=True))
    assert steps[-1] == "restore"
