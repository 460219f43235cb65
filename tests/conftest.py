import json
import subprocess
import uuid
from pathlib import Path

import pytest

from stackup.installer.common import AppConfig, InstallConfig, default_tunnel_name
from stackup.utils import common as utils


class FakeSystem:
    """Stands in for subprocess.run and models cloudflared, docker and systemd."""

    def __init__(self, home: Path):
        self.home = home
        self.calls: list[list[str]] = []
        self.tunnels: dict[str, str] = {}
        self.json_listing = True
        self.dns: set[str] = set()
        self.dns_error = ""
        self.running: set[str] = set()
        self.start_on_up: set[str] = set()
        self.active = True

    def __call__(self, cmd, check=False, **kwargs):
        cmd = list(cmd)
        self.calls.append(cmd)
        rc, out, err = self.dispatch(cmd[1:] if cmd[:1] == ["sudo"] else cmd)
        if check and rc != 0:
            raise subprocess.CalledProcessError(rc, cmd, out, err)
        return subprocess.CompletedProcess(cmd, rc, out, err)

    def ran(self, *prefix: str) -> list[list[str]]:
        """Calls whose arguments (sudo stripped) start with ``prefix``."""
        found = []
        for call in self.calls:
            args = call[1:] if call[:1] == ["sudo"] else call
            if args[:len(prefix)] == list(prefix):
                found.append(call)
        return found

    def add_tunnel(self, name: str, with_credentials: bool = True) -> str:
        tunnel_id = str(uuid.uuid4())
        self.tunnels[name] = tunnel_id
        if with_credentials:
            self._write_credentials(tunnel_id)
        return tunnel_id

    def _write_credentials(self, tunnel_id: str) -> None:
        cf = self.home / ".cloudflared"
        cf.mkdir(parents=True, exist_ok=True)
        (cf / f"{tunnel_id}.json").write_text(json.dumps({"TunnelID": tunnel_id}))

    def dispatch(self, cmd):
        if cmd[:2] == ["cloudflared", "tunnel"]:
            return self.cloudflared(cmd[2:])
        if cmd[:1] == ["docker"]:
            return self.docker(cmd[1:])
        if cmd[:2] == ["systemctl", "is-active"]:
            return (0 if self.active else 3), "", ""
        return 0, "", ""

    def cloudflared(self, args):
        if args[0] == "list":
            if "--output" in args:
                if not self.json_listing:
                    return 1, "", "Incorrect Usage: flag provided but not defined: -output"
                listing = [{"id": i, "name": n} for n, i in self.tunnels.items()]
                return 0, json.dumps(listing), ""
            rows = "".join(
                f"{i} {n} 2024-01-01T00:00:00Z 2xAMS\n" for n, i in self.tunnels.items()
            )
            header = (
                "You can obtain more detailed information for each tunnel with "
                "`cloudflared tunnel info <name/uuid>`\n"
                "ID                                   NAME CREATED CONNECTIONS\n"
            )
            return 0, header + rows, ""
        if args[0] == "create":
            name = args[-1]
            tunnel_id = str(uuid.uuid4())
            self.tunnels[name] = tunnel_id
            self._write_credentials(tunnel_id)
            return 0, f"Created tunnel {name} with id {tunnel_id}\n", ""
        if args[0] == "delete":
            self.tunnels.pop(args[-1], None)
            return 0, "", ""
        if args[0] == "route":
            host = args[-1]
            if self.dns_error:
                return 1, "", self.dns_error
            if host in self.dns:
                return 1, "", (
                    "Failed to add route: code: 1003, reason: An A, AAAA, or CNAME "
                    "record with that host already exists."
                )
            self.dns.add(host)
            return 0, "", f"INF Added CNAME {host}\n"
        return 0, "", ""

    def docker(self, args):
        if args[:1] == ["ps"]:
            return 0, "".join(f"{name}\n" for name in sorted(self.running)), ""
        if args[:1] == ["compose"] and "up" in args:
            self.running |= self.start_on_up
        return 0, "", ""


@pytest.fixture
def home(tmp_path):
    path = tmp_path / "home"
    path.mkdir()
    return path


@pytest.fixture
def fake_system(monkeypatch, home):
    fake = FakeSystem(home)
    monkeypatch.setattr(subprocess, "run", fake)
    monkeypatch.setattr(utils, "docker_prefix", lambda: ("docker",))
    return fake


@pytest.fixture
def make_config(home):
    def _make(selection="n8n", basic_auth_user="", db_backend=None,
              domain="example.com", restore=False):
        apps = []
        if selection in ("affine", "both"):
            apps.append(AppConfig(
                name="affine",
                domain=domain,
                subdomain="affine",
                install_dir=home / "affine",
                admin_email=f"admin@{domain}",
                admin_password="ChangeMe123!",
                db_user="affine",
                db_password="affine",
                db_name="affine",
            ))
        if selection in ("n8n", "both"):
            backend = db_backend or ("postgres" if selection == "both" else "sqlite")
            apps.append(AppConfig(
                name="n8n",
                domain=domain,
                subdomain="n8n",
                install_dir=home / "n8n",
                db_backend=backend,
                db_user="n8n",
                db_password="n8n_pass",
                db_name="n8n",
                basic_auth_user=basic_auth_user,
                basic_auth_password="secret" if basic_auth_user else "",
                encryption_key="test-encryption-key",
            ))
        return InstallConfig(
            domain=domain,
            timezone="Europe/Berlin",
            tunnel_name=default_tunnel_name(selection),
            apps=tuple(apps),
            home=home,
            restore_backup=restore,
        )
    return _make


@pytest.fixture
def answers(monkeypatch):
    """Feed scripted answers to input() and getpass()."""
    def _feed(inputs, secrets=()):
        inputs = iter(inputs)
        secrets = iter(secrets)
        monkeypatch.setattr("builtins.input", lambda prompt="": next(inputs))
        monkeypatch.setattr("getpass.getpass", lambda prompt="": next(secrets))
    return _feed
