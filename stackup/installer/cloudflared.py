"""
Cloudflare Tunnel management - expose local services without open ports.

The cloudflared CLI does the real work; this module installs it, logs it in,
and reconciles the named tunnel against the Cloudflare account:

  reuse   tunnel exists and its credentials file is present locally
  repair  tunnel exists but its credentials are gone: delete and recreate
  create  no tunnel with that name yet

Credentials files are only handed out by ``cloudflared tunnel create``, so a
tunnel whose local credentials were lost can never be run again from this
host and has to be replaced.
"""
from __future__ import annotations

import json
import os
import re
import tempfile
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from stackup import config
from stackup.errors import CommandError, TunnelError
from stackup.installer.common import InstallConfig
from stackup.prompts import confirm
from stackup.ui import say, ok, warn, detail
from stackup.utils.common import capture, combined_output, host_arch, run, which


UUID_RE = re.compile(r"^[0-9a-f]{8}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{12}$", re.I)


@dataclass(frozen=True)
class TunnelRecord:
    """A tunnel as reconciled for this run."""
    name: str
    tunnel_id: str
    credentials_file: Path
    outcome: str  # 'reuse', 'repair' or 'create'


# ----- Install / login -----

def is_cloudflared_installed() -> bool:
    return which("cloudflared")


def install_cloudflared() -> None:
    """Install the cloudflared .deb for this host's architecture."""
    if is_cloudflared_installed():
        ok("cloudflared already installed.")
        version = capture(["cloudflared", "--version"])
        if version.returncode == 0:
            detail(version.stdout.strip())
        return

    arch = host_arch()
    url = config.CLOUDFLARED_DEB_URL.format(arch=arch)
    say(f"Installing cloudflared for linux-{arch}…")
    with tempfile.TemporaryDirectory(prefix="stackup-cloudflared-") as tmp:
        deb = Path(tmp) / f"cloudflared-linux-{arch}.deb"
        run(["curl", "-fsSL", "-o", str(deb), url])
        try:
            run(["sudo", "dpkg", "-i", str(deb)])
        except CommandError:
            warn("dpkg reported issues; attempting to fix with apt-get -f install")
            run(["sudo", "apt-get", "-f", "install", "-y"])
    ok("cloudflared installed")


def cloudflared_home(home: Path) -> Path:
    return home / ".cloudflared"


def has_login(home: Path) -> bool:
    """True if a previous ``cloudflared tunnel login`` left files behind."""
    cf = cloudflared_home(home)
    if not cf.is_dir():
        return False
    return (cf / "cert.pem").exists() or any(cf.glob("*.json"))


def authenticate(home: Path) -> bool:
    """Run the browser login unless existing credentials are kept.

    Returns True if a login was performed.
    """
    if has_login(home):
        warn(f"Cloudflare credentials already exist in {cloudflared_home(home)}")
        if not confirm("Do you want to re-authenticate?", False):
            say("Skipping authentication, using existing credentials")
            return False

    say("Running: cloudflared tunnel login")
    detail("Open the printed URL, log in, select your domain and click 'Authorize'.")
    run(["cloudflared", "tunnel", "login"])
    ok("Cloudflare authentication completed")
    return True


# ----- Tunnel listing -----

def parse_tunnel_json(text: str, name: str) -> Optional[str]:
    """ID of the tunnel named exactly ``name`` in ``tunnel list --output json``."""
    data = json.loads(text) if text.strip() else []
    for tunnel in data or []:
        if tunnel.get("name") == name:
            return tunnel.get("id")
    return None


def parse_tunnel_table(text: str, name: str) -> Optional[str]:
    """ID of the tunnel named exactly ``name`` in the default table output.

    Rows look like ``<uuid> <name> <created> <connections>``. The first column
    is taken from the row whose second column equals ``name``; header and
    hint lines never start with a UUID and are skipped.
    """
    for line in text.splitlines():
        parts = line.split()
        if len(parts) >= 2 and UUID_RE.match(parts[0]) and parts[1] == name:
            return parts[0]
    return None


def find_tunnel_id(name: str) -> Optional[str]:
    """Look the tunnel up by name; None when it does not exist."""
    res = capture(["cloudflared", "tunnel", "list", "--output", "json"])
    if res.returncode == 0:
        try:
            return parse_tunnel_json(res.stdout, name)
        except (json.JSONDecodeError, AttributeError):
            pass
    res = capture(["cloudflared", "tunnel", "list"])
    if res.returncode != 0:
        raise TunnelError(f"Could not list tunnels: {combined_output(res)}")
    return parse_tunnel_table(res.stdout, name)


# ----- Credentials -----

def find_credentials(tunnel_id: str, home: Path) -> Optional[Path]:
    """Locate ``<tunnel_id>.json`` under ``home`` in a path containing 'cloudflared'."""
    matches = [p for p in credential_candidates(home) if p.name == f"{tunnel_id}.json"]
    return sorted(matches)[0] if matches else None


def credential_candidates(home: Path) -> list[Path]:
    """Every JSON file under ``home`` whose path mentions cloudflared."""
    found: list[Path] = []
    for root, dirs, files in os.walk(home, onerror=lambda e: None):
        for fname in files:
            path = Path(root) / fname
            if fname.endswith(".json") and "cloudflared" in str(path):
                found.append(path)
    return found


# ----- Create / delete -----

def create_tunnel(name: str) -> str:
    say(f"Creating tunnel: {name}")
    run(["cloudflared", "tunnel", "create", name])
    tunnel_id = find_tunnel_id(name)
    if not tunnel_id:
        raise TunnelError(f"Tunnel '{name}' was created but is not listed (API lag?)")
    return tunnel_id


def delete_tunnel(name: str) -> None:
    say(f"Deleting tunnel: {name}")
    res = capture(["cloudflared", "tunnel", "delete", "-f", name])
    if res.returncode != 0 and "does not exist" not in combined_output(res).lower():
        raise TunnelError(f"Could not delete tunnel {name}: {combined_output(res)}")


def provision_tunnel(name: str, home: Path) -> TunnelRecord:
    """Reconcile the named tunnel and return it with its local credentials."""
    tunnel_id = find_tunnel_id(name)

    if tunnel_id:
        warn(f"Tunnel '{name}' already exists (ID {tunnel_id})")
        creds = find_credentials(tunnel_id, home)
        if creds:
            ok(f"Using existing tunnel with credentials at: {creds}")
            return TunnelRecord(name, tunnel_id, creds, "reuse")
        warn("Credentials file not found for the existing tunnel; recreating it…")
        delete_tunnel(name)
        outcome = "repair"
    else:
        outcome = "create"

    tunnel_id = create_tunnel(name)
    creds = find_credentials(tunnel_id, home)
    if not creds:
        creds = cloudflared_home(home) / f"{tunnel_id}.json"
    ok(f"Tunnel created with ID: {tunnel_id}")
    detail(f"Credentials: {creds}")
    return TunnelRecord(name, tunnel_id, creds, outcome)


def write_markers(cfg: InstallConfig, record: TunnelRecord) -> Optional[str]:
    """Store the tunnel ID in every install directory.

    Returns the ID a previous run left behind, if any.
    """
    previous = read_marker(cfg)
    if previous and previous != record.tunnel_id:
        warn(f"Replacing tunnel ID {previous} from a previous install with {record.tunnel_id}")
    for app in cfg.apps:
        app.install_dir.mkdir(parents=True, exist_ok=True)
        app.tunnel_marker.write_text(record.tunnel_id + "\n")
        detail(f"Tunnel ID saved to: {app.tunnel_marker}")
    return previous


def read_marker(cfg: InstallConfig) -> Optional[str]:
    for app in cfg.apps:
        if app.tunnel_marker.exists():
            value = app.tunnel_marker.read_text().strip()
            if value:
                return value
    return None


# ----- DNS -----

def route_dns(tunnel_name: str, hostname: str, overwrite: bool = False) -> str:
    """Create the CNAME for ``hostname``.

    Returns 'created', 'exists' or 'failed'. Only 'failed' indicates a
    problem, and it is reported as a warning with cloudflared's own output.
    """
    cmd = ["cloudflared", "tunnel", "route", "dns"]
    if overwrite:
        cmd.append("--overwrite-dns")
    cmd += [tunnel_name, hostname]
    res = capture(cmd)
    output = combined_output(res)
    if res.returncode == 0 and "already exists" not in output:
        ok(f"DNS record created for {hostname}")
        return "created"
    if "already exists" in output:
        warn(f"DNS record for {hostname} already exists; using existing record")
        return "exists"
    warn(f"cloudflared exited with {res.returncode} while creating DNS for {hostname}:")
    print(output)
    return "failed"


def route_all(cfg: InstallConfig, record: TunnelRecord) -> dict[str, str]:
    # A recreated tunnel has a new ID, so old CNAMEs point nowhere.
    overwrite = record.outcome == "repair"
    results = {host: route_dns(record.name, host, overwrite) for host in cfg.hostnames}
    detail(f"Verify in the Cloudflare dashboard: {cfg.domain} → DNS → Records "
           f"(CNAME → {record.tunnel_id}.cfargotunnel.com)")
    return results
