#!/usr/bin/env python3
"""
Restore n8n workflows and credentials from a cloud-stored backup.

rclone is copied into the running n8n container and configured there
interactively. The chosen archive is downloaded inside the container,
copied out and validated, then its workflows.json / credentials.json are fed to ``n8n import:*``.
"""
from __future__ import annotations

import re
import subprocess
import tarfile
import tempfile
import zipfile
from pathlib import Path
from typing import Optional

import yaml

from stackup import config
from stackup.errors import ArchiveError, ConfigError
from stackup.installer.common import AppConfig
from stackup.installer.launcher import is_container_running, restart_stack
from stackup.prompts import get_input, get_required, pause
from stackup.ui import say, ok, warn, error, detail, print_header, colorize, Colors
from stackup.utils.common import capture, combined_output, docker_cmd, host_arch, run


BACKUP_RE = re.compile(r"n8n_backup_(\d{8}_\d{6})\.tar\.gz$")
CONTAINER_TMP = "/home/node/backup_temp.tar.gz"
IMPORT_COMMANDS = {
    "workflows.json": "import:workflow",
    "credentials.json": "import:credentials",
}


# ─── Backup Selection ─────────────────────────────────────────────────────────

def select_latest_backup(names: list[str]) -> Optional[str]:
    """Pick the archive with the newest embedded timestamp.

    Names that do not follow ``n8n_backup_YYYYMMDD_HHMMSS.tar.gz`` are ignored.
    Equal timestamps fall back to the lexicographically greatest path.
    """
    dated = []
    for name in names:
        m = BACKUP_RE.search(name.strip())
        if m:
            dated.append((m.group(1), name.strip()))
    if not dated:
        return None
    return max(dated)[1]


def newest_first(names: list[str]) -> list[str]:
    dated = [(BACKUP_RE.search(n).group(1), n) for n in names if BACKUP_RE.search(n)]
    return [n for _, n in sorted(dated, reverse=True)]


# ─── rclone In The Container ──────────────────────────────────────────────────

def download_rclone(workdir: Path) -> Path:
    """Fetch and unpack the rclone release for this host; returns the binary."""
    arch = host_arch()
    url = config.RCLONE_ZIP_URL.format(arch=arch)
    archive = workdir / f"rclone-linux-{arch}.zip"
    say(f"Downloading rclone for linux-{arch}…")
    run(["curl", "-fsSL", "-o", str(archive), url])
    with zipfile.ZipFile(archive) as zf:
        zf.extractall(workdir)
    for candidate in workdir.rglob("rclone"):
        if candidate.is_file():
            return candidate
    raise ArchiveError(f"rclone binary not found in {url}")


def install_rclone(workdir: Path, container: str = config.N8N_CONTAINER) -> None:
    binary = download_rclone(workdir)
    say("Copying rclone into the n8n container…")
    run(docker_cmd("cp", str(binary), f"{container}:/usr/local/bin/rclone"))
    run(docker_cmd("exec", "-u", "root", container, "chmod", "+x", "/usr/local/bin/rclone"))
    res = capture(docker_cmd("exec", container, "rclone", "version"))
    if res.returncode != 0:
        raise ConfigError(f"rclone does not run inside the container: {combined_output(res)}")
    ok("rclone installed in the container")
    detail(res.stdout.splitlines()[0] if res.stdout else "")


def configure_remote(container: str = config.N8N_CONTAINER) -> str:
    """Run ``rclone config`` interactively and return the remote name."""
    print_header("rclone configuration")
    print("In the rclone wizard:")
    detail("n) New remote, give it a short name such as 'gdrive'")
    detail("choose 'drive' (Google Drive) as the storage type")
    detail("leave client_id/client_secret empty, scope 1 (full access)")
    detail("answer 'n' to auto config and paste the token from a browser")
    detail("q) Quit config when done")
    pause("Press Enter when ready to configure rclone...")
    run(docker_cmd("exec", "-it", "-u", "node", container, "rclone", "config"))

    remotes = capture(docker_cmd("exec", container, "rclone", "listremotes"))
    if remotes.stdout.strip():
        print("Configured remotes:")
        for line in remotes.stdout.splitlines():
            detail(line)
    remote = get_required("Name of your rclone remote (e.g., gdrive)", "Remote name")
    return remote.rstrip(":")


def list_backups(remote: str, container: str = config.N8N_CONTAINER) -> list[str]:
    res = capture(docker_cmd(
        "exec", container, "rclone", "lsf", f"{remote}:",
        "--recursive", "--include", config.RESTORE_PATTERN,
    ))
    if res.returncode != 0:
        raise ConfigError(f"Could not list {remote}: {combined_output(res)}")
    return [line.strip() for line in res.stdout.splitlines() if line.strip().endswith(".tar.gz")]


def choose_backup(names: list[str]) -> str:
    latest = select_latest_backup(names)
    if not latest:
        warn("No timestamped n8n_backup_*.tar.gz found; enter the file name yourself")
        for name in names[:10]:
            detail(name)
        return get_required("Backup file to restore", "Backup file")
    print("Available backups (newest first):")
    for name in newest_first(names)[:10]:
        detail(name)
    return get_input("Backup file to restore", latest)


# ─── Download And Verify ──────────────────────────────────────────────────────

def verify_download(path: Path) -> None:
    """The copied archive must be a regular, non-empty file."""
    if path.is_dir():
        raise ArchiveError(f"{path} is a directory, expected the backup archive")
    if not path.is_file():
        raise ArchiveError(f"Backup was not copied to {path}")
    if path.stat().st_size == 0:
        raise ArchiveError(f"Backup archive {path} is empty")


def fetch_backup(remote: str, name: str, dest: Path,
                 container: str = config.N8N_CONTAINER) -> Path:
    say(f"Downloading {remote}:{name}…")
    run(docker_cmd("exec", "-u", "node", container, "rclone", "copyto", f"{remote}:{name}", CONTAINER_TMP))
    run(docker_cmd("cp", f"{container}:{CONTAINER_TMP}", str(dest)))
    verify_download(dest)
    ok(f"Backup downloaded ({dest.stat().st_size} bytes)")
    return dest


def extract_backup(archive: Path, dest: Path) -> dict[str, Path]:
    """Unpack the archive and locate the files n8n can import."""
    if not tarfile.is_tarfile(archive):
        raise ArchiveError(f"{archive.name} is not a valid tar archive")
    dest.mkdir(parents=True, exist_ok=True)
    with tarfile.open(archive, "r:*") as tar:
        if hasattr(tarfile, "data_filter"):
            tar.extractall(dest, filter="data")
        else:
            tar.extractall(dest)

    found: dict[str, Path] = {}
    for fname in config.RESTORE_FILES:
        matches = sorted(p for p in dest.rglob(fname) if p.is_file())
        if matches:
            found[fname] = matches[0]
            ok(f"Found {fname}")
        else:
            warn(f"{fname} not found in backup")
    if not found:
        raise ArchiveError("No workflows.json or credentials.json found in backup")
    return found


def import_files(found: dict[str, Path], container: str = config.N8N_CONTAINER) -> int:
    """Import each file into n8n; returns how many imports succeeded."""
    imported = 0
    for fname, path in found.items():
        target = f"/tmp/{fname}"
        say(f"Importing {fname}…")
        run(docker_cmd("cp", str(path), f"{container}:{target}"))
        res = subprocess.run(
            docker_cmd("exec", container, "n8n", IMPORT_COMMANDS[fname], f"--input={target}"),
            check=False,
        )
        if res.returncode == 0:
            ok(f"{fname} imported")
            imported += 1
        else:
            error(f"Failed to import {fname}")
            warn("This can be normal if the file is empty or from another n8n version")
    return imported


# ─── Flow ─────────────────────────────────────────────────────────────────────

def read_encryption_key(compose_file: Path) -> str:
    if not compose_file.exists():
        return ""
    data = yaml.safe_load(compose_file.read_text()) or {}
    env = data.get("services", {}).get("n8n", {}).get("environment", {}) or {}
    return str(env.get("N8N_ENCRYPTION_KEY", ""))


def restore_n8n(app: AppConfig) -> None:
    """Interactive restore into a running n8n stack."""
    print_header("Restore n8n from backup")
    if not is_container_running(app.container_name):
        raise ConfigError(f"Container {app.container_name} is not running")

    key = app.encryption_key or read_encryption_key(app.compose_file)
    if key:
        print(colorize("  Credentials only decrypt if this instance uses the same key as", Colors.YELLOW))
        print(colorize("  the one that made the backup. Current N8N_ENCRYPTION_KEY:", Colors.YELLOW))
        detail(key)

    with tempfile.TemporaryDirectory(prefix="stackup-restore-") as tmp:
        workdir = Path(tmp)
        install_rclone(workdir, app.container_name)
        remote = configure_remote(app.container_name)
        name = choose_backup(list_backups(remote, app.container_name))
        archive = fetch_backup(remote, name, workdir / Path(name).name, app.container_name)
        found = extract_backup(archive, workdir / "extracted")
        count = import_files(found, app.container_name)
        capture(docker_cmd("exec", "-u", "node", app.container_name, "rm", "-f", CONTAINER_TMP))

    ok(f"Restore finished: {count} of {len(found)} file(s) imported")
    restart_stack(app)
