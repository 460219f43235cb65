#!/usr/bin/env python3
"""Import n8n workflows from a public Google Drive folder."""
from __future__ import annotations

import subprocess
import tempfile
from dataclasses import dataclass
from pathlib import Path

from stackup import config
from stackup.errors import CommandError, ConfigError
from stackup.installer.common import AppConfig
from stackup.installer.deps import apt
from stackup.installer.launcher import is_container_running, restart_stack
from stackup.ui import say, ok, warn, error, detail, print_header
from stackup.utils.common import capture, combined_output, docker_cmd, load_env, run, which


DRIVE_FOLDER_URL = "https://drive.google.com/drive/folders/{folder_id}"
CONTAINER_IMPORT_PATH = "/tmp/workflow-import.json"


@dataclass
class ImportResult:
    imported: int = 0
    failed: int = 0
    skipped: int = 0


def load_settings(env_file: Path) -> dict[str, str]:
    """Read the .env written by ``stackup setup-env``."""
    if not env_file.exists():
        raise ConfigError(f".env file not found: {env_file} (run 'stackup setup-env' first)")
    env = load_env(env_file)
    if not env.get("GOOGLE_DRIVE_FOLDER_ID"):
        raise ConfigError(f"GOOGLE_DRIVE_FOLDER_ID is not set in {env_file}")
    return env


def ensure_gdown() -> None:
    if which("gdown"):
        ok("gdown is already installed")
        return
    say("Installing gdown via pip…")
    if not which("pip3"):
        apt(["update"])
        apt(["install", "-y", "python3-pip"])
    run(["pip3", "install", "--user", "gdown"])
    ok("gdown installed")


def download_folder(folder_id: str, dest: Path) -> list[Path]:
    """Download the Drive folder into ``dest`` and return the JSON files in it."""
    say(f"Downloading folder: {folder_id}")
    res = capture(["gdown", "--folder", DRIVE_FOLDER_URL.format(folder_id=folder_id)], cwd=dest)
    output = combined_output(res)
    if res.returncode != 0:
        error("Failed to download from Google Drive")
        print(output)
        lowered = output.lower()
        if "permission denied" in lowered or "access denied" in lowered:
            warn("The folder may not be publicly accessible. To fix this:")
            detail("1. Open your Google Drive folder")
            detail("2. Click 'Share'")
            detail("3. Change to 'Anyone with the link can view'")
        raise CommandError(res.args, res.returncode, output)

    files = sorted(p for p in dest.rglob("*.json") if p.is_file())
    if not files:
        raise ConfigError("No JSON files found in the downloaded folder")
    ok(f"Found {len(files)} JSON file(s)")
    return files


def is_workflow(path: Path) -> bool:
    try:
        return '"nodes"' in path.read_text(errors="replace")
    except OSError:
        return False


def import_workflows(files: list[Path], container: str = config.N8N_CONTAINER) -> ImportResult:
    result = ImportResult()
    for path in files:
        say(f"Importing: {path.name}")
        if not is_workflow(path):
            warn(f"Skipping {path.name}: not an n8n workflow")
            result.skipped += 1
            continue
        cp = capture(docker_cmd("cp", str(path), f"{container}:{CONTAINER_IMPORT_PATH}"))
        if cp.returncode != 0:
            error(f"Failed to copy: {path.name}")
            result.failed += 1
            continue
        res = subprocess.run(
            docker_cmd("exec", container, "n8n", "import:workflow", f"--input={CONTAINER_IMPORT_PATH}"),
            check=False,
            stdout=subprocess.DEVNULL,
            stderr=subprocess.DEVNULL,
        )
        if res.returncode == 0:
            ok(f"Imported: {path.name}")
            result.imported += 1
        else:
            error(f"Failed to import: {path.name}")
            result.failed += 1
    return result


def run_import(env_file: Path) -> ImportResult:
    print_header("n8n Workflow Importer")
    env = load_settings(env_file)
    if not is_container_running(config.N8N_CONTAINER):
        raise ConfigError("n8n container is not running! Start it with: docker compose up -d")
    ok("n8n is running")

    ensure_gdown()
    with tempfile.TemporaryDirectory(prefix="n8n-workflows-import-") as tmp:
        files = download_folder(env["GOOGLE_DRIVE_FOLDER_ID"], Path(tmp))
        result = import_workflows(files)

    print()
    ok("Import summary:")
    detail(f"Successfully imported: {result.imported}")
    if result.skipped:
        detail(f"Skipped (not workflows): {result.skipped}")
    if result.failed:
        detail(f"Failed: {result.failed}")

    n8n_dir = Path(env.get("N8N_DIR", str(Path.home() / "n8n"))).expanduser()
    app = AppConfig(
        name="n8n",
        domain=env.get("DOMAIN", ""),
        subdomain=env.get("SUBDOMAIN", config.DEFAULT_SUBDOMAINS["n8n"]),
        install_dir=n8n_dir,
    )
    if app.compose_file.exists():
        restart_stack(app)
    else:
        warn(f"No compose file in {n8n_dir}; restart n8n yourself to see the workflows.")
    return result

