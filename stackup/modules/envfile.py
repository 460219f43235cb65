"""
Quick setup: write the .env read by the workflow importer.
"""
from __future__ import annotations

from pathlib import Path
from typing import Optional

from stackup import config
from stackup.prompts import get_input
from stackup.ui import ok, detail, print_header, colorize, Colors
from stackup.utils.common import load_env, write_env


ENV_KEYS = ("DOMAIN", "SUBDOMAIN", "TIMEZONE", "GOOGLE_DRIVE_FOLDER_ID", "N8N_DIR")


def env_defaults(existing: dict[str, str], home: Path) -> dict[str, str]:
    """Values offered as prompt defaults; an existing file wins."""
    defaults = {
        "DOMAIN": "",
        "SUBDOMAIN": config.DEFAULT_SUBDOMAINS["n8n"],
        "TIMEZONE": config.DEFAULT_TIMEZONE,
        "GOOGLE_DRIVE_FOLDER_ID": "",
        "N8N_DIR": str(home / "n8n"),
    }
    defaults.update({k: v for k, v in existing.items() if k in ENV_KEYS and v})
    return defaults


def setup_env(env_file: Path, home: Optional[Path] = None) -> dict[str, str]:
    """Prompt for the importer settings and write them to ``env_file``."""
    home = home or Path.home()
    existing = load_env(env_file)
    defaults = env_defaults(existing, home)
    print_header("n8n Quick Setup")

    values: dict[str, str] = dict(existing)
    values["DOMAIN"] = get_input("Domain", defaults["DOMAIN"])
    values["SUBDOMAIN"] = get_input("Subdomain", defaults["SUBDOMAIN"])
    values["TIMEZONE"] = get_input("Timezone", defaults["TIMEZONE"])
    print()
    print(colorize("Google Drive Folder ID:", Colors.BLUE))
    print("Get this from your folder URL:")
    detail("https://drive.google.com/drive/folders/YOUR_FOLDER_ID_HERE")
    values["GOOGLE_DRIVE_FOLDER_ID"] = get_input(
        "Google Drive Folder ID (or leave empty to skip)", defaults["GOOGLE_DRIVE_FOLDER_ID"]
    )
    values["N8N_DIR"] = get_input("n8n installation directory", defaults["N8N_DIR"])

    write_env(env_file, values)
    ok(f"Configuration written to {env_file}")
    host = f"{values['SUBDOMAIN']}.{values['DOMAIN']}" if values["DOMAIN"] else values["SUBDOMAIN"]
    detail(f"Domain:   {host}")
    detail(f"Timezone: {values['TIMEZONE']}")
    if values["GOOGLE_DRIVE_FOLDER_ID"]:
        detail(f"Google Drive folder: {values['GOOGLE_DRIVE_FOLDER_ID']}")
    print()
    print("Next steps:")
    detail("stackup install n8n")
    detail(f"stackup import-workflows --env-file {env_file}")
    return values
