"""
Install configuration: the record every installation step receives.

collect_config() asks for each value once, applies defaults, and returns an
immutable InstallConfig. Nothing downstream reads prompts or globals.
"""
from __future__ import annotations

import base64
import os
import secrets
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from stackup import config
from stackup.prompts import choose, confirm, get_input, get_required, get_secret
from stackup.ui import colorize, Colors, die, print_header, print_table


APPS = ("affine", "n8n")
SELECTIONS = ("affine", "n8n", "both")


# ----- Config dataclasses -----

@dataclass(frozen=True)
class AppConfig:
    """Settings for one application stack."""
    name: str
    domain: str
    subdomain: str
    install_dir: Path

    # AFFiNE
    admin_email: str = ""
    admin_password: str = ""

    # Database (AFFiNE always uses postgres; n8n may use sqlite)
    db_backend: str = "postgres"
    db_user: str = ""
    db_password: str = ""
    db_name: str = ""

    # n8n
    basic_auth_user: str = ""
    basic_auth_password: str = ""
    encryption_key: str = ""

    @property
    def hostname(self) -> str:
        return f"{self.subdomain}.{self.domain}"

    @property
    def local_port(self) -> int:
        return config.AFFINE_PORT if self.name == "affine" else config.N8N_PORT

    @property
    def local_url(self) -> str:
        return f"http://localhost:{self.local_port}"

    @property
    def container_name(self) -> str:
        return config.AFFINE_CONTAINER if self.name == "affine" else config.N8N_CONTAINER

    @property
    def compose_file(self) -> Path:
        return self.install_dir / "docker-compose.yml"

    @property
    def data_dir(self) -> Path:
        return self.install_dir / "data"

    @property
    def tunnel_marker(self) -> Path:
        return self.install_dir / config.TUNNEL_ID_MARKER

    @property
    def label(self) -> str:
        return "AFFiNE" if self.name == "affine" else "n8n"


@dataclass(frozen=True)
class InstallConfig:
    """Everything one installation run needs, fixed after confirmation."""
    domain: str
    timezone: str
    tunnel_name: str
    apps: tuple[AppConfig, ...]
    home: Path
    restore_backup: bool = False

    def app(self, name: str) -> Optional[AppConfig]:
        for app in self.apps:
            if app.name == name:
                return app
        return None

    @property
    def hostnames(self) -> list[str]:
        return [app.hostname for app in self.apps]


# ----- Helpers -----

def need_regular_user() -> None:
    """Refuse to run as root; privileged steps use sudo themselves."""
    if os.geteuid() == 0:
        die("Please do NOT run this as root or with sudo. Run it as your normal user.")


def generate_encryption_key() -> str:
    return base64.b64encode(secrets.token_bytes(32)).decode()


def default_tunnel_name(selection: str) -> str:
    return config.DEFAULT_TUNNEL_NAMES[selection]


def _prompt_affine(domain: str, home: Path) -> AppConfig:
    subdomain = get_input("Subdomain for AFFiNE", config.DEFAULT_SUBDOMAINS["affine"])
    install_dir = get_input("AFFiNE installation directory", str(home / "affine"))
    email = get_input("AFFiNE admin email", f"admin@{domain}")
    password = get_secret(
        "AFFiNE admin password (Enter=default or $AFFINE_ADMIN_PASSWORD)",
        os.environ.get("AFFINE_ADMIN_PASSWORD", config.DEFAULT_AFFINE_PASSWORD),
    )
    return AppConfig(
        name="affine",
        domain=domain,
        subdomain=subdomain,
        install_dir=Path(install_dir).expanduser(),
        admin_email=email,
        admin_password=password,
        db_backend="postgres",
        db_user="affine",
        db_password="affine",
        db_name="affine",
    )


def _prompt_n8n(domain: str, home: Path, default_backend: str) -> AppConfig:
    subdomain = get_input("Subdomain for n8n", config.DEFAULT_SUBDOMAINS["n8n"])
    install_dir = get_input("n8n installation directory", str(home / "n8n"))

    backend = ""
    while backend not in ("sqlite", "postgres"):
        backend = get_input("n8n database (sqlite/postgres)", default_backend).lower()

    basic_user = basic_password = ""
    if confirm("Enable Basic Auth for n8n?", False):
        basic_user = get_required("n8n basic auth username", "Username")
        basic_password = get_secret("n8n basic auth password")

    key = get_input(
        "n8n encryption key (must match the key of any backup you restore)",
        os.environ.get("N8N_ENCRYPTION_KEY") or generate_encryption_key(),
    )
    return AppConfig(
        name="n8n",
        domain=domain,
        subdomain=subdomain,
        install_dir=Path(install_dir).expanduser(),
        db_backend=backend,
        db_user=os.environ.get("N8N_PG_USER", config.DEFAULT_N8N_PG_USER),
        db_password=os.environ.get("N8N_PG_PASSWORD", config.DEFAULT_N8N_PG_PASSWORD),
        db_name=os.environ.get("N8N_PG_DB", config.DEFAULT_N8N_PG_DB),
        basic_auth_user=basic_user,
        basic_auth_password=basic_password,
        encryption_key=key,
    )


# ----- Collector -----

def collect_config(selection: Optional[str] = None, home: Optional[Path] = None) -> InstallConfig:
    """Prompt for every installation value and return the frozen config."""
    home = home or Path.home()
    print_header("stackup - Configuration")
    print("Press Enter to accept the [default] value, or type a custom value.")
    print()

    domain = get_required("Your domain (e.g., example.com)", "Domain")

    if selection is None:
        selection = choose(
            "Choose installation option:",
            [("affine", "AFFiNE only"), ("n8n", "n8n only"), ("both", "Both AFFiNE + n8n")],
            "both",
        )

    apps: list[AppConfig] = []
    if selection in ("affine", "both"):
        apps.append(_prompt_affine(domain, home))
    if selection in ("n8n", "both"):
        apps.append(_prompt_n8n(domain, home, "postgres" if selection == "both" else "sqlite"))

    timezone = get_input("Timezone", config.DEFAULT_TIMEZONE)
    tunnel_name = get_input("Cloudflare Tunnel name", default_tunnel_name(selection))

    restore = False
    if any(app.name == "n8n" for app in apps):
        restore = confirm("Restore n8n from a Google Drive backup?", False)

    return InstallConfig(
        domain=domain,
        timezone=timezone,
        tunnel_name=tunnel_name,
        apps=tuple(apps),
        home=home,
        restore_backup=restore,
    )


def show_summary(cfg: InstallConfig) -> None:
    print_header("Configuration Summary")
    rows = [("Domain", cfg.domain)]
    for app in cfg.apps:
        rows.append((app.label, f"https://{app.hostname} -> {app.local_url}"))
        rows.append((f"{app.label} dir", str(app.install_dir)))
        if app.name == "affine":
            rows.append(("Admin email", app.admin_email))
        if app.name == "n8n":
            rows.append(("n8n database", app.db_backend))
            rows.append(("Basic auth", app.basic_auth_user or "disabled"))
    rows.append(("Tunnel name", cfg.tunnel_name))
    rows.append(("Timezone", cfg.timezone))
    if cfg.app("n8n"):
        rows.append(("Restore backup", "Yes" if cfg.restore_backup else "No"))
    print_table(rows)
    affine = cfg.app("affine")
    if affine and affine.admin_password == config.DEFAULT_AFFINE_PASSWORD:
        print()
        print(colorize("  The default AFFiNE admin password is in use; change it after login.", Colors.YELLOW))
    print()
