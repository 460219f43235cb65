#!/usr/bin/env python3
"""
stackup command line.

    stackup install [affine|n8n|both] [--yes]
    stackup restore [--dir DIR]
    stackup import-workflows [--env-file PATH]
    stackup setup-env [--env-file PATH]
    stackup backup --data-dir D --backup-dir B --prefix P [--keep 7]
"""
from __future__ import annotations

import argparse
import sys
from pathlib import Path
from typing import Optional

from stackup import config
from stackup.errors import StackupError
from stackup.installer import cloudflared, compose, deps, ingress, launcher, service
from stackup.installer.common import (
    SELECTIONS,
    AppConfig,
    InstallConfig,
    collect_config,
    need_regular_user,
    show_summary,
)
from stackup.modules import backup, envfile, importer, restore
from stackup.prompts import confirm, pause
from stackup.ui import Colors, colorize, error, ok, print_header, print_step, print_table, detail


# ─── Install ──────────────────────────────────────────────────────────────────

def run_install(cfg: InstallConfig) -> None:
    """Run every installation step in order; the first fatal error stops it."""
    total = 9 if cfg.restore_backup else 8

    print_step(1, total, "System packages")
    deps.install_prereqs()

    print_step(2, total, "Docker")
    deps.install_docker()

    print_step(3, total, "Docker Compose configuration")
    compose.write_all(cfg)

    print_step(4, total, "Starting containers")
    for app in cfg.apps:
        launcher.start_stack(app)

    print_step(5, total, "Cloudflare Tunnel")
    cloudflared.install_cloudflared()
    cloudflared.authenticate(cfg.home)
    record = cloudflared.provision_tunnel(cfg.tunnel_name, cfg.home)
    cloudflared.write_markers(cfg, record)

    print_step(6, total, "Tunnel configuration and DNS")
    ingress.configure_ingress(cfg, record)
    cloudflared.route_all(cfg, record)

    print_step(7, total, "Tunnel service")
    service.install_service()

    print_step(8, total, "Backup scripts")
    for app in cfg.apps:
        backup.write_backup_script(app, cfg.home)

    if cfg.restore_backup:
        print_step(9, total, "Restore from backup")
        restore.restore_n8n(cfg.app("n8n"))

    show_final_summary(cfg, record.tunnel_id)


def show_final_summary(cfg: InstallConfig, tunnel_id: str) -> None:
    print_header("Installation complete")
    rows = []
    for app in cfg.apps:
        rows.append((app.label, f"https://{app.hostname}"))
        rows.append((f"{app.label} (local)", app.local_url))
    rows.append(("Tunnel", f"{cfg.tunnel_name} ({tunnel_id})"))
    print_table(rows)
    print()
    affine = cfg.app("affine")
    if affine:
        detail(f"AFFiNE admin: {affine.admin_email}")
        if affine.admin_password == config.DEFAULT_AFFINE_PASSWORD:
            print(colorize("    Change the default admin password after your first login.", Colors.YELLOW))
    n8n = cfg.app("n8n")
    if n8n:
        detail("Keep your n8n encryption key safe; backups need it:")
        detail(f"  {n8n.encryption_key}")
    print()
    print("Useful commands:")
    for app in cfg.apps:
        detail(f"docker compose -f {app.compose_file} logs -f   # {app.label} logs")
        detail(f"docker compose -f {app.compose_file} restart   # restart {app.label}")
        detail(f"~/backup-{app.name}.sh                         # back up {app.label}")
    detail("sudo systemctl status cloudflared            # tunnel status")
    detail("cloudflared tunnel list                      # list tunnels")
    print()
    print("DNS changes can take a few minutes to propagate.")


# ─── Commands ─────────────────────────────────────────────────────────────────

def cmd_install(args) -> int:
    need_regular_user()
    cfg = collect_config(args.selection)
    show_summary(cfg)
    if not args.yes:
        pause()
    run_install(cfg)
    return 0


def cmd_restore(args) -> int:
    need_regular_user()
    install_dir = Path(args.dir).expanduser()
    app = AppConfig(
        name="n8n",
        domain="",
        subdomain=config.DEFAULT_SUBDOMAINS["n8n"],
        install_dir=install_dir,
    )
    restore.restore_n8n(app)
    return 0


def cmd_import(args) -> int:
    need_regular_user()
    importer.run_import(Path(args.env_file).expanduser())
    return 0


def cmd_setup_env(args) -> int:
    envfile.setup_env(Path(args.env_file).expanduser())
    ok("Setup complete")
    if confirm("Start the n8n installation now?", False):
        return cmd_install(argparse.Namespace(selection="n8n", yes=False))
    return 0


def cmd_backup(args) -> int:
    argv = [
        "--data-dir", args.data_dir,
        "--backup-dir", args.backup_dir,
        "--prefix", args.prefix,
        "--keep", str(args.keep),
    ]
    return backup.main(argv)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog=config.APP_NAME,
        description=config.APP_DESCRIPTION,
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {config.APP_VERSION}")
    sub = parser.add_subparsers(dest="command", required=True)

    p = sub.add_parser("install", help="Install AFFiNE and/or n8n behind a Cloudflare Tunnel")
    p.add_argument("selection", nargs="?", choices=SELECTIONS,
                   help="Which applications to install (asked interactively if omitted)")
    p.add_argument("--yes", "-y", action="store_true", help="Do not wait for confirmation")
    p.set_defaults(func=cmd_install)

    p = sub.add_parser("restore", help="Restore n8n workflows and credentials from a backup")
    p.add_argument("--dir", default=str(Path.home() / "n8n"), help="n8n installation directory")
    p.set_defaults(func=cmd_restore)

    p = sub.add_parser("import-workflows", help="Import workflows from a Google Drive folder")
    p.add_argument("--env-file", default=".env", help="Settings file written by setup-env")
    p.set_defaults(func=cmd_import)

    p = sub.add_parser("setup-env", help="Write the .env used by import-workflows")
    p.add_argument("--env-file", default=".env")
    p.set_defaults(func=cmd_setup_env)

    p = sub.add_parser("backup", help="Archive a data directory and prune old archives")
    p.add_argument("--data-dir", required=True)
    p.add_argument("--backup-dir", required=True)
    p.add_argument("--prefix", required=True)
    p.add_argument("--keep", type=int, default=config.BACKUP_KEEP)
    p.set_defaults(func=cmd_backup)

    return parser


# ─── Entry Point ──────────────────────────────────────────────────────────────

def main(argv: Optional[list[str]] = None) -> int:
    """Main entry point."""
    args = build_parser().parse_args(argv)
    try:
        return args.func(args)
    except StackupError as e:
        error(str(e))
        return 1
    except KeyboardInterrupt:
        print("\n\nInterrupted by user\n")
        return 130


if __name__ == "__main__":
    sys.exit(main())
