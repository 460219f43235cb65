#!/usr/bin/env python3
"""
Archive an application's data directory and prune old archives.

Run by the generated ~/backup-<app>.sh helper:

    python -m stackup.modules.backup --data-dir ~/n8n/data \\
        --backup-dir ~/n8n-backups --prefix n8n_backup --keep 7

Each run writes ``<prefix>_YYYYmmdd_HHMMSS.tar.gz`` and then deletes all but
the ``keep`` most recently modified archives with that prefix.
"""
from __future__ import annotations

import argparse
import os
import sys
import tarfile
from datetime import datetime
from pathlib import Path
from typing import Optional

from stackup import config
from stackup.errors import ArchiveError, StackupError
from stackup.installer.common import AppConfig
from stackup.ui import say, ok, warn, error, detail


TIMESTAMP_FORMAT = "%Y%m%d_%H%M%S"


# ─── Archive ──────────────────────────────────────────────────────────────────

def archive_name(prefix: str, when: Optional[datetime] = None) -> str:
    return f"{prefix}_{(when or datetime.now()).strftime(TIMESTAMP_FORMAT)}.tar.gz"


def _add_tree(tar: tarfile.TarFile, data_dir: Path) -> list[str]:
    """Add ``data_dir`` entry by entry; returns the paths that could not be read."""
    skipped: list[str] = []
    tar.add(str(data_dir), arcname=data_dir.name, recursive=False)
    for root, dirs, files in os.walk(data_dir, onerror=lambda e: skipped.append(e.filename)):
        dirs.sort()
        for name in dirs + sorted(files):
            path = Path(root) / name
            arcname = str(Path(data_dir.name) / path.relative_to(data_dir))
            try:
                tar.add(str(path), arcname=arcname, recursive=False)
            except OSError:
                skipped.append(str(path))
    return skipped


def create_archive(data_dir: Path, backup_dir: Path, prefix: str,
                   when: Optional[datetime] = None) -> Path:
    """Write a gzip tarball of ``data_dir`` into ``backup_dir``.

    Members are stored relative to the parent of ``data_dir``, so the archive
    unpacks to a single ``data/`` directory. Entries the current user cannot
    read (the Postgres data directory, for one) are left out with a warning.
    """
    if not data_dir.is_dir():
        raise ArchiveError(f"Data directory not found: {data_dir}")
    backup_dir.mkdir(parents=True, exist_ok=True)
    target = backup_dir / archive_name(prefix, when)
    try:
        with tarfile.open(target, "w:gz") as tar:
            skipped = _add_tree(tar, data_dir)
    except OSError as e:
        target.unlink(missing_ok=True)
        raise ArchiveError(f"Could not archive {data_dir}: {e}") from e
    if skipped:
        warn(f"Skipped {len(skipped)} unreadable path(s); run the helper with sudo for a full copy:")
        for path in skipped:
            detail(path)
    return target


def prune_archives(backup_dir: Path, prefix: str, keep: int = config.BACKUP_KEEP) -> list[Path]:
    """Delete all but the ``keep`` newest archives; returns the removed paths."""
    archives = sorted(
        backup_dir.glob(f"{prefix}_*.tar.gz"),
        key=lambda p: p.stat().st_mtime,
        reverse=True,
    )
    removed = archives[keep:]
    for path in removed:
        path.unlink()
    return removed


def run_backup(data_dir: Path, backup_dir: Path, prefix: str,
               keep: int = config.BACKUP_KEEP) -> Path:
    say(f"Backing up {data_dir}…")
    archive = create_archive(data_dir, backup_dir, prefix)
    ok(f"Backup created: {archive}")
    removed = prune_archives(backup_dir, prefix, keep)
    if removed:
        detail(f"Pruned {len(removed)} old backup(s), keeping the newest {keep}")
    return archive


# ─── Helper Script ────────────────────────────────────────────────────────────

def backup_script_path(app: AppConfig, home: Path) -> Path:
    return home / f"backup-{app.name}.sh"


def render_backup_script(app: AppConfig, home: Path, python: Optional[str] = None) -> str:
    """Shell helper with every value fixed at generation time."""
    python = python or sys.executable
    backup_dir = home / f"{app.name}-backups"
    prefix = config.BACKUP_NAME_PATTERNS[app.name]
    return (
        "#!/bin/sh\n"
        f"# {app.label} backup helper generated by stackup\n"
        "set -e\n"
        f'exec "{python}" -m stackup.modules.backup \\\n'
        f'    --data-dir "{app.data_dir}" \\\n'
        f'    --backup-dir "{backup_dir}" \\\n'
        f'    --prefix "{prefix}" \\\n'
        f"    --keep {config.BACKUP_KEEP}\n"
    )


def write_backup_script(app: AppConfig, home: Path) -> Path:
    path = backup_script_path(app, home)
    path.write_text(render_backup_script(app, home))
    path.chmod(0o755)
    ok(f"Backup script created: {path}")
    return path


# ─── Entry Point ──────────────────────────────────────────────────────────────

def main(argv: Optional[list[str]] = None) -> int:
    parser = argparse.ArgumentParser(
        prog="stackup backup",
        description="Archive a data directory and keep the newest archives",
    )
    parser.add_argument("--data-dir", type=Path, required=True)
    parser.add_argument("--backup-dir", type=Path, required=True)
    parser.add_argument("--prefix", required=True)
    parser.add_argument("--keep", type=int, default=config.BACKUP_KEEP)
    args = parser.parse_args(argv)

    if args.keep < 1:
        warn("--keep must be at least 1; using 1")
        args.keep = 1
    try:
        run_backup(args.data_dir.expanduser(), args.backup_dir.expanduser(), args.prefix, args.keep)
    except StackupError as e:
        error(str(e))
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
