#!/usr/bin/env python3
"""
Shared utilities for stackup.

This module consolidates common functionality used across the codebase:
- Subprocess wrappers that turn failures into CommandError
- Environment file loading and writing
- Docker and docker compose command building
- Bounded readiness polling
- File operations under root-owned directories
"""
from __future__ import annotations

import os
import platform
import shutil
import subprocess
import time
from functools import lru_cache
from pathlib import Path
from typing import Callable, Optional

from stackup.errors import CommandError, ReadinessTimeout


# ─── Subprocess Helpers ───────────────────────────────────────────────────────

def _text(value) -> str:
    if value is None:
        return ""
    if isinstance(value, bytes):
        return value.decode(errors="replace")
    return value


def run(cmd: list[str], **kwargs) -> subprocess.CompletedProcess:
    """Run a command that must succeed.

    Extra keyword arguments such as ``input``, ``env`` or ``cwd`` are forwarded
    to :func:`subprocess.run`. A non-zero exit raises :class:`CommandError`
    carrying whatever output was captured.
    """
    try:
        return subprocess.run(cmd, check=True, **kwargs)
    except subprocess.CalledProcessError as e:
        output = _text(e.output) + _text(e.stderr)
        raise CommandError(cmd, e.returncode, output) from e
    except FileNotFoundError as e:
        raise CommandError(cmd, 127, str(e)) from e


def capture(cmd: list[str], **kwargs) -> subprocess.CompletedProcess:
    """Run a command and capture its text output without raising.

    A missing executable is reported as exit code 127, like a shell would.
    """
    try:
        return subprocess.run(cmd, capture_output=True, text=True, check=False, **kwargs)
    except FileNotFoundError as e:
        return subprocess.CompletedProcess(cmd, 127, "", str(e))


def combined_output(result: subprocess.CompletedProcess) -> str:
    """stdout and stderr of a captured command, joined like ``2>&1``."""
    return (_text(result.stdout) + _text(result.stderr)).strip()


def which(name: str) -> bool:
    return shutil.which(name) is not None


def host_arch() -> str:
    """Debian architecture name of this host (amd64, arm64, armhf)."""
    res = capture(["dpkg", "--print-architecture"])
    if res.returncode == 0 and res.stdout.strip():
        return res.stdout.strip()
    machine = platform.machine().lower()
    return {
        "x86_64": "amd64",
        "aarch64": "arm64",
        "arm64": "arm64",
        "armv7l": "armhf",
    }.get(machine, machine)


# ─── Environment Loading ──────────────────────────────────────────────────────

def load_env(path: Path) -> dict[str, str]:
    """Load variables from a .env file, returning them as a dict.

    Surrounding single or double quotes are removed from values.

    Args:
        path: Path to the .env file

    Returns:
        Dictionary of key-value pairs from the file
    """
    env: dict[str, str] = {}
    if not path.exists():
        return env
    for line in path.read_text().splitlines():
        line = line.strip()
        if not line or line.startswith("#") or "=" not in line:
            continue
        key, value = line.split("=", 1)
        value = value.strip()
        if len(value) >= 2 and value[0] == value[-1] and value[0] in "\"'":
            value = value[1:-1]
        env[key.strip()] = value
    return env


def write_env(path: Path, values: dict[str, str]) -> None:
    """Write values to a .env file, double-quoting each value."""
    lines = [f'{key}="{value}"' for key, value in values.items()]
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text("\n".join(lines) + "\n")


# ─── Docker Helpers ───────────────────────────────────────────────────────────

@lru_cache(maxsize=None)
def docker_prefix() -> tuple[str, ...]:
    """Command prefix that reaches the Docker daemon.

    Right after Docker is installed the invoking user is in the docker group
    but the current session is not, so fall back to sudo.
    """
    if capture(["docker", "ps"]).returncode == 0:
        return ("docker",)
    return ("sudo", "docker")


def docker_cmd(*args: str) -> list[str]:
    return [*docker_prefix(), *args]


def docker_compose_cmd(compose_file: Path, *args: str) -> list[str]:
    """Build a docker compose command bound to one compose file.

    Args:
        compose_file: Path to docker-compose.yml
        *args: Additional arguments to pass to docker compose

    Returns:
        List of command arguments ready for subprocess
    """
    return docker_cmd(
        "compose",
        "-f", str(compose_file),
        "--project-directory", str(compose_file.parent),
        *args,
    )


def running_containers() -> list[str]:
    """Names of running containers, empty when docker cannot be reached."""
    res = capture(docker_cmd("ps", "--format", "{{.Names}}"))
    if res.returncode != 0:
        return []
    return [line.strip() for line in res.stdout.splitlines() if line.strip()]


# ─── Readiness Polling ────────────────────────────────────────────────────────

def wait_until(
    check: Callable[[], bool],
    timeout: float,
    what: str,
    initial_delay: float = 1.0,
    factor: float = 2.0,
    max_delay: float = 10.0,
    sleep: Callable[[float], None] = time.sleep,
    clock: Callable[[], float] = time.monotonic,
) -> int:
    """Poll ``check`` with exponential backoff until it returns True.

    Returns the number of attempts it took. Raises :class:`ReadinessTimeout`
    once ``timeout`` seconds have elapsed without success.
    """
    start = clock()
    delay = initial_delay
    attempts = 0
    while True:
        attempts += 1
        if check():
            return attempts
        elapsed = clock() - start
        if elapsed >= timeout:
            raise ReadinessTimeout(
                f"{what} not ready after {timeout:.0f}s ({attempts} checks)"
            )
        sleep(min(delay, timeout - elapsed))
        delay = min(delay * factor, max_delay)


def ready_timeout(default: float) -> float:
    """Readiness timeout, overridable with STACKUP_READY_TIMEOUT."""
    try:
        return float(os.environ.get("STACKUP_READY_TIMEOUT", default))
    except ValueError:
        return default


# ─── Root-Owned Files ─────────────────────────────────────────────────────────

def _needs_sudo(path: Path) -> bool:
    if os.geteuid() == 0:
        return False
    if path.exists():
        return not os.access(path, os.W_OK)
    parent = path.parent
    while not parent.exists():
        parent = parent.parent
    return not os.access(parent, os.W_OK)


def make_dir(path: Path) -> None:
    """mkdir -p, through sudo when the location is not writable."""
    if _needs_sudo(path):
        run(["sudo", "mkdir", "-p", str(path)])
    else:
        path.mkdir(parents=True, exist_ok=True)


def write_file(path: Path, content: str, mode: Optional[int] = None) -> None:
    """Write a text file, through ``sudo tee`` when the location is not writable."""
    if _needs_sudo(path):
        run(["sudo", "tee", str(path)], input=content, text=True, stdout=subprocess.DEVNULL)
        if mode is not None:
            run(["sudo", "chmod", format(mode, "o"), str(path)])
        return
    path.write_text(content)
    if mode is not None:
        path.chmod(mode)


def copy_file(src: Path, dst: Path) -> None:
    """Copy a file, through ``sudo cp`` when the destination is not writable."""
    if _needs_sudo(dst):
        run(["sudo", "cp", str(src), str(dst)])
    else:
        shutil.copy2(src, dst)
