from __future__ import annotations

import getpass
import os
import subprocess
import sys
import tempfile
import time
from pathlib import Path

from stackup import config
from stackup.errors import CommandError
from stackup.ui import say, ok, warn
from stackup.utils.common import capture, run, which


PREREQS = [
    "curl",
    "wget",
    "git",
    "nano",
    "unzip",
    "ca-certificates",
    "gnupg",
    "lsb-release",
]


def apt(args: list[str], retries: int | None = None) -> None:
    """Run ``sudo apt-get`` with basic retry logic.

    Retries are controlled by the ``APT_RETRIES`` environment variable (default
    3). HTTP 403/404 errors are surfaced with a hint so the user can switch to
    another mirror if needed.
    """

    if retries is None:
        retries = int(os.environ.get("APT_RETRIES", "3"))
    cmd = ["sudo", "env", "DEBIAN_FRONTEND=noninteractive", "apt-get", *args]
    for attempt in range(1, retries + 1):
        proc = subprocess.Popen(
            cmd,
            text=True,
            stdout=subprocess.PIPE,
            stderr=subprocess.STDOUT,
        )
        output: list[str] = []
        assert proc.stdout is not None  # for mypy/linters
        for line in proc.stdout:
            sys.stdout.write(line)
            output.append(line)
        rc = proc.wait()
        combined = "".join(output)
        if rc == 0:
            return
        if "403" in combined or "404" in combined:
            warn(
                "apt-get returned HTTP error; you may need to choose a different mirror"
            )
        if attempt < retries:
            say(
                f"apt-get {' '.join(args)} failed (attempt {attempt}/{retries}); retrying…"
            )
            time.sleep(2 * attempt)
        else:
            raise CommandError(cmd, rc, combined[-2000:])


def install_prereqs() -> None:
    say("Updating system packages and installing prerequisites…")
    apt(["update"])
    apt(["upgrade", "-y"])
    apt(["install", "-y", *PREREQS])
    ok("System updated and dependencies installed")


def install_docker() -> None:
    user = getpass.getuser()
    if which("docker"):
        ok("Docker already installed.")
        version = capture(["docker", "--version"])
        if version.returncode == 0:
            print(f"    {version.stdout.strip()}")
    else:
        say("Installing Docker Engine via get.docker.com…")
        with tempfile.TemporaryDirectory(prefix="stackup-docker-") as tmp:
            script = Path(tmp) / "get-docker.sh"
            run(["curl", "-fsSL", config.DOCKER_INSTALL_URL, "-o", str(script)])
            run(["sudo", "sh", str(script)])
        say(f"Adding {user} to the docker group…")
        try:
            run(["sudo", "usermod", "-aG", "docker", user])
        except CommandError:
            warn("usermod failed; you may need to add yourself to the docker group manually.")
        ok("Docker installed")
    ensure_compose_plugin()


def ensure_compose_plugin() -> None:
    """Make sure ``docker compose`` (v2 plugin) is available."""
    if capture(["sudo", "docker", "compose", "version"]).returncode == 0:
        return
    warn("'docker compose' not available; installing docker-compose-plugin…")
    try:
        apt(["install", "-y", "docker-compose-plugin"])
    except CommandError:
        warn("docker-compose-plugin unavailable via apt; continuing.")
