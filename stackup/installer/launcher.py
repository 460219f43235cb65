"""
Start a compose stack and wait for its main container.
"""
from __future__ import annotations

import subprocess

from stackup import config
from stackup.errors import ReadinessTimeout, StackStartError
from stackup.installer.common import AppConfig
from stackup.ui import say, ok, warn, error, detail
from stackup.utils.common import (
    capture,
    combined_output,
    docker_compose_cmd,
    ready_timeout,
    run,
    running_containers,
    wait_until,
)


def is_container_running(name: str) -> bool:
    """Exact-name match against ``docker ps``."""
    return name in running_containers()


def pull_images(app: AppConfig) -> None:
    say(f"Pulling {app.label} images (the first pull may take a few minutes)…")
    result = subprocess.run(docker_compose_cmd(app.compose_file, "pull"), check=False)
    if result.returncode != 0:
        warn("Image pull failed; continuing with locally available images.")


def dump_diagnostics(app: AppConfig) -> None:
    """Print compose status and the tail of the main service's log."""
    service = app.name
    ps = capture(docker_compose_cmd(app.compose_file, "ps"))
    print(combined_output(ps))
    logs = capture(docker_compose_cmd(app.compose_file, "logs", "--no-color", "--tail", "100", service))
    print(combined_output(logs))


def start_stack(app: AppConfig, timeout: float | None = None) -> None:
    """Bring the stack up and wait until its container is listed as running."""
    pull_images(app)
    say(f"Starting {app.label} stack…")
    run(docker_compose_cmd(app.compose_file, "up", "-d", "--remove-orphans"))

    if timeout is None:
        timeout = ready_timeout(config.DEFAULT_READY_TIMEOUT)
    say(f"Waiting for container {app.container_name} (up to {timeout:.0f}s)…")
    try:
        wait_until(
            lambda: is_container_running(app.container_name),
            timeout,
            f"Container {app.container_name}",
        )
    except ReadinessTimeout as e:
        error(f"{app.label} failed to start. Diagnostics:")
        dump_diagnostics(app)
        raise StackStartError(
            f"{e}. Check logs with: docker compose -f {app.compose_file} logs {app.name}"
        ) from e

    ok(f"{app.label} container is running ({app.container_name})")
    detail(f"Accessible locally at: {app.local_url}")


def restart_stack(app: AppConfig, timeout: float | None = None) -> bool:
    """Restart the stack; returns False (with a warning) if it does not come back."""
    say(f"Restarting {app.label}…")
    run(docker_compose_cmd(app.compose_file, "restart"))
    if timeout is None:
        timeout = ready_timeout(config.DEFAULT_READY_TIMEOUT)
    try:
        wait_until(
            lambda: is_container_running(app.container_name),
            timeout,
            f"Container {app.container_name}",
        )
    except ReadinessTimeout:
        warn(f"{app.label} may not be running. Check with: docker compose -f {app.compose_file} logs")
        return False
    ok(f"{app.label} restarted")
    return True
