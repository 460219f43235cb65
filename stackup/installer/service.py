"""
cloudflared system service.
"""
from __future__ import annotations

from pathlib import Path

from stackup import config
from stackup.errors import CommandError, ReadinessTimeout, ServiceStartError
from stackup.ui import say, ok, warn, error
from stackup.utils.common import capture, combined_output, run, wait_until


def unit_exists(unit_file: Path | None = None) -> bool:
    return (unit_file or Path(config.CLOUDFLARED_UNIT_FILE)).exists()


def is_active(service: str = config.CLOUDFLARED_SERVICE) -> bool:
    return capture(["systemctl", "is-active", "--quiet", service]).returncode == 0


def uninstall_service() -> None:
    """Stop and remove an existing unit so the new config.yml is picked up."""
    say("Removing the existing cloudflared service…")
    capture(["sudo", "systemctl", "stop", config.CLOUDFLARED_SERVICE])
    res = capture(["sudo", "cloudflared", "service", "uninstall"])
    if res.returncode != 0:
        warn(f"cloudflared service uninstall reported: {combined_output(res)}")


def install_service(timeout: float = config.DEFAULT_SERVICE_TIMEOUT) -> None:
    """(Re)install, enable and start the tunnel service, then wait for it."""
    service = config.CLOUDFLARED_SERVICE
    if unit_exists():
        uninstall_service()

    say("Installing the cloudflared service…")
    run(["sudo", "cloudflared", "service", "install"])
    run(["sudo", "systemctl", "daemon-reload"])
    try:
        run(["sudo", "systemctl", "enable", "--now", service])
    except CommandError as e:
        warn(f"systemctl enable --now failed: {e}")

    try:
        wait_until(is_active, timeout, f"Service {service}")
    except ReadinessTimeout as e:
        error("The tunnel service failed to start. Recent log:")
        logs = capture(["sudo", "journalctl", "-u", service, "-n", "50", "--no-pager"])
        print(combined_output(logs))
        raise ServiceStartError(
            f"{e}. Check with: sudo systemctl status {service}"
        ) from e
    ok("Tunnel service is running")
