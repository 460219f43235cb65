"""
Tunnel ingress configuration in /etc/cloudflared.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

import yaml

from stackup import config
from stackup.errors import CredentialsNotFoundError
from stackup.installer.cloudflared import TunnelRecord, credential_candidates, find_credentials
from stackup.installer.common import InstallConfig
from stackup.ui import say, ok, error, detail
from stackup.utils.common import copy_file, make_dir, write_file


CATCH_ALL = {"service": "http_status:404"}


@dataclass(frozen=True)
class IngressRule:
    hostname: str
    service: str

    def to_dict(self) -> dict:
        return {"hostname": self.hostname, "service": self.service}


@dataclass
class IngressConfig:
    """The cloudflared config.yml; the 404 catch-all is appended on render."""
    tunnel_id: str
    credentials_file: Path
    rules: list[IngressRule] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "tunnel": self.tunnel_id,
            "credentials-file": str(self.credentials_file),
            "ingress": [rule.to_dict() for rule in self.rules] + [dict(CATCH_ALL)],
        }

    def render(self) -> str:
        return yaml.safe_dump(self.to_dict(), default_flow_style=False, sort_keys=False)


def build_ingress(cfg: InstallConfig, tunnel_id: str, etc_dir: Path) -> IngressConfig:
    rules = [IngressRule(app.hostname, app.local_url) for app in cfg.apps]
    return IngressConfig(tunnel_id, etc_dir / f"{tunnel_id}.json", rules)


def configure_ingress(
    cfg: InstallConfig,
    record: TunnelRecord,
    etc_dir: Optional[Path] = None,
) -> Path:
    """Install the tunnel credentials and write config.yml.

    Returns the path of the written config file.
    """
    etc_dir = etc_dir or Path(config.CLOUDFLARED_ETC_DIR)
    say("Configuring the tunnel…")

    source = record.credentials_file
    if not source.is_file():
        source = find_credentials(record.tunnel_id, cfg.home)
    if source is None:
        error(f"Credentials file not found for tunnel ID: {record.tunnel_id}")
        candidates = credential_candidates(cfg.home)
        if candidates:
            print("Available credential files:")
            for path in candidates:
                detail(str(path))
        raise CredentialsNotFoundError(
            f"No credentials file {record.tunnel_id}.json under {cfg.home}"
        )

    make_dir(etc_dir)
    ingress = build_ingress(cfg, record.tunnel_id, etc_dir)
    copy_file(source, ingress.credentials_file)
    detail(f"Credentials copied to {ingress.credentials_file}")

    target = etc_dir / config.CLOUDFLARED_CONFIG_NAME
    write_file(target, ingress.render())
    ok(f"Tunnel configuration written to {target}")
    for rule in ingress.rules:
        detail(f"{rule.hostname} → {rule.service}")
    return target
