"""
stackup - Configuration Constants

Centralized configuration for paths, Docker images, ports, and defaults.
Edit this file to customize image versions or default locations.
"""

# ─── Cloudflare Tunnel Paths ──────────────────────────────────────────────────

# Where the tunnel service reads its config and credentials
CLOUDFLARED_ETC_DIR = "/etc/cloudflared"
CLOUDFLARED_CONFIG_NAME = "config.yml"
CLOUDFLARED_UNIT_FILE = "/etc/systemd/system/cloudflared.service"
CLOUDFLARED_SERVICE = "cloudflared"

# Marker written into every install dir once the tunnel ID is known
TUNNEL_ID_MARKER = ".tunnel_id"

CLOUDFLARED_DEB_URL = (
    "https://github.com/cloudflare/cloudflared/releases/latest/download/"
    "cloudflared-linux-{arch}.deb"
)
RCLONE_ZIP_URL = "https://downloads.rclone.org/rclone-current-linux-{arch}.zip"
DOCKER_INSTALL_URL = "https://get.docker.com"


# ─── Docker Images ────────────────────────────────────────────────────────────

AFFINE_IMAGE = "ghcr.io/toeverything/affine-graphql:stable"
N8N_IMAGE = "n8nio/n8n:latest"
POSTGRES_IMAGE = "postgres:16"
REDIS_IMAGE = "redis:7"


# ─── Container Names & Ports ──────────────────────────────────────────────────

AFFINE_CONTAINER = "affine_selfhosted"
AFFINE_PORT = 3010
AFFINE_COMMAND = 'sh -c "node ./scripts/self-host-predeploy && node ./dist/index.js"'

N8N_CONTAINER = "n8n"
N8N_PORT = 5678


# ─── Default Values ───────────────────────────────────────────────────────────

DEFAULT_TIMEZONE = "Europe/Berlin"
DEFAULT_SUBDOMAINS = {"affine": "affine", "n8n": "n8n"}
DEFAULT_TUNNEL_NAMES = {
    "affine": "affine-tunnel",
    "n8n": "n8n-tunnel",
    "both": "multi-tunnel",
}
DEFAULT_AFFINE_PASSWORD = "ChangeMe123!"
DEFAULT_N8N_PG_USER = "n8n"
DEFAULT_N8N_PG_PASSWORD = "n8n_pass"
DEFAULT_N8N_PG_DB = "n8n"

# Readiness polling (seconds)
DEFAULT_READY_TIMEOUT = 60.0
DEFAULT_SERVICE_TIMEOUT = 30.0


# ─── Backup Configuration ─────────────────────────────────────────────────────

BACKUP_KEEP = 7
BACKUP_NAME_PATTERNS = {"affine": "affine_backup", "n8n": "n8n_backup"}
RESTORE_PATTERN = "n8n_backup_*.tar.gz"
RESTORE_FILES = ("workflows.json", "credentials.json")


# ─── Application Metadata ─────────────────────────────────────────────────────

APP_NAME = "stackup"
APP_VERSION = "1.0.0"
APP_DESCRIPTION = "Self-hosted AFFiNE and n8n behind a Cloudflare Tunnel"
