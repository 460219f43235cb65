"""stackup - self-hosted AFFiNE and n8n behind a Cloudflare Tunnel.

Module structure:
    - ui: Terminal colors and output functions
    - prompts: Interactive input helpers
    - errors: Exceptions raised by installation steps
    - config: Images, ports, paths and defaults
    - installer: Install steps (packages, compose, launcher, tunnel, ingress, service)
    - modules: Backup, restore, workflow import and .env setup
    - cli: Command line entry point
"""
__version__ = "1.0.0"

from stackup.errors import StackupError
from stackup.ui import Colors, colorize, say, ok, warn, error, die, print_header
