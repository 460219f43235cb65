#!/usr/bin/env python3
"""Run the stackup installer from a checkout without installing the package.

    ./install.py [affine|n8n|both] [--yes]
"""
import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).resolve().parent))

from stackup.cli import main


if __name__ == "__main__":
    sys.exit(main(["install", *sys.argv[1:]]))
