#!/usr/bin/env python3
"""
UI utilities for stackup.

Provides terminal colors, output functions, and header/summary boxes.
"""
from __future__ import annotations

import re
import sys


# ─── Terminal Colors ──────────────────────────────────────────────────────────

class Colors:
    """ANSI color codes for terminal output."""
    BLUE = "\033[1;34m"
    GREEN = "\033[1;32m"
    YELLOW = "\033[1;33m"
    RED = "\033[1;31m"
    CYAN = "\033[1;36m"
    BOLD = "\033[1m"
    DIM = "\033[2m"
    OFF = "\033[0m"


def colorize(text: str, color: str) -> str:
    """Wrap text in ANSI color codes."""
    return f"{color}{text}{Colors.OFF}"


def strip_ansi(text: str) -> str:
    return re.sub(r'\033\[[0-9;]+m', '', text)


# ─── Output Functions ─────────────────────────────────────────────────────────

def say(msg: str) -> None:
    """Print an info message with blue prefix."""
    print(f"{Colors.BLUE}[*]{Colors.OFF} {msg}")


def ok(msg: str) -> None:
    """Print a success message with green prefix."""
    print(f"{Colors.GREEN}[✓]{Colors.OFF} {msg}")


def warn(msg: str) -> None:
    """Print a warning message with yellow prefix."""
    print(f"{Colors.YELLOW}[!]{Colors.OFF} {msg}")


def error(msg: str) -> None:
    """Print an error message with red prefix."""
    print(f"{Colors.RED}[✗]{Colors.OFF} {msg}")


def die(msg: str, code: int = 1) -> None:
    """Print an error and exit."""
    error(msg)
    sys.exit(code)


def detail(msg: str) -> None:
    """Print an indented detail line below a say/ok message."""
    print(f"    {msg}")


# ─── Boxes ────────────────────────────────────────────────────────────────────

def print_header(title: str) -> None:
    """Print a decorative header box in cyan."""
    width = max(72, len(title) + 10)
    print()
    print(colorize("╔" + "═" * (width - 2) + "╗", Colors.CYAN))
    print(colorize(f"║{title.center(width - 2)}║", Colors.CYAN))
    print(colorize("╚" + "═" * (width - 2) + "╝", Colors.CYAN))
    print()


def print_step(number: int, total: int, title: str) -> None:
    """Print the banner shown before each installation step."""
    print()
    print(colorize(f"── Step {number}/{total}: {title} ", Colors.BLUE) + colorize("─" * 20, Colors.BLUE))


def print_table(rows: list[tuple[str, str]]) -> None:
    """Print aligned ``label: value`` rows."""
    if not rows:
        return
    width = max(len(label) for label, _ in rows) + 1
    for label, value in rows:
        print(f"  {colorize((label + ':').ljust(width), Colors.BLUE)} {colorize(value, Colors.GREEN)}")
