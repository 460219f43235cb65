#!/usr/bin/env python3
"""
Interactive input helpers for stackup.

Values are accepted as typed; only emptiness is checked for required fields.
"""
from __future__ import annotations

import getpass

from stackup.ui import Colors, colorize, error


# ─── Input Helpers ────────────────────────────────────────────────────────────

def get_input(prompt: str, default: str = "") -> str:
    """Get user input with optional default value."""
    if default:
        user_input = input(f"{prompt} [{colorize(default, Colors.CYAN)}]: ").strip()
        return user_input if user_input else default
    return input(f"{prompt}: ").strip()


def get_required(prompt: str, what: str) -> str:
    """Re-prompt until a non-blank value is entered."""
    while True:
        value = get_input(prompt)
        if value:
            return value
        error(f"{what} cannot be empty.")


def get_secret(prompt: str, default: str = "") -> str:
    """Read a value without echo; empty input keeps the default."""
    value = getpass.getpass(f"{prompt}: ")
    return value if value else default


def confirm(prompt: str, default: bool = False) -> bool:
    """Ask for yes/no confirmation."""
    suffix = "[Y/n]" if default else "[y/N]"
    response = input(f"{prompt} {suffix}: ").strip().lower()
    if not response:
        return default
    return response in ("y", "yes")


def pause(prompt: str = "Press Enter to continue, or Ctrl+C to cancel...") -> None:
    input(prompt)


def choose(title: str, options: list[tuple[str, str]], default: str) -> str:
    """Numbered menu; returns the key of the chosen option.

    Args:
        title: Line printed above the menu
        options: (key, label) pairs, shown as 1), 2), ...
        default: Key returned on empty input
    """
    print(title)
    for idx, (_, label) in enumerate(options, 1):
        print(f"  {idx}) {label}")
    keys = [key for key, _ in options]
    default_idx = str(keys.index(default) + 1)
    while True:
        choice = get_input(f"Select 1-{len(options)}", default_idx)
        if choice.isdigit() and 1 <= int(choice) <= len(options):
            return keys[int(choice) - 1]
        error("Invalid choice")
