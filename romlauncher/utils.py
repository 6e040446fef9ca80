"""Shared utility functions."""

from __future__ import annotations

from datetime import datetime

ILLEGAL_FILENAME_CHARS = '<>:"/\\|?*'


def format_size(size_bytes: int) -> str:
    """Format byte count to human-readable string."""
    if size_bytes < 1024:
        return f"{size_bytes} B"
    elif size_bytes < 1024 * 1024:
        return f"{size_bytes / 1024:.1f} KB"
    elif size_bytes < 1024 * 1024 * 1024:
        return f"{size_bytes / (1024 * 1024):.1f} MB"
    else:
        return f"{size_bytes / (1024 * 1024 * 1024):.2f} GB"


def sanitize_filename(name: str) -> str:
    """Remove or replace illegal filename characters."""
    for ch in ILLEGAL_FILENAME_CHARS:
        name = name.replace(ch, "_")
    name = name.replace("\n", " ").replace("\r", "").strip()
    while "  " in name:
        name = name.replace("  ", " ")
    while "__" in name:
        name = name.replace("__", "_")
    return name.strip(". ")


def upload_archive_name(game_name: str, when: datetime) -> str:
    """Name for an uploaded save archive, e.g. ``2024-05-01 18h30 - Game.zip``."""
    safe = sanitize_filename(game_name)
    if not any(ch.isalnum() for ch in safe):
        safe = "save"
    return f"{when:%Y-%m-%d %Hh%M} - {safe}.zip"


def expand_placeholders(template: list[str], values: dict[str, str]) -> list[str]:
    """Substitute ``{name}`` placeholders in each argument; unknown ones are left as-is."""
    expanded: list[str] = []
    for arg in template:
        for name, value in values.items():
            arg = arg.replace("{" + name + "}", value)
        expanded.append(arg)
    return expanded
