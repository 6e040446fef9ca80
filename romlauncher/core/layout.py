"""Data layout — where caches, saves, sessions and config templates live.

    roms/<platform>/game_<id>/            persistent asset cache
    saves/<platform>/game_<id>/           persistent save state
    saves/<platform>/game_<id>_session/   ephemeral session
    emulatorConfigs/<emulator>/           per-emulator config template
"""

from __future__ import annotations

import re
from pathlib import Path

SESSION_DIR_RE = re.compile(r"^game_(\d+)_session$")


def parse_session_dir_name(name: str) -> int | None:
    """Return the game id embedded in a session directory name, if any."""
    m = SESSION_DIR_RE.match(name)
    return int(m.group(1)) if m else None


class DataLayout:
    def __init__(self, root: Path) -> None:
        self.root = root

    @property
    def roms_dir(self) -> Path:
        return self.root / "roms"

    @property
    def saves_dir(self) -> Path:
        return self.root / "saves"

    @property
    def configs_dir(self) -> Path:
        return self.root / "emulatorConfigs"

    @property
    def logs_dir(self) -> Path:
        return self.root / "logs"

    def asset_dir(self, platform: str, asset_id: int) -> Path:
        return self.roms_dir / platform / f"game_{asset_id}"

    def save_dir(self, platform: str, asset_id: int) -> Path:
        return self.saves_dir / platform / f"game_{asset_id}"

    def session_dir(self, platform: str, asset_id: int) -> Path:
        return self.saves_dir / platform / f"game_{asset_id}_session"

    def emulator_config_dir(self, emulator: str) -> Path:
        return self.configs_dir / emulator

    def iter_session_dirs(self) -> list[tuple[str, int, Path]]:
        """All ``(platform, game_id, path)`` session directories under ``saves/``."""
        found: list[tuple[str, int, Path]] = []
        if not self.saves_dir.is_dir():
            return found
        for platform_dir in sorted(self.saves_dir.iterdir()):
            if not platform_dir.is_dir():
                continue
            for entry in sorted(platform_dir.iterdir()):
                if not entry.is_dir():
                    continue
                game_id = parse_session_dir_name(entry.name)
                if game_id is not None:
                    found.append((platform_dir.name, game_id, entry))
        return found
