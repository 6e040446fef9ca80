"""Emulator adapter base — a closed set of adapter kinds behind one interface.

Each emulator family is a module under ``romlauncher/plugins/<kind>/plugin.py``
exporting an ``OPS`` table of plain functions:

    prepare             → wipe + seed a session directory, return SessionInfo
    locate_save_root    → save-data directory inside a session
    extract_saves       → copy a session's save subtree into persistent storage
    plan_launch         → argument list / environment for a game launch
    plan_config_launch  → argument list / environment for configuration mode

``EmulatorAdapter`` binds an ``OPS`` table to a configured executable and
is the only type the rest of the launcher talks to.
"""

from __future__ import annotations

import asyncio
import os
from dataclasses import dataclass, field
from enum import StrEnum
from pathlib import Path
from typing import TYPE_CHECKING, Callable, Sequence

from loguru import logger

from romlauncher.core.fileops import ExcludeFn, clear_dir, copy_tree, list_files
from romlauncher.errors import LauncherError, NotConfigured
from romlauncher.utils import expand_placeholders

if TYPE_CHECKING:
    from romlauncher.models.game_asset import GameAsset
    from romlauncher.models.session import SessionInfo


class AdapterKind(StrEnum):
    PPSSPP = "ppsspp"
    DOLPHIN = "dolphin"
    PCSX2 = "pcsx2"
    GENERIC = "generic"


@dataclass(frozen=True)
class LaunchPlan:
    args: list[str]
    env: dict[str, str] = field(default_factory=dict)


@dataclass(frozen=True)
class AdapterOps:
    display_name: str
    platforms: tuple[str, ...]
    default_args: tuple[str, ...]
    prepare: Callable[[GameAsset, Path, Path], SessionInfo]
    locate_save_root: Callable[[SessionInfo], Path]
    extract_saves: Callable[[Path, Path], list[str]]
    plan_launch: Callable[[Path, Path, SessionInfo, list[str]], LaunchPlan]
    plan_config_launch: Callable[[Path, Path], LaunchPlan]


# ── Shared building blocks for adapter modules ──

def reset_session_dir(session_dir: Path) -> None:
    """Remove any stale session and recreate it empty."""
    if session_dir.exists():
        logger.debug(f"Removing stale session {session_dir}")
    clear_dir(session_dir)


def seed_from_template(config_dir: Path, target: Path, exclude: ExcludeFn | None = None) -> int:
    """Deep-copy the persistent config template into a session. Returns files copied."""
    config_dir.mkdir(parents=True, exist_ok=True)
    copied = copy_tree(config_dir, target, exclude)
    if copied:
        logger.debug(f"Seeded {len(copied)} config file(s) from {config_dir}")
    return len(copied)


def extract_subtrees(save_root: Path, subdirs: Sequence[str], persistent_dir: Path) -> list[str]:
    """
    Mirror ``save_root/<subdir>`` trees into ``persistent_dir``, keeping structure.

    Persistent contents are replaced only when the session holds at least
    one file; an empty session leaves existing saves untouched.
    """
    sources = [(sub, save_root / sub) for sub in subdirs]
    if not any(list_files(src) for _, src in sources):
        return []
    clear_dir(persistent_dir)
    extracted: list[str] = []
    for sub, src in sources:
        for rel in copy_tree(src, persistent_dir / sub):
            extracted.append(f"{sub}/{rel}")
    return extracted


def write_text_file(path: Path, content: str) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(content, encoding="utf-8")


def expand_args(template: Sequence[str], rom: Path | None, info: SessionInfo | None) -> list[str]:
    values: dict[str, str] = {}
    if rom is not None:
        values["rom"] = str(rom)
    if info is not None:
        values["session"] = str(info.session_dir)
        values["userDir"] = str(info.user_dir or info.session_dir)
    return expand_placeholders(list(template), values)


# ── Adapter ──

class EmulatorAdapter:
    """
    One emulator family bound to its configured executable.

    Operations that need the executable fail fast with ``NotConfigured``
    when the path is unset or missing.
    """

    def __init__(
        self,
        kind: AdapterKind,
        ops: AdapterOps,
        executable: Path | None = None,
        args: list[str] | None = None,
    ) -> None:
        self.kind = kind
        self.ops = ops
        self.executable = executable
        self._args = args

    @property
    def key(self) -> str:
        return self.kind.value

    @property
    def display_name(self) -> str:
        return self.ops.display_name

    @property
    def arg_template(self) -> list[str]:
        return list(self._args) if self._args else list(self.ops.default_args)

    def require_executable(self) -> Path:
        if self.executable is None:
            raise NotConfigured(self.key, "executable path is not set")
        if not self.executable.is_file():
            raise NotConfigured(self.key, f"executable not found at {self.executable}")
        return self.executable

    # ── Capability set ──

    def prepare_session_environment(
        self, asset: GameAsset, session_dir: Path, config_dir: Path,
    ) -> SessionInfo:
        info = self.ops.prepare(asset, session_dir, config_dir)
        logger.info(
            f"{self.display_name}: session ready for game {asset.id} → {session_dir}"
            + (f" [{info.variant}]" if info.variant else "")
        )
        return info

    def locate_save_root(self, info: SessionInfo) -> Path:
        return self.ops.locate_save_root(info)

    def extract_saves_from_session(self, session_dir: Path, persistent_dir: Path) -> list[str]:
        files = self.ops.extract_saves(session_dir, persistent_dir)
        if files:
            logger.info(f"{self.display_name}: extracted {len(files)} save file(s) → {persistent_dir}")
        return files

    async def launch(self, rom: Path, info: SessionInfo) -> asyncio.subprocess.Process:
        """Spawn the emulator against a prepared session."""
        exe = self.require_executable()
        plan = await asyncio.to_thread(self.ops.plan_launch, exe, rom, info, self.arg_template)
        return await self._spawn(exe, plan)

    async def launch_config_mode(self, config_dir: Path) -> asyncio.subprocess.Process:
        """Spawn the emulator with no game, pointed at the shared config template."""
        exe = self.require_executable()
        config_dir.mkdir(parents=True, exist_ok=True)
        plan = await asyncio.to_thread(self.ops.plan_config_launch, exe, config_dir)
        return await self._spawn(exe, plan)

    async def _spawn(self, exe: Path, plan: LaunchPlan) -> asyncio.subprocess.Process:
        env = dict(os.environ)
        env.update(plan.env)
        logger.info(f"Starting {self.display_name}: {exe.name} {' '.join(plan.args)}")
        try:
            return await asyncio.create_subprocess_exec(
                str(exe),
                *plan.args,
                cwd=str(exe.parent),
                env=env,
                stdout=asyncio.subprocess.DEVNULL,
                stderr=asyncio.subprocess.DEVNULL,
            )
        except OSError as e:
            raise LauncherError(f"Failed to start {self.display_name}: {e}") from e
