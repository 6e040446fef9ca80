"""Generic adapter — best-effort fallback for platforms without a dedicated adapter.

Only used to fold orphaned sessions back into persistent storage; the
session tree is copied flat, by file name.
"""

from __future__ import annotations

import shutil
from pathlib import Path

from romlauncher.core.fileops import clear_dir, list_files
from romlauncher.models.game_asset import GameAsset
from romlauncher.models.session import SessionInfo
from romlauncher.plugins.base import (
    AdapterKind,
    AdapterOps,
    LaunchPlan,
    expand_args,
    reset_session_dir,
    seed_from_template,
)

KIND = AdapterKind.GENERIC


def prepare(asset: GameAsset, session_dir: Path, config_dir: Path) -> SessionInfo:
    reset_session_dir(session_dir)
    seed_from_template(config_dir, session_dir)
    return SessionInfo(
        asset_id=asset.id,
        platform=asset.platform,
        emulator=KIND.value,
        session_dir=session_dir,
        save_root=session_dir,
    )


def locate_save_root(info: SessionInfo) -> Path:
    return info.session_dir


def extract_saves(session_dir: Path, persistent_dir: Path) -> list[str]:
    files = list_files(session_dir)
    if not files:
        return []
    clear_dir(persistent_dir)
    names: list[str] = []
    for f in files:
        # Later duplicates win
        shutil.copy2(f, persistent_dir / f.name)
        if f.name not in names:
            names.append(f.name)
    return names


def plan_launch(exe: Path, rom: Path, info: SessionInfo, template: list[str]) -> LaunchPlan:
    return LaunchPlan(args=expand_args(template, rom, info))


def plan_config_launch(exe: Path, config_dir: Path) -> LaunchPlan:
    return LaunchPlan(args=[])


OPS = AdapterOps(
    display_name="Generic",
    platforms=(),
    default_args=("{rom}",),
    prepare=prepare,
    locate_save_root=locate_save_root,
    extract_saves=extract_saves,
    plan_launch=plan_launch,
    plan_config_launch=plan_config_launch,
)
