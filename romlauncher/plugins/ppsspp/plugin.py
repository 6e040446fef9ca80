"""PPSSPP adapter — PSP saves live on an emulated memory stick.

The session holds a ``memstick/`` root; PPSSPP is redirected to it with
``portable.txt`` + ``installed.txt`` written beside the executable.
"""

from __future__ import annotations

from pathlib import Path

from romlauncher.core.fileops import excluding
from romlauncher.models.game_asset import GameAsset
from romlauncher.models.session import SessionInfo
from romlauncher.plugins.base import (
    AdapterKind,
    AdapterOps,
    LaunchPlan,
    expand_args,
    extract_subtrees,
    reset_session_dir,
    seed_from_template,
    write_text_file,
)

KIND = AdapterKind.PPSSPP
SAVE_SUBDIRS = ("SAVEDATA", "PPSSPP_STATE")


def _memstick(session_dir: Path) -> Path:
    return session_dir / "memstick"


def _save_root(session_dir: Path) -> Path:
    return _memstick(session_dir) / "PSP"


def _point_memstick(exe: Path, memstick: Path) -> None:
    """Make PPSSPP use ``memstick`` as its memory-stick directory."""
    write_text_file(exe.parent / "portable.txt", "")
    write_text_file(exe.parent / "installed.txt", str(memstick))


def prepare(asset: GameAsset, session_dir: Path, config_dir: Path) -> SessionInfo:
    reset_session_dir(session_dir)
    memstick = _memstick(session_dir)
    seed_from_template(
        config_dir, memstick, excluding(*(f"PSP/{sub}" for sub in SAVE_SUBDIRS)),
    )
    save_root = _save_root(session_dir)
    for sub in SAVE_SUBDIRS:
        (save_root / sub).mkdir(parents=True, exist_ok=True)
    return SessionInfo(
        asset_id=asset.id,
        platform=asset.platform,
        emulator=KIND.value,
        session_dir=session_dir,
        save_root=save_root,
        save_subdirs=SAVE_SUBDIRS,
        user_dir=memstick,
    )


def locate_save_root(info: SessionInfo) -> Path:
    return _save_root(info.session_dir)


def extract_saves(session_dir: Path, persistent_dir: Path) -> list[str]:
    return extract_subtrees(_save_root(session_dir), SAVE_SUBDIRS, persistent_dir)


def plan_launch(exe: Path, rom: Path, info: SessionInfo, template: list[str]) -> LaunchPlan:
    _point_memstick(exe, info.user_dir or _memstick(info.session_dir))
    return LaunchPlan(args=expand_args(template, rom, info))


def plan_config_launch(exe: Path, config_dir: Path) -> LaunchPlan:
    _point_memstick(exe, config_dir)
    return LaunchPlan(args=[])


OPS = AdapterOps(
    display_name="PPSSPP",
    platforms=("psp",),
    default_args=("{rom}",),
    prepare=prepare,
    locate_save_root=locate_save_root,
    extract_saves=extract_saves,
    plan_launch=plan_launch,
    plan_config_launch=plan_config_launch,
)
