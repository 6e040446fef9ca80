"""PCSX2 adapter — PlayStation 2 memory cards in a portable session.

PCSX2 runs with ``-portable`` and ``PCSX2_HOME`` set to the session.  In
portable mode it reads ``inis/PCSX2.ini`` next to the executable, so that
file is written from ``template.ini`` with ``MemoryCards`` pointed at the
session's ``memcards/`` folder.
"""

from __future__ import annotations

import re
from pathlib import Path

from loguru import logger

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

KIND = AdapterKind.PCSX2
SAVE_SUBDIRS = ("memcards", "saves")

_TEMPLATE_PATH = Path(__file__).parent / "template.ini"
_MEMCARDS_RE = re.compile(r"^MemoryCards = .+$", re.MULTILINE)


def ini_path(exe: Path) -> Path:
    return exe.parent / "inis" / "PCSX2.ini"


def write_portable_ini(exe: Path, memcards_dir: Path | None) -> Path:
    """
    Ensure ``inis/PCSX2.ini`` exists beside ``exe``.

    With ``memcards_dir`` the ``MemoryCards`` line is rewritten (only that
    line, if the file already exists); without it an existing file is left
    as the user configured it.
    """
    target = ini_path(exe)
    if target.exists():
        if memcards_dir is None:
            return target
        content = target.read_text(encoding="utf-8")
    else:
        content = _TEMPLATE_PATH.read_text(encoding="utf-8")

    if memcards_dir is not None:
        line = f"MemoryCards = {memcards_dir.as_posix()}"
        content = _MEMCARDS_RE.sub(lambda _m: line, content)
        logger.debug(f"PCSX2: MemoryCards → {memcards_dir}")
    write_text_file(target, content)
    return target


def prepare(asset: GameAsset, session_dir: Path, config_dir: Path) -> SessionInfo:
    reset_session_dir(session_dir)
    seed_from_template(config_dir, session_dir, excluding(*SAVE_SUBDIRS, suffixes=(".ini",)))
    for sub in SAVE_SUBDIRS:
        (session_dir / sub).mkdir(parents=True, exist_ok=True)
    return SessionInfo(
        asset_id=asset.id,
        platform=asset.platform,
        emulator=KIND.value,
        session_dir=session_dir,
        save_root=session_dir,
        save_subdirs=SAVE_SUBDIRS,
        user_dir=session_dir,
        env={"PCSX2_HOME": str(session_dir)},
    )


def locate_save_root(info: SessionInfo) -> Path:
    return info.session_dir


def extract_saves(session_dir: Path, persistent_dir: Path) -> list[str]:
    return extract_subtrees(session_dir, SAVE_SUBDIRS, persistent_dir)


def plan_launch(exe: Path, rom: Path, info: SessionInfo, template: list[str]) -> LaunchPlan:
    write_portable_ini(exe, info.session_dir / "memcards")
    return LaunchPlan(
        args=expand_args(template, rom, info),
        env={"PCSX2_HOME": str(info.session_dir), **info.env},
    )


def plan_config_launch(exe: Path, config_dir: Path) -> LaunchPlan:
    write_portable_ini(exe, None)
    return LaunchPlan(args=["-portable"], env={"PCSX2_HOME": str(config_dir)})


OPS = AdapterOps(
    display_name="PCSX2",
    platforms=("ps2",),
    default_args=("-portable", "-fullscreen", "--", "{rom}"),
    prepare=prepare,
    locate_save_root=locate_save_root,
    extract_saves=extract_saves,
    plan_launch=plan_launch,
    plan_config_launch=plan_config_launch,
)
