"""Dolphin adapter — GameCube and Wii share one engine and one user directory."""

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
)

KIND = AdapterKind.DOLPHIN
SAVE_SUBDIRS = ("Wii/title", "GC")

VARIANT_WII = "wii"
VARIANT_GAMECUBE = "gamecube"

# Full-size GameCube disc (mini-DVD); anything larger is a Wii disc
_GAMECUBE_DISC_BYTES = 1_459_978_240

_GC_REGION_DIRS = {
    "usa": "USA",
    "us": "USA",
    "north america": "USA",
    "europe": "EUR",
    "eur": "EUR",
    "eu": "EUR",
    "japan": "JAP",
    "jpn": "JAP",
    "jp": "JAP",
}


def detect_variant(asset: GameAsset) -> str:
    """Platform slug first, then disc size; defaults to Wii."""
    slug = asset.platform.lower()
    if "wii" in slug:
        return VARIANT_WII
    if "gamecube" in slug or slug == "ngc":
        return VARIANT_GAMECUBE
    size = asset.total_size
    if 0 < size <= _GAMECUBE_DISC_BYTES:
        return VARIANT_GAMECUBE
    return VARIANT_WII


def gc_region_dir(asset: GameAsset) -> str:
    for region in asset.regions:
        mapped = _GC_REGION_DIRS.get(region.strip().lower())
        if mapped:
            return mapped
    return "USA"


def prepare(asset: GameAsset, session_dir: Path, config_dir: Path) -> SessionInfo:
    reset_session_dir(session_dir)
    seed_from_template(config_dir, session_dir, excluding(*SAVE_SUBDIRS))
    for sub in SAVE_SUBDIRS:
        (session_dir / sub).mkdir(parents=True, exist_ok=True)

    variant = detect_variant(asset)
    if variant == VARIANT_GAMECUBE:
        (session_dir / "GC" / gc_region_dir(asset)).mkdir(parents=True, exist_ok=True)

    return SessionInfo(
        asset_id=asset.id,
        platform=asset.platform,
        emulator=KIND.value,
        session_dir=session_dir,
        save_root=session_dir,
        save_subdirs=SAVE_SUBDIRS,
        user_dir=session_dir,
        variant=variant,
    )


def locate_save_root(info: SessionInfo) -> Path:
    return info.session_dir


def extract_saves(session_dir: Path, persistent_dir: Path) -> list[str]:
    return extract_subtrees(session_dir, SAVE_SUBDIRS, persistent_dir)


def plan_launch(exe: Path, rom: Path, info: SessionInfo, template: list[str]) -> LaunchPlan:
    return LaunchPlan(args=expand_args(template, rom, info))


def plan_config_launch(exe: Path, config_dir: Path) -> LaunchPlan:
    return LaunchPlan(args=["-u", str(config_dir)])


OPS = AdapterOps(
    display_name="Dolphin",
    platforms=("ngc", "gamecube", "wii"),
    default_args=("-u", "{userDir}", "-e", "{rom}"),
    prepare=prepare,
    locate_save_root=locate_save_root,
    extract_saves=extract_saves,
    plan_launch=plan_launch,
    plan_config_launch=plan_config_launch,
)
