"""Application entry point — wires services and runs a launcher command.

Usage:
    python main.py [--data-dir DIR] [-v] <command> [args]

Commands:
    recover                 fold orphaned sessions back into saved games
    ensure <id>             download / verify a game into the local cache
    launch <id>             run a game with save reconciliation
    delete <id>             remove a game from the local cache
    check-saves <id>        report local / cloud save presence
    configure <emulator>    open an emulator on its shared config template

Examples:
    python main.py launch 42
    python main.py --data-dir D:/Games/RomLauncher configure pcsx2
"""

from __future__ import annotations

import argparse
import asyncio
import sys
from pathlib import Path

from romlauncher.api.romm import RommApi
from romlauncher.config import Config
from romlauncher.context import AppContext
from romlauncher.core.asset_cache import AssetCacheManager, DownloadProgress
from romlauncher.core.launcher import GameLauncher
from romlauncher.core.layout import DataLayout
from romlauncher.core.reconcile import SaveReconciler
from romlauncher.core.recovery import CrashRecoveryScanner
from romlauncher.core.session import SessionBuilder
from romlauncher.data.asset_library import AssetLibrary
from romlauncher.logger import setup_logger
from romlauncher.models.save_snapshot import SaveChoice, SaveComparison
from romlauncher.plugins.registry import AdapterRegistry
from romlauncher.utils import format_size


def create_context(data_dir: Path | None = None, verbose: bool = False) -> AppContext:
    """Wire all services and return an AppContext."""
    config = Config(data_dir)
    layout = DataLayout(config.data_dir)

    setup_logger(layout.logs_dir, verbose)

    api = RommApi(config)
    registry = AdapterRegistry(config)

    library = AssetLibrary(config.data_dir)
    library.load()
    cache = AssetCacheManager(config, layout, library, api)

    sessions = SessionBuilder(layout)
    reconciler = SaveReconciler(config, layout, api)
    recovery = CrashRecoveryScanner(layout, registry)

    launcher = GameLauncher(layout, registry, cache, sessions, reconciler, recovery)

    return AppContext(
        config=config,
        layout=layout,
        api=api,
        registry=registry,
        library=library,
        cache=cache,
        sessions=sessions,
        reconciler=reconciler,
        recovery=recovery,
        launcher=launcher,
    )


# ── Console callbacks ──

def _print_progress(progress: DownloadProgress) -> None:
    if progress.already_available:
        print("Already available (100%)")
        return
    print(
        f"\r{progress.file_name}: {format_size(progress.downloaded)} / "
        f"{format_size(progress.total)} ({progress.percent:.0f}%)",
        end="",
        flush=True,
    )


def _format_choice_prompt(comparison: SaveComparison) -> str:
    lines = [f"Save conflict — recommended: {comparison.recommendation}"]
    if comparison.has_local and comparison.local_modified_at:
        lines.append(f"  [l] local save ({comparison.local_modified_at:%Y-%m-%d %H:%M})")
    for i, snap in enumerate(comparison.snapshots, 1):
        when = f"{snap.timestamp:%Y-%m-%d %H:%M}" if snap.timestamp else "unknown date"
        lines.append(f"  [{i}] cloud: {snap.file_name} ({when}, {snap.emulator or '?'})")
    lines.append("  [n] start without a save")
    lines.append("Choice: ")
    return "\n".join(lines)


async def _ask_choice(comparison: SaveComparison) -> SaveChoice | None:
    answer = (await asyncio.to_thread(input, _format_choice_prompt(comparison))).strip().lower()
    if answer in ("l", "local"):
        return SaveChoice.local()
    if answer in ("n", "none"):
        return SaveChoice.fresh()
    if answer.isdigit() and 1 <= int(answer) <= len(comparison.snapshots):
        return SaveChoice.cloud(comparison.snapshots[int(answer) - 1].id)
    return None


# ── Commands ──

async def _run(ctx: AppContext, args: argparse.Namespace) -> int:
    launcher = ctx.launcher

    if args.command == "recover":
        result = await launcher.recover_orphaned_saves()
        print(result.message if result.success else f"Error: {result.error}")
        return 0 if result.success else 1

    if args.command == "configure":
        result = await launcher.configure_emulator(args.emulator)
        if not result.success:
            print(f"Error: {result.error}")
            return 1
        print(f"{result.message} (pid {result.pid})")
        return 0

    if args.command == "delete":
        result = await launcher.delete_cached(args.game_id)
        print(result.message if result.success else f"Error: {result.error}")
        return 0 if result.success else 1

    try:
        asset = await ctx.api.get_asset(args.game_id)
    except Exception as e:
        print(f"Error: {e}")
        return 1

    if args.command == "ensure":
        result = await launcher.ensure_available(asset, _print_progress)
        print()
        print(result.message if result.success else f"Error: {result.error}")
        return 0 if result.success else 1

    if args.command == "check-saves":
        status = await launcher.check_saves(asset)
        if not status.success:
            print(f"Error: {status.error}")
            return 1
        print(f"local: {status.has_local}, cloud: {status.has_cloud} ({status.message})")
        return 0

    launch = await launcher.launch_with_reconciliation(asset, _print_progress, _ask_choice)
    print()
    if not launch.success:
        print(f"Error: {launch.error}")
        return 1
    print(f"{launch.message} (pid {launch.pid}), waiting for it to exit ...")
    sync = await launch.completion if launch.completion else None
    if sync is not None:
        print(sync.message)
        for err in sync.errors:
            print(f"Warning: {err}")
    return 0


def main() -> int:
    parser = argparse.ArgumentParser(description="Launch RomM games with synced saves.")
    parser.add_argument("--data-dir", type=Path, default=None, help="Data root (default: ~/Documents/RomLauncher)")
    parser.add_argument("-v", "--verbose", action="store_true", help="Debug output on the console")
    sub = parser.add_subparsers(dest="command", required=True)

    sub.add_parser("recover", help="Recover saves from crashed sessions")
    for name, help_text in (
        ("ensure", "Download / verify a game"),
        ("launch", "Launch a game"),
        ("delete", "Delete a cached game"),
        ("check-saves", "Show save status for a game"),
    ):
        p = sub.add_parser(name, help=help_text)
        p.add_argument("game_id", type=int, help="RomM ROM id")
    p = sub.add_parser("configure", help="Open an emulator in configuration mode")
    p.add_argument("emulator", help="Emulator key (ppsspp, dolphin, pcsx2)")

    args = parser.parse_args()
    ctx = create_context(args.data_dir, args.verbose)
    return asyncio.run(_run(ctx, args))


if __name__ == "__main__":
    sys.exit(main())
