"""Save reconciliation — local vs. server save state around one emulator run.

    CHECK_SAVES → NEEDS_CHOICE → AWAITING_CHOICE → RESOLVED → RUNNING → SYNCING → CLEANED
    CHECK_SAVES ───────────────────────────────→ RESOLVED   (no ambiguity)
"""

from __future__ import annotations

import asyncio
import tempfile
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import TYPE_CHECKING, Awaitable, Callable

from loguru import logger

from romlauncher.core.archive import pack_directory, unpack_bytes
from romlauncher.core.fileops import clear_dir, copy_tree, list_files, newest_mtime
from romlauncher.errors import ChoiceTimeout, LauncherError, SaveSyncFailed
from romlauncher.models.save_snapshot import (
    ChoiceKind,
    Recommendation,
    RemoteSaveSnapshot,
    SaveChoice,
    SaveComparison,
    sort_newest_first,
)
from romlauncher.models.session import LaunchState
from romlauncher.utils import upload_archive_name

if TYPE_CHECKING:
    from romlauncher.api.base import RemoteContentAPI
    from romlauncher.config import Config
    from romlauncher.core.layout import DataLayout
    from romlauncher.models.game_asset import GameAsset
    from romlauncher.models.session import LaunchTracker, SessionInfo
    from romlauncher.plugins.base import EmulatorAdapter

ChoiceCallback = Callable[[SaveComparison], Awaitable[SaveChoice | None]]


@dataclass
class SyncResult:
    """Outcome of capturing a session's saves after the emulator exits."""

    uploaded: bool = False
    mirrored_files: list[str] = field(default_factory=list)
    message: str = ""
    errors: list[str] = field(default_factory=list)
    local_failed: bool = False

    @property
    def success(self) -> bool:
        return not self.errors


class SaveReconciler:
    def __init__(self, config: Config, layout: DataLayout, api: RemoteContentAPI) -> None:
        self._config = config
        self._layout = layout
        self._api = api

    # ── Compare ──

    async def compare_saves(self, asset: GameAsset) -> SaveComparison:
        save_dir = self._layout.save_dir(asset.platform, asset.id)
        mtime = await asyncio.to_thread(newest_mtime, save_dir)
        snapshots = sort_newest_first(await self._api.list_save_snapshots(asset.id))
        comparison = SaveComparison(
            asset_id=asset.id,
            has_local=mtime is not None,
            local_modified_at=(
                datetime.fromtimestamp(mtime, tz=timezone.utc) if mtime is not None else None
            ),
            snapshots=snapshots,
        )
        logger.info(
            f"Saves for game {asset.id}: local={comparison.has_local}, "
            f"cloud={len(snapshots)} snapshot(s) → {comparison.recommendation}"
        )
        return comparison

    # ── Resolve ──

    @staticmethod
    def auto_choice(comparison: SaveComparison) -> SaveChoice:
        """Resolution when no choice is required."""
        rec = comparison.recommendation
        if rec is Recommendation.LOCAL_ONLY:
            return SaveChoice.local()
        if rec is Recommendation.CLOUD_ONLY and comparison.newest_snapshot is not None:
            return SaveChoice.cloud(comparison.newest_snapshot.id)
        return SaveChoice.fresh()

    async def resolve_choice(
        self,
        comparison: SaveComparison,
        on_choice_needed: ChoiceCallback | None = None,
        tracker: LaunchTracker | None = None,
    ) -> SaveChoice:
        """
        Decide which save state the session starts from.

        Ambiguous cases are handed to ``on_choice_needed`` with a bounded
        wait; no answer (no callback, ``None``, or timeout) means "local".
        """
        def _advance(state: LaunchState) -> None:
            if tracker is not None:
                tracker.advance(state)

        if not comparison.choice_required:
            auto = self.auto_choice(comparison)
            _advance(LaunchState.RESOLVED)
            logger.info(f"Game {comparison.asset_id}: auto-resolved to {auto.kind}")
            return auto

        _advance(LaunchState.NEEDS_CHOICE)
        _advance(LaunchState.AWAITING_CHOICE)
        choice: SaveChoice | None = None
        if on_choice_needed is None:
            logger.warning(f"Game {comparison.asset_id}: save choice needed but nobody to ask")
        else:
            timeout = self._config.save_choice_timeout
            try:
                choice = await asyncio.wait_for(on_choice_needed(comparison), timeout)
            except asyncio.TimeoutError:
                logger.warning(str(ChoiceTimeout(
                    f"No save choice for game {comparison.asset_id} within {timeout:.0f}s"
                )))
        if choice is None:
            choice = SaveChoice.local()
            logger.info(f"Game {comparison.asset_id}: defaulting to local save")
        _advance(LaunchState.RESOLVED)
        return choice

    # ── Apply ──

    async def apply_choice(
        self,
        choice: SaveChoice,
        info: SessionInfo,
        comparison: SaveComparison,
    ) -> list[str]:
        """Materialize the chosen save state into the session's save root."""
        if choice.kind is ChoiceKind.LOCAL:
            files = await asyncio.to_thread(self._restore_local, info)
            logger.info(f"Loaded {len(files)} local save file(s) into session")
            return files

        if choice.kind is ChoiceKind.CLOUD:
            snapshot = self._pick_snapshot(choice, comparison)
            data = await self._api.download_save_snapshot(snapshot)
            files = await asyncio.to_thread(self._unpack_snapshot, data, info)
            logger.info(f"Loaded cloud save {snapshot.file_name} ({len(files)} file(s)) into session")
            return files

        await asyncio.to_thread(self._clear_saves, info)
        logger.info(f"Starting game {info.asset_id} with a blank save")
        return []

    @staticmethod
    def _pick_snapshot(choice: SaveChoice, comparison: SaveComparison) -> RemoteSaveSnapshot:
        if choice.snapshot_id is None:
            if comparison.newest_snapshot is None:
                raise LauncherError(f"No cloud save exists for game {comparison.asset_id}")
            return comparison.newest_snapshot
        for snapshot in comparison.snapshots:
            if snapshot.id == choice.snapshot_id:
                return snapshot
        raise LauncherError(f"Unknown cloud save {choice.snapshot_id} for game {comparison.asset_id}")

    @staticmethod
    def _clear_saves(info: SessionInfo) -> None:
        for sub in info.save_subdirs:
            clear_dir(info.save_root / sub)

    def _restore_local(self, info: SessionInfo) -> list[str]:
        self._clear_saves(info)
        persistent = self._layout.save_dir(info.platform, info.asset_id)
        return copy_tree(persistent, info.save_root)

    def _unpack_snapshot(self, data: bytes, info: SessionInfo) -> list[str]:
        self._clear_saves(info)
        return unpack_bytes(data, info.save_root)

    # ── After exit ──

    async def sync_after_exit(
        self,
        asset: GameAsset,
        info: SessionInfo,
        adapter: EmulatorAdapter,
    ) -> SyncResult:
        """
        Upload the session's saves, then mirror them into persistent storage.

        Upload failure is reported but never blocks the local mirror.
        """
        result = SyncResult()
        files = await asyncio.to_thread(
            lambda: [f for p in info.save_paths() for f in list_files(p)]
        )
        if not files:
            result.message = "No saves to upload"
            logger.info(f"Game {asset.id}: no saves to upload")
            return result

        try:
            with tempfile.TemporaryDirectory(prefix="romlauncher_upload_") as tmp_dir:
                archive = Path(tmp_dir) / upload_archive_name(asset.name, datetime.now())
                await asyncio.to_thread(pack_directory, info.save_root, archive, info.save_subdirs)
                await self._api.upload_save(asset.id, archive, adapter.key)
                result.uploaded = True
        except LauncherError as e:
            error = SaveSyncFailed(f"Upload failed, saves kept locally: {e.message}")
            result.errors.append(error.message)
            logger.warning(error.message)
        except OSError as e:
            error = SaveSyncFailed(f"Could not package saves for upload, saves kept locally: {e}")
            result.errors.append(error.message)
            logger.warning(error.message)

        persistent = self._layout.save_dir(asset.platform, asset.id)
        try:
            result.mirrored_files = await asyncio.to_thread(
                adapter.extract_saves_from_session, info.session_dir, persistent,
            )
        except OSError as e:
            error = SaveSyncFailed(f"Could not store saves locally: {e}")
            result.local_failed = True
            result.errors.append(error.message)
            logger.error(error.message)

        result.message = (
            f"Saved {len(result.mirrored_files)} file(s)"
            + (", uploaded" if result.uploaded else ", upload pending")
        )
        return result
