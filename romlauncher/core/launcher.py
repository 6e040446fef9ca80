"""Game launcher — the caller-facing surface of the engine.

Every public coroutine returns a result object with ``success`` / ``error``;
no exception escapes it except cancellation.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from loguru import logger

from romlauncher.core.asset_cache import resolve_payload
from romlauncher.core.reconcile import SyncResult
from romlauncher.errors import LaunchInProgress, LauncherError
from romlauncher.models.session import LaunchState, LaunchTracker

if TYPE_CHECKING:
    from romlauncher.core.asset_cache import AssetCacheManager, ProgressCallback
    from romlauncher.core.layout import DataLayout
    from romlauncher.core.reconcile import ChoiceCallback, SaveReconciler
    from romlauncher.core.recovery import CrashRecoveryScanner
    from romlauncher.core.session import SessionBuilder
    from romlauncher.models.game_asset import GameAsset, LocalAsset
    from romlauncher.models.save_snapshot import SaveChoice
    from romlauncher.models.session import SessionInfo
    from romlauncher.plugins.base import EmulatorAdapter
    from romlauncher.plugins.registry import AdapterRegistry


@dataclass
class OperationResult:
    success: bool = True
    error: str = ""
    message: str = ""


@dataclass
class EnsureResult(OperationResult):
    local_asset: LocalAsset | None = None


@dataclass
class LaunchResult(OperationResult):
    pid: int | None = None
    choice: SaveChoice | None = None
    state: LaunchState = LaunchState.PREPARING
    # Resolves once saves are synced and the session is gone
    completion: asyncio.Task[SyncResult] | None = field(default=None, repr=False)


@dataclass
class SaveStatusResult(OperationResult):
    has_local: bool = False
    has_cloud: bool = False


@dataclass
class RecoveryResultSummary(OperationResult):
    recovered_count: int = 0


class GameLauncher:
    """
    Orchestrates one launch end to end:

        ensure_available → prepare session → compare saves → resolve choice
        → apply choice → spawn emulator → (exit) → sync saves → drop session

    Launches of the same game id are single-flight: a second launch while
    the first is still running is rejected.  Crash recovery runs before the
    first launch and again after any run whose session had to be kept;
    sessions of games still running are never touched by it.
    """

    def __init__(
        self,
        layout: DataLayout,
        registry: AdapterRegistry,
        cache: AssetCacheManager,
        sessions: SessionBuilder,
        reconciler: SaveReconciler,
        recovery: CrashRecoveryScanner,
    ) -> None:
        self._layout = layout
        self._registry = registry
        self._cache = cache
        self._sessions = sessions
        self._reconciler = reconciler
        self._recovery = recovery
        self._in_flight: set[int] = set()
        self._recovered = False
        self._recovery_lock = asyncio.Lock()
        self._completions: dict[int, asyncio.Task[SyncResult]] = {}
        self._background: set[asyncio.Task] = set()

    @property
    def in_flight(self) -> frozenset[int]:
        return frozenset(self._in_flight)

    # ── Cache ──

    async def ensure_available(
        self,
        asset: GameAsset,
        on_progress: ProgressCallback | None = None,
    ) -> EnsureResult:
        try:
            local = await self._cache.ensure_available(asset, on_progress)
        except LauncherError as e:
            logger.error(f"Game {asset.id} unavailable: {e.message}")
            return EnsureResult(success=False, error=e.message)
        except Exception as e:
            logger.exception(f"Game {asset.id} unavailable")
            return EnsureResult(success=False, error=f"Unexpected error: {e}")
        return EnsureResult(local_asset=local, message=f"Game {asset.id} is ready")

    async def delete_cached(self, asset_id: int) -> OperationResult:
        if asset_id in self._in_flight:
            return OperationResult(success=False, error=f"Game {asset_id} is currently running")
        try:
            local = await self._cache.delete_cached(asset_id)
        except LauncherError as e:
            logger.error(e.message)
            return OperationResult(success=False, error=e.message)
        except Exception as e:
            logger.exception(f"Deleting game {asset_id} failed")
            return OperationResult(success=False, error=f"Unexpected error: {e}")
        return OperationResult(message=f"Removed {local.local_path}")

    # ── Saves ──

    async def check_saves(self, asset: GameAsset) -> SaveStatusResult:
        try:
            comparison = await self._reconciler.compare_saves(asset)
        except LauncherError as e:
            return SaveStatusResult(success=False, error=e.message)
        except Exception as e:
            logger.exception(f"Save check for game {asset.id} failed")
            return SaveStatusResult(success=False, error=f"Unexpected error: {e}")
        return SaveStatusResult(
            has_local=comparison.has_local,
            has_cloud=comparison.has_cloud,
            message=str(comparison.recommendation),
        )

    async def recover_orphaned_saves(self) -> RecoveryResultSummary:
        """Fold abandoned sessions into persistent saves. Refused while a game runs."""
        if self._in_flight:
            return RecoveryResultSummary(
                success=False, error="Cannot recover saves while a game is running",
            )
        try:
            async with self._recovery_lock:
                result = await self._recovery.scan()
                self._recovered = True
        except Exception as e:
            logger.exception("Crash recovery failed")
            return RecoveryResultSummary(success=False, error=f"Unexpected error: {e}")
        summary = RecoveryResultSummary(
            recovered_count=result.recovered,
            message=f"Recovered {result.recovered} session(s)",
        )
        if result.errors:
            summary.error = "; ".join(result.errors)
        return summary

    async def _ensure_recovered(self, launching: int) -> None:
        async with self._recovery_lock:
            if self._recovered:
                return
            result = await self._recovery.scan(self._in_flight - {launching})
            self._recovered = True
            if result.recovered:
                logger.info(f"Recovered {result.recovered} orphaned session(s) before launch")

    # ── Launch ──

    async def launch_with_reconciliation(
        self,
        asset: GameAsset,
        on_progress: ProgressCallback | None = None,
        on_save_choice_needed: ChoiceCallback | None = None,
    ) -> LaunchResult:
        tracker = LaunchTracker(asset.id)
        if asset.id in self._in_flight:
            return LaunchResult(
                success=False,
                error=LaunchInProgress(asset.id).message,
                state=LaunchState.FAILED,
            )
        self._in_flight.add(asset.id)

        info: SessionInfo | None = None
        try:
            adapter = self._registry.for_platform(asset.platform)
            adapter.require_executable()
            await self._ensure_recovered(asset.id)

            local = await self._cache.ensure_available(asset, on_progress)
            payload = resolve_payload(local)

            info = await self._sessions.build(adapter, asset)
            tracker.advance(LaunchState.CHECK_SAVES)
            comparison = await self._reconciler.compare_saves(asset)
            choice = await self._reconciler.resolve_choice(
                comparison, on_save_choice_needed, tracker,
            )
            await self._reconciler.apply_choice(choice, info, comparison)

            process = await adapter.launch(payload, info)
            tracker.advance(LaunchState.RUNNING)
        except LauncherError as e:
            logger.error(f"Launch of game {asset.id} failed: {e.message}")
            await self._abort(asset, info, tracker)
            return LaunchResult(success=False, error=e.message, state=tracker.state)
        except asyncio.CancelledError:
            await self._abort(asset, info, tracker)
            raise
        except Exception as e:
            logger.exception(f"Launch of game {asset.id} failed")
            await self._abort(asset, info, tracker)
            return LaunchResult(success=False, error=f"Unexpected error: {e}", state=tracker.state)

        completion = asyncio.create_task(
            self._run_to_completion(asset, adapter, info, process, tracker),
            name=f"game-{asset.id}-session",
        )
        self._completions[asset.id] = completion
        logger.info(f"Game {asset.id} running (pid {process.pid})")
        return LaunchResult(
            pid=process.pid,
            choice=choice,
            state=tracker.state,
            completion=completion,
            message=f"Started {adapter.display_name}",
        )

    async def _abort(
        self, asset: GameAsset, info: SessionInfo | None, tracker: LaunchTracker,
    ) -> None:
        """Undo a launch that failed before the emulator started."""
        if not tracker.is_terminal:
            tracker.advance(LaunchState.FAILED)
        try:
            if info is not None:
                await self._sessions.discard(info)
        finally:
            self._in_flight.discard(asset.id)

    async def _run_to_completion(
        self,
        asset: GameAsset,
        adapter: EmulatorAdapter,
        info: SessionInfo,
        process: asyncio.subprocess.Process,
        tracker: LaunchTracker,
    ) -> SyncResult:
        try:
            code = await process.wait()
            logger.info(f"{adapter.display_name} exited with code {code}")
            tracker.advance(LaunchState.SYNCING)
            result = await self._reconciler.sync_after_exit(asset, info, adapter)
            if result.local_failed:
                logger.warning(f"Keeping session {info.session_dir} for crash recovery")
                self._recovered = False
            else:
                await self._sessions.discard(info)
            tracker.advance(LaunchState.CLEANED)
            logger.info(f"Game {asset.id}: {result.message}")
            return result
        except Exception as e:
            logger.exception(f"Post-exit handling for game {asset.id} failed")
            self._recovered = False
            if not tracker.is_terminal:
                tracker.advance(LaunchState.FAILED)
            return SyncResult(local_failed=True, errors=[str(e)])
        finally:
            self._in_flight.discard(asset.id)
            self._completions.pop(asset.id, None)

    async def wait_for_completion(self, asset_id: int) -> SyncResult | None:
        task = self._completions.get(asset_id)
        if task is None:
            return None
        return await task

    # ── Configuration mode ──

    async def configure_emulator(self, key: str) -> LaunchResult:
        """Open an emulator on the shared config template so its settings carry into every session."""
        adapter = self._registry.get(key)
        if adapter is None:
            return LaunchResult(success=False, error=f"Unknown emulator '{key}'")
        try:
            process = await adapter.launch_config_mode(self._layout.emulator_config_dir(key))
        except LauncherError as e:
            logger.error(e.message)
            return LaunchResult(success=False, error=e.message)
        except Exception as e:
            logger.exception(f"Configuration mode for {key} failed")
            return LaunchResult(success=False, error=f"Unexpected error: {e}")

        watcher = asyncio.create_task(process.wait(), name=f"{key}-config")
        self._background.add(watcher)
        watcher.add_done_callback(self._background.discard)
        return LaunchResult(pid=process.pid, message=f"{adapter.display_name} opened in configuration mode")
