"""Crash recovery — fold abandoned session directories back into persistent saves."""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Collection

from loguru import logger

from romlauncher.core.fileops import remove_path

if TYPE_CHECKING:
    from romlauncher.core.layout import DataLayout
    from romlauncher.plugins.registry import AdapterRegistry


@dataclass
class RecoveryResult:
    recovered: int = 0
    skipped: int = 0
    errors: list[str] = field(default_factory=list)


class CrashRecoveryScanner:
    """
    Finds ``saves/<platform>/game_<id>_session`` directories left behind
    by a crash or a killed process.

    Each one is extracted through the platform's adapter (generic flattening
    when none is registered) and deleted only after extraction succeeds.
    A failing session is logged and left in place; the scan carries on.
    """

    def __init__(self, layout: DataLayout, registry: AdapterRegistry) -> None:
        self._layout = layout
        self._registry = registry

    async def scan(self, skip_ids: Collection[int] = ()) -> RecoveryResult:
        """Recover every orphaned session except those of games in ``skip_ids`` (still running)."""
        return await asyncio.to_thread(self._scan, frozenset(skip_ids))

    def _scan(self, skip_ids: frozenset[int]) -> RecoveryResult:
        result = RecoveryResult()
        for platform, game_id, session_dir in self._layout.iter_session_dirs():
            if game_id in skip_ids:
                continue
            adapter = self._registry.for_recovery(platform)
            persistent = self._layout.save_dir(platform, game_id)
            try:
                files = adapter.extract_saves_from_session(session_dir, persistent)
            except Exception as e:
                msg = f"Failed to recover {session_dir}: {e}"
                logger.error(msg)
                result.errors.append(msg)
                continue

            try:
                remove_path(session_dir)
            except OSError as e:
                logger.warning(f"Could not remove orphaned session {session_dir}: {e}")

            if files:
                result.recovered += 1
                logger.info(
                    f"Recovered {len(files)} save file(s) for {platform} game {game_id} "
                    f"({adapter.display_name})"
                )
            else:
                result.skipped += 1
                logger.debug(f"Orphaned session {session_dir} held no saves")

        if result.recovered:
            logger.info(f"Crash recovery: {result.recovered} session(s) recovered")
        return result
