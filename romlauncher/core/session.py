"""Session environment builder — ephemeral per-launch emulator directories."""

from __future__ import annotations

import asyncio
from typing import TYPE_CHECKING

from loguru import logger

from romlauncher.core.fileops import remove_path
from romlauncher.errors import SaveSyncFailed

if TYPE_CHECKING:
    from pathlib import Path

    from romlauncher.core.layout import DataLayout
    from romlauncher.models.game_asset import GameAsset
    from romlauncher.models.session import SessionInfo
    from romlauncher.plugins.base import EmulatorAdapter


class SessionBuilder:
    """
    Materializes ``saves/<platform>/game_<id>_session/`` through an adapter.

    The session is seeded from ``emulatorConfigs/<emulator>/`` with its
    save subtree left empty.  It is never durable: anything not captured
    into persistent saves before ``discard`` is lost.
    """

    def __init__(self, layout: DataLayout) -> None:
        self._layout = layout

    async def build(self, adapter: EmulatorAdapter, asset: GameAsset) -> SessionInfo:
        session_dir = self._layout.session_dir(asset.platform, asset.id)
        config_dir = self._layout.emulator_config_dir(adapter.key)
        await asyncio.to_thread(self._fold_leftover, adapter, asset, session_dir)
        return await asyncio.to_thread(
            adapter.prepare_session_environment, asset, session_dir, config_dir,
        )

    def _fold_leftover(self, adapter: EmulatorAdapter, asset: GameAsset, session_dir: Path) -> None:
        """Capture saves from a session left behind by an earlier run before it is wiped."""
        if not session_dir.is_dir():
            return
        persistent = self._layout.save_dir(asset.platform, asset.id)
        try:
            files = adapter.extract_saves_from_session(session_dir, persistent)
        except OSError as e:
            raise SaveSyncFailed(
                f"Leftover session {session_dir} could not be saved, refusing to overwrite it: {e}"
            ) from e
        if files:
            logger.info(f"Recovered {len(files)} save file(s) from leftover session {session_dir}")

    async def discard(self, info: SessionInfo) -> None:
        if not info.session_dir.exists():
            return
        await asyncio.to_thread(remove_path, info.session_dir)
        logger.debug(f"Session removed: {info.session_dir}")
