"""Abstract remote content API — the launcher's only view of the server."""

from __future__ import annotations

from abc import ABC, abstractmethod
from pathlib import Path
from typing import Callable

from romlauncher.models.game_asset import AssetFile, GameAsset
from romlauncher.models.save_snapshot import RemoteSaveSnapshot

# (bytes_downloaded, bytes_total); total is 0 when unknown
ByteProgress = Callable[[int, int], None]


class RemoteContentAPI(ABC):
    """Server collaborator consumed by the cache and save-reconciliation layers."""

    @abstractmethod
    async def get_asset(self, asset_id: int) -> GameAsset:
        ...

    async def list_files(self, asset_id: int) -> list[AssetFile]:
        """Declared content files of an asset."""
        asset = await self.get_asset(asset_id)
        return list(asset.files)

    @abstractmethod
    async def download_file(
        self,
        asset: GameAsset,
        file: AssetFile,
        dest: Path,
        on_progress: ByteProgress | None = None,
    ) -> Path:
        """Download one content file to ``dest``. Raises ``DownloadFailed``."""
        ...

    @abstractmethod
    async def list_save_snapshots(self, asset_id: int) -> list[RemoteSaveSnapshot]:
        ...

    @abstractmethod
    async def download_save_snapshot(self, snapshot: RemoteSaveSnapshot) -> bytes:
        """Packaged save archive bytes. Raises ``DownloadFailed``."""
        ...

    @abstractmethod
    async def upload_save(self, asset_id: int, archive_path: Path, emulator: str) -> dict:
        """Upload a save archive tagged with ``emulator``. Raises ``SaveSyncFailed``."""
        ...
