"""Shared fixtures: an in-memory RomM stand-in and a wired-up service stack."""

from __future__ import annotations

import hashlib
import io
import zipfile
import zlib
from pathlib import Path

import pytest

from romlauncher.api.base import ByteProgress, RemoteContentAPI
from romlauncher.config import Config
from romlauncher.core.asset_cache import AssetCacheManager
from romlauncher.core.launcher import GameLauncher
from romlauncher.core.layout import DataLayout
from romlauncher.core.reconcile import SaveReconciler
from romlauncher.core.recovery import CrashRecoveryScanner
from romlauncher.core.session import SessionBuilder
from romlauncher.data.asset_library import AssetLibrary
from romlauncher.errors import DownloadFailed, LauncherError, SaveSyncFailed
from romlauncher.models.game_asset import AssetFile, GameAsset
from romlauncher.models.save_snapshot import RemoteSaveSnapshot
from romlauncher.plugins.registry import AdapterRegistry


def hashed_file(name: str, data: bytes, *, crc32: str | None = None, md5: str = "", sha1: str = "") -> AssetFile:
    """AssetFile declaring the real CRC32 of ``data`` unless overridden."""
    return AssetFile(
        file_name=name,
        size=len(data),
        crc32=crc32 if crc32 is not None else f"{zlib.crc32(data) & 0xFFFFFFFF:08x}",
        md5=md5,
        sha1=sha1,
    )


def md5_of(data: bytes) -> str:
    return hashlib.md5(data).hexdigest()


def zip_bytes(members: dict[str, bytes]) -> bytes:
    buf = io.BytesIO()
    with zipfile.ZipFile(buf, "w") as zf:
        for name, data in members.items():
            zf.writestr(name, data)
    return buf.getvalue()


class FakeApi(RemoteContentAPI):
    """Serves content from dicts and records every call."""

    def __init__(self) -> None:
        self.assets: dict[int, GameAsset] = {}
        self.content: dict[tuple[int, str], bytes] = {}
        self.snapshots: dict[int, list[RemoteSaveSnapshot]] = {}
        self.snapshot_data: dict[int, bytes] = {}
        self.uploads: list[tuple[int, str, str, bytes]] = []
        self.download_calls = 0
        self.list_save_calls = 0
        self.fail_uploads = False
        self.fail_downloads = False

    def add_asset(self, asset: GameAsset, content: dict[str, bytes]) -> GameAsset:
        self.assets[asset.id] = asset
        for name, data in content.items():
            self.content[(asset.id, name)] = data
        return asset

    def add_snapshot(self, asset_id: int, snapshot: RemoteSaveSnapshot, data: bytes) -> None:
        self.snapshots.setdefault(asset_id, []).append(snapshot)
        self.snapshot_data[snapshot.id] = data

    async def get_asset(self, asset_id: int) -> GameAsset:
        if asset_id not in self.assets:
            raise LauncherError(f"Failed to fetch game {asset_id}: 404")
        return self.assets[asset_id]

    async def download_file(
        self,
        asset: GameAsset,
        file: AssetFile,
        dest: Path,
        on_progress: ByteProgress | None = None,
    ) -> Path:
        self.download_calls += 1
        if self.fail_downloads:
            raise DownloadFailed(f"Download of {file.file_name} failed: connection reset")
        data = self.content[(asset.id, file.file_name)]
        dest.parent.mkdir(parents=True, exist_ok=True)
        dest.write_bytes(data)
        if on_progress:
            on_progress(len(data), len(data))
        return dest

    async def list_save_snapshots(self, asset_id: int) -> list[RemoteSaveSnapshot]:
        self.list_save_calls += 1
        return list(self.snapshots.get(asset_id, []))

    async def download_save_snapshot(self, snapshot: RemoteSaveSnapshot) -> bytes:
        return self.snapshot_data[snapshot.id]

    async def upload_save(self, asset_id: int, archive_path: Path, emulator: str) -> dict:
        if self.fail_uploads:
            raise SaveSyncFailed("Save upload failed: 503 Service Unavailable")
        self.uploads.append((asset_id, archive_path.name, emulator, archive_path.read_bytes()))
        return {"id": len(self.uploads)}


@pytest.fixture
def data_dir(tmp_path: Path) -> Path:
    return tmp_path / "data"


@pytest.fixture
def config(data_dir: Path) -> Config:
    return Config(data_dir=data_dir)


@pytest.fixture
def layout(data_dir: Path) -> DataLayout:
    return DataLayout(data_dir)


@pytest.fixture
def api() -> FakeApi:
    return FakeApi()


@pytest.fixture
def library(data_dir: Path) -> AssetLibrary:
    return AssetLibrary(data_dir)


@pytest.fixture
def cache(config: Config, layout: DataLayout, library: AssetLibrary, api: FakeApi) -> AssetCacheManager:
    return AssetCacheManager(config, layout, library, api)


@pytest.fixture
def registry(config: Config) -> AdapterRegistry:
    return AdapterRegistry(config)


@pytest.fixture
def reconciler(config: Config, layout: DataLayout, api: FakeApi) -> SaveReconciler:
    return SaveReconciler(config, layout, api)


@pytest.fixture
def launcher(
    layout: DataLayout,
    registry: AdapterRegistry,
    cache: AssetCacheManager,
    reconciler: SaveReconciler,
) -> GameLauncher:
    return GameLauncher(
        layout,
        registry,
        cache,
        SessionBuilder(layout),
        reconciler,
        CrashRecoveryScanner(layout, registry),
    )
