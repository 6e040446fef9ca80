"""RomM API client — ROM metadata, content downloads and save snapshots."""

from __future__ import annotations

import asyncio
from pathlib import Path
from typing import TYPE_CHECKING, Any
from urllib.parse import quote

import httpx
from loguru import logger

from romlauncher.api.base import ByteProgress, RemoteContentAPI
from romlauncher.errors import DownloadFailed, LauncherError, NotConfigured, SaveSyncFailed
from romlauncher.models.game_asset import AssetFile, GameAsset
from romlauncher.models.save_snapshot import RemoteSaveSnapshot

if TYPE_CHECKING:
    from romlauncher.config import Config

_CHUNK_SIZE = 1024 * 1024
_SAVE_MIME = "application/x-zip-compressed"


class RommApi(RemoteContentAPI):
    """RomM server client. One short-lived ``httpx.AsyncClient`` per call."""

    def __init__(
        self,
        config: Config,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._config = config
        self._transport = transport

    def _http_client(self, **kwargs: Any) -> httpx.AsyncClient:
        """Create an AsyncClient with auth and optional proxy (read from config each time)."""
        base_url = self._config.base_url
        if not base_url:
            raise NotConfigured("server", "base URL is not set")
        server = self._config.server
        username = server.get("username", "")
        if username:
            kwargs.setdefault("auth", httpx.BasicAuth(username, server.get("password", "")))
        proxy = self._config.proxy_url
        if proxy and self._transport is None:
            kwargs.setdefault("proxy", proxy)
        if self._transport is not None:
            kwargs.setdefault("transport", self._transport)
        kwargs.setdefault("timeout", self._config.http_timeout)
        return httpx.AsyncClient(base_url=base_url, follow_redirects=True, **kwargs)

    # ── ROMs ──

    async def get_asset(self, asset_id: int) -> GameAsset:
        try:
            async with self._http_client() as client:
                resp = await client.get(f"/api/roms/{asset_id}")
                resp.raise_for_status()
                data = resp.json()
        except httpx.HTTPError as e:
            raise LauncherError(f"Failed to fetch game {asset_id}: {e}") from e
        except ValueError as e:
            raise LauncherError(f"Server returned an invalid response for game {asset_id}: {e}") from e
        try:
            return GameAsset.from_api(data)
        except (KeyError, TypeError, ValueError, AttributeError) as e:
            raise LauncherError(f"Malformed metadata for game {asset_id}: {e}") from e

    async def download_file(
        self,
        asset: GameAsset,
        file: AssetFile,
        dest: Path,
        on_progress: ByteProgress | None = None,
    ) -> Path:
        """
        Stream one content file into ``dest``.

        Bytes land in ``<dest>.part`` and are renamed on completion; the
        partial file is removed on any failure or cancellation.
        """
        url = f"/api/roms/{asset.id}/content/{quote(file.file_name)}"
        part = dest.with_name(dest.name + ".part")
        dest.parent.mkdir(parents=True, exist_ok=True)
        timeout = httpx.Timeout(self._config.http_timeout, read=None)
        try:
            async with self._http_client(timeout=timeout) as client:
                async with client.stream("GET", url) as resp:
                    resp.raise_for_status()
                    total = int(resp.headers.get("content-length") or file.size or 0)
                    done = 0
                    with open(part, "wb") as f:
                        async for chunk in resp.aiter_bytes(_CHUNK_SIZE):
                            f.write(chunk)
                            done += len(chunk)
                            if on_progress:
                                on_progress(done, total)
            part.replace(dest)
        except (httpx.HTTPError, OSError) as e:
            raise DownloadFailed(f"Download of {file.file_name} failed: {e}") from e
        finally:
            part.unlink(missing_ok=True)

        logger.info(f"Downloaded {file.file_name} → {dest}")
        return dest

    # ── Saves ──

    async def list_save_snapshots(self, asset_id: int) -> list[RemoteSaveSnapshot]:
        try:
            async with self._http_client() as client:
                resp = await client.get("/api/saves", params={"rom_id": asset_id})
                resp.raise_for_status()
                data = resp.json()
        except httpx.HTTPError as e:
            raise LauncherError(f"Failed to list saves for game {asset_id}: {e}") from e
        except ValueError as e:
            raise LauncherError(f"Server returned an invalid save list for game {asset_id}: {e}") from e

        items = data.get("items", []) if isinstance(data, dict) else data
        if not isinstance(items, list):
            raise LauncherError(f"Server returned an invalid save list for game {asset_id}")
        snapshots: list[RemoteSaveSnapshot] = []
        for item in items:
            try:
                snapshots.append(RemoteSaveSnapshot.from_api(item))
            except (KeyError, TypeError, ValueError) as e:
                logger.warning(f"Skipping malformed save entry: {e}")
        return snapshots

    async def download_save_snapshot(self, snapshot: RemoteSaveSnapshot) -> bytes:
        path = snapshot.download_path or f"/api/saves/{snapshot.id}/content"
        try:
            async with self._http_client() as client:
                resp = await client.get(path)
                resp.raise_for_status()
                return resp.content
        except httpx.HTTPError as e:
            raise DownloadFailed(f"Download of save {snapshot.file_name} failed: {e}") from e

    async def upload_save(self, asset_id: int, archive_path: Path, emulator: str) -> dict:
        payload = await asyncio.to_thread(archive_path.read_bytes)
        files = {"saveFile": (archive_path.name, payload, _SAVE_MIME)}
        try:
            async with self._http_client() as client:
                resp = await client.post(
                    "/api/saves",
                    params={"rom_id": asset_id, "emulator": emulator},
                    data={"emulator": emulator},
                    files=files,
                )
                resp.raise_for_status()
        except httpx.HTTPError as e:
            raise SaveSyncFailed(f"Save upload failed: {e}") from e

        logger.info(f"Uploaded {archive_path.name} ({len(payload)} bytes) for game {asset_id}")
        try:
            return resp.json()
        except ValueError:
            return {}
