"""Asset cache manager — download-vs-reuse decisions, extraction and integrity.

Integrity policy after a download is asymmetric by file class:

  • PAYLOAD   (raw disc/ROM image)   strict — a mismatch aborts
  • CONTAINER (ZIP)                  lenient — a mismatch is only logged,
                                      the declared hash may describe the
                                      archive rather than its members
  • IGNORED / OTHER                  not verified
"""

from __future__ import annotations

import asyncio
import errno
from dataclasses import dataclass
from enum import StrEnum
from pathlib import Path
from typing import TYPE_CHECKING, Callable

from loguru import logger

from romlauncher.core.archive import extract_zip, is_zip_file
from romlauncher.core.fileops import list_files, remove_path
from romlauncher.core.hasher import verify_async
from romlauncher.errors import (
    ExtractionFailed,
    HashComputationError,
    IntegrityFailed,
    LauncherError,
)
from romlauncher.models.game_asset import AssetFile, GameAsset, LocalAsset
from romlauncher.utils import format_size

if TYPE_CHECKING:
    from romlauncher.api.base import RemoteContentAPI
    from romlauncher.config import Config
    from romlauncher.core.layout import DataLayout
    from romlauncher.data.asset_library import AssetLibrary

PAYLOAD_EXTENSIONS = frozenset({
    ".iso", ".cso", ".pbp", ".elf", ".gcm", ".wbfs", ".ciso", ".gcz",
    ".rvz", ".bin", ".cue", ".gs", ".chd",
})

IGNORED_EXTENSIONS = frozenset({
    ".jpg", ".jpeg", ".png", ".gif", ".bmp", ".webp",
    ".txt", ".nfo", ".md", ".pdf", ".htm", ".html", ".xml", ".json", ".sfv",
    ".7z", ".rar", ".tar", ".gz", ".bz2",
})

# Preferred launch target when several payloads are present
_PAYLOAD_PRIORITY = (
    ".cue", ".iso", ".gcm", ".rvz", ".wbfs", ".ciso", ".gcz",
    ".cso", ".pbp", ".chd", ".elf", ".bin", ".gs",
)

# Windows "file in use" (ERROR_SHARING_VIOLATION / ERROR_LOCK_VIOLATION)
_WINERROR_IN_USE = {32, 33}


class FileClass(StrEnum):
    PAYLOAD = "payload"
    CONTAINER = "container"
    IGNORED = "ignored"
    OTHER = "other"


def classify(path: Path) -> FileClass:
    suffix = path.suffix.lower()
    if suffix in PAYLOAD_EXTENSIONS:
        return FileClass.PAYLOAD
    if suffix in IGNORED_EXTENSIONS:
        return FileClass.IGNORED
    if suffix == ".zip" or (path.is_file() and is_zip_file(path)):
        return FileClass.CONTAINER
    return FileClass.OTHER


def find_payload(files: list[Path]) -> Path | None:
    """Pick the file to hand to the emulator."""
    payloads = [f for f in files if classify(f) is FileClass.PAYLOAD]
    if not payloads:
        return None
    for ext in _PAYLOAD_PRIORITY:
        for f in payloads:
            if f.suffix.lower() == ext:
                return f
    return payloads[0]


def resolve_payload(local: LocalAsset) -> Path:
    """Launch target for a cached asset. Raises ``ExtractionFailed`` if there is none."""
    files = local.absolute_files()
    payload = find_payload(files)
    if payload is not None:
        return payload
    others = [f for f in files if classify(f) is FileClass.OTHER]
    if others:
        return others[0]
    raise ExtractionFailed(f"No launchable file found for game {local.id}")


@dataclass(frozen=True)
class DownloadProgress:
    asset_id: int
    file_name: str
    downloaded: int
    total: int
    already_available: bool = False

    @property
    def percent(self) -> float:
        if self.already_available:
            return 100.0
        if self.total <= 0:
            return 0.0
        return min(100.0, self.downloaded * 100.0 / self.total)


ProgressCallback = Callable[[DownloadProgress], None]


def _is_in_use(error: OSError) -> bool:
    if getattr(error, "winerror", None) in _WINERROR_IN_USE:
        return True
    return error.errno in (errno.EBUSY, errno.ETXTBSY)


class AssetCacheManager:
    """Owns ``roms/<platform>/game_<id>/`` and the registry of cached assets."""

    def __init__(
        self,
        config: Config,
        layout: DataLayout,
        library: AssetLibrary,
        api: RemoteContentAPI,
    ) -> None:
        self._config = config
        self._layout = layout
        self._library = library
        self._api = api

    # ── Public ──

    async def ensure_available(
        self,
        asset: GameAsset,
        on_progress: ProgressCallback | None = None,
    ) -> LocalAsset:
        """
        Return a launchable ``LocalAsset``, downloading only when needed.

        A registered asset whose files still verify is returned without any
        network traffic.  Otherwise every declared file is downloaded,
        verified, and containers are extracted in place.
        """
        dest_dir = self._layout.asset_dir(asset.platform, asset.id)
        local = self._library.get(asset.id)

        if local is not None or dest_dir.is_dir():
            cached_dir = local.local_path if local is not None else dest_dir
            if await self._cached_copy_valid(asset, cached_dir):
                local = LocalAsset(asset, cached_dir, await self._collect_files(asset, cached_dir))
                self._library.add(local)
                logger.info(f"Game {asset.id} already available at {cached_dir}")
                if on_progress:
                    on_progress(DownloadProgress(asset.id, "", 0, 0, already_available=True))
                return local
            logger.warning(f"Cached copy of game {asset.id} is incomplete or invalid, re-downloading")
            self._library.remove(asset.id)

        await self._download_all(asset, dest_dir, on_progress)
        await self._verify_downloaded(asset, dest_dir)
        files = await self._collect_files(asset, dest_dir)

        local = LocalAsset(asset, dest_dir, files)
        if any(classify(dest_dir / f.file_name) is FileClass.CONTAINER for f in asset.files):
            if find_payload(local.absolute_files()) is None:
                raise ExtractionFailed(f"Archive for game {asset.id} contains no recognizable game file")
        self._library.add(local)
        logger.info(f"Game {asset.id} cached: {len(files)} file(s) in {dest_dir}")
        return local

    def get_cached(self, asset_id: int) -> LocalAsset | None:
        return self._library.get(asset_id)

    async def delete_cached(self, asset_id: int) -> LocalAsset:
        """Remove a cached asset from disk and from the registry."""
        local = self._library.get(asset_id)
        if local is None:
            raise LauncherError(f"Game {asset_id} is not cached")
        try:
            await asyncio.to_thread(remove_path, local.local_path)
        except OSError as e:
            if _is_in_use(e):
                raise LauncherError(
                    f"Cannot delete game {asset_id}: its files are in use by another "
                    f"program. Close the emulator and try again."
                ) from e
            if isinstance(e, PermissionError):
                raise LauncherError(
                    f"Cannot delete game {asset_id}: permission denied for {local.local_path}"
                ) from e
            raise LauncherError(f"Cannot delete game {asset_id}: {e}") from e
        self._library.remove(asset_id)
        logger.info(f"Deleted cached game {asset_id} ({local.local_path})")
        return local

    # ── Download ──

    async def _download_all(
        self,
        asset: GameAsset,
        dest_dir: Path,
        on_progress: ProgressCallback | None,
    ) -> None:
        dest_dir.mkdir(parents=True, exist_ok=True)
        grand_total = asset.total_size
        offset = 0
        logger.info(
            f"Downloading game {asset.id} ({asset.name}, "
            f"{len(asset.files)} file(s), {format_size(grand_total)})"
        )
        for file in asset.files:
            def _report(done: int, total: int, _file: AssetFile = file, _offset: int = offset) -> None:
                if on_progress is None:
                    return
                overall = grand_total or (_offset + total)
                on_progress(DownloadProgress(asset.id, _file.file_name, _offset + done, overall))

            await self._api.download_file(asset, file, dest_dir / file.file_name, _report)
            offset += file.size or (dest_dir / file.file_name).stat().st_size

    # ── Integrity ──

    async def _check(self, path: Path, file: AssetFile, strict: bool) -> bool:
        """
        Verify one declared file under the asymmetric policy.

        A mismatching payload raises ``IntegrityFailed`` when ``strict`` is
        set and returns False otherwise.
        """
        hashes = file.declared_hashes
        kind = classify(path)
        if not hashes or kind in (FileClass.IGNORED, FileClass.OTHER):
            return True
        verdict = await verify_async(path, hashes, self._config.hash_chunk_size)
        if verdict.valid:
            logger.debug(f"Verified {path.name}")
            return True
        if kind is FileClass.CONTAINER:
            logger.warning(
                f"Hash mismatch on archive {path.name} ({verdict.describe()}); "
                f"continuing, declared hash may describe the archive contents"
            )
            return True
        if strict:
            raise IntegrityFailed(path, verdict.describe())
        return False

    async def _cached_copy_valid(self, asset: GameAsset, cached_dir: Path) -> bool:
        for file in asset.files:
            path = cached_dir / file.file_name
            if not path.is_file():
                return False
            try:
                if not await self._check(path, file, strict=False):
                    logger.warning(f"Cached {path.name} no longer matches its declared hashes")
                    return False
            except HashComputationError as e:
                logger.warning(str(e))
                return False
        return bool(asset.files)

    async def _verify_downloaded(self, asset: GameAsset, dest_dir: Path) -> None:
        for file in asset.files:
            path = dest_dir / file.file_name
            try:
                await self._check(path, file, strict=True)
            except IntegrityFailed:
                path.unlink(missing_ok=True)
                raise

    # ── Extraction ──

    async def _collect_files(self, asset: GameAsset, cache_dir: Path) -> list[str]:
        """Extract containers (idempotently) and list everything on disk."""
        for file in asset.files:
            path = cache_dir / file.file_name
            if path.is_file() and classify(path) is FileClass.CONTAINER:
                extracted = await asyncio.to_thread(extract_zip, path, cache_dir)
                logger.debug(f"{path.name}: {len(extracted)} file(s) extracted")
        files = await asyncio.to_thread(list_files, cache_dir)
        return [
            f.relative_to(cache_dir).as_posix()
            for f in files
            if not f.name.endswith(".part")
        ]
