"""Asset library — JSON registry of locally cached game assets."""

from __future__ import annotations

import json
from pathlib import Path

from loguru import logger

from romlauncher.models.game_asset import LocalAsset


class AssetLibrary:
    """
    Cached-asset registry — reads/writes asset_library.json.

    Key format: "{asset_id}"
    """

    def __init__(self, data_dir: Path) -> None:
        self._data_dir = data_dir
        self._path = data_dir / "asset_library.json"
        self._assets: dict[str, LocalAsset] = {}
        self._version = 1

    def load(self) -> None:
        """Load the registry from disk."""
        self._assets.clear()
        if not self._path.exists():
            return
        try:
            with open(self._path, encoding="utf-8") as f:
                data = json.load(f)
            self._version = data.get("version", 1)
            for key, entry in data.get("assets", {}).items():
                try:
                    self._assets[key] = LocalAsset.from_dict(entry)
                except (TypeError, KeyError, ValueError) as e:
                    logger.warning(f"Skipping malformed asset entry '{key}': {e}")
        except (json.JSONDecodeError, OSError) as e:
            logger.error(f"Failed to load asset library: {e}")

    def save(self) -> None:
        """Persist the registry to disk."""
        self._data_dir.mkdir(parents=True, exist_ok=True)
        data = {
            "version": self._version,
            "assets": {key: entry.to_dict() for key, entry in self._assets.items()},
        }
        tmp = self._path.with_suffix(".tmp")
        try:
            with open(tmp, "w", encoding="utf-8") as f:
                json.dump(data, f, ensure_ascii=False, indent=2)
            tmp.replace(self._path)
        except OSError as e:
            logger.error(f"Failed to save asset library: {e}")
            tmp.unlink(missing_ok=True)

    @staticmethod
    def make_key(asset_id: int) -> str:
        return str(asset_id)

    def add(self, entry: LocalAsset) -> None:
        self._assets[self.make_key(entry.id)] = entry
        self.save()

    def remove(self, asset_id: int) -> LocalAsset | None:
        entry = self._assets.pop(self.make_key(asset_id), None)
        if entry is not None:
            self.save()
        return entry

    def get(self, asset_id: int) -> LocalAsset | None:
        return self._assets.get(self.make_key(asset_id))

    def all_entries(self) -> list[LocalAsset]:
        return list(self._assets.values())

    def entries_by_platform(self, platform: str) -> list[LocalAsset]:
        return [e for e in self._assets.values() if e.asset.platform == platform]

    @property
    def count(self) -> int:
        return len(self._assets)
