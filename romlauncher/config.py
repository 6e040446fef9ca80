"""Application configuration — JSON-based, with file locking and batch update support."""

from __future__ import annotations

import json
import threading
from contextlib import contextmanager
from pathlib import Path
from typing import Any, Iterator

from loguru import logger

_DEFAULT_DATA_DIR = Path.home() / "Documents" / "RomLauncher"

# platform slug → emulator key
_DEFAULT_PLATFORMS: dict[str, str] = {
    "psp": "ppsspp",
    "ps2": "pcsx2",
    "wii": "dolphin",
    "ngc": "dolphin",
    "gamecube": "dolphin",
}


class Config:
    """
    JSON-based launcher configuration with file locking.

    Instances are passed explicitly to each service; nothing reads
    configuration from module state.
    """

    _DEFAULTS: dict[str, Any] = {
        "server": {
            "base_url": "",
            "username": "",
            "password": "",
            "timeout": 30,
            "proxy_protocol": "http",
            "proxy_host": "",
            "proxy_port": "",
        },
        # emulator key → {"path": str, "args": list[str] | None}
        "emulators": {},
        "platforms": dict(_DEFAULT_PLATFORMS),
        "save_choice_timeout": 300,
        "hash_chunk_mb": 32,
    }

    def __init__(self, data_dir: Path | None = None) -> None:
        self._data: dict[str, Any] = {}
        self._dir = data_dir or _DEFAULT_DATA_DIR
        self._path = self._dir / "config.json"
        self._lock = threading.Lock()
        self._defer_save = False
        self._load()

    def _load(self) -> None:
        """Load config from disk, merging with defaults."""
        self._data = json.loads(json.dumps(self._DEFAULTS))
        if self._path.exists():
            try:
                with open(self._path, encoding="utf-8") as f:
                    user_data = json.load(f)
                self._deep_merge(self._data, user_data)
            except (json.JSONDecodeError, OSError) as e:
                logger.warning(f"Failed to load config, using defaults: {e}")

    def _deep_merge(self, base: dict, override: dict) -> None:
        for key, value in override.items():
            if key in base and isinstance(base[key], dict) and isinstance(value, dict):
                self._deep_merge(base[key], value)
            else:
                base[key] = value

    def _save(self) -> None:
        if self._defer_save:
            return
        with self._lock:
            self._dir.mkdir(parents=True, exist_ok=True)
            tmp_path = self._path.with_suffix(".tmp")
            try:
                with open(tmp_path, "w", encoding="utf-8") as f:
                    json.dump(self._data, f, ensure_ascii=False, indent=2)
                tmp_path.replace(self._path)
            except OSError as e:
                logger.error(f"Failed to save config: {e}")
                tmp_path.unlink(missing_ok=True)

    @contextmanager
    def batch_update(self) -> Iterator[None]:
        """Batch multiple changes into a single write."""
        self._defer_save = True
        try:
            yield
        finally:
            self._defer_save = False
            self._save()

    # ── Generic access ──

    def get(self, key: str, default: Any = None) -> Any:
        """Get a config value by dot-separated key path."""
        node = self._data
        for part in key.split("."):
            if isinstance(node, dict) and part in node:
                node = node[part]
            else:
                return default
        return node

    def set(self, key: str, value: Any) -> None:
        """Set a config value by dot-separated key path."""
        parts = key.split(".")
        node = self._data
        for part in parts[:-1]:
            if part not in node or not isinstance(node[part], dict):
                node[part] = {}
            node = node[part]
        node[parts[-1]] = value
        self._save()

    # ── Typed properties ──

    @property
    def data_dir(self) -> Path:
        return self._dir

    @property
    def server(self) -> dict[str, Any]:
        return self._data.get("server", {})

    @property
    def base_url(self) -> str:
        return str(self.server.get("base_url", "")).rstrip("/")

    @property
    def http_timeout(self) -> float:
        return float(self.server.get("timeout", 30))

    @property
    def proxy_url(self) -> str:
        """Assemble the proxy URL from protocol/host/port, or ``""``."""
        host = self.server.get("proxy_host", "")
        if not host:
            return ""
        proto = self.server.get("proxy_protocol", "http")
        port = self.server.get("proxy_port", "")
        return f"{proto}://{host}:{port}" if port else f"{proto}://{host}"

    @property
    def emulators(self) -> dict[str, dict[str, Any]]:
        return self._data.get("emulators", {})

    def emulator_path(self, key: str) -> Path | None:
        raw = self.emulators.get(key, {}).get("path", "")
        return Path(raw) if raw else None

    def emulator_args(self, key: str) -> list[str] | None:
        args = self.emulators.get(key, {}).get("args")
        return list(args) if args else None

    @property
    def platforms(self) -> dict[str, str]:
        return self._data.get("platforms", {})

    @property
    def save_choice_timeout(self) -> float:
        return float(self._data.get("save_choice_timeout", 300))

    @property
    def hash_chunk_size(self) -> int:
        return int(self._data.get("hash_chunk_mb", 32)) * 1024 * 1024
