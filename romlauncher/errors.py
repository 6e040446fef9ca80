"""Error taxonomy — raised internally, converted to results at the public boundary."""

from __future__ import annotations

from pathlib import Path


class LauncherError(Exception):
    """Base class for every failure the launcher reports to its caller."""

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class NotConfigured(LauncherError):
    """An emulator executable path is missing or unset."""

    def __init__(self, emulator: str, detail: str = "") -> None:
        message = f"Emulator '{emulator}' is not configured"
        if detail:
            message += f": {detail}"
        super().__init__(message)
        self.emulator = emulator


class DownloadFailed(LauncherError):
    pass


class IntegrityFailed(LauncherError):
    """A raw payload did not match any of its declared hashes."""

    def __init__(self, path: Path, detail: str = "") -> None:
        message = f"Integrity check failed for {path.name}"
        if detail:
            message += f" ({detail})"
        super().__init__(message)
        self.path = path


class ExtractionFailed(LauncherError):
    pass


class NoEmulatorForPlatform(LauncherError):
    def __init__(self, platform: str) -> None:
        super().__init__(f"No emulator registered for platform '{platform}'")
        self.platform = platform


class SaveSyncFailed(LauncherError):
    pass


class ChoiceTimeout(LauncherError):
    pass


class HashComputationError(LauncherError):
    def __init__(self, path: Path, reason: str) -> None:
        super().__init__(f"Hash computation failed for {path}: {reason}")
        self.path = path


class LaunchInProgress(LauncherError):
    def __init__(self, asset_id: int) -> None:
        super().__init__(f"Game {asset_id} is already being launched")
        self.asset_id = asset_id
