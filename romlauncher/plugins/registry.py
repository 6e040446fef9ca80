"""Adapter registry — resolves platforms to emulator adapters."""

from __future__ import annotations

from typing import TYPE_CHECKING

from loguru import logger

from romlauncher.errors import NoEmulatorForPlatform
from romlauncher.plugins.base import AdapterKind, AdapterOps, EmulatorAdapter
from romlauncher.plugins.dolphin.plugin import OPS as DOLPHIN_OPS
from romlauncher.plugins.generic.plugin import OPS as GENERIC_OPS
from romlauncher.plugins.pcsx2.plugin import OPS as PCSX2_OPS
from romlauncher.plugins.ppsspp.plugin import OPS as PPSSPP_OPS

if TYPE_CHECKING:
    from romlauncher.config import Config

ADAPTER_OPS: dict[AdapterKind, AdapterOps] = {
    AdapterKind.PPSSPP: PPSSPP_OPS,
    AdapterKind.DOLPHIN: DOLPHIN_OPS,
    AdapterKind.PCSX2: PCSX2_OPS,
    AdapterKind.GENERIC: GENERIC_OPS,
}


class AdapterRegistry:
    """
    Builds ``EmulatorAdapter`` instances from the closed ``AdapterKind`` set.

    Executable paths and argument overrides are read from config on every
    lookup, so changes made while running take effect on the next launch.

    Usage::

        registry = AdapterRegistry(config)
        registry.for_platform("psp")        # → PPSSPP adapter
        registry.for_recovery("n64")        # → generic fallback
    """

    def __init__(self, config: Config) -> None:
        self._config = config

    def _build(self, kind: AdapterKind) -> EmulatorAdapter:
        return EmulatorAdapter(
            kind,
            ADAPTER_OPS[kind],
            executable=self._config.emulator_path(kind.value),
            args=self._config.emulator_args(kind.value),
        )

    def get(self, key: str) -> EmulatorAdapter | None:
        """Look up an adapter by emulator key (``"ppsspp"``, ``"pcsx2"`` …)."""
        try:
            kind = AdapterKind(key)
        except ValueError:
            return None
        if kind is AdapterKind.GENERIC:
            return None
        return self._build(kind)

    def kind_for_platform(self, platform: str) -> AdapterKind | None:
        configured = self._config.platforms.get(platform)
        if configured:
            try:
                return AdapterKind(configured)
            except ValueError:
                logger.warning(f"Unknown emulator '{configured}' mapped to platform '{platform}'")
        for kind, ops in ADAPTER_OPS.items():
            if platform in ops.platforms:
                return kind
        return None

    def for_platform(self, platform: str) -> EmulatorAdapter:
        """Adapter used to launch games on ``platform``."""
        kind = self.kind_for_platform(platform)
        if kind is None or kind is AdapterKind.GENERIC:
            raise NoEmulatorForPlatform(platform)
        return self._build(kind)

    def for_recovery(self, platform: str) -> EmulatorAdapter:
        """Adapter used to recover orphaned sessions; never fails."""
        kind = self.kind_for_platform(platform)
        if kind is None:
            logger.debug(f"No adapter for platform '{platform}', using generic extraction")
            kind = AdapterKind.GENERIC
        return self._build(kind)

    @property
    def emulator_keys(self) -> list[str]:
        return [k.value for k in ADAPTER_OPS if k is not AdapterKind.GENERIC]
