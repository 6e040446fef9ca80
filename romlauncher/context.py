"""Application context — service container for dependency injection."""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from romlauncher.api.base import RemoteContentAPI
    from romlauncher.config import Config
    from romlauncher.core.asset_cache import AssetCacheManager
    from romlauncher.core.launcher import GameLauncher
    from romlauncher.core.layout import DataLayout
    from romlauncher.core.reconcile import SaveReconciler
    from romlauncher.core.recovery import CrashRecoveryScanner
    from romlauncher.core.session import SessionBuilder
    from romlauncher.data.asset_library import AssetLibrary
    from romlauncher.plugins.registry import AdapterRegistry


@dataclass
class AppContext:
    """
    Central service container.

    Built once by ``main.create_context``; front ends talk to ``launcher``
    and reach the lower layers only for inspection.
    """

    config: Config
    layout: DataLayout
    api: RemoteContentAPI
    registry: AdapterRegistry

    # Cache services
    library: AssetLibrary
    cache: AssetCacheManager

    # Session / save services
    sessions: SessionBuilder
    reconciler: SaveReconciler
    recovery: CrashRecoveryScanner

    launcher: GameLauncher
