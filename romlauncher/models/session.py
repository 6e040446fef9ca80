"""Session models — ephemeral emulator working directories and launch state."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import StrEnum
from pathlib import Path


@dataclass
class SessionInfo:
    """Metadata returned by an adapter after preparing a session directory."""

    asset_id: int
    platform: str
    emulator: str
    session_dir: Path
    save_root: Path
    save_subdirs: tuple[str, ...] = ()
    user_dir: Path | None = None
    variant: str = ""
    env: dict[str, str] = field(default_factory=dict)

    def save_paths(self) -> list[Path]:
        """Save-data directories inside the session (the whole root if no subdirs)."""
        if not self.save_subdirs:
            return [self.save_root]
        return [self.save_root / sub for sub in self.save_subdirs]


class LaunchState(StrEnum):
    PREPARING = "preparing"
    CHECK_SAVES = "check_saves"
    NEEDS_CHOICE = "needs_choice"
    AWAITING_CHOICE = "awaiting_choice"
    RESOLVED = "resolved"
    RUNNING = "running"
    SYNCING = "syncing"
    CLEANED = "cleaned"
    FAILED = "failed"


_TRANSITIONS: dict[LaunchState, frozenset[LaunchState]] = {
    LaunchState.PREPARING: frozenset({LaunchState.CHECK_SAVES}),
    LaunchState.CHECK_SAVES: frozenset({LaunchState.NEEDS_CHOICE, LaunchState.RESOLVED}),
    LaunchState.NEEDS_CHOICE: frozenset({LaunchState.AWAITING_CHOICE}),
    LaunchState.AWAITING_CHOICE: frozenset({LaunchState.RESOLVED}),
    LaunchState.RESOLVED: frozenset({LaunchState.RUNNING}),
    LaunchState.RUNNING: frozenset({LaunchState.SYNCING}),
    LaunchState.SYNCING: frozenset({LaunchState.CLEANED}),
    LaunchState.CLEANED: frozenset(),
    LaunchState.FAILED: frozenset(),
}


class LaunchTracker:
    """Per-launch state machine. FAILED is reachable from any live state."""

    def __init__(self, asset_id: int) -> None:
        self.asset_id = asset_id
        self.state = LaunchState.PREPARING
        self.history: list[LaunchState] = [self.state]

    @property
    def is_terminal(self) -> bool:
        return self.state in (LaunchState.CLEANED, LaunchState.FAILED)

    def advance(self, new_state: LaunchState) -> None:
        allowed = _TRANSITIONS[self.state]
        if new_state is LaunchState.FAILED and not self.is_terminal:
            allowed = allowed | {LaunchState.FAILED}
        if new_state not in allowed:
            raise ValueError(
                f"Illegal launch transition {self.state} → {new_state} "
                f"for game {self.asset_id}"
            )
        self.state = new_state
        self.history.append(new_state)
