"""Save-state models — remote snapshots, comparisons and choices."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import StrEnum
from typing import Any


def _parse_timestamp(raw: str | None) -> datetime | None:
    if not raw:
        return None
    try:
        parsed = datetime.fromisoformat(raw.replace("Z", "+00:00"))
    except ValueError:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


@dataclass(frozen=True)
class RemoteSaveSnapshot:
    """One save upload stored on the server. Never mutated locally."""

    id: int
    file_name: str
    emulator: str = ""
    size: int = 0
    created_at: datetime | None = None
    updated_at: datetime | None = None
    download_path: str = ""

    @property
    def timestamp(self) -> datetime | None:
        return self.updated_at or self.created_at

    @classmethod
    def from_api(cls, data: dict[str, Any]) -> RemoteSaveSnapshot:
        return cls(
            id=int(data["id"]),
            file_name=data.get("file_name", ""),
            emulator=data.get("emulator") or "",
            size=int(data.get("file_size_bytes") or 0),
            created_at=_parse_timestamp(data.get("created_at")),
            updated_at=_parse_timestamp(data.get("updated_at")),
            download_path=data.get("download_path", ""),
        )


def sort_newest_first(snapshots: list[RemoteSaveSnapshot]) -> list[RemoteSaveSnapshot]:
    """Order by ``updated_at`` (fallback ``created_at``); undated snapshots go last."""
    epoch = datetime.min.replace(tzinfo=timezone.utc)
    return sorted(snapshots, key=lambda s: s.timestamp or epoch, reverse=True)


class Recommendation(StrEnum):
    LOCAL = "local"
    CLOUD = "cloud"
    SAME = "same"
    LOCAL_ONLY = "local-only"
    CLOUD_ONLY = "cloud-only"
    NONE = "none"


class ChoiceKind(StrEnum):
    LOCAL = "local"
    CLOUD = "cloud"
    NONE = "none"


@dataclass(frozen=True)
class SaveChoice:
    """Resolution for one launch. ``snapshot_id`` only applies to CLOUD."""

    kind: ChoiceKind
    snapshot_id: int | None = None

    @classmethod
    def local(cls) -> SaveChoice:
        return cls(ChoiceKind.LOCAL)

    @classmethod
    def cloud(cls, snapshot_id: int | None = None) -> SaveChoice:
        return cls(ChoiceKind.CLOUD, snapshot_id)

    @classmethod
    def fresh(cls) -> SaveChoice:
        return cls(ChoiceKind.NONE)


@dataclass
class SaveComparison:
    """Local vs. remote save state for one asset."""

    asset_id: int
    has_local: bool = False
    local_modified_at: datetime | None = None
    snapshots: list[RemoteSaveSnapshot] = field(default_factory=list)  # newest first

    @property
    def has_cloud(self) -> bool:
        return bool(self.snapshots)

    @property
    def newest_snapshot(self) -> RemoteSaveSnapshot | None:
        return self.snapshots[0] if self.snapshots else None

    @property
    def recommendation(self) -> Recommendation:
        if self.has_local and self.has_cloud:
            remote = self.newest_snapshot.timestamp if self.newest_snapshot else None
            local = self.local_modified_at
            if local is None or remote is None:
                # An undated side cannot win
                if local is None and remote is None:
                    return Recommendation.SAME
                return Recommendation.CLOUD if local is None else Recommendation.LOCAL
            if remote > local:
                return Recommendation.CLOUD
            if local > remote:
                return Recommendation.LOCAL
            return Recommendation.SAME
        if self.has_local:
            return Recommendation.LOCAL_ONLY
        if self.has_cloud:
            return Recommendation.CLOUD_ONLY
        return Recommendation.NONE

    @property
    def choice_required(self) -> bool:
        """Both sides present, or more than one snapshot to pick from."""
        return (self.has_local and self.has_cloud) or len(self.snapshots) > 1
