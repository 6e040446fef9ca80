"""Tests for save comparison, recommendations and the launch state machine."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest

from romlauncher.models.save_snapshot import (
    Recommendation,
    RemoteSaveSnapshot,
    SaveComparison,
    sort_newest_first,
)
from romlauncher.models.session import LaunchState, LaunchTracker

NOW = datetime(2024, 5, 1, 18, 30, tzinfo=timezone.utc)


def snapshot(snap_id: int, age_hours: float | None) -> RemoteSaveSnapshot:
    when = NOW - timedelta(hours=age_hours) if age_hours is not None else None
    return RemoteSaveSnapshot(id=snap_id, file_name=f"save{snap_id}.zip", updated_at=when)


class TestRecommendation:
    def test_nothing_anywhere(self) -> None:
        comparison = SaveComparison(asset_id=1)
        assert comparison.recommendation is Recommendation.NONE
        assert not comparison.choice_required

    def test_local_only(self) -> None:
        comparison = SaveComparison(asset_id=1, has_local=True, local_modified_at=NOW)
        assert comparison.recommendation is Recommendation.LOCAL_ONLY
        assert not comparison.choice_required

    def test_single_cloud_only(self) -> None:
        comparison = SaveComparison(asset_id=1, snapshots=[snapshot(7, 1)])
        assert comparison.recommendation is Recommendation.CLOUD_ONLY
        assert not comparison.choice_required

    def test_several_cloud_snapshots_need_a_choice(self) -> None:
        comparison = SaveComparison(asset_id=1, snapshots=[snapshot(7, 1), snapshot(6, 5)])
        assert comparison.recommendation is Recommendation.CLOUD_ONLY
        assert comparison.choice_required

    def test_newer_cloud_wins(self) -> None:
        comparison = SaveComparison(
            asset_id=1,
            has_local=True,
            local_modified_at=NOW - timedelta(days=1),
            snapshots=[snapshot(7, 1)],
        )
        assert comparison.recommendation is Recommendation.CLOUD
        assert comparison.choice_required

    def test_newer_local_wins(self) -> None:
        comparison = SaveComparison(
            asset_id=1, has_local=True, local_modified_at=NOW, snapshots=[snapshot(7, 3)],
        )
        assert comparison.recommendation is Recommendation.LOCAL

    def test_equal_timestamps(self) -> None:
        comparison = SaveComparison(
            asset_id=1, has_local=True, local_modified_at=NOW, snapshots=[snapshot(7, 0)],
        )
        assert comparison.recommendation is Recommendation.SAME


class TestSnapshots:
    def test_sort_newest_first_undated_last(self) -> None:
        ordered = sort_newest_first([snapshot(1, 10), snapshot(2, None), snapshot(3, 1)])
        assert [s.id for s in ordered] == [3, 1, 2]

    def test_from_api_parses_zulu_time(self) -> None:
        snap = RemoteSaveSnapshot.from_api({
            "id": 9,
            "file_name": "2024-05-01 18h30 - Patapon.zip",
            "emulator": "ppsspp",
            "file_size_bytes": 2048,
            "updated_at": "2024-05-01T18:30:00Z",
            "download_path": "/api/raw/assets/saves/9.zip",
        })
        assert snap.timestamp == NOW
        assert snap.size == 2048


class TestLaunchTracker:
    def test_happy_path(self) -> None:
        tracker = LaunchTracker(1)
        for state in (
            LaunchState.CHECK_SAVES,
            LaunchState.NEEDS_CHOICE,
            LaunchState.AWAITING_CHOICE,
            LaunchState.RESOLVED,
            LaunchState.RUNNING,
            LaunchState.SYNCING,
            LaunchState.CLEANED,
        ):
            tracker.advance(state)
        assert tracker.is_terminal
        assert tracker.history[0] is LaunchState.PREPARING

    def test_illegal_transition(self) -> None:
        tracker = LaunchTracker(1)
        with pytest.raises(ValueError):
            tracker.advance(LaunchState.RUNNING)

    def test_failed_from_live_state_only(self) -> None:
        tracker = LaunchTracker(1)
        tracker.advance(LaunchState.CHECK_SAVES)
        tracker.advance(LaunchState.FAILED)
        with pytest.raises(ValueError):
            tracker.advance(LaunchState.FAILED)
