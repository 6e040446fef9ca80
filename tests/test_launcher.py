"""End-to-end launch tests against a scripted stand-in emulator."""

from __future__ import annotations

import stat
import sys
from pathlib import Path

import pytest
from conftest import FakeApi, hashed_file, zip_bytes

from romlauncher.config import Config
from romlauncher.core.launcher import GameLauncher
from romlauncher.core.layout import DataLayout
from romlauncher.core.reconcile import SaveReconciler, SyncResult
from romlauncher.core.session import SessionBuilder
from romlauncher.errors import SaveSyncFailed
from romlauncher.models.game_asset import AssetFile, GameAsset
from romlauncher.models.save_snapshot import ChoiceKind
from romlauncher.models.session import LaunchState
from romlauncher.plugins.registry import AdapterRegistry

pytestmark = pytest.mark.skipif(sys.platform == "win32", reason="stand-in emulator is a POSIX shell script")

ISO = b"\x00UCES00995" * 256

# Behaves like PPSSPP: follows installed.txt to the memory stick and writes a save
FAKE_PPSSPP = """#!/bin/sh
MEMSTICK=$(cat installed.txt)
mkdir -p "$MEMSTICK/PSP/SAVEDATA/UCES00995"
if [ -f "$MEMSTICK/PSP/SAVEDATA/UCES00995/DATA.BIN" ]; then
    cat "$MEMSTICK/PSP/SAVEDATA/UCES00995/DATA.BIN" > "$MEMSTICK/PSP/SAVEDATA/UCES00995/PREVIOUS.BIN"
fi
sleep {delay}
printf 'played' > "$MEMSTICK/PSP/SAVEDATA/UCES00995/DATA.BIN"
"""


def install_fake_emulator(config: Config, tmp_path: Path, delay: float = 0, script: str | None = None) -> Path:
    exe = tmp_path / "ppsspp" / "PPSSPPSDL"
    exe.parent.mkdir(parents=True, exist_ok=True)
    exe.write_text(script if script is not None else FAKE_PPSSPP.format(delay=delay))
    exe.chmod(exe.stat().st_mode | stat.S_IEXEC)
    config.set("emulators.ppsspp.path", str(exe))
    return exe


@pytest.fixture
def asset(api: FakeApi) -> GameAsset:
    return api.add_asset(
        GameAsset(id=42, name="Patapon", platform="psp", files=(hashed_file("Patapon.iso", ISO),)),
        {"Patapon.iso": ISO},
    )


class TestLaunch:
    @pytest.mark.asyncio
    async def test_fresh_game_without_saves(
        self,
        launcher: GameLauncher,
        api: FakeApi,
        config: Config,
        layout: DataLayout,
        tmp_path: Path,
    ) -> None:
        install_fake_emulator(config, tmp_path, script="#!/bin/sh\nexit 3\n")
        game = api.add_asset(
            GameAsset(id=7, name="Game", platform="psp", files=(hashed_file("game.iso", ISO),)),
            {"game.iso": ISO},
        )

        ensured = await launcher.ensure_available(game)
        assert ensured.success, ensured.error
        status = await launcher.check_saves(game)
        assert (status.has_local, status.has_cloud) == (False, False)

        result = await launcher.launch_with_reconciliation(game)
        assert result.success, result.error
        assert result.choice is not None and result.choice.kind is ChoiceKind.NONE
        sync = await result.completion
        assert sync.message == "No saves to upload"
        assert api.uploads == []
        assert not layout.session_dir("psp", 7).exists()

    @pytest.mark.asyncio
    async def test_full_cycle(
        self,
        launcher: GameLauncher,
        api: FakeApi,
        config: Config,
        layout: DataLayout,
        asset: GameAsset,
        tmp_path: Path,
    ) -> None:
        install_fake_emulator(config, tmp_path)

        result = await launcher.launch_with_reconciliation(asset)
        assert result.success, result.error
        assert result.state is LaunchState.RUNNING
        assert result.choice is not None and result.choice.kind is ChoiceKind.NONE

        sync = await result.completion
        assert sync.uploaded
        assert api.uploads[0][2] == "ppsspp"
        save = layout.save_dir("psp", 42) / "SAVEDATA" / "UCES00995" / "DATA.BIN"
        assert save.read_bytes() == b"played"
        assert not layout.session_dir("psp", 42).exists()
        assert launcher.in_flight == frozenset()

        # Second run: cached asset, local save restored into the session
        again = await launcher.launch_with_reconciliation(asset)
        assert again.success, again.error
        assert again.choice is not None and again.choice.kind is ChoiceKind.LOCAL
        await again.completion
        assert api.download_calls == 1
        previous = layout.save_dir("psp", 42) / "SAVEDATA" / "UCES00995" / "PREVIOUS.BIN"
        assert previous.read_bytes() == b"played"

    @pytest.mark.asyncio
    async def test_single_flight(
        self,
        launcher: GameLauncher,
        config: Config,
        asset: GameAsset,
        tmp_path: Path,
    ) -> None:
        install_fake_emulator(config, tmp_path, delay=1)

        first = await launcher.launch_with_reconciliation(asset)
        assert first.success, first.error
        second = await launcher.launch_with_reconciliation(asset)
        assert not second.success
        assert "already being launched" in second.error

        refused = await launcher.recover_orphaned_saves()
        assert not refused.success
        blocked = await launcher.delete_cached(42)
        assert not blocked.success

        await first.completion
        assert 42 not in launcher.in_flight

    @pytest.mark.asyncio
    async def test_integrity_failure_leaves_nothing_behind(
        self,
        launcher: GameLauncher,
        api: FakeApi,
        config: Config,
        layout: DataLayout,
        tmp_path: Path,
    ) -> None:
        install_fake_emulator(config, tmp_path)
        bad = api.add_asset(
            GameAsset(id=9, name="Broken", platform="psp", files=(hashed_file("Broken.iso", ISO, crc32="00000000"),)),
            {"Broken.iso": ISO},
        )
        result = await launcher.launch_with_reconciliation(bad)
        assert not result.success
        assert "Integrity check failed" in result.error
        assert result.state is LaunchState.FAILED
        assert not layout.session_dir("psp", 9).exists()
        assert not (layout.asset_dir("psp", 9) / "Broken.iso").exists()
        assert launcher.in_flight == frozenset()

    @pytest.mark.asyncio
    async def test_not_configured_fails_before_download(
        self, launcher: GameLauncher, api: FakeApi, asset: GameAsset,
    ) -> None:
        result = await launcher.launch_with_reconciliation(asset)
        assert not result.success
        assert "not configured" in result.error
        assert api.download_calls == 0

    @pytest.mark.asyncio
    async def test_unsupported_platform(self, launcher: GameLauncher, api: FakeApi) -> None:
        n64 = api.add_asset(GameAsset(id=3, name="Mario", platform="n64"), {})
        result = await launcher.launch_with_reconciliation(n64)
        assert not result.success
        assert "n64" in result.error

    @pytest.mark.asyncio
    async def test_recovers_orphans_before_first_launch(
        self,
        launcher: GameLauncher,
        config: Config,
        layout: DataLayout,
        asset: GameAsset,
        tmp_path: Path,
    ) -> None:
        install_fake_emulator(config, tmp_path)
        orphan = layout.session_dir("psp", 77) / "memstick" / "PSP" / "SAVEDATA" / "X" / "DATA.BIN"
        orphan.parent.mkdir(parents=True)
        orphan.write_bytes(b"crashed")

        result = await launcher.launch_with_reconciliation(asset)
        assert result.success, result.error
        await result.completion
        assert (layout.save_dir("psp", 77) / "SAVEDATA" / "X" / "DATA.BIN").read_bytes() == b"crashed"
        assert not layout.session_dir("psp", 77).exists()

    @pytest.mark.asyncio
    async def test_leftover_session_saved_before_relaunch(
        self,
        launcher: GameLauncher,
        config: Config,
        layout: DataLayout,
        asset: GameAsset,
        tmp_path: Path,
    ) -> None:
        install_fake_emulator(config, tmp_path)
        first = await launcher.launch_with_reconciliation(asset)
        assert first.success, first.error
        await first.completion

        # Saves the previous run could not store locally
        kept = layout.session_dir("psp", 42) / "memstick" / "PSP" / "SAVEDATA" / "UCES00995" / "DATA.BIN"
        kept.parent.mkdir(parents=True)
        kept.write_bytes(b"kept")

        again = await launcher.launch_with_reconciliation(asset)
        assert again.success, again.error
        await again.completion
        previous = layout.save_dir("psp", 42) / "SAVEDATA" / "UCES00995" / "PREVIOUS.BIN"
        assert previous.read_bytes() == b"kept"

    @pytest.mark.asyncio
    async def test_kept_session_recovered_by_next_launch(
        self,
        launcher: GameLauncher,
        api: FakeApi,
        config: Config,
        layout: DataLayout,
        reconciler: SaveReconciler,
        asset: GameAsset,
        tmp_path: Path,
        monkeypatch: pytest.MonkeyPatch,
    ) -> None:
        install_fake_emulator(config, tmp_path)

        async def _disk_full(*args, **kwargs) -> SyncResult:
            return SyncResult(local_failed=True, errors=["Could not store saves locally"])

        monkeypatch.setattr(reconciler, "sync_after_exit", _disk_full)
        first = await launcher.launch_with_reconciliation(asset)
        assert first.success, first.error
        assert (await first.completion).local_failed
        assert layout.session_dir("psp", 42).is_dir()
        monkeypatch.undo()

        other = api.add_asset(
            GameAsset(id=7, name="Game", platform="psp", files=(hashed_file("game.iso", ISO),)),
            {"game.iso": ISO},
        )
        result = await launcher.launch_with_reconciliation(other)
        assert result.success, result.error
        await result.completion
        assert not layout.session_dir("psp", 42).exists()
        assert (layout.save_dir("psp", 42) / "SAVEDATA" / "UCES00995" / "DATA.BIN").read_bytes() == b"played"


class TestSessionBuilder:
    @pytest.mark.asyncio
    async def test_unsaveable_leftover_is_not_wiped(
        self, registry: AdapterRegistry, layout: DataLayout, monkeypatch: pytest.MonkeyPatch,
    ) -> None:
        adapter = registry.for_platform("psp")
        leftover = layout.session_dir("psp", 42) / "memstick" / "PSP" / "SAVEDATA" / "T" / "DATA.BIN"
        leftover.parent.mkdir(parents=True)
        leftover.write_bytes(b"only copy")

        def _read_only(session_dir: Path, persistent_dir: Path) -> list[str]:
            raise OSError("Read-only file system")

        monkeypatch.setattr(adapter, "extract_saves_from_session", _read_only)
        with pytest.raises(SaveSyncFailed):
            await SessionBuilder(layout).build(adapter, GameAsset(id=42, name="Patapon", platform="psp"))
        assert leftover.read_bytes() == b"only copy"



class TestFacade:
    @pytest.mark.asyncio
    async def test_ensure_and_delete(self, launcher: GameLauncher, asset: GameAsset, layout: DataLayout) -> None:
        ensured = await launcher.ensure_available(asset)
        assert ensured.success
        assert ensured.local_asset is not None

        deleted = await launcher.delete_cached(42)
        assert deleted.success
        assert not layout.asset_dir("psp", 42).exists()

        missing = await launcher.delete_cached(42)
        assert not missing.success

    @pytest.mark.asyncio
    async def test_check_saves(self, launcher: GameLauncher, asset: GameAsset, layout: DataLayout) -> None:
        status = await launcher.check_saves(asset)
        assert status.success
        assert not status.has_local and not status.has_cloud

        save = layout.save_dir("psp", 42) / "SAVEDATA" / "s.bin"
        save.parent.mkdir(parents=True)
        save.write_bytes(b"1")
        assert (await launcher.check_saves(asset)).has_local

    @pytest.mark.asyncio
    async def test_recover_summary(self, launcher: GameLauncher, layout: DataLayout) -> None:
        orphan = layout.session_dir("ps2", 5) / "memcards" / "Mcd001.ps2"
        orphan.parent.mkdir(parents=True)
        orphan.write_bytes(b"card")
        summary = await launcher.recover_orphaned_saves()
        assert summary.success
        assert summary.recovered_count == 1
        assert (await launcher.recover_orphaned_saves()).recovered_count == 0

    @pytest.mark.asyncio
    async def test_configure_unknown_emulator(self, launcher: GameLauncher) -> None:
        result = await launcher.configure_emulator("mame")
        assert not result.success

    @pytest.mark.asyncio
    async def test_configure_not_configured(self, launcher: GameLauncher) -> None:
        result = await launcher.configure_emulator("dolphin")
        assert not result.success
        assert "not configured" in result.error

    @pytest.mark.asyncio
    async def test_unreadable_save_list_is_a_failed_result(
        self, launcher: GameLauncher, api: FakeApi, asset: GameAsset, monkeypatch: pytest.MonkeyPatch,
    ) -> None:
        async def _garbage(asset_id: int) -> list:
            raise ValueError("Expecting value: line 1 column 1 (char 0)")

        monkeypatch.setattr(api, "list_save_snapshots", _garbage)
        status = await launcher.check_saves(asset)
        assert not status.success
        assert "Expecting value" in status.error

    @pytest.mark.asyncio
    async def test_extraction_error_is_a_failed_result(
        self, launcher: GameLauncher, api: FakeApi, monkeypatch: pytest.MonkeyPatch,
    ) -> None:
        zipped = api.add_asset(
            GameAsset(id=5, name="Zipped", platform="psp", files=(AssetFile("Zipped.zip"),)),
            {"Zipped.zip": zip_bytes({"Zipped.iso": ISO})},
        )

        def _disk_full(*args, **kwargs) -> list:
            raise OSError("No space left on device")

        monkeypatch.setattr("romlauncher.core.asset_cache.extract_zip", _disk_full)
        result = await launcher.ensure_available(zipped)
        assert not result.success
        assert "No space left" in result.error
