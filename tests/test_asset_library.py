"""Tests for the AssetLibrary JSON registry."""

from __future__ import annotations

import json
from pathlib import Path

import pytest

from romlauncher.data.asset_library import AssetLibrary
from romlauncher.models.game_asset import AssetFile, GameAsset, LocalAsset


@pytest.fixture
def library(tmp_path: Path) -> AssetLibrary:
    return AssetLibrary(tmp_path)


@pytest.fixture
def sample_entry(tmp_path: Path) -> LocalAsset:
    asset = GameAsset(
        id=42,
        name="Patapon",
        platform="psp",
        fs_name="Patapon (Europe).iso",
        files=(AssetFile("Patapon (Europe).iso", 1024, crc32="1a2b3c4d"),),
        regions=("Europe",),
    )
    return LocalAsset(asset, tmp_path / "roms" / "psp" / "game_42", ["Patapon (Europe).iso"])


class TestAssetLibrary:
    def test_add_and_get(self, library: AssetLibrary, sample_entry: LocalAsset) -> None:
        library.add(sample_entry)
        result = library.get(42)
        assert result is not None
        assert result.local_files == ["Patapon (Europe).iso"]

    def test_remove(self, library: AssetLibrary, sample_entry: LocalAsset) -> None:
        library.add(sample_entry)
        removed = library.remove(42)
        assert removed is sample_entry
        assert library.get(42) is None
        assert library.remove(42) is None

    def test_entries_by_platform(self, library: AssetLibrary, sample_entry: LocalAsset) -> None:
        library.add(sample_entry)
        assert len(library.entries_by_platform("psp")) == 1
        assert library.entries_by_platform("ps2") == []

    def test_persistence(self, tmp_path: Path, sample_entry: LocalAsset) -> None:
        lib1 = AssetLibrary(tmp_path)
        lib1.add(sample_entry)

        # Reload
        lib2 = AssetLibrary(tmp_path)
        lib2.load()
        result = lib2.get(42)
        assert result is not None
        assert result.asset == sample_entry.asset
        assert result.local_path == sample_entry.local_path

    def test_malformed_entry_skipped(self, tmp_path: Path, sample_entry: LocalAsset) -> None:
        (tmp_path / "asset_library.json").write_text(
            json.dumps({
                "version": 1,
                "assets": {"1": {"local_path": "/nowhere"}, "42": sample_entry.to_dict()},
            }),
            encoding="utf-8",
        )
        library = AssetLibrary(tmp_path)
        library.load()
        assert library.count == 1
        assert library.get(42) is not None
