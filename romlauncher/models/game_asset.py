"""Game asset models — remote identity plus the local cache view."""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any


@dataclass(frozen=True)
class AssetFile:
    """One downloadable content file with its declared hashes."""

    file_name: str
    size: int = 0
    crc32: str = ""
    md5: str = ""
    sha1: str = ""

    @property
    def declared_hashes(self) -> dict[str, str]:
        """Non-empty declared hashes keyed by algorithm name."""
        hashes = {"crc32": self.crc32, "md5": self.md5, "sha1": self.sha1}
        return {k: v for k, v in hashes.items() if v}

    @classmethod
    def from_api(cls, data: dict[str, Any]) -> AssetFile:
        return cls(
            file_name=data.get("file_name", ""),
            size=int(data.get("file_size_bytes") or 0),
            crc32=data.get("crc_hash") or "",
            md5=data.get("md5_hash") or "",
            sha1=data.get("sha1_hash") or "",
        )


@dataclass(frozen=True)
class GameAsset:
    """A game as described by the remote server. Refreshed wholesale on re-sync."""

    id: int
    name: str
    platform: str
    fs_name: str = ""
    files: tuple[AssetFile, ...] = ()
    single_file: bool = True
    regions: tuple[str, ...] = ()

    @property
    def total_size(self) -> int:
        return sum(f.size for f in self.files)

    @classmethod
    def from_api(cls, data: dict[str, Any]) -> GameAsset:
        """Build from a RomM ``/api/roms/{id}`` payload."""
        files = tuple(AssetFile.from_api(f) for f in data.get("files") or [])
        if not files and data.get("fs_name"):
            # Older servers only describe the ROM itself
            files = (
                AssetFile(
                    file_name=data["fs_name"],
                    size=int(data.get("fs_size_bytes") or 0),
                    crc32=data.get("crc_hash") or "",
                    md5=data.get("md5_hash") or "",
                    sha1=data.get("sha1_hash") or "",
                ),
            )
        single = data.get("has_simple_single_file")
        if single is None:
            single = not data.get("multi", False) and len(files) <= 1
        return cls(
            id=int(data["id"]),
            name=data.get("name") or data.get("fs_name") or f"game_{data['id']}",
            platform=data.get("platform_slug", ""),
            fs_name=data.get("fs_name", ""),
            files=files,
            single_file=bool(single),
            regions=tuple(data.get("regions") or ()),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "platform": self.platform,
            "fs_name": self.fs_name,
            "single_file": self.single_file,
            "regions": list(self.regions),
            "files": [
                {
                    "file_name": f.file_name,
                    "size": f.size,
                    "crc32": f.crc32,
                    "md5": f.md5,
                    "sha1": f.sha1,
                }
                for f in self.files
            ],
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> GameAsset:
        return cls(
            id=int(data["id"]),
            name=data.get("name", ""),
            platform=data.get("platform", ""),
            fs_name=data.get("fs_name", ""),
            files=tuple(AssetFile(**f) for f in data.get("files", [])),
            single_file=bool(data.get("single_file", True)),
            regions=tuple(data.get("regions", [])),
        )


@dataclass
class LocalAsset:
    """A cached asset: the remote description plus what is on disk."""

    asset: GameAsset
    local_path: Path
    local_files: list[str] = field(default_factory=list)  # relative to local_path

    @property
    def id(self) -> int:
        return self.asset.id

    def absolute_files(self) -> list[Path]:
        return [self.local_path / rel for rel in self.local_files]

    def to_dict(self) -> dict[str, Any]:
        return {
            "asset": self.asset.to_dict(),
            "local_path": str(self.local_path),
            "local_files": list(self.local_files),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> LocalAsset:
        return cls(
            asset=GameAsset.from_dict(data["asset"]),
            local_path=Path(data["local_path"]),
            local_files=list(data.get("local_files", [])),
        )
