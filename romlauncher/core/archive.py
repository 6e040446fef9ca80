"""ZIP helpers — container extraction and save-archive packaging."""

from __future__ import annotations

import io
import shutil
import zipfile
from pathlib import Path
from typing import Sequence

from loguru import logger

from romlauncher.errors import ExtractionFailed

ZIP_MAGIC = b"PK\x03\x04"
_MAX_NESTING = 4


def is_zip_file(path: Path) -> bool:
    """True for ``.zip`` files or anything starting with the ZIP local-header magic."""
    if path.suffix.lower() == ".zip":
        return True
    try:
        with open(path, "rb") as f:
            return f.read(4) == ZIP_MAGIC
    except OSError:
        return False


def _safe_target(dest: Path, member: str) -> Path:
    """Resolve ``member`` under ``dest``, refusing paths that escape it."""
    target = (dest / member).resolve()
    root = dest.resolve()
    if target != root and root not in target.parents:
        raise ExtractionFailed(f"Archive member escapes destination: {member}")
    return target


def _extract_members(zf: zipfile.ZipFile, dest: Path) -> list[Path]:
    extracted: list[Path] = []
    for info in zf.infolist():
        target = _safe_target(dest, info.filename)
        if info.is_dir():
            target.mkdir(parents=True, exist_ok=True)
            continue
        if target.is_file() and target.stat().st_size == info.file_size:
            logger.debug(f"Already extracted: {info.filename}")
            extracted.append(target)
            continue
        target.parent.mkdir(parents=True, exist_ok=True)
        with zf.open(info) as src, open(target, "wb") as out:
            shutil.copyfileobj(src, out)
        extracted.append(target)
    return extracted


def extract_zip(zip_path: Path, dest: Path, _depth: int = 0) -> list[Path]:
    """
    Extract ``zip_path`` into ``dest`` and return every resulting file.

    Members already present with the same size are left alone, so running
    this twice is a no-op.  Nested ZIPs are extracted beside themselves.
    """
    try:
        with zipfile.ZipFile(zip_path) as zf:
            files = _extract_members(zf, dest)
    except zipfile.BadZipFile as e:
        raise ExtractionFailed(f"Corrupt archive {zip_path.name}: {e}") from e

    if _depth >= _MAX_NESTING:
        return files

    result: list[Path] = []
    for f in files:
        result.append(f)
        if f.suffix.lower() == ".zip":
            logger.debug(f"Extracting nested archive {f.name}")
            result.extend(extract_zip(f, f.parent, _depth + 1))
    return result


def pack_directory(root: Path, zip_path: Path, subdirs: Sequence[str] = ()) -> list[str]:
    """
    Write the files under ``root`` (or only its ``subdirs``) into ``zip_path``.

    Entry names are POSIX paths relative to ``root``.  Returns the entries.
    """
    sources = [root / s for s in subdirs] if subdirs else [root]
    entries: list[str] = []
    zip_path.parent.mkdir(parents=True, exist_ok=True)
    with zipfile.ZipFile(zip_path, "w", zipfile.ZIP_DEFLATED) as zf:
        for source in sources:
            if not source.is_dir():
                continue
            for child in sorted(source.rglob("*")):
                if child.is_file():
                    entry = child.relative_to(root).as_posix()
                    zf.write(child, entry)
                    entries.append(entry)
    return entries


def unpack_bytes(data: bytes, dest: Path) -> list[str]:
    """Unpack an in-memory archive over ``dest``, overwriting existing files."""
    written: list[str] = []
    dest.mkdir(parents=True, exist_ok=True)
    try:
        with zipfile.ZipFile(io.BytesIO(data)) as zf:
            for info in zf.infolist():
                target = _safe_target(dest, info.filename)
                if info.is_dir():
                    target.mkdir(parents=True, exist_ok=True)
                    continue
                target.parent.mkdir(parents=True, exist_ok=True)
                with zf.open(info) as src, open(target, "wb") as out:
                    shutil.copyfileobj(src, out)
                written.append(info.filename)
    except zipfile.BadZipFile as e:
        raise ExtractionFailed(f"Corrupt save archive: {e}") from e
    return written
