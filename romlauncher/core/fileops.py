"""Filesystem helpers shared by adapters, sessions and save reconciliation."""

from __future__ import annotations

import shutil
from pathlib import Path, PurePosixPath
from typing import Callable

ExcludeFn = Callable[[PurePosixPath], bool]


def excluding(*prefixes: str, suffixes: tuple[str, ...] = ()) -> ExcludeFn:
    """
    Build an exclusion predicate over relative paths.

    ``prefixes`` are relative directory paths (``"memstick/PSP/SAVEDATA"``)
    excluded with everything beneath them; ``suffixes`` exclude files by
    extension at any depth.
    """
    prefix_parts = [PurePosixPath(p).parts for p in prefixes]
    lowered = tuple(s.lower() for s in suffixes)

    def _exclude(rel: PurePosixPath) -> bool:
        parts = rel.parts
        for pp in prefix_parts:
            if parts[: len(pp)] == pp:
                return True
        return bool(lowered) and rel.name.lower().endswith(lowered)

    return _exclude


def list_files(root: Path) -> list[Path]:
    """All regular files under ``root``, sorted."""
    if not root.is_dir():
        return []
    return sorted(p for p in root.rglob("*") if p.is_file())


def newest_mtime(root: Path) -> float | None:
    """Modification time of the newest file under ``root``."""
    times = [p.stat().st_mtime for p in list_files(root)]
    return max(times) if times else None


def copy_tree(src: Path, dst: Path, exclude: ExcludeFn | None = None) -> list[str]:
    """
    Recursively copy ``src`` into ``dst``, overwriting existing files.

    Returns the copied files as POSIX paths relative to ``src``.
    """
    copied: list[str] = []
    if not src.is_dir():
        return copied
    dst.mkdir(parents=True, exist_ok=True)
    for path in sorted(src.rglob("*")):
        rel = PurePosixPath(path.relative_to(src).as_posix())
        if exclude is not None and exclude(rel):
            continue
        target = dst / rel
        if path.is_dir():
            target.mkdir(parents=True, exist_ok=True)
        elif path.is_file():
            target.parent.mkdir(parents=True, exist_ok=True)
            shutil.copy2(path, target)
            copied.append(rel.as_posix())
    return copied


def clear_dir(path: Path) -> None:
    """Empty ``path`` (creating it if needed)."""
    if path.exists():
        shutil.rmtree(path)
    path.mkdir(parents=True, exist_ok=True)


def remove_path(path: Path) -> None:
    """Delete a file or a directory tree; missing paths are ignored."""
    if path.is_dir() and not path.is_symlink():
        shutil.rmtree(path)
    elif path.exists() or path.is_symlink():
        path.unlink()
