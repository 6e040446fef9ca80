"""Hasher — streaming CRC32/MD5/SHA1 computation and integrity verdicts.

Disc images are routinely multi-gigabyte, so files are read in bounded
chunks and all three digests are accumulated in a single pass.  Blocking
work runs in a worker thread via the ``*_async`` wrappers.
"""

from __future__ import annotations

import asyncio
import hashlib
import zlib
from dataclasses import dataclass, field
from pathlib import Path
from typing import Mapping

from romlauncher.errors import HashComputationError

DEFAULT_CHUNK_SIZE = 32 * 1024 * 1024
ALGORITHMS = ("crc32", "md5", "sha1")


@dataclass(frozen=True)
class Digests:
    crc32: str
    md5: str
    sha1: str

    def get(self, algorithm: str) -> str:
        return getattr(self, algorithm)


@dataclass(frozen=True)
class AlgorithmCheck:
    expected: str
    actual: str
    matches: bool


@dataclass
class IntegrityVerdict:
    """Valid when any one declared algorithm matches."""

    valid: bool
    per_algorithm: dict[str, AlgorithmCheck] = field(default_factory=dict)

    def describe(self) -> str:
        parts = [
            f"{name}: expected {check.expected}, got {check.actual}"
            for name, check in self.per_algorithm.items()
            if not check.matches
        ]
        return "; ".join(parts)


def normalize_hash(value: str, algorithm: str) -> str:
    """Lowercase hex; CRC32 zero-padded to 8 digits."""
    value = value.strip().lower()
    if value.startswith("0x"):
        value = value[2:]
    if algorithm == "crc32":
        value = value.zfill(8)
    return value


def compute_digests(path: Path, chunk_size: int = DEFAULT_CHUNK_SIZE) -> Digests:
    """Stream ``path`` once and return all three digests."""
    crc = 0
    md5 = hashlib.md5()
    sha1 = hashlib.sha1()
    try:
        with open(path, "rb") as f:
            while True:
                chunk = f.read(chunk_size)
                if not chunk:
                    break
                crc = zlib.crc32(chunk, crc)
                md5.update(chunk)
                sha1.update(chunk)
    except OSError as e:
        raise HashComputationError(path, str(e)) from e
    return Digests(
        crc32=f"{crc & 0xFFFFFFFF:08x}",
        md5=md5.hexdigest(),
        sha1=sha1.hexdigest(),
    )


def verify(
    path: Path,
    expected: Mapping[str, str],
    chunk_size: int = DEFAULT_CHUNK_SIZE,
) -> IntegrityVerdict:
    """
    Compare ``path`` against the declared hashes in ``expected``.

    Only algorithms with a non-empty expected value take part; with none
    declared the verdict is invalid, so callers decide beforehand whether
    verification applies at all.
    """
    declared = {
        name: normalize_hash(value, name)
        for name, value in expected.items()
        if name in ALGORITHMS and value
    }
    if not declared:
        return IntegrityVerdict(valid=False)

    digests = compute_digests(path, chunk_size)
    checks: dict[str, AlgorithmCheck] = {}
    for name, want in declared.items():
        actual = digests.get(name)
        checks[name] = AlgorithmCheck(expected=want, actual=actual, matches=actual == want)
    return IntegrityVerdict(
        valid=any(c.matches for c in checks.values()),
        per_algorithm=checks,
    )


async def compute_digests_async(path: Path, chunk_size: int = DEFAULT_CHUNK_SIZE) -> Digests:
    return await asyncio.to_thread(compute_digests, path, chunk_size)


async def verify_async(
    path: Path,
    expected: Mapping[str, str],
    chunk_size: int = DEFAULT_CHUNK_SIZE,
) -> IntegrityVerdict:
    return await asyncio.to_thread(verify, path, expected, chunk_size)
