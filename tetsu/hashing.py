"""ed2k content hashing used as the join key against AniDB.

A file is split into fixed 9,728,000 byte chunks. Each chunk is digested with
MD4, the 16 byte digests are concatenated in chunk order, and the result is
digested once more. Files that fit in a single chunk still go through both
steps. The trailing chunk is hashed as-is; a file whose size is an exact
multiple of the chunk size does not get an extra empty chunk.
"""

from __future__ import annotations

import mmap
import os
from concurrent.futures import ThreadPoolExecutor
from pathlib import Path
from typing import Iterator

from Crypto.Hash import MD4

CHUNK_SIZE = 9_728_000


def md4_digest(data: bytes) -> bytes:
    return MD4.new(data).digest()


def _chunk_bounds(length: int, chunk_size: int) -> Iterator[tuple[int, int]]:
    for start in range(0, length, chunk_size):
        yield start, min(start + chunk_size, length)


def _resolve_workers(workers: int | None, chunk_count: int) -> int:
    requested = workers if workers is not None else (os.cpu_count() or 1)
    return max(1, min(int(requested), chunk_count))


def ed2k_digest(
    data: bytes | bytearray | memoryview | mmap.mmap,
    *,
    chunk_size: int = CHUNK_SIZE,
    workers: int | None = None,
) -> bytes:
    """Return the raw 16 byte ed2k digest of *data*.

    Chunk digests may be computed in any order across *workers* threads; they
    are always concatenated in chunk order before the outer digest.
    """

    if chunk_size <= 0:
        raise ValueError("chunk_size must be greater than 0")
    bounds = list(_chunk_bounds(len(data), chunk_size))

    def _digest_chunk(bound: tuple[int, int]) -> bytes:
        start, end = bound
        return md4_digest(bytes(data[start:end]))

    max_workers = _resolve_workers(workers, len(bounds))
    if max_workers <= 1:
        chunk_digests = [_digest_chunk(bound) for bound in bounds]
    else:
        with ThreadPoolExecutor(max_workers=max_workers) as executor:
            # map() yields results in submission order regardless of completion order
            chunk_digests = list(executor.map(_digest_chunk, bounds))
    return md4_digest(b"".join(chunk_digests))


def ed2k_hash(
    path: Path | str,
    *,
    workers: int | None = None,
    chunk_size: int = CHUNK_SIZE,
) -> str:
    """Return the ed2k hash of the file at *path* as 32 lowercase hex characters.

    Raises OSError when the file cannot be opened or mapped.
    """

    with open(path, "rb") as handle:
        size = os.fstat(handle.fileno()).st_size
        if size == 0:
            # mmap refuses empty files
            return ed2k_digest(b"", chunk_size=chunk_size, workers=workers).hex()
        with mmap.mmap(handle.fileno(), 0, access=mmap.ACCESS_READ) as mapped:
            return ed2k_digest(mapped, chunk_size=chunk_size, workers=workers).hex()
