# SPDX-FileCopyrightText: 2025 Theori Inc.
# SPDX-License-Identifier: AGPL-3.0-or-later

"""Out-file persistence guarded by an exclusive file lock."""

from __future__ import annotations

import contextlib
import logging
import time
from collections.abc import Iterator
from pathlib import Path

from filelock import FileLock, Timeout

logger = logging.getLogger(__name__)


def lock_path_for(target: str | Path) -> Path:
    path = Path(target).expanduser()
    return path.with_name(f"{path.name}.lock")


@contextlib.contextmanager
def out_file_lock(target: str | Path, *, timeout: float) -> Iterator[None]:
    """Hold ``<target>.lock`` exclusively; `filelock.Timeout` propagates."""
    lock_file = lock_path_for(target)
    lock_file.parent.mkdir(parents=True, exist_ok=True)
    lock = FileLock(str(lock_file), timeout=timeout, thread_local=False)
    start = time.monotonic()
    try:
        lock.acquire()
    except Timeout:
        logger.info("lock-timeout wait_ms=%.3f lock_file=%s", (time.monotonic() - start) * 1000.0, lock_file)
        raise
    logger.debug("lock-acquired wait_ms=%.3f lock_file=%s", (time.monotonic() - start) * 1000.0, lock_file)
    try:
        yield None
    finally:
        lock.release()


def write_out_file(
    target: str | Path,
    content: bytes,
    *,
    append: bool = False,
    timeout: float = 10.0,
    locked: bool = False,
) -> int:
    """
    Write `content` to `target`, appending when continuing a resumed download.

    Missing parent directories are created. Pass `locked=True` when the caller already
    holds `out_file_lock` for `target`. Returns the number of bytes written.
    """
    path = Path(target).expanduser()
    path.parent.mkdir(parents=True, exist_ok=True)
    with contextlib.ExitStack() as stack:
        if not locked:
            stack.enter_context(out_file_lock(path, timeout=timeout))
        with path.open("ab" if append else "wb") as handle:
            written = handle.write(content)
    logger.debug("%s %d bytes to %s", "Appended" if append else "Wrote", written, path)
    return written


__all__ = ["lock_path_for", "out_file_lock", "write_out_file"]
