from __future__ import annotations

import fcntl
from contextlib import contextmanager
from pathlib import Path
from typing import Callable, IO, Iterator


def ensure_dir(path: Path) -> Path:
    path.mkdir(parents=True, exist_ok=True)
    return path


@contextmanager
def locked_file(path: Path, mode: str = "a+") -> Iterator[IO[str]]:
    """Open ``path`` and hold an exclusive ``flock`` until the block exits.

    Writers in other processes block on the same lock, so whole-file rewrites
    never interleave.
    """
    with path.open(mode, encoding="utf-8", newline="") as fh:
        fcntl.flock(fh.fileno(), fcntl.LOCK_EX)
        try:
            yield fh
        finally:
            fh.flush()
            fcntl.flock(fh.fileno(), fcntl.LOCK_UN)


def locked_update_text(path: Path, update: Callable[[str], str]) -> str:
    """Rewrite ``path`` with ``update(old_text)`` under an exclusive lock."""
    with locked_file(path, "a+") as fh:
        fh.seek(0)
        old = fh.read()
        new = update(old)
        fh.seek(0)
        fh.truncate()
        fh.write(new)
    return new


def locked_write_text(path: Path, text: str) -> None:
    locked_update_text(path, lambda _old: text)
