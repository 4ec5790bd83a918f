"""Store-scoped file lock. Callers hold it for a whole plan, up or down."""

from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path

from filelock import FileLock

from bootloader.store.paths import get_lock_path


@contextmanager
def store_lock(state_dir: Path, timeout_s: float = -1) -> Iterator[None]:
    """Acquire the store lock (.bbl.lock) for the context body.

    The pipelines themselves never lock; the CLI serializes invocations
    against one state directory with this.

    Args:
        state_dir: Artifact Store root (lock file lives under it).
        timeout_s: Seconds to wait; negative waits forever.

    Yields:
        None; lock is held for the context body.
    """
    lock_path = get_lock_path(state_dir)
    lock_path.parent.mkdir(parents=True, exist_ok=True)
    flock = FileLock(str(lock_path), timeout=timeout_s)
    flock.acquire()
    try:
        yield
    finally:
        flock.release()
