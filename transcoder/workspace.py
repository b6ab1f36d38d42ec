"""
Per-job scratch directories.

Each job gets its own directory under the workspace root, named with a
random suffix so concurrent jobs never collide. `JobWorkspace` is a
context manager: the directory is created on entry and removed on exit,
whatever happened inside the block.
"""
import logging
import shutil
import tempfile
import time
from pathlib import Path

logger = logging.getLogger(__name__)

WORKSPACE_PREFIX = "video-job-"


class JobWorkspace:
    def __init__(self, root: Path, label: str = ""):
        self.root = Path(root)
        self.label = label
        self.path: Path | None = None

    def acquire(self) -> Path:
        if self.path is not None:
            raise RuntimeError(f"workspace already acquired at {self.path}")
        self.root.mkdir(parents=True, exist_ok=True)
        self.path = Path(tempfile.mkdtemp(prefix=WORKSPACE_PREFIX, dir=self.root))
        logger.debug("Workspace %s acquired for %s", self.path, self.label or "job")
        return self.path

    def release(self) -> None:
        """Remove the directory tree. Failures are logged, never raised."""
        if self.path is None:
            return
        path, self.path = self.path, None
        try:
            shutil.rmtree(path)
        except FileNotFoundError:
            pass
        except OSError:
            logger.warning("Could not remove workspace %s; leaving it for the sweeper", path, exc_info=True)
        else:
            logger.debug("Workspace %s removed", path)

    def subdir(self, name: str) -> Path:
        if self.path is None:
            raise RuntimeError("workspace not acquired")
        d = self.path / name
        d.mkdir(parents=True, exist_ok=True)
        return d

    def __enter__(self) -> "JobWorkspace":
        self.acquire()
        return self

    def __exit__(self, exc_type, exc, tb):
        self.release()
        return False


def purge_stale(root: Path, max_age: float, *, now: float | None = None) -> list[Path]:
    """
    Remove pipeline workspaces under `root` whose mtime is older than
    `max_age` seconds. Only directories with the workspace prefix are touched.
    """
    root = Path(root)
    if not root.is_dir():
        return []
    cutoff = (now if now is not None else time.time()) - max_age
    removed = []
    for p in root.iterdir():
        if not p.name.startswith(WORKSPACE_PREFIX) or not p.is_dir():
            continue
        try:
            if p.stat().st_mtime >= cutoff:
                continue
            shutil.rmtree(p)
        except FileNotFoundError:
            continue
        except OSError:
            logger.warning("Could not purge stale workspace %s", p, exc_info=True)
            continue
        removed.append(p)
    return removed
