"""Scoped temporary directory owning every intermediate file of one run."""

import logging
import shutil
import tempfile
import uuid
from pathlib import Path

from utils.errors import CleanupError

logger = logging.getLogger(__name__)

WORKSPACE_PREFIX = "slidecast_"


class Workspace:
    """A uniquely named temp directory with idempotent release.

    Files are named by scene index so concurrent workers never write the
    same path. Use as a context manager to guarantee release on every exit
    path; ``cleanup`` may also be called directly and is a no-op once the
    directory is gone.
    """

    def __init__(self, root: Path | str | None = None, prefix: str = WORKSPACE_PREFIX):
        if root is not None:
            Path(root).mkdir(parents=True, exist_ok=True)
        self.run_id = uuid.uuid4().hex[:12]
        self.path = Path(tempfile.mkdtemp(prefix=f"{prefix}{self.run_id}_", dir=root))
        self._released = False
        logger.debug(f"Workspace created: {self.path}")

    def __enter__(self) -> "Workspace":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.cleanup()

    def __repr__(self) -> str:
        state = "released" if self._released else "active"
        return f"Workspace({self.path}, {state})"

    @property
    def released(self) -> bool:
        return self._released

    def file(self, name: str) -> Path:
        """Path for a file inside the workspace."""
        if self._released:
            raise RuntimeError(f"Workspace already released: {self.path}")
        return self.path / name

    def scene_file(self, kind: str, index: int, suffix: str) -> Path:
        """Scene-indexed path, e.g. ``audio_003.mp3``."""
        return self.file(f"{kind}_{index:03d}{suffix}")

    def cleanup(self) -> None:
        """Delete the directory. Safe to call repeatedly; never raises."""
        if self._released:
            return
        self._released = True
        try:
            shutil.rmtree(self.path)
            logger.debug(f"Cleaned up workspace: {self.path}")
        except FileNotFoundError:
            pass
        except OSError as e:
            error = CleanupError(f"Failed to remove workspace {self.path}: {e}")
            logger.warning(str(error))
