"""Local scratch directories for dumps and downloaded blobs."""

from __future__ import annotations

import logging
import shutil
import tempfile
from datetime import datetime
from pathlib import Path
from types import TracebackType


logger = logging.getLogger(__name__)


class ScratchSpace:
    """A working directory that is removed on exit only if we created it.

    A caller-supplied directory is used as-is and never deleted. A generated
    directory, named ``<prefix>_<YYYYmmdd_HHMMSS>`` under the system temp
    directory, is removed on exit unless ``keep`` is set.

    Example:
        >>> with ScratchSpace.create(None, "storage_migration") as scratch:
        ...     scratch.path.is_dir()
        True
    """

    def __init__(self, path: Path, owned: bool, keep: bool = False) -> None:
        self.path = path
        self.owned = owned
        self.keep = keep

    @classmethod
    def create(
        cls,
        directory: Path | None,
        prefix: str,
        keep: bool = False,
        now: datetime | None = None,
    ) -> ScratchSpace:
        """Create (or adopt) the scratch directory.

        Args:
            directory: User-supplied directory, or None to generate one.
            prefix: Prefix of the generated directory name.
            keep: Keep a generated directory after the run (PostgreSQL dumps).
            now: Timestamp for the generated name. Defaults to the current time.
        """
        if directory is not None:
            path = Path(directory).expanduser()
            path.mkdir(parents=True, exist_ok=True)
            return cls(path, owned=False)
        stamp = (now or datetime.now()).strftime("%Y%m%d_%H%M%S")
        path = Path(tempfile.gettempdir()) / f"{prefix}_{stamp}"
        path.mkdir(parents=True, exist_ok=True)
        return cls(path, owned=True, keep=keep)

    def cleanup(self) -> bool:
        """Remove the directory if this space owns it. Returns True if removed."""
        if not self.owned or self.keep or not self.path.exists():
            return False
        logger.info("Cleaning up scratch directory %s", self.path)
        shutil.rmtree(self.path)
        return True

    def __enter__(self) -> ScratchSpace:
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> None:
        self.cleanup()
