"""Storage root resolution with a path traversal guard.

Relative storage paths (e.g. ``users/42/outfit_ratings/7/outfit.jpg``) are
joined onto one configured root. The lexical checks run before any
filesystem access, so a path that escapes the root is rejected without
being read or stat'ed.
"""

import os
from pathlib import Path, PurePosixPath
from typing import Union


class StoragePathError(ValueError):
    """Raised when a storage path escapes the storage root."""
    pass


class StorageRoot:
    """A fixed filesystem root plus a guarded join."""

    def __init__(self, root: Union[str, Path]):
        self.root = Path(root).expanduser().resolve()

    def join(self, relative: str) -> Path:
        """Join ``relative`` onto the root.

        Raises:
            StoragePathError: If the path is absolute, contains ``..``
                segments, or resolves (through symlinks) outside the root
        """
        if not relative or "\x00" in relative:
            raise StoragePathError("Storage path is empty or invalid")

        normalized = relative.replace("\\", "/")
        candidate = PurePosixPath(normalized)
        if candidate.is_absolute() or normalized.startswith("~"):
            raise StoragePathError("Storage path must be relative")
        if any(part == ".." for part in candidate.parts):
            raise StoragePathError("Storage path escapes the storage root")

        joined = Path(os.path.normpath(self.root.joinpath(*candidate.parts)))
        if not self._is_within(joined):
            raise StoragePathError("Storage path escapes the storage root")

        # Symlinks inside the root may still point elsewhere
        if not self._is_within(joined.resolve()):
            raise StoragePathError("Storage path escapes the storage root")

        return joined

    def _is_within(self, path: Path) -> bool:
        try:
            path.relative_to(self.root)
        except ValueError:
            return False
        return True
