from __future__ import annotations

import os


class PhysicalFileSystem:
    """Thin seam over the real filesystem so callers can be tested with fakes."""

    def directory_exists(self, path: str | os.PathLike[str] | None) -> bool:
        if path is None:
            return False
        return os.path.isdir(path)
