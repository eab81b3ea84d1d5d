"""Idempotent edits to the persistent shell startup file."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Optional

from fridasetup.host.platform import PlatformAdapter

logger = logging.getLogger(__name__)

ENVIRONMENT_MARKER = "# Frida Python Environment"
VENV_MARKER = "# Frida Virtual Environment (auto-activate)"
PATH_COMMENT = "# Added by Frida setup script"


class ShellProfile:
    """
    A shell startup file that lines are appended to at most once.

    A marker comment (or the line itself) already present in the file
    means the edit was made by an earlier run and is skipped.
    """

    def __init__(self, path: Optional[Path]):
        self.path = path

    @classmethod
    def detect(cls, adapter: PlatformAdapter) -> ShellProfile:
        path = adapter.find_profile()
        if path is None:
            logger.warning("No shell configuration file found; PATH changes will not persist")
        return cls(path)

    @property
    def available(self) -> bool:
        return self.path is not None

    def _read(self) -> str:
        if self.path is None or not self.path.exists():
            return ""
        try:
            return self.path.read_text(encoding="utf-8", errors="replace")
        except OSError as e:
            logger.warning("Could not read %s: %s", self.path, e)
            return ""

    def contains(self, text: str) -> bool:
        return text in self._read()

    def _append(self, lines: list[str]) -> bool:
        """Append ``lines``; an unwritable profile is only a warning."""
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            with open(self.path, "a", encoding="utf-8") as f:
                f.write("\n" + "\n".join(lines) + "\n")
        except OSError as e:
            logger.warning("Could not update %s: %s", self.path, e)
            logger.warning("Add these lines manually:\n%s", "\n".join(lines))
            return False
        return True

    def ensure_block(self, marker: str, lines: list[str]) -> bool:
        """
        Append ``marker`` followed by ``lines`` unless the marker is present.

        Returns:
            True if the file was changed.
        """
        if self.path is None:
            return False
        if self.contains(marker):
            logger.info("Environment already configured in %s", self.path)
            return False

        if not self._append([marker, *lines]):
            return False
        logger.info("Added %s to %s", marker.lstrip("# "), self.path)
        return True

    def ensure_line(self, line: str, comment: str = PATH_COMMENT) -> bool:
        """Append a single line (with a comment above it) unless it is present."""
        if self.path is None:
            return False
        if self.contains(line):
            return False

        if not self._append([comment, line]):
            return False
        logger.info("Added to %s: %s", self.path, line)
        return True
