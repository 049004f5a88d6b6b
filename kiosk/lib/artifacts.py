"""On-disk store for scan artifacts.

Hands out collision-free artifact names and serves stored artifacts back
with a content type inferred from the file extension.
"""

import random
from pathlib import Path

from kiosk.lib.config import SCAN_NUMBER_RANGE, get_settings
from kiosk.lib.exceptions import (
    ArtifactAccessError,
    ArtifactNamingError,
    ArtifactNotFoundError,
)
from kiosk.logging import get_logger

logger = get_logger("lib.artifacts")

ROUTE_PREFIX = "/scans"

_CONTENT_TYPES = {
    ".jpg": "image/jpeg",
    ".jpeg": "image/jpeg",
    ".png": "image/png",
    ".pdf": "application/pdf",
}
_DEFAULT_CONTENT_TYPE = "application/octet-stream"


def content_type_for(name: str) -> str:
    """Infer a content type from an artifact name's extension."""
    return _CONTENT_TYPES.get(Path(name).suffix.lower(), _DEFAULT_CONTENT_TYPE)


def route_path(name: str) -> str:
    """URL path under which the kiosk serves an artifact."""
    return f"{ROUTE_PREFIX}/{name}"


def name_from_locator(locator: str) -> str:
    """Extract the artifact name from a route path or URL."""
    return locator.rstrip("/").rsplit("/", 1)[-1]


class ArtifactStore:
    """Scan artifacts kept in a single directory."""

    def __init__(
        self,
        root: str | Path | None = None,
        *,
        max_attempts: int | None = None,
    ) -> None:
        cfg = get_settings().scanner
        self.root = Path(root if root is not None else cfg.scans_dir).resolve()
        self._max_attempts = max_attempts or cfg.naming_max_attempts

    def path_for(self, name: str) -> Path:
        """Resolve an artifact name to a path inside the store.

        Raises:
            ArtifactAccessError: If the name escapes the artifact root.
        """
        if not name:
            raise ArtifactAccessError("Artifact name is empty")
        path = (self.root / name).resolve()
        if not path.is_relative_to(self.root) or path == self.root:
            raise ArtifactAccessError(f"Access denied: {name}")
        return path

    def exists(self, name: str) -> bool:
        return self.path_for(name).exists()

    def new_name(self, prefix: str = "scan_", extension: str = "png") -> str:
        """Pick an artifact name that no stored artifact uses yet.

        Draws a random number until the name is free, giving up after the
        configured number of attempts.

        Raises:
            ArtifactNamingError: If every attempt collided.
        """
        low, high = SCAN_NUMBER_RANGE
        for _ in range(self._max_attempts):
            name = f"{prefix}{random.randint(low, high)}.{extension}"
            if not self.exists(name):
                return name
        raise ArtifactNamingError(
            f"No free artifact name after {self._max_attempts} attempts"
        )

    def read(self, name: str) -> tuple[bytes, str]:
        """Return an artifact's bytes and content type.

        Raises:
            ArtifactAccessError: If the name escapes the artifact root.
            ArtifactNotFoundError: If the artifact does not exist.
        """
        path = self.path_for(name)
        try:
            data = path.read_bytes()
        except (FileNotFoundError, IsADirectoryError):
            raise ArtifactNotFoundError(f"File not found: {name}") from None
        return data, content_type_for(name)

    def write(self, name: str, data: bytes) -> Path:
        """Store artifact bytes under the given name."""
        path = self.path_for(name)
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_bytes(data)
        logger.debug("Stored artifact %s (%d bytes)", name, len(data))
        return path
