"""Local image store: one file per sample under a per-installation directory."""

from __future__ import annotations

import asyncio
import logging
from datetime import datetime, timezone
from pathlib import Path

from worktracker.storage.base import StorageError

logger = logging.getLogger(__name__)

_EXTENSIONS = {
    "image/png": ".png",
    "image/jpeg": ".jpg",
    "image/webp": ".webp",
}


def screenshot_filename(captured_at: datetime, mime_type: str = "image/png") -> str:
    """Timestamp-derived file name, e.g. ``screenshot-2025-01-01T12-00-00-000000Z.png``."""
    if captured_at.tzinfo is not None:
        captured_at = captured_at.astimezone(timezone.utc).replace(tzinfo=None)
    stamp = captured_at.isoformat(timespec="microseconds").replace(":", "-").replace(".", "-")
    return f"screenshot-{stamp}Z{_EXTENSIONS.get(mime_type, '.img')}"


class LocalImageStore:
    """Writes sample images to disk and returns their path as the locator."""

    def __init__(self, root: Path | str) -> None:
        self.root = Path(root).expanduser()

    async def write(self, data: bytes, captured_at: datetime, mime_type: str = "image/png") -> str:
        """Write image bytes and return the locator (absolute file path).

        Raises:
            StorageError: If the file cannot be written.
        """
        try:
            path = await asyncio.to_thread(self._write_sync, data, captured_at, mime_type)
        except OSError as e:
            raise StorageError(f"Failed to write screenshot: {e}") from e
        logger.debug("Wrote %d bytes to %s", len(data), path)
        return str(path)

    def _write_sync(self, data: bytes, captured_at: datetime, mime_type: str) -> Path:
        self.root.mkdir(parents=True, exist_ok=True)
        name = screenshot_filename(captured_at, mime_type)
        path = self.root / name
        stem, suffix = path.stem, path.suffix
        counter = 1
        # Exclusive create so two writers never share a file
        while True:
            try:
                with open(path, "xb") as f:
                    f.write(data)
                return path
            except FileExistsError:
                path = self.root / f"{stem}-{counter}{suffix}"
                counter += 1

    async def read(self, locator: str) -> bytes:
        try:
            return await asyncio.to_thread(Path(locator).read_bytes)
        except OSError as e:
            raise StorageError(f"Failed to read screenshot {locator}: {e}") from e
