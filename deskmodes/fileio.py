"""Atomic file writes.

Temp file in the target directory, fsync, then rename over the target, so
readers only ever observe the old or the new document.
"""

import logging
import os
import tempfile
from pathlib import Path

logger = logging.getLogger(__name__)


def atomic_write_bytes(path: Path, data: bytes, prefix: str = ".tmp-") -> None:
    """Write `data` to `path` atomically.

    Raises:
        OSError: If the temp file cannot be written or renamed
    """
    path.parent.mkdir(parents=True, exist_ok=True)

    fd, temp_path = tempfile.mkstemp(dir=path.parent, prefix=prefix, suffix=path.suffix)

    try:
        with os.fdopen(fd, "wb") as f:
            f.write(data)
            f.flush()
            os.fsync(f.fileno())  # Ensure data is written to disk

        os.replace(temp_path, path)
        logger.debug(f"Wrote {len(data)} bytes to {path}")

    except Exception:
        # Clean up temp file on error
        if Path(temp_path).exists():
            os.unlink(temp_path)
        raise
