"""Status-file helpers for the gateway status endpoint."""

import logging
import time
from pathlib import Path
from typing import Optional

logger = logging.getLogger(__name__)


def read_release_id(path: Path) -> Optional[str]:
    """Return the deployed release id, or None when unavailable."""
    try:
        if not path.exists():
            return None
        return path.read_text(encoding="utf-8").strip() or None
    except OSError as exc:
        logger.warning("Failed to read release id from %s: %s", path, exc)
        return None


def read_epoch_file(path: Path) -> Optional[int]:
    """Read a file holding a single unix timestamp.

    Missing files, unreadable files and non-numeric content all yield None.
    """
    try:
        if not path.exists():
            return None
        raw = path.read_text(encoding="utf-8").strip()
    except OSError as exc:
        logger.warning("Failed to read %s: %s", path, exc)
        return None
    try:
        return int(float(raw))
    except (ValueError, OverflowError):
        return None


def mark_operator_activity(path: Path, now: Optional[float] = None) -> bool:
    """Write the current epoch seconds to the operator-activity file.

    Best effort: failures are logged and reported as False.
    """
    epoch = int(time.time() if now is None else now)
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(str(epoch), encoding="utf-8")
    except OSError as exc:
        logger.warning("Failed to record operator activity in %s: %s", path, exc)
        return False
    return True
