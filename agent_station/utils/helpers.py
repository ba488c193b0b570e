"""Small filesystem and logging helpers."""

from __future__ import annotations

import sys
from pathlib import Path

from loguru import logger


def ensure_dir(path: Path) -> Path:
    """Create a directory if needed and return it."""
    path.mkdir(parents=True, exist_ok=True)
    return path


def get_data_path(data_dir: str = "~/.agent-station") -> Path:
    """Return the expanded data directory, creating it on first use."""
    return ensure_dir(Path(data_dir).expanduser())


def setup_logging(
    level: str = "INFO",
    log_dir: Path | None = None,
    rotation: str = "10 MB",
    retention: str = "7 days",
) -> None:
    """Route loguru to stderr and, optionally, a rotating file under ``log_dir``."""
    logger.remove()
    logger.add(sys.stderr, level=level.upper())
    if log_dir is not None:
        ensure_dir(log_dir)
        logger.add(
            str(log_dir / "agent-station.log"),
            level="DEBUG",
            rotation=rotation,
            retention=retention,
            compression="gz",
        )
