"""loguru sinks for photag runs: stderr plus a rotating file per day."""

from __future__ import annotations

from pathlib import Path
import sys

from loguru import logger

LOG_FILE_PATTERN = "photag_{time:YYYYMMDD}.log"


def get_log_directory(work_dir: str | None = None) -> str:
    """`<work_dir>/logs` when a work directory is known, else `~/.photag/logs`."""
    if work_dir:
        return str(Path(work_dir) / "logs")
    return str(Path.home() / ".photag" / "logs")


def init_logging(log_dir: str | None = None, level: str = "INFO") -> None:
    """Replace loguru's default sink with stderr and a rotating file sink."""
    log_path = Path(log_dir or get_log_directory())
    log_path.mkdir(parents=True, exist_ok=True)

    logger.remove()
    logger.add(sys.stderr, level=level)
    logger.add(
        str(log_path / LOG_FILE_PATTERN),
        rotation="10 MB",
        retention="10 days",
        compression="zip",
        backtrace=False,
        diagnose=False,
        level=level,
    )


def find_latest_log_file(log_dir: str | None = None) -> Path | None:
    """Most recently written photag log in `log_dir`, or None."""
    log_path = Path(log_dir or get_log_directory())
    try:
        candidates = [p for p in log_path.glob("photag_*.log") if p.is_file()]
        if not candidates:
            return None
        return max(candidates, key=lambda p: p.stat().st_mtime)
    except OSError:
        return None
