"""
Sets up the application's loguru sinks.

Two sinks are used during a run:

- The console, colored, in the format every other tool of ours uses.
- An append-only log file in the output directory (`AudioNormalizer.log`),
  one `[<time> <LEVEL>]: <text>` record per message. It is written through
  loguru's queue (`enqueue=True`) so that records of files processed in parallel
  are never interleaved inside a line.
"""
import sys
from pathlib import Path

from loguru import logger

from ..config.common import DEFAULT_LOG_LEVEL, LOG_FILE_FORMAT, LOG_FILE_NAME, LOGGER_FORMAT


def configure_logging(output_dir: Path, level: str = DEFAULT_LOG_LEVEL, console: bool = True) -> Path:
    """
    Replaces all loguru handlers with the console sink and the run's log file.

    Args:
        output_dir: Directory receiving the log file. Created if necessary.
        level: Minimum level of both sinks.
        console: Whether records are also printed to stderr.

    Returns:
        The path of the log file.
    """
    output_dir = Path(output_dir)
    output_dir.mkdir(parents=True, exist_ok=True)
    log_file_path = output_dir / LOG_FILE_NAME

    logger.remove()
    if console:
        logger.add(sys.stderr, level=level, format=LOGGER_FORMAT)
    logger.add(
        log_file_path,
        level=level,
        format=LOG_FILE_FORMAT,
        mode="a",
        encoding="utf-8",
        enqueue=True,
    )
    logger.debug(f"Logging to {log_file_path} at level {level}.")
    return log_file_path
