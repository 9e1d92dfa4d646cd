"""
Common configuration settings used throughout the application.

This module contains globally shared constants for logging and scheduling, and
the loader for the optional user configuration file. A `config.user.yaml` at the
project root lets users point the application at a specific FFmpeg build or
change the default number of parallel workers without modifying the source code.
"""
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

import yaml
from loguru import logger

# --- User-Defined Configuration ---
# Example `config.user.yaml`:
#
#   paths:
#     ffmpeg_dir: C:/tools/ffmpeg/bin
#   normalizer:
#     processes: 6

PROJECT_ROOT = Path(__file__).resolve().parent.parent.parent
USER_CONFIG_PATH = PROJECT_ROOT / "config.user.yaml"


# --- Logging Configuration ---

# The format string for the Loguru console sink.
LOGGER_FORMAT = (
    "<green>{time:MM-DD HH:mm:ss}</green> | "
    "<level>{level: <8}</level> | "
    "<cyan>{name}</cyan>:<cyan>{function}</cyan>:<cyan>{line}</cyan> | "
    "{thread.name} - <level>{message}</level>"
)

# The format of every record written to the append-only log file in the output
# directory: one line per message, `[<time> <LEVEL>]: <text>`.
LOG_FILE_FORMAT = "[{time:YYYY-MM-DD HH:mm:ss} {level}]: {message}"

# Name of the log file created inside the output directory.
LOG_FILE_NAME = "AudioNormalizer.log"

# Levels accepted by `--log-level`.
LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR")

# DEBUG output is only enabled when Python runs without `-O`.
DEFAULT_LOG_LEVEL = "DEBUG" if __debug__ else "INFO"


# --- Scheduling ---

# Number of files normalized concurrently when nothing else is configured.
DEFAULT_PROCESSES = 4

# How often the console progress line is refreshed, in seconds.
PROGRESS_INTERVAL_SECONDS = 1.0


@dataclass(frozen=True)
class UserConfig:
    """Values read from `config.user.yaml`. Every field is optional."""

    ffmpeg_dir: Optional[Path] = None
    processes: Optional[int] = None


def load_user_config(config_path: Path = USER_CONFIG_PATH) -> UserConfig:
    """
    Loads the optional user configuration file.

    A missing file is normal and yields an empty `UserConfig`. A file that cannot
    be read or parsed is reported as a warning and also yields an empty config,
    so a typo in the YAML never prevents a run that is fully specified on the
    command line.

    Args:
        config_path: Location of the YAML file.

    Returns:
        The parsed `UserConfig`.
    """
    if not config_path.is_file():
        logger.debug(f"User config '{config_path}' not found. Relying on command-line arguments and system PATH.")
        return UserConfig()

    try:
        with config_path.open("r", encoding="utf-8") as f:
            user_config = yaml.safe_load(f) or {}
    except (OSError, yaml.YAMLError) as e:
        logger.warning(f"Could not load or parse '{config_path}': {e}")
        return UserConfig()

    if not isinstance(user_config, dict):
        logger.warning(f"Ignoring '{config_path}': expected a mapping at the top level.")
        return UserConfig()

    paths_config = user_config.get("paths") or {}
    normalizer_config = user_config.get("normalizer") or {}

    ffmpeg_dir_str = paths_config.get("ffmpeg_dir")
    processes = normalizer_config.get("processes")
    if processes is not None and (not isinstance(processes, int) or processes < 1):
        logger.warning(f"Ignoring invalid 'normalizer.processes' value in '{config_path}': {processes!r}")
        processes = None

    return UserConfig(
        ffmpeg_dir=Path(ffmpeg_dir_str) if ffmpeg_dir_str else None,
        processes=processes,
    )
