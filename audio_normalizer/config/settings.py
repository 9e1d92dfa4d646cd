"""
The settings object handed to the scheduler and the services.

All run-wide values are collected here once, at startup, and passed explicitly to
the constructors that need them; nothing reads them from module globals.
"""
from dataclasses import dataclass
from pathlib import Path

from .common import DEFAULT_PROCESSES


@dataclass(frozen=True)
class NormalizerSettings:
    """
    Run-wide configuration of one normalization run.

    Attributes:
        input_dir: Directory scanned for audio files.
        output_dir: Directory receiving the normalized files and the log file.
        ffmpeg_cmd: Command or absolute path used to launch ffmpeg.
        ffprobe_cmd: Command or absolute path used to launch ffprobe.
        processes: Maximum number of files processed at the same time.
        recursive: Whether sub-directories of `input_dir` are scanned too.
        show_progress: Whether the console progress line is printed.
    """

    input_dir: Path
    output_dir: Path
    ffmpeg_cmd: str = "ffmpeg"
    ffprobe_cmd: str = "ffprobe"
    processes: int = DEFAULT_PROCESSES
    recursive: bool = False
    show_progress: bool = True
