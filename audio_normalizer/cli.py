"""
Command-Line Interface (CLI) setup for the Audio Normalizer.

This module uses Python's `argparse` to define and parse the command-line
arguments that control a normalization run.
"""
import argparse
from pathlib import Path
from typing import Optional, Sequence

from .config.common import DEFAULT_LOG_LEVEL, DEFAULT_PROCESSES, LOG_LEVELS


def _positive_int(value: str) -> int:
    number = int(value)
    if number < 1:
        raise argparse.ArgumentTypeError(f"must be at least 1, got {number}")
    return number


def get_args(argv: Optional[Sequence[str]] = None) -> argparse.Namespace:
    """
    Parses and validates the command-line arguments.

    Both directories must exist and must not be the same directory, since the
    output directory receives files under their original names.

    Args:
        argv: Arguments to parse instead of `sys.argv[1:]`.

    Returns:
        argparse.Namespace: The parsed arguments, with `input_dir`, `output_dir`
                            and `ffmpeg_dir` resolved to absolute `Path`s.
    """
    parser = argparse.ArgumentParser(
        description="Normalize the loudness of audio files (mp3, m4a, opus) with ffmpeg's loudnorm filter."
    )
    parser.add_argument(
        "--input-dir", type=Path, required=True, help="Directory containing the audio files to normalize."
    )
    parser.add_argument(
        "--output-dir", type=Path, required=True, help="Directory receiving the normalized files and the log file."
    )
    parser.add_argument(
        "--ffmpeg-dir", type=Path, default=None,
        help="Directory containing ffmpeg and ffprobe. Defaults to 'paths.ffmpeg_dir' in config.user.yaml, then PATH."
    )
    parser.add_argument(
        "--processes", type=_positive_int, default=None,
        help=f"Number of files processed in parallel (default: {DEFAULT_PROCESSES})."
    )
    parser.add_argument(
        "--recursive", action="store_true", help="Also process audio files in subdirectories of the input directory."
    )
    parser.add_argument(
        "--log-level", type=str.upper, default=DEFAULT_LOG_LEVEL, choices=LOG_LEVELS,
        help="Set the logging level."
    )
    parser.add_argument(
        "--no-progress", action="store_true", help="Do not print the running count of processed files."
    )

    args = parser.parse_args(argv)

    args.input_dir = args.input_dir.expanduser().resolve()
    args.output_dir = args.output_dir.expanduser().resolve()
    if not args.input_dir.is_dir():
        parser.error(f"The input directory '{args.input_dir}' does not exist.")
    if not args.output_dir.is_dir():
        parser.error(f"The output directory '{args.output_dir}' does not exist.")
    if args.input_dir == args.output_dir:
        parser.error("The input and output directories must be different.")
    if args.ffmpeg_dir is not None:
        args.ffmpeg_dir = args.ffmpeg_dir.expanduser().resolve()

    return args
