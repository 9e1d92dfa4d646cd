"""
Main entry point for the Audio Normalizer application.

This script parses the command-line arguments, sets up logging, locates and
verifies ffmpeg/ffprobe, discovers the audio files and runs the normalization
scheduler over them.

Example:
    python main.py --input-dir ~/Music/podcasts --output-dir ~/Music/normalized --processes 6
"""

import sys
from typing import Optional, Sequence

from loguru import logger

from audio_normalizer.cli import get_args
from audio_normalizer.config.common import DEFAULT_LOG_LEVEL, DEFAULT_PROCESSES, LOGGER_FORMAT, load_user_config
from audio_normalizer.config.settings import NormalizerSettings
from audio_normalizer.domain.exceptions import ConfigurationException
from audio_normalizer.pipeline.scheduler import NormalizationScheduler
from audio_normalizer.services.ffmpeg_service import FfmpegService
from audio_normalizer.services.file_processing_service import ProcessAudioFiles
from audio_normalizer.services.logging_service import configure_logging
from audio_normalizer.utils.process_runner import ProcessRunner
from audio_normalizer.utils.tool_check import resolve_tool_commands, verify_tools

# Exit code used when the run cannot start because of its configuration.
EXIT_CONFIGURATION_ERROR = 2

# Console logging until the output directory, and with it the log file, is known.
logger.remove()
logger.add(sys.stderr, level=DEFAULT_LOG_LEVEL, format=LOGGER_FORMAT)


def main(argv: Optional[Sequence[str]] = None) -> int:
    """
    Runs one normalization batch.

    Returns:
        0 when the batch ran (even if individual files failed), or
        `EXIT_CONFIGURATION_ERROR` when it could not start.
    """
    args = get_args(argv)
    user_config = load_user_config()

    log_file_path = configure_logging(args.output_dir, args.log_level)
    logger.debug(f"Parsed arguments: {args}")
    logger.info(f"Writing the log to {log_file_path}")

    runner = ProcessRunner()
    try:
        ffmpeg_cmd, ffprobe_cmd = resolve_tool_commands(args.ffmpeg_dir or user_config.ffmpeg_dir)
        verify_tools(ffmpeg_cmd, ffprobe_cmd, runner)
    except ConfigurationException as e:
        logger.error(str(e))
        return EXIT_CONFIGURATION_ERROR

    settings = NormalizerSettings(
        input_dir=args.input_dir,
        output_dir=args.output_dir,
        ffmpeg_cmd=ffmpeg_cmd,
        ffprobe_cmd=ffprobe_cmd,
        processes=args.processes or user_config.processes or DEFAULT_PROCESSES,
        recursive=args.recursive,
        show_progress=not args.no_progress,
    )

    input_files = ProcessAudioFiles(settings.input_dir, settings.recursive, exclude_dirs=[settings.output_dir]).files
    print(f"Found {len(input_files)} audio file(s) in {settings.input_dir}")

    service = FfmpegService.from_settings(settings, runner)
    summary = NormalizationScheduler.from_settings(settings, service).run(input_files)
    if summary is not None:
        logger.success(
            f"Audio Normalizer finished: {summary.succeeded} of {summary.processed} file(s) written to {settings.output_dir}."
        )
    return 0


if __name__ == "__main__":
    sys.exit(main())
