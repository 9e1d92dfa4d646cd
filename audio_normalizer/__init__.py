"""
This file marks the 'audio_normalizer' directory as a Python package.

The package is organised in layers, in the same way the data flows during a run:

    pipeline.scheduler      -> runs one FilePipeline per input file, bounded concurrency
    pipeline.file_pipeline  -> the four stages for a single file plus the skip/normalize decision
    services.ffmpeg_service -> builds ffprobe/ffmpeg invocations and validates their output
    utils.process_runner    -> launches one external process with a timeout

Configuration constants live in `config`, value objects and exceptions in `domain`.
"""

__version__ = "1.0.0"
