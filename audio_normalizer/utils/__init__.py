"""
Utilities Package for the Audio Normalizer.

Helper modules that are not specific to loudness normalization itself.

Modules:
    - process_runner.py: Launches one external command with a timeout, captures
      its output line by line and kills the whole process tree on expiry.
    - tool_check.py: Resolves and verifies the ffmpeg/ffprobe executables.
    - format_utils.py: Formats durations and stage diagnostics for the log.
"""
