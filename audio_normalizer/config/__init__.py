"""
Configuration Package for the Audio Normalizer.

This package centralizes the static configuration settings for the application.
Keeping the loudness targets, codec table and stage timeouts apart from the
pipeline logic makes them easy to review and adjust without touching the code
that uses them.

This package includes settings for:
- Audio file types, loudness targets and per-codec encoding parameters.
- Common application settings like logging formats and the log file name.
- User-overridable paths for external tools (ffmpeg / ffprobe) loaded from
  `config.user.yaml`.
- The `NormalizerSettings` value object handed to the scheduler and services.
"""
