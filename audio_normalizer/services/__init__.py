"""
Services Package for the Audio Normalizer.

This package contains the "service layer" of the application: classes that
perform one well-defined task against the outside world on behalf of the
pipelines.

- **FFmpeg Service (`FfmpegService`):**
  The four tool stages of a file: stream analysis with ffprobe, the loudness
  measurement pass, ReplayGain tag stripping and the normalizing re-encode. Each
  stage builds its command, runs it through the process runner and validates
  what the tool printed.

- **File Processing Service (`ProcessAudioFiles`):**
  Discovers the audio files in the input directory.

- **Logging Service (`configure_logging`):**
  Sets up the console and log file sinks of loguru.
"""
