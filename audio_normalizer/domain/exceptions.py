"""
Defines custom exception types for the Audio Normalizer application.

Exceptions are used sparingly here. A problem with a single audio file is never
raised across a stage or file boundary: the stages report it as a failed
`StageResult` instead. The exceptions below are either caught inside the stage
that raises them (`MalformedToolOutputException`) or signal a condition that
prevents the whole run from starting (`ConfigurationException`).

All custom exceptions inherit from the base `AudioNormalizerException`.
"""


class AudioNormalizerException(Exception):
    """Base class for all custom exceptions in the Audio Normalizer application."""

    pass


class ConfigurationException(AudioNormalizerException):
    """
    Raised when the startup configuration is unusable.

    Examples are a missing input directory, an `ffmpeg_dir` that does not contain
    both ffmpeg and ffprobe, or tools that are not available at all. This is the
    only fatal error of the application: `main.py` logs it and exits.
    """

    pass


class MalformedToolOutputException(AudioNormalizerException):
    """
    Raised while parsing output of ffprobe/ffmpeg that does not have the expected shape.

    Covers unparseable JSON as well as documents that parse but lack a required,
    non-empty field. The stage that parses the output converts it into a failed
    `StageResult` carrying the raw process output.
    """

    pass
