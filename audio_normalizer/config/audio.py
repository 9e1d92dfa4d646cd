"""
Configuration settings related to audio processing.

This module defines the recognized input extensions, the loudness targets that
are handed to FFmpeg's `loudnorm` filter, the per-codec re-encoding parameters,
the naming of intermediate files and the timeout of every external tool call.
"""

# ======================================================================================
# Audio File Identification
# ======================================================================================

# Extensions (lowercase, with leading dot) of the files picked up from the input directory.
AUDIO_EXTENSIONS = (".mp3", ".opus", ".m4a")


# ======================================================================================
# Loudness Targets (EBU R128 style, see https://ffmpeg.org/ffmpeg-filters.html#loudnorm)
# ======================================================================================

# Target integrated loudness in LUFS.
INTEGRATED_LOUDNESS_TARGET = "-16.0"

# Maximum true peak in dBTP.
MAX_TRUE_PEAK = "-1.5"

# Target loudness range in LU.
LOUDNESS_RANGE_TARGET = "11.0"

# Files whose measured integrated loudness lies strictly within
# (target - tolerance, target + tolerance) are not re-encoded.
LOUDNESS_SKIP_TOLERANCE = 1.0

# `loudnorm` with `print_format=json` prints its measurement as a JSON object of
# exactly this many lines (opening brace, ten fields, closing brace). This is a
# property of the filter's output format, not a protocol: if a future FFmpeg
# changes it, the analysis stage reports malformed output instead of guessing.
LOUDNORM_JSON_LINE_COUNT = 12


# ======================================================================================
# Encoding Parameters
# ======================================================================================

# Source codec name (as reported by ffprobe) ->
#   (ffmpeg encoder, (rate-control option, value), extra output options).
# Codecs missing from this table cannot be normalized.
CODEC_ENCODING_TABLE = {
    "mp3": ("libmp3lame", ("-q:a", "0"), ()),
    "aac": ("aac", ("-b:a", "192k"), ("-movflags", "+faststart")),
    "opus": ("libopus", ("-b:a", "160k"), ()),
}


# ======================================================================================
# Intermediate Files and Metadata
# ======================================================================================

# Prefix of the copy written by the tag stripping stage.
STRIPPED_FILE_PREFIX = "Stripped_"

# Prefix of the re-encoded copy written by the normalization stage.
NORMALIZED_FILE_PREFIX = "Normalized_"

# ReplayGain tags cleared before normalizing, so players do not correct the
# volume a second time.
REPLAYGAIN_METADATA_KEYS = (
    "REPLAYGAIN_ALBUM_GAIN",
    "REPLAYGAIN_ALBUM_PEAK",
    "REPLAYGAIN_TRACK_GAIN",
    "REPLAYGAIN_TRACK_PEAK",
)


# ======================================================================================
# External Tool Timeouts (seconds)
# ======================================================================================

PROBE_TIMEOUT = 10.0
LOUDNESS_ANALYSIS_TIMEOUT = 180.0
STRIP_TAGS_TIMEOUT = 60.0
NORMALIZE_TIMEOUT = 180.0
TOOL_CHECK_TIMEOUT = 5.0

# Default timeout of a ProcessInvocation that does not set one explicitly.
DEFAULT_PROCESS_TIMEOUT = 30.0
