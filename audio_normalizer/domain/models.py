"""
Core domain models of the Audio Normalizer.

These are small immutable records passed between the layers: the file being
processed, what ffprobe and the `loudnorm` filter reported about it, how it will
be re-encoded, and the uniform result type every pipeline stage returns.
"""
import json
from dataclasses import dataclass, fields
from datetime import timedelta
from pathlib import Path
from typing import Generic, Optional, Tuple, TypeVar

from ..config.audio import (
    CODEC_ENCODING_TABLE,
    INTEGRATED_LOUDNESS_TARGET,
    LOUDNESS_SKIP_TOLERANCE,
)
from .exceptions import MalformedToolOutputException

T = TypeVar("T")


@dataclass(frozen=True)
class InputFile:
    """
    An audio file selected for processing.

    Attributes:
        path: Absolute path to the file.
    """

    path: Path

    @classmethod
    def from_path(cls, path: Path) -> "InputFile":
        """
        Creates an InputFile for an existing regular file.

        Raises:
            FileNotFoundError: If `path` is not an existing regular file.
        """
        resolved = Path(path).resolve()
        if not resolved.is_file():
            raise FileNotFoundError(f"Audio file not found: {resolved}")
        return cls(path=resolved)

    @property
    def name(self) -> str:
        """The base name, e.g. `track01.mp3`."""
        return self.path.name


@dataclass(frozen=True)
class StreamDescriptor:
    """
    Properties of the first audio stream as reported by ffprobe.

    All values are kept as the strings ffprobe printed. A file without an audio
    stream yields an empty descriptor (all fields empty), which is not an error
    by itself; the normalize stage refuses it because its codec is unknown.
    """

    codec_name: str = ""
    sample_rate: str = ""
    channels: str = ""
    bit_rate: str = ""

    @classmethod
    def from_probe_json(cls, document: str) -> "StreamDescriptor":
        """
        Builds a descriptor from `ffprobe -show_entries stream=... -of json` output.

        Args:
            document: The complete stdout of ffprobe.

        Raises:
            MalformedToolOutputException: If the document is not a JSON object or
                its `streams` entry is not a list of objects.
        """
        try:
            probe = json.loads(document)
        except json.JSONDecodeError as e:
            raise MalformedToolOutputException(f"ffprobe output is not valid JSON: {e}") from e
        if not isinstance(probe, dict):
            raise MalformedToolOutputException("ffprobe output is not a JSON object.")

        streams = probe.get("streams") or []
        if not isinstance(streams, list) or not all(isinstance(s, dict) for s in streams):
            raise MalformedToolOutputException("ffprobe 'streams' entry has an unexpected shape.")
        if not streams:
            return cls()

        first = streams[0]
        return cls(
            codec_name=_as_text(first.get("codec_name")),
            sample_rate=_as_text(first.get("sample_rate")),
            channels=_as_text(first.get("channels")),
            bit_rate=_as_text(first.get("bit_rate")),
        )

    @property
    def is_empty(self) -> bool:
        return not any((self.codec_name, self.sample_rate, self.channels, self.bit_rate))


@dataclass(frozen=True)
class LoudnessMeasurement:
    """
    The first-pass measurement printed by FFmpeg's `loudnorm` filter.

    Field names match the JSON keys of the filter output. Every field is a
    required, non-empty string; construction fails otherwise, so an existing
    instance is always complete.
    """

    input_i: str
    input_tp: str
    input_lra: str
    input_thresh: str
    output_i: str
    output_tp: str
    output_lra: str
    output_thresh: str
    normalization_type: str
    target_offset: str

    def __post_init__(self):
        missing = [f.name for f in fields(self) if not isinstance(getattr(self, f.name), str) or not getattr(self, f.name).strip()]
        if missing:
            raise MalformedToolOutputException(f"Loudness measurement is missing required field(s): {', '.join(missing)}")

    @classmethod
    def from_json(cls, document: str) -> "LoudnessMeasurement":
        """
        Parses the JSON object printed by `loudnorm=...:print_format=json`.

        Raises:
            MalformedToolOutputException: If the text is not a JSON object or a
                field is absent or empty.
        """
        try:
            data = json.loads(document)
        except json.JSONDecodeError as e:
            raise MalformedToolOutputException(f"loudnorm output is not valid JSON: {e}") from e
        if not isinstance(data, dict):
            raise MalformedToolOutputException("loudnorm output is not a JSON object.")
        return cls(**{f.name: _as_text(data.get(f.name)) for f in fields(cls)})

    @property
    def measured_integrated_loudness(self) -> float:
        """
        The measured integrated loudness in LUFS.

        Raises:
            ValueError: If FFmpeg reported something that is not a number.
        """
        return float(self.input_i)

    @property
    def is_linear(self) -> bool:
        return self.normalization_type == "linear"


def is_within_loudness_threshold(
    measurement: LoudnessMeasurement,
    target: float = float(INTEGRATED_LOUDNESS_TARGET),
    tolerance: float = LOUDNESS_SKIP_TOLERANCE,
) -> bool:
    """
    Whether a file is already close enough to the target to skip re-encoding.

    Both bounds are exclusive: with the default target of -16.0 LUFS, -16.99 and
    -15.01 are within the threshold while -17.0 and -15.0 are not.

    Raises:
        ValueError: If the measured loudness is not a number.
    """
    actual = measurement.measured_integrated_loudness
    return (target - tolerance) < actual < (target + tolerance)


@dataclass(frozen=True)
class EncodingPlan:
    """
    How a normalized file is re-encoded, derived from its source codec.

    Attributes:
        codec: The ffmpeg encoder name, or `INVALID_CODEC` for unsupported input.
        source_codec: The codec reported by ffprobe.
        rate_control: Option/value pair selecting bitrate or quality, e.g. ("-b:a", "160k").
        extra_arguments: Additional output options, e.g. ("-movflags", "+faststart").
        channels: Channel count copied from the source stream.
        sample_rate: Sample rate copied from the source stream.
    """

    INVALID_CODEC = "<:INVALID:>"

    codec: str
    source_codec: str = ""
    rate_control: Tuple[str, ...] = ()
    extra_arguments: Tuple[str, ...] = ()
    channels: str = ""
    sample_rate: str = ""

    @classmethod
    def for_stream(cls, stream: StreamDescriptor) -> "EncodingPlan":
        entry = CODEC_ENCODING_TABLE.get(stream.codec_name)
        if entry is None:
            return cls(codec=cls.INVALID_CODEC, source_codec=stream.codec_name)
        codec, rate_control, extra_arguments = entry
        return cls(
            codec=codec,
            source_codec=stream.codec_name,
            rate_control=tuple(rate_control),
            extra_arguments=tuple(extra_arguments),
            channels=stream.channels,
            sample_rate=stream.sample_rate,
        )

    @property
    def is_valid(self) -> bool:
        return self.codec != self.INVALID_CODEC


@dataclass(frozen=True)
class StageResult(Generic[T]):
    """
    The uniform return value of every pipeline stage.

    A successful result always carries a payload; a failed one never does and
    explains the failure in `output`, usually followed by the captured process
    output. Use the `ok()` and `fail()` constructors, which enforce this.
    """

    success: bool
    output: str = ""
    data: Optional[T] = None

    def __post_init__(self):
        if self.success and self.data is None:
            raise ValueError("A successful StageResult must carry a payload.")
        if not self.success and self.data is not None:
            raise ValueError("A failed StageResult must not carry a payload.")

    @classmethod
    def ok(cls, data: T) -> "StageResult[T]":
        return cls(success=True, data=data)

    @classmethod
    def fail(cls, output: str) -> "StageResult[T]":
        return cls(success=False, output=output)


@dataclass(frozen=True)
class RunSummary:
    """Totals reported once at the end of a scheduler run."""

    elapsed: timedelta
    processed: int
    failed: int

    @property
    def succeeded(self) -> int:
        return self.processed - self.failed


def _as_text(value) -> str:
    """Renders a JSON scalar as the string ffprobe/ffmpeg printed; None becomes ''."""
    if value is None:
        return ""
    return value if isinstance(value, str) else str(value)
