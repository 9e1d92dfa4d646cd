"""
The four external tool stages of the normalization pipeline.

`FfmpegService` knows how to ask ffprobe and ffmpeg for one specific thing and
how to recognize a usable answer:

1. `analyze_stream`   - codec, sample rate, channels and bitrate of the first audio stream.
2. `analyze_loudness` - first `loudnorm` pass, measuring the file.
3. `strip_tags`       - stream copy without the ReplayGain tags.
4. `normalize`        - second `loudnorm` pass, re-encoding with the measured values.

Every stage returns a `StageResult`. Problems with the tool or the file never
raise out of a stage: they become a failed result whose text names the stage and
the file, followed by everything the tool printed.
"""
import itertools
from pathlib import Path
from typing import List, Optional, Sequence

import ffmpeg
from loguru import logger

from ..config.audio import (
    INTEGRATED_LOUDNESS_TARGET,
    LOUDNESS_ANALYSIS_TIMEOUT,
    LOUDNESS_RANGE_TARGET,
    LOUDNORM_JSON_LINE_COUNT,
    MAX_TRUE_PEAK,
    NORMALIZE_TIMEOUT,
    NORMALIZED_FILE_PREFIX,
    PROBE_TIMEOUT,
    REPLAYGAIN_METADATA_KEYS,
    STRIP_TAGS_TIMEOUT,
    STRIPPED_FILE_PREFIX,
)
from ..config.settings import NormalizerSettings
from ..domain.exceptions import MalformedToolOutputException
from ..domain.models import (
    EncodingPlan,
    InputFile,
    LoudnessMeasurement,
    StageResult,
    StreamDescriptor,
)
from ..domain.process import ProcessInvocation, ProcessOutcome
from ..utils.format_utils import format_process_output
from ..utils.process_runner import ProcessRunner

# Entries requested from ffprobe for the first audio stream.
PROBE_STREAM_ENTRIES = "stream=codec_name,bit_rate,sample_rate,channels"


def loudnorm_filter(measurement: Optional[LoudnessMeasurement] = None) -> str:
    """
    Builds the `loudnorm` filter expression for either pass.

    Without a measurement this is the analysis pass, printing its result as JSON.
    With one, the measured values are fed back so the filter can normalize in a
    single, predictable pass.
    """
    targets = f"loudnorm=I={INTEGRATED_LOUDNESS_TARGET}:TP={MAX_TRUE_PEAK}:LRA={LOUDNESS_RANGE_TARGET}"
    if measurement is None:
        return f"{targets}:print_format=json"
    return (
        f"{targets}"
        f":measured_I={measurement.input_i}"
        f":measured_TP={measurement.input_tp}"
        f":measured_LRA={measurement.input_lra}"
        f":measured_thresh={measurement.input_thresh}"
        f":offset={measurement.target_offset}"
        f":linear={'true' if measurement.is_linear else 'false'}"
    )


def extract_loudnorm_block(stderr: Sequence[str]) -> Optional[List[str]]:
    """
    Returns the lines of the JSON object `loudnorm` printed, or None if there is none.

    The block starts at the first line beginning with `{` and is
    `LOUDNORM_JSON_LINE_COUNT` lines long. Fewer lines are returned when the
    output ends early; the caller treats that as malformed output.
    """
    for index, line in enumerate(stderr):
        if line.startswith("{"):
            return list(stderr[index:index + LOUDNORM_JSON_LINE_COUNT])
    return None


class FfmpegService:
    """
    Builds ffprobe/ffmpeg invocations for one run and validates their results.

    Attributes:
        ffmpeg_cmd: Command or path used to launch ffmpeg.
        ffprobe_cmd: Command or path used to launch ffprobe.
        output_dir: Directory receiving intermediate and normalized files.
        runner: The process runner executing every invocation.
    """

    def __init__(self, ffmpeg_cmd: str, ffprobe_cmd: str, output_dir: Path, runner: Optional[ProcessRunner] = None):
        self.ffmpeg_cmd = ffmpeg_cmd
        self.ffprobe_cmd = ffprobe_cmd
        self.output_dir = Path(output_dir)
        self.runner = runner or ProcessRunner()

    @classmethod
    def from_settings(cls, settings: NormalizerSettings, runner: Optional[ProcessRunner] = None) -> "FfmpegService":
        return cls(settings.ffmpeg_cmd, settings.ffprobe_cmd, settings.output_dir, runner)

    # ----------------------------------------------------------------------------------
    # Stage 1: stream analysis
    # ----------------------------------------------------------------------------------

    def analyze_stream(self, input_file: InputFile) -> StageResult[StreamDescriptor]:
        """
        Reads the properties of the first audio stream with ffprobe.

        A file without an audio stream succeeds with an empty descriptor; the
        normalize stage rejects it later because its codec is unknown.
        """
        invocation = (
            ProcessInvocation.create(self.ffprobe_cmd)
            .with_arguments(["-v", "error", "-select_streams", "a:0", "-show_entries", PROBE_STREAM_ENTRIES, "-of", "json"])
            .with_argument(str(input_file.path))
            .with_timeout(PROBE_TIMEOUT)
        )
        outcome = self.runner.run(invocation)
        if not outcome.succeeded:
            return self._failure(f"Stream analysis of '{input_file.name}' failed.", outcome)

        try:
            descriptor = StreamDescriptor.from_probe_json("\n".join(outcome.stdout))
        except MalformedToolOutputException as e:
            logger.debug(f"Unparseable ffprobe output for {input_file.name}: {e}")
            return self._failure(
                f"'{input_file.name}' is unreadable, corrupt or perhaps not an actual audio file.", outcome
            )

        if descriptor.is_empty:
            logger.warning(f"No audio stream found in {input_file.name}.")
        else:
            logger.debug(
                f"Stream of {input_file.name}: codec={descriptor.codec_name}, sample_rate={descriptor.sample_rate}, "
                f"channels={descriptor.channels}, bit_rate={descriptor.bit_rate}"
            )
        return StageResult.ok(descriptor)

    # ----------------------------------------------------------------------------------
    # Stage 2: loudness analysis
    # ----------------------------------------------------------------------------------

    def analyze_loudness(self, input_file: InputFile) -> StageResult[LoudnessMeasurement]:
        """
        Measures the file with a first `loudnorm` pass, discarding the decoded audio.

        ffmpeg prints the measurement as a JSON object on stderr, between its
        regular log lines. That object is located, checked for its expected shape
        and parsed into a `LoudnessMeasurement`.
        """
        args = (
            ffmpeg.input(str(input_file.path))
            .output("-", af=loudnorm_filter(), format="null")
            .get_args()
        )
        invocation = (
            ProcessInvocation.create(self.ffmpeg_cmd)
            .with_arguments(args)
            .with_timeout(LOUDNESS_ANALYSIS_TIMEOUT)
        )
        outcome = self.runner.run(invocation)
        if not outcome.succeeded:
            return self._failure(f"Loudness analysis of '{input_file.name}' failed.", outcome)

        block = extract_loudnorm_block(outcome.stderr)
        if block is None:
            return self._failure(
                f"Loudness analysis output of '{input_file.name}' does not appear to contain analysis results.", outcome
            )

        malformed = f"Loudness analysis output of '{input_file.name}' is malformed."
        if len(block) < LOUDNORM_JSON_LINE_COUNT or block[-1] != "}":
            return self._failure(malformed, outcome)

        try:
            measurement = LoudnessMeasurement.from_json("\n".join(block))
        except MalformedToolOutputException as e:
            logger.debug(f"Rejected loudnorm output for {input_file.name}: {e}")
            return self._failure(malformed, outcome)

        logger.debug(
            f"Loudness of {input_file.name}: I={measurement.input_i} LUFS, TP={measurement.input_tp} dBTP, "
            f"LRA={measurement.input_lra} LU ({measurement.normalization_type})"
        )
        return StageResult.ok(measurement)

    # ----------------------------------------------------------------------------------
    # Stage 3: tag stripping
    # ----------------------------------------------------------------------------------

    def stripped_path(self, input_file: InputFile) -> Path:
        return self.output_dir / f"{STRIPPED_FILE_PREFIX}{input_file.name}"

    def normalized_path(self, input_file: InputFile) -> Path:
        return self.output_dir / f"{NORMALIZED_FILE_PREFIX}{input_file.name}"

    def strip_tags(self, input_file: InputFile) -> StageResult[Path]:
        """
        Copies the streams of `input_file` into the output directory without ReplayGain tags.

        All other metadata is kept. A destination left over from an earlier run
        is replaced.
        """
        destination = self.stripped_path(input_file)
        removal_error = _remove_if_exists(destination)
        if removal_error:
            return StageResult.fail(f"Could not replace '{destination}': {removal_error}")

        # ffmpeg-python renders an option once, so the repeated -metadata pairs are built by hand.
        args = itertools.chain(
            ["-i", str(input_file.path), "-map_metadata", "0"],
            itertools.chain.from_iterable(("-metadata", f"{key}=") for key in REPLAYGAIN_METADATA_KEYS),
            ["-c", "copy", str(destination)],
        )
        invocation = ProcessInvocation.create(self.ffmpeg_cmd).with_arguments(args).with_timeout(STRIP_TAGS_TIMEOUT)
        outcome = self.runner.run(invocation)
        if not outcome.succeeded:
            _remove_if_exists(destination)
            return self._failure(f"Stripping tags from '{input_file.name}' failed.", outcome)

        if not destination.is_file():
            return self._failure(f"Stripping tags from '{input_file.name}' did not produce '{destination.name}'.", outcome)

        logger.debug(f"Stripped ReplayGain tags: {input_file.name} -> {destination.name}")
        return StageResult.ok(destination)

    # ----------------------------------------------------------------------------------
    # Stage 4: normalization
    # ----------------------------------------------------------------------------------

    def normalize(
        self,
        input_file: InputFile,
        stripped_file: Path,
        stream: StreamDescriptor,
        measurement: LoudnessMeasurement,
    ) -> StageResult[Path]:
        """
        Re-encodes `stripped_file` with the second `loudnorm` pass.

        The encoder is chosen from the source codec; sample rate and channel count
        are kept. The result is written as `Normalized_<original name>` and must
        exist and be non-empty afterwards.

        Args:
            input_file: The original file, used for naming and messages.
            stripped_file: Output of `strip_tags`, the actual input of the encode.
            stream: Output of `analyze_stream`.
            measurement: Output of `analyze_loudness`.
        """
        plan = EncodingPlan.for_stream(stream)
        if not plan.is_valid:
            return StageResult.fail(f"Unsupported codec: {plan.source_codec}")

        destination = self.normalized_path(input_file)
        removal_error = _remove_if_exists(destination)
        if removal_error:
            return StageResult.fail(f"Could not replace '{destination}': {removal_error}")

        output_options = {"af": loudnorm_filter(measurement), "c:v": "copy", "c:a": plan.codec}
        output_options.update(_option_pairs(plan.rate_control))
        if plan.sample_rate:
            output_options["ar"] = plan.sample_rate
        if plan.channels:
            output_options["ac"] = plan.channels
        output_options.update(_option_pairs(plan.extra_arguments))

        args = ffmpeg.input(str(stripped_file)).output(str(destination), **output_options).get_args()
        invocation = ProcessInvocation.create(self.ffmpeg_cmd).with_arguments(args).with_timeout(NORMALIZE_TIMEOUT)
        outcome = self.runner.run(invocation)
        if not outcome.succeeded:
            _remove_if_exists(destination)
            return self._failure(f"Normalizing '{input_file.name}' failed.", outcome)

        if not destination.is_file():
            return self._failure(f"Normalizing '{input_file.name}' did not produce '{destination.name}'.", outcome)
        if destination.stat().st_size == 0:
            _remove_if_exists(destination)
            return self._failure(f"Normalizing '{input_file.name}' produced an empty file.", outcome)

        logger.debug(f"Normalized {input_file.name} with {plan.codec} -> {destination.name}")
        return StageResult.ok(destination)

    @staticmethod
    def _failure(context: str, outcome: ProcessOutcome) -> StageResult:
        return StageResult.fail(format_process_output(context, outcome.stdout, outcome.stderr))


def _option_pairs(arguments: Sequence[str]) -> dict:
    """Turns ("-b:a", "160k", "-movflags", "+faststart") into ffmpeg-python output kwargs."""
    return {arguments[i].lstrip("-"): arguments[i + 1] for i in range(0, len(arguments) - 1, 2)}


def _remove_if_exists(path: Path) -> Optional[OSError]:
    """Deletes `path` if present. Returns the error instead of raising it."""
    try:
        path.unlink(missing_ok=True)
    except OSError as e:
        logger.warning(f"Could not delete '{path}': {e}")
        return e
    return None
