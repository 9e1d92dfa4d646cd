"""
The per-file normalization pipeline.

One `FilePipeline` takes one input file through the four tool stages and the
skip/normalize decision:

    ANALYZING_STREAM -> ANALYZING_LOUDNESS -> STRIPPING_TAGS -> DECIDING
        -> SKIPPING    (already at the target loudness: keep the tag-stripped copy)
        -> NORMALIZING (re-encode with the measured loudness)
    -> DONE | FAILED

The first failing stage ends the pipeline. Whatever happens, the output directory
ends up holding either the final file under its original name or nothing for
this file: intermediates are removed on every path.
"""
import os
import time
from datetime import timedelta
from enum import Enum
from pathlib import Path
from typing import Optional

from loguru import logger

from ..domain.models import InputFile, StageResult, is_within_loudness_threshold
from ..services.ffmpeg_service import FfmpegService
from ..utils.format_utils import format_timedelta


class PipelineState(Enum):
    ANALYZING_STREAM = "analyzing stream"
    ANALYZING_LOUDNESS = "analyzing loudness"
    STRIPPING_TAGS = "stripping tags"
    DECIDING = "deciding"
    SKIPPING = "skipping"
    NORMALIZING = "normalizing"
    DONE = "done"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in (PipelineState.DONE, PipelineState.FAILED)


class FilePipeline:
    """
    Runs the stages for a single `InputFile`.

    A pipeline is used once. It does not log failures itself: the returned
    `StageResult` carries the one diagnostic for the file and the caller decides
    how to report it.

    Attributes:
        input_file: The file being processed.
        service: Builds and validates the tool invocations.
        output_dir: Directory receiving the final file.
        state: The current `PipelineState`.
    """

    def __init__(self, input_file: InputFile, service: FfmpegService, output_dir: Optional[Path] = None):
        self.input_file = input_file
        self.service = service
        self.output_dir = Path(output_dir) if output_dir is not None else service.output_dir
        self.state = PipelineState.ANALYZING_STREAM
        self.log = logger.bind(file=input_file.name)
        self._started = 0.0

    @property
    def final_path(self) -> Path:
        return self.output_dir / self.input_file.name

    def _enter(self, state: PipelineState):
        self.log.trace(f"{self.input_file.name}: {self.state.value} -> {state.value}")
        self.state = state

    def _fail(self, result: StageResult) -> StageResult[Path]:
        self._enter(PipelineState.FAILED)
        return StageResult.fail(result.output)

    def _done(self, stage: str, started: float):
        self.log.info(f"{self.input_file.name}: {stage} done ({_elapsed_since(started)})")

    def run(self) -> StageResult[Path]:
        """
        Executes the pipeline.

        Returns:
            On success, the path of the final file `<output_dir>/<original name>`.
            On failure, the diagnostic of the stage that failed.
        """
        if self.state is not PipelineState.ANALYZING_STREAM:
            raise RuntimeError(f"Pipeline for {self.input_file.name} has already been run.")

        self.log.debug(f"Processing {self.input_file.name}")
        self._started = time.monotonic()
        stage_started = self._started
        stream = self.service.analyze_stream(self.input_file)
        if not stream.success:
            return self._fail(stream)
        self._done("Stream analysis", stage_started)

        self._enter(PipelineState.ANALYZING_LOUDNESS)
        stage_started = time.monotonic()
        loudness = self.service.analyze_loudness(self.input_file)
        if not loudness.success:
            return self._fail(loudness)
        self._done("Loudness analysis", stage_started)

        self._enter(PipelineState.STRIPPING_TAGS)
        stage_started = time.monotonic()
        stripped = self.service.strip_tags(self.input_file)
        if not stripped.success:
            return self._fail(stripped)
        self._done("Tag stripping", stage_started)
        stripped_file = stripped.data

        self._enter(PipelineState.DECIDING)
        measurement = loudness.data
        try:
            skip = is_within_loudness_threshold(measurement)
        except ValueError:
            _discard(stripped_file)
            return self._fail(StageResult.fail(
                f"Measured integrated loudness of '{self.input_file.name}' is not a number: {measurement.input_i!r}"
            ))

        if skip:
            self._enter(PipelineState.SKIPPING)
            self.log.info(
                f"{self.input_file.name} is already at {measurement.input_i} LUFS. Keeping it without re-encoding."
            )
            return self._place(stripped_file)

        self._enter(PipelineState.NORMALIZING)
        self.log.info(f"Normalizing {self.input_file.name} from {measurement.input_i} LUFS.")
        stage_started = time.monotonic()
        normalized = self.service.normalize(self.input_file, stripped_file, stream.data, measurement)
        _discard(stripped_file)
        if not normalized.success:
            return self._fail(normalized)
        self._done("Normalizing", stage_started)
        return self._place(normalized.data)

    def _place(self, scratch_file: Path) -> StageResult[Path]:
        """Moves the finished scratch file to its final name, replacing an older copy."""
        try:
            os.replace(scratch_file, self.final_path)
        except OSError as e:
            _discard(scratch_file)
            return self._fail(StageResult.fail(f"Could not move '{scratch_file.name}' to '{self.final_path}': {e}"))

        self._enter(PipelineState.DONE)
        self.log.info(f"Done processing {self.input_file.name} ({_elapsed_since(self._started)})")
        return StageResult.ok(self.final_path)


def _elapsed_since(started: float) -> str:
    return format_timedelta(timedelta(seconds=time.monotonic() - started))


def _discard(path: Path):
    try:
        path.unlink(missing_ok=True)
    except OSError as e:
        logger.warning(f"Could not delete intermediate file '{path}': {e}")
