"""
Runs the file pipelines of a whole batch with bounded concurrency.

The scheduler hands one `FilePipeline` per input file to a pool of worker
threads. Each worker spends nearly all of its time waiting for ffmpeg, so
threads are enough to keep N encoders busy. A permit must be taken before a
file is submitted, which keeps at most N pipelines in flight and leaves the
remaining files unscheduled until a permit is returned.

Files fail independently: a failed stage, or even an unexpected exception in a
pipeline, is reported and counted, and the run carries on with the next file.
"""
import concurrent.futures
import threading
import time
from datetime import timedelta
from typing import Callable, List, Optional, Sequence

from loguru import logger

from ..config.common import DEFAULT_PROCESSES, PROGRESS_INTERVAL_SECONDS
from ..config.settings import NormalizerSettings
from ..domain.models import InputFile, RunSummary, StageResult
from ..services.ffmpeg_service import FfmpegService
from ..utils.format_utils import format_timedelta
from .file_pipeline import FilePipeline

PipelineFactory = Callable[[InputFile], FilePipeline]


class AtomicCounter:
    """An integer that many threads can increment; reading it never blocks for long."""

    def __init__(self, value: int = 0):
        self._value = value
        self._lock = threading.Lock()

    def increment(self) -> int:
        with self._lock:
            self._value += 1
            return self._value

    @property
    def value(self) -> int:
        with self._lock:
            return self._value


class PermitPool:
    """
    A bounded semaphore that also tracks how many permits are in use.

    Attributes:
        size: Total number of permits.
        peak_in_use: Highest number of permits held at the same time.
    """

    def __init__(self, size: int):
        if size < 1:
            raise ValueError(f"A permit pool needs at least one permit, got {size}.")
        self.size = size
        self._semaphore = threading.BoundedSemaphore(size)
        self._lock = threading.Lock()
        self._in_use = 0
        self.peak_in_use = 0

    def acquire(self):
        self._semaphore.acquire()
        with self._lock:
            self._in_use += 1
            self.peak_in_use = max(self.peak_in_use, self._in_use)

    def release(self):
        with self._lock:
            if self._in_use == 0:
                raise ValueError("Permit released more often than acquired.")
            self._in_use -= 1
        self._semaphore.release()

    @property
    def in_use(self) -> int:
        with self._lock:
            return self._in_use

    @property
    def available(self) -> int:
        return self.size - self.in_use


class ProgressReporter:
    """Prints "<n> files processed..." on the console at a fixed interval until stopped."""

    def __init__(self, counter: AtomicCounter, interval: float = PROGRESS_INTERVAL_SECONDS):
        self.counter = counter
        self.interval = interval
        self._stopped = threading.Event()
        self._thread = threading.Thread(target=self._report, name="progress", daemon=True)

    def _report(self):
        while not self._stopped.wait(self.interval):
            print(f"\r{self.counter.value} files processed...", end="", flush=True)

    def start(self):
        self._thread.start()

    def stop(self):
        self._stopped.set()
        self._thread.join()
        print(flush=True)


class NormalizationScheduler:
    """
    Drives one `FilePipeline` per input file with at most `processes` running at once.

    Attributes:
        pipeline_factory: Creates the pipeline of a file.
        processes: Maximum number of concurrent pipelines.
        show_progress: Whether the console progress line is printed.
        permits: The pool limiting concurrency.
        processed: Files that reached a terminal state, successful or not.
        failed: Files that failed.
    """

    def __init__(
        self,
        pipeline_factory: PipelineFactory,
        processes: int = DEFAULT_PROCESSES,
        show_progress: bool = True,
        progress_interval: float = PROGRESS_INTERVAL_SECONDS,
    ):
        self.pipeline_factory = pipeline_factory
        self.processes = processes
        self.show_progress = show_progress
        self.progress_interval = progress_interval
        self.permits = PermitPool(processes)
        self.processed = AtomicCounter()
        self.failed = AtomicCounter()

    @classmethod
    def from_settings(cls, settings: NormalizerSettings, service: Optional[FfmpegService] = None) -> "NormalizationScheduler":
        service = service or FfmpegService.from_settings(settings)
        return cls(
            pipeline_factory=lambda input_file: FilePipeline(input_file, service, settings.output_dir),
            processes=settings.processes,
            show_progress=settings.show_progress,
        )

    def run(self, input_files: Sequence[InputFile]) -> Optional[RunSummary]:
        """
        Processes every file and waits for all of them.

        Args:
            input_files: The files to normalize, in submission order.

        Returns:
            The run's `RunSummary`, or None if there was nothing to process.
        """
        if not input_files:
            logger.info("No audio files to process.")
            return None

        logger.info(f"Normalizing {len(input_files)} file(s) with up to {self.processes} in parallel.")
        started = time.monotonic()
        reporter = ProgressReporter(self.processed, self.progress_interval) if self.show_progress else None
        if reporter:
            reporter.start()

        try:
            self._submit_all(input_files)
        finally:
            if reporter:
                reporter.stop()

        elapsed = timedelta(seconds=time.monotonic() - started)
        summary = RunSummary(elapsed=elapsed, processed=self.processed.value, failed=self.failed.value)
        logger.info(f"All done. Time taken: {format_timedelta(elapsed)} ({summary.failed} file(s) failed)")
        return summary

    def _submit_all(self, input_files: Sequence[InputFile]):
        seen_names = {}
        futures: List[concurrent.futures.Future] = []
        with concurrent.futures.ThreadPoolExecutor(
            max_workers=self.processes, thread_name_prefix="normalizer"
        ) as executor:
            for input_file in input_files:
                # Intermediates and final files are named after the base name only.
                key = input_file.name.casefold()
                if key in seen_names:
                    self._record(input_file, StageResult.fail(
                        f"Another input file with the same name is already being processed: {seen_names[key]}"
                    ))
                    continue
                seen_names[key] = input_file.path

                self.permits.acquire()
                try:
                    futures.append(executor.submit(self._process, input_file))
                except BaseException:
                    self.permits.release()
                    raise
            concurrent.futures.wait(futures)

    def _process(self, input_file: InputFile):
        try:
            try:
                result = self.pipeline_factory(input_file).run()
            except Exception:
                logger.exception(f"Unexpected error while processing {input_file.name}")
                self.processed.increment()
                self.failed.increment()
                return
            self._record(input_file, result)
        finally:
            self.permits.release()

    def _record(self, input_file: InputFile, result: StageResult):
        if result.success:
            logger.info(f"Done: {input_file.name}")
        else:
            self.failed.increment()
            logger.error(f"Failed to process {input_file.name}:\n{result.output}")
        self.processed.increment()
