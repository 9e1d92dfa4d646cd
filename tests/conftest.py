"""Shared test fixtures for the Audio Normalizer."""

import json
import threading
from pathlib import Path
from typing import Callable, Dict, List, Optional, Tuple

import pytest
from loguru import logger

from audio_normalizer.config.audio import STRIPPED_FILE_PREFIX
from audio_normalizer.domain.models import InputFile
from audio_normalizer.domain.process import ProcessInvocation, ProcessOutcome, ProcessStatus
from audio_normalizer.utils.process_runner import ProcessRunner

LOUDNORM_DEFAULTS = {
    "input_i": "-23.40",
    "input_tp": "-4.21",
    "input_lra": "7.10",
    "input_thresh": "-33.81",
    "output_i": "-16.02",
    "output_tp": "-1.50",
    "output_lra": "6.30",
    "output_thresh": "-26.31",
    "normalization_type": "dynamic",
    "target_offset": "0.02",
}


def loudnorm_json_lines(**overrides) -> List[str]:
    """The 12 trimmed lines of a loudnorm JSON block, as the runner captures them."""
    values = {**LOUDNORM_DEFAULTS, **overrides}
    items = list(values.items())
    lines = ["{"]
    for i, (key, value) in enumerate(items):
        separator = "," if i < len(items) - 1 else ""
        lines.append(f'"{key}" : "{value}"{separator}')
    lines.append("}")
    return lines


def loudnorm_stderr(**overrides) -> Tuple[str, ...]:
    """Trimmed stderr of an ffmpeg loudnorm analysis pass."""
    return (
        "ffmpeg version 6.1.1 Copyright (c) 2000-2023 the FFmpeg developers",
        "Input #0, mp3, from 'track.mp3':",
        "Duration: 00:03:12.45, start: 0.025057, bitrate: 320 kb/s",
        "Stream #0:0: Audio: mp3, 44100 Hz, stereo, fltp, 320 kb/s",
        "size=N/A time=00:03:12.42 bitrate=N/A speed= 412x",
        "[Parsed_loudnorm_0 @ 0x55d0c8a3b2c0]",
        *loudnorm_json_lines(**overrides),
    )


def probe_json(codec_name: Optional[str] = "mp3", sample_rate="44100", channels=2, bit_rate="320000") -> str:
    """ffprobe JSON output for a file whose first audio stream has the given properties."""
    if codec_name is None:
        return json.dumps({"programs": [], "streams": []}, indent=4)
    stream = {"codec_name": codec_name, "sample_rate": sample_rate, "channels": channels, "bit_rate": bit_rate}
    return json.dumps({"programs": [], "streams": [stream]}, indent=4)


def ok(stdout=(), stderr=(), return_code=0) -> ProcessOutcome:
    return ProcessOutcome(status=ProcessStatus.OK, stdout=tuple(stdout), stderr=tuple(stderr), return_code=return_code)


def failed_to_start(message="[Errno 2] No such file or directory: 'ffprobe'") -> ProcessOutcome:
    return ProcessOutcome(status=ProcessStatus.FAILED, stderr=(message,), return_code=None)


class ScriptedRunner(ProcessRunner):
    """Returns prepared outcomes in order and records every invocation."""

    def __init__(self, *outcomes: ProcessOutcome, on_run: Optional[Callable[[ProcessInvocation], None]] = None):
        super().__init__()
        self.outcomes = list(outcomes)
        self.on_run = on_run
        self.invocations: List[ProcessInvocation] = []

    def run(self, invocation: ProcessInvocation) -> ProcessOutcome:
        self.invocations.append(invocation)
        if self.on_run:
            self.on_run(invocation)
        return self.outcomes.pop(0)


class FakeTools(ProcessRunner):
    """
    Stands in for ffprobe and ffmpeg behind the runner interface.

    Every file gets a healthy mp3 stream and a loudness of -23.40 LUFS unless
    configured otherwise. Tag stripping and normalizing write their destination
    file like the real tools would. `outcomes[(stage, name)]` replaces the
    result of one stage for one file; stages are "probe", "loudness", "strip"
    and "normalize", names are original base names.
    """

    def __init__(self):
        super().__init__()
        self.streams: Dict[str, str] = {}
        self.loudness: Dict[str, str] = {}
        self.outcomes: Dict[Tuple[str, str], ProcessOutcome] = {}
        self.calls: List[Tuple[str, str]] = []
        self._lock = threading.Lock()

    @staticmethod
    def classify(invocation: ProcessInvocation) -> Tuple[str, str, Optional[Path]]:
        args = invocation.arguments
        if Path(invocation.command).stem == "ffprobe":
            return "probe", Path(args[-1]).name, None
        source = Path(args[args.index("-i") + 1]).name
        if "null" in args:
            return "loudness", source, None
        destination = Path(args[-1])
        if "-map_metadata" in args:
            return "strip", source, destination
        return "normalize", source[len(STRIPPED_FILE_PREFIX):], destination

    def stages_for(self, name: str) -> List[str]:
        return [stage for stage, called_name in self.calls if called_name == name]

    def run(self, invocation: ProcessInvocation) -> ProcessOutcome:
        stage, name, destination = self.classify(invocation)
        with self._lock:
            self.calls.append((stage, name))

        override = self.outcomes.get((stage, name))
        if override is not None:
            return override
        if stage == "probe":
            return ok(stdout=self.streams.get(name, probe_json()).splitlines())
        if stage == "loudness":
            return ok(stderr=loudnorm_stderr(input_i=self.loudness.get(name, "-23.40")))

        destination.write_bytes(b"ID3 fake audio payload")
        return ok(stderr=("size=    7500kB time=00:03:12.42 bitrate= 320.0kbits/s speed=48.2x",))


@pytest.fixture
def fake_tools() -> FakeTools:
    return FakeTools()


@pytest.fixture
def input_dir(tmp_path: Path) -> Path:
    path = tmp_path / "input"
    path.mkdir()
    return path


@pytest.fixture
def output_dir(tmp_path: Path) -> Path:
    path = tmp_path / "output"
    path.mkdir()
    return path


@pytest.fixture
def make_input_file(input_dir: Path) -> Callable[[str], InputFile]:
    """Creates a small file in the input directory and returns it as an InputFile."""

    def make(name: str, content: bytes = b"ID3 original audio") -> InputFile:
        path = input_dir / name
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_bytes(content)
        return InputFile.from_path(path)

    return make


@pytest.fixture
def log_messages():
    """Collects the messages loguru emits during a test."""
    messages: List[str] = []
    handler_id = logger.add(lambda message: messages.append(message.record["message"]), level="TRACE")
    yield messages
    logger.remove(handler_id)
