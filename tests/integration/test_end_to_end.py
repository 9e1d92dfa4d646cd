"""End-to-end tests of a normalization run."""

import os
import stat
import sys
import textwrap
from pathlib import Path

import pytest

from audio_normalizer.config.settings import NormalizerSettings
from audio_normalizer.pipeline.scheduler import NormalizationScheduler
from audio_normalizer.services.ffmpeg_service import FfmpegService
from audio_normalizer.services.file_processing_service import ProcessAudioFiles
from conftest import failed_to_start

FAKE_FFPROBE = """\
import json, os, sys

if sys.argv[1:] == ["-version"]:
    print("ffprobe version 6.1-fake Copyright (c) the test suite")
    sys.exit(0)

path = sys.argv[-1]
if os.path.basename(path).startswith("a"):
    sys.stderr.write(path + ": Invalid data found when processing input\\n")
    sys.exit(1)
print(json.dumps({"streams": [{"codec_name": "mp3", "sample_rate": "44100", "channels": 2, "bit_rate": "320000"}]}, indent=4))
"""

FAKE_FFMPEG = """\
import os, sys

args = sys.argv[1:]
if args == ["-version"]:
    print("ffmpeg version 6.1-fake Copyright (c) the test suite")
    sys.exit(0)

source = args[args.index("-i") + 1]
if "null" in args:
    measured = "-16.30" if os.path.basename(source).startswith("b") else "-24.10"
    fields = [
        ("input_i", measured), ("input_tp", "-3.20"), ("input_lra", "5.40"), ("input_thresh", "-34.50"),
        ("output_i", "-16.01"), ("output_tp", "-1.50"), ("output_lra", "4.90"), ("output_thresh", "-26.60"),
        ("normalization_type", "dynamic"), ("target_offset", "-0.01"),
    ]
    sys.stderr.write("size=N/A time=00:00:03.00 bitrate=N/A speed= 300x\\n")
    sys.stderr.write("[Parsed_loudnorm_0 @ 0x5581d0c0]\\n{\\n")
    for i, (key, value) in enumerate(fields):
        sys.stderr.write('\\t"%s" : "%s"%s\\n' % (key, value, "," if i < len(fields) - 1 else ""))
    sys.stderr.write("}\\n")
    sys.exit(0)

with open(source, "rb") as f_in:
    data = f_in.read()
with open(args[-1], "wb") as f_out:
    f_out.write(b"normalized:" + data if "-af" in args else data)
"""


def write_tool(directory: Path, name: str, body: str):
    path = directory / name
    path.write_text(f"#!{sys.executable}\n{body}", encoding="utf-8")
    path.chmod(path.stat().st_mode | stat.S_IXUSR | stat.S_IXGRP | stat.S_IXOTH)


@pytest.fixture
def three_files(input_dir: Path):
    for name in ("a.mp3", "b.mp3", "c.mp3"):
        (input_dir / name).write_bytes(f"ID3 {name}".encode())
    return input_dir


def test_three_files_with_fake_tools(three_files, output_dir, fake_tools):
    """A fails to start its stream analysis, B is within the threshold, C is normalized."""
    fake_tools.outcomes[("probe", "a.mp3")] = failed_to_start()
    fake_tools.loudness["b.mp3"] = "-16.30"
    fake_tools.loudness["c.mp3"] = "-24.10"
    settings = NormalizerSettings(input_dir=three_files, output_dir=output_dir, processes=2, show_progress=False)
    scheduler = NormalizationScheduler.from_settings(settings, FfmpegService.from_settings(settings, fake_tools))

    summary = scheduler.run(ProcessAudioFiles(three_files).files)

    assert summary.processed == 3
    assert summary.failed == 1
    assert sorted(p.name for p in output_dir.iterdir()) == ["b.mp3", "c.mp3"]
    assert fake_tools.stages_for("a.mp3") == ["probe"]
    assert fake_tools.stages_for("b.mp3") == ["probe", "loudness", "strip"]
    assert fake_tools.stages_for("c.mp3") == ["probe", "loudness", "strip", "normalize"]
    assert scheduler.permits.in_use == 0


@pytest.mark.skipif(os.name == "nt", reason="Fake tools are POSIX scripts.")
def test_main_with_fake_tool_executables(three_files, output_dir, tmp_path):
    """The whole application, through real subprocesses, against scripted ffmpeg/ffprobe."""
    import main

    bin_dir = tmp_path / "bin"
    bin_dir.mkdir()
    write_tool(bin_dir, "ffprobe", FAKE_FFPROBE)
    write_tool(bin_dir, "ffmpeg", FAKE_FFMPEG)

    exit_code = main.main([
        "--input-dir", str(three_files),
        "--output-dir", str(output_dir),
        "--ffmpeg-dir", str(bin_dir),
        "--processes", "2",
        "--no-progress",
        "--log-level", "INFO",
    ])

    from loguru import logger
    logger.remove()

    assert exit_code == 0
    assert sorted(p.name for p in output_dir.iterdir()) == ["AudioNormalizer.log", "b.mp3", "c.mp3"]
    assert (output_dir / "b.mp3").read_bytes() == b"ID3 b.mp3"
    assert (output_dir / "c.mp3").read_bytes() == b"normalized:ID3 c.mp3"
    log_text = (output_dir / "AudioNormalizer.log").read_text(encoding="utf-8")
    assert "Failed to process a.mp3" in log_text
    assert "Invalid data found when processing input" in log_text
    assert "(1 file(s) failed)" in log_text


def test_main_exits_on_configuration_error(three_files, output_dir, tmp_path):
    import main

    exit_code = main.main([
        "--input-dir", str(three_files),
        "--output-dir", str(output_dir),
        "--ffmpeg-dir", str(tmp_path / "no-ffmpeg-here"),
        "--no-progress",
    ])

    from loguru import logger
    logger.remove()

    assert exit_code == main.EXIT_CONFIGURATION_ERROR
    assert sorted(p.name for p in output_dir.iterdir()) == ["AudioNormalizer.log"]
