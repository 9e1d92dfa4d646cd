"""Tests for audio file discovery."""

from pathlib import Path

from audio_normalizer.services.file_processing_service import ProcessAudioFiles


def populate(root: Path):
    for relative in [
        "b.mp3",
        "A.MP3",
        "c.opus",
        "d.m4a",
        "notes.txt",
        "cover.jpg",
        "Stripped_old.mp3",
        "Normalized_old.mp3",
        "album/e.mp3",
        "album/deeper/f.m4a",
        "out/g.mp3",
    ]:
        path = root / relative
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_bytes(b"x")
    (root / "folder.mp3").mkdir()


def names(processor: ProcessAudioFiles):
    return [f.name for f in processor.files]


class TestProcessAudioFiles:
    def test_top_level_only_by_default(self, tmp_path: Path):
        populate(tmp_path)

        processor = ProcessAudioFiles(tmp_path)

        assert sorted(names(processor)) == ["A.MP3", "b.mp3", "c.opus", "d.m4a"]
        assert processor.dirs == {tmp_path.resolve()}

    def test_files_are_sorted_by_path(self, tmp_path: Path):
        populate(tmp_path)

        processor = ProcessAudioFiles(tmp_path, recursive=True)

        paths = [f.path for f in processor.files]
        assert paths == sorted(paths)
        assert all(p.is_absolute() for p in paths)

    def test_recursive(self, tmp_path: Path):
        populate(tmp_path)

        processor = ProcessAudioFiles(tmp_path, recursive=True)

        assert sorted(names(processor)) == ["A.MP3", "b.mp3", "c.opus", "d.m4a", "e.mp3", "f.m4a", "g.mp3"]

    def test_excluded_directory_is_skipped(self, tmp_path: Path):
        populate(tmp_path)

        processor = ProcessAudioFiles(tmp_path, recursive=True, exclude_dirs=[tmp_path / "out"])

        assert "g.mp3" not in names(processor)
        assert "e.mp3" in names(processor)

    def test_missing_directory_yields_nothing(self, tmp_path: Path):
        processor = ProcessAudioFiles(tmp_path / "missing")

        assert processor.files == ()

    def test_is_audio_file(self, tmp_path: Path):
        populate(tmp_path)

        assert ProcessAudioFiles.is_audio_file(tmp_path / "A.MP3")
        assert not ProcessAudioFiles.is_audio_file(tmp_path / "notes.txt")
        assert not ProcessAudioFiles.is_audio_file(tmp_path / "Stripped_old.mp3")
        assert not ProcessAudioFiles.is_audio_file(tmp_path / "folder.mp3")
