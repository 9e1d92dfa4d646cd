"""
Discovers the audio files to be normalized.

This is the first step of a run: the input directory (and, with `--recursive`,
its subdirectories) is scanned for files with a recognized audio extension. Files
this application wrote itself, recognizable by their intermediate prefixes, are
never picked up again, nor is anything inside the output directory when it lies
below the input directory.
"""
from pathlib import Path
from typing import Iterable, Optional, Set, Tuple

from loguru import logger

from ..config.audio import AUDIO_EXTENSIONS, NORMALIZED_FILE_PREFIX, STRIPPED_FILE_PREFIX
from ..domain.models import InputFile


class ProcessAudioFiles:
    """
    Scans a directory tree and collects the audio files to process.

    Attributes:
        source_dir (Path): The resolved input directory.
        recursive (bool): Whether subdirectories are scanned too.
        dirs (Set[Path]): All directories that were scanned.
        files (Tuple[InputFile, ...]): The discovered files, sorted by path.
    """

    def __init__(self, input_dir: Path, recursive: bool = False, exclude_dirs: Optional[Iterable[Path]] = None):
        """
        Initializes the scanner and discovers the files immediately.

        Args:
            input_dir: The directory to scan.
            recursive: Scan subdirectories as well.
            exclude_dirs: Directories (and everything below them) that are skipped,
                typically the output directory.
        """
        self.source_dir: Path = Path(input_dir).resolve()
        self.recursive = recursive
        self.exclude_dirs = tuple(Path(d).resolve() for d in (exclude_dirs or ()))
        self.dirs: Set[Path] = set()
        self.files: Tuple[InputFile, ...] = tuple()

        if not self.source_dir.is_dir():
            logger.warning(f"Input directory does not exist: {self.source_dir}. Nothing to process.")
            return

        self.set_dirs_to_scan()
        self.set_files_to_process()

    def _is_excluded(self, path: Path) -> bool:
        return any(path == excluded or excluded in path.parents for excluded in self.exclude_dirs)

    def set_dirs_to_scan(self):
        """Populates `self.dirs` with the source directory and, if recursive, every subdirectory."""
        discovered_dirs = {self.source_dir}
        if self.recursive:
            discovered_dirs.update(
                d_path for d_path in self.source_dir.rglob("*") if d_path.is_dir() and not self._is_excluded(d_path)
            )
        self.dirs = discovered_dirs

    @staticmethod
    def is_audio_file(path: Path) -> bool:
        """True for regular files with a recognized extension that are not our own intermediates."""
        if not path.is_file() or path.suffix.lower() not in AUDIO_EXTENSIONS:
            return False
        return not path.name.startswith((STRIPPED_FILE_PREFIX, NORMALIZED_FILE_PREFIX))

    def set_files_to_process(self):
        """Scans `self.dirs` and populates `self.files` with the audio files, sorted by path."""
        discovered_audio_files = [
            f_path for d_path in self.dirs for f_path in d_path.iterdir() if self.is_audio_file(f_path)
        ]
        self.files = tuple(InputFile.from_path(f_path) for f_path in sorted(set(discovered_audio_files)))
        logger.debug(f"ProcessAudioFiles: Discovered {len(self.files)} audio files in {len(self.dirs)} directories.")
