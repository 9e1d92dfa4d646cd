"""
Locates and verifies the external tools the application drives: ffmpeg and ffprobe.

The tools are taken from the `ffmpeg_dir` given on the command line or in
`config.user.yaml`, or from the system PATH when no directory is configured.
Before any file is touched, each tool is started once with `-version` to make
sure it is really there and really is the expected program.
"""
import sys
from pathlib import Path
from typing import Optional, Tuple

from loguru import logger

from ..config.audio import TOOL_CHECK_TIMEOUT
from ..domain.exceptions import ConfigurationException
from ..domain.process import ProcessInvocation
from .process_runner import ProcessRunner

FFMPEG = "ffmpeg"
FFPROBE = "ffprobe"


def _executable_name(tool_name: str) -> str:
    return f"{tool_name}.exe" if sys.platform == "win32" else tool_name


def resolve_tool_commands(ffmpeg_dir: Optional[Path] = None) -> Tuple[str, str]:
    """
    Determines how ffmpeg and ffprobe are launched.

    Args:
        ffmpeg_dir: Directory containing both executables, or None to rely on PATH.

    Returns:
        A `(ffmpeg_cmd, ffprobe_cmd)` tuple of absolute paths or bare command names.

    Raises:
        ConfigurationException: If `ffmpeg_dir` is given but is not a directory or
            does not contain both executables.
    """
    if ffmpeg_dir is None:
        logger.debug("No ffmpeg_dir configured. Using ffmpeg and ffprobe from the system PATH.")
        return FFMPEG, FFPROBE

    ffmpeg_dir = Path(ffmpeg_dir).expanduser().resolve()
    if not ffmpeg_dir.is_dir():
        raise ConfigurationException(f"The configured ffmpeg_dir '{ffmpeg_dir}' is not a directory.")

    commands = []
    for tool_name in (FFMPEG, FFPROBE):
        tool_path = ffmpeg_dir / _executable_name(tool_name)
        if not tool_path.is_file():
            raise ConfigurationException(f"'{_executable_name(tool_name)}' was not found in ffmpeg_dir '{ffmpeg_dir}'.")
        logger.debug(f"Using {tool_name} from configured path: '{tool_path}'")
        commands.append(str(tool_path))
    return commands[0], commands[1]


def is_tool_available(command: str, tool_name: str, runner: Optional[ProcessRunner] = None) -> bool:
    """
    Checks that `command` starts and identifies itself as `tool_name`.

    Runs `<command> -version` and requires a clean exit whose first stdout line
    starts with "<tool_name> version", e.g. "ffprobe version 6.1.1 Copyright ...".
    """
    runner = runner or ProcessRunner()
    invocation = ProcessInvocation.create(command).with_argument("-version").with_timeout(TOOL_CHECK_TIMEOUT)
    outcome = runner.run(invocation)

    if not outcome.succeeded:
        logger.debug(f"'{command} -version' did not succeed ({outcome.status.value}, rc={outcome.return_code}): {outcome.combined_output()}")
        return False
    if not outcome.stdout or not outcome.stdout[0].startswith(f"{tool_name} version"):
        logger.debug(f"'{command} -version' did not identify itself as {tool_name}.")
        return False

    logger.info(f"{tool_name} version check successful: {outcome.stdout[0]}")
    return True


def verify_tools(ffmpeg_cmd: str, ffprobe_cmd: str, runner: Optional[ProcessRunner] = None):
    """
    Verifies both tools at startup.

    Raises:
        ConfigurationException: If either tool is unavailable. The message tells
            the user how to point the application at an FFmpeg installation.
    """
    runner = runner or ProcessRunner()
    for command, tool_name in ((ffmpeg_cmd, FFMPEG), (ffprobe_cmd, FFPROBE)):
        if not is_tool_available(command, tool_name, runner):
            raise ConfigurationException(
                f"{tool_name} is not available (tried '{command}'). Please ensure FFmpeg is installed and accessible.\n"
                "You can either add it to your system's PATH, pass --ffmpeg-dir, or specify 'paths.ffmpeg_dir' in 'config.user.yaml'."
            )
