"""
Runs a single external command with a timeout and captures its output.

This is the only place in the application that launches processes. Both output
streams are drained by their own reader thread while the process runs, so a
chatty tool (ffmpeg writes its whole progress log to stderr) can never block on
a full pipe. When the timeout expires the process is killed together with every
process it started, so no orphaned encoder keeps running in the background.
"""
import os
import signal
import subprocess
import threading
from typing import IO, List, Optional

from loguru import logger

from ..domain.process import ProcessInvocation, ProcessOutcome, ProcessStatus

# Seconds to wait for the reader threads once the process itself has ended.
# A grandchild that inherited the pipes can keep them open after its parent exits.
READER_JOIN_TIMEOUT = 5.0


class ProcessRunner:
    """
    Launches `ProcessInvocation`s and turns them into `ProcessOutcome`s.

    A runner holds no per-call state, so one instance can be shared by any number
    of threads running commands at the same time.
    """

    def __init__(self, reader_join_timeout: float = READER_JOIN_TIMEOUT):
        self.reader_join_timeout = reader_join_timeout

    def run(self, invocation: ProcessInvocation) -> ProcessOutcome:
        """
        Runs the command described by `invocation` and waits for it.

        The outcome is OK whenever the process ran to completion, whatever its
        exit code; callers decide what a non-zero exit code means. The call
        itself never raises for problems of the external command.

        Args:
            invocation: The command, arguments, environment, directory and timeout.

        Returns:
            A `ProcessOutcome` with the trimmed stdout/stderr lines in arrival order.
            FAILED if the command could not be started, TIMED_OUT if it was killed.
        """
        display_cmd = invocation.display()
        logger.debug(f"Executing: {display_cmd}")

        env = os.environ.copy()
        env.update(dict(invocation.env_overrides))

        try:
            process = subprocess.Popen(
                invocation.command_line,
                stdin=subprocess.DEVNULL,
                stdout=subprocess.PIPE,
                stderr=subprocess.PIPE,
                text=True,
                encoding="utf-8",
                errors="replace",
                env=env,
                cwd=str(invocation.working_dir) if invocation.working_dir else None,
                **_new_process_group_kwargs(),
            )
        except OSError as e:
            # Missing executable, permission denied, bad working directory...
            logger.debug(f"Could not start '{invocation.command}': {e}")
            return ProcessOutcome(status=ProcessStatus.FAILED, stderr=(str(e),), return_code=None)

        stdout_lines: List[str] = []
        stderr_lines: List[str] = []
        readers = [
            _start_reader(process.stdout, stdout_lines, f"stdout-{process.pid}"),
            _start_reader(process.stderr, stderr_lines, f"stderr-{process.pid}"),
        ]

        try:
            return_code: Optional[int] = process.wait(timeout=invocation.timeout)
            status = ProcessStatus.OK
        except subprocess.TimeoutExpired:
            logger.warning(f"Timed out after {invocation.timeout:g}s, killing process tree {process.pid}: {display_cmd}")
            _kill_process_tree(process)
            process.wait()
            return_code = None
            status = ProcessStatus.TIMED_OUT

        for reader in readers:
            reader.join(self.reader_join_timeout)
            if reader.is_alive():
                logger.debug(f"Reader thread '{reader.name}' still open after the process ended.")

        if status is ProcessStatus.TIMED_OUT:
            stderr_lines.append(f"Process did not complete within the timeout ({invocation.timeout:g}s)")
        else:
            logger.trace(f"Process {process.pid} exited with return code {return_code}.")

        return ProcessOutcome(
            status=status,
            stdout=tuple(stdout_lines),
            stderr=tuple(stderr_lines),
            return_code=return_code,
        )


def _start_reader(stream: IO[str], sink: List[str], name: str) -> threading.Thread:
    """Starts a daemon thread that appends every trimmed line of `stream` to `sink`."""

    def pump():
        try:
            for line in stream:
                sink.append(line.strip())
        except (OSError, ValueError) as e:
            # The pipe was closed underneath us, e.g. after the tree was killed.
            logger.trace(f"Reader '{name}' stopped: {e}")
        finally:
            stream.close()

    reader = threading.Thread(target=pump, name=name, daemon=True)
    reader.start()
    return reader


def _new_process_group_kwargs() -> dict:
    """Popen arguments that place the child in its own group, so the group can be killed."""
    if os.name == "nt":
        return {"creationflags": subprocess.CREATE_NEW_PROCESS_GROUP}
    return {"start_new_session": True}


def _kill_process_tree(process: subprocess.Popen):
    """
    Kills `process` and all of its descendants.

    On POSIX the child leads its own session, so signalling its process group
    reaches everything it spawned. On Windows `taskkill /T` walks the tree.
    """
    if os.name == "nt":
        result = subprocess.run(
            ["taskkill", "/T", "/F", "/PID", str(process.pid)],
            capture_output=True,
            text=True,
        )
        if result.returncode != 0:
            logger.debug(f"taskkill failed for {process.pid}: {result.stderr.strip()}")
            process.kill()
        return

    try:
        os.killpg(os.getpgid(process.pid), signal.SIGKILL)
    except ProcessLookupError:
        # Already gone between the timeout and the kill.
        logger.debug(f"Process group of {process.pid} no longer exists.")
    except PermissionError as e:
        logger.warning(f"Could not kill process group of {process.pid}: {e}. Killing the process only.")
        process.kill()
