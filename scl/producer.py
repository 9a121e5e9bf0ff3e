"""Docker CLI boundary: container listing and per-container log streams."""

import logging
import subprocess
import threading
from collections import deque
from typing import Iterator

from scl.config import RunConfig
from scl.errors import EnumerationError, StreamError
from scl.models import Source

logger = logging.getLogger(__name__)

LIST_FORMAT = "{{.ID}}:{{.Names}}"
STDERR_TAIL_LINES = 20


class LogStream:
    """Line iterator over a running `docker logs` process.

    Lines are split on `\\n` only, so a bare `\\r` (progress output) stays
    inside its line and line numbers match positions in the stream.
    Iteration ends when the producer closes its output. close() reaps the
    process and turns an abnormal exit into StreamError carrying the tail
    of the producer's stderr, so a failed read is never mistaken for the
    end of the log history.
    """

    def __init__(self, process: subprocess.Popen, command: list[str],
                 stop_timeout: float = 5.0):
        self._process = process
        self._command = command
        self._stop_timeout = stop_timeout
        self._terminated = threading.Event()
        self._stderr_tail: deque[str] = deque(maxlen=STDERR_TAIL_LINES)
        self._stderr_reader = None
        if process.stderr is not None:
            self._stderr_reader = threading.Thread(
                target=self._drain_stderr,
                name=f"stderr-{process.pid}",
                daemon=True,
            )
            self._stderr_reader.start()

    @property
    def pid(self) -> int:
        return self._process.pid

    def __iter__(self) -> Iterator[str]:
        for raw in self._process.stdout:
            yield raw.decode("utf-8", errors="replace").rstrip("\r\n")

    def _drain_stderr(self):
        for raw in self._process.stderr:
            line = raw.decode("utf-8", errors="replace").rstrip("\r\n")
            if line:
                self._stderr_tail.append(line)

    def terminate(self):
        """Stop a still-running producer. Safe to call from any thread."""
        self._terminated.set()
        if self._process.poll() is None:
            logger.debug("Terminating producer pid=%d", self._process.pid)
            self._process.terminate()

    def close(self) -> int:
        """Release the pipes and reap the process. Returns the exit status."""
        try:
            self._process.stdout.close()
        except OSError:
            pass
        try:
            returncode = self._process.wait(timeout=self._stop_timeout)
        except subprocess.TimeoutExpired:
            logger.warning("Producer pid=%d did not exit, killing it", self._process.pid)
            self._process.kill()
            returncode = self._process.wait()

        if self._stderr_reader is not None:
            self._stderr_reader.join(timeout=self._stop_timeout)
            try:
                self._process.stderr.close()
            except OSError:
                pass

        if returncode != 0 and not self._terminated.is_set():
            message = f"command exited with status {returncode}: {' '.join(self._command)}"
            if self._stderr_tail:
                message += f": {' | '.join(self._stderr_tail)}"
            raise StreamError(message)
        return returncode


class DockerCLI:
    """Runs the docker binary as a subprocess."""

    def __init__(self, binary: str = "docker", stop_timeout: float = 5.0,
                 list_timeout: float = 30.0):
        self._binary = binary
        self._stop_timeout = stop_timeout
        self._list_timeout = list_timeout

    def list_sources(self) -> str:
        """Return raw `id:name` listing of running containers.

        Raises:
            EnumerationError: docker is missing, unreachable or failed.
        """
        command = [self._binary, "ps", "--format", LIST_FORMAT]
        logger.debug("Running command: %s", " ".join(command))
        try:
            result = subprocess.run(
                command,
                capture_output=True,
                check=True,
                timeout=self._list_timeout,
                text=True,
            )
        except subprocess.CalledProcessError as e:
            message = f"error listing containers: exit code {e.returncode}"
            if e.stderr:
                message += f": {e.stderr.strip()}"
            raise EnumerationError(message) from e
        except subprocess.TimeoutExpired as e:
            raise EnumerationError(
                f"error listing containers: timed out after {self._list_timeout} seconds"
            ) from e
        except OSError as e:
            raise EnumerationError(f"error listing containers: {e}") from e
        return result.stdout

    def logs_command(self, source_id: str, config: RunConfig) -> list[str]:
        command = [self._binary, "logs"]
        if config.follow:
            command.append("--follow")
        if config.since:
            command.extend(["--since", config.since])
        if config.tail_lines > 0:
            command.extend(["--tail", str(config.tail_lines)])
        command.append(source_id)
        return command

    def open_stream(self, source: Source, config: RunConfig) -> LogStream:
        """Start `docker logs` for one container.

        Raises:
            StreamError: the process could not be started.
        """
        command = self.logs_command(source.id, config)
        logger.debug("Running async command: %s", " ".join(command))
        try:
            process = subprocess.Popen(
                command,
                stdin=subprocess.DEVNULL,
                stdout=subprocess.PIPE,
                stderr=subprocess.PIPE,
            )
        except OSError as e:
            raise StreamError(f"could not start log stream for {source.name}: {e}") from e
        return LogStream(process, command, self._stop_timeout)
