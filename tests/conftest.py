"""Shared fixtures: an in-memory producer and a fake docker executable."""

import json
import os
import sys
import threading

import pytest

from scl.errors import EnumerationError, StreamError
from scl.models import Source


class FakeStream:
    """In-memory stand-in for LogStream.

    block=True keeps the stream open after its lines, like `docker logs
    --follow`, until terminate() is called. fail_on_close simulates a
    producer that exits non-zero; read_error raises mid-iteration.
    """

    def __init__(self, lines, block=False, fail_on_close=None, read_error_after=None):
        self._lines = list(lines)
        self._block = block
        self._fail_on_close = fail_on_close
        self._read_error_after = read_error_after
        self._terminated = threading.Event()
        self.closed = False

    @property
    def terminated(self) -> bool:
        return self._terminated.is_set()

    def __iter__(self):
        for i, line in enumerate(self._lines):
            if self._read_error_after is not None and i == self._read_error_after:
                raise OSError("connection reset")
            if self._terminated.is_set():
                return
            yield line
        if self._block:
            self._terminated.wait()

    def terminate(self):
        self._terminated.set()

    def close(self) -> int:
        self.closed = True
        if self._fail_on_close and not self._terminated.is_set():
            raise StreamError(self._fail_on_close)
        return 0


class FakeProducer:
    """Producer double: containers map Source -> list of log lines."""

    def __init__(self, containers=None, list_error=None, listing=None,
                 spawn_errors=(), close_errors=None, read_errors=None, block=False):
        self.containers = dict(containers or {})
        self.list_error = list_error
        self.listing = listing
        self.spawn_errors = set(spawn_errors)
        self.close_errors = dict(close_errors or {})
        self.read_errors = dict(read_errors or {})
        self.block = block
        self.calls = []
        self.streams = {}

    def list_sources(self) -> str:
        self.calls.append(("ps",))
        if self.list_error:
            raise EnumerationError(self.list_error)
        if self.listing is not None:
            return self.listing
        return "\n".join(f"{s.id}:{s.name}" for s in self.containers) + "\n"

    def open_stream(self, source: Source, config) -> FakeStream:
        self.calls.append(("logs", source.id, config))
        if source.name in self.spawn_errors:
            raise StreamError(f"could not start log stream for {source.name}")
        lines = self.containers.get(source, [])
        if config.tail_lines > 0:
            lines = lines[-config.tail_lines:]
        stream = FakeStream(
            lines,
            block=self.block,
            fail_on_close=self.close_errors.get(source.name),
            read_error_after=self.read_errors.get(source.name),
        )
        self.streams[source.name] = stream
        return stream


class RecordingRenderer:
    def __init__(self):
        self.rendered = []
        self.event = threading.Event()

    def render(self, item):
        self.rendered.append(item)
        self.event.set()


@pytest.fixture()
def three_containers() -> dict:
    """Containers A, B and C from the reference scenario."""
    return {
        Source("a" * 64, "A"): ["ok", "error X", "ok"],
        Source("b" * 64, "B"): ["error Y"],
        Source("c" * 64, "C"): [],
    }


@pytest.fixture()
def renderer() -> RecordingRenderer:
    return RecordingRenderer()


_FAKE_DOCKER = '''#!@PYTHON@
import json
import os
import sys
import time

with open(@DATA@) as f:
    data = json.load(f)
with open(@CALLS@, "a") as f:
    f.write(json.dumps({"argv": sys.argv[1:], "pid": os.getpid()}) + "\\n")

args = sys.argv[1:]
if args[:1] == ["ps"]:
    if data.get("ps_fail"):
        sys.stderr.write("Cannot connect to the Docker daemon\\n")
        sys.exit(1)
    for c in data["containers"]:
        print(c["id"] + ":" + c["name"])
    sys.exit(0)

if args[:1] == ["logs"]:
    cid = args[-1]
    tail = int(args[args.index("--tail") + 1]) if "--tail" in args else 0
    container = None
    for c in data["containers"]:
        if c["id"] == cid:
            container = c
    if container is None or container.get("fail"):
        sys.stderr.write("Error: No such container: " + cid + "\\n")
        sys.exit(1)
    lines = container.get("lines", [])
    if tail:
        lines = lines[-tail:]
    for line in lines:
        print(line, flush=True)
    if "--follow" in args:
        while True:
            time.sleep(0.1)
    sys.exit(0)

sys.exit(2)
'''


class FakeDocker:
    def __init__(self, path: str, calls_file: str):
        self.path = path
        self.calls_file = calls_file

    def invocations(self) -> list[dict]:
        if not os.path.exists(self.calls_file):
            return []
        with open(self.calls_file) as f:
            return [json.loads(line) for line in f if line.strip()]


@pytest.fixture()
def fake_docker(tmp_path):
    """Factory writing an executable `docker` stand-in backed by JSON data."""

    def _make(containers, ps_fail=False) -> FakeDocker:
        data_file = tmp_path / "docker.json"
        calls_file = tmp_path / "calls.log"
        data_file.write_text(json.dumps({"containers": containers, "ps_fail": ps_fail}))
        script = tmp_path / "docker"
        script.write_text(
            _FAKE_DOCKER
            .replace("@PYTHON@", sys.executable)
            .replace("@DATA@", repr(str(data_file)))
            .replace("@CALLS@", repr(str(calls_file)))
        )
        script.chmod(0o755)
        return FakeDocker(str(script), str(calls_file))

    return _make
