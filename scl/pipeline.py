"""Per-source pipeline: sequential numbered reader fanning out to matcher workers."""

import logging
import queue
import threading

from scl.errors import StreamError
from scl.matcher import matches
from scl.models import MatchRecord, Source, SourceDone, SourceFailed

logger = logging.getLogger(__name__)

_STOP = None


class SourcePipeline(threading.Thread):
    """Reads one source's stream and emits MatchRecords into the shared inbox.

    Line numbers are assigned here, in the single reader thread, before a
    line is handed to the worker pool. Workers only run the match test, so
    numbering stays gap-free and strictly increasing whatever the pool size.

    When the stream ends, every worker is drained and joined before the
    pipeline posts SourceDone (or SourceFailed), so all of this source's
    records are already in the inbox ahead of its completion message.
    """

    def __init__(self, source: Source, stream, pattern: str, inbox: queue.Queue,
                 workers: int = 1, line_buffer: int = 64):
        super().__init__(daemon=True, name=f"pipeline-{source.short_id}")
        self._source = source
        self._stream = stream
        self._pattern = pattern
        self._inbox = inbox
        self._worker_count = max(1, workers)
        self._lines: queue.Queue = queue.Queue(maxsize=self._worker_count * line_buffer)
        self._stopping = threading.Event()
        self._lines_read = 0
        self._matched = 0
        self._lock = threading.Lock()

    @property
    def source(self) -> Source:
        return self._source

    @property
    def lines_read(self) -> int:
        return self._lines_read

    @property
    def matched(self) -> int:
        with self._lock:
            return self._matched

    def stop(self):
        """Ask the producer to stop. The pipeline then winds down normally."""
        self._stopping.set()
        self._stream.terminate()

    def run(self):
        workers = [
            threading.Thread(
                target=self._match_worker,
                name=f"{self.name}-worker-{i}",
                daemon=True,
            )
            for i in range(self._worker_count)
        ]
        for worker in workers:
            worker.start()

        error = None
        try:
            try:
                for number, line in enumerate(self._stream, start=1):
                    self._lines.put((number, line))
                    self._lines_read = number
            except Exception as e:
                if not self._stopping.is_set():
                    error = f"error reading logs: {e}"
            finally:
                for _ in workers:
                    self._lines.put(_STOP)
                for worker in workers:
                    worker.join()

            try:
                self._stream.close()
            except StreamError as e:
                if error is None:
                    error = str(e)
            except Exception as e:
                logger.debug("Closing stream for %s failed", self._source.name, exc_info=True)
                if error is None:
                    error = f"error closing log stream: {e}"
        finally:
            self._finish(error)

    def _finish(self, error: str | None):
        """Post exactly one completion message for this source."""
        if error is not None:
            logger.error("Container %s (%s): %s", self._source.name,
                         self._source.short_id, error)
            self._inbox.put(SourceFailed(self._source, error))
            return

        logger.info("Container %s: %d lines read, %d matched",
                    self._source.name, self._lines_read, self.matched)
        self._inbox.put(SourceDone(self._source))

    def _match_worker(self):
        while True:
            item = self._lines.get()
            if item is _STOP:
                return
            number, line = item
            if matches(line, self._pattern):
                with self._lock:
                    self._matched += 1
                self._inbox.put(MatchRecord(
                    source_id=self._source.id,
                    source_name=self._source.name,
                    line=line,
                    line_number=number,
                ))
