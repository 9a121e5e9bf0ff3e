"""Fan-in of every source pipeline through one inbox queue."""

import logging
import queue
import threading
from typing import Callable, Iterator

from scl.models import MatchRecord, SourceDone, SourceFailed

logger = logging.getLogger(__name__)


class Aggregator:
    """Sole consumer of the inbox.

    Pipelines only ever put messages on the queue; the grouping map and
    the count of unfinished pipelines live here and are touched by the
    consuming thread alone, so neither needs a lock.
    """

    def __init__(self, inbox: queue.Queue, shutdown_event: threading.Event | None = None,
                 poll_interval: float = 0.25):
        self._inbox = inbox
        self._shutdown = shutdown_event or threading.Event()
        self._poll_interval = poll_interval
        self._failed: list[str] = []
        self._cancelled = False

    @property
    def failed_sources(self) -> list[str]:
        return list(self._failed)

    @property
    def cancelled(self) -> bool:
        return self._cancelled

    def _records(self, pending: int) -> Iterator[MatchRecord]:
        """Yield records until `pending` pipelines have finished or shutdown is set."""
        while pending > 0:
            if self._shutdown.is_set():
                self._cancelled = True
                return
            try:
                message = self._inbox.get(timeout=self._poll_interval)
            except queue.Empty:
                continue

            if isinstance(message, MatchRecord):
                yield message
            elif isinstance(message, SourceDone):
                pending -= 1
                logger.debug("Container %s finished, %d pending", message.source.name, pending)
            elif isinstance(message, SourceFailed):
                pending -= 1
                self._failed.append(message.source.name)
                logger.debug("Container %s failed, %d pending", message.source.name, pending)
            else:
                logger.warning("Ignoring unexpected message %r", message)

    def collect(self, pending: int) -> dict[str, list[MatchRecord]]:
        """Batch mode: block until every pipeline finished, group by source name.

        Within a group records keep arrival order. Groups of failed sources
        are dropped so the result only covers fully read containers.
        """
        groups: dict[str, list[MatchRecord]] = {}
        for record in self._records(pending):
            groups.setdefault(record.source_name, []).append(record)
        for name in self._failed:
            dropped = groups.pop(name, None)
            if dropped:
                logger.warning("Discarding %d match(es) from failed container %s",
                               len(dropped), name)
        return groups

    def relay(self, pending: int, render: Callable[[MatchRecord], None]) -> int:
        """Follow mode: render each record as it arrives. Returns records relayed."""
        count = 0
        for record in self._records(pending):
            render(record)
            count += 1
        return count
