"""Run orchestration: enumerate -> spawn pipelines -> aggregate -> summarize."""

import logging
import queue
import threading
import time
from enum import Enum

from scl.aggregator import Aggregator
from scl.config import RunConfig, Settings
from scl.enumerator import enumerate_sources
from scl.errors import RunCancelled, SclError, StreamError
from scl.models import AggregateResult, Source
from scl.pipeline import SourcePipeline

logger = logging.getLogger(__name__)


class RunState(Enum):
    INIT = "init"
    ENUMERATING = "enumerating"
    SPAWNING = "spawning"
    COLLECTING = "collecting"
    STREAMING = "streaming"
    SUMMARIZING = "summarizing"
    DONE = "done"
    CANCELLED = "cancelled"
    ERROR = "error"


class RunCoordinator:
    """Owns one search run from enumeration to the rendered result.

    The producer supplies list_sources() and open_stream(source, config);
    the renderer's render() takes a MatchRecord in follow mode and an
    AggregateResult in batch mode.
    """

    def __init__(self, config: RunConfig, producer, renderer,
                 settings: Settings | None = None,
                 shutdown_event: threading.Event | None = None,
                 clock=time.monotonic):
        self._config = config
        self._producer = producer
        self._renderer = renderer
        self._settings = settings or Settings()
        self._shutdown = shutdown_event or threading.Event()
        self._clock = clock
        self._inbox: queue.Queue = queue.Queue()
        self._state = RunState.INIT
        self._pipelines: list[SourcePipeline] = []
        self._spawn_failures: list[str] = []

    @property
    def state(self) -> RunState:
        return self._state

    def _transition(self, state: RunState):
        logger.debug("Run state %s -> %s", self._state.value, state.value)
        self._state = state

    def run(self) -> AggregateResult | None:
        """Execute the run.

        Returns the AggregateResult in batch mode, None in follow mode.

        Raises:
            UsageError: the RunConfig is invalid (no source is contacted).
            EnumerationError: the containers could not be listed.
            RunCancelled: a batch run was interrupted.
        """
        start = self._clock()
        try:
            self._config.validate()

            self._transition(RunState.ENUMERATING)
            sources = enumerate_sources(self._producer)

            self._transition(RunState.SPAWNING)
            window = self._config.since_window
            if window is not None:
                logger.info("Reading logs from the last %s", window)
            self._spawn(sources)

            aggregator = Aggregator(self._inbox, self._shutdown, self._settings.poll_interval)

            if self._config.follow:
                self._transition(RunState.STREAMING)
                relayed = aggregator.relay(len(self._pipelines), self._renderer.render)
                logger.info("Follow mode ended after %d match(es)", relayed)
                self._transition(RunState.DONE)
                return None

            self._transition(RunState.COLLECTING)
            groups = aggregator.collect(len(self._pipelines))
            elapsed = self._clock() - start
            if aggregator.cancelled:
                raise RunCancelled("search interrupted before all containers finished")

            self._transition(RunState.SUMMARIZING)
            result = AggregateResult(
                groups=groups,
                total_matches=sum(len(records) for records in groups.values()),
                elapsed=elapsed,
                sources_searched=len(sources),
                failed_sources=self._spawn_failures + aggregator.failed_sources,
            )
            self._renderer.render(result)
            self._transition(RunState.DONE)
            return result
        except RunCancelled:
            self._transition(RunState.CANCELLED)
            raise
        except SclError:
            self._transition(RunState.ERROR)
            raise
        finally:
            self._release()

    def _spawn(self, sources: list[Source]):
        """Start one pipeline per source. A source that fails to start is skipped."""
        for source in sources:
            try:
                stream = self._producer.open_stream(source, self._config)
            except StreamError as e:
                logger.error("Container %s (%s): %s", source.name, source.short_id, e)
                self._spawn_failures.append(source.name)
                continue
            pipeline = SourcePipeline(
                source,
                stream,
                self._config.pattern,
                self._inbox,
                workers=self._settings.workers,
                line_buffer=self._settings.line_buffer,
            )
            pipeline.start()
            self._pipelines.append(pipeline)
        logger.info("Started %d pipeline(s) with %d worker(s) each",
                    len(self._pipelines), self._settings.workers)

    def _release(self):
        """Stop whatever is still running so no producer process outlives the run."""
        for pipeline in self._pipelines:
            if pipeline.is_alive():
                pipeline.stop()
        for pipeline in self._pipelines:
            pipeline.join(timeout=self._settings.stop_timeout)
            if pipeline.is_alive():
                logger.warning("Pipeline for %s did not stop in time", pipeline.source.name)
