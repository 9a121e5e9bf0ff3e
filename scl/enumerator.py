"""Point-in-time enumeration of log sources."""

import logging

from scl.errors import EnumerationError
from scl.models import Source

logger = logging.getLogger(__name__)


def parse_source_listing(text: str) -> list[Source]:
    """Parse `id:name` lines into Sources, in listing order.

    Blank lines are skipped. A non-blank line without a `:` separator, or
    with an empty id or name, raises EnumerationError: the listing contract
    was broken and the whole run is abandoned rather than guessing.
    Exact duplicate entries are kept once.
    """
    sources = []
    seen = set()
    for lineno, raw in enumerate(text.splitlines(), start=1):
        line = raw.strip()
        if not line:
            continue
        source_id, sep, name = line.partition(":")
        source_id, name = source_id.strip(), name.strip()
        if not sep or not source_id or not name:
            raise EnumerationError(f"malformed container entry on line {lineno}: {line!r}")
        source = Source(id=source_id, name=name)
        if source in seen:
            logger.debug("Skipping duplicate container entry %s", line)
            continue
        seen.add(source)
        sources.append(source)
    return sources


def enumerate_sources(producer) -> list[Source]:
    """List active sources through the producer. Raises EnumerationError."""
    sources = parse_source_listing(producer.list_sources())
    logger.info("Found %d running container(s)", len(sources))
    return sources
