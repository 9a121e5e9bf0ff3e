"""Output renderers: live stream of records (follow) or grouped summary (batch)."""

import json
import sys
from typing import TextIO

from scl.config import RunConfig, Settings, color_enabled
from scl.models import AggregateResult, MatchRecord

# ANSI color codes
HEADER = "\033[1;32m"     # bold green
LINE = "\033[37m"         # white
SEPARATOR = "\033[90m"    # grey
RESET = "\033[0m"

SEPARATOR_WIDTH = 60


def format_elapsed(seconds: float) -> str:
    """Round to the millisecond: 850ms, 1.234s, 2m3.5s."""
    ms = round(seconds * 1000)
    if ms < 1000:
        return f"{ms}ms"
    minutes, ms = divmod(ms, 60_000)
    secs = f"{ms / 1000:.3f}".rstrip("0").rstrip(".")
    if minutes:
        return f"{minutes}m{secs}s"
    return f"{secs}s"


def format_record_line(record: MatchRecord) -> str:
    return f"[{record.source_id[:12]}] Line {record.line_number}: {record.line}"


class _TextStyle:
    def __init__(self, color: bool):
        self._color = color

    def _paint(self, text: str, code: str) -> str:
        if not self._color:
            return text
        return f"{code}{text}{RESET}"

    def header(self, text: str) -> str:
        return self._paint(text, HEADER)

    def line(self, text: str) -> str:
        return self._paint(text, LINE)

    def separator(self) -> str:
        return self._paint("-" * SEPARATOR_WIDTH, SEPARATOR)


class StreamRenderer:
    """Follow mode: each record is written and flushed as soon as it arrives."""

    def __init__(self, out: TextIO | None = None, output: str = "text", color: bool = False):
        self._out = out or sys.stdout
        self._output = output
        self._style = _TextStyle(color)

    def render(self, record: MatchRecord):
        if self._output == "json":
            self._out.write(json.dumps(record.to_dict()) + "\n")
        else:
            self._out.write(self._style.header(record.source_name) + "\n")
            self._out.write(self._style.line(format_record_line(record)) + "\n")
            self._out.write(self._style.separator() + "\n")
        self._out.flush()


class BatchRenderer:
    """Batch mode: one block per container, then the completion summary."""

    def __init__(self, out: TextIO | None = None, output: str = "text", color: bool = False):
        self._out = out or sys.stdout
        self._output = output
        self._style = _TextStyle(color)

    def render(self, result: AggregateResult):
        if self._output == "json":
            self._out.write(self._to_json(result) + "\n")
        else:
            self._out.write(self._to_text(result))
        self._out.flush()

    def _to_text(self, result: AggregateResult) -> str:
        lines = []
        for name in sorted(result.groups):
            records = result.groups[name]
            lines.append(self._style.header(f"{name} ({len(records)} matches)"))
            for record in records:
                lines.append(self._style.line(format_record_line(record)))
            lines.append(self._style.separator())
        if result.failed_sources:
            lines.append("")
            lines.append(f"Failed containers ({len(result.failed_sources)}): "
                         + ", ".join(result.failed_sources))
        lines.append("")
        lines.append(f"Search completed in {format_elapsed(result.elapsed)} "
                     f"with {result.total_matches} total matches")
        return "\n".join(lines) + "\n"

    @staticmethod
    def _to_json(result: AggregateResult) -> str:
        return json.dumps({
            "sources": {
                name: [r.to_dict() for r in records]
                for name, records in sorted(result.groups.items())
            },
            "total_matches": result.total_matches,
            "elapsed_ms": round(result.elapsed * 1000),
            "sources_searched": result.sources_searched,
            "failed_sources": result.failed_sources,
        }, indent=2)


def make_renderer(config: RunConfig, settings: Settings, out: TextIO | None = None):
    """Pick the renderer for this run once, from the run mode."""
    out = out or sys.stdout
    color = settings.output == "text" and color_enabled(settings, out.isatty())
    if config.follow:
        return StreamRenderer(out, settings.output, color)
    return BatchRenderer(out, settings.output, color)
