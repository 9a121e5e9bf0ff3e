"""Value types handed between pipeline stages."""

from dataclasses import dataclass, field


@dataclass(frozen=True)
class Source:
    id: str
    name: str

    @property
    def short_id(self) -> str:
        return self.id[:12]


@dataclass(frozen=True)
class MatchRecord:
    source_id: str
    source_name: str
    line: str
    line_number: int    # 1-based position in the delivered stream

    def to_dict(self) -> dict:
        return {
            "source_id": self.source_id,
            "source_name": self.source_name,
            "line": self.line,
            "line_number": self.line_number,
        }


@dataclass(frozen=True)
class SourceDone:
    """Posted by a pipeline once its stream closed and every worker drained."""
    source: Source


@dataclass(frozen=True)
class SourceFailed:
    """Posted by a pipeline whose stream could not be read to completion."""
    source: Source
    error: str


@dataclass(frozen=True)
class AggregateResult:
    groups: dict[str, list[MatchRecord]] = field(default_factory=dict)
    total_matches: int = 0
    elapsed: float = 0.0    # seconds
    sources_searched: int = 0
    failed_sources: list[str] = field(default_factory=list)
