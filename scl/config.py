"""Run configuration and ambient settings (defaults <- YAML <- env vars <- CLI)."""

import logging
import os
import re
from dataclasses import dataclass, field, fields, replace
from datetime import timedelta

import yaml

from scl.errors import UsageError

logger = logging.getLogger(__name__)

LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")
COLOR_MODES = ("auto", "always", "never")
OUTPUT_FORMATS = ("text", "json")

# Go duration syntax, as accepted by `docker logs --since`; the unit must be last
_DURATION_PART = r"(\d+(?:\.\d*)?|\.\d+)(ns|us|µs|ms|h|m|s)"
_DURATION_RE = re.compile(rf"^(?:{_DURATION_PART})+$")
_DURATION_PART_RE = re.compile(_DURATION_PART)
_UNIT_SECONDS = {
    "ns": 1e-9,
    "us": 1e-6,
    "µs": 1e-6,
    "ms": 1e-3,
    "s": 1,
    "m": 60,
    "h": 3600,
}


def parse_since(text: str) -> timedelta:
    """Parse a duration such as 1h, 30m, 45s, 500ms or 1h30m.

    Raises UsageError for anything that is not a positive Go-style
    duration ending in an h, m or s unit.
    """
    value = text.strip()
    if not _DURATION_RE.match(value):
        raise UsageError(
            "invalid time format for --since flag. Use h for hours, m for minutes, "
            "s for seconds (e.g., 1h, 30m, 24h)"
        )
    seconds = sum(
        float(amount) * _UNIT_SECONDS[unit]
        for amount, unit in _DURATION_PART_RE.findall(value)
    )
    return timedelta(seconds=seconds)


@dataclass(frozen=True)
class RunConfig:
    pattern: str = ""
    follow: bool = False
    tail_lines: int = 0         # 0 = whole history
    since: str | None = None    # passed through to the producer verbatim

    @property
    def has_work(self) -> bool:
        return bool(self.pattern or self.follow or self.tail_lines > 0 or self.since)

    @property
    def since_window(self) -> timedelta | None:
        """The --since window as a timedelta, or None when unset."""
        if self.since is None:
            return None
        return parse_since(self.since)

    def validate(self) -> "RunConfig":
        """Raise UsageError if this run cannot start. Returns self for chaining."""
        self.since_window  # raises UsageError on a bad duration
        if self.tail_lines < 0:
            raise UsageError("tail lines must be >= 0")
        if not self.has_work:
            raise UsageError(
                "at least one of: pattern, --follow, --tail, or --since is required"
            )
        return self


@dataclass(frozen=True)
class Settings:
    docker_bin: str = "docker"
    workers: int = field(default_factory=lambda: os.cpu_count() or 1)
    line_buffer: int = 64
    poll_interval: float = 0.25
    stop_timeout: float = 5.0
    color: str = "auto"
    output: str = "text"
    log_level: str = "WARNING"

    def validate(self) -> "Settings":
        if self.workers < 1:
            raise UsageError("workers must be >= 1")
        if self.line_buffer < 1:
            raise UsageError("line_buffer must be >= 1")
        if self.poll_interval <= 0:
            raise UsageError("poll_interval must be > 0")
        if self.color not in COLOR_MODES:
            raise UsageError(f"color must be one of {', '.join(COLOR_MODES)}")
        if self.output not in OUTPUT_FORMATS:
            raise UsageError(f"output must be one of {', '.join(OUTPUT_FORMATS)}")
        if self.log_level not in LOG_LEVELS:
            raise UsageError(f"log_level must be one of {', '.join(LOG_LEVELS)}")
        return self


_ENV_VARS = {
    "docker_bin": "SCL_DOCKER_BIN",
    "workers": "SCL_WORKERS",
    "line_buffer": "SCL_LINE_BUFFER",
    "poll_interval": "SCL_POLL_INTERVAL",
    "stop_timeout": "SCL_STOP_TIMEOUT",
    "color": "SCL_COLOR",
    "output": "SCL_OUTPUT",
    "log_level": "SCL_LOG_LEVEL",
}

_CASTS = {
    "workers": int,
    "line_buffer": int,
    "poll_interval": float,
    "stop_timeout": float,
}


def _coerce(key: str, value) -> object:
    cast = _CASTS.get(key, str)
    try:
        result = cast(value)
    except (TypeError, ValueError) as e:
        raise UsageError(f"invalid value for {key}: {value!r}") from e
    if key in ("color", "output"):
        result = result.lower()
    elif key == "log_level":
        result = result.upper()
    return result


def load_yaml_config(path: str | None) -> dict:
    """Load settings from a YAML file. Returns empty dict if no path."""
    if not path:
        return {}
    try:
        with open(path, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}
    except FileNotFoundError:
        logger.warning("Config file %s not found, using defaults", path)
        return {}
    except yaml.YAMLError as e:
        raise UsageError(f"could not parse config file {path}: {e}") from e
    if not isinstance(data, dict):
        raise UsageError(f"config file {path} must contain a mapping")
    logger.info("Loaded YAML config from %s", path)
    return data


def load_settings(yaml_data: dict | None = None, **overrides) -> Settings:
    """Build Settings from defaults <- YAML data <- env vars <- overrides.

    Overrides with a value of None are ignored, so CLI args can be passed
    through unconditionally.
    """
    known = {f.name for f in fields(Settings)}
    values: dict = {}

    for key, value in (yaml_data or {}).items():
        key = str(key).replace("-", "_")
        if key not in known:
            logger.warning("Ignoring unknown config key %r", key)
            continue
        values[key] = _coerce(key, value)

    for key, env_var in _ENV_VARS.items():
        raw = os.environ.get(env_var)
        if raw is not None and raw.strip():
            values[key] = _coerce(key, raw.strip())

    for key, value in overrides.items():
        if value is not None:
            values[key] = _coerce(key, value)

    return replace(Settings(), **values).validate()


def color_enabled(settings: Settings, isatty: bool) -> bool:
    if settings.color == "always":
        return True
    if settings.color == "never":
        return False
    return isatty and "NO_COLOR" not in os.environ
