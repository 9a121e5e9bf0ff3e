"""scl: search the logs of all running containers concurrently."""

__version__ = "1.0.0"
