"""Exception taxonomy: fatal usage/environment errors vs per-source errors."""


class SclError(Exception):
    """Base class for all errors raised by scl."""


class UsageError(SclError):
    """Invalid flags or inputs, detected before any source is contacted."""


class EnumerationError(SclError):
    """The source listing could not be obtained or parsed. Fatal for the run."""


class StreamError(SclError):
    """A single source's log stream failed to start or ended abnormally."""


class RunCancelled(SclError):
    """A batch run was interrupted before every source finished."""
