"""Line matching predicate."""


def matches(line: str, pattern: str) -> bool:
    """True if pattern occurs in line (case-sensitive). Empty pattern matches all."""
    return pattern in line
