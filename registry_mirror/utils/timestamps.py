"""Time helpers"""

from datetime import datetime, timezone


def utc_timestamp() -> str:
    """Current UTC time as ISO-8601 with a Z suffix"""
    return datetime.now(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


def format_duration(ms: int) -> str:
    """Human readable duration"""
    if ms < 1000:
        return f"{ms}ms"
    if ms < 60000:
        return f"{ms / 1000:.1f}s"
    return f"{ms // 60000}m {round((ms % 60000) / 1000)}s"
