"""Time utilities."""
from datetime import datetime, timezone


def utc_now() -> str:
    """Get current UTC timestamp as ISO string."""
    return datetime.now(timezone.utc).isoformat()


def format_clock(seconds: int) -> str:
    """Format a second count as M:SS for the countdown display."""
    seconds = max(int(seconds), 0)
    minutes, remaining = divmod(seconds, 60)
    return f"{minutes}:{remaining:02d}"
