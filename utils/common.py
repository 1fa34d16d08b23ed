"""Common utility functions used across the compliance tracker tools."""

from datetime import datetime, timezone


def format_bytes(b: int) -> str:
    """Format bytes into human-readable size string.

    Examples:
        512 KB, 1.5 MB, 2.34 GB
    """
    if b < 1024 * 1024:
        return f"{b / 1024:.0f} KB"
    if b < 1024 * 1024 * 1024:
        return f"{b / (1024 * 1024):.1f} MB"
    return f"{b / (1024 * 1024 * 1024):.2f} GB"


def format_timestamp_ms(ms: int) -> str:
    """Format a millisecond epoch timestamp as a UTC date-time string.

    Examples:
        2026-10-19 08:30 UTC
    """
    return datetime.fromtimestamp(ms / 1000, tz=timezone.utc).strftime("%Y-%m-%d %H:%M UTC")
