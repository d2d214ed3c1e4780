"""Formatting utilities for domain logic."""


def status_to_color(status: str) -> str:
    """Map a transfer status, selection reason or verdict to a color name.

    Args:
        status: One of "succeeded", "failed", "skipped", "missing",
            "stale", "forced", "match" or "mismatch".

    Returns:
        Rich color name, or an empty string for unknown statuses.
    """
    color_map = {
        "succeeded": "green",
        "match": "green",
        "skipped": "yellow",
        "stale": "yellow",
        "forced": "cyan",
        "missing": "red",
        "failed": "red",
        "mismatch": "red",
    }
    return color_map.get(status, "")


def format_size(size: int | None) -> str:
    """Human-readable byte count (``-`` when unknown)."""
    if size is None:
        return "-"
    value = float(size)
    for unit in ("B", "KB", "MB", "GB", "TB"):
        if value < 1024 or unit == "TB":
            return f"{int(value)} {unit}" if unit == "B" else f"{value:.1f} {unit}"
        value /= 1024
    return f"{size} B"
