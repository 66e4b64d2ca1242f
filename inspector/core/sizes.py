from __future__ import annotations

UNITS = ("B", "KB", "MB", "GB")


def format_size(size: float) -> str:
    """Render a byte count as e.g. ``1.5KB``; GB is the largest unit."""
    value = float(size or 0)
    idx = 0
    while value >= 1024 and idx < len(UNITS) - 1:
        value /= 1024
        idx += 1
    return f"{value:.1f}{UNITS[idx]}"
