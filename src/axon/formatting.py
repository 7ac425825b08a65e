"""Formatting utilities shared by the panels."""

from datetime import datetime, timezone

SIZE_UNITS = ("B", "KiB", "MiB", "GiB", "TiB", "PiB", "EiB", "ZiB", "YiB")


def fmt_size(value: int | float) -> str:
    """Format a byte count with binary units, e.g. ``001.50 KiB``."""
    size = float(value)
    idx = 0
    while size >= 1024.0 and idx < len(SIZE_UNITS) - 1:
        size /= 1024.0
        idx += 1
    return f"{size:06.2f} {SIZE_UNITS[idx]}"


def fmt_throttle(throttle: int | None, unset: str = "global") -> str:
    """Format a throttle setting.

    Args:
        throttle: Bytes per second, -1 for unlimited, None when not set
        unset: Text shown when no throttle is set

    Returns:
        "∞" for unlimited, ``unset`` for None, otherwise the formatted rate
    """
    if throttle is None:
        return unset
    if throttle == -1:
        return "∞"
    return fmt_size(throttle)


def ratio(up: int, down: int) -> float:
    """Upload/download ratio, 1.0 while nothing was downloaded."""
    if down == 0:
        return 1.0
    return up / down


def date_diff_now(date: datetime, *, now: datetime | None = None) -> str:
    """Format the time elapsed since ``date`` as ``[Nw ][Nd ]HH:MM:SS``.

    Args:
        date: Timezone-aware start time
        now: Current time (defaults to the current UTC time)
    """
    if now is None:
        now = datetime.now(timezone.utc)
    total = max(0, int((now - date).total_seconds()))
    minutes, s = divmod(total, 60)
    hours, m = divmod(minutes, 60)
    days, h = divmod(hours, 24)
    w, d = divmod(days, 7)

    res = ""
    if w > 0:
        res += f"{w}w "
    if d > 0:
        res += f"{d}d "
    return res + f"{h:02}:{m:02}:{s:02}"
