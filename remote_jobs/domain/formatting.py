"""Human-readable text helpers shared by tracking-record and dashboard rendering."""

from __future__ import annotations


def _domain_pluralize(count: int, unit: str) -> str:
    return f"{count} {unit}" if count == 1 else f"{count} {unit}s"


def domain_format_elapsed(elapsed_seconds: float, include_seconds: bool = True) -> str:
    """Render an elapsed duration as the two most significant units.

    Args:
        elapsed_seconds: Duration in seconds.
        include_seconds: Whether sub-minute precision is rendered.

    Returns:
        str: Text such as `1 hour 5 minutes` or `42 seconds`.

    Raises:
        RuntimeError: This helper does not raise runtime errors.
    """

    total_seconds = max(0, int(elapsed_seconds))
    days, remainder = divmod(total_seconds, 86_400)
    hours, remainder = divmod(remainder, 3_600)
    minutes, seconds = divmod(remainder, 60)

    if total_seconds < 60:
        return _domain_pluralize(seconds, "second") if include_seconds and total_seconds > 0 else "0 minutes"

    if total_seconds < 3_600:
        if seconds == 0 or not include_seconds:
            return _domain_pluralize(minutes, "minute")
        return f"{_domain_pluralize(minutes, 'minute')} {_domain_pluralize(seconds, 'second')}"

    if total_seconds < 86_400:
        if minutes == 0 and seconds == 0:
            return _domain_pluralize(hours, "hour")
        return f"{_domain_pluralize(hours, 'hour')} {_domain_pluralize(minutes, 'minute')}"

    if hours == 0 and minutes == 0 and seconds == 0:
        return _domain_pluralize(days, "day")
    return f"{_domain_pluralize(days, 'day')} {_domain_pluralize(hours, 'hour')}"


def domain_format_rough_size(size_bytes: int) -> str:
    """Render a byte count using the largest whole unit up to MB.

    Args:
        size_bytes: Size in bytes.

    Returns:
        str: Text such as `12 MB`, `3 KB` or `17 B`.

    Raises:
        RuntimeError: This helper does not raise runtime errors.
    """

    kilobytes = size_bytes / 1024
    megabytes = kilobytes / 1024
    if megabytes >= 1:
        return f"{int(megabytes)} MB"
    if kilobytes >= 1:
        return f"{int(kilobytes)} KB"
    return f"{size_bytes} B"


def domain_truncate_with_ellipsis(text: str, max_length: int) -> str:
    """Truncate text to `max_length` characters ending with ` ...`."""

    if len(text) <= max_length or len(text) <= 4:
        return text
    return f"{text[: max_length - 4]} ..."
