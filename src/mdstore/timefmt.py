"""RFC 3339 timestamps for stored documents."""

import re
from datetime import datetime, timezone

_RFC3339 = re.compile(
    r"^(\d{4}-\d{2}-\d{2})[Tt](\d{2}:\d{2}:\d{2})(?:\.(\d{1,9}))?([Zz]|[+-]\d{2}:\d{2})$"
)


def format_time(value: datetime) -> str:
    """Format a datetime as RFC 3339 with microseconds; UTC uses ``Z``.

    Naive datetimes are taken to be UTC.
    """
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)

    text = value.isoformat(timespec="microseconds")
    if text.endswith("+00:00"):
        text = text[:-6] + "Z"
    return text


def parse_time(text: str) -> datetime:
    """
    Parse an RFC 3339 timestamp, with or without fractional seconds.

    Fractions finer than a microsecond are truncated.

    Raises:
        ValueError: If the text is not RFC 3339
    """
    match = _RFC3339.match(text)
    if match is None:
        raise ValueError(
            f"mdstore: unable to parse time {text!r}: expected RFC 3339 format"
        )

    date_part, time_part, fraction, offset = match.groups()
    micros = (fraction or "").ljust(6, "0")[:6]
    if offset in ("Z", "z"):
        offset = "+00:00"

    try:
        return datetime.fromisoformat(f"{date_part}T{time_part}.{micros}{offset}")
    except ValueError as e:
        raise ValueError(f"mdstore: unable to parse time {text!r}: {e}") from e
