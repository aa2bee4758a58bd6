"""Parsing for the timestamp formats found in Bing Maps responses.

The directions REST API uses Microsoft JSON dates such as
"/Date(1700052326000-0800)/", while place reviews carry ISO 8601 strings.
"""

import re
from datetime import datetime, timedelta, timezone

_MS_JSON_DATE = re.compile(r"^/Date\((-?\d+)([+-]\d{4})?\)/$")


def parse_date(value: str | int | float | None) -> datetime | None:
    """Returns an aware datetime, or None for empty or unrecognized values."""
    if value is None or value == "":
        return None
    if isinstance(value, (int, float)):
        return datetime.fromtimestamp(value / 1000, tz=timezone.utc)

    match = _MS_JSON_DATE.match(value.strip())
    if match:
        millis, offset = match.groups()
        tz = timezone.utc
        if offset:
            sign = -1 if offset[0] == "-" else 1
            tz = timezone(sign * timedelta(hours=int(offset[1:3]), minutes=int(offset[3:5])))
        return datetime.fromtimestamp(int(millis) / 1000, tz=tz)

    try:
        parsed = datetime.fromisoformat(value.strip().replace("Z", "+00:00"))
    except ValueError:
        return None
    return parsed if parsed.tzinfo else parsed.replace(tzinfo=timezone.utc)
