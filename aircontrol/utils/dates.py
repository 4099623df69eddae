"""
Date normalization for every date field that enters the system.

Documents coming from the mobile client or from JSON backups carry dates
as ISO strings, full ISO timestamps, "DD.MM.YYYY" strings, epoch
milliseconds or Firestore timestamp mappings. They are all turned into a
plain datetime.date here; nothing else is ever stored.

Instants (epoch values, Firestore timestamps, ISO timestamps with an
offset) are read in the configured local zone: the client stores date
picker values as local midnight, which is the previous day in UTC.
"""
import re
from calendar import monthrange
from datetime import date, datetime, timezone
from typing import Any, Optional, Tuple
from zoneinfo import ZoneInfo

from aircontrol.config import settings
from aircontrol.services.errors import ValidationError

DOTTED_DATE_RE = re.compile(r"^(\d{1,2})\.(\d{1,2})\.(\d{4})$")
MONTH_REF_RE = re.compile(r"^(\d{4})-(\d{2})$")


def local_zone() -> ZoneInfo:
    return ZoneInfo(settings.timezone)


def _local_date_from_timestamp(seconds: float, value: Any, field: str) -> date:
    try:
        return datetime.fromtimestamp(seconds, tz=timezone.utc).astimezone(local_zone()).date()
    except (OverflowError, OSError, ValueError):
        raise ValidationError(f"Invalid {field}: {value!r}")


def to_date(value: Any, field: str = "date") -> Optional[date]:
    """Normalize any supported date representation to a date (or None)"""
    if value is None or value == "":
        return None

    if isinstance(value, datetime):
        if value.tzinfo is not None:
            return value.astimezone(local_zone()).date()
        return value.date()

    if isinstance(value, date):
        return value

    if isinstance(value, bool):
        raise ValidationError(f"Invalid {field}: {value!r}")

    if isinstance(value, (int, float)):
        # Epoch milliseconds, as produced by JavaScript Date.getTime()
        return _local_date_from_timestamp(value / 1000, value, field)

    if isinstance(value, dict):
        # Firestore Timestamp serialized by the web client
        seconds = value.get("seconds", value.get("_seconds"))
        if isinstance(seconds, (int, float)) and not isinstance(seconds, bool):
            return _local_date_from_timestamp(seconds, value, field)
        raise ValidationError(f"Invalid {field}: {value!r}")

    if isinstance(value, str):
        text = value.strip()
        match = DOTTED_DATE_RE.match(text)
        try:
            if match:
                day, month, year = (int(part) for part in match.groups())
                return date(year, month, day)
            if len(text) == 10:
                return date.fromisoformat(text)
            parsed = datetime.fromisoformat(text.replace("Z", "+00:00"))
            if parsed.tzinfo is not None:
                return parsed.astimezone(local_zone()).date()
            return parsed.date()
        except (OverflowError, ValueError):
            raise ValidationError(f"Invalid {field}: {value!r}")

    raise ValidationError(f"Invalid {field}: {value!r}")


def same_month(a: date, b: date) -> bool:
    return a.year == b.year and a.month == b.month


def month_bounds(month_ref: Optional[str], today: date) -> Tuple[date, date]:
    """First and last day of a "YYYY-MM" month, or of today's month"""
    if month_ref:
        match = MONTH_REF_RE.match(month_ref.strip())
        if not match or not 1 <= int(match.group(2)) <= 12:
            raise ValidationError(f"Invalid month reference: {month_ref!r} (expected YYYY-MM)")
        year, month = int(match.group(1)), int(match.group(2))
    else:
        year, month = today.year, today.month
    return date(year, month, 1), date(year, month, monthrange(year, month)[1])


def format_dotted(value: date) -> str:
    return value.strftime("%d.%m.%Y")
