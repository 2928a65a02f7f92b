"""
Permissive field types for records coming from the document store.

Stored invoices and stocktaking items are partially populated and carry
legacy values ("", "12,50", "12.5 zł", null).  Every numeric field passes
through ``to_number`` before validation so calculations never see anything
but a finite float.
"""
import math
import re
from datetime import date, datetime, time, timezone
from typing import Annotated, Any, Optional

from pydantic import BeforeValidator

_LEADING_NUMBER = re.compile(r"^[+-]?(\d+(\.\d*)?|\.\d+)([eE][+-]?\d+)?")


def to_number(value: Any) -> float:
    """Coerce *value* to a finite float; anything unparseable becomes 0.0."""
    if value is None or isinstance(value, bool):
        return 0.0
    if isinstance(value, (int, float)):
        number = float(value)
        return number if math.isfinite(number) else 0.0
    text = str(value).strip()
    if "." in text:
        text = text.replace(",", "")        # "1,234.56": comma groups thousands
    else:
        text = text.replace(",", ".")       # "12,50": comma is the decimal point
    match = _LEADING_NUMBER.match(text)
    if not match:
        return 0.0
    number = float(match.group(0))
    return number if math.isfinite(number) else 0.0


def to_optional_number(value: Any) -> Optional[float]:
    """Like ``to_number`` but keeps a missing value as None."""
    if value is None or (isinstance(value, str) and not value.strip()):
        return None
    return to_number(value)


def to_timestamp(value: Any) -> Optional[datetime]:
    """Accept datetimes, dates and ISO strings; a bare date means midnight UTC."""
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return value
    if isinstance(value, date):
        return datetime.combine(value, time.min, tzinfo=timezone.utc)
    text = str(value).strip()
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    try:
        parsed = datetime.fromisoformat(text)
    except ValueError:
        return None
    if len(text) == 10:
        # Date-only strings parse as midnight UTC, like the browser did
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def to_count(value: Any) -> float:
    """Like ``to_number`` but a missing, zero or unparseable count means one unit."""
    return to_number(value) or 1.0


def to_flag(value: Any) -> Any:
    return False if value is None else value


def empty_if_none(value: Any) -> Any:
    return [] if value is None else value


Amount = Annotated[float, BeforeValidator(to_number)]
OptionalAmount = Annotated[Optional[float], BeforeValidator(to_optional_number)]
OptionalTimestamp = Annotated[Optional[datetime], BeforeValidator(to_timestamp)]
Count = Annotated[float, BeforeValidator(to_count)]
Flag = Annotated[bool, BeforeValidator(to_flag)]


def as_utc(moment: datetime) -> datetime:
    """Treat naive datetimes as UTC so they compare with aware ones."""
    if moment.tzinfo is None:
        return moment.replace(tzinfo=timezone.utc)
    return moment.astimezone(timezone.utc)
