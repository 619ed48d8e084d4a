from datetime import datetime, timezone
from email.utils import parsedate_to_datetime
from typing import Optional, Union
import time

from newshub.logging_config import logger


def now_timestamp() -> int:
    return int(time.time())


def convert_date_str_to_timestamp(date_str: Optional[str]) -> int:
    """Parse a feed or record date string to unix timestamp, falling back to current time."""
    if not date_str:
        return now_timestamp()

    date_str = date_str.strip()
    try:
        # RFC 2822 format (common in RSS)
        dt = parsedate_to_datetime(date_str)
    except Exception:
        try:
            # ISO format (Atom and most JSON APIs)
            dt = datetime.fromisoformat(date_str.replace('Z', '+00:00'))
        except Exception:
            logger.warning(f"Could not parse date '{date_str}', using current time")
            return now_timestamp()

    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return int(dt.timestamp())


def convert_epoch_millis_to_timestamp(value: Union[int, float]) -> int:
    return int(value / 1000)


def timestamp_to_iso(timestamp: Union[int, float]) -> str:
    return datetime.fromtimestamp(timestamp, tz=timezone.utc).isoformat()
