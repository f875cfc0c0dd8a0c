# market.py
from datetime import datetime, time, timezone
from typing import Optional
from zoneinfo import ZoneInfo

EXCHANGE_TZ = ZoneInfo("America/New_York")
SESSION_OPEN = time(9, 30)
SESSION_CLOSE = time(16, 0)


def is_market_open(now: Optional[datetime] = None) -> bool:
    """
    Whether the primary US exchange is in its regular session (9:30-16:00 ET, Mon-Fri).

    Naive datetimes are taken to be UTC. Exchange holidays are not considered.
    """
    if now is None:
        now = datetime.now(timezone.utc)
    elif now.tzinfo is None:
        now = now.replace(tzinfo=timezone.utc)

    local = now.astimezone(EXCHANGE_TZ)
    if local.weekday() >= 5:
        return False
    return SESSION_OPEN <= local.time() < SESSION_CLOSE
