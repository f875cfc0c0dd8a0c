# expirations.py
from datetime import date, datetime, timezone
from typing import List, Optional
from urllib.parse import quote

from options_chain.pagination import paginate_snapshots
from options_chain.schemas import ExpirationDate
from options_chain.utils import PolygonSources

EXPIRATION_MAX_PAGES = 30


def format_expiration(expiration: str, today: date) -> ExpirationDate:
    day = datetime.strptime(expiration, "%Y-%m-%d").date()
    return ExpirationDate(
        date=expiration,
        formatted=f"{day:%B} {day.day}, {day.year}",
        days_until=(day - today).days,
    )


def list_expiration_dates(sources: PolygonSources, ticker: str, today: Optional[date] = None) -> List[ExpirationDate]:
    """
    Distinct expiration dates present in the options snapshot feed, earliest first.
    """
    if today is None:
        today = datetime.now(timezone.utc).date()

    snapshots = paginate_snapshots(
        sources.session,
        f"{sources.base_url}/v3/snapshot/options/{quote(ticker)}?limit=250",
        sources.api_key,
        max_pages=EXPIRATION_MAX_PAGES,
        timeout=sources.timeout,
    )
    expirations = sorted({s.details.expiration_date for s in snapshots if s.details.expiration_date})
    return [format_expiration(e, today) for e in expirations]
