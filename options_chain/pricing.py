# pricing.py
import logging
from typing import Optional, Tuple

import numpy as np
from polygon import RESTClient
from polygon.exceptions import BadResponse
from urllib3.exceptions import HTTPError

from options_chain.errors import UpstreamError
from options_chain.schemas import UnderlyingQuote

logger = logging.getLogger(__name__)

# Raised by RESTClient on a non-success status or a transport failure
SOURCE_ERRORS = (BadResponse, HTTPError)

SOURCE_LAST_TRADE = "snapshot.last_trade"
SOURCE_DAY_CLOSE = "snapshot.day_close"
SOURCE_PREV_CLOSE = "snapshot.prev_close"
SOURCE_PREVIOUS_CLOSE_FALLBACK = "previous_close"
SOURCE_UNAVAILABLE = "unavailable"


def is_finite(value) -> bool:
    return value is not None and bool(np.isfinite(value))


def price_or_none(value) -> Optional[float]:
    """
    Polygon zero-fills bars it has no data for; a price of 0 means "absent".
    """
    if not is_finite(value) or value <= 0:
        return None
    return float(value)


def percent_change(change: Optional[float], base: Optional[float]) -> Optional[float]:
    if not is_finite(change) or not is_finite(base) or base == 0:
        return None
    return change / base * 100


def change_breakdown(current: Optional[float], base: Optional[float]) -> Tuple[Optional[float], Optional[float]]:
    """
    Absolute and percent change from `base` to `current`; both None unless
    both operands are finite and the base is non-zero.
    """
    if not is_finite(current) or not is_finite(base) or base == 0:
        return None, None
    change = current - base
    return change, percent_change(change, base)


def resolve_snapshot_price(
    last_trade: Optional[float],
    day_close: Optional[float],
    prev_close: Optional[float],
    market_open: bool,
) -> Tuple[Optional[float], Optional[str]]:
    """
    First satisfied rule wins:

    1. last trade, while the market is open or once it has moved away from
       the day close (after-hours trading)
    2. day close
    3. previous close
    """
    if last_trade is not None and (market_open or last_trade != day_close):
        return last_trade, SOURCE_LAST_TRADE
    if day_close is not None:
        return day_close, SOURCE_DAY_CLOSE
    if prev_close is not None:
        return prev_close, SOURCE_PREV_CLOSE
    return None, None


def _snapshot_fields(snapshot) -> Tuple[Optional[float], Optional[float], Optional[float]]:
    prev_day = getattr(snapshot, "prev_day", None)
    day = getattr(snapshot, "day", None)
    trade = getattr(snapshot, "last_trade", None)
    prev_close = price_or_none(getattr(prev_day, "close", None))
    day_close = price_or_none(getattr(day, "close", None))
    last_trade = price_or_none(getattr(trade, "price", None))
    return prev_close, day_close, last_trade


def fetch_previous_close(client: RESTClient, ticker: str) -> Optional[float]:
    """
    Previous session close from the aggregates endpoint, or None when Polygon has no bar.
    """
    aggs = client.get_previous_close_agg(ticker)
    if aggs is None:
        return None
    if not isinstance(aggs, list):
        aggs = [aggs]
    for agg in aggs:
        close = price_or_none(getattr(agg, "close", None))
        if close is not None:
            return close
    return None


def resolve_underlying(client: RESTClient, ticker: str, market_open: bool) -> UnderlyingQuote:
    """
    Resolve the best-available price of the underlying.

    The stock snapshot is tried first; if it is unavailable (or carries no usable
    price) the previous-close aggregate is used instead, and the Today/Overnight
    breakdown is left empty.

    :param client: Polygon API client
    :param ticker: Underlying ticker symbol
    :param market_open: Whether the regular session is currently open
    :return: UnderlyingQuote; raises UpstreamError if every source failed
    """
    try:
        snapshot = client.get_snapshot_ticker("stocks", ticker)
    except SOURCE_ERRORS as e:
        logger.warning("Snapshot unavailable for %s, falling back to previous close: %s", ticker, e)
        snapshot = None

    if snapshot is not None:
        prev_close, day_close, last_trade = _snapshot_fields(snapshot)
        price, source = resolve_snapshot_price(last_trade, day_close, prev_close, market_open)
        if price is not None:
            today_change, today_change_percent = change_breakdown(day_close, prev_close)
            overnight_change, overnight_change_percent = change_breakdown(last_trade, day_close)
            logger.info("Underlying %s price %s (source=%s)", ticker, price, source)
            return UnderlyingQuote(
                ticker=ticker,
                market_open=market_open,
                prev_close=prev_close,
                day_close=day_close,
                last_trade=last_trade,
                price=price,
                today_change=today_change,
                today_change_percent=today_change_percent,
                overnight_change=overnight_change,
                overnight_change_percent=overnight_change_percent,
                source=source,
            )
        logger.warning("Snapshot for %s carried no usable price, falling back to previous close", ticker)

    try:
        prev_close = fetch_previous_close(client, ticker)
    except SOURCE_ERRORS as e:
        raise UpstreamError(None, str(e)) from e

    source = SOURCE_PREVIOUS_CLOSE_FALLBACK if prev_close is not None else SOURCE_UNAVAILABLE
    logger.info("Underlying %s price %s (source=%s)", ticker, prev_close, source)
    return UnderlyingQuote(
        ticker=ticker,
        market_open=market_open,
        prev_close=prev_close,
        price=prev_close,
        source=source,
    )
