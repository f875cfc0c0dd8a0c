# enrich.py
from typing import Optional

from options_chain.pricing import is_finite
from options_chain.schemas import EnrichedOption, QuoteSnapshot


def _number(value) -> float:
    return float(value) if is_finite(value) else 0.0


def _count(value) -> int:
    return int(value) if is_finite(value) else 0


def quote_bid(snapshot: QuoteSnapshot) -> Optional[float]:
    """Bid from the day bar, else from the last quote, else None ("no bid")."""
    if snapshot.day.bid is not None:
        return snapshot.day.bid
    if snapshot.last_quote is not None:
        return snapshot.last_quote.bid
    return None


def quote_ask(snapshot: QuoteSnapshot) -> Optional[float]:
    if snapshot.day.ask is not None:
        return snapshot.day.ask
    if snapshot.last_quote is not None:
        return snapshot.last_quote.ask
    return None


def option_price(snapshot: QuoteSnapshot, market_open: bool) -> float:
    """
    Price used for all derived math: the bid during the session, the day close otherwise.
    """
    bid = quote_bid(snapshot)
    if market_open and bid is not None:
        return bid
    return snapshot.day.close or 0.0


def ask_price(snapshot: QuoteSnapshot) -> float:
    ask = quote_ask(snapshot)
    if ask is not None:
        return ask
    return snapshot.day.close or 0.0


def breakeven(strike: float, price: float, contract_type: Optional[str]) -> float:
    if (contract_type or "").lower() == "call":
        return strike + price
    return strike - price


def to_breakeven(breakeven_price: float, underlying_price: Optional[float]) -> float:
    """Percent move the underlying needs to reach breakeven; 0 without a usable price."""
    if not is_finite(underlying_price) or underlying_price == 0:
        return 0.0
    return (breakeven_price - underlying_price) / underlying_price * 100


def percent_from_previous(current: float, previous: Optional[float]) -> float:
    if not is_finite(previous) or previous == 0:
        return 0.0
    return (current - previous) / previous * 100


def enrich_option(snapshot: QuoteSnapshot, market_open: bool, underlying_price: Optional[float] = None) -> EnrichedOption:
    """
    Derive the analytics record for one contract snapshot. Never fails: missing
    numbers become 0, except the bid which stays None.
    """
    details = snapshot.details
    day = snapshot.day
    greeks = snapshot.greeks

    strike = _number(details.strike_price)
    price = option_price(snapshot, market_open)
    previous_close = _number(day.previous_close)
    breakeven_price = breakeven(strike, price, details.contract_type)

    return EnrichedOption(
        strike_price=strike,
        option_price=price,
        ask_price=ask_price(snapshot),
        bid_price=quote_bid(snapshot),
        breakeven=breakeven_price,
        to_breakeven=to_breakeven(breakeven_price, underlying_price),
        price_change=price - previous_close,
        percent_change=percent_from_previous(price, previous_close),
        open=_number(day.open),
        high=_number(day.high),
        low=_number(day.low),
        volume=_count(day.volume),
        open_interest=_count(snapshot.open_interest),
        implied_volatility=_number(snapshot.implied_volatility),
        delta=_number(greeks.delta),
        gamma=_number(greeks.gamma),
        theta=_number(greeks.theta),
        vega=_number(greeks.vega),
        ticker=details.ticker,
        expiration_date=details.expiration_date,
        contract_type=details.contract_type,
    )
