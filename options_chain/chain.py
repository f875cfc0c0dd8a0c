# chain.py
import logging
from datetime import datetime
from typing import Dict, List, Optional, Sequence
from urllib.parse import quote, urlencode

from options_chain.contracts import list_contracts
from options_chain.enrich import enrich_option
from options_chain.market import is_market_open
from options_chain.pagination import DEFAULT_MAX_PAGES, paginate_snapshots
from options_chain.pricing import resolve_underlying
from options_chain.schemas import Contract, EnrichedOption, OptionsChainResponse, QuoteSnapshot
from options_chain.strikes import DEFAULT_HALF_WIDTH, select_strike_window, window_options
from options_chain.utils import PolygonSources

logger = logging.getLogger(__name__)

SNAPSHOT_PAGE_LIMIT = 250
FAR_FROM_STRIKES_POINTS = 50


def snapshot_feed_url(base_url: str, ticker: str, expiration_date: str, contract_type: str) -> str:
    params = urlencode({
        "expiration_date": expiration_date,
        "contract_type": contract_type,
        "limit": SNAPSHOT_PAGE_LIMIT,
    })
    return f"{base_url}/v3/snapshot/options/{quote(ticker)}?{params}"


def match_snapshots(
    snapshots: Sequence[QuoteSnapshot],
    contracts: Sequence[Contract],
    expiration_date: str,
    contract_type: str,
) -> List[QuoteSnapshot]:
    """
    One snapshot per requested contract. Matched by contract symbol when the
    catalog is known, by expiration and type otherwise. A contract seen more
    than once keeps its first position and its last snapshot.
    """
    if contracts:
        wanted = {c.ticker for c in contracts}
        matched = [s for s in snapshots if s.details.ticker in wanted]
    else:
        contract_type = contract_type.lower()
        matched = [
            s for s in snapshots
            if s.details.expiration_date == expiration_date
            and (s.details.contract_type or "").lower() == contract_type
        ]

    by_symbol: Dict[str, QuoteSnapshot] = {}
    for s in matched:
        by_symbol[s.details.ticker or f"#{id(s)}"] = s
    return list(by_symbol.values())


def _warn_if_far_from_strikes(options: Sequence[EnrichedOption], price: Optional[float]) -> None:
    if price is None or not options:
        return
    strikes = [o.strike_price for o in options]
    low, high = min(strikes), max(strikes)
    if max(abs(price - low), abs(price - high)) > FAR_FROM_STRIKES_POINTS:
        logger.warning("Market price %s is far from available strikes (%s-%s)", price, low, high)


def assemble_chain(
    sources: PolygonSources,
    ticker: str,
    expiration_date: str,
    contract_type: str,
    now: Optional[datetime] = None,
    half_width: int = DEFAULT_HALF_WIDTH,
    max_pages: int = DEFAULT_MAX_PAGES,
) -> OptionsChainResponse:
    """
    Build the enriched options chain for one expiration and contract type.

    :param sources: Polygon client, HTTP session and credential
    :param ticker: Underlying ticker symbol
    :param expiration_date: Expiration date as string in format 'YYYY-MM-DD'
    :param contract_type: 'call' or 'put'
    :param now: Instant used for the market-hours check (defaults to the current time)
    :return: OptionsChainResponse with options sorted by strike, highest first
    """
    market_open = is_market_open(now)
    underlying = resolve_underlying(sources.client, ticker, market_open)
    price = underlying.price

    # Contracts whose strikes fall in the window bound the pagination below
    contracts = list_contracts(sources.client, ticker, expiration_date, contract_type)
    if contracts and price is not None:
        window = select_strike_window((c.strike_price for c in contracts), price, half_width)
        contracts = [c for c in contracts if c.strike_price in window]
        logger.info("Target strikes around %s: %s", price, sorted(window))
    targets = {c.ticker for c in contracts} or None

    snapshots = paginate_snapshots(
        sources.session,
        snapshot_feed_url(sources.base_url, ticker, expiration_date, contract_type),
        sources.api_key,
        target_keys=targets,
        max_pages=max_pages,
        timeout=sources.timeout,
    )

    matched = match_snapshots(snapshots, contracts, expiration_date, contract_type)
    if contracts and len(matched) < len(contracts):
        logger.warning("Only found %d of %d target contracts in snapshot", len(matched), len(contracts))
    if not matched:
        return OptionsChainResponse(options=[], underlying_price=price, underlying=underlying, market_open=market_open)

    enriched = [enrich_option(s, market_open, price) for s in matched]
    _warn_if_far_from_strikes(enriched, price)
    options = window_options(enriched, price, half_width)
    logger.info("Returning %d of %d options around %s", len(options), len(enriched), price)

    return OptionsChainResponse(
        options=options,
        underlying_price=price,
        underlying=underlying,
        market_open=market_open,
    )
