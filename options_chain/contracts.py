# contracts.py
import logging
from itertools import islice
from typing import Dict, List

from polygon import RESTClient
from polygon.exceptions import BadResponse
from urllib3.exceptions import HTTPError

from options_chain.errors import UpstreamError
from options_chain.schemas import Contract

logger = logging.getLogger(__name__)

CATALOG_LIMIT = 1000


def list_contracts(client: RESTClient, ticker: str, expiration_date: str, contract_type: str) -> List[Contract]:
    """
    All listed contracts for one underlying, expiration and type (at most 1000).

    A non-success response means "no contracts": callers fall back to filtering
    the snapshot feed by expiration and type.

    :param client: Polygon API client
    :param ticker: Underlying ticker symbol
    :param expiration_date: Expiration date as string in format 'YYYY-MM-DD'
    :param contract_type: 'call' or 'put'
    :return: Contracts keyed uniquely by symbol, in strike order
    """
    listing = client.list_options_contracts(
        underlying_ticker=ticker,
        expiration_date=expiration_date,
        contract_type=contract_type,
        limit=CATALOG_LIMIT,
    )
    contracts: Dict[str, Contract] = {}
    try:
        for item in islice(listing, CATALOG_LIMIT):
            if not item.ticker or item.strike_price is None:
                continue
            contracts[item.ticker] = Contract(
                ticker=item.ticker,
                strike_price=item.strike_price,
                expiration_date=item.expiration_date or expiration_date,
                contract_type=(item.contract_type or contract_type).lower(),
            )
    except BadResponse as e:
        logger.warning("Contracts endpoint unavailable for %s %s %s: %s", ticker, expiration_date, contract_type, e)
        return []
    except HTTPError as e:
        raise UpstreamError(None, str(e)) from e

    result = sorted(contracts.values(), key=lambda c: c.strike_price)
    if result:
        logger.info(
            "%d contracts for %s %s %s, strikes %s to %s",
            len(result), ticker, expiration_date, contract_type,
            result[0].strike_price, result[-1].strike_price,
        )
    return result
