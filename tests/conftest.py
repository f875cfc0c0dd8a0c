"""
Shared fakes for the Polygon REST client and the raw HTTP feed.

Nothing here touches the network.
"""
from types import SimpleNamespace
from typing import Any, Dict, List, Optional

import pytest
from polygon.exceptions import BadResponse

from options_chain.utils import PolygonSources

BASE_URL = "https://api.polygon.io"


def contract_symbol(ticker: str, expiration: str, contract_type: str, strike: float) -> str:
    yymmdd = expiration.replace("-", "")[2:]
    return f"O:{ticker}{yymmdd}{contract_type[0].upper()}{int(strike * 1000):08d}"


def make_snapshot(
    strike: float,
    ticker: str = "AAPL",
    expiration: str = "2026-01-09",
    contract_type: str = "call",
    close: Optional[float] = 2.0,
    bid: Optional[float] = None,
    ask: Optional[float] = None,
    previous_close: Optional[float] = 1.6,
) -> Dict[str, Any]:
    """A snapshot record shaped like Polygon's /v3/snapshot/options payload."""
    day: Dict[str, Any] = {"open": 1.8, "high": 2.2, "low": 1.7, "volume": 120}
    if close is not None:
        day["close"] = close
    if bid is not None:
        day["bid"] = bid
    if ask is not None:
        day["ask"] = ask
    if previous_close is not None:
        day["previous_close"] = previous_close
    return {
        "day": day,
        "details": {
            "ticker": contract_symbol(ticker, expiration, contract_type, strike),
            "strike_price": strike,
            "expiration_date": expiration,
            "contract_type": contract_type,
        },
        "greeks": {"delta": 0.5, "gamma": 0.04, "theta": -0.1, "vega": 0.2},
        "implied_volatility": 0.31,
        "open_interest": 900,
    }


class FakeResponse:
    def __init__(self, payload: Any = None, status_code: int = 200, text: str = ""):
        self.payload = payload if payload is not None else {}
        self.status_code = status_code
        self.text = text

    @property
    def ok(self) -> bool:
        return 200 <= self.status_code < 400

    def json(self) -> Dict[str, Any]:
        if isinstance(self.payload, Exception):
            raise self.payload
        return self.payload


class FakeSession:
    """Serves the given responses in order and records every requested URL."""

    def __init__(self, responses: List[FakeResponse]):
        self.responses = list(responses)
        self.urls: List[str] = []

    def get(self, url: str, timeout: float = None) -> FakeResponse:
        self.urls.append(url)
        response = self.responses[len(self.urls) - 1]
        if isinstance(response, Exception):
            raise response
        return response


def paged_session(records: List[Dict[str, Any]], page_size: int, ticker: str = "AAPL") -> FakeSession:
    """Split snapshot records into pages linked by `next_url` cursors."""
    chunks = [records[i:i + page_size] for i in range(0, len(records), page_size)] or [[]]
    responses = []
    for n, chunk in enumerate(chunks, start=1):
        payload: Dict[str, Any] = {"status": "OK", "results": chunk}
        if n < len(chunks):
            payload["next_url"] = f"{BASE_URL}/v3/snapshot/options/{ticker}?cursor=page{n + 1}"
        responses.append(FakeResponse(payload))
    return FakeSession(responses)


def stock_snapshot(prev_close=None, day_close=None, last_trade=None) -> SimpleNamespace:
    return SimpleNamespace(
        prev_day=SimpleNamespace(close=prev_close),
        day=SimpleNamespace(close=day_close),
        last_trade=SimpleNamespace(price=last_trade) if last_trade is not None else None,
    )


def _as_exception(error) -> Exception:
    """Strings stand for a non-success status; exception instances are raised as given."""
    return error if isinstance(error, Exception) else BadResponse(error)


class FakeRestClient:
    """Stands in for polygon.RESTClient."""

    def __init__(self, snapshot=None, snapshot_error=None, prev_close=None, prev_close_error=None,
                 contracts=None, contracts_error=None):
        self.snapshot = snapshot
        self.snapshot_error = snapshot_error
        self.prev_close = prev_close
        self.prev_close_error = prev_close_error
        self.contracts = contracts or []
        self.contracts_error = contracts_error
        self.calls: List[str] = []

    def get_snapshot_ticker(self, market_type, ticker):
        self.calls.append("get_snapshot_ticker")
        if self.snapshot_error:
            raise _as_exception(self.snapshot_error)
        return self.snapshot

    def get_previous_close_agg(self, ticker):
        self.calls.append("get_previous_close_agg")
        if self.prev_close_error:
            raise _as_exception(self.prev_close_error)
        if self.prev_close is None:
            return []
        return [SimpleNamespace(ticker=ticker, close=self.prev_close)]

    def list_options_contracts(self, **kwargs):
        self.calls.append("list_options_contracts")
        self.contracts_kwargs = kwargs
        return self._iter_contracts()

    def _iter_contracts(self):
        if self.contracts_error:
            raise _as_exception(self.contracts_error)
        yield from self.contracts


def catalog(strikes, ticker="AAPL", expiration="2026-01-09", contract_type="call"):
    return [
        SimpleNamespace(
            ticker=contract_symbol(ticker, expiration, contract_type, s),
            strike_price=s,
            expiration_date=expiration,
            contract_type=contract_type,
        )
        for s in strikes
    ]


def make_sources(client, session) -> PolygonSources:
    return PolygonSources(client=client, session=session, api_key="test-key", base_url=BASE_URL)


@pytest.fixture
def aapl_client() -> FakeRestClient:
    """AAPL at 150 with a 130..170 (step 5) call catalog for 2026-01-09."""
    return FakeRestClient(
        snapshot=stock_snapshot(prev_close=148.0, day_close=150.0, last_trade=150.0),
        contracts=catalog(range(130, 175, 5)),
    )
