# schemas.py
from typing import List, Optional

import numpy as np
from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel


class ApiModel(BaseModel):
    """Response records: immutable, serialized with camelCase keys."""

    model_config = ConfigDict(frozen=True, alias_generator=to_camel, populate_by_name=True)


# Upstream records, parsed from the Polygon snapshot feed (snake_case on the wire).

class FeedModel(BaseModel):
    @field_validator("*")
    @classmethod
    def _non_finite_as_missing(cls, value):
        if isinstance(value, float) and not np.isfinite(value):
            return None
        return value


class DayBar(FeedModel):
    open: Optional[float] = None
    high: Optional[float] = None
    low: Optional[float] = None
    close: Optional[float] = None
    bid: Optional[float] = None
    ask: Optional[float] = None
    previous_close: Optional[float] = None
    volume: Optional[float] = None
    vwap: Optional[float] = None


class LastQuote(FeedModel):
    bid: Optional[float] = None
    ask: Optional[float] = None


class Greeks(FeedModel):
    delta: Optional[float] = None
    gamma: Optional[float] = None
    theta: Optional[float] = None
    vega: Optional[float] = None


class ContractDetails(FeedModel):
    ticker: Optional[str] = None
    strike_price: Optional[float] = None
    expiration_date: Optional[str] = None
    contract_type: Optional[str] = None


class QuoteSnapshot(FeedModel):
    day: DayBar = Field(default_factory=DayBar)
    details: ContractDetails = Field(default_factory=ContractDetails)
    greeks: Greeks = Field(default_factory=Greeks)
    last_quote: Optional[LastQuote] = None
    open_interest: Optional[float] = None
    implied_volatility: Optional[float] = None

    @field_validator("day", "details", "greeks", mode="before")
    @classmethod
    def _null_as_empty(cls, value):
        return {} if value is None else value


class Contract(ApiModel):
    ticker: str
    strike_price: float
    expiration_date: str
    contract_type: str


# Derived records returned to the caller.

class UnderlyingQuote(ApiModel):
    ticker: str
    market_open: bool
    prev_close: Optional[float] = None
    day_close: Optional[float] = None
    last_trade: Optional[float] = None
    price: Optional[float] = None
    today_change: Optional[float] = None
    today_change_percent: Optional[float] = None
    overnight_change: Optional[float] = None
    overnight_change_percent: Optional[float] = None
    source: str


class EnrichedOption(ApiModel):
    strike_price: float
    option_price: float
    ask_price: float
    bid_price: Optional[float] = None
    breakeven: float
    to_breakeven: float
    price_change: float
    percent_change: float
    open: float
    high: float
    low: float
    volume: int
    open_interest: int
    implied_volatility: float
    delta: float
    gamma: float
    theta: float
    vega: float
    ticker: Optional[str] = None
    expiration_date: Optional[str] = None
    contract_type: Optional[str] = None


class OptionsChainResponse(ApiModel):
    options: List[EnrichedOption]
    underlying_price: Optional[float] = None
    underlying: UnderlyingQuote
    market_open: bool


class ExpirationDate(ApiModel):
    date: str
    formatted: str
    days_until: int


class ExpirationDatesResponse(ApiModel):
    expiration_dates: List[ExpirationDate]
