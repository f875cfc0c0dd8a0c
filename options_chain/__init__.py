"""Options-chain analytics aggregated from the Polygon market-data API."""

__version__ = "0.1.0"
