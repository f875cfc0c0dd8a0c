# utils.py
import logging
import os
import re
from dataclasses import dataclass
from typing import Dict, Optional
from urllib.parse import parse_qsl, urlencode, urlsplit

import requests
from dotenv import load_dotenv
from polygon import RESTClient

from options_chain.errors import ConfigurationError

load_dotenv()

DEFAULT_BASE_URL = "https://api.polygon.io"
LOG_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s"

_API_KEY_PATTERN = re.compile(r"(apiKey=)[^&]+")


@dataclass(frozen=True)
class Settings:
    api_key: Optional[str]
    base_url: str = DEFAULT_BASE_URL
    timeout: float = 30.0
    host: str = "0.0.0.0"
    port: int = 3001
    log_level: str = "INFO"


def load_settings() -> Settings:
    """
    Read the service configuration from the environment (and `.env`, if present).
    """
    return Settings(
        api_key=os.getenv("POLYGON_API_KEY") or None,
        base_url=os.getenv("POLYGON_BASE_URL", DEFAULT_BASE_URL).rstrip("/"),
        timeout=float(os.getenv("POLYGON_TIMEOUT", "30")),
        host=os.getenv("HOST", "0.0.0.0"),
        port=int(os.getenv("PORT", "3001")),
        log_level=os.getenv("LOG_LEVEL", "INFO").upper(),
    )


def configure_logging(level: str = "INFO") -> None:
    logging.basicConfig(level=level, format=LOG_FORMAT, datefmt="%Y-%m-%d %H:%M:%S")


def require_api_key(settings: Settings) -> str:
    if not settings.api_key:
        raise ConfigurationError("API key not configured")
    return settings.api_key


@dataclass
class PolygonSources:
    """
    Everything a request needs to talk to Polygon: the SDK client for the
    single-shot endpoints and a plain HTTP session for the paginated feed.
    """

    client: RESTClient
    session: requests.Session
    api_key: str
    base_url: str = DEFAULT_BASE_URL
    timeout: float = 30.0


def get_polygon_client(api_key: str, base_url: str = DEFAULT_BASE_URL, timeout: float = 30.0) -> RESTClient:
    """
    Initialize the Polygon RESTClient. Failed calls are never retried.
    """
    return RESTClient(api_key, base=base_url, connect_timeout=timeout, read_timeout=timeout, retries=0)


# One client pool and one HTTP session per configuration, shared by every request
_shared_sources: Dict[Settings, PolygonSources] = {}


def open_sources(settings: Settings) -> PolygonSources:
    api_key = require_api_key(settings)
    sources = _shared_sources.get(settings)
    if sources is None:
        sources = PolygonSources(
            client=get_polygon_client(api_key, settings.base_url, settings.timeout),
            session=requests.Session(),
            api_key=api_key,
            base_url=settings.base_url,
            timeout=settings.timeout,
        )
        _shared_sources[settings] = sources
    return sources


def close_sources() -> None:
    while _shared_sources:
        _, sources = _shared_sources.popitem()
        sources.session.close()
        # RESTClient keeps its urllib3 PoolManager on `client`
        sources.client.client.clear()


def with_api_key(url: str, api_key: str) -> str:
    """
    Attach the credential to a URL unless it already carries one.

    Continuation cursors returned by Polygon (`next_url`) do not include it.
    """
    query = parse_qsl(urlsplit(url).query, keep_blank_values=True)
    if any(key == "apiKey" for key, _ in query):
        return url
    separator = "&" if "?" in url else "?"
    return f"{url}{separator}{urlencode({'apiKey': api_key})}"


def redact(url: str) -> str:
    return _API_KEY_PATTERN.sub(r"\1***", url)
