# pagination.py
import logging
from typing import AbstractSet, Any, Dict, Iterable, Iterator, List, Optional

import requests

from options_chain.errors import UpstreamError
from options_chain.schemas import QuoteSnapshot
from options_chain.utils import redact, with_api_key

logger = logging.getLogger(__name__)

DEFAULT_MAX_PAGES = 100


def fetch_page(session: requests.Session, url: str, api_key: str, timeout: float = 30.0) -> Dict[str, Any]:
    """
    GET one page of a Polygon feed; a non-success status, a transport failure
    or an unreadable body aborts with UpstreamError.
    """
    try:
        response = session.get(with_api_key(url, api_key), timeout=timeout)
        if not response.ok:
            logger.error("Polygon returned %s for %s: %s", response.status_code, redact(url), response.text)
            raise UpstreamError(response.status_code, response.text)
        return response.json()
    except requests.RequestException as e:
        logger.error("Request to %s failed: %s", redact(url), e)
        raise UpstreamError(None, redact(str(e))) from e


def iter_snapshot_pages(
    session: requests.Session,
    start_url: str,
    api_key: str,
    max_pages: int = DEFAULT_MAX_PAGES,
    timeout: float = 30.0,
) -> Iterator[List[QuoteSnapshot]]:
    """
    Lazily walk a cursor-paginated snapshot feed, one list of snapshots per page.

    Stops when Polygon returns no `next_url` or after `max_pages` pages.
    Pages are only requested as the caller asks for them.
    """
    url: Optional[str] = start_url
    page = 0
    while url and page < max_pages:
        page += 1
        data = fetch_page(session, url, api_key, timeout)
        results = [QuoteSnapshot.model_validate(item) for item in data.get("results") or []]
        logger.debug("Page %d: %d results", page, len(results))
        yield results
        url = data.get("next_url")

    if url:
        logger.warning("Stopped after %d pages with more results remaining", page)


def snapshot_key(snapshot: QuoteSnapshot) -> Optional[str]:
    return snapshot.details.ticker


def targets_satisfied(seen: AbstractSet[str], targets: Optional[AbstractSet[str]]) -> bool:
    """True once every target contract has been observed. Never true without targets."""
    if not targets:
        return False
    return targets <= seen


def collect_snapshots(pages: Iterable[List[QuoteSnapshot]], targets: Optional[AbstractSet[str]] = None) -> List[QuoteSnapshot]:
    """
    Accumulate snapshots from `pages` until the feed ends or every target has been seen.
    """
    snapshots: List[QuoteSnapshot] = []
    seen = set()
    pages_read = 0
    for results in pages:
        pages_read += 1
        snapshots.extend(results)
        seen.update(key for key in map(snapshot_key, results) if key)
        if targets_satisfied(seen, targets):
            logger.info("All %d target contracts found after %d pages", len(targets), pages_read)
            break
    else:
        logger.info("Read %d pages, %d snapshots", pages_read, len(snapshots))
    return snapshots


def paginate_snapshots(
    session: requests.Session,
    start_url: str,
    api_key: str,
    target_keys: Optional[AbstractSet[str]] = None,
    max_pages: int = DEFAULT_MAX_PAGES,
    timeout: float = 30.0,
) -> List[QuoteSnapshot]:
    pages = iter_snapshot_pages(session, start_url, api_key, max_pages=max_pages, timeout=timeout)
    try:
        return collect_snapshots(pages, target_keys)
    finally:
        pages.close()
