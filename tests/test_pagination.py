import pytest
import requests

from conftest import BASE_URL, FakeResponse, FakeSession, contract_symbol, make_snapshot, paged_session
from options_chain.errors import UpstreamError
from options_chain.pagination import iter_snapshot_pages, paginate_snapshots, targets_satisfied
from options_chain.utils import with_api_key

START_URL = f"{BASE_URL}/v3/snapshot/options/AAPL?limit=250"


def _records(strikes):
    return [make_snapshot(s) for s in strikes]


def test_reads_until_feed_exhausted():
    session = paged_session(_records(range(100, 150, 5)), page_size=4)
    snapshots = paginate_snapshots(session, START_URL, "secret")

    assert len(snapshots) == 10
    assert len(session.urls) == 3


def test_api_key_reattached_to_every_continuation_url():
    session = paged_session(_records(range(100, 130, 5)), page_size=2)
    paginate_snapshots(session, START_URL, "secret")

    assert session.urls[0] == f"{START_URL}&apiKey=secret"
    assert session.urls[1] == f"{BASE_URL}/v3/snapshot/options/AAPL?cursor=page2&apiKey=secret"
    assert all(url.count("apiKey=") == 1 for url in session.urls)


def test_existing_api_key_is_not_duplicated():
    url = f"{BASE_URL}/v3/x?apiKey=abc"
    assert with_api_key(url, "other") == url
    assert with_api_key(f"{BASE_URL}/v3/x", "k") == f"{BASE_URL}/v3/x?apiKey=k"


def test_stops_after_page_where_targets_are_complete():
    session = paged_session(_records(range(100, 150, 5)), page_size=2)
    targets = {contract_symbol("AAPL", "2026-01-09", "call", s) for s in (105, 110)}

    snapshots = paginate_snapshots(session, START_URL, "secret", target_keys=targets)

    # 105 arrives on page 1, 110 on page 2; page 3 is never requested
    assert len(session.urls) == 2
    assert len(snapshots) == 4


def test_missing_target_reads_whole_feed():
    session = paged_session(_records(range(100, 150, 5)), page_size=2)
    targets = {contract_symbol("AAPL", "2026-01-09", "call", 999)}

    paginate_snapshots(session, START_URL, "secret", target_keys=targets)
    assert len(session.urls) == 5


def test_page_ceiling():
    session = paged_session(_records(range(100, 200, 5)), page_size=1)
    snapshots = paginate_snapshots(session, START_URL, "secret", max_pages=3)

    assert len(session.urls) == 3
    assert len(snapshots) == 3


def test_failed_page_aborts_with_status_and_body():
    session = FakeSession([
        FakeResponse({"results": [make_snapshot(100)], "next_url": f"{BASE_URL}/v3/snapshot/options/AAPL?cursor=2"}),
        FakeResponse(status_code=429, text='{"status":"ERROR","error":"rate limited"}'),
    ])
    with pytest.raises(UpstreamError) as excinfo:
        paginate_snapshots(session, START_URL, "secret")

    assert excinfo.value.status == 429
    assert str(excinfo.value) == 'Polygon API error: 429 - {"status":"ERROR","error":"rate limited"}'


def test_pages_are_fetched_lazily():
    session = paged_session(_records(range(100, 120, 5)), page_size=1)
    pages = iter_snapshot_pages(session, START_URL, "secret")

    assert session.urls == []
    first = next(pages)
    assert len(first) == 1
    assert len(session.urls) == 1


def test_targets_satisfied():
    assert targets_satisfied({"a", "b", "c"}, {"a", "b"})
    assert not targets_satisfied({"a"}, {"a", "b"})
    assert not targets_satisfied({"a"}, None)
    assert not targets_satisfied({"a"}, set())


def test_timeout_on_a_page_becomes_upstream_error():
    session = FakeSession([
        FakeResponse({"results": [make_snapshot(100)], "next_url": f"{BASE_URL}/v3/snapshot/options/AAPL?cursor=2"}),
        requests.Timeout("Read timed out. (read timeout=30)"),
    ])
    with pytest.raises(UpstreamError) as excinfo:
        paginate_snapshots(session, START_URL, "secret")

    assert excinfo.value.status is None
    assert str(excinfo.value) == "Polygon API error: Read timed out. (read timeout=30)"


def test_connection_error_message_does_not_leak_api_key():
    session = FakeSession([requests.ConnectionError(f"Max retries exceeded with url: {START_URL}&apiKey=secret")])
    with pytest.raises(UpstreamError) as excinfo:
        paginate_snapshots(session, START_URL, "secret")

    assert "secret" not in str(excinfo.value)
    assert "apiKey=***" in str(excinfo.value)


def test_unreadable_body_becomes_upstream_error():
    bad_json = requests.exceptions.JSONDecodeError("Expecting value", "<html>", 0)
    session = FakeSession([FakeResponse(bad_json)])
    with pytest.raises(UpstreamError):
        paginate_snapshots(session, START_URL, "secret")
