"""Tests for the reconciliation webhook client retry behaviour"""

import asyncio

import httpx
import pytest

from copra_ledger.infrastructure.clients.reconciliation import ReconciliationClient

PAYLOAD = {"event": "CREDIT_SCORE_STALE", "supplier_id": "s-1", "operation": "cancelled"}


def make_client(responses):
    calls = []

    def handler(request: httpx.Request) -> httpx.Response:
        calls.append(request)
        return httpx.Response(responses[min(len(calls), len(responses)) - 1])

    client = ReconciliationClient(
        webhook_url="http://reconciliation.test/events",
        transport=httpx.MockTransport(handler),
    )
    client.backoff_base = 0
    return client, calls


def test_event_is_posted_once_on_success():
    client, calls = make_client([202])

    asyncio.run(client.send_stale_score_event(PAYLOAD))

    assert len(calls) == 1
    assert calls[0].method == "POST"
    assert calls[0].url == "http://reconciliation.test/events"


def test_retries_until_success():
    client, calls = make_client([503, 500, 200])

    asyncio.run(client.send_stale_score_event(PAYLOAD))

    assert len(calls) == 3


def test_gives_up_after_max_retries():
    client, calls = make_client([500])
    client.max_retries = 2

    with pytest.raises(httpx.HTTPStatusError):
        asyncio.run(client.send_stale_score_event(PAYLOAD))

    assert len(calls) == 2
