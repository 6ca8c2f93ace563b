"""Reconciliation webhook client with exponential backoff retry logic"""

import httpx
import asyncio
from typing import Dict, Any, Optional
from copra_ledger.config import settings
from copra_ledger.infrastructure.observability.metrics import webhook_latency_histogram, webhook_failure_counter


class ReconciliationClient:
    """Notifies the external reconciliation job about derived state left stale"""

    def __init__(
        self,
        webhook_url: str | None = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.webhook_url = webhook_url or settings.reconciliation_webhook_url
        self.max_retries = settings.webhook_max_retries
        self.backoff_base = settings.webhook_backoff_base
        self.timeout = settings.http_timeout_seconds
        self.transport = transport

    async def send_stale_score_event(self, payload: Dict[str, Any]) -> None:
        """
        Report a supplier whose credit score could not be refreshed.

        Retry strategy:
        - Exponential backoff: 1s, 2s, 4s, 8s (base * 2^(attempt-1))
        - Retries on error responses and network failures
        - Tracks latency histogram and failure counter

        Args:
            payload: Event data (event, supplier_id, operation, error)
        """
        attempt = 0
        async with httpx.AsyncClient(transport=self.transport) as client:
            while attempt < self.max_retries:
                try:
                    with webhook_latency_histogram.time():
                        response = await client.post(
                            self.webhook_url,
                            json=payload,
                            timeout=self.timeout,
                        )
                        response.raise_for_status()
                        return  # Success

                except (httpx.HTTPStatusError, httpx.RequestError):
                    attempt += 1
                    webhook_failure_counter.inc()

                    if attempt >= self.max_retries:
                        # Final failure after all retries
                        raise

                    backoff = self.backoff_base * (2 ** (attempt - 1))
                    await asyncio.sleep(backoff)
