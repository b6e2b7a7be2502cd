"""Audit webhook client with exponential backoff retry logic"""

import asyncio
import logging
import httpx
from typing import Any, Dict
from loan_core.config import settings
from loan_core.infrastructure.observability.metrics import webhook_latency_histogram, webhook_failure_counter


class AuditClient:
    """Client for forwarding audit events to an external webhook"""

    def __init__(self, webhook_url: str | None = None):
        self.webhook_url = webhook_url if webhook_url is not None else settings.audit_webhook_url
        self.timeout = settings.http_timeout_seconds
        self.max_retries = settings.webhook_max_retries
        self.backoff_base = settings.webhook_backoff_base

    @property
    def enabled(self) -> bool:
        return bool(self.webhook_url)

    async def send_audit_event(self, payload: Dict[str, Any]) -> None:
        """
        Deliver one audit event, retrying on 5xx and network failures.

        Backoff: base * 2^(attempt-1), i.e. 1s, 2s, 4s, 8s with the defaults.
        The audit trail is already persisted, so a final failure is logged
        rather than raised into the background task runner.
        """
        if not self.enabled:
            return

        attempt = 0
        async with httpx.AsyncClient(timeout=self.timeout) as client:
            while attempt < self.max_retries:
                try:
                    with webhook_latency_histogram.time():
                        response = await client.post(self.webhook_url, json=payload)
                        response.raise_for_status()
                        return

                except (httpx.HTTPStatusError, httpx.RequestError) as e:
                    attempt += 1
                    webhook_failure_counter.inc()

                    if attempt >= self.max_retries:
                        logging.error(
                            f"Audit webhook delivery failed after {attempt} attempts: {e}",
                            extra={"step": "audit_webhook", "event_action": payload.get("action")},
                        )
                        return

                    await asyncio.sleep(self.backoff_base * (2 ** (attempt - 1)))
