"""SMS gateway client with exponential backoff retry logic"""

import asyncio
import logging
from typing import Any, Dict, Optional

import httpx

from debt_ledger.config import settings
from debt_ledger.domain.exceptions import NotificationError
from debt_ledger.domain.models import DebtAlert
from debt_ledger.infrastructure.observability.metrics import (
    notification_failure_counter,
    notification_latency_histogram,
)

logger = logging.getLogger(__name__)


def build_debt_alert_message(alert: DebtAlert, currency: str | None = None) -> str:
    """Text sent to a customer whose unpaid total crossed the threshold"""
    currency = currency or settings.currency
    return (
        f"Hello {alert.customer_name}, your outstanding balance is "
        f"{currency} {alert.total_unpaid:,.2f}. Please arrange payment at your earliest convenience."
    )


class SmsClient:
    """Client for the outbound SMS gateway"""

    def __init__(
        self,
        gateway_url: str | None = None,
        api_key: str | None = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.gateway_url = gateway_url or settings.sms_gateway_url
        self.api_key = api_key if api_key is not None else settings.sms_api_key
        self.sender_id = settings.sms_sender_id
        self.timeout = settings.http_timeout_seconds
        self.max_retries = settings.notification_max_retries
        self.backoff_base = settings.notification_backoff_base
        self.transport = transport

    async def send_debt_alert(self, alert: DebtAlert) -> None:
        """
        Send an outstanding-debt SMS to the customer.

        Retry strategy:
        - Exponential backoff: base, 2*base, 4*base ... (base * 2^(attempt-1))
        - Retries on 5xx errors and network failures, 4xx fails immediately
        - Tracks latency histogram and failure counter

        Raises:
            NotificationError: after the final failed attempt
        """
        payload: Dict[str, Any] = {
            "to": alert.phone,
            "from": self.sender_id,
            "message": build_debt_alert_message(alert),
        }
        headers = {"Authorization": f"Bearer {self.api_key}"} if self.api_key else {}

        attempt = 0
        async with httpx.AsyncClient(timeout=self.timeout, transport=self.transport) as client:
            while attempt < self.max_retries:
                try:
                    with notification_latency_histogram.time():
                        response = await client.post(self.gateway_url, json=payload, headers=headers)
                        response.raise_for_status()
                        return  # Success

                except httpx.HTTPStatusError as e:
                    attempt += 1
                    notification_failure_counter.inc()
                    if e.response.status_code < 500 or attempt >= self.max_retries:
                        raise NotificationError(
                            f"SMS gateway rejected alert for customer {alert.customer_id}: "
                            f"{e.response.status_code}"
                        ) from e

                except httpx.RequestError as e:
                    attempt += 1
                    notification_failure_counter.inc()
                    if attempt >= self.max_retries:
                        raise NotificationError(
                            f"SMS gateway unreachable after {attempt} attempts"
                        ) from e

                backoff = self.backoff_base * (2 ** (attempt - 1))
                logger.info(
                    "Retrying debt alert",
                    extra={"customer_id": alert.customer_id, "attempt": attempt, "backoff": backoff},
                )
                await asyncio.sleep(backoff)

    async def deliver_debt_alert(self, alert: DebtAlert) -> None:
        """Background-task entry point: never raises, logs delivery failures"""
        try:
            await self.send_debt_alert(alert)
        except NotificationError as e:
            logger.warning(f"Debt alert not delivered: {e}", extra={"customer_id": alert.customer_id})
