"""
Payment collaborator client.

Card charging is delegated to the booking site's payment API. A decline is
a normal outcome returned as ``ChargeResult(success=False)``; an unreachable,
slow or erroring collaborator raises ``UpstreamError``.
"""

import logging
from dataclasses import dataclass
from decimal import Decimal, InvalidOperation
from typing import Optional

import httpx

from backend.app.core.config import settings
from backend.app.core.exceptions import UpstreamError
from backend.app.core.reliability import CircuitBreaker, CircuitOpenError, payment_circuit_breaker

logger = logging.getLogger("nemt_dispatch.payments")

CHARGE_PATH = "/api/stripe/charge-payment"


@dataclass
class ChargeResult:
    success: bool
    payment_intent_id: Optional[str] = None
    amount: Optional[Decimal] = None
    error: Optional[str] = None


def _parse_amount(value) -> Optional[Decimal]:
    if value is None:
        return None
    try:
        return Decimal(str(value))
    except InvalidOperation:
        return None


class PaymentGateway:
    """Charges the saved card of an individual trip."""

    def __init__(
        self,
        base_url: str = None,
        timeout: float = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        circuit_breaker: Optional[CircuitBreaker] = None,
    ):
        self.base_url = (base_url or settings.payment_api_url).rstrip("/")
        self.timeout = timeout if timeout is not None else settings.payment_timeout_seconds
        self.transport = transport
        self.circuit_breaker = circuit_breaker or payment_circuit_breaker

    async def charge_trip(self, trip_id: str) -> ChargeResult:
        """
        Ask the collaborator to charge the card attached to ``trip_id``.

        Raises:
            UpstreamError: timeout, network failure, 5xx, unreadable reply or open circuit.
        """
        try:
            return await self.circuit_breaker.call(self._post_charge, trip_id)
        except CircuitOpenError as e:
            raise UpstreamError("Payment service", str(e), details={"trip_id": trip_id})

    async def _post_charge(self, trip_id: str) -> ChargeResult:
        url = f"{self.base_url}{CHARGE_PATH}"
        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self.transport) as client:
                response = await client.post(url, json={"tripId": trip_id})
        except httpx.TimeoutException:
            raise UpstreamError("Payment service", f"timed out after {self.timeout}s", details={"trip_id": trip_id})
        except httpx.HTTPError as e:
            raise UpstreamError("Payment service", f"unreachable ({type(e).__name__})", details={"trip_id": trip_id})

        if response.status_code >= 500:
            raise UpstreamError(
                "Payment service",
                f"HTTP {response.status_code}",
                details={"trip_id": trip_id, "body": response.text[:400]}
            )

        try:
            data = response.json()
        except ValueError:
            raise self._unreadable(trip_id, response.status_code, response.text[:200])

        if not isinstance(data, dict):
            raise self._unreadable(trip_id, response.status_code, data)

        if response.status_code < 400 and data.get("success"):
            intent = data.get("paymentIntent") or {}
            trip = data.get("trip") or {}
            if not isinstance(intent, dict) or not isinstance(trip, dict):
                raise self._unreadable(trip_id, response.status_code, data)
            logger.info("Charged trip %s (intent %s)", trip_id, intent.get("id"))
            return ChargeResult(
                success=True,
                payment_intent_id=intent.get("id"),
                amount=_parse_amount(trip.get("amount")),
            )

        error = data.get("error") or data.get("details") or "Payment charge failed"
        logger.warning("Charge declined for trip %s: %s", trip_id, error)
        return ChargeResult(success=False, error=str(error))

    @staticmethod
    def _unreadable(trip_id: str, status_code: int, data) -> UpstreamError:
        logger.warning("Malformed charge reply for trip %s: %r", trip_id, data)
        return UpstreamError(
            "Payment service",
            f"unreadable reply (HTTP {status_code})",
            details={"trip_id": trip_id}
        )


def get_payment_gateway() -> PaymentGateway:
    """FastAPI dependency; tests override it with a gateway on ``httpx.MockTransport``."""
    return PaymentGateway()
