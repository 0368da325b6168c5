"""
Payment collaborator client and its circuit breaker.
"""

import pytest
import httpx
from decimal import Decimal

from backend.app.core.exceptions import UpstreamError
from backend.app.core.reliability import CircuitBreaker, CircuitOpenError
from backend.app.services.payment_gateway import PaymentGateway


def gateway(handler, breaker=None):
    return PaymentGateway(
        base_url="https://pay.test/",
        timeout=1.0,
        transport=httpx.MockTransport(handler),
        circuit_breaker=breaker or CircuitBreaker("payment-test", failure_threshold=2, reset_timeout=60),
    )


@pytest.mark.asyncio
async def test_successful_charge():
    def handler(request):
        assert str(request.url) == "https://pay.test/api/stripe/charge-payment"
        return httpx.Response(200, json={"success": True, "paymentIntent": {"id": "pi_9"},
                                         "trip": {"amount": "38.50"}})

    result = await gateway(handler).charge_trip("trip-1")
    assert result.success
    assert result.payment_intent_id == "pi_9"
    assert result.amount == Decimal("38.50")


@pytest.mark.asyncio
async def test_decline_is_a_result_not_an_error():
    def handler(request):
        return httpx.Response(200, json={"success": False, "error": "insufficient_funds"})

    result = await gateway(handler).charge_trip("trip-1")
    assert not result.success
    assert result.error == "insufficient_funds"


@pytest.mark.asyncio
async def test_server_error_and_network_failure_raise_upstream():
    def server_error(request):
        return httpx.Response(500, text="boom")

    def network_down(request):
        raise httpx.ConnectError("connection refused", request=request)

    with pytest.raises(UpstreamError) as exc_info:
        await gateway(server_error).charge_trip("trip-1")
    assert exc_info.value.kind == "upstream"
    assert exc_info.value.message.startswith("Payment service error")

    with pytest.raises(UpstreamError):
        await gateway(network_down).charge_trip("trip-1")


@pytest.mark.asyncio
async def test_unreadable_reply_raises_upstream():
    def handler(request):
        return httpx.Response(200, text="<html>maintenance</html>")

    with pytest.raises(UpstreamError):
        await gateway(handler).charge_trip("trip-1")


@pytest.mark.asyncio
@pytest.mark.parametrize("body", [
    ["ok"],
    "charged",
    42,
    {"success": True, "paymentIntent": "pi_1"},
    {"success": True, "paymentIntent": {"id": "pi_1"}, "trip": [38.5]},
])
async def test_reply_with_unexpected_shape_raises_upstream(body):
    def handler(request):
        return httpx.Response(200, json=body)

    with pytest.raises(UpstreamError) as exc_info:
        await gateway(handler).charge_trip("trip-1")
    assert "unreadable reply" in exc_info.value.message


@pytest.mark.asyncio
async def test_circuit_opens_after_repeated_failures():
    calls = []

    def handler(request):
        calls.append(request)
        return httpx.Response(503)

    breaker = CircuitBreaker("payment-test", failure_threshold=2, reset_timeout=60)
    client = gateway(handler, breaker)

    for _ in range(2):
        with pytest.raises(UpstreamError):
            await client.charge_trip("trip-1")
    assert breaker.state == CircuitBreaker.OPEN

    with pytest.raises(UpstreamError) as exc_info:
        await client.charge_trip("trip-1")
    assert "circuit is open" in exc_info.value.message
    assert len(calls) == 2


@pytest.mark.asyncio
async def test_half_open_trial_closes_circuit_on_success():
    breaker = CircuitBreaker("test", failure_threshold=1, reset_timeout=0)

    async def fail():
        raise RuntimeError("down")

    async def succeed():
        return "ok"

    with pytest.raises(RuntimeError):
        await breaker.call(fail)
    assert breaker.state == CircuitBreaker.OPEN

    assert await breaker.call(succeed) == "ok"
    assert breaker.state == CircuitBreaker.CLOSED
    assert breaker.failures == 0


@pytest.mark.asyncio
async def test_open_circuit_rejects_calls():
    breaker = CircuitBreaker("test", failure_threshold=1, reset_timeout=60)

    async def fail():
        raise RuntimeError("down")

    with pytest.raises(RuntimeError):
        await breaker.call(fail)
    with pytest.raises(CircuitOpenError):
        await breaker.call(fail)
