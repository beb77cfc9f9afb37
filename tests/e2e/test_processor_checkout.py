"""
E2E checkout tests against the mock payment processor.

These tests require the mock processor to be running:
    uvicorn mock.processor_server.main:app --port 8001

The mock accepts the test credentials rzp_test_mock / mock_secret and
rejects orders above 10,000,000 minor units.
"""

from decimal import Decimal

import pytest

from rental_gateway.domain.exceptions import InvalidSignatureError, PaymentProcessorError
from rental_gateway.domain.signatures import sign_payment
from rental_gateway.infrastructure.clients.processor import ProcessorClient
from rental_gateway.services.gateway import PaymentGateway

PROCESSOR_URL = "http://localhost:8001"
KEY_ID = "rzp_test_mock"
KEY_SECRET = "mock_secret"


@pytest.fixture
def live_gateway() -> PaymentGateway:
    client = ProcessorClient(base_url=PROCESSOR_URL, key_id=KEY_ID, key_secret=KEY_SECRET)
    return PaymentGateway(
        client=client,
        key_id=KEY_ID,
        key_secret=KEY_SECRET,
        currency="INR",
        transaction_ceiling=Decimal("500000.00"),
    )


@pytest.mark.integration
async def test_order_created_at_processor(live_gateway: PaymentGateway):
    order = await live_gateway.create_order(Decimal("1200.00"), "rent_e2e_order")

    assert order.order_id.startswith("order_")
    assert order.amount_minor == 120000
    assert order.currency == "INR"
    assert order.receipt == "rent_e2e_order"
    assert order.key_id == KEY_ID


@pytest.mark.integration
async def test_processor_rejects_amount_over_its_limit(live_gateway: PaymentGateway):
    """The local ceiling is above the processor's, so the processor itself refuses"""
    with pytest.raises(PaymentProcessorError) as exc_info:
        await live_gateway.create_order(Decimal("100000.01"), "rent_e2e_limit")

    assert exc_info.value.context == {"status_code": 400}


@pytest.mark.integration
async def test_wrong_credentials_rejected():
    client = ProcessorClient(base_url=PROCESSOR_URL, key_id=KEY_ID, key_secret="not-the-secret")

    with pytest.raises(PaymentProcessorError) as exc_info:
        await client.create_order(1000, "INR", "rent_e2e_auth")

    assert exc_info.value.context == {"status_code": 401}


@pytest.mark.integration
async def test_checkout_signature_round_trip(live_gateway: PaymentGateway):
    order = await live_gateway.create_order(Decimal("250.00"), "rent_e2e_signature")
    signature = sign_payment(order.order_id, "pay_e2e", KEY_SECRET)

    assert live_gateway.verify_signature(order.order_id, "pay_e2e", signature) is True
    with pytest.raises(InvalidSignatureError):
        live_gateway.verify_signature(order.order_id, "pay_other", signature)
