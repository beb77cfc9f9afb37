"""Payment processor HTTP client for creating payment orders"""

import httpx
from typing import Any, Dict
from rental_gateway.domain.exceptions import PaymentProcessorError
from rental_gateway.config import settings


class ProcessorClient:
    """Client for the external payment processor's orders API"""

    def __init__(
        self,
        base_url: str | None = None,
        key_id: str | None = None,
        key_secret: str | None = None,
        timeout: float | None = None,
    ):
        self.base_url = base_url or settings.processor_base_url
        self.key_id = settings.processor_key_id if key_id is None else key_id
        self.key_secret = settings.processor_key_secret if key_secret is None else key_secret
        self.timeout = timeout or settings.http_timeout_seconds

    async def create_order(self, amount_minor: int, currency: str, receipt: str) -> Dict[str, Any]:
        """
        Create an auto-captured order for ``amount_minor`` (paise/cents).

        Raises:
            PaymentProcessorError: On timeout, HTTP errors, or invalid response
        """
        async with httpx.AsyncClient(timeout=self.timeout, auth=(self.key_id, self.key_secret)) as client:
            try:
                response = await client.post(
                    f"{self.base_url}/v1/orders",
                    json={
                        "amount": amount_minor,
                        "currency": currency,
                        "receipt": receipt,
                        "payment_capture": 1,
                    },
                )
                response.raise_for_status()
                data = response.json()

                return {
                    "id": str(data["id"]),
                    "amount": int(data["amount"]),
                    "currency": data["currency"],
                    "receipt": data.get("receipt", receipt),
                }

            except httpx.TimeoutException as e:
                raise PaymentProcessorError(f"Payment processor timeout after {self.timeout}s") from e
            except httpx.HTTPStatusError as e:
                raise PaymentProcessorError(
                    f"Payment processor error: {e.response.status_code}",
                    {"status_code": e.response.status_code},
                ) from e
            except httpx.RequestError as e:
                raise PaymentProcessorError(f"Payment processor unreachable: {e}") from e
            except (KeyError, ValueError, TypeError) as e:
                raise PaymentProcessorError(f"Invalid order data from processor: {e}") from e
