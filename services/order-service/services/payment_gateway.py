"""Payment gateway communication layer."""
import httpx
import logging
import time
from datetime import datetime
from typing import Optional
from pydantic import BaseModel, ValidationError

from config import PAYMENT_GATEWAY_URL, PAYMENT_GATEWAY_SECRET_KEY
from exceptions import GatewayUnavailableError, UnreadableReceiptError, UpstreamRejectedError
from monitoring import payment_gateway_duration_histogram

logger = logging.getLogger(__name__)


class PaymentReceipt(BaseModel):
    """What the gateway reports for a settled payment."""
    method: Optional[str] = None
    amount: int
    approved_at: Optional[datetime] = None


class PaymentGatewayClient:
    """Client for the payment provider's confirm API."""

    def __init__(
        self,
        http_client: httpx.AsyncClient,
        base_url: str = PAYMENT_GATEWAY_URL,
        secret_key: str = PAYMENT_GATEWAY_SECRET_KEY
    ):
        """
        Initialize payment gateway client.

        Args:
            http_client: Async HTTP client, carrying the request timeout
            base_url: Gateway base URL
            secret_key: Provider-issued secret key
        """
        self.http_client = http_client
        self.base_url = base_url.rstrip("/")
        self.secret_key = secret_key

    async def confirm(
        self,
        payment_key: str,
        order_no: str,
        amount: int
    ) -> PaymentReceipt:
        """
        Confirm a payment the customer authorized in the payment widget.

        Once this returns, money has moved. It is never retried here.

        Args:
            payment_key: Token issued by the gateway to the client
            order_no: Order number the payment was opened for
            amount: Amount to settle

        Returns:
            Receipt with method, settled amount and approval time

        Raises:
            UpstreamRejectedError: If the gateway declines or errors
            GatewayUnavailableError: If the gateway cannot be reached in time
            UnreadableReceiptError: If the gateway settled but its receipt cannot be parsed
        """
        # HTTPXClientInstrumentor already creates spans for HTTP calls
        start_time = time.time()
        outcome = "success"
        try:
            try:
                response = await self.http_client.post(
                    f"{self.base_url}/v1/payments/confirm",
                    json={
                        "paymentKey": payment_key,
                        "orderId": order_no,
                        "amount": amount
                    },
                    auth=(self.secret_key, "")
                )
            except httpx.TimeoutException as e:
                outcome = "timeout"
                logger.error("Payment gateway timed out", extra={
                    "order_no": order_no,
                    "amount": amount,
                    "error": str(e)
                })
                raise GatewayUnavailableError("Payment gateway timed out, please retry") from e
            except httpx.TransportError as e:
                outcome = "unavailable"
                logger.error("Payment gateway unreachable", extra={
                    "order_no": order_no,
                    "amount": amount,
                    "error": str(e)
                })
                raise GatewayUnavailableError("Payment gateway unavailable, please retry") from e

            if not response.is_success:
                outcome = "rejected"
                try:
                    body = response.json()
                except ValueError:
                    body = {}
                if not isinstance(body, dict):
                    body = {}
                provider_message = body.get("message") or "Unknown error"
                provider_code = body.get("code")
                logger.warning("Payment gateway rejected confirmation", extra={
                    "status_code": response.status_code,
                    "order_no": order_no,
                    "amount": amount,
                    "provider_code": provider_code,
                    "provider_message": provider_message
                })
                raise UpstreamRejectedError(
                    f"Payment confirmation failed: {provider_message}",
                    provider_code=provider_code
                )

            try:
                body = response.json()
                if not isinstance(body, dict):
                    raise ValueError("receipt body is not a JSON object")
                return PaymentReceipt(
                    method=body.get("method"),
                    amount=body.get("totalAmount", amount),
                    approved_at=body.get("approvedAt")
                )
            except (ValueError, ValidationError) as e:
                # Settled on the provider side; only the receipt is unusable
                outcome = "receipt_invalid"
                logger.error("Payment gateway returned an unreadable receipt", extra={
                    "order_no": order_no,
                    "amount": amount,
                    "error": str(e)
                })
                raise UnreadableReceiptError(
                    "Payment gateway returned an unreadable receipt",
                    receipt=PaymentReceipt(amount=amount)
                ) from e
        finally:
            payment_gateway_duration_histogram.record(
                time.time() - start_time,
                {"outcome": outcome}
            )
