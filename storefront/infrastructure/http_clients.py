import httpx
import logging
from decimal import Decimal
from typing import List, Optional

from storefront.domain.models import OrderItem
from storefront.domain.exceptions import PaymentInitiationError, PaymentCaptureError
from storefront.application.interfaces import PaymentGateway, PaymentIntent

logger = logging.getLogger(__name__)


class HTTPPaymentGatewayClient(PaymentGateway):
    """Клиент PayPal REST API (v1 payments)"""

    def __init__(
        self,
        base_url: str,
        client_id: str,
        client_secret: str,
        currency: str = "USD",
        timeout: float = 15.0,
        transport: Optional[httpx.AsyncBaseTransport] = None
    ):
        self._base_url = base_url.rstrip("/")
        self._client_id = client_id
        self._client_secret = client_secret
        self._currency = currency
        self._timeout = timeout
        self._transport = transport

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(base_url=self._base_url, timeout=self._timeout, transport=self._transport)

    @staticmethod
    def _json(response: httpx.Response, error_cls) -> dict:
        try:
            data = response.json()
        except ValueError:
            raise error_cls(f"Payment gateway вернул не JSON: {response.status_code}")
        if not isinstance(data, dict):
            raise error_cls(f"Payment gateway вернул неожиданный ответ: {response.status_code}")
        return data

    async def _access_token(self, client: httpx.AsyncClient, error_cls) -> str:
        response = await client.post(
            "/v1/oauth2/token",
            data={"grant_type": "client_credentials"},
            auth=(self._client_id, self._client_secret),
            headers={"Accept": "application/json"}
        )
        if response.status_code != 200:
            raise error_cls(f"Payment gateway авторизация: {response.status_code}")
        token = self._json(response, error_cls).get("access_token")
        if not token:
            raise error_cls("Payment gateway не вернул access_token")
        return token

    async def create_payment_intent(
        self, items: List[OrderItem], total: Decimal, return_url: str, cancel_url: str
    ) -> PaymentIntent:
        payload = {
            "intent": "sale",
            "payer": {"payment_method": "paypal"},
            "redirect_urls": {"return_url": return_url, "cancel_url": cancel_url},
            "transactions": [
                {
                    "item_list": {
                        "items": [
                            {
                                "name": item.title,
                                "sku": item.product_id,
                                "price": f"{item.price:.2f}",
                                "currency": self._currency,
                                "quantity": item.quantity
                            }
                            for item in items
                        ]
                    },
                    "amount": {"currency": self._currency, "total": f"{total:.2f}"},
                    "description": f"Order - {len(items)} items"
                }
            ]
        }
        try:
            async with self._client() as client:
                token = await self._access_token(client, PaymentInitiationError)
                response = await client.post(
                    "/v1/payments/payment",
                    json=payload,
                    headers={"Authorization": f"Bearer {token}"}
                )
        except httpx.RequestError as e:
            logger.error(f"Payment gateway ошибка подключения: {e}")
            raise PaymentInitiationError(f"Payment gateway не доступен: {str(e)}")

        if response.status_code != 201:
            raise PaymentInitiationError(f"Payment gateway ошибка: {response.status_code}")

        data = self._json(response, PaymentInitiationError)
        links = [link for link in data.get("links") or [] if isinstance(link, dict)]
        approval_url = next((link.get("href") for link in links if link.get("rel") == "approval_url"), None)
        if not approval_url or not data.get("id"):
            raise PaymentInitiationError("Payment gateway не вернул id платежа или approval_url")
        return PaymentIntent(payment_id=data["id"], approval_url=approval_url)

    async def confirm_capture(self, payment_id: str, payer_id: str) -> None:
        try:
            async with self._client() as client:
                token = await self._access_token(client, PaymentCaptureError)
                response = await client.post(
                    f"/v1/payments/payment/{payment_id}/execute",
                    json={"payer_id": payer_id},
                    headers={"Authorization": f"Bearer {token}"}
                )
        except httpx.RequestError as e:
            logger.error(f"Payment gateway ошибка подключения: {e}")
            raise PaymentCaptureError(f"Payment gateway не доступен: {str(e)}")

        if response.status_code == 200:
            state = self._json(response, PaymentCaptureError).get("state")
            if state == "failed":
                raise PaymentCaptureError(f"Платеж {payment_id} отклонен")
            return

        # Повтор после потерянного ответа: платеж уже проведен
        if response.status_code == 400 and self._json(response, PaymentCaptureError).get("name") == "PAYMENT_ALREADY_DONE":
            logger.info(f"Платеж {payment_id} уже проведен")
            return

        raise PaymentCaptureError(f"Payment gateway ошибка: {response.status_code}")
