"""Cashfree PG istemcisi: sipariş durumu sorgulama (verify-payment yoklaması için)."""
import json
import logging
from typing import Protocol
from urllib.error import HTTPError, URLError
from urllib.parse import quote
from urllib.request import Request, urlopen

from app.core.config import CASHFREE_BASE_URLS, is_gateway_configured, settings
from app.services.errors import GatewayError

log = logging.getLogger("servenow.gateway")

# Cashfree order_status -> (payment_status, order status); None: sipariş durumu değişmez
GATEWAY_STATUS_MAP: dict[str, tuple[str, str | None]] = {
    "PAID": ("completed", "pending"),
    "EXPIRED": ("failed", "cancelled"),
    "CANCELLED": ("failed", "cancelled"),
    "ACTIVE": ("pending", None),
}


class PaymentGateway(Protocol):
    def fetch_order(self, gateway_order_id: str) -> dict: ...


class CashfreeGateway:
    def __init__(
        self,
        client_id: str,
        client_secret: str,
        environment: str = "sandbox",
        api_version: str = "2022-09-01",
        timeout: float = 10.0,
    ):
        self.client_id = client_id.strip()
        self.client_secret = client_secret.strip()
        self.base_url = CASHFREE_BASE_URLS.get(environment, CASHFREE_BASE_URLS["sandbox"])
        self.api_version = api_version
        self.timeout = timeout

    def fetch_order(self, gateway_order_id: str) -> dict:
        url = f"{self.base_url}/pg/orders/{quote(gateway_order_id, safe='')}"
        req = Request(
            url,
            method="GET",
            headers={
                "Accept": "application/json",
                "x-client-id": self.client_id,
                "x-client-secret": self.client_secret,
                "x-api-version": self.api_version,
            },
        )
        try:
            with urlopen(req, timeout=self.timeout) as resp:
                raw = resp.read().decode("utf-8")
        except HTTPError as e:
            body = e.read().decode("utf-8", errors="replace") if e.fp else ""
            log.error("Cashfree API error: status=%s body=%s", e.code, body[:500])
            raise GatewayError(e.code, body) from e
        except (URLError, OSError) as e:
            log.error("Cashfree API connection failed: %s", e)
            raise GatewayError(502, str(e)) from e
        try:
            data = json.loads(raw)
        except ValueError as e:
            raise GatewayError(502, raw[:500]) from e
        if not isinstance(data, dict):
            raise GatewayError(502, raw[:500])
        return data


def get_gateway() -> CashfreeGateway | None:
    """Kimlik bilgileri yoksa None: doğrulama yapılamaz, son bilinen durum döner."""
    if not is_gateway_configured():
        return None
    return CashfreeGateway(
        settings.cashfree_client_id,
        settings.cashfree_client_secret,
        environment=settings.cashfree_environment,
        api_version=settings.cashfree_api_version,
        timeout=settings.gateway_timeout_seconds,
    )
