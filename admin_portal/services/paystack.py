"""Paystack transfer API client (transfer recipients and transfers).

Amounts passed to this module are already in minor units (kobo).
"""

import logging
from collections.abc import Mapping
from typing import Any

import httpx

from admin_portal.config import (
    MOBILE_MONEY_EMAIL,
    MOBILE_MONEY_PROVIDER,
    PAYOUT_CURRENCY,
    PAYSTACK_BASE_URL,
    PAYSTACK_SECRET_KEY,
    PAYSTACK_TIMEOUT,
)
from admin_portal.errors import GatewayError, MalformedResponseError
from admin_portal.services.cancellation import CancellationToken, guarded
from admin_portal.services.normalizer import as_text, parse_json

logger = logging.getLogger(__name__)


def bank_recipient_payload(
    name: str, account_number: str, bank_code: str, currency: str = PAYOUT_CURRENCY
) -> dict:
    return {
        "type": "nuban",
        "name": name,
        "account_number": account_number,
        "bank_code": bank_code,
        "currency": currency,
    }


def mobile_recipient_payload(
    name: str,
    phone: str,
    currency: str = PAYOUT_CURRENCY,
    provider: str = MOBILE_MONEY_PROVIDER,
    email: str = MOBILE_MONEY_EMAIL,
) -> dict:
    return {
        "type": "mobile_money",
        "name": name,
        "email": email,
        "mobile_number": phone,
        "provider": provider,
        "currency": currency,
    }


class PaystackClient:
    def __init__(
        self,
        secret_key: str = PAYSTACK_SECRET_KEY,
        base_url: str = PAYSTACK_BASE_URL,
        timeout: float = PAYSTACK_TIMEOUT,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.secret_key = secret_key
        self._client = httpx.AsyncClient(base_url=base_url, timeout=timeout, transport=transport)

    async def aclose(self) -> None:
        await self._client.aclose()

    async def _post(self, path: str, payload: dict, token: CancellationToken | None = None) -> dict:
        if not self.secret_key:
            logger.error("PAYSTACK_SECRET_KEY not set, cannot call %s", path)
            raise GatewayError("Payment gateway is not configured", retryable=False)

        try:
            resp = await guarded(
                self._client.post(
                    path,
                    headers={
                        "Authorization": f"Bearer {self.secret_key}",
                        "Content-Type": "application/json",
                    },
                    json=payload,
                ),
                token,
            )
        except httpx.TimeoutException as e:
            logger.warning("Paystack %s timed out", path)
            raise GatewayError("Payment gateway timed out", status_code=504) from e
        except httpx.TransportError as e:
            logger.warning("Paystack %s unreachable: %s", path, e)
            raise GatewayError(f"Payment gateway unreachable: {e}", status_code=502) from e

        try:
            body = parse_json(resp.text)
        except MalformedResponseError:
            body = None

        if resp.is_error or not isinstance(body, Mapping) or body.get("status") is False:
            message = "Payment gateway returned an unreadable response"
            if isinstance(body, Mapping) and body.get("message"):
                message = str(body["message"])
            elif resp.is_error:
                message = f"Payment gateway returned HTTP {resp.status_code}"
            logger.error("Paystack %s failed (HTTP %s): %s", path, resp.status_code, message)
            raise GatewayError(message, status_code=resp.status_code)

        return dict(body)

    async def create_recipient(self, payload: dict, token: CancellationToken | None = None) -> str:
        """Register a transfer recipient and return its ``recipient_code``."""
        body = await self._post("/transferrecipient", payload, token)
        data = body.get("data") if isinstance(body.get("data"), Mapping) else {}
        code = as_text(data.get("recipient_code"))
        if not code:
            raise GatewayError("Payment gateway response has no recipient_code")
        logger.info("Created %s transfer recipient %s", payload.get("type"), code)
        return code

    async def create_mobile_money_recipient(
        self, name: str, phone: str, token: CancellationToken | None = None
    ) -> str:
        return await self.create_recipient(mobile_recipient_payload(name, phone), token)

    async def initiate_transfer(
        self,
        recipient_code: str,
        amount_minor: int,
        reason: str,
        token: CancellationToken | None = None,
    ) -> dict[str, Any]:
        body = await self._post(
            "/transfer",
            {
                "source": "balance",
                "amount": amount_minor,
                "recipient": recipient_code,
                "reason": reason,
            },
            token,
        )
        data = body.get("data")
        logger.info("Transfer to %s accepted (%d minor units)", recipient_code, amount_minor)
        return dict(data) if isinstance(data, Mapping) else {}

    async def mobile_transfer(
        self,
        amount_minor: int,
        name: str,
        phone: str,
        reason: str,
        token: CancellationToken | None = None,
    ) -> dict[str, Any]:
        """Create a mobile-money recipient and pay it in one call."""
        code = await self.create_mobile_money_recipient(name, phone, token)
        return await self.initiate_transfer(code, amount_minor, reason, token)
