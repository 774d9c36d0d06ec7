"""Push notifications to app users through OneSignal.

Segment broadcasts go upstream; individual notifications are validated,
logged and acknowledged locally (there is no per-user delivery channel yet).
"""

import logging
import re
from collections.abc import Mapping
from datetime import UTC, datetime
from typing import Any

import httpx

from admin_portal.config import (
    ONESIGNAL_APP_ID,
    ONESIGNAL_REST_API_KEY,
    ONESIGNAL_TIMEOUT,
    ONESIGNAL_URL,
)
from admin_portal.errors import GatewayError, LocalValidationError, MalformedResponseError
from admin_portal.services.cancellation import CancellationToken, guarded
from admin_portal.services.normalizer import parse_json

logger = logging.getLogger(__name__)

SEGMENTS = {
    "chew": "Subscribed CHEWs",
    "doctor": "Subscribed Doctors",
    "patient": "Subscribed Patients",
}

EMAIL_RE = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")


def segment_name(segment: str) -> str:
    name = SEGMENTS.get(segment.strip().lower())
    if not name:
        raise LocalValidationError("Invalid user segment")
    return name


def _first_error(body: Any) -> str | None:
    if isinstance(body, Mapping):
        errors = body.get("errors")
        if isinstance(errors, list) and errors:
            return str(errors[0])
        if isinstance(errors, Mapping) and errors:
            return str(next(iter(errors.values())))
    return None


class NotificationClient:
    def __init__(
        self,
        app_id: str = ONESIGNAL_APP_ID,
        api_key: str = ONESIGNAL_REST_API_KEY,
        url: str = ONESIGNAL_URL,
        timeout: float = ONESIGNAL_TIMEOUT,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.app_id = app_id
        self.api_key = api_key
        self.url = url
        self._client = httpx.AsyncClient(timeout=timeout, transport=transport)

    async def aclose(self) -> None:
        await self._client.aclose()

    async def send_segment_notification(
        self,
        segment: str,
        title: str,
        message: str,
        token: CancellationToken | None = None,
    ) -> dict[str, Any]:
        """Broadcast to every subscriber of a role segment."""
        included = segment_name(segment)
        if not title.strip() or not message.strip():
            raise LocalValidationError("Title and message are required")

        payload = {
            "app_id": self.app_id,
            "included_segments": [included],
            "contents": {"en": message},
            "headings": {"en": title},
        }
        try:
            resp = await guarded(
                self._client.post(
                    self.url,
                    headers={
                        "Authorization": f"Basic {self.api_key}",
                        "Content-Type": "application/json",
                    },
                    json=payload,
                ),
                token,
            )
        except httpx.TimeoutException as e:
            logger.warning("OneSignal timed out for segment %s", included)
            raise GatewayError("Notification service timed out", status_code=504) from e
        except httpx.TransportError as e:
            logger.warning("OneSignal unreachable: %s", e)
            raise GatewayError(f"Notification service unreachable: {e}", status_code=502) from e

        try:
            body = parse_json(resp.text)
        except MalformedResponseError:
            body = None

        if resp.is_error:
            message_text = _first_error(body) or "Failed to send notification"
            logger.error("OneSignal failed (HTTP %s): %s", resp.status_code, message_text)
            raise GatewayError(
                message_text, status_code=resp.status_code, retryable=resp.status_code >= 500
            )

        logger.info("Notification '%s' sent to %s", title, included)
        return dict(body) if isinstance(body, Mapping) else {}


def send_individual_notification(email: str, title: str, message: str) -> dict[str, Any]:
    """Validate and acknowledge a notification addressed to one user."""
    if not email or not title or not message:
        raise LocalValidationError("Email, title and message are required")
    if not EMAIL_RE.match(email):
        raise LocalValidationError("Invalid email format")

    logger.info("Sending individual notification to %s: %s", email, title)
    return {
        "email": email,
        "title": title,
        "message": message,
        "timestamp": datetime.now(UTC).isoformat(),
    }
