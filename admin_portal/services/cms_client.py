"""Client for the Strapi content API that stores users, cases and content.

Returns decoded JSON; turning it into view models is the normalizer's job.
Every call accepts an optional ``CancellationToken`` so a request torn down
by the dashboard abandons its upstream calls.
"""

import logging
from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any

import httpx

from admin_portal.config import CMS_API_URL, CMS_TIMEOUT
from admin_portal.errors import CmsError, MalformedResponseError
from admin_portal.services.cancellation import CancellationToken, guarded
from admin_portal.services.normalizer import as_text, parse_json

logger = logging.getLogger(__name__)

POPULATE_ALL = {"populate": "*"}


@dataclass
class Upload:
    """A file received from the dashboard, forwarded as multipart."""

    filename: str
    content: bytes
    content_type: str = "application/octet-stream"

    def as_file(self) -> tuple[str, bytes, str]:
        return (self.filename, self.content, self.content_type)


def _error_message(body: Any, default: str) -> str:
    """Pull a readable message out of a Strapi or proxy error body."""
    if isinstance(body, Mapping):
        if body.get("message"):
            return str(body["message"])
        error = body.get("error")
        if isinstance(error, Mapping) and error.get("message"):
            return str(error["message"])
        if isinstance(error, str) and error:
            return error
    return default


def _role_params(role_id: int | None) -> dict[str, Any]:
    params = dict(POPULATE_ALL)
    if role_id is not None:
        params["filters[role][id]"] = role_id
    return params


class CmsClient:
    """Thin async wrapper over the content API REST endpoints."""

    def __init__(
        self,
        base_url: str = CMS_API_URL,
        timeout: float = CMS_TIMEOUT,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.base_url = base_url
        self._client = httpx.AsyncClient(base_url=base_url, timeout=timeout, transport=transport)

    async def aclose(self) -> None:
        await self._client.aclose()

    async def _request(
        self,
        method: str,
        path: str,
        token: CancellationToken | None = None,
        **kwargs: Any,
    ) -> Any:
        try:
            resp = await guarded(self._client.request(method, path, **kwargs), token)
        except httpx.TimeoutException as e:
            logger.warning("Content API %s %s timed out", method, path)
            raise CmsError(f"Content API timed out on {method} {path}", status_code=504) from e
        except httpx.TransportError as e:
            logger.warning("Content API %s %s unreachable: %s", method, path, e)
            raise CmsError(f"Content API unreachable: {e}", status_code=502) from e

        if resp.is_error:
            try:
                body = parse_json(resp.text)
            except MalformedResponseError:
                body = None
            message = _error_message(body, f"Content API returned HTTP {resp.status_code}")
            logger.warning(
                "Content API %s %s failed (HTTP %s): %s",
                method, path, resp.status_code, message,
            )
            raise CmsError(message, status_code=resp.status_code, retryable=resp.status_code >= 500)

        if not resp.content:
            return None
        return parse_json(resp.text)

    # --- Users ---

    async def list_users(self, role_id: int | None = None, token: CancellationToken | None = None) -> Any:
        return await self._request("GET", "/api/users", token, params=_role_params(role_id))

    async def get_user(
        self, user_id: int | str, role_id: int | None = None, token: CancellationToken | None = None
    ) -> Any:
        return await self._request("GET", f"/api/users/{user_id}", token, params=_role_params(role_id))

    async def update_user(
        self, user_id: int | str, payload: dict, token: CancellationToken | None = None
    ) -> Any:
        return await self._request("PUT", f"/api/users/{user_id}", token, json=payload)

    async def delete_user(self, user_id: int | str, token: CancellationToken | None = None) -> Any:
        return await self._request("DELETE", f"/api/users/{user_id}", token)

    async def save_recipient_code(
        self, person_id: int | str, recipient_code: str, token: CancellationToken | None = None
    ) -> None:
        await self.update_user(person_id, {"recipient_code": recipient_code}, token=token)
        logger.info("Stored recipient code for person %s", person_id)

    # --- Auth ---

    async def register_user(self, payload: dict, token: CancellationToken | None = None) -> Any:
        return await self._request("POST", "/api/auth/register", token, json=payload)

    async def login(
        self, identifier: str, password: str, role_id: int, token: CancellationToken | None = None
    ) -> Any:
        return await self._request(
            "POST",
            "/api/auth/local",
            token,
            params=POPULATE_ALL,
            json={"identifier": identifier, "password": password, "role": role_id},
        )

    # --- Cases ---

    async def list_cases(self, token: CancellationToken | None = None) -> Any:
        return await self._request("GET", "/api/cases", token, params=POPULATE_ALL)

    async def get_case(self, case_id: int | str, token: CancellationToken | None = None) -> Any:
        return await self._request("GET", f"/api/cases/{case_id}", token, params=POPULATE_ALL)

    async def create_case(self, payload: dict, token: CancellationToken | None = None) -> Any:
        return await self._request("POST", "/api/cases", token, json=payload)

    async def update_case(
        self, case_id: int | str, payload: dict, token: CancellationToken | None = None
    ) -> Any:
        return await self._request("PUT", f"/api/cases/{case_id}", token, params=POPULATE_ALL, json=payload)

    async def delete_case(self, case_id: int | str, token: CancellationToken | None = None) -> Any:
        return await self._request("DELETE", f"/api/cases/{case_id}", token)

    # --- Health tips and adverts ---

    async def list_articles(self, token: CancellationToken | None = None) -> Any:
        return await self._request("GET", "/api/health-tips", token, params=POPULATE_ALL)

    async def create_article(
        self, fields: dict[str, str], image: Upload | None = None, token: CancellationToken | None = None
    ) -> Any:
        files = {"feauture_image": image.as_file()} if image else None
        return await self._request("POST", "/api/health-tips", token, data=fields, files=files)

    async def update_article(
        self,
        article_id: int | str,
        fields: dict[str, str],
        image: Upload | None = None,
        token: CancellationToken | None = None,
    ) -> Any:
        files = {"feauture_image": image.as_file()} if image else None
        return await self._request("PUT", f"/api/health-tips/{article_id}", token, data=fields, files=files)

    async def delete_article(self, article_id: int | str, token: CancellationToken | None = None) -> Any:
        return await self._request("DELETE", f"/api/health-tips/{article_id}", token)

    async def list_adverts(self, token: CancellationToken | None = None) -> Any:
        return await self._request("GET", "/api/adverts", token, params=POPULATE_ALL)

    async def create_advert(
        self, fields: dict[str, str], image: Upload | None = None, token: CancellationToken | None = None
    ) -> Any:
        files = {"feature_image": image.as_file()} if image else None
        return await self._request("POST", "/api/adverts", token, data=fields, files=files)

    async def update_advert(
        self,
        advert_id: int | str,
        fields: dict[str, str],
        image: Upload | None = None,
        token: CancellationToken | None = None,
    ) -> Any:
        files = {"feature_image": image.as_file()} if image else None
        return await self._request("PUT", f"/api/adverts/{advert_id}", token, data=fields, files=files)

    async def delete_advert(self, advert_id: int | str, token: CancellationToken | None = None) -> Any:
        return await self._request("DELETE", f"/api/adverts/{advert_id}", token)

    # --- Files and qualifications ---

    async def forward_file(
        self, upload: Upload, image: bool = False, token: CancellationToken | None = None
    ) -> str:
        """Upload a document (or image) and return its public URL."""
        path = "/api/file-forward/image" if image else "/api/file-forward"
        body = await self._request("POST", path, token, files={"file": upload.as_file()})
        url = as_text(body.get("fileUrl")) if isinstance(body, Mapping) else ""
        if not url:
            raise MalformedResponseError("File upload response has no fileUrl")
        return url

    async def create_qualification(
        self, name: str, file_url: str, user_id: int | str, token: CancellationToken | None = None
    ) -> Any:
        return await self._request(
            "POST",
            "/api/qualifications",
            token,
            json={"data": {"name": name, "file_url": file_url, "user": user_id}},
        )
