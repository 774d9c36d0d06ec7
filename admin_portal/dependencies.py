"""FastAPI dependencies shared by the routers.

Upstream clients live on ``app.state`` (created in the lifespan); tests swap
them through ``app.dependency_overrides``.
"""

import asyncio
import logging
from collections.abc import AsyncIterator

from fastapi import Depends, HTTPException, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from admin_portal.config import DISCONNECT_POLL_SECONDS
from admin_portal.models.session import AdminSession
from admin_portal.services.cancellation import CancellationToken
from admin_portal.services.cms_client import CmsClient
from admin_portal.services.notifications import NotificationClient
from admin_portal.services.payout import PayoutOrchestrator
from admin_portal.services.paystack import PaystackClient
from admin_portal.services.sessions import SessionStore

logger = logging.getLogger(__name__)

bearer = HTTPBearer(auto_error=False)


def get_cms(request: Request) -> CmsClient:
    return request.app.state.cms


def get_paystack(request: Request) -> PaystackClient:
    return request.app.state.paystack


def get_notifier(request: Request) -> NotificationClient:
    return request.app.state.notifier


def get_orchestrator(request: Request) -> PayoutOrchestrator:
    return request.app.state.orchestrator


def get_sessions(request: Request) -> SessionStore:
    return request.app.state.sessions


async def _watch_disconnect(request: Request, token: CancellationToken) -> None:
    while not token.cancelled:
        if await request.is_disconnected():
            logger.info("Client disconnected from %s %s", request.method, request.url.path)
            token.cancel("client disconnected")
            return
        await asyncio.sleep(DISCONNECT_POLL_SECONDS)


async def cancellation_token(request: Request) -> AsyncIterator[CancellationToken]:
    """One token per request.

    Fires as soon as the client disconnects, abandoning any upstream call
    still in flight, and in any case when the request is torn down.
    """
    token = CancellationToken()
    watcher = asyncio.create_task(_watch_disconnect(request, token))
    try:
        yield token
    finally:
        watcher.cancel()
        try:
            await watcher
        except asyncio.CancelledError:
            pass
        token.cancel("request finished")


def require_session(
    credentials: HTTPAuthorizationCredentials | None = Depends(bearer),
    sessions: SessionStore = Depends(get_sessions),
) -> AdminSession:
    if credentials is None:
        raise HTTPException(status_code=401, detail="Not signed in")
    session = sessions.get(credentials.credentials)
    if session is None:
        logger.info("Rejected request with unknown or expired session")
        raise HTTPException(status_code=401, detail="Session expired, please sign in again")
    return session
