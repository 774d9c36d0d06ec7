import logging
from collections.abc import Mapping

from fastapi import APIRouter, Depends, HTTPException

from admin_portal.config import ADMIN_ROLE_ID
from admin_portal.dependencies import cancellation_token, get_cms, get_sessions, require_session
from admin_portal.errors import CmsError, MalformedResponseError
from admin_portal.models.session import AdminSession, LoginRequest, LoginResponse
from admin_portal.services.cancellation import CancellationToken
from admin_portal.services.cms_client import CmsClient
from admin_portal.services.normalizer import role_name
from admin_portal.services.sessions import SessionStore

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/auth", tags=["auth"])


@router.post("/login", response_model=LoginResponse)
async def login(
    body: LoginRequest,
    cms: CmsClient = Depends(get_cms),
    sessions: SessionStore = Depends(get_sessions),
    token: CancellationToken = Depends(cancellation_token),
):
    """Check admin credentials against the content API and open a session."""
    try:
        data = await cms.login(body.identifier, body.password, ADMIN_ROLE_ID, token=token)
    except CmsError as e:
        if e.status_code is not None and e.status_code < 500:
            logger.info("Admin login rejected for %s: %s", body.identifier, e.message)
            raise HTTPException(status_code=401, detail=e.message or "Login failed. Please try again.")
        raise

    user = data.get("user") if isinstance(data, Mapping) else None
    if not isinstance(user, Mapping) or user.get("id") is None:
        raise MalformedResponseError("Login response has no user")

    role = role_name(user)
    if role is not None and role != "admin":
        logger.warning("User %s signed in without the admin role (%s)", user["id"], role)
        raise HTTPException(status_code=403, detail="Admin access required")

    session = sessions.create(user["id"])
    return LoginResponse(
        token=session.token,
        user_id=session.user_id,
        expires_at=session.expires_at.isoformat(),
    )


@router.post("/logout")
async def logout(
    session: AdminSession = Depends(require_session),
    sessions: SessionStore = Depends(get_sessions),
):
    sessions.revoke(session.token)
    return {"status": "ok"}


@router.get("/session")
async def current_session(session: AdminSession = Depends(require_session)):
    return session.as_dict()
