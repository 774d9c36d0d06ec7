import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from admin_portal.config import LOG_LEVEL
from admin_portal.database import close_db, init_db
from admin_portal.errors import (
    LocalValidationError,
    MalformedResponseError,
    RequestCancelledError,
    UpstreamError,
)
from admin_portal.routers import auth, cases, content, dashboard, notifications, payments, people
from admin_portal.services.cms_client import CmsClient
from admin_portal.services.notifications import NotificationClient
from admin_portal.services.payout import PayoutOrchestrator
from admin_portal.services.paystack import PaystackClient
from admin_portal.services.sessions import SessionStore

logging.basicConfig(
    level=getattr(logging, LOG_LEVEL.upper(), logging.INFO),
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info("Starting Market Doctors admin API...")
    await init_db()
    logger.info("Database initialized")

    app.state.cms = CmsClient()
    app.state.paystack = PaystackClient()
    app.state.notifier = NotificationClient()
    app.state.sessions = SessionStore()
    app.state.orchestrator = PayoutOrchestrator(app.state.paystack, app.state.cms)
    yield
    await app.state.cms.aclose()
    await app.state.paystack.aclose()
    await app.state.notifier.aclose()
    await close_db()
    logger.info("Market Doctors admin API shut down")


app = FastAPI(
    title="Market Doctors Admin",
    description="Admin backend for doctors, CHEWs, patients, cases, content and payouts",
    version="0.1.0",
    lifespan=lifespan,
)


@app.exception_handler(MalformedResponseError)
async def malformed_response_handler(request: Request, exc: MalformedResponseError):
    logger.error("Malformed upstream response on %s: %s", request.url.path, exc)
    return JSONResponse(status_code=502, content={"detail": str(exc)})


@app.exception_handler(UpstreamError)
async def upstream_error_handler(request: Request, exc: UpstreamError):
    status = exc.status_code if exc.status_code and exc.status_code >= 400 else 502
    return JSONResponse(status_code=status, content={"detail": exc.message})


@app.exception_handler(LocalValidationError)
async def validation_error_handler(request: Request, exc: LocalValidationError):
    return JSONResponse(status_code=400, content={"detail": str(exc)})


@app.exception_handler(RequestCancelledError)
async def cancelled_handler(request: Request, exc: RequestCancelledError):
    logger.info("Request %s cancelled: %s", request.url.path, exc)
    return JSONResponse(status_code=503, content={"detail": "Request cancelled"})


app.include_router(auth.router)
app.include_router(cases.router)
app.include_router(content.router)
app.include_router(payments.router)
app.include_router(notifications.router)
app.include_router(dashboard.router)
# /api/{collection} routes; must come after the fixed prefixes above
app.include_router(people.router)


@app.get("/health")
async def health():
    return {"status": "ok"}
