"""Payouts to CHEWs and doctors, plus direct Paystack proxies.

``POST /api/payouts/{person_id}`` runs the full orchestrated flow and always
answers with a ``PayoutResult``; the HTTP status mirrors its outcome.
The ``/api/paystack/*`` routes are thin passthroughs kept for the dashboard's
manual transfer screens.
"""

import json
import logging

from fastapi import APIRouter, Depends, HTTPException, Query, Response

from admin_portal.database import get_db
from admin_portal.dependencies import (
    cancellation_token,
    get_cms,
    get_orchestrator,
    get_paystack,
    require_session,
)
from admin_portal.models.payout import (
    CreateRecipientRequest,
    FailureKind,
    InitiateTransferRequest,
    MobileTransferRequest,
    PaymentRecipient,
    PayoutAuditEntry,
    PayoutRequest,
    PayoutResult,
)
from admin_portal.models.session import AdminSession
from admin_portal.services.cancellation import CancellationToken
from admin_portal.services.cms_client import CmsClient
from admin_portal.services.normalizer import normalize_person
from admin_portal.services.payout import PayoutOrchestrator, log_payout_audit
from admin_portal.services.paystack import PaystackClient, bank_recipient_payload

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["payments"])


@router.post("/payouts/{person_id}", response_model=PayoutResult)
async def pay_person(
    person_id: str,
    body: PayoutRequest,
    response: Response,
    session: AdminSession = Depends(require_session),
    cms: CmsClient = Depends(get_cms),
    orchestrator: PayoutOrchestrator = Depends(get_orchestrator),
    token: CancellationToken = Depends(cancellation_token),
):
    """Pay a CHEW or doctor, reusing their stored Paystack recipient when present."""
    person = normalize_person(await cms.get_user(person_id, token=token))
    recipient = PaymentRecipient(
        person_id=person.id,
        name=person.full_name,
        role=person.role,
        bank_code=body.bank_code or person.bank_code or None,
        account_number=body.account_number or person.account_number or None,
        phone=body.phone or person.phone or None,
        recipient_code=person.recipient_code,
    )

    result = await orchestrator.pay(recipient, body.amount, body.reason, token=token)
    await log_payout_audit(result, initiated_by=session.user_id)

    if result.failure is not None:
        response.status_code = 400 if result.failure.kind == FailureKind.VALIDATION else 502
    return result


@router.get("/payouts/audit", response_model=list[PayoutAuditEntry])
async def payout_audit(
    person_id: str | None = None,
    limit: int = Query(50, ge=1, le=500),
    session: AdminSession = Depends(require_session),
):
    """Most recent payout attempts, newest first."""
    db = await get_db()
    if person_id:
        rows = await db.fetch_all(
            "SELECT * FROM payout_audit WHERE person_id = ? ORDER BY id DESC LIMIT ?",
            (person_id, limit),
        )
    else:
        rows = await db.fetch_all(
            "SELECT * FROM payout_audit ORDER BY id DESC LIMIT ?", (limit,)
        )
    return [
        PayoutAuditEntry(
            id=row["id"],
            person_id=row["person_id"],
            attempted_at=row["attempted_at"],
            amount=row["amount"],
            recipient_code=row["recipient_code"],
            outcome=row["outcome"],
            failure_kind=row["failure_kind"],
            reason=row["reason"],
            warnings=json.loads(row["warnings"] or "[]"),
            initiated_by=row["initiated_by"],
        )
        for row in rows
    ]


# --- Paystack proxies ---


@router.post("/paystack/create-recipient")
async def create_recipient(
    body: CreateRecipientRequest,
    session: AdminSession = Depends(require_session),
    paystack: PaystackClient = Depends(get_paystack),
    token: CancellationToken = Depends(cancellation_token),
):
    if body.type != "nuban":
        raise HTTPException(status_code=400, detail="Use /api/paystack/mobile-transfer for mobile money")
    payload = bank_recipient_payload(body.name, body.account_number, body.bank_code, body.currency)
    code = await paystack.create_recipient(payload, token=token)
    return {"message": "Recipient created", "data": {"recipient_code": code}}


@router.post("/paystack/initiate-transfer")
async def initiate_transfer(
    body: InitiateTransferRequest,
    session: AdminSession = Depends(require_session),
    paystack: PaystackClient = Depends(get_paystack),
    token: CancellationToken = Depends(cancellation_token),
):
    if body.amount <= 0:
        raise HTTPException(status_code=400, detail="Amount must be greater than zero")
    data = await paystack.initiate_transfer(body.recipient, body.amount, body.reason, token=token)
    return {"message": "Transfer initiated", "data": data}


@router.post("/paystack/mobile-transfer")
async def mobile_transfer(
    body: MobileTransferRequest,
    session: AdminSession = Depends(require_session),
    paystack: PaystackClient = Depends(get_paystack),
    token: CancellationToken = Depends(cancellation_token),
):
    if body.amount <= 0:
        raise HTTPException(status_code=400, detail="Amount must be greater than zero")
    data = await paystack.mobile_transfer(
        body.amount, body.recipient.name, body.recipient.phone, body.reason, token=token
    )
    return {"message": "Mobile money transfer initiated successfully", "data": data}
