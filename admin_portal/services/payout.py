"""Payout orchestrator: reuse or create a Paystack recipient, then transfer.

Flow:
1. Validate the payee (CHEW or doctor) and the amount (major units, at
   most two decimal places)
2. Check the person's stored recipient code
3. Create a gateway recipient when none is stored (bank or mobile money)
4. Write the new recipient code back to the person record (non-fatal)
5. Initiate the transfer, converting to minor units at this step only

Steps run strictly in order. Failures come back as a ``PayoutResult`` in the
``Failed`` state, tagged validation / recipient_creation / transfer.
"""

import asyncio
import json
import logging
import warnings
from collections import Counter
from datetime import UTC, datetime
from decimal import Decimal, InvalidOperation
from typing import Any, Protocol

from admin_portal.config import PAYOUT_CURRENCY
from admin_portal.database import get_db
from admin_portal.errors import (
    GatewayError,
    IncompleteBankDetailsError,
    LocalValidationError,
    PersistenceWarning,
    RequestCancelledError,
)
from admin_portal.models.payout import (
    FailureKind,
    PaymentRecipient,
    PayoutFailure,
    PayoutMode,
    PayoutResult,
    PayoutState,
)
from admin_portal.services.cancellation import CancellationToken
from admin_portal.services.paystack import bank_recipient_payload, mobile_recipient_payload

logger = logging.getLogger(__name__)

MINOR_UNITS_PER_MAJOR = Decimal(100)
TWO_PLACES = Decimal("0.01")
PAYABLE_ROLES = ("chew", "doctor")


class PaymentGateway(Protocol):
    async def create_recipient(self, payload: dict, token: CancellationToken | None = None) -> str:
        ...

    async def initiate_transfer(
        self,
        recipient_code: str,
        amount_minor: int,
        reason: str,
        token: CancellationToken | None = None,
    ) -> dict[str, Any]:
        ...


class RecipientStore(Protocol):
    async def save_recipient_code(
        self, person_id: int | str, recipient_code: str, token: CancellationToken | None = None
    ) -> None:
        ...


def parse_amount(amount: Decimal | float | int | str) -> Decimal:
    """Amount in major units as a Decimal; rejects non-numbers and > 2 decimals."""
    try:
        value = amount if isinstance(amount, Decimal) else Decimal(str(amount).strip())
        if not value.is_finite():
            raise LocalValidationError(f"Amount is not a number: {amount}")
        if value != value.quantize(TWO_PLACES):
            raise LocalValidationError("Amount can have at most two decimal places")
    except InvalidOperation as e:
        raise LocalValidationError(f"Amount is not a number: {amount}") from e
    if value < 0:
        raise LocalValidationError("Amount cannot be negative")
    return value


def positive_amount(amount: Decimal | float | int | str) -> Decimal:
    value = parse_amount(amount)
    if value == 0:
        raise LocalValidationError("Amount must be greater than zero")
    return value


def to_minor_units(amount: Decimal | float | int | str) -> int:
    """Convert major units (naira) to minor units (kobo): 250.50 -> 25050."""
    return int(positive_amount(amount) * MINOR_UNITS_PER_MAJOR)


def resolve_recipient_details(
    recipient: PaymentRecipient, currency: str = PAYOUT_CURRENCY
) -> tuple[PayoutMode, dict]:
    """Pick bank or mobile-money mode and build the recipient payload.

    Complete bank details win; a phone is only used when no bank field was
    given at all, so half-entered bank details are reported, not bypassed.
    """
    bank_code = (recipient.bank_code or "").strip()
    account_number = (recipient.account_number or "").strip()
    phone = (recipient.phone or "").strip()

    if bank_code and account_number:
        return PayoutMode.BANK, bank_recipient_payload(
            recipient.name, account_number, bank_code, currency
        )
    if phone and not bank_code and not account_number:
        return PayoutMode.MOBILE_MONEY, mobile_recipient_payload(recipient.name, phone, currency)

    missing = []
    if not bank_code:
        missing.append("bank code")
    if not account_number:
        missing.append("account number")
    raise IncompleteBankDetailsError(
        f"Bank details are not complete (missing {' and '.join(missing)})"
    )


class PayoutOrchestrator:
    """Pays CHEWs and doctors through a payment gateway.

    Holds one lock per person so two payouts for the same person in this
    process run one after the other, and remembers recipient codes it
    created so a failed write-back does not lead to a second recipient.
    A person's lock and saved code are dropped once their last payout in
    flight finishes; codes that were never saved are kept.
    """

    def __init__(
        self,
        gateway: PaymentGateway,
        store: RecipientStore,
        currency: str = PAYOUT_CURRENCY,
    ) -> None:
        self.gateway = gateway
        self.store = store
        self.currency = currency
        self._locks: dict[str, asyncio.Lock] = {}
        self._in_flight: Counter[str] = Counter()
        self._created_codes: dict[str, str] = {}
        self._saved: set[str] = set()

    async def pay(
        self,
        recipient: PaymentRecipient,
        amount: Decimal | float | int | str,
        reason: str | None = None,
        token: CancellationToken | None = None,
    ) -> PayoutResult:
        key = str(recipient.person_id)
        lock = self._locks.setdefault(key, asyncio.Lock())
        self._in_flight[key] += 1
        try:
            async with lock:
                return await self._run(recipient, amount, reason, token)
        finally:
            self._release(key)

    def _release(self, key: str) -> None:
        self._in_flight[key] -= 1
        if self._in_flight[key] > 0:
            return
        del self._in_flight[key]
        self._locks.pop(key, None)
        if key in self._saved:
            self._saved.discard(key)
            self._created_codes.pop(key, None)

    async def _run(
        self,
        recipient: PaymentRecipient,
        amount: Decimal | float | int | str,
        reason: str | None,
        token: CancellationToken | None,
    ) -> PayoutResult:
        result = PayoutResult(
            person_id=recipient.person_id,
            state=PayoutState.IDLE,
            history=[PayoutState.IDLE],
        )

        # 1. Validate payee and amount
        try:
            if recipient.role not in PAYABLE_ROLES:
                raise LocalValidationError(
                    f"Only CHEWs and doctors can be paid; person {recipient.person_id} "
                    f"is {recipient.role or 'without a role'}"
                )
            result.amount = positive_amount(amount)
        except LocalValidationError as e:
            return self._fail(result, FailureKind.VALIDATION, e, retryable=False)

        # 2. Check for a stored recipient
        self._transition(result, PayoutState.CHECKING_RECIPIENT)
        key = str(recipient.person_id)
        code = (recipient.recipient_code or "").strip() or self._created_codes.get(key)

        if not code:
            # 3. Create recipient
            self._transition(result, PayoutState.CREATING_RECIPIENT)
            try:
                mode, payload = resolve_recipient_details(recipient, self.currency)
            except IncompleteBankDetailsError as e:
                return self._fail(result, FailureKind.VALIDATION, e, retryable=False)

            try:
                code = await self.gateway.create_recipient(payload, token=token)
            except GatewayError as e:
                return self._fail(result, FailureKind.RECIPIENT_CREATION, e, retryable=e.retryable)

            logger.info("Created %s recipient %s for person %s", mode.value, code, key)
            result.recipient_created = True
            self._created_codes[key] = code

            # 4. Persist recipient code
            self._transition(result, PayoutState.PERSISTING_RECIPIENT_CODE)
            if await self._persist_code(result, code, token):
                self._saved.add(key)

        result.recipient_code = code

        # 5. Transfer
        self._transition(result, PayoutState.INITIATING_TRANSFER)
        result.amount_minor = to_minor_units(result.amount)
        try:
            result.transfer = await self.gateway.initiate_transfer(
                code,
                result.amount_minor,
                reason or f"Payment to {recipient.name}",
                token=token,
            )
        except GatewayError as e:
            return self._fail(result, FailureKind.TRANSFER, e, retryable=e.retryable)

        self._transition(result, PayoutState.SUCCEEDED)
        logger.info(
            "Payout of %s %s to person %s succeeded (recipient %s)",
            result.amount, self.currency, key, code,
        )
        return result

    async def _persist_code(
        self, result: PayoutResult, code: str, token: CancellationToken | None
    ) -> bool:
        try:
            await self.store.save_recipient_code(result.person_id, code, token=token)
            return True
        except RequestCancelledError:
            raise
        except Exception as e:
            message = (
                f"Recipient code {code} was not saved for person {result.person_id}; "
                f"the next payout will create a new recipient: {e}"
            )
            logger.warning(
                "Recipient code %s not persisted for person %s: %s", code, result.person_id, e
            )
            warnings.warn(PersistenceWarning(message), stacklevel=3)
            result.warnings.append(message)
            return False

    @staticmethod
    def _transition(result: PayoutResult, state: PayoutState) -> None:
        result.state = state
        result.history.append(state)

    def _fail(
        self,
        result: PayoutResult,
        kind: FailureKind,
        error: Exception,
        retryable: bool,
    ) -> PayoutResult:
        result.failure = PayoutFailure(
            kind=kind,
            reason=str(error),
            error=type(error).__name__,
            retryable=retryable,
        )
        failed_at = result.state
        self._transition(result, PayoutState.FAILED)
        logger.warning(
            "Payout to person %s failed at %s (%s): %s",
            result.person_id, failed_at.value, kind.value, error,
        )
        return result


async def log_payout_audit(result: PayoutResult, initiated_by: int | str | None = None) -> None:
    """Insert a record into the payout_audit table."""
    try:
        db = await get_db()
        await db.execute(
            "INSERT INTO payout_audit "
            "(person_id, attempted_at, amount, recipient_code, outcome, "
            "failure_kind, reason, warnings, initiated_by) "
            "VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)",
            (
                str(result.person_id),
                datetime.now(UTC).isoformat(),
                str(result.amount) if result.amount is not None else "",
                result.recipient_code,
                result.state.value,
                result.failure.kind.value if result.failure else None,
                result.failure.reason if result.failure else None,
                json.dumps(result.warnings),
                str(initiated_by) if initiated_by is not None else None,
            ),
        )
        await db.commit()
        logger.info(
            "Payout audit logged: person=%s, outcome=%s",
            result.person_id, result.state.value,
        )
    except Exception as e:
        logger.error("Failed to log payout audit: %s", e)
