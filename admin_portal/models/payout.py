from decimal import Decimal
from enum import Enum
from typing import Any

from pydantic import BaseModel, Field


class PayoutState(str, Enum):
    IDLE = "Idle"
    CHECKING_RECIPIENT = "CheckingRecipient"
    CREATING_RECIPIENT = "CreatingRecipient"
    PERSISTING_RECIPIENT_CODE = "PersistingRecipientCode"
    INITIATING_TRANSFER = "InitiatingTransfer"
    SUCCEEDED = "Succeeded"
    FAILED = "Failed"


class FailureKind(str, Enum):
    VALIDATION = "validation"
    RECIPIENT_CREATION = "recipient_creation"
    TRANSFER = "transfer"


class PayoutMode(str, Enum):
    BANK = "nuban"
    MOBILE_MONEY = "mobile_money"


class PaymentRecipient(BaseModel):
    """Payout destination for one person, as stored on their user record."""

    person_id: int | str
    name: str = "Unknown"
    role: str | None = None  # only "chew" and "doctor" can be paid
    bank_code: str | None = None
    account_number: str | None = None
    phone: str | None = None
    recipient_code: str | None = None


class PayoutFailure(BaseModel):
    kind: FailureKind
    reason: str
    error: str  # exception class name, e.g. "IncompleteBankDetailsError"
    retryable: bool


class PayoutResult(BaseModel):
    person_id: int | str
    state: PayoutState
    amount: Decimal | None = None
    amount_minor: int | None = None
    recipient_code: str | None = None
    recipient_created: bool = False
    transfer: dict[str, Any] | None = None
    failure: PayoutFailure | None = None
    warnings: list[str] = Field(default_factory=list)
    history: list[PayoutState] = Field(default_factory=list)

    @property
    def succeeded(self) -> bool:
        return self.state == PayoutState.SUCCEEDED


class PayoutRequest(BaseModel):
    """Body of ``POST /api/payouts/{person_id}``.

    Bank or phone details override the ones stored on the person record.
    """

    amount: Decimal
    reason: str | None = None
    bank_code: str | None = None
    account_number: str | None = None
    phone: str | None = None


class CreateRecipientRequest(BaseModel):
    type: str = "nuban"
    name: str
    account_number: str
    bank_code: str
    currency: str = "NGN"


class InitiateTransferRequest(BaseModel):
    amount: int  # minor units
    recipient: str
    reason: str = ""


class MobileRecipient(BaseModel):
    name: str
    phone: str


class MobileTransferRequest(BaseModel):
    amount: int  # minor units
    recipient: MobileRecipient
    reason: str = ""


class PayoutAuditEntry(BaseModel):
    id: int
    person_id: str
    attempted_at: str
    amount: str
    recipient_code: str | None = None
    outcome: str
    failure_kind: str | None = None
    reason: str | None = None
    warnings: list[str] = Field(default_factory=list)
    initiated_by: str | None = None
