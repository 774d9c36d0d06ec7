"""Tests for the payout orchestrator."""

import asyncio
import json
from decimal import Decimal

import pytest

from admin_portal.errors import (
    CmsError,
    GatewayError,
    IncompleteBankDetailsError,
    LocalValidationError,
    PersistenceWarning,
)
from admin_portal.models.payout import FailureKind, PaymentRecipient, PayoutMode, PayoutState
from admin_portal.services.payout import (
    PayoutOrchestrator,
    log_payout_audit,
    parse_amount,
    resolve_recipient_details,
    to_minor_units,
)


class FakeGateway:
    def __init__(self, code="RCP_1", create_error=None, transfer_error=None, events=None):
        self.code = code
        self.create_error = create_error
        self.transfer_error = transfer_error
        self.events = events if events is not None else []
        self.created = []
        self.transfers = []

    async def create_recipient(self, payload, token=None):
        self.events.append("create")
        self.created.append(payload)
        await asyncio.sleep(0)
        if self.create_error:
            raise self.create_error
        return self.code

    async def initiate_transfer(self, recipient_code, amount_minor, reason, token=None):
        self.events.append("transfer")
        self.transfers.append(
            {"recipient": recipient_code, "amount": amount_minor, "reason": reason}
        )
        if self.transfer_error:
            raise self.transfer_error
        return {"transfer_code": "TRF_1", "status": "pending"}


class FakeStore:
    def __init__(self, error=None, events=None):
        self.error = error
        self.events = events if events is not None else []
        self.saved = []

    async def save_recipient_code(self, person_id, recipient_code, token=None):
        self.events.append("persist")
        self.saved.append((person_id, {"recipient_code": recipient_code}))
        if self.error:
            raise self.error


def bank_recipient(**overrides):
    fields = {
        "person_id": 7,
        "name": "Chi Eze",
        "role": "chew",
        "bank_code": "058",
        "account_number": "0123456789",
    }
    fields.update(overrides)
    return PaymentRecipient(**fields)


# --- Amounts ---


class TestAmounts:
    @pytest.mark.parametrize(
        "amount, expected",
        [
            ("250.50", 25050),
            (250.5, 25050),
            (Decimal("19.99"), 1999),
            ("0.01", 1),
            (1000, 100000),
        ],
    )
    def test_to_minor_units(self, amount, expected):
        assert to_minor_units(amount) == expected

    @pytest.mark.parametrize("amount", ["12.345", "-5", "abc", "NaN", "Infinity", ""])
    def test_invalid_amounts(self, amount):
        with pytest.raises(LocalValidationError):
            parse_amount(amount)

    @pytest.mark.parametrize("amount", ["0", "0.00", 0])
    def test_zero_has_no_minor_units(self, amount):
        assert parse_amount(amount) == 0
        with pytest.raises(LocalValidationError, match="greater than zero"):
            to_minor_units(amount)


# --- Recipient details ---


class TestResolveRecipientDetails:
    def test_bank_mode(self):
        mode, payload = resolve_recipient_details(bank_recipient())
        assert mode == PayoutMode.BANK
        assert payload == {
            "type": "nuban",
            "name": "Chi Eze",
            "account_number": "0123456789",
            "bank_code": "058",
            "currency": "NGN",
        }

    def test_mobile_money_mode(self):
        mode, payload = resolve_recipient_details(
            PaymentRecipient(person_id=7, name="Chi Eze", phone="08030000000")
        )
        assert mode == PayoutMode.MOBILE_MONEY
        assert payload["type"] == "mobile_money"
        assert payload["mobile_number"] == "08030000000"

    def test_bank_wins_over_phone(self):
        mode, _ = resolve_recipient_details(bank_recipient(phone="08030000000"))
        assert mode == PayoutMode.BANK

    def test_partial_bank_details_are_not_bypassed_by_phone(self):
        with pytest.raises(IncompleteBankDetailsError):
            resolve_recipient_details(bank_recipient(account_number=None, phone="0803"))

    def test_nothing_given(self):
        with pytest.raises(IncompleteBankDetailsError, match="bank code and account number"):
            resolve_recipient_details(PaymentRecipient(person_id=7))


# --- Orchestration ---


async def test_existing_recipient_code_is_reused():
    gateway, store = FakeGateway(), FakeStore()
    orchestrator = PayoutOrchestrator(gateway, store)

    result = await orchestrator.pay(bank_recipient(recipient_code="RCP_OLD"), "100")

    assert result.state == PayoutState.SUCCEEDED
    assert gateway.created == []
    assert store.saved == []
    assert gateway.transfers[0]["recipient"] == "RCP_OLD"
    assert result.history == [
        PayoutState.IDLE,
        PayoutState.CHECKING_RECIPIENT,
        PayoutState.INITIATING_TRANSFER,
        PayoutState.SUCCEEDED,
    ]


async def test_new_recipient_is_created_persisted_then_paid():
    events = []
    gateway = FakeGateway(code="RCP_1", events=events)
    store = FakeStore(events=events)
    orchestrator = PayoutOrchestrator(gateway, store)

    result = await orchestrator.pay(bank_recipient(), "250.50", reason="March visits")

    assert result.succeeded
    assert result.recipient_created is True
    assert result.recipient_code == "RCP_1"
    assert store.saved == [(7, {"recipient_code": "RCP_1"})]
    assert gateway.transfers == [{"recipient": "RCP_1", "amount": 25050, "reason": "March visits"}]
    assert events == ["create", "persist", "transfer"]
    assert result.history == [
        PayoutState.IDLE,
        PayoutState.CHECKING_RECIPIENT,
        PayoutState.CREATING_RECIPIENT,
        PayoutState.PERSISTING_RECIPIENT_CODE,
        PayoutState.INITIATING_TRANSFER,
        PayoutState.SUCCEEDED,
    ]


async def test_default_reason_names_the_recipient():
    gateway = FakeGateway()
    await PayoutOrchestrator(gateway, FakeStore()).pay(bank_recipient(recipient_code="R"), 10)
    assert gateway.transfers[0]["reason"] == "Payment to Chi Eze"


async def test_incomplete_bank_details_fail_before_any_call():
    gateway, store = FakeGateway(), FakeStore()
    orchestrator = PayoutOrchestrator(gateway, store)

    result = await orchestrator.pay(bank_recipient(account_number=None), "100")

    assert result.state == PayoutState.FAILED
    assert result.failure.kind == FailureKind.VALIDATION
    assert result.failure.error == "IncompleteBankDetailsError"
    assert result.failure.retryable is False
    assert gateway.events == []
    assert store.events == []


@pytest.mark.parametrize("role", ["patient", "admin", None])
async def test_only_chews_and_doctors_are_paid(role):
    gateway, store = FakeGateway(), FakeStore()
    result = await PayoutOrchestrator(gateway, store).pay(bank_recipient(role=role), "100")

    assert result.state == PayoutState.FAILED
    assert result.failure.kind == FailureKind.VALIDATION
    assert result.failure.retryable is False
    assert "Only CHEWs and doctors" in result.failure.reason
    assert result.history == [PayoutState.IDLE, PayoutState.FAILED]
    assert gateway.events == []
    assert store.events == []


async def test_doctor_is_paid():
    gateway = FakeGateway()
    result = await PayoutOrchestrator(gateway, FakeStore()).pay(bank_recipient(role="doctor"), "5")
    assert result.succeeded
    assert gateway.transfers[0]["amount"] == 500


@pytest.mark.parametrize("amount", ["0", "-1", "1.001", "ten"])
async def test_invalid_amount_is_a_validation_failure(amount):
    gateway = FakeGateway()
    result = await PayoutOrchestrator(gateway, FakeStore()).pay(bank_recipient(), amount)

    assert result.state == PayoutState.FAILED
    assert result.failure.kind == FailureKind.VALIDATION
    assert result.failure.retryable is False
    assert result.history == [PayoutState.IDLE, PayoutState.FAILED]
    assert gateway.events == []


async def test_recipient_creation_failure():
    gateway = FakeGateway(create_error=GatewayError("Account number is invalid", status_code=422))
    store = FakeStore()
    result = await PayoutOrchestrator(gateway, store).pay(bank_recipient(), "100")

    assert result.state == PayoutState.FAILED
    assert result.failure.kind == FailureKind.RECIPIENT_CREATION
    assert result.failure.reason == "Account number is invalid"
    assert result.failure.retryable is True
    assert gateway.transfers == []
    assert store.saved == []


async def test_unconfigured_gateway_is_not_retryable():
    gateway = FakeGateway(
        create_error=GatewayError("Payment gateway is not configured", retryable=False)
    )
    result = await PayoutOrchestrator(gateway, FakeStore()).pay(bank_recipient(), "100")
    assert result.failure.kind == FailureKind.RECIPIENT_CREATION
    assert result.failure.retryable is False


async def test_transfer_failure():
    gateway = FakeGateway(transfer_error=GatewayError("Insufficient balance", status_code=400))
    result = await PayoutOrchestrator(gateway, FakeStore()).pay(bank_recipient(), "100")

    assert result.state == PayoutState.FAILED
    assert result.failure.kind == FailureKind.TRANSFER
    assert result.failure.reason == "Insufficient balance"
    assert result.failure.retryable is True
    # The new code was still created and kept
    assert result.recipient_code == "RCP_1"


async def test_persistence_failure_warns_but_pays():
    gateway = FakeGateway()
    store = FakeStore(error=CmsError("Forbidden", status_code=403, retryable=False))
    orchestrator = PayoutOrchestrator(gateway, store)

    with pytest.warns(PersistenceWarning):
        result = await orchestrator.pay(bank_recipient(), "100")

    assert result.succeeded
    assert len(result.warnings) == 1
    assert "RCP_1" in result.warnings[0]
    assert gateway.transfers[0]["recipient"] == "RCP_1"


async def test_unsaved_code_is_remembered_for_the_next_payout():
    gateway = FakeGateway()
    orchestrator = PayoutOrchestrator(gateway, FakeStore(error=CmsError("down", status_code=503)))

    with pytest.warns(PersistenceWarning):
        await orchestrator.pay(bank_recipient(), "100")
    second = await orchestrator.pay(bank_recipient(), "50")

    assert len(gateway.created) == 1
    assert second.recipient_created is False
    assert second.recipient_code == "RCP_1"


async def test_concurrent_payouts_for_one_person_create_one_recipient():
    gateway = FakeGateway()
    orchestrator = PayoutOrchestrator(gateway, FakeStore())

    results = await asyncio.gather(
        orchestrator.pay(bank_recipient(), "100"),
        orchestrator.pay(bank_recipient(), "200"),
    )

    assert all(r.succeeded for r in results)
    assert len(gateway.created) == 1
    assert sorted(t["amount"] for t in gateway.transfers) == [10000, 20000]


async def test_saved_codes_and_locks_are_released_after_payout():
    orchestrator = PayoutOrchestrator(FakeGateway(), FakeStore())

    await asyncio.gather(
        orchestrator.pay(bank_recipient(), "100"),
        orchestrator.pay(bank_recipient(), "200"),
    )

    assert orchestrator._locks == {}
    assert orchestrator._created_codes == {}
    assert not orchestrator._in_flight


async def test_unsaved_code_outlives_the_payout():
    orchestrator = PayoutOrchestrator(FakeGateway(), FakeStore(error=CmsError("down", status_code=503)))

    with pytest.warns(PersistenceWarning):
        await orchestrator.pay(bank_recipient(), "100")

    assert orchestrator._locks == {}
    assert orchestrator._created_codes == {"7": "RCP_1"}


async def test_different_people_are_independent():
    gateway = FakeGateway()
    orchestrator = PayoutOrchestrator(gateway, FakeStore())

    results = await asyncio.gather(
        orchestrator.pay(bank_recipient(person_id=1), "100"),
        orchestrator.pay(bank_recipient(person_id=2), "100"),
    )

    assert all(r.succeeded for r in results)
    assert len(gateway.created) == 2


# --- Audit ---


async def test_audit_row_written(db):
    gateway = FakeGateway(transfer_error=GatewayError("Insufficient balance"))
    result = await PayoutOrchestrator(gateway, FakeStore()).pay(bank_recipient(), "250.50")

    await log_payout_audit(result, initiated_by=1)

    row = await db.fetch_one("SELECT * FROM payout_audit WHERE person_id = ?", ("7",))
    assert row["amount"] == "250.50"
    assert row["outcome"] == "Failed"
    assert row["failure_kind"] == "transfer"
    assert row["recipient_code"] == "RCP_1"
    assert row["initiated_by"] == "1"
    assert json.loads(row["warnings"]) == []
