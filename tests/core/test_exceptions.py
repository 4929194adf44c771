"""Tests for arbiter.core.exceptions module."""

from __future__ import annotations

from datetime import UTC, datetime

import pytest

from arbiter.core.exceptions import (
    AlreadyResolvedError,
    ArbiterException,
    AuthorizationError,
    CallbackError,
    CommitmentMismatchError,
    ConfigException,
    DeadlineError,
    DuplicateVoteError,
    EmptyPoolError,
    InsufficientStakeError,
    IntegrityError,
    LedgerInvariantError,
    NotFoundError,
    NotSelectedJurorError,
    ResourceError,
    StateError,
    TransferError,
    ValidationException,
)

# ============================================================================
# ArbiterException Tests
# ============================================================================


class TestArbiterException:
    def test_create_with_message(self):
        exc = ArbiterException("Something went wrong")
        assert str(exc) == "Something went wrong"
        assert exc.message == "Something went wrong"
        assert exc.details == {}

    def test_to_dict(self):
        exc = ArbiterException("Test error", details={"info": "extra"})
        assert exc.to_dict() == {
            "error": "ArbiterException",
            "message": "Test error",
            "details": {"info": "extra"},
        }

    def test_to_dict_uses_subclass_name(self):
        assert AlreadyResolvedError(4).to_dict()["error"] == "AlreadyResolvedError"

    @pytest.mark.parametrize(
        "exc",
        [
            ValidationException("bad"),
            ConfigException("bad"),
            AuthorizationError("no"),
            StateError("late"),
            DeadlineError("late", datetime(2026, 1, 1, tzinfo=UTC), datetime(2026, 1, 2, tzinfo=UTC)),
            IntegrityError("broken"),
            ResourceError("none"),
            TransferError("refused"),
            CallbackError(1, 0, "boom"),
            NotFoundError("Dispute", 1),
        ],
    )
    def test_every_error_is_an_arbiter_exception(self, exc):
        assert isinstance(exc, ArbiterException)
        with pytest.raises(ArbiterException):
            raise exc


# ============================================================================
# Category Tests
# ============================================================================


class TestCategories:
    def test_not_selected_is_authorization(self):
        exc = NotSelectedJurorError(3, "mallory")
        assert isinstance(exc, AuthorizationError)
        assert exc.details == {"dispute_id": 3, "juror": "mallory"}
        assert "mallory" in exc.message

    def test_duplicate_and_resolved_are_state_errors(self):
        assert isinstance(DuplicateVoteError("again", 1), StateError)
        resolved = AlreadyResolvedError(9)
        assert isinstance(resolved, StateError)
        assert resolved.state == "resolved"
        assert resolved.details == {"dispute_id": 9, "state": "resolved"}

    def test_integrity_errors(self):
        assert isinstance(CommitmentMismatchError(1, "alice"), IntegrityError)
        exc = LedgerInvariantError(total=10, actual=11)
        assert isinstance(exc, IntegrityError)
        assert exc.details == {"total": 10, "actual": 11}

    def test_resource_errors(self):
        exc = InsufficientStakeError("alice", requested=50, available=10)
        assert isinstance(exc, ResourceError)
        assert exc.details["available"] == 10
        assert isinstance(EmptyPoolError(), ResourceError)
        assert EmptyPoolError().message == "No stake in the juror pool"


# ============================================================================
# Detail Tests
# ============================================================================


class TestDetails:
    def test_validation_field_and_value(self):
        exc = ValidationException("Invalid fee", field="fee_amount", value=99)
        assert exc.field == "fee_amount"
        assert exc.value == 99
        assert exc.details == {"field": "fee_amount", "value": "99"}

    def test_validation_without_field(self):
        assert ValidationException("bad").details == {}

    def test_deadline_serializes_timestamps(self):
        deadline = datetime(2026, 1, 2, tzinfo=UTC)
        now = datetime(2026, 1, 3, tzinfo=UTC)
        exc = DeadlineError("too late", deadline, now)

        assert exc.details == {"deadline": deadline.isoformat(), "now": now.isoformat()}

    def test_transfer_details(self):
        exc = TransferError("refused", party="client", amount=100)
        assert exc.details == {"party": "client", "amount": 100}
        assert TransferError("refused").details == {}

    def test_callback_error_carries_result(self):
        exc = CallbackError(2, 1, "boom", result={"ruling": 1})
        assert exc.result == {"ruling": 1}
        assert exc.details == {"dispute_id": 2, "ruling": 1}
        assert "boom" in exc.message
        assert CallbackError(2, 1, "boom").result is None

    def test_not_found(self):
        exc = NotFoundError("Dispute", 12)
        assert exc.message == "Dispute not found: 12"
        assert exc.details == {"resource_type": "Dispute", "resource_id": "12"}

    def test_config_setting(self):
        exc = ConfigException("bad percent", setting="penalty_percent")
        assert exc.details == {"setting": "penalty_percent"}
