# SPDX-License-Identifier: MIT
# Copyright (c) 2026 Arbiter Contributors

"""Exception hierarchy for the arbitration engine.

Every failure raised by a public operation derives from ArbiterException.
Operations that raise leave ledger and dispute state untouched; the one
exception is CallbackError, which is raised after settlement has already
been committed.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any


class ArbiterException(Exception):  # noqa: N818
    """Base exception for all arbitration errors."""

    def __init__(self, message: str, details: dict | None = None):
        self.message = message
        self.details = details or {}
        super().__init__(message)

    def to_dict(self) -> dict:
        """Convert to dictionary for JSON serialization."""
        return {
            "error": self.__class__.__name__,
            "message": self.message,
            "details": self.details,
        }


# ============================================================================
# Validation
# ============================================================================


class ValidationException(ArbiterException):
    """Exception for bad input.

    Raised when:
    - A deposit or withdrawal amount is not positive
    - A dispute has fewer than two choices
    - The supplied fee does not match the arbitration fee
    - A revealed choice is out of range
    """

    def __init__(self, message: str, field: str | None = None, value: Any = None):
        details = {}
        if field:
            details["field"] = field
        if value is not None:
            details["value"] = str(value)
        super().__init__(message, details)
        self.field = field
        self.value = value


class ConfigException(ArbiterException):
    """Exception for invalid protocol parameters."""

    def __init__(self, message: str, setting: str | None = None):
        details = {}
        if setting:
            details["setting"] = setting
        super().__init__(message, details)
        self.setting = setting


# ============================================================================
# Authorization
# ============================================================================


class AuthorizationError(ArbiterException):
    """Caller is not allowed to perform the operation."""


class NotSelectedJurorError(AuthorizationError):
    """Juror is not part of the dispute's selected-juror snapshot."""

    def __init__(self, dispute_id: int, juror: str):
        super().__init__(
            f"{juror} is not a selected juror for dispute {dispute_id}",
            {"dispute_id": dispute_id, "juror": juror},
        )
        self.dispute_id = dispute_id
        self.juror = juror


# ============================================================================
# State
# ============================================================================


class StateError(ArbiterException):
    """Operation is not legal in the dispute's current phase."""

    def __init__(self, message: str, dispute_id: int | None = None, state: str | None = None):
        details: dict[str, Any] = {}
        if dispute_id is not None:
            details["dispute_id"] = dispute_id
        if state is not None:
            details["state"] = state
        super().__init__(message, details)
        self.dispute_id = dispute_id
        self.state = state


class DuplicateVoteError(StateError):
    """Juror already committed (or already revealed) on this dispute."""


class AlreadyResolvedError(StateError):
    """Dispute was already finalized."""

    def __init__(self, dispute_id: int):
        super().__init__(f"Dispute {dispute_id} is already resolved", dispute_id, "resolved")


# ============================================================================
# Deadline
# ============================================================================


class DeadlineError(ArbiterException):
    """Operation attempted outside its time window."""

    def __init__(self, message: str, deadline: datetime, now: datetime):
        super().__init__(
            message,
            {"deadline": deadline.isoformat(), "now": now.isoformat()},
        )
        self.deadline = deadline
        self.now = now


# ============================================================================
# Integrity
# ============================================================================


class IntegrityError(ArbiterException):
    """Data failed an integrity check."""


class CommitmentMismatchError(IntegrityError):
    """Revealed choice and salt do not hash to the stored commitment."""

    def __init__(self, dispute_id: int, juror: str):
        super().__init__(
            f"Reveal does not match commitment of {juror} on dispute {dispute_id}",
            {"dispute_id": dispute_id, "juror": juror},
        )
        self.dispute_id = dispute_id
        self.juror = juror


class LedgerInvariantError(IntegrityError):
    """Sum of juror stakes diverged from the recorded total."""

    def __init__(self, total: int, actual: int):
        super().__init__(
            f"Ledger total {total} does not equal sum of stakes {actual}",
            {"total": total, "actual": actual},
        )
        self.total = total
        self.actual = actual


# ============================================================================
# Resource
# ============================================================================


class ResourceError(ArbiterException):
    """A required resource (stake, jurors) is not available."""


class InsufficientStakeError(ResourceError):
    def __init__(self, juror: str, requested: int, available: int):
        super().__init__(
            f"{juror} has {available} staked, cannot withdraw {requested}",
            {"juror": juror, "requested": requested, "available": available},
        )
        self.juror = juror
        self.requested = requested
        self.available = available


class EmptyPoolError(ResourceError):
    """No stake in the juror pool."""

    def __init__(self, message: str = "No stake in the juror pool"):
        super().__init__(message)


# ============================================================================
# Collaborators
# ============================================================================


class TransferError(ArbiterException):
    """Staking token refused or failed a transfer."""

    def __init__(self, message: str, party: str | None = None, amount: int | None = None):
        details: dict[str, Any] = {}
        if party is not None:
            details["party"] = party
        if amount is not None:
            details["amount"] = amount
        super().__init__(message, details)
        self.party = party
        self.amount = amount


class CallbackError(ArbiterException):
    """Arbitrable client failed while receiving a ruling.

    Settlement is already committed when this is raised.
    """

    def __init__(self, dispute_id: int, ruling: int, cause: str, result: Any = None):
        super().__init__(
            f"Ruling callback for dispute {dispute_id} failed: {cause}",
            {"dispute_id": dispute_id, "ruling": ruling},
        )
        self.dispute_id = dispute_id
        self.ruling = ruling
        self.result = result


class NotFoundError(ArbiterException):
    """Exception for resource not found errors."""

    def __init__(self, resource_type: str, resource_id: Any):
        message = f"{resource_type} not found: {resource_id}"
        details = {
            "resource_type": resource_type,
            "resource_id": str(resource_id),
        }
        super().__init__(message, details)
        self.resource_type = resource_type
        self.resource_id = resource_id
