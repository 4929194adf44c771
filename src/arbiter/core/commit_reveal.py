"""Commit-reveal voting for dispute jurors.

Two phases keep jurors from copying each other:

1. Commit: before the commit deadline a selected juror submits
   H(dispute_id || choice || salt). The hash reveals nothing about the vote.
2. Reveal: between the commit and reveal deadlines the juror discloses
   choice and salt, which must reproduce the stored hash.

There is no timer moving a dispute from committing to revealing. The first
successful call after the commit deadline flips the stored state; until
then every check uses the effective state computed from the clock. A call
that fails leaves the dispute exactly as it was.
"""

from __future__ import annotations

import hashlib
import logging
import re
import secrets
from datetime import datetime

from .disputes import Dispute, DisputeState, VoteRecord
from .exceptions import (
    CommitmentMismatchError,
    DeadlineError,
    DuplicateVoteError,
    NotSelectedJurorError,
    StateError,
    ValidationException,
)

logger = logging.getLogger(__name__)

_COMMITMENT_RE = re.compile(r"^[0-9a-f]{64}$")


def generate_salt() -> str:
    """Generate a secret salt for a commitment."""
    return secrets.token_hex(16)


def compute_commitment(dispute_id: int, choice: int, salt: str) -> str:
    """Compute the commitment hash H(dispute_id || choice || salt).

    Returns:
        Hex-encoded SHA256 hash.
    """
    data = f"{dispute_id}:{choice}:{salt}".encode()
    return hashlib.sha256(data).hexdigest()


class CommitRevealVoting:
    """Enforces the per-dispute commit/reveal state machine."""

    def commit(self, dispute: Dispute, juror: str, commitment: str, now: datetime) -> VoteRecord:
        """Record a juror's hidden vote.

        Raises:
            StateError: the dispute is resolved.
            DeadlineError: the commit deadline has passed.
            NotSelectedJurorError: juror is not in the dispute's snapshot.
            DuplicateVoteError: juror already committed.
            ValidationException: commitment is not a SHA-256 hex digest.
        """
        if dispute.state == DisputeState.RESOLVED:
            raise StateError(f"Dispute {dispute.id} is resolved", dispute.id, dispute.state.value)
        if now >= dispute.commit_deadline:
            raise DeadlineError(
                f"Commit period for dispute {dispute.id} has ended",
                deadline=dispute.commit_deadline,
                now=now,
            )
        if not dispute.is_selected(juror):
            raise NotSelectedJurorError(dispute.id, juror)
        if dispute.vote(juror).commitment is not None:
            raise DuplicateVoteError(f"{juror} already committed on dispute {dispute.id}", dispute.id)

        commitment = commitment.lower()
        if not _COMMITMENT_RE.match(commitment):
            raise ValidationException("Commitment must be a SHA-256 hex digest", field="commitment")

        record = VoteRecord(commitment=commitment, committed_at=now)
        dispute.votes[juror] = record
        logger.info("Juror %s committed on dispute %d", juror, dispute.id)
        return record

    def reveal(
        self,
        dispute: Dispute,
        juror: str,
        choice: int,
        salt: str,
        now: datetime,
    ) -> VoteRecord:
        """Disclose a committed vote.

        Raises:
            StateError: the dispute is not in its reveal phase (too early,
                or already resolved) or the juror never committed.
            DeadlineError: the reveal deadline has passed.
            NotSelectedJurorError: juror is not in the dispute's snapshot.
            DuplicateVoteError: juror already revealed.
            ValidationException: choice is out of range.
            CommitmentMismatchError: choice and salt do not match the hash.
        """
        state = dispute.effective_state(now)
        if state != DisputeState.REVEALING:
            raise StateError(
                f"Dispute {dispute.id} is not accepting reveals ({state.value})",
                dispute.id,
                state.value,
            )
        if now >= dispute.reveal_deadline:
            raise DeadlineError(
                f"Reveal period for dispute {dispute.id} has ended",
                deadline=dispute.reveal_deadline,
                now=now,
            )
        if not dispute.is_selected(juror):
            raise NotSelectedJurorError(dispute.id, juror)

        record = dispute.votes.get(juror)
        if record is None or record.commitment is None:
            raise StateError(f"{juror} has no commitment on dispute {dispute.id}", dispute.id, state.value)
        if record.revealed:
            raise DuplicateVoteError(f"{juror} already revealed on dispute {dispute.id}", dispute.id)
        if not 0 <= choice < dispute.choices:
            raise ValidationException(
                f"Choice must be between 0 and {dispute.choices - 1}",
                field="choice",
                value=choice,
            )
        if compute_commitment(dispute.id, choice, salt) != record.commitment:
            raise CommitmentMismatchError(dispute.id, juror)

        dispute.advance(DisputeState.REVEALING, dispute.commit_deadline)
        record.choice = choice
        record.revealed = True
        record.revealed_at = now
        logger.info("Juror %s revealed on dispute %d", juror, dispute.id)
        return record
