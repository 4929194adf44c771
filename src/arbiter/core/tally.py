"""Dispute finalization and stake settlement.

Once the reveal deadline has passed a dispute can be tallied, exactly once:

1. The dispute is marked resolved before anything else, so a reentrant
   tally from the client callback hits the already-resolved guard.
2. Revealed votes of the selected jurors are counted per choice.
3. The ruling is the choice with the strictly greatest count, scanning
   from index 0; ties go to the lowest index and zero reveals rule 0.
4. Jurors who did not reveal, or revealed something other than the
   ruling, forfeit floor(stake * penalty_percent / 100) to the penalty pool.
5. Penalty pool plus the escrowed fee is split evenly (floor) among the
   jurors who voted with the ruling. Remainders stay in custody.
6. The client's rule() is called once. If it raises, settlement stands and
   CallbackError is raised.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

from .disputes import Dispute, DisputeState
from .exceptions import AlreadyResolvedError, CallbackError, DeadlineError
from .ledger import StakeLedger

logger = logging.getLogger(__name__)


@dataclass
class TallyResult:
    """Outcome of a finalized dispute."""

    dispute_id: int
    ruling: int
    vote_counts: list[int]
    winners: list[str] = field(default_factory=list)
    penalized: dict[str, int] = field(default_factory=dict)
    penalty_pool: int = 0
    reward_pool: int = 0
    reward_per_winner: int = 0
    undistributed: int = 0

    def to_dict(self) -> dict[str, Any]:
        return {
            "dispute_id": self.dispute_id,
            "ruling": self.ruling,
            "vote_counts": list(self.vote_counts),
            "winners": list(self.winners),
            "penalized": dict(self.penalized),
            "penalty_pool": self.penalty_pool,
            "reward_pool": self.reward_pool,
            "reward_per_winner": self.reward_per_winner,
            "undistributed": self.undistributed,
        }


def count_votes(dispute: Dispute) -> list[int]:
    """Revealed votes per choice across the dispute's juror snapshot."""
    counts = [0] * dispute.choices
    for juror in dispute.jurors:
        record = dispute.votes.get(juror)
        if record is not None and record.revealed and record.choice is not None:
            counts[record.choice] += 1
    return counts


def compute_ruling(vote_counts: list[int]) -> int:
    """Index of the strictly greatest count; ties resolve to the lowest index."""
    ruling = 0
    best = 0
    for choice, count in enumerate(vote_counts):
        if count > best:
            best = count
            ruling = choice
    return ruling


class TallyEngine:
    """Finalizes disputes against a shared stake ledger."""

    def __init__(self, ledger: StakeLedger, penalty_percent: int = 20):
        self.ledger = ledger
        self.penalty_percent = penalty_percent

    def tally(self, dispute: Dispute, now: datetime) -> TallyResult:
        """Resolve ``dispute``, settle stake, and notify its client.

        Raises:
            DeadlineError: the reveal deadline has not been reached.
            AlreadyResolvedError: the dispute was already tallied.
            CallbackError: the client's rule() raised; settlement is kept.
        """
        if now < dispute.reveal_deadline:
            raise DeadlineError(
                f"Dispute {dispute.id} cannot be tallied before its reveal deadline",
                deadline=dispute.reveal_deadline,
                now=now,
            )
        if dispute.state == DisputeState.RESOLVED:
            raise AlreadyResolvedError(dispute.id)

        # Persist the lazy commit -> reveal flip, dated at the commit deadline
        dispute.advance(DisputeState.REVEALING, dispute.commit_deadline)
        dispute.advance(DisputeState.RESOLVED, now)

        vote_counts = count_votes(dispute)
        ruling = compute_ruling(vote_counts)
        dispute.ruling = ruling
        result = TallyResult(dispute_id=dispute.id, ruling=ruling, vote_counts=vote_counts)

        for juror in dispute.jurors:
            record = dispute.votes.get(juror)
            if record is not None and record.revealed and record.choice == ruling:
                result.winners.append(juror)
                continue
            amount = self.ledger.penalize(juror, self.penalty_percent)
            result.penalized[juror] = amount
            result.penalty_pool += amount

        if result.winners:
            result.reward_pool = result.penalty_pool + dispute.fee
            result.reward_per_winner = result.reward_pool // len(result.winners)
            for juror in result.winners:
                self.ledger.credit(juror, result.reward_per_winner)
            result.undistributed = result.reward_pool - result.reward_per_winner * len(result.winners)
        else:
            # TODO: route stranded penalties and fee to a treasury once one exists
            result.undistributed = result.penalty_pool + dispute.fee
            logger.warning(
                "Dispute %d has no winning jurors; %d left undistributed",
                dispute.id, result.undistributed,
            )

        logger.info(
            "Resolved dispute %d: ruling=%d counts=%s penalty_pool=%d reward_per_winner=%d",
            dispute.id, ruling, vote_counts, result.penalty_pool, result.reward_per_winner,
        )
        logger.debug("Settlement for dispute %d: %s", dispute.id, result.to_dict())

        try:
            dispute.client.rule(dispute.id, ruling)
        except Exception as e:
            logger.exception(
                "Ruling callback for dispute %d failed",
                dispute.id,
                extra={"dispute_id": dispute.id, "ruling": ruling},
            )
            raise CallbackError(dispute.id, ruling, str(e), result=result) from e

        return result
