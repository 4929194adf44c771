"""Dispute records and the registry that owns them.

A dispute moves through committing -> revealing -> resolved and never goes
back. The juror snapshot and both deadlines are fixed when the dispute is
created. Each dispute owns its own vote map, keyed by juror; nothing is
shared between disputes, and stake amounts always stay in the ledger.
"""

from __future__ import annotations

import logging
from collections.abc import Iterator
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from enum import StrEnum
from typing import Any

from ..collaborators import ArbitrableClient
from .exceptions import NotFoundError, ValidationException

logger = logging.getLogger(__name__)


class DisputeState(StrEnum):
    COMMITTING = "committing"
    REVEALING = "revealing"
    RESOLVED = "resolved"


@dataclass
class VoteRecord:
    """One juror's vote on one dispute."""

    commitment: str | None = None
    revealed: bool = False
    choice: int | None = None
    committed_at: datetime | None = None
    revealed_at: datetime | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "commitment": self.commitment,
            "revealed": self.revealed,
            "choice": self.choice,
            "committed_at": self.committed_at.isoformat() if self.committed_at else None,
            "revealed_at": self.revealed_at.isoformat() if self.revealed_at else None,
        }


@dataclass
class Dispute:
    """A single arbitration case."""

    id: int
    choices: int
    fee: int
    jurors: tuple[str, ...]
    commit_deadline: datetime
    reveal_deadline: datetime
    client: ArbitrableClient
    created_at: datetime
    seed: bytes = b""
    state: DisputeState = DisputeState.COMMITTING
    votes: dict[str, VoteRecord] = field(default_factory=dict)
    ruling: int | None = None
    history: list[tuple[DisputeState, datetime]] = field(default_factory=list)

    def advance(self, state: DisputeState, now: datetime) -> None:
        """Store a phase change and record when it happened."""
        if state != self.state:
            self.state = state
            self.history.append((state, now))

    def effective_state(self, now: datetime) -> DisputeState:
        """State as of ``now``, including the lazy commit -> reveal flip."""
        if self.state == DisputeState.COMMITTING and now >= self.commit_deadline:
            return DisputeState.REVEALING
        return self.state

    def is_selected(self, juror: str) -> bool:
        return juror in self.jurors

    def vote(self, juror: str) -> VoteRecord:
        """Vote record for a selected juror (empty if they have not voted)."""
        return self.votes.get(juror) or VoteRecord()

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "state": self.state.value,
            "choices": self.choices,
            "fee": self.fee,
            "jurors": list(self.jurors),
            "commit_deadline": self.commit_deadline.isoformat(),
            "reveal_deadline": self.reveal_deadline.isoformat(),
            "created_at": self.created_at.isoformat(),
            "seed": self.seed.hex(),
            "votes": {juror: rec.to_dict() for juror, rec in self.votes.items()},
            "ruling": self.ruling,
            "history": [(state.value, at.isoformat()) for state, at in self.history],
        }


class DisputeRegistry:
    """Arena of Dispute records indexed by integer id."""

    def __init__(self, commit_window: timedelta, reveal_window: timedelta):
        self.commit_window = commit_window
        self.reveal_window = reveal_window
        self._disputes: dict[int, Dispute] = {}
        self._next_id = 0

    @property
    def next_id(self) -> int:
        """Id the next created dispute will receive."""
        return self._next_id

    def create(
        self,
        choices: int,
        fee: int,
        client: ArbitrableClient,
        jurors: list[str],
        seed: bytes,
        now: datetime,
    ) -> Dispute:
        """Store a new dispute in the committing phase.

        Raises:
            ValidationException: fewer than two choices.
        """
        if choices < 2:
            raise ValidationException("A dispute needs at least two choices", field="choices", value=choices)

        commit_deadline = now + self.commit_window
        dispute = Dispute(
            id=self._next_id,
            choices=choices,
            fee=fee,
            jurors=tuple(jurors),
            commit_deadline=commit_deadline,
            reveal_deadline=commit_deadline + self.reveal_window,
            client=client,
            created_at=now,
            seed=seed,
            history=[(DisputeState.COMMITTING, now)],
        )
        self._disputes[dispute.id] = dispute
        self._next_id += 1
        logger.info(
            "Created dispute %d with %d choices, jurors=%s",
            dispute.id, choices, list(dispute.jurors),
        )
        return dispute

    def get(self, dispute_id: int) -> Dispute:
        dispute = self._disputes.get(dispute_id)
        if dispute is None:
            raise NotFoundError("Dispute", dispute_id)
        return dispute

    def __len__(self) -> int:
        return len(self._disputes)

    def __iter__(self) -> Iterator[Dispute]:
        return iter(self._disputes.values())

    def __contains__(self, dispute_id: object) -> bool:
        return dispute_id in self._disputes
