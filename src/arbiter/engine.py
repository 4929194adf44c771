"""Arbitration engine - the public, transactional surface.

Wires one stake ledger, one dispute registry, the commit-reveal state
machine, the tally engine, a seed provider and a clock together. Every
public method is a whole transaction: it either completes or raises an
ArbiterException having changed nothing (CallbackError from ``tally`` is
the documented exception). The only suspension points are the calls out to
the staking token and the arbitrable client, and authoritative state is
always written before those calls.

Usage:
    engine = ArbitrationEngine(token)
    engine.deposit("alice", 1000)
    dispute_id = engine.create_dispute("shop", choices=2, fee_amount=100, client=shop)
    engine.commit(dispute_id, juror, compute_commitment(dispute_id, 1, salt))
    ...
    result = engine.tally(dispute_id)
"""

from __future__ import annotations

import logging
from collections.abc import Generator
from contextlib import contextmanager

from .collaborators import ArbitrableClient, StakingToken
from .consensus.selection import select_jurors
from .consensus.vrf import RandomSeedProvider, SeedProvider
from .core.clock import Clock, utc_now
from .core.commit_reveal import CommitRevealVoting
from .core.config import ProtocolParams
from .core.disputes import Dispute, DisputeRegistry, DisputeState
from .core.exceptions import (
    ArbiterException,
    EmptyPoolError,
    TransferError,
    ValidationException,
)
from .core.ledger import JurorAccount, StakeLedger
from .core.logging import CONTEXT_FIELDS, correlation_context
from .core.tally import TallyEngine, TallyResult

logger = logging.getLogger(__name__)


class ArbitrationEngine:
    """Stake-weighted commit-reveal arbitration.

    Args:
        token: Staking token custodying stake and fees.
        params: Protocol constants; read from settings when omitted.
        seed_provider: Source of selection randomness.
        clock: Callable returning the current aware datetime.
        custodian: Token account holding funds on the engine's behalf.
    """

    def __init__(
        self,
        token: StakingToken,
        params: ProtocolParams | None = None,
        seed_provider: SeedProvider | None = None,
        clock: Clock | None = None,
        custodian: str = "arbiter",
    ):
        self.params = params or ProtocolParams.from_settings()
        self.token = token
        self.custodian = custodian
        self.seed_provider = seed_provider or RandomSeedProvider()
        self.clock = clock or utc_now
        self.ledger = StakeLedger(token, custodian=custodian, clock=self.clock)
        self.registry = DisputeRegistry(self.params.commit_window, self.params.reveal_window)
        self.voting = CommitRevealVoting()
        self.tallier = TallyEngine(self.ledger, self.params.penalty_percent)
        self.results: dict[int, TallyResult] = {}

    @contextmanager
    def _operation(self, name: str, **fields: object) -> Generator[None, None, None]:
        with correlation_context():
            try:
                yield
            except ArbiterException as e:
                logger.warning(
                    "%s rejected (%s): %s %s",
                    name, type(e).__name__, e.message, fields,
                    extra={key: fields[key] for key in CONTEXT_FIELDS if key in fields},
                )
                raise

    # ------------------------------------------------------------------
    # Staking
    # ------------------------------------------------------------------

    def deposit(self, juror: str, amount: int) -> JurorAccount:
        with self._operation("deposit", juror=juror, amount=amount):
            return self.ledger.deposit(juror, amount)

    def withdraw(self, juror: str, amount: int) -> JurorAccount:
        with self._operation("withdraw", juror=juror, amount=amount):
            return self.ledger.withdraw(juror, amount)

    # ------------------------------------------------------------------
    # Dispute lifecycle
    # ------------------------------------------------------------------

    def create_dispute(
        self,
        payer: str,
        choices: int,
        fee_amount: int,
        client: ArbitrableClient,
    ) -> int:
        """Draw a juror panel, escrow the fee, and open a dispute.

        Args:
            payer: Token account the fee is pulled from.
            choices: Number of possible rulings (at least 2).
            fee_amount: Must equal the protocol arbitration fee.
            client: Receives ``rule(dispute_id, ruling)`` after tally.

        Returns:
            The new dispute id.

        Raises:
            ValidationException: bad choice count or fee mismatch.
            EmptyPoolError: nothing is staked.
            TransferError: the fee could not be escrowed.
        """
        with self._operation("create_dispute", payer=payer, choices=choices, fee=fee_amount):
            if choices < 2:
                raise ValidationException("A dispute needs at least two choices", field="choices", value=choices)
            if fee_amount != self.params.arbitration_fee:
                raise ValidationException(
                    f"Fee must be exactly {self.params.arbitration_fee}",
                    field="fee_amount",
                    value=fee_amount,
                )
            if self.ledger.total_staked <= 0:
                raise EmptyPoolError("Cannot create a dispute while nothing is staked")

            dispute_id = self.registry.next_id
            seed, jurors = self._draw_panel(dispute_id)

            # Escrow last: nothing above has touched the token
            self._escrow_fee(payer, fee_amount)

            try:
                if self.registry.next_id != dispute_id:
                    # A reentrant create_dispute during escrow took the id
                    dispute_id = self.registry.next_id
                    seed, jurors = self._draw_panel(dispute_id)
                dispute = self.registry.create(choices, fee_amount, client, jurors, seed, self.clock())
            except Exception as e:
                if not self._refund_fee(payer, fee_amount):
                    if isinstance(e, ArbiterException):
                        e.details["fee_refund"] = "failed"
                    else:
                        e.add_note(f"Fee of {fee_amount} could not be refunded to {payer}")
                raise

            if len(dispute.jurors) < self.params.jurors_per_dispute:
                logger.warning(
                    "Dispute %d drew %d of %d jurors",
                    dispute.id, len(dispute.jurors), self.params.jurors_per_dispute,
                )
            return dispute.id

    def _escrow_fee(self, payer: str, amount: int) -> None:
        if amount == 0:
            return
        try:
            ok = self.token.transfer_from(payer, self.custodian, amount)
        except Exception as e:
            raise TransferError(f"Fee escrow failed: {e}", party=payer, amount=amount) from e
        if not ok:
            raise TransferError("Fee escrow was refused", party=payer, amount=amount)

    def _draw_panel(self, dispute_id: int) -> tuple[bytes, list[str]]:
        seed = self.seed_provider.seed_for(dispute_id)
        return seed, select_jurors(self.ledger.pool_snapshot(), self.params.jurors_per_dispute, seed)

    def _refund_fee(self, payer: str, amount: int) -> bool:
        """Return an escrowed fee. Returns False if the token did not pay out."""
        if amount == 0:
            return True
        try:
            ok = self.token.transfer(payer, amount)
        except Exception:
            logger.exception("Refund of fee %d to %s raised", amount, payer)
            return False
        if not ok:
            logger.error("Could not refund fee of %d to %s", amount, payer)
        return ok

    def commit(self, dispute_id: int, juror: str, commitment: str) -> None:
        with self._operation("commit", dispute_id=dispute_id, juror=juror):
            dispute = self.registry.get(dispute_id)
            self.voting.commit(dispute, juror, commitment, self.clock())

    def reveal(self, dispute_id: int, juror: str, choice: int, salt: str) -> None:
        with self._operation("reveal", dispute_id=dispute_id, juror=juror):
            dispute = self.registry.get(dispute_id)
            self.voting.reveal(dispute, juror, choice, salt, self.clock())

    def tally(self, dispute_id: int) -> TallyResult:
        """Finalize a dispute once its reveal deadline has passed."""
        with self._operation("tally", dispute_id=dispute_id):
            dispute = self.registry.get(dispute_id)
            try:
                result = self.tallier.tally(dispute, self.clock())
            except ArbiterException as e:
                partial = getattr(e, "result", None)
                if isinstance(partial, TallyResult):
                    self.results[dispute_id] = partial
                raise
            self.results[dispute_id] = result
            return result

    # ------------------------------------------------------------------
    # Queries (side-effect free)
    # ------------------------------------------------------------------

    def get_dispute(self, dispute_id: int) -> Dispute:
        return self.registry.get(dispute_id)

    def selected_jurors(self, dispute_id: int) -> list[str]:
        return list(self.registry.get(dispute_id).jurors)

    def dispute_state(self, dispute_id: int) -> DisputeState:
        return self.registry.get(dispute_id).effective_state(self.clock())

    def commitment_of(self, dispute_id: int, juror: str) -> str | None:
        return self.registry.get(dispute_id).vote(juror).commitment

    def has_revealed(self, dispute_id: int, juror: str) -> bool:
        return self.registry.get(dispute_id).vote(juror).revealed

    def revealed_choice(self, dispute_id: int, juror: str) -> int | None:
        return self.registry.get(dispute_id).vote(juror).choice

    def stake_of(self, juror: str) -> int:
        return self.ledger.stake_of(juror)

    @property
    def total_staked(self) -> int:
        return self.ledger.total_staked
