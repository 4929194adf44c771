"""Stake ledger - juror balances and their running total.

The ledger is the single source of truth for selection weights and for
penalty/reward bookkeeping. It is shared by every dispute and is only ever
mutated through the methods below, each of which preserves

    sum(stake of every juror) == total

Ordering around the token:
- deposit: the inbound transfer is confirmed before anything is credited.
- withdraw: balances are debited before the outbound transfer is issued,
  so a reentrant withdraw triggered by the token sees the reduced balance.
  A failed transfer reverses the debit.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Any

from ..collaborators import StakingToken
from .clock import Clock, utc_now
from .exceptions import (
    InsufficientStakeError,
    LedgerInvariantError,
    NotFoundError,
    TransferError,
    ValidationException,
)

logger = logging.getLogger(__name__)


@dataclass
class JurorAccount:
    """A juror's stake position."""

    juror: str
    stake: int = 0
    in_pool: bool = False
    joined_at: datetime | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "juror": self.juror,
            "stake": self.stake,
            "in_pool": self.in_pool,
            "joined_at": self.joined_at.isoformat() if self.joined_at else None,
        }


class StakeLedger:
    """Juror stake balances backed by a staking token.

    Args:
        token: Token collaborator holding the staked funds.
        custodian: Token account that holds stake on behalf of the ledger.
        clock: Time source for pool join timestamps.
    """

    def __init__(self, token: StakingToken, custodian: str = "arbiter", clock: Clock | None = None):
        self.token = token
        self.custodian = custodian
        self.clock = clock or utc_now
        self._accounts: dict[str, JurorAccount] = {}
        self._total = 0

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------

    def deposit(self, juror: str, amount: int) -> JurorAccount:
        """Stake ``amount`` tokens for ``juror``.

        The juror joins the pool on their first deposit.

        Raises:
            ValidationException: amount is not positive.
            TransferError: the token did not move the funds.
        """
        if amount <= 0:
            raise ValidationException("Deposit amount must be positive", field="amount", value=amount)

        try:
            ok = self.token.transfer_from(juror, self.custodian, amount)
        except Exception as e:
            raise TransferError(f"Inbound transfer failed: {e}", party=juror, amount=amount) from e
        if not ok:
            raise TransferError("Inbound transfer was refused", party=juror, amount=amount)

        account = self._accounts.get(juror)
        if account is None:
            account = JurorAccount(juror=juror)
            self._accounts[juror] = account
        if not account.in_pool:
            account.in_pool = True
            account.joined_at = self.clock()
            logger.info("Juror %s joined the pool", juror)

        account.stake += amount
        self._total += amount
        logger.debug("Deposit %d for %s (stake=%d, total=%d)", amount, juror, account.stake, self._total)
        return account

    def withdraw(self, juror: str, amount: int) -> JurorAccount:
        """Unstake ``amount`` tokens and return them to ``juror``.

        Raises:
            ValidationException: amount is not positive.
            InsufficientStakeError: juror has less than ``amount`` staked.
            TransferError: the token did not pay out; the debit is reversed.
        """
        if amount <= 0:
            raise ValidationException("Withdrawal amount must be positive", field="amount", value=amount)

        account = self._accounts.get(juror)
        available = account.stake if account else 0
        if account is None or available < amount:
            raise InsufficientStakeError(juror, amount, available)

        account.stake -= amount
        self._total -= amount

        try:
            ok = self.token.transfer(juror, amount)
        except Exception as e:
            self._reverse_debit(account, amount)
            raise TransferError(f"Outbound transfer failed: {e}", party=juror, amount=amount) from e
        if not ok:
            self._reverse_debit(account, amount)
            raise TransferError("Outbound transfer was refused", party=juror, amount=amount)

        logger.debug("Withdraw %d for %s (stake=%d, total=%d)", amount, juror, account.stake, self._total)
        return account

    def _reverse_debit(self, account: JurorAccount, amount: int) -> None:
        account.stake += amount
        self._total += amount
        logger.warning("Reversed withdrawal of %d for %s after transfer failure", amount, account.juror)

    def penalize(self, juror: str, percent: int) -> int:
        """Forfeit ``floor(stake * percent / 100)`` of a juror's stake.

        Returns:
            The amount removed from the juror and the total.
        """
        if not 0 <= percent <= 100:
            raise ValidationException("Penalty percent must be between 0 and 100", field="percent", value=percent)
        account = self._require(juror)
        amount = account.stake * percent // 100
        account.stake -= amount
        self._total -= amount
        return amount

    def credit(self, juror: str, amount: int) -> None:
        """Add ``amount`` to a juror's stake.

        Used for rewards; the backing tokens (penalties and escrowed fees)
        are already held by the custodian.
        """
        if amount < 0:
            raise ValidationException("Credit amount must not be negative", field="amount", value=amount)
        account = self._require(juror)
        account.stake += amount
        self._total += amount

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def _require(self, juror: str) -> JurorAccount:
        account = self._accounts.get(juror)
        if account is None:
            raise NotFoundError("JurorAccount", juror)
        return account

    def account(self, juror: str) -> JurorAccount:
        return self._require(juror)

    def stake_of(self, juror: str) -> int:
        account = self._accounts.get(juror)
        return account.stake if account else 0

    @property
    def total_staked(self) -> int:
        return self._total

    def pool_snapshot(self) -> list[tuple[str, int]]:
        """Pool members with their current stake, in join order."""
        return [(a.juror, a.stake) for a in self._accounts.values() if a.in_pool]

    def check_invariant(self) -> None:
        """Raise LedgerInvariantError if balances and total disagree."""
        actual = sum(a.stake for a in self._accounts.values())
        if actual != self._total:
            raise LedgerInvariantError(self._total, actual)

    def __len__(self) -> int:
        return len(self._accounts)

    def __contains__(self, juror: object) -> bool:
        return juror in self._accounts
