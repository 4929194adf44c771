"""External collaborators of the arbitration engine.

The engine talks to two outside parties: the fungible staking token that
custodies stake and fees, and the arbitrable client that receives rulings.
Both are described as protocols. The in-memory implementations below back
the CLI simulator and the test suite.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from typing import Protocol, runtime_checkable

logger = logging.getLogger(__name__)


@runtime_checkable
class StakingToken(Protocol):
    """Fungible token with all-or-nothing transfers."""

    def transfer_from(self, sender: str, recipient: str, amount: int) -> bool:
        """Move amount from sender to recipient. Returns False on failure."""
        ...

    def transfer(self, recipient: str, amount: int) -> bool:
        """Move amount from the engine's custody account to recipient."""
        ...


@runtime_checkable
class ArbitrableClient(Protocol):
    """Contract that requested a dispute and receives its ruling."""

    def rule(self, dispute_id: int, ruling: int) -> None: ...


class InMemoryToken:
    """Dictionary-backed StakingToken.

    ``transfer`` always moves funds out of ``custodian``, the account the
    engine deposits stake and fees into. ``on_transfer`` is called after
    every successful movement and may re-enter the engine. If the hook
    raises, the movement is rolled back before the error propagates.
    """

    def __init__(self, custodian: str = "arbiter"):
        self.custodian = custodian
        self.balances: dict[str, int] = {}
        self.on_transfer: Callable[[str, str, int], None] | None = None
        self.fail_next = False

    def mint(self, account: str, amount: int) -> None:
        if amount < 0:
            raise ValueError("Cannot mint a negative amount")
        self.balances[account] = self.balances.get(account, 0) + amount

    def balance_of(self, account: str) -> int:
        return self.balances.get(account, 0)

    def _move(self, sender: str, recipient: str, amount: int) -> bool:
        if self.fail_next:
            self.fail_next = False
            return False
        if amount < 0 or self.balance_of(sender) < amount:
            return False
        self.balances[sender] = self.balance_of(sender) - amount
        self.balances[recipient] = self.balance_of(recipient) + amount
        if self.on_transfer is not None:
            try:
                self.on_transfer(sender, recipient, amount)
            except Exception:
                # All or nothing: a failing hook undoes the movement
                self.balances[recipient] -= amount
                self.balances[sender] += amount
                raise
        return True

    def transfer_from(self, sender: str, recipient: str, amount: int) -> bool:
        return self._move(sender, recipient, amount)

    def transfer(self, recipient: str, amount: int) -> bool:
        return self._move(self.custodian, recipient, amount)


class RecordingClient:
    """ArbitrableClient that stores every ruling it receives."""

    def __init__(self, name: str = "client"):
        self.name = name
        self.rulings: dict[int, int] = {}
        self.calls: list[tuple[int, int]] = []

    def rule(self, dispute_id: int, ruling: int) -> None:
        self.calls.append((dispute_id, ruling))
        if dispute_id in self.rulings:
            raise RuntimeError(f"Dispute {dispute_id} was already ruled on")
        self.rulings[dispute_id] = ruling
        logger.debug("%s received ruling %d for dispute %d", self.name, ruling, dispute_id)
