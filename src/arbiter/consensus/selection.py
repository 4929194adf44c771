"""Stake-weighted juror selection.

Draws a fixed number of distinct jurors from a pool snapshot, each draw
weighted by stake and made without replacement:

    for i in 0..count:
        point = H(seed, i) mod remaining_weight
        walk the pool in order, summing the stake of members not yet chosen,
        and take the first member whose running sum exceeds point

``remaining_weight`` is the stake of the members not yet chosen. The
function is pure: the same pool snapshot and seed always give the same
jurors, so production randomness lives entirely in the seed (see
``arbiter.consensus.vrf``) and tests inject fixed seeds.
"""

from __future__ import annotations

import hashlib
import logging
from collections.abc import Sequence

from ..core.exceptions import EmptyPoolError, ValidationException

logger = logging.getLogger(__name__)

DOMAIN_SEPARATOR_DISPUTE_SEED = b"arbiter-dispute-seed-v1"


def draw_point(seed: bytes, index: int) -> int:
    """Hash the seed and draw index into a large non-negative integer."""
    digest = hashlib.sha256(seed + index.to_bytes(32, "big")).digest()
    return int.from_bytes(digest, "big")


def derive_dispute_seed(entropy: bytes, dispute_id: int) -> bytes:
    """Bind platform entropy to a dispute counter.

    Args:
        entropy: Value that outsiders cannot predict ahead of time.
        dispute_id: The id the dispute is about to receive.

    Returns:
        32-byte seed for ``select_jurors``.
    """
    data = DOMAIN_SEPARATOR_DISPUTE_SEED + entropy + dispute_id.to_bytes(8, "big")
    return hashlib.sha256(data).digest()


def select_jurors(
    pool: Sequence[tuple[str, int]],
    count: int,
    seed: bytes,
) -> list[str]:
    """Select up to ``count`` distinct jurors, weighted by stake.

    Args:
        pool: Ordered (juror, stake) pairs; order fixes the scan order.
        count: Number of jurors wanted.
        seed: Randomness for this selection.

    Returns:
        Selected jurors in draw order. Shorter than ``count`` when the pool
        runs out of staked members.

    Raises:
        ValidationException: count is negative.
        EmptyPoolError: the pool holds no stake.
    """
    if count < 0:
        raise ValidationException("Juror count must not be negative", field="count", value=count)

    total = sum(stake for _, stake in pool)
    if total <= 0:
        raise EmptyPoolError("Cannot select jurors from a pool with no stake")

    selected: list[str] = []
    chosen: set[str] = set()
    remaining = total

    for i in range(count):
        if remaining <= 0:
            logger.warning(
                "Juror pool exhausted after %d of %d draws; remaining slots unfilled",
                len(selected), count,
            )
            break

        point = draw_point(seed, i) % remaining
        cumulative = 0
        for juror, stake in pool:
            if juror in chosen:
                continue
            cumulative += stake
            if cumulative > point:
                selected.append(juror)
                chosen.add(juror)
                remaining -= stake
                break

    return selected
