"""Tests for stake-weighted juror selection.

Tests cover:
- Draw point hashing
- Determinism for a fixed pool and seed
- Sampling without replacement
- Exact walk semantics against hand-computed draws
- Weighting (zero stake never drawn, heavy stake drawn more)
- Short pools and empty pools
"""

from __future__ import annotations

import hashlib
from collections import Counter

import pytest

from arbiter.consensus.selection import (
    derive_dispute_seed,
    draw_point,
    select_jurors,
)
from arbiter.core.exceptions import EmptyPoolError, ValidationException


@pytest.fixture
def seed():
    return hashlib.sha256(b"test_dispute_seed_42").digest()


@pytest.fixture
def pool():
    return [("alice", 1000), ("bob", 500), ("carol", 250), ("dave", 2000), ("erin", 750)]


def reference_select(pool, count, seed):
    """Straightforward restatement of the selection walk."""
    remaining_pool = list(pool)
    picked = []
    for i in range(count):
        weight = sum(s for _, s in remaining_pool)
        if weight == 0:
            break
        point = int.from_bytes(hashlib.sha256(seed + i.to_bytes(32, "big")).digest(), "big") % weight
        running = 0
        for idx, (juror, stake) in enumerate(remaining_pool):
            running += stake
            if running > point:
                picked.append(juror)
                del remaining_pool[idx]
                break
    return picked


# =============================================================================
# DRAW POINTS AND SEEDS
# =============================================================================


class TestDrawPoint:
    def test_matches_sha256_of_seed_and_index(self, seed):
        expected = int.from_bytes(hashlib.sha256(seed + (3).to_bytes(32, "big")).digest(), "big")
        assert draw_point(seed, 3) == expected

    def test_index_changes_point(self, seed):
        assert draw_point(seed, 0) != draw_point(seed, 1)

    def test_dispute_seed_binds_dispute_id(self):
        assert derive_dispute_seed(b"entropy", 1) != derive_dispute_seed(b"entropy", 2)
        assert derive_dispute_seed(b"entropy", 1) == derive_dispute_seed(b"entropy", 1)
        assert len(derive_dispute_seed(b"entropy", 1)) == 32


# =============================================================================
# SELECTION
# =============================================================================


class TestSelectJurors:
    def test_deterministic(self, pool, seed):
        first = select_jurors(pool, 3, seed)
        for _ in range(5):
            assert select_jurors(pool, 3, seed) == first

    def test_matches_reference_walk(self, pool):
        for n in range(50):
            s = hashlib.sha256(f"seed-{n}".encode()).digest()
            assert select_jurors(pool, 3, s) == reference_select(pool, 3, s)

    def test_no_duplicates(self, pool):
        for n in range(100):
            s = hashlib.sha256(f"dup-{n}".encode()).digest()
            picked = select_jurors(pool, 4, s)
            assert len(picked) == 4
            assert len(set(picked)) == 4

    def test_selects_whole_pool_when_count_matches(self, pool, seed):
        assert sorted(select_jurors(pool, len(pool), seed)) == sorted(j for j, _ in pool)

    def test_zero_stake_never_selected(self, seed):
        pool = [("alice", 0), ("bob", 10), ("carol", 0), ("dave", 10)]
        for n in range(50):
            s = hashlib.sha256(f"zero-{n}".encode()).digest()
            picked = select_jurors(pool, 3, s)
            assert "alice" not in picked
            assert "carol" not in picked

    def test_short_pool_leaves_slots_unfilled(self, seed):
        pool = [("alice", 10), ("bob", 10)]
        picked = select_jurors(pool, 3, seed)

        assert sorted(picked) == ["alice", "bob"]

    def test_first_draw_tracks_stake_weight(self):
        pool = [("whale", 900), ("minnow", 100)]
        firsts = Counter(
            select_jurors(pool, 1, hashlib.sha256(f"w-{n}".encode()).digest())[0]
            for n in range(2000)
        )
        # Expected 1800 whale draws; allow generous slack
        assert 1650 < firsts["whale"] < 1950

    def test_single_member_pool(self, seed):
        assert select_jurors([("solo", 1)], 3, seed) == ["solo"]

    def test_zero_count(self, pool, seed):
        assert select_jurors(pool, 0, seed) == []

    def test_negative_count_rejected(self, pool, seed):
        with pytest.raises(ValidationException):
            select_jurors(pool, -1, seed)

    @pytest.mark.parametrize("empty", [[], [("alice", 0), ("bob", 0)]])
    def test_empty_pool_rejected(self, empty, seed):
        with pytest.raises(EmptyPoolError):
            select_jurors(empty, 3, seed)

    def test_pool_order_matters(self, pool, seed):
        reordered = list(reversed(pool))
        results = {
            tuple(select_jurors(pool, 3, hashlib.sha256(f"o-{n}".encode()).digest()))
            != tuple(select_jurors(reordered, 3, hashlib.sha256(f"o-{n}".encode()).digest()))
            for n in range(20)
        }
        assert True in results
