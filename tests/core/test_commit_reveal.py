"""Tests for the commit-reveal state machine.

Tests cover:
- Commitment hashing
- Commit preconditions (phase, deadline, membership, duplicates, format)
- Reveal preconditions and the lazy committing -> revealing transition
- Atomicity: failed calls leave the dispute untouched
"""

from __future__ import annotations

import copy
import hashlib
from datetime import UTC, datetime, timedelta

import pytest

from arbiter.collaborators import RecordingClient
from arbiter.core.commit_reveal import (
    CommitRevealVoting,
    compute_commitment,
    generate_salt,
)
from arbiter.core.disputes import DisputeRegistry, DisputeState
from arbiter.core.exceptions import (
    CommitmentMismatchError,
    DeadlineError,
    DuplicateVoteError,
    NotSelectedJurorError,
    StateError,
    ValidationException,
)

START = datetime(2026, 3, 1, tzinfo=UTC)


@pytest.fixture
def voting():
    return CommitRevealVoting()


@pytest.fixture
def dispute():
    registry = DisputeRegistry(timedelta(days=1), timedelta(days=1))
    return registry.create(3, 100, RecordingClient(), ["alice", "bob", "carol"], b"", START)


@pytest.fixture
def reveal_time(dispute):
    return dispute.commit_deadline + timedelta(hours=1)


def snapshot(dispute):
    return (dispute.state, copy.deepcopy(dispute.votes))


# ============================================================================
# Hashing
# ============================================================================


class TestCommitmentHash:
    def test_hash_format(self):
        expected = hashlib.sha256(b"5:1:pepper").hexdigest()
        assert compute_commitment(5, 1, "pepper") == expected

    def test_binds_dispute_id(self):
        assert compute_commitment(1, 0, "s") != compute_commitment(2, 0, "s")

    def test_salts_are_unique(self):
        assert generate_salt() != generate_salt()
        assert len(generate_salt()) == 32


# ============================================================================
# Commit
# ============================================================================


class TestCommit:
    def test_stores_commitment(self, voting, dispute):
        h = compute_commitment(dispute.id, 1, "s")
        record = voting.commit(dispute, "alice", h, START)

        assert record.commitment == h
        assert record.committed_at == START
        assert not record.revealed
        assert dispute.vote("alice").commitment == h

    def test_uppercase_hex_is_normalized(self, voting, dispute):
        h = compute_commitment(dispute.id, 1, "s")
        voting.commit(dispute, "alice", h.upper(), START)
        assert dispute.vote("alice").commitment == h

    def test_at_deadline_is_too_late(self, voting, dispute):
        with pytest.raises(DeadlineError):
            voting.commit(dispute, "alice", compute_commitment(0, 1, "s"), dispute.commit_deadline)
        assert dispute.votes == {}

    def test_just_before_deadline_is_accepted(self, voting, dispute):
        moment = dispute.commit_deadline - timedelta(microseconds=1)
        voting.commit(dispute, "alice", compute_commitment(0, 1, "s"), moment)
        assert dispute.vote("alice").commitment is not None

    def test_outsider_rejected(self, voting, dispute):
        with pytest.raises(NotSelectedJurorError) as exc_info:
            voting.commit(dispute, "mallory", compute_commitment(0, 1, "s"), START)
        assert exc_info.value.juror == "mallory"
        assert dispute.votes == {}

    def test_duplicate_rejected(self, voting, dispute):
        first = compute_commitment(0, 1, "s")
        voting.commit(dispute, "alice", first, START)

        with pytest.raises(DuplicateVoteError):
            voting.commit(dispute, "alice", compute_commitment(0, 2, "t"), START)
        assert dispute.vote("alice").commitment == first

    @pytest.mark.parametrize("bad", ["", "xyz", "ab" * 31, "zz" * 32])
    def test_malformed_commitment(self, voting, dispute, bad):
        with pytest.raises(ValidationException):
            voting.commit(dispute, "alice", bad, START)
        assert dispute.votes == {}

    def test_resolved_dispute_rejects_commit(self, voting, dispute):
        dispute.state = DisputeState.RESOLVED
        with pytest.raises(StateError):
            voting.commit(dispute, "alice", compute_commitment(0, 1, "s"), START)


# ============================================================================
# Reveal
# ============================================================================


class TestReveal:
    def test_reveal_records_choice_and_flips_state(self, voting, dispute, reveal_time):
        voting.commit(dispute, "alice", compute_commitment(0, 2, "s"), START)
        record = voting.reveal(dispute, "alice", 2, "s", reveal_time)

        assert record.revealed
        assert record.choice == 2
        assert record.revealed_at == reveal_time
        assert dispute.state == DisputeState.REVEALING
        assert dispute.history[-1] == (DisputeState.REVEALING, dispute.commit_deadline)

    def test_before_commit_deadline_is_state_error(self, voting, dispute):
        voting.commit(dispute, "alice", compute_commitment(0, 1, "s"), START)
        with pytest.raises(StateError) as exc_info:
            voting.reveal(dispute, "alice", 1, "s", START + timedelta(hours=1))
        assert exc_info.value.state == "committing"
        assert not dispute.vote("alice").revealed

    def test_at_reveal_deadline_is_too_late(self, voting, dispute):
        voting.commit(dispute, "alice", compute_commitment(0, 1, "s"), START)
        with pytest.raises(DeadlineError):
            voting.reveal(dispute, "alice", 1, "s", dispute.reveal_deadline)
        assert dispute.state == DisputeState.COMMITTING

    def test_mismatch_is_atomic(self, voting, dispute, reveal_time):
        voting.commit(dispute, "alice", compute_commitment(0, 1, "s"), START)
        before = snapshot(dispute)

        with pytest.raises(CommitmentMismatchError):
            voting.reveal(dispute, "alice", 2, "s", reveal_time)
        with pytest.raises(CommitmentMismatchError):
            voting.reveal(dispute, "alice", 1, "wrong-salt", reveal_time)

        assert snapshot(dispute) == before

    def test_mismatch_then_correct_reveal(self, voting, dispute, reveal_time):
        voting.commit(dispute, "alice", compute_commitment(0, 1, "s"), START)
        with pytest.raises(CommitmentMismatchError):
            voting.reveal(dispute, "alice", 0, "s", reveal_time)

        voting.reveal(dispute, "alice", 1, "s", reveal_time)
        assert dispute.vote("alice").choice == 1

    def test_double_reveal(self, voting, dispute, reveal_time):
        voting.commit(dispute, "alice", compute_commitment(0, 1, "s"), START)
        voting.reveal(dispute, "alice", 1, "s", reveal_time)

        with pytest.raises(DuplicateVoteError):
            voting.reveal(dispute, "alice", 1, "s", reveal_time)

    def test_reveal_without_commit(self, voting, dispute, reveal_time):
        with pytest.raises(StateError):
            voting.reveal(dispute, "bob", 1, "s", reveal_time)
        assert "bob" not in dispute.votes

    def test_outsider_reveal(self, voting, dispute, reveal_time):
        with pytest.raises(NotSelectedJurorError):
            voting.reveal(dispute, "mallory", 1, "s", reveal_time)

    @pytest.mark.parametrize("choice", [-1, 3, 10])
    def test_choice_out_of_range(self, voting, dispute, reveal_time, choice):
        voting.commit(dispute, "alice", compute_commitment(0, choice, "s"), START)
        with pytest.raises(ValidationException) as exc_info:
            voting.reveal(dispute, "alice", choice, "s", reveal_time)
        assert exc_info.value.field == "choice"
        assert not dispute.vote("alice").revealed

    def test_resolved_dispute_rejects_reveal(self, voting, dispute, reveal_time):
        voting.commit(dispute, "alice", compute_commitment(0, 1, "s"), START)
        dispute.state = DisputeState.RESOLVED
        with pytest.raises(StateError):
            voting.reveal(dispute, "alice", 1, "s", reveal_time)

    def test_failed_reveal_does_not_persist_phase_flip(self, voting, dispute, reveal_time):
        with pytest.raises(StateError):
            voting.reveal(dispute, "bob", 1, "s", reveal_time)
        assert dispute.state == DisputeState.COMMITTING
        assert dispute.effective_state(reveal_time) == DisputeState.REVEALING
