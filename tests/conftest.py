"""Global test fixtures for the Arbiter test suite."""

from __future__ import annotations

import os
from datetime import timedelta

import pytest

from arbiter.collaborators import InMemoryToken, RecordingClient
from arbiter.consensus.vrf import FixedSeedProvider
from arbiter.core.clock import ManualClock
from arbiter.core.commit_reveal import compute_commitment
from arbiter.core.config import ProtocolParams, clear_config_cache
from arbiter.engine import ArbitrationEngine

FEE = 100
CLIENT = "client"


# ============================================================================
# Environment
# ============================================================================


@pytest.fixture
def clean_env(monkeypatch):
    """Remove all ARBITER_ environment variables."""
    for key in list(os.environ.keys()):
        if key.startswith("ARBITER_"):
            monkeypatch.delenv(key, raising=False)
    clear_config_cache()
    yield
    clear_config_cache()


# ============================================================================
# Collaborators
# ============================================================================


@pytest.fixture
def clock():
    return ManualClock()


@pytest.fixture
def token():
    return InMemoryToken()


@pytest.fixture
def client():
    return RecordingClient()


@pytest.fixture
def params():
    return ProtocolParams(
        penalty_percent=20,
        commit_window=timedelta(days=1),
        reveal_window=timedelta(days=1),
        jurors_per_dispute=3,
        arbitration_fee=FEE,
    )


@pytest.fixture
def engine(token, params, clock):
    return ArbitrationEngine(
        token,
        params=params,
        seed_provider=FixedSeedProvider(b"test-seed"),
        clock=clock,
    )


@pytest.fixture
def staked_engine(engine, token):
    """Engine with exactly three jurors staked 1000 each."""
    for juror in ("alice", "bob", "carol"):
        token.mint(juror, 1000)
        engine.deposit(juror, 1000)
    return engine


@pytest.fixture
def open_dispute(staked_engine, token, client):
    """A fresh dispute on the three-juror pool; returns its id."""
    token.mint(CLIENT, FEE)
    return staked_engine.create_dispute(CLIENT, 2, FEE, client)


# ============================================================================
# Voting helpers
# ============================================================================


class VotingDriver:
    """Drives jurors and the clock through a dispute."""

    def __init__(self, engine: ArbitrationEngine, clock: ManualClock):
        self.engine = engine
        self.clock = clock
        self.salts: dict[tuple[int, str], str] = {}

    def commit(self, dispute_id: int, juror: str, choice: int) -> str:
        salt = f"salt-{juror}-{dispute_id}"
        self.salts[(dispute_id, juror)] = salt
        self.engine.commit(dispute_id, juror, compute_commitment(dispute_id, choice, salt))
        return salt

    def reveal(self, dispute_id: int, juror: str, choice: int) -> None:
        self.engine.reveal(dispute_id, juror, choice, self.salts[(dispute_id, juror)])

    def to_reveal_phase(self, dispute_id: int) -> None:
        self.clock.set(self.engine.get_dispute(dispute_id).commit_deadline)

    def to_tally_phase(self, dispute_id: int) -> None:
        self.clock.set(self.engine.get_dispute(dispute_id).reveal_deadline)


@pytest.fixture
def driver(staked_engine, clock):
    return VotingDriver(staked_engine, clock)
