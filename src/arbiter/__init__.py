# SPDX-License-Identifier: MIT
# Copyright (c) 2026 Arbiter Contributors

"""Arbiter - stake-weighted commit-reveal arbitration engine.

Jurors stake tokens into a shared ledger. Each dispute draws a small
stake-weighted panel, which votes in two phases (hidden commit, then
reveal). The tally rules by majority, takes a share of stake from jurors
who voted against the ruling or never revealed, and pays it (plus the
client's fee) to the majority.

Layout:
  core/       ledger, disputes, commit-reveal, tally, config, logging, errors
  consensus/  weighted juror selection and seed providers
  engine.py   the transactional facade
  cli/        ``arbiter`` command line (parameters, scenario simulator)
"""

__version__ = "0.1.0"

from .core.commit_reveal import compute_commitment, generate_salt
from .core.config import ProtocolParams
from .core.disputes import DisputeState
from .engine import ArbitrationEngine

__all__ = [
    "ArbitrationEngine",
    "DisputeState",
    "ProtocolParams",
    "compute_commitment",
    "generate_salt",
]
