"""Juror selection and the randomness that drives it."""

from .selection import derive_dispute_seed, draw_point, select_jurors
from .vrf import (
    VRF,
    FixedSeedProvider,
    RandomSeedProvider,
    SeedProvider,
    VRFOutput,
    VRFSeedProvider,
)

__all__ = [
    "VRF",
    "FixedSeedProvider",
    "RandomSeedProvider",
    "SeedProvider",
    "VRFOutput",
    "VRFSeedProvider",
    "derive_dispute_seed",
    "draw_point",
    "select_jurors",
]
