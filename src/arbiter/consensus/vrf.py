"""Seed providers for juror selection.

Juror selection is a pure function of the pool and a seed, so the seed is
the only thing standing between an adversary and a rigged panel. Seeds
come from a pluggable provider:

- FixedSeedProvider: a constant, for tests and reproducible simulations.
- RandomSeedProvider: operating-system randomness.
- VRFSeedProvider: an Ed25519-based verifiable random function. The
  operator cannot choose the output, nobody without the key can predict
  it, and anyone holding the public key can check a dispute's seed after
  the fact.

The VRF is the simplified signature-based construction (hash the input
with a domain separator, sign it, hash the signature into the output), not
full RFC 9381 ECVRF. Ed25519 signatures are deterministic, which gives the
uniqueness property selection needs.
"""

from __future__ import annotations

import hashlib
import secrets
from dataclasses import dataclass
from typing import Any, Protocol, runtime_checkable

from cryptography.exceptions import InvalidSignature
from cryptography.hazmat.primitives.asymmetric.ed25519 import (
    Ed25519PrivateKey,
    Ed25519PublicKey,
)

from .selection import derive_dispute_seed

DOMAIN_SEPARATOR_VRF_PROVE = b"arbiter-vrf-prove-v1"
DOMAIN_SEPARATOR_VRF_HASH = b"arbiter-vrf-hash-v1"

VRF_OUTPUT_SIZE = 32


@runtime_checkable
class SeedProvider(Protocol):
    """Supplies the selection seed for a dispute about to be created."""

    def seed_for(self, dispute_id: int) -> bytes: ...


class FixedSeedProvider:
    """Same entropy for every dispute; the dispute id still varies the seed."""

    def __init__(self, entropy: bytes = b"arbiter-fixed-seed"):
        self.entropy = entropy

    def seed_for(self, dispute_id: int) -> bytes:
        return derive_dispute_seed(self.entropy, dispute_id)


class RandomSeedProvider:
    """Fresh operating-system randomness for each dispute."""

    def seed_for(self, dispute_id: int) -> bytes:
        return derive_dispute_seed(secrets.token_bytes(32), dispute_id)


@dataclass
class VRFOutput:
    """A VRF output together with the signature proving it."""

    output: bytes
    proof: bytes

    def to_dict(self) -> dict[str, Any]:
        return {"output": self.output.hex(), "proof": self.proof.hex()}

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> VRFOutput:
        return cls(output=bytes.fromhex(data["output"]), proof=bytes.fromhex(data["proof"]))


def _vrf_input(alpha: bytes) -> bytes:
    return hashlib.sha512(DOMAIN_SEPARATOR_VRF_PROVE + alpha).digest()


def _vrf_output(signature: bytes, input_hash: bytes) -> bytes:
    return hashlib.sha512(DOMAIN_SEPARATOR_VRF_HASH + signature + input_hash).digest()[:VRF_OUTPUT_SIZE]


class VRF:
    """Verifiable random function over an Ed25519 key.

    Example:
        >>> vrf = VRF.generate()
        >>> out = vrf.prove(b"dispute-7")
        >>> VRF.verify(vrf.public_key_bytes, b"dispute-7", out)
        True
    """

    def __init__(self, private_key: Ed25519PrivateKey):
        self._private_key = private_key
        self._public_key = private_key.public_key()

    @classmethod
    def generate(cls) -> VRF:
        return cls(Ed25519PrivateKey.generate())

    @classmethod
    def from_private_bytes(cls, private_key_bytes: bytes) -> VRF:
        if len(private_key_bytes) != 32:
            raise ValueError(f"Private key must be 32 bytes, got {len(private_key_bytes)}")
        return cls(Ed25519PrivateKey.from_private_bytes(private_key_bytes))

    @property
    def public_key_bytes(self) -> bytes:
        return self._public_key.public_bytes_raw()

    def prove(self, alpha: bytes) -> VRFOutput:
        input_hash = _vrf_input(alpha)
        signature = self._private_key.sign(input_hash)
        return VRFOutput(output=_vrf_output(signature, input_hash), proof=signature)

    @staticmethod
    def verify(public_key_bytes: bytes, alpha: bytes, result: VRFOutput) -> bool:
        """Check that ``result`` was produced by the key for ``alpha``."""
        input_hash = _vrf_input(alpha)
        try:
            public_key = Ed25519PublicKey.from_public_bytes(public_key_bytes)
            public_key.verify(result.proof, input_hash)
        except (InvalidSignature, ValueError):
            return False
        return result.output == _vrf_output(result.proof, input_hash)


class VRFSeedProvider:
    """Seeds derived from a VRF evaluated on the dispute counter.

    Every proof is kept so an auditor can replay a dispute's selection with
    ``verify_seed``.
    """

    def __init__(self, vrf: VRF, domain: bytes = b"arbiter"):
        self.vrf = vrf
        self.domain = domain
        self.proofs: dict[int, VRFOutput] = {}

    def _alpha(self, dispute_id: int) -> bytes:
        return self.domain + b":" + dispute_id.to_bytes(8, "big")

    def seed_for(self, dispute_id: int) -> bytes:
        result = self.vrf.prove(self._alpha(dispute_id))
        self.proofs[dispute_id] = result
        return derive_dispute_seed(result.output, dispute_id)

    def verify_seed(self, public_key_bytes: bytes, dispute_id: int, seed: bytes) -> bool:
        result = self.proofs.get(dispute_id)
        if result is None:
            return False
        if not VRF.verify(public_key_bytes, self._alpha(dispute_id), result):
            return False
        return derive_dispute_seed(result.output, dispute_id) == seed
