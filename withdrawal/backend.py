"""
This module provides the interface to the proving system that turns a
constraint system and a witness into a proof, and checks proofs against public
inputs.

The assumptions of this module:
- the backend sees the circuit only through a compiled `ConstraintSystem`
- public inputs are the field vector `ConstraintSystem.public_values(witness)`
- proofs are opaque byte blobs

For ergonomics, one should wrap a backend in the prover and verifier adapters
that understand the API of the withdrawal circuit.
"""

import hmac
import logging
import secrets
from dataclasses import dataclass, field
from hashlib import blake2b
from typing import Optional, Sequence

from .constraint_system import Constraint, ConstraintSystem, Witness
from .field import Field

logger = logging.getLogger(__name__)

_NONCE_SIZE = 32
_TAG_SIZE = 32
PROOF_SIZE = _NONCE_SIZE + _TAG_SIZE


@dataclass(frozen=True)
class Proof:
    data: bytes


@dataclass(frozen=True)
class ProvingKey:
    constraint_system: ConstraintSystem
    secret: bytes = field(repr=False)


@dataclass(frozen=True)
class VerificationKey:
    circuit_digest: bytes
    num_public_inputs: int
    secret: bytes = field(repr=False)


class UnsatisfiedConstraint(Exception):
    def __init__(self, index: int, constraint: Constraint):
        super().__init__(index, constraint.label)
        self.index = index
        self.constraint = constraint

    def __str__(self):
        return f"Constraint {self.index} ({self.constraint.label}) is not satisfied"


class ProvingBackend:
    def setup(
        self, cs: ConstraintSystem, seed: Optional[bytes] = None
    ) -> tuple[ProvingKey, VerificationKey]:
        raise NotImplementedError()

    def prove(self, pk: ProvingKey, witness: Witness) -> Proof:
        raise NotImplementedError()

    def verify(
        self, vk: VerificationKey, public_inputs: Sequence[int], proof: Proof
    ) -> bool:
        raise NotImplementedError()


class MockProvingBackend(ProvingBackend):
    """
    HACK: a designated-verifier stand-in for a succinct proving system.

    `prove` refuses any witness that violates a constraint, then authenticates
    the circuit digest and the public inputs with a keyed BLAKE2b tag. The key
    is the setup secret held by both the proving and the verification key, so a
    proof verifies only for the exact circuit and public inputs it was made for.

    Proofs carry a fresh random nonce, so two proofs of the same statement are
    not byte-identical.
    """

    def setup(
        self, cs: ConstraintSystem, seed: Optional[bytes] = None
    ) -> tuple[ProvingKey, VerificationKey]:
        if seed is None:
            secret = secrets.token_bytes(32)
        else:
            secret = blake2b(seed, digest_size=32, person=b"WITHDRAW_SETUP").digest()
        pk = ProvingKey(constraint_system=cs, secret=secret)
        vk = VerificationKey(
            circuit_digest=cs.digest,
            num_public_inputs=cs.num_public_inputs,
            secret=secret,
        )
        return pk, vk

    def prove(self, pk: ProvingKey, witness: Witness) -> Proof:
        cs = pk.constraint_system
        if (failure := cs.unsatisfied(witness)) is not None:
            raise UnsatisfiedConstraint(*failure)

        nonce = secrets.token_bytes(_NONCE_SIZE)
        tag = self._tag(pk.secret, cs.digest, nonce, cs.public_values(witness))
        logger.debug("proved %d constraints", len(cs.constraints))
        return Proof(nonce + tag)

    def verify(
        self, vk: VerificationKey, public_inputs: Sequence[int], proof: Proof
    ) -> bool:
        if not isinstance(proof, Proof) or len(proof.data) != PROOF_SIZE:
            return False
        if len(public_inputs) != vk.num_public_inputs:
            return False
        if any(not isinstance(v, int) or not 0 <= v < Field.ORDER for v in public_inputs):
            return False

        nonce, tag = proof.data[:_NONCE_SIZE], proof.data[_NONCE_SIZE:]
        expected = self._tag(vk.secret, vk.circuit_digest, nonce, public_inputs)
        return hmac.compare_digest(tag, expected)

    @staticmethod
    def _tag(
        secret: bytes, circuit_digest: bytes, nonce: bytes, public_inputs: Sequence[int]
    ) -> bytes:
        h = blake2b(key=secret, digest_size=_TAG_SIZE, person=b"WITHDRAW_PROOF")
        h.update(circuit_digest)
        h.update(nonce)
        h.update(len(public_inputs).to_bytes(4, byteorder="big"))
        for v in public_inputs:
            h.update(v.to_bytes(32, byteorder="big"))
        return h.digest()
