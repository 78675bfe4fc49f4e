import logging

from .backend import Proof, ProvingBackend
from .note import PublicInputs
from .record import ProofRecord
from .registry import CompiledCircuit

logger = logging.getLogger(__name__)


class VerificationFailure(Exception):
    # A rejected proof never says why, "bad proof" and "stale root" must look
    # the same to whoever submitted it.
    def __str__(self):
        return "Withdrawal rejected"


class WithdrawalVerifier:
    def __init__(self, circuit: CompiledCircuit, backend: ProvingBackend):
        self.circuit = circuit
        self.backend = backend

    def verify(self, record: ProofRecord):
        """
        Checks a published proof record against the verification key.

        Returns on success and raises `VerificationFailure` otherwise. Has no
        side effects, nullifier uniqueness is checked by the caller afterwards.
        """
        if not isinstance(record, ProofRecord):
            raise VerificationFailure()
        if not isinstance(record.public_inputs, PublicInputs) or not isinstance(
            record.proof, Proof
        ):
            raise VerificationFailure()

        ok = self.backend.verify(
            self.circuit.verification_key,
            record.public_inputs.field_vector(),
            record.proof,
        )
        if not ok:
            logger.debug("proof rejected at height %d", self.circuit.height)
            raise VerificationFailure()
