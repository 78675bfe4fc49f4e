import logging
from typing import Optional

from .backend import ProvingBackend, UnsatisfiedConstraint
from .crypto import note_commitment, nullifier
from .field import Digest, digests_equal, is_digest
from .note import MerklePath, MerkleRoot, NoteCommitment, SecretKey, WithdrawalWitness
from .record import ProofRecord
from .registry import CompiledCircuit

logger = logging.getLogger(__name__)


class InvalidWitness(Exception):
    pass


class ProvingFailure(Exception):
    pass


class WithdrawalProver:
    """
    Builds withdrawal witnesses and proves them against one compiled circuit.

    Every precondition is checked locally before proving, a doomed witness is
    rejected with `InvalidWitness` instead of paying the proving cost.
    """

    def __init__(self, circuit: CompiledCircuit, backend: ProvingBackend):
        self.circuit = circuit
        self.backend = backend

    @property
    def height(self) -> int:
        return self.circuit.height

    def build_witness(
        self,
        secret_key: SecretKey,
        note_commitment: NoteCommitment,
        merkle_root: MerkleRoot,
        merkle_path: MerklePath,
        recipient: Optional[Digest] = None,
    ) -> WithdrawalWitness:
        if not is_digest(secret_key):
            raise InvalidWitness("secret key is not a digest")
        if not is_digest(note_commitment):
            raise InvalidWitness("note commitment is not a digest")
        witness = WithdrawalWitness(
            secret_key=secret_key,
            note_commitment=note_commitment,
            merkle_path=merkle_path,
            merkle_root=merkle_root,
            nullifier=self._derive_nullifier(secret_key, note_commitment),
            recipient=recipient,
        )
        self.check(witness)
        return witness

    def _derive_nullifier(self, secret_key: SecretKey, commitment: NoteCommitment):
        return nullifier(secret_key, commitment, self.circuit.scheme)

    def check(self, witness: WithdrawalWitness):
        """
        Raises `InvalidWitness` unless the witness satisfies the withdrawal
        relation for this circuit.
        """
        path = witness.merkle_path
        if not isinstance(path, MerklePath):
            raise InvalidWitness("merkle path is malformed")
        if len(path.siblings) != self.height or len(path.path_indices) != self.height:
            raise InvalidWitness(
                f"merkle path has {len(path.siblings)} siblings and "
                f"{len(path.path_indices)} indices, expected {self.height}"
            )
        for level, bit in enumerate(path.path_indices):
            if type(bit) is not int or bit not in (0, 1):
                raise InvalidWitness(f"path index at level {level} is not a bit: {bit!r}")
        for level, sibling in enumerate(path.siblings):
            if not is_digest(sibling):
                raise InvalidWitness(f"sibling at level {level} is not a digest")
        for name in ("secret_key", "note_commitment", "merkle_root", "nullifier"):
            if not is_digest(getattr(witness, name)):
                raise InvalidWitness(f"{name} is not a digest")
        if witness.recipient is not None and not is_digest(witness.recipient):
            raise InvalidWitness("recipient is not a digest")

        if not digests_equal(note_commitment(witness.secret_key), witness.note_commitment):
            raise InvalidWitness("note commitment does not open to the secret key")
        if not digests_equal(path.compute_root(witness.note_commitment), witness.merkle_root):
            raise InvalidWitness("merkle path does not lead to the merkle root")
        expected = self._derive_nullifier(witness.secret_key, witness.note_commitment)
        if not digests_equal(expected, witness.nullifier):
            raise InvalidWitness("nullifier is not derived from the secret key")

    def prove(self, witness: WithdrawalWitness) -> ProofRecord:
        self.check(witness)
        cs = self.circuit.constraint_system
        values = self.circuit.circuit.assign(witness)
        try:
            proof = self.backend.prove(
                self.circuit.proving_key, cs.generate_witness(values)
            )
        except UnsatisfiedConstraint as e:
            # the witness passed every local check, so the circuit or the
            # witness builder is broken
            logger.error("valid witness failed to prove: %s", e)
            raise ProvingFailure(str(e)) from e

        logger.debug("proved withdrawal at height %d", self.height)
        return ProofRecord(public_inputs=witness.public_inputs(), proof=proof)
