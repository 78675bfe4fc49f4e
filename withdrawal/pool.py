"""
The withdrawal acceptance logic surrounding the proving core.

A pool owns one deposit tree, the window of roots withdrawals may be anchored
to, and the nullifier ledger. A withdrawal is accepted when its root is still
in the window, its proof verifies, and its nullifier was never seen before.
"""

import logging
from typing import Optional

from .accumulator import MerkleAccumulator
from .backend import ProvingBackend
from .config import Config
from .ledger import FileNullifierLedger, InMemoryNullifierLedger, NullifierLedger, RootHistory
from .note import MerkleRoot, NoteCommitment
from .prover import WithdrawalProver
from .record import ProofRecord
from .registry import CircuitRegistry
from .verifier import VerificationFailure, WithdrawalVerifier

logger = logging.getLogger(__name__)


class WithdrawalPool:
    def __init__(
        self,
        config: Config,
        backend: ProvingBackend,
        ledger: Optional[NullifierLedger] = None,
        registry: Optional[CircuitRegistry] = None,
    ):
        self.config = config
        self.backend = backend
        if ledger is None:
            ledger = (
                FileNullifierLedger(config.ledger.path)
                if config.ledger.path is not None
                else InMemoryNullifierLedger()
            )
        self.ledger = ledger
        if registry is None:
            registry = CircuitRegistry(backend, config.nullifier.scheme)
        assert (
            registry.scheme == config.nullifier.scheme
        ), f"registry compiles {registry.scheme}, config asks for {config.nullifier.scheme}"
        self.circuit = registry.get(config.tree.height)
        self.accumulator = MerkleAccumulator(config.tree.height)
        self.roots = RootHistory(config.roots.history_size)
        self.roots.push(self.accumulator.current_root())

    def deposit(self, commitment: NoteCommitment) -> int:
        index = self.accumulator.insert(commitment)
        self.roots.push(self.accumulator.current_root())
        logger.debug("deposit at leaf %d", index)
        return index

    def current_root(self) -> MerkleRoot:
        return self.accumulator.current_root()

    def prover(self) -> WithdrawalProver:
        return WithdrawalProver(self.circuit, self.backend)

    def verifier(self) -> WithdrawalVerifier:
        return WithdrawalVerifier(self.circuit, self.backend)

    def withdraw(self, record: ProofRecord):
        """
        Accepts a withdrawal, permanently spending its nullifier.

        Raises `WithdrawalRejected` if the root is unknown or the proof is
        invalid, and `NullifierAlreadySpent` if the note was already withdrawn.
        """
        try:
            self.verifier().verify(record)
            if record.public_inputs.merkle_root not in self.roots:
                raise VerificationFailure()
        except VerificationFailure as e:
            logger.warning("rejected withdrawal")
            raise WithdrawalRejected from e

        if not self.ledger.check_and_record(record.public_inputs.nullifier):
            logger.warning("rejected double spend")
            raise NullifierAlreadySpent


class WithdrawalRejected(Exception):
    def __str__(self):
        return "Withdrawal rejected"


class NullifierAlreadySpent(Exception):
    def __str__(self):
        return "Nullifier already spent"
