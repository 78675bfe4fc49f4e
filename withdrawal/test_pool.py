import tempfile
from concurrent.futures import ThreadPoolExecutor
from dataclasses import replace
from pathlib import Path
from unittest import TestCase

from .config import Config, LedgerConfig, RootsConfig
from .crypto import NullifierScheme
from .field import random_digest
from .ledger import FileNullifierLedger
from .note import Note
from .pool import NullifierAlreadySpent, WithdrawalPool, WithdrawalRejected
from .record import ProofRecord
from .test_common import BACKEND, REGISTRIES
from .verifier import VerificationFailure


def mk_pool(config: Config, **kwargs) -> WithdrawalPool:
    return WithdrawalPool(
        config, BACKEND, registry=REGISTRIES[config.nullifier.scheme], **kwargs
    )


def prove(pool: WithdrawalPool, note: Note, index: int, recipient=None) -> ProofRecord:
    prover = pool.prover()
    return prover.prove(
        prover.build_witness(
            secret_key=note.secret_key,
            note_commitment=note.commitment(),
            merkle_root=pool.current_root(),
            merkle_path=pool.accumulator.path_to(index),
            recipient=recipient,
        )
    )


class TestWithdrawalFlow(TestCase):
    def test_withdraw_leaf_5_of_16(self):
        pool = mk_pool(Config.default(4))
        notes = [Note.random() for _ in range(16)]
        roots = []
        for i, note in enumerate(notes):
            assert pool.deposit(note.commitment()) == i
            roots.append(pool.current_root())

        record = prove(pool, notes[5], 5, recipient=random_digest())

        # verification is idempotent and side-effect free
        pool.verifier().verify(record)
        pool.verifier().verify(record)

        # the same proof against the root the tree had after leaf 6 fails
        foreign = replace(
            record, public_inputs=replace(record.public_inputs, merkle_root=roots[6])
        )
        with self.assertRaises(VerificationFailure):
            pool.verifier().verify(foreign)
        with self.assertRaises(WithdrawalRejected):
            pool.withdraw(foreign)

        pool.withdraw(record)
        assert pool.ledger.has_seen(notes[5].nullifier())

        with self.assertRaises(NullifierAlreadySpent):
            pool.withdraw(record)

    def test_published_record_round_trip(self):
        pool = mk_pool(Config.default(2))
        note = Note.random()
        pool.deposit(note.commitment())
        published = prove(pool, note, 0).encode()
        pool.withdraw(ProofRecord.decode(published))

    def test_root_history(self):
        config = replace(Config.default(2), roots=RootsConfig(history_size=2))
        pool = mk_pool(config)
        note = Note.random()
        pool.deposit(note.commitment())
        record = prove(pool, note, 0)

        # one more deposit keeps the old root inside the window
        pool.deposit(Note.random().commitment())
        assert record.public_inputs.merkle_root in pool.roots

        # the next one pushes it out
        pool.deposit(Note.random().commitment())
        with self.assertRaises(WithdrawalRejected):
            pool.withdraw(record)

    def test_concurrent_double_spend(self):
        pool = mk_pool(Config.default(2))
        note = Note.random()
        pool.deposit(note.commitment())
        record = prove(pool, note, 0)

        def withdraw(_):
            try:
                pool.withdraw(record)
                return True
            except NullifierAlreadySpent:
                return False

        with ThreadPoolExecutor(max_workers=4) as executor:
            results = list(executor.map(withdraw, range(4)))
        assert results.count(True) == 1

    def test_secret_only_scheme(self):
        config = Config.default(2)
        config.nullifier.scheme = NullifierScheme.SECRET_ONLY
        pool = mk_pool(config)
        note = Note.random()
        pool.deposit(note.commitment())
        record = prove(pool, note, 0)
        assert record.public_inputs.nullifier == note.nullifier(NullifierScheme.SECRET_ONLY)
        pool.withdraw(record)

    def test_height_zero(self):
        pool = mk_pool(Config.default(0))
        note = Note.random()
        pool.deposit(note.commitment())
        record = prove(pool, note, 0)
        assert record.public_inputs.merkle_root == note.commitment()
        pool.withdraw(record)

    def test_file_ledger_from_config(self):
        with tempfile.TemporaryDirectory() as tmp:
            path = str(Path(tmp) / "nullifiers")
            config = replace(Config.default(1), ledger=LedgerConfig(path=path))
            pool = mk_pool(config)
            assert isinstance(pool.ledger, FileNullifierLedger)

            note = Note.random()
            pool.deposit(note.commitment())
            record = prove(pool, note, 0)
            pool.withdraw(record)

            # a second pool sharing the ledger file sees the spent nullifier
            other = mk_pool(config)
            other.deposit(note.commitment())
            with self.assertRaises(NullifierAlreadySpent):
                other.withdraw(record)
