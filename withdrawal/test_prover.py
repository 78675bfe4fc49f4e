from dataclasses import replace
from unittest import TestCase

from .backend import MockProvingBackend, UnsatisfiedConstraint
from .field import digests_equal, random_digest
from .note import MerklePath, WithdrawalWitness
from .prover import InvalidWitness, ProvingFailure, WithdrawalProver
from .test_common import BACKEND, compiled, mk_tree


class BrokenBackend(MockProvingBackend):
    def prove(self, pk, witness):
        raise UnsatisfiedConstraint(0, pk.constraint_system.constraints[0])


class TestWithdrawalProver(TestCase):
    @classmethod
    def setUpClass(cls):
        cls.notes, cls.tree = mk_tree(2, 4)
        cls.prover = WithdrawalProver(compiled(2), BACKEND)

    def build(self, index=1, **kwargs):
        note = self.notes[index]
        args = dict(
            secret_key=note.secret_key,
            note_commitment=note.commitment(),
            merkle_root=self.tree.current_root(),
            merkle_path=self.tree.path_to(index),
        )
        args.update(kwargs)
        return self.prover.build_witness(**args)

    def test_build_witness(self):
        recipient = random_digest()
        witness = self.build(recipient=recipient)
        assert digests_equal(witness.nullifier, self.notes[1].nullifier())
        assert witness.public_inputs().recipient == recipient

    def test_prove(self):
        witness = self.build()
        record = self.prover.prove(witness)
        assert record.public_inputs == witness.public_inputs()
        assert len(record.proof.data) > 0

    def test_commitment_must_open(self):
        with self.assertRaises(InvalidWitness):
            self.build(note_commitment=self.notes[2].commitment())

    def test_root_must_match(self):
        with self.assertRaises(InvalidWitness):
            self.build(merkle_root=random_digest())

    def test_tampered_sibling(self):
        path = self.tree.path_to(1)
        tampered = MerklePath(
            siblings=(path.siblings[0], random_digest()),
            path_indices=path.path_indices,
        )
        with self.assertRaises(InvalidWitness):
            self.build(merkle_path=tampered)

    def test_selector_must_be_a_bit(self):
        path = self.tree.path_to(1)
        for bad in (2, -1, True):
            out_of_range = MerklePath(
                siblings=path.siblings, path_indices=(bad, path.path_indices[1])
            )
            with self.assertRaises(InvalidWitness):
                self.build(merkle_path=out_of_range)

    def test_path_shape(self):
        path = self.tree.path_to(1)
        with self.assertRaises(InvalidWitness):
            self.build(
                merkle_path=MerklePath(path.siblings[:1], path.path_indices[:1])
            )
        with self.assertRaises(InvalidWitness):
            self.build(merkle_path=MerklePath(path.siblings, path.path_indices[:1]))

    def test_malformed_digests(self):
        with self.assertRaises(InvalidWitness):
            self.build(secret_key=(1, 2, 3, 4))
        with self.assertRaises(InvalidWitness):
            self.build(recipient=("not", "a", "digest"))

    def test_prove_rechecks_witness(self):
        witness = self.build()
        with self.assertRaises(InvalidWitness):
            self.prover.prove(replace(witness, nullifier=random_digest()))

    def test_bypassing_checks_fails_to_prove(self):
        # a prover skipping the local checks still cannot prove a tampered path
        note = self.notes[1]
        path = self.tree.path_to(1)
        witness = WithdrawalWitness(
            secret_key=note.secret_key,
            note_commitment=note.commitment(),
            merkle_path=MerklePath((random_digest(), path.siblings[1]), path.path_indices),
            merkle_root=self.tree.current_root(),
            nullifier=note.nullifier(),
        )
        c = self.prover.circuit
        assignment = c.constraint_system.generate_witness(c.circuit.assign(witness))
        with self.assertRaises(UnsatisfiedConstraint):
            BACKEND.prove(c.proving_key, assignment)

    def test_backend_failure(self):
        prover = WithdrawalProver(compiled(2), BrokenBackend())
        with self.assertRaises(ProvingFailure):
            prover.prove(self.build())
