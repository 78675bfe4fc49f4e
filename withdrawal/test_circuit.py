from dataclasses import replace
from unittest import TestCase

from .circuit import WithdrawCircuit
from .crypto import NullifierScheme
from .field import random_digest
from .note import MerklePath, WithdrawalWitness
from .test_common import compiled, mk_tree


def mk_witness(note, tree, index, scheme=NullifierScheme.NOTE_BOUND, recipient=None):
    return WithdrawalWitness(
        secret_key=note.secret_key,
        note_commitment=note.commitment(),
        merkle_path=tree.path_to(index),
        merkle_root=tree.current_root(),
        nullifier=note.nullifier(scheme),
        recipient=recipient,
    )


class TestWithdrawCircuit(TestCase):
    @classmethod
    def setUpClass(cls):
        cls.height = 2
        cls.notes, cls.tree = mk_tree(cls.height, 3)
        cls.compiled = compiled(cls.height)

    def satisfied(self, witness, compiled=None):
        compiled = compiled or self.compiled
        cs = compiled.constraint_system
        return cs.unsatisfied(cs.generate_witness(compiled.circuit.assign(witness)))

    def test_valid_witness_satisfies(self):
        for i, note in enumerate(self.notes):
            assert self.satisfied(mk_witness(note, self.tree, i)) is None

    def test_public_input_layout(self):
        recipient = random_digest()
        witness = mk_witness(self.notes[1], self.tree, 1, recipient=recipient)
        cs = self.compiled.constraint_system
        values = cs.generate_witness(self.compiled.circuit.assign(witness))
        assert cs.num_public_inputs == 12
        assert cs.public_values(values) == witness.public_inputs().field_vector()

    def test_tampered_sibling(self):
        witness = mk_witness(self.notes[0], self.tree, 0)
        path = witness.merkle_path
        tampered = MerklePath(
            siblings=(random_digest(), *path.siblings[1:]),
            path_indices=path.path_indices,
        )
        _, constraint = self.satisfied(replace(witness, merkle_path=tampered))
        assert constraint.label.startswith("merkle_root")

    def test_wrong_direction(self):
        witness = mk_witness(self.notes[0], self.tree, 0)
        path = witness.merkle_path
        flipped = MerklePath(
            siblings=path.siblings,
            path_indices=(1 - path.path_indices[0], *path.path_indices[1:]),
        )
        assert self.satisfied(replace(witness, merkle_path=flipped)) is not None

    def test_selector_out_of_range(self):
        witness = mk_witness(self.notes[0], self.tree, 0)
        path = witness.merkle_path
        out_of_range = MerklePath(
            siblings=path.siblings,
            path_indices=(2, *path.path_indices[1:]),
        )
        _, constraint = self.satisfied(replace(witness, merkle_path=out_of_range))
        assert constraint.label == "level[0]/path_index"

    def test_wrong_secret(self):
        witness = mk_witness(self.notes[0], self.tree, 0)
        _, constraint = self.satisfied(replace(witness, secret_key=random_digest()))
        assert constraint.label.startswith("merkle_root")

    def test_arbitrary_nullifier(self):
        witness = mk_witness(self.notes[0], self.tree, 0)
        _, constraint = self.satisfied(replace(witness, nullifier=random_digest()))
        assert constraint.label.startswith("nullifier")

    def test_nullifier_scheme_is_compiled_in(self):
        secret_only = compiled(self.height, NullifierScheme.SECRET_ONLY)
        witness = mk_witness(
            self.notes[2], self.tree, 2, scheme=NullifierScheme.SECRET_ONLY
        )
        assert self.satisfied(witness, secret_only) is None
        assert self.satisfied(witness) is not None

    def test_height_zero(self):
        notes, tree = mk_tree(0, 1)
        height_zero = compiled(0)
        assert all("level" not in c.label for c in height_zero.constraint_system.constraints)

        witness = mk_witness(notes[0], tree, 0)
        assert witness.merkle_path.siblings == ()
        assert self.satisfied(witness, height_zero) is None

        _, constraint = self.satisfied(
            replace(witness, merkle_root=random_digest()), height_zero
        )
        assert constraint.label.startswith("merkle_root")

    def test_assign_checks_height(self):
        witness = mk_witness(self.notes[0], self.tree, 0)
        with self.assertRaises(ValueError):
            WithdrawCircuit(tree_height=3).assign(witness)

    def test_circuit_grows_per_level(self):
        sizes = [len(compiled(h).constraint_system.constraints) for h in (0, 1, 2)]
        assert sizes[1] - sizes[0] == sizes[2] - sizes[1] > 0
