"""
The withdrawal constraint system.

For a fixed tree height `h` the circuit proves knowledge of a secret key whose
note commitment sits at some leaf of the Merkle tree with the public root, and
that the public nullifier was derived from that same secret.

Public inputs, in order: merkle_root[4], nullifier[4], recipient[4].
Private inputs: secret_key[4], siblings[h][4], path_indices[h].
"""

import logging
from dataclasses import dataclass

from .constraint_system import CircuitBuilder, ConstraintSystem, LinearCombination
from .crypto import NullifierScheme, merkle_node, note_commitment, nullifier
from .field import DIGEST_SIZE
from .note import WithdrawalWitness

logger = logging.getLogger(__name__)

Signals = list[LinearCombination]


@dataclass
class WithdrawCircuitTargets:
    merkle_root: Signals
    nullifier: Signals
    recipient: Signals
    secret_key: Signals
    siblings: list[Signals]
    path_indices: Signals
    note_commitment: Signals


def _digest_names(name: str) -> list[str]:
    return [f"{name}[{i}]" for i in range(DIGEST_SIZE)]


def _public_digest(builder: CircuitBuilder, name: str) -> Signals:
    return [builder.public_input(n) for n in _digest_names(name)]


def _private_digest(builder: CircuitBuilder, name: str) -> Signals:
    return [builder.private_input(n) for n in _digest_names(name)]


def assert_digest_equal(builder: CircuitBuilder, a: Signals, b: Signals, what: str):
    for i, (x, y) in enumerate(zip(a, b)):
        builder.assert_equal(x, y, f"{what}[{i}]")


def swap_if(builder: CircuitBuilder, bit, cur: Signals, sibling: Signals):
    """
    Returns (sibling, cur) if bit is 1 and (cur, sibling) if bit is 0.
    """
    left = [builder.select(bit, s, c) for c, s in zip(cur, sibling)]
    # left + right == cur + sibling, so the right half stays linear
    right = [c + s - l for c, s, l in zip(cur, sibling, left)]
    return left, right


class WithdrawCircuit:
    def __init__(
        self,
        tree_height: int,
        scheme: NullifierScheme = NullifierScheme.NOTE_BOUND,
    ):
        assert tree_height >= 0, f"tree_height is {tree_height}"
        self.tree_height = tree_height
        self.scheme = scheme

    def build_withdraw_circuit(self, builder: CircuitBuilder) -> WithdrawCircuitTargets:
        merkle_root = _public_digest(builder, "merkle_root")
        public_nullifier = _public_digest(builder, "nullifier")
        # The recipient is only fixed in the public input vector, binding the
        # proof to one payout address.
        recipient = _public_digest(builder, "recipient")

        secret_key = _private_digest(builder, "secret_key")
        siblings = [
            _private_digest(builder, f"siblings[{level}]")
            for level in range(self.tree_height)
        ]
        path_indices = [
            builder.private_input(f"path_indices[{level}]")
            for level in range(self.tree_height)
        ]

        with builder.scope("note_commitment"):
            commitment = list(note_commitment(secret_key, constant=builder.constant))

        cur = commitment
        for level in range(self.tree_height):
            with builder.scope(f"level[{level}]"):
                bit = path_indices[level]
                builder.assert_bool(bit, "path_index")
                left, right = swap_if(builder, bit, cur, siblings[level])
                cur = list(merkle_node(left, right, constant=builder.constant))

        assert_digest_equal(builder, cur, merkle_root, "merkle_root")

        with builder.scope("nullifier"):
            computed_nullifier = nullifier(
                secret_key, commitment, self.scheme, constant=builder.constant
            )
        assert_digest_equal(builder, computed_nullifier, public_nullifier, "nullifier")

        return WithdrawCircuitTargets(
            merkle_root=merkle_root,
            nullifier=public_nullifier,
            recipient=recipient,
            secret_key=secret_key,
            siblings=siblings,
            path_indices=path_indices,
            note_commitment=commitment,
        )

    def compile(self) -> ConstraintSystem:
        builder = CircuitBuilder()
        self.build_withdraw_circuit(builder)
        cs = builder.build()
        logger.info(
            "compiled withdraw circuit height=%d scheme=%s constraints=%d wires=%d",
            self.tree_height,
            self.scheme.value,
            len(cs.constraints),
            cs.num_wires,
        )
        return cs

    def assign(self, witness: WithdrawalWitness) -> dict[str, object]:
        """
        Maps a witness onto the named circuit inputs.

        No validation happens here, a witness that does not satisfy the
        relation produces an assignment that does not satisfy the constraints.
        """
        path = witness.merkle_path
        if len(path.siblings) != self.tree_height or len(path.path_indices) != self.tree_height:
            raise ValueError(
                f"merkle path has {len(path.siblings)} siblings and "
                f"{len(path.path_indices)} indices, circuit height is {self.tree_height}"
            )

        values = {}

        def put(name, d):
            values.update(zip(_digest_names(name), d))

        put("merkle_root", witness.merkle_root)
        put("nullifier", witness.nullifier)
        put("recipient", witness.public_inputs().field_vector()[2 * DIGEST_SIZE :])
        put("secret_key", witness.secret_key)
        for level, (sibling, bit) in enumerate(zip(path.siblings, path.path_indices)):
            put(f"siblings[{level}]", sibling)
            values[f"path_indices[{level}]"] = bit
        return values
