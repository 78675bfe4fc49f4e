from dataclasses import dataclass, field
from typing import Optional, TypeAlias

from .crypto import NullifierScheme, merkle_node, note_commitment, nullifier
from .field import (
    DIGEST_SIZE,
    Digest,
    digest_to_ints,
    is_digest,
    random_digest,
    zero_digest,
)

SecretKey: TypeAlias = Digest
NoteCommitment: TypeAlias = Digest
Nullifier: TypeAlias = Digest
MerkleRoot: TypeAlias = Digest


@dataclass(frozen=True)
class Note:
    """
    A single deposit. Only the commitment is ever published at deposit time.
    """

    secret_key: SecretKey

    def __post_init__(self):
        assert is_digest(self.secret_key), f"secret_key is {self.secret_key!r}"

    @staticmethod
    def random() -> "Note":
        return Note(secret_key=random_digest())

    def commitment(self) -> NoteCommitment:
        return note_commitment(self.secret_key)

    def nullifier(self, scheme: NullifierScheme = NullifierScheme.NOTE_BOUND) -> Nullifier:
        """
        The nullifier published when withdrawing this note. Revealing it marks
        the note as spent without revealing which leaf it was.
        """
        return nullifier(self.secret_key, self.commitment(), scheme)

    def __repr__(self):
        # keep secrets out of logs and tracebacks
        return "Note(secret_key=<hidden>)"


@dataclass(frozen=True)
class MerklePath:
    # siblings[level] is the sibling digest at `level`, 0 being the leaf level
    siblings: tuple[Digest, ...]
    # path_indices[level] is 0 if the accumulated hash is the left child, 1 if it is the right
    path_indices: tuple[int, ...]

    @property
    def height(self) -> int:
        return len(self.siblings)

    def is_well_formed(self) -> bool:
        return (
            len(self.siblings) == len(self.path_indices)
            and all(is_digest(s) for s in self.siblings)
            and all(type(b) is int and b in (0, 1) for b in self.path_indices)
        )

    @property
    def leaf_index(self) -> int:
        return sum(b << level for level, b in enumerate(self.path_indices))

    def compute_root(self, leaf: Digest) -> MerkleRoot:
        """
        Fold the siblings from the leaf upward.
        """
        assert self.is_well_formed()
        cur = leaf
        for sibling, bit in zip(self.siblings, self.path_indices):
            if bit:
                cur = merkle_node(sibling, cur)
            else:
                cur = merkle_node(cur, sibling)
        return cur


@dataclass(frozen=True)
class PublicInputs:
    """
    The only values visible to the verifier and to the nullifier ledger.

    The field vector layout `merkle_root || nullifier || recipient` is part of
    the protocol. An absent recipient is encoded as the zero digest.
    """

    merkle_root: MerkleRoot
    nullifier: Nullifier
    recipient: Optional[Digest] = None

    def __post_init__(self):
        assert is_digest(self.merkle_root), f"merkle_root is {self.merkle_root!r}"
        assert is_digest(self.nullifier), f"nullifier is {self.nullifier!r}"
        assert self.recipient is None or is_digest(
            self.recipient
        ), f"recipient is {self.recipient!r}"

    def field_vector(self) -> list[int]:
        recipient = self.recipient if self.recipient is not None else zero_digest()
        return [
            *digest_to_ints(self.merkle_root),
            *digest_to_ints(self.nullifier),
            *digest_to_ints(recipient),
        ]

    def __eq__(self, other):
        if not isinstance(other, PublicInputs):
            return NotImplemented
        return self.field_vector() == other.field_vector()

    def __hash__(self):
        return hash(tuple(self.field_vector()))


@dataclass(frozen=True)
class WithdrawalWitness:
    secret_key: SecretKey = field(repr=False)
    note_commitment: NoteCommitment
    merkle_path: MerklePath
    merkle_root: MerkleRoot
    nullifier: Nullifier
    recipient: Optional[Digest] = None

    def public_inputs(self) -> PublicInputs:
        return PublicInputs(
            merkle_root=self.merkle_root,
            nullifier=self.nullifier,
            recipient=self.recipient,
        )


def nullifier_key(nf: Nullifier) -> str:
    """
    Canonical text form of a nullifier, used as the ledger key.
    """
    assert len(nf) == DIGEST_SIZE
    return "".join(f"{v.v:064x}" for v in nf)

