"""
The finite-field value model shared by the off-circuit world and the circuit.

All note data, hashes and Merkle path elements are vectors over the BN254
scalar field. Hashes are 4-element digests.
"""

from typing import Sequence, TypeAlias

from keum import grumpkin


# !Important! The field here must be in agreement with the proving system.
# Grumpkin's base field is the BN254 scalar field.
Field = grumpkin.Fq

DIGEST_SIZE = 4

Digest: TypeAlias = tuple[Field, Field, Field, Field]


def field(value: int) -> Field:
    return Field(value % Field.ORDER)


def digest(*values) -> Digest:
    assert len(values) == DIGEST_SIZE, f"digest takes {DIGEST_SIZE} values, got {len(values)}"
    return tuple(v if isinstance(v, Field) else field(v) for v in values)


def zero_digest() -> Digest:
    return digest(0, 0, 0, 0)


def random_digest() -> Digest:
    return tuple(Field.random() for _ in range(DIGEST_SIZE))


def is_digest(value) -> bool:
    return (
        isinstance(value, tuple)
        and len(value) == DIGEST_SIZE
        and all(isinstance(v, Field) for v in value)
    )


def digest_to_ints(d: Digest) -> list[int]:
    return [v.v for v in d]


def digests_equal(a: Sequence[Field], b: Sequence[Field]) -> bool:
    return len(a) == len(b) and all(x.v == y.v for x, y in zip(a, b))


def digest_hex(d: Digest) -> list[str]:
    return [hex(v.v) for v in d]


def digest_from_hex(values: list[str]) -> Digest:
    if not isinstance(values, list) or not all(isinstance(v, str) for v in values):
        raise ValueError("digest must be a list of hex strings")
    ints = [int(v, 16) for v in values]
    if len(ints) != DIGEST_SIZE:
        raise ValueError(f"expected {DIGEST_SIZE} digest elements, got {len(ints)}")
    if any(not 0 <= v < Field.ORDER for v in ints):
        raise ValueError("digest element out of field range")
    return digest(*ints)
