"""
The arithmetic hash used for note commitments, nullifiers and Merkle nodes.

The permutation is written once over values supporting `+` and `*`. Off-circuit
it runs on `Field` elements; inside a circuit it runs on `LinearCombination`s,
so the prover's local checks and the constraint system cannot drift apart.
"""

from enum import Enum

import poseidon

from .field import DIGEST_SIZE, Field, field


# !Important! These parameters are part of the protocol, changing any of them
# changes every commitment, nullifier and root.
WIDTH = 9
RATE = 8
ALPHA = 5


def build_poseidon() -> poseidon.Poseidon:
    return poseidon.Poseidon(
        p=Field.ORDER,
        security_level=128,
        alpha=ALPHA,
        input_rate=RATE,
        t=WIDTH,
    )


# Only the parameters come from the library, `permute` below also runs over
# circuit signals.
_POSEIDON = build_poseidon()

FULL_ROUNDS = _POSEIDON.full_round
PARTIAL_ROUNDS = _POSEIDON.partial_round

_rc = [Field(int(c)) for c in _POSEIDON.rc_field]
ROUND_CONSTANTS = [_rc[i : i + WIDTH] for i in range(0, len(_rc), WIDTH)]
MDS = [[Field(int(m)) for m in row] for row in _POSEIDON.mds_matrix]

assert len(ROUND_CONSTANTS) == FULL_ROUNDS + PARTIAL_ROUNDS
assert all(len(row) == WIDTH for row in ROUND_CONSTANTS)
assert len(MDS) == WIDTH and all(len(row) == WIDTH for row in MDS)

NOTE_COMMITMENT_DOMAIN = b"WITHDRAW_NOTE_CM"
NULLIFIER_DOMAIN = b"WITHDRAW_NOTE_NF"
MERKLE_NODE_DOMAIN = b"WITHDRAW_MERKLE_NODE"

# domain bytes and a 32 bit length must fit below the field modulus
MAX_DOMAIN_SIZE = 27


def sbox(x):
    x2 = x * x
    x4 = x2 * x2
    return x4 * x


def _mix(state):
    out = []
    for row in MDS:
        acc = state[0] * row[0]
        for s, m in zip(state[1:], row[1:]):
            acc = acc + s * m
        out.append(acc)
    return out


def permute(state):
    assert len(state) == WIDTH, f"state has width {len(state)}, expected {WIDTH}"
    first_partial = FULL_ROUNDS // 2
    last_partial = first_partial + PARTIAL_ROUNDS
    for r, constants in enumerate(ROUND_CONSTANTS):
        state = [s + c for s, c in zip(state, constants)]
        if first_partial <= r < last_partial:
            state[0] = sbox(state[0])
        else:
            state = [sbox(s) for s in state]
        state = _mix(state)
    return state


def domain_separator(domain: bytes, length: int) -> int:
    assert len(domain) <= MAX_DOMAIN_SIZE, f"domain {domain!r} is too long"
    assert 0 <= length < 2**32, f"length is {length}"
    return (int.from_bytes(domain, byteorder="big") << 32) | length


def hash_elements(domain: bytes, elements, constant=field) -> tuple:
    """
    Sponge over `permute` returning a 4 element digest.

    The domain tag and the input length live in the capacity element, so
    hashes of different kinds or lengths never share a sponge state.

    `constant` lifts an integer into the value domain of `elements`. It is
    `field` off-circuit and `CircuitBuilder.constant` in-circuit.
    """
    elements = list(elements)
    state = [constant(0) for _ in range(RATE)]
    state.append(constant(domain_separator(domain, len(elements))))

    if not elements:
        state = permute(state)
    for i in range(0, len(elements), RATE):
        for j, e in enumerate(elements[i : i + RATE]):
            state[j] = e
        state = permute(state)

    return tuple(state[:DIGEST_SIZE])


class NullifierScheme(Enum):
    # Nullifier = Hash(SecretKey)
    SECRET_ONLY = "secret_only"
    # Nullifier = Hash(NoteCommitment || SecretKey)
    NOTE_BOUND = "note_bound"


def note_commitment(secret_key, constant=field) -> tuple:
    return hash_elements(NOTE_COMMITMENT_DOMAIN, secret_key, constant)


def nullifier(
    secret_key, commitment, scheme: NullifierScheme, constant=field
) -> tuple:
    if scheme == NullifierScheme.NOTE_BOUND:
        return hash_elements(NULLIFIER_DOMAIN, [*commitment, *secret_key], constant)
    elif scheme == NullifierScheme.SECRET_ONLY:
        return hash_elements(NULLIFIER_DOMAIN, secret_key, constant)
    else:
        raise ValueError(f"Unknown nullifier scheme: {scheme}")


def merkle_node(left, right, constant=field) -> tuple:
    return hash_elements(MERKLE_NODE_DOMAIN, [*left, *right], constant)
