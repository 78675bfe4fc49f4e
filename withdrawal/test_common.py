from hypothesis import strategies as st

from .accumulator import MerkleAccumulator
from .backend import MockProvingBackend
from .crypto import NullifierScheme
from .field import DIGEST_SIZE, Field
from .note import Note
from .registry import CircuitRegistry, CompiledCircuit

BACKEND = MockProvingBackend()

# compiled circuits are shared between test modules, compiling is the slow part
REGISTRIES = {scheme: CircuitRegistry(BACKEND, scheme) for scheme in NullifierScheme}


def compiled(
    height: int, scheme: NullifierScheme = NullifierScheme.NOTE_BOUND
) -> CompiledCircuit:
    return REGISTRIES[scheme].get(height)


def mk_tree(height: int, n: int) -> tuple[list[Note], MerkleAccumulator]:
    notes = [Note.random() for _ in range(n)]
    tree = MerkleAccumulator(height)
    for note in notes:
        tree.insert(note.commitment())
    return notes, tree


@st.composite
def field_element(draw):
    x = draw(st.integers(min_value=0, max_value=Field.ORDER - 1))
    return Field(x)


@st.composite
def digest(draw):
    return tuple(draw(field_element()) for _ in range(DIGEST_SIZE))
