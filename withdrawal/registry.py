import threading
from dataclasses import dataclass
from typing import Optional

from .backend import ProvingBackend, ProvingKey, VerificationKey
from .circuit import WithdrawCircuit
from .constraint_system import ConstraintSystem
from .crypto import NullifierScheme


@dataclass(frozen=True)
class CompiledCircuit:
    """
    The result of compiling the withdraw circuit for one tree height.

    Immutable once built and shared by reference between every prover and
    verifier for that height.
    """

    circuit: WithdrawCircuit
    constraint_system: ConstraintSystem
    proving_key: ProvingKey
    verification_key: VerificationKey

    @property
    def height(self) -> int:
        return self.circuit.tree_height

    @property
    def scheme(self) -> NullifierScheme:
        return self.circuit.scheme


def compile_circuit(
    height: int,
    backend: ProvingBackend,
    scheme: NullifierScheme = NullifierScheme.NOTE_BOUND,
    seed: Optional[bytes] = None,
) -> CompiledCircuit:
    circuit = WithdrawCircuit(tree_height=height, scheme=scheme)
    cs = circuit.compile()
    pk, vk = backend.setup(cs, seed=seed)
    return CompiledCircuit(
        circuit=circuit,
        constraint_system=cs,
        proving_key=pk,
        verification_key=vk,
    )


class CircuitRegistry:
    """
    One compiled circuit per supported tree height.

    Constraint systems have a fixed shape, so trees of different heights get
    their own circuit rather than being padded to a maximum height. Each height
    is compiled at most once.
    """

    def __init__(
        self,
        backend: ProvingBackend,
        scheme: NullifierScheme = NullifierScheme.NOTE_BOUND,
    ):
        self.backend = backend
        self.scheme = scheme
        self._circuits: dict[int, CompiledCircuit] = {}
        self._lock = threading.Lock()

    def get(self, height: int) -> CompiledCircuit:
        with self._lock:
            if height not in self._circuits:
                self._circuits[height] = compile_circuit(height, self.backend, self.scheme)
            return self._circuits[height]
