"""
A rank-1 constraint system and the builder used to declare circuits.

Every constraint has the form `<a, w> * <b, w> = <c, w>` where `w` is the
witness vector and `a`, `b`, `c` are sparse linear combinations over it.
Wire 0 always holds the constant one.

Circuits are declared once with a `CircuitBuilder`, which records product wires
together with the recipe to compute them. `ConstraintSystem.generate_witness`
replays those recipes on concrete inputs, so a witness is always derived from
the named inputs alone.
"""

from contextlib import contextmanager
from dataclasses import dataclass
from functools import cached_property
from hashlib import blake2b
from typing import Mapping, Optional, Sequence, TypeAlias

from .field import Field

P = Field.ORDER
ONE = 0

Terms: TypeAlias = tuple[tuple[int, int], ...]
Witness: TypeAlias = tuple[int, ...]


def _reduce(value) -> int:
    if isinstance(value, Field):
        return value.v % P
    if isinstance(value, bool):
        return int(value)
    if isinstance(value, int):
        return value % P
    raise TypeError(f"not a field value: {type(value)}")


def _evaluate(terms: Terms, witness: Sequence[int]) -> int:
    return sum(coeff * witness[wire] for wire, coeff in terms) % P


class LinearCombination:
    """
    A sparse map from wire index to coefficient, bound to the builder that
    allocated its wires.

    Multiplying two non-constant combinations allocates a product wire in the
    builder, everything else stays linear.
    """

    __slots__ = ("builder", "terms")

    def __init__(self, builder: "CircuitBuilder", terms: dict[int, int]):
        self.builder = builder
        self.terms = {w: c % P for w, c in terms.items() if c % P != 0}

    def is_constant(self) -> bool:
        return all(w == ONE for w in self.terms)

    def constant_value(self) -> int:
        assert self.is_constant()
        return self.terms.get(ONE, 0)

    def scale(self, factor) -> "LinearCombination":
        factor = _reduce(factor)
        return LinearCombination(
            self.builder, {w: c * factor for w, c in self.terms.items()}
        )

    def _lift(self, other) -> "LinearCombination":
        return self.builder.lift(other)

    def __add__(self, other) -> "LinearCombination":
        other = self._lift(other)
        terms = dict(self.terms)
        for w, c in other.terms.items():
            terms[w] = terms.get(w, 0) + c
        return LinearCombination(self.builder, terms)

    __radd__ = __add__

    def __neg__(self) -> "LinearCombination":
        return self.scale(-1)

    def __sub__(self, other) -> "LinearCombination":
        return self + (-self._lift(other))

    def __rsub__(self, other) -> "LinearCombination":
        return self._lift(other) + (-self)

    def __mul__(self, other) -> "LinearCombination":
        if not isinstance(other, LinearCombination):
            return self.scale(other)
        return self.builder.mul(self, other)

    def __rmul__(self, other) -> "LinearCombination":
        return self.scale(other)

    def frozen(self) -> Terms:
        return tuple(sorted(self.terms.items()))

    def __repr__(self):
        return f"LinearCombination({self.terms})"


@dataclass(frozen=True)
class Constraint:
    a: Terms
    b: Terms
    c: Terms
    label: str

    def is_satisfied(self, witness: Sequence[int]) -> bool:
        return (
            _evaluate(self.a, witness) * _evaluate(self.b, witness) - _evaluate(self.c, witness)
        ) % P == 0


@dataclass(frozen=True)
class ProductWire:
    wire: int
    a: Terms
    b: Terms


class CircuitBuilder:
    def __init__(self):
        self.num_wires = 1  # wire 0 is the constant one
        self.inputs: dict[str, int] = {}
        self.public_wires: list[int] = []
        self.products: list[ProductWire] = []
        self.constraints: list[Constraint] = []
        self._scope: list[str] = []

    def _allocate(self) -> int:
        wire = self.num_wires
        self.num_wires += 1
        return wire

    def _input(self, name: str) -> LinearCombination:
        assert name not in self.inputs, f"duplicate input {name}"
        wire = self._allocate()
        self.inputs[name] = wire
        return LinearCombination(self, {wire: 1})

    def public_input(self, name: str) -> LinearCombination:
        """
        Public inputs are exposed to the verifier in declaration order.
        """
        lc = self._input(name)
        self.public_wires.append(self.inputs[name])
        return lc

    def private_input(self, name: str) -> LinearCombination:
        return self._input(name)

    def constant(self, value) -> LinearCombination:
        return LinearCombination(self, {ONE: _reduce(value)})

    def lift(self, value) -> LinearCombination:
        if isinstance(value, LinearCombination):
            assert value.builder is self, "mixing signals of different circuits"
            return value
        return self.constant(value)

    @contextmanager
    def scope(self, name: str):
        self._scope.append(name)
        try:
            yield
        finally:
            self._scope.pop()

    def _label(self, what: str) -> str:
        return "/".join([*self._scope, what])

    def constrain(self, a, b, c, what: str):
        a, b, c = (self.lift(x) for x in (a, b, c))
        self.constraints.append(
            Constraint(a.frozen(), b.frozen(), c.frozen(), self._label(what))
        )

    def mul(self, a: LinearCombination, b: LinearCombination) -> LinearCombination:
        if a.is_constant():
            return b.scale(a.constant_value())
        if b.is_constant():
            return a.scale(b.constant_value())
        wire = self._allocate()
        out = LinearCombination(self, {wire: 1})
        self.products.append(ProductWire(wire, a.frozen(), b.frozen()))
        self.constrain(a, b, out, "mul")
        return out

    def assert_zero(self, x: LinearCombination, what: str = "zero"):
        self.constrain(x, self.constant(1), self.constant(0), what)

    def assert_equal(self, x, y, what: str = "equal"):
        self.assert_zero(self.lift(x) - y, what)

    def assert_bool(self, bit: LinearCombination, what: str = "bool"):
        # b * (b - 1) == 0 only holds for b in {0, 1}
        self.constrain(bit, bit - 1, self.constant(0), what)

    def select(self, bit: LinearCombination, x, y) -> LinearCombination:
        """
        Returns `x` when `bit` is 1 and `y` when `bit` is 0, as `bit * (x - y) + y`.

        The blend only selects if `bit` is boolean, callers must constrain it
        with `assert_bool`.
        """
        return bit * (x - y) + y

    def build(self) -> "ConstraintSystem":
        return ConstraintSystem(
            num_wires=self.num_wires,
            inputs=tuple(self.inputs.items()),
            public_wires=tuple(self.public_wires),
            products=tuple(self.products),
            constraints=tuple(self.constraints),
        )


@dataclass(frozen=True)
class ConstraintSystem:
    num_wires: int
    inputs: tuple[tuple[str, int], ...]
    public_wires: tuple[int, ...]
    products: tuple[ProductWire, ...]
    constraints: tuple[Constraint, ...]

    @property
    def num_public_inputs(self) -> int:
        return len(self.public_wires)

    def generate_witness(self, values: Mapping[str, object]) -> Witness:
        """
        Assigns the named inputs and computes every product wire from them.

        Raises `ValueError` when an input is missing or unknown.
        """
        known = dict(self.inputs)
        unknown = set(values) - set(known)
        if unknown:
            raise ValueError(f"unknown inputs: {sorted(unknown)}")
        missing = set(known) - set(values)
        if missing:
            raise ValueError(f"missing inputs: {sorted(missing)}")

        witness: list[Optional[int]] = [None] * self.num_wires
        witness[ONE] = 1
        for name, wire in self.inputs:
            witness[wire] = _reduce(values[name])
        for p in self.products:
            witness[p.wire] = _evaluate(p.a, witness) * _evaluate(p.b, witness) % P

        assert all(v is not None for v in witness), "unassigned wire"
        return tuple(witness)

    def public_values(self, witness: Witness) -> list[int]:
        return [witness[w] for w in self.public_wires]

    def unsatisfied(self, witness: Witness) -> Optional[tuple[int, Constraint]]:
        if len(witness) != self.num_wires or witness[ONE] != 1:
            raise ValueError("witness does not match the constraint system shape")
        for i, constraint in enumerate(self.constraints):
            if not constraint.is_satisfied(witness):
                return i, constraint
        return None

    def is_satisfied(self, witness: Witness) -> bool:
        return self.unsatisfied(witness) is None

    @cached_property
    def digest(self) -> bytes:
        """
        Canonical hash of the circuit shape. Keys produced for one constraint
        system never verify proofs for another.
        """
        h = blake2b(digest_size=32, person=b"WITHDRAW_R1CS")

        def put(n: int):
            h.update(n.to_bytes(32, byteorder="big"))

        def put_terms(terms: Terms):
            put(len(terms))
            for w, c in terms:
                put(w)
                put(c)

        put(self.num_wires)
        put(len(self.inputs))
        for name, wire in self.inputs:
            encoded = name.encode()
            put(len(encoded))
            h.update(encoded)
            put(wire)
        put(len(self.public_wires))
        for w in self.public_wires:
            put(w)
        put(len(self.constraints))
        for constraint in self.constraints:
            put_terms(constraint.a)
            put_terms(constraint.b)
            put_terms(constraint.c)
        return h.digest()
