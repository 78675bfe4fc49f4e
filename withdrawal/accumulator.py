"""
A fixed-height, append-only Merkle tree of note commitments.

This is the deposit-side counterpart of the withdraw circuit: deposits insert
commitments, withdrawals ask it for the current root and a path to their leaf.
"""

from .crypto import merkle_node
from .field import Digest, is_digest, zero_digest
from .note import MerklePath, MerkleRoot


class MerkleAccumulator:
    """
    Binary Merkle tree of height `height` holding up to `2**height` leaves.

    - levels[0] are the inserted leaves
    - levels[height][0] is the root
    - positions that were never filled hold `zeros[level]`, the root of an
      empty subtree of that height
    """

    def __init__(self, height: int):
        assert height >= 0, f"height is {height}"
        self.height = height
        self.zeros = [zero_digest()]
        for _ in range(height):
            self.zeros.append(merkle_node(self.zeros[-1], self.zeros[-1]))
        self.levels: list[list[Digest]] = [[] for _ in range(height + 1)]

    @property
    def capacity(self) -> int:
        return 1 << self.height

    def __len__(self) -> int:
        return len(self.levels[0])

    def _node(self, level: int, index: int) -> Digest:
        nodes = self.levels[level]
        return nodes[index] if index < len(nodes) else self.zeros[level]

    def insert(self, leaf: Digest) -> int:
        assert is_digest(leaf), f"leaf is {leaf!r}"
        if len(self) >= self.capacity:
            raise AccumulatorFull

        index = len(self)
        self.levels[0].append(leaf)

        node_index = index
        for level in range(self.height):
            parent = node_index // 2
            node = merkle_node(
                self._node(level, 2 * parent), self._node(level, 2 * parent + 1)
            )
            parents = self.levels[level + 1]
            if parent < len(parents):
                parents[parent] = node
            else:
                parents.append(node)
            node_index = parent
        return index

    def current_root(self) -> MerkleRoot:
        return self._node(self.height, 0)

    def path_to(self, index: int) -> MerklePath:
        if not 0 <= index < len(self):
            raise IndexError(f"no leaf at index {index}")
        siblings = []
        path_indices = []
        for level in range(self.height):
            siblings.append(self._node(level, index ^ 1))
            path_indices.append(index & 1)
            index >>= 1
        return MerklePath(siblings=tuple(siblings), path_indices=tuple(path_indices))


class AccumulatorFull(Exception):
    def __str__(self):
        return "Merkle accumulator is full"
