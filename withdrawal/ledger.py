"""
This module maintains the state the withdrawal acceptance policy depends on.

Namely we are interested in:
- the set of published nullifiers (spent notes)
- the window of recent roots a withdrawal may be anchored to

Check-and-record of a nullifier is a single atomic step. Two withdrawals of the
same note verified concurrently must not both be accepted.
"""

import os
import threading
from collections import deque
from pathlib import Path

import portalocker

from .field import digest_to_ints
from .note import MerkleRoot, Nullifier, nullifier_key


class NullifierLedger:
    def has_seen(self, nf: Nullifier) -> bool:
        raise NotImplementedError()

    def record(self, nf: Nullifier):
        raise NotImplementedError()

    def check_and_record(self, nf: Nullifier) -> bool:
        """
        Records the nullifier if it was never seen. Returns False, recording
        nothing, if it was.
        """
        raise NotImplementedError()


class InMemoryNullifierLedger(NullifierLedger):
    def __init__(self):
        self._seen: set[str] = set()
        self._lock = threading.Lock()

    def has_seen(self, nf: Nullifier) -> bool:
        with self._lock:
            return nullifier_key(nf) in self._seen

    def record(self, nf: Nullifier):
        with self._lock:
            self._seen.add(nullifier_key(nf))

    def check_and_record(self, nf: Nullifier) -> bool:
        key = nullifier_key(nf)
        with self._lock:
            if key in self._seen:
                return False
            self._seen.add(key)
            return True

    def __len__(self):
        with self._lock:
            return len(self._seen)


class FileNullifierLedger(NullifierLedger):
    """
    A nullifier ledger persisted as one hex nullifier per line.

    Every access holds an exclusive file lock on the ledger, so the ledger can
    be shared between threads and between processes.
    """

    def __init__(self, path, timeout: float = 10.0):
        self.path = Path(path)
        self.timeout = timeout
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self.path.touch(exist_ok=True)

    def _lock(self):
        return portalocker.Lock(
            self.path, mode="a+", timeout=self.timeout, fail_when_locked=False
        )

    @staticmethod
    def _read(fh) -> set[str]:
        fh.seek(0)
        return {line.strip() for line in fh if line.strip()}

    @staticmethod
    def _append(fh, key: str):
        fh.write(key + "\n")
        fh.flush()
        os.fsync(fh.fileno())

    def has_seen(self, nf: Nullifier) -> bool:
        with self._lock() as fh:
            return nullifier_key(nf) in self._read(fh)

    def record(self, nf: Nullifier):
        key = nullifier_key(nf)
        with self._lock() as fh:
            if key not in self._read(fh):
                self._append(fh, key)

    def check_and_record(self, nf: Nullifier) -> bool:
        key = nullifier_key(nf)
        with self._lock() as fh:
            if key in self._read(fh):
                return False
            self._append(fh, key)
            return True

    def __len__(self):
        with self._lock() as fh:
            return len(self._read(fh))


class RootHistory:
    """
    The most recent `size` roots of the accumulator. A withdrawal proof built
    against any of them is still accepted, so deposits landing while a proof is
    being generated do not invalidate it.
    """

    def __init__(self, size: int):
        assert size > 0, f"size is {size}"
        self._roots: deque[tuple[int, ...]] = deque(maxlen=size)
        self._lock = threading.Lock()

    def push(self, root: MerkleRoot):
        with self._lock:
            self._roots.append(tuple(digest_to_ints(root)))

    def __contains__(self, root: MerkleRoot) -> bool:
        key = tuple(digest_to_ints(root))
        with self._lock:
            return key in self._roots

    def __len__(self):
        with self._lock:
            return len(self._roots)
