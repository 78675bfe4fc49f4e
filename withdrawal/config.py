from __future__ import annotations

from dataclasses import dataclass, field
from typing import Optional

import dacite
import yaml

from .crypto import NullifierScheme

# Merkle trees deeper than this do not fit a 2**32 leaf index
MAX_TREE_HEIGHT = 32


@dataclass
class Config:
    tree: TreeConfig
    nullifier: NullifierConfig = field(default_factory=lambda: NullifierConfig())
    roots: RootsConfig = field(default_factory=lambda: RootsConfig())
    ledger: LedgerConfig = field(default_factory=lambda: LedgerConfig())

    @classmethod
    def load(cls, yaml_path: str) -> Config:
        with open(yaml_path, "r") as f:
            data = yaml.safe_load(f)
        config = dacite.from_dict(
            data_class=Config,
            data=data,
            config=dacite.Config(cast=[NullifierScheme], strict=True),
        )
        config.validate()
        return config

    @staticmethod
    def default(height: int) -> Config:
        config = Config(tree=TreeConfig(height=height))
        config.validate()
        return config

    def validate(self):
        self.tree.validate()
        self.nullifier.validate()
        self.roots.validate()
        self.ledger.validate()


@dataclass
class TreeConfig:
    # Height of the deposit tree, it holds 2**height notes
    height: int

    def validate(self):
        assert 0 <= self.height <= MAX_TREE_HEIGHT


@dataclass
class NullifierConfig:
    # How nullifiers are derived, provers and verifiers must agree on it
    scheme: NullifierScheme = NullifierScheme.NOTE_BOUND

    def validate(self):
        assert isinstance(self.scheme, NullifierScheme)


@dataclass
class RootsConfig:
    # Number of recent roots a withdrawal may still be anchored to
    history_size: int = 30

    def validate(self):
        assert self.history_size > 0


@dataclass
class LedgerConfig:
    # File backing the nullifier ledger, kept in memory when unset
    path: Optional[str] = None

    def validate(self):
        assert self.path is None or len(self.path) > 0
