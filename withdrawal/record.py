"""
The published proof record: the minimal artifact needed to verify a withdrawal
independently of the prover.

Records are exchanged as TOML documents:

    proof = "<hex>"

    [public_inputs]
    merkle_root = ["0x..", "0x..", "0x..", "0x.."]
    nullifier = ["0x..", "0x..", "0x..", "0x.."]
    recipient = ["0x..", "0x..", "0x..", "0x.."]  # omitted when absent
"""

from dataclasses import dataclass

import toml

from .backend import Proof
from .field import digest_from_hex, digest_hex
from .note import PublicInputs


class MalformedRecord(ValueError):
    pass


@dataclass(frozen=True)
class ProofRecord:
    public_inputs: PublicInputs
    proof: Proof

    def encode(self) -> str:
        public_inputs = {
            "merkle_root": digest_hex(self.public_inputs.merkle_root),
            "nullifier": digest_hex(self.public_inputs.nullifier),
        }
        if self.public_inputs.recipient is not None:
            public_inputs["recipient"] = digest_hex(self.public_inputs.recipient)
        return toml.dumps({"proof": self.proof.data.hex(), "public_inputs": public_inputs})

    @staticmethod
    def decode(data: str) -> "ProofRecord":
        try:
            doc = toml.loads(data)
            public_inputs = doc["public_inputs"]
            recipient = public_inputs.get("recipient")
            return ProofRecord(
                public_inputs=PublicInputs(
                    merkle_root=digest_from_hex(public_inputs["merkle_root"]),
                    nullifier=digest_from_hex(public_inputs["nullifier"]),
                    recipient=digest_from_hex(recipient) if recipient is not None else None,
                ),
                proof=Proof(bytes.fromhex(doc["proof"])),
            )
        except (toml.TomlDecodeError, AttributeError, KeyError, TypeError, ValueError) as e:
            raise MalformedRecord(f"malformed proof record: {e}") from e
