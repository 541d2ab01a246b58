"""Decoder for durable nonce account data."""

import struct
from dataclasses import dataclass

from solders.pubkey import Pubkey

from solana_connection.utils.errors import SchemaError

# u32 state, authorized pubkey, nonce, u64 lamports per signature
NONCE_ACCOUNT_LAYOUT = struct.Struct("<I32s32sQ")
NONCE_ACCOUNT_LENGTH = NONCE_ACCOUNT_LAYOUT.size


@dataclass(frozen=True)
class NonceAccount:
    """Contents of an initialized nonce account."""

    authorized_pubkey: Pubkey
    nonce: str
    lamports_per_signature: int

    @classmethod
    def from_account_data(cls, data: bytes) -> "NonceAccount":
        """Deserialize a nonce account from its on-chain data.

        Raises:
            SchemaError: If the data is too short to hold a nonce account
        """
        if len(data) < NONCE_ACCOUNT_LENGTH:
            raise SchemaError(
                f"Nonce account data too short: {len(data)} < {NONCE_ACCOUNT_LENGTH}"
            )
        _state, authorized, nonce, lamports = NONCE_ACCOUNT_LAYOUT.unpack_from(data)
        return cls(
            authorized_pubkey=Pubkey.from_bytes(authorized),
            nonce=str(Pubkey.from_bytes(nonce)),
            lamports_per_signature=lamports,
        )
