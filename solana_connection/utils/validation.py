"""Validation utilities for the Solana connection package.

This module provides utilities for validating Solana-specific data.
"""

import re
from typing import Any, Union

from solders.pubkey import Pubkey

from solana_connection.utils.errors import InvalidPublicKeyError, InvalidSignatureError

# Solana public key validation pattern (base58 format)
PUBKEY_PATTERN = re.compile(r"^[1-9A-HJ-NP-Za-km-z]{32,44}$")

# Transaction signatures are also base58 encoded but longer than public keys
SIGNATURE_PATTERN = re.compile(r"^[1-9A-HJ-NP-Za-km-z]{43,128}$")

PublicKeyLike = Union[str, Pubkey]


def validate_public_key(pubkey: Any) -> bool:
    """Validate a Solana public key.

    Args:
        pubkey: The public key to validate

    Returns:
        True if the public key is valid, False otherwise
    """
    if isinstance(pubkey, Pubkey):
        return True
    if not pubkey or not isinstance(pubkey, str):
        return False
    return bool(PUBKEY_PATTERN.match(pubkey))


def validate_transaction_signature(signature: Any) -> bool:
    """Validate a Solana transaction signature.

    Args:
        signature: The transaction signature to validate

    Returns:
        True if the signature is valid, False otherwise
    """
    if not signature or not isinstance(signature, str):
        return False
    return bool(SIGNATURE_PATTERN.match(signature))


def to_base58(pubkey: PublicKeyLike) -> str:
    """Return the base58 form of a public key, validating it first.

    Raises:
        InvalidPublicKeyError: If the value is not a public key
    """
    if not validate_public_key(pubkey):
        raise InvalidPublicKeyError(pubkey)
    return str(pubkey)


def require_transaction_signature(signature: Any) -> str:
    """Return ``signature`` if it looks like a transaction signature.

    Raises:
        InvalidSignatureError: If it does not
    """
    if not validate_transaction_signature(signature):
        raise InvalidSignatureError(signature)
    return signature
