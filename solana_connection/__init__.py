"""Solana connection package.

This package provides an async client for a Solana fullnode: JSON RPC
queries, WebSocket subscriptions multiplexed over one socket, and
transaction submission backed by a recent blockhash cache.
"""

import logging

from solana_connection.config import ConnectionConfig, get_connection_config
from solana_connection.connection import Connection
from solana_connection.subscriptions import SubscriptionKind
from solana_connection.utils.errors import (
    BlockhashTimeoutError,
    ConfigurationError,
    InvalidPublicKeyError,
    InvalidSignatureError,
    RpcError,
    SchemaError,
    SolanaConnectionError,
    TransportError,
    UnknownSubscriptionError,
)

__version__ = "0.1.0"
__author__ = "Solana Connection Contributors"
__email__ = "maintainers@solana-connection.dev"

logger = logging.getLogger(__name__)

__all__ = [
    "Connection",
    "ConnectionConfig",
    "get_connection_config",
    "SubscriptionKind",
    "SolanaConnectionError",
    "ConfigurationError",
    "InvalidPublicKeyError",
    "InvalidSignatureError",
    "TransportError",
    "SchemaError",
    "RpcError",
    "UnknownSubscriptionError",
    "BlockhashTimeoutError",
]
