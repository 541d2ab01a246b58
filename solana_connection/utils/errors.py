"""
Error types for the Solana connection package.

Every error raised by this package derives from SolanaConnectionError and
carries a machine readable code plus a details dictionary.
"""

from enum import Enum
from typing import Any, Dict, Optional


class ErrorCode(str, Enum):
    """Error codes for the Solana connection package."""

    UNKNOWN_ERROR = "UNKNOWN_ERROR"
    CONFIGURATION_ERROR = "CONFIGURATION_ERROR"
    VALIDATION_ERROR = "VALIDATION_ERROR"

    # Transport and server errors
    TRANSPORT_ERROR = "TRANSPORT_ERROR"
    SCHEMA_ERROR = "SCHEMA_ERROR"
    RPC_ERROR = "RPC_ERROR"

    # Subscription errors
    UNKNOWN_SUBSCRIPTION = "UNKNOWN_SUBSCRIPTION"

    # Transaction errors
    BLOCKHASH_TIMEOUT = "BLOCKHASH_TIMEOUT"
    INVALID_ACCOUNT = "INVALID_ACCOUNT"


class SolanaConnectionError(Exception):
    """Base exception for all Solana connection errors."""

    def __init__(
        self,
        message: str,
        code: ErrorCode = ErrorCode.UNKNOWN_ERROR,
        details: Optional[Dict[str, Any]] = None
    ):
        """
        Initialize a new connection error.

        Args:
            message: Error message
            code: Error code
            details: Additional error details
        """
        self.message = message
        self.code = code
        self.details = details or {}
        super().__init__(message)

    def to_dict(self) -> Dict[str, Any]:
        """
        Convert the error to a dictionary.

        Returns:
            Dictionary representation of the error
        """
        return {
            "code": self.code,
            "message": self.message,
            "details": self.details
        }


class ConfigurationError(SolanaConnectionError):
    """Exception for invalid configuration values."""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(
            message=message,
            code=ErrorCode.CONFIGURATION_ERROR,
            details=details
        )


class InvalidPublicKeyError(SolanaConnectionError):
    """Exception raised when an invalid public key is provided."""

    def __init__(self, pubkey: Any):
        super().__init__(
            message=f"Invalid public key: {pubkey}",
            code=ErrorCode.VALIDATION_ERROR,
            details={"pubkey": str(pubkey)}
        )
        self.pubkey = pubkey


class InvalidSignatureError(SolanaConnectionError):
    """Exception raised when a transaction signature is not base58 of the right length."""

    def __init__(self, signature: Any):
        super().__init__(
            message=f"Invalid transaction signature format: {signature}",
            code=ErrorCode.VALIDATION_ERROR,
            details={"signature": str(signature)}
        )
        self.signature = signature


class TransportError(SolanaConnectionError):
    """Exception for network or socket level failures."""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(
            message=message,
            code=ErrorCode.TRANSPORT_ERROR,
            details=details
        )


class SchemaError(SolanaConnectionError):
    """Exception for a server payload that does not match its expected shape."""

    def __init__(
        self,
        message: str,
        errors: Optional[Any] = None,
        details: Optional[Dict[str, Any]] = None
    ):
        error_details = details or {}
        if errors is not None:
            error_details["errors"] = errors
        super().__init__(
            message=message,
            code=ErrorCode.SCHEMA_ERROR,
            details=error_details
        )


class RpcError(SolanaConnectionError):
    """Exception for an error reported by the server in the JSON-RPC envelope."""

    def __init__(
        self,
        message: str,
        rpc_code: Optional[int] = None,
        data: Any = None
    ):
        details = {}
        if rpc_code is not None:
            details["rpc_code"] = rpc_code
        if data is not None:
            details["data"] = data
        super().__init__(
            message=message,
            code=ErrorCode.RPC_ERROR,
            details=details
        )
        self.rpc_code = rpc_code

    @classmethod
    def from_response(cls, error: Any) -> "RpcError":
        """Build an RpcError from the ``error`` member of a reply."""
        if isinstance(error, dict):
            return cls(
                error.get("message", "Unknown error"),
                rpc_code=error.get("code"),
                data=error.get("data")
            )
        return cls(str(error))


class UnknownSubscriptionError(SolanaConnectionError):
    """Exception raised when removing a subscription id that is not registered."""

    def __init__(self, kind: str, subscription_id: int):
        super().__init__(
            message=f"Unknown {kind} subscription id: {subscription_id}",
            code=ErrorCode.UNKNOWN_SUBSCRIPTION,
            details={"kind": kind, "subscription_id": subscription_id}
        )
        self.kind = kind
        self.subscription_id = subscription_id


class BlockhashTimeoutError(SolanaConnectionError, TimeoutError):
    """Exception raised when no new blockhash could be obtained."""

    def __init__(self, polls: int, elapsed_ms: int):
        super().__init__(
            message=f"Unable to obtain a new blockhash after {elapsed_ms}ms",
            code=ErrorCode.BLOCKHASH_TIMEOUT,
            details={"polls": polls, "elapsed_ms": elapsed_ms}
        )
