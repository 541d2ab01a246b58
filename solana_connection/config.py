"""Configuration module for the Solana connection."""

# Standard library imports
import os
import re
from dataclasses import dataclass
from functools import lru_cache
from typing import Any, Optional
from urllib.parse import urlsplit, urlunsplit

# Third-party library imports
from dotenv import load_dotenv

# Internal imports
from solana_connection.constants import (
    BLOCKHASH_MAX_POLLS,
    BLOCKHASH_VALIDITY_SECONDS,
    DEFAULT_RPC_URL,
    DEFAULT_WS_PORT,
    DEFAULT_WSS_PORT,
    VALID_COMMITMENTS,
)
from solana_connection.utils.errors import ConfigurationError

# Load environment variables from .env file
load_dotenv()


def get_env_var(key: str, default: Any = None, required: bool = False,
                validator: Optional[callable] = None) -> Any:
    """Get and validate environment variable.

    Args:
        key: Environment variable name
        default: Default value if not present
        required: If True, raises ConfigurationError when not found
        validator: Optional validation function

    Returns:
        The environment variable value or default

    Raises:
        ConfigurationError: If required and not found, or fails validation
    """
    value = os.environ.get(key)

    if value is None:
        if required:
            raise ConfigurationError(f"Required environment variable '{key}' not found")
        return default

    if validator:
        try:
            return validator(value)
        except ValueError as e:
            raise ConfigurationError(
                f"Invalid value for environment variable '{key}': {str(e)}",
                details={"key": key, "value": value}
            ) from e

    return value


def bool_validator(value: str) -> bool:
    """Convert a string to a boolean."""
    return value.lower() in ("true", "1", "yes", "y", "on")


def int_validator(value: str) -> int:
    """Validate and convert string to integer.

    Raises:
        ValueError: If not a valid integer
    """
    try:
        return int(value)
    except ValueError:
        raise ValueError(f"'{value}' is not a valid integer")


def float_validator(value: str) -> float:
    """Validate and convert string to float.

    Raises:
        ValueError: If not a valid number
    """
    try:
        return float(value)
    except ValueError:
        raise ValueError(f"'{value}' is not a valid number")


def url_validator(value: str) -> str:
    """Validate URL format.

    Args:
        value: URL to validate

    Returns:
        The validated URL

    Raises:
        ValueError: If not a valid URL format
    """
    url_pattern = re.compile(
        r'^(https?|wss?):\/\/'  # http(s):// or ws(s)://
        r'(?:(?:[A-Z0-9](?:[A-Z0-9-]{0,61}[A-Z0-9])?\.)+(?:[A-Z]{2,6}\.?|[A-Z0-9-]{2,}\.?)|'  # domain
        r'localhost|'  # localhost
        r'\d{1,3}\.\d{1,3}\.\d{1,3}\.\d{1,3})'  # or IPv4
        r'(?::\d+)?'  # optional port
        r'(?:/?|[/?]\S+)$', re.IGNORECASE)

    if not url_pattern.match(value):
        raise ValueError(f"'{value}' is not a valid URL")
    return value


def commitment_validator(value: str) -> str:
    """Validate Solana commitment level.

    Raises:
        ValueError: If not a valid commitment level
    """
    if value.lower() not in VALID_COMMITMENTS:
        raise ValueError(f"Commitment must be one of: {', '.join(VALID_COMMITMENTS)}")
    return value.lower()


def log_level_validator(value: str) -> str:
    """Validate log level.

    Raises:
        ValueError: If not a valid log level
    """
    valid_levels = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")
    upper_value = value.upper()
    if upper_value not in valid_levels:
        raise ValueError(f"Log level must be one of: {', '.join(valid_levels)}")
    return upper_value


def ws_endpoint_from_rpc(rpc_url: str) -> str:
    """Derive the WebSocket endpoint that accompanies an RPC endpoint.

    The scheme becomes ``ws``/``wss`` and the port is the RPC port plus one.
    Without an explicit RPC port the default WebSocket ports are used.

    Args:
        rpc_url: HTTP(S) URL of the JSON RPC endpoint

    Returns:
        The WebSocket URL
    """
    parts = urlsplit(rpc_url)
    scheme = "wss" if parts.scheme == "https" else "ws"
    if parts.port is not None:
        port = parts.port + 1
    else:
        port = DEFAULT_WSS_PORT if scheme == "wss" else DEFAULT_WS_PORT

    host = parts.hostname or "localhost"
    if ":" in host:
        host = f"[{host}]"
    netloc = f"{host}:{port}"
    if parts.username:
        credentials = parts.username
        if parts.password:
            credentials = f"{credentials}:{parts.password}"
        netloc = f"{credentials}@{netloc}"

    return urlunsplit((scheme, netloc, parts.path, parts.query, parts.fragment))


@dataclass
class ConnectionConfig:
    """Configuration for a connection to a Solana fullnode."""

    rpc_url: str = DEFAULT_RPC_URL
    ws_url: Optional[str] = None
    commitment: Optional[str] = None
    timeout: float = 30.0  # seconds
    blockhash_validity_seconds: float = BLOCKHASH_VALIDITY_SECONDS
    blockhash_max_polls: int = BLOCKHASH_MAX_POLLS
    disable_blockhash_caching: bool = False
    ws_reconnect_delay: float = 1.0  # seconds
    log_level: str = "INFO"

    def __post_init__(self):
        """Validate configuration after initialization."""
        if self.commitment is not None and self.commitment not in VALID_COMMITMENTS:
            raise ConfigurationError(f"Invalid commitment: {self.commitment}")
        if self.blockhash_max_polls < 1:
            raise ConfigurationError("blockhash_max_polls must be at least 1")

    @property
    def websocket_url(self) -> str:
        """WebSocket endpoint, explicit or derived from the RPC URL."""
        return self.ws_url or ws_endpoint_from_rpc(self.rpc_url)


@lru_cache()
def get_connection_config() -> ConnectionConfig:
    """Get connection configuration from environment variables.

    Uses cached values for efficiency.

    Returns:
        ConnectionConfig instance

    Raises:
        ConfigurationError: If environment variables fail validation
    """
    return ConnectionConfig(
        rpc_url=get_env_var("SOLANA_RPC_URL", DEFAULT_RPC_URL, validator=url_validator),
        ws_url=get_env_var("SOLANA_WS_URL", validator=url_validator),
        commitment=get_env_var("SOLANA_COMMITMENT", validator=commitment_validator),
        timeout=get_env_var("SOLANA_TIMEOUT", 30.0, validator=float_validator),
        blockhash_validity_seconds=get_env_var(
            "SOLANA_BLOCKHASH_VALIDITY", BLOCKHASH_VALIDITY_SECONDS, validator=float_validator
        ),
        blockhash_max_polls=get_env_var(
            "SOLANA_BLOCKHASH_MAX_POLLS", BLOCKHASH_MAX_POLLS, validator=int_validator
        ),
        disable_blockhash_caching=get_env_var(
            "SOLANA_DISABLE_BLOCKHASH_CACHING", False, validator=bool_validator
        ),
        ws_reconnect_delay=get_env_var("SOLANA_WS_RECONNECT_DELAY", 1.0, validator=float_validator),
        log_level=get_env_var("LOG_LEVEL", "INFO", validator=log_level_validator),
    )
