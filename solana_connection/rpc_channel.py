"""JSON-RPC 2.0 request/response channel over HTTP."""

# Standard library imports
import json
import uuid
from typing import Any, List, Optional

# Third-party library imports
import base58
import httpx

# Internal imports
from solana_connection.logging_config import get_logger
from solana_connection.schemas import SEND_TRANSACTION, ResponseValidator
from solana_connection.utils.errors import RpcError, SchemaError, TransportError

logger = get_logger(__name__)


class RpcChannel:
    """Sends single JSON-RPC calls to a fullnode and validates the replies.

    There is no retry: a transport failure surfaces to the caller as soon as
    httpx reports it.
    """

    def __init__(
        self,
        rpc_url: str,
        timeout: float = 30.0,
        http_client: Optional[httpx.AsyncClient] = None
    ):
        """Initialize the channel.

        Args:
            rpc_url: URL of the fullnode JSON RPC endpoint
            timeout: HTTP timeout in seconds
            http_client: Optional preconfigured client (tests pass one with a mock transport)
        """
        self.rpc_url = rpc_url
        self.timeout = timeout
        self.headers = {"Content-Type": "application/json"}
        self._http_client = http_client

    def _get_http_client(self) -> httpx.AsyncClient:
        if self._http_client is None:
            self._http_client = httpx.AsyncClient(
                timeout=self.timeout,
                limits=httpx.Limits(max_keepalive_connections=10, max_connections=20)
            )
        return self._http_client

    async def request(self, method: str, params: Optional[List[Any]] = None) -> Any:
        """Send one JSON-RPC request and return the decoded, unvalidated reply.

        Args:
            method: The RPC method to call
            params: The positional parameters

        Returns:
            The decoded JSON reply

        Raises:
            TransportError: If the request could not be completed
            SchemaError: If the reply is not JSON or answers another request
        """
        request_id = str(uuid.uuid4())
        payload = {
            "jsonrpc": "2.0",
            "id": request_id,
            "method": method,
            "params": params if params is not None else []
        }
        logger.debug(f"RPC request: method={method}, id={request_id}")

        try:
            response = await self._get_http_client().post(
                self.rpc_url,
                headers=self.headers,
                json=payload
            )
        except httpx.HTTPError as e:
            raise TransportError(
                f"{method} request failed: {str(e)}",
                details={"method": method}
            ) from e

        try:
            reply = response.json()
        except (json.JSONDecodeError, UnicodeDecodeError) as e:
            if response.status_code >= 400:
                raise TransportError(
                    f"{method} request failed with HTTP {response.status_code}",
                    details={"method": method, "status_code": response.status_code}
                ) from e
            raise SchemaError(f"{method} reply is not valid JSON") from e

        if isinstance(reply, dict) and reply.get("id") not in (None, request_id):
            raise SchemaError(
                f"{method} reply id does not match request",
                details={"expected": request_id, "received": reply.get("id")}
            )

        return reply

    async def call(
        self,
        method: str,
        params: Optional[List[Any]],
        validator: ResponseValidator
    ) -> Any:
        """Send a request and return its validated result.

        Args:
            method: The RPC method to call
            params: The positional parameters
            validator: Shape the reply must match

        Returns:
            The validated ``result`` member

        Raises:
            TransportError: If the request could not be completed
            SchemaError: If the reply does not match ``validator``
            RpcError: If the server reported an error
        """
        reply = await self.request(method, params)
        response = validator.validate(reply)
        if response.error is not None:
            raise RpcError.from_response(response.error)
        return response.result

    async def send_encoded_transaction(self, encoded_transaction: str) -> str:
        """Send a signed, serialized, base58 encoded transaction.

        Returns:
            The transaction signature assigned by the server
        """
        signature = await self.call("sendTransaction", [encoded_transaction], SEND_TRANSACTION)
        if not signature:
            raise RpcError("sendTransaction returned an empty signature")
        return signature

    async def send_raw_transaction(self, raw_transaction: bytes) -> str:
        """Send a transaction that has already been signed and serialized.

        Returns:
            The transaction signature assigned by the server
        """
        encoded = base58.b58encode(bytes(raw_transaction)).decode("ascii")
        return await self.send_encoded_transaction(encoded)

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close()

    async def close(self):
        """Close the channel and release resources."""
        if self._http_client is not None:
            await self._http_client.aclose()
            self._http_client = None
