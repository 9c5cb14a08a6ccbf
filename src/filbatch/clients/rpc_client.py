"""
JSON-RPC Client with Single Failover

Async JSON-RPC 2.0 caller over two endpoints. Each call makes at most two
attempts: the primary endpoint, then (only if the primary failed at the
network level) the fallback endpoint. Every attempt is bounded by the
same timeout.

Failure classes:
    - NetworkError / RpcTimeoutError: transport failure, non-2xx status,
      non-JSON body or timeout. Triggers the failover attempt.
    - ProtocolError: well-formed JSON-RPC error envelope. Surfaced
      immediately with the node's message.
    - SchemaError: body that is neither a success nor an error envelope.
      Surfaced immediately.
"""

import asyncio
import itertools
import logging
from typing import Any, List, Optional, Sequence

import httpx

from ..engine.exceptions import NetworkError, ProtocolError, RpcTimeoutError, SchemaError
from ..schemas.rpc import (
    JsonRpcRequest,
    RpcEndpoint,
    RpcEndpointRole,
    RpcFailure,
    RpcMalformed,
    parse_rpc_response,
)

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT_MS = 10_000
MALFORMED_RESPONSE = "Malformed RPC response"
TIMEOUT_MESSAGE = "RPC timeout"


class RpcClient:
    """
    JSON-RPC client for a primary/fallback endpoint pair.

    Request ids come from a per-instance counter; they are unique and
    increasing for the lifetime of the instance.

    Usage:
        ```python
        async with RpcClient(primary_url, fallback_url, timeout_ms=5000) as rpc:
            head = await rpc.call("Filecoin.ChainHead")
        ```
    """

    def __init__(
        self,
        primary_url: str,
        fallback_url: str,
        timeout_ms: int = DEFAULT_TIMEOUT_MS,
        **client_kwargs,
    ):
        """
        Args:
            primary_url: Endpoint tried first on every call.
            fallback_url: Endpoint tried once when the primary fails.
            timeout_ms: Per-attempt timeout in milliseconds.
            **client_kwargs: Forwarded to ``httpx.AsyncClient`` (e.g. ``transport``,
                ``headers``).
        """
        if timeout_ms <= 0:
            raise ValueError("timeout_ms must be positive")
        self.endpoints: Sequence[RpcEndpoint] = (
            RpcEndpoint(url=primary_url, role=RpcEndpointRole.PRIMARY),
            RpcEndpoint(url=fallback_url, role=RpcEndpointRole.FALLBACK),
        )
        self.timeout = timeout_ms / 1000
        self._ids = itertools.count(1)
        client_kwargs.setdefault("timeout", httpx.Timeout(self.timeout))
        self._http = httpx.AsyncClient(**client_kwargs)

    @classmethod
    def from_settings(cls, settings, **client_kwargs) -> "RpcClient":
        """Build a client from :class:`filbatch.config.Settings`."""
        return cls(
            settings.rpc_primary_url,
            settings.rpc_fallback_url,
            timeout_ms=settings.rpc_timeout_ms,
            **client_kwargs,
        )

    async def __aenter__(self) -> "RpcClient":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._http.aclose()

    # =========================================================================
    # Public API
    # =========================================================================

    def build_request(self, method: str, params: Optional[List[Any]] = None) -> JsonRpcRequest:
        """Envelope with the next id from this instance's counter."""
        return JsonRpcRequest(id=next(self._ids), method=method, params=list(params or []))

    async def call(self, method: str, params: Optional[List[Any]] = None) -> Any:
        """
        Call ``method`` and return its ``result``.

        Args:
            method: JSON-RPC method name.
            params: Positional parameters.

        Returns:
            The ``result`` member of the success envelope (may be None).

        Raises:
            ProtocolError: The node returned an error envelope.
            SchemaError: The body matched neither envelope shape.
            RpcTimeoutError: The fallback attempt timed out.
            NetworkError: The fallback attempt failed at transport level.
        """
        last_error: Optional[NetworkError] = None

        for attempt, endpoint in enumerate(self.endpoints, start=1):
            request = self.build_request(method, params)
            try:
                body = await self._post(endpoint, request)
            except NetworkError as e:
                logger.warning(f"RPC attempt {attempt} failed: {e}")
                last_error = e
                continue
            return self._unwrap(body, method, endpoint)

        raise last_error

    # =========================================================================
    # Internals
    # =========================================================================

    async def _post(self, endpoint: RpcEndpoint, request: JsonRpcRequest) -> Any:
        """POST one envelope; returns the decoded JSON body."""
        payload = request.model_dump(mode="json")
        try:
            response = await asyncio.wait_for(
                self._http.post(endpoint.url, json=payload),
                timeout=self.timeout,
            )
        except (asyncio.TimeoutError, httpx.TimeoutException) as e:
            raise RpcTimeoutError(TIMEOUT_MESSAGE, method=request.method, endpoint=endpoint.url) from e
        except httpx.HTTPError as e:
            raise NetworkError(
                f"{type(e).__name__}: {e}", method=request.method, endpoint=endpoint.url
            ) from e

        if not response.is_success:
            raise NetworkError(
                f"HTTP {response.status_code} from {endpoint.role.value} endpoint",
                method=request.method,
                endpoint=endpoint.url,
            )

        try:
            return response.json()
        except ValueError as e:
            raise NetworkError(
                "Response body is not valid JSON", method=request.method, endpoint=endpoint.url
            ) from e

    @staticmethod
    def _unwrap(body: Any, method: str, endpoint: RpcEndpoint) -> Any:
        parsed = parse_rpc_response(body)
        if isinstance(parsed, RpcFailure):
            raise ProtocolError(
                parsed.error.message,
                code=parsed.error.code,
                method=method,
                endpoint=endpoint.url,
            )
        if isinstance(parsed, RpcMalformed):
            logger.debug(f"Malformed response to {method}: {parsed.reason}")
            raise SchemaError(MALFORMED_RESPONSE, method=method, endpoint=endpoint.url)
        return parsed.result
