"""
JSON-RPC 2.0 Schema Models

This module defines the Pydantic models used on the wire between the
RpcClient and a Lotus-compatible node, and the discriminated parse step
that classifies every response body into exactly one of three variants:

1. RpcSuccess   - carries a ``result`` value (which may be null)
2. RpcFailure   - carries an ``error`` object with numeric code and message
3. RpcMalformed - matches neither shape; carries the raw body and a reason

Parsing never raises; callers branch on the returned variant.
"""

from enum import Enum
from typing import Any, List, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, ValidationError as PydanticValidationError
from typing_extensions import Annotated

from .bases import CanonicalModel


# ============================================================================
# Endpoints
# ============================================================================

class RpcEndpointRole(str, Enum):
    """Role of a configured endpoint in the failover pair."""
    PRIMARY = "primary"
    FALLBACK = "fallback"


class RpcEndpoint(BaseModel):
    """A node endpoint; immutable for the process lifetime.

    Attributes:
        url: HTTPS URL of the JSON-RPC endpoint.
        role: Whether this is the primary or the fallback endpoint.
    """
    model_config = ConfigDict(frozen=True)

    url: str = Field(..., min_length=1, description="JSON-RPC endpoint URL")
    role: RpcEndpointRole = Field(..., description="primary or fallback")


# ============================================================================
# Request envelope
# ============================================================================

class JsonRpcRequest(CanonicalModel):
    """Outgoing JSON-RPC 2.0 request envelope.

    Attributes:
        jsonrpc: Protocol version tag, always "2.0".
        id: Request id, unique and increasing within one client instance.
        method: Remote method name (e.g. "Filecoin.ChainHead").
        params: Ordered positional parameters.
    """
    jsonrpc: Literal["2.0"] = "2.0"
    id: Union[int, str] = Field(..., description="Request id")
    method: str = Field(..., min_length=1, description="RPC method name")
    params: List[Any] = Field(default_factory=list, description="Positional parameters")


# ============================================================================
# Response variants
# ============================================================================

class JsonRpcErrorObject(BaseModel):
    """The ``error`` member of a JSON-RPC error response."""
    code: int
    message: str
    data: Optional[Any] = None


class RpcSuccess(BaseModel):
    """Success envelope: ``{"jsonrpc": "2.0", "id": ..., "result": ...}``."""
    kind: Literal["success"] = "success"
    jsonrpc: Literal["2.0"]
    id: Optional[Union[int, str]] = None
    result: Any


class RpcFailure(BaseModel):
    """Error envelope: ``{"jsonrpc": "2.0", "id": ..., "error": {...}}``."""
    kind: Literal["failure"] = "failure"
    jsonrpc: Literal["2.0"]
    id: Optional[Union[int, str]] = None
    error: JsonRpcErrorObject


class RpcMalformed(BaseModel):
    """Anything that is neither a success nor an error envelope."""
    kind: Literal["malformed"] = "malformed"
    raw: Any = None
    reason: str


# Discriminated union over the three parse outcomes
RpcResult = Annotated[
    Union[RpcSuccess, RpcFailure, RpcMalformed],
    Field(discriminator="kind"),
]


def parse_rpc_response(body: Any) -> RpcResult:
    """
    Classify a decoded JSON response body.

    The success and error shapes are mutually exclusive: a body carrying both
    ``result`` and ``error`` (or neither) is malformed.

    Args:
        body: Decoded JSON value of the HTTP response.

    Returns:
        RpcSuccess, RpcFailure or RpcMalformed.
    """
    if not isinstance(body, dict):
        return RpcMalformed(raw=body, reason="response body is not a JSON object")

    has_result = "result" in body
    has_error = "error" in body

    if has_error and not has_result:
        model = RpcFailure
    elif has_result and not has_error:
        model = RpcSuccess
    else:
        return RpcMalformed(
            raw=body,
            reason="response must carry exactly one of 'result' or 'error'",
        )

    try:
        return model.model_validate(body)
    except PydanticValidationError as e:
        return RpcMalformed(raw=body, reason=f"{model.__name__} validation failed: {e.error_count()} error(s)")
