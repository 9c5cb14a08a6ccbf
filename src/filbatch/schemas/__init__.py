from .bases import CanonicalModel, TransactionStatus, BatchState
from .rpc import (
    RpcEndpointRole,
    RpcEndpoint,
    JsonRpcRequest,
    JsonRpcErrorObject,
    RpcSuccess,
    RpcFailure,
    RpcMalformed,
    RpcResult,
    parse_rpc_response,
)

__all__ = [
    "CanonicalModel",
    "TransactionStatus",
    "BatchState",
    "RpcEndpointRole",
    "RpcEndpoint",
    "JsonRpcRequest",
    "JsonRpcErrorObject",
    "RpcSuccess",
    "RpcFailure",
    "RpcMalformed",
    "RpcResult",
    "parse_rpc_response",
]
