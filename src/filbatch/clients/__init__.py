"""
Client module for Filecoin node access.

Provides the failover JSON-RPC client and typed wrappers over the Lotus
and Ethereum-compatible node APIs.
"""

from .rpc_client import RpcClient
from .lotus import LotusClient

__all__ = ["RpcClient", "LotusClient"]
