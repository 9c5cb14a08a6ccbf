"""
Lotus Node API Wrappers

Typed wrappers over the node methods a batch needs, on top of
:class:`RpcClient`:

Native (Filecoin.*):
    WalletBalance, MpoolGetNonce, ChainHead, GasEstimateMessageGas,
    MpoolPush, StateSearchMsg, StateGetReceipt, ChainGetTipSet, MpoolPending

Ethereum-compatible (eth_*), used by the aggregated Multicall3 path:
    eth_getBalance, eth_getTransactionCount, eth_estimateGas, eth_gasPrice,
    eth_chainId, eth_sendRawTransaction, eth_getTransactionReceipt

Also provides the status polling helpers for both paths.
"""

import asyncio
import logging
from typing import Any, Dict, List, Optional, Union

from web3 import Web3

from .rpc_client import RpcClient
from ..adapters.filecoin.schemas import FilecoinMessage, SignedMessage, TransactionStatusReport
from ..engine.exceptions import RpcError, SchemaError
from ..schemas.bases import TransactionStatus

logger = logging.getLogger(__name__)

STILL_PENDING = "Transaction still pending after maximum wait"
MISSING_RECEIPT = "Message found without a receipt exit code"
DEFAULT_POLL_ATTEMPTS = 30
DEFAULT_POLL_INTERVAL = 10.0

TipSetKey = Optional[List[Dict[str, str]]]


def _cid(cid: str) -> Dict[str, str]:
    return {"/": cid}


def _to_int(value: Union[int, str, None]) -> int:
    """Node integers arrive as decimal strings (Filecoin.*) or 0x-hex (eth_*)."""
    if isinstance(value, int):
        return value
    if isinstance(value, str):
        text = value.strip()
        if text[:2].lower() == "0x":
            return Web3.to_int(hexstr=text)
        if text.isdigit():
            return int(text)
    raise SchemaError(f"Expected an integer value, got {value!r}")


class LotusClient:
    """
    Filecoin node API on top of an :class:`RpcClient`.

    Args:
        rpc: Connected RPC client; not closed by this class.
    """

    def __init__(self, rpc: RpcClient):
        self.rpc = rpc

    # =========================================================================
    # Filecoin.* methods
    # =========================================================================

    async def wallet_balance(self, address: str) -> int:
        """Balance of ``address`` in attoFIL."""
        return _to_int(await self.rpc.call("Filecoin.WalletBalance", [address]))

    async def mpool_get_nonce(self, address: str) -> int:
        """Next nonce for ``address``, including pending mempool messages."""
        return _to_int(await self.rpc.call("Filecoin.MpoolGetNonce", [address]))

    async def chain_head(self) -> Dict[str, Any]:
        return await self.rpc.call("Filecoin.ChainHead")

    async def gas_estimate_message_gas(self, message: FilecoinMessage) -> FilecoinMessage:
        """
        Ask the node to fill in gas parameters for ``message``.

        Returns:
            FilecoinMessage: The message with GasLimit, GasFeeCap and
                GasPremium populated by the node.
        """
        result = await self.rpc.call(
            "Filecoin.GasEstimateMessageGas",
            [message.to_lotus(), {"MaxFee": "0"}, None],
        )
        if not isinstance(result, dict):
            raise SchemaError("GasEstimateMessageGas returned no message", method="Filecoin.GasEstimateMessageGas")
        return FilecoinMessage.model_validate(result)

    async def mpool_push(self, signed: SignedMessage) -> str:
        """Push a signed message; returns its CID string."""
        result = await self.rpc.call("Filecoin.MpoolPush", [signed.to_lotus()])
        if not isinstance(result, dict) or "/" not in result:
            raise SchemaError("MpoolPush returned no CID", method="Filecoin.MpoolPush")
        return result["/"]

    async def state_search_msg(self, cid: str) -> Optional[Dict[str, Any]]:
        """
        Look up an executed message across the whole chain.

        Returns:
            The MsgLookup object (``Receipt``, ``Height``, ``TipSet``), or None
            when the message has not been executed yet.
        """
        return await self.rpc.call("Filecoin.StateSearchMsg", [None, _cid(cid), -1, True])

    async def state_get_receipt(self, cid: str, tipset_key: TipSetKey = None) -> Optional[Dict[str, Any]]:
        return await self.rpc.call("Filecoin.StateGetReceipt", [_cid(cid), tipset_key or []])

    async def chain_get_tipset(self, tipset_key: TipSetKey) -> Dict[str, Any]:
        return await self.rpc.call("Filecoin.ChainGetTipSet", [tipset_key])

    async def mpool_pending(self, tipset_key: TipSetKey = None) -> List[Dict[str, Any]]:
        """Pending mempool messages; the node returns null for an empty pool."""
        return await self.rpc.call("Filecoin.MpoolPending", [tipset_key]) or []

    # =========================================================================
    # eth_* methods
    # =========================================================================

    async def eth_get_balance(self, address: str, block: str = "latest") -> int:
        return _to_int(await self.rpc.call("eth_getBalance", [address, block]))

    async def eth_get_transaction_count(self, address: str, block: str = "pending") -> int:
        return _to_int(await self.rpc.call("eth_getTransactionCount", [address, block]))

    async def eth_estimate_gas(self, tx: Dict[str, Any]) -> int:
        """
        Args:
            tx: Call object with ``from``, ``to``, ``data`` and ``value``
                (value as 0x-hex).
        """
        return _to_int(await self.rpc.call("eth_estimateGas", [tx]))

    async def eth_gas_price(self) -> int:
        return _to_int(await self.rpc.call("eth_gasPrice"))

    async def eth_chain_id(self) -> int:
        return _to_int(await self.rpc.call("eth_chainId"))

    async def eth_send_raw_transaction(self, raw_transaction: Union[bytes, str]) -> str:
        """Broadcast a signed transaction; returns the 0x transaction hash."""
        if isinstance(raw_transaction, (bytes, bytearray)):
            raw_transaction = Web3.to_hex(raw_transaction)
        return await self.rpc.call("eth_sendRawTransaction", [raw_transaction])

    async def eth_get_transaction_receipt(self, tx_hash: str) -> Optional[Dict[str, Any]]:
        return await self.rpc.call("eth_getTransactionReceipt", [tx_hash])

    # =========================================================================
    # Status polling
    # =========================================================================

    async def poll_transaction_status(
        self,
        cid: str,
        max_attempts: int = DEFAULT_POLL_ATTEMPTS,
        interval: float = DEFAULT_POLL_INTERVAL,
    ) -> TransactionStatusReport:
        """
        Poll ``Filecoin.StateSearchMsg`` until the message is found or the
        attempts run out.

        RPC errors during an attempt are logged and the attempt still counts.

        Args:
            cid: Message CID.
            max_attempts: Number of lookups before giving up.
            interval: Seconds to wait between lookups.

        Returns:
            TransactionStatusReport: ``confirmed`` when the receipt exit code
                is 0, ``failed`` for any other or a missing exit code, and
                ``failed`` with ``timed_out=True`` when the message was never
                found.
        """
        for attempt in range(max_attempts):
            try:
                lookup = await self.state_search_msg(cid)
            except RpcError as e:
                logger.warning(f"Status lookup for {cid} failed (attempt {attempt + 1}/{max_attempts}): {e}")
                lookup = None

            if lookup:
                receipt = lookup.get("Receipt") or {}
                height = lookup.get("Height")
                if receipt.get("ExitCode") is None:
                    return TransactionStatusReport(
                        cid=cid, status=TransactionStatus.FAILED, height=height, error_message=MISSING_RECEIPT,
                    )
                exit_code = int(receipt["ExitCode"])
                if exit_code == 0:
                    return TransactionStatusReport(
                        cid=cid, status=TransactionStatus.CONFIRMED, height=height, exit_code=0,
                    )
                return TransactionStatusReport(
                    cid=cid,
                    status=TransactionStatus.FAILED,
                    height=height,
                    exit_code=exit_code,
                    error_message=f"Message execution failed with exit code {exit_code}",
                )

            if attempt < max_attempts - 1:
                await asyncio.sleep(interval)

        return TransactionStatusReport(
            cid=cid,
            status=TransactionStatus.FAILED,
            error_message=STILL_PENDING,
            timed_out=True,
        )

    async def poll_eth_receipt(
        self,
        tx_hash: str,
        max_attempts: int = DEFAULT_POLL_ATTEMPTS,
        interval: float = DEFAULT_POLL_INTERVAL,
    ) -> TransactionStatusReport:
        """Same contract as :meth:`poll_transaction_status`, for a 0x transaction hash."""
        for attempt in range(max_attempts):
            try:
                receipt = await self.eth_get_transaction_receipt(tx_hash)
            except RpcError as e:
                logger.warning(f"Receipt lookup for {tx_hash} failed (attempt {attempt + 1}/{max_attempts}): {e}")
                receipt = None

            if receipt:
                height = receipt.get("blockNumber")
                height = _to_int(height) if height is not None else None
                if _to_int(receipt.get("status", "0x0")) == 1:
                    return TransactionStatusReport(
                        cid=tx_hash, status=TransactionStatus.CONFIRMED, height=height, exit_code=0,
                    )
                return TransactionStatusReport(
                    cid=tx_hash,
                    status=TransactionStatus.FAILED,
                    height=height,
                    exit_code=1,
                    error_message="Transaction reverted on-chain",
                )

            if attempt < max_attempts - 1:
                await asyncio.sleep(interval)

        return TransactionStatusReport(
            cid=tx_hash,
            status=TransactionStatus.FAILED,
            error_message=STILL_PENDING,
            timed_out=True,
        )
