from .constants import (
    ATTO_PER_FIL,
    FILFORWARDER_ADDRESS,
    MULTICALL3_ADDRESS,
    NETWORKS,
    fil_to_atto,
    atto_to_fil,
    get_network,
)
from .schemas import (
    FilecoinMessage,
    MessageSignature,
    SignedMessage,
    Recipient,
    BatchRecipient,
    GasEstimate,
    CostBreakdown,
    BalanceCheck,
    BatchTransactionResult,
    ErrorMode,
    Call3Value,
    Call3Result,
    MulticallBatchResult,
    TransactionStatusReport,
    BatchProgress,
    BatchProgressEntry,
    BatchExecutionResult,
)
from .address import (
    FilecoinAddress,
    Protocol,
    parse_address,
    address_to_bytes,
    delegated_from_eth_address,
    eth_address_from_delegated,
)
from .router import AddressRouter, AddressType
from .fees import FeeCalculator, prepare_recipients_with_fees
from .messages import NativeMessageBuilder
from .multicall import MulticallBatchBuilder, encode_forward_call, encode_aggregate3_value
from .signatures import Signer, LocalAccountSigner, message_signing_payload

__all__ = [
    "ATTO_PER_FIL",
    "FILFORWARDER_ADDRESS",
    "MULTICALL3_ADDRESS",
    "NETWORKS",
    "fil_to_atto",
    "atto_to_fil",
    "get_network",
    "FilecoinMessage",
    "MessageSignature",
    "SignedMessage",
    "Recipient",
    "BatchRecipient",
    "GasEstimate",
    "CostBreakdown",
    "BalanceCheck",
    "BatchTransactionResult",
    "ErrorMode",
    "Call3Value",
    "Call3Result",
    "MulticallBatchResult",
    "TransactionStatusReport",
    "BatchProgress",
    "BatchProgressEntry",
    "BatchExecutionResult",
    "FilecoinAddress",
    "Protocol",
    "parse_address",
    "address_to_bytes",
    "delegated_from_eth_address",
    "eth_address_from_delegated",
    "AddressRouter",
    "AddressType",
    "FeeCalculator",
    "prepare_recipients_with_fees",
    "NativeMessageBuilder",
    "MulticallBatchBuilder",
    "encode_forward_call",
    "encode_aggregate3_value",
    "Signer",
    "LocalAccountSigner",
    "message_signing_payload",
]
