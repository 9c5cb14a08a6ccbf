"""
filbatch: single-signature batch payments on Filecoin.

Typical flow:

    settings = Settings.from_env()
    rows = prepare_recipients_with_fees(recipients, settings.fee)

    async with RpcClient.from_settings(settings) as rpc:
        executor = MulticallBatchExecutor(LotusClient(rpc), chain_id=settings.chain_id)
        result = await executor.execute(rows, sender, signer=LocalAccountSigner(settings.private_key))
        await executor.wait_for_confirmation(result.transaction_cids[0])
"""

from .engine import (
    FilBatchError,
    RpcError,
    NetworkError,
    RpcTimeoutError,
    ProtocolError,
    SchemaError,
    ValidationError,
    AddressValidationError,
    AmountValidationError,
    FeeAddressCollisionError,
    InsufficientFundsError,
    SubmissionError,
    SignerUnavailableError,
    StatusTimeoutError,
    ConfigurationError,
    InvalidTransition,
    BatchStateMachine,
)
from .schemas import BatchState, TransactionStatus
from .config import Settings, FeeConfig
from .adapters.filecoin import (
    AddressRouter,
    AddressType,
    FeeCalculator,
    prepare_recipients_with_fees,
    NativeMessageBuilder,
    MulticallBatchBuilder,
    ErrorMode,
    Recipient,
    BatchRecipient,
    Signer,
    LocalAccountSigner,
    fil_to_atto,
    atto_to_fil,
)
from .clients import RpcClient, LotusClient
from .engine.executors import BatchExecutor, MulticallBatchExecutor, monitor_batch_progress

__version__ = "0.1.0"

__all__ = [
    "FilBatchError",
    "RpcError",
    "NetworkError",
    "RpcTimeoutError",
    "ProtocolError",
    "SchemaError",
    "ValidationError",
    "AddressValidationError",
    "AmountValidationError",
    "FeeAddressCollisionError",
    "InsufficientFundsError",
    "SubmissionError",
    "SignerUnavailableError",
    "StatusTimeoutError",
    "ConfigurationError",
    "InvalidTransition",
    "BatchStateMachine",
    "BatchState",
    "TransactionStatus",
    "Settings",
    "FeeConfig",
    "AddressRouter",
    "AddressType",
    "FeeCalculator",
    "prepare_recipients_with_fees",
    "NativeMessageBuilder",
    "MulticallBatchBuilder",
    "ErrorMode",
    "Recipient",
    "BatchRecipient",
    "Signer",
    "LocalAccountSigner",
    "fil_to_atto",
    "atto_to_fil",
    "RpcClient",
    "LotusClient",
    "BatchExecutor",
    "MulticallBatchExecutor",
    "monitor_batch_progress",
    "__version__",
]
