from .exceptions import (
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
)
from .states import BatchStateMachine, TRANSITIONS

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
    "TRANSITIONS",
]
