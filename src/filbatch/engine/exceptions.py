"""
Exception and Error Definitions Module

Defines the exception hierarchy for RPC access, batch construction,
submission and status tracking. All exceptions inherit from FilBatchError
for unified exception handling.

Exception Hierarchy:
    FilBatchError (root)
    ├── RpcError
    │   ├── NetworkError
    │   │   └── RpcTimeoutError
    │   ├── ProtocolError
    │   └── SchemaError
    ├── ValidationError
    │   ├── AddressValidationError
    │   ├── AmountValidationError
    │   ├── FeeAddressCollisionError
    │   └── InsufficientFundsError
    ├── SubmissionError
    │   └── SignerUnavailableError
    ├── StatusTimeoutError
    ├── ConfigurationError
    └── InvalidTransition
"""

from typing import Any, Optional


class FilBatchError(Exception):
    """
    Root exception class for all project-specific exceptions.

    All custom exceptions should inherit from this class to enable
    unified exception handling and centralized error processing.
    """
    pass


class RpcError(FilBatchError):
    """
    Base exception for JSON-RPC call failures.

    Attributes:
        method: RPC method that was called (e.g., 'Filecoin.WalletBalance')
        endpoint: URL of the endpoint that produced the error, if known
    """

    def __init__(self, message: str, method: Optional[str] = None, endpoint: Optional[str] = None):
        super().__init__(message)
        self.method = method
        self.endpoint = endpoint


class NetworkError(RpcError):
    """
    Raised when an RPC attempt fails at the transport level.

    This includes scenarios such as:
    - Connection refused / DNS failure
    - Non-success HTTP status from the node
    - Response body that is not JSON

    Network errors are retried exactly once against the fallback endpoint.
    """
    pass


class RpcTimeoutError(NetworkError):
    """
    Raised when an RPC attempt exceeds the configured per-attempt timeout.
    """
    pass


class ProtocolError(RpcError):
    """
    Raised when the node answers with a well-formed JSON-RPC error envelope.

    The server's message is preserved verbatim as the exception message.

    Attributes:
        code: Numeric JSON-RPC error code returned by the node
    """

    def __init__(self, message: str, code: int, method: Optional[str] = None, endpoint: Optional[str] = None):
        super().__init__(message, method=method, endpoint=endpoint)
        self.code = code


class SchemaError(RpcError):
    """
    Raised when a response matches neither the success nor the error envelope.
    """
    pass


class ValidationError(FilBatchError):
    """
    Base exception for batch construction failures.

    Always raised before any signature is requested and never retried.
    """
    pass


class AddressValidationError(ValidationError):
    """
    Raised when a recipient address is malformed or unsupported.

    This includes scenarios such as:
    - Actor-ID (f0/t0) addresses, which are rejected as send targets
    - Unknown network prefix or protocol
    - Checksum mismatch or wrong payload length
    """
    pass


class AmountValidationError(ValidationError, ValueError):
    """
    Raised when a FIL or attoFIL amount cannot be converted exactly.

    Covers negative or non-numeric amounts and FIL amounts with more than
    18 decimal places. Also a ValueError, so pydantic field validators
    report it as a field error.
    """
    pass


class FeeAddressCollisionError(ValidationError):
    """
    Raised when a configured fee-collection address appears in the recipient list.
    """
    pass


class InsufficientFundsError(ValidationError):
    """
    Raised when the sender balance does not cover value plus gas fees.

    Attributes:
        check: The BalanceCheck describing required/available/shortfall
    """

    def __init__(self, message: str, check: Any = None):
        super().__init__(message)
        self.check = check


class SubmissionError(FilBatchError):
    """
    Raised when signing or broadcasting a single transaction fails.

    In the native multi-message path these are collected per message
    rather than propagated.
    """
    pass


class SignerUnavailableError(SubmissionError):
    """
    Raised when a live execution is requested without a signing capability.
    """
    pass


class StatusTimeoutError(FilBatchError):
    """
    Raised when status polling exhausts its attempts without a terminal status.

    Attributes:
        cid: Identifier of the message that is still pending
        attempts: Number of polling attempts performed
    """

    def __init__(self, message: str, cid: Optional[str] = None, attempts: int = 0):
        super().__init__(message)
        self.cid = cid
        self.attempts = attempts


class ConfigurationError(FilBatchError):
    """
    Raised when configuration is missing or invalid.

    This includes scenarios such as:
    - Missing RPC endpoint URLs
    - Non-numeric timeout or fee settings
    - Fee split outside [0, 1]
    """
    pass


class InvalidTransition(FilBatchError):
    """
    Raised when an invalid state transition is requested on a batch.

    Attributes:
        current_state: State the batch was in
        target_state: State that was requested
    """

    def __init__(self, message: str, current_state: Any = None, target_state: Any = None):
        super().__init__(message)
        self.current_state = current_state
        self.target_state = target_state
