"""
Filecoin Adapter Schema Models

Pydantic models for everything a batch produces or consumes between the
builders, the executors and their callers.

Message classes:
    - FilecoinMessage: Native Lotus message (serialized with Lotus field names)
    - MessageSignature / SignedMessage: Lotus MpoolPush payload

Recipient classes:
    - Recipient: Display-form row, amount as a FIL Decimal
    - BatchRecipient: On-chain row, amount as an exact attoFIL integer

Result classes:
    - GasEstimate, CostBreakdown, BalanceCheck
    - BatchTransactionResult: Output of the native message builder
    - Call3Value, MulticallBatchResult: Output of the aggregated builder
    - TransactionStatusReport, BatchProgress: Polling outcomes
    - BatchExecutionResult: Final executor outcome

All amounts that reach the chain are ``int`` attoFIL; Decimal FIL only
appears on display-form rows.
"""

from decimal import Decimal
from enum import Enum
from typing import List, Optional, Union

from pydantic import BaseModel, Field, field_serializer, field_validator

from ...schemas.bases import BatchState, CanonicalModel, TransactionStatus
from .constants import fil_to_atto, atto_to_fil


# ============================================================================
# Native messages
# ============================================================================

class FilecoinMessage(CanonicalModel):
    """
    Native Filecoin message.

    Field names follow Python conventions; the wire form (``by_alias=True``)
    uses Lotus names. ``Value``, ``GasFeeCap`` and ``GasPremium`` are
    big integers and serialize as decimal strings.

    Attributes:
        version: Message version, always 0
        to: Recipient Filecoin address
        from_: Sender Filecoin address
        nonce: Sender nonce
        value: Transfer value in attoFIL
        method: Actor method number (0 = plain send)
        params: Base64 encoded method params (empty for send)
        gas_limit: Gas units available to this message
        gas_fee_cap: Max attoFIL per gas unit
        gas_premium: Miner tip in attoFIL per gas unit
    """
    version: int = Field(0, alias="Version")
    to: str = Field(..., alias="To")
    from_: str = Field(..., alias="From")
    nonce: int = Field(..., ge=0, alias="Nonce")
    value: int = Field(..., ge=0, alias="Value")
    method: int = Field(0, ge=0, alias="Method")
    params: str = Field("", alias="Params")
    gas_limit: int = Field(0, ge=0, alias="GasLimit")
    gas_fee_cap: int = Field(0, ge=0, alias="GasFeeCap")
    gas_premium: int = Field(0, ge=0, alias="GasPremium")

    @field_validator("params", mode="before")
    @classmethod
    def _null_params(cls, v):
        # Lotus sends null for empty params
        return "" if v is None else v

    @field_serializer("value", "gas_fee_cap", "gas_premium")
    def _big_int_as_string(self, v: int) -> str:
        return str(v)

    def to_lotus(self) -> dict:
        """JSON-ready dict with Lotus field names, as expected by the node."""
        return self.model_dump(mode="json", by_alias=True)


class MessageSignature(CanonicalModel):
    """Signature attached to a SignedMessage (Type 1 = secp256k1)."""
    type: int = Field(..., alias="Type")
    data: str = Field(..., alias="Data")


class SignedMessage(CanonicalModel):
    """Payload for ``Filecoin.MpoolPush``."""
    message: FilecoinMessage = Field(..., alias="Message")
    signature: MessageSignature = Field(..., alias="Signature")

    def to_lotus(self) -> dict:
        return self.model_dump(mode="json", by_alias=True)


# ============================================================================
# Recipients
# ============================================================================

class BatchRecipient(BaseModel):
    """On-chain recipient row; ``amount`` is exact attoFIL."""
    address: str = Field(..., min_length=1)
    amount: int = Field(..., ge=0, description="attoFIL")

    def to_display(self) -> "Recipient":
        return Recipient(address=self.address, amount=atto_to_fil(self.amount))


class Recipient(BaseModel):
    """Display-form recipient row; ``amount`` is in FIL."""
    address: str = Field(..., min_length=1)
    amount: Decimal = Field(..., ge=0, description="FIL")

    def to_batch(self) -> BatchRecipient:
        """
        Convert to the on-chain form.

        Raises:
            ValueError: If the amount has more than 18 decimal places.
        """
        return BatchRecipient(address=self.address, amount=fil_to_atto(self.amount))


# ============================================================================
# Native batch results
# ============================================================================

class GasEstimate(BaseModel):
    """Gas parameters for a whole batch; ``gas_limit`` is the batch total."""
    gas_limit: int = Field(..., ge=0)
    gas_fee_cap: int = Field(..., ge=0)
    gas_premium: int = Field(..., ge=0)


class CostBreakdown(BaseModel):
    total_value: int
    total_gas_fees: int
    grand_total: int


class BalanceCheck(BaseModel):
    """
    Outcome of comparing a balance with the cost of a batch.

    Attributes:
        is_valid: True when the balance covers the grand total
        required: Grand total in attoFIL
        available: Sender balance in attoFIL
        shortfall: ``required - available`` when not valid, otherwise None
    """
    is_valid: bool
    required: int
    available: int
    shortfall: Optional[int] = None


class BatchTransactionResult(BaseModel):
    """
    Native multi-message batch ready for signing.

    Attributes:
        messages: Messages with gas already applied, contiguous nonces
        estimated_gas: Batch-wide gas estimate
        total_value: Sum of message values (attoFIL)
        fee_estimate: ``(fee_cap + premium) * gas_limit`` (attoFIL)
    """
    messages: List[FilecoinMessage]
    estimated_gas: GasEstimate
    total_value: int
    fee_estimate: int

    @property
    def grand_total(self) -> int:
        return self.total_value + self.fee_estimate


# ============================================================================
# Aggregated (Multicall3) results
# ============================================================================

class ErrorMode(str, Enum):
    """
    Failure policy for an aggregated batch.

    Attributes:
        ATOMIC: Any failing call reverts the whole transaction
        PARTIAL: Failing calls are skipped, the rest still execute
    """
    ATOMIC = "atomic"
    PARTIAL = "partial"


class Call3Value(BaseModel):
    """
    One leg of an ``aggregate3Value`` call.

    ``call_data`` is empty for a plain value transfer and only carries bytes
    when the leg goes through FilForwarder.
    """
    target: str
    allow_failure: bool
    value: int = Field(..., ge=0)
    call_data: bytes = b""

    @field_serializer("call_data")
    def _hex_call_data(self, v: bytes) -> str:
        return "0x" + v.hex()

    def as_abi_tuple(self) -> tuple:
        return (self.target, self.allow_failure, self.value, self.call_data)


class MulticallBatchResult(BaseModel):
    """
    A single transaction covering every recipient.

    Attributes:
        to: Multicall3 address
        data: 0x-hex ABI-encoded ``aggregate3Value`` calldata
        value: Exact sum of every leg's value (attoFIL)
        calls: The encoded legs, in recipient order
        recipient_count: Number of recipients covered
    """
    to: str
    data: str
    value: int
    calls: List[Call3Value]
    recipient_count: int


class Call3Result(BaseModel):
    """Decoded ``(bool success, bytes returnData)`` entry."""
    success: bool
    return_data: bytes = b""


# ============================================================================
# Status and progress
# ============================================================================

class TransactionStatusReport(BaseModel):
    """
    Status of one submitted message or transaction.

    Attributes:
        cid: Message CID or transaction hash
        status: pending / confirmed / failed
        height: Inclusion height once found
        exit_code: Receipt exit code once found (0 = success)
        error_message: Reason for a failed status
        timed_out: True when polling gave up without finding a receipt
    """
    cid: str
    status: TransactionStatus
    height: Optional[int] = None
    exit_code: Optional[int] = None
    error_message: Optional[str] = None
    timed_out: bool = False


class BatchProgressEntry(BaseModel):
    cid: str
    to: str
    amount: int
    status: TransactionStatus


class BatchProgress(BaseModel):
    """Aggregated status of a submitted native batch."""
    total: int
    completed: int
    pending: int
    failed: int
    transactions: List[BatchProgressEntry] = Field(default_factory=list)


class BatchExecutionResult(BaseModel):
    """
    Outcome of one executor run.

    ``success`` is True only when no error was recorded. Identifiers in
    ``transaction_cids`` are message CIDs (native path), a transaction hash
    (aggregated path) or synthetic ``dry-run-*`` ids.
    """
    success: bool
    transaction_cids: List[str] = Field(default_factory=list)
    errors: List[str] = Field(default_factory=list)
    batch_result: Optional[Union[BatchTransactionResult, MulticallBatchResult]] = None
    state: BatchState = BatchState.IDLE
    dry_run: bool = False
