"""
Native Multi-Message Batch Builder

Builds one plain-send Filecoin message per recipient, estimates gas for the
batch and computes its exact cost.

Gas is estimated on the first message only and scaled linearly by the
message count; the sampled fee cap and premium are reused for every
message. Simple sends cost roughly the same, but recipients whose actors
charge more than the sample are not accounted for.
"""

import logging
from typing import List, Optional, Sequence, Union

from .constants import (
    DEFAULT_GAS_FEE_CAP,
    DEFAULT_GAS_LIMIT,
    DEFAULT_GAS_PREMIUM,
    FALLBACK_GAS_FEE_CAP,
    FALLBACK_GAS_LIMIT_PER_MESSAGE,
    FALLBACK_GAS_PREMIUM,
    METHOD_SEND,
)
from .router import AddressRouter
from .schemas import (
    BalanceCheck,
    BatchRecipient,
    BatchTransactionResult,
    CostBreakdown,
    FilecoinMessage,
    GasEstimate,
    Recipient,
)
from ...clients.lotus import LotusClient
from ...engine.exceptions import RpcError

logger = logging.getLogger(__name__)

AnyRecipient = Union[Recipient, BatchRecipient]


def _as_batch(recipient: AnyRecipient) -> BatchRecipient:
    return recipient.to_batch() if isinstance(recipient, Recipient) else recipient


class NativeMessageBuilder:
    """
    Builds native Filecoin message batches.

    Args:
        lotus: Node API used for gas estimation.
        router: Address router; 0x recipients are rendered as f410/t410.
    """

    def __init__(self, lotus: LotusClient, router: Optional[AddressRouter] = None):
        self.lotus = lotus
        self.router = router or AddressRouter()

    def build(
        self,
        recipients: Sequence[AnyRecipient],
        sender: str,
        starting_nonce: int = 0,
    ) -> List[FilecoinMessage]:
        """
        One send message per recipient, nonces ``starting_nonce + i``.

        Messages carry the default gas parameters until an estimate is
        applied.

        Raises:
            AddressValidationError: If any recipient address is unsupported.
            ValueError: If a FIL amount is not representable in attoFIL.
        """
        if starting_nonce < 0:
            raise ValueError("starting_nonce must be non-negative")

        messages = []
        for index, recipient in enumerate(recipients):
            row = _as_batch(recipient)
            messages.append(FilecoinMessage(
                to=self.router.to_filecoin_address(row.address),
                from_=sender,
                nonce=starting_nonce + index,
                value=row.amount,
                method=METHOD_SEND,
                params="",
                gas_limit=DEFAULT_GAS_LIMIT,
                gas_fee_cap=DEFAULT_GAS_FEE_CAP,
                gas_premium=DEFAULT_GAS_PREMIUM,
            ))
        return messages

    async def estimate_gas(self, messages: Sequence[FilecoinMessage]) -> GasEstimate:
        """
        Batch-wide gas estimate sampled from the first message.

        Falls back to conservative defaults when the node cannot estimate.

        Returns:
            GasEstimate: ``gas_limit`` is the total for all messages.
        """
        count = len(messages)
        if count == 0:
            return GasEstimate(gas_limit=0, gas_fee_cap=0, gas_premium=0)

        # Zeroed gas fields ask the node to estimate all three
        sample = messages[0].model_copy(update={"gas_limit": 0, "gas_fee_cap": 0, "gas_premium": 0})
        try:
            estimated = await self.lotus.gas_estimate_message_gas(sample)
        except RpcError as e:
            logger.warning(f"Gas estimation failed, using defaults: {e}")
            return GasEstimate(
                gas_limit=FALLBACK_GAS_LIMIT_PER_MESSAGE * count,
                gas_fee_cap=FALLBACK_GAS_FEE_CAP,
                gas_premium=FALLBACK_GAS_PREMIUM,
            )

        return GasEstimate(
            gas_limit=estimated.gas_limit * count,
            gas_fee_cap=estimated.gas_fee_cap,
            gas_premium=estimated.gas_premium,
        )

    @staticmethod
    def apply_estimate(messages: Sequence[FilecoinMessage], estimate: GasEstimate) -> List[FilecoinMessage]:
        """Split the total gas limit evenly (rounding up) and stamp fee cap/premium."""
        if not messages:
            return []
        # Integer ceil division
        per_message = -(-estimate.gas_limit // len(messages))
        return [
            message.model_copy(update={
                "gas_limit": per_message,
                "gas_fee_cap": estimate.gas_fee_cap,
                "gas_premium": estimate.gas_premium,
            })
            for message in messages
        ]

    @staticmethod
    def total_cost(messages: Sequence[FilecoinMessage], estimate: GasEstimate) -> CostBreakdown:
        """Exact-integer cost: fees are ``(fee_cap + premium) * gas_limit``."""
        total_value = sum(message.value for message in messages)
        total_gas_fees = (estimate.gas_fee_cap + estimate.gas_premium) * estimate.gas_limit
        return CostBreakdown(
            total_value=total_value,
            total_gas_fees=total_gas_fees,
            grand_total=total_value + total_gas_fees,
        )

    @staticmethod
    def validate_balance(balance: int, result: BatchTransactionResult) -> BalanceCheck:
        """
        Compare ``balance`` (attoFIL) with value plus fees of ``result``.

        Returns:
            BalanceCheck: ``shortfall`` is ``required - available`` when the
                balance is insufficient.
        """
        required = result.total_value + result.fee_estimate
        is_valid = balance >= required
        return BalanceCheck(
            is_valid=is_valid,
            required=required,
            available=balance,
            shortfall=None if is_valid else required - balance,
        )

    async def build_batch_transaction(
        self,
        recipients: Sequence[AnyRecipient],
        sender: str,
        starting_nonce: int = 0,
    ) -> BatchTransactionResult:
        """Build, estimate, apply the estimate and price a batch."""
        messages = self.build(recipients, sender, starting_nonce)
        estimate = await self.estimate_gas(messages)
        messages = self.apply_estimate(messages, estimate)
        cost = self.total_cost(messages, estimate)

        logger.debug(
            f"Built batch of {len(messages)} messages from {sender}: "
            f"value={cost.total_value} fees={cost.total_gas_fees} attoFIL"
        )
        return BatchTransactionResult(
            messages=messages,
            estimated_gas=estimate,
            total_value=cost.total_value,
            fee_estimate=cost.total_gas_fees,
        )
