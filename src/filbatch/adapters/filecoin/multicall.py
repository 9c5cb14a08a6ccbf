"""
Multicall3 Aggregated Batch Builder

Collapses N heterogeneous payments into one ``aggregate3Value`` call on
Multicall3 (0xcA11bde05977b3631167028862bE2a173976CA11), so the whole batch
needs a single signature.

Routing per recipient:
    evm     direct value transfer to the 0x address, empty call data
    native  value sent to FilForwarder with ``forward(bytes)`` call data
            carrying the raw Filecoin address bytes
    invalid rejects the whole batch before any call is built
"""

import logging
from typing import List, Sequence, Union

from eth_abi import decode, encode
from eth_utils import to_checksum_address

from .abi import (
    AGGREGATE3_VALUE_SELECTOR,
    CALL3_VALUE_ARRAY_TYPE,
    FORWARD_INPUT_TYPES,
    FORWARD_SELECTOR,
    RESULT_ARRAY_TYPE,
)
from .constants import FILFORWARDER_ADDRESS, MULTICALL3_ADDRESS
from .router import AddressRouter, AddressType
from .schemas import (
    BatchRecipient,
    Call3Result,
    Call3Value,
    ErrorMode,
    MulticallBatchResult,
    Recipient,
)
from ...engine.exceptions import ValidationError

logger = logging.getLogger(__name__)


def encode_forward_call(destination: bytes) -> bytes:
    """Calldata for FilForwarder ``forward(destination)``."""
    return FORWARD_SELECTOR + encode(FORWARD_INPUT_TYPES, [destination])


def encode_aggregate3_value(calls: Sequence[Call3Value]) -> bytes:
    """Calldata for Multicall3 ``aggregate3Value(calls)``."""
    return AGGREGATE3_VALUE_SELECTOR + encode(
        [CALL3_VALUE_ARRAY_TYPE],
        [[call.as_abi_tuple() for call in calls]],
    )


class MulticallBatchBuilder:
    """
    Builds one Multicall3 transaction for a list of recipients.

    Args:
        router: Address router used to validate and classify recipients.
    """

    def __init__(self, router: AddressRouter = None):
        self.router = router or AddressRouter()

    def build(
        self,
        recipients: Sequence[Union[Recipient, BatchRecipient]],
        error_mode: Union[ErrorMode, str] = ErrorMode.PARTIAL,
    ) -> MulticallBatchResult:
        """
        Encode the batch.

        Args:
            recipients: Rows in payment order; FIL rows are converted to
                attoFIL exactly.
            error_mode: ATOMIC marks every call failure-intolerant, PARTIAL
                marks every call failure-tolerant.

        Returns:
            MulticallBatchResult: Target Multicall3, encoded calldata and the
                exact sum of all values.

        Raises:
            ValidationError: If ``recipients`` is empty.
            AddressValidationError: If any address is invalid; raised before
                any call is built.
        """
        if not recipients:
            raise ValidationError("No recipients provided")
        mode = ErrorMode(error_mode)

        rows = [r.to_batch() if isinstance(r, Recipient) else r for r in recipients]
        routes = [self.router.validate(row.address) for row in rows]

        allow_failure = mode == ErrorMode.PARTIAL
        forwarder = to_checksum_address(FILFORWARDER_ADDRESS)
        calls: List[Call3Value] = []
        for row, route in zip(rows, routes):
            if route == AddressType.EVM:
                calls.append(Call3Value(
                    target=self.router.to_evm_address(row.address),
                    allow_failure=allow_failure,
                    value=row.amount,
                    call_data=b"",
                ))
            else:
                calls.append(Call3Value(
                    target=forwarder,
                    allow_failure=allow_failure,
                    value=row.amount,
                    call_data=encode_forward_call(self.router.to_address_bytes(row.address)),
                ))

        total_value = sum(call.value for call in calls)
        data = encode_aggregate3_value(calls)
        logger.debug(
            f"Built {mode.value} multicall batch: {len(calls)} calls, value={total_value} attoFIL"
        )
        return MulticallBatchResult(
            to=MULTICALL3_ADDRESS,
            data="0x" + data.hex(),
            value=total_value,
            calls=calls,
            recipient_count=len(rows),
        )

    @staticmethod
    def decode_results(return_data: Union[bytes, str]) -> List[Call3Result]:
        """
        Decode the ``(bool success, bytes returnData)[]`` returned by
        ``aggregate3Value``.
        """
        if isinstance(return_data, str):
            text = return_data[2:] if return_data[:2].lower() == "0x" else return_data
            return_data = bytes.fromhex(text)
        (results,) = decode([RESULT_ARRAY_TYPE], return_data)
        return [Call3Result(success=success, return_data=data) for success, data in results]
