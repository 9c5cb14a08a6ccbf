"""
Tests for the Multicall3 aggregated batch builder.
"""

from decimal import Decimal

import pytest
from eth_abi import decode, encode
from web3 import Web3

from filbatch.adapters.filecoin.abi import (
    CALL3_VALUE_ARRAY_TYPE,
    RESULT_ARRAY_TYPE,
    get_aggregate3_value_abi,
    get_forward_abi,
)
from filbatch.adapters.filecoin.address import address_to_bytes
from filbatch.adapters.filecoin.constants import ATTO_PER_FIL, FILFORWARDER_ADDRESS, MULTICALL3_ADDRESS
from filbatch.adapters.filecoin.multicall import (
    AGGREGATE3_VALUE_SELECTOR,
    FORWARD_SELECTOR,
    MulticallBatchBuilder,
    encode_forward_call,
)
from filbatch.adapters.filecoin.schemas import BatchRecipient, ErrorMode, Recipient
from filbatch.engine.exceptions import AddressValidationError, ValidationError

from test_mocks import (
    MOCK_EVM_ADDRESS_2,
    MOCK_F0_ADDRESS,
    MOCK_F1_ADDRESS,
    MOCK_F3_ADDRESS,
    MOCK_F410_ADDRESS,
    MOCK_EVM_ADDRESS,
)


@pytest.fixture
def builder():
    return MulticallBatchBuilder()


@pytest.fixture
def mixed_recipients():
    return [
        Recipient(address=MOCK_EVM_ADDRESS_2, amount=Decimal("1")),
        Recipient(address=MOCK_F1_ADDRESS, amount=Decimal("2")),
    ]


def _decode_calls(data: str):
    (calls,) = decode([CALL3_VALUE_ARRAY_TYPE], bytes.fromhex(data[10:]))
    return calls


class TestMulticallBuild:

    def test_routes_each_recipient(self, builder, mixed_recipients):
        result = builder.build(mixed_recipients)

        assert result.to == MULTICALL3_ADDRESS
        assert result.recipient_count == 2
        assert len(result.calls) == 2

        direct, forwarded = result.calls
        assert direct.target == Web3.to_checksum_address(MOCK_EVM_ADDRESS_2)
        assert direct.call_data == b""
        assert direct.value == ATTO_PER_FIL

        assert forwarded.target == Web3.to_checksum_address(FILFORWARDER_ADDRESS)
        assert forwarded.call_data == encode_forward_call(address_to_bytes(MOCK_F1_ADDRESS))
        assert forwarded.value == 2 * ATTO_PER_FIL

    def test_value_is_exact_sum(self, builder):
        recipients = [
            BatchRecipient(address=MOCK_EVM_ADDRESS_2, amount=1),
            BatchRecipient(address=MOCK_F3_ADDRESS, amount=10 ** 30 + 7),
            Recipient(address=MOCK_F410_ADDRESS, amount=Decimal("0.000000000000000003")),
        ]
        result = builder.build(recipients)
        assert result.value == 10 ** 30 + 11

    def test_delegated_recipient_paid_directly(self, builder):
        result = builder.build([Recipient(address=MOCK_F410_ADDRESS, amount=Decimal("1"))])
        assert result.calls[0].target == Web3.to_checksum_address(MOCK_EVM_ADDRESS)
        assert result.calls[0].call_data == b""

    @pytest.mark.parametrize("mode, allow_failure", [
        (ErrorMode.ATOMIC, False),
        (ErrorMode.PARTIAL, True),
        ("atomic", False),
    ])
    def test_error_mode_sets_allow_failure(self, builder, mixed_recipients, mode, allow_failure):
        result = builder.build(mixed_recipients, mode)
        assert all(call.allow_failure is allow_failure for call in result.calls)

    def test_default_mode_is_partial(self, builder, mixed_recipients):
        assert all(call.allow_failure for call in builder.build(mixed_recipients).calls)

    def test_empty_batch_rejected(self, builder):
        with pytest.raises(ValidationError, match="No recipients provided"):
            builder.build([])

    def test_invalid_address_rejects_whole_batch(self, builder, mixed_recipients):
        recipients = mixed_recipients + [Recipient(address=MOCK_F0_ADDRESS, amount=Decimal("1"))]
        with pytest.raises(AddressValidationError):
            builder.build(recipients)

    def test_unknown_error_mode_rejected(self, builder, mixed_recipients):
        with pytest.raises(ValueError):
            builder.build(mixed_recipients, "best-effort")


class TestMulticallEncoding:

    def test_selectors(self):
        assert AGGREGATE3_VALUE_SELECTOR.hex() == "174dea71"
        assert len(FORWARD_SELECTOR) == 4

    def test_calldata_decodes_to_calls(self, builder, mixed_recipients):
        result = builder.build(mixed_recipients, ErrorMode.ATOMIC)
        assert result.data.startswith("0x" + AGGREGATE3_VALUE_SELECTOR.hex())

        decoded = _decode_calls(result.data)
        assert len(decoded) == 2
        for (target, allow_failure, value, call_data), call in zip(decoded, result.calls):
            assert target.lower() == call.target.lower()
            assert allow_failure is False
            assert value == call.value
            assert call_data == call.call_data

    def test_forward_payload_is_raw_address_bytes(self, builder, mixed_recipients):
        forwarded = builder.build(mixed_recipients).calls[1]
        assert forwarded.call_data[:4] == FORWARD_SELECTOR
        (destination,) = decode(["bytes"], forwarded.call_data[4:])
        assert destination == address_to_bytes(MOCK_F1_ADDRESS)

    def test_call_data_serializes_as_hex(self, builder, mixed_recipients):
        dumped = builder.build(mixed_recipients).model_dump()
        assert dumped["calls"][0]["call_data"] == "0x"
        assert dumped["calls"][1]["call_data"].startswith("0x" + FORWARD_SELECTOR.hex())

    def test_decode_results(self):
        raw = encode([RESULT_ARRAY_TYPE], [[(True, b""), (False, b"\x08\xc3")]])

        results = MulticallBatchBuilder.decode_results(raw)
        assert [r.success for r in results] == [True, False]
        assert results[1].return_data == b"\x08\xc3"

        assert MulticallBatchBuilder.decode_results("0x" + raw.hex()) == results

    def test_abi_fragments(self):
        (aggregate,) = get_aggregate3_value_abi()
        assert aggregate["name"] == "aggregate3Value"
        assert aggregate["stateMutability"] == "payable"
        assert [c["type"] for c in aggregate["inputs"][0]["components"]] == [
            "address", "bool", "uint256", "bytes",
        ]
        (forward,) = get_forward_abi()
        assert forward["inputs"] == [{"name": "destination", "type": "bytes"}]

    def test_types_derived_from_abi(self):
        assert CALL3_VALUE_ARRAY_TYPE == "(address,bool,uint256,bytes)[]"
        assert RESULT_ARRAY_TYPE == "(bool,bytes)[]"
        assert FORWARD_SELECTOR == Web3.keccak(text="forward(bytes)")[:4]
