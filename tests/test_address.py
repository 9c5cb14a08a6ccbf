"""
Tests for the Filecoin address codec and the recipient address router.
"""

import re

import pytest
from web3 import Web3

from filbatch.adapters.filecoin.address import (
    EAM_NAMESPACE,
    FilecoinAddress,
    Protocol,
    address_to_bytes,
    decode_leb128,
    delegated_from_eth_address,
    encode_leb128,
    eth_address_from_delegated,
    parse_address,
)
from filbatch.adapters.filecoin.router import ID_ADDRESS_UNSUPPORTED, AddressRouter, AddressType
from filbatch.engine.exceptions import AddressValidationError

from test_mocks import (
    MOCK_EVM_ADDRESS,
    MOCK_F0_ADDRESS,
    MOCK_F1_ADDRESS,
    MOCK_F2_ADDRESS,
    MOCK_F3_ADDRESS,
    MOCK_F410_ADDRESS,
    MOCK_T1_ADDRESS,
)


def _tamper(address: str, index: int = 6) -> str:
    replacement = "a" if address[index] != "a" else "b"
    return address[:index] + replacement + address[index + 1:]


class TestLeb128:

    @pytest.mark.parametrize("value, encoded", [
        (0, b"\x00"),
        (127, b"\x7f"),
        (128, b"\x80\x01"),
        (1234, b"\xd2\x09"),
    ])
    def test_encode(self, value, encoded):
        assert encode_leb128(value) == encoded

    def test_decode_reports_consumed_bytes(self):
        assert decode_leb128(b"\x80\x01\xff") == (128, 2)

    def test_truncated_value_raises(self):
        with pytest.raises(ValueError):
            decode_leb128(b"\x80\x80")

    def test_negative_value_raises(self):
        with pytest.raises(ValueError):
            encode_leb128(-1)


class TestParseAddress:

    def test_id_address_bytes(self):
        assert address_to_bytes(MOCK_F0_ADDRESS) == bytes([0x00, 0xD2, 0x09])
        assert str(parse_address(MOCK_F0_ADDRESS)) == MOCK_F0_ADDRESS

    @pytest.mark.parametrize("address", [
        MOCK_F1_ADDRESS, MOCK_F2_ADDRESS, MOCK_F3_ADDRESS, MOCK_T1_ADDRESS, MOCK_F410_ADDRESS,
    ])
    def test_string_round_trip(self, address):
        assert str(parse_address(address)) == address

    def test_payload_lengths(self):
        assert len(address_to_bytes(MOCK_F1_ADDRESS)) == 21
        assert len(address_to_bytes(MOCK_F3_ADDRESS)) == 49
        # protocol byte, LEB128(10), 20-byte sub-address
        assert address_to_bytes(MOCK_F410_ADDRESS)[:2] == bytes([4, EAM_NAMESPACE])

    def test_surrounding_whitespace_ignored(self):
        assert parse_address(f"  {MOCK_F1_ADDRESS} ") == parse_address(MOCK_F1_ADDRESS)

    def test_checksum_mismatch_raises(self):
        with pytest.raises(AddressValidationError):
            parse_address(_tamper(MOCK_F1_ADDRESS))

    def test_upper_case_payload_raises(self):
        address = MOCK_F1_ADDRESS[:2] + MOCK_F1_ADDRESS[2:].upper()
        with pytest.raises(AddressValidationError):
            parse_address(address)

    @pytest.mark.parametrize("address", [
        "",
        "f1",
        "x1abcdef",
        "f9abcdef",
        "f00123",
        f"f0{2 ** 63}",
        "f0abc",
        "f410xyz",
    ])
    def test_malformed_addresses_raise(self, address):
        with pytest.raises(AddressValidationError):
            parse_address(address)

    def test_wrong_payload_length_raises(self):
        short = str(FilecoinAddress(network="f", protocol=Protocol.SECP256K1, payload=bytes(19)))
        with pytest.raises(AddressValidationError, match="payload length"):
            parse_address(short)


class TestDelegatedMapping:

    def test_eth_round_trip(self):
        assert MOCK_F410_ADDRESS.startswith("f410f")
        assert eth_address_from_delegated(MOCK_F410_ADDRESS) == Web3.to_checksum_address(MOCK_EVM_ADDRESS)

    def test_testnet_prefix(self):
        assert delegated_from_eth_address(MOCK_EVM_ADDRESS, "t").startswith("t410f")

    def test_casing_does_not_change_result(self):
        checksummed = Web3.to_checksum_address(MOCK_EVM_ADDRESS)
        assert delegated_from_eth_address(checksummed) == MOCK_F410_ADDRESS

    def test_invalid_eth_address_raises(self):
        with pytest.raises(AddressValidationError):
            delegated_from_eth_address("0x1234")

    def test_non_delegated_address_raises(self):
        with pytest.raises(AddressValidationError, match="Not a delegated address"):
            eth_address_from_delegated(MOCK_F1_ADDRESS)

    def test_foreign_namespace_raises(self):
        foreign = str(FilecoinAddress(
            network="f", protocol=Protocol.DELEGATED, payload=bytes(20), namespace=32,
        ))
        with pytest.raises(AddressValidationError, match="namespace 32"):
            eth_address_from_delegated(foreign)


class TestAddressRouter:

    @pytest.fixture
    def router(self):
        return AddressRouter()

    @pytest.mark.parametrize("address, expected", [
        (MOCK_EVM_ADDRESS, AddressType.EVM),
        ("0X" + MOCK_EVM_ADDRESS[2:], AddressType.EVM),
        (MOCK_F410_ADDRESS, AddressType.EVM),
        (MOCK_F1_ADDRESS, AddressType.NATIVE),
        (MOCK_F2_ADDRESS, AddressType.NATIVE),
        (MOCK_F3_ADDRESS, AddressType.NATIVE),
        (MOCK_T1_ADDRESS, AddressType.NATIVE),
        (MOCK_F0_ADDRESS, AddressType.INVALID),
        ("f5abc", AddressType.INVALID),
        ("hello", AddressType.INVALID),
        ("", AddressType.INVALID),
    ])
    def test_classify(self, address, expected):
        assert AddressRouter.classify(address) == expected

    def test_id_address_rejected_with_specific_message(self, router):
        with pytest.raises(AddressValidationError, match=re.escape(ID_ADDRESS_UNSUPPORTED)):
            router.validate(MOCK_F0_ADDRESS)
        with pytest.raises(AddressValidationError, match=re.escape(ID_ADDRESS_UNSUPPORTED)):
            router.validate("t01000")

    def test_validate_returns_category(self, router):
        assert router.validate(MOCK_EVM_ADDRESS) == AddressType.EVM
        assert router.validate(MOCK_F410_ADDRESS) == AddressType.EVM
        assert router.validate(MOCK_F1_ADDRESS) == AddressType.NATIVE

    @pytest.mark.parametrize("address", ["0x1234", "hello", _tamper(MOCK_F1_ADDRESS)])
    def test_validate_rejects_bad_addresses(self, router, address):
        with pytest.raises(AddressValidationError):
            router.validate(address)

    def test_validate_rejects_non_string(self, router):
        with pytest.raises(AddressValidationError, match="Invalid address format"):
            router.validate(None)

    def test_to_evm_address(self, router):
        expected = Web3.to_checksum_address(MOCK_EVM_ADDRESS)
        assert router.to_evm_address(MOCK_EVM_ADDRESS) == expected
        assert router.to_evm_address(MOCK_F410_ADDRESS) == expected

    def test_to_evm_address_rejects_native(self, router):
        with pytest.raises(AddressValidationError, match="no 0x form"):
            router.to_evm_address(MOCK_F1_ADDRESS)

    def test_to_address_bytes(self, router):
        raw = router.to_address_bytes(MOCK_F1_ADDRESS)
        assert raw[0] == Protocol.SECP256K1
        assert raw == address_to_bytes(MOCK_F1_ADDRESS)

    def test_normalize(self, router):
        assert isinstance(router.normalize(MOCK_F410_ADDRESS), str)
        assert isinstance(router.normalize(MOCK_F2_ADDRESS), bytes)

    def test_to_filecoin_address(self, router):
        assert router.to_filecoin_address(MOCK_EVM_ADDRESS) == MOCK_F410_ADDRESS
        assert router.to_filecoin_address(MOCK_EVM_ADDRESS, network="t").startswith("t410f")
        assert router.to_filecoin_address(f" {MOCK_F1_ADDRESS} ") == MOCK_F1_ADDRESS

    def test_testnet_router(self):
        assert AddressRouter("t").to_filecoin_address(MOCK_EVM_ADDRESS).startswith("t410f")

    def test_unknown_network_rejected(self):
        with pytest.raises(ValueError):
            AddressRouter("x")

    @pytest.mark.parametrize("chain_id, prefix", [(314, "f"), (314159, "t")])
    def test_router_for_chain(self, chain_id, prefix):
        router = AddressRouter.for_chain(chain_id)
        assert router.network == prefix
        assert router.to_filecoin_address(MOCK_EVM_ADDRESS).startswith(f"{prefix}410f")

    def test_router_for_unknown_chain(self):
        with pytest.raises(KeyError):
            AddressRouter.for_chain(1)
