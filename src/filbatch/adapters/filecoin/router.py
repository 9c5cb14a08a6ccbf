"""
Recipient Address Routing

Decides how a recipient address is paid:

    evm      0x addresses and f410/t410 delegated addresses; paid directly
             with a value transfer to the 0x form
    native   f1/f2/f3 (and t1/t2/t3) addresses; cannot be reached from the
             EVM side directly and are paid through FilForwarder with the
             raw address bytes as payload
    invalid  f0/t0 actor-ID addresses and anything unparseable

Classification only looks at the prefix; ``validate`` performs the full
checksum and format check.
"""

from enum import Enum
from typing import Union

from web3 import Web3

from .address import (
    NETWORK_PREFIXES,
    Protocol,
    address_to_bytes,
    delegated_from_eth_address,
    eth_address_from_delegated,
    parse_address,
)
from .constants import get_network
from ...engine.exceptions import AddressValidationError


ID_ADDRESS_UNSUPPORTED = "f0/t0 ID addresses are not supported"


class AddressType(str, Enum):
    EVM = "evm"
    NATIVE = "native"
    INVALID = "invalid"


_NATIVE_PROTOCOLS = {
    str(int(Protocol.SECP256K1)),
    str(int(Protocol.ACTOR)),
    str(int(Protocol.BLS)),
}


class AddressRouter:
    """
    Classifies and normalizes recipient addresses.

    Args:
        network: Network prefix ('f' or 't') used when rendering 0x
            addresses as Filecoin addresses.
    """

    def __init__(self, network: str = "f"):
        if network not in NETWORK_PREFIXES:
            raise ValueError(f"network must be one of {NETWORK_PREFIXES}, got {network!r}")
        self.network = network

    @classmethod
    def for_chain(cls, chain_id: int) -> "AddressRouter":
        """Router rendering addresses with the prefix of ``chain_id``'s network."""
        return cls(get_network(chain_id).address_prefix)

    # =========================================================================
    # Classification
    # =========================================================================

    @staticmethod
    def classify(address: str) -> AddressType:
        """
        Classify an address by prefix.

        Priority order: ``0x`` prefix, delegated protocol (4), native
        protocols (1, 2, 3), actor-ID protocol (0). Everything else is
        invalid.
        """
        text = address.strip() if isinstance(address, str) else ""
        if text[:2].lower() == "0x":
            return AddressType.EVM
        if len(text) < 2 or text[0] not in NETWORK_PREFIXES:
            return AddressType.INVALID

        protocol = text[1]
        if protocol == str(int(Protocol.DELEGATED)):
            return AddressType.EVM
        if protocol in _NATIVE_PROTOCOLS:
            return AddressType.NATIVE
        return AddressType.INVALID

    @staticmethod
    def is_id_address(address: str) -> bool:
        text = address.strip() if isinstance(address, str) else ""
        return len(text) >= 2 and text[0] in NETWORK_PREFIXES and text[1] == str(int(Protocol.ID))

    def validate(self, address: str) -> AddressType:
        """
        Fully validate an address.

        Returns:
            AddressType: The address category (never INVALID).

        Raises:
            AddressValidationError: For actor-ID addresses (with a specific
                message), bad checksums/lengths, non-EAM delegated
                addresses and unknown formats.
        """
        if self.is_id_address(address):
            raise AddressValidationError(ID_ADDRESS_UNSUPPORTED)

        address_type = self.classify(address)
        if address_type == AddressType.INVALID:
            raise AddressValidationError(f"Invalid address format: {address!r}")

        text = address.strip()
        if address_type == AddressType.EVM:
            if text[:2].lower() == "0x":
                if not Web3.is_address(text):
                    raise AddressValidationError(f"Invalid EVM address: {text}")
            else:
                eth_address_from_delegated(text)
        else:
            parse_address(text)

        return address_type

    # =========================================================================
    # Normalization
    # =========================================================================

    def to_evm_address(self, address: str) -> str:
        """
        Checksummed 0x form of an evm-classified address.

        Raises:
            AddressValidationError: If the address is not evm-classified or
                fails validation.
        """
        if self.validate(address) != AddressType.EVM:
            raise AddressValidationError(f"Address has no 0x form: {address}")
        text = address.strip()
        if text[:2].lower() == "0x":
            return Web3.to_checksum_address(text)
        return eth_address_from_delegated(text)

    def to_address_bytes(self, address: str) -> bytes:
        """
        Raw protocol bytes of a native address, used as the FilForwarder
        ``forward(bytes)`` argument.
        """
        if self.validate(address) != AddressType.NATIVE:
            raise AddressValidationError(f"Address is not a native Filecoin address: {address}")
        return address_to_bytes(address.strip())

    def normalize(self, address: str) -> Union[str, bytes]:
        """
        Routing form of an address: checksummed 0x string for evm
        addresses, raw protocol bytes for native addresses.
        """
        if self.validate(address) == AddressType.EVM:
            return self.to_evm_address(address)
        return self.to_address_bytes(address)

    def to_filecoin_address(self, address: str, network: str = None) -> str:
        """
        Render a valid recipient as a Filecoin address string.

        0x addresses become their f410/t410 delegated form; Filecoin
        addresses are returned trimmed, unchanged.

        Args:
            address: Any supported recipient address.
            network: Overrides the router's network prefix for 0x inputs.
        """
        self.validate(address)
        text = address.strip()
        if text[:2].lower() == "0x":
            return delegated_from_eth_address(text, network or self.network)
        return text
