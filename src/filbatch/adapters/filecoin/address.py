"""
Filecoin Address Codec

String <-> bytes conversion for the five Filecoin address protocols, and
the f410 delegated mapping between Filecoin and Ethereum-style addresses.

String form:  <network><protocol><payload>
    network   'f' (mainnet) or 't' (testnets)
    protocol  0 ID          decimal actor id
              1 SECP256K1   base32(20-byte hash || checksum)
              2 ACTOR       base32(20-byte hash || checksum)
              3 BLS         base32(48-byte pubkey || checksum)
              4 DELEGATED   <namespace>f base32(sub-address || checksum)

Byte form:    protocol byte || payload, where the payload of an ID address
is the LEB128 actor id and the payload of a delegated address is
LEB128(namespace) || sub-address.

The checksum is a 4-byte blake2b digest of the byte form; base32 is
RFC 4648, lower-case, without padding.
"""

import base64
import hashlib
from dataclasses import dataclass
from enum import IntEnum
from typing import Tuple

from web3 import Web3

from ...engine.exceptions import AddressValidationError


CHECKSUM_LENGTH = 4
PAYLOAD_HASH_LENGTH = 20
BLS_PUBLIC_KEY_LENGTH = 48
MAX_SUBADDRESS_LENGTH = 54

#: Namespace of the Ethereum Address Manager actor.
EAM_NAMESPACE = 10

NETWORK_PREFIXES = ("f", "t")


class Protocol(IntEnum):
    ID = 0
    SECP256K1 = 1
    ACTOR = 2
    BLS = 3
    DELEGATED = 4


_PAYLOAD_LENGTHS = {
    Protocol.SECP256K1: PAYLOAD_HASH_LENGTH,
    Protocol.ACTOR: PAYLOAD_HASH_LENGTH,
    Protocol.BLS: BLS_PUBLIC_KEY_LENGTH,
}


@dataclass(frozen=True)
class FilecoinAddress:
    """A parsed Filecoin address.

    Attributes:
        network: 'f' or 't'.
        protocol: Address protocol.
        payload: Protocol payload (for DELEGATED, the sub-address only).
        namespace: Actor id of the delegating namespace (DELEGATED only).
        actor_id: Actor id (ID only).
    """
    network: str
    protocol: Protocol
    payload: bytes = b""
    namespace: int = 0
    actor_id: int = 0

    def to_bytes(self) -> bytes:
        """Raw byte form: protocol byte followed by the protocol payload."""
        if self.protocol == Protocol.ID:
            return bytes([Protocol.ID]) + encode_leb128(self.actor_id)
        if self.protocol == Protocol.DELEGATED:
            return bytes([Protocol.DELEGATED]) + encode_leb128(self.namespace) + self.payload
        return bytes([self.protocol]) + self.payload

    def checksum(self) -> bytes:
        return address_checksum(self.to_bytes())

    def __str__(self) -> str:
        head = f"{self.network}{int(self.protocol)}"
        if self.protocol == Protocol.ID:
            return f"{head}{self.actor_id}"
        encoded = _b32encode(self.payload + self.checksum())
        if self.protocol == Protocol.DELEGATED:
            return f"{head}{self.namespace}f{encoded}"
        return f"{head}{encoded}"


# ---------------------------------------------------------------------------
# Primitives
# ---------------------------------------------------------------------------

def encode_leb128(value: int) -> bytes:
    """Unsigned LEB128 encoding."""
    if value < 0:
        raise ValueError("LEB128 value must be non-negative")
    out = bytearray()
    while True:
        byte = value & 0x7F
        value >>= 7
        if value:
            out.append(byte | 0x80)
        else:
            out.append(byte)
            return bytes(out)


def decode_leb128(data: bytes) -> Tuple[int, int]:
    """Decode an unsigned LEB128 prefix of ``data``.

    Returns:
        (value, number of bytes consumed)
    """
    value = 0
    shift = 0
    for index, byte in enumerate(data):
        value |= (byte & 0x7F) << shift
        if not byte & 0x80:
            return value, index + 1
        shift += 7
    raise ValueError("truncated LEB128 value")


def address_checksum(address_bytes: bytes) -> bytes:
    return hashlib.blake2b(address_bytes, digest_size=CHECKSUM_LENGTH).digest()


def _b32encode(data: bytes) -> str:
    return base64.b32encode(data).decode("ascii").lower().rstrip("=")


def _b32decode(text: str) -> bytes:
    if not text or text != text.lower():
        raise ValueError("base32 payload must be non-empty lower-case")
    padded = text.upper() + "=" * (-len(text) % 8)
    return base64.b32decode(padded)


# ---------------------------------------------------------------------------
# Parsing
# ---------------------------------------------------------------------------

def parse_address(address: str) -> FilecoinAddress:
    """
    Parse a Filecoin address string.

    Args:
        address: Address such as "f1...", "t3...", "f410f...", "f01234".

    Returns:
        FilecoinAddress with its checksum verified.

    Raises:
        AddressValidationError: On unknown network/protocol, bad base32,
            wrong payload length or checksum mismatch.
    """
    text = address.strip() if isinstance(address, str) else ""
    if len(text) < 3:
        raise AddressValidationError(f"Invalid address format: {address!r}")

    network, protocol_char, raw = text[0], text[1], text[2:]
    if network not in NETWORK_PREFIXES:
        raise AddressValidationError(f"Unknown network prefix in address: {address}")
    if not protocol_char.isdigit() or int(protocol_char) not in set(Protocol):
        raise AddressValidationError(f"Unknown address protocol in address: {address}")
    protocol = Protocol(int(protocol_char))

    if protocol == Protocol.ID:
        if not raw.isdigit() or (len(raw) > 1 and raw.startswith("0")):
            raise AddressValidationError(f"Invalid actor id in address: {address}")
        actor_id = int(raw)
        if actor_id >= 2 ** 63:
            raise AddressValidationError(f"Actor id out of range in address: {address}")
        return FilecoinAddress(network=network, protocol=protocol, actor_id=actor_id)

    if protocol == Protocol.DELEGATED:
        namespace_text, sep, raw = raw.partition("f")
        if not sep or not namespace_text.isdigit():
            raise AddressValidationError(f"Invalid delegated address: {address}")
        namespace = int(namespace_text)
    else:
        namespace = 0

    try:
        decoded = _b32decode(raw)
    except ValueError as e:
        raise AddressValidationError(f"Invalid base32 payload in address: {address}") from e

    if len(decoded) <= CHECKSUM_LENGTH:
        raise AddressValidationError(f"Address payload too short: {address}")
    payload, checksum = decoded[:-CHECKSUM_LENGTH], decoded[-CHECKSUM_LENGTH:]

    expected_length = _PAYLOAD_LENGTHS.get(protocol)
    if expected_length is not None and len(payload) != expected_length:
        raise AddressValidationError(
            f"Invalid payload length {len(payload)} for protocol {int(protocol)}: {address}"
        )
    if protocol == Protocol.DELEGATED and len(payload) > MAX_SUBADDRESS_LENGTH:
        raise AddressValidationError(f"Delegated sub-address too long: {address}")

    parsed = FilecoinAddress(
        network=network, protocol=protocol, payload=payload, namespace=namespace
    )
    if parsed.checksum() != checksum:
        raise AddressValidationError(f"Checksum mismatch for address: {address}")
    return parsed


def address_to_bytes(address: str) -> bytes:
    """Raw protocol byte representation of a Filecoin address string."""
    return parse_address(address).to_bytes()


# ---------------------------------------------------------------------------
# Delegated (f410) <-> Ethereum mapping
# ---------------------------------------------------------------------------

def delegated_from_eth_address(eth_address: str, network: str = "f") -> str:
    """
    Render a 0x address as its f410/t410 delegated Filecoin address.

    Args:
        eth_address: 20-byte hex address with 0x prefix (any casing).
        network: 'f' for mainnet, 't' for testnets.

    Returns:
        str: Delegated address, e.g. "f410f...".
    """
    if network not in NETWORK_PREFIXES:
        raise AddressValidationError(f"Unknown network prefix: {network!r}")
    if not Web3.is_address(eth_address):
        raise AddressValidationError(f"Invalid EVM address: {eth_address}")
    sub_address = bytes.fromhex(eth_address[2:])
    return str(FilecoinAddress(
        network=network,
        protocol=Protocol.DELEGATED,
        payload=sub_address,
        namespace=EAM_NAMESPACE,
    ))


def eth_address_from_delegated(address: str) -> str:
    """
    Convert an f410/t410 delegated address to its checksummed 0x form.

    Raises:
        AddressValidationError: If the address is not an EAM-delegated
            address with a 20-byte sub-address.
    """
    parsed = parse_address(address)
    if parsed.protocol != Protocol.DELEGATED:
        raise AddressValidationError(f"Not a delegated address: {address}")
    if parsed.namespace != EAM_NAMESPACE or len(parsed.payload) != PAYLOAD_HASH_LENGTH:
        raise AddressValidationError(
            f"Delegated address is not an Ethereum address (namespace {parsed.namespace}): {address}"
        )
    return Web3.to_checksum_address("0x" + parsed.payload.hex())
