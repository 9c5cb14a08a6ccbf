"""
Signing Capability

The executors never hold keys. They receive a :class:`Signer` and call it
once per message (native path) or once per batch (aggregated path).

Exported helpers
----------------
Signer
    Abstract async signing interface. Wallet integrations implement it.

LocalAccountSigner
    In-process implementation backed by ``eth_account``; handy for scripts
    and for calibration-net testing with a funded key.

message_signing_payload
    The exact string handed to ``Signer.sign_message`` for a native message.

signature_to_lotus_data
    Converts a 0x-hex signature into the base64 ``Signature.Data`` field.
"""

import base64
from abc import ABC, abstractmethod
from typing import Any, Dict

from eth_account import Account
from eth_account.messages import encode_defunct
from web3 import Web3

from .schemas import FilecoinMessage


class Signer(ABC):
    """Async signing interface injected into the executors."""

    @property
    @abstractmethod
    def address(self) -> str:
        """0x address of the signing account."""

    @abstractmethod
    async def sign_message(self, data: str) -> str:
        """
        Sign an arbitrary text payload.

        Returns:
            str: 0x-hex signature.
        """

    @abstractmethod
    async def sign_transaction(self, tx: Dict[str, Any]) -> bytes:
        """
        Sign an EVM transaction dict.

        Returns:
            bytes: Raw signed transaction, ready for ``eth_sendRawTransaction``.
        """


class LocalAccountSigner(Signer):
    """
    Signs with a private key held in memory.

    Args:
        private_key: 0x-prefixed hex private key.

    Example::

        signer = LocalAccountSigner(settings.private_key)
        result = await executor.execute(recipients, sender, signer=signer)
    """

    def __init__(self, private_key: str):
        self.account = Account.from_key(private_key)

    @property
    def address(self) -> str:
        return self.account.address

    async def sign_message(self, data: str) -> str:
        # EIP-191 personal_sign
        signed = self.account.sign_message(encode_defunct(text=data))
        return Web3.to_hex(signed.signature)

    async def sign_transaction(self, tx: Dict[str, Any]) -> bytes:
        signed = self.account.sign_transaction(tx)
        return bytes(signed.raw_transaction)


def message_signing_payload(message: FilecoinMessage) -> str:
    """Canonical JSON of a message with Lotus field names."""
    return message.to_canonical_json()


def signature_to_lotus_data(signature: str) -> str:
    """
    Convert a 0x-hex signature to base64 for ``Signature.Data``.

    Strings that are not 0x-hex are assumed to be base64 already and are
    returned unchanged.
    """
    if signature[:2].lower() != "0x":
        return signature
    return base64.b64encode(Web3.to_bytes(hexstr=signature)).decode("ascii")
