from .filecoin import (
    AddressRouter,
    AddressType,
    FeeCalculator,
    NativeMessageBuilder,
    MulticallBatchBuilder,
    ErrorMode,
    Signer,
    LocalAccountSigner,
)

__all__ = [
    "AddressRouter",
    "AddressType",
    "FeeCalculator",
    "NativeMessageBuilder",
    "MulticallBatchBuilder",
    "ErrorMode",
    "Signer",
    "LocalAccountSigner",
]
