"""
Filecoin Chain Constants

Provides the fixed values shared by the builders and executors: unit
scale, on-chain contract addresses, default gas parameters, and the
canonical FIL <-> attoFIL conversions.
"""

from decimal import Decimal, InvalidOperation, localcontext
from typing import Dict, Union

from pydantic import BaseModel, Field

from ...engine.exceptions import AmountValidationError


# ---------------------------------------------------------------------------
# Units
# ---------------------------------------------------------------------------

#: attoFIL per FIL (1 FIL = 10**18 attoFIL).
FIL_DECIMALS: int = 18
ATTO_PER_FIL: int = 10 ** FIL_DECIMALS

#: Fee rows are truncated to this many decimal places of FIL.
FEE_DECIMALS: int = 6

#: Working precision for unit conversions; wide enough for any uint256.
DECIMAL_PRECISION: int = 100


# ---------------------------------------------------------------------------
# Contracts (same address on mainnet and Calibration)
# ---------------------------------------------------------------------------

#: Multicall3 aggregation contract.
MULTICALL3_ADDRESS: str = "0xcA11bde05977b3631167028862bE2a173976CA11"

#: FilForwarder: relays value to the Filecoin address encoded in its payload.
FILFORWARDER_ADDRESS: str = "0x2b3ef6906429b580b7b2080de5ca893bc282c225"


# ---------------------------------------------------------------------------
# Gas defaults (attoFIL per gas unit)
# ---------------------------------------------------------------------------

#: Applied to freshly built messages before estimation.
DEFAULT_GAS_LIMIT: int = 1_000_000
DEFAULT_GAS_FEE_CAP: int = 1_000_000_000   # 1 nanoFIL
DEFAULT_GAS_PREMIUM: int = 100_000_000     # 0.1 nanoFIL

#: Used when estimation fails; gas limit is per message.
FALLBACK_GAS_LIMIT_PER_MESSAGE: int = 1_500_000
FALLBACK_GAS_FEE_CAP: int = 2_000_000_000  # 2 nanoFIL
FALLBACK_GAS_PREMIUM: int = 100_000_000

#: Aggregated-path gas limit per call when eth_estimateGas is unreachable.
FALLBACK_MULTICALL_GAS_PER_CALL: int = 5_000_000

#: Multicall gas estimates are padded by this percentage.
GAS_BUFFER_PERCENT: int = 10

#: Lotus method number for a plain value transfer.
METHOD_SEND: int = 0

#: Signature type tag for secp256k1 signatures in a SignedMessage.
SIG_TYPE_SECP256K1: int = 1


class FilecoinNetworkConfig(BaseModel):
    """Filecoin network configuration."""
    name: str
    chain_id: int = Field(..., description="EVM chain id (FEVM)")
    address_prefix: str = Field(..., description="'f' for mainnet, 't' for testnets")


NETWORKS: Dict[int, FilecoinNetworkConfig] = {
    314: FilecoinNetworkConfig(
        name="Filecoin Mainnet",
        chain_id=314,
        address_prefix="f",
    ),
    314159: FilecoinNetworkConfig(
        name="Filecoin Calibration",
        chain_id=314159,
        address_prefix="t",
    ),
}


def get_network(chain_id: int) -> FilecoinNetworkConfig:
    """Return the network configuration for ``chain_id``.

    Raises:
        KeyError: If the chain id is not a known Filecoin network.
    """
    try:
        return NETWORKS[chain_id]
    except KeyError:
        raise KeyError(
            f"Unsupported chain_id {chain_id}; expected one of {sorted(NETWORKS)}"
        ) from None


def fil_to_atto(amount: Union[Decimal, int, str, float]) -> int:
    """Convert a human-readable FIL ``amount`` into an exact attoFIL integer.

    This is the canonical one-way conversion used before anything goes on
    chain. Floats are routed through ``str()`` so 0.1 stays 0.1.

    Args:
        amount: FIL amount. Accepts Decimal/int/str/float.

    Returns:
        int: attoFIL value.

    Raises:
        AmountValidationError: If the amount is negative, not a number, or
            has more than 18 decimal places (would create fractional attoFIL).
    """
    try:
        dec_amount = amount if isinstance(amount, Decimal) else Decimal(str(amount))
    except (InvalidOperation, ValueError, TypeError) as e:
        raise AmountValidationError(f"Invalid amount: {amount!r}") from e

    if not dec_amount.is_finite():
        raise AmountValidationError(f"Invalid amount: {amount!r}")
    if dec_amount < 0:
        raise AmountValidationError("amount must be non-negative")

    with localcontext() as ctx:
        ctx.prec = DECIMAL_PRECISION
        scaled = dec_amount.scaleb(FIL_DECIMALS)
        exact = scaled == scaled.to_integral_value()

    # Require exact attoFIL representability
    if not exact:
        raise AmountValidationError(
            f"amount {amount!r} is not representable in attoFIL "
            f"(more than {FIL_DECIMALS} decimal places)"
        )

    return int(scaled)


def atto_to_fil(value: Union[int, str, Decimal]) -> Decimal:
    """Convert an attoFIL integer ``value`` into an exact FIL Decimal for display.

    Args:
        value: attoFIL value. Accepts int/str/Decimal.

    Returns:
        Decimal: FIL amount, normalized (no trailing zeros).

    Raises:
        AmountValidationError: If the value is negative or not an integer.
    """
    try:
        dec_value = value if isinstance(value, Decimal) else Decimal(str(value))
    except (InvalidOperation, ValueError, TypeError) as e:
        raise AmountValidationError(f"Invalid value: {value!r}") from e

    if not dec_value.is_finite() or dec_value != dec_value.to_integral_value():
        raise AmountValidationError("value must be an integer number of attoFIL")
    if dec_value < 0:
        raise AmountValidationError("value must be non-negative")

    with localcontext() as ctx:
        ctx.prec = DECIMAL_PRECISION
        fil = dec_value.scaleb(-FIL_DECIMALS)
        # normalize() would render 100 as 1E+2
        if fil == fil.to_integral_value():
            return fil.quantize(Decimal(1))
        return fil.normalize()
