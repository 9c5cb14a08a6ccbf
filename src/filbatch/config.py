"""
Runtime Configuration

Loads RPC endpoints, fee parameters and the optional local signing key
from the environment (and a ``.env`` file, via python-dotenv).

Environment Variables:
    - GLIF_RPC_URL_PRIMARY:  Primary JSON-RPC endpoint (required)
    - GLIF_RPC_URL_FALLBACK: Fallback JSON-RPC endpoint (required)
    - GLIF_RPC_TIMEOUT_MS:   Per-attempt timeout in milliseconds (default 10000)
    - FEE_PERCENT:           Platform fee percentage of the batch total (default 1)
    - FEE_SPLIT:             Share of the fee paid to FEE_ADDR_A (default 0.5)
    - FEE_ADDR_A / FEE_ADDR_B: Fee collection addresses
    - FIL_CHAIN_ID:          314 (mainnet) or 314159 (calibration), default 314
    - FIL_PRIVATE_KEY:       Optional 0x-hex key for the local signer

Example:
    # .env
    GLIF_RPC_URL_PRIMARY=https://api.node.glif.io/rpc/v1
    GLIF_RPC_URL_FALLBACK=https://filecoin.chainup.net/rpc/v1

    settings = Settings.from_env()
    async with RpcClient.from_settings(settings) as rpc:
        ...
"""

import os
from decimal import Decimal, InvalidOperation
from typing import Optional

import dotenv
from pydantic import BaseModel, ConfigDict, Field, field_validator, ValidationError as PydanticValidationError

from .engine.exceptions import ConfigurationError


DEFAULT_RPC_TIMEOUT_MS = 10_000
DEFAULT_FEE_PERCENT = Decimal("1")
DEFAULT_FEE_SPLIT = Decimal("0.5")
DEFAULT_CHAIN_ID = 314


class FeeConfig(BaseModel):
    """
    Platform fee parameters.

    Attributes:
        fee_percent: Percentage of the recipient total taken as fee (>= 0)
        fee_split: Fraction of the fee paid to ``address_a``; the remainder
            goes to ``address_b``. Must lie in [0, 1].
        address_a: First fee collection address
        address_b: Second fee collection address
    """
    fee_percent: Decimal = Field(DEFAULT_FEE_PERCENT, ge=0)
    fee_split: Decimal = Field(DEFAULT_FEE_SPLIT, ge=0, le=1)
    address_a: str = Field(..., min_length=1)
    address_b: str = Field(..., min_length=1)

    @field_validator("address_a", "address_b")
    @classmethod
    def _strip(cls, v: str) -> str:
        return v.strip()


class Settings(BaseModel):
    """Process-wide configuration, immutable once loaded."""
    rpc_primary_url: str = Field(..., min_length=1)
    rpc_fallback_url: str = Field(..., min_length=1)
    rpc_timeout_ms: int = Field(DEFAULT_RPC_TIMEOUT_MS, gt=0)
    fee: Optional[FeeConfig] = None
    chain_id: int = DEFAULT_CHAIN_ID
    private_key: Optional[str] = Field(default=None, repr=False)

    model_config = ConfigDict(frozen=True)

    @classmethod
    def from_env(cls, env_file: Optional[str] = None) -> "Settings":
        """
        Build settings from environment variables.

        ``.env`` values never override variables already set in the
        process environment.

        Args:
            env_file: Optional explicit path to a .env file.

        Returns:
            Settings

        Raises:
            ConfigurationError: If a required variable is missing or a value
                cannot be parsed or fails validation.
        """
        dotenv.load_dotenv(env_file)

        primary = os.getenv("GLIF_RPC_URL_PRIMARY")
        fallback = os.getenv("GLIF_RPC_URL_FALLBACK")
        if not primary or not fallback:
            raise ConfigurationError(
                "GLIF_RPC_URL_PRIMARY and GLIF_RPC_URL_FALLBACK must both be set"
            )

        fee_a = os.getenv("FEE_ADDR_A")
        fee_b = os.getenv("FEE_ADDR_B")
        try:
            fee = None
            if fee_a and fee_b:
                fee = FeeConfig(
                    fee_percent=_env_decimal("FEE_PERCENT", DEFAULT_FEE_PERCENT),
                    fee_split=_env_decimal("FEE_SPLIT", DEFAULT_FEE_SPLIT),
                    address_a=fee_a,
                    address_b=fee_b,
                )
            return cls(
                rpc_primary_url=primary,
                rpc_fallback_url=fallback,
                rpc_timeout_ms=_env_int("GLIF_RPC_TIMEOUT_MS", DEFAULT_RPC_TIMEOUT_MS),
                fee=fee,
                chain_id=_env_int("FIL_CHAIN_ID", DEFAULT_CHAIN_ID),
                private_key=os.getenv("FIL_PRIVATE_KEY") or None,
            )
        except PydanticValidationError as e:
            raise ConfigurationError(f"Invalid configuration: {e}") from e


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return int(raw)
    except ValueError:
        raise ConfigurationError(f"{name} must be an integer, got {raw!r}") from None


def _env_decimal(name: str, default: Decimal) -> Decimal:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        value = Decimal(raw.strip())
    except InvalidOperation:
        raise ConfigurationError(f"{name} must be a number, got {raw!r}") from None
    if not value.is_finite():
        raise ConfigurationError(f"{name} must be a finite number, got {raw!r}")
    return value
