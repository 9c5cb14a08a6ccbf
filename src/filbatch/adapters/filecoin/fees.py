"""
Platform Fee Rows

Appends the two platform fee rows to a recipient list. Fee shares are
computed with Decimal arithmetic and truncated (never rounded up) to
``FEE_DECIMALS`` places of FIL.
"""

import logging
from decimal import Decimal, ROUND_DOWN, localcontext
from typing import List, Sequence

from .constants import FEE_DECIMALS, DECIMAL_PRECISION
from .schemas import Recipient
from ...config import FeeConfig
from ...engine.exceptions import FeeAddressCollisionError

logger = logging.getLogger(__name__)

_FEE_QUANTUM = Decimal(1).scaleb(-FEE_DECIMALS)


def _same_address(a: str, b: str) -> bool:
    return a.strip().lower() == b.strip().lower()


class FeeCalculator:
    """
    Computes and appends fee rows.

    Args:
        config: Fee percentage, split ratio and the two collection addresses.
    """

    def __init__(self, config: FeeConfig):
        self.config = config

    def fee_shares(self, total: Decimal) -> tuple:
        """
        Split the fee on ``total`` FIL into the (A, B) shares.

        Returns:
            tuple[Decimal, Decimal]: Shares truncated to six decimals.
        """
        with localcontext() as ctx:
            ctx.prec = DECIMAL_PRECISION
            fee_total = total * self.config.fee_percent / 100
            share_a = (fee_total * self.config.fee_split).quantize(_FEE_QUANTUM, rounding=ROUND_DOWN)
            share_b = (fee_total * (1 - self.config.fee_split)).quantize(_FEE_QUANTUM, rounding=ROUND_DOWN)
        return share_a, share_b

    def append_fee_rows(self, recipients: Sequence[Recipient]) -> List[Recipient]:
        """
        Return ``recipients`` followed by exactly two fee rows (A then B).

        Both rows are always present, even when a share truncates to zero.

        Raises:
            FeeAddressCollisionError: If any recipient is a fee address.
        """
        fee_addresses = (self.config.address_a, self.config.address_b)
        for recipient in recipients:
            if any(_same_address(recipient.address, fee) for fee in fee_addresses):
                raise FeeAddressCollisionError(
                    f"Fee address included in recipient list: {recipient.address}"
                )

        with localcontext() as ctx:
            ctx.prec = DECIMAL_PRECISION
            total = sum((r.amount for r in recipients), Decimal(0))
        share_a, share_b = self.fee_shares(total)
        logger.debug(f"Fee on {total} FIL: {share_a} to A, {share_b} to B")

        return [
            *recipients,
            Recipient(address=self.config.address_a, amount=share_a),
            Recipient(address=self.config.address_b, amount=share_b),
        ]


def prepare_recipients_with_fees(
    recipients: Sequence[Recipient],
    config: FeeConfig,
) -> List[Recipient]:
    """Convenience wrapper: ``FeeCalculator(config).append_fee_rows(recipients)``."""
    return FeeCalculator(config).append_fee_rows(recipients)
