"""
Tests for platform fee rows and FIL/attoFIL conversion.
"""

from decimal import Decimal

import pytest

from filbatch.adapters.filecoin.constants import (
    ATTO_PER_FIL,
    atto_to_fil,
    fil_to_atto,
    get_network,
)
from filbatch.adapters.filecoin.fees import FeeCalculator, prepare_recipients_with_fees
from filbatch.adapters.filecoin.schemas import BatchRecipient, Recipient
from filbatch.engine.exceptions import AmountValidationError, FeeAddressCollisionError, ValidationError

from test_mocks import (
    MOCK_FEE_ADDR_A,
    MOCK_FEE_ADDR_B,
    create_fee_config,
    create_recipients,
)


class TestFeeRows:

    def test_two_rows_appended_in_order(self):
        recipients = create_recipients("100", "100")
        rows = prepare_recipients_with_fees(recipients, create_fee_config())

        assert len(rows) == 4
        assert rows[:2] == recipients
        assert rows[2] == Recipient(address=MOCK_FEE_ADDR_A, amount=Decimal("1"))
        assert rows[3] == Recipient(address=MOCK_FEE_ADDR_B, amount=Decimal("1"))

    def test_input_list_not_modified(self):
        recipients = create_recipients("5")
        prepare_recipients_with_fees(recipients, create_fee_config())
        assert len(recipients) == 1

    def test_uneven_split(self):
        rows = prepare_recipients_with_fees(
            create_recipients("100"), create_fee_config(fee_split="0.3"),
        )
        assert rows[1].amount == Decimal("0.3")
        assert rows[2].amount == Decimal("0.7")

    def test_shares_truncate_to_six_decimals(self):
        calculator = FeeCalculator(create_fee_config())
        share_a, share_b = calculator.fee_shares(Decimal("1.23456789"))
        # fee 0.0123456789, half is 0.00617283945
        assert share_a == Decimal("0.006172")
        assert share_b == Decimal("0.006172")

    def test_tiny_total_still_gets_zero_rows(self):
        rows = prepare_recipients_with_fees(create_recipients("0.0000001"), create_fee_config())
        assert len(rows) == 3
        assert rows[1].amount == 0
        assert rows[2].amount == 0

    def test_zero_percent(self):
        rows = prepare_recipients_with_fees(
            create_recipients("100"), create_fee_config(fee_percent="0"),
        )
        assert [r.amount for r in rows[1:]] == [0, 0]

    def test_shares_never_exceed_fee(self):
        calculator = FeeCalculator(create_fee_config(fee_percent="2.5", fee_split="0.333"))
        total = Decimal("987.654321")
        share_a, share_b = calculator.fee_shares(total)
        assert share_a + share_b <= total * Decimal("2.5") / 100

    def test_collision_with_fee_address_raises(self):
        recipients = create_recipients("1") + [Recipient(address=MOCK_FEE_ADDR_B, amount=Decimal("1"))]
        with pytest.raises(FeeAddressCollisionError, match="Fee address included in recipient list"):
            prepare_recipients_with_fees(recipients, create_fee_config())

    def test_collision_ignores_case_and_whitespace(self):
        recipients = [Recipient(address=f" {MOCK_FEE_ADDR_A.upper()} ", amount=Decimal("1"))]
        with pytest.raises(FeeAddressCollisionError):
            prepare_recipients_with_fees(recipients, create_fee_config())

    def test_fee_rows_convert_exactly(self):
        rows = prepare_recipients_with_fees(create_recipients("1.5"), create_fee_config())
        # 1% of 1.5 FIL, halved
        assert rows[1].to_batch().amount == 7_500_000_000_000_000
        assert rows[2].to_batch().amount == 7_500_000_000_000_000


class TestUnits:

    @pytest.mark.parametrize("amount, expected", [
        ("1", ATTO_PER_FIL),
        (Decimal("0.1"), 10 ** 17),
        (0.1, 10 ** 17),
        (2, 2 * ATTO_PER_FIL),
        ("1e-18", 1),
        ("0", 0),
        ("123456789.123456789123456789", 123456789123456789123456789),
    ])
    def test_fil_to_atto(self, amount, expected):
        assert fil_to_atto(amount) == expected

    @pytest.mark.parametrize("amount", [
        "0.0000000000000000001",
        "-1",
        "abc",
        "NaN",
        "Infinity",
    ])
    def test_fil_to_atto_rejects(self, amount):
        with pytest.raises(AmountValidationError):
            fil_to_atto(amount)

    def test_amount_error_is_a_validation_error(self):
        with pytest.raises(ValidationError):
            fil_to_atto("0.0000000000000000001")

    def test_atto_to_fil(self):
        assert atto_to_fil(ATTO_PER_FIL) == Decimal(1)
        assert str(atto_to_fil(100 * ATTO_PER_FIL)) == "100"
        assert atto_to_fil(1) == Decimal("1e-18")
        assert atto_to_fil("1500000000000000000") == Decimal("1.5")

    @pytest.mark.parametrize("value", [-1, "1.5", "abc"])
    def test_atto_to_fil_rejects(self, value):
        with pytest.raises(AmountValidationError):
            atto_to_fil(value)

    @pytest.mark.parametrize("value", [0, 1, 10 ** 17, 123456789123456789123456789, 2 ** 200])
    def test_atto_round_trip(self, value):
        assert fil_to_atto(atto_to_fil(value)) == value

    def test_recipient_forms(self):
        row = Recipient(address="f1x", amount=Decimal("0.25"))
        assert row.to_batch() == BatchRecipient(address="f1x", amount=ATTO_PER_FIL // 4)
        assert row.to_batch().to_display() == row

    def test_networks(self):
        assert get_network(314).address_prefix == "f"
        assert get_network(314159).address_prefix == "t"
        with pytest.raises(KeyError):
            get_network(1)
