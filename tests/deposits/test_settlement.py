from decimal import Decimal

from rpay.services.deposits.service import compute_settlement, poll_message


class TestComputeSettlement:
    def test_reference_amount(self):
        s = compute_settlement(10000)
        assert s.fee == 440
        assert s.credited == 9560

    def test_percentage_part_is_floored(self):
        # 12345 * 0.014 = 172.83
        s = compute_settlement(12345)
        assert s.fee == 172 + 300
        assert s.credited == 12345 - 472

    def test_minimum_nominal(self):
        s = compute_settlement(1000)
        assert s.fee == 314
        assert s.credited == 686

    def test_large_amount_has_no_float_drift(self):
        s = compute_settlement(100_000_000)
        assert s.fee == 1_400_300
        assert s.nominal - s.fee == s.credited

    def test_custom_rate_and_flat(self):
        s = compute_settlement(10000, fee_rate=Decimal("0.02"), fee_flat=0)
        assert s.fee == 200
        assert s.credited == 9800


class TestPollMessage:
    def test_messages(self):
        assert poll_message("success") == "Payment successful"
        assert poll_message("pending") == "Waiting for payment"
        assert poll_message("expired") == "Payment expired/failed"
        assert poll_message("failed") == "Payment expired/failed"
