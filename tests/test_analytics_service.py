# =============================================================================
# tests/test_analytics_service.py - Seller Earnings Tests
# =============================================================================

from datetime import datetime, timezone
from unittest.mock import patch

import pandas as pd

from core.services.analytics_service import COLUMNS, AnalyticsService, summarize_orders

JAN = int(datetime(2025, 1, 15, tzinfo=timezone.utc).timestamp() * 1000)
FEB = int(datetime(2025, 2, 3, tzinfo=timezone.utc).timestamp() * 1000)


class TestSummarizeOrders:
    """Tests for summarize_orders."""

    def test_empty(self):
        summary = summarize_orders(pd.DataFrame([], columns=COLUMNS))

        assert summary["ordersCount"] == 0
        assert summary["monthly"] == []

    def test_totals_and_months(self):
        frame = pd.DataFrame([
            {"amount": 10000, "application_fee_amount": 300, "stripe_fee": 320, "created_ms": JAN},
            {"amount": 5000, "application_fee_amount": 150, "stripe_fee": 175, "created_ms": JAN},
            {"amount": 2000, "application_fee_amount": 0, "stripe_fee": 88, "created_ms": FEB},
        ], columns=COLUMNS)

        summary = summarize_orders(frame)

        assert summary["ordersCount"] == 3
        assert summary["gross"] == 17000
        assert summary["applicationFees"] == 450
        assert summary["netAfterPlatform"] == 16550
        assert summary["netAfterStripe"] == 16550 - 583
        assert [m["month"] for m in summary["monthly"]] == ["2025-01", "2025-02"]
        assert summary["monthly"][0]["orders"] == 2
        assert summary["monthly"][0]["net"] == 15000 - 450 - 495

    def test_missing_dates_grouped_as_unknown(self):
        frame = pd.DataFrame([
            {"amount": 1000, "application_fee_amount": 30, "stripe_fee": 0, "created_ms": None},
            {"amount": 1000, "application_fee_amount": 30, "stripe_fee": 0, "created_ms": FEB},
        ], columns=COLUMNS)

        months = {m["month"]: m["orders"] for m in summarize_orders(frame)["monthly"]}

        assert months == {"2025-02": 1, "unknown": 1}


class TestSellerSummary:
    """Tests for AnalyticsService.seller_summary."""

    def test_reads_seller_orders(self, db):
        db.seed("orders/o1", {
            "sellerId": "seller", "amount": 10000, "application_fee_amount": 300,
            "paymentIntentId": "pi_1", "createdAt": datetime(2025, 1, 15, tzinfo=timezone.utc),
        })
        db.seed("orders/o2", {"sellerId": "other", "amount": 99999})
        db.seed("orders/o3", {"sellerId": "seller", "amount": 500, "orderType": "subscription_change"})

        with patch("core.services.analytics_service.stripe_fee_for_payment_intent", return_value=320) as fee:
            summary = AnalyticsService.seller_summary("seller")

        fee.assert_called_once_with("pi_1")
        assert summary["ordersCount"] == 1
        assert summary["stripeFees"] == 320
        assert summary["monthly"][0]["month"] == "2025-01"

    def test_skip_stripe_fees(self, db):
        db.seed("orders/o1", {"sellerId": "seller", "amount": 10000, "paymentIntentId": "pi_1"})

        with patch("core.services.analytics_service.stripe_fee_for_payment_intent") as fee:
            summary = AnalyticsService.seller_summary("seller", include_stripe_fees=False)

        fee.assert_not_called()
        assert summary["netAfterStripe"] == 10000
