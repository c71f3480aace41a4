from __future__ import annotations

import unittest

from app.domain.dimensions import (
    DealSizeBand,
    calculate_deal_size_band,
    dimension_label,
    is_valid_vendor_id,
)
from app.domain.vendor_order import FinanceStatus
from app.normalizers.dimension_normalizer import (
    normalize_vendor_id,
    parse_country,
    parse_currency,
    parse_customer_segment,
    parse_sales_channel,
    parse_vendor_id,
)
from app.normalizers.status_normalizer import normalize_status


class TestFinanceStatus(unittest.TestCase):
    def test_direct_keywords(self) -> None:
        self.assertEqual(normalize_status("Approved"), FinanceStatus.APPROVED)
        self.assertEqual(normalize_status("DECLINED"), FinanceStatus.DECLINED)
        self.assertEqual(normalize_status("pending"), FinanceStatus.PENDING)
        self.assertEqual(normalize_status("withdrawn"), FinanceStatus.CANCELLED)

    def test_separators_are_treated_as_spaces(self) -> None:
        self.assertEqual(normalize_status("under_review"), FinanceStatus.PENDING)
        self.assertEqual(normalize_status("in-review"), FinanceStatus.PENDING)

    def test_substring_fallback(self) -> None:
        self.assertEqual(normalize_status("Application Approved by lender"), FinanceStatus.APPROVED)

    def test_unknown_and_blank_are_other(self) -> None:
        self.assertEqual(normalize_status("shrug"), FinanceStatus.OTHER)
        self.assertEqual(normalize_status("   "), FinanceStatus.OTHER)
        self.assertEqual(normalize_status(None), FinanceStatus.OTHER)


class TestDimensions(unittest.TestCase):
    def test_sales_channel_aliases(self) -> None:
        self.assertEqual(parse_sales_channel("Online").value, "web")
        self.assertEqual(parse_sales_channel("In Store").value, "in-store")
        self.assertEqual(parse_sales_channel("call_center").value, "phone")
        self.assertTrue(parse_sales_channel("carrier pigeon").is_invalid)

    def test_customer_segment_aliases(self) -> None:
        self.assertEqual(parse_customer_segment("Sole Trader").value, "sme-small")
        self.assertEqual(parse_customer_segment("mid-market").value, "sme-medium")
        self.assertEqual(parse_customer_segment("Corporate").value, "enterprise")

    def test_currency_aliases(self) -> None:
        self.assertEqual(parse_currency("£").value, "GBP")
        self.assertEqual(parse_currency("euros").value, "EUR")
        self.assertTrue(parse_currency("doubloons").is_invalid)
        self.assertTrue(parse_currency(None).is_absent)

    def test_country_codes_and_names(self) -> None:
        self.assertEqual(parse_country("gb").value, "GB")
        self.assertEqual(parse_country("United Kingdom").value, "GB")
        self.assertEqual(parse_country("usa").value, "US")
        self.assertTrue(parse_country("Atlantis").is_invalid)


class TestVendorIds(unittest.TestCase):
    def test_normalizes_spaces_and_underscores(self) -> None:
        self.assertEqual(normalize_vendor_id("  Acme_Bank Ltd "), "acme-bank-ltd")

    def test_rejects_invalid_ids(self) -> None:
        self.assertIsNone(normalize_vendor_id("acme!"))
        self.assertIsNone(normalize_vendor_id("-acme"))
        self.assertIsNone(normalize_vendor_id("a" * 101))
        self.assertTrue(parse_vendor_id("acme!").is_invalid)
        self.assertTrue(parse_vendor_id("  ").is_absent)

    def test_validity_rules(self) -> None:
        self.assertTrue(is_valid_vendor_id("acme-2"))
        self.assertFalse(is_valid_vendor_id("Acme"))
        self.assertFalse(is_valid_vendor_id("acme-"))
        self.assertFalse(is_valid_vendor_id(""))
        self.assertFalse(is_valid_vendor_id(None))


class TestDealSizeBands(unittest.TestCase):
    def test_band_boundaries(self) -> None:
        self.assertEqual(calculate_deal_size_band(999.99), DealSizeBand.UNDER_1K)
        self.assertEqual(calculate_deal_size_band(1000), DealSizeBand.FROM_1K_TO_5K)
        self.assertEqual(calculate_deal_size_band(4999.99), DealSizeBand.FROM_1K_TO_5K)
        self.assertEqual(calculate_deal_size_band(5000), DealSizeBand.FROM_5K_TO_10K)
        self.assertEqual(calculate_deal_size_band(10000), DealSizeBand.OVER_10K)

    def test_missing_zero_and_negative_have_no_band(self) -> None:
        self.assertIsNone(calculate_deal_size_band(None))
        self.assertIsNone(calculate_deal_size_band(0))
        self.assertIsNone(calculate_deal_size_band(-50))

    def test_labels(self) -> None:
        self.assertEqual(dimension_label("deal_size_band", DealSizeBand.OVER_10K), "Over £10k")
        self.assertEqual(dimension_label("sales_channel", None), "Unknown")
        self.assertEqual(dimension_label("sales_channel", "custom"), "custom")


if __name__ == "__main__":
    unittest.main()
