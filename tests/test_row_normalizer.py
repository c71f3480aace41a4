from __future__ import annotations

import unittest
from datetime import datetime

from app.domain.ingestion import IssueCode, ParseOptions
from app.validators.row_normalizer import DEFAULT_PRODUCT_NAME, VendorRowNormalizer


class TestVendorRowNormalizer(unittest.TestCase):
    def setUp(self) -> None:
        self.normalizer = VendorRowNormalizer()
        self.seen: set[str] = set()

    def _normalize(self, mapped_row, options: ParseOptions | None = None):
        return self.normalizer.normalize_row(
            mapped_row=mapped_row,
            row_number=2,
            vendor_id="acme",
            options=options or ParseOptions(),
            seen_order_ids=self.seen,
        )

    def test_full_row(self) -> None:
        outcome = self._normalize(
            {
                "order_id": "A1",
                "order_date": "2024-02-01",
                "product_name": "Boiler",
                "order_value": "£12,500",
                "finance_selected": "yes",
                "finance_term_months": "36.7",
                "finance_decision_status": "declined",
                "finance_decision_date": "05/02/2024",
                "sales_channel": "telesales",
                "customer_segment": "startup",
                "currency": "gbp",
                "vendor_id": "Acme_Heating",
                "geography_country": "GB",
                "geography_postal_code": "SW1A 1AA",
            }
        )

        record = outcome.record
        self.assertIsNotNone(record)
        self.assertEqual(outcome.errors, [])
        self.assertEqual(outcome.warnings, [])
        self.assertEqual(record.order_value, 12500.0)
        self.assertEqual(record.deal_size_band, "over-10k")
        self.assertTrue(record.finance_selected)
        self.assertEqual(record.finance_term_months, 36)
        self.assertEqual(record.finance_decision_status, "declined")
        self.assertEqual(record.finance_decision_date, datetime(2024, 2, 5))
        self.assertEqual(record.sales_channel, "telesales")
        self.assertEqual(record.customer_segment, "startup")
        self.assertEqual(record.currency, "GBP")
        self.assertEqual(record.vendor_id, "acme-heating")
        self.assertEqual(record.geography.postal_code, "SW1A 1AA")
        self.assertIsNone(record.geography.region)

    def test_product_name_defaults_to_unknown(self) -> None:
        outcome = self._normalize({"order_id": "A1", "order_date": "2024-02-01"})

        self.assertEqual(outcome.record.product_name, DEFAULT_PRODUCT_NAME)

    def test_missing_required_fields_report_each_field(self) -> None:
        outcome = self._normalize({"order_id": None, "order_date": None})

        self.assertIsNone(outcome.record)
        self.assertEqual(
            [(issue.code, issue.field) for issue in outcome.errors],
            [
                (IssueCode.REQUIRED_FIELD_MISSING, "order_id"),
                (IssueCode.REQUIRED_FIELD_MISSING, "order_date"),
            ],
        )

    def test_invalid_decision_date_is_a_warning(self) -> None:
        outcome = self._normalize(
            {"order_id": "A1", "order_date": "2024-02-01", "finance_decision_date": "soon"}
        )

        self.assertIsNotNone(outcome.record)
        self.assertIsNone(outcome.record.finance_decision_date)
        self.assertEqual(outcome.warnings[0].code, IssueCode.INVALID_VALUE)
        self.assertEqual(outcome.warnings[0].field, "finance_decision_date")

    def test_seen_order_ids_are_shared(self) -> None:
        self._normalize({"order_id": "A1", "order_date": "2024-02-01"})
        second = self._normalize({"order_id": "A1", "order_date": "2024-02-02"})

        self.assertIsNone(second.record)
        self.assertEqual(second.errors[0].code, IssueCode.DUPLICATE_ORDER_ID_REJECTED)
        self.assertEqual(self.seen, {"A1"})

    def test_completely_empty_row(self) -> None:
        self.assertTrue(self.normalizer.is_completely_empty_row({"a": "", "b": None, "c": "  "}))
        self.assertFalse(self.normalizer.is_completely_empty_row({"a": "", "b": "x"}))


if __name__ == "__main__":
    unittest.main()
