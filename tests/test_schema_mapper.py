from __future__ import annotations

import unittest

from app.domain.vendor_order import CANONICAL_FIELDS
from app.mappers.schema_mapper import (
    SchemaMapper,
    create_manual_mapping,
    header_similarity,
    infer_mapping,
    normalize_header,
)


class TestHeaderSimilarity(unittest.TestCase):
    def test_normalize_header(self) -> None:
        self.assertEqual(normalize_header("  Order -  ID "), "order_id")
        self.assertEqual(normalize_header("__Date__"), "date")

    def test_exact_match_after_normalization(self) -> None:
        self.assertEqual(header_similarity("Order ID", "order_id"), 1.0)

    def test_containment_scores_point_eight(self) -> None:
        self.assertEqual(header_similarity("Order Date (UTC)", "order_date"), 0.8)

    def test_character_share_of_longer_name(self) -> None:
        # "abc" vs "abxy": two shared characters over a longer length of four.
        self.assertEqual(header_similarity("abc", "abxy"), 0.5)


class TestSchemaMapper(unittest.TestCase):
    def setUp(self) -> None:
        self.mapper = SchemaMapper()

    def test_infers_canonical_headers_exactly(self) -> None:
        headers = ["order_id", "order_date", "product_name", "product_sku", "product_category", "order_value"]

        inference = self.mapper.infer_mapping(headers)

        self.assertEqual(inference.suggested_mapping, {header: header for header in headers})
        self.assertEqual(inference.confidence, 1.0)
        self.assertEqual(inference.unmapped_source_columns, [])
        self.assertNotIn("order_id", inference.unmapped_canonical_fields)
        self.assertIn("currency", inference.unmapped_canonical_fields)

    def test_infers_vendor_variants(self) -> None:
        inference = self.mapper.infer_mapping(["Order Number", "Created"])

        self.assertEqual(inference.suggested_mapping["order_id"], "Order Number")
        self.assertEqual(inference.suggested_mapping["order_date"], "Created")
        self.assertEqual(inference.scores["order_id"], 1.0)

    def test_earlier_fields_claim_headers_first(self) -> None:
        inference = self.mapper.infer_mapping(["id", "date"])

        self.assertEqual(inference.suggested_mapping["order_id"], "id")
        self.assertEqual(inference.suggested_mapping["order_date"], "date")
        self.assertEqual(len(set(inference.suggested_mapping.values())), len(inference.suggested_mapping))

    def test_unrelated_headers_leave_required_fields_unmapped(self) -> None:
        inference = infer_mapping(["###", "%%%"])

        self.assertEqual(inference.suggested_mapping, {})
        self.assertEqual(inference.confidence, 0.0)
        self.assertEqual(inference.unmapped_canonical_fields, list(CANONICAL_FIELDS))
        self.assertEqual(inference.unmapped_source_columns, ["###", "%%%"])

    def test_blank_headers_are_never_mapped(self) -> None:
        inference = self.mapper.infer_mapping(["", "order_id", "  "])

        self.assertNotIn("", inference.suggested_mapping.values())
        self.assertNotIn("  ", inference.suggested_mapping.values())

    def test_inference_invariants_hold_for_any_headers(self) -> None:
        header_sets = [
            [],
            ["order_id", "order_date", "order_value"],
            ["Order Number", "Created", "Item", "Amount", "Status", "Country"],
            ["id", "date", "state", "region", "category", "Notes"],
            ["###", "%%%", "customer"],
            ["Ref", "Ref ", "When", "Total Amount (GBP)"],
        ]

        for headers in header_sets:
            with self.subTest(headers=headers):
                inference = self.mapper.infer_mapping(headers)
                scores = inference.scores

                self.assertGreaterEqual(inference.confidence, 0.0)
                self.assertLessEqual(inference.confidence, 1.0)
                self.assertEqual(set(scores), set(inference.suggested_mapping))
                for score in scores.values():
                    self.assertGreater(score, 0.5)
                expected = sum(scores.values()) / len(scores) if scores else 0.0
                self.assertAlmostEqual(inference.confidence, expected)

                sources = list(inference.suggested_mapping.values())
                self.assertEqual(len(sources), len(set(sources)))
                self.assertTrue(set(sources) <= set(headers))

    def test_empty_headers_leave_every_field_unmapped(self) -> None:
        inference = self.mapper.infer_mapping([])

        self.assertEqual(inference.suggested_mapping, {})
        self.assertEqual(inference.confidence, 0.0)
        self.assertEqual(inference.unmapped_canonical_fields, list(CANONICAL_FIELDS))
        self.assertEqual(inference.unmapped_source_columns, [])

    def test_greedy_order_lets_product_name_claim_order_value(self) -> None:
        # product_name is visited before order_value and scores 9/12 on "order_value".
        inference = self.mapper.infer_mapping(["order_id", "order_date", "order_value"])

        self.assertEqual(inference.suggested_mapping["product_name"], "order_value")
        self.assertAlmostEqual(inference.scores["product_name"], 0.75)
        self.assertNotIn("order_value", inference.suggested_mapping)
        self.assertIn("order_value", inference.unmapped_canonical_fields)

    def test_custom_variations(self) -> None:
        mapper = SchemaMapper(variations={"order_id": ("ticket",), "order_date": ("when",)})

        inference = mapper.infer_mapping(["when", "ticket"])

        self.assertEqual(inference.suggested_mapping, {"order_id": "ticket", "order_date": "when"})

    def test_manual_mapping_matches_headers_by_normalized_name(self) -> None:
        headers = ["Order Ref", "Order Date", "Amount"]

        mapping = create_manual_mapping(
            headers,
            {"order_id": "order_ref", "order_date": "ORDER DATE", "bogus": "Amount", "currency": "missing"},
        )

        self.assertEqual(mapping, {"order_id": "Order Ref", "order_date": "Order Date"})

    def test_manual_mapping_does_not_reuse_columns(self) -> None:
        mapping = SchemaMapper.create_manual_mapping(
            ["Ref"],
            [("order_id", "Ref"), ("customer_id", "Ref")],
        )

        self.assertEqual(mapping, {"order_id": "Ref"})

    def test_map_row_trims_and_blanks_to_none(self) -> None:
        row = {"Ref": "  A1 ", "When": "", "Extra": "x"}

        mapped = SchemaMapper.map_row(raw_row=row, mapping={"order_id": "Ref", "order_date": "When"})

        self.assertEqual(mapped, {"order_id": "A1", "order_date": None})


if __name__ == "__main__":
    unittest.main()
