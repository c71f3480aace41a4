from __future__ import annotations

import unittest

from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from app.domain.ingestion import IssueCode
from app.services.csv_processor import (
    AutoInferenceDisabledError,
    EnhancedCSVProcessor,
    InsufficientRowsError,
    MappingConfidenceError,
    MappingSource,
    MappingValidationError,
    StrictAbortError,
)
from app.services.mapping_store import InMemoryMappingStore, SavedMapping, SQLMappingStore
from app.services.vendor_config import ProcessorConfig
from app.validators.mapping_validator import SchemaMappingError
from db.base import Base
from db.models.mapping_config import MappingConfig

HEADER = "order_id,order_date,product_name,product_sku,product_category,order_value"


def _csv(*rows: str, header: str = HEADER) -> str:
    return "\n".join((header, *rows)) + "\n"


CLEAN_CSV = _csv(
    "A1,2024-01-05,Boiler,SKU-1,Heating,1200",
    "A2,2024-01-06,Heat Pump,SKU-2,Heating,8400",
    "A3,2024-01-07,Radiator,SKU-3,Heating,300",
)


class TestEnhancedCSVProcessor(unittest.TestCase):
    def setUp(self) -> None:
        self.store = InMemoryMappingStore()

    def _processor(self, **overrides) -> EnhancedCSVProcessor:
        config = ProcessorConfig(vendor_id="acme", cache_key="acme-default", **overrides)
        return EnhancedCSVProcessor(config, mapping_store=self.store, log_row_issues=False)

    def test_process_clean_file(self) -> None:
        processor = self._processor()
        processor.load_from_string(CLEAN_CSV)

        result = processor.process(report_generator=len)

        self.assertTrue(result.success)
        self.assertEqual(result.import_result.successfully_normalized, 3)
        self.assertEqual(result.mapping_source, MappingSource.INFERRED)
        self.assertEqual(result.report, 3)
        self.assertEqual(result.diagnostics.mapping_confidence, 1.0)
        self.assertEqual(processor.records[1].order_value, 8400.0)
        self.assertEqual(self.store.get("acme-default").mapping["order_value"], "order_value")

    def test_cached_mapping_is_reused(self) -> None:
        first = self._processor()
        first.load_from_string(CLEAN_CSV)
        first.process()

        second = self._processor()
        second.load_from_string(CLEAN_CSV)
        result = second.process()

        self.assertEqual(result.mapping_source, MappingSource.CACHED)
        self.assertEqual(second.mapping, first.mapping)

    def test_cached_mapping_must_fit_headers(self) -> None:
        self.store.put(
            "acme-default",
            SavedMapping(vendor_id="acme", mapping={"order_id": "Ref", "order_date": "When"}, confidence=1.0),
        )
        processor = self._processor()
        processor.load_from_string(CLEAN_CSV)

        resolution = processor.infer_or_load_mapping()

        self.assertEqual(resolution.source, MappingSource.INFERRED)
        self.assertEqual(self.store.get("acme-default").mapping["order_id"], "order_id")

    def test_caching_disabled_leaves_store_untouched(self) -> None:
        processor = self._processor(enable_caching=False)
        processor.load_from_string(CLEAN_CSV)

        processor.process()

        self.assertEqual(self.store.keys(), [])

    def test_manual_mapping(self) -> None:
        processor = self._processor()
        processor.load_from_string(_csv("A1,2024-01-05", header="Ref,When"))

        processor.set_mapping({"order_id": "Ref", "order_date": "When"})
        result = processor.process()

        self.assertTrue(result.success)
        self.assertEqual(result.mapping_source, MappingSource.MANUAL)
        saved = self.store.get("acme-default")
        self.assertEqual(saved.confidence, 1.0)
        self.assertEqual(saved.notes, "Manual mapping")

    def test_manual_mapping_must_fit_headers(self) -> None:
        processor = self._processor()
        processor.load_from_string(_csv("A1,2024-01-05", header="Ref,When"))

        with self.assertRaises(SchemaMappingError):
            processor.set_mapping({"order_id": "Ref", "order_date": "Created"})

    def test_manual_mapping_without_headers_checks_required_fields(self) -> None:
        with self.assertRaises(MappingValidationError) as ctx:
            self._processor().set_mapping({"order_id": "Ref"})

        self.assertEqual(ctx.exception.missing, ["order_date"])

    def test_imported_mapping_is_used(self) -> None:
        processor = self._processor()
        processor.load_from_string(_csv("A1,2024-01-05", header="Ref,When"))

        processor.import_mapping(
            SavedMapping(vendor_id="acme", mapping={"order_id": "Ref", "order_date": "When"}, confidence=0.7)
        )
        result = processor.process()

        self.assertTrue(result.success)
        self.assertEqual(result.mapping_source, MappingSource.IMPORTED)
        self.assertEqual(processor.export_mapping().confidence, 0.7)

    def test_auto_inference_disabled(self) -> None:
        processor = self._processor(auto_infer_mapping=False)
        processor.load_from_string(CLEAN_CSV)

        with self.assertRaises(AutoInferenceDisabledError):
            processor.run_import()

    def test_unmappable_headers(self) -> None:
        processor = self._processor()
        processor.load_from_string(_csv("1,2", header="###,%%%"))

        with self.assertRaises(MappingValidationError) as ctx:
            processor.run_import()

        self.assertEqual(ctx.exception.missing, ["order_id", "order_date"])

    def test_low_confidence(self) -> None:
        processor = self._processor(mapping_confidence_threshold=0.95)
        processor.load_from_string(_csv("A1,2024-01-05", header="order_id,Order Date (UTC)"))

        with self.assertRaises(MappingConfidenceError) as ctx:
            processor.run_import()

        self.assertAlmostEqual(ctx.exception.confidence, 0.9)
        self.assertEqual(ctx.exception.threshold, 0.95)

    def test_insufficient_rows(self) -> None:
        processor = self._processor(min_required_rows=5)
        processor.load_from_string(CLEAN_CSV)

        with self.assertRaises(InsufficientRowsError) as ctx:
            processor.run_import()

        self.assertEqual((ctx.exception.got, ctx.exception.required), (3, 5))
        self.assertEqual(ctx.exception.import_result.successfully_normalized, 3)

    def test_strict_abort_on_first_row_error(self) -> None:
        processor = self._processor(abort_on_row_error=True)
        processor.load_from_string(
            _csv("A1,2024-01-05,Boiler,SKU-1,Heating,1200", "A2,,Boiler,SKU-1,Heating,1200")
        )

        with self.assertRaises(StrictAbortError) as ctx:
            processor.run_import()

        self.assertEqual(ctx.exception.issue.row_number, 3)
        self.assertTrue(ctx.exception.message.startswith("Strict validation aborted at row 3"))

    def test_process_turns_failures_into_result(self) -> None:
        processor = self._processor()
        processor.load_from_string(_csv("1,2", header="###,%%%"))

        result = processor.process()

        self.assertFalse(result.success)
        self.assertIsInstance(result.error, MappingValidationError)
        self.assertEqual(
            result.recommendations,
            ["Critical error: Invalid mapping: missing required fields: order_id, order_date"],
        )
        self.assertEqual(result.import_result.failed_rows, 1)
        self.assertEqual(result.import_result.errors[0].code, IssueCode.PASS_FAILED)

    def test_diagnostics_and_recommendations(self) -> None:
        processor = self._processor()
        processor.load_from_string(
            _csv(
                "A1,2024-01-05,Boiler,SKU-1,Heating,1200",
                "A1,2024-01-06,Boiler,SKU-1,Heating,1200",
                "A2,,Boiler,SKU-1,Heating,1200",
                "A3,2024-01-08,Boiler,SKU-1,Heating,1200",
            )
        )

        result = processor.process()

        issues = result.diagnostics.issues
        self.assertTrue(result.success)
        self.assertEqual(
            [(issue.category, issue.severity) for issue in issues],
            [("data", "critical"), ("data", "warning"), ("mapping", "info")],
        )
        self.assertEqual(issues[0].message, "High failure rate: 50.0% of rows failed")
        self.assertEqual(issues[0].affected_rows, 2)
        self.assertEqual(result.diagnostics.data_quality.completeness, 0.5)
        self.assertTrue(result.recommendations[0].startswith("Data completeness is 50.0%"))
        self.assertTrue(result.recommendations[1].startswith("Found 1 duplicate order IDs"))
        self.assertTrue(result.recommendations[2].startswith("Optional fields not mapped: finance_selected"))
        self.assertEqual(len(result.recommendations), 3)

    def test_clear_mapping_cache(self) -> None:
        processor = self._processor()
        processor.load_from_string(CLEAN_CSV)
        processor.process()

        processor.clear_mapping_cache()

        self.assertIsNone(processor.get_cached_mapping("acme-default"))


VENDOR_CSV = _csv(
    "V1,15/03/2024,Boiler,£1200",
    "V2,2024-03-16,Radiator,300",
    "V3,17.03.2024,Heat Pump,8400",
    header="Ref,Placed,Item,Amount",
)

VENDOR_MAPPING = {"order_id": "Ref", "order_date": "Placed", "product_name": "Item", "order_value": "Amount"}


class TestMappingExportImport(unittest.TestCase):
    def setUp(self) -> None:
        self.engine = create_engine(
            "sqlite://",
            poolclass=StaticPool,
            connect_args={"check_same_thread": False},
        )
        Base.metadata.create_all(self.engine, tables=[MappingConfig.__table__])
        self.sql_store = SQLMappingStore(sessionmaker(bind=self.engine, expire_on_commit=False))

    def tearDown(self) -> None:
        self.engine.dispose()

    def _processor(self, store) -> EnhancedCSVProcessor:
        config = ProcessorConfig(vendor_id="acme", cache_key="acme-default")
        processor = EnhancedCSVProcessor(config, mapping_store=store, log_row_issues=False)
        processor.load_from_string(VENDOR_CSV)
        return processor

    def _source_run(self) -> tuple[EnhancedCSVProcessor, list]:
        source = self._processor(InMemoryMappingStore())
        source.set_mapping(VENDOR_MAPPING)
        source.run_import()
        return source, source.records

    def test_imported_mapping_reproduces_records(self) -> None:
        source, expected = self._source_run()
        payload = source.export_mapping().to_dict()

        target = self._processor(InMemoryMappingStore())
        target.import_mapping(SavedMapping.from_dict(payload))
        target.run_import()

        self.assertEqual(len(expected), 3)
        self.assertEqual(target.mapping, VENDOR_MAPPING)
        self.assertEqual(target.mapping_source, MappingSource.IMPORTED)
        self.assertEqual(target.records, expected)

    def test_mapping_survives_the_sql_store(self) -> None:
        source, expected = self._source_run()
        self.sql_store.put("acme-default", SavedMapping.from_dict(source.export_mapping().to_dict()))

        target = self._processor(self.sql_store)
        target.run_import()

        self.assertEqual(target.mapping_source, MappingSource.CACHED)
        self.assertEqual(target.mapping, VENDOR_MAPPING)
        self.assertEqual(target.records, expected)
        self.assertEqual(self.sql_store.get("acme-default").source_headers, ["Ref", "Placed", "Item", "Amount"])


if __name__ == "__main__":
    unittest.main()
