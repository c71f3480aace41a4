"""
app/mappers/schema_mapper.py

Header inference engine: maps vendor CSV headers onto canonical order fields.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Any, Iterable, Mapping, Sequence

from app.domain.vendor_order import CANONICAL_FIELDS, CanonicalField, FieldMapping
from app.normalizers.value_normalizer import RawValue, to_raw_value

FIELD_VARIATIONS: dict[str, tuple[str, ...]] = {
    CanonicalField.ORDER_ID: (
        "order_id", "orderid", "order id", "id", "order_number", "order number",
        "ordernumber", "deal_id", "dealid", "deal id", "transaction_id", "ref",
        "reference", "order_ref", "application_id",
    ),
    CanonicalField.ORDER_DATE: (
        "order_date", "orderdate", "date", "order date", "created_date", "created",
        "application_date", "deal_date", "transaction_date", "timestamp",
        "order_time", "submitted_date",
    ),
    CanonicalField.PRODUCT_NAME: (
        "product_name", "productname", "product name", "product", "item",
        "item_name", "itemname", "item name", "description", "product_description",
        "asset", "asset_name", "equipment",
    ),
    CanonicalField.PRODUCT_SKU: (
        "product_sku", "productsku", "sku", "product sku", "item_sku",
        "product_code", "productcode", "item_code", "code", "model",
        "model_number", "part_number",
    ),
    CanonicalField.PRODUCT_CATEGORY: (
        "product_category", "productcategory", "category", "product category",
        "item_category", "type", "product_type", "asset_type", "equipment_type",
        "class", "product_class",
    ),
    CanonicalField.ORDER_VALUE: (
        "order_value", "ordervalue", "value", "order value", "amount",
        "order_amount", "total", "total_amount", "price", "cost", "sum",
        "finance_amount", "loan_amount", "asset_value", "deal_value",
    ),
    CanonicalField.FINANCE_SELECTED: (
        "finance_selected", "financeselected", "finance selected", "finance",
        "financed", "finance_option", "payment_method", "payment method",
        "finance_requested", "credit_requested",
    ),
    CanonicalField.FINANCE_PROVIDER: (
        "finance_provider", "financeprovider", "provider", "finance provider",
        "lender", "finance_partner", "partner", "funder", "finance_company",
    ),
    CanonicalField.FINANCE_TERM_MONTHS: (
        "finance_term_months", "term_months", "term", "finance_term", "term months",
        "finance term", "duration", "loan_term", "period", "months",
        "repayment_period", "contract_length",
    ),
    CanonicalField.FINANCE_DECISION_STATUS: (
        "finance_decision_status", "decision_status", "status", "finance_status",
        "decision", "approval_status", "application_status", "outcome", "result",
        "state", "finance_decision", "credit_decision",
    ),
    CanonicalField.FINANCE_DECISION_DATE: (
        "finance_decision_date", "decision_date", "approval_date", "status_date",
        "decision date", "approved_date", "completed_date", "resolved_date",
    ),
    CanonicalField.CUSTOMER_ID: (
        "customer_id", "customerid", "customer id", "client_id", "clientid",
        "account_id", "customer_number", "customer_ref", "buyer_id",
    ),
    CanonicalField.CUSTOMER_SEGMENT: (
        "customer_segment", "customersegment", "segment", "customer segment",
        "customer_type", "business_type", "industry", "sector", "category",
        "company_size", "business_size",
    ),
    CanonicalField.VENDOR_ID: (
        "vendor_id", "vendorid", "vendor id", "vendor", "account_id", "accountid",
        "account", "company_id", "companyid", "partner_id",
    ),
    CanonicalField.SALES_CHANNEL: (
        "sales_channel", "saleschannel", "channel", "sales channel", "source",
        "purchase_method", "order_source", "sale_method", "platform",
    ),
    CanonicalField.GEOGRAPHY_COUNTRY: (
        "geography_country", "country", "country_code", "countrycode",
        "customer_country", "billing_country", "shipping_country", "region_country",
    ),
    CanonicalField.GEOGRAPHY_REGION: (
        "geography_region", "region", "state", "province", "customer_region",
        "billing_region", "shipping_region", "area",
    ),
    CanonicalField.GEOGRAPHY_POSTAL_CODE: (
        "geography_postal_code", "postal_code", "postalcode", "postcode", "zipcode",
        "zip", "zip_code", "customer_postcode", "billing_postcode",
    ),
    CanonicalField.CURRENCY: (
        "currency", "currency_code", "currencycode", "currency code",
        "transaction_currency", "order_currency", "payment_currency",
    ),
}

ACCEPTANCE_THRESHOLD = 0.5

_SEPARATOR_RUNS = re.compile(r"[_\s-]+")


def normalize_header(header: str) -> str:
    """
    Lowercase, trim, collapse separator runs to ``_`` and strip edge underscores.
    """

    return _SEPARATOR_RUNS.sub("_", header.strip().lower()).strip("_")


def header_similarity(left: str, right: str) -> float:
    """
    Score two column names in [0, 1].

    1.0 for an exact normalized match, 0.8 when one contains the other,
    otherwise the share of the shorter name's characters found in the longer.
    """

    first = normalize_header(left)
    second = normalize_header(right)
    if first == second:
        return 1.0
    if first in second or second in first:
        return 0.8

    longer, shorter = (first, second) if len(first) > len(second) else (second, first)
    if not longer:
        return 1.0
    matches = sum(1 for ch in shorter if ch in longer)
    return matches / len(longer)


@dataclass(frozen=True)
class MappingInference:
    """
    Suggested mapping for one set of headers.
    """

    suggested_mapping: FieldMapping
    confidence: float
    unmapped_canonical_fields: list[str] = field(default_factory=list)
    unmapped_source_columns: list[str] = field(default_factory=list)
    scores: dict[str, float] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return {
            "suggested_mapping": dict(self.suggested_mapping),
            "confidence": self.confidence,
            "unmapped_canonical_fields": list(self.unmapped_canonical_fields),
            "unmapped_source_columns": list(self.unmapped_source_columns),
            "scores": dict(self.scores),
        }


class SchemaMapper:
    """
    Resolves vendor CSV headers into canonical field mappings.
    """

    def __init__(
        self,
        *,
        variations: Mapping[str, Sequence[str]] | None = None,
        acceptance_threshold: float = ACCEPTANCE_THRESHOLD,
    ) -> None:
        source = variations or FIELD_VARIATIONS
        # Canonical declaration order is kept regardless of the input mapping order.
        self._variations: dict[str, tuple[str, ...]] = {
            canonical: tuple(source[canonical]) for canonical in CANONICAL_FIELDS if canonical in source
        }
        self._acceptance_threshold = max(0.0, min(1.0, acceptance_threshold))

    def infer_mapping(self, headers: Sequence[str]) -> MappingInference:
        """
        Suggest a mapping by scoring every header against every field's variants.

        Fields are visited in declaration order and a header claimed by an
        earlier field is unavailable to later ones.
        """

        candidates = [header for header in headers if header and header.strip()]
        mapping: FieldMapping = {}
        scores: dict[str, float] = {}
        claimed: set[str] = set()

        for canonical_field, variants in self._variations.items():
            best_header: str | None = None
            best_score = 0.0
            for header in candidates:
                if header in claimed:
                    continue
                for variant in variants:
                    score = header_similarity(header, variant)
                    if score > best_score:
                        best_score = score
                        best_header = header

            if best_header is not None and best_score > self._acceptance_threshold:
                mapping[canonical_field] = best_header
                scores[canonical_field] = best_score
                claimed.add(best_header)

        confidence = sum(scores.values()) / len(scores) if scores else 0.0
        return MappingInference(
            suggested_mapping=mapping,
            confidence=confidence,
            unmapped_canonical_fields=[name for name in CANONICAL_FIELDS if name not in mapping],
            unmapped_source_columns=[header for header in headers if header not in claimed],
            scores=scores,
        )

    @staticmethod
    def create_manual_mapping(
        headers: Sequence[str],
        pairs: Mapping[str, str] | Iterable[tuple[str, str]],
    ) -> FieldMapping:
        """
        Build a mapping from (canonical field, source column) pairs.

        Source columns are matched against headers by normalized name. Pairs
        naming an unknown field, a missing column, or a column already taken
        are dropped.
        """

        items = pairs.items() if isinstance(pairs, Mapping) else pairs
        lookup: dict[str, str] = {}
        for header in headers:
            normalized = normalize_header(header)
            if normalized and normalized not in lookup:
                lookup[normalized] = header

        mapping: FieldMapping = {}
        used: set[str] = set()
        for canonical_field, source_column in items:
            if canonical_field not in CANONICAL_FIELDS:
                continue
            match = lookup.get(normalize_header(source_column))
            if match is None or match in used:
                continue
            mapping[canonical_field] = match
            used.add(match)
        return mapping

    @staticmethod
    def map_row(
        *,
        raw_row: Mapping[str, Any],
        mapping: Mapping[str, str],
        trim: bool = True,
    ) -> dict[str, RawValue]:
        """
        Pull each mapped canonical field's raw value out of one source row.
        """

        return {
            canonical_field: to_raw_value(raw_row.get(source_column), trim=trim)
            for canonical_field, source_column in mapping.items()
        }


_DEFAULT_MAPPER = SchemaMapper()


def infer_mapping(headers: Sequence[str]) -> MappingInference:
    return _DEFAULT_MAPPER.infer_mapping(headers)


def create_manual_mapping(
    headers: Sequence[str],
    pairs: Mapping[str, str] | Iterable[tuple[str, str]],
) -> FieldMapping:
    return SchemaMapper.create_manual_mapping(headers, pairs)
