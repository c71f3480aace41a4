"""
app/validators/row_normalizer.py

Row-level validation and type normalization for vendor order CSV rows.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Mapping, MutableSet

from app.domain.dimensions import calculate_deal_size_band
from app.domain.ingestion import IssueCode, IssueSeverity, ParseOptions, RowIssue
from app.domain.vendor_order import CanonicalField, Geography, NormalizedRecord
from app.normalizers.date_normalizer import parse_date
from app.normalizers.dimension_normalizer import (
    parse_country,
    parse_currency,
    parse_customer_segment,
    parse_sales_channel,
    parse_vendor_id,
)
from app.normalizers.status_normalizer import normalize_status
from app.normalizers.value_normalizer import (
    ParseOutcome,
    RawValue,
    normalize_string,
    parse_boolean,
    parse_integer,
    parse_number,
)

DEFAULT_PRODUCT_NAME = "Unknown"


@dataclass(frozen=True)
class RowOutcome:
    """
    Normalization result for one row: a record, or the fatal errors that
    prevented one. Warnings are reported either way.
    """

    record: NormalizedRecord | None
    errors: list[RowIssue] = field(default_factory=list)
    warnings: list[RowIssue] = field(default_factory=list)


class VendorRowNormalizer:
    """
    Validates and converts mapped raw values into a NormalizedRecord.
    """

    def is_completely_empty_row(self, row: Mapping[str, Any]) -> bool:
        """
        Return True when all values in the row are empty or whitespace.
        """

        return all(self._is_blank(value) for value in row.values())

    def normalize_row(
        self,
        *,
        mapped_row: Mapping[str, RawValue],
        row_number: int,
        vendor_id: str,
        options: ParseOptions,
        seen_order_ids: MutableSet[str],
    ) -> RowOutcome:
        """
        Normalize one mapped row.

        ``seen_order_ids`` is shared across the whole pass and is updated here.
        """

        errors: list[RowIssue] = []
        warnings: list[RowIssue] = []

        order_id = self._require(mapped_row, CanonicalField.ORDER_ID, row_number, errors)
        order_date_raw = self._require(mapped_row, CanonicalField.ORDER_DATE, row_number, errors)

        if order_id is not None:
            self._check_duplicate(
                order_id=order_id,
                row_number=row_number,
                options=options,
                seen_order_ids=seen_order_ids,
                errors=errors,
                warnings=warnings,
            )

        order_date = None
        if order_date_raw is not None:
            outcome = parse_date(order_date_raw)
            if outcome.is_parsed:
                order_date = outcome.value
            else:
                errors.append(
                    RowIssue(
                        row_number=row_number,
                        message="Order date could not be parsed.",
                        code=IssueCode.INVALID_ORDER_DATE,
                        field=CanonicalField.ORDER_DATE,
                        value=order_date_raw,
                    )
                )

        order_value = self._optional(
            parse_number, mapped_row, CanonicalField.ORDER_VALUE, row_number, warnings,
            message="Order value is not a number; left empty.",
        )
        term_months = self._optional(
            parse_integer, mapped_row, CanonicalField.FINANCE_TERM_MONTHS, row_number, warnings,
            message="Finance term is not a whole number of months; left empty.",
        )
        decision_date = self._optional(
            parse_date, mapped_row, CanonicalField.FINANCE_DECISION_DATE, row_number, warnings,
            message="Finance decision date could not be parsed; left empty.",
        )
        sales_channel = self._dimension(
            parse_sales_channel, mapped_row, CanonicalField.SALES_CHANNEL, row_number, warnings,
        )
        customer_segment = self._dimension(
            parse_customer_segment, mapped_row, CanonicalField.CUSTOMER_SEGMENT, row_number, warnings,
        )
        currency = self._dimension(
            parse_currency, mapped_row, CanonicalField.CURRENCY, row_number, warnings,
        )
        country = self._dimension(
            parse_country, mapped_row, CanonicalField.GEOGRAPHY_COUNTRY, row_number, warnings,
        )
        record_vendor_id = self._dimension(
            parse_vendor_id, mapped_row, CanonicalField.VENDOR_ID, row_number, warnings,
        ) or vendor_id

        if errors or order_id is None or order_date is None:
            return RowOutcome(record=None, errors=errors, warnings=warnings)

        if CanonicalField.FINANCE_SELECTED in mapped_row:
            finance_selected = bool(parse_boolean(mapped_row.get(CanonicalField.FINANCE_SELECTED)).value)
        else:
            finance_selected = options.assume_finance_selected

        geography = None
        if country is not None:
            geography = Geography(
                country=country,
                region=normalize_string(mapped_row.get(CanonicalField.GEOGRAPHY_REGION)),
                postal_code=normalize_string(mapped_row.get(CanonicalField.GEOGRAPHY_POSTAL_CODE)),
            )

        record = NormalizedRecord(
            order_id=order_id,
            order_date=order_date,
            vendor_id=record_vendor_id,
            finance_selected=finance_selected,
            product_name=normalize_string(mapped_row.get(CanonicalField.PRODUCT_NAME)) or DEFAULT_PRODUCT_NAME,
            product_sku=normalize_string(mapped_row.get(CanonicalField.PRODUCT_SKU)),
            product_category=normalize_string(mapped_row.get(CanonicalField.PRODUCT_CATEGORY)),
            order_value=order_value,
            finance_provider=normalize_string(mapped_row.get(CanonicalField.FINANCE_PROVIDER)),
            finance_term_months=term_months,
            finance_decision_status=normalize_status(mapped_row.get(CanonicalField.FINANCE_DECISION_STATUS)),
            finance_decision_date=decision_date,
            customer_id=normalize_string(mapped_row.get(CanonicalField.CUSTOMER_ID)),
            sales_channel=sales_channel,
            customer_segment=customer_segment,
            geography=geography,
            currency=currency,
            deal_size_band=calculate_deal_size_band(order_value),
        )
        return RowOutcome(record=record, errors=[], warnings=warnings)

    @staticmethod
    def _check_duplicate(
        *,
        order_id: str,
        row_number: int,
        options: ParseOptions,
        seen_order_ids: MutableSet[str],
        errors: list[RowIssue],
        warnings: list[RowIssue],
    ) -> None:
        if order_id not in seen_order_ids:
            seen_order_ids.add(order_id)
            return

        if options.allow_duplicate_order_ids:
            warnings.append(
                RowIssue(
                    row_number=row_number,
                    message=f"Duplicate order_id '{order_id}' tolerated.",
                    code=IssueCode.DUPLICATE_ORDER_ID_TOLERATED,
                    severity=IssueSeverity.WARNING,
                    field=CanonicalField.ORDER_ID,
                    value=order_id,
                )
            )
        else:
            errors.append(
                RowIssue(
                    row_number=row_number,
                    message=f"Duplicate order_id '{order_id}'.",
                    code=IssueCode.DUPLICATE_ORDER_ID_REJECTED,
                    field=CanonicalField.ORDER_ID,
                    value=order_id,
                )
            )

    def _require(
        self,
        mapped_row: Mapping[str, RawValue],
        canonical_field: str,
        row_number: int,
        errors: list[RowIssue],
    ) -> str | None:
        value = normalize_string(mapped_row.get(canonical_field))
        if value is None:
            errors.append(
                RowIssue(
                    row_number=row_number,
                    message="Required value is missing.",
                    code=IssueCode.REQUIRED_FIELD_MISSING,
                    field=canonical_field,
                )
            )
        return value

    @staticmethod
    def _optional(
        parser: Any,
        mapped_row: Mapping[str, RawValue],
        canonical_field: str,
        row_number: int,
        warnings: list[RowIssue],
        *,
        message: str,
    ) -> Any:
        outcome: ParseOutcome = parser(mapped_row.get(canonical_field))
        if outcome.is_invalid:
            warnings.append(
                RowIssue(
                    row_number=row_number,
                    message=message,
                    code=IssueCode.INVALID_VALUE,
                    severity=IssueSeverity.WARNING,
                    field=canonical_field,
                    value=outcome.raw,
                )
            )
        return outcome.value

    @staticmethod
    def _dimension(
        parser: Any,
        mapped_row: Mapping[str, RawValue],
        canonical_field: str,
        row_number: int,
        warnings: list[RowIssue],
    ) -> str | None:
        outcome: ParseOutcome = parser(mapped_row.get(canonical_field))
        if outcome.is_invalid:
            warnings.append(
                RowIssue(
                    row_number=row_number,
                    message=f"Unrecognized {canonical_field} value; left empty.",
                    code=IssueCode.UNRECOGNIZED_DIMENSION,
                    severity=IssueSeverity.WARNING,
                    field=canonical_field,
                    value=outcome.raw,
                )
            )
        return outcome.value

    @staticmethod
    def _is_blank(value: Any) -> bool:
        if value is None:
            return True
        if isinstance(value, (list, tuple)):
            return all(str(item).strip() == "" for item in value)
        return str(value).strip() == ""
