"""
app/validators/mapping_validator.py

Validation for canonical field mappings.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from typing import Any, Iterator, Mapping, Sequence

from app.domain.vendor_order import CANONICAL_FIELDS, REQUIRED_CANONICAL_FIELDS


@dataclass(frozen=True)
class MappingErrorDetail:
    """
    Structured mapping error detail.
    """

    code: str
    message: str
    canonical_field: str | None = None
    source_column: str | None = None
    context: dict[str, Any] | None = None


class SchemaMappingError(ValueError):
    """
    Raised when a field mapping cannot be used safely.
    """

    def __init__(self, *, message: str, errors: Sequence[MappingErrorDetail]) -> None:
        super().__init__(message)
        self.message = message
        self.errors = tuple(errors)

    def to_dict(self) -> dict[str, Any]:
        return {
            "message": self.message,
            "errors": [asdict(error) for error in self.errors],
        }


@dataclass(frozen=True)
class MappingValidation:
    valid: bool
    missing: list[str] = field(default_factory=list)


def validate_mapping(
    mapping: Mapping[str, str],
    *,
    required_fields: Sequence[str] = REQUIRED_CANONICAL_FIELDS,
) -> MappingValidation:
    """
    A mapping is usable only when every required field has a source column.
    """

    missing = [name for name in required_fields if not mapping.get(name)]
    return MappingValidation(valid=not missing, missing=missing)


class MappingValidator:
    """
    Checks a mapping against the headers of the file it will be applied to.

    Every problem is collected before raising, so one SchemaMappingError
    lists all of them.
    """

    def __init__(
        self,
        *,
        required_fields: Sequence[str] = REQUIRED_CANONICAL_FIELDS,
        canonical_fields: Sequence[str] = CANONICAL_FIELDS,
    ) -> None:
        self._required_fields = tuple(required_fields)
        self._canonical_fields = frozenset(canonical_fields)

    def validate(
        self,
        *,
        mapping: Mapping[str, str],
        source_headers: Sequence[str],
        pre_errors: Sequence[MappingErrorDetail] | None = None,
    ) -> None:
        errors = [*(pre_errors or ()), *self._entry_errors(mapping, source_headers)]
        missing = validate_mapping(mapping, required_fields=self._required_fields).missing
        errors.extend(
            MappingErrorDetail(
                code="required_field_unmapped",
                message=f"Required field '{name}' has no source column.",
                canonical_field=name,
                context={"source_headers": list(source_headers)},
            )
            for name in missing
        )
        if not errors:
            return

        summary = ", ".join(missing) if missing else "none"
        raise SchemaMappingError(
            message=(
                f"Field mapping does not fit the file ({len(errors)} problem(s)). "
                f"Missing required fields: {summary}."
            ),
            errors=errors,
        )

    def _entry_errors(
        self,
        mapping: Mapping[str, str],
        source_headers: Sequence[str],
    ) -> Iterator[MappingErrorDetail]:
        headers = frozenset(source_headers)
        owner_of: dict[str, str] = {}

        for canonical_field, source_column in mapping.items():
            if not source_column:
                continue
            if canonical_field not in self._canonical_fields:
                yield MappingErrorDetail(
                    code="invalid_canonical_field",
                    message=f"'{canonical_field}' is not a canonical order field.",
                    canonical_field=canonical_field,
                    source_column=source_column,
                )
            if source_column not in headers:
                yield MappingErrorDetail(
                    code="unknown_source_column",
                    message=f"Column '{source_column}' is not among the file headers.",
                    canonical_field=canonical_field,
                    source_column=source_column,
                )

            owner = owner_of.setdefault(source_column, canonical_field)
            if owner != canonical_field:
                yield MappingErrorDetail(
                    code="source_column_reused",
                    message=f"Column '{source_column}' already feeds '{owner}'.",
                    canonical_field=canonical_field,
                    source_column=source_column,
                    context={"already_mapped_to": owner},
                )
