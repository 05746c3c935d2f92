"""
Schema Validator

Validates raw entry data against a collection schema and returns the
transformed data (defaults applied, dates coerced, references resolved,
unknown keys stripped).

Key Properties
--------------
- Pure: the validator never touches the store
- All issues are collected before failing, so one error lists every
  problem with an entry
- Declared defaults are returned literally; they are not run through the
  field they belong to (a ``Reference`` default stays a plain string)
"""

from __future__ import annotations

import copy
import logging
from dataclasses import dataclass
from datetime import date, datetime, timezone
from typing import Any, Dict, List, Mapping, Optional, Tuple, Union as TypingUnion

from ..core.errors import DataValidationError
from ..store.models import make_reference
from . import fields as f

logger = logging.getLogger("content_layer.schema")

PathItem = TypingUnion[str, int]

_FALLBACK_DATE_FORMATS = (
    "%B %d, %Y",
    "%b %d, %Y",
    "%B %d %Y",
    "%d %B %Y",
    "%Y/%m/%d",
)


@dataclass(frozen=True)
class ValidationIssue:
    """One problem found while validating entry data."""

    path: Tuple[PathItem, ...]
    message: str
    code: str = "custom"

    @property
    def path_str(self) -> str:
        return ".".join(str(p) for p in self.path) or "(root)"

    def __str__(self) -> str:
        return f"**{self.path_str}**: {self.message}"

    def to_dict(self) -> Dict[str, Any]:
        return {"path": list(self.path), "message": self.message, "code": self.code}


def _type_name(value: Any) -> str:
    if value is None:
        return "null"
    if isinstance(value, bool):
        return "boolean"
    if isinstance(value, (int, float)):
        return "number"
    if isinstance(value, str):
        return "string"
    if isinstance(value, (list, tuple)):
        return "array"
    if isinstance(value, Mapping):
        return "object"
    if isinstance(value, (datetime, date)):
        return "date"
    return type(value).__name__


def coerce_date(value: Any) -> Optional[datetime]:
    """
    Convert ``value`` into a timezone-aware UTC datetime.

    Returns None when the value cannot be interpreted as a date.
    Numbers are epoch milliseconds.
    """
    if isinstance(value, datetime):
        if value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value.astimezone(timezone.utc)
    if isinstance(value, date):
        return datetime(value.year, value.month, value.day, tzinfo=timezone.utc)
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        try:
            return datetime.fromtimestamp(value / 1000, tz=timezone.utc)
        except (OverflowError, OSError, ValueError):
            return None
    if isinstance(value, str):
        text = value.strip()
        if not text:
            return None
        try:
            parsed = datetime.fromisoformat(text)
        except ValueError:
            parsed = None
        if parsed is None:
            for fmt in _FALLBACK_DATE_FORMATS:
                try:
                    parsed = datetime.strptime(text, fmt)
                    break
                except ValueError:
                    continue
        if parsed is None:
            return None
        return coerce_date(parsed)
    return None


# ---------------------------------------------------------------------
# Validator
# ---------------------------------------------------------------------

class SchemaValidator:
    """
    Recursive interpreter for ``Field`` descriptors.

    A fresh instance is used per entry; ``issues`` accumulates everything
    found during one ``validate`` call.
    """

    def __init__(self) -> None:
        self.issues: List[ValidationIssue] = []

    def _issue(self, path: Tuple[PathItem, ...], message: str, code: str) -> None:
        self.issues.append(ValidationIssue(path=path, message=message, code=code))

    def _invalid_type(self, path: Tuple[PathItem, ...], expected: str, value: Any) -> None:
        self._issue(path, f"Expected {expected}, received {_type_name(value)}", "invalid_type")

    # ------------------------------------------------------------------
    # Entry points
    # ------------------------------------------------------------------

    def resolve_member(
        self, field: f.Field, present: bool, value: Any, path: Tuple[PathItem, ...]
    ) -> Tuple[bool, Any]:
        """
        Resolve a possibly-absent value.

        Returns ``(keep, value)``; ``keep`` is False when an optional value
        is absent and should be omitted from the output.
        """
        if not present or value is None:
            if field.has_default:
                return True, copy.deepcopy(field.default)
            if field.optional:
                return False, None
            self._issue(path, "Required", "required")
            return False, None
        return True, self.validate(field, value, path)

    def validate(self, field: f.Field, value: Any, path: Tuple[PathItem, ...] = ()) -> Any:
        handler = getattr(self, f"_validate_{field.kind}", None)
        if handler is None:
            raise TypeError(f"No validator for field kind {field.kind!r}")
        return handler(field, value, path)

    # ------------------------------------------------------------------
    # Scalars
    # ------------------------------------------------------------------

    def _validate_any(self, field: f.AnyValue, value: Any, path: Tuple[PathItem, ...]) -> Any:
        return value

    def _validate_string(self, field: f.String, value: Any, path: Tuple[PathItem, ...]) -> Any:
        if not isinstance(value, str):
            self._invalid_type(path, "string", value)
            return value
        if field.min_length is not None and len(value) < field.min_length:
            self._issue(
                path,
                f"String must contain at least {field.min_length} character(s)",
                "too_small",
            )
        if field.max_length is not None and len(value) > field.max_length:
            self._issue(
                path,
                f"String must contain at most {field.max_length} character(s)",
                "too_big",
            )
        if field.pattern is not None and not field.pattern.search(value):
            self._issue(path, "Invalid", "invalid_string")
        if field.email and not f.EMAIL_PATTERN.match(value):
            self._issue(path, "Invalid email", "invalid_string")
        return value

    def _validate_number(self, field: f.Number, value: Any, path: Tuple[PathItem, ...]) -> Any:
        if isinstance(value, bool) or not isinstance(value, (int, float)):
            self._invalid_type(path, "number", value)
            return value
        if field.integer and not (isinstance(value, int) or value.is_integer()):
            self._issue(path, "Expected integer, received float", "invalid_type")
        if field.positive and value <= 0:
            self._issue(path, "Number must be greater than 0", "too_small")
        if field.minimum is not None and value < field.minimum:
            self._issue(
                path, f"Number must be greater than or equal to {field.minimum}", "too_small"
            )
        if field.maximum is not None and value > field.maximum:
            self._issue(
                path, f"Number must be less than or equal to {field.maximum}", "too_big"
            )
        return value

    def _validate_boolean(self, field: f.Boolean, value: Any, path: Tuple[PathItem, ...]) -> Any:
        if not isinstance(value, bool):
            self._invalid_type(path, "boolean", value)
        return value

    def _validate_date(self, field: f.Date, value: Any, path: Tuple[PathItem, ...]) -> Any:
        if not field.coerce:
            if not isinstance(value, (datetime, date)):
                self._invalid_type(path, "date", value)
            return value
        coerced = coerce_date(value)
        if coerced is None:
            self._issue(path, "Invalid date", "invalid_date")
            return value
        return coerced

    def _validate_literal(self, field: f.Literal, value: Any, path: Tuple[PathItem, ...]) -> Any:
        if value != field.value or isinstance(value, bool) != isinstance(field.value, bool):
            self._issue(
                path, f"Invalid literal value, expected {field.value!r}", "invalid_literal"
            )
        return value

    def _validate_enum(self, field: f.Enum, value: Any, path: Tuple[PathItem, ...]) -> Any:
        if value not in field.values:
            expected = " | ".join(repr(v) for v in field.values)
            self._issue(
                path,
                f"Invalid enum value. Expected {expected}, received {value!r}",
                "invalid_enum_value",
            )
        return value

    def _validate_reference(
        self, field: f.Reference, value: Any, path: Tuple[PathItem, ...]
    ) -> Any:
        if isinstance(value, str):
            if not value:
                self._issue(path, "Reference id must not be empty", "invalid_reference")
                return value
            return make_reference(field.collection, value)
        if isinstance(value, Mapping):
            entry_id = value.get("id")
            collection = value.get("collection", field.collection)
            if not isinstance(entry_id, str) or not entry_id:
                self._issue(path, "Reference must have a non-empty string id", "invalid_reference")
                return value
            if collection != field.collection:
                self._issue(
                    path,
                    f"Expected reference to collection '{field.collection}', "
                    f"received '{collection}'",
                    "invalid_reference",
                )
                return value
            return make_reference(field.collection, entry_id)
        self._invalid_type(path, "string or reference", value)
        return value

    # ------------------------------------------------------------------
    # Composites
    # ------------------------------------------------------------------

    def _validate_array(self, field: f.Array, value: Any, path: Tuple[PathItem, ...]) -> Any:
        if not isinstance(value, (list, tuple)):
            self._invalid_type(path, "array", value)
            return value
        if field.min_length is not None and len(value) < field.min_length:
            self._issue(
                path, f"Array must contain at least {field.min_length} element(s)", "too_small"
            )
        if field.max_length is not None and len(value) > field.max_length:
            self._issue(
                path, f"Array must contain at most {field.max_length} element(s)", "too_big"
            )
        out = []
        for index, item in enumerate(value):
            keep, resolved = self.resolve_member(field.inner, True, item, (*path, index))
            out.append(resolved if keep else None)
        return out

    def _validate_object(self, field: f.Object, value: Any, path: Tuple[PathItem, ...]) -> Any:
        if not isinstance(value, Mapping):
            self._invalid_type(path, "object", value)
            return value
        out: Dict[str, Any] = {}
        for name, member in field.fields.items():
            keep, resolved = self.resolve_member(
                member, name in value, value.get(name), (*path, name)
            )
            if keep:
                out[name] = resolved
        if field.passthrough:
            for name, extra in value.items():
                if name not in field.fields:
                    out[name] = extra
        return out

    def _validate_union(self, field: f.Union, value: Any, path: Tuple[PathItem, ...]) -> Any:
        if field.discriminator is not None:
            if not isinstance(value, Mapping):
                self._invalid_type(path, "object", value)
                return value
            option = field.option_for(value.get(field.discriminator))
            if option is None:
                expected = " | ".join(repr(t) for t in field.tags)
                self._issue(
                    (*path, field.discriminator),
                    f"Invalid discriminator value. Expected {expected}",
                    "invalid_union_discriminator",
                )
                return value
            return self.validate(option, value, path)

        for option in field.options:
            attempt = SchemaValidator()
            result = attempt.validate(option, value, path)
            if not attempt.issues:
                return result
        self._issue(path, "Invalid input", "invalid_union")
        return value


# ---------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------

def parse_data(
    entry_id: str,
    data: Any,
    schema: Any,
    *,
    collection: Optional[str] = None,
    file_path: Optional[str] = None,
) -> Dict[str, Any]:
    """
    Validate ``data`` for one entry against ``schema``.

    Parameters
    ----------
    entry_id : str
        Id of the entry, used in error messages only.
    data : Any
        Raw entry data, normally a mapping.
    schema : Field | Mapping[str, Field] | None
        Collection schema. ``None`` accepts any mapping unchanged.
    collection : str, optional
        Collection name, used in error messages only.
    file_path : str, optional
        Source file, used in error messages only.

    Returns
    -------
    dict
        The transformed data.

    Raises
    ------
    DataValidationError
        If the data does not satisfy the schema. Every issue is listed.
    """
    validator = SchemaValidator()

    if schema is None:
        if isinstance(data, Mapping):
            return dict(data)
        validator._invalid_type((), "object", data)
    else:
        result = validator.validate(f.as_schema(schema), data)
        if not validator.issues:
            if not isinstance(result, dict):
                validator._invalid_type((), "object", result)
            else:
                return result

    logger.debug(
        "Validation failed for %s/%s: %d issue(s)",
        collection,
        entry_id,
        len(validator.issues),
    )
    raise DataValidationError(
        validator.issues,
        entry_id=entry_id,
        collection=collection,
        file_path=file_path,
    )
