"""
Schema Package

Declarative collection schemas and the validator that applies them.
"""

from .fields import (
    MISSING,
    AnyValue,
    Array,
    Boolean,
    Date,
    Enum,
    Field,
    Literal,
    Number,
    Object,
    Reference,
    String,
    Union,
    as_schema,
    describe_schema,
)
from .validator import SchemaValidator, ValidationIssue, coerce_date, parse_data

__all__ = [
    "MISSING",
    "AnyValue",
    "Array",
    "Boolean",
    "Date",
    "Enum",
    "Field",
    "Literal",
    "Number",
    "Object",
    "Reference",
    "String",
    "Union",
    "as_schema",
    "describe_schema",
    "SchemaValidator",
    "ValidationIssue",
    "coerce_date",
    "parse_data",
]
