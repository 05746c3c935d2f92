"""
Schema Descriptors

Collection schemas are declared as a tree of ``Field`` descriptors and
interpreted by ``schema.validator``. Descriptors hold no validation logic
of their own; they are plain, comparable declarations that can also be
described (for config digests).

Example
-------
    schema = Object({
        "title": String(),
        "published": Date(coerce=True),
        "author": Reference("authors"),
        "tags": Array(String(), default=[]),
    })

Every descriptor accepts:
- ``optional``: the key may be absent (or ``None``); it is then omitted
- ``default``: value used when the key is absent; returned as-is
- ``description``: free text, carried into ``describe()``
"""

from __future__ import annotations

import re
from typing import Any as _Any, Dict, List, Mapping, Optional, Pattern, Sequence, Tuple


class _Missing:
    """Sentinel for "no default declared"."""

    _instance: Optional["_Missing"] = None

    def __new__(cls) -> "_Missing":
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __repr__(self) -> str:
        return "MISSING"

    def __bool__(self) -> bool:
        return False


MISSING = _Missing()


class Field:
    """Base class of all schema descriptors."""

    kind: str = "field"

    def __init__(
        self,
        *,
        optional: bool = False,
        default: _Any = MISSING,
        description: Optional[str] = None,
    ) -> None:
        self.optional = optional
        self.default = default
        self.description = description

    @property
    def has_default(self) -> bool:
        return self.default is not MISSING

    def _describe_options(self) -> Dict[str, _Any]:
        return {}

    def describe(self) -> Dict[str, _Any]:
        """Return a JSON-compatible description of this descriptor."""
        out: Dict[str, _Any] = {"kind": self.kind}
        out.update(self._describe_options())
        if self.optional:
            out["optional"] = True
        if self.has_default:
            out["default"] = self.default
        if self.description:
            out["description"] = self.description
        return out

    def __repr__(self) -> str:
        options = ", ".join(f"{k}={v!r}" for k, v in self._describe_options().items())
        return f"{type(self).__name__}({options})"


# ---------------------------------------------------------------------
# Scalars
# ---------------------------------------------------------------------

EMAIL_PATTERN = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")


class String(Field):
    kind = "string"

    def __init__(
        self,
        *,
        min_length: Optional[int] = None,
        max_length: Optional[int] = None,
        pattern: Optional[str] = None,
        email: bool = False,
        **kwargs: _Any,
    ) -> None:
        super().__init__(**kwargs)
        self.min_length = min_length
        self.max_length = max_length
        self.pattern: Optional[Pattern[str]] = re.compile(pattern) if pattern else None
        self.email = email

    def _describe_options(self) -> Dict[str, _Any]:
        out: Dict[str, _Any] = {}
        if self.min_length is not None:
            out["min_length"] = self.min_length
        if self.max_length is not None:
            out["max_length"] = self.max_length
        if self.pattern is not None:
            out["pattern"] = self.pattern.pattern
        if self.email:
            out["email"] = True
        return out


class Number(Field):
    kind = "number"

    def __init__(
        self,
        *,
        integer: bool = False,
        minimum: Optional[float] = None,
        maximum: Optional[float] = None,
        positive: bool = False,
        **kwargs: _Any,
    ) -> None:
        super().__init__(**kwargs)
        self.integer = integer
        self.minimum = minimum
        self.maximum = maximum
        self.positive = positive

    def _describe_options(self) -> Dict[str, _Any]:
        return {
            k: v
            for k, v in (
                ("integer", self.integer),
                ("minimum", self.minimum),
                ("maximum", self.maximum),
                ("positive", self.positive),
            )
            if v not in (None, False)
        }


class Boolean(Field):
    kind = "boolean"


class Date(Field):
    """
    A date/time value.

    With ``coerce=True`` strings (ISO 8601 or long-form English dates) and
    numbers (epoch milliseconds) are converted to timezone-aware UTC
    ``datetime`` objects.
    """

    kind = "date"

    def __init__(self, *, coerce: bool = False, **kwargs: _Any) -> None:
        super().__init__(**kwargs)
        self.coerce = coerce

    def _describe_options(self) -> Dict[str, _Any]:
        return {"coerce": True} if self.coerce else {}


class Literal(Field):
    kind = "literal"

    def __init__(self, value: _Any, **kwargs: _Any) -> None:
        super().__init__(**kwargs)
        self.value = value

    def _describe_options(self) -> Dict[str, _Any]:
        return {"value": self.value}


class Enum(Field):
    kind = "enum"

    def __init__(self, values: Sequence[_Any], **kwargs: _Any) -> None:
        super().__init__(**kwargs)
        if not values:
            raise ValueError("Enum requires at least one value")
        self.values: Tuple[_Any, ...] = tuple(values)

    def _describe_options(self) -> Dict[str, _Any]:
        return {"values": list(self.values)}


class Reference(Field):
    """Pointer to an entry of ``collection``; resolves to ``{collection, id}``."""

    kind = "reference"

    def __init__(self, collection: str, **kwargs: _Any) -> None:
        super().__init__(**kwargs)
        self.collection = collection

    def _describe_options(self) -> Dict[str, _Any]:
        return {"collection": self.collection}


class AnyValue(Field):
    """Accepts any value unchanged."""

    kind = "any"


# ---------------------------------------------------------------------
# Composites
# ---------------------------------------------------------------------

class Array(Field):
    kind = "array"

    def __init__(
        self,
        inner: Field,
        *,
        min_length: Optional[int] = None,
        max_length: Optional[int] = None,
        **kwargs: _Any,
    ) -> None:
        super().__init__(**kwargs)
        self.inner = inner
        self.min_length = min_length
        self.max_length = max_length

    def _describe_options(self) -> Dict[str, _Any]:
        out: Dict[str, _Any] = {"inner": self.inner.describe()}
        if self.min_length is not None:
            out["min_length"] = self.min_length
        if self.max_length is not None:
            out["max_length"] = self.max_length
        return out


class Object(Field):
    """
    A mapping with declared keys.

    Keys not declared in ``fields`` are dropped from the output unless
    ``passthrough=True``.
    """

    kind = "object"

    def __init__(
        self,
        fields: Mapping[str, Field],
        *,
        passthrough: bool = False,
        **kwargs: _Any,
    ) -> None:
        super().__init__(**kwargs)
        self.fields: Dict[str, Field] = dict(fields)
        self.passthrough = passthrough

    def _describe_options(self) -> Dict[str, _Any]:
        out: Dict[str, _Any] = {
            "fields": {name: f.describe() for name, f in self.fields.items()}
        }
        if self.passthrough:
            out["passthrough"] = True
        return out


class Union(Field):
    """
    One of several options.

    With ``discriminator`` set, every option must be an ``Object`` whose
    discriminator key is a ``Literal``; the option is selected by that
    value. Otherwise the first option that validates wins.
    """

    kind = "union"

    def __init__(
        self,
        options: Sequence[Field],
        *,
        discriminator: Optional[str] = None,
        **kwargs: _Any,
    ) -> None:
        super().__init__(**kwargs)
        if not options:
            raise ValueError("Union requires at least one option")
        self.options: List[Field] = list(options)
        self.discriminator = discriminator
        self._tagged: List[Tuple[_Any, Object]] = []
        if discriminator is not None:
            for option in self.options:
                tag = option.fields.get(discriminator) if isinstance(option, Object) else None
                if not isinstance(tag, Literal):
                    raise ValueError(
                        f"Every option of a discriminated union needs a Literal "
                        f"'{discriminator}' field"
                    )
                self._tagged.append((tag.value, option))

    def option_for(self, tag: _Any) -> Optional[Object]:
        """Return the option whose discriminator literal equals ``tag``."""
        for value, option in self._tagged:
            if value == tag:
                return option
        return None

    @property
    def tags(self) -> List[_Any]:
        return [value for value, _ in self._tagged]

    def _describe_options(self) -> Dict[str, _Any]:
        out: Dict[str, _Any] = {"options": [o.describe() for o in self.options]}
        if self.discriminator:
            out["discriminator"] = self.discriminator
        return out


def as_schema(schema: _Any) -> Field:
    """Normalize a user-declared schema into a root descriptor."""
    if isinstance(schema, Field):
        return schema
    if isinstance(schema, Mapping):
        return Object(schema)
    raise TypeError(f"Unsupported schema type: {type(schema).__name__}")


def describe_schema(schema: _Any) -> Optional[Dict[str, _Any]]:
    if schema is None:
        return None
    return as_schema(schema).describe()
