"""JSON Schema model used to constrain structured model output.

Nodes are built through the kind-specific factories (``SchemaNode.string()``,
``SchemaNode.object()`` ...). A single node class holds the union of all
constraint fields, but a node only ever carries, and serialises, the fields
that belong to its kind.
"""

from __future__ import annotations

import dataclasses
import json
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Mapping, Protocol, Sequence, Union, runtime_checkable

SchemaValue = Union[str, int, float, bool]


class SchemaType(str, Enum):
    STRING = "string"
    NUMBER = "number"
    INTEGER = "integer"
    BOOLEAN = "boolean"
    OBJECT = "object"
    ARRAY = "array"


# (attribute, JSON key) pairs in emission order
_STRING_FIELDS = (
    ("min_length", "minLength"),
    ("max_length", "maxLength"),
    ("pattern", "pattern"),
    ("format", "format"),
)
_NUMERIC_FIELDS = (
    ("minimum", "minimum"),
    ("maximum", "maximum"),
    ("exclusive_minimum", "exclusiveMinimum"),
    ("exclusive_maximum", "exclusiveMaximum"),
    ("multiple_of", "multipleOf"),
)
_OBJECT_FIELDS = (
    ("properties", "properties"),
    ("required", "required"),
    ("additional_properties", "additionalProperties"),
    ("min_properties", "minProperties"),
    ("max_properties", "maxProperties"),
)
_ARRAY_FIELDS = (
    ("items", "items"),
    ("min_items", "minItems"),
    ("max_items", "maxItems"),
    ("unique_items", "uniqueItems"),
)

_KIND_FIELDS: dict[SchemaType, tuple[tuple[str, str], ...]] = {
    SchemaType.STRING: _STRING_FIELDS,
    SchemaType.NUMBER: _NUMERIC_FIELDS,
    SchemaType.INTEGER: _NUMERIC_FIELDS,
    SchemaType.BOOLEAN: (),
    SchemaType.OBJECT: _OBJECT_FIELDS,
    SchemaType.ARRAY: _ARRAY_FIELDS,
}

_ALL_CONSTRAINTS = tuple(
    attr for fields in (_STRING_FIELDS, _NUMERIC_FIELDS, _OBJECT_FIELDS, _ARRAY_FIELDS) for attr, _ in fields
)


@dataclass(frozen=True, slots=True)
class SchemaNode:
    """One JSON Schema constraint node."""

    type: SchemaType
    description: str | None = None
    enum_values: tuple[SchemaValue, ...] | None = None
    # string
    min_length: int | None = None
    max_length: int | None = None
    pattern: str | None = None
    format: str | None = None
    # number / integer
    minimum: float | None = None
    maximum: float | None = None
    exclusive_minimum: float | None = None
    exclusive_maximum: float | None = None
    multiple_of: float | None = None
    # object
    properties: Mapping[str, SchemaNode] | None = None
    required: tuple[str, ...] | None = None
    additional_properties: bool | None = None
    min_properties: int | None = None
    max_properties: int | None = None
    # array
    items: SchemaNode | None = None
    min_items: int | None = None
    max_items: int | None = None
    unique_items: bool | None = None

    def __post_init__(self) -> None:
        allowed = {attr for attr, _ in _KIND_FIELDS[SchemaType(self.type)]}
        foreign = [
            attr for attr in _ALL_CONSTRAINTS if attr not in allowed and getattr(self, attr) is not None
        ]
        if foreign:
            raise ValueError(f"Constraints {foreign} are not valid for a {SchemaType(self.type).value} schema")

    # Factories --------------------------------------------------------

    @classmethod
    def string(
        cls,
        *,
        description: str | None = None,
        min_length: int | None = None,
        max_length: int | None = None,
        pattern: str | None = None,
        format: str | None = None,
        enum_values: Sequence[SchemaValue] | None = None,
    ) -> SchemaNode:
        return cls(
            type=SchemaType.STRING,
            description=description,
            enum_values=_freeze_values(enum_values),
            min_length=min_length,
            max_length=max_length,
            pattern=pattern,
            format=format,
        )

    @classmethod
    def number(
        cls,
        *,
        description: str | None = None,
        minimum: float | None = None,
        maximum: float | None = None,
        exclusive_minimum: float | None = None,
        exclusive_maximum: float | None = None,
        multiple_of: float | None = None,
        enum_values: Sequence[SchemaValue] | None = None,
    ) -> SchemaNode:
        return cls(
            type=SchemaType.NUMBER,
            description=description,
            enum_values=_freeze_values(enum_values),
            minimum=minimum,
            maximum=maximum,
            exclusive_minimum=exclusive_minimum,
            exclusive_maximum=exclusive_maximum,
            multiple_of=multiple_of,
        )

    @classmethod
    def integer(
        cls,
        *,
        description: str | None = None,
        minimum: float | None = None,
        maximum: float | None = None,
        exclusive_minimum: float | None = None,
        exclusive_maximum: float | None = None,
        multiple_of: float | None = None,
        enum_values: Sequence[SchemaValue] | None = None,
    ) -> SchemaNode:
        return cls(
            type=SchemaType.INTEGER,
            description=description,
            enum_values=_freeze_values(enum_values),
            minimum=minimum,
            maximum=maximum,
            exclusive_minimum=exclusive_minimum,
            exclusive_maximum=exclusive_maximum,
            multiple_of=multiple_of,
        )

    @classmethod
    def boolean(cls, *, description: str | None = None) -> SchemaNode:
        return cls(type=SchemaType.BOOLEAN, description=description)

    @classmethod
    def enum(cls, values: Sequence[SchemaValue], *, description: str | None = None) -> SchemaNode:
        """String enumeration.

        The kind is always ``string``; numeric enumerations go through
        ``integer()``/``number()`` with ``enum_values``.
        """
        return cls(type=SchemaType.STRING, description=description, enum_values=_freeze_values(values))

    @classmethod
    def object(
        cls,
        *,
        description: str | None = None,
        properties: Mapping[str, SchemaNode] | None = None,
        required: Sequence[str] | None = None,
        additional_properties: bool | None = False,
        min_properties: int | None = None,
        max_properties: int | None = None,
    ) -> SchemaNode:
        return cls(
            type=SchemaType.OBJECT,
            description=description,
            properties=dict(properties) if properties is not None else None,
            required=tuple(required) if required is not None else None,
            additional_properties=additional_properties,
            min_properties=min_properties,
            max_properties=max_properties,
        )

    @classmethod
    def array(
        cls,
        *,
        description: str | None = None,
        items: SchemaNode | None = None,
        min_items: int | None = None,
        max_items: int | None = None,
        unique_items: bool | None = None,
    ) -> SchemaNode:
        return cls(
            type=SchemaType.ARRAY,
            description=description,
            items=items,
            min_items=min_items,
            max_items=max_items,
            unique_items=unique_items,
        )

    # Helpers ----------------------------------------------------------

    def with_description(self, description: str | None) -> SchemaNode:
        return dataclasses.replace(self, description=description)

    def with_constraints(self, **constraints: Any) -> SchemaNode:
        """Copy with extra constraints; fields foreign to the kind are rejected."""
        return dataclasses.replace(self, **constraints)

    def to_dict(self) -> dict[str, Any]:
        payload: dict[str, Any] = {"type": SchemaType(self.type).value}
        if self.description is not None:
            payload["description"] = self.description
        if self.enum_values is not None:
            payload["enum"] = list(self.enum_values)
        for attr, key in _KIND_FIELDS[SchemaType(self.type)]:
            value = getattr(self, attr)
            if value is None:
                continue
            if attr == "properties":
                value = {name: child.to_dict() for name, child in value.items()}
            elif attr == "items":
                value = value.to_dict()
            elif attr == "required":
                value = list(value)
            payload[key] = value
        return payload

    def to_json(self, **kwargs: Any) -> str:
        return json.dumps(self.to_dict(), ensure_ascii=False, **kwargs)


@dataclass(frozen=True, slots=True)
class SchemaEnvelope:
    """Named, strict wrapper around a schema, as sent in ``response_format``."""

    name: str
    schema: SchemaNode
    strict: bool = field(default=True)

    def to_dict(self) -> dict[str, Any]:
        return {"name": self.name, "strict": self.strict, "schema": self.schema.to_dict()}


@runtime_checkable
class SchemaConvertible(Protocol):
    """A type that describes its own JSON schema."""

    @classmethod
    def describe_schema(cls) -> SchemaNode: ...


def _freeze_values(values: Sequence[SchemaValue] | None) -> tuple[SchemaValue, ...] | None:
    if values is None:
        return None
    frozen = tuple(value.value if isinstance(value, Enum) else value for value in values)
    for value in frozen:
        if not isinstance(value, (str, int, float, bool)):
            raise TypeError(f"Enum values must be str, int, float or bool, got {type(value).__name__}")
    return frozen
