from __future__ import annotations

import collections.abc
import dataclasses
import inspect
import types
from datetime import datetime
from enum import Enum
from typing import (
    Annotated,
    Any,
    Dict,
    Iterable,
    List,
    Literal,
    Mapping,
    Sequence,
    Type,
    Union,
    get_args,
    get_origin,
    get_type_hints,
)
from uuid import UUID

import annotated_types
from pydantic import AnyUrl, BaseModel
from pydantic.fields import FieldInfo

from openrouter_kit.core.llm.base import SchemaDerivationError
from openrouter_kit.core.llm.schema import SchemaEnvelope, SchemaNode, SchemaType

_SCALARS: Dict[type, SchemaNode] = {
    str: SchemaNode.string(),
    int: SchemaNode.integer(),
    float: SchemaNode.number(),
    bool: SchemaNode.boolean(),
    datetime: SchemaNode.string(format="date-time"),
    UUID: SchemaNode.string(format="uuid"),
}

_ENUM_KINDS = {SchemaType.STRING, SchemaType.INTEGER, SchemaType.NUMBER}

_UNION_ORIGINS = (Union, types.UnionType)
_SEQUENCE_ORIGINS = (list, List, Sequence, collections.abc.Sequence, tuple)
_SET_ORIGINS = (set, frozenset, collections.abc.Set)
_MAPPING_ORIGINS = (dict, Dict, Mapping, collections.abc.Mapping)


class SchemaCompiler:
    """Derive JSON schemas from Python types.

    Types exposing a ``describe_schema()`` classmethod are used as-is. Pydantic
    models and dataclasses are reflected field by field; scalars, optionals,
    sequences, mappings, enumerations and literals are mapped directly.
    """

    def __init__(self, *, allow_additional_properties: bool = False) -> None:
        self.allow_additional_properties = allow_additional_properties
        self._in_progress: List[type] = []

    def compile(self, tp: Any, *, name: str | None = None, strict: bool = True) -> SchemaEnvelope:
        schema_name = name or getattr(tp, "__name__", None) or repr(tp)
        return SchemaEnvelope(name=schema_name, schema=self.derive(tp), strict=strict)

    def derive(self, tp: Any) -> SchemaNode:
        return self._compile_annotation(tp)

    # Internal helpers -------------------------------------------------

    def _compile_annotation(self, annotation: Any) -> SchemaNode:
        origin = get_origin(annotation)
        if origin is Annotated:
            base, *metadata = get_args(annotation)
            node = self._compile_annotation(base)
            return _apply_metadata(node, metadata)

        if origin is None:
            return self._compile_plain(annotation)

        if origin in _UNION_ORIGINS:
            args = [arg for arg in get_args(annotation) if arg is not type(None)]
            if len(args) != 1:
                raise SchemaDerivationError(f"Only Optional[T] unions are supported, got {annotation!r}")
            return self._compile_annotation(args[0])

        if origin is Literal:
            return _enum_node([arg for arg in get_args(annotation) if arg is not None], source=annotation)

        if origin in _SET_ORIGINS:
            (item_type,) = _type_args(annotation)
            return SchemaNode.array(items=self._compile_annotation(item_type), unique_items=True)

        if origin in _SEQUENCE_ORIGINS:
            args = _type_args(annotation)
            if origin is tuple:
                if len(args) != 2 or args[1] is not Ellipsis:
                    raise SchemaDerivationError("Only homogeneous tuple[T, ...] is supported")
                args = args[:1]
            (item_type,) = args
            return SchemaNode.array(items=self._compile_annotation(item_type))

        if origin in _MAPPING_ORIGINS:
            key_type, _ = _type_args(annotation)
            if key_type is not str:
                raise SchemaDerivationError(f"Mapping keys must be str, got {key_type!r}")
            # value constraints are not propagated
            return SchemaNode.object(additional_properties=True)

        raise SchemaDerivationError(f"Unsupported annotation origin: {origin!r}")

    def _compile_plain(self, annotation: Any) -> SchemaNode:
        describe = getattr(annotation, "describe_schema", None)
        if isinstance(annotation, type) and callable(describe):
            node = describe()
            if not isinstance(node, SchemaNode):
                raise SchemaDerivationError(f"{annotation.__name__}.describe_schema() must return a SchemaNode")
            return node

        if annotation in _SCALARS:
            return _SCALARS[annotation]

        if isinstance(annotation, type):
            if issubclass(annotation, Enum):
                return _enum_node(list(annotation), source=annotation)
            if issubclass(annotation, AnyUrl):
                return SchemaNode.string(format="uri")
            if issubclass(annotation, BaseModel):
                return self._guarded(annotation, self._compile_model)
            if dataclasses.is_dataclass(annotation):
                return self._guarded(annotation, self._compile_dataclass)
            if issubclass(annotation, (list, tuple, set, frozenset, dict)):
                raise SchemaDerivationError(f"Container {annotation.__name__} needs an item type")

        raise SchemaDerivationError(f"Unsupported field annotation: {annotation!r}")

    def _guarded(self, tp: type, build) -> SchemaNode:
        if tp in self._in_progress:
            chain = " -> ".join(item.__name__ for item in [*self._in_progress, tp])
            raise SchemaDerivationError(f"Recursive type cannot be expressed as a schema: {chain}")
        self._in_progress.append(tp)
        try:
            return build(tp)
        finally:
            self._in_progress.pop()

    def _compile_model(self, model: Type[BaseModel]) -> SchemaNode:
        properties: Dict[str, SchemaNode] = {}
        required: List[str] = []

        for field_name, field_info in model.model_fields.items():
            json_name = field_info.alias or field_name
            node = self._compile_annotation(field_info.annotation)
            node = _apply_field_info(node, field_info)
            properties[json_name] = node
            if field_info.is_required():
                required.append(json_name)

        description = inspect.cleandoc(model.__doc__) if model.__doc__ else None
        return SchemaNode.object(
            description=description,
            properties=properties,
            required=required,
            additional_properties=self.allow_additional_properties,
        )

    def _compile_dataclass(self, cls: type) -> SchemaNode:
        properties: Dict[str, SchemaNode] = {}
        required: List[str] = []
        hints = get_type_hints(cls, include_extras=True)

        for item in dataclasses.fields(cls):
            if not item.init:
                continue
            node = self._compile_annotation(hints.get(item.name, item.type))
            description = item.metadata.get("description") if item.metadata else None
            if description:
                node = node.with_description(description)
            properties[item.name] = node
            if item.default is dataclasses.MISSING and item.default_factory is dataclasses.MISSING:
                required.append(item.name)

        return SchemaNode.object(
            properties=properties,
            required=required,
            additional_properties=self.allow_additional_properties,
        )


def derive_schema(tp: Any) -> SchemaNode:
    """Derive the JSON schema node for ``tp``."""

    return SchemaCompiler().derive(tp)


def enum_schema(enum_cls: Type[Enum], *, description: str | None = None) -> SchemaNode:
    """Schema for an enumeration, typed after its backing scalar."""

    return _enum_node(list(enum_cls), source=enum_cls).with_description(description)


def _enum_node(members: Sequence[Any], *, source: Any) -> SchemaNode:
    values = [member.value if isinstance(member, Enum) else member for member in members]
    if not values:
        raise SchemaDerivationError(f"Enumeration {source!r} has no values")

    backing = _backing_type(source, values)
    if backing is None:
        raise SchemaDerivationError(f"Enumeration {source!r} mixes value types")
    base = _SCALARS.get(backing)
    kind = base.type if base is not None else None
    if kind not in _ENUM_KINDS:
        raise SchemaDerivationError(f"Unsupported backing type for enumeration {source!r}: {backing!r}")
    if kind is SchemaType.STRING:
        return SchemaNode.string(enum_values=values)
    if kind is SchemaType.INTEGER:
        return SchemaNode.integer(enum_values=values)
    return SchemaNode.number(enum_values=values)


def _backing_type(source: Any, values: Iterable[Any]) -> type | None:
    member_type = getattr(source, "_member_type_", object)
    if isinstance(source, type) and member_type is not object:
        return member_type
    kinds = {type(value) for value in values}
    if len(kinds) != 1:
        return None
    return kinds.pop()


def _apply_field_info(node: SchemaNode, field_info: FieldInfo) -> SchemaNode:
    node = _apply_metadata(node, field_info.metadata)
    if field_info.description:
        node = node.with_description(field_info.description)
    return node


def _apply_metadata(node: SchemaNode, metadata: Iterable[Any]) -> SchemaNode:
    constraints: Dict[str, Any] = {}
    for meta in metadata:
        if isinstance(meta, FieldInfo):
            node = _apply_field_info(node, meta)
            continue
        constraints.update(_constraints_for(node.type, meta))
    if constraints:
        node = node.with_constraints(**constraints)
    return node


def _constraints_for(kind: SchemaType, meta: Any) -> Dict[str, Any]:
    if kind is SchemaType.STRING:
        if isinstance(meta, annotated_types.MinLen):
            return {"min_length": meta.min_length}
        if isinstance(meta, annotated_types.MaxLen):
            return {"max_length": meta.max_length}
        pattern = getattr(meta, "pattern", None)
        if isinstance(pattern, str):
            return {"pattern": pattern}
    elif kind is SchemaType.ARRAY:
        if isinstance(meta, annotated_types.MinLen):
            return {"min_items": meta.min_length}
        if isinstance(meta, annotated_types.MaxLen):
            return {"max_items": meta.max_length}
    elif kind is SchemaType.OBJECT:
        if isinstance(meta, annotated_types.MinLen):
            return {"min_properties": meta.min_length}
        if isinstance(meta, annotated_types.MaxLen):
            return {"max_properties": meta.max_length}
    elif kind in (SchemaType.NUMBER, SchemaType.INTEGER):
        if isinstance(meta, annotated_types.Ge):
            return {"minimum": meta.ge}
        if isinstance(meta, annotated_types.Le):
            return {"maximum": meta.le}
        if isinstance(meta, annotated_types.Gt):
            return {"exclusive_minimum": meta.gt}
        if isinstance(meta, annotated_types.Lt):
            return {"exclusive_maximum": meta.lt}
        if isinstance(meta, annotated_types.MultipleOf):
            return {"multiple_of": meta.multiple_of}
    return {}


def _type_args(annotation: Any) -> tuple:
    args = get_args(annotation)
    if not args:
        raise SchemaDerivationError(f"{annotation!r} needs an item type")
    return args
