"""Typed configuration values.

Values are carried as a tagged variant so consumers can branch on ``kind``
exhaustively. Raw Python values are checked against the registry's declared
type at write time by :func:`coerce_value`.
"""

import json
from typing import Annotated, Any, Literal

from pydantic import BaseModel, ConfigDict, Field, StrictBool, StrictFloat, StrictInt, StrictStr
from pydantic import ValidationError as PydanticValidationError

from temporal_config.exceptions import TypeMismatch
from temporal_config.models.enums import ValueType


class _TypedValueBase(BaseModel):
    model_config = ConfigDict(frozen=True)


class StringValue(_TypedValueBase):
    """A string setting."""

    kind: Literal["string"] = "string"
    value: StrictStr


class NumberValue(_TypedValueBase):
    """A numeric setting (booleans are not numbers here)."""

    kind: Literal["number"] = "number"
    value: StrictInt | StrictFloat


class BoolValue(_TypedValueBase):
    """A boolean setting."""

    kind: Literal["boolean"] = "boolean"
    value: StrictBool


class JsonValue(_TypedValueBase):
    """A JSON object setting."""

    kind: Literal["json"] = "json"
    value: dict[str, Any]


class ArrayValue(_TypedValueBase):
    """A JSON array setting."""

    kind: Literal["array"] = "array"
    value: list[Any]


TypedValue = Annotated[
    StringValue | NumberValue | BoolValue | JsonValue | ArrayValue,
    Field(discriminator="kind"),
]

_VARIANTS: dict[ValueType, type[_TypedValueBase]] = {
    ValueType.STRING: StringValue,
    ValueType.NUMBER: NumberValue,
    ValueType.BOOLEAN: BoolValue,
    ValueType.JSON: JsonValue,
    ValueType.ARRAY: ArrayValue,
}


def coerce_value(key: str, value_type: ValueType, raw: Any) -> TypedValue:
    """Validate ``raw`` against ``value_type`` and wrap it.

    Args:
        key: Key being written (for error context).
        value_type: Declared registry type.
        raw: Plain Python value.

    Returns:
        The matching tagged variant.

    Raises:
        TypeMismatch: If the value does not conform or is not JSON-serialisable.
    """
    value_type = ValueType(value_type)
    if isinstance(raw, _TypedValueBase):
        raw = raw.value  # type: ignore[attr-defined]

    if value_type is ValueType.NUMBER and isinstance(raw, bool):
        raise TypeMismatch(key, ValueType.NUMBER.value, raw)

    variant = _VARIANTS[value_type]
    try:
        typed = variant(value=raw)
    except PydanticValidationError as e:
        raise TypeMismatch(key, value_type.value, raw) from e

    if value_type in (ValueType.JSON, ValueType.ARRAY):
        try:
            json.dumps(raw)
        except (TypeError, ValueError) as e:
            raise TypeMismatch(key, value_type.value, raw) from e
    return typed  # type: ignore[return-value]


def unwrap(typed: TypedValue) -> Any:
    """Plain Python value of a tagged variant."""
    match typed:
        case StringValue(value=v) | NumberValue(value=v) | BoolValue(value=v):
            return v
        case JsonValue(value=v) | ArrayValue(value=v):
            return v
    raise TypeError(f"Unsupported value variant: {type(typed).__name__}")
