"""
Value-formatting service.

Turns pin types into C++-flavoured type names and raw default-value strings
into literal tokens:

    bool          "True"                  ->  true
    string        "hi"                    ->  TEXT("hi")
    text          "hi"                    ->  INVTEXT("hi")
    name          "hi"                    ->  FName(TEXT("hi"))
    enum          "Walking"               ->  EMovementMode::Walking
    struct Vector "X=1.0,Y=2.0,Z=3.0"     ->  FVector(1.0, 2.0, 3.0)
    array         "(1,2,3)"               ->  { 1,2,3 }
    object        anything                ->  nullptr
    empty                                 ->  /*unset*/

Nothing here raises for malformed input; unknown shapes fall through as the
raw text.
"""

from __future__ import annotations

import re
from decimal import Decimal
from typing import Any, Optional

from nodescribe.core.GraphPrimitives import PinType
from nodescribe.core.Types import ContainerType, ValueType

UNSET = "/*unset*/"

_PREFIXED = re.compile(r"^[UAI][A-Z]")

_NUMERIC = frozenset({
    ValueType.INT, ValueType.INT64, ValueType.FLOAT,
    ValueType.DOUBLE, ValueType.REAL, ValueType.BYTE,
})

_OBJECT_LIKE = frozenset({
    ValueType.OBJECT, ValueType.CLASS,
    ValueType.SOFT_OBJECT, ValueType.SOFT_CLASS,
})

_SIMPLE_NAMES = {
    ValueType.BOOL: "bool",
    ValueType.BYTE: "uint8",
    ValueType.INT: "int32",
    ValueType.INT64: "int64",
    ValueType.FLOAT: "float",
    ValueType.DOUBLE: "double",
    ValueType.NAME: "FName",
    ValueType.STRING: "FString",
    ValueType.TEXT: "FText",
    ValueType.DELEGATE: "FDelegate",
    ValueType.MC_DELEGATE: "FMulticastDelegate",
    ValueType.EXEC: "",
    ValueType.WILDCARD: "auto",
    ValueType.FIELD_PATH: "TFieldPath<FProperty>",
}


# ── Numbers ───────────────────────────────────────────────────────────────────

def fmt_float(value: Any) -> str:
    """Shortest readable float text, always with a decimal point."""
    try:
        v = float(value)
    except (TypeError, ValueError):
        return str(value)
    if v.is_integer():
        return f"{v:.1f}"
    text = repr(v)
    if "e" in text:
        text = format(Decimal(text), "f")
    return text


def is_numeric(text: str) -> bool:
    try:
        float(text)
    except ValueError:
        return False
    return True


# ── Types ─────────────────────────────────────────────────────────────────────

def _object_name(name: str, fallback: str) -> str:
    return name or fallback


def _inner_type_name(category: ValueType, sub_category: str, obj: str) -> str:
    if category == ValueType.REAL:
        return "double" if sub_category == "double" else "float"
    if category in _SIMPLE_NAMES:
        return _SIMPLE_NAMES[category]
    if category == ValueType.OBJECT:
        if not obj:
            return "UObject*"
        return (obj if _PREFIXED.match(obj) else "U" + obj) + "*"
    if category == ValueType.CLASS:
        return f"TSubclassOf<{_object_name(obj, 'UObject')}>"
    if category == ValueType.SOFT_OBJECT:
        return f"TSoftObjectPtr<{_object_name(obj, 'UObject')}>"
    if category == ValueType.SOFT_CLASS:
        return f"TSoftClassPtr<{_object_name(obj, 'UObject')}>"
    if category == ValueType.INTERFACE:
        return f"TScriptInterface<I{_object_name(obj, 'Interface')}>"
    if category in (ValueType.STRUCT, ValueType.ENUM):
        return obj or "auto"
    return "auto"


def pin_type_to_string(pin_type: PinType) -> str:
    inner = _inner_type_name(pin_type.category, pin_type.sub_category, pin_type.sub_category_object)
    if not inner:
        return ""

    if pin_type.container == ContainerType.ARRAY:
        inner = f"TArray<{inner}>"
    elif pin_type.container == ContainerType.SET:
        inner = f"TSet<{inner}>"
    elif pin_type.container == ContainerType.MAP:
        value = _inner_type_name(
            pin_type.value_category or ValueType.WILDCARD,
            pin_type.value_sub_category,
            pin_type.value_object,
        )
        inner = f"TMap<{inner}, {value}>"

    if pin_type.is_const:
        inner = "const " + inner
    if pin_type.is_reference:
        inner += "&"
    return inner


# ── Default values ────────────────────────────────────────────────────────────

def parse_struct_field(source: str, key: str) -> str:
    """Pull `key=value` out of an exported struct string, "0" when absent."""
    match = re.search(r"(?:^|[(,\s])" + re.escape(key) + r"=([^ ,)]*)", source)
    return match.group(1) if match else "0"


def _format_struct(struct_name: str, raw: str) -> Optional[str]:
    if struct_name in ("Vector", "Vector_NetQuantize"):
        return "FVector({}, {}, {})".format(*(parse_struct_field(raw, k) for k in "XYZ"))
    if struct_name == "Rotator":
        return "FRotator({}, {}, {})".format(*(parse_struct_field(raw, k) for k in "PYR"))
    if struct_name == "LinearColor":
        return "FLinearColor({}, {}, {}, {})".format(*(parse_struct_field(raw, k) for k in "RGBA"))
    if struct_name == "Vector2D":
        return "FVector2D({}, {})".format(*(parse_struct_field(raw, k) for k in "XY"))
    if struct_name == "Transform":
        if raw == "0,0,0|0,0,0|1,1,1":
            return "FTransform::Identity"
        return f"FTransform(/*{raw}*/)"
    return None


def format_default_value(pin_type: PinType, raw: Optional[str]) -> str:
    if raw is None or raw == "":
        return UNSET
    raw = str(raw)

    # containers keep the element category, so check them first
    if pin_type.container in (ContainerType.ARRAY, ContainerType.SET):
        inner = raw
        if inner.startswith("(") and inner.endswith(")"):
            inner = inner[1:-1]
        return "{ %s }" % inner if inner else "{}"
    if pin_type.container == ContainerType.MAP:
        return "{}" if raw == "()" else "{ %s }" % raw

    category = pin_type.category
    if category == ValueType.BOOL:
        return "true" if raw.lower() == "true" else "false"
    if category == ValueType.STRING:
        return f'TEXT("{raw}")'
    if category == ValueType.TEXT:
        return f'INVTEXT("{raw}")'
    if category == ValueType.NAME:
        return f'FName(TEXT("{raw}"))'
    if category in _NUMERIC:
        return raw
    if category in _OBJECT_LIKE:
        return "nullptr"
    if category == ValueType.ENUM:
        enum_name = pin_type.sub_category_object
        if enum_name and "::" not in raw:
            return f"{enum_name}::{raw}"
        return raw
    if category == ValueType.STRUCT and pin_type.sub_category_object:
        formatted = _format_struct(pin_type.sub_category_object, raw)
        if formatted is not None:
            return formatted
    return raw
