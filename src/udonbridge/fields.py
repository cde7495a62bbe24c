"""Typed component field values and their wire representation."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, Iterable, Optional, Tuple, Union

MESH_REFERENCE_PREFIX = "mesh-ref://"
MATERIAL_REFERENCE_PREFIX = "material-ref://"
PLACEHOLDER_PREFIXES = (MESH_REFERENCE_PREFIX, MATERIAL_REFERENCE_PREFIX)

_VECTOR_AXES = {"float2": ("x", "y"), "float3": ("x", "y", "z")}

__all__ = [
    "Scalar",
    "Reference",
    "ReferenceList",
    "FieldValue",
    "MESH_REFERENCE_PREFIX",
    "MATERIAL_REFERENCE_PREFIX",
    "PLACEHOLDER_PREFIXES",
    "float_",
    "float2",
    "float3",
    "bool_",
    "string",
    "uri",
    "enum",
    "color",
    "reference",
    "reference_list",
    "is_placeholder",
    "fields_to_wire",
]


@dataclass(frozen=True, slots=True)
class Scalar:
    """Any non-reference field: numbers, vectors, enums, colours, strings."""

    kind: str
    value: Any
    enum_type: Optional[str] = None

    def to_wire(self) -> Dict[str, Any]:
        if self.kind in _VECTOR_AXES:
            value: Any = dict(zip(_VECTOR_AXES[self.kind], self.value))
        elif self.kind == "colorX":
            r, g, b, a = self.value
            value = {"r": r, "g": g, "b": b, "a": a, "profile": "Linear"}
        else:
            value = self.value
        wire: Dict[str, Any] = {"$type": self.kind, "value": value}
        if self.enum_type is not None:
            wire["enumType"] = self.enum_type
        return wire


@dataclass(frozen=True, slots=True)
class Reference:
    target_id: Optional[str]

    def to_wire(self) -> Dict[str, Any]:
        return {"$type": "reference", "targetId": self.target_id}


@dataclass(frozen=True, slots=True)
class ReferenceList:
    elements: Tuple[Reference, ...]

    def to_wire(self) -> Dict[str, Any]:
        return {"$type": "list", "elements": [e.to_wire() for e in self.elements]}


FieldValue = Union[Scalar, Reference, ReferenceList]


def float_(value: float) -> Scalar:
    return Scalar("float", float(value))


def float2(x: float, y: float) -> Scalar:
    return Scalar("float2", (float(x), float(y)))


def float3(x: float, y: float, z: float) -> Scalar:
    return Scalar("float3", (float(x), float(y), float(z)))


def bool_(value: bool) -> Scalar:
    return Scalar("bool", bool(value))


def string(value: str) -> Scalar:
    return Scalar("string", str(value))


def uri(value: str) -> Scalar:
    return Scalar("Uri", str(value))


def enum(value: str, enum_type: str, *, nullable: bool = False) -> Scalar:
    return Scalar("enum?" if nullable else "enum", value, enum_type)


def color(r: float, g: float, b: float, a: float = 1.0) -> Scalar:
    return Scalar("colorX", (float(r), float(g), float(b), float(a)))


def reference(target_id: Optional[str]) -> Reference:
    return Reference(target_id)


def reference_list(target_ids: Iterable[Optional[str]]) -> ReferenceList:
    return ReferenceList(tuple(Reference(t) for t in target_ids))


def is_placeholder(value: Any) -> bool:
    return isinstance(value, str) and value.startswith(PLACEHOLDER_PREFIXES)


def fields_to_wire(fields: Dict[str, FieldValue]) -> Dict[str, Dict[str, Any]]:
    return {name: value.to_wire() for name, value in fields.items()}
