"""
Structural representation of C++ types.

Every declared type is one of a closed set of shapes. Code that dispatches
over shapes ends with ``unhandled_shape`` so that adding a variant without
handling it fails loudly instead of producing invalid output.
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from typing import Union


@dataclass(frozen=True)
class BuiltinType:
    """Fundamental type: int, float, bool, void, ..."""
    name: str
    const: bool = False


@dataclass(frozen=True)
class PointerType:
    pointee: "TypeShape"
    const: bool = False


@dataclass(frozen=True)
class ReferenceType:
    referee: "TypeShape"
    rvalue: bool = False
    const: bool = False


@dataclass(frozen=True)
class TemplateType:
    """Specialization of a class template, e.g. ``Urho3D::SharedPtr<Node>``."""
    template: str
    args: tuple["TypeShape", ...] = ()
    const: bool = False


@dataclass(frozen=True)
class EnumType:
    name: str
    const: bool = False


@dataclass(frozen=True)
class ClassType:
    name: str
    const: bool = False


@dataclass(frozen=True)
class UnknownType:
    """Anything the parser could not classify (function pointers, arrays, ...)."""
    spelling: str
    const: bool = False


TypeShape = Union[
    BuiltinType,
    PointerType,
    ReferenceType,
    TemplateType,
    EnumType,
    ClassType,
    UnknownType,
]

VOID = BuiltinType("void")


def unhandled_shape(shape: object) -> TypeError:
    return TypeError(f"Unhandled type shape: {shape!r}")


def strip_const(shape: TypeShape) -> TypeShape:
    if shape.const:
        return replace(shape, const=False)
    return shape


def base_type(shape: TypeShape) -> TypeShape:
    """Strip const, pointer and reference layers down to the underlying type."""
    while True:
        if isinstance(shape, PointerType):
            shape = shape.pointee
        elif isinstance(shape, ReferenceType):
            shape = shape.referee
        else:
            return strip_const(shape)


def is_void(shape: TypeShape) -> bool:
    return isinstance(shape, BuiltinType) and shape.name == "void"


def spelling(shape: TypeShape) -> str:
    """Render a shape as C++ source text."""
    prefix = "const " if shape.const else ""
    if isinstance(shape, BuiltinType):
        return f"{prefix}{shape.name}"
    if isinstance(shape, (EnumType, ClassType)):
        return f"{prefix}{shape.name}"
    if isinstance(shape, TemplateType):
        args = ", ".join(spelling(a) for a in shape.args)
        # Avoid ">>" for nested templates in pre-C++11 parsers
        closing = " >" if args.endswith(">") else ">"
        return f"{prefix}{shape.template}<{args}{closing}"
    if isinstance(shape, PointerType):
        suffix = " const" if shape.const else ""
        return f"{spelling(shape.pointee)}*{suffix}"
    if isinstance(shape, ReferenceType):
        return f"{spelling(shape.referee)}{'&&' if shape.rvalue else '&'}"
    if isinstance(shape, UnknownType):
        return f"{prefix}{shape.spelling}"
    raise unhandled_shape(shape)


__all__ = [
    "BuiltinType",
    "PointerType",
    "ReferenceType",
    "TemplateType",
    "EnumType",
    "ClassType",
    "UnknownType",
    "TypeShape",
    "VOID",
    "base_type",
    "is_void",
    "spelling",
    "strip_const",
    "unhandled_shape",
]
