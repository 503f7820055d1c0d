"""
Conversion rules for recognized class templates.

Each rule resolves the template arguments through the registry and derives
a mapping for the specialization, so support for a new container shape is
one rule, not a new branch in every emitter.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from .registry import ClassInfo, TypeMapping, TypeRegistry
from .shapes import ClassType, TemplateType, spelling, strip_const


def _single_class_argument(shape: TemplateType, registry: TypeRegistry) -> Optional[ClassInfo]:
    if len(shape.args) != 1:
        return None
    arg = strip_const(shape.args[0])
    if not isinstance(arg, ClassType):
        return None
    return registry.get_class(arg.name)


@dataclass(frozen=True)
class RefCountedPointerRule:
    """
    Intrusive reference-counted smart pointer, e.g. ``SharedPtr<T>``.

    Crossing into managed code transfers one reference: the shim adds a
    reference before returning the raw pointer and the managed wrapper is
    created as its owner.
    """
    templates: tuple[str, ...] = ("Urho3D::SharedPtr",)

    def resolve(self, shape: TemplateType, registry: TypeRegistry) -> Optional[TypeMapping]:
        info = _single_class_argument(shape, registry)
        if info is None:
            return None
        native = spelling(strip_const(shape))
        return TypeMapping(
            native=native,
            shim=f"{info.native}*",
            pinvoke="IntPtr",
            managed=info.managed,
            to_shim="csbind::AddRef({value})",
            from_shim=f"{native}({{value}})",
            to_managed=f"{info.managed}.GetManagedInstance({{value}}, true)",
            from_managed=f"{info.managed}.GetNativeInstance({{value}})",
        )


@dataclass(frozen=True)
class WeakPointerRule:
    """Non-owning smart pointer, e.g. ``WeakPtr<T>``; no reference changes hands."""
    templates: tuple[str, ...] = ("Urho3D::WeakPtr",)

    def resolve(self, shape: TemplateType, registry: TypeRegistry) -> Optional[TypeMapping]:
        info = _single_class_argument(shape, registry)
        if info is None:
            return None
        native = spelling(strip_const(shape))
        return TypeMapping(
            native=native,
            shim=f"{info.native}*",
            pinvoke="IntPtr",
            managed=info.managed,
            to_shim="{value}.Get()",
            from_shim=f"{native}({{value}})",
            to_managed=f"{info.managed}.GetManagedInstance({{value}}, false)",
            from_managed=f"{info.managed}.GetNativeInstance({{value}})",
        )


@dataclass(frozen=True)
class DynamicArrayRule:
    """
    Contiguous dynamic array, e.g. ``Vector<T>`` or ``std::vector<T>``.

    Only arrays of blittable elements are supported; they cross as a native
    array handle and become managed arrays.
    """
    templates: tuple[str, ...] = ("Urho3D::Vector", "Urho3D::PODVector", "std::vector")

    def resolve(self, shape: TemplateType, registry: TypeRegistry) -> Optional[TypeMapping]:
        if not shape.args:
            return None
        element = registry.lookup(shape.args[0])
        if element is None or not element.is_blittable or element.marshal_as is not None:
            return None
        if element.managed == "void":
            return None
        native = spelling(strip_const(shape))
        return TypeMapping(
            native=native,
            shim="csbind::Array*",
            pinvoke="IntPtr",
            managed=f"{element.managed}[]",
            to_shim="csbind::ToArray({value})",
            from_shim=f"csbind::FromArray<{native}>({{value}})",
            to_managed=f"NativeArray.ToManaged<{element.pinvoke}>({{value}})",
            from_managed=f"NativeArray.FromManaged<{element.pinvoke}>({{value}})",
        )
