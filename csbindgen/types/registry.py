"""
Type registry for C++ to C# mappings.

This module defines the central registry that maps native type shapes to
the three layers they cross: the C shim signature, the P/Invoke import
declaration and the managed surface. All emitters query the same registry,
which keeps the layers in agreement on marshalling.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum, auto
from typing import Optional, Protocol

from ..errors import MappingError
from .shapes import (
    BuiltinType,
    ClassType,
    EnumType,
    PointerType,
    ReferenceType,
    TemplateType,
    TypeShape,
    UnknownType,
    spelling,
    strip_const,
    unhandled_shape,
)


UNKNOWN_TYPE = "<unknown>"


class TypeDirection(Enum):
    """Which layer a mapped type string is for."""
    NATIVE_TO_SHIM = auto()     # type in the extern "C" signature
    NATIVE_TO_IMPORT = auto()   # type in the [DllImport] declaration
    IMPORT_TO_MANAGED = auto()  # managed type the import value converts to
    NATIVE_TO_MANAGED = auto()  # managed surface type, in one step


class ExprDirection(Enum):
    """Which boundary a value crosses."""
    NATIVE_TO_SHIM = auto()     # returned C++ value -> shim return value
    SHIM_TO_NATIVE = auto()     # shim argument -> C++ argument
    IMPORT_TO_MANAGED = auto()  # P/Invoke return value -> managed value
    MANAGED_TO_IMPORT = auto()  # managed argument -> P/Invoke argument
    NATIVE_TO_CALLBACK = auto()  # C++ argument -> managed callback argument


@dataclass(frozen=True)
class TypeMapping:
    """
    How one native type crosses the three layers.

    Expression templates use ``{value}`` as placeholder.
    """
    native: str
    shim: str
    pinvoke: str
    managed: str
    to_shim: str = "{value}"
    from_shim: str = "{value}"
    to_managed: str = "{value}"
    from_managed: str = "{value}"
    # Attribute placed before the P/Invoke parameter or return value
    marshal_as: Optional[str] = None
    # Callback arguments stay owned by the caller; defaults to ``to_shim``
    borrow: Optional[str] = None

    @property
    def is_blittable(self) -> bool:
        return self.to_managed == "{value}" and self.from_managed == "{value}"

    def type_for(self, direction: TypeDirection) -> str:
        if direction == TypeDirection.NATIVE_TO_SHIM:
            return self.shim
        if direction == TypeDirection.NATIVE_TO_IMPORT:
            return self.pinvoke
        return self.managed

    def expression(self, direction: ExprDirection, value: str) -> str:
        template = {
            ExprDirection.NATIVE_TO_SHIM: self.to_shim,
            ExprDirection.SHIM_TO_NATIVE: self.from_shim,
            ExprDirection.IMPORT_TO_MANAGED: self.to_managed,
            ExprDirection.MANAGED_TO_IMPORT: self.from_managed,
            ExprDirection.NATIVE_TO_CALLBACK: self.to_shim if self.borrow is None else self.borrow,
        }[direction]
        return template.replace("{value}", value)


@dataclass(frozen=True)
class ClassInfo:
    """A bound user class."""
    native: str
    managed: str
    refcounted: bool = False


class TemplateRule(Protocol):
    """Conversion rule for specializations of a recognized class template."""

    templates: tuple[str, ...]

    def resolve(self, shape: TemplateType, registry: "TypeRegistry") -> Optional[TypeMapping]:
        ...


# =============================================================================
# Built-in C++ Types
# =============================================================================

# native -> (P/Invoke, managed)
BUILTIN_TYPES: dict[str, tuple[str, str]] = {
    "void": ("void", "void"),
    "bool": ("bool", "bool"),

    # Character types
    "char": ("sbyte", "sbyte"),
    "signed char": ("sbyte", "sbyte"),
    "unsigned char": ("byte", "byte"),
    "char16_t": ("char", "char"),

    # Integer types
    "short": ("short", "short"),
    "unsigned short": ("ushort", "ushort"),
    "int": ("int", "int"),
    "unsigned int": ("uint", "uint"),
    "long": ("int", "int"),
    "unsigned long": ("uint", "uint"),
    "long long": ("long", "long"),
    "unsigned long long": ("ulong", "ulong"),

    # Floating point
    "float": ("float", "float"),
    "double": ("double", "double"),
}

BOOL_MARSHAL = "[MarshalAs(UnmanagedType.I1)]"
STRING_MARSHAL = "[MarshalAs(UnmanagedType.LPUTF8Str)]"


class TypeRegistry:
    """
    Central registry for type mappings.

    Resolution strips const, then pointer and reference layers, and
    dispatches on the underlying shape. Template specializations recurse
    into their arguments through the registered template rules. Shapes that
    resolve to nothing are reported as ``UNKNOWN_TYPE``.
    """

    def __init__(self):
        self._types: dict[str, TypeMapping] = {}
        self._enums: dict[str, str] = {}
        self._classes: dict[str, ClassInfo] = {}
        self._templates: dict[str, TemplateRule] = {}

    # -------------------------------------------------------------------------
    # Registration
    # -------------------------------------------------------------------------

    def register(self, mapping: TypeMapping) -> None:
        """Register a direct mapping (builtin, string type, value type)."""
        self._types[mapping.native] = mapping

    def register_enum(self, native: str, managed: str) -> None:
        self._enums[native] = managed

    def register_class(self, info: ClassInfo) -> None:
        self._classes[info.native] = info

    def register_template(self, rule: TemplateRule) -> None:
        for name in rule.templates:
            self._templates[name] = rule

    def rename(self, native: str, managed: str) -> None:
        """Change the managed name of a registered class or enum."""
        if native in self._classes:
            info = self._classes[native]
            self._classes[native] = ClassInfo(info.native, managed, info.refcounted)
        if native in self._enums:
            self._enums[native] = managed

    def unregister(self, native: str) -> bool:
        """Forget a class or enum; returns whether it was registered."""
        found = native in self._classes or native in self._enums
        self._classes.pop(native, None)
        self._enums.pop(native, None)
        return found

    def get_class(self, native: str) -> Optional[ClassInfo]:
        return self._classes.get(native)

    def is_class(self, native: str) -> bool:
        return native in self._classes

    def is_value_type(self, native: str) -> bool:
        return native in self._types

    # -------------------------------------------------------------------------
    # Resolution
    # -------------------------------------------------------------------------

    def lookup(self, shape: TypeShape) -> Optional[TypeMapping]:
        """Resolve a shape to its mapping, or None when it cannot be mapped."""
        shape = strip_const(shape)

        if isinstance(shape, BuiltinType):
            return self._types.get(shape.name)

        if isinstance(shape, EnumType):
            managed = self._enums.get(shape.name)
            if managed is None:
                return None
            return TypeMapping(shape.name, shape.name, managed, managed)

        if isinstance(shape, ClassType):
            if shape.name in self._types:
                return self._types[shape.name]
            info = self._classes.get(shape.name)
            if info is None:
                return None
            # Returned by value: the shim hands out a heap copy owned by the wrapper
            return self._class_mapping(
                info,
                to_shim=f"new {info.native}({{value}})",
                from_shim="*{value}",
                owns=True,
            )

        if isinstance(shape, TemplateType):
            rule = self._templates.get(shape.template)
            if rule is None:
                return None
            return rule.resolve(shape, self)

        if isinstance(shape, PointerType):
            return self._lookup_pointer(shape)

        if isinstance(shape, ReferenceType):
            return self._lookup_reference(shape)

        if isinstance(shape, UnknownType):
            return None

        raise unhandled_shape(shape)

    def _lookup_pointer(self, shape: PointerType) -> Optional[TypeMapping]:
        pointee = shape.pointee
        native = spelling(strip_const(shape))

        if isinstance(pointee, BuiltinType):
            if pointee.name == "char" and pointee.const:
                return TypeMapping(
                    native, "const char*", "string", "string",
                    to_shim="csbind::CopyString({value})",
                    borrow="{value}",
                    marshal_as=STRING_MARSHAL,
                )
            if pointee.name == "void":
                return TypeMapping(native, native, "IntPtr", "IntPtr")
            return None

        if isinstance(pointee, ClassType):
            info = self._classes.get(pointee.name)
            if info is None or pointee.name in self._types:
                return None
            return self._class_mapping(info, shim=native, owns=False)

        return None

    def _lookup_reference(self, shape: ReferenceType) -> Optional[TypeMapping]:
        if shape.rvalue:
            return None
        referee = shape.referee

        if isinstance(referee, ClassType) and referee.name in self._classes:
            info = self._classes[referee.name]
            return self._class_mapping(
                info,
                shim=f"{spelling(referee)}*",
                to_shim="&{value}",
                from_shim="*{value}",
                owns=False,
            )

        # Only const references to values can be passed as plain values
        if not referee.const:
            return None
        inner = self.lookup(referee)
        if inner is None:
            return None
        return inner

    def _class_mapping(
        self,
        info: ClassInfo,
        shim: Optional[str] = None,
        to_shim: str = "{value}",
        from_shim: str = "{value}",
        owns: bool = False,
    ) -> TypeMapping:
        owns_literal = "true" if owns else "false"
        return TypeMapping(
            native=info.native,
            shim=shim or f"{info.native}*",
            pinvoke="IntPtr",
            managed=info.managed,
            to_shim=to_shim,
            from_shim=from_shim,
            to_managed=f"{info.managed}.GetManagedInstance({{value}}, {owns_literal})",
            from_managed=f"{info.managed}.GetNativeInstance({{value}})",
        )

    def is_mappable(self, shape: TypeShape) -> bool:
        return self.lookup(shape) is not None

    def map_type(self, shape: TypeShape, direction: TypeDirection) -> str:
        """
        Map a native type to the type string of one layer.

        Returns:
            Type string, or ``UNKNOWN_TYPE`` for unmappable shapes
        """
        mapping = self.lookup(shape)
        if mapping is None:
            return UNKNOWN_TYPE
        return mapping.type_for(direction)

    def map_expression(self, shape: TypeShape, expression: str, direction: ExprDirection) -> str:
        """
        Wrap ``expression`` in the conversion for one boundary.

        Raises:
            MappingError: if the shape cannot be mapped
        """
        mapping = self.lookup(shape)
        if mapping is None:
            raise MappingError(spelling(shape))
        return mapping.expression(direction, expression)


def opaque_mapping(shape: TypeShape) -> TypeMapping:
    """
    Opaque handle substitute for a pointer or reference to an unbound class.

    The shim side converts through ``csbind::OpaqueCast``/``OpaqueRef`` whose
    templated conversion operators let the callee's parameter type drive the
    cast, so the unbound class is never named in generated code.
    """
    if isinstance(shape, ReferenceType):
        return TypeMapping(
            "opaque", "void*", "IntPtr", "IntPtr",
            to_shim="(void*)&{value}",
            from_shim="csbind::OpaqueRef({value})",
        )
    return TypeMapping(
        "opaque", "void*", "IntPtr", "IntPtr",
        to_shim="(void*){value}",
        from_shim="csbind::OpaqueCast({value})",
    )


def builtin_mappings() -> list[TypeMapping]:
    """Mappings for all fundamental types."""
    mappings = []
    for native, (pinvoke, managed) in BUILTIN_TYPES.items():
        mappings.append(TypeMapping(
            native, native, pinvoke, managed,
            marshal_as=BOOL_MARSHAL if native == "bool" else None,
        ))
    return mappings


def string_mapping(native: str, accessor: str) -> TypeMapping:
    """Mapping for a string class exposing a C string through ``accessor``."""
    return TypeMapping(
        native, "const char*", "string", "string",
        to_shim=f"csbind::CopyString({{value}}.{accessor})",
        borrow=f"{{value}}.{accessor}",
        from_shim=f"{native}({{value}})",
        marshal_as=STRING_MARSHAL,
    )


def value_type_mapping(native: str, managed: str) -> TypeMapping:
    """Mapping for a blittable struct passed by value on every layer."""
    return TypeMapping(native, native, managed, managed)
