"""
Hand-built raw declarations for tests that do not need libclang.
"""

from dataclasses import replace
from pathlib import Path

from csbindgen.parser import Access, RawEntity, RawKind, SourceLocation, TranslationUnit
from csbindgen.types.shapes import (
    BuiltinType,
    ClassType,
    EnumType,
    PointerType,
    ReferenceType,
    TemplateType,
    VOID,
)


SOURCE_DIR = Path("/engine/Source")

INT = BuiltinType("int")
FLOAT = BuiltinType("float")
BOOL = BuiltinType("bool")
STRING = ClassType("Urho3D::String")
VECTOR3 = ClassType("Urho3D::Vector3")
SECRET = ClassType("Urho3D::Secret")


def const(shape):
    return replace(shape, const=True)


def const_ref(shape):
    return ReferenceType(const(shape))


def ref(shape):
    return ReferenceType(shape)


def ptr(shape):
    return PointerType(shape)


def shared_ptr(name):
    return TemplateType("Urho3D::SharedPtr", (ClassType(name),))


def vector_of(shape):
    return TemplateType("Urho3D::PODVector", (shape,))


def enum_type(name):
    return EnumType(name)


def location(file="Engine.h", line=1):
    return SourceLocation(SOURCE_DIR / file, line, 1)


def namespace(name, *children):
    return RawEntity(RawKind.NAMESPACE, name, children=list(children))


def klass(name, *children, bases=(), file="Engine.h", **flags):
    return RawEntity(
        RawKind.CLASS, name, location=location(file), children=list(children),
        bases=list(bases), **flags,
    )


def struct(name, *children, file="Engine.h", **flags):
    return RawEntity(RawKind.STRUCT, name, location=location(file), children=list(children), **flags)


def param(name, shape, default=None):
    return RawEntity(RawKind.PARAMETER, name, type=shape, default_value=default)


def ctor(name, *params, access=Access.PUBLIC):
    return RawEntity(RawKind.CONSTRUCTOR, name, location=location(), children=list(params), access=access)


def method(name, result=VOID, *params, access=Access.PUBLIC, **flags):
    return RawEntity(
        RawKind.METHOD, name, location=location(), children=list(params),
        result_type=result, access=access, **flags,
    )


def function(name, result=VOID, *params, file="Engine.h"):
    return RawEntity(RawKind.FUNCTION, name, location=location(file), children=list(params), result_type=result)


def field(name, shape, access=Access.PUBLIC, **flags):
    return RawEntity(RawKind.FIELD, name, location=location(), type=shape, access=access, **flags)


def variable(name, shape, file="Engine.h"):
    return RawEntity(RawKind.VARIABLE, name, location=location(file), type=shape)


def enum(name, *values, file="Engine.h"):
    children = [
        RawEntity(RawKind.ENUM_VALUE, value, location=location(file), enum_value=number)
        for value, number in values
    ]
    return RawEntity(RawKind.ENUM, name, location=location(file), children=children)


def unit(*entities, path="Engine.h"):
    return TranslationUnit(SOURCE_DIR / path, list(entities))
