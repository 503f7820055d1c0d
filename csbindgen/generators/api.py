"""
Language-neutral description of the generated C API.

All three emitters render the same ``ClassApi``: the native emitter as
``extern "C"`` definitions, the import emitter as ``[DllImport]``
declarations and the managed emitter as calls into those declarations.
Deriving the function list once keeps names, arity and types identical
across the layers.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from enum import Enum
from typing import Optional

from ..context import GeneratorContext
from ..errors import MappingError
from ..meta import CLASS_KINDS, EntityKind, MetaEntity
from ..naming import ensure_not_keyword, mangle, sanitize
from ..passes.utils import parameters, primary_base
from ..types.registry import TypeMapping, opaque_mapping
from ..types.shapes import (
    ClassType,
    ReferenceType,
    TypeShape,
    base_type,
    is_void,
    spelling,
    strip_const,
)


class FunctionRole(Enum):
    CONSTRUCTOR = "constructor"
    DESTRUCTOR = "destructor"
    METHOD = "method"
    BASE_CALL = "base_call"
    FIELD_GET = "field_get"
    FIELD_SET = "field_set"
    CALLBACK_SETTER = "callback_setter"


@dataclass(frozen=True)
class ShimParam:
    """One parameter of a C API function, after the instance pointer."""
    name: str
    mapping: TypeMapping
    shape: Optional[TypeShape] = None
    default: Optional[str] = None


@dataclass(frozen=True)
class Callback:
    """A virtual method the native wrapper forwards to managed code."""
    method: MetaEntity
    typedef: str
    member: str
    params: tuple[ShimParam, ...]
    result: Optional[TypeMapping]


@dataclass(frozen=True)
class ShimFunction:
    """One ``extern "C"`` function."""
    name: str
    role: FunctionRole
    params: tuple[ShimParam, ...] = ()
    result: Optional[TypeMapping] = None
    result_shape: Optional[TypeShape] = None
    instance: bool = True
    entity: Optional[MetaEntity] = None
    callback: Optional[Callback] = None


@dataclass
class ClassApi:
    """C API of one bound class or globals container."""
    entity: MetaEntity
    native: str
    prefix: str
    managed: str
    static: bool = False
    refcounted: bool = False
    wrapper: Optional[str] = None
    base: Optional[MetaEntity] = None
    functions: list[ShimFunction] = field(default_factory=list)
    callbacks: list[Callback] = field(default_factory=list)
    protected_names: list[str] = field(default_factory=list)

    def function_for(self, key: str, role: FunctionRole = FunctionRole.METHOD) -> Optional[ShimFunction]:
        for function in self.functions:
            if function.entity is not None and function.entity.unique_name == key and function.role == role:
                return function
        return None

    def callback_setter(self, callback: Callback) -> Optional[ShimFunction]:
        for function in self.functions:
            if function.role == FunctionRole.CALLBACK_SETTER and function.callback is callback:
                return function
        return None

    @property
    def destructor(self) -> Optional[ShimFunction]:
        for function in self.functions:
            if function.role == FunctionRole.DESTRUCTOR:
                return function
        return None


# =============================================================================
# Selection
# =============================================================================

def is_emitted_class(ctx: GeneratorContext, entity: MetaEntity) -> bool:
    """Included classes that get generated code: bound classes and globals."""
    if entity.kind not in CLASS_KINDS or not ctx.ast.is_included_chain(entity):
        return False
    if entity.annotations.get("static_class"):
        return True
    return ctx.types.is_class(entity.unique_name)


def has_instance(function: MetaEntity) -> bool:
    return function.kind in (EntityKind.METHOD, EntityKind.FIELD) and not function.is_static


# =============================================================================
# Construction
# =============================================================================

_QUALIFIER = re.compile(r"\w+::")


def _type_token(shape: Optional[TypeShape]) -> str:
    if shape is None:
        return "unknown"
    text = _QUALIFIER.sub("", spelling(strip_const(base_type(shape))))
    return sanitize(text)


def _overload_suffix(ctx: GeneratorContext, function: MetaEntity) -> str:
    params = parameters(ctx.ast, function)
    suffix = "_".join(_type_token(p.type) for p in params) or "void"
    if function.is_const:
        suffix += "_const"
    return suffix


def param_name(param: MetaEntity, index: int) -> str:
    name = ensure_not_keyword(sanitize(param.name)) if param.name else f"arg{index}"
    if name in ("instance", "value", "fn"):
        name = f"{name}_"
    return name


def mapping_for(ctx: GeneratorContext, shape: TypeShape, opaque: bool = False) -> TypeMapping:
    """
    Mapping used by every layer for ``shape``.

    Raises:
        MappingError: if the shape is unmappable and not an opaque handle
    """
    if opaque:
        return opaque_mapping(shape)
    mapping = ctx.types.lookup(shape)
    if mapping is None:
        raise MappingError(spelling(shape))
    return mapping


def _params(ctx: GeneratorContext, function: MetaEntity) -> tuple[ShimParam, ...]:
    result = []
    for index, param in enumerate(parameters(ctx.ast, function)):
        mapping = mapping_for(ctx, param.type, bool(param.annotations.get("opaque")))
        default = param.source.default_value if param.source is not None else None
        result.append(ShimParam(param_name(param, index), mapping, param.type, default))
    return tuple(result)


def _result(ctx: GeneratorContext, function: MetaEntity) -> Optional[TypeMapping]:
    if function.kind == EntityKind.CONSTRUCTOR or is_void(function.result_type):
        return None
    return mapping_for(ctx, function.result_type, bool(function.annotations.get("opaque_result")))


def _can_forward(ctx: GeneratorContext, method: MetaEntity) -> bool:
    """Whether a wrapper override can forward the call to managed code."""
    # The override would have to name the unbound class
    if method.annotations.get("opaque_result") or any(
        p.annotations.get("opaque") for p in parameters(ctx.ast, method)
    ):
        return False
    result = method.result_type
    if isinstance(result, ReferenceType):
        referee = strip_const(result.referee)
        return isinstance(referee, ClassType) and ctx.types.is_class(referee.name)
    return True


def build_class_api(ctx: GeneratorContext, cls: MetaEntity) -> ClassApi:
    """Derive the full C API of ``cls`` from the final meta-AST."""
    static = bool(cls.annotations.get("static_class"))
    info = ctx.types.get_class(cls.unique_name)
    prefix = mangle(cls.unique_name)
    api = ClassApi(
        entity=cls,
        native=cls.symbol_name,
        prefix=prefix,
        managed=info.managed if info is not None else cls.cs_name,
        static=static,
        refcounted=bool(info and info.refcounted),
        wrapper=cls.annotations.get("wrapper_class"),
        base=None if static else primary_base(ctx.ast, cls),
    )

    # (candidate name, ShimFunction without final name)
    pending: list[tuple[str, MetaEntity, ShimFunction]] = []
    children = [c for c in ctx.ast.children_of(cls) if c.included]

    if not static:
        constructors = [c for c in children if c.kind == EntityKind.CONSTRUCTOR]
        declared = any(c.kind == EntityKind.CONSTRUCTOR for c in ctx.ast.children_of(cls))
        abstract = cls.source is not None and cls.source.is_abstract
        if not abstract:
            for ctor in constructors:
                pending.append((f"{prefix}_{mangle(cls.name)}", ctor, ShimFunction(
                    "", FunctionRole.CONSTRUCTOR, _params(ctx, ctor), instance=False, entity=ctor,
                )))
            if not declared:
                api.functions.append(ShimFunction(
                    f"{prefix}_{mangle(cls.name)}", FunctionRole.CONSTRUCTOR, instance=False,
                ))
        api.functions.append(ShimFunction(f"{prefix}_destructor", FunctionRole.DESTRUCTOR))

    for member in children:
        if member.kind in (EntityKind.METHOD, EntityKind.FUNCTION):
            function = ShimFunction(
                "",
                FunctionRole.METHOD,
                _params(ctx, member),
                _result(ctx, member),
                member.result_type,
                instance=has_instance(member),
                entity=member,
            )
            pending.append((f"{prefix}_{mangle(member.name)}", member, function))
        elif member.kind in (EntityKind.FIELD, EntityKind.VARIABLE):
            shape = member.type
            mapping = mapping_for(ctx, shape, bool(member.annotations.get("opaque")))
            instance = has_instance(member)
            pending.append((f"{prefix}_get_{mangle(member.name)}", member, ShimFunction(
                "", FunctionRole.FIELD_GET, (), mapping, shape, instance=instance, entity=member,
            )))
            if _is_assignable(shape):
                pending.append((f"{prefix}_set_{mangle(member.name)}", member, ShimFunction(
                    "", FunctionRole.FIELD_SET, (ShimParam("value", mapping, shape),),
                    instance=instance, entity=member,
                )))

    # Destructor and implicit constructor names are taken first
    names = _unique_names(ctx, pending, {f.name for f in api.functions})
    for (_, _, function), name in zip(pending, names):
        api.functions.append(_renamed(function, name))

    if api.wrapper:
        api.protected_names = sorted({
            c.name for c in children if c.annotations.get("via_wrapper")
        })
        _add_callbacks(ctx, api)
    return api


def _is_assignable(shape: Optional[TypeShape]) -> bool:
    return shape is not None and not shape.const and not isinstance(shape, ReferenceType)


def _unique_names(ctx: GeneratorContext, pending, reserved: set[str]) -> list[str]:
    counts: dict[str, int] = {}
    for candidate, _, _ in pending:
        counts[candidate] = counts.get(candidate, 0) + 1

    names = []
    seen = set(reserved)
    for candidate, entity, _ in pending:
        name = candidate
        if counts[candidate] > 1 and entity.kind in (
            EntityKind.CONSTRUCTOR, EntityKind.METHOD, EntityKind.FUNCTION
        ):
            name = f"{candidate}_{_overload_suffix(ctx, entity)}"
        name = _free_name(name, seen)
        seen.add(name)
        names.append(name)
    return names


def _free_name(name: str, taken: set[str]) -> str:
    """``name`` or, if taken, ``name`` with the first free numeric suffix."""
    candidate = name
    index = 1
    while candidate in taken:
        candidate = f"{name}{index}"
        index += 1
    return candidate


def _renamed(function: ShimFunction, name: str) -> ShimFunction:
    return ShimFunction(
        name,
        function.role,
        function.params,
        function.result,
        function.result_shape,
        function.instance,
        function.entity,
        function.callback,
    )


def _add_callbacks(ctx: GeneratorContext, api: ClassApi) -> None:
    methods = [
        f for f in list(api.functions)
        if f.role == FunctionRole.METHOD and f.entity is not None
        and f.entity.annotations.get("overridable")
        and "inherited_from" not in f.entity.annotations
        and "property" not in f.entity.annotations
    ]
    taken = {f.name for f in api.functions}
    for function in methods:
        if not _can_forward(ctx, function.entity):
            continue
        setter_name = _free_name(f"{function.name}_set_callback", taken)
        base_name = _free_name(f"{function.name}_base", taken)
        taken.update((setter_name, base_name))
        callback = Callback(
            method=function.entity,
            typedef=f"{function.name}_fn",
            member=f"fn_{function.name}",
            params=function.params,
            result=function.result,
        )
        api.callbacks.append(callback)
        fn_mapping = TypeMapping(callback.typedef, callback.typedef, callback.typedef, callback.typedef)
        api.functions.append(ShimFunction(
            setter_name,
            FunctionRole.CALLBACK_SETTER,
            (ShimParam("fn", fn_mapping),),
            callback=callback,
        ))
        api.functions.append(ShimFunction(
            base_name,
            FunctionRole.BASE_CALL,
            function.params,
            function.result,
            function.result_shape,
            entity=function.entity,
            callback=callback,
        ))

