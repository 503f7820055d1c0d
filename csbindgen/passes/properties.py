"""
Conversion of accessor methods and fields into properties.
"""

from __future__ import annotations

import logging
import re
from typing import Optional

from ..context import GeneratorContext
from ..meta import CLASS_KINDS, EntityKind, MetaEntity
from ..naming import strip_member_prefix
from ..types.shapes import ReferenceType, TypeShape, is_void, strip_const
from .base import CppApiPass, VisitStage
from .utils import parameters


logger = logging.getLogger("csbindgen.passes.properties")

_GETTER = re.compile(r"^(?:Get|Is)([A-Z]\w*)$")
_SETTER = re.compile(r"^Set([A-Z]\w*)$")


def _value_shape(shape: TypeShape) -> TypeShape:
    """``const T&`` and ``T`` carry the same property value."""
    if isinstance(shape, ReferenceType) and not shape.rvalue:
        shape = shape.referee
    return strip_const(shape)


def _property_name(method: MetaEntity, pattern) -> Optional[str]:
    match = pattern.match(method.name)
    return match.group(1) if match else None


class ConvertToPropertiesPass(CppApiPass):
    """
    Merge accessor pairs and public fields into PROPERTY entities.

    ``GetX()``/``IsX()`` paired with ``SetX(T)`` on the same class, where T
    matches the getter result, become one read-write property; a getter
    without a matching setter becomes a read-only property. Accessors keep
    their place in the shim and the import layer and are annotated with the
    property key so the managed surface hides them. Public fields become
    properties backed by generated field accessors. A property whose name
    would clash with another member is not created.
    """

    def __init__(self):
        self._pending: list[tuple[MetaEntity, MetaEntity]] = []

    def start(self, ctx: GeneratorContext) -> None:
        self._pending = []

    def visit(self, ctx: GeneratorContext, entity: MetaEntity, stage: VisitStage) -> bool:
        if stage != VisitStage.ENTER:
            return True
        if entity.kind in CLASS_KINDS:
            self._convert_class(ctx, entity)
            return True
        return entity.kind == EntityKind.NAMESPACE

    def stop(self, ctx: GeneratorContext) -> None:
        for cls, prop in self._pending:
            ctx.ast.add(prop, cls)
        logger.debug(f"Created {len(self._pending)} properties")
        self._pending = []

    # -------------------------------------------------------------------------
    # Matching
    # -------------------------------------------------------------------------

    def _convert_class(self, ctx: GeneratorContext, cls: MetaEntity) -> None:
        children = [c for c in ctx.ast.children_of(cls) if c.included]
        taken = {c.cs_name for c in children}
        taken.add(cls.cs_name)

        methods = [c for c in children if c.kind in (EntityKind.METHOD, EntityKind.FUNCTION)]
        used: set[str] = set()

        for getter in methods:
            name = _property_name(getter, _GETTER)
            if name is None or getter.unique_name in used or not self._is_getter(ctx, getter):
                continue
            if name in taken or f"{cls.unique_name}::{name}" in ctx.ast:
                ctx.warn(f"property '{name}' clashes with an existing member", getter)
                continue

            setter = self._find_setter(ctx, methods, getter, name, used)
            prop = self._make_property(cls, name, getter.result_type, getter.is_static)
            prop.annotations["getter"] = getter.unique_name
            getter.annotations["property"] = prop.unique_name
            used.add(getter.unique_name)
            if setter is not None:
                prop.annotations["setter"] = setter.unique_name
                setter.annotations["property"] = prop.unique_name
                used.add(setter.unique_name)
            taken.add(name)
            self._pending.append((cls, prop))

        for field in (c for c in children if c.kind in (EntityKind.FIELD, EntityKind.VARIABLE)):
            if field.annotations.get("opaque"):
                continue
            name = strip_member_prefix(field.name)
            if name in taken or f"{cls.unique_name}::{name}" in ctx.ast:
                ctx.warn(f"property '{name}' clashes with an existing member", field)
                continue
            static = field.kind == EntityKind.VARIABLE or field.is_static
            prop = self._make_property(cls, name, field.type, static)
            prop.annotations["field"] = field.unique_name
            if field.type is not None and field.type.const:
                prop.annotations["readonly"] = True
            field.annotations["property"] = prop.unique_name
            taken.add(name)
            self._pending.append((cls, prop))

    @staticmethod
    def _is_getter(ctx: GeneratorContext, method: MetaEntity) -> bool:
        if method.annotations.get("opaque_result"):
            return False
        return not parameters(ctx.ast, method) and not is_void(method.result_type)

    @staticmethod
    def _find_setter(
        ctx: GeneratorContext,
        methods: list[MetaEntity],
        getter: MetaEntity,
        name: str,
        used: set[str],
    ) -> Optional[MetaEntity]:
        value = _value_shape(getter.result_type)
        for setter in methods:
            if setter.unique_name in used or _property_name(setter, _SETTER) != name:
                continue
            if setter.is_static != getter.is_static or not is_void(setter.result_type):
                continue
            params = parameters(ctx.ast, setter)
            if len(params) != 1 or params[0].type is None or params[0].annotations.get("opaque"):
                continue
            if _value_shape(params[0].type) == value:
                return setter
        return None

    @staticmethod
    def _make_property(
        cls: MetaEntity,
        name: str,
        shape: Optional[TypeShape],
        static: bool,
    ) -> MetaEntity:
        return MetaEntity(
            f"{cls.unique_name}::{name}",
            name,
            EntityKind.PROPERTY,
            annotations={"type": shape, "static": static},
        )
