"""
Detection of signatures that cannot be mapped.
"""

from __future__ import annotations

from ..context import GeneratorContext
from ..meta import EntityKind, MetaEntity
from ..types.shapes import (
    ClassType,
    PointerType,
    ReferenceType,
    TypeShape,
    is_void,
    spelling,
    strip_const,
)
from .base import CppApiPass, VisitStage
from .utils import parameters


class UnknownTypesPass(CppApiPass):
    """
    Flag entities whose signature mentions an unmappable type.

    A pointer or reference to a class without a mapping (an excluded stub or
    a class outside the source root) is substituted with an opaque handle
    when enabled. Any other unmappable type excludes the smallest enclosing
    signature: the function, the field or the variable.
    """

    def visit(self, ctx: GeneratorContext, entity: MetaEntity, stage: VisitStage) -> bool:
        if stage != VisitStage.ENTER:
            return True
        return not self.check(ctx, entity)

    def check(self, ctx: GeneratorContext, entity: MetaEntity) -> bool:
        """
        Check the signature of one entity.

        Returns:
            True if ``entity`` has a signature, so its children need no visit
        """
        if entity.kind in (EntityKind.CONSTRUCTOR, EntityKind.METHOD, EntityKind.FUNCTION):
            self._check_function(ctx, entity)
            return True
        if entity.kind in (EntityKind.FIELD, EntityKind.VARIABLE):
            if entity.type is not None and not self._check(ctx, entity.type, entity, "opaque"):
                self._exclude(ctx, entity, entity.type)
            return True
        return False

    def _check_function(self, ctx: GeneratorContext, function: MetaEntity) -> None:
        if function.kind != EntityKind.CONSTRUCTOR:
            result = function.result_type
            if not is_void(result) and not self._check(ctx, result, function, "opaque_result"):
                self._exclude(ctx, function, result)
                return

        for param in parameters(ctx.ast, function):
            if param.type is None or not self._check(ctx, param.type, param, "opaque"):
                self._exclude(ctx, function, param.type)
                return

    def _check(
        self,
        ctx: GeneratorContext,
        shape: TypeShape,
        target: MetaEntity,
        opaque_flag: str,
    ) -> bool:
        if target.annotations.get(opaque_flag):
            return True
        if ctx.types.is_mappable(shape):
            return True
        if ctx.config.generation.opaque_handles and self._is_class_indirection(ctx, shape):
            target.annotations[opaque_flag] = True
            ctx.warn(f"type '{spelling(shape)}' mapped to an opaque handle", target)
            return True
        return False

    @staticmethod
    def _is_class_indirection(ctx: GeneratorContext, shape: TypeShape) -> bool:
        if isinstance(shape, PointerType):
            inner = shape.pointee
        elif isinstance(shape, ReferenceType) and not shape.rvalue:
            inner = shape.referee
        else:
            return False
        inner = strip_const(inner)
        return isinstance(inner, ClassType) and not ctx.types.is_value_type(inner.name)

    @staticmethod
    def _exclude(ctx: GeneratorContext, entity: MetaEntity, shape) -> None:
        type_name = spelling(shape) if shape is not None else "?"
        entity.exclude("unknown type")
        ctx.warn(f"unknown type '{type_name}', entity excluded", entity)
