"""
Seeding of the type registry.
"""

from __future__ import annotations

import logging

from ..context import GeneratorContext
from ..meta import CLASS_KINDS, EntityKind, MetaEntity
from ..naming import sanitize
from ..types.registry import (
    ClassInfo,
    builtin_mappings,
    string_mapping,
    value_type_mapping,
)
from ..types.templates import DynamicArrayRule, RefCountedPointerRule, WeakPointerRule
from .base import CppApiPass, VisitStage
from .utils import ancestors, declares_method, managed_path


logger = logging.getLogger("csbindgen.passes.type_maps")

DEFAULT_STRING_TYPES = {
    "std::string": "c_str()",
    "Urho3D::String": "CString()",
}


class TypeMapsPass(CppApiPass):
    """
    Register every mapping before anything queries the registry.

    Builtins, string classes, blittable value types and template rules are
    registered in ``start``; bound enums and classes in ``stop``, once their
    managed names are known to be unique.
    """

    def __init__(self):
        self._classes: list[MetaEntity] = []
        self._enums: list[MetaEntity] = []

    def start(self, ctx: GeneratorContext) -> None:
        rules = ctx.rules
        for mapping in builtin_mappings():
            ctx.types.register(mapping)

        string_types = dict(DEFAULT_STRING_TYPES)
        string_types.update(rules.string_types)
        for native, accessor in string_types.items():
            ctx.types.register(string_mapping(native, accessor))

        for native, managed in rules.value_types.items():
            ctx.types.register(value_type_mapping(native, managed))

        ctx.types.register_template(
            RefCountedPointerRule(tuple(rules.smart_pointers))
            if rules.smart_pointers is not None else RefCountedPointerRule()
        )
        ctx.types.register_template(
            WeakPointerRule(tuple(rules.weak_pointers))
            if rules.weak_pointers is not None else WeakPointerRule()
        )
        ctx.types.register_template(
            DynamicArrayRule(tuple(rules.arrays))
            if rules.arrays is not None else DynamicArrayRule()
        )
        self._classes = []
        self._enums = []

    def visit(self, ctx: GeneratorContext, entity: MetaEntity, stage: VisitStage) -> bool:
        if stage != VisitStage.ENTER:
            return True

        if entity.kind == EntityKind.ENUM:
            self._enums.append(entity)
        elif entity.kind in CLASS_KINDS:
            # Value and string types are marshalled by value, not wrapped
            if not ctx.types.is_value_type(entity.unique_name):
                self._classes.append(entity)
        return True

    def stop(self, ctx: GeneratorContext) -> None:
        self._disambiguate(ctx, self._enums + self._classes)
        for enum in self._enums:
            ctx.types.register_enum(enum.unique_name, managed_path(ctx.ast, enum))
        for cls in self._classes:
            refcounted = self._is_refcounted(ctx, cls)
            if refcounted:
                cls.annotations["refcounted"] = True
            ctx.types.register_class(ClassInfo(cls.unique_name, managed_path(ctx.ast, cls), refcounted))
        logger.debug(f"Registered {len(self._classes)} classes and {len(self._enums)} enums")

    @staticmethod
    def _disambiguate(ctx: GeneratorContext, types: list[MetaEntity]) -> None:
        """
        Prefix namespace-level types whose managed names collide.

        All managed code shares one namespace, so ``A::Node`` and ``B::Node``
        become ``A_Node`` and ``B_Node``. Nested types follow their outer
        class.
        """
        by_name: dict[str, list[MetaEntity]] = {}
        for entity in types:
            parent = ctx.ast.parent_of(entity)
            if parent is not None and parent.kind in (EntityKind.NAMESPACE, EntityKind.ROOT):
                by_name.setdefault(entity.cs_name, []).append(entity)

        for name, entities in by_name.items():
            if len(entities) < 2:
                continue
            for entity in entities:
                scope = ctx.ast.parent_of(entity)
                if scope.unique_name:
                    entity.annotations["cs_name"] = f"{sanitize(scope.unique_name)}_{entity.name}"
            logger.info(f"Managed name '{name}' is declared {len(entities)} times, prefixed by namespace")

    @staticmethod
    def _is_refcounted(ctx: GeneratorContext, cls: MetaEntity) -> bool:
        chain = [cls] + list(ancestors(ctx.ast, cls))
        if any(c.unique_name in ctx.rules.refcounted_bases for c in chain):
            return True
        has_add = any(declares_method(ctx.ast, c, "AddRef") for c in chain)
        has_release = any(declares_method(ctx.ast, c, "ReleaseRef") for c in chain)
        return has_add and has_release
