"""
Relocation of namespace-level functions and variables.
"""

from __future__ import annotations

import logging

from ..context import GeneratorContext
from ..meta import EntityKind, MetaEntity
from ..naming import sanitize
from .base import CppApiPass, VisitStage


logger = logging.getLogger("csbindgen.passes.move_globals")

_GLOBAL_KINDS = (EntityKind.FUNCTION, EntityKind.VARIABLE)


class MoveGlobalsPass(CppApiPass):
    """
    Move free functions and namespace variables into a static class.

    The managed language has no free functions, so each namespace that owns
    included globals gets one synthetic static class (``Globals`` unless
    configured otherwise). Moves happen in ``stop``; unique names never
    change, so the shim still calls the original qualified symbol.
    """

    def __init__(self):
        self._pending: dict[str, list[MetaEntity]] = {}

    def start(self, ctx: GeneratorContext) -> None:
        self._pending = {}

    def visit(self, ctx: GeneratorContext, entity: MetaEntity, stage: VisitStage) -> bool:
        if stage != VisitStage.ENTER:
            return True
        if entity.kind in _GLOBAL_KINDS:
            parent = ctx.ast.parent_of(entity)
            if parent is not None and parent.kind in (EntityKind.NAMESPACE, EntityKind.ROOT):
                self._pending.setdefault(parent.unique_name, []).append(entity)
            return False
        # Globals only live directly in namespaces
        return entity.kind in (EntityKind.NAMESPACE, EntityKind.ROOT)

    def stop(self, ctx: GeneratorContext) -> None:
        class_name = ctx.config.generation.globals_class
        moved = 0
        for scope_key, entities in self._pending.items():
            scope = ctx.ast.root if scope_key == ctx.ast.root.unique_name else ctx.ast[scope_key]
            container = self._create_container(ctx, scope, class_name)
            # All containers share one managed namespace
            if len(self._pending) > 1 and scope_key:
                container.annotations["cs_name"] = f"{sanitize(scope_key)}_{container.name}"
            for entity in entities:
                entity.annotations["static"] = True
                ctx.ast.move(entity, container)
                moved += 1
        self._pending = {}
        logger.debug(f"Moved {moved} globals")

    @staticmethod
    def _create_container(ctx: GeneratorContext, scope: MetaEntity, class_name: str) -> MetaEntity:
        name = class_name
        key = f"{scope.unique_name}::{name}" if scope.unique_name else name
        # Never collide with a declared class of the same name
        while key in ctx.ast:
            name = f"{name}_"
            key = f"{scope.unique_name}::{name}" if scope.unique_name else name
        container = MetaEntity(
            key,
            name,
            EntityKind.CLASS,
            annotations={"static_class": True},
        )
        return ctx.ast.add(container, scope)
