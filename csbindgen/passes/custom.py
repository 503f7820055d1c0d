"""
Project-specific adjustments applied between synthesis passes.
"""

from __future__ import annotations

import logging
from typing import Callable, Optional

from ..context import GeneratorContext
from ..meta import CLASS_KINDS, EntityKind, MetaEntity
from ..naming import ensure_not_keyword, sanitize
from .base import CppApiPass, VisitStage
from .unknown_types import UnknownTypesPass
from .utils import managed_path


logger = logging.getLogger("csbindgen.passes.custom")

Hook = Callable[[GeneratorContext, MetaEntity], None]

_RENAMEABLE = CLASS_KINDS + (
    EntityKind.ENUM,
    EntityKind.ENUM_VALUE,
    EntityKind.METHOD,
    EntityKind.FUNCTION,
    EntityKind.FIELD,
    EntityKind.VARIABLE,
)

_TYPE_KINDS = CLASS_KINDS + (EntityKind.ENUM,)


class CustomRulesPass(CppApiPass):
    """
    Extension point of the pipeline.

    Applies the ``renames`` and ``ignore_members`` rule categories, then
    every hook registered with ``add_hook`` to each included entity. Hooks
    may annotate or exclude entities; they must not restructure the tree.
    """

    def __init__(self, hooks: Optional[list[Hook]] = None):
        self._hooks: list[Hook] = list(hooks or [])
        self._renamed = 0

    def add_hook(self, hook: Hook) -> None:
        self._hooks.append(hook)

    def start(self, ctx: GeneratorContext) -> None:
        self._renamed = 0

    def visit(self, ctx: GeneratorContext, entity: MetaEntity, stage: VisitStage) -> bool:
        if stage != VisitStage.ENTER or entity.kind == EntityKind.PARAMETER:
            return True

        symbol = entity.symbol_name
        if entity.kind != EntityKind.NAMESPACE and ctx.rules.is_ignored_member(symbol):
            entity.exclude("ignored")
            return False

        if entity.kind in _RENAMEABLE:
            new_name = ctx.rules.rename_for(symbol)
            if new_name is not None:
                new_name = ensure_not_keyword(sanitize(new_name))
                entity.annotations["cs_name"] = new_name
                self._renamed += 1

        for hook in self._hooks:
            hook(ctx, entity)
        return entity.included

    def stop(self, ctx: GeneratorContext) -> None:
        dropped = self._unregister_excluded(ctx)
        if self._renamed:
            self._refresh_managed_paths(ctx)
            logger.info(f"Renamed {self._renamed} entities")
        if dropped:
            # Signatures naming a dropped type become opaque handles or are excluded
            checker = UnknownTypesPass()
            for entity in list(ctx.ast.walk()):
                if ctx.ast.is_included_chain(entity):
                    checker.check(ctx, entity)
            logger.info(f"Dropped {dropped} types excluded by custom rules")

    @staticmethod
    def _unregister_excluded(ctx: GeneratorContext) -> int:
        dropped = 0
        for entity in ctx.ast.walk():
            if entity.kind in _TYPE_KINDS and not ctx.ast.is_included_chain(entity):
                if ctx.types.unregister(entity.unique_name):
                    dropped += 1
        return dropped

    @staticmethod
    def _refresh_managed_paths(ctx: GeneratorContext) -> None:
        # Nested types carry the managed names of their enclosing classes
        for entity in ctx.ast.walk():
            if entity.kind in _TYPE_KINDS:
                ctx.types.rename(entity.unique_name, managed_path(ctx.ast, entity))
