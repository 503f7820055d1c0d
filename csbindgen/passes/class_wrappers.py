"""
Synthesis of native helper classes for managed subclassing.
"""

from __future__ import annotations

from ..context import GeneratorContext
from ..meta import CLASS_KINDS, EntityKind, MetaEntity
from ..naming import mangle
from .base import CppApiPass, VisitStage


class GenerateClassWrappersPass(CppApiPass):
    """
    Decide which classes get a native wrapper subclass.

    A wrapper derives from the bound class, re-exports its protected members
    and overrides its virtual methods with callbacks into managed code. Only
    concrete, non-final classes with virtual or protected members get one.
    Protected members of every other class are unreachable from the shim and
    are excluded.
    """

    def visit(self, ctx: GeneratorContext, entity: MetaEntity, stage: VisitStage) -> bool:
        if stage != VisitStage.ENTER or entity.kind not in CLASS_KINDS:
            return True

        children = [c for c in ctx.ast.children_of(entity) if c.included]
        for child in children:
            if child.kind == EntityKind.CONSTRUCTOR and child.access == "protected":
                child.exclude("protected constructor")

        virtuals = [
            c for c in children
            if c.kind == EntityKind.METHOD and c.is_virtual and not c.is_static and c.included
        ]
        protected = [
            c for c in children
            if c.access == "protected" and c.included and c.kind != EntityKind.CONSTRUCTOR
        ]

        raw = entity.source
        eligible = raw is not None and not raw.is_final and not raw.is_abstract
        if not eligible or not (virtuals or protected):
            for member in protected:
                member.exclude("protected member without wrapper")
            return True

        entity.annotations["wrapper_class"] = f"{mangle(entity.unique_name)}_Wrapper"
        for method in virtuals:
            method.annotations["overridable"] = True
        for member in protected:
            member.annotations["via_wrapper"] = True
        return True
