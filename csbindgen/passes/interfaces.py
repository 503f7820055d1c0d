"""
Synthesis of managed interfaces.
"""

from __future__ import annotations

import logging
from typing import Optional

from ..context import GeneratorContext
from ..meta import CLASS_KINDS, EntityKind, MetaEntity, function_unique_name
from .base import CppApiPass, VisitStage
from .utils import ancestors, base_classes, members, parameters, primary_base


logger = logging.getLogger("csbindgen.passes.interfaces")


class ImplementInterfacesPass(CppApiPass):
    """
    Give classes the interfaces the managed side needs.

    The managed language has single inheritance. The first included base
    stays the managed base class; every further included base ``B`` becomes
    an interface ``IB`` implemented by both ``B`` and the derived class, and
    the public methods and properties of ``B`` are copied into the derived
    class so the shim can adjust the object pointer.

    Capability interfaces from the ``interfaces`` rule category are added to
    every class exposing all of the listed member names.
    """

    def __init__(self):
        self._secondary: list[tuple[MetaEntity, MetaEntity]] = []
        self._classes: list[MetaEntity] = []

    def start(self, ctx: GeneratorContext) -> None:
        self._secondary = []
        self._classes = []

    def visit(self, ctx: GeneratorContext, entity: MetaEntity, stage: VisitStage) -> bool:
        if stage != VisitStage.ENTER:
            return True
        if entity.kind not in CLASS_KINDS:
            return entity.kind == EntityKind.NAMESPACE
        if entity.annotations.get("static_class"):
            return False

        self._classes.append(entity)
        primary = primary_base(ctx.ast, entity)
        for base in base_classes(ctx.ast, entity):
            if base.included and base is not primary:
                self._secondary.append((entity, base))
        return True

    def stop(self, ctx: GeneratorContext) -> None:
        interfaces: dict[str, MetaEntity] = {}
        for derived, base in self._secondary:
            interface = interfaces.get(base.unique_name)
            if interface is None:
                interface = self._create_base_interface(ctx, base)
                interfaces[base.unique_name] = interface
                _add_interface(base, interface)
            if self._copy_members(ctx, derived, base, interface):
                _add_interface(derived, interface)
            else:
                ctx.warn(
                    f"'{derived.unique_name}' cannot implement '{interface.cs_name}': "
                    f"a member name clashes with a property of '{base.unique_name}'"
                )

        for name, required in ctx.rules.interfaces.items():
            self._apply_capability(ctx, name, required)

        logger.debug(f"Synthesized {len(interfaces)} base interfaces")
        self._secondary = []
        self._classes = []

    # -------------------------------------------------------------------------
    # Secondary bases
    # -------------------------------------------------------------------------

    @staticmethod
    def _create_base_interface(ctx: GeneratorContext, base: MetaEntity) -> MetaEntity:
        parent = ctx.ast.parent_of(base) or ctx.ast.root
        name = f"I{base.cs_name}"
        key = f"{parent.unique_name}::{name}" if parent.unique_name else name
        # Never collide with a declared entity of the same name
        while key in ctx.ast:
            name = f"{name}_"
            key = f"{parent.unique_name}::{name}" if parent.unique_name else name
        interface = MetaEntity(key, name, EntityKind.INTERFACE, annotations={"interface_of": base.unique_name})
        return ctx.ast.add(interface, parent)

    @staticmethod
    def _copy_members(
        ctx: GeneratorContext,
        derived: MetaEntity,
        base: MetaEntity,
        interface: MetaEntity,
    ) -> bool:
        """Copy the public API of ``base`` into ``derived``; False if it cannot implement ``interface``."""
        copied: dict[str, str] = {}
        # Names used by members that are not properties
        taken = {
            c.cs_name for c in ctx.ast.children_of(derived)
            if c.included and c.kind != EntityKind.PROPERTY
        }
        complete = True

        for method in members(ctx.ast, base, (EntityKind.METHOD,)):
            if method.is_static or method.access != "public" or method.source is None:
                continue
            key = function_unique_name(derived.unique_name, method.source)
            if key in ctx.ast:
                # Overridden in the derived class
                copied[method.unique_name] = key
                continue
            copy = MetaEntity(
                key,
                method.name,
                EntityKind.METHOD,
                source=method.source,
                annotations=_copied_annotations(method, interface),
            )
            ctx.ast.add(copy, derived)
            for param in parameters(ctx.ast, method):
                ctx.ast.add(
                    MetaEntity(f"{key}::{param.name}", param.name, EntityKind.PARAMETER,
                               source=param.source, annotations=dict(param.annotations)),
                    copy,
                )
            copied[method.unique_name] = key

        for prop in members(ctx.ast, base, (EntityKind.PROPERTY,)):
            getter = copied.get(prop.annotations.get("getter"))
            if getter is None:
                continue
            if prop.name in taken:
                complete = False
                continue
            key = f"{derived.unique_name}::{prop.name}"
            if key in ctx.ast:
                continue
            annotations = dict(prop.annotations)
            annotations["getter"] = getter
            annotations["implements"] = interface.unique_name
            setter = copied.get(prop.annotations.get("setter"))
            if setter is None:
                annotations.pop("setter", None)
            else:
                annotations["setter"] = setter
                ctx.ast[setter].annotations["property"] = key
            ctx.ast[getter].annotations["property"] = key
            ctx.ast.add(MetaEntity(key, prop.name, EntityKind.PROPERTY, annotations=annotations), derived)
        return complete

    # -------------------------------------------------------------------------
    # Capability interfaces
    # -------------------------------------------------------------------------

    def _apply_capability(self, ctx: GeneratorContext, name: str, required: list[str]) -> None:
        implementers = [cls for cls in self._classes if cls.included and self._exposes(ctx, cls, required)]
        if not implementers:
            ctx.warn(f"interface '{name}' is not implemented by any class")
            return

        key = name
        if key in ctx.ast:
            ctx.error(f"interface '{name}' clashes with an existing entity")
            return
        interface = MetaEntity(
            key,
            name,
            EntityKind.INTERFACE,
            annotations={
                "capability": True,
                "members": list(required),
                "signature_from": implementers[0].unique_name,
            },
        )
        ctx.ast.add(interface)
        for cls in implementers:
            _add_interface(cls, interface)

    @staticmethod
    def _exposes(ctx: GeneratorContext, cls: MetaEntity, required: list[str]) -> bool:
        names = set()
        for owner in [cls] + list(ancestors(ctx.ast, cls)):
            for member in members(ctx.ast, owner, (EntityKind.METHOD, EntityKind.PROPERTY)):
                if "property" not in member.annotations:
                    names.add(member.cs_name)
        return all(name in names for name in required)


def _copied_annotations(method: MetaEntity, interface: MetaEntity) -> dict:
    annotations = {
        k: v for k, v in method.annotations.items()
        if k not in ("property", "overridable")
    }
    annotations["implements"] = interface.unique_name
    annotations["inherited_from"] = method.unique_name
    return annotations


def _add_interface(cls: MetaEntity, interface: MetaEntity) -> None:
    names: Optional[list[str]] = cls.annotations.get("interfaces")
    if names is None:
        names = cls.annotations["interfaces"] = []
    if interface.unique_name not in names:
        names.append(interface.unique_name)
