"""
Helpers shared by the two C# emitters.
"""

from __future__ import annotations

from contextlib import ExitStack
from typing import Optional

from ..context import GeneratorContext
from ..meta import CLASS_KINDS, MetaEntity
from ..types.registry import TypeMapping
from .base import Printer


def outer_classes(ctx: GeneratorContext, entity: MetaEntity) -> list[MetaEntity]:
    """Enclosing classes of ``entity``, outermost first."""
    result = []
    parent = ctx.ast.parent_of(entity)
    while parent is not None and parent.kind in CLASS_KINDS:
        result.append(parent)
        parent = ctx.ast.parent_of(parent)
    return list(reversed(result))


def open_outer_scopes(ctx: GeneratorContext, printer: Printer, entity: MetaEntity, stack: ExitStack) -> None:
    """Nested types are declared inside partial declarations of their outer classes."""
    for outer in outer_classes(ctx, entity):
        stack.enter_context(printer.block(f"public partial class {outer.cs_name}"))


def new_printer() -> Printer:
    """Printer positioned inside the file's namespace block."""
    printer = Printer()
    printer.indent()
    return printer


def marshal_attribute(mapping: Optional[TypeMapping], is_return: bool = False) -> str:
    if mapping is None or mapping.marshal_as is None:
        return ""
    if is_return:
        return mapping.marshal_as.replace("[", "[return: ", 1)
    return f"{mapping.marshal_as} "


def import_parameters(params, instance: bool) -> str:
    """Parameter list of a P/Invoke declaration or callback delegate."""
    result = ["IntPtr instance"] if instance else []
    result.extend(f"{marshal_attribute(p.mapping)}{p.mapping.pinvoke} {p.name}" for p in params)
    return ", ".join(result)
