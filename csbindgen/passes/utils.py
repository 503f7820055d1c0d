"""
Queries over class hierarchies in the meta-AST.
"""

from __future__ import annotations

from typing import Iterator, Optional

from ..meta import CLASS_KINDS, EntityKind, MetaAST, MetaEntity


def base_classes(ast: MetaAST, cls: MetaEntity) -> list[MetaEntity]:
    """Direct base classes known to the meta-AST, in declaration order."""
    if cls.source is None:
        return []
    bases = []
    for name in cls.source.bases:
        base = ast.get(name)
        if base is not None and base.kind in CLASS_KINDS:
            bases.append(base)
    return bases


def ancestors(ast: MetaAST, cls: MetaEntity) -> Iterator[MetaEntity]:
    """All base classes, depth first, each once."""
    seen = set()
    stack = list(reversed(base_classes(ast, cls)))
    while stack:
        base = stack.pop()
        if base.unique_name in seen:
            continue
        seen.add(base.unique_name)
        yield base
        stack.extend(reversed(base_classes(ast, base)))


def declares_method(ast: MetaAST, cls: MetaEntity, name: str) -> bool:
    return any(
        child.kind == EntityKind.METHOD and child.name == name
        for child in ast.children_of(cls)
    )


def primary_base(ast: MetaAST, cls: MetaEntity) -> Optional[MetaEntity]:
    """First included base class; the managed class derives from it."""
    for base in base_classes(ast, cls):
        if base.included:
            return base
    return None


def members(ast: MetaAST, cls: MetaEntity, kinds: tuple[EntityKind, ...]) -> list[MetaEntity]:
    """Included children of ``cls`` of the given kinds."""
    return [c for c in ast.children_of(cls) if c.kind in kinds and c.included]


def parameters(ast: MetaAST, function: MetaEntity) -> list[MetaEntity]:
    return [c for c in ast.children_of(function) if c.kind == EntityKind.PARAMETER]


def managed_path(ast: MetaAST, entity: MetaEntity) -> str:
    """Dotted managed name: enclosing classes, then the entity itself."""
    names = [entity.cs_name]
    parent = ast.parent_of(entity)
    while parent is not None and parent.kind in CLASS_KINDS:
        names.append(parent.cs_name)
        parent = ast.parent_of(parent)
    return ".".join(reversed(names))
