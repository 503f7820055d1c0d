"""
Meta-AST construction from raw translation units.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Iterable, Optional

from .meta import EntityKind, MetaAST, MetaEntity, function_unique_name
from .parser.cpp_types import Access, RawEntity, RawKind, TranslationUnit
from .rules import IncludedChecker


logger = logging.getLogger("csbindgen.builder")


class MetaASTBuilder:
    """
    Merge raw translation units into one meta-AST.

    Runs on a single thread after all parses completed. Units and their
    declarations are visited in order, so the resulting child lists follow
    declaration order. Entities rejected by the symbol rules are recorded as
    excluded stubs so references to them can be detected later.
    """

    def __init__(
        self,
        source_dir: Optional[Path] = None,
        checker: Optional[IncludedChecker] = None,
    ):
        self.source_dir = source_dir.resolve() if source_dir is not None else None
        self.checker = checker or IncludedChecker()

    def build(self, units: Iterable[TranslationUnit]) -> MetaAST:
        ast = MetaAST()
        for unit in units:
            for raw in unit.entities:
                self._visit(ast, raw, ast.root, "", False)
        ast.build_index()
        logger.info(f"Meta-AST built with {len(ast)} entities")
        return ast

    def _in_source_root(self, raw: RawEntity) -> bool:
        if self.source_dir is None:
            return True
        if raw.location is None:
            return False
        path = Path(raw.location.file).resolve()
        return path == self.source_dir or self.source_dir in path.parents

    def _visit(
        self,
        ast: MetaAST,
        raw: RawEntity,
        parent: MetaEntity,
        scope: str,
        parent_excluded: bool,
    ) -> None:
        if raw.kind == RawKind.NAMESPACE:
            key = f"{scope}::{raw.name}" if scope else raw.name
            # Namespaces are reopened across files and merge into one entity
            namespace = ast.get(key)
            if namespace is None:
                namespace = ast.add(MetaEntity(key, raw.name, EntityKind.NAMESPACE, raw), parent)
            for child in raw.children:
                self._visit(ast, child, namespace, key, parent_excluded)
            return

        if not self._in_source_root(raw):
            return

        if raw.is_function_like:
            key = function_unique_name(scope, raw)
        else:
            key = f"{scope}::{raw.name}" if scope else raw.name

        # Headers included by several translation units
        if key in ast:
            return

        entity = MetaEntity(key, raw.name, EntityKind.from_raw(raw.kind), raw)
        if raw.access == Access.PROTECTED:
            entity.annotations["access"] = "protected"

        if parent_excluded:
            entity.exclude("parent excluded")
        elif not self.checker.is_included(entity.symbol_name):
            entity.exclude("rules")
        elif raw.is_function_like and raw.name.startswith("operator"):
            entity.exclude("operator")

        ast.add(entity, parent)

        for child in raw.children:
            if child.kind == RawKind.PARAMETER:
                param = MetaEntity(f"{key}::{child.name}", child.name, EntityKind.PARAMETER, child)
                if entity.excluded:
                    param.exclude("parent excluded")
                ast.add(param, entity)
            else:
                self._visit(ast, child, entity, key, entity.excluded)
