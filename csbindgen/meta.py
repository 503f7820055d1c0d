"""
Meta-AST: the generator's own entity graph.

All entities live in one arena owned by ``MetaAST`` and are addressed by
their unique name. Parent and child links are keys into that arena, never
object references, so relocating or excluding an entity never leaves a
dangling reference behind.
"""

from __future__ import annotations

import hashlib
import json
from enum import Enum
from typing import Any, Iterator, Optional

from .parser.cpp_types import RawEntity, RawKind
from .types.shapes import TypeShape, VOID, spelling


ROOT_KEY = ""


class EntityKind(Enum):
    """Kinds of meta entities."""
    ROOT = "root"
    NAMESPACE = "namespace"
    CLASS = "class"
    STRUCT = "struct"
    INTERFACE = "interface"
    ENUM = "enum"
    ENUM_VALUE = "enum_value"
    CONSTRUCTOR = "constructor"
    DESTRUCTOR = "destructor"
    METHOD = "method"
    FUNCTION = "function"
    FIELD = "field"
    VARIABLE = "variable"
    PARAMETER = "parameter"
    PROPERTY = "property"

    @classmethod
    def from_raw(cls, kind: RawKind) -> "EntityKind":
        return cls(kind.value)


CLASS_KINDS = (EntityKind.CLASS, EntityKind.STRUCT)


class MetaEntity:
    """
    One node of the meta-AST.

    ``source`` refers back to the raw declaration the entity was built from
    and is ``None`` for synthetic entities (properties, wrappers, global
    containers, interfaces).
    """

    def __init__(
        self,
        unique_name: str,
        name: str,
        kind: EntityKind,
        source: Optional[RawEntity] = None,
        annotations: Optional[dict[str, Any]] = None,
    ):
        self.unique_name = unique_name
        self.name = name
        self.kind = kind
        self._source = source
        self.parent: Optional[str] = None
        self.children: list[str] = []
        self.annotations: dict[str, Any] = dict(annotations or {})

    def __repr__(self) -> str:
        return f"MetaEntity({self.unique_name!r}, {self.kind.value})"

    @property
    def source(self) -> Optional[RawEntity]:
        return self._source

    @property
    def excluded(self) -> bool:
        return bool(self.annotations.get("excluded", False))

    @property
    def included(self) -> bool:
        return not self.excluded

    def exclude(self, reason: str) -> None:
        """Mark as excluded; the first recorded reason wins."""
        if not self.excluded:
            self.annotations["excluded"] = True
            self.annotations["exclude_reason"] = reason

    @property
    def symbol_name(self) -> str:
        """Scope-qualified name without the signature part."""
        return self.unique_name.split("(", 1)[0]

    @property
    def cs_name(self) -> str:
        """Name on the managed side, after renames."""
        return self.annotations.get("cs_name", self.name)

    @property
    def access(self) -> str:
        return self.annotations.get("access", "public")

    # Convenience accessors over the raw declaration

    @property
    def type(self) -> Optional[TypeShape]:
        if "type" in self.annotations:
            return self.annotations["type"]
        return self._source.type if self._source else None

    @property
    def result_type(self) -> TypeShape:
        return self._source.result_type if self._source else VOID

    @property
    def is_static(self) -> bool:
        if "static" in self.annotations:
            return self.annotations["static"]
        return bool(self._source and self._source.is_static)

    @property
    def is_const(self) -> bool:
        return bool(self._source and self._source.is_const)

    @property
    def is_virtual(self) -> bool:
        return bool(self._source and self._source.is_virtual)


def function_unique_name(scope: str, raw: RawEntity) -> str:
    """Unique name of a function: scope, name and parameter types."""
    params = ", ".join(spelling(p.type) for p in raw.parameters if p.type is not None)
    name = f"{scope}::{raw.name}" if scope else raw.name
    suffix = " const" if raw.is_const else ""
    return f"{name}({params}){suffix}"


class MetaAST:
    """
    Arena of meta entities.

    The name index is built once by ``build_index`` after construction;
    ``add`` keeps it current for entities synthesized by later passes.
    """

    def __init__(self):
        self.root = MetaEntity(ROOT_KEY, "", EntityKind.ROOT)
        self._entities: dict[str, MetaEntity] = {ROOT_KEY: self.root}
        self._index: dict[str, MetaEntity] = {}

    def __len__(self) -> int:
        return len(self._entities) - 1

    def __contains__(self, key: str) -> bool:
        return key in self._entities

    # -------------------------------------------------------------------------
    # Construction
    # -------------------------------------------------------------------------

    def add(self, entity: MetaEntity, parent: Optional[MetaEntity] = None) -> MetaEntity:
        """Take ownership of ``entity`` and append it to ``parent`` (root by default)."""
        if entity.unique_name in self._entities:
            raise KeyError(f"Duplicate entity: {entity.unique_name}")
        parent = parent or self.root
        entity.parent = parent.unique_name
        parent.children.append(entity.unique_name)
        self._entities[entity.unique_name] = entity
        if self._index:
            self._index[entity.unique_name] = entity
        return entity

    def build_index(self) -> None:
        self._index = {k: v for k, v in self._entities.items() if k != ROOT_KEY}

    def move(self, entity: MetaEntity, new_parent: MetaEntity) -> None:
        """Re-link ``entity`` under ``new_parent``; its key is unchanged."""
        old_parent = self.parent_of(entity)
        if old_parent is not None:
            old_parent.children.remove(entity.unique_name)
        entity.parent = new_parent.unique_name
        new_parent.children.append(entity.unique_name)

    # -------------------------------------------------------------------------
    # Lookup
    # -------------------------------------------------------------------------

    def get(self, key: str) -> Optional[MetaEntity]:
        if self._index:
            return self._index.get(key)
        return self._entities.get(key) if key != ROOT_KEY else None

    def __getitem__(self, key: str) -> MetaEntity:
        entity = self.get(key)
        if entity is None:
            raise KeyError(key)
        return entity

    def parent_of(self, entity: MetaEntity) -> Optional[MetaEntity]:
        if entity.parent is None:
            return None
        return self._entities.get(entity.parent)

    def children_of(self, entity: MetaEntity) -> list[MetaEntity]:
        return [self._entities[key] for key in entity.children]

    def walk(self, entity: Optional[MetaEntity] = None) -> Iterator[MetaEntity]:
        """Pre-order iteration in declaration order (root excluded)."""
        entity = entity or self.root
        for child in self.children_of(entity):
            yield child
            yield from self.walk(child)

    def find(self, kind: EntityKind) -> list[MetaEntity]:
        return [e for e in self.walk() if e.kind == kind]

    def is_included_chain(self, entity: MetaEntity) -> bool:
        """True when the entity and all of its ancestors are included."""
        current: Optional[MetaEntity] = entity
        while current is not None and current is not self.root:
            if current.excluded:
                return False
            current = self.parent_of(current)
        return True

    def fingerprint(self) -> str:
        """Stable digest of structure and annotations."""
        digest = hashlib.sha256()
        for entity in self.walk():
            record = {
                "key": entity.unique_name,
                "kind": entity.kind.value,
                "parent": entity.parent,
                "children": entity.children,
                "annotations": {k: repr(v) for k, v in sorted(entity.annotations.items())},
            }
            digest.update(json.dumps(record, sort_keys=True).encode("utf-8"))
        return digest.hexdigest()
