"""
Raw C++ AST data structures.

These dataclasses represent parsed C++ declarations independently of
libclang, so parse results can cross worker threads and be built by hand in
tests.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Optional

from ..types.shapes import TypeShape, VOID


@dataclass(frozen=True)
class SourceLocation:
    """Source code location for error reporting."""
    file: Path
    line: int = 0
    column: int = 0

    def __str__(self) -> str:
        return f"{self.file}:{self.line}:{self.column}"


class RawKind(Enum):
    """Declaration kinds produced by the parser frontend."""
    NAMESPACE = "namespace"
    CLASS = "class"
    STRUCT = "struct"
    ENUM = "enum"
    ENUM_VALUE = "enum_value"
    CONSTRUCTOR = "constructor"
    DESTRUCTOR = "destructor"
    METHOD = "method"
    FUNCTION = "function"
    FIELD = "field"
    VARIABLE = "variable"
    PARAMETER = "parameter"


class Access(Enum):
    PUBLIC = "public"
    PROTECTED = "protected"
    PRIVATE = "private"


@dataclass
class RawEntity:
    """
    A single declaration.

    ``type`` is the declared type of fields, variables and parameters;
    ``result_type`` the return type of functions and methods.
    """
    kind: RawKind
    name: str
    location: Optional[SourceLocation] = None
    children: list["RawEntity"] = field(default_factory=list)
    access: Access = Access.PUBLIC

    type: Optional[TypeShape] = None
    result_type: TypeShape = VOID
    default_value: Optional[str] = None
    enum_value: Optional[int] = None

    is_static: bool = False
    is_const: bool = False
    is_virtual: bool = False
    is_pure: bool = False
    is_final: bool = False
    is_abstract: bool = False

    # Qualified names of base classes, in declaration order
    bases: list[str] = field(default_factory=list)
    doc: Optional[str] = None

    @property
    def parameters(self) -> list["RawEntity"]:
        return [c for c in self.children if c.kind == RawKind.PARAMETER]

    @property
    def is_function_like(self) -> bool:
        return self.kind in (
            RawKind.CONSTRUCTOR,
            RawKind.DESTRUCTOR,
            RawKind.METHOD,
            RawKind.FUNCTION,
        )


@dataclass
class TranslationUnit:
    """Parse result of one file: top-level declarations in source order."""
    path: Path
    entities: list[RawEntity] = field(default_factory=list)


@dataclass(frozen=True)
class ParseRequest:
    """A file to parse; failures of optional files are not fatal."""
    path: Path
    required: bool = True
