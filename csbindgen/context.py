"""
Run state threaded through the pass pipeline.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import TYPE_CHECKING, Optional

from .config import GeneratorConfig
from .meta import MetaAST, MetaEntity
from .rules import RuleSet
from .types.registry import TypeRegistry

if TYPE_CHECKING:
    from .generators.base import EmitResult


logger = logging.getLogger("csbindgen")


class Severity(Enum):
    WARNING = "warning"
    ERROR = "error"


@dataclass
class Diagnostic:
    """A per-entity or per-pass message."""
    severity: Severity
    message: str
    entity: Optional[str] = None

    def __str__(self) -> str:
        if self.entity:
            return f"{self.entity}: {self.message}"
        return self.message


@dataclass
class GeneratorContext:
    """
    Everything one generator run works on.

    Passes receive the context explicitly; nothing about a run is kept in
    module-level state.
    """

    ast: MetaAST
    rules: RuleSet = field(default_factory=RuleSet)
    config: GeneratorConfig = field(default_factory=GeneratorConfig)
    types: TypeRegistry = field(default_factory=TypeRegistry)
    output_cpp: Path = field(default_factory=lambda: Path("generated/native"))
    output_cs: Path = field(default_factory=lambda: Path("generated/managed"))
    # Root that generated includes are made relative to
    source_dir: Optional[Path] = None

    diagnostics: list[Diagnostic] = field(default_factory=list)
    # Emission outcomes per target ("cpp", "pinvoke", "cs")
    outputs: dict[str, list["EmitResult"]] = field(default_factory=dict)

    aborted: bool = False
    abort_reason: Optional[str] = None

    def warn(self, message: str, entity: Optional[MetaEntity] = None) -> None:
        name = entity.unique_name if entity is not None else None
        diagnostic = Diagnostic(Severity.WARNING, message, name)
        self.diagnostics.append(diagnostic)
        logger.warning(str(diagnostic))

    def error(self, message: str, entity: Optional[MetaEntity] = None) -> None:
        name = entity.unique_name if entity is not None else None
        diagnostic = Diagnostic(Severity.ERROR, message, name)
        self.diagnostics.append(diagnostic)
        logger.error(str(diagnostic))

    def abort(self, reason: str) -> None:
        """Request the pipeline to stop after the current pass."""
        if not self.aborted:
            self.aborted = True
            self.abort_reason = reason
            self.error(reason)

    @property
    def warnings(self) -> list[Diagnostic]:
        return [d for d in self.diagnostics if d.severity == Severity.WARNING]

    @property
    def emission_failed(self) -> bool:
        return any(not r.ok for results in self.outputs.values() for r in results)
