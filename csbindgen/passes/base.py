"""
Base class for meta-AST passes.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from enum import Enum

from ..context import GeneratorContext
from ..meta import MetaEntity


class VisitStage(Enum):
    """Whether ``visit`` is called before or after an entity's children."""
    ENTER = "enter"
    EXIT = "exit"


class CppApiPass(ABC):
    """
    One ordered stage of the pipeline.

    The driver calls ``start`` once, then ``visit`` for every entity in
    declaration order (at ENTER and at EXIT), then ``stop``. Returning False
    from ``visit`` at ENTER skips the entity's children.

    Structural edits (moving or adding entities) must be deferred to
    ``stop``; ``visit`` runs over a snapshot of each child list.
    """

    #: Passes that only emit text set this to False; the driver verifies it
    mutates: bool = True
    #: Whether excluded entities are passed to ``visit``
    visits_excluded: bool = False

    @property
    def name(self) -> str:
        return type(self).__name__

    def start(self, ctx: GeneratorContext) -> None:
        pass

    @abstractmethod
    def visit(self, ctx: GeneratorContext, entity: MetaEntity, stage: VisitStage) -> bool:
        """Process one entity; return False at ENTER to skip its children."""

    def stop(self, ctx: GeneratorContext) -> None:
        pass
