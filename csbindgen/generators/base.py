"""
Base classes for code emitters.
"""

from __future__ import annotations

import logging
from abc import abstractmethod
from contextlib import contextmanager
from dataclasses import dataclass
from pathlib import Path
from typing import Iterator, Optional

from jinja2 import Environment, PackageLoader, select_autoescape

from ..context import GeneratorContext
from ..errors import EmissionError
from ..meta import MetaEntity
from ..naming import to_pascal_case
from ..passes.base import CppApiPass, VisitStage


logger = logging.getLogger("csbindgen.generators")


@dataclass
class EmitResult:
    """Outcome of writing one generated file."""
    path: Path
    ok: bool = True
    error: Optional[str] = None
    written: bool = False


class Printer:
    """
    Line buffer with indentation.

    ``block`` opens a brace-delimited scope, which is all C++ and C# need.
    """

    def __init__(self, indent: str = "    "):
        self._indent = indent
        self._level = 0
        self._lines: list[str] = []

    def line(self, text: str = "") -> None:
        self._lines.append(f"{self._indent * self._level}{text}" if text else "")

    def lines(self, texts) -> None:
        for text in texts:
            self.line(text)

    def indent(self) -> None:
        self._level += 1

    def dedent(self) -> None:
        if self._level == 0:
            raise ValueError("Printer dedented below column 0")
        self._level -= 1

    @contextmanager
    def block(self, header: Optional[str] = None, suffix: str = "") -> Iterator["Printer"]:
        if header:
            self.line(header)
        self.line("{")
        self.indent()
        yield self
        self.dedent()
        self.line("}" + suffix)

    def blank(self) -> None:
        """Blank separator line, never doubled."""
        if self._lines and self._lines[-1] != "":
            self._lines.append("")

    def get(self) -> str:
        lines = list(self._lines)
        while lines and lines[-1] == "":
            lines.pop()
        return "\n".join(lines)


def create_jinja_env() -> Environment:
    """Jinja2 environment over the package's file templates."""
    env = Environment(
        loader=PackageLoader("csbindgen", "templates"),
        autoescape=select_autoescape(default=False),
        trim_blocks=True,
        lstrip_blocks=True,
        keep_trailing_newline=True,
    )
    env.filters["pascal_case"] = to_pascal_case
    return env


def write_if_changed(path: Path, content: str, overwrite: bool = True) -> bool:
    """
    Write ``content`` to ``path`` unless the file already holds it.

    Returns:
        True if the file was written

    Raises:
        EmissionError: if the file cannot be written
    """
    try:
        if path.exists():
            if not overwrite:
                return False
            if path.read_text(encoding="utf-8") == content:
                return False
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(content, encoding="utf-8", newline="\n")
    except OSError as e:
        raise EmissionError(path, str(e)) from e
    return True


class EmitterPass(CppApiPass):
    """
    Terminal pass that renders files from the final meta-AST.

    Subclasses collect file contents while visiting; ``stop`` writes them in
    sorted path order. A file that cannot be produced or written is recorded
    as failed and the remaining files are still written.
    """

    mutates = False
    #: Key of ``GeneratorContext.outputs`` this emitter reports to
    target: str = ""

    def __init__(self):
        self._env: Optional[Environment] = None
        self._files: dict[str, str] = {}
        self._failed: list[EmissionError] = []

    @property
    def env(self) -> Environment:
        """Lazy-load Jinja2 environment."""
        if self._env is None:
            self._env = create_jinja_env()
        return self._env

    @abstractmethod
    def output_dir(self, ctx: GeneratorContext) -> Path:
        ...

    def start(self, ctx: GeneratorContext) -> None:
        self._files = {}
        self._failed = []

    def visit(self, ctx: GeneratorContext, entity: MetaEntity, stage: VisitStage) -> bool:
        if stage != VisitStage.ENTER:
            return True
        try:
            return self.emit(ctx, entity)
        except EmissionError as e:
            self._record_failure(ctx, e)
            return False

    @abstractmethod
    def emit(self, ctx: GeneratorContext, entity: MetaEntity) -> bool:
        """Render files for ``entity``; return False to skip its children."""

    def add_file(self, name: str, content: str) -> None:
        """
        Queue a file for writing.

        Raises:
            EmissionError: if another entity already produced ``name``
        """
        if name in self._files:
            raise EmissionError(Path(name), "generated twice")
        if not content.endswith("\n"):
            content += "\n"
        self._files[name] = content

    def render(self, template: str, **context) -> str:
        return self.env.get_template(template).render(**context)

    def stop(self, ctx: GeneratorContext) -> None:
        try:
            self.finish(ctx)
        except EmissionError as e:
            self._record_failure(ctx, e)
        root = self.output_dir(ctx)
        overwrite = ctx.config.generation.overwrite
        results = []
        for name in sorted(self._files):
            path = root / name
            try:
                written = write_if_changed(path, self._files[name], overwrite)
                results.append(EmitResult(path, written=written))
                if written:
                    logger.debug(f"Generated: {path}")
            except EmissionError as e:
                ctx.error(str(e))
                results.append(EmitResult(path, ok=False, error=e.reason))
        results.extend(EmitResult(root / e.path, ok=False, error=e.reason) for e in self._failed)
        ctx.outputs[self.target] = results
        logger.info(f"{self.name}: {len(results)} files")
        self._files = {}
        self._failed = []

    def _record_failure(self, ctx: GeneratorContext, error: EmissionError) -> None:
        ctx.error(str(error))
        self._failed.append(error)

    def finish(self, ctx: GeneratorContext) -> None:
        """Hook for support files rendered once per run."""
