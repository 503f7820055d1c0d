"""
Pass pipeline driver and end-to-end orchestration.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Optional, Sequence

from .builder import MetaASTBuilder
from .config import CompileConfig, GeneratorConfig
from .context import GeneratorContext
from .errors import ConfigurationError
from .meta import MetaEntity
from .parser import ParseRequest, find_headers, parse_files
from .passes import (
    ConvertToPropertiesPass,
    CppApiPass,
    CustomRulesPass,
    GenerateClassWrappersPass,
    ImplementInterfacesPass,
    MoveGlobalsPass,
    TypeMapsPass,
    UnknownTypesPass,
    VisitStage,
)
from .rules import RuleSet, load_rules


logger = logging.getLogger("csbindgen.pipeline")


class Pipeline:
    """
    Runs passes over the meta-AST strictly in registration order.

    Every pass sees the cumulative result of the passes before it. A pass
    that raises, or requests an abort, stops the run; the exception never
    propagates past ``run``.
    """

    def __init__(self, passes: Sequence[CppApiPass]):
        self.passes = list(passes)

    def run(self, ctx: GeneratorContext) -> bool:
        """
        Run all passes.

        Returns:
            True if every pass completed without an abort
        """
        for current in self.passes:
            if ctx.aborted:
                break
            logger.info(f"Running {current.name}")
            before = None if current.mutates else ctx.ast.fingerprint()
            try:
                current.start(ctx)
                self._traverse(ctx, current, ctx.ast.root)
                current.stop(ctx)
            except Exception as e:
                logger.exception(f"{current.name} failed")
                ctx.abort(f"{current.name} failed: {e}")
                break

            if before is not None and ctx.ast.fingerprint() != before:
                ctx.abort(f"{current.name} modified the meta-AST")

        return not ctx.aborted

    def _traverse(self, ctx: GeneratorContext, current: CppApiPass, entity: MetaEntity) -> None:
        # Snapshot: structural edits made while visiting do not affect this walk
        for child in list(ctx.ast.children_of(entity)):
            if child.excluded and not current.visits_excluded:
                continue
            if current.visit(ctx, child, VisitStage.ENTER):
                self._traverse(ctx, current, child)
            current.visit(ctx, child, VisitStage.EXIT)


def default_passes(custom: Optional[CustomRulesPass] = None) -> list[CppApiPass]:
    """The standard pipeline, emitters included."""
    from .generators import GenerateCApiPass, GenerateCSApiPass, GeneratePInvokePass

    return [
        TypeMapsPass(),
        UnknownTypesPass(),
        GenerateClassWrappersPass(),
        custom or CustomRulesPass(),
        MoveGlobalsPass(),
        ConvertToPropertiesPass(),
        ImplementInterfacesPass(),
        GenerateCApiPass(),
        GeneratePInvokePass(),
        GenerateCSApiPass(),
    ]


def run_generator(
    rules_path: Path,
    source_dir: Path,
    compile_config: CompileConfig,
    config: Optional[GeneratorConfig] = None,
    output_cpp: Optional[Path] = None,
    output_cs: Optional[Path] = None,
    jobs: Optional[int] = None,
    custom: Optional[CustomRulesPass] = None,
) -> GeneratorContext:
    """
    Parse the headers under ``source_dir`` and run the full pipeline.

    Raises:
        ConfigurationError: if the rule file or the source directory is invalid
        ParseError: if a required header fails to parse
    """
    config = config or GeneratorConfig()
    rules = load_rules(rules_path)
    source_dir = Path(source_dir).resolve()
    if not source_dir.is_dir():
        raise ConfigurationError("Source directory not found", source_dir)

    requests = [ParseRequest(h) for h in find_headers(source_dir, rules.headers)]
    requests.extend(ParseRequest(_resolve(source_dir, h), required=False) for h in rules.optional_headers)
    logger.info(f"Parsing {len(requests)} headers")

    units = parse_files(requests, compile_config, source_dir, jobs or config.generation.jobs)
    ast = MetaASTBuilder(source_dir, rules.symbols).build(units)

    ctx = GeneratorContext(
        ast=ast,
        rules=rules,
        config=config,
        output_cpp=Path(output_cpp) if output_cpp else config.output_cpp_abs,
        output_cs=Path(output_cs) if output_cs else config.output_cs_abs,
        source_dir=source_dir,
    )
    Pipeline(default_passes(custom)).run(ctx)
    return ctx


def build_context(
    ast,
    rules: Optional[RuleSet] = None,
    config: Optional[GeneratorConfig] = None,
    output_cpp: Optional[Path] = None,
    output_cs: Optional[Path] = None,
    source_dir: Optional[Path] = None,
) -> GeneratorContext:
    """Context over an already built meta-AST."""
    config = config or GeneratorConfig()
    return GeneratorContext(
        ast=ast,
        rules=rules or RuleSet(),
        config=config,
        output_cpp=Path(output_cpp) if output_cpp else config.output_cpp_abs,
        output_cs=Path(output_cs) if output_cs else config.output_cs_abs,
        source_dir=Path(source_dir).resolve() if source_dir else None,
    )


def _resolve(source_dir: Path, header: str) -> Path:
    path = Path(header)
    return path if path.is_absolute() else source_dir / path
