"""
Command-line interface for csbindgen.

Usage:
    python -m csbindgen <rules.json> <source-dir> [options]
    python -m csbindgen <response-file>

A response file holds one argument per line; blank lines are ignored.
"""

from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path
from typing import Optional

from . import __version__
from .config import CompileConfig, GeneratorConfig
from .errors import ConfigurationError, ParseError
from .pipeline import run_generator


logger = logging.getLogger("csbindgen.cli")


def expand_response_file(argv: list[str]) -> list[str]:
    """Replace a single response-file argument with the arguments it lists."""
    if len(argv) != 1 or argv[0].startswith("-"):
        return argv
    path = Path(argv[0])
    if not path.is_file():
        return argv
    try:
        text = path.read_text()
    except OSError as e:
        raise ConfigurationError(f"Cannot read response file ({e})", path) from e
    return [line.strip() for line in text.splitlines() if line.strip()]


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="csbindgen",
        description="C++ to C# binding generator",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Generate bindings for an engine source tree
  csbindgen rules.json Source/Engine -I Source/Engine -D URHO3D_STATIC

  # Read arguments from a response file
  csbindgen bindgen.rsp
""",
    )

    parser.add_argument("rules", type=Path, help="Rule file (JSON)")
    parser.add_argument("source", type=Path, help="Source directory with the headers")
    parser.add_argument("--out-cpp", type=Path, help="Output directory for the C shim sources")
    parser.add_argument("--out-cs", type=Path, help="Output directory for the C# sources")
    parser.add_argument(
        "-I", dest="includes", action="append", default=[], metavar="DIR",
        help="Include path passed to the parser",
    )
    parser.add_argument(
        "-D", dest="defines", action="append", default=[], metavar="NAME[=VALUE]",
        help="Preprocessor define passed to the parser",
    )
    parser.add_argument(
        "-O", dest="options", action="append", default=[], metavar="OPTION",
        help="Extra compiler option passed to the parser",
    )
    parser.add_argument("--config", "-c", type=Path, help="Configuration file (csbindgen.toml)")
    parser.add_argument("--jobs", "-j", type=int, help="Number of parser workers")
    parser.add_argument("--verbose", "-v", action="store_true", help="Verbose output")
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    return parser


def main(argv: Optional[list[str]] = None) -> int:
    """Main CLI entry point."""
    if argv is None:
        argv = sys.argv[1:]

    try:
        argv = expand_response_file(list(argv))
    except ConfigurationError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    args = build_parser().parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(levelname)s %(name)s: %(message)s",
    )

    compile_config = CompileConfig.from_lists(args.includes, args.defines, args.options)

    try:
        config = GeneratorConfig.load(args.config)
        ctx = run_generator(
            args.rules,
            args.source,
            compile_config,
            config=config,
            output_cpp=args.out_cpp,
            output_cs=args.out_cs,
            jobs=args.jobs,
        )
    except (ConfigurationError, ParseError) as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    if ctx.aborted:
        print(f"Error: {ctx.abort_reason}", file=sys.stderr)
        return 1

    written = sum(r.written for results in ctx.outputs.values() for r in results)
    total = sum(len(results) for results in ctx.outputs.values())
    print(f"\nGenerated {total} files ({written} changed), {len(ctx.warnings)} warnings")
    return 1 if ctx.emission_failed else 0


if __name__ == "__main__":
    sys.exit(main())
