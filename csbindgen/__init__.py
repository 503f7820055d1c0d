"""
csbindgen - C++ to C# binding generator

Parses C++ headers with libclang, runs the resulting meta-AST through an
ordered pass pipeline and emits a C shim API, a P/Invoke import layer and an
idiomatic managed wrapper API.
"""

__version__ = "0.1.0"

from .config import CompileConfig, GeneratorConfig
from .pipeline import Pipeline, build_context, default_passes, run_generator

__all__ = [
    "CompileConfig",
    "GeneratorConfig",
    "Pipeline",
    "build_context",
    "default_passes",
    "run_generator",
    "__version__",
]
