"""
Configuration system for csbindgen.

Supports:
- TOML configuration files (csbindgen.toml)
- CLI argument overrides
- The immutable compile configuration shared by all parser workers
"""

from __future__ import annotations

import sys
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

if sys.version_info >= (3, 11):
    import tomllib
else:
    import tomli as tomllib

from .errors import ConfigurationError


CONFIG_FILE_NAME = "csbindgen.toml"


# =============================================================================
# Compile Configuration
# =============================================================================

def default_standard() -> str:
    """Language standard; GNU extensions everywhere but Windows."""
    return "c++11" if sys.platform == "win32" else "gnu++11"


def default_dialect_flags() -> tuple[str, ...]:
    """Dialect flags matching the compiler the engine is normally built with."""
    if sys.platform == "win32":
        return ("-fms-compatibility", "-fms-extensions")
    return ()


@dataclass(frozen=True)
class CompileConfig:
    """Include paths, defines and options passed to every translation unit."""

    include_paths: tuple[str, ...] = ()
    defines: tuple[str, ...] = ()
    options: tuple[str, ...] = ()
    standard: str = field(default_factory=default_standard)
    dialect_flags: tuple[str, ...] = field(default_factory=default_dialect_flags)

    @classmethod
    def from_lists(
        cls,
        includes: Optional[list[str]] = None,
        defines: Optional[list[str]] = None,
        options: Optional[list[str]] = None,
    ) -> "CompileConfig":
        return cls(
            include_paths=tuple(includes or ()),
            defines=tuple(defines or ()),
            options=tuple(options or ()),
        )

    def to_clang_args(self) -> list[str]:
        """Build the clang argument list."""
        args = ["-x", "c++", f"-std={self.standard}"]
        args.extend(self.dialect_flags)
        args.extend(f"-I{path}" for path in self.include_paths)
        args.extend(f"-D{define}" for define in self.defines)
        args.extend(self.options)
        return args


# =============================================================================
# Generator Configuration
# =============================================================================

@dataclass
class PathsConfig:
    """Path configuration."""

    output_cpp: Path = field(default_factory=lambda: Path("generated/native"))
    output_cs: Path = field(default_factory=lambda: Path("generated/managed"))


@dataclass
class GenerationConfig:
    """Generation options."""

    namespace: str = "Bindings"
    library_name: str = "Native"
    globals_class: str = "Globals"
    opaque_handles: bool = True
    overwrite: bool = True
    jobs: Optional[int] = None


@dataclass
class GeneratorConfig:
    """Main configuration container."""

    project_root: Path = field(default_factory=Path.cwd)
    paths: PathsConfig = field(default_factory=PathsConfig)
    generation: GenerationConfig = field(default_factory=GenerationConfig)

    def __post_init__(self):
        if isinstance(self.project_root, str):
            self.project_root = Path(self.project_root)

    @classmethod
    def from_file(cls, path: Path) -> "GeneratorConfig":
        """Load configuration from a TOML file."""
        try:
            with open(path, "rb") as f:
                data = tomllib.load(f)
        except OSError as e:
            raise ConfigurationError(f"Cannot read config file ({e})", path) from e
        except tomllib.TOMLDecodeError as e:
            raise ConfigurationError(f"Malformed config file ({e})", path) from e

        return cls._from_dict(data, path.parent)

    @classmethod
    def _from_dict(cls, data: dict, base_path: Path) -> "GeneratorConfig":
        paths_data = data.get("paths", {})
        gen_data = data.get("generation", {})

        defaults = GenerationConfig()
        paths = PathsConfig(
            output_cpp=Path(paths_data.get("output_cpp", "generated/native")),
            output_cs=Path(paths_data.get("output_cs", "generated/managed")),
        )
        generation = GenerationConfig(
            namespace=gen_data.get("namespace", defaults.namespace),
            library_name=gen_data.get("library_name", defaults.library_name),
            globals_class=gen_data.get("globals_class", defaults.globals_class),
            opaque_handles=gen_data.get("opaque_handles", defaults.opaque_handles),
            overwrite=gen_data.get("overwrite", defaults.overwrite),
            jobs=gen_data.get("jobs"),
        )
        return cls(project_root=base_path, paths=paths, generation=generation)

    @classmethod
    def find_config(cls, start_path: Optional[Path] = None) -> Optional[Path]:
        """Find csbindgen.toml in current or parent directories."""
        if start_path is None:
            start_path = Path.cwd()

        current = start_path.resolve()

        for _ in range(10):  # Max 10 levels up
            config_path = current / CONFIG_FILE_NAME
            if config_path.exists():
                return config_path

            parent = current.parent
            if parent == current:
                break
            current = parent

        return None

    @classmethod
    def load(cls, config_path: Optional[Path] = None) -> "GeneratorConfig":
        """Load configuration, auto-discovering if path not provided."""
        if config_path is not None and not config_path.exists():
            raise ConfigurationError("Config file not found", config_path)

        if config_path is None:
            config_path = cls.find_config()

        if config_path is not None:
            return cls.from_file(config_path)

        return cls(project_root=Path.cwd())

    def resolve_path(self, path: Path) -> Path:
        """Resolve a relative path against project root."""
        if path.is_absolute():
            return path
        return self.project_root / path

    @property
    def output_cpp_abs(self) -> Path:
        return self.resolve_path(self.paths.output_cpp)

    @property
    def output_cs_abs(self) -> Path:
        return self.resolve_path(self.paths.output_cs)
