"""
Error types for csbindgen.

The generator distinguishes four failure classes:

- configuration errors: fatal, raised before parsing starts
- parse errors: fatal, a required translation unit could not be parsed
- mapping errors: recovered per entity by the unknown-type pass
- emission errors: recorded per output file, other files continue
"""

from __future__ import annotations

from pathlib import Path
from typing import Optional


# =============================================================================
# Exception Classes
# =============================================================================

class BindgenError(Exception):
    """Base exception for all csbindgen errors."""


class ConfigurationError(BindgenError):
    """Missing or malformed rule file, source directory or config file."""

    def __init__(self, message: str, path: Optional[Path] = None):
        self.path = path
        if path is not None:
            message = f"{message}: {path}"
        super().__init__(message)


class ParseError(BindgenError):
    """A translation unit could not be turned into an AST."""

    def __init__(self, path: Path, details: str = ""):
        self.path = path
        self.details = details
        message = f"Failed to parse {path}"
        if details:
            message = f"{message}:\n{details}"
        super().__init__(message)


class MappingError(BindgenError):
    """A native type has no registered mapping."""

    def __init__(self, spelling: str, entity: Optional[str] = None):
        self.spelling = spelling
        self.entity = entity
        message = f"Unknown type '{spelling}'"
        if entity:
            message = f"{message} in {entity}"
        super().__init__(message)


class EmissionError(BindgenError):
    """An output file could not be written."""

    def __init__(self, path: Path, reason: str):
        self.path = path
        self.reason = reason
        super().__init__(f"Cannot write {path}: {reason}")


__all__ = [
    "BindgenError",
    "ConfigurationError",
    "ParseError",
    "MappingError",
    "EmissionError",
]
