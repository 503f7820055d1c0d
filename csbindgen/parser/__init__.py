"""
C++ header parsing module.
"""

from .cpp_types import (
    Access,
    ParseRequest,
    RawEntity,
    RawKind,
    SourceLocation,
    TranslationUnit,
)
from .clang_parser import HAS_CLANG, ClangParser, find_headers, parse_files

__all__ = [
    "Access",
    "ParseRequest",
    "RawEntity",
    "RawKind",
    "SourceLocation",
    "TranslationUnit",
    "HAS_CLANG",
    "ClangParser",
    "find_headers",
    "parse_files",
]
