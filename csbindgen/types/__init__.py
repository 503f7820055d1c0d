"""
Type system for C++ to C# mapping.
"""

from .registry import (
    UNKNOWN_TYPE,
    ClassInfo,
    ExprDirection,
    TypeDirection,
    TypeMapping,
    TypeRegistry,
    opaque_mapping,
)
from .templates import DynamicArrayRule, RefCountedPointerRule, WeakPointerRule

__all__ = [
    "UNKNOWN_TYPE",
    "ClassInfo",
    "ExprDirection",
    "TypeDirection",
    "TypeMapping",
    "TypeRegistry",
    "opaque_mapping",
    "DynamicArrayRule",
    "RefCountedPointerRule",
    "WeakPointerRule",
]
