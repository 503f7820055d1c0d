"""
Identifier helpers shared by passes and emitters.
"""

from __future__ import annotations

import re


# C# keywords plus C/C++ ones that are common parameter names
KEYWORDS = {
    "abstract", "as", "base", "bool", "break", "byte", "case", "catch", "char",
    "checked", "class", "const", "continue", "decimal", "default", "delegate",
    "do", "double", "else", "enum", "event", "explicit", "extern", "false",
    "finally", "fixed", "float", "for", "foreach", "goto", "if", "implicit",
    "in", "int", "interface", "internal", "is", "lock", "long", "namespace",
    "new", "null", "object", "operator", "out", "override", "params", "private",
    "protected", "public", "readonly", "ref", "return", "sbyte", "sealed",
    "short", "sizeof", "stackalloc", "static", "string", "struct", "switch",
    "this", "throw", "true", "try", "typeof", "uint", "ulong", "unchecked",
    "unsafe", "ushort", "using", "virtual", "void", "volatile", "while",
    "delete", "register", "signed", "unsigned", "union",
}


def sanitize(value: str) -> str:
    """
    Turn an arbitrary string into an identifier.

    Invalid characters become ``_``; a leading digit gets an ``_`` prefix.
    """
    result = re.sub(r"[^A-Za-z0-9_]", "_", value)
    result = re.sub(r"_+", "_", result).strip("_")
    if not result or result[0].isdigit():
        result = f"_{result}"
    return result


def mangle(symbol: str) -> str:
    """
    C identifier for a qualified C++ name.

    Scope separators become ``_`` and literal underscores ``_1``, so
    ``A::B_C`` and ``A_B::C`` stay distinct.
    """
    result = symbol.replace("_", "_1").replace("::", "_")
    return re.sub(r"[^A-Za-z0-9_]", "_0", result)


def ensure_not_keyword(value: str) -> str:
    if value in KEYWORDS:
        return f"{value}_"
    return value


def to_pascal_case(name: str) -> str:
    """Convert name to PascalCase; names already in PascalCase are kept."""
    if "_" not in name:
        return name[:1].upper() + name[1:]
    return "".join(word[:1].upper() + word[1:] for word in name.split("_") if word)


def strip_member_prefix(name: str) -> str:
    """``m_value``/``value_`` style field names to ``Value``."""
    if name.startswith("m_"):
        name = name[2:]
    name = name.strip("_")
    return to_pascal_case(name)
