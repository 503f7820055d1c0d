"""
Symbol and header rules.

Wildcards follow a two-level convention: ``*`` matches any run of characters
that does not cross a separator, ``**`` matches any run including separators.
Symbols use ``::`` as separator, header paths use ``/``.
"""

from __future__ import annotations

import json
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Iterable, Optional, Pattern

from .errors import ConfigurationError


SCOPE_SEPARATOR = "::"
PATH_SEPARATOR = "/"


def wildcard_to_regex(wildcard: str, separator: str = SCOPE_SEPARATOR) -> Pattern[str]:
    """
    Compile a wildcard pattern into an anchored regular expression.

    Args:
        wildcard: Pattern such as ``Urho3D::*`` or ``Urho3D::**``
        separator: Scope separator that a single ``*`` may not cross

    Returns:
        Compiled, case-sensitive regex matching the whole string
    """
    not_separator = f"(?:(?!{re.escape(separator)}).)*"
    parts = []
    i = 0
    while i < len(wildcard):
        if wildcard.startswith("**", i):
            parts.append(".*")
            i += 2
        elif wildcard[i] == "*":
            parts.append(not_separator)
            i += 1
        else:
            parts.append(re.escape(wildcard[i]))
            i += 1
    return re.compile("".join(parts) + r"\Z", re.DOTALL)


class IncludedChecker:
    """
    Include/exclude matcher.

    A value is included when it matches at least one include pattern (or no
    include patterns are configured) and matches no exclude pattern.
    """

    def __init__(
        self,
        include: Optional[Iterable[str]] = None,
        exclude: Optional[Iterable[str]] = None,
        separator: str = SCOPE_SEPARATOR,
    ):
        self.separator = separator
        self._includes = [wildcard_to_regex(w, separator) for w in include or ()]
        self._excludes = [wildcard_to_regex(w, separator) for w in exclude or ()]

    @classmethod
    def from_dict(cls, data: dict, separator: str = SCOPE_SEPARATOR) -> "IncludedChecker":
        """Create from a ``{"include": [...], "exclude": [...]}`` mapping."""
        return cls(data.get("include", []), data.get("exclude", []), separator)

    def is_included(self, value: str) -> bool:
        """Check whether ``value`` passes the include and exclude rules."""
        if self._includes and not any(r.match(value) for r in self._includes):
            return False
        return not any(r.match(value) for r in self._excludes)

    def matches_any_include(self, value: str) -> bool:
        return any(r.match(value) for r in self._includes)


@dataclass
class RuleSet:
    """All rule categories loaded from a rule file."""

    symbols: IncludedChecker = field(default_factory=IncludedChecker)
    headers: IncludedChecker = field(
        default_factory=lambda: IncludedChecker(["**.h", "**.hpp"], [], PATH_SEPARATOR)
    )
    optional_headers: list[str] = field(default_factory=list)
    # Wildcard symbol pattern -> managed name
    renames: list[tuple[Pattern[str], str]] = field(default_factory=list)
    ignore_members: IncludedChecker = field(
        default_factory=lambda: IncludedChecker([], [])
    )
    value_types: dict[str, str] = field(default_factory=dict)
    string_types: dict[str, str] = field(default_factory=dict)
    interfaces: dict[str, list[str]] = field(default_factory=dict)
    refcounted_bases: list[str] = field(default_factory=list)
    # Template names per conversion rule; None keeps the built-in defaults
    smart_pointers: Optional[list[str]] = None
    weak_pointers: Optional[list[str]] = None
    arrays: Optional[list[str]] = None

    def is_ignored_member(self, name: str) -> bool:
        return self.ignore_members.matches_any_include(name)

    def rename_for(self, name: str) -> Optional[str]:
        for pattern, new_name in self.renames:
            if pattern.match(name):
                return new_name
        return None

    @classmethod
    def from_dict(cls, data: dict) -> "RuleSet":
        """Create a rule set from a decoded rule document."""
        if not isinstance(data, dict):
            raise ConfigurationError("Rule document must be a JSON object")

        rules = cls()
        if "symbols" in data:
            rules.symbols = IncludedChecker.from_dict(data["symbols"])
        if "headers" in data:
            rules.headers = IncludedChecker.from_dict(data["headers"], PATH_SEPARATOR)
        rules.optional_headers = list(data.get("optional_headers", []))
        rules.renames = [
            (wildcard_to_regex(pattern), new_name)
            for pattern, new_name in data.get("renames", {}).items()
        ]
        rules.ignore_members = IncludedChecker(data.get("ignore_members", []), [])
        rules.value_types = dict(data.get("value_types", {}))
        rules.string_types = dict(data.get("string_types", {}))
        rules.interfaces = {
            name: list(members) for name, members in data.get("interfaces", {}).items()
        }
        rules.refcounted_bases = list(data.get("refcounted_bases", []))
        templates = data.get("templates", {})
        rules.smart_pointers = templates.get("smart_pointers")
        rules.weak_pointers = templates.get("weak_pointers")
        rules.arrays = templates.get("arrays")
        return rules


def load_rules(path: Path) -> RuleSet:
    """
    Load a JSON rule file.

    Raises:
        ConfigurationError: if the file is missing or not valid JSON
    """
    path = Path(path)
    if not path.is_file():
        raise ConfigurationError("Rule file not found", path)

    try:
        with open(path, "r", encoding="utf-8") as f:
            data = json.load(f)
    except json.JSONDecodeError as e:
        raise ConfigurationError(f"Malformed rule file ({e})", path) from e

    return RuleSet.from_dict(data)
