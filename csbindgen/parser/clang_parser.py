"""
Clang-based C++ header parser.

Uses libclang to parse C++ headers and extract namespaces, classes, enums,
functions and variables into raw AST dataclasses.
"""

from __future__ import annotations

import logging
import os
import re
from concurrent.futures import ThreadPoolExecutor
from dataclasses import replace
from pathlib import Path
from typing import Optional, Sequence

try:
    from clang.cindex import (
        AccessSpecifier,
        Cursor,
        CursorKind,
        Index,
        TranslationUnit as ClangTranslationUnit,
        TranslationUnitLoadError,
        TypeKind,
    )
    HAS_CLANG = True
except ImportError:
    HAS_CLANG = False

from ..config import CompileConfig
from ..errors import ParseError
from ..rules import IncludedChecker
from ..types.shapes import (
    BuiltinType,
    ClassType,
    EnumType,
    PointerType,
    ReferenceType,
    TemplateType,
    TypeShape,
    UnknownType,
)
from .cpp_types import (
    Access,
    ParseRequest,
    RawEntity,
    RawKind,
    SourceLocation,
    TranslationUnit,
)


logger = logging.getLogger("csbindgen.parser")

# Diagnostic.Error
_ERROR_SEVERITY = 3


class ClangParser:
    """
    Parser for C++ headers using libclang.

    Extracts:
    - Namespaces (recursively)
    - Class and struct definitions with bases, members and nested types
    - Enum definitions
    - Free functions and namespace-level variables
    """

    def __init__(
        self,
        config: Optional[CompileConfig] = None,
        root: Optional[Path] = None,
    ):
        """
        Initialize the parser.

        Args:
            config: Compile configuration shared by all translation units
            root: When set, declarations from files outside this directory
                are not converted
        """
        if not HAS_CLANG:
            raise ImportError(
                "libclang is required for parsing. "
                "Install with: pip install libclang"
            )

        self.config = config or CompileConfig()
        self.root = root.resolve() if root is not None else None
        self._index = Index.create()

    def parse(self, header_path: Path) -> TranslationUnit:
        """
        Parse a single C++ header file.

        Args:
            header_path: Path to the header file

        Returns:
            TranslationUnit with all extracted declarations

        Raises:
            ParseError: if libclang fails or reports errors
        """
        try:
            tu = self._index.parse(
                str(header_path),
                args=self.config.to_clang_args(),
                options=ClangTranslationUnit.PARSE_SKIP_FUNCTION_BODIES,
            )
        except TranslationUnitLoadError as e:
            raise ParseError(header_path, str(e)) from e

        errors = [d for d in tu.diagnostics if d.severity >= _ERROR_SEVERITY]
        if errors:
            raise ParseError(header_path, "\n".join(str(e) for e in errors[:5]))

        result = TranslationUnit(path=header_path)
        result.entities = self._convert_children(tu.cursor)
        return result

    # -------------------------------------------------------------------------
    # Cursors
    # -------------------------------------------------------------------------

    def _in_root(self, cursor: Cursor) -> bool:
        if self.root is None:
            return True
        if cursor.location.file is None:
            return False
        path = Path(cursor.location.file.name).resolve()
        return path == self.root or self.root in path.parents

    def _convert_children(self, cursor: Cursor) -> list[RawEntity]:
        entities = []
        for child in cursor.get_children():
            entity = self._convert(child)
            if entity is not None:
                entities.append(entity)
        return entities

    def _convert(self, cursor: Cursor) -> Optional[RawEntity]:
        kind = cursor.kind

        if kind == CursorKind.NAMESPACE:
            if not cursor.spelling:
                return None
            children = self._convert_children(cursor)
            if not children:
                return None
            return RawEntity(
                kind=RawKind.NAMESPACE,
                name=cursor.spelling,
                location=self._get_location(cursor),
                children=children,
            )

        if not self._in_root(cursor):
            return None

        access = self._get_access(cursor)
        if access == Access.PRIVATE:
            return None

        if kind in (CursorKind.CLASS_DECL, CursorKind.STRUCT_DECL):
            return self._parse_class(cursor, access)
        if kind == CursorKind.ENUM_DECL:
            return self._parse_enum(cursor, access)
        if kind == CursorKind.CONSTRUCTOR:
            return self._parse_function(cursor, RawKind.CONSTRUCTOR, access)
        if kind == CursorKind.DESTRUCTOR:
            return self._parse_function(cursor, RawKind.DESTRUCTOR, access)
        if kind == CursorKind.CXX_METHOD:
            return self._parse_function(cursor, RawKind.METHOD, access)
        if kind == CursorKind.FUNCTION_DECL:
            return self._parse_function(cursor, RawKind.FUNCTION, access)
        if kind == CursorKind.FIELD_DECL:
            return self._parse_variable(cursor, RawKind.FIELD, access)
        if kind == CursorKind.VAR_DECL:
            return self._parse_variable(cursor, RawKind.VARIABLE, access)

        # Templates, typedefs, aliases, friends and access specifiers
        return None

    def _parse_class(self, cursor: Cursor, access: Access) -> Optional[RawEntity]:
        # Anonymous and forward-declared classes carry nothing to bind
        if not cursor.spelling or not cursor.is_definition():
            return None

        bases = []
        is_final = False
        for child in cursor.get_children():
            if child.kind == CursorKind.CXX_BASE_SPECIFIER:
                if child.access_specifier == AccessSpecifier.PUBLIC:
                    bases.append(self._qualified_name(child.type.get_declaration()))
            elif child.kind == CursorKind.CXX_FINAL_ATTR:
                is_final = True

        return RawEntity(
            kind=RawKind.STRUCT if cursor.kind == CursorKind.STRUCT_DECL else RawKind.CLASS,
            name=cursor.spelling,
            location=self._get_location(cursor),
            children=self._convert_children(cursor),
            access=access,
            bases=bases,
            is_final=is_final,
            is_abstract=cursor.is_abstract_record(),
            doc=self._get_doc(cursor),
        )

    def _parse_enum(self, cursor: Cursor, access: Access) -> Optional[RawEntity]:
        if not cursor.spelling or not cursor.is_definition():
            return None

        values = [
            RawEntity(
                kind=RawKind.ENUM_VALUE,
                name=child.spelling,
                location=self._get_location(child),
                enum_value=child.enum_value,
                doc=child.brief_comment,
            )
            for child in cursor.get_children()
            if child.kind == CursorKind.ENUM_CONSTANT_DECL
        ]
        return RawEntity(
            kind=RawKind.ENUM,
            name=cursor.spelling,
            location=self._get_location(cursor),
            children=values,
            access=access,
            doc=self._get_doc(cursor),
        )

    def _parse_function(
        self,
        cursor: Cursor,
        kind: RawKind,
        access: Access,
    ) -> Optional[RawEntity]:
        name = cursor.spelling
        if not name:
            return None

        params = []
        for arg in cursor.get_arguments():
            params.append(RawEntity(
                kind=RawKind.PARAMETER,
                name=arg.spelling or f"arg{len(params)}",
                location=self._get_location(arg),
                type=self.convert_type(arg.type),
                default_value=self._get_default_value(arg),
            ))

        is_method = kind in (RawKind.METHOD, RawKind.CONSTRUCTOR, RawKind.DESTRUCTOR)
        return RawEntity(
            kind=kind,
            name=name,
            location=self._get_location(cursor),
            children=params,
            access=access,
            result_type=self.convert_type(cursor.result_type),
            is_static=is_method and cursor.is_static_method(),
            is_const=kind == RawKind.METHOD and cursor.is_const_method(),
            is_virtual=is_method and cursor.is_virtual_method(),
            is_pure=is_method and cursor.is_pure_virtual_method(),
            doc=self._get_doc(cursor),
        )

    def _parse_variable(
        self,
        cursor: Cursor,
        kind: RawKind,
        access: Access,
    ) -> Optional[RawEntity]:
        if not cursor.spelling:
            return None

        # Static data members are VAR_DECL children of a record
        parent = cursor.semantic_parent
        is_static = kind == RawKind.VARIABLE and parent is not None and parent.kind in (
            CursorKind.CLASS_DECL,
            CursorKind.STRUCT_DECL,
        )
        return RawEntity(
            kind=RawKind.FIELD if is_static else kind,
            name=cursor.spelling,
            location=self._get_location(cursor),
            access=access,
            type=self.convert_type(cursor.type),
            is_static=is_static,
            doc=self._get_doc(cursor),
        )

    # -------------------------------------------------------------------------
    # Types
    # -------------------------------------------------------------------------

    def convert_type(self, clang_type) -> TypeShape:
        """Convert a clang type to a structural type shape."""
        kind = clang_type.kind
        const = clang_type.is_const_qualified()

        if kind == TypeKind.POINTER:
            return PointerType(self.convert_type(clang_type.get_pointee()), const=const)

        if kind in (TypeKind.LVALUEREFERENCE, TypeKind.RVALUEREFERENCE):
            return ReferenceType(
                self.convert_type(clang_type.get_pointee()),
                rvalue=kind == TypeKind.RVALUEREFERENCE,
            )

        if kind == TypeKind.ELABORATED:
            return self._with_const(self.convert_type(clang_type.get_named_type()), const)

        if kind == TypeKind.TYPEDEF:
            if clang_type.get_num_template_arguments() > 0:
                return self._convert_record(clang_type, const)
            return self._with_const(self.convert_type(clang_type.get_canonical()), const)

        if kind == TypeKind.ENUM:
            return EnumType(self._qualified_name(clang_type.get_declaration()), const=const)

        if kind in (TypeKind.RECORD, TypeKind.UNEXPOSED):
            return self._convert_record(clang_type, const)

        if kind in _BUILTIN_KINDS:
            name = clang_type.get_canonical().spelling
            return BuiltinType(re.sub(r"\bconst\s+|\s+const\b", "", name).strip(), const=const)

        return UnknownType(clang_type.spelling, const=const)

    def _convert_record(self, clang_type, const: bool) -> TypeShape:
        decl = clang_type.get_declaration()
        num_args = clang_type.get_num_template_arguments()
        if num_args > 0:
            args = tuple(
                self.convert_type(clang_type.get_template_argument_type(i))
                for i in range(num_args)
            )
            return TemplateType(self._qualified_name(decl), args, const=const)

        if decl.kind in (CursorKind.CLASS_DECL, CursorKind.STRUCT_DECL):
            return ClassType(self._qualified_name(decl), const=const)
        if decl.kind == CursorKind.ENUM_DECL:
            return EnumType(self._qualified_name(decl), const=const)

        canonical = clang_type.get_canonical()
        if canonical.kind not in (TypeKind.UNEXPOSED, TypeKind.INVALID) and canonical != clang_type:
            return self._with_const(self.convert_type(canonical), const)
        return UnknownType(clang_type.spelling, const=const)

    @staticmethod
    def _with_const(shape: TypeShape, const: bool) -> TypeShape:
        if const and not shape.const:
            return replace(shape, const=True)
        return shape

    # -------------------------------------------------------------------------
    # Helpers
    # -------------------------------------------------------------------------

    @staticmethod
    def _qualified_name(cursor: Cursor) -> str:
        """Return the ``::`` separated name of a declaration."""
        parts = []
        current = cursor
        while current is not None and current.kind != CursorKind.TRANSLATION_UNIT:
            if current.spelling:
                parts.append(current.spelling)
            current = current.semantic_parent
        return "::".join(reversed(parts))

    @staticmethod
    def _get_access(cursor: Cursor) -> Access:
        specifier = cursor.access_specifier
        if specifier == AccessSpecifier.PROTECTED:
            return Access.PROTECTED
        if specifier == AccessSpecifier.PRIVATE:
            return Access.PRIVATE
        return Access.PUBLIC

    @staticmethod
    def _get_default_value(cursor: Cursor) -> Optional[str]:
        tokens = [t.spelling for t in cursor.get_tokens()]
        if "=" not in tokens:
            return None
        value = tokens[tokens.index("=") + 1:]
        return " ".join(value) if value else None

    @staticmethod
    def _get_location(cursor: Cursor) -> Optional[SourceLocation]:
        loc = cursor.location
        if loc.file is None:
            return None
        return SourceLocation(
            file=Path(loc.file.name),
            line=loc.line,
            column=loc.column,
        )

    @staticmethod
    def _get_doc(cursor: Cursor) -> Optional[str]:
        doc = cursor.brief_comment
        return doc.strip() if doc else None


if HAS_CLANG:
    _BUILTIN_KINDS = frozenset({
        TypeKind.VOID, TypeKind.BOOL, TypeKind.CHAR_U, TypeKind.UCHAR,
        TypeKind.CHAR16, TypeKind.CHAR32, TypeKind.USHORT, TypeKind.UINT,
        TypeKind.ULONG, TypeKind.ULONGLONG, TypeKind.CHAR_S, TypeKind.SCHAR,
        TypeKind.WCHAR, TypeKind.SHORT, TypeKind.INT, TypeKind.LONG,
        TypeKind.LONGLONG, TypeKind.FLOAT, TypeKind.DOUBLE,
        TypeKind.LONGDOUBLE, TypeKind.NULLPTR,
    })


# =============================================================================
# File discovery and parallel parsing
# =============================================================================

def find_headers(source_dir: Path, checker: IncludedChecker) -> list[Path]:
    """
    Find all headers under ``source_dir`` accepted by the header rules.

    Paths are matched relative to ``source_dir`` in POSIX form.
    """
    headers = []
    for path in source_dir.rglob("*"):
        if not path.is_file():
            continue
        rel = path.relative_to(source_dir).as_posix()
        if checker.is_included(rel):
            headers.append(path)
    return sorted(headers)


def _parse_one(request: ParseRequest, config: CompileConfig, root: Optional[Path]) -> TranslationUnit:
    # Each worker owns its libclang index; nothing mutable is shared
    return ClangParser(config, root).parse(request.path)


def parse_files(
    requests: Sequence[ParseRequest],
    config: CompileConfig,
    root: Optional[Path] = None,
    workers: Optional[int] = None,
) -> list[TranslationUnit]:
    """
    Parse translation units in parallel.

    Args:
        requests: Files to parse, in the order results should be returned
        config: Read-only compile configuration shared by all workers
        root: Source root used to prune declarations from other files
        workers: Pool size, defaults to the number of available CPUs

    Returns:
        Translation units in request order; skipped optional files are omitted

    Raises:
        ParseError: if a required file is missing or fails to parse
    """
    pending = []
    for request in requests:
        if request.path.is_file():
            pending.append(request)
        elif request.required:
            raise ParseError(request.path, "file not found")
        else:
            logger.warning(f"Optional header not found, skipping: {request.path}")

    max_workers = workers or os.cpu_count() or 1
    units = []
    with ThreadPoolExecutor(max_workers=max_workers) as pool:
        futures = [pool.submit(_parse_one, r, config, root) for r in pending]
        for request, future in zip(pending, futures):
            try:
                units.append(future.result())
            except ParseError as e:
                if request.required:
                    raise
                logger.warning(f"Optional header failed to parse, skipping: {e}")
            logger.debug(f"Parsed {request.path}")
    return units
