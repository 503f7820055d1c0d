"""
Managed API emitter: idiomatic C# classes over the import layer.
"""

from __future__ import annotations

import re
from contextlib import ExitStack
from pathlib import Path
from typing import Optional

from ..context import GeneratorContext
from ..meta import EntityKind, MetaEntity
from ..naming import ensure_not_keyword, sanitize
from ..passes.utils import ancestors, managed_path, primary_base
from ..types.registry import ExprDirection, TypeMapping
from ..types.shapes import EnumType, ReferenceType, TypeShape, strip_const
from .api import (
    ClassApi,
    FunctionRole,
    ShimFunction,
    ShimParam,
    build_class_api,
    is_emitted_class,
)
from .base import EmitterPass, Printer
from .csharp import new_printer, open_outer_scopes


# =============================================================================
# Default Values
# =============================================================================

_NUMERIC = {"sbyte", "byte", "short", "ushort", "int", "uint", "long", "ulong", "float", "double"}
_NUMBER = re.compile(r"^([-+]?)(\d+\.?\d*|\.\d+)([eE][-+]?\d+)?[fFuUlL]*$")
_NULL_VALUES = ("nullptr", "NULL", "0")


def _value_shape(shape: Optional[TypeShape]) -> Optional[TypeShape]:
    if isinstance(shape, ReferenceType):
        shape = shape.referee
    return strip_const(shape) if shape is not None else None


def convert_default_value(value: str, mapping: TypeMapping, shape: Optional[TypeShape] = None) -> Optional[str]:
    """
    Convert a C++ default argument to a C# constant.

    Returns:
        The C# expression, or None when the value has no constant equivalent
    """
    value = value.strip()
    managed = mapping.managed

    if managed == "bool":
        return {"true": "true", "false": "false", "0": "false", "1": "true"}.get(value)

    if managed == "string":
        if len(value) >= 2 and value.startswith('"') and value.endswith('"'):
            return value
        if value.endswith("EMPTY") or value.replace(" ", "").endswith("()"):
            return '""'
        return "null" if value in _NULL_VALUES else None

    if managed in _NUMERIC:
        # Token spelling separates a sign from its digits
        match = _NUMBER.match(value.replace(" ", ""))
        if match is None:
            return None
        sign, digits, exponent = match.groups()
        if digits.endswith("."):
            digits += "0"
        number = f"{sign}{digits}{exponent or ''}"
        if managed == "float":
            return f"{number}f"
        if managed == "double":
            return number
        if "." in digits or exponent:
            return None
        if sign == "-" and managed in ("byte", "ushort", "uint", "ulong"):
            return None
        return number

    if isinstance(_value_shape(shape), EnumType):
        name = value.split("::")[-1].strip()
        if re.fullmatch(r"[A-Za-z_]\w*", name):
            return f"{managed}.{ensure_not_keyword(name)}"
        return None

    if managed == "IntPtr":
        return "default(IntPtr)" if value in _NULL_VALUES else None

    if mapping.pinvoke == "IntPtr":
        return "null" if value in _NULL_VALUES else None

    return None


def managed_parameters(params: tuple[ShimParam, ...], defaults: bool = True) -> str:
    """C# parameter list; only a trailing run of convertible defaults is kept."""
    converted: list[Optional[str]] = [None] * len(params)
    if defaults:
        for index in reversed(range(len(params))):
            param = params[index]
            if param.default is None:
                break
            value = convert_default_value(param.default, param.mapping, param.shape)
            if value is None:
                break
            converted[index] = value

    result = []
    for param, default in zip(params, converted):
        text = f"{param.mapping.managed} {param.name}"
        if default is not None:
            text += f" = {default}"
        result.append(text)
    return ", ".join(result)


def _signature(name: str, function: ShimFunction) -> tuple:
    return (name, tuple(p.mapping.managed for p in function.params))


def member_name(owner: MetaEntity, entity: MetaEntity) -> str:
    name = ensure_not_keyword(sanitize(entity.cs_name))
    # A member may not share the name of its enclosing type
    if name == owner.cs_name:
        name = f"{name}_"
    return name


def managed_methods(api: ClassApi) -> list[ShimFunction]:
    """Shim methods that are exposed as managed methods."""
    return [
        f for f in api.functions
        if f.role == FunctionRole.METHOD and "property" not in f.entity.annotations
    ]


def _import_call(function: ShimFunction, first: Optional[str] = None) -> str:
    args = ["instance_"] if function.instance else []
    if first is not None:
        args.append(first)
    else:
        args.extend(p.mapping.expression(ExprDirection.MANAGED_TO_IMPORT, p.name) for p in function.params)
    return f"{function.name}({', '.join(args)})"


class GenerateCSApiPass(EmitterPass):
    """
    Render the managed wrapper API.

    Each bound class becomes a partial class deriving from its first bound
    base, implementing its interfaces and ``IDisposable``, with constructors,
    methods and properties that call the import layer. Enums and interfaces
    get a file each; ``InstanceCache.cs`` and ``NativeArray.cs`` hold the
    runtime support the wrappers rely on.
    """

    target = "cs"

    def output_dir(self, ctx: GeneratorContext) -> Path:
        return ctx.output_cs

    def emit(self, ctx: GeneratorContext, entity: MetaEntity) -> bool:
        if entity.kind == EntityKind.NAMESPACE:
            return True
        if entity.kind == EntityKind.ENUM:
            if ctx.ast.is_included_chain(entity):
                self._emit_enum(ctx, entity)
            return False
        if entity.kind == EntityKind.INTERFACE:
            self._emit_interface(ctx, entity)
            return False
        if not is_emitted_class(ctx, entity):
            return False

        api = build_class_api(ctx, entity)
        self._write(ctx, entity, f"{api.managed}.cs", "managed_file.cs.j2",
                    lambda printer: self._print_class(ctx, printer, api))
        return True

    def finish(self, ctx: GeneratorContext) -> None:
        namespace = ctx.config.generation.namespace
        self.add_file("InstanceCache.cs", self.render("InstanceCache.cs.j2", namespace=namespace))
        self.add_file("NativeArray.cs", self.render("NativeArray.cs.j2", namespace=namespace))

    def _write(self, ctx: GeneratorContext, entity: MetaEntity, name: str, template: str, body) -> None:
        printer = new_printer()
        with ExitStack() as stack:
            open_outer_scopes(ctx, printer, entity, stack)
            body(printer)
        content = self.render(template, namespace=ctx.config.generation.namespace, body=printer.get())
        self.add_file(name, content)

    # -------------------------------------------------------------------------
    # Enums and interfaces
    # -------------------------------------------------------------------------

    def _emit_enum(self, ctx: GeneratorContext, enum: MetaEntity) -> None:
        def body(printer: Printer) -> None:
            with printer.block(f"public enum {enum.cs_name}"):
                for value in ctx.ast.children_of(enum):
                    if value.kind != EntityKind.ENUM_VALUE or not value.included:
                        continue
                    name = ensure_not_keyword(sanitize(value.cs_name))
                    number = value.source.enum_value if value.source is not None else None
                    printer.line(f"{name} = {number}," if number is not None else f"{name},")

        self._write(ctx, enum, f"{managed_path(ctx.ast, enum)}.cs", "declaration.cs.j2", body)

    def _emit_interface(self, ctx: GeneratorContext, interface: MetaEntity) -> None:
        lines = self._interface_members(ctx, interface)

        def body(printer: Printer) -> None:
            with printer.block(f"public interface {interface.cs_name}"):
                for index, line in enumerate(lines):
                    if index:
                        printer.blank()
                    printer.line(line)

        self._write(ctx, interface, f"{managed_path(ctx.ast, interface)}.cs", "managed_file.cs.j2", body)

    def _interface_members(self, ctx: GeneratorContext, interface: MetaEntity) -> list[str]:
        if "interface_of" in interface.annotations:
            base = ctx.ast[interface.annotations["interface_of"]]
            return self._member_declarations(ctx, base, None)

        cls = ctx.ast[interface.annotations["signature_from"]]
        required = set(interface.annotations.get("members", []))
        lines = []
        for owner in [cls] + list(ancestors(ctx.ast, cls)):
            if is_emitted_class(ctx, owner):
                lines.extend(self._member_declarations(ctx, owner, required))
        # First declaration of each member wins
        return list(dict.fromkeys(lines))

    def _member_declarations(
        self,
        ctx: GeneratorContext,
        cls: MetaEntity,
        required: Optional[set[str]],
    ) -> list[str]:
        api = build_class_api(ctx, cls)
        lines = []
        for function in managed_methods(api):
            if not function.instance:
                continue
            name = member_name(cls, function.entity)
            if required is not None and function.entity.cs_name not in required:
                continue
            result = function.result.managed if function.result is not None else "void"
            lines.append(f"{result} {name}({managed_parameters(function.params, defaults=False)});")
        for prop in self._properties(ctx, api):
            entity, getter, setter = prop
            if entity.is_static:
                continue
            if required is not None and entity.cs_name not in required:
                continue
            accessors = "get; set;" if setter is not None else "get;"
            lines.append(f"{getter.result.managed} {member_name(cls, entity)} {{ {accessors} }}")
        return lines

    # -------------------------------------------------------------------------
    # Classes
    # -------------------------------------------------------------------------

    def _print_class(self, ctx: GeneratorContext, printer: Printer, api: ClassApi) -> None:
        entity = api.entity
        base_info = ctx.types.get_class(api.base.unique_name) if api.base is not None else None
        root = base_info is None

        bases = [] if base_info is None else [base_info.managed]
        for key in entity.annotations.get("interfaces", []):
            interface = ctx.ast.get(key)
            if interface is not None:
                bases.append(managed_path(ctx.ast, interface))
        if root and not api.static:
            bases.append("IDisposable")

        declaration = "public static partial class" if api.static else "public partial class"
        header = f"{declaration} {entity.cs_name}"
        if bases:
            header += " : " + ", ".join(bases)

        with printer.block(header):
            if not api.static:
                self._print_instance_support(printer, api, root)
                self._print_constructors(printer, api)
            if api.callbacks:
                self._print_callbacks(printer, api)

            inherited, inherited_properties = self._inherited_members(ctx, api)
            self._print_methods(printer, api, inherited)
            self._print_properties(ctx, printer, api, inherited_properties)

    def _print_instance_support(self, printer: Printer, api: ClassApi, root: bool) -> None:
        name = api.entity.cs_name
        if root:
            printer.line("internal IntPtr instance_;")
            printer.line("internal bool ownsInstance_;")
            printer.blank()

        header = f"internal {name}(IntPtr instance, bool ownsInstance)"
        if not root:
            header += " : base(instance, ownsInstance)"
        with printer.block(header):
            if root:
                printer.line("instance_ = instance;")
                printer.line("ownsInstance_ = ownsInstance;")

        printer.blank()
        hides = "" if root else "new "
        with printer.block(f"internal static {hides}{name} GetManagedInstance(IntPtr source, bool ownsInstance)"):
            printer.line("if (source == IntPtr.Zero)")
            printer.line("    return null;")
            printer.line("bool created = false;")
            printer.line(f"var result = InstanceCache.GetOrAdd<{name}>(source, ptr =>")
            with printer.block(suffix=");"):
                printer.line("created = true;")
                printer.line(f"return new {name}(ptr, ownsInstance);")
            # A second owning reference to a cached instance
            with printer.block("if (ownsInstance && !created)"):
                if api.refcounted:
                    printer.line("if (result.ownsInstance_)")
                    printer.line(f"    {api.destructor.name}(source);")
                    printer.line("else")
                    printer.line("    result.ownsInstance_ = true;")
                else:
                    printer.line("result.ownsInstance_ = true;")
            printer.line("return result;")

        printer.blank()
        with printer.block(f"internal static IntPtr GetNativeInstance({name} source)"):
            printer.line("if (source == null)")
            printer.line("    return IntPtr.Zero;")
            printer.line("return source.instance_;")

        if not root:
            return

        printer.blank()
        with printer.block(f"~{name}()"):
            printer.line("Dispose(false);")
        printer.blank()
        with printer.block("public void Dispose()"):
            printer.line("Dispose(true);")
            printer.line("GC.SuppressFinalize(this);")
        printer.blank()
        with printer.block("protected virtual void Dispose(bool disposing)"):
            printer.line("if (instance_ == IntPtr.Zero)")
            printer.line("    return;")
            printer.line("InstanceCache.Remove(instance_, this);")
            printer.line("if (ownsInstance_)")
            printer.line(f"    {api.destructor.name}(instance_);")
            printer.line("instance_ = IntPtr.Zero;")

    def _print_constructors(self, printer: Printer, api: ClassApi) -> None:
        name = api.entity.cs_name
        seen = {("IntPtr", "bool")}
        for function in api.functions:
            if function.role != FunctionRole.CONSTRUCTOR:
                continue
            signature = _signature(name, function)[1]
            if signature in seen:
                continue
            seen.add(signature)

            printer.blank()
            params = managed_parameters(function.params)
            with printer.block(f"public {name}({params}) : this({_import_call(function)}, true)"):
                printer.line(f"InstanceCache.Add<{name}>(instance_, this);")
                if api.callbacks:
                    # Only managed subclasses can override virtual methods
                    with printer.block(f"if (GetType() != typeof({name}))"):
                        printer.line("hasCallbacks_ = true;")
                        for callback in api.callbacks:
                            setter = api.callback_setter(callback)
                            printer.line(f"{setter.name}(instance_, {callback.typedef}_callback_);")

    def _print_callbacks(self, printer: Printer, api: ClassApi) -> None:
        printer.blank()
        printer.line("private bool hasCallbacks_;")
        for callback in api.callbacks:
            printer.blank()
            names = ", ".join(["instance"] + [p.name for p in callback.params])
            args = ", ".join(
                p.mapping.expression(ExprDirection.IMPORT_TO_MANAGED, p.name) for p in callback.params
            )
            call = f"GetManagedInstance(instance, false).{member_name(api.entity, callback.method)}({args})"
            printer.line(f"private static readonly {callback.typedef} {callback.typedef}_callback_ = ({names}) =>")
            with printer.block(suffix=";"):
                if callback.result is None:
                    printer.line(f"{call};")
                else:
                    printer.line(f"return {callback.result.expression(ExprDirection.MANAGED_TO_IMPORT, call)};")

    @staticmethod
    def _inherited_members(ctx: GeneratorContext, api: ClassApi) -> tuple[dict, set]:
        """Signatures (-> whether virtual) and property names of managed base classes."""
        signatures: dict[tuple, bool] = {}
        properties: set[str] = set()
        base = api.base
        while base is not None and ctx.types.is_class(base.unique_name):
            base_api = build_class_api(ctx, base)
            virtual = {c.method.unique_name for c in base_api.callbacks}
            for function in managed_methods(base_api):
                signature = _signature(member_name(base, function.entity), function)
                signatures.setdefault(signature, function.entity.unique_name in virtual)
            properties.update(
                member_name(base, c) for c in ctx.ast.children_of(base)
                if c.kind == EntityKind.PROPERTY and c.included
            )
            base = primary_base(ctx.ast, base)
        return signatures, properties

    def _print_methods(self, printer: Printer, api: ClassApi, inherited: dict) -> None:
        virtual = {c.method.unique_name for c in api.callbacks}
        seen = set()
        for function in managed_methods(api):
            entity = function.entity
            name = member_name(api.entity, entity)
            signature = _signature(name, function)
            if signature in seen:
                continue
            seen.add(signature)

            modifiers = "static " if not function.instance else ""
            is_virtual = entity.unique_name in virtual
            if signature in inherited:
                modifiers += "override " if is_virtual and inherited[signature] else "new "
            elif is_virtual:
                modifiers += "virtual "

            result = function.result.managed if function.result is not None else "void"
            printer.blank()
            with printer.block(f"public {modifiers}{result} {name}({managed_parameters(function.params)})"):
                if is_virtual:
                    base_call = api.function_for(entity.unique_name, FunctionRole.BASE_CALL)
                    with printer.block("if (hasCallbacks_)"):
                        self._print_call(printer, base_call)
                        if function.result is None:
                            printer.line("return;")
                self._print_call(printer, function)

    @staticmethod
    def _print_call(printer: Printer, function: ShimFunction) -> None:
        call = _import_call(function)
        if function.result is None:
            printer.line(f"{call};")
        else:
            printer.line(f"return {function.result.expression(ExprDirection.IMPORT_TO_MANAGED, call)};")

    # -------------------------------------------------------------------------
    # Properties
    # -------------------------------------------------------------------------

    @staticmethod
    def _properties(ctx: GeneratorContext, api: ClassApi) -> list[tuple[MetaEntity, ShimFunction, Optional[ShimFunction]]]:
        result = []
        for prop in ctx.ast.children_of(api.entity):
            if prop.kind != EntityKind.PROPERTY or not prop.included:
                continue
            if "field" in prop.annotations:
                getter = api.function_for(prop.annotations["field"], FunctionRole.FIELD_GET)
                setter = api.function_for(prop.annotations["field"], FunctionRole.FIELD_SET)
            else:
                getter = api.function_for(prop.annotations.get("getter", ""))
                setter_key = prop.annotations.get("setter")
                setter = api.function_for(setter_key) if setter_key else None
            if getter is None or getter.result is None:
                continue
            if prop.annotations.get("readonly"):
                setter = None
            result.append((prop, getter, setter))
        return result

    def _print_properties(
        self,
        ctx: GeneratorContext,
        printer: Printer,
        api: ClassApi,
        inherited: set[str],
    ) -> None:
        for prop, getter, setter in self._properties(ctx, api):
            name = member_name(api.entity, prop)
            modifiers = "static " if not getter.instance else ""
            if name in inherited:
                modifiers += "new "

            printer.blank()
            with printer.block(f"public {modifiers}{getter.result.managed} {name}"):
                with printer.block("get"):
                    self._print_call(printer, getter)
                if setter is not None:
                    param = setter.params[0]
                    value = param.mapping.expression(ExprDirection.MANAGED_TO_IMPORT, "value")
                    with printer.block("set"):
                        printer.line(f"{_import_call(setter, value)};")
