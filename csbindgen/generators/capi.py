"""
Native shim emitter: ``extern "C"`` functions over the C++ API.
"""

from __future__ import annotations

from pathlib import Path
from typing import Optional

from ..context import GeneratorContext
from ..meta import EntityKind, MetaEntity
from ..types.registry import ExprDirection
from ..types.shapes import spelling
from .api import (
    Callback,
    ClassApi,
    FunctionRole,
    ShimFunction,
    build_class_api,
    is_emitted_class,
)
from .base import EmitterPass, Printer


SUPPORT_HEADER = "CSharp.h"


def _call_args(function: ShimFunction) -> str:
    return ", ".join(p.mapping.expression(ExprDirection.SHIM_TO_NATIVE, p.name) for p in function.params)


def shim_signature(api: ClassApi, function: ShimFunction) -> str:
    """``<return> <name>(<params>)`` of a shim function."""
    if function.role == FunctionRole.CONSTRUCTOR:
        result = f"{api.native}*"
    elif function.result is not None and function.role != FunctionRole.FIELD_SET:
        result = function.result.shim
    else:
        result = "void"

    params = []
    if function.instance:
        params.append(f"{api.native}* instance")
    params.extend(f"{p.mapping.shim} {p.name}" for p in function.params)
    return f"{result} {function.name}({', '.join(params)})"


class GenerateCApiPass(EmitterPass):
    """
    Render one ``<Class>.cpp`` per bound class and globals container.

    Besides the wrapped members each file holds the class's destructor
    function and, for classes with a wrapper, the wrapper class itself with
    its callback setters.
    """

    target = "cpp"

    def output_dir(self, ctx: GeneratorContext) -> Path:
        return ctx.output_cpp

    def emit(self, ctx: GeneratorContext, entity: MetaEntity) -> bool:
        if entity.kind == EntityKind.NAMESPACE:
            return True
        if not is_emitted_class(ctx, entity):
            return False

        api = build_class_api(ctx, entity)
        printer = Printer()
        if api.wrapper:
            self._print_wrapper(ctx, printer, api)
        for function in api.functions:
            printer.blank()
            self._print_function(ctx, printer, api, function)

        content = self.render(
            "native_class.cpp.j2",
            support_header=SUPPORT_HEADER,
            includes=self._includes(ctx, entity),
            body=printer.get(),
        )
        self.add_file(f"{api.managed}.cpp", content)
        # Nested classes are emitted as separate files
        return True

    def finish(self, ctx: GeneratorContext) -> None:
        self.add_file(SUPPORT_HEADER, self.render("CSharp.h.j2"))

    # -------------------------------------------------------------------------
    # Functions
    # -------------------------------------------------------------------------

    def _print_function(
        self,
        ctx: GeneratorContext,
        printer: Printer,
        api: ClassApi,
        function: ShimFunction,
    ) -> None:
        with printer.block(f'extern "C" CSBIND_EXPORT {shim_signature(api, function)}'):
            role = function.role
            if role == FunctionRole.CONSTRUCTOR:
                created = f"new {api.wrapper or api.native}({_call_args(function)})"
                if api.refcounted:
                    created = f"csbind::AddRef({created})"
                printer.line(f"return {created};")
            elif role == FunctionRole.DESTRUCTOR:
                printer.line("instance->ReleaseRef();" if api.refcounted else "delete instance;")
            elif role in (FunctionRole.METHOD, FunctionRole.BASE_CALL):
                call = f"{self._callee(ctx, api, function)}({_call_args(function)})"
                self._print_return(printer, function, call)
            elif role == FunctionRole.FIELD_GET:
                self._print_return(printer, function, self._member(api, function.entity))
            elif role == FunctionRole.FIELD_SET:
                param = function.params[0]
                value = param.mapping.expression(ExprDirection.SHIM_TO_NATIVE, param.name)
                printer.line(f"{self._member(api, function.entity)} = {value};")
            elif role == FunctionRole.CALLBACK_SETTER:
                printer.line(f"static_cast<{api.wrapper}*>(instance)->{function.callback.member} = fn;")
            else:
                raise ValueError(f"Unhandled function role: {role}")

    @staticmethod
    def _print_return(printer: Printer, function: ShimFunction, expression: str) -> None:
        if function.result is None:
            printer.line(f"{expression};")
        else:
            printer.line(f"return {function.result.expression(ExprDirection.NATIVE_TO_SHIM, expression)};")

    @staticmethod
    def _callee(ctx: GeneratorContext, api: ClassApi, function: ShimFunction) -> str:
        entity = function.entity
        if function.role == FunctionRole.BASE_CALL:
            return f"instance->{api.native}::{entity.name}"
        if entity.kind == EntityKind.FUNCTION:
            return entity.symbol_name
        via_wrapper = entity.annotations.get("via_wrapper")
        if not function.instance:
            return f"{api.wrapper}::{entity.name}" if via_wrapper else f"{api.native}::{entity.name}"
        if "inherited_from" in entity.annotations:
            origin = ctx.ast[entity.annotations["inherited_from"]]
            owner = ctx.ast.parent_of(origin)
            return f"static_cast<{owner.symbol_name}*>(instance)->{entity.name}"
        if via_wrapper:
            return f"static_cast<{api.wrapper}*>(instance)->{entity.name}"
        return f"instance->{entity.name}"

    @staticmethod
    def _member(api: ClassApi, entity: MetaEntity) -> str:
        via_wrapper = entity.annotations.get("via_wrapper")
        if entity.kind == EntityKind.VARIABLE or entity.is_static:
            return f"{api.wrapper}::{entity.name}" if via_wrapper else entity.symbol_name
        if via_wrapper:
            return f"static_cast<{api.wrapper}*>(instance)->{entity.name}"
        return f"instance->{entity.name}"

    # -------------------------------------------------------------------------
    # Wrapper class
    # -------------------------------------------------------------------------

    def _print_wrapper(self, ctx: GeneratorContext, printer: Printer, api: ClassApi) -> None:
        for callback in api.callbacks:
            printer.line(self._callback_typedef(callback))
        printer.blank()

        with printer.block(f"class {api.wrapper} : public {api.native}", suffix=";"):
            printer.dedent()
            printer.line("public:")
            printer.indent()
            printer.line(f"using {api.native}::{api.entity.name};")
            for name in api.protected_names:
                printer.line(f"using {api.native}::{name};")

            if api.callbacks:
                printer.blank()
                for callback in api.callbacks:
                    printer.line(f"{callback.typedef} {callback.member} = nullptr;")

            for callback in api.callbacks:
                printer.blank()
                self._print_override(ctx, printer, api, callback)

    @staticmethod
    def _callback_typedef(callback: Callback) -> str:
        result = callback.result.shim if callback.result is not None else "void"
        params = ["void* instance"] + [f"{p.mapping.shim} {p.name}" for p in callback.params]
        return f"typedef {result} (*{callback.typedef})({', '.join(params)});"

    @staticmethod
    def _print_override(ctx: GeneratorContext, printer: Printer, api: ClassApi, callback: Callback) -> None:
        method = callback.method
        params = ", ".join(f"{spelling(p.shape)} {p.name}" for p in callback.params)
        qualifier = " const" if method.is_const else ""
        header = f"{spelling(method.result_type)} {method.name}({params}){qualifier} override"

        this = f"csbind::InstancePtr(static_cast<const {api.native}*>(this))"
        forwarded = ", ".join(
            [this] + [p.mapping.expression(ExprDirection.NATIVE_TO_CALLBACK, p.name) for p in callback.params]
        )
        names = ", ".join(p.name for p in callback.params)
        with printer.block(header):
            printer.line(f"if ({callback.member} != nullptr)")
            printer.indent()
            invoke = f"{callback.member}({forwarded})"
            if callback.result is None:
                printer.line(f"{{ {invoke}; return; }}")
            else:
                printer.line(f"return {callback.result.expression(ExprDirection.SHIM_TO_NATIVE, invoke)};")
            printer.dedent()
            printer.line(f"return {api.native}::{method.name}({names});")

    # -------------------------------------------------------------------------
    # Includes
    # -------------------------------------------------------------------------

    @staticmethod
    def _includes(ctx: GeneratorContext, cls: MetaEntity) -> list[str]:
        entities = [cls] + [c for c in ctx.ast.children_of(cls) if c.included]
        includes = set()
        for entity in entities:
            location = entity.source.location if entity.source is not None else None
            if location is None:
                continue
            includes.add(_include_path(ctx.source_dir, location.file))
        return sorted(includes)


def _include_path(source_dir: Optional[Path], file: Path) -> str:
    file = Path(file)
    if source_dir is not None:
        try:
            return file.resolve().relative_to(source_dir).as_posix()
        except ValueError:
            pass
    return file.name
