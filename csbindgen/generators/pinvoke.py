"""
Import layer emitter: ``[DllImport]`` declarations mirroring the C API.
"""

from __future__ import annotations

from contextlib import ExitStack
from pathlib import Path

from ..context import GeneratorContext
from ..meta import EntityKind, MetaEntity
from .api import ClassApi, FunctionRole, ShimFunction, build_class_api, is_emitted_class
from .base import EmitterPass, Printer
from .csharp import import_parameters, marshal_attribute, new_printer, open_outer_scopes


def import_result(api: ClassApi, function: ShimFunction) -> str:
    if function.role == FunctionRole.CONSTRUCTOR:
        return "IntPtr"
    if function.result is not None and function.role != FunctionRole.FIELD_SET:
        return function.result.pinvoke
    return "void"


class GeneratePInvokePass(EmitterPass):
    """
    Render ``<Class>.PInvoke.cs`` partial classes.

    Every shim function gets exactly one declaration with the same name and
    the same number of parameters; callback typedefs become delegates.
    """

    target = "pinvoke"

    def output_dir(self, ctx: GeneratorContext) -> Path:
        return ctx.output_cs

    def emit(self, ctx: GeneratorContext, entity: MetaEntity) -> bool:
        if entity.kind == EntityKind.NAMESPACE:
            return True
        if not is_emitted_class(ctx, entity):
            return False

        api = build_class_api(ctx, entity)
        printer = new_printer()
        with ExitStack() as stack:
            open_outer_scopes(ctx, printer, entity, stack)
            modifiers = "public static partial class" if api.static else "public partial class"
            with printer.block(f"{modifiers} {entity.cs_name}"):
                self._print_class(ctx, printer, api)

        content = self.render(
            "managed_file.cs.j2",
            namespace=ctx.config.generation.namespace,
            body=printer.get(),
        )
        self.add_file(f"{api.managed}.PInvoke.cs", content)
        return True

    def _print_class(self, ctx: GeneratorContext, printer: Printer, api: ClassApi) -> None:
        library = ctx.config.generation.library_name
        for callback in api.callbacks:
            printer.blank()
            result = callback.result.pinvoke if callback.result is not None else "void"
            printer.line("[UnmanagedFunctionPointer(CallingConvention.Cdecl)]")
            if callback.result is not None and callback.result.marshal_as:
                printer.line(marshal_attribute(callback.result, is_return=True))
            printer.line(
                f"internal delegate {result} {callback.typedef}({import_parameters(callback.params, True)});"
            )

        for function in api.functions:
            printer.blank()
            printer.line(f'[DllImport("{library}", CallingConvention = CallingConvention.Cdecl)]')
            if function.role not in (FunctionRole.FIELD_SET, FunctionRole.CONSTRUCTOR):
                if function.result is not None and function.result.marshal_as:
                    printer.line(marshal_attribute(function.result, is_return=True))
            params = import_parameters(function.params, function.instance)
            printer.line(f"internal static extern {import_result(api, function)} {function.name}({params});")
