"""
Emitter passes for the three generated layers.
"""

from .base import EmitResult, EmitterPass, Printer
from .capi import GenerateCApiPass
from .pinvoke import GeneratePInvokePass
from .csapi import GenerateCSApiPass

__all__ = [
    "EmitResult",
    "EmitterPass",
    "Printer",
    "GenerateCApiPass",
    "GeneratePInvokePass",
    "GenerateCSApiPass",
]
