"""
Meta-AST transformation passes, in pipeline order.
"""

from .base import CppApiPass, VisitStage
from .type_maps import TypeMapsPass
from .unknown_types import UnknownTypesPass
from .class_wrappers import GenerateClassWrappersPass
from .custom import CustomRulesPass
from .move_globals import MoveGlobalsPass
from .properties import ConvertToPropertiesPass
from .interfaces import ImplementInterfacesPass

__all__ = [
    "CppApiPass",
    "VisitStage",
    "TypeMapsPass",
    "UnknownTypesPass",
    "GenerateClassWrappersPass",
    "CustomRulesPass",
    "MoveGlobalsPass",
    "ConvertToPropertiesPass",
    "ImplementInterfacesPass",
]
