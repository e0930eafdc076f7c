"""
Contract extraction and comparison - data model, extractor, differ.
"""

from contractdiff.contract.builder import ContractBuilder, ContractSource, ExtractorOptions, sort_contract
from contractdiff.contract.differ import Differ, DifferOptions
from contractdiff.contract.extractor import Extractor
from contractdiff.contract.models import (
    AddedItem,
    BreakingChange,
    ConstantContract,
    Contract,
    ContractDiff,
    DiffSummary,
    FieldContract,
    FunctionContract,
    InterfaceContract,
    MethodContract,
    ModifiedItem,
    ParameterInfo,
    PositionInfo,
    ReceiverInfo,
    TypeContract,
    VariableContract,
    load_contract,
    load_diff,
)

__all__ = [
    "AddedItem",
    "BreakingChange",
    "ConstantContract",
    "Contract",
    "ContractBuilder",
    "ContractDiff",
    "ContractSource",
    "Differ",
    "DifferOptions",
    "DiffSummary",
    "Extractor",
    "ExtractorOptions",
    "FieldContract",
    "FunctionContract",
    "InterfaceContract",
    "MethodContract",
    "ModifiedItem",
    "ParameterInfo",
    "PositionInfo",
    "ReceiverInfo",
    "TypeContract",
    "VariableContract",
    "load_contract",
    "load_diff",
    "sort_contract",
]
