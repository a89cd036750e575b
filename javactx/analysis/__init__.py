"""
Analysis components that answer structural questions over the source index.
"""

from .symbol_resolver import SymbolResolver
from .type_graph import TypeGraphWalker
from .call_chain import CallChainTracer
from .branch_analyzer import BranchAnalyzer
from .function_definition import FunctionDefinitionFinder
from .mockable_dependencies import MockableDependencyFinder

__all__ = [
    "SymbolResolver",
    "TypeGraphWalker",
    "CallChainTracer",
    "BranchAnalyzer",
    "FunctionDefinitionFinder",
    "MockableDependencyFinder"
]
