"""
Core module for javactx: declarations, configuration, errors and the source index.
"""

from .config import EngineConfig
from .entities import (
    Annotation,
    ContainerKind,
    Declaration,
    DeclarationKind,
    TypeReference
)
from .errors import (
    AnalysisError,
    ParseError,
    SymbolNotFound,
    ClassNotFound,
    UnparsableMethod,
    InvalidRequest,
    EngineFailure,
    EngineStartTimeout,
    RequestTimeout,
    EngineTerminated,
    error_from_dict
)
from .source_file import SourceFile
from .source_index import SourceIndex

__all__ = [
    "EngineConfig",
    "Annotation",
    "ContainerKind",
    "Declaration",
    "DeclarationKind",
    "TypeReference",
    "AnalysisError",
    "ParseError",
    "SymbolNotFound",
    "ClassNotFound",
    "UnparsableMethod",
    "InvalidRequest",
    "EngineFailure",
    "EngineStartTimeout",
    "RequestTimeout",
    "EngineTerminated",
    "error_from_dict",
    "SourceFile",
    "SourceIndex"
]
