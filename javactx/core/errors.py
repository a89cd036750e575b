"""
Error taxonomy shared by the analysis components and the request bridge.

Every error carries a ``kind`` (stable string used on the wire), a human
readable message and a ``context`` dictionary with whatever the caller needs
to retry with corrected input (searched scopes, file paths, original params).
"""
from typing import Any, Dict, Optional, Type


class AnalysisError(Exception):
    """Base class for all structured engine errors."""

    kind = "AnalysisError"

    def __init__(self, message: str, context: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.context: Dict[str, Any] = dict(context or {})

    def to_dict(self) -> Dict[str, Any]:
        return {"kind": self.kind, "message": self.message, "context": self.context}

    def with_context(self, **extra: Any) -> "AnalysisError":
        """Merge extra diagnostic keys without overwriting existing ones."""
        for key, value in extra.items():
            self.context.setdefault(key, value)
        return self


class ParseError(AnalysisError):
    """A source file could not be read or is not syntactically valid."""

    kind = "ParseError"

    def __init__(self, file_path: str, message: str, context: Optional[Dict[str, Any]] = None):
        super().__init__(message, {"filePath": file_path, **(context or {})})
        self.file_path = file_path


class SymbolNotFound(AnalysisError):
    kind = "SymbolNotFound"


class ClassNotFound(AnalysisError):
    kind = "ClassNotFound"


class UnparsableMethod(AnalysisError):
    kind = "UnparsableMethod"


class InvalidRequest(AnalysisError):
    """Unknown operation or parameters that fail validation."""

    kind = "InvalidRequest"


class EngineFailure(AnalysisError):
    """Unexpected exception inside an operation; the engine keeps serving."""

    kind = "EngineFailure"


class EngineStartTimeout(AnalysisError):
    kind = "EngineStartTimeout"


class RequestTimeout(AnalysisError):
    kind = "RequestTimeout"


class EngineTerminated(AnalysisError):
    kind = "EngineTerminated"


ERROR_TYPES: Dict[str, Type[AnalysisError]] = {
    cls.kind: cls
    for cls in (
        SymbolNotFound,
        ClassNotFound,
        UnparsableMethod,
        InvalidRequest,
        EngineFailure,
        EngineStartTimeout,
        RequestTimeout,
        EngineTerminated,
    )
}


def error_from_dict(payload: Dict[str, Any]) -> AnalysisError:
    """Rebuild an error received over the wire."""
    kind = payload.get("kind") or "AnalysisError"
    message = payload.get("message") or "Unknown error"
    context = payload.get("context") or {}

    if kind == ParseError.kind:
        error = ParseError(context.get("filePath", ""), message, context)
    else:
        error = ERROR_TYPES.get(kind, AnalysisError)(message, context)
    if type(error) is AnalysisError:
        # Preserve kinds this version does not know about.
        error.kind = kind
    return error
