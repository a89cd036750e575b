"""
Operation dispatcher: validates request parameters and runs one analysis component.
"""
import json
import logging
from typing import Any, Callable, Dict, List, Optional, Tuple, Type

from pydantic import BaseModel, ConfigDict, Field, ValidationError
from pydantic.alias_generators import to_camel

from javactx.analysis import (
    BranchAnalyzer,
    CallChainTracer,
    FunctionDefinitionFinder,
    MockableDependencyFinder,
    SymbolResolver,
    TypeGraphWalker,
)
from javactx.core.config import EngineConfig
from javactx.core.errors import AnalysisError, EngineFailure, InvalidRequest
from javactx.core.source_index import SourceIndex


class OperationParams(BaseModel):
    """Request parameters arrive camelCased; snake_case is accepted too."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="ignore")


class ResolveSymbolParams(OperationParams):
    symbol_name: str = Field(min_length=1)
    context_file: str = Field(min_length=1)
    line: Optional[int] = Field(default=None, ge=1)


class TypeStructureParams(OperationParams):
    class_name: str = Field(min_length=1)
    max_depth: Optional[int] = Field(default=None, ge=1)
    include_annotations: bool = True


class CallChainParams(OperationParams):
    class_name: str = Field(min_length=1)
    method_name: str = Field(min_length=1)
    max_depth: Optional[int] = Field(default=None, ge=1)
    boundary_patterns: Optional[List[str]] = None


class BranchParams(OperationParams):
    method_source: str = Field(min_length=1)


class FunctionDefinitionParams(OperationParams):
    class_name: str = Field(min_length=1)
    method_name: str = Field(min_length=1)
    include_body: bool = True


class MockableDependencyParams(OperationParams):
    class_name: str = Field(min_length=1)


OPERATION_ALIASES = {
    "get_dto_structure": "get_type_structure",
    "build_method_call_chain": "build_call_chain",
    "find_execution_branches": "analyze_branches",
}


class AnalysisEngine:
    """
    Runs analysis operations against one project, sequentially.

    The source index is populated on the first operation that needs it.
    """

    def __init__(self, config: EngineConfig, index: Optional[SourceIndex] = None):
        """
        Initialize the engine.

        Args:
            config: Engine configuration
            index: Optional pre-built source index (mostly for tests)
        """
        self.config = config
        self.index = index or SourceIndex(config)
        self.logger = logging.getLogger(__name__)

        self.resolver = SymbolResolver(self.index)
        self.type_walker = TypeGraphWalker(self.index)
        self.call_tracer = CallChainTracer(self.index, self.resolver)
        self.branch_analyzer = BranchAnalyzer()
        self.definition_finder = FunctionDefinitionFinder(self.index)
        self.dependency_finder = MockableDependencyFinder(self.index)

        self._operations: Dict[str, Tuple[Type[OperationParams], Callable[[Any], BaseModel], bool]] = {
            "resolve_symbol": (ResolveSymbolParams, self._resolve_symbol, True),
            "get_type_structure": (TypeStructureParams, self._get_type_structure, True),
            "build_call_chain": (CallChainParams, self._build_call_chain, True),
            "analyze_branches": (BranchParams, self._analyze_branches, False),
            "get_function_definition": (FunctionDefinitionParams, self._get_function_definition, True),
            "find_mockable_dependencies": (MockableDependencyParams, self._find_mockable_dependencies, True),
        }

    @property
    def operations(self) -> List[str]:
        return sorted(self._operations) + sorted(OPERATION_ALIASES)

    def execute(self, operation: str, params: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        """
        Run one operation and return its wire-shaped result.

        Raises:
            AnalysisError: any structured error from validation or the component
        """
        name = OPERATION_ALIASES.get(operation, operation)
        if name not in self._operations:
            raise InvalidRequest(
                f"Unknown operation: {operation}",
                {"operation": operation, "supportedOperations": self.operations},
            )

        params_model, handler, needs_index = self._operations[name]
        try:
            parsed = params_model.model_validate(params or {})
        except ValidationError as e:
            raise InvalidRequest(
                f"Invalid parameters for {name}: {e.error_count()} error(s)",
                {"errors": json.loads(e.json(include_url=False))},
            ) from e

        if needs_index:
            self.index.ensure_indexed()
        return handler(parsed).to_wire()

    def handle(self, request: Dict[str, Any]) -> Dict[str, Any]:
        """Turn one request dictionary into one response dictionary; never raises."""
        request_id = request.get("requestId")
        operation = request.get("operation")
        params = request.get("params") or {}

        try:
            if not isinstance(operation, str) or not isinstance(params, dict):
                raise InvalidRequest("Request needs a string 'operation' and an object 'params'")
            data = self.execute(operation, params)
        except AnalysisError as e:
            e.with_context(operation=operation, params=params)
            self.logger.warning(f"Request {request_id} ({operation}) failed: {e.kind}: {e.message}")
            return self._response(request_id, error=e.to_dict())
        except Exception as e:
            self.logger.exception(f"Unexpected error while handling request {request_id} ({operation})")
            failure = EngineFailure(
                f"Unexpected error in {operation}: {e}",
                {"operation": operation, "params": params, "exceptionType": type(e).__name__},
            )
            return self._response(request_id, error=failure.to_dict())

        self.logger.debug(f"Request {request_id} ({operation}) succeeded")
        return self._response(request_id, data=data)

    def handle_line(self, line: str) -> str:
        """Decode one JSON request line and encode the response line."""
        try:
            request = json.loads(line)
        except ValueError as e:
            self.logger.warning(f"Malformed request line: {e}")
            error = InvalidRequest(f"Malformed request: {e}", {"line": line[:200]})
            return json.dumps(self._response(None, error=error.to_dict()))
        if not isinstance(request, dict):
            error = InvalidRequest("Request must be a JSON object", {"line": line[:200]})
            return json.dumps(self._response(None, error=error.to_dict()))
        return json.dumps(self.handle(request), default=str)

    def _response(self, request_id, data=None, error=None) -> Dict[str, Any]:
        return {"requestId": request_id, "success": error is None, "data": data, "error": error}

    def _resolve_symbol(self, params: ResolveSymbolParams):
        return self.resolver.resolve_symbol(params.symbol_name, params.context_file, params.line)

    def _get_type_structure(self, params: TypeStructureParams):
        return self.type_walker.expand_type(params.class_name, params.max_depth, params.include_annotations)

    def _build_call_chain(self, params: CallChainParams):
        return self.call_tracer.trace_calls(
            params.class_name, params.method_name, params.max_depth, params.boundary_patterns
        )

    def _analyze_branches(self, params: BranchParams):
        return self.branch_analyzer.analyze_branches(params.method_source)

    def _get_function_definition(self, params: FunctionDefinitionParams):
        return self.definition_finder.get_function_definition(
            params.class_name, params.method_name, params.include_body
        )

    def _find_mockable_dependencies(self, params: MockableDependencyParams):
        return self.dependency_finder.find_mockable_dependencies(params.class_name)
