"""
Structured results returned by the analysis components.

Each result tree is built fresh per invocation and owned by the caller.
Models serialise with camelCase keys (``model_dump(by_alias=True)``), which
is the shape the engine puts on the wire.
"""
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class ResultModel(BaseModel):
    """Base class for all wire-visible results."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    def to_wire(self) -> Dict[str, Any]:
        return self.model_dump(by_alias=True, mode="json")


class TerminalKind(str, Enum):
    CYCLE = "cycle"
    DEPTH_EXCEEDED = "depth_exceeded"
    EXTERNAL = "external"


class Terminal(ResultModel):
    """A leaf that ends a walk without further expansion."""

    kind: TerminalKind
    class_name: str

    @classmethod
    def cycle(cls, class_name: str) -> "Terminal":
        return cls(kind=TerminalKind.CYCLE, class_name=class_name)

    @classmethod
    def depth_exceeded(cls, class_name: str) -> "Terminal":
        return cls(kind=TerminalKind.DEPTH_EXCEEDED, class_name=class_name)

    @classmethod
    def external(cls, class_name: str) -> "Terminal":
        return cls(kind=TerminalKind.EXTERNAL, class_name=class_name)


class SourceLocation(ResultModel):
    file: str
    line: int


class AnnotationInfo(ResultModel):
    name: str
    arguments: str = ""
    tags: List[str] = Field(default_factory=list)


# ---------------------------------------------------------------------------
# Symbol resolution
# ---------------------------------------------------------------------------

class SymbolResolution(ResultModel):
    symbol_name: str
    resolved_type: str
    declared_type: str
    declaration_kind: str
    declaration_site: SourceLocation
    is_project_class: bool
    package_name: str = ""
    type_file: Optional[str] = None
    code_context: str = ""


# ---------------------------------------------------------------------------
# Type graph
# ---------------------------------------------------------------------------

class FieldTarget(ResultModel):
    """One walked type of a field: exactly one of ``node`` / ``terminal`` is set."""

    role: str
    type_name: str
    node: Optional["TypeNode"] = None
    terminal: Optional[Terminal] = None


class FieldNode(ResultModel):
    name: str
    type: str
    qualified_type: str
    container: str
    visibility: str = "default"
    is_final: bool = False
    line: int = 0
    annotations: Optional[List[AnnotationInfo]] = None
    targets: List[FieldTarget] = Field(default_factory=list)


class TypeNode(ResultModel):
    class_name: str
    simple_name: str
    kind: str
    file_path: str
    package_name: str
    category: str
    depth: int
    is_abstract: bool = False
    is_interface: bool = False
    annotations: Optional[List[AnnotationInfo]] = None
    lombok: Optional[List[str]] = None
    fields: List[FieldNode] = Field(default_factory=list)

    def iter_nodes(self):
        """Yield this node and every nested TypeNode, depth first."""
        yield self
        for field in self.fields:
            for target in field.targets:
                if target.node is not None:
                    yield from target.node.iter_nodes()

    def iter_terminals(self):
        for node in self.iter_nodes():
            for field in node.fields:
                for target in field.targets:
                    if target.terminal is not None:
                        yield target.terminal


FieldTarget.model_rebuild()
FieldNode.model_rebuild()
TypeNode.model_rebuild()


# ---------------------------------------------------------------------------
# Call chain
# ---------------------------------------------------------------------------

class CallNode(ResultModel):
    caller: Optional[str]
    callee_name: str
    callee: Optional[str] = None
    callee_class: Optional[str] = None
    package: str = ""
    depth: int
    line: int = 0
    file_path: Optional[str] = None
    boundary_hit: bool = False
    resolved: bool = True
    via_implementation: Optional[str] = None
    terminal: Optional[Terminal] = None
    children: List["CallNode"] = Field(default_factory=list)

    def iter_nodes(self):
        yield self
        for child in self.children:
            yield from child.iter_nodes()

    @property
    def is_expanded(self) -> bool:
        return self.terminal is None and (self.depth == 0 or bool(self.children))


CallNode.model_rebuild()


# ---------------------------------------------------------------------------
# Branch analysis
# ---------------------------------------------------------------------------

class BranchKind(str, Enum):
    CONDITIONAL = "conditional"
    LOOP = "loop"
    SWITCH_CASE = "switch-case"
    EXCEPTION_HANDLER = "exception-handler"


class Branch(ResultModel):
    start_line: int
    end_line: int
    kind: BranchKind
    statement: str
    description: str = ""
    path_count: int
    paths: List[str] = Field(default_factory=list)
    nesting_level: int
    code_snippet: str = ""


class RecommendedTest(ResultModel):
    test_method_name: str
    description: str
    scenario: str
    covers_branches: List[str] = Field(default_factory=list)


class BranchAnalysis(ResultModel):
    branches: List[Branch] = Field(default_factory=list)
    total_branches: int
    total_paths: int
    cyclomatic_complexity: int
    max_nesting_depth: int
    minimum_tests: int
    complexity_level: str
    test_recommendations: List[RecommendedTest] = Field(default_factory=list)


# ---------------------------------------------------------------------------
# Supplementary operations
# ---------------------------------------------------------------------------

class ParameterInfo(ResultModel):
    name: str
    type: str
    annotations: List[str] = Field(default_factory=list)


class MethodDefinition(ResultModel):
    name: str
    qualified_name: str
    visibility: str
    is_static: bool
    is_final: bool
    is_abstract: bool
    return_type: Optional[str]
    start_line: int
    end_line: int
    annotations: List[str] = Field(default_factory=list)
    parameters: List[ParameterInfo] = Field(default_factory=list)
    throws_exceptions: List[str] = Field(default_factory=list)
    body: Optional[str] = None
    javadoc: Optional[str] = None


class FunctionDefinition(ResultModel):
    class_name: str
    file_path: str
    class_annotations: List[str] = Field(default_factory=list)
    methods: List[MethodDefinition] = Field(default_factory=list)


class Dependency(ResultModel):
    name: str
    type: str
    injection: str
    dependency_type: str
    is_project_class: bool
    mock_strategy: str
    reason: str
    file_path: Optional[str] = None


class MockableDependencies(ResultModel):
    class_name: str
    file_path: str
    category: str
    field_dependencies: List[Dependency] = Field(default_factory=list)
    constructor_dependencies: List[Dependency] = Field(default_factory=list)
    total_dependencies: int = 0
    dependencies_to_mock: int = 0
