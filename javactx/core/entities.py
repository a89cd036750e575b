"""
Core entities for the source model index.
"""
from enum import Enum
from typing import List, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field


class DeclarationKind(str, Enum):
    """Kinds of named entities the index records."""

    CLASS = "class"
    INTERFACE = "interface"
    ENUM = "enum"
    RECORD = "record"
    FIELD = "field"
    METHOD = "method"
    CONSTRUCTOR = "constructor"
    PARAMETER = "parameter"


TYPE_KINDS = frozenset({
    DeclarationKind.CLASS,
    DeclarationKind.INTERFACE,
    DeclarationKind.ENUM,
    DeclarationKind.RECORD,
})

CALLABLE_KINDS = frozenset({DeclarationKind.METHOD, DeclarationKind.CONSTRUCTOR})


class Annotation(BaseModel):
    """An annotation as written: simple name plus raw argument text."""

    model_config = ConfigDict(frozen=True)

    name: str
    arguments: str = ""

    def __str__(self) -> str:
        if self.arguments:
            return f"@{self.name}({self.arguments})"
        return f"@{self.name}"


class Declaration(BaseModel):
    """
    A named project entity (type, field, method, constructor or parameter).

    Declarations are created once per parsed file and never mutated; the
    index replaces them wholesale when the file is parsed again.
    """

    model_config = ConfigDict(frozen=True)

    kind: DeclarationKind
    name: str
    qualified_name: str
    file_path: str
    start_line: int
    end_line: int
    package: str = ""
    owner: Optional[str] = None
    visibility: str = "default"
    is_static: bool = False
    is_final: bool = False
    is_abstract: bool = False
    annotations: List[Annotation] = Field(default_factory=list)
    # Declared type for fields/parameters, return type for methods.
    type_text: Optional[str] = None
    # Types only: raw text of extends / implements clauses.
    superclass: Optional[str] = None
    interfaces: List[str] = Field(default_factory=list)
    # Callables only: qualified names of parameters and thrown types.
    parameters: List[str] = Field(default_factory=list)
    throws: List[str] = Field(default_factory=list)
    has_body: bool = False

    def __str__(self) -> str:
        return f"{self.__class__.__name__}(kind={self.kind.value}, qualified_name={self.qualified_name})"

    def __hash__(self) -> int:
        return hash(self.qualified_name)

    def __eq__(self, other) -> bool:
        if not isinstance(other, Declaration):
            return False
        return self.qualified_name == other.qualified_name

    @property
    def is_type(self) -> bool:
        return self.kind in TYPE_KINDS

    @property
    def is_callable(self) -> bool:
        return self.kind in CALLABLE_KINDS

    def has_annotation(self, name: str) -> bool:
        return any(a.name == name for a in self.annotations)

    def contains_line(self, line: int) -> bool:
        return self.start_line <= line <= self.end_line

    @property
    def span(self) -> int:
        return self.end_line - self.start_line


class ContainerKind(str, Enum):
    """How a type reference should be walked."""

    SIMPLE = "simple"
    PRIMITIVE = "primitive"
    COLLECTION = "collection"
    MAP = "map"
    ARRAY = "array"


class TypeReference(BaseModel):
    """
    A possibly unresolved reference to a type by name.

    ``declaration`` is set only when the base type is part of the analyzed
    project. Parameterized containers carry their element (or key and value)
    references in ``arguments``.
    """

    model_config = ConfigDict(frozen=True)

    raw: str
    name: str
    qualified_name: str
    container: ContainerKind = ContainerKind.SIMPLE
    declaration: Optional[Declaration] = None
    arguments: List["TypeReference"] = Field(default_factory=list)

    @property
    def is_project_type(self) -> bool:
        return self.declaration is not None

    def walk_targets(self, role: str = "type") -> List[Tuple[str, "TypeReference"]]:
        """
        Return ``(role, reference)`` pairs a structure walk should visit.

        Containers are walked through their type arguments rather than the
        container itself; primitives yield nothing.
        """
        if self.container == ContainerKind.PRIMITIVE:
            return []
        if self.container == ContainerKind.MAP:
            return [
                pair
                for arg_role, arg in zip(("key", "value"), self.arguments)
                for pair in arg.walk_targets(arg_role)
            ]
        if self.container in (ContainerKind.COLLECTION, ContainerKind.ARRAY):
            element_role = "element" if role == "type" else role
            return [pair for arg in self.arguments[:1] for pair in arg.walk_targets(element_role)]
        return [(role, self)]


TypeReference.model_rebuild()
