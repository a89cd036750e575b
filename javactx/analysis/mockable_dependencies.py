"""
Mockable dependency finder for unit-test scaffolding.
"""
import logging
from typing import List, Optional, Tuple

from javactx.core.entities import Declaration
from javactx.core.results import Dependency, MockableDependencies
from javactx.core.source_index import SourceIndex
from javactx.core.type_text import parse_type_text
from .type_graph import TypeGraphWalker


POJO_SUFFIXES = ("DTO", "Request", "Response", "Model")


def dependency_type(type_name: str) -> str:
    """Classify a dependency by the naming conventions of its type."""
    if "Repository" in type_name or type_name.endswith("Repo"):
        return "Repository"
    if "Service" in type_name:
        return "Service"
    if type_name.startswith(("RestTemplate", "WebClient")) or "Client" in type_name or "Api" in type_name:
        return "External"
    return "Other"


def mock_strategy(type_name: str, is_project_class: bool, is_primitive: bool,
                  dep_type: str) -> Tuple[str, str]:
    """Return ``(strategy, reason)`` for one dependency."""
    if not is_project_class or is_primitive:
        return "Real", "Framework class or primitive type"
    if dep_type in ("Service", "Repository"):
        return "Mock", f"Custom {dep_type} should be mocked"
    if dep_type == "External":
        return "Mock", "External dependency should be mocked"
    if type_name.endswith(POJO_SUFFIXES):
        return "Real", "POJO/DTO - use real instance"
    return "Mock", "Custom class dependency"


class MockableDependencyFinder:
    """
    Lists the injected collaborators of a class and how a test should provide them.
    """

    def __init__(self, index: SourceIndex):
        self.index = index
        self.config = index.config
        self.logger = logging.getLogger(__name__)

    def find_mockable_dependencies(self, class_name: str) -> MockableDependencies:
        """
        Find field-injected and constructor-injected dependencies of ``class_name``.

        Raises:
            ClassNotFound: if the class is not indexed
        """
        owner = self.index.find_class(class_name)
        field_deps = [self._dependency(f, "field") for f in self._injected_fields(owner)]

        constructor = self._injection_constructor(owner)
        constructor_deps = []
        if constructor is not None:
            constructor_deps = [
                self._dependency(p, "constructor") for p in self.index.parameters_of(constructor)
            ]

        all_deps = field_deps + constructor_deps
        return MockableDependencies(
            class_name=owner.qualified_name,
            file_path=owner.file_path,
            category=TypeGraphWalker(self.index).categorize(owner),
            field_dependencies=field_deps,
            constructor_dependencies=constructor_deps,
            total_dependencies=len(all_deps),
            dependencies_to_mock=sum(1 for d in all_deps if d.mock_strategy == "Mock"),
        )

    def _injected_fields(self, owner: Declaration) -> List[Declaration]:
        required_args = owner.has_annotation("RequiredArgsConstructor")
        injected = []
        for field in self.index.fields_of(owner, include_static=False):
            if any(a.name in self.config.injection_annotations for a in field.annotations):
                injected.append(field)
            elif required_args and field.is_final:
                injected.append(field)
        return injected

    def _injection_constructor(self, owner: Declaration) -> Optional[Declaration]:
        constructors = self.index.constructors_of(owner)
        if not constructors:
            return None
        for constructor in constructors:
            if any(a.name in self.config.injection_annotations for a in constructor.annotations):
                return constructor
        return max(constructors, key=lambda c: len(c.parameters))

    def _dependency(self, declaration: Declaration, injection: str) -> Dependency:
        type_text = declaration.type_text or ""
        reference = self.index.resolve_type(type_text, declaration.file_path)
        syntax = parse_type_text(type_text)
        dep_type = dependency_type(syntax.simple_name)
        strategy, reason = mock_strategy(
            syntax.simple_name, reference.is_project_type, syntax.is_primitive, dep_type
        )
        return Dependency(
            name=declaration.name,
            type=type_text,
            injection=injection,
            dependency_type=dep_type,
            is_project_class=reference.is_project_type,
            mock_strategy=strategy,
            reason=reason,
            file_path=reference.declaration.file_path if reference.declaration is not None else None,
        )
