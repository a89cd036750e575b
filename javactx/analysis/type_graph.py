"""
Type graph walker: expands a class's field types into a bounded structure tree.
"""
import logging
from typing import List, Optional

from javactx.core.entities import Declaration, DeclarationKind, TypeReference
from javactx.core.errors import InvalidRequest
from javactx.core.results import AnnotationInfo, FieldNode, FieldTarget, Terminal, TypeNode
from javactx.core.source_index import SourceIndex


class TypeGraphWalker:
    """
    Walks declared non-static fields depth first.

    Cycles are detected against the current root-to-node path only, so a
    class may legitimately appear in several sibling branches.
    """

    def __init__(self, index: SourceIndex):
        self.index = index
        self.config = index.config
        self.logger = logging.getLogger(__name__)

    def expand_type(self, class_name: str, max_depth: Optional[int] = None,
                    include_annotations: bool = True) -> TypeNode:
        """
        Build the structure tree rooted at ``class_name``.

        Args:
            class_name: Qualified or simple class name
            max_depth: Maximum number of TypeNodes on any root-to-leaf path
            include_annotations: Attach annotations and their classification tags

        Raises:
            ClassNotFound: if the class is not indexed
            InvalidRequest: if ``max_depth`` is below 1
        """
        if max_depth is None:
            max_depth = self.config.max_type_depth
        if max_depth < 1:
            raise InvalidRequest(f"maxDepth must be at least 1, got {max_depth}", {"maxDepth": max_depth})

        root = self.index.find_class(class_name)
        self.logger.debug(f"Expanding type structure of {root.qualified_name} (max depth {max_depth})")
        return self._expand(root, 1, max_depth, [root.qualified_name], include_annotations)

    def _expand(self, declaration: Declaration, depth: int, max_depth: int,
                path: List[str], include_annotations: bool) -> TypeNode:
        fields = []
        for field in self.index.fields_of(declaration, include_static=False):
            reference = self.index.resolve_type(field.type_text or "Object", field.file_path)
            targets = [
                self._target(role, target, depth, max_depth, path, include_annotations)
                for role, target in reference.walk_targets()
            ]
            fields.append(FieldNode(
                name=field.name,
                type=field.type_text or "",
                qualified_type=reference.qualified_name,
                container=reference.container.value,
                visibility=field.visibility,
                is_final=field.is_final,
                line=field.start_line,
                annotations=self._annotations(field) if include_annotations else None,
                targets=targets,
            ))

        node = TypeNode(
            class_name=declaration.qualified_name,
            simple_name=declaration.name,
            kind=declaration.kind.value,
            file_path=declaration.file_path,
            package_name=declaration.package,
            category=self.categorize(declaration),
            depth=depth,
            is_abstract=declaration.is_abstract,
            is_interface=declaration.kind == DeclarationKind.INTERFACE,
            fields=fields,
        )
        if include_annotations:
            node.annotations = self._annotations(declaration)
            node.lombok = [a.name for a in declaration.annotations if a.name in self.config.lombok_annotations]
        return node

    def _target(self, role: str, reference: TypeReference, depth: int, max_depth: int,
                path: List[str], include_annotations: bool) -> FieldTarget:
        target = FieldTarget(role=role, type_name=reference.qualified_name)
        declaration = reference.declaration
        if declaration is None:
            target.terminal = Terminal.external(reference.qualified_name)
        elif declaration.qualified_name in path:
            target.terminal = Terminal.cycle(declaration.qualified_name)
        elif depth >= max_depth:
            target.terminal = Terminal.depth_exceeded(declaration.qualified_name)
        else:
            path.append(declaration.qualified_name)
            try:
                target.node = self._expand(declaration, depth + 1, max_depth, path, include_annotations)
            finally:
                path.pop()
        return target

    def categorize(self, declaration: Declaration) -> str:
        """Entity, DTO or Regular, from annotations and package naming."""
        if any(a.name in self.config.entity_annotations for a in declaration.annotations):
            return "Entity"
        if self.config.is_dto_package(declaration.package):
            return "DTO"
        return "Regular"

    def _annotations(self, declaration: Declaration) -> List[AnnotationInfo]:
        return [
            AnnotationInfo(name=a.name, arguments=a.arguments, tags=self.config.classify_annotation(a.name))
            for a in declaration.annotations
        ]
