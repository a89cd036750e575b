"""
Call chain tracer: expands method-body call sites into a bounded call tree.
"""
import logging
from typing import List, NamedTuple, Optional, Tuple

from javactx.core.config import matches_any
from javactx.core.entities import Declaration, DeclarationKind, TypeReference
from javactx.core.errors import InvalidRequest, SymbolNotFound
from javactx.core.results import CallNode, Terminal
from javactx.core.source_file import SourceFile
from javactx.core.source_index import SourceIndex
from .symbol_resolver import SymbolResolver


class ResolvedCall(NamedTuple):
    """Receiver type and callee of one method invocation, either possibly unknown."""

    receiver: Optional[TypeReference]
    method: Optional[Declaration]


def package_of(qualified_name: str) -> str:
    return qualified_name.rsplit(".", 1)[0] if "." in qualified_name else ""


class CallChainTracer:
    """
    Traces the calls made by a method, recursively, until a depth limit,
    a cycle or a framework boundary is reached.
    """

    def __init__(self, index: SourceIndex, resolver: Optional[SymbolResolver] = None):
        """
        Initialize the tracer.

        Args:
            index: Source index to read declarations from
            resolver: Symbol resolver used for receiver variables
        """
        self.index = index
        self.config = index.config
        self.resolver = resolver or SymbolResolver(index)
        self.logger = logging.getLogger(__name__)

    def trace_calls(self, class_name: str, method_name: str, max_depth: Optional[int] = None,
                    boundary_patterns: Optional[List[str]] = None) -> CallNode:
        """
        Build the call tree of ``class_name.method_name``.

        Args:
            class_name: Qualified or simple class name
            method_name: Name of the entry method
            max_depth: Number of expandable levels; the entry method is depth 0
            boundary_patterns: Package globs where expansion stops

        Raises:
            ClassNotFound: if the class is not indexed
            SymbolNotFound: if the class has no such method
        """
        if max_depth is None:
            max_depth = self.config.max_call_depth
        if max_depth < 1:
            raise InvalidRequest(f"maxDepth must be at least 1, got {max_depth}", {"maxDepth": max_depth})
        if boundary_patterns is None:
            boundary_patterns = self.config.boundary_patterns

        owner = self.index.find_class(class_name)
        candidates = self.index.find_methods(owner, method_name)
        if not candidates:
            raise SymbolNotFound(
                f"Method '{method_name}' not found in {owner.qualified_name}",
                {
                    "className": owner.qualified_name,
                    "methodName": method_name,
                    "availableMethods": sorted({m.name for m in self.index.methods_of(owner)}),
                },
            )
        entry = next((m for m in candidates if m.has_body), candidates[0])
        entry_owner = self.index.owner_of(entry) or owner

        root = CallNode(
            caller=None,
            callee_name=entry.name,
            callee=entry.qualified_name,
            callee_class=entry_owner.qualified_name,
            package=entry_owner.package,
            depth=0,
            line=entry.start_line,
            file_path=entry.file_path,
        )
        path = [(entry_owner.qualified_name, entry.name)]
        root.children = self._calls_of(entry, 0, max_depth, boundary_patterns, path)
        self.logger.debug(
            f"Traced {entry.qualified_name}: {sum(1 for _ in root.iter_nodes())} nodes (max depth {max_depth})"
        )
        return root

    def _calls_of(self, method: Declaration, depth: int, max_depth: int,
                  boundary_patterns: List[str], path: List[Tuple[str, str]]) -> List[CallNode]:
        node = self.index.node_of(method)
        body = node.child_by_field_name("body") if node is not None else None
        if body is None:
            return []
        unit = self.index.file_of(method)

        invocations = [n for n in self._walk(body) if n.type == "method_invocation"]
        invocations.sort(key=lambda n: (n.child_by_field_name("name") or n).start_byte)
        return [
            self._call_node(invocation, method, unit, depth + 1, max_depth, boundary_patterns, path)
            for invocation in invocations
        ]

    def _call_node(self, invocation, caller: Declaration, unit: SourceFile, depth: int, max_depth: int,
                   boundary_patterns: List[str], path: List[Tuple[str, str]]) -> CallNode:
        name = unit.text(invocation.child_by_field_name("name"))
        node = CallNode(
            caller=caller.qualified_name,
            callee_name=name,
            depth=depth,
            line=invocation.start_point[0] + 1,
            file_path=unit.path,
        )

        receiver, method = self.resolve_invocation(invocation, caller, unit)
        if receiver is None:
            node.resolved = False
            return node

        node.callee_class = receiver.qualified_name
        node.package = package_of(receiver.qualified_name)

        if method is None:
            boundary = self._boundary_type(receiver, boundary_patterns)
            if boundary is not None:
                node.callee = f"{boundary}.{name}"
                node.callee_class = boundary
                node.package = package_of(boundary)
                node.boundary_hit = True
            else:
                node.resolved = False
            return node

        owner = self.index.owner_of(method)
        owner_name = owner.qualified_name if owner else receiver.qualified_name
        node.callee = method.qualified_name
        node.callee_class = owner_name
        node.package = method.package
        node.file_path = method.file_path

        if matches_any(method.package, boundary_patterns):
            node.boundary_hit = True
            return node

        if not method.has_body and owner is not None:
            implementation = self._single_implementation(owner, method)
            if implementation is not None:
                impl_owner = self.index.owner_of(implementation)
                node.via_implementation = impl_owner.qualified_name
                node.callee = implementation.qualified_name
                node.file_path = implementation.file_path
                method, owner_name = implementation, impl_owner.qualified_name

        if not method.has_body:
            return node

        key = (owner_name, method.name)
        if key in path:
            node.terminal = Terminal.cycle(owner_name)
        elif depth >= max_depth:
            node.terminal = Terminal.depth_exceeded(owner_name)
        else:
            path.append(key)
            try:
                node.children = self._calls_of(method, depth, max_depth, boundary_patterns, path)
            finally:
                path.pop()
        return node

    def resolve_invocation(self, invocation, caller: Declaration, unit: SourceFile) -> ResolvedCall:
        """Determine the receiver type and the project callee of a ``method_invocation`` node."""
        name = unit.text(invocation.child_by_field_name("name"))
        arguments = invocation.child_by_field_name("arguments")
        arg_count = len(arguments.named_children) if arguments is not None else None

        receivers = self._receivers(invocation, caller, unit)
        for receiver in receivers:
            if receiver.declaration is None:
                continue
            method = self.index.find_method(receiver.declaration, name, arg_count)
            if method is not None:
                return ResolvedCall(receiver, method)
        return ResolvedCall(receivers[0] if receivers else None, None)

    def _receivers(self, invocation, caller: Declaration, unit: SourceFile) -> List[TypeReference]:
        enclosing = self.index.enclosing_type(caller)
        target = invocation.child_by_field_name("object")

        if target is None:
            receivers = []
            current = enclosing
            while current is not None:
                receivers.append(self._reference_to(current))
                current = self.index.owner_of(current)
            return receivers
        return self._expression_types(target, caller, unit, invocation.start_point[0] + 1)

    def _expression_types(self, target, caller: Declaration, unit: SourceFile, line: int) -> List[TypeReference]:
        """Candidate types of the receiver expression ``target``."""
        enclosing = self.index.enclosing_type(caller)

        if target.type == "this":
            return [self._reference_to(enclosing)] if enclosing else []

        if target.type == "super":
            supertypes = self.index.supertypes_of(enclosing) if enclosing else []
            if supertypes:
                return supertypes[:1]
            return [self.index.resolve_type("Object", unit.path)]

        if target.type == "identifier":
            text = unit.text(target)
            binding, _ = self.resolver.find_binding(text, unit.path, line)
            if binding is not None:
                return [self.index.resolve_type(binding.type_text, binding.file_path)]
            return self._static_receiver(text, unit)

        if target.type == "field_access":
            inner = target.child_by_field_name("object")
            field_name = target.child_by_field_name("field")
            if inner is None or field_name is None:
                return []
            qualified = []
            if inner.type != "this":
                # Outer.Inner or a fully qualified class name
                qualified = self._static_receiver("".join(unit.text(target).split()), unit)
                if qualified and qualified[0].declaration is not None:
                    return qualified
            for owner in self._expression_types(inner, caller, unit, line):
                if owner.declaration is None:
                    # fields of library types are unknown; the call goes through the owning type
                    return [owner]
                field = self._field(owner.declaration, unit.text(field_name))
                if field is not None:
                    return [self.index.resolve_type(field.type_text or "Object", field.file_path)]
            return qualified

        if target.type == "method_invocation":
            _, inner_method = self.resolve_invocation(target, caller, unit)
            if inner_method is not None and inner_method.type_text:
                return [self.index.resolve_type(inner_method.type_text, inner_method.file_path)]
            return []

        if target.type == "object_creation_expression":
            created = target.child_by_field_name("type")
            if created is not None:
                return [self.index.resolve_type(unit.text(created), unit.path)]
            return []

        if target.type == "string_literal":
            return [self.index.resolve_type("String", unit.path)]

        if target.type == "parenthesized_expression" and target.named_children:
            inner = target.named_children[0]
            if inner.type == "cast_expression":
                cast_type = inner.child_by_field_name("type")
                if cast_type is not None:
                    return [self.index.resolve_type(unit.text(cast_type), unit.path)]
        return []

    def _static_receiver(self, text: str, unit: SourceFile) -> List[TypeReference]:
        """Treat a receiver expression as a class name (static call), if it looks like one."""
        declaration = self.index.lookup(text, unit.path)
        if declaration is not None:
            return [self._reference_to(declaration)]
        simple = text.rsplit(".", 1)[-1]
        if simple[:1].isupper():
            return [self.index.resolve_type(text, unit.path)]
        return []

    def _field(self, declaration: Declaration, name: str) -> Optional[Declaration]:
        for current in [declaration] + self.index.project_ancestors(declaration):
            for field in self.index.fields_of(current):
                if field.name == name:
                    return field
        return None

    def _boundary_type(self, receiver: TypeReference, boundary_patterns: List[str]) -> Optional[str]:
        """Qualified boundary type through which an unresolved call on ``receiver`` is made, if any."""
        if receiver.declaration is None:
            if matches_any(package_of(receiver.qualified_name), boundary_patterns) \
                    or matches_any(receiver.qualified_name, boundary_patterns):
                return receiver.qualified_name
            return None
        # e.g. a project repository interface extending a framework repository
        for external in self.index.external_supertypes(receiver.declaration):
            if matches_any(package_of(external), boundary_patterns) or matches_any(external, boundary_patterns):
                return external
        return None

    def _single_implementation(self, owner: Declaration, method: Declaration) -> Optional[Declaration]:
        if owner.kind != DeclarationKind.INTERFACE and not owner.is_abstract:
            return None
        implementations = self.index.implementations_of(owner)
        if len(implementations) != 1:
            return None
        candidate = self.index.find_method(implementations[0], method.name, len(method.parameters))
        if candidate is None or not candidate.has_body:
            return None
        return candidate

    def _reference_to(self, declaration: Declaration) -> TypeReference:
        return TypeReference(
            raw=declaration.name,
            name=declaration.name,
            qualified_name=declaration.qualified_name,
            declaration=declaration,
        )

    def _walk(self, node):
        yield node
        for child in node.children:
            yield from self._walk(child)
