"""
Symbol resolver: maps an identifier in a lexical context to its declared type.
"""
import logging
from pathlib import Path
from typing import List, NamedTuple, Optional, Tuple

from javactx.core.entities import Declaration
from javactx.core.errors import SymbolNotFound
from javactx.core.results import SourceLocation, SymbolResolution
from javactx.core.source_file import SourceFile
from javactx.core.source_index import SourceIndex


class Binding(NamedTuple):
    """A name bound by a field, parameter or local variable declaration."""

    name: str
    type_text: str
    kind: str
    file_path: str
    line: int
    # Lines over which a local is visible; fields and parameters leave these at 0.
    scope_start: int = 0
    scope_end: int = 0

    @property
    def scope_size(self) -> int:
        return self.scope_end - self.scope_start

    def visible_at(self, line: int) -> bool:
        return self.line <= line <= self.scope_end


def collect_locals(node, unit: SourceFile) -> List[Binding]:
    """
    Collect local variables declared anywhere inside a method or constructor node.

    Covers local declarations, enhanced-for variables, catch parameters and
    try-with-resources resources, each with the span of its enclosing scope.
    """
    bindings: List[Binding] = []
    stack = [node]
    while stack:
        current = stack.pop()
        stack.extend(reversed(current.children))

        if current.type == "local_variable_declaration":
            type_node = current.child_by_field_name("type")
            scope = current.parent or current
            for declarator in current.children_by_field_name("declarator"):
                name_node = declarator.child_by_field_name("name")
                if name_node is None or type_node is None:
                    continue
                type_text = _declared_type(type_node, declarator, unit)
                bindings.append(_local(unit, name_node, type_text, current, scope))

        elif current.type == "enhanced_for_statement":
            type_node = current.child_by_field_name("type")
            name_node = current.child_by_field_name("name")
            if type_node is not None and name_node is not None:
                bindings.append(_local(unit, name_node, unit.text(type_node), current, current))

        elif current.type == "catch_formal_parameter":
            name_node = current.child_by_field_name("name")
            catch_type = next((c for c in current.named_children if c.type == "catch_type"), None)
            if name_node is not None and catch_type is not None:
                # multi-catch binds the first alternative
                type_text = unit.text(catch_type).split("|")[0].strip()
                bindings.append(_local(unit, name_node, type_text, current, current.parent or current))

        elif current.type == "resource":
            type_node = current.child_by_field_name("type")
            name_node = current.child_by_field_name("name")
            if type_node is not None and name_node is not None:
                scope = current.parent.parent if current.parent is not None and current.parent.parent else current
                bindings.append(_local(unit, name_node, unit.text(type_node), current, scope))

    bindings.sort(key=lambda b: b.line)
    return bindings


def _declared_type(type_node, declarator, unit: SourceFile) -> str:
    type_text = " ".join(unit.text(type_node).split())
    if type_text != "var":
        dimensions = declarator.child_by_field_name("dimensions")
        return type_text + (unit.text(dimensions) if dimensions is not None else "")
    value = declarator.child_by_field_name("value")
    if value is not None and value.type == "object_creation_expression":
        created = value.child_by_field_name("type")
        if created is not None:
            return " ".join(unit.text(created).split())
    return type_text


def _local(unit: SourceFile, name_node, type_text: str, declaration_node, scope_node) -> Binding:
    return Binding(
        name=unit.text(name_node),
        type_text=" ".join(type_text.split()),
        kind="local_variable",
        file_path=unit.path,
        line=declaration_node.start_point[0] + 1,
        scope_start=scope_node.start_point[0] + 1,
        scope_end=scope_node.end_point[0] + 1,
    )


class SymbolResolver:
    """
    Resolves identifiers to their declared type and declaration site.
    """

    def __init__(self, index: SourceIndex):
        """
        Initialize the resolver.

        Args:
            index: Source index to read declarations from
        """
        self.index = index
        self.logger = logging.getLogger(__name__)

    def resolve_symbol(self, name: str, context_file: str, line: Optional[int] = None) -> SymbolResolution:
        """
        Resolve ``name`` as seen from ``context_file`` (at ``line`` when given).

        Raises:
            SymbolNotFound: if no visible declaration binds the name
            ParseError: if the context file has to be indexed and is invalid
        """
        binding, searched = self.find_binding(name, context_file, line)
        if binding is None:
            raise SymbolNotFound(
                f"Symbol '{name}' not found in {context_file}" + (f" at line {line}" if line else ""),
                {"symbolName": name, "contextFile": context_file, "line": line, "searchedScopes": searched},
            )

        reference = self.index.resolve_type(binding.type_text, binding.file_path)
        declaration = reference.declaration
        if declaration is not None:
            package_name = declaration.package
        elif "." in reference.qualified_name:
            package_name = reference.qualified_name.rsplit(".", 1)[0]
        else:
            package_name = ""

        unit = self.index.source_file(binding.file_path)
        self.logger.debug(f"Resolved {name} -> {reference.qualified_name} ({binding.kind})")
        return SymbolResolution(
            symbol_name=name,
            resolved_type=reference.qualified_name,
            declared_type=binding.type_text,
            declaration_kind=binding.kind,
            declaration_site=SourceLocation(file=binding.file_path, line=binding.line),
            is_project_class=declaration is not None,
            package_name=package_name,
            type_file=declaration.file_path if declaration is not None else None,
            code_context=unit.snippet(binding.line) if unit is not None else "",
        )

    def find_binding(self, name: str, context_file: str,
                     line: Optional[int] = None) -> Tuple[Optional[Binding], List[str]]:
        """Return the binding for ``name`` (or None) plus the scopes that were searched."""
        path = str(Path(context_file).resolve())
        unit = self.index.source_file(path)
        if unit is None:
            self.logger.info(f"Context file {path} is not indexed yet, indexing it now")
            self.index.index_file(path)
            unit = self.index.source_file(path)

        fields_only = name.startswith("this.")
        if fields_only:
            name = name[len("this."):]

        if line is not None:
            return self._find_at_line(name, unit, line, fields_only)
        return self._find_in_file(name, unit, fields_only)

    def _find_at_line(self, name: str, unit: SourceFile, line: int,
                      fields_only: bool) -> Tuple[Optional[Binding], List[str]]:
        searched: List[str] = []
        callable_decl = self.index.enclosing_callable(unit.path, line)

        if callable_decl is not None and not fields_only:
            node = self.index.node_of(callable_decl)
            body = node.child_by_field_name("body") if node is not None else None
            if body is not None:
                searched.append(f"locals of {callable_decl.qualified_name}")
                visible = [b for b in collect_locals(body, unit) if b.name == name and b.visible_at(line)]
                if visible:
                    visible.sort(key=lambda b: (b.scope_size, -b.line))
                    return visible[0], searched

            searched.append(f"parameters of {callable_decl.qualified_name}")
            for parameter in self.index.parameters_of(callable_decl):
                if parameter.name == name:
                    return self._from_declaration(parameter, "parameter"), searched

        if callable_decl is not None:
            enclosing = self.index.enclosing_type(callable_decl)
        else:
            enclosing = self.index.enclosing_type_at(unit.path, line)

        outer_types: List[Declaration] = []
        current = enclosing
        while current is not None:
            outer_types.append(current)
            current = self.index.owner_of(current)

        for type_decl in outer_types:
            searched.append(f"fields of {type_decl.qualified_name}")
            field = self._field_named(type_decl, name)
            if field is not None:
                return self._from_declaration(field, "field"), searched

        if enclosing is not None:
            for ancestor in self.index.project_ancestors(enclosing):
                searched.append(f"fields of {ancestor.qualified_name}")
                field = self._field_named(ancestor, name)
                if field is not None:
                    return self._from_declaration(field, "field"), searched

        return None, searched

    def _find_in_file(self, name: str, unit: SourceFile,
                      fields_only: bool) -> Tuple[Optional[Binding], List[str]]:
        searched = [f"fields of {t.qualified_name}" for t in unit.types()]
        for type_decl in unit.types():
            field = self._field_named(type_decl, name)
            if field is not None:
                return self._from_declaration(field, "field"), searched
        if fields_only:
            return None, searched

        callables = [d for d in unit.declarations if d.is_callable]
        searched.append(f"parameters of methods in {unit.path}")
        for callable_decl in callables:
            for parameter in self.index.parameters_of(callable_decl):
                if parameter.name == name:
                    return self._from_declaration(parameter, "parameter"), searched

        searched.append(f"locals of methods in {unit.path}")
        for callable_decl in callables:
            node = self.index.node_of(callable_decl)
            body = node.child_by_field_name("body") if node is not None else None
            if body is None:
                continue
            for binding in collect_locals(body, unit):
                if binding.name == name:
                    return binding, searched
        return None, searched

    def _field_named(self, type_decl: Declaration, name: str) -> Optional[Declaration]:
        for field in self.index.fields_of(type_decl):
            if field.name == name:
                return field
        return None

    def _from_declaration(self, declaration: Declaration, kind: str) -> Binding:
        return Binding(
            name=declaration.name,
            type_text=declaration.type_text or "",
            kind=kind,
            file_path=declaration.file_path,
            line=declaration.start_line,
        )
