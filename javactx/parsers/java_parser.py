"""
Java-specific parser for extracting declaration records.
"""
import re
from typing import List, Optional, Set, Tuple

import tree_sitter_java
from tree_sitter import Language, Node, Parser, Tree

from javactx.core.entities import Annotation, Declaration, DeclarationKind
from javactx.core.source_file import SourceFile
from javactx.core.type_text import erase
from .base_parser import BaseParser


TYPE_DECLARATIONS = {
    "class_declaration": DeclarationKind.CLASS,
    "interface_declaration": DeclarationKind.INTERFACE,
    "enum_declaration": DeclarationKind.ENUM,
    "record_declaration": DeclarationKind.RECORD,
    "annotation_type_declaration": DeclarationKind.INTERFACE,
}

FIELD_DECLARATIONS = {"field_declaration", "constant_declaration"}

CALLABLE_DECLARATIONS = {
    "method_declaration": DeclarationKind.METHOD,
    "constructor_declaration": DeclarationKind.CONSTRUCTOR,
    "compact_constructor_declaration": DeclarationKind.CONSTRUCTOR,
}

ANNOTATION_NODES = {"marker_annotation", "annotation"}

COMMENT_NODES = {"block_comment", "comment"}

_IMPORT_RE = re.compile(r"^import\s+(static\s+)?", re.DOTALL)


class JavaParser(BaseParser):
    """
    Parser for Java source code.
    """

    def __init__(self):
        """Initialize the Java parser."""
        super().__init__("java", "17")

    def initialize_parser(self) -> None:
        """Initialize the tree-sitter parser with the Java grammar."""
        self.language = Language(tree_sitter_java.language())
        self.parser = Parser(self.language)
        self.logger.debug("Java tree-sitter parser initialized")

    def process_file(self, file_path: str, source_code: bytes, tree: Tree) -> SourceFile:
        """
        Extract package, imports and all declarations of a parsed Java file.

        Args:
            file_path: Absolute path to the Java file
            source_code: Raw source code bytes
            tree: Parsed tree-sitter tree
        """
        unit = SourceFile(path=file_path, package="", source=source_code, tree=tree)

        for child in tree.root_node.named_children:
            if child.type == "package_declaration":
                unit.package = self._package_name(child, source_code)
            elif child.type == "import_declaration":
                self._process_import(child, unit)
            elif child.type in TYPE_DECLARATIONS:
                self._process_type_declaration(child, unit, None)

        self.logger.debug(f"Extracted {len(unit.declarations)} declarations from {file_path}")
        return unit

    def _package_name(self, node: Node, source_code: bytes) -> str:
        for child in node.named_children:
            if child.type in ("scoped_identifier", "identifier"):
                return "".join(self.extract_node_text(child, source_code).split())
        return ""

    def _process_import(self, node: Node, unit: SourceFile) -> None:
        text = unit.text(node).strip().rstrip(";")
        match = _IMPORT_RE.match(text)
        if match is None:
            return
        is_static = bool(match.group(1))
        name = "".join(text[match.end():].split())
        if is_static:
            # import static a.b.Type.member -> the owning type is still a type import
            name = name.rsplit(".", 1)[0]
            if name not in unit.imports:
                unit.imports.append(name)
        elif name.endswith(".*"):
            unit.wildcard_imports.append(name[:-2])
        else:
            unit.imports.append(name)

    def _process_type_declaration(self, node: Node, unit: SourceFile, outer: Optional[Declaration]) -> None:
        """Process a class, interface, enum or record declaration and its members."""
        name_node = node.child_by_field_name("name")
        if name_node is None:
            return
        name = unit.text(name_node)
        kind = TYPE_DECLARATIONS[node.type]

        if outer is not None:
            qualified_name = f"{outer.qualified_name}.{name}"
        elif unit.package:
            qualified_name = f"{unit.package}.{name}"
        else:
            qualified_name = name

        keywords, annotations = self._modifiers(node, unit)
        superclass, interfaces = self._supertypes(node, unit)
        in_interface = outer is not None and outer.kind == DeclarationKind.INTERFACE

        declaration = Declaration(
            kind=kind,
            name=name,
            qualified_name=qualified_name,
            file_path=unit.path,
            start_line=node.start_point[0] + 1,
            end_line=node.end_point[0] + 1,
            package=unit.package,
            owner=outer.qualified_name if outer else None,
            visibility=self._visibility(keywords, "public" if in_interface else "default"),
            is_static="static" in keywords or (outer is not None and kind != DeclarationKind.CLASS),
            is_final="final" in keywords or kind in (DeclarationKind.ENUM, DeclarationKind.RECORD),
            is_abstract="abstract" in keywords or kind == DeclarationKind.INTERFACE,
            annotations=annotations,
            superclass=superclass,
            interfaces=interfaces,
        )
        if not unit.add(declaration, node):
            self.logger.warning(f"Duplicate type {qualified_name} in {unit.path}, keeping the first")
            return

        if kind == DeclarationKind.RECORD:
            self._process_record_components(node, unit, declaration)

        body = node.child_by_field_name("body")
        if body is None:
            return
        for member in self._members(body):
            if member.type in FIELD_DECLARATIONS:
                self._process_field_declaration(member, unit, declaration)
            elif member.type in CALLABLE_DECLARATIONS:
                self._process_callable_declaration(member, unit, declaration)
            elif member.type == "enum_constant":
                self._process_enum_constant(member, unit, declaration)
            elif member.type in TYPE_DECLARATIONS:
                self._process_type_declaration(member, unit, declaration)

    def _members(self, body: Node) -> List[Node]:
        members = []
        for child in body.named_children:
            if child.type == "enum_body_declarations":
                members.extend(child.named_children)
            else:
                members.append(child)
        return members

    def _supertypes(self, node: Node, unit: SourceFile) -> Tuple[Optional[str], List[str]]:
        superclass = None
        interfaces: List[str] = []
        for child in node.children:
            if child.type == "superclass":
                types = child.named_children
                if types:
                    superclass = self._compact(unit.text(types[-1]))
            elif child.type in ("super_interfaces", "extends_interfaces"):
                for type_list in child.named_children:
                    if type_list.type == "type_list":
                        interfaces.extend(self._compact(unit.text(t)) for t in type_list.named_children)
                    else:
                        interfaces.append(self._compact(unit.text(type_list)))
        return superclass, interfaces

    def _process_field_declaration(self, node: Node, unit: SourceFile, owner: Declaration) -> None:
        """Process a field (or interface constant) declaration."""
        type_node = node.child_by_field_name("type")
        if type_node is None:
            return
        base_type = self._compact(unit.text(type_node))
        keywords, annotations = self._modifiers(node, unit)
        in_interface = owner.kind == DeclarationKind.INTERFACE

        for declarator in node.children_by_field_name("declarator"):
            name_node = declarator.child_by_field_name("name")
            if name_node is None:
                continue
            field_name = unit.text(name_node)
            dimensions = declarator.child_by_field_name("dimensions")
            field_type = base_type + (self._compact(unit.text(dimensions)) if dimensions else "")

            declaration = Declaration(
                kind=DeclarationKind.FIELD,
                name=field_name,
                qualified_name=f"{owner.qualified_name}.{field_name}",
                file_path=unit.path,
                start_line=declarator.start_point[0] + 1,
                end_line=node.end_point[0] + 1,
                package=unit.package,
                owner=owner.qualified_name,
                visibility=self._visibility(keywords, "public" if in_interface else "default"),
                is_static="static" in keywords or in_interface,
                is_final="final" in keywords or in_interface,
                annotations=annotations,
                type_text=field_type,
            )
            unit.add(declaration, declarator)

    def _process_enum_constant(self, node: Node, unit: SourceFile, owner: Declaration) -> None:
        name_node = node.child_by_field_name("name")
        if name_node is None:
            return
        name = unit.text(name_node)
        _, annotations = self._modifiers(node, unit)
        unit.add(Declaration(
            kind=DeclarationKind.FIELD,
            name=name,
            qualified_name=f"{owner.qualified_name}.{name}",
            file_path=unit.path,
            start_line=node.start_point[0] + 1,
            end_line=node.end_point[0] + 1,
            package=unit.package,
            owner=owner.qualified_name,
            visibility="public",
            is_static=True,
            is_final=True,
            annotations=annotations,
            type_text=owner.name,
        ), node)

    def _process_record_components(self, node: Node, unit: SourceFile, owner: Declaration) -> None:
        components = node.child_by_field_name("parameters")
        if components is None:
            return
        for component in components.named_children:
            parsed = self._parameter(component, unit)
            if parsed is None:
                continue
            name, type_text, annotations, _ = parsed
            unit.add(Declaration(
                kind=DeclarationKind.FIELD,
                name=name,
                qualified_name=f"{owner.qualified_name}.{name}",
                file_path=unit.path,
                start_line=component.start_point[0] + 1,
                end_line=component.end_point[0] + 1,
                package=unit.package,
                owner=owner.qualified_name,
                visibility="private",
                is_final=True,
                annotations=annotations,
                type_text=type_text,
            ), component)

    def _process_callable_declaration(self, node: Node, unit: SourceFile, owner: Declaration) -> None:
        """Process a method or constructor declaration and its parameters."""
        kind = CALLABLE_DECLARATIONS[node.type]
        name_node = node.child_by_field_name("name")
        name = unit.text(name_node) if name_node is not None else owner.name

        keywords, annotations = self._modifiers(node, unit)
        return_type = None
        if kind == DeclarationKind.METHOD:
            type_node = node.child_by_field_name("type")
            if type_node is not None:
                return_type = self._compact(unit.text(type_node))

        parameters = []
        params_node = node.child_by_field_name("parameters")
        if params_node is not None:
            for param in params_node.named_children:
                parsed = self._parameter(param, unit)
                if parsed is not None:
                    parameters.append((param, parsed))

        signature = ",".join(erase(parsed[1]) for _, parsed in parameters)
        qualified_name = f"{owner.qualified_name}.{name}({signature})"

        throws = []
        for child in node.children:
            if child.type == "throws":
                throws.extend(self._compact(unit.text(t)) for t in child.named_children)

        body = node.child_by_field_name("body")
        in_interface = owner.kind == DeclarationKind.INTERFACE
        is_static = "static" in keywords
        declaration = Declaration(
            kind=kind,
            name=name,
            qualified_name=qualified_name,
            file_path=unit.path,
            start_line=node.start_point[0] + 1,
            end_line=node.end_point[0] + 1,
            package=unit.package,
            owner=owner.qualified_name,
            visibility=self._visibility(keywords, "public" if in_interface else "default"),
            is_static=is_static,
            is_final="final" in keywords,
            is_abstract="abstract" in keywords or (in_interface and body is None and not is_static),
            annotations=annotations,
            type_text=return_type,
            parameters=[f"{qualified_name}.{parsed[0]}" for _, parsed in parameters],
            throws=throws,
            has_body=body is not None,
        )
        if not unit.add(declaration, node):
            self.logger.warning(f"Duplicate signature {qualified_name} in {unit.path}, keeping the first")
            return

        for param, (param_name, param_type, param_annotations, param_final) in parameters:
            unit.add(Declaration(
                kind=DeclarationKind.PARAMETER,
                name=param_name,
                qualified_name=f"{qualified_name}.{param_name}",
                file_path=unit.path,
                start_line=param.start_point[0] + 1,
                end_line=param.end_point[0] + 1,
                package=unit.package,
                owner=qualified_name,
                is_final=param_final,
                annotations=param_annotations,
                type_text=param_type,
            ), param)

    def _parameter(self, node: Node, unit: SourceFile) -> Optional[Tuple[str, str, List[Annotation], bool]]:
        """Return ``(name, type, annotations, is_final)`` for a formal or spread parameter."""
        keywords, annotations = self._modifiers(node, unit)
        if node.type == "formal_parameter":
            type_node = node.child_by_field_name("type")
            name_node = node.child_by_field_name("name")
            if type_node is None or name_node is None:
                return None
            type_text = self._compact(unit.text(type_node))
            dimensions = node.child_by_field_name("dimensions")
            if dimensions is not None:
                type_text += self._compact(unit.text(dimensions))
            return unit.text(name_node), type_text, annotations, "final" in keywords
        if node.type == "spread_parameter":
            type_node = None
            name = None
            for child in node.named_children:
                if child.type == "variable_declarator":
                    declarator_name = child.child_by_field_name("name")
                    name = unit.text(declarator_name) if declarator_name is not None else None
                elif child.type != "modifiers" and type_node is None:
                    type_node = child
            if type_node is None or name is None:
                return None
            return name, self._compact(unit.text(type_node)) + "[]", annotations, "final" in keywords
        return None

    def _modifiers(self, node: Node, unit: SourceFile) -> Tuple[Set[str], List[Annotation]]:
        """Collect modifier keywords and annotations attached to a declaration."""
        keywords: Set[str] = set()
        annotations: List[Annotation] = []
        for child in node.children:
            if child.type != "modifiers":
                continue
            for modifier in child.children:
                if modifier.type in ANNOTATION_NODES:
                    annotations.append(self._annotation(modifier, unit))
                else:
                    keywords.add(modifier.type)
        return keywords, annotations

    def _annotation(self, node: Node, unit: SourceFile) -> Annotation:
        name_node = node.child_by_field_name("name")
        name = unit.text(name_node) if name_node is not None else unit.text(node).lstrip("@")
        arguments = ""
        args_node = node.child_by_field_name("arguments")
        if args_node is not None:
            arguments = " ".join(unit.text(args_node).split())
            if arguments.startswith("(") and arguments.endswith(")"):
                arguments = arguments[1:-1].strip()
        return Annotation(name=name.rsplit(".", 1)[-1], arguments=arguments)

    def _visibility(self, keywords: Set[str], default: str) -> str:
        for visibility in ("public", "protected", "private"):
            if visibility in keywords:
                return visibility
        return default

    def _compact(self, text: str) -> str:
        return " ".join(text.split())

    def javadoc(self, node: Node, unit: SourceFile) -> Optional[str]:
        """Return the cleaned Javadoc comment directly preceding a declaration."""
        previous = node.prev_sibling
        while previous is not None and previous.type in COMMENT_NODES:
            text = unit.text(previous)
            if text.startswith("/**"):
                lines = []
                for line in text[3:-2].splitlines():
                    line = line.strip()
                    if line.startswith("*"):
                        line = line[1:].strip()
                    if line:
                        lines.append(line)
                return "\n".join(lines)
            previous = previous.prev_sibling
        return None
