"""
Source model index: the in-memory table of every parsed project declaration.
"""
import logging
import os
from collections import defaultdict
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional

from .config import EngineConfig, matches_any
from .entities import ContainerKind, Declaration, DeclarationKind, TypeReference
from .errors import ClassNotFound, ParseError
from .source_file import SourceFile
from .type_text import TypeSyntax, parse_type_text


JAVA_LANG_TYPES = frozenset({
    "Object", "String", "Integer", "Long", "Double", "Float", "Boolean",
    "Character", "Byte", "Short", "Number", "Void", "Math", "System",
    "StringBuilder", "StringBuffer", "CharSequence", "Iterable", "Comparable",
    "Runnable", "Thread", "Class", "Enum", "Record", "Exception",
    "RuntimeException", "Error", "Throwable", "IllegalArgumentException",
    "IllegalStateException", "NullPointerException",
    "UnsupportedOperationException", "IndexOutOfBoundsException",
})


class SourceIndex:
    """
    Lookup table from simple and qualified names to declarations.

    The index is populated only by :meth:`index_file` and
    :meth:`index_directory`; every analysis component reads from it.
    """

    def __init__(self, config: Optional[EngineConfig] = None, parser=None):
        """
        Initialize an empty index.

        Args:
            config: Engine configuration (source dirs, namespace filters, container names)
            parser: Parser producing SourceFile records; a JavaParser by default
        """
        self.config = config or EngineConfig()
        if parser is None:
            from javactx.parsers import JavaParser
            parser = JavaParser()
        self.parser = parser
        self.logger = logging.getLogger(__name__)

        self.files: Dict[str, SourceFile] = {}
        self.declarations: Dict[str, Declaration] = {}
        self.failures: Dict[str, str] = {}
        self.indexed = False
        self._types_by_name: Dict[str, List[str]] = defaultdict(list)
        self._members: Dict[str, List[str]] = defaultdict(list)

    # ------------------------------------------------------------------
    # Population
    # ------------------------------------------------------------------

    def index_file(self, file_path: str) -> List[Declaration]:
        """
        Parse one file and replace whatever the index held for it.

        Raises:
            ParseError: if the file cannot be read or is not valid source
        """
        unit = self.parser.parse_file(file_path)
        return self._store(unit)

    def index_directory(self, root: Optional[str] = None) -> Dict[str, Any]:
        """
        Index every source file below ``root`` (or the configured source dirs).

        Files that fail to parse are recorded in :attr:`failures` and skipped.

        Returns:
            Statistics about the run
        """
        roots = [Path(root).resolve()] if root else self.config.resolved_source_dirs()
        indexed, skipped, failed = 0, 0, 0

        for source_root in roots:
            self.logger.info(f"Indexing Java sources under {source_root}")
            for dirpath, dirnames, filenames in os.walk(source_root):
                dirnames[:] = sorted(d for d in dirnames if not d.startswith("."))
                for filename in sorted(filenames):
                    if not filename.endswith(".java"):
                        continue
                    file_path = os.path.join(dirpath, filename)
                    try:
                        unit = self.parser.parse_file(file_path)
                    except ParseError as e:
                        self.logger.error(f"Error parsing {file_path}: {e.message}")
                        self.failures[e.file_path] = e.message
                        failed += 1
                        continue
                    if not self.config.is_namespace_indexed(unit.package):
                        self.logger.debug(f"Skipping {file_path}: package {unit.package!r} is filtered out")
                        skipped += 1
                        continue
                    self._store(unit)
                    indexed += 1

        self.indexed = True
        stats = {
            "files": indexed,
            "skipped": skipped,
            "failed": failed,
            "declarations": len(self.declarations),
        }
        self.logger.info(
            f"Indexed {indexed} files ({len(self.declarations)} declarations), "
            f"{skipped} filtered, {failed} failed"
        )
        return stats

    def ensure_indexed(self) -> None:
        if not self.indexed:
            self.index_directory()

    def remove_file(self, file_path: str) -> None:
        path = str(Path(file_path).resolve())
        unit = self.files.pop(path, None)
        if unit is None:
            return
        for declaration in unit.declarations:
            if self.declarations.get(declaration.qualified_name) is not declaration:
                continue
            del self.declarations[declaration.qualified_name]
            if declaration.is_type:
                self._types_by_name[declaration.name].remove(declaration.qualified_name)
            if declaration.owner:
                self._members[declaration.owner].remove(declaration.qualified_name)

    def _store(self, unit: SourceFile) -> List[Declaration]:
        self.remove_file(unit.path)
        self.failures.pop(unit.path, None)
        self.files[unit.path] = unit

        stored = []
        for declaration in unit.declarations:
            existing = self.declarations.get(declaration.qualified_name)
            if existing is not None:
                self.logger.warning(
                    f"{declaration.qualified_name} already declared in {existing.file_path}, "
                    f"ignoring the copy in {unit.path}"
                )
                continue
            self.declarations[declaration.qualified_name] = declaration
            if declaration.is_type:
                self._types_by_name[declaration.name].append(declaration.qualified_name)
            if declaration.owner:
                self._members[declaration.owner].append(declaration.qualified_name)
            stored.append(declaration)
        return stored

    # ------------------------------------------------------------------
    # Direct access
    # ------------------------------------------------------------------

    def get(self, qualified_name: str) -> Optional[Declaration]:
        return self.declarations.get(qualified_name)

    def source_file(self, file_path: str) -> Optional[SourceFile]:
        return self.files.get(str(Path(file_path).resolve()))

    def file_of(self, declaration: Declaration) -> SourceFile:
        return self.files[declaration.file_path]

    def node_of(self, declaration: Declaration):
        """Syntax node of a type, field, callable or parameter declaration."""
        unit = self.files.get(declaration.file_path)
        if unit is None:
            return None
        return unit.nodes.get(declaration.qualified_name)

    def types(self) -> List[Declaration]:
        return [d for d in self.declarations.values() if d.is_type]

    def members_of(self, declaration: Declaration, kinds: Iterable[DeclarationKind]) -> List[Declaration]:
        kinds = set(kinds)
        members = (self.declarations[q] for q in self._members.get(declaration.qualified_name, []))
        return [m for m in members if m.kind in kinds]

    def fields_of(self, declaration: Declaration, include_static: bool = True) -> List[Declaration]:
        fields = self.members_of(declaration, [DeclarationKind.FIELD])
        if include_static:
            return fields
        return [f for f in fields if not f.is_static]

    def methods_of(self, declaration: Declaration) -> List[Declaration]:
        return self.members_of(declaration, [DeclarationKind.METHOD])

    def constructors_of(self, declaration: Declaration) -> List[Declaration]:
        return self.members_of(declaration, [DeclarationKind.CONSTRUCTOR])

    def parameters_of(self, callable_decl: Declaration) -> List[Declaration]:
        return [self.declarations[q] for q in callable_decl.parameters if q in self.declarations]

    def owner_of(self, declaration: Declaration) -> Optional[Declaration]:
        if declaration.owner is None:
            return None
        return self.declarations.get(declaration.owner)

    def enclosing_type(self, declaration: Declaration) -> Optional[Declaration]:
        """The innermost type declaring ``declaration`` (itself, for types)."""
        current = declaration
        while current is not None and not current.is_type:
            current = self.owner_of(current)
        return current

    def enclosing_callable(self, file_path: str, line: int) -> Optional[Declaration]:
        """Smallest method or constructor in ``file_path`` whose span contains ``line``."""
        unit = self.source_file(file_path)
        if unit is None:
            return None
        candidates = [d for d in unit.declarations if d.is_callable and d.contains_line(line)]
        if not candidates:
            return None
        return min(candidates, key=lambda d: d.span)

    def enclosing_type_at(self, file_path: str, line: int) -> Optional[Declaration]:
        unit = self.source_file(file_path)
        if unit is None:
            return None
        candidates = [d for d in unit.types() if d.contains_line(line)]
        if not candidates:
            return None
        return min(candidates, key=lambda d: d.span)

    # ------------------------------------------------------------------
    # Name lookup
    # ------------------------------------------------------------------

    def lookup(self, name: str, context_file: Optional[str] = None) -> Optional[Declaration]:
        """
        Resolve a type name as seen from ``context_file``.

        Simple names are tried against the file's own types, its explicit
        imports, its wildcard imports, its package and finally the configured
        project namespaces. Qualified names are looked up directly.
        """
        base = parse_type_text(name).base
        if not base:
            return None

        direct = self.declarations.get(base)
        if direct is not None and direct.is_type:
            return direct

        if "." in base:
            # Outer.Inner written relative to an imported or local Outer
            head, rest = base.split(".", 1)
            outer = self.lookup(head, context_file)
            if outer is None:
                return None
            nested = self.declarations.get(f"{outer.qualified_name}.{rest}")
            return nested if nested is not None and nested.is_type else None

        unit = self.source_file(context_file) if context_file else None
        if unit is not None:
            found = self._lookup_in_file(base, unit)
            if found is not None or base in self._imported_names(unit):
                return found

        for namespace in self.config.lookup_namespaces():
            candidates = sorted(
                q for q in self._types_by_name.get(base, [])
                if matches_any(self.declarations[q].package, [namespace])
            )
            if candidates:
                return self.declarations[candidates[0]]

        if unit is None:
            candidates = self._types_by_name.get(base, [])
            if len(candidates) == 1:
                return self.declarations[candidates[0]]
        return None

    def _imported_names(self, unit: SourceFile) -> set:
        return {imp.rsplit(".", 1)[-1] for imp in unit.imports}

    def _lookup_in_file(self, name: str, unit: SourceFile) -> Optional[Declaration]:
        own = sorted(
            (d for d in unit.types() if d.name == name),
            key=lambda d: d.qualified_name.count("."),
        )
        if own:
            return self.declarations.get(own[0].qualified_name, own[0])

        for imported in unit.imports:
            if imported.rsplit(".", 1)[-1] == name:
                declaration = self.declarations.get(imported)
                return declaration if declaration is not None and declaration.is_type else None

        for package in unit.wildcard_imports:
            declaration = self.declarations.get(f"{package}.{name}")
            if declaration is not None and declaration.is_type:
                return declaration

        same_package = f"{unit.package}.{name}" if unit.package else name
        declaration = self.declarations.get(same_package)
        if declaration is not None and declaration.is_type:
            return declaration
        return None

    def qualify_type_name(self, name: str, context_file: Optional[str] = None) -> str:
        """
        Best-effort qualified name for a type, project or not.

        Used for boundary matching, so external types are qualified through
        imports, ``java.lang`` and the file's package when nothing better is known.
        """
        syntax = parse_type_text(name)
        base = syntax.base
        if syntax.is_primitive or not base:
            return base

        declaration = self.lookup(base, context_file)
        if declaration is not None:
            return declaration.qualified_name

        if "." in base and base[0].islower():
            return base

        unit = self.source_file(context_file) if context_file else None
        head = base.split(".", 1)[0]
        tail = base[len(head):]
        if unit is not None:
            for imported in unit.imports:
                if imported.rsplit(".", 1)[-1] == head:
                    return imported + tail
        if head in JAVA_LANG_TYPES:
            return f"java.lang.{base}"
        if unit is not None:
            if unit.wildcard_imports:
                return f"{unit.wildcard_imports[0]}.{base}"
            if unit.package:
                return f"{unit.package}.{base}"
        return base

    def find_class(self, name: str) -> Declaration:
        """
        Find a type by qualified or simple name.

        Raises:
            ClassNotFound: if no indexed type matches
        """
        base = parse_type_text(name).base
        declaration = self.declarations.get(base)
        if declaration is not None and declaration.is_type:
            return declaration

        simple = base.rsplit(".", 1)[-1]
        candidates = sorted(
            q for q in self._types_by_name.get(simple, [])
            if q == base or q.endswith("." + base)
        )
        if not candidates:
            similar = sorted(
                q for names in self._types_by_name.values() for q in names
                if simple.lower() in q.lower()
            )[:5]
            raise ClassNotFound(
                f"Class not found: {name}",
                {"className": name, "similarClasses": similar, "indexedTypes": len(self.types())},
            )
        if len(candidates) > 1:
            self.logger.warning(f"Ambiguous class name {name}: {candidates}; using {candidates[0]}")
        return self.declarations[candidates[0]]

    # ------------------------------------------------------------------
    # Hierarchy
    # ------------------------------------------------------------------

    def supertypes_of(self, declaration: Declaration) -> List[TypeReference]:
        """Direct supertypes (superclass first, then interfaces), project or external."""
        raw = ([declaration.superclass] if declaration.superclass else []) + list(declaration.interfaces)
        return [self.resolve_type(text, declaration.file_path) for text in raw]

    def project_ancestors(self, declaration: Declaration) -> List[Declaration]:
        """Every project supertype reachable from ``declaration``, nearest first."""
        seen = {declaration.qualified_name}
        ancestors = []
        queue = [declaration]
        while queue:
            current = queue.pop(0)
            for reference in self.supertypes_of(current):
                parent = reference.declaration
                if parent is None or parent.qualified_name in seen:
                    continue
                seen.add(parent.qualified_name)
                ancestors.append(parent)
                queue.append(parent)
        return ancestors

    def external_supertypes(self, declaration: Declaration) -> List[str]:
        """Qualified names of non-project supertypes of ``declaration`` and its project ancestors."""
        names = []
        for current in [declaration] + self.project_ancestors(declaration):
            for reference in self.supertypes_of(current):
                if reference.declaration is None and reference.qualified_name not in names:
                    names.append(reference.qualified_name)
        return names

    def implementations_of(self, declaration: Declaration) -> List[Declaration]:
        """Concrete project classes that implement (or extend) ``declaration``."""
        implementations = []
        for candidate in sorted(self.types(), key=lambda d: d.qualified_name):
            if candidate.kind == DeclarationKind.INTERFACE or candidate.is_abstract:
                continue
            if candidate == declaration:
                continue
            if any(a == declaration for a in self.project_ancestors(candidate)):
                implementations.append(candidate)
        return implementations

    def find_methods(self, declaration: Declaration, name: str) -> List[Declaration]:
        """Methods named ``name`` on the type and then its project ancestors."""
        found = []
        for current in [declaration] + self.project_ancestors(declaration):
            found.extend(m for m in self.methods_of(current) if m.name == name)
        return found

    def find_method(self, declaration: Declaration, name: str,
                    arg_count: Optional[int] = None) -> Optional[Declaration]:
        """
        Find a method by name, walking project supertypes.

        When ``arg_count`` is given, an overload with that many parameters is
        preferred; otherwise the first declared match wins.
        """
        candidates = self.find_methods(declaration, name)
        if not candidates:
            return None
        if arg_count is not None:
            for candidate in candidates:
                if len(candidate.parameters) == arg_count:
                    return candidate
        return candidates[0]

    # ------------------------------------------------------------------
    # Type references
    # ------------------------------------------------------------------

    def resolve_type(self, type_text: str, context_file: Optional[str] = None) -> TypeReference:
        """Turn declared type text into a TypeReference with container structure."""
        return self._reference(parse_type_text(type_text), context_file)

    def _reference(self, syntax: TypeSyntax, context_file: Optional[str]) -> TypeReference:
        if syntax.dimensions:
            element = TypeSyntax(text=syntax.base, base=syntax.base, arguments=syntax.arguments)
            return TypeReference(
                raw=syntax.text,
                name=syntax.simple_name + "[]" * syntax.dimensions,
                qualified_name=self.qualify_type_name(syntax.base, context_file) + "[]" * syntax.dimensions,
                container=ContainerKind.ARRAY,
                arguments=[self._reference(element, context_file)],
            )

        if syntax.is_primitive:
            return TypeReference(
                raw=syntax.text, name=syntax.base, qualified_name=syntax.base,
                container=ContainerKind.PRIMITIVE,
            )

        declaration = self.lookup(syntax.base, context_file)
        if declaration is None and syntax.simple_name in self.config.map_types:
            container = ContainerKind.MAP
        elif declaration is None and syntax.simple_name in self.config.collection_types:
            container = ContainerKind.COLLECTION
        else:
            container = ContainerKind.SIMPLE

        return TypeReference(
            raw=syntax.text,
            name=syntax.simple_name,
            qualified_name=declaration.qualified_name if declaration else self.qualify_type_name(syntax.base, context_file),
            container=container,
            declaration=declaration,
            arguments=[self._reference(arg, context_file) for arg in syntax.arguments],
        )

    def __len__(self) -> int:
        return len(self.declarations)
