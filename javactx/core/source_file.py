"""
Per-file parse record kept by the source model index.
"""
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from .entities import Declaration


@dataclass
class SourceFile:
    """
    Everything the index remembers about one parsed file.

    ``nodes`` maps the qualified name of each type and callable declaration to
    its syntax node so method bodies can be walked later without re-parsing.
    """

    path: str
    package: str
    source: bytes
    tree: Any
    imports: List[str] = field(default_factory=list)
    wildcard_imports: List[str] = field(default_factory=list)
    declarations: List[Declaration] = field(default_factory=list)
    nodes: Dict[str, Any] = field(default_factory=dict)

    def add(self, declaration: Declaration, node: Optional[Any] = None) -> bool:
        if any(d.qualified_name == declaration.qualified_name for d in self.declarations):
            return False
        self.declarations.append(declaration)
        if node is not None:
            self.nodes[declaration.qualified_name] = node
        return True

    def text(self, node: Any) -> str:
        return self.source[node.start_byte:node.end_byte].decode("utf-8", errors="replace")

    @property
    def lines(self) -> List[str]:
        return self.source.decode("utf-8", errors="replace").splitlines()

    def snippet(self, center_line: int, context_lines: int = 1) -> str:
        lines = self.lines
        start = max(0, center_line - context_lines - 1)
        end = min(len(lines), center_line + context_lines)
        return "\n".join(f"{i + 1:4d}: {lines[i]}" for i in range(start, end))

    def types(self) -> List[Declaration]:
        return [d for d in self.declarations if d.is_type]
