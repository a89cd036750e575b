"""
Syntax-level splitting of type text such as ``Map<String, List<OrderDTO>>``.
"""
import re
from dataclasses import dataclass
from typing import List, Tuple


PRIMITIVE_TYPES = frozenset({
    "int", "long", "double", "float", "boolean", "char", "byte", "short", "void",
})

_ANNOTATION_RE = re.compile(r"@[\w.]+(\([^)]*\))?\s*")


@dataclass(frozen=True)
class TypeSyntax:
    text: str
    base: str
    arguments: Tuple["TypeSyntax", ...] = ()
    dimensions: int = 0

    @property
    def simple_name(self) -> str:
        return self.base.rsplit(".", 1)[-1]

    @property
    def is_primitive(self) -> bool:
        return self.dimensions == 0 and self.base in PRIMITIVE_TYPES


def split_top_level(text: str) -> List[str]:
    """Split on commas that are not nested inside angle brackets."""
    parts, depth, current = [], 0, []
    for ch in text:
        if ch == "<":
            depth += 1
        elif ch == ">":
            depth -= 1
        elif ch == "," and depth == 0:
            parts.append("".join(current).strip())
            current = []
            continue
        current.append(ch)
    tail = "".join(current).strip()
    if tail:
        parts.append(tail)
    return parts


def parse_type_text(text: str) -> TypeSyntax:
    original = " ".join(text.split())
    cleaned = _ANNOTATION_RE.sub("", original).strip()

    dimensions = 0
    while True:
        if cleaned.endswith("[]"):
            dimensions += 1
            cleaned = cleaned[:-2].rstrip()
        elif cleaned.endswith("..."):
            dimensions += 1
            cleaned = cleaned[:-3].rstrip()
        else:
            break

    if cleaned.startswith("?"):
        bound = cleaned[1:].strip()
        for keyword in ("extends ", "super "):
            if bound.startswith(keyword):
                cleaned = bound[len(keyword):].strip()
                break
        else:
            return TypeSyntax(text=original, base="Object", dimensions=dimensions)

    open_idx = cleaned.find("<")
    if open_idx == -1:
        return TypeSyntax(text=original, base="".join(cleaned.split()), dimensions=dimensions)

    close_idx = cleaned.rfind(">")
    base = "".join(cleaned[:open_idx].split())
    inner = cleaned[open_idx + 1:close_idx] if close_idx > open_idx else cleaned[open_idx + 1:]
    arguments = tuple(parse_type_text(part) for part in split_top_level(inner))
    return TypeSyntax(text=original, base=base, arguments=arguments, dimensions=dimensions)


def erase(text: str) -> str:
    """Type text without generics or whitespace, as used in method signatures."""
    syntax = parse_type_text(text)
    return syntax.simple_name + "[]" * syntax.dimensions
