"""
Engine configuration.
"""
import fnmatch
import json
from pathlib import Path
from typing import Iterable, List, Optional

from pydantic import BaseModel, Field


DEFAULT_BOUNDARY_PATTERNS = [
    "java.*",
    "javax.*",
    "jakarta.*",
    "org.springframework.*",
    "org.hibernate.*",
    "org.apache.*",
    "org.slf4j.*",
    "com.fasterxml.jackson.*",
]

VALIDATION_ANNOTATIONS = [
    "NotNull", "NotEmpty", "NotBlank", "Size", "Min", "Max", "Email",
    "Pattern", "Valid", "Validated", "Past", "Future", "Positive", "Negative",
]

LOMBOK_ANNOTATIONS = [
    "Data", "Getter", "Setter", "Builder", "AllArgsConstructor",
    "NoArgsConstructor", "RequiredArgsConstructor", "Value",
]

ENTITY_ANNOTATIONS = ["Entity", "Table", "Document", "Embeddable"]

INJECTION_ANNOTATIONS = ["Autowired", "Inject", "Resource", "MockBean"]

COLLECTION_TYPES = [
    "List", "ArrayList", "LinkedList", "Set", "HashSet", "TreeSet",
    "LinkedHashSet", "SortedSet", "Collection", "Iterable", "Queue", "Deque",
    "Stream", "Optional",
]

MAP_TYPES = ["Map", "HashMap", "TreeMap", "LinkedHashMap", "SortedMap", "ConcurrentHashMap"]


def matches_namespace(name: str, pattern: str) -> bool:
    """
    Match a package or qualified name against a namespace glob.

    ``com.example.*`` matches ``com.example`` itself and everything below it;
    other patterns use plain shell-style matching.
    """
    if pattern.endswith(".*"):
        prefix = pattern[:-2]
        if name == prefix or name.startswith(prefix + "."):
            return True
    return fnmatch.fnmatchcase(name, pattern)


def matches_any(name: str, patterns: Iterable[str]) -> bool:
    return any(matches_namespace(name, p) for p in patterns)


class EngineConfig(BaseModel):
    """Startup configuration for the analysis engine."""

    project_root: str = "."
    # Relative to project_root; the root itself is scanned when none exist.
    source_dirs: List[str] = Field(default_factory=lambda: ["src/main/java"])
    include_namespaces: List[str] = Field(default_factory=list)
    exclude_namespaces: List[str] = Field(default_factory=list)
    # Fallback namespaces for simple-name lookup; defaults to include_namespaces.
    project_namespaces: List[str] = Field(default_factory=list)
    max_type_depth: int = Field(default=10, ge=1)
    max_call_depth: int = Field(default=15, ge=1)
    boundary_patterns: List[str] = Field(default_factory=lambda: list(DEFAULT_BOUNDARY_PATTERNS))
    dto_packages: List[str] = Field(default_factory=list)
    validation_annotations: List[str] = Field(default_factory=lambda: list(VALIDATION_ANNOTATIONS))
    lombok_annotations: List[str] = Field(default_factory=lambda: list(LOMBOK_ANNOTATIONS))
    entity_annotations: List[str] = Field(default_factory=lambda: list(ENTITY_ANNOTATIONS))
    injection_annotations: List[str] = Field(default_factory=lambda: list(INJECTION_ANNOTATIONS))
    collection_types: List[str] = Field(default_factory=lambda: list(COLLECTION_TYPES))
    map_types: List[str] = Field(default_factory=lambda: list(MAP_TYPES))

    @classmethod
    def from_file(cls, path: str, **overrides) -> "EngineConfig":
        """Load a JSON config file; keyword overrides win over file values."""
        data = json.loads(Path(path).read_text(encoding="utf-8"))
        data.update({k: v for k, v in overrides.items() if v is not None})
        return cls(**data)

    def resolved_source_dirs(self) -> List[Path]:
        root = Path(self.project_root).resolve()
        dirs = [root / d for d in self.source_dirs if (root / d).is_dir()]
        return dirs or [root]

    def is_namespace_indexed(self, package: str) -> bool:
        if self.include_namespaces and not matches_any(package, self.include_namespaces):
            return False
        return not matches_any(package, self.exclude_namespaces)

    def lookup_namespaces(self) -> List[str]:
        return self.project_namespaces or self.include_namespaces

    def classify_annotation(self, name: str) -> List[str]:
        """Tag an annotation name against the configured name sets."""
        tags = []
        if name in self.validation_annotations:
            tags.append("validation")
        if name in self.lombok_annotations:
            tags.append("lombok")
        if name in self.entity_annotations:
            tags.append("entity")
        if name in self.injection_annotations:
            tags.append("injection")
        return tags

    def is_dto_package(self, package: Optional[str]) -> bool:
        if not package:
            return False
        if self.dto_packages:
            return matches_any(package, self.dto_packages)
        return "dto" in package.split(".")
