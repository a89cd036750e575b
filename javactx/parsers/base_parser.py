"""
Base parser class for building the source model index.
"""
import logging
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Iterator, Optional

from tree_sitter import Node, Tree

from javactx.core.errors import ParseError
from javactx.core.source_file import SourceFile


class BaseParser(ABC):
    """
    Base parser class for turning source files into declaration records.
    Each language-specific parser will inherit from this class.
    """

    def __init__(self, language_name: str, language_version: str = None):
        """
        Initialize the parser.

        Args:
            language_name: Name of the programming language
            language_version: Optional version of the language
        """
        self.language_name = language_name
        self.language_version = language_version
        self.logger = logging.getLogger(f"{__name__}.{language_name}")

        # Tree-sitter parser will be initialized in the subclass
        self.parser = None
        self.language = None

    @abstractmethod
    def initialize_parser(self) -> None:
        """Initialize the tree-sitter parser with the appropriate language."""
        pass

    def parse_bytes(self, source_code: bytes) -> Tree:
        if self.parser is None:
            self.initialize_parser()
        return self.parser.parse(source_code)

    def parse_file(self, file_path: str) -> SourceFile:
        """
        Parse a single file into a SourceFile record.

        Args:
            file_path: Path to the file to parse

        Raises:
            ParseError: if the file cannot be read or contains syntax errors
        """
        path = str(Path(file_path).resolve())
        try:
            with open(path, 'rb') as f:
                source_code = f.read()
        except OSError as e:
            raise ParseError(path, f"Cannot read {path}: {e}") from e

        tree = self.parse_bytes(source_code)
        error_node = self.find_first_error(tree.root_node)
        if error_node is not None:
            line = error_node.start_point[0] + 1
            raise ParseError(path, f"Syntax error in {path} at line {line}", {"line": line})

        return self.process_file(path, source_code, tree)

    @abstractmethod
    def process_file(self, file_path: str, source_code: bytes, tree: Tree) -> SourceFile:
        """
        Extract declarations from a parsed file.

        Args:
            file_path: Path to the file
            source_code: Raw source code bytes
            tree: Parsed tree-sitter tree
        """
        pass

    def find_first_error(self, node: Node) -> Optional[Node]:
        """Return the first ERROR or missing node in source order, if any."""
        if not node.has_error:
            return None
        for child in self.walk_tree(node):
            if child.type == "ERROR" or child.is_missing:
                return child
        return node

    def walk_tree(self, node: Node) -> Iterator[Node]:
        """
        Walk the AST tree in a depth-first order.

        Args:
            node: Current tree node

        Yields:
            Each node in the tree, parents before children
        """
        yield node
        for child in node.children:
            yield from self.walk_tree(child)

    def extract_node_text(self, node: Node, source_code: bytes) -> str:
        """
        Extract the text for a given node from the source code.

        Args:
            node: Tree-sitter node
            source_code: Original source code bytes

        Returns:
            Text content of the node
        """
        return source_code[node.start_byte:node.end_byte].decode('utf-8', errors='replace')
