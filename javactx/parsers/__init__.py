"""
Parsers that turn source files into declaration records.
"""

from .base_parser import BaseParser
from .java_parser import JavaParser

__all__ = [
    "BaseParser",
    "JavaParser"
]
