"""
Function definition lookup: every overload of a method with its full signature.
"""
import logging

from javactx.core.entities import Declaration
from javactx.core.errors import SymbolNotFound
from javactx.core.results import FunctionDefinition, MethodDefinition, ParameterInfo
from javactx.core.source_index import SourceIndex


class FunctionDefinitionFinder:
    """
    Looks up method definitions (signature, modifiers, body and Javadoc) by name.
    """

    def __init__(self, index: SourceIndex):
        self.index = index
        self.logger = logging.getLogger(__name__)

    def get_function_definition(self, class_name: str, method_name: str,
                                include_body: bool = True) -> FunctionDefinition:
        """
        Return every overload of ``method_name`` visible on ``class_name``.

        Constructors are returned when ``method_name`` is the class's simple name.

        Raises:
            ClassNotFound: if the class is not indexed
            SymbolNotFound: if no method of that name exists on the class or its project supertypes
        """
        owner = self.index.find_class(class_name)
        if method_name == owner.name:
            callables = self.index.constructors_of(owner)
        else:
            callables = self.index.find_methods(owner, method_name)

        if not callables:
            raise SymbolNotFound(
                f"Method '{method_name}' not found in {owner.qualified_name}",
                {
                    "className": owner.qualified_name,
                    "methodName": method_name,
                    "availableMethods": sorted({m.name for m in self.index.methods_of(owner)}),
                },
            )

        return FunctionDefinition(
            class_name=owner.qualified_name,
            file_path=owner.file_path,
            class_annotations=[str(a) for a in owner.annotations],
            methods=[self._definition(c, include_body) for c in callables],
        )

    def _definition(self, declaration: Declaration, include_body: bool) -> MethodDefinition:
        unit = self.index.file_of(declaration)
        node = self.index.node_of(declaration)
        parameters = [
            ParameterInfo(name=p.name, type=p.type_text or "", annotations=[str(a) for a in p.annotations])
            for p in self.index.parameters_of(declaration)
        ]
        return MethodDefinition(
            name=declaration.name,
            qualified_name=declaration.qualified_name,
            visibility=declaration.visibility,
            is_static=declaration.is_static,
            is_final=declaration.is_final,
            is_abstract=declaration.is_abstract,
            return_type=declaration.type_text,
            start_line=declaration.start_line,
            end_line=declaration.end_line,
            annotations=[str(a) for a in declaration.annotations],
            parameters=parameters,
            throws_exceptions=list(declaration.throws),
            body=unit.text(node) if include_body and node is not None else None,
            javadoc=self.index.parser.javadoc(node, unit) if node is not None else None,
        )
