"""
Branch analyzer: enumerates the decision points of a single method.
"""
import logging
import re
from typing import List, Optional

from javactx.core.errors import UnparsableMethod
from javactx.core.results import Branch, BranchAnalysis, BranchKind, RecommendedTest
from javactx.parsers.java_parser import JavaParser


WRAPPER_PREFIX = b"class __Wrapper__ {\n"
WRAPPER_SUFFIX = b"\n}\n"

CALLABLE_NODES = {"method_declaration", "constructor_declaration"}
IGNORED_MEMBERS = {"line_comment", "block_comment", "comment"}

LOOP_STATEMENTS = {
    "for_statement": ("for", "For loop", ["loop executes", "loop skipped (condition false)"]),
    "enhanced_for_statement": ("for-each", "Enhanced for loop", ["collection has elements", "collection is empty"]),
    "while_statement": ("while", "While loop", ["loop executes", "loop skipped (condition false)"]),
    "do_statement": ("do-while", "Do-while loop", ["loop repeats", "loop runs once"]),
}

SWITCH_NODES = {"switch_statement", "switch_expression"}


def complexity_level(cyclomatic_complexity: int) -> str:
    if cyclomatic_complexity <= 5:
        return "Low"
    if cyclomatic_complexity <= 10:
        return "Moderate"
    return "High"


def recommended_test_name(method_name: str, path: str, number: int) -> str:
    """Name for a test exercising ``path``, e.g. ``score_when_condition_is_true_test1``."""
    clean = re.sub(r"[\s\-]+", "_", path.lower())
    clean = re.sub(r"_+", "_", re.sub(r"[^a-z0-9_]", "", clean)).strip("_")
    return f"{method_name}_when_{clean}_test{number}"


class BranchAnalyzer:
    """
    Counts branches, nesting and cyclomatic complexity of a method given as source text.

    The method is parsed in isolation, so it need not belong to an indexed file.
    """

    def __init__(self, parser: Optional[JavaParser] = None):
        self.parser = parser or JavaParser()
        self.logger = logging.getLogger(__name__)

    def analyze_branches(self, method_source: str) -> BranchAnalysis:
        """
        Analyze the branches of one method or constructor.

        Every branch lists the paths through it. Arms of one switch share a
        single decision, so the path total and the recommended tests count a
        switch once.

        Args:
            method_source: Full method source, signature included

        Raises:
            UnparsableMethod: if the text is not exactly one well-formed method
        """
        self._source = WRAPPER_PREFIX + method_source.encode("utf-8") + WRAPPER_SUFFIX
        self._decisions: List[Branch] = []
        method = self._parse_method(method_source)

        branches: List[Branch] = []
        body = method.child_by_field_name("body")
        if body is not None:
            self._visit(body, 0, branches)

        name_node = method.child_by_field_name("name")
        method_name = self._text(name_node) if name_node is not None else "method"
        complexity = 1 + len(branches)
        return BranchAnalysis(
            branches=branches,
            total_branches=len(branches),
            total_paths=1 + sum(len(d.paths) - 1 for d in self._decisions),
            cyclomatic_complexity=complexity,
            max_nesting_depth=max((b.nesting_level for b in branches), default=0),
            minimum_tests=complexity,
            complexity_level=complexity_level(complexity),
            test_recommendations=self.recommend_tests(method_name, self._decisions),
        )

    def recommend_tests(self, method_name: str, decisions: List[Branch]) -> List[RecommendedTest]:
        """One suggested test per path of every decision, numbered in source order."""
        recommendations = []
        for branch in decisions:
            for path in branch.paths:
                recommendations.append(RecommendedTest(
                    test_method_name=recommended_test_name(method_name, path, len(recommendations) + 1),
                    description=f"Test {branch.statement} branch: {path}",
                    scenario=f"Verify behavior when {path} at line {branch.start_line}",
                    covers_branches=[f"Branch at line {branch.start_line} ({path})"],
                ))
        return recommendations

    def _parse_method(self, method_source: str):
        tree = self.parser.parse_bytes(self._source)
        error = self.parser.find_first_error(tree.root_node)
        if error is not None:
            line = max(error.start_point[0], 1)
            raise UnparsableMethod(
                f"Method source has a syntax error near line {line}",
                {"line": line, "sourcePreview": method_source[:200]},
            )

        declarations = tree.root_node.named_children
        body = declarations[0].child_by_field_name("body") if len(declarations) == 1 else None
        members = [m for m in (body.named_children if body is not None else []) if m.type not in IGNORED_MEMBERS]
        if len(members) != 1 or members[0].type not in CALLABLE_NODES:
            raise UnparsableMethod(
                "Source must contain exactly one method or constructor declaration",
                {"memberTypes": [m.type for m in members], "sourcePreview": method_source[:200]},
            )
        return members[0]

    def _visit(self, node, nesting: int, branches: List[Branch]) -> None:
        kind = node.type

        if kind == "if_statement":
            alternative = node.child_by_field_name("alternative")
            if self._is_else_if(node):
                statement, description = "else-if", "Else-if branch"
            else:
                statement, description = "if", "Conditional statement"
            paths = ["condition is true", "else branch" if alternative is not None else "condition is false"]
            self._emit(node, BranchKind.CONDITIONAL, statement, description, paths, nesting, branches)
            for field in ("condition", "consequence"):
                child = node.child_by_field_name(field)
                if child is not None:
                    self._visit(child, nesting + 1, branches)
            if alternative is not None:
                # an else-if chain stays at the level of its first if
                same_level = alternative.type == "if_statement"
                self._visit(alternative, nesting if same_level else nesting + 1, branches)
            return

        if kind == "ternary_expression":
            self._emit(node, BranchKind.CONDITIONAL, "ternary", "Ternary operator",
                       ["ternary true", "ternary false"], nesting, branches)
            self._visit_children(node, nesting + 1, branches)
            return

        if kind in LOOP_STATEMENTS:
            statement, description, paths = LOOP_STATEMENTS[kind]
            self._emit(node, BranchKind.LOOP, statement, description, list(paths), nesting, branches)
            self._visit_children(node, nesting + 1, branches)
            return

        if kind in SWITCH_NODES:
            self._visit_switch(node, nesting, branches)
            return

        if kind == "catch_clause":
            caught = self._caught_type(node)
            self._emit(node, BranchKind.EXCEPTION_HANDLER, "catch", f"Catch block for {caught}",
                       [f"{caught} is thrown", f"no {caught} is thrown"], nesting, branches)
            self._visit_children(node, nesting + 1, branches)
            return

        self._visit_children(node, nesting, branches)

    def _visit_children(self, node, nesting: int, branches: List[Branch]) -> None:
        for child in node.named_children:
            self._visit(child, nesting, branches)

    def _visit_switch(self, node, nesting: int, branches: List[Branch]) -> None:
        condition = node.child_by_field_name("condition")
        if condition is not None:
            self._visit(condition, nesting, branches)
        block = node.child_by_field_name("body")
        if block is None:
            return

        arms = [a for a in block.named_children if a.type in ("switch_block_statement_group", "switch_rule")]
        labels = [label for arm in arms for label in self._labels(arm)]
        cases = [self._compact(label) for label in labels if not self._is_default(label)]
        has_default = len(cases) < len(labels)
        outcomes = cases + ["default" if has_default else "no case matches"]

        first = True
        for arm in arms:
            arm_cases = [self._compact(label) for label in self._labels(arm) if not self._is_default(label)]
            if arm_cases:
                self._emit(arm, BranchKind.SWITCH_CASE, "case",
                           f"Switch arm {', '.join(arm_cases)} of {len(cases)} cases",
                           list(outcomes), nesting, branches, decision=first)
                first = False
            inner = nesting + 1 if arm_cases else nesting
            for child in arm.named_children:
                if child.type != "switch_label":
                    self._visit(child, inner, branches)

    def _labels(self, arm) -> list:
        return [c for c in arm.named_children if c.type == "switch_label"]

    def _is_default(self, label) -> bool:
        return self._text(label).strip().startswith("default")

    def _caught_type(self, node) -> str:
        for child in node.named_children:
            if child.type == "catch_formal_parameter":
                for part in child.named_children:
                    if part.type == "catch_type":
                        return self._compact(part)
        return "exception"

    def _is_else_if(self, node) -> bool:
        parent = node.parent
        return (
            parent is not None
            and parent.type == "if_statement"
            and parent.child_by_field_name("alternative") == node
        )

    def _emit(self, node, kind: BranchKind, statement: str, description: str, paths: List[str],
              nesting: int, branches: List[Branch], decision: bool = True) -> None:
        first_line = self._text(node).splitlines()[0].strip() if node.end_byte > node.start_byte else ""
        branch = Branch(
            # row 0 is the wrapper line, so the zero-based row is the one-based method line
            start_line=node.start_point[0],
            end_line=node.end_point[0],
            kind=kind,
            statement=statement,
            description=description,
            path_count=len(paths),
            paths=paths,
            nesting_level=nesting,
            code_snippet=first_line[:120],
        )
        branches.append(branch)
        if decision:
            self._decisions.append(branch)

    def _compact(self, node) -> str:
        return " ".join(self._text(node).split())

    def _text(self, node) -> str:
        return self._source[node.start_byte:node.end_byte].decode("utf-8", errors="replace")
