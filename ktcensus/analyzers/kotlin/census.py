"""Census of Kotlin syntax feature usage across repositories."""

from dataclasses import dataclass
from typing import Callable, Dict, List

from lxml.etree import _Element

from ktcensus.analyzers import FeatureCounters, FeatureSpec, SourceFile
from ktcensus.sources import TestSource
from .core import KotlinTreeProvider
from .features import (
    NodeKind,
    classify_node,
    count_primary_constructor_parameters,
    get_projection_kind,
    get_variance,
    has_declared_return_type,
    has_enum_entry_body,
    has_non_default_constructor_visibility,
    has_outer_type_parameters,
    has_receiver_type,
    has_target_label,
    has_when_subject,
    is_companion_object,
    is_declared_in_class,
    is_enum_class,
    is_inline_function,
    is_inner_class,
    is_mutable_property,
    is_range_operator,
    is_top_level,
    is_type_ascription,
)

FEATURES: List[FeatureSpec] = [
    FeatureSpec('syntax_errors', 'Error count', tracked=True),
    FeatureSpec('delegation_by_specifiers', "'by' delegations", tracked=True),
    FeatureSpec('classes', 'Classes'),
    FeatureSpec('companion_objects', 'Companion objects'),
    FeatureSpec('primary_constructor_visibility', 'Primary constructors with non-default visibility'),
    FeatureSpec('inner_classes', 'Inner classes'),
    FeatureSpec('inner_classes_with_outer_type_parameters', 'Inner classes with outer type parameters',
                tracked=True),
    FeatureSpec('objects', 'Object declarations'),
    FeatureSpec('top_level_objects', 'Top-level object declarations'),
    FeatureSpec('enums', 'Enum classes'),
    FeatureSpec('enums_with_constructor_parameters', 'Enum classes with constructor parameters'),
    FeatureSpec('enum_entries', 'Enum entries'),
    FeatureSpec('enum_entries_with_body', 'Enum entries with body'),
    FeatureSpec('functions', 'Functions'),
    FeatureSpec('inline_functions', 'Inline functions'),
    FeatureSpec('extension_functions', 'Extension functions'),
    FeatureSpec('extension_functions_in_classes', 'Extension functions inside classes'),
    FeatureSpec('lambdas', 'Lambdas'),
    FeatureSpec('lambdas_with_declared_return_type', 'Lambdas with declared return type', tracked=True),
    FeatureSpec('labeled_expressions', 'Labeled expressions', tracked=True),
    FeatureSpec('qualified_break_continue', "'break' or 'continue' with label", tracked=True),
    FeatureSpec('return_with_label', "'return' with label", tracked=True),
    FeatureSpec('while_loops', "'while' loops"),
    FeatureSpec('do_while_loops', "'do/while' loops"),
    FeatureSpec('when_with_subject', "'when' with expression"),
    FeatureSpec('when_without_subject', "'when' without expression"),
    FeatureSpec('when_condition_in_range', "'in' condition in 'when'"),
    FeatureSpec('vals', "'val' declarations"),
    FeatureSpec('vars', "'var' declarations"),
    FeatureSpec('type_parameters', 'Type parameters'),
    FeatureSpec('type_parameters_with_variance', 'Type parameters with variance'),
    FeatureSpec('type_arguments', 'Type arguments'),
    FeatureSpec('type_arguments_with_variance', 'Type arguments with variance'),
    FeatureSpec('type_arguments_with_star', 'Type arguments with <*>'),
    FeatureSpec('range_operators', 'Range operators'),
    FeatureSpec('types_after_colon', 'Types after colon'),
    FeatureSpec('backing_fields', 'Backing fields'),
]
"""Features counted by the census, in report order. Usage sites of
`tracked` features are recorded unless usage tracking is disabled."""


@dataclass
class CensusTotals:
    """Amount of code analyzed by a census."""

    repositories_analyzed: int = 0
    files_analyzed: int = 0
    lines_analyzed: int = 0


NodeHandler = Callable[[_Element, str], None]


class KotlinCensusVisitor:
    """Counts occurrences of Kotlin syntax features in repositories.

    Every element of every Kotlin file in a repository is visited once,
    parents before children, and dispatched on its
    [`NodeKind`][ktcensus.analyzers.kotlin.features.NodeKind] to the
    handler that increments the matching FeatureCounters. The project
    each occurrence is attributed to is passed explicitly to every
    handler.

    Example usage:

    ```python
    census = KotlinCensusVisitor()
    census.analyze_repository('path/to/kotlin-project')
    print(census.counters['classes'].count)
    ```

    """

    def __init__(self, *, usage_tracking: str = 'default',
                 provider_factory: Callable[[str], KotlinTreeProvider] = KotlinTreeProvider):
        """
        Args:
            usage_tracking: Which features record usage sites: `'none'`
                for statistics only, `'default'` for the features declared
                as tracked in `FEATURES`, or `'all'`.
            provider_factory: Called with a repository path to create the
                provider of its parsed source files.
        """
        self.counters = FeatureCounters(FEATURES, usage_tracking=usage_tracking)
        self.totals = CensusTotals()
        self.provider_factory = provider_factory
        self.handlers: Dict[NodeKind, NodeHandler] = {
            NodeKind.ERROR: self.visit_error,
            NodeKind.CLASS: self.visit_class,
            NodeKind.ENUM_ENTRY: self.visit_enum_entry,
            NodeKind.OBJECT_DECLARATION: self.visit_object_declaration,
            NodeKind.NAMED_FUNCTION: self.visit_named_function,
            NodeKind.DELEGATION_BY: self.visit_delegation_by,
            NodeKind.FUNCTION_LITERAL: self.visit_function_literal,
            NodeKind.LABELED_EXPRESSION: self.visit_labeled_expression,
            NodeKind.BREAK: self.visit_break_or_continue,
            NodeKind.CONTINUE: self.visit_break_or_continue,
            NodeKind.RETURN: self.visit_return,
            NodeKind.WHILE: self.visit_while,
            NodeKind.DO_WHILE: self.visit_do_while,
            NodeKind.WHEN: self.visit_when,
            NodeKind.WHEN_IN_RANGE: self.visit_when_in_range,
            NodeKind.PROPERTY: self.visit_property,
            NodeKind.TYPE_PARAMETER: self.visit_type_parameter,
            NodeKind.TYPE_PROJECTION: self.visit_type_projection,
            NodeKind.BINARY_EXPRESSION: self.visit_binary_expression,
            NodeKind.BINARY_WITH_TYPE: self.visit_binary_with_type,
            NodeKind.BACKING_FIELD: self.visit_backing_field,
        }

    def __repr__(self):
        return f'{self.__class__.__name__}({self.counters.usage_tracking})'

    def analyze_repository(self, root_path: str) -> None:
        """Counts features in every Kotlin file under root_path.

        Raises:
            AnalyzerError: The source files of root_path cannot be provided.

        """
        with self.provider_factory(root_path) as provider:
            self.totals.repositories_analyzed += 1
            for source_file in provider.source_files():
                self.analyze_file(source_file, project=root_path)

    def analyze_file(self, source_file: SourceFile, *, project: str) -> None:
        """Counts features in a parsed file, attributing them to project."""
        self.totals.files_analyzed += 1
        self.totals.lines_analyzed += source_file.line_count
        # iterdescendants() walks in document order, which visits
        # parents before their children and skips the file node itself.
        for node in source_file.tree.iterdescendants():
            self.visit(node, project)

    def visit(self, node: _Element, project: str) -> None:
        kind = classify_node(node)
        if kind is not None:
            self.handlers[kind](node, project)

    def test(self, code_snippet: str, *, test_filename: str = 'Test.kt') -> 'KotlinCensusVisitor':
        """Utility for directly analyzing a string of Kotlin source-code.

        A repository will be created in a temporary directory to perform
        analysis of a file created with the given `code_snippet`.

        Returns:
            This visitor, with its counters updated.

        """
        source = TestSource({test_filename: code_snippet})
        repo = next(source.repo_generator())
        try:
            self.analyze_repository(repo.path)
        finally:
            repo.cleanup()
        return self

    def _increment(self, key: str, project: str, node: _Element) -> None:
        self.counters[key].increment(project, node)

    # ==== Handlers ====

    def visit_error(self, node: _Element, project: str) -> None:
        self._increment('syntax_errors', project, node)

    def visit_class(self, klass: _Element, project: str) -> None:
        self._increment('classes', project, klass)
        if is_inner_class(klass):
            self._increment('inner_classes', project, klass)
            if has_outer_type_parameters(klass):
                self._increment('inner_classes_with_outer_type_parameters', project, klass)
        if has_non_default_constructor_visibility(klass):
            self._increment('primary_constructor_visibility', project, klass)
        if is_enum_class(klass):
            self._increment('enums', project, klass)
            if count_primary_constructor_parameters(klass) > 0:
                self._increment('enums_with_constructor_parameters', project, klass)

    def visit_enum_entry(self, entry: _Element, project: str) -> None:
        self._increment('enum_entries', project, entry)
        if has_enum_entry_body(entry):
            self._increment('enum_entries_with_body', project, entry)

    def visit_object_declaration(self, obj: _Element, project: str) -> None:
        self._increment('objects', project, obj)
        if is_top_level(obj):
            self._increment('top_level_objects', project, obj)
        if is_companion_object(obj):
            self._increment('companion_objects', project, obj)

    def visit_named_function(self, function: _Element, project: str) -> None:
        self._increment('functions', project, function)
        if is_inline_function(function):
            self._increment('inline_functions', project, function)
        if has_receiver_type(function):
            self._increment('extension_functions', project, function)
            if is_declared_in_class(function):
                self._increment('extension_functions_in_classes', project, function)

    def visit_delegation_by(self, specifier: _Element, project: str) -> None:
        self._increment('delegation_by_specifiers', project, specifier)

    def visit_function_literal(self, literal: _Element, project: str) -> None:
        self._increment('lambdas', project, literal)
        if has_declared_return_type(literal):
            self._increment('lambdas_with_declared_return_type', project, literal)

    def visit_labeled_expression(self, label: _Element, project: str) -> None:
        self._increment('labeled_expressions', project, label)

    def visit_break_or_continue(self, jump: _Element, project: str) -> None:
        if has_target_label(jump):
            self._increment('qualified_break_continue', project, jump)

    def visit_return(self, jump: _Element, project: str) -> None:
        if has_target_label(jump):
            self._increment('return_with_label', project, jump)

    def visit_while(self, loop: _Element, project: str) -> None:
        self._increment('while_loops', project, loop)

    def visit_do_while(self, loop: _Element, project: str) -> None:
        self._increment('do_while_loops', project, loop)

    def visit_when(self, when: _Element, project: str) -> None:
        if has_when_subject(when):
            self._increment('when_with_subject', project, when)
        else:
            self._increment('when_without_subject', project, when)

    def visit_when_in_range(self, condition: _Element, project: str) -> None:
        self._increment('when_condition_in_range', project, condition)

    def visit_property(self, prop: _Element, project: str) -> None:
        if is_mutable_property(prop):
            self._increment('vars', project, prop)
        else:
            self._increment('vals', project, prop)

    def visit_type_parameter(self, parameter: _Element, project: str) -> None:
        self._increment('type_parameters', project, parameter)
        if get_variance(parameter) is not None:
            self._increment('type_parameters_with_variance', project, parameter)

    def visit_type_projection(self, projection: _Element, project: str) -> None:
        self._increment('type_arguments', project, projection)
        projection_kind = get_projection_kind(projection)
        if projection_kind in ('in', 'out'):
            self._increment('type_arguments_with_variance', project, projection)
        elif projection_kind == 'star':
            self._increment('type_arguments_with_star', project, projection)

    def visit_binary_expression(self, expression: _Element, project: str) -> None:
        if is_range_operator(expression):
            self._increment('range_operators', project, expression)

    def visit_binary_with_type(self, expression: _Element, project: str) -> None:
        if is_type_ascription(expression):
            self._increment('types_after_colon', project, expression)

    def visit_backing_field(self, identifier: _Element, project: str) -> None:
        self._increment('backing_fields', project, identifier)
