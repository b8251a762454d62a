"""Classification of Kotlin syntax tree elements.

Syntax trees are lxml documents produced by
[`KotlinTreeProvider`][ktcensus.analyzers.kotlin.KotlinTreeProvider]:
named tree-sitter nodes become elements tagged with their node type,
anonymous tokens become `token` elements with a `type` attribute, and
leaves carry their source `text`.

All knowledge of tree-sitter-kotlin node types is kept in this module.
To explore the tree structure of a Kotlin construct, consider using the
tree-sitter playground: https://tree-sitter.github.io/tree-sitter/playground

"""

from enum import Enum
from typing import Dict, FrozenSet, Iterable, List, Optional, Set

from lxml.etree import _Element


class NodeKind(Enum):
    """Syntactically distinct kinds of nodes counted by the census."""

    ERROR = 'error'
    CLASS = 'class'
    ENUM_ENTRY = 'enum_entry'
    OBJECT_DECLARATION = 'object_declaration'
    NAMED_FUNCTION = 'named_function'
    DELEGATION_BY = 'delegation_by'
    FUNCTION_LITERAL = 'function_literal'
    LABELED_EXPRESSION = 'labeled_expression'
    BREAK = 'break'
    CONTINUE = 'continue'
    RETURN = 'return'
    WHILE = 'while'
    DO_WHILE = 'do_while'
    WHEN = 'when'
    WHEN_IN_RANGE = 'when_in_range'
    PROPERTY = 'property'
    TYPE_PARAMETER = 'type_parameter'
    TYPE_PROJECTION = 'type_projection'
    BINARY_EXPRESSION = 'binary_expression'
    BINARY_WITH_TYPE = 'binary_with_type'
    BACKING_FIELD = 'backing_field'


ERROR_TAG = 'ERROR'
TOKEN_TAG = 'token'

TAG_KINDS: Dict[str, NodeKind] = {
    ERROR_TAG: NodeKind.ERROR,
    'class_declaration': NodeKind.CLASS,
    'enum_entry': NodeKind.ENUM_ENTRY,
    'object_declaration': NodeKind.OBJECT_DECLARATION,
    'companion_object': NodeKind.OBJECT_DECLARATION,
    'object_literal': NodeKind.OBJECT_DECLARATION,
    'function_declaration': NodeKind.NAMED_FUNCTION,
    'explicit_delegation': NodeKind.DELEGATION_BY,
    'lambda_literal': NodeKind.FUNCTION_LITERAL,
    'anonymous_function': NodeKind.FUNCTION_LITERAL,
    'while_statement': NodeKind.WHILE,
    'do_while_statement': NodeKind.DO_WHILE,
    'when_expression': NodeKind.WHEN,
    'range_test': NodeKind.WHEN_IN_RANGE,
    'property_declaration': NodeKind.PROPERTY,
    'type_parameter': NodeKind.TYPE_PARAMETER,
    'type_projection': NodeKind.TYPE_PROJECTION,
    'range_expression': NodeKind.BINARY_EXPRESSION,
    'as_expression': NodeKind.BINARY_WITH_TYPE,
    'return_expression': NodeKind.RETURN,
}

# The grammar has no break or continue keywords: a bare `break` is an
# identifier, and `break@outer` is a labeled expression whose label is
# `break@`.
JUMP_KINDS: Dict[str, NodeKind] = {
    'break': NodeKind.BREAK,
    'continue': NodeKind.CONTINUE,
}

IDENTIFIER_TAGS: FrozenSet[str] = frozenset({'identifier'})
CLASS_TAGS: FrozenSet[str] = frozenset({'class_declaration'})
DECLARATION_TAGS: FrozenSet[str] = frozenset({
    'class_declaration',
    'object_declaration',
    'companion_object',
    'object_literal',
    'function_declaration',
    'anonymous_function',
    'property_declaration',
    'getter',
    'setter',
    'secondary_constructor',
    'anonymous_initializer',
    'type_alias',
})
RECEIVER_TYPE_TAGS: FrozenSet[str] = frozenset({
    'type_modifiers',
    'user_type',
    'nullable_type',
    'non_nullable_type',
    'parenthesized_type',
    'function_type',
})
# Elements whose `label` child names a target rather than labeling an
# expression.
LABEL_TARGET_TAGS: FrozenSet[str] = frozenset({'return_expression', 'this_expression', 'super_expression'})
ACCESSOR_TAGS: FrozenSet[str] = frozenset({'getter', 'setter'})
BACKING_FIELD_NAME = 'field'
LABEL_SUFFIX = '@'
STAR_PROJECTION = '*'
RANGE_OPERATOR = '..'
ASCRIPTION_OPERATOR = ':'


# ==== Generic element helpers ====

def is_token(node: _Element, *types: str) -> bool:
    """Whether node is an anonymous token, optionally of one of the given
    types."""
    return node.tag == TOKEN_TAG and (not types or node.get('type') in types)


def get_tokens(node: _Element) -> List[str]:
    """Returns the types of the direct child tokens of node, in order."""
    return [child.get('type', '') for child in node if is_token(child)]


def has_token(node: _Element, *types: str) -> bool:
    return any(is_token(child, *types) for child in node)


def get_text(node: _Element) -> str:
    """Returns the source text of node's leaves joined without whitespace."""
    return ''.join(node.xpath('descendant-or-self::*[@text]/@text'))


def get_modifiers(node: _Element) -> Set[str]:
    """Returns the keywords in the modifier list of a declaration,
    ignoring annotations."""
    return set(node.xpath('modifiers/*[not(self::annotation)]/descendant-or-self::*/@text'))


def get_enclosing(node: _Element, tags: Iterable[str]) -> Optional[_Element]:
    """Returns the nearest ancestor of node with one of the given tags."""
    for ancestor in node.iterancestors():
        if ancestor.tag in tags:
            return ancestor
    return None


# ==== Classification ====

def get_label_name(label: _Element) -> str:
    """Returns the name of a label without its `@` suffix."""
    text = get_text(label)
    return text[:-len(LABEL_SUFFIX)] if text.endswith(LABEL_SUFFIX) else text


def classify_label(label: _Element) -> Optional[NodeKind]:
    """Labels named `break` or `continue` are labeled jumps; other labels
    label an expression unless they name the target of a return, `this`
    or `super`."""
    parent = label.getparent()
    if parent is not None and parent.tag in LABEL_TARGET_TAGS:
        return None
    return JUMP_KINDS.get(get_label_name(label), NodeKind.LABELED_EXPRESSION)


def is_member_name(identifier: _Element) -> bool:
    """Whether identifier is the member selected by a navigation
    expression (`other.field`)."""
    parent = identifier.getparent()
    return (parent is not None and parent.tag == 'navigation_expression'
            and identifier.getprevious() is not None)


def is_backing_field(node: _Element) -> bool:
    """Whether node is the `field` identifier referring to a property's
    backing field inside one of its accessors."""
    if node.get('text') != BACKING_FIELD_NAME or len(node) > 0:
        return False
    if is_member_name(node):
        return False
    return get_enclosing(node, ACCESSOR_TAGS) is not None


def classify_identifier(identifier: _Element) -> Optional[NodeKind]:
    if len(identifier) > 0:
        return None
    text = identifier.get('text')
    if text in JUMP_KINDS and not is_member_name(identifier):
        return JUMP_KINDS[text]
    return NodeKind.BACKING_FIELD if is_backing_field(identifier) else None


def is_star_argument(token: _Element) -> bool:
    """Whether token is a `*` type argument outside any type projection
    element."""
    parent = token.getparent()
    return is_token(token, STAR_PROJECTION) and parent is not None and parent.tag == 'type_arguments'


def classify_node(node: _Element) -> Optional[NodeKind]:
    """Returns the NodeKind of a syntax tree element, or `None` if it is
    not of a kind counted by the census."""
    tag = node.tag
    if not isinstance(tag, str):
        # Comments and processing instructions.
        return None
    if node.get('missing') == 'true':
        return NodeKind.ERROR
    if tag == TOKEN_TAG:
        return NodeKind.TYPE_PROJECTION if is_star_argument(node) else None
    if tag == 'label':
        return classify_label(node)
    if tag in IDENTIFIER_TAGS:
        return classify_identifier(node)
    return TAG_KINDS.get(tag)


# ==== Class declarations ====

def is_inner_class(klass: _Element) -> bool:
    return 'inner' in get_modifiers(klass)


def is_enum_class(klass: _Element) -> bool:
    return 'enum' in get_modifiers(klass) or has_token(klass, 'enum')


def count_type_parameters(node: _Element) -> int:
    return len(node.xpath('type_parameters/type_parameter'))


def has_outer_type_parameters(klass: _Element) -> bool:
    """Whether any class enclosing klass declares type parameters.

    Walks up from each enclosing class to the next, so classes nested
    at any depth are considered.

    """
    outer = get_enclosing(klass, CLASS_TAGS)
    while outer is not None:
        if count_type_parameters(outer) > 0:
            return True
        outer = get_enclosing(outer, CLASS_TAGS)
    return False


def get_primary_constructor_visibility(klass: _Element) -> Optional[str]:
    """Returns the visibility modifier declared on klass's primary
    constructor, if any."""
    visibilities = klass.xpath('primary_constructor/modifiers//visibility_modifier')
    if not visibilities:
        return None
    return get_text(visibilities[0])


def has_non_default_constructor_visibility(klass: _Element) -> bool:
    visibility = get_primary_constructor_visibility(klass)
    return visibility is not None and visibility != 'public'


def count_primary_constructor_parameters(klass: _Element) -> int:
    return len(klass.xpath(('primary_constructor/class_parameters/class_parameter'
                            ' | primary_constructor/class_parameter')))


def has_enum_entry_body(entry: _Element) -> bool:
    return entry.find('class_body') is not None


# ==== Objects and functions ====

def is_top_level(node: _Element) -> bool:
    """Whether node is not enclosed by any other declaration."""
    return get_enclosing(node, DECLARATION_TAGS) is None


def is_companion_object(obj: _Element) -> bool:
    return obj.tag == 'companion_object' or 'companion' in get_modifiers(obj)


def is_inline_function(function: _Element) -> bool:
    return 'inline' in get_modifiers(function)


def has_receiver_type(function: _Element) -> bool:
    """Whether a function declares a receiver type, i.e. a type before its
    name (`fun String.shout()`)."""
    for child in function:
        if child.tag in IDENTIFIER_TAGS or child.tag == 'function_value_parameters':
            return False
        if child.tag in RECEIVER_TYPE_TAGS:
            return True
    return False


def is_declared_in_class(node: _Element) -> bool:
    """Whether the nearest declaration enclosing node is a class."""
    enclosing = get_enclosing(node, DECLARATION_TAGS)
    return enclosing is not None and enclosing.tag in CLASS_TAGS


def has_declared_return_type(literal: _Element) -> bool:
    """Whether a function literal declares its return type
    (`fun(x: Int): Int { ... }`)."""
    return literal.tag == 'anonymous_function' and has_token(literal, ASCRIPTION_OPERATOR)


# ==== Expressions ====

def has_target_label(jump: _Element) -> bool:
    """Whether a break, continue or return expression names a label
    (`break@outer`, `return@forEach`)."""
    if jump.tag == 'label':
        return True
    tokens = get_tokens(jump)
    if tokens and tokens[0].endswith(LABEL_SUFFIX):
        return True
    return jump.find('label') is not None


def has_when_subject(when: _Element) -> bool:
    return when.find('when_subject') is not None


def is_mutable_property(prop: _Element) -> bool:
    return has_token(prop, 'var')


def get_operator(node: _Element) -> Optional[str]:
    """Returns the operator token of a binary expression."""
    tokens = get_tokens(node)
    return tokens[0] if tokens else None


def is_range_operator(expression: _Element) -> bool:
    return get_operator(expression) == RANGE_OPERATOR


def is_type_ascription(expression: _Element) -> bool:
    return get_operator(expression) == ASCRIPTION_OPERATOR


# ==== Types ====

def get_variance(node: _Element) -> Optional[str]:
    """Returns 'in' or 'out' for a type parameter or type projection
    declared with variance."""
    variances = node.xpath('variance_modifier | type_parameter_modifiers/variance_modifier')
    if not variances:
        return None
    return get_text(variances[0])


def get_projection_kind(projection: _Element) -> Optional[str]:
    """Returns 'star', 'in' or 'out' for a projected type argument, or
    `None` for an invariant one."""
    if is_token(projection, STAR_PROJECTION) or has_token(projection, STAR_PROJECTION):
        return 'star'
    return get_variance(projection)
