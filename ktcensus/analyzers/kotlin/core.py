import re
from typing import Any, List, Optional, Tuple

from lxml import etree
import tree_sitter
import tree_sitter_kotlin

from ktcensus.analyzers import FileInfo, SourceFile, SourceTreeProvider
from ktcensus.utils import logger

TEST_DATA_REGEX = re.compile(r'(.*[/\\])?testData[/\\].*')

XML_TAG_REGEX = re.compile(r'[A-Za-z_][A-Za-z0-9_.-]*')

# Ranges of characters that can be stored in an XML attribute, besides
# tab, newline and carriage return.
XML_CHAR_RANGES = [(0x20, 0xD7FF), (0xE000, 0xFFFD), (0x10000, 0x10FFFF)]
XML_INVALID_CHARS_REGEX = re.compile('[^\t\n\r' + ''.join(
    f'{chr(low)}-{chr(high)}' for low, high in XML_CHAR_RANGES
) + ']')


def kt_test_data_filter(file_info: FileInfo):
    """Filter to exclude files under a `testData` directory, which holds
    compiler test inputs rather than project code."""
    return TEST_DATA_REGEX.fullmatch(file_info.rel_path)


def xml_safe(text: str) -> str:
    return XML_INVALID_CHARS_REGEX.sub(chr(0xFFFD), text)


def convert_to_xml(root_node: Any, source: bytes) -> etree._Element:
    """Converts a tree-sitter syntax tree into an lxml element tree.

    Named nodes become elements tagged with their node type, anonymous
    nodes become `token` elements with their node type in a `type`
    attribute. Every element carries the 1-based `lineno` it starts on,
    leaves carry their source `text`, and nodes inserted by tree-sitter's
    error recovery are marked `missing="true"`.

    """
    root = etree.Element(root_node.type)
    root.set('lineno', str(root_node.start_point[0] + 1))
    stack: List[Tuple[Any, etree._Element]] = [(child, root) for child in reversed(root_node.children)]
    # Walk iteratively, as deeply nested expressions can exceed the
    # recursion limit.
    while stack:
        node, parent = stack.pop()
        if node.is_named and XML_TAG_REGEX.fullmatch(node.type):
            element = etree.SubElement(parent, node.type)
        else:
            element = etree.SubElement(parent, 'token')
            element.set('type', xml_safe(node.type))
        element.set('lineno', str(node.start_point[0] + 1))
        if node.is_missing:
            element.set('missing', 'true')
        children = node.children
        if children:
            stack.extend((child, element) for child in reversed(children))
        else:
            text = source[node.start_byte:node.end_byte].decode('utf-8', errors='replace')
            element.set('text', xml_safe(text))
    return root


class KotlinTreeProvider(SourceTreeProvider):
    """Provider that finds .kt files and parses them with tree-sitter-kotlin
    into lxml documents representing their concrete syntax trees."""
    default_file_glob = '**/*.kt'
    default_file_filters = [
        kt_test_data_filter,
    ]
    """Excludes files under a `testData` directory."""

    def __init__(self, root: str, **kwargs):
        super().__init__(root, **kwargs)
        self._parser: Optional[tree_sitter.Parser] = tree_sitter.Parser()
        self._parser.language = tree_sitter.Language(tree_sitter_kotlin.language())

    def close(self) -> None:
        self._parser = None

    def prepare_file(self, file_info: FileInfo) -> SourceFile:
        if self._parser is None:
            raise RuntimeError(f'Provider for "{self.root}" has been closed')
        with open(file_info.abs_path, 'rb') as f:
            source = f.read()

        tree = self._parser.parse(source)
        if tree.root_node.has_error:
            logger.debug(f'Kotlin file "{file_info.rel_path}" has syntax errors')
        file_xml = convert_to_xml(tree.root_node, source)
        file_xml.set('path', xml_safe(file_info.abs_path))
        return SourceFile(
            info=file_info,
            tree=file_xml,
            line_count=len(source.decode('utf-8', errors='replace').splitlines()),
        )
