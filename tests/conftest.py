"""Shared test fixtures."""

import pytest
from lxml import etree

from ktcensus.analyzers import FileInfo, SourceFile


@pytest.fixture
def make_source_file():
    """Factory for SourceFiles whose syntax tree is written directly as XML
    in the form produced by KotlinTreeProvider."""

    def make(xml: str, *, root: str = '/repo', rel_path: str = 'src/Test.kt',
             line_count: int = 10) -> SourceFile:
        tree = etree.fromstring(xml)
        tree.set('path', f'{root}/{rel_path}')
        return SourceFile(
            info=FileInfo(root=root, rel_path=rel_path),
            tree=tree,
            line_count=line_count,
        )

    return make


# class Outer {
#     inner class Inner
# }
# enum class Color { RED, GREEN }
# val f = fun(x: Int): Int { return x }
# fun loop() {
#     outer@ while (true) { break@outer }
# }
SAMPLE_XML = '''
<source_file lineno="1">
  <class_declaration lineno="1">
    <token type="class" text="class" lineno="1"/>
    <identifier text="Outer" lineno="1"/>
    <class_body lineno="1">
      <class_declaration lineno="2">
        <modifiers lineno="2">
          <class_modifier lineno="2"><token type="inner" text="inner" lineno="2"/></class_modifier>
        </modifiers>
        <token type="class" text="class" lineno="2"/>
        <identifier text="Inner" lineno="2"/>
      </class_declaration>
    </class_body>
  </class_declaration>
  <class_declaration lineno="4">
    <modifiers lineno="4">
      <class_modifier lineno="4"><token type="enum" text="enum" lineno="4"/></class_modifier>
    </modifiers>
    <token type="class" text="class" lineno="4"/>
    <identifier text="Color" lineno="4"/>
    <enum_class_body lineno="4">
      <enum_entry lineno="4"><identifier text="RED" lineno="4"/></enum_entry>
      <enum_entry lineno="4"><identifier text="GREEN" lineno="4"/></enum_entry>
    </enum_class_body>
  </class_declaration>
  <property_declaration lineno="5">
    <token type="val" text="val" lineno="5"/>
    <variable_declaration lineno="5"><identifier text="f" lineno="5"/></variable_declaration>
    <token type="=" text="=" lineno="5"/>
    <anonymous_function lineno="5">
      <token type="fun" text="fun" lineno="5"/>
      <function_value_parameters lineno="5">
        <parameter lineno="5">
          <identifier text="x" lineno="5"/>
          <token type=":" text=":" lineno="5"/>
          <user_type lineno="5"><identifier text="Int" lineno="5"/></user_type>
        </parameter>
      </function_value_parameters>
      <token type=":" text=":" lineno="5"/>
      <user_type lineno="5"><identifier text="Int" lineno="5"/></user_type>
      <function_body lineno="5">
        <block lineno="5">
          <return_expression lineno="5">
            <token type="return" text="return" lineno="5"/>
            <identifier text="x" lineno="5"/>
          </return_expression>
        </block>
      </function_body>
    </anonymous_function>
  </property_declaration>
  <function_declaration lineno="6">
    <token type="fun" text="fun" lineno="6"/>
    <identifier text="loop" lineno="6"/>
    <function_value_parameters lineno="6"/>
    <function_body lineno="6">
      <block lineno="6">
        <labeled_expression lineno="7">
          <label text="outer@" lineno="7"/>
          <while_statement lineno="7">
            <token type="while" text="while" lineno="7"/>
            <boolean_literal lineno="7"><token type="true" text="true" lineno="7"/></boolean_literal>
            <block lineno="7">
              <labeled_expression lineno="7">
                <label text="break@" lineno="7"/>
                <identifier text="outer" lineno="7"/>
              </labeled_expression>
            </block>
          </while_statement>
        </labeled_expression>
      </block>
    </function_body>
  </function_declaration>
</source_file>
'''


@pytest.fixture
def sample_source_file(make_source_file):
    """A SourceFile with a class containing an inner class, an enum with two
    entries, a function literal with a declared return type, and a
    labeled break."""
    return make_source_file(SAMPLE_XML, line_count=8)
