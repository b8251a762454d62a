from lxml import etree
import pytest

from ktcensus.analyzers import UsageSite
from ktcensus.analyzers.kotlin import FEATURES, KotlinCensusVisitor, NodeKind, classify_node


def census_of(make_source_file, body, **kwargs):
    visitor = KotlinCensusVisitor(**kwargs)
    visitor.analyze_file(make_source_file(f'<source_file lineno="1">{body}</source_file>'),
                         project='/repo')
    return visitor


def counts(visitor, *keys):
    return {key: visitor.counters[key].count for key in keys}


def test_every_kind_has_a_handler():
    visitor = KotlinCensusVisitor()
    assert set(visitor.handlers) == set(NodeKind)


def test_features_have_unique_keys():
    keys = [spec.key for spec in FEATURES]
    assert len(keys) == len(set(keys)) == 37
    assert keys[0] == 'syntax_errors'
    assert keys[-1] == 'backing_fields'


def test_sample_file(sample_source_file):
    visitor = KotlinCensusVisitor()
    visitor.analyze_file(sample_source_file, project='/repo')
    assert counts(visitor, 'classes', 'inner_classes', 'inner_classes_with_outer_type_parameters',
                  'enums', 'enums_with_constructor_parameters', 'enum_entries',
                  'enum_entries_with_body', 'functions', 'lambdas',
                  'lambdas_with_declared_return_type', 'labeled_expressions',
                  'qualified_break_continue', 'return_with_label', 'while_loops',
                  'vals', 'vars', 'syntax_errors') == {
        'classes': 3,
        'inner_classes': 1,
        'inner_classes_with_outer_type_parameters': 0,
        'enums': 1,
        'enums_with_constructor_parameters': 0,
        'enum_entries': 2,
        'enum_entries_with_body': 0,
        'functions': 1,
        'lambdas': 1,
        'lambdas_with_declared_return_type': 1,
        'labeled_expressions': 1,
        'qualified_break_continue': 1,
        'return_with_label': 0,
        'while_loops': 1,
        'vals': 1,
        'vars': 0,
        'syntax_errors': 0,
    }
    assert visitor.counters['lambdas_with_declared_return_type'].usages == [
        UsageSite(project='/repo', file='src/Test.kt', line=5),
    ]
    assert visitor.counters['qualified_break_continue'].usages == [
        UsageSite(project='/repo', file='src/Test.kt', line=7),
    ]
    assert visitor.counters['classes'].usages == []
    assert visitor.totals.files_analyzed == 1
    assert visitor.totals.lines_analyzed == 8
    assert visitor.totals.repositories_analyzed == 0


def test_usage_tracking_modes(sample_source_file):
    stats_only = KotlinCensusVisitor(usage_tracking='none')
    stats_only.analyze_file(sample_source_file, project='/repo')
    assert all(counter.usages == [] for counter in stats_only.counters)
    assert stats_only.counters['lambdas_with_declared_return_type'].count == 1

    detailed = KotlinCensusVisitor(usage_tracking='all')
    detailed.analyze_file(sample_source_file, project='/repo')
    assert [usage.line for usage in detailed.counters['classes'].usages] == [1, 2, 4]
    assert [usage.line for usage in detailed.counters['enum_entries'].usages] == [4, 4]

    with pytest.raises(ValueError):
        KotlinCensusVisitor(usage_tracking='verbose')


def test_syntax_errors(make_source_file):
    visitor = census_of(make_source_file, '''
        <ERROR lineno="2"><token type="{" text="{" lineno="2"/></ERROR>
        <class_declaration lineno="3">
          <token type="class" text="class"/>
          <identifier text="" missing="true" lineno="3"/>
        </class_declaration>
    ''')
    assert visitor.counters['syntax_errors'].count == 2
    assert [usage.line for usage in visitor.counters['syntax_errors'].usages] == [2, 3]


def test_delegation_by(make_source_file):
    # class Wrapper(list: List<Int>) : List<Int> by list
    visitor = census_of(make_source_file, '''
        <class_declaration lineno="1">
          <delegation_specifier>
            <explicit_delegation lineno="1">
              <user_type><identifier text="List"/></user_type>
              <token type="by" text="by"/>
              <identifier text="list"/>
            </explicit_delegation>
          </delegation_specifier>
        </class_declaration>
    ''')
    assert visitor.counters['delegation_by_specifiers'].count == 1


def test_class_features(make_source_file):
    # class Outer<T> {
    #     inner class Inner
    #     class Nested private constructor(val x: Int) {
    #         inner class Deep
    #     }
    # }
    # enum class Planet(val mass: Double) { EARTH(5.97) { override fun toString() = "home" } }
    visitor = census_of(make_source_file, '''
        <class_declaration lineno="1">
          <token type="class" text="class"/>
          <identifier text="Outer"/>
          <type_parameters><type_parameter><identifier text="T"/></type_parameter></type_parameters>
          <class_body>
            <class_declaration lineno="2">
              <modifiers><class_modifier><token type="inner" text="inner"/></class_modifier></modifiers>
              <token type="class" text="class"/>
              <identifier text="Inner"/>
            </class_declaration>
            <class_declaration lineno="3">
              <token type="class" text="class"/>
              <identifier text="Nested"/>
              <primary_constructor>
                <modifiers><visibility_modifier><token type="private" text="private"/></visibility_modifier></modifiers>
                <token type="constructor" text="constructor"/>
                <class_parameters>
                  <class_parameter><token type="val" text="val"/><identifier text="x"/></class_parameter>
                </class_parameters>
              </primary_constructor>
              <class_body>
                <class_declaration lineno="4">
                  <modifiers><class_modifier><token type="inner" text="inner"/></class_modifier></modifiers>
                  <token type="class" text="class"/>
                  <identifier text="Deep"/>
                </class_declaration>
              </class_body>
            </class_declaration>
          </class_body>
        </class_declaration>
        <class_declaration lineno="7">
          <modifiers><class_modifier><token type="enum" text="enum"/></class_modifier></modifiers>
          <token type="class" text="class"/>
          <identifier text="Planet"/>
          <primary_constructor>
            <class_parameters>
              <class_parameter><token type="val" text="val"/><identifier text="mass"/></class_parameter>
            </class_parameters>
          </primary_constructor>
          <enum_class_body>
            <enum_entry lineno="7">
              <identifier text="EARTH"/>
              <value_arguments/>
              <class_body/>
            </enum_entry>
          </enum_class_body>
        </class_declaration>
    ''')
    assert counts(visitor, 'classes', 'inner_classes', 'inner_classes_with_outer_type_parameters',
                  'primary_constructor_visibility', 'enums', 'enums_with_constructor_parameters',
                  'enum_entries', 'enum_entries_with_body') == {
        'classes': 5,
        'inner_classes': 2,
        'inner_classes_with_outer_type_parameters': 2,
        'primary_constructor_visibility': 1,
        'enums': 1,
        'enums_with_constructor_parameters': 1,
        'enum_entries': 1,
        'enum_entries_with_body': 1,
    }
    assert [usage.line for usage in visitor.counters['inner_classes_with_outer_type_parameters'].usages] == [2, 4]


def test_public_primary_constructor(make_source_file):
    visitor = census_of(make_source_file, '''
        <class_declaration lineno="1">
          <token type="class" text="class"/>
          <identifier text="Open"/>
          <primary_constructor>
            <modifiers><visibility_modifier><token type="public" text="public"/></visibility_modifier></modifiers>
            <token type="constructor" text="constructor"/>
            <class_parameters/>
          </primary_constructor>
        </class_declaration>
    ''')
    assert visitor.counters['primary_constructor_visibility'].count == 0


def test_objects(make_source_file):
    # object Registry
    # class Host { companion object Factory; val anonymous = object : Runnable {} }
    visitor = census_of(make_source_file, '''
        <object_declaration lineno="1">
          <token type="object" text="object"/>
          <identifier text="Registry"/>
        </object_declaration>
        <class_declaration lineno="2">
          <token type="class" text="class"/>
          <identifier text="Host"/>
          <class_body>
            <companion_object lineno="2">
              <token type="companion" text="companion"/>
              <token type="object" text="object"/>
              <identifier text="Factory"/>
            </companion_object>
            <property_declaration lineno="2">
              <token type="val" text="val"/>
              <variable_declaration><identifier text="anonymous"/></variable_declaration>
              <object_literal lineno="2">
                <token type="object" text="object"/>
                <delegation_specifier><user_type><identifier text="Runnable"/></user_type></delegation_specifier>
                <class_body/>
              </object_literal>
            </property_declaration>
          </class_body>
        </class_declaration>
    ''')
    assert counts(visitor, 'objects', 'top_level_objects', 'companion_objects') == {
        'objects': 3,
        'top_level_objects': 1,
        'companion_objects': 1,
    }


def test_functions(make_source_file):
    # inline fun run() {}
    # fun String.shout() = uppercase()
    # class Host { fun Int.twice() = this * 2; fun plain() {} }
    visitor = census_of(make_source_file, '''
        <function_declaration lineno="1">
          <modifiers><function_modifier><token type="inline" text="inline"/></function_modifier></modifiers>
          <token type="fun" text="fun"/>
          <identifier text="run"/>
          <function_value_parameters/>
          <function_body/>
        </function_declaration>
        <function_declaration lineno="2">
          <token type="fun" text="fun"/>
          <user_type><identifier text="String"/></user_type>
          <token type="." text="."/>
          <identifier text="shout"/>
          <function_value_parameters/>
          <function_body/>
        </function_declaration>
        <class_declaration lineno="3">
          <token type="class" text="class"/>
          <identifier text="Host"/>
          <class_body>
            <function_declaration lineno="3">
              <token type="fun" text="fun"/>
              <user_type><identifier text="Int"/></user_type>
              <token type="." text="."/>
              <identifier text="twice"/>
              <function_value_parameters/>
              <function_body/>
            </function_declaration>
            <function_declaration lineno="3">
              <token type="fun" text="fun"/>
              <identifier text="plain"/>
              <function_value_parameters/>
              <user_type><identifier text="Unit"/></user_type>
              <function_body/>
            </function_declaration>
          </class_body>
        </class_declaration>
    ''')
    assert counts(visitor, 'functions', 'inline_functions', 'extension_functions',
                  'extension_functions_in_classes') == {
        'functions': 4,
        'inline_functions': 1,
        'extension_functions': 2,
        'extension_functions_in_classes': 1,
    }


def test_lambdas_and_labels(make_source_file):
    # items.forEach loop@{ if (it == 0) return@loop }
    # val f = fun(x: Int) { println(x) }
    # this@Outer
    visitor = census_of(make_source_file, '''
        <call_expression lineno="1">
          <annotated_lambda>
            <labeled_expression lineno="1">
              <label text="loop@" lineno="1"/>
              <lambda_literal lineno="1">
                <return_expression lineno="1">
                  <token type="return@" text="return@"/>
                  <identifier text="loop"/>
                </return_expression>
                <return_expression lineno="1">
                  <token type="return" text="return"/>
                </return_expression>
                <throw_expression lineno="1">
                  <token type="throw" text="throw"/>
                  <identifier text="error"/>
                </throw_expression>
              </lambda_literal>
            </labeled_expression>
          </annotated_lambda>
        </call_expression>
        <anonymous_function lineno="2">
          <token type="fun" text="fun"/>
          <function_value_parameters/>
          <function_body/>
        </anonymous_function>
        <this_expression lineno="3">
          <token type="this@" text="this@"/>
          <identifier text="Outer"/>
        </this_expression>
    ''')
    assert counts(visitor, 'lambdas', 'lambdas_with_declared_return_type', 'labeled_expressions',
                  'return_with_label', 'qualified_break_continue') == {
        'lambdas': 2,
        'lambdas_with_declared_return_type': 0,
        'labeled_expressions': 1,
        'return_with_label': 1,
        'qualified_break_continue': 0,
    }


def test_loops_and_jumps(make_source_file):
    # do { continue } while (ready)
    # while (true) { continue@outer; break }
    visitor = census_of(make_source_file, '''
        <do_while_statement lineno="1">
          <token type="do" text="do"/>
          <block>
            <identifier text="continue"/>
          </block>
          <token type="while" text="while"/>
          <identifier text="ready"/>
        </do_while_statement>
        <while_statement lineno="2">
          <token type="while" text="while"/>
          <boolean_literal><token type="true" text="true"/></boolean_literal>
          <block>
            <labeled_expression lineno="2">
              <label text="continue@" lineno="2"/>
              <identifier text="outer"/>
            </labeled_expression>
            <identifier text="break"/>
          </block>
        </while_statement>
    ''')
    assert counts(visitor, 'do_while_loops', 'while_loops', 'qualified_break_continue',
                  'labeled_expressions') == {
        'do_while_loops': 1,
        'while_loops': 1,
        'qualified_break_continue': 1,
        'labeled_expressions': 0,
    }
    assert [usage.line for usage in visitor.counters['qualified_break_continue'].usages] == [2]


def test_when(make_source_file):
    # when (x) { in 1..9 -> a; !in range -> b; else -> c }
    # when { ready -> d }
    visitor = census_of(make_source_file, '''
        <when_expression lineno="1">
          <token type="when" text="when"/>
          <when_subject><identifier text="x"/></when_subject>
          <when_entry>
            <when_condition>
              <range_test>
                <token type="in" text="in"/>
                <range_expression>
                  <integer_literal text="1"/><token type=".." text=".."/><integer_literal text="9"/>
                </range_expression>
              </range_test>
            </when_condition>
          </when_entry>
          <when_entry>
            <when_condition>
              <range_test><token type="!in" text="!in"/><identifier text="range"/></range_test>
            </when_condition>
          </when_entry>
        </when_expression>
        <when_expression lineno="2">
          <token type="when" text="when"/>
          <when_entry><when_condition><identifier text="ready"/></when_condition></when_entry>
        </when_expression>
    ''')
    assert counts(visitor, 'when_with_subject', 'when_without_subject', 'when_condition_in_range',
                  'range_operators') == {
        'when_with_subject': 1,
        'when_without_subject': 1,
        'when_condition_in_range': 2,
        'range_operators': 1,
    }


def test_properties(make_source_file):
    # val a = 1
    # var b = 2
    # for ((k, v) in map) {}
    visitor = census_of(make_source_file, '''
        <property_declaration lineno="1">
          <token type="val" text="val"/>
          <variable_declaration><identifier text="a"/></variable_declaration>
        </property_declaration>
        <property_declaration lineno="2">
          <token type="var" text="var"/>
          <variable_declaration><identifier text="b"/></variable_declaration>
        </property_declaration>
        <property_declaration lineno="3">
          <token type="var" text="var"/>
          <variable_declaration><identifier text="c"/></variable_declaration>
        </property_declaration>
    ''')
    assert counts(visitor, 'vals', 'vars') == {'vals': 1, 'vars': 2}


def test_type_parameters_and_arguments(make_source_file):
    # class Box<in T, U>
    # val x: Map<out K, *> = y as Map<String, in V>
    visitor = census_of(make_source_file, '''
        <class_declaration lineno="1">
          <token type="class" text="class"/>
          <identifier text="Box"/>
          <type_parameters>
            <type_parameter>
              <type_parameter_modifiers><variance_modifier><token type="in" text="in"/></variance_modifier></type_parameter_modifiers>
              <identifier text="T"/>
            </type_parameter>
            <type_parameter><identifier text="U"/></type_parameter>
          </type_parameters>
        </class_declaration>
        <property_declaration lineno="2">
          <token type="val" text="val"/>
          <variable_declaration>
            <identifier text="x"/>
            <token type=":" text=":"/>
            <user_type>
              <identifier text="Map"/>
              <type_arguments>
                <type_projection>
                  <variance_modifier><token type="out" text="out"/></variance_modifier>
                  <user_type><identifier text="K"/></user_type>
                </type_projection>
                <type_projection><token type="*" text="*"/></type_projection>
              </type_arguments>
            </user_type>
          </variable_declaration>
          <as_expression>
            <identifier text="y"/>
            <token type="as" text="as"/>
            <user_type>
              <identifier text="Map"/>
              <type_arguments>
                <type_projection><user_type><identifier text="String"/></user_type></type_projection>
                <type_projection>
                  <variance_modifier><token type="in" text="in"/></variance_modifier>
                  <user_type><identifier text="V"/></user_type>
                </type_projection>
              </type_arguments>
            </user_type>
          </as_expression>
        </property_declaration>
    ''')
    assert counts(visitor, 'type_parameters', 'type_parameters_with_variance', 'type_arguments',
                  'type_arguments_with_variance', 'type_arguments_with_star',
                  'types_after_colon') == {
        'type_parameters': 2,
        'type_parameters_with_variance': 1,
        'type_arguments': 4,
        'type_arguments_with_variance': 2,
        'type_arguments_with_star': 1,
        'types_after_colon': 0,
    }


def test_backing_fields(make_source_file):
    # var counter = 0
    #     set(value) { if (value >= 0) field = value }
    # val mirror: Int get() = this.field
    # val field = other.field
    visitor = census_of(make_source_file, '''
        <property_declaration lineno="1">
          <token type="var" text="var"/>
          <variable_declaration><identifier text="counter"/></variable_declaration>
          <setter lineno="2">
            <token type="set" text="set"/>
            <parameter_with_optional_type><identifier text="value"/></parameter_with_optional_type>
            <function_body>
              <assignment lineno="2">
                <identifier text="field" lineno="2"/>
                <token type="=" text="="/>
                <identifier text="value"/>
              </assignment>
            </function_body>
          </setter>
        </property_declaration>
        <property_declaration lineno="3">
          <token type="val" text="val"/>
          <variable_declaration><identifier text="mirror"/></variable_declaration>
          <getter lineno="3">
            <token type="get" text="get"/>
            <function_body>
              <navigation_expression>
                <this_expression><token type="this" text="this"/></this_expression>
                <token type="." text="."/>
                <identifier text="field"/>
              </navigation_expression>
            </function_body>
          </getter>
        </property_declaration>
        <property_declaration lineno="4">
          <token type="val" text="val"/>
          <variable_declaration><identifier text="field"/></variable_declaration>
          <navigation_expression>
            <identifier text="other"/>
            <token type="." text="."/>
            <identifier text="field"/>
          </navigation_expression>
        </property_declaration>
    ''')
    assert visitor.counters['backing_fields'].count == 1
    assert visitor.counters['backing_fields'].projects == {'/repo'}


def test_classify_node():
    assert classify_node(etree.Comment('not code')) is None
    assert classify_node(etree.Element('token', type='class')) is None
    assert classify_node(etree.Element('class_declaration')) is NodeKind.CLASS
    assert classify_node(etree.Element('companion_object')) is NodeKind.OBJECT_DECLARATION
    assert classify_node(etree.Element('lambda_literal')) is NodeKind.FUNCTION_LITERAL
    assert classify_node(etree.Element('return_expression')) is NodeKind.RETURN
    assert classify_node(etree.Element('identifier', text='field')) is None
    assert classify_node(etree.Element('identifier', text='break')) is NodeKind.BREAK
    assert classify_node(etree.Element('label', text='continue@')) is NodeKind.CONTINUE
    assert classify_node(etree.Element('label', text='outer@')) is NodeKind.LABELED_EXPRESSION
    arguments = etree.Element('type_arguments')
    assert classify_node(etree.SubElement(arguments, 'token', type='*')) is NodeKind.TYPE_PROJECTION
    return_expression = etree.Element('return_expression')
    assert classify_node(etree.SubElement(return_expression, 'label', text='lit@')) is None


def test_analyze_repository_uses_provider(sample_source_file):
    closed = []

    class FakeProvider:

        def __init__(self, root):
            self.root = root

        def __enter__(self):
            return self

        def __exit__(self, exc_type, exc_value, traceback):
            closed.append(self.root)

        def source_files(self):
            yield sample_source_file
            yield sample_source_file

    visitor = KotlinCensusVisitor(provider_factory=FakeProvider)
    visitor.analyze_repository('/repo')
    visitor.analyze_repository('/other')
    assert closed == ['/repo', '/other']
    assert visitor.totals.repositories_analyzed == 2
    assert visitor.totals.files_analyzed == 4
    assert visitor.totals.lines_analyzed == 32
    assert visitor.counters['classes'].count == 12
    assert visitor.counters['classes'].projects == {'/repo', '/other'}
