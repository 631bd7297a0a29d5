"""
Tests for the extension unit assembler.
"""

import pytest

from extension_builder_core.config import GeneratorConfig
from extension_builder_core.expression_generator import NEW_LIST
from extension_builder_core.models import BlockGraph, GraphBuilder
from extension_builder_core.unit_assembler import ExtensionAssembler, FIXED_IMPORTS, generate_java


@pytest.fixture
def builder():
    return GraphBuilder()


def extension(builder, properties=None, methods=None, events=None, **fields):
    fields.setdefault("PACKAGE", "com.example.ext")
    fields.setdefault("CLASSNAME", "Demo")
    return builder.add("ai2_extension", fields=fields, statements={
        "PROPERTIES": properties,
        "METHODS": methods,
        "EVENTS": events,
    })


def method(builder, name, ret="void", params="", body=None):
    return builder.add("ai2_method", fields={"NAME": name, "RET": ret, "PARAMS": params},
                       statements={"BODY": body})


def variable(builder, name):
    return builder.add("variables_get", fields={"VAR": name})


def number(builder, value):
    return builder.add("math_number", fields={"NUM": value})


class TestScenarios:
    """End-to-end generation of small extensions."""

    def test_empty_unit(self, builder):
        extension(builder)
        source = generate_java(builder.graph)
        assert "package com.example.ext;" in source
        assert "public class Demo extends AndroidNonvisibleComponent {" in source
        assert "public Demo(ComponentContainer container) {" in source
        assert "@SimpleProperty" not in source
        assert "@SimpleFunction" not in source
        assert "@SimpleEvent" not in source

    def test_text_property(self, builder):
        prop = builder.add("ai2_property", fields={"NAME": "Greeting", "TYPE": "String", "DEFAULT": "Hello"})
        extension(builder, properties=prop)
        source = generate_java(builder.graph)
        assert '    private String greeting = "Hello";' in source
        assert '    @SimpleProperty(description = "Greeting value")' in source
        assert "    public String Greeting() {" in source
        assert "        return this.greeting;" in source
        assert '    @SimpleProperty(description = "Set Greeting")' in source
        assert "    public void Greeting(String value) {" in source
        assert "        this.greeting = value;" in source

    def test_text_routine_wraps_collection_return(self, builder):
        items = builder.add("lists_create_with", extra_state={"itemCount": 0})
        body = builder.add("ai2_return", values={"VALUE": items})
        extension(builder, methods=method(builder, "Shout", ret="String", body=body))
        source = generate_java(builder.graph)
        assert '    @SimpleFunction(description = "Shout function")' in source
        assert "    public String shout() throws Exception {" in source
        assert f"        return String.valueOf({NEW_LIST});" in source
        assert 'return "";' not in source

    def test_counted_loop_with_empty_body(self, builder):
        loop = builder.add("controls_repeat_ext", values={"TIMES": number(builder, 5)})
        extension(builder, methods=method(builder, "run", body=loop))
        lines = generate_java(builder.graph).splitlines()
        index = lines.index("        for (int __i0 = 0; __i0 < (5); __i0++) {")
        assert lines[index + 1] == "        }"

    def test_equality_is_null_safe(self, builder):
        compare = builder.add("logic_compare", fields={"OP": "EQ"},
                              values={"A": variable(builder, "a"), "B": variable(builder, "b")})
        body = builder.add("ai2_return", values={"VALUE": compare})
        extension(builder, methods=method(builder, "same", ret="boolean", params="a, b", body=body))
        source = generate_java(builder.graph)
        assert "    public boolean same(Object a, Object b) throws Exception {" in source
        assert "        return java.util.Objects.equals(a, b);" in source
        assert "==" not in source

    def test_division_by_literal_zero_is_guarded(self, builder):
        divide = builder.add("math_arithmetic", fields={"OP": "DIVIDE"},
                             values={"A": number(builder, 10), "B": number(builder, 0)})
        body = builder.add("ai2_return", values={"VALUE": divide})
        extension(builder, methods=method(builder, "ratio", ret="double", body=body))
        assert "        return (0 == 0 ? 0 : 10 / 0);" in generate_java(builder.graph)


class TestTotality:
    """Generation never raises and always yields text."""

    def test_empty_graph_yields_placeholder(self):
        assert generate_java(BlockGraph()) == GeneratorConfig().missing_root_message

    def test_graph_without_root(self, builder):
        builder.add("text_print")
        assert generate_java(builder.graph) == "// Add an 'AI2 Extension' block to begin"

    def test_unknown_blocks_everywhere(self, builder):
        mystery_value = builder.add("mystery_value")
        setter = builder.add("ai2_set", fields={"NAME": "x"}, values={"VALUE": mystery_value})
        body = builder.chain(builder.add("mystery_statement"), setter)
        extension(
            builder,
            properties=builder.add("mystery_property"),
            methods=method(builder, "go", body=body),
            events=builder.add("mystery_event"),
        )
        source = generate_java(builder.graph)
        assert "        // unsupported block: mystery_statement" in source
        assert "        this.x = null;" in source
        assert "mystery_property" not in source
        assert "mystery_event" not in source
        assert source.endswith("}\n")

    def test_root_with_blank_fields(self, builder):
        builder.add("ai2_extension")
        source = generate_java(builder.graph)
        assert "package com.example;" in source
        assert "public class MyExtension extends AndroidNonvisibleComponent {" in source

    def test_routine_cycle_terminates(self, builder):
        first = method(builder, "first")
        second = method(builder, "second")
        builder.chain(first, second)
        builder.graph.link_next(second.id, first.id)
        extension(builder, methods=first)
        source = generate_java(builder.graph)
        assert source.count("@SimpleFunction") == 2


class TestRoutines:
    """Test method, event and property declarations."""

    def test_empty_non_void_routine_returns_default(self, builder):
        extension(builder, methods=method(builder, "count", ret="int"))
        source = generate_java(builder.graph)
        assert source.count("return ") == 1
        assert "        return 0;" in source

    def test_default_return_appended_after_other_statements(self, builder):
        body = builder.add("text_print")
        extension(builder, methods=method(builder, "label", ret="String", body=body))
        lines = generate_java(builder.graph).splitlines()
        index = lines.index('        System.out.println("");')
        assert lines[index + 1] == '        return "";'

    def test_parameters_are_known(self, builder):
        change = builder.add("math_change", fields={"VAR": "count"})
        extension(builder, methods=method(builder, "bump", params="count:int", body=change))
        source = generate_java(builder.graph)
        assert "    public void bump(int count) throws Exception {" in source
        assert "        count = count + (1);" in source

    def test_properties_are_known_in_routines(self, builder):
        prop = builder.add("ai2_property", fields={"NAME": "score", "TYPE": "int", "DEFAULT": "0"})
        change = builder.add("math_change", fields={"VAR": "score"})
        extension(builder, properties=prop, methods=method(builder, "bump", body=change))
        assert "        score = score + (1);" in generate_java(builder.graph)

    def test_read_only_property_has_no_setter(self, builder):
        prop = builder.add("ai2_property", fields={"NAME": "Size", "TYPE": "int", "READONLY": "TRUE"})
        extension(builder, properties=prop)
        source = generate_java(builder.graph)
        assert "    public int Size() {" in source
        assert "public void Size(" not in source

    def test_event(self, builder):
        event = builder.add("ai2_event", fields={"NAME": "value changed", "PARAMS": "newValue:int"})
        extension(builder, events=event)
        source = generate_java(builder.graph)
        assert '    @SimpleEvent(description = "value changed event")' in source
        assert "    public void ValueChanged(int newValue) {" in source
        assert '        EventDispatcher.dispatchEvent(this, "ValueChanged", newValue);' in source

    def test_wrong_kind_in_container_is_skipped(self, builder):
        stray = builder.add("text_print")
        head = builder.chain(stray, method(builder, "real"))
        extension(builder, methods=head)
        source = generate_java(builder.graph)
        assert source.count("@SimpleFunction") == 1
        assert "System.out.println" not in source

    def test_members_follow_declaration_order(self, builder):
        prop = builder.add("ai2_property", fields={"NAME": "Name"})
        event = builder.add("ai2_event", fields={"NAME": "Done"})
        extension(builder, properties=prop, methods=method(builder, "work"), events=event)
        source = generate_java(builder.graph)
        assert source.index("@SimpleProperty") < source.index("@SimpleFunction") < source.index("@SimpleEvent")


class TestHeader:
    """Test the package, import and annotation block."""

    def test_fixed_imports_come_first(self, builder):
        extension(builder)
        lines = generate_java(builder.graph).splitlines()
        assert lines[0] == "package com.example.ext;"
        assert lines[2:2 + len(FIXED_IMPORTS)] == [f"import {name};" for name in FIXED_IMPORTS]

    def test_extra_imports_are_sanitized_and_deduplicated(self, builder):
        extension(builder, IMPORTS="org.foo.Bar, import java.util.*;, org.foo.Bar, !!")
        source = generate_java(builder.graph)
        assert source.count("import org.foo.Bar;") == 1
        assert source.count("import java.util.*;") == 1

    def test_full_annotations(self, builder):
        extension(builder, VERSION="3", DESC="Does things", HELP_URL="https://x",
                  LIBRARIES="a.jar, b.jar", AUTHOR="Ada")
        source = generate_java(builder.graph)
        assert ('@DesignerComponent(version = 3, description = "Does things", '
                'category = ComponentCategory.EXTENSION, nonVisible = true, iconName = "", '
                'helpUrl = "https://x")') in source
        assert "@SimpleObject(external = true)" in source
        assert '@UsesLibraries(libraries = "a.jar,b.jar")' in source
        assert " * @author Ada" in source

    def test_optional_annotations_omitted_when_blank(self, builder):
        extension(builder, VERSION="abc", HELP_URL="  ", LIBRARIES="")
        source = generate_java(builder.graph)
        assert "@DesignerComponent(version = 1, " in source
        assert "helpUrl" not in source
        assert "@UsesLibraries" not in source
        assert "/**" not in source

    def test_class_name_is_sanitized(self, builder):
        extension(builder, CLASSNAME="my cool ext", PACKAGE="com.1st.class")
        source = generate_java(builder.graph)
        assert "package com._1st.class_;" in source
        assert "public class MyCoolExt extends AndroidNonvisibleComponent {" in source


class TestDeterminism:
    """Each pass is independent of the previous ones."""

    def test_generation_is_idempotent(self, builder):
        first = builder.add("controls_repeat", fields={"TIMES": "2"})
        second = builder.add("android_open_url")
        extension(builder, methods=method(builder, "go", body=builder.chain(first, second)))
        assembler = ExtensionAssembler()
        once = assembler.generate(builder.graph)
        twice = assembler.generate(builder.graph)
        assert once == twice
        assert "__i0" in once
        assert "__intent1" in once

    def test_generation_does_not_mutate_graph(self, builder):
        extension(builder, methods=method(builder, "go", body=builder.add("controls_repeat")))
        before = builder.graph.snapshot()
        generate_java(builder.graph)
        assert builder.graph == before

    def test_indent_size_is_configurable(self, builder):
        extension(builder, methods=method(builder, "go", ret="int"))
        source = generate_java(builder.graph, config=GeneratorConfig(indent_size=2))
        assert "  public int go() throws Exception {" in source
        assert "    return 0;" in source
