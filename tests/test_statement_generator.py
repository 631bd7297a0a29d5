"""
Tests for the statement generator.
"""

import pytest
from hypothesis import given, strategies as st

from extension_builder_core.config import GeneratorConfig
from extension_builder_core.expression_generator import NEW_LIST, NEW_MAP
from extension_builder_core.models import GraphBuilder, GenerationContext, NodeKind
from extension_builder_core.statement_generator import StatementGenerator


@pytest.fixture
def builder():
    return GraphBuilder()


def lines_for(builder, node, ctx=None, config=None):
    return StatementGenerator(builder.graph, config=config).generate_lines(node, ctx)


def chain_for(builder, head, ctx=None, config=None):
    return StatementGenerator(builder.graph, config=config).generate_chain(head, ctx)


def number(builder, value):
    return builder.add("math_number", fields={"NUM": value})


def variable(builder, name):
    return builder.add("variables_get", fields={"VAR": name})


def say(builder, message):
    return builder.add("text_print", values={"TEXT": builder.add("text", fields={"TEXT": message})})


def assign(builder, name, value):
    return builder.add("variables_set", fields={"VAR": name}, values={"VALUE": number(builder, value)})


class TestAssignment:
    """Test assignment, return and dispatch rules."""

    def test_first_assignment_declares(self, builder):
        head = builder.chain(assign(builder, "x", 1), assign(builder, "x", 2))
        assert chain_for(builder, head) == ["Object x = 1;", "x = 2;"]

    def test_assignment_to_parameter_does_not_declare(self, builder):
        ctx = GenerationContext(parameters=frozenset({"x"}))
        assert lines_for(builder, assign(builder, "x", 1), ctx) == ["x = 1;"]

    def test_variable_id_resolves_to_name(self, builder):
        builder.graph.variables["v-1"] = "total count"
        node = builder.add("variables_set", fields={"VAR": "v-1"}, values={"VALUE": number(builder, 0)})
        assert lines_for(builder, node) == ["Object totalCount = 0;"]

    def test_ai2_set_targets_field(self, builder):
        node = builder.add("ai2_set", fields={"NAME": "my value"}, values={"VALUE": number(builder, 5)})
        assert lines_for(builder, node) == ["this.myValue = 5;"]

    def test_change_property(self, builder):
        ctx = GenerationContext(properties=frozenset({"count"}))
        node = builder.add("math_change", fields={"VAR": "count"})
        assert lines_for(builder, node, ctx) == ["count = count + (1);"]

    def test_change_local(self, builder):
        ctx = GenerationContext(locals={"total"})
        node = builder.add("math_change", fields={"VAR": "total"}, values={"DELTA": number(builder, 2)})
        assert lines_for(builder, node, ctx) == [
            "total = (total == null ? 0 : ((Number) total).doubleValue()) + (2);"
        ]

    def test_change_undeclared_declares_with_numeric_delta(self, builder):
        node = builder.add("math_change", fields={"VAR": "n", "DELTA": "abc"})
        assert lines_for(builder, node) == ["Object n = (1);"]

    def test_return_in_void_routine(self, builder):
        node = builder.add("ai2_return", values={"VALUE": number(builder, 1)})
        assert lines_for(builder, node) == ["return;"]

    def test_return_wraps_non_literal_for_string(self, builder):
        ctx = GenerationContext(expected_return_type="String")
        node = builder.add("ai2_return", values={"VALUE": variable(builder, "x")})
        assert lines_for(builder, node, ctx) == ["return String.valueOf(x);"]

    def test_return_keeps_string_literal(self, builder):
        ctx = GenerationContext(expected_return_type="String")
        node = builder.add("ai2_return", values={"VALUE": builder.add("text", fields={"TEXT": "hi"})})
        assert lines_for(builder, node, ctx) == ['return "hi";']

    def test_empty_return_uses_type_default(self, builder):
        ctx = GenerationContext(expected_return_type="int")
        assert lines_for(builder, builder.add("ai2_return"), ctx) == ["return 0;"]

    def test_dispatch(self, builder):
        node = builder.add("ai2_dispatch", fields={"NAME": "value changed", "ARGS": "a, b"})
        assert lines_for(builder, node) == ['EventDispatcher.dispatchEvent(this, "ValueChanged", a, b);']


class TestControlFlow:
    """Test conditionals, loops and error handling."""

    def test_if_else_if_else(self, builder):
        node = builder.add(
            "controls_if",
            values={
                "IF0": builder.add("logic_boolean", fields={"BOOL": "TRUE"}),
                "IF1": variable(builder, "x"),
            },
            statements={"DO0": say(builder, "a"), "DO1": say(builder, "b"), "ELSE": say(builder, "c")},
        )
        assert lines_for(builder, node) == [
            "if (true) {",
            '    System.out.println("a");',
            "} else if (x) {",
            '    System.out.println("b");',
            "} else {",
            '    System.out.println("c");',
            "}",
        ]

    def test_if_with_only_else_is_a_block(self, builder):
        node = builder.add("controls_if", statements={"ELSE": say(builder, "c")})
        assert lines_for(builder, node) == ["{", '    System.out.println("c");', "}"]

    def test_empty_if_emits_nothing(self, builder):
        assert lines_for(builder, builder.add("controls_if")) == []

    def test_branch_declarations_do_not_leak(self, builder):
        branch = builder.add("controls_if", values={"IF0": variable(builder, "flag")},
                             statements={"DO0": assign(builder, "x", 1)})
        head = builder.chain(branch, assign(builder, "x", 2))
        result = chain_for(builder, head)
        assert "    Object x = 1;" in result
        assert result[-1] == "Object x = 2;"

    def test_repeat(self, builder):
        node = builder.add("controls_repeat_ext", values={"TIMES": number(builder, 3)},
                           statements={"DO": say(builder, "a")})
        assert lines_for(builder, node) == [
            "for (int __i0 = 0; __i0 < (3); __i0++) {",
            '    System.out.println("a");',
            "}",
        ]

    def test_repeat_uses_field_when_socket_empty(self, builder):
        node = builder.add("controls_repeat", fields={"TIMES": "5"})
        assert lines_for(builder, node)[0] == "for (int __i0 = 0; __i0 < (5); __i0++) {"

    def test_repeat_ignores_non_numeric_field(self, builder):
        node = builder.add("controls_repeat", fields={"TIMES": "five); System.exit(0"})
        assert lines_for(builder, node)[0] == "for (int __i0 = 0; __i0 < (0); __i0++) {"

    def test_loop_counters_are_unique(self, builder):
        inner = builder.add("controls_repeat", fields={"TIMES": "2"})
        outer = builder.add("controls_repeat", fields={"TIMES": "2"}, statements={"DO": inner})
        head = builder.chain(outer, builder.add("controls_repeat", fields={"TIMES": "2"}))
        headers = [line.strip() for line in chain_for(builder, head) if line.strip().startswith("for")]
        assert headers == [
            "for (int __i0 = 0; __i0 < (2); __i0++) {",
            "for (int __i1 = 0; __i1 < (2); __i1++) {",
            "for (int __i2 = 0; __i2 < (2); __i2++) {",
        ]

    def test_counted_for(self, builder):
        node = builder.add("controls_for", fields={"VAR": "i"},
                           values={"FROM": number(builder, 1), "TO": number(builder, 10)})
        assert lines_for(builder, node) == ["for (int i = 1; i <= 10; i += 1) {", "}"]

    def test_counted_for_reuses_known_variable(self, builder):
        node = builder.add("controls_for", fields={"VAR": "i"})
        ctx = GenerationContext(locals={"i"})
        assert lines_for(builder, node, ctx)[0] == "for (i = 0; i <= 0; i += 1) {"

    def test_for_each(self, builder):
        node = builder.add("controls_forEach", fields={"VAR": "item"},
                           values={"LIST": variable(builder, "items")})
        assert lines_for(builder, node)[0] == "for (Object item : (java.lang.Iterable<?>) (items)) {"

    def test_while_and_until(self, builder):
        until = builder.add("controls_whileUntil", fields={"MODE": "UNTIL"},
                            values={"BOOL": variable(builder, "done")})
        plain = builder.add("controls_whileUntil")
        assert lines_for(builder, until) == ["while (!(done)) {", "}"]
        assert lines_for(builder, plain) == ["while (false) {", "}"]

    def test_flow_statements(self, builder):
        assert lines_for(builder, builder.add("controls_flow_statements", fields={"FLOW": "CONTINUE"})) == ["continue;"]
        assert lines_for(builder, builder.add("controls_flow_statements")) == ["break;"]

    def test_try_catch(self, builder):
        node = builder.add("controls_try_catch", statements={"TRY": say(builder, "a"), "CATCH": say(builder, "b")})
        assert lines_for(builder, node) == [
            "try {",
            '    System.out.println("a");',
            "} catch (Exception e) {",
            '    android.util.Log.e("AI2", "Error: " + e.getMessage());',
            '    System.out.println("b");',
            "}",
        ]

    def test_try_catch_avoids_known_error_name(self, builder):
        ctx = GenerationContext(locals={"e"})
        result = lines_for(builder, builder.add("controls_try_catch"), ctx)
        assert "} catch (Exception __e0) {" in result


class TestBackground:
    """Test threads, timers and HTTP requests."""

    def test_thread_body_is_isolated(self, builder):
        node = builder.add("thread_run", statements={"DO": assign(builder, "x", 1)})
        ctx = GenerationContext(locals={"x"})
        assert lines_for(builder, node, ctx) == [
            "new Thread(new Runnable() {",
            "    public void run() {",
            "        Object x = 1;",
            "    }",
            "}).start();",
        ]

    def test_timer_delay(self, builder):
        node = builder.add("timer_delay", fields={"MS": "250"})
        result = lines_for(builder, node)
        assert result[0] == "final Handler __handler0 = new Handler(Looper.getMainLooper());"
        assert result[1] == "__handler0.postDelayed(new Runnable() {"
        assert result[-1] == "}, 250);"

    def test_timer_delay_rejects_non_numeric(self, builder):
        node = builder.add("timer_delay", fields={"MS": "soon"})
        assert lines_for(builder, node)[-1] == "}, 1000);"

    def test_http_get(self, builder):
        node = builder.add("http_get",
                           values={"URL": builder.add("text", fields={"TEXT": "http://x"})},
                           statements={"ON_SUCCESS": say(builder, "ok")})
        source = "\n".join(lines_for(builder, node))
        assert 'new URL(String.valueOf("http://x"))' in source
        assert "final String __resp = __body.toString();" in source
        assert 'System.out.println("ok");' in source
        assert "// no error handler" in source
        assert source.startswith("new Thread(new Runnable() {")
        assert source.endswith("}).start();")


class TestCollections:
    """Test list and map mutations."""

    def test_append_initializes_assignable_target(self, builder):
        node = builder.add("lists_append", values={"LIST": variable(builder, "items"), "ITEM": number(builder, 1)})
        assert lines_for(builder, node) == [f"if (items == null) items = {NEW_LIST};", "items.add(1);"]

    def test_append_guards_other_targets(self, builder):
        target = builder.add("ai2_custom_expression", fields={"CODE": "getItems()"})
        node = builder.add("lists_append", values={"LIST": target, "ITEM": number(builder, 1)})
        assert lines_for(builder, node) == ["if (getItems() != null) getItems().add(1);"]

    def test_append_without_list(self, builder):
        assert lines_for(builder, builder.add("lists_append")) == ["// unable to append: list is null"]

    def test_map_put(self, builder):
        node = builder.add("map_put", values={
            "MAP": variable(builder, "m"),
            "KEY": builder.add("text", fields={"TEXT": "k"}),
            "VALUE": number(builder, 1),
        })
        assert lines_for(builder, node) == [f"if (m == null) m = {NEW_MAP};", 'm.put("k", 1);']

    def test_remove_at(self, builder):
        node = builder.add("lists_remove_at", values={"LIST": variable(builder, "items"), "INDEX": number(builder, 2)})
        assert lines_for(builder, node) == ["if (items != null) items.remove((int) (2));"]

    def test_sort_descending_ignoring_case(self, builder):
        node = builder.add("lists_sort", fields={"TYPE": "IGNORE_CASE", "DIRECTION": "-1"},
                           values={"LIST": variable(builder, "items")})
        result = lines_for(builder, node)
        assert result[0] == "if (items != null) {"
        assert "java.util.Collections.sort(items, String.CASE_INSENSITIVE_ORDER);" in [l.strip() for l in result]
        assert result[-2] == "    java.util.Collections.reverse(items);"
        assert result[-1] == "}"

    def test_reverse_and_shuffle(self, builder):
        rev = builder.add("lists_reverse", values={"LIST": variable(builder, "items")})
        shuf = builder.add("lists_shuffle", values={"LIST": variable(builder, "items")})
        assert lines_for(builder, rev) == ["if (items != null) java.util.Collections.reverse(items);"]
        assert lines_for(builder, shuf) == ["if (items != null) java.util.Collections.shuffle(items);"]

    def test_map_clear(self, builder):
        node = builder.add("map_clear", values={"MAP": variable(builder, "m")})
        assert lines_for(builder, node) == ["if (m != null) m.clear();"]

    @pytest.mark.parametrize("tag,expected", [
        ("lists_remove_at", "// unable to remove: list is null"),
        ("lists_sort", "// unable to sort: list is null"),
        ("lists_reverse", "// unable to reverse: list is null"),
        ("lists_shuffle", "// unable to shuffle: list is null"),
        ("map_remove", "// unable to remove: map is null"),
        ("map_clear", "// unable to clear: map is null"),
    ])
    def test_empty_collection_socket(self, builder, tag, expected):
        assert lines_for(builder, builder.add(tag)) == [expected]


class TestDevice:
    """Test Android side effects."""

    def test_toast_long(self, builder):
        node = builder.add("android_toast", fields={"DURATION": "1"},
                           values={"MSG": builder.add("text", fields={"TEXT": "hi"})})
        assert lines_for(builder, node) == [
            'Toast.makeText(this.context, String.valueOf("hi"), Toast.LENGTH_LONG).show();'
        ]

    def test_log_level_is_whitelisted(self, builder):
        node = builder.add("android_log", fields={"LEVEL": "X"})
        assert lines_for(builder, node) == ['android.util.Log.d(String.valueOf("AI2"), String.valueOf(""));']

    def test_prefs_store_uses_configured_name(self, builder):
        node = builder.add("prefs_store")
        result = lines_for(builder, node, config=GeneratorConfig(prefs_name="P"))
        assert 'getSharedPreferences("P", Context.MODE_PRIVATE)' in result[0]

    def test_vibrate_default(self, builder):
        assert lines_for(builder, builder.add("vibrator_vibrate")) == [
            "((Vibrator) this.context.getSystemService(Context.VIBRATOR_SERVICE)).vibrate(500);"
        ]

    def test_open_url_names_are_unique(self, builder):
        head = builder.chain(builder.add("android_open_url"), builder.add("intent_open"))
        result = chain_for(builder, head)
        assert result[0].startswith("Intent __intent0 = ")
        assert result[3].startswith("Intent __intent1 = ")

    def test_file_write(self, builder):
        node = builder.add("file_write", values={"PATH": builder.add("text", fields={"TEXT": "notes.txt"})})
        result = lines_for(builder, node)
        assert result[0].startswith("try (java.io.OutputStreamWriter __writer")
        assert 'String.valueOf("notes.txt")' in result[0]
        assert "} catch (Exception __writeError) {" in result


class TestFallbacks:
    """Test escape hatches and the never-raise guarantees."""

    def test_custom_code_is_verbatim(self, builder):
        node = builder.add("ai2_custom_code", fields={"CODE": "a();\nb();"})
        assert lines_for(builder, node) == ["a();", "b();"]

    def test_empty_custom_code(self, builder):
        assert lines_for(builder, builder.add("ai2_custom_code")) == []

    def test_unsupported_block(self, builder):
        assert lines_for(builder, builder.add("mystery_block")) == ["// unsupported block: mystery_block"]

    def test_expression_used_as_statement(self, builder):
        node = builder.add("native_call", fields={"METHOD": "run"})
        assert lines_for(builder, node) == ["this.run();"]

    def test_failing_rule_becomes_comment(self, builder):
        def boom(node, ctx):
            raise RuntimeError("boom")

        generator = StatementGenerator(builder.graph)
        generator._handlers[NodeKind.TEXT_PRINT] = boom
        assert generator.generate_lines(say(builder, "a")) == ["// failed to generate block: text_print"]

    def test_depth_guard(self, builder):
        ctx = GenerationContext(depth=6)
        result = lines_for(builder, say(builder, "a"), ctx, GeneratorConfig(max_depth=5))
        assert result == ["// nesting limit reached at block: text_print"]

    def test_deep_nesting_is_bounded(self, builder):
        node = None
        for _ in range(300):
            node = builder.add("controls_repeat", statements={"DO": node})
        result = lines_for(builder, node, config=GeneratorConfig(max_depth=20))
        assert sum(1 for line in result if line.strip().startswith("for (int")) == 21
        assert sum(1 for line in result if "nesting limit reached" in line) == 1

    def test_cyclic_chain_terminates(self, builder):
        a = say(builder, "a")
        b = say(builder, "b")
        builder.chain(a, b)
        builder.graph.link_next(b.id, a.id)
        assert chain_for(builder, a) == ['System.out.println("a");', 'System.out.println("b");']

    def test_self_nested_body_is_cut_off(self, builder):
        node = builder.add("controls_repeat", fields={"TIMES": "2"})
        node.statements["DO"] = node.id
        assert lines_for(builder, node) == [
            "for (int __i0 = 0; __i0 < (2); __i0++) {",
            "    // cyclic reference: controls_repeat",
            "}",
        ]

    def test_expression_cycle_under_default_depth(self, builder):
        value = builder.add("math_arithmetic", fields={"OP": "MULTIPLY"})
        value.values["A"] = value.id
        value.values["B"] = value.id
        node = builder.add("variables_set", fields={"VAR": "x"}, values={"VALUE": value})
        assert lines_for(builder, node) == ["Object x = (null * null);"]

    def test_none_yields_no_lines(self, builder):
        assert lines_for(builder, None) == []

    def test_indent(self, builder):
        generator = StatementGenerator(builder.graph)
        assert generator.indent(["a", "", "b"], 2) == ["        a", "", "        b"]

    @given(kind=st.sampled_from(list(NodeKind)))
    def test_every_kind_with_empty_sockets(self, kind):
        """Any block with nothing connected yields a list of lines."""
        local = GraphBuilder()
        node = local.add(kind)
        result = StatementGenerator(local.graph).generate_lines(node)
        assert isinstance(result, list)
        assert all(isinstance(line, str) for line in result)
