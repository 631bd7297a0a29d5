"""
Statement generator: statement blocks and their chains to Java lines.

Lines are produced without leading indentation; a block that owns nested
bodies indents them one level with ``config.indent_size`` spaces, so the
caller only has to indent the result once for its own position.
"""

import re
import logging
from typing import Callable, Dict, List, Optional

from .config import GeneratorConfig
from .expression_generator import ExpressionGenerator, NEW_LIST, NEW_MAP
from .models import BlockGraph, GenerationContext, NameCounter, Node, NodeKind
from .node_registry import NodeRegistry
from .sanitizer import (
    IdentifierCase, comment_text, default_return_value,
    is_string_type, java_string_literal, parse_params, to_identifier
)


logger = logging.getLogger(__name__)

_ASSIGNABLE = re.compile(r'^(this\.)?[A-Za-z_$][A-Za-z0-9_$]*$')
_DELAY = re.compile(r'^\d+$')
_NUMBER = re.compile(r'^-?\d+(\.\d+)?$')
_LOG_LEVELS = ("d", "i", "w", "e", "v")


class StatementGenerator:
    """Generates Java statement lines from statement blocks."""

    def __init__(self, graph: BlockGraph, registry: Optional[NodeRegistry] = None,
                 config: Optional[GeneratorConfig] = None,
                 expressions: Optional[ExpressionGenerator] = None,
                 counter: Optional[NameCounter] = None):
        self.graph = graph
        self.registry = registry if registry is not None else NodeRegistry.default()
        self.config = config or GeneratorConfig()
        self.expressions = expressions or ExpressionGenerator(graph, self.registry, self.config)
        self.counter = counter or NameCounter()
        self.logger = logging.getLogger(__name__)
        self._handlers: Dict[NodeKind, Callable[[Node, GenerationContext], List[str]]] = {
            NodeKind.AI2_SET: self._ai2_set,
            NodeKind.VARIABLES_SET: self._variables_set,
            NodeKind.MATH_CHANGE: self._math_change,
            NodeKind.AI2_RETURN: self._ai2_return,
            NodeKind.AI2_DISPATCH: self._ai2_dispatch,
            NodeKind.CONTROLS_IF: self._controls_if,
            NodeKind.CONTROLS_REPEAT: self._controls_repeat,
            NodeKind.CONTROLS_REPEAT_EXT: self._controls_repeat,
            NodeKind.CONTROLS_FOR: self._controls_for,
            NodeKind.CONTROLS_FOR_EACH: self._controls_for_each,
            NodeKind.CONTROLS_WHILE_UNTIL: self._controls_while_until,
            NodeKind.CONTROLS_FLOW_STATEMENTS: self._controls_flow,
            NodeKind.CONTROLS_TRY_CATCH: self._controls_try_catch,
            NodeKind.THREAD_RUN: self._thread_run,
            NodeKind.TIMER_DELAY: self._timer_delay,
            NodeKind.HTTP_GET: self._http_get,
            NodeKind.TEXT_PRINT: self._text_print,
            NodeKind.LISTS_APPEND: self._lists_append,
            NodeKind.LISTS_REMOVE_AT: self._lists_remove_at,
            NodeKind.LISTS_SORT: self._lists_sort,
            NodeKind.LISTS_REVERSE: self._lists_in_place,
            NodeKind.LISTS_SHUFFLE: self._lists_in_place,
            NodeKind.MAP_PUT: self._map_put,
            NodeKind.MAP_REMOVE: self._map_remove,
            NodeKind.MAP_CLEAR: self._map_clear,
            NodeKind.FILE_WRITE: self._file_write,
            NodeKind.PREFS_STORE: self._prefs_store,
            NodeKind.NATIVE_FIELD_SET: self._native_field_set,
            NodeKind.VIBRATOR_VIBRATE: self._vibrate,
            NodeKind.DEVICE_VIBRATE: self._vibrate,
            NodeKind.ANDROID_TOAST: self._toast,
            NodeKind.TOAST_SHOW: self._toast,
            NodeKind.ANDROID_LOG: self._android_log,
            NodeKind.ANDROID_CLIPBOARD_SET: self._clipboard_set,
            NodeKind.CLIPBOARD_COPY: self._clipboard_set,
            NodeKind.ANDROID_OPEN_URL: self._open_url,
            NodeKind.INTENT_OPEN: self._open_url,
            NodeKind.ANDROID_SHARE_TEXT: self._share_text,
            NodeKind.AI2_CUSTOM_CODE: self._custom_code,
        }

    def handles(self, kind: NodeKind) -> bool:
        return kind in self._handlers

    def generate(self, node: Optional[Node], ctx: Optional[GenerationContext] = None) -> str:
        """Java source for one statement block (possibly several lines)."""
        return "\n".join(self.generate_lines(node, ctx))

    def generate_lines(self, node: Optional[Node],
                       ctx: Optional[GenerationContext] = None) -> List[str]:
        """Java lines for one statement block; never raises."""
        if node is None:
            return []
        ctx = ctx if ctx is not None else GenerationContext()
        tag = comment_text(node.type)
        if ctx.depth > self.config.max_depth:
            self.logger.warning(f"Statement nesting deeper than {self.config.max_depth} at block {node.id}")
            return [f"// nesting limit reached at block: {tag}"]
        if node.id in ctx.path:
            self.logger.warning(f"Cyclic reference to block {node.id}")
            return [f"// cyclic reference: {tag}"]

        handler = self._handlers.get(node.kind)
        if handler is None:
            if self.expressions.handles(node.kind):
                return [f"{self.expressions.generate(node, ctx)};"]
            self.logger.debug(f"No statement rule for block type {tag!r}")
            return [f"// unsupported block: {tag}"]
        try:
            return handler(node, ctx.entering(node.id))
        except Exception:
            self.logger.warning(f"Failed to generate statement for block {node.type} ({node.id})",
                                exc_info=True)
            return [f"// failed to generate block: {tag}"]

    def generate_chain(self, head: Optional[Node],
                       ctx: Optional[GenerationContext] = None) -> List[str]:
        """Lines for a whole statement chain, sharing one scope."""
        ctx = ctx if ctx is not None else GenerationContext()
        lines: List[str] = []
        for node in self.graph.chain(head, self.config.max_chain_length):
            lines.extend(self.generate_lines(node, ctx))
        return lines

    # Helpers ---------------------------------------------------------------

    def indent(self, lines: List[str], levels: int = 1) -> List[str]:
        pad = " " * (self.config.indent_size * levels)
        return [pad + line if line else line for line in lines]

    def _body(self, node: Node, socket: str, ctx: GenerationContext, levels: int = 1) -> List[str]:
        """Indented lines of the chain held in a statement socket."""
        return self.indent(self.generate_chain(self.graph.statement(node, socket), ctx), levels)

    def _expr(self, node: Node, sockets: str, ctx: GenerationContext, default: str = "null") -> str:
        return self.expressions.operand(node, sockets, ctx, default)

    def _variable(self, node: Node, default: str) -> str:
        ref = node.get_field("VAR")
        if ref is None:
            ref = node.get_field("NAME")
        return to_identifier(self.graph.variable_name(ref) or default)

    def _temp(self, prefix: str, ctx: GenerationContext) -> str:
        name = self.counter.next_name(prefix)
        ctx.declare(name)
        return name

    def _runnable(self, body: List[str]) -> List[str]:
        """Anonymous Runnable wrapping *body*; the caller closes it."""
        return ["public void run() {"] + self.indent(body) + ["}"]

    # Assignment ------------------------------------------------------------

    def _ai2_set(self, node: Node, ctx: GenerationContext) -> List[str]:
        name = to_identifier(node.text_field("NAME", "field"))
        return [f"this.{name} = {self._expr(node, 'VALUE', ctx)};"]

    def _variables_set(self, node: Node, ctx: GenerationContext) -> List[str]:
        name = self._variable(node, "var")
        value = self._expr(node, "VALUE", ctx)
        if ctx.knows(name):
            return [f"{name} = {value};"]
        ctx.declare(name)
        return [f"Object {name} = {value};"]

    def _math_change(self, node: Node, ctx: GenerationContext) -> List[str]:
        name = self._variable(node, "var")
        fallback = node.text_field("DELTA", "1").strip()
        if not _NUMBER.match(fallback):
            fallback = "1"
        delta = self._expr(node, "DELTA|NUM|VALUE", ctx, fallback)
        if name in ctx.properties or name in ctx.parameters:
            return [f"{name} = {name} + ({delta});"]
        if name in ctx.locals:
            return [f"{name} = ({name} == null ? 0 : ((Number) {name}).doubleValue()) + ({delta});"]
        ctx.declare(name)
        return [f"Object {name} = ({delta});"]

    def _ai2_return(self, node: Node, ctx: GenerationContext) -> List[str]:
        expected = ctx.expected_return_type
        if expected == "void":
            return ["return;"]
        if self.expressions.connected(node, "VALUE") is None:
            return [f"return {default_return_value(expected)};"]
        value = self._expr(node, "VALUE", ctx)
        if is_string_type(expected) and not value.startswith('"') and not value.startswith("String.valueOf"):
            value = f"String.valueOf({value})"
        return [f"return {value};"]

    def _ai2_dispatch(self, node: Node, ctx: GenerationContext) -> List[str]:
        name = to_identifier(node.text_field("NAME", "Event"), IdentifierCase.PASCAL)
        args = [java_string_literal(name)] + [p.name for p in parse_params(node.text_field("ARGS"))]
        return [f"EventDispatcher.dispatchEvent(this, {', '.join(args)});"]

    # Control flow ----------------------------------------------------------

    def _controls_if(self, node: Node, ctx: GenerationContext) -> List[str]:
        lines: List[str] = []
        index = 0
        while True:
            condition = self.expressions.connected(node, f"IF{index}")
            if condition is None:
                break
            cond = self.expressions.generate(condition, ctx.deeper())
            opener = f"if ({cond}) {{" if index == 0 else f"}} else if ({cond}) {{"
            lines.append(opener)
            lines.extend(self._body(node, f"DO{index}", ctx.nested()))
            index += 1

        if self.graph.statement(node, "ELSE") is not None:
            lines.append("} else {" if lines else "{")
            lines.extend(self._body(node, "ELSE", ctx.nested()))
        if lines:
            lines.append("}")
        return lines

    def _controls_repeat(self, node: Node, ctx: GenerationContext) -> List[str]:
        fallback = node.text_field("TIMES", node.text_field("NUM", "0")).strip()
        if not _NUMBER.match(fallback):
            fallback = "0"
        times = self._expr(node, "TIMES|NUM", ctx, fallback)
        body_ctx = ctx.nested()
        counter = self._temp("__i", body_ctx)
        return ([f"for (int {counter} = 0; {counter} < ({times}); {counter}++) {{"]
                + self._body(node, "DO", body_ctx) + ["}"])

    def _controls_for(self, node: Node, ctx: GenerationContext) -> List[str]:
        name = self._variable(node, "i")
        start = self._expr(node, "FROM", ctx, "0")
        stop = self._expr(node, "TO", ctx, "0")
        step = self._expr(node, "BY", ctx, "1")
        body_ctx = ctx.nested()
        declaration = name if ctx.knows(name) else f"int {name}"
        body_ctx.declare(name)
        return ([f"for ({declaration} = {start}; {name} <= {stop}; {name} += {step}) {{"]
                + self._body(node, "DO", body_ctx) + ["}"])

    def _controls_for_each(self, node: Node, ctx: GenerationContext) -> List[str]:
        name = self._variable(node, "item")
        items = self._expr(node, "LIST", ctx, NEW_LIST)
        body_ctx = ctx.nested()
        body_ctx.declare(name)
        return ([f"for (Object {name} : (java.lang.Iterable<?>) ({items})) {{"]
                + self._body(node, "DO", body_ctx) + ["}"])

    def _controls_while_until(self, node: Node, ctx: GenerationContext) -> List[str]:
        cond = self._expr(node, "BOOL|COND", ctx, "false")
        if self.expressions.choice(node, "MODE", "WHILE") == "UNTIL":
            header = f"while (!({cond})) {{"
        else:
            header = f"while ({cond}) {{"
        return [header] + self._body(node, "DO", ctx.nested()) + ["}"]

    def _controls_flow(self, node: Node, ctx: GenerationContext) -> List[str]:
        if self.expressions.choice(node, "FLOW", "BREAK") == "CONTINUE":
            return ["continue;"]
        return ["break;"]

    def _controls_try_catch(self, node: Node, ctx: GenerationContext) -> List[str]:
        catch_ctx = ctx.nested()
        error = "e" if not ctx.knows("e") else self.counter.next_name("__e")
        catch_ctx.declare(error)
        tag = java_string_literal(self.config.log_tag)
        return (["try {"]
                + self._body(node, "TRY", ctx.nested())
                + [f"}} catch (Exception {error}) {{"]
                + self.indent([f'android.util.Log.e({tag}, "Error: " + {error}.getMessage());'])
                + self._body(node, "CATCH", catch_ctx)
                + ["}"])

    # Background execution --------------------------------------------------

    def _thread_run(self, node: Node, ctx: GenerationContext) -> List[str]:
        body = self.generate_chain(self.graph.statement(node, "DO"), ctx.isolated())
        return (["new Thread(new Runnable() {"]
                + self.indent(self._runnable(body))
                + ["}).start();"])

    def _timer_delay(self, node: Node, ctx: GenerationContext) -> List[str]:
        delay = node.text_field("MS", "1000").strip()
        if not _DELAY.match(delay):
            delay = "1000"
        handler = self._temp("__handler", ctx)
        body = self.generate_chain(self.graph.statement(node, "DO"), ctx.isolated())
        return ([f"final Handler {handler} = new Handler(Looper.getMainLooper());",
                 f"{handler}.postDelayed(new Runnable() {{"]
                + self.indent(self._runnable(body))
                + [f"}}, {delay});"])

    def _http_get(self, node: Node, ctx: GenerationContext) -> List[str]:
        url = self._expr(node, "URL", ctx, '""')
        success = self.generate_chain(self.graph.statement(node, "ON_SUCCESS"), ctx.isolated())
        failure = self.generate_chain(self.graph.statement(node, "ON_ERROR"), ctx.isolated())
        request = [
            "try {",
            *self.indent([
                f"HttpURLConnection __conn = (HttpURLConnection) new URL(String.valueOf({url})).openConnection();",
                '__conn.setRequestMethod("GET");',
                "BufferedReader __reader = new BufferedReader(new InputStreamReader(__conn.getInputStream()));",
                "StringBuilder __body = new StringBuilder();",
                "String __line;",
                "while ((__line = __reader.readLine()) != null) {",
                *self.indent(["__body.append(__line);"]),
                "}",
                "__reader.close();",
                "__conn.disconnect();",
                "final String __resp = __body.toString();",
                "new Handler(Looper.getMainLooper()).post(new Runnable() {",
                *self.indent(self._runnable(success or ["// no success handler"])),
                "});",
            ]),
            "} catch (final Exception __e) {",
            *self.indent([
                "new Handler(Looper.getMainLooper()).post(new Runnable() {",
                *self.indent(self._runnable(failure or ["// no error handler"])),
                "});",
            ]),
            "}",
        ]
        return (["new Thread(new Runnable() {"]
                + self.indent(self._runnable(request))
                + ["}).start();"])

    # Collections -----------------------------------------------------------

    def _text_print(self, node: Node, ctx: GenerationContext) -> List[str]:
        text = self._expr(node, "TEXT|VALUE", ctx, '""')
        return [f"System.out.println({text});"]

    def _lists_append(self, node: Node, ctx: GenerationContext) -> List[str]:
        items = self._expr(node, "LIST", ctx)
        item = self._expr(node, "ITEM", ctx)
        if items == "null":
            return ["// unable to append: list is null"]
        if _ASSIGNABLE.match(items):
            return [f"if ({items} == null) {items} = {NEW_LIST};", f"{items}.add({item});"]
        return [f"if ({items} != null) {items}.add({item});"]

    def _lists_remove_at(self, node: Node, ctx: GenerationContext) -> List[str]:
        items = self._expr(node, "LIST", ctx)
        index = self._expr(node, "INDEX", ctx, "0")
        if items == "null":
            return ["// unable to remove: list is null"]
        return [f"if ({items} != null) {items}.remove((int) ({index}));"]

    def _lists_sort(self, node: Node, ctx: GenerationContext) -> List[str]:
        items = self._expr(node, "LIST", ctx)
        if items == "null":
            return ["// unable to sort: list is null"]
        order = self.expressions.choice(node, "TYPE", "NUMERIC")
        if order == "IGNORE_CASE":
            call = f"java.util.Collections.sort({items}, String.CASE_INSENSITIVE_ORDER);"
        elif order == "TEXT":
            call = (f"java.util.Collections.sort({items}, new java.util.Comparator<Object>() {{ "
                    f"public int compare(Object a, Object b) {{ "
                    f"return String.valueOf(a).compareTo(String.valueOf(b)); }} }});")
        else:
            call = f"java.util.Collections.sort({items});"
        tag = java_string_literal(self.config.log_tag)
        lines = [
            "try {",
            *self.indent([call]),
            "} catch (Exception __sortError) {",
            *self.indent([f'android.util.Log.w({tag}, "Sort failed: " + __sortError.getMessage());']),
            "}",
        ]
        if node.text_field("DIRECTION", "1").strip() == "-1":
            lines.append(f"java.util.Collections.reverse({items});")
        return [f"if ({items} != null) {{"] + self.indent(lines) + ["}"]

    def _lists_in_place(self, node: Node, ctx: GenerationContext) -> List[str]:
        items = self._expr(node, "LIST", ctx)
        method = "reverse" if node.kind == NodeKind.LISTS_REVERSE else "shuffle"
        if items == "null":
            return [f"// unable to {method}: list is null"]
        return [f"if ({items} != null) java.util.Collections.{method}({items});"]

    def _map_put(self, node: Node, ctx: GenerationContext) -> List[str]:
        mapping = self._expr(node, "MAP", ctx)
        key = self._expr(node, "KEY", ctx)
        value = self._expr(node, "VALUE", ctx)
        if mapping == "null":
            return ["// unable to put: map is null"]
        if _ASSIGNABLE.match(mapping):
            return [f"if ({mapping} == null) {mapping} = {NEW_MAP};", f"{mapping}.put({key}, {value});"]
        return [f"if ({mapping} != null) {mapping}.put({key}, {value});"]

    def _map_remove(self, node: Node, ctx: GenerationContext) -> List[str]:
        mapping = self._expr(node, "MAP", ctx)
        if mapping == "null":
            return ["// unable to remove: map is null"]
        return [f"if ({mapping} != null) {mapping}.remove({self._expr(node, 'KEY', ctx)});"]

    def _map_clear(self, node: Node, ctx: GenerationContext) -> List[str]:
        mapping = self._expr(node, "MAP", ctx)
        if mapping == "null":
            return ["// unable to clear: map is null"]
        return [f"if ({mapping} != null) {mapping}.clear();"]

    # Device ----------------------------------------------------------------

    def _file_write(self, node: Node, ctx: GenerationContext) -> List[str]:
        path = self._expr(node, "PATH|FILENAME", ctx, '"file.txt"')
        content = self._expr(node, "CONTENT|TEXT", ctx, '""')
        tag = java_string_literal(self.config.log_tag)
        return [
            "try (java.io.OutputStreamWriter __writer = new java.io.OutputStreamWriter("
            f"this.context.openFileOutput(String.valueOf({path}), Context.MODE_PRIVATE))) {{",
            *self.indent([f"__writer.write(String.valueOf({content}));"]),
            "} catch (Exception __writeError) {",
            *self.indent([f'android.util.Log.e({tag}, "Write failed: " + __writeError.getMessage());']),
            "}",
        ]

    def _prefs_store(self, node: Node, ctx: GenerationContext) -> List[str]:
        key = self._expr(node, "KEY", ctx, '""')
        value = self._expr(node, "VALUE", ctx, '""')
        prefs = java_string_literal(self.config.prefs_name)
        return [f"this.context.getSharedPreferences({prefs}, Context.MODE_PRIVATE).edit()"
                f".putString(String.valueOf({key}), String.valueOf({value})).apply();"]

    def _native_field_set(self, node: Node, ctx: GenerationContext) -> List[str]:
        target = self.expressions.receiver(node, ctx)
        member = self.expressions.member_name(node, "FIELD", "field")
        return [f"{target}.{member} = {self._expr(node, 'VALUE', ctx)};"]

    def _vibrate(self, node: Node, ctx: GenerationContext) -> List[str]:
        socket = "MS" if node.kind == NodeKind.VIBRATOR_VIBRATE else "MILLIS"
        millis = self._expr(node, socket, ctx, "500")
        return [f"((Vibrator) this.context.getSystemService(Context.VIBRATOR_SERVICE)).vibrate({millis});"]

    def _toast(self, node: Node, ctx: GenerationContext) -> List[str]:
        socket = "MSG" if node.kind == NodeKind.ANDROID_TOAST else "MESSAGE|MSG"
        message = self._expr(node, socket, ctx, '""')
        length = "Toast.LENGTH_LONG" if node.text_field("DURATION", "0").strip() == "1" else "Toast.LENGTH_SHORT"
        return [f"Toast.makeText(this.context, String.valueOf({message}), {length}).show();"]

    def _android_log(self, node: Node, ctx: GenerationContext) -> List[str]:
        tag = self._expr(node, "TAG", ctx, java_string_literal(self.config.log_tag))
        message = self._expr(node, "MSG", ctx, '""')
        level = node.text_field("LEVEL", "d").strip().lower()
        if level not in _LOG_LEVELS:
            level = "d"
        return [f"android.util.Log.{level}(String.valueOf({tag}), String.valueOf({message}));"]

    def _clipboard_set(self, node: Node, ctx: GenerationContext) -> List[str]:
        text = self._expr(node, "TEXT", ctx, '""')
        label = java_string_literal(self.config.log_tag)
        return [f"((ClipboardManager) this.context.getSystemService(Context.CLIPBOARD_SERVICE))"
                f".setPrimaryClip(ClipData.newPlainText({label}, String.valueOf({text})));"]

    def _open_url(self, node: Node, ctx: GenerationContext) -> List[str]:
        url = self._expr(node, "URL", ctx, '""')
        intent = self._temp("__intent", ctx)
        return [
            f"Intent {intent} = new Intent(Intent.ACTION_VIEW, Uri.parse(String.valueOf({url})));",
            f"{intent}.addFlags(Intent.FLAG_ACTIVITY_NEW_TASK);",
            f"this.context.startActivity({intent});",
        ]

    def _share_text(self, node: Node, ctx: GenerationContext) -> List[str]:
        message = self._expr(node, "MSG|TEXT", ctx, '""')
        intent = self._temp("__share", ctx)
        return [
            f"Intent {intent} = new Intent(Intent.ACTION_SEND);",
            f'{intent}.setType("text/plain");',
            f"{intent}.putExtra(Intent.EXTRA_TEXT, String.valueOf({message}));",
            f"{intent}.addFlags(Intent.FLAG_ACTIVITY_NEW_TASK);",
            f'this.context.startActivity(Intent.createChooser({intent}, "Share")'
            ".addFlags(Intent.FLAG_ACTIVITY_NEW_TASK));",
        ]

    # Escape hatch ----------------------------------------------------------

    def _custom_code(self, node: Node, ctx: GenerationContext) -> List[str]:
        code = node.get_field("CODE")
        if code is None:
            return []
        return str(code).splitlines()
