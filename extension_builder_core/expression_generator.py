"""
Expression generator: value-producing blocks to Java expressions.

Every supported NodeKind has exactly one rule.  Rules that are a fixed call
shape around their operands live in ``_TEMPLATES``; everything else is a
method registered in ``ExpressionGenerator._handlers``.  ``generate`` never
raises: an empty socket yields ``null`` (or the rule's own default), an
unknown kind yields a best-effort literal, and a rule that fails is logged and
replaced by a ``null`` placeholder.
"""

import re
import logging
from typing import Callable, Dict, List, Optional, Sequence, Tuple

from .config import GeneratorConfig
from .models import BlockGraph, GenerationContext, Node, NodeKind
from .node_registry import NodeRegistry
from .sanitizer import (
    decode_html_entities, java_string_literal, to_identifier, comment_text
)


logger = logging.getLogger(__name__)

_NUMBER = re.compile(r'^[-+]?(\d+\.?\d*|\.\d+)([eE][-+]?\d+)?$')
_MEMBER_NAME = re.compile(r'^[A-Za-z_$][A-Za-z0-9_$]*$')

NEW_LIST = "new java.util.ArrayList<>()"
NEW_MAP = "new java.util.HashMap<>()"

# kind -> (template, ((sockets, default), ...)); sockets is "NAME" or "NAME|ALT"
_TEMPLATES: Dict[NodeKind, Tuple[str, Sequence[Tuple[str, str]]]] = {
    NodeKind.TEXT_CHAR_AT: (
        "String.valueOf({0}).charAt({1})", (("VALUE|TEXT", '""'), ("AT", "0"))),
    NodeKind.TEXT_GET_SUBSTRING: (
        "String.valueOf({0}).substring({1}, {2})",
        (("STRING|TEXT|VALUE", '""'), ("AT1", "0"), ("AT2", "0"))),
    NodeKind.TEXT_SPLIT: (
        "new java.util.ArrayList<String>(java.util.Arrays.asList("
        "String.valueOf({0}).split(java.util.regex.Pattern.quote(String.valueOf({1})))))",
        (("TEXT", '""'), ("AT", '","'))),
    NodeKind.TEXT_JOIN_LIST: (
        "android.text.TextUtils.join({1}, {0})", (("LIST", NEW_LIST), ("SEPARATOR", '","'))),
    NodeKind.TEXT_REPLACE_REGEX: (
        "String.valueOf({0}).replaceAll({1}, {2})",
        (("TEXT", '""'), ("REGEX", '""'), ("REPLACEMENT", '""'))),
    NodeKind.TEXT_REVERSE: (
        "new StringBuilder(String.valueOf({0})).reverse().toString()", (("TEXT", '""'),)),
    NodeKind.TEXT_TRIM: ("String.valueOf({0}).trim()", (("TEXT", '""'),)),

    NodeKind.MATH_CONSTRAIN: (
        "Math.max({1}, Math.min({0}, {2}))", (("VALUE", "0"), ("LOW", "0"), ("HIGH", "0"))),
    NodeKind.MATH_RANDOM_INT: (
        "((int) ({0} + Math.random() * (({1}) - ({0}) + 1)))", (("FROM", "0"), ("TO", "100"))),
    NodeKind.MATH_IS_NUMBER: (
        r'String.valueOf({0}).matches("-?\\d+(\\.\\d+)?")', (("TEXT", '""'),)),
    NodeKind.MATH_PARSE_INT: (
        "(new Object() {{ int p(String s, int d) {{ try {{ return Integer.parseInt(s.trim()); }} "
        "catch (Exception e) {{ return d; }} }} }}).p(String.valueOf({0}), {1})",
        (("TEXT", '""'), ("DEFAULT", "0"))),
    NodeKind.MATH_PARSE_FLOAT: (
        "(new Object() {{ float p(String s, float d) {{ try {{ return Float.parseFloat(s.trim()); }} "
        "catch (Exception e) {{ return d; }} }} }}).p(String.valueOf({0}), {1})",
        (("TEXT", '""'), ("DEFAULT", "0f"))),

    NodeKind.LISTS_INDEX_OF: (
        "({0} == null ? -1 : {0}.indexOf({1}))", (("LIST", NEW_LIST), ("ITEM", "null"))),
    NodeKind.LISTS_PICK_RANDOM: (
        "(({0} == null || {0}.isEmpty()) ? null : {0}.get(new java.util.Random().nextInt({0}.size())))",
        (("LIST", NEW_LIST),)),
    NodeKind.LISTS_COPY: (
        "({0} == null ? new java.util.ArrayList<>() : new java.util.ArrayList<>({0}))",
        (("LIST", NEW_LIST),)),

    NodeKind.MAP_GET: ("({0} != null ? {0}.get({1}) : null)", (("MAP", NEW_MAP), ("KEY", '""'))),
    NodeKind.MAP_KEYS: (
        "({0} == null ? new java.util.ArrayList<>() : new java.util.ArrayList<>({0}.keySet()))",
        (("MAP", NEW_MAP),)),
    NodeKind.MAP_VALUES: (
        "({0} == null ? new java.util.ArrayList<>() : new java.util.ArrayList<>({0}.values()))",
        (("MAP", NEW_MAP),)),
    NodeKind.MAP_CONTAINS_KEY: (
        "({0} != null && {0}.containsKey({1}))", (("MAP", NEW_MAP), ("KEY", "null"))),
    NodeKind.MAP_SIZE: ("({0} == null ? 0 : {0}.size())", (("MAP", NEW_MAP),)),
    NodeKind.MAP_IS_EMPTY: ("({0} == null || {0}.isEmpty())", (("MAP", NEW_MAP),)),

    NodeKind.JSON_PARSE: ("new org.json.JSONTokener(String.valueOf({0})).nextValue()",
                          (("TEXT|JSON", '"{}"'),)),
    NodeKind.JSON_GET: (
        "({0} instanceof JSONObject ? ((JSONObject) {0}).opt(String.valueOf({1})) : null)",
        (("JSON", "null"), ("KEY", '""'))),
    NodeKind.BASE64_ENCODE: (
        "Base64.encodeToString(String.valueOf({0}).getBytes(), Base64.DEFAULT)", (("TEXT", '""'),)),
    NodeKind.BASE64_DECODE: (
        "new String(Base64.decode(String.valueOf({0}), Base64.DEFAULT))", (("TEXT", '""'),)),
    NodeKind.REGEX_MATCH: (
        "java.util.regex.Pattern.compile(String.valueOf({1})).matcher(String.valueOf({0})).matches()",
        (("TEXT", '""'), ("PATTERN", '""'))),
    NodeKind.REGEX_REPLACE: (
        "String.valueOf({0}).replaceAll({1}, {2})",
        (("TEXT", '""'), ("PATTERN", '""'), ("REPLACEMENT", '""'))),
    NodeKind.WEB_URL_ENCODE: ('java.net.URLEncoder.encode(String.valueOf({0}), "UTF-8")',
                              (("TEXT", '""'),)),
    NodeKind.WEB_URL_DECODE: ('java.net.URLDecoder.decode(String.valueOf({0}), "UTF-8")',
                              (("TEXT", '""'),)),
    NodeKind.WEB_HTML_DECODE: ("android.text.Html.fromHtml(String.valueOf({0})).toString()",
                               (("TEXT", '""'),)),
    NodeKind.DATE_FORMAT: (
        "new SimpleDateFormat({1}).format(new java.util.Date({0}))",
        (("MILLIS", "0"), ("PATTERN", '"yyyy-MM-dd HH:mm:ss"'))),
    NodeKind.DATE_PARSE: (
        "(new SimpleDateFormat({1}).parse(String.valueOf({0})).getTime())",
        (("DATE", '""'), ("PATTERN", '"yyyy-MM-dd"'))),

    NodeKind.FILE_READ: (
        'new java.util.Scanner(this.context.openFileInput({0}), "UTF-8").useDelimiter("\\\\A").next()',
        (("PATH|FILENAME", '"file.txt"'),)),
    NodeKind.FILE_EXISTS: ("new java.io.File({0}).exists()", (("PATH", '""'),)),
    NodeKind.FILE_DELETE: ("new java.io.File({0}).delete()", (("PATH", '""'),)),
    NodeKind.FILE_LIST: (
        "new java.util.ArrayList<>(java.util.Arrays.asList(new java.io.File({0}).list()))",
        (("PATH", '""'),)),
    NodeKind.NETWORK_GET: (
        "new Object() {{ public String get() {{ try {{ java.net.HttpURLConnection c = "
        "(java.net.HttpURLConnection) new java.net.URL({0}).openConnection(); "
        "c.setConnectTimeout(5000); c.setReadTimeout(10000); "
        'return new java.util.Scanner(c.getInputStream(), "UTF-8").useDelimiter("\\\\A").next(); '
        '}} catch (Exception e) {{ return ""; }} }} }}.get()',
        (("URL", '""'),)),
    NodeKind.NETWORK_POST: (
        "new Object() {{ public String post() {{ try {{ java.net.HttpURLConnection c = "
        "(java.net.HttpURLConnection) new java.net.URL({0}).openConnection(); "
        'c.setConnectTimeout(5000); c.setReadTimeout(10000); c.setRequestMethod("POST"); '
        'c.setDoOutput(true); c.getOutputStream().write(String.valueOf({1}).getBytes("UTF-8")); '
        'return new java.util.Scanner(c.getInputStream(), "UTF-8").useDelimiter("\\\\A").next(); '
        '}} catch (Exception e) {{ return ""; }} }} }}.post()',
        (("URL", '""'), ("BODY", '""'))),
}

# Expressions with no operands
_CONSTANTS: Dict[NodeKind, str] = {
    NodeKind.LOGIC_NULL: "null",
    NodeKind.MATH_RANDOM_FLOAT: "Math.random()",
    NodeKind.MAPS_CREATE_WITH: NEW_MAP,
    NodeKind.DATE_CURRENT_MILLIS: "System.currentTimeMillis()",
    NodeKind.DATE_NOW_MILLIS: "System.currentTimeMillis()",
    NodeKind.DEVICE_GET_LANGUAGE: "java.util.Locale.getDefault().getLanguage()",
    NodeKind.DEVICE_IS_DARK_MODE: (
        "((this.context.getResources().getConfiguration().uiMode "
        "& android.content.res.Configuration.UI_MODE_NIGHT_MASK) "
        "== android.content.res.Configuration.UI_MODE_NIGHT_YES)"),
    NodeKind.DEVICE_IS_ONLINE: (
        "(((android.net.ConnectivityManager) this.context.getSystemService(Context.CONNECTIVITY_SERVICE))"
        ".getActiveNetworkInfo() != null && ((android.net.ConnectivityManager) "
        "this.context.getSystemService(Context.CONNECTIVITY_SERVICE)).getActiveNetworkInfo().isConnected())"),
    NodeKind.DEVICE_BATTERY_LEVEL: (
        "((android.os.BatteryManager) this.context.getSystemService(Context.BATTERY_SERVICE))"
        ".getIntProperty(android.os.BatteryManager.BATTERY_PROPERTY_CAPACITY)"),
    NodeKind.ANDROID_CLIPBOARD_GET: (
        "((android.content.ClipboardManager) this.context.getSystemService(Context.CLIPBOARD_SERVICE))"
        ".getPrimaryClip().getItemAt(0).getText().toString()"),
}

_COMPARE_OPERATORS = {"LT": "<", "LTE": "<=", "GT": ">", "GTE": ">="}
_LOGIC_OPERATORS = {"AND": "&&", "OR": "||"}
_ARITHMETIC_OPERATORS = {"ADD": "+", "MINUS": "-", "MULTIPLY": "*"}

_SINGLE_FUNCTIONS = {
    "ROOT": "Math.sqrt({0})",
    "ABS": "Math.abs({0})",
    "NEG": "(-({0}))",
    "LN": "Math.log({0})",
    "LOG10": "Math.log10({0})",
    "EXP": "Math.exp({0})",
    "POW10": "Math.pow(10, {0})",
    "ROUND": "Math.round({0})",
    "ROUNDUP": "Math.ceil({0})",
    "ROUNDDOWN": "Math.floor({0})",
}

_TRIG_FUNCTIONS = {
    "SIN": "Math.sin({0})",
    "COS": "Math.cos({0})",
    "TAN": "Math.tan({0})",
    "ASIN": "Math.asin({0})",
    "ACOS": "Math.acos({0})",
    "ATAN": "Math.atan({0})",
    "TO_DEG": "Math.toDegrees({0})",
    "TO_RAD": "Math.toRadians({0})",
}

_DEVICE_INFO = {
    "MODEL": "android.os.Build.MODEL",
    "MANUFACTURER": "android.os.Build.MANUFACTURER",
    "ANDROID_VERSION": "android.os.Build.VERSION.RELEASE",
    "SDK_LEVEL": "String.valueOf(android.os.Build.VERSION.SDK_INT)",
    "BOARD": "android.os.Build.BOARD",
    "BRAND": "android.os.Build.BRAND",
    "DEVICE": "android.os.Build.DEVICE",
    "PRODUCT": "android.os.Build.PRODUCT",
}

_HASH_ALGORITHMS = ("MD5", "SHA-1", "SHA-256", "SHA-512")


def numbered_sockets(node: Node, prefix: str) -> List[str]:
    """Socket names ``PREFIX0..PREFIXn`` of a variadic block, in order."""
    count = node.extra_state.get('itemCount')
    if not isinstance(count, int) or count < 0:
        indices = [
            int(name[len(prefix):]) for name in node.values
            if name.startswith(prefix) and name[len(prefix):].isdigit()
        ]
        count = max(indices) + 1 if indices else 0
    return [f"{prefix}{i}" for i in range(count)]


class ExpressionGenerator:
    """Generates Java expressions from expression blocks."""

    def __init__(self, graph: BlockGraph, registry: Optional[NodeRegistry] = None,
                 config: Optional[GeneratorConfig] = None):
        self.graph = graph
        self.registry = registry if registry is not None else NodeRegistry.default()
        self.config = config or GeneratorConfig()
        self.logger = logging.getLogger(__name__)
        self._handlers: Dict[NodeKind, Callable[[Node, GenerationContext], str]] = {
            NodeKind.MATH_NUMBER: self._math_number,
            NodeKind.TEXT: self._text,
            NodeKind.LOGIC_BOOLEAN: self._logic_boolean,
            NodeKind.VARIABLES_GET: self._variables_get,
            NodeKind.LOGIC_COMPARE: self._logic_compare,
            NodeKind.LOGIC_OPERATION: self._logic_operation,
            NodeKind.LOGIC_NEGATE: self._logic_negate,
            NodeKind.LOGIC_TERNARY: self._logic_ternary,
            NodeKind.MATH_ARITHMETIC: self._math_arithmetic,
            NodeKind.MATH_MODULO: self._math_modulo,
            NodeKind.MATH_SINGLE: self._math_single,
            NodeKind.MATH_ROUND: self._math_single,
            NodeKind.MATH_TRIG_SIMPLE: self._math_trig,
            NodeKind.MATH_MIN_MAX: self._math_min_max,
            NodeKind.TEXT_JOIN: self._text_join,
            NodeKind.TEXT_LENGTH: self._text_length,
            NodeKind.TEXT_IS_EMPTY: self._text_is_empty,
            NodeKind.TEXT_INDEX_OF: self._text_index_of,
            NodeKind.TEXT_CHANGE_CASE: self._text_change_case,
            NodeKind.TEXT_CONTAINS: self._text_predicate,
            NodeKind.TEXT_STARTSWITH: self._text_predicate,
            NodeKind.TEXT_ENDSWITH: self._text_predicate,
            NodeKind.TEXT_REPLACE_ALL: self._text_replace_all,
            NodeKind.LISTS_CREATE_WITH: self._lists_create_with,
            NodeKind.LISTS_LENGTH: self._lists_length,
            NodeKind.LISTS_IS_EMPTY: self._lists_is_empty,
            NodeKind.LISTS_GET_INDEX: self._lists_get_index,
            NodeKind.CRYPTO_HASH: self._crypto_hash,
            NodeKind.DEVICE_INFO: self._device_info,
            NodeKind.PREFS_GET: self._prefs_get,
            NodeKind.AI2_CUSTOM_EXPRESSION: self._custom_expression,
            NodeKind.NATIVE_FIELD_GET: self._native_field_get,
            NodeKind.NATIVE_CALL: self._native_call,
        }
        for kind in _TEMPLATES:
            self._handlers[kind] = self._template
        for kind in _CONSTANTS:
            self._handlers[kind] = self._constant

    def handles(self, kind: NodeKind) -> bool:
        return kind in self._handlers

    def generate(self, node: Optional[Node], ctx: Optional[GenerationContext] = None) -> str:
        """Java expression for *node*; never raises."""
        if node is None:
            return "null"
        ctx = ctx or GenerationContext()
        if ctx.depth > self.config.max_depth:
            self.logger.warning(f"Expression nesting deeper than {self.config.max_depth} at block {node.id}")
            return "null"
        if node.id in ctx.path:
            self.logger.warning(f"Cyclic reference to block {node.id}")
            return "null"

        handler = self._handlers.get(node.kind)
        if handler is None:
            return self._fallback(node)
        try:
            return handler(node, ctx.entering(node.id))
        except Exception:
            self.logger.warning(f"Failed to generate expression for block {node.type} ({node.id})",
                                exc_info=True)
            return f"null /* failed: {node.kind.value} */"

    # Helpers ---------------------------------------------------------------

    def operand(self, node: Node, sockets: str, ctx: GenerationContext, default: str = "null") -> str:
        """Generate the first connected socket among ``NAME|ALT``, else *default*."""
        for socket in sockets.split("|"):
            child = self.graph.value(node, socket)
            if child is not None:
                return self.generate(child, ctx.deeper())
        return default

    def connected(self, node: Node, sockets: str) -> Optional[Node]:
        for socket in sockets.split("|"):
            child = self.graph.value(node, socket)
            if child is not None:
                return child
        return None

    def choice(self, node: Node, names: str, default: str) -> str:
        """Upper-cased dropdown value from the first present field among ``A|B``."""
        for name in names.split("|"):
            value = node.get_field(name)
            if value is not None:
                return str(value).strip().upper()
        return default

    def _fallback(self, node: Node) -> str:
        text = node.get_field("TEXT")
        if text is not None:
            return java_string_literal(decode_html_entities(str(text)))
        self.logger.debug(f"No expression rule for block type {comment_text(node.type)!r}")
        return "null"

    # Table-driven rules ----------------------------------------------------

    def _template(self, node: Node, ctx: GenerationContext) -> str:
        template, sockets = _TEMPLATES[node.kind]
        args = [self.operand(node, names, ctx, default) for names, default in sockets]
        return template.format(*args)

    def _constant(self, node: Node, ctx: GenerationContext) -> str:
        return _CONSTANTS[node.kind]

    # Literals and variables ------------------------------------------------

    def _math_number(self, node: Node, ctx: GenerationContext) -> str:
        raw = node.text_field("NUM", "0").strip()
        if _NUMBER.match(raw):
            return raw.lstrip("+")
        if raw in ("Infinity", "+Infinity"):
            return "Double.POSITIVE_INFINITY"
        if raw == "-Infinity":
            return "Double.NEGATIVE_INFINITY"
        return "0"

    def _text(self, node: Node, ctx: GenerationContext) -> str:
        return java_string_literal(decode_html_entities(node.text_field("TEXT")))

    def _logic_boolean(self, node: Node, ctx: GenerationContext) -> str:
        return "true" if self.choice(node, "BOOL", "FALSE") == "TRUE" else "false"

    def _variables_get(self, node: Node, ctx: GenerationContext) -> str:
        ref = node.get_field("VAR")
        if ref is None:
            ref = node.get_field("NAME")
        return to_identifier(self.graph.variable_name(ref) or "var")

    # Logic -----------------------------------------------------------------

    def _logic_compare(self, node: Node, ctx: GenerationContext) -> str:
        op = self.choice(node, "OP", "EQ")
        a = self.operand(node, "A", ctx)
        b = self.operand(node, "B", ctx)
        if op in _COMPARE_OPERATORS:
            return f"({a} {_COMPARE_OPERATORS[op]} {b})"
        if op == "NEQ":
            return f"!java.util.Objects.equals({a}, {b})"
        return f"java.util.Objects.equals({a}, {b})"

    def _logic_operation(self, node: Node, ctx: GenerationContext) -> str:
        symbol = _LOGIC_OPERATORS.get(self.choice(node, "OP", "AND"), "&&")
        a = self.operand(node, "A", ctx, "false")
        b = self.operand(node, "B", ctx, "false")
        return f"({a} {symbol} {b})"

    def _logic_negate(self, node: Node, ctx: GenerationContext) -> str:
        return f"!({self.operand(node, 'BOOL', ctx, 'true')})"

    def _logic_ternary(self, node: Node, ctx: GenerationContext) -> str:
        cond = self.operand(node, "IF", ctx, "false")
        then = self.operand(node, "THEN", ctx)
        otherwise = self.operand(node, "ELSE", ctx)
        return f"({cond} ? {then} : {otherwise})"

    # Math ------------------------------------------------------------------

    def _math_arithmetic(self, node: Node, ctx: GenerationContext) -> str:
        op = self.choice(node, "OP", "ADD")
        a = self.operand(node, "A", ctx, "0")
        b = self.operand(node, "B", ctx, "0")
        if op == "POWER":
            return f"Math.pow({a}, {b})"
        # The divisor is emitted twice, so its side effects run twice.
        if op == "DIVIDE":
            return f"({b} == 0 ? 0 : {a} / {b})"
        return f"({a} {_ARITHMETIC_OPERATORS.get(op, '+')} {b})"

    def _math_modulo(self, node: Node, ctx: GenerationContext) -> str:
        a = self.operand(node, "DIVIDEND|A", ctx, "0")
        b = self.operand(node, "DIVISOR|B", ctx, "0")
        # Divisor emitted twice, as in _math_arithmetic.
        return f"({b} == 0 ? 0 : {a} % {b})"

    def _math_single(self, node: Node, ctx: GenerationContext) -> str:
        a = self.operand(node, "NUM|A", ctx, "0")
        template = _SINGLE_FUNCTIONS.get(self.choice(node, "OP", "ROUND"))
        return template.format(a) if template else f"({a})"

    def _math_trig(self, node: Node, ctx: GenerationContext) -> str:
        num = self.operand(node, "NUM", ctx, "0")
        template = _TRIG_FUNCTIONS.get(self.choice(node, "OP", "SIN"))
        return template.format(num) if template else f"({num})"

    def _math_min_max(self, node: Node, ctx: GenerationContext) -> str:
        function = "Math.min" if self.choice(node, "MODE", "MAX") == "MIN" else "Math.max"
        return f"{function}({self.operand(node, 'A', ctx, '0')}, {self.operand(node, 'B', ctx, '0')})"

    # Text ------------------------------------------------------------------

    def _text_join(self, node: Node, ctx: GenerationContext) -> str:
        parts = []
        for socket in numbered_sockets(node, "ADD"):
            if self.graph.value(node, socket) is None:
                parts.append('""')
            else:
                parts.append(f"String.valueOf({self.operand(node, socket, ctx)})")
        if not parts:
            return '""'
        if len(parts) == 1:
            return parts[0]
        return f"({' + '.join(parts)})"

    def _text_length(self, node: Node, ctx: GenerationContext) -> str:
        if self.connected(node, "VALUE|TEXT") is None:
            return "0"
        child = self.operand(node, "VALUE|TEXT", ctx)
        return f"({child} == null ? 0 : String.valueOf({child}).length())"

    def _text_is_empty(self, node: Node, ctx: GenerationContext) -> str:
        if self.connected(node, "VALUE|TEXT") is None:
            return "true"
        child = self.operand(node, "VALUE|TEXT", ctx)
        return f"({child} == null || String.valueOf({child}).isEmpty())"

    def _text_index_of(self, node: Node, ctx: GenerationContext) -> str:
        text = self.operand(node, "VALUE|TEXT", ctx, '""')
        search = self.operand(node, "FIND|SEARCH", ctx, '""')
        method = "lastIndexOf" if "LAST" in self.choice(node, "END|WHERE", "FIRST") else "indexOf"
        return f"String.valueOf({text}).{method}(String.valueOf({search}))"

    def _text_change_case(self, node: Node, ctx: GenerationContext) -> str:
        child = self.operand(node, "TEXT|VALUE", ctx, '""')
        mode = self.choice(node, "CASE|MODE", "UPPERCASE")
        if "UPPER" in mode:
            return f"String.valueOf({child}).toUpperCase()"
        if "LOWER" in mode:
            return f"String.valueOf({child}).toLowerCase()"
        return child

    def _text_predicate(self, node: Node, ctx: GenerationContext) -> str:
        method = {
            NodeKind.TEXT_CONTAINS: "contains",
            NodeKind.TEXT_STARTSWITH: "startsWith",
            NodeKind.TEXT_ENDSWITH: "endsWith",
        }[node.kind]
        text = self.operand(node, "TEXT|VALUE", ctx, '""')
        search = self.operand(node, "SEARCH", ctx, '""')
        return f"({text} != null && String.valueOf({text}).{method}(String.valueOf({search})))"

    def _text_replace_all(self, node: Node, ctx: GenerationContext) -> str:
        text = self.operand(node, "TEXT", ctx, '""')
        replacement = self.operand(node, "REPLACEMENT", ctx, '""')
        if self.connected(node, "REGEX") is not None:
            return f"String.valueOf({text}).replaceAll({self.operand(node, 'REGEX', ctx)}, {replacement})"
        segment = self.operand(node, "SEGMENT", ctx, '""')
        return f"String.valueOf({text}).replace(String.valueOf({segment}), String.valueOf({replacement}))"

    # Lists -----------------------------------------------------------------

    def list_items(self, node: Node, ctx: GenerationContext) -> List[str]:
        """Generated item expressions of a list-construction block."""
        return [self.operand(node, socket, ctx) for socket in numbered_sockets(node, "ADD")]

    def _lists_create_with(self, node: Node, ctx: GenerationContext) -> str:
        items = self.list_items(node, ctx)
        if not items:
            return NEW_LIST
        return f"new java.util.ArrayList<java.lang.Object>(java.util.Arrays.asList({', '.join(items)}))"

    def _lists_length(self, node: Node, ctx: GenerationContext) -> str:
        if self.connected(node, "VALUE|LIST") is None:
            return "0"
        items = self.operand(node, "VALUE|LIST", ctx)
        return f"({items} == null ? 0 : {items}.size())"

    def _lists_is_empty(self, node: Node, ctx: GenerationContext) -> str:
        if self.connected(node, "VALUE|LIST") is None:
            return "true"
        items = self.operand(node, "VALUE|LIST", ctx)
        return f"({items} == null || {items}.isEmpty())"

    def _lists_get_index(self, node: Node, ctx: GenerationContext) -> str:
        if self.connected(node, "LIST|VALUE") is None:
            return "null"
        items = self.operand(node, "LIST|VALUE", ctx)
        index = self.operand(node, "INDEX|AT", ctx, "0")
        return (f"(({items} != null && {index} >= 0 && {index} < {items}.size()) "
                f"? {items}.get({index}) : null)")

    # Utilities and device --------------------------------------------------

    def _crypto_hash(self, node: Node, ctx: GenerationContext) -> str:
        text = self.operand(node, "TEXT", ctx, '""')
        algorithm = self.choice(node, "ALGO", "MD5")
        if algorithm not in _HASH_ALGORITHMS:
            algorithm = "MD5"
        return (f'(new java.math.BigInteger(1, java.security.MessageDigest.getInstance("{algorithm}")'
                f'.digest(String.valueOf({text}).getBytes())).toString(16))')

    def _device_info(self, node: Node, ctx: GenerationContext) -> str:
        return _DEVICE_INFO.get(self.choice(node, "INFO", "MODEL"), '""')

    def _prefs_get(self, node: Node, ctx: GenerationContext) -> str:
        key = self.operand(node, "KEY", ctx, '""')
        default = self.operand(node, "DEFAULT", ctx, '""')
        prefs = java_string_literal(self.config.prefs_name)
        return (f"this.context.getSharedPreferences({prefs}, Context.MODE_PRIVATE)"
                f".getString(String.valueOf({key}), String.valueOf({default}))")

    # Escape hatch and external access --------------------------------------

    def _custom_expression(self, node: Node, ctx: GenerationContext) -> str:
        code = node.get_field("CODE")
        return str(code) if code is not None else "null"

    def receiver(self, node: Node, ctx: GenerationContext) -> str:
        """Target of a native access; an empty socket means the unit itself."""
        target = self.operand(node, "TARGET", ctx, "this")
        return "this" if target == "null" else target

    def member_name(self, node: Node, field_name: str, default: str) -> str:
        raw = decode_html_entities(node.text_field(field_name, default)).strip()
        return raw if _MEMBER_NAME.match(raw) else to_identifier(raw)

    def _native_field_get(self, node: Node, ctx: GenerationContext) -> str:
        return f"{self.receiver(node, ctx)}.{self.member_name(node, 'FIELD', 'field')}"

    def _native_call(self, node: Node, ctx: GenerationContext) -> str:
        target = self.receiver(node, ctx)
        method = self.member_name(node, "METHOD", "toString")
        args_node = self.connected(node, "ARGS")
        if args_node is None:
            args = ""
        elif args_node.kind == NodeKind.LISTS_CREATE_WITH:
            args = ", ".join(self.list_items(args_node, ctx.deeper()))
        else:
            # Any other list-producing block is passed as one argument, not spread.
            args = self.operand(node, "ARGS", ctx)
        return f"{target}.{method}({args})"
