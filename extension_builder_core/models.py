"""
Core data models for the Extension Builder.

This module defines the block graph consumed by the code generators: the closed
set of node kinds, the node record itself, the graph arena that owns the nodes,
and the per-routine generation context passed down through every recursive
generator call.
"""

from dataclasses import dataclass, field, replace
from typing import Dict, List, Any, Optional, Iterator, Set, FrozenSet, Union
from enum import Enum
import copy
import logging
import uuid

from .exceptions import GraphError, NodeNotFoundError, InvalidConnectionError


logger = logging.getLogger(__name__)


class NodeKind(Enum):
    """Every block type the generators know about (Blockly type tags)."""
    # Unit root and declarations
    AI2_EXTENSION = "ai2_extension"
    AI2_PROPERTY = "ai2_property"
    AI2_METHOD = "ai2_method"
    AI2_EVENT = "ai2_event"

    # Literals and variables
    MATH_NUMBER = "math_number"
    TEXT = "text"
    LOGIC_BOOLEAN = "logic_boolean"
    LOGIC_NULL = "logic_null"
    VARIABLES_GET = "variables_get"

    # Logic
    LOGIC_COMPARE = "logic_compare"
    LOGIC_OPERATION = "logic_operation"
    LOGIC_NEGATE = "logic_negate"
    LOGIC_TERNARY = "logic_ternary"

    # Math
    MATH_ARITHMETIC = "math_arithmetic"
    MATH_MODULO = "math_modulo"
    MATH_SINGLE = "math_single"
    MATH_ROUND = "math_round"
    MATH_TRIG_SIMPLE = "math_trig_simple"
    MATH_MIN_MAX = "math_min_max"
    MATH_CONSTRAIN = "math_constrain"
    MATH_RANDOM_INT = "math_random_int"
    MATH_RANDOM_FLOAT = "math_random_float"
    MATH_IS_NUMBER = "math_is_number"
    MATH_PARSE_INT = "math_parse_int"
    MATH_PARSE_FLOAT = "math_parse_float"

    # Text
    TEXT_JOIN = "text_join"
    TEXT_LENGTH = "text_length"
    TEXT_IS_EMPTY = "text_isEmpty"
    TEXT_INDEX_OF = "text_indexOf"
    TEXT_CHAR_AT = "text_charAt"
    TEXT_GET_SUBSTRING = "text_getSubstring"
    TEXT_CHANGE_CASE = "text_changeCase"
    TEXT_CONTAINS = "text_contains"
    TEXT_STARTSWITH = "text_startswith"
    TEXT_ENDSWITH = "text_endswith"
    TEXT_SPLIT = "text_split"
    TEXT_JOIN_LIST = "text_join_list"
    TEXT_REPLACE_ALL = "text_replace_all"
    TEXT_REPLACE_REGEX = "text_replace_regex"
    TEXT_REVERSE = "text_reverse"
    TEXT_TRIM = "text_trim"

    # Lists
    LISTS_CREATE_WITH = "lists_create_with"
    LISTS_LENGTH = "lists_length"
    LISTS_IS_EMPTY = "lists_isEmpty"
    LISTS_GET_INDEX = "lists_getIndex"
    LISTS_INDEX_OF = "lists_index_of"
    LISTS_PICK_RANDOM = "lists_pick_random"
    LISTS_COPY = "lists_copy"

    # Maps
    MAPS_CREATE_WITH = "maps_create_with"
    MAP_GET = "map_get"
    MAP_KEYS = "map_keys"
    MAP_VALUES = "map_values"
    MAP_CONTAINS_KEY = "map_contains_key"
    MAP_SIZE = "map_size"
    MAP_IS_EMPTY = "map_is_empty"

    # Utilities
    JSON_PARSE = "json_parse"
    JSON_GET = "json_get"
    BASE64_ENCODE = "base64_encode"
    BASE64_DECODE = "base64_decode"
    CRYPTO_HASH = "crypto_hash"
    REGEX_MATCH = "regex_match"
    REGEX_REPLACE = "regex_replace"
    WEB_URL_ENCODE = "web_url_encode"
    WEB_URL_DECODE = "web_url_decode"
    WEB_HTML_DECODE = "web_html_decode"
    DATE_CURRENT_MILLIS = "date_current_millis"
    DATE_NOW_MILLIS = "date_now_millis"
    DATE_FORMAT = "date_format"
    DATE_PARSE = "date_parse"

    # Device / Android
    DEVICE_INFO = "device_info"
    DEVICE_GET_LANGUAGE = "device_get_language"
    DEVICE_IS_DARK_MODE = "device_is_dark_mode"
    DEVICE_IS_ONLINE = "device_is_online"
    DEVICE_BATTERY_LEVEL = "device_battery_level"
    ANDROID_CLIPBOARD_GET = "android_clipboard_get"
    PREFS_GET = "prefs_get"
    FILE_READ = "file_read"
    FILE_EXISTS = "file_exists"
    FILE_DELETE = "file_delete"
    FILE_LIST = "file_list"
    NETWORK_GET = "network_get"
    NETWORK_POST = "network_post"

    # Escape hatches and external access
    AI2_CUSTOM_EXPRESSION = "ai2_custom_expression"
    AI2_CUSTOM_CODE = "ai2_custom_code"
    NATIVE_FIELD_GET = "native_field_get"
    NATIVE_FIELD_SET = "native_field_set"
    NATIVE_CALL = "native_call"

    # Statements
    AI2_SET = "ai2_set"
    AI2_RETURN = "ai2_return"
    AI2_DISPATCH = "ai2_dispatch"
    VARIABLES_SET = "variables_set"
    MATH_CHANGE = "math_change"
    CONTROLS_IF = "controls_if"
    CONTROLS_REPEAT = "controls_repeat"
    CONTROLS_REPEAT_EXT = "controls_repeat_ext"
    CONTROLS_FOR = "controls_for"
    CONTROLS_FOR_EACH = "controls_forEach"
    CONTROLS_WHILE_UNTIL = "controls_whileUntil"
    CONTROLS_FLOW_STATEMENTS = "controls_flow_statements"
    CONTROLS_TRY_CATCH = "controls_try_catch"
    THREAD_RUN = "thread_run"
    TIMER_DELAY = "timer_delay"
    HTTP_GET = "http_get"
    TEXT_PRINT = "text_print"
    LISTS_APPEND = "lists_append"
    LISTS_REMOVE_AT = "lists_remove_at"
    LISTS_SORT = "lists_sort"
    LISTS_REVERSE = "lists_reverse"
    LISTS_SHUFFLE = "lists_shuffle"
    MAP_PUT = "map_put"
    MAP_REMOVE = "map_remove"
    MAP_CLEAR = "map_clear"
    FILE_WRITE = "file_write"
    PREFS_STORE = "prefs_store"
    VIBRATOR_VIBRATE = "vibrator_vibrate"
    DEVICE_VIBRATE = "device_vibrate"
    ANDROID_TOAST = "android_toast"
    TOAST_SHOW = "toast_show"
    ANDROID_LOG = "android_log"
    ANDROID_CLIPBOARD_SET = "android_clipboard_set"
    CLIPBOARD_COPY = "clipboard_copy"
    ANDROID_OPEN_URL = "android_open_url"
    INTENT_OPEN = "intent_open"
    ANDROID_SHARE_TEXT = "android_share_text"

    UNKNOWN = "unknown"

    @classmethod
    def from_tag(cls, tag: Any) -> 'NodeKind':
        """Resolve a raw type tag; unrecognized tags become UNKNOWN."""
        try:
            return cls(tag)
        except ValueError:
            return cls.UNKNOWN


@dataclass
class Node:
    """One block of the visual program."""
    id: str = field(default_factory=lambda: str(uuid.uuid4()))
    type: str = NodeKind.UNKNOWN.value
    fields: Dict[str, Any] = field(default_factory=dict)
    values: Dict[str, str] = field(default_factory=dict)  # value socket -> child id
    statements: Dict[str, str] = field(default_factory=dict)  # statement socket -> head id
    next_id: Optional[str] = None
    extra_state: Dict[str, Any] = field(default_factory=dict)  # Blockly mutation state

    @property
    def kind(self) -> NodeKind:
        return NodeKind.from_tag(self.type)

    def get_field(self, name: str, default: Any = None) -> Any:
        """Get a field value; missing and blank values yield *default*."""
        value = self.fields.get(name)
        if value is None:
            return default
        if isinstance(value, str) and not value.strip():
            return default
        return value

    def text_field(self, name: str, default: str = "") -> str:
        """Get a field value as text."""
        value = self.get_field(name)
        if value is None:
            return default
        if isinstance(value, bool):
            return "TRUE" if value else "FALSE"
        return str(value)

    def flag_field(self, name: str) -> bool:
        """Read a checkbox field ("TRUE"/"FALSE" or a real bool)."""
        value = self.get_field(name, False)
        if isinstance(value, bool):
            return value
        return str(value).strip().upper() == "TRUE"

    def child_ids(self) -> List[str]:
        """Ids of every node this node owns, including its chain successor."""
        ids = list(self.values.values()) + list(self.statements.values())
        if self.next_id:
            ids.append(self.next_id)
        return ids


@dataclass
class BlockGraph:
    """
    Arena of nodes addressed by id.

    The editor mutates the graph through the connect/link methods; generators
    only use the traversal methods on a snapshot taken at the start of a pass.
    """
    nodes: Dict[str, Node] = field(default_factory=dict)
    top_level: List[str] = field(default_factory=list)
    variables: Dict[str, str] = field(default_factory=dict)  # variable id -> name
    metadata: Dict[str, Any] = field(default_factory=dict)

    def add_node(self, node: Node, top_level: bool = True) -> str:
        """Add a node to the graph and return its ID."""
        self.nodes[node.id] = node
        if top_level and node.id not in self.top_level:
            self.top_level.append(node.id)
        return node.id

    def require(self, node_id: str) -> Node:
        """Get a node by id or raise NodeNotFoundError."""
        node = self.nodes.get(node_id)
        if node is None:
            raise NodeNotFoundError(node_id)
        return node

    def get(self, node_id: Optional[str]) -> Optional[Node]:
        if node_id is None:
            return None
        return self.nodes.get(node_id)

    def connect_value(self, parent_id: str, socket: str, child_id: str) -> None:
        """Plug an expression node into a value socket."""
        parent = self._check_link(parent_id, socket, child_id)
        parent.values[socket] = child_id
        self._detach_from_top_level(child_id)

    def connect_statement(self, parent_id: str, socket: str, head_id: str) -> None:
        """Plug the head of a statement chain into a statement socket."""
        parent = self._check_link(parent_id, socket, head_id)
        parent.statements[socket] = head_id
        self._detach_from_top_level(head_id)

    def link_next(self, prev_id: str, next_id: str) -> None:
        """Chain *next_id* after *prev_id*."""
        prev = self._check_link(prev_id, "next", next_id)
        prev.next_id = next_id
        self._detach_from_top_level(next_id)

    def remove_node(self, node_id: str) -> bool:
        """Remove a node and every reference to it."""
        if node_id not in self.nodes:
            return False

        for node in self.nodes.values():
            node.values = {k: v for k, v in node.values.items() if v != node_id}
            node.statements = {k: v for k, v in node.statements.items() if v != node_id}
            if node.next_id == node_id:
                node.next_id = None

        if node_id in self.top_level:
            self.top_level.remove(node_id)
        del self.nodes[node_id]
        return True

    # Traversal -------------------------------------------------------------

    def value(self, node: Node, socket: str) -> Optional[Node]:
        """Node connected to a value socket, or None for an empty socket."""
        return self.get(node.values.get(socket))

    def statement(self, node: Node, socket: str) -> Optional[Node]:
        """Head of the chain in a statement socket, or None."""
        return self.get(node.statements.get(socket))

    def next(self, node: Node) -> Optional[Node]:
        return self.get(node.next_id)

    def chain(self, head: Optional[Node], max_length: int = 5000) -> Iterator[Node]:
        """Walk a statement chain, stopping at a repeated node or the length cap."""
        visited: Set[str] = set()
        current = head
        while current is not None:
            if current.id in visited:
                logger.warning(f"Statement chain revisits node {current.id}; stopping")
                return
            if len(visited) >= max_length:
                logger.warning(f"Statement chain longer than {max_length} nodes; truncating")
                return
            visited.add(current.id)
            yield current
            current = self.next(current)

    def roots(self) -> List[Node]:
        """Top-level nodes in insertion order."""
        return [self.nodes[node_id] for node_id in self.top_level if node_id in self.nodes]

    def find_root(self, kind: NodeKind) -> Optional[Node]:
        """First node of *kind*, preferring top-level nodes."""
        for node in self.roots():
            if node.kind == kind:
                return node
        for node in self.nodes.values():
            if node.kind == kind:
                return node
        return None

    def variable_name(self, ref: Any) -> str:
        """Resolve a variable field that may hold a variable id."""
        if isinstance(ref, dict):
            ref = ref.get('name') or ref.get('id') or ''
        ref = '' if ref is None else str(ref)
        return self.variables.get(ref, ref)

    def snapshot(self) -> 'BlockGraph':
        """Independent copy used as the read-only input of one generation pass."""
        return copy.deepcopy(self)

    def validate_graph(self) -> List[GraphError]:
        """Report structural problems without raising."""
        errors: List[GraphError] = []
        owners: Dict[str, List[str]] = {}

        for node in self.nodes.values():
            for child_id in node.child_ids():
                if child_id not in self.nodes:
                    errors.append(GraphError(
                        f"Node {node.id} references missing node: {child_id}",
                        {'node_id': node.id, 'missing_id': child_id}
                    ))
                    continue
                owners.setdefault(child_id, []).append(node.id)

        for child_id, parents in owners.items():
            if len(parents) > 1:
                errors.append(GraphError(
                    f"Node {child_id} is owned by more than one parent",
                    {'node_id': child_id, 'parents': parents}
                ))

        if self._has_cycles():
            errors.append(GraphError("Graph contains a cycle"))

        return errors

    def _has_cycles(self) -> bool:
        """Check if the graph has circular ownership using DFS."""
        visited = set()
        rec_stack = set()

        def dfs(node_id: str) -> bool:
            if node_id in rec_stack:
                return True
            if node_id in visited:
                return False

            visited.add(node_id)
            rec_stack.add(node_id)
            for child_id in self.nodes[node_id].child_ids():
                if child_id in self.nodes and dfs(child_id):
                    return True
            rec_stack.remove(node_id)
            return False

        for node_id in self.nodes:
            if node_id not in visited:
                if dfs(node_id):
                    return True
        return False

    def _check_link(self, parent_id: str, socket: str, child_id: str) -> Node:
        if not socket:
            raise InvalidConnectionError("Socket name must not be empty", parent_id, socket)
        if parent_id == child_id:
            raise InvalidConnectionError("A block cannot connect to itself", parent_id, socket)
        parent = self.require(parent_id)
        self.require(child_id)
        return parent

    def _detach_from_top_level(self, node_id: str) -> None:
        if node_id in self.top_level:
            self.top_level.remove(node_id)


class GraphBuilder:
    """Convenience API for assembling a BlockGraph in code."""

    def __init__(self, graph: Optional[BlockGraph] = None):
        self.graph = graph or BlockGraph()

    def add(self, type_tag: Union[str, NodeKind], fields: Optional[Dict[str, Any]] = None,
            values: Optional[Dict[str, Union[Node, str]]] = None,
            statements: Optional[Dict[str, Union[Node, str]]] = None,
            extra_state: Optional[Dict[str, Any]] = None,
            node_id: Optional[str] = None) -> Node:
        """Create a node and connect the given children to it."""
        tag = type_tag.value if isinstance(type_tag, NodeKind) else type_tag
        node = Node(type=tag, fields=dict(fields or {}), extra_state=dict(extra_state or {}))
        if node_id:
            node.id = node_id
        self.graph.add_node(node)

        for socket, child in (values or {}).items():
            if child is not None:
                self.graph.connect_value(node.id, socket, _node_id(child))
        for socket, head in (statements or {}).items():
            if head is not None:
                self.graph.connect_statement(node.id, socket, _node_id(head))
        return node

    def chain(self, *nodes: Node) -> Optional[Node]:
        """Link nodes into one statement chain and return its head."""
        for prev, nxt in zip(nodes, nodes[1:]):
            self.graph.link_next(prev.id, nxt.id)
        return nodes[0] if nodes else None

    def build(self) -> BlockGraph:
        return self.graph


def _node_id(ref: Union[Node, str]) -> str:
    return ref.id if isinstance(ref, Node) else ref


@dataclass
class GenerationContext:
    """
    Names visible to the statement currently being generated.

    ``locals`` is shared by statements of one chain and copied for nested
    bodies, so a declaration inside a block never leaks to the enclosing scope.
    """
    properties: FrozenSet[str] = frozenset()
    parameters: FrozenSet[str] = frozenset()
    locals: Set[str] = field(default_factory=set)
    expected_return_type: str = "void"
    depth: int = 0
    path: FrozenSet[str] = frozenset()

    def knows(self, name: str) -> bool:
        return name in self.properties or name in self.parameters or name in self.locals

    def declare(self, name: str) -> None:
        self.locals.add(name)

    def deeper(self) -> 'GenerationContext':
        """Same scope, one level deeper (expression recursion)."""
        return replace(self, depth=self.depth + 1)

    def nested(self) -> 'GenerationContext':
        """New inner scope for a block body."""
        return replace(self, locals=set(self.locals), depth=self.depth + 1)

    def isolated(self) -> 'GenerationContext':
        """Empty context for code that runs detached from the routine."""
        return GenerationContext(depth=self.depth + 1, path=self.path)

    def entering(self, node_id: str) -> 'GenerationContext':
        """Same scope with *node_id* added to the blocks being generated."""
        return replace(self, path=self.path | {node_id})


class NameCounter:
    """Pass-scoped counter for synthesized temporary names."""

    def __init__(self, start: int = 0):
        self._value = start

    def next_name(self, prefix: str) -> str:
        name = f"{prefix}{self._value}"
        self._value += 1
        return name
