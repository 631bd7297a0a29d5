"""
Node Registry: the shape contract of every block kind.

The registry records, for each NodeKind, whether it produces a value or a
statement (or declares a unit member) and which of its sockets hold statement
chains.  It is a plain object built by the host application and handed to the
loader and the generators; nothing is registered globally.

    registry = NodeRegistry.default()
    registry.is_expression(NodeKind.TEXT_LENGTH)        -> True
    registry.is_statement_input(NodeKind.CONTROLS_IF, "DO2") -> True
"""

import re
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple
from enum import Enum

from .models import NodeKind


logger = logging.getLogger(__name__)


class NodeCategory(Enum):
    """What a block contributes to the generated unit."""
    ROOT = "root"
    DECLARATION = "declaration"
    EXPRESSION = "expression"
    STATEMENT = "statement"


@dataclass
class NodeDefinition:
    """Shape of one block kind."""
    kind: NodeKind
    category: NodeCategory
    palette: str = "Advanced"
    statement_inputs: Tuple[str, ...] = ()  # regex patterns, anchored
    description: str = ""
    tags: List[str] = field(default_factory=list)

    def __post_init__(self):
        self._patterns = [re.compile(f"^(?:{p})$") for p in self.statement_inputs]

    def has_statement_input(self, socket: str) -> bool:
        return any(p.match(socket) for p in self._patterns)

    def matches_search(self, query: str) -> bool:
        """Check if this definition matches a search query."""
        query_lower = query.lower()
        return (query_lower in self.kind.value.lower() or
                query_lower in self.description.lower() or
                query_lower in self.palette.lower() or
                any(query_lower in tag.lower() for tag in self.tags))

    def to_dict(self) -> Dict[str, Any]:
        return {
            'type': self.kind.value,
            'category': self.category.value,
            'palette': self.palette,
            'statement_inputs': list(self.statement_inputs),
            'description': self.description,
            'tags': list(self.tags),
        }


_E = NodeCategory.EXPRESSION
_S = NodeCategory.STATEMENT

# (kind, category, palette, statement inputs, description)
_BUILTIN_DEFINITIONS = [
    (NodeKind.AI2_EXTENSION, NodeCategory.ROOT, "Extension", ("PROPERTIES", "METHODS", "EVENTS"),
     "Extension class with package, metadata and member containers"),
    (NodeKind.AI2_PROPERTY, NodeCategory.DECLARATION, "Extension", (), "Property with getter and optional setter"),
    (NodeKind.AI2_METHOD, NodeCategory.DECLARATION, "Extension", ("BODY",), "SimpleFunction"),
    (NodeKind.AI2_EVENT, NodeCategory.DECLARATION, "Extension", (), "SimpleEvent trigger"),
    (NodeKind.AI2_SET, _S, "Extension", (), "Assign a property field"),
    (NodeKind.AI2_RETURN, _S, "Extension", (), "Return a value from the method"),
    (NodeKind.AI2_DISPATCH, _S, "Extension", (), "Fire a declared event"),

    (NodeKind.MATH_NUMBER, _E, "Math", (), "Number literal"),
    (NodeKind.MATH_ARITHMETIC, _E, "Math", (), "Arithmetic with guarded division"),
    (NodeKind.MATH_MODULO, _E, "Math", (), "Remainder with guarded divisor"),
    (NodeKind.MATH_SINGLE, _E, "Math", (), "Single-operand math function"),
    (NodeKind.MATH_ROUND, _E, "Math", (), "Round, ceiling or floor"),
    (NodeKind.MATH_TRIG_SIMPLE, _E, "Math", (), "Trigonometry and angle conversion"),
    (NodeKind.MATH_MIN_MAX, _E, "Math", (), "Minimum or maximum of two numbers"),
    (NodeKind.MATH_CONSTRAIN, _E, "Math", (), "Clamp a number between bounds"),
    (NodeKind.MATH_RANDOM_INT, _E, "Math", (), "Random integer in a range"),
    (NodeKind.MATH_RANDOM_FLOAT, _E, "Math", (), "Random fraction"),
    (NodeKind.MATH_IS_NUMBER, _E, "Math", (), "Test whether text is numeric"),
    (NodeKind.MATH_PARSE_INT, _E, "Math", (), "Parse an integer with a fallback"),
    (NodeKind.MATH_PARSE_FLOAT, _E, "Math", (), "Parse a float with a fallback"),
    (NodeKind.MATH_CHANGE, _S, "Math", (), "Increment a variable"),

    (NodeKind.LOGIC_BOOLEAN, _E, "Logic", (), "true / false"),
    (NodeKind.LOGIC_NULL, _E, "Logic", (), "null"),
    (NodeKind.LOGIC_COMPARE, _E, "Logic", (), "Null-safe comparison"),
    (NodeKind.LOGIC_OPERATION, _E, "Logic", (), "and / or"),
    (NodeKind.LOGIC_NEGATE, _E, "Logic", (), "not"),
    (NodeKind.LOGIC_TERNARY, _E, "Logic", (), "Conditional expression"),

    (NodeKind.VARIABLES_GET, _E, "Variables", (), "Read a variable"),
    (NodeKind.VARIABLES_SET, _S, "Variables", (), "Declare or assign a variable"),

    (NodeKind.TEXT, _E, "Text", (), "Text literal"),
    (NodeKind.TEXT_JOIN, _E, "Text", (), "Concatenate values"),
    (NodeKind.TEXT_LENGTH, _E, "Text", (), "Null-safe length"),
    (NodeKind.TEXT_IS_EMPTY, _E, "Text", (), "Null-safe emptiness"),
    (NodeKind.TEXT_INDEX_OF, _E, "Text", (), "First or last index of a substring"),
    (NodeKind.TEXT_CHAR_AT, _E, "Text", (), "Character at index"),
    (NodeKind.TEXT_GET_SUBSTRING, _E, "Text", (), "Substring between indices"),
    (NodeKind.TEXT_CHANGE_CASE, _E, "Text", (), "Upper or lower case"),
    (NodeKind.TEXT_CONTAINS, _E, "Text", (), "Contains"),
    (NodeKind.TEXT_STARTSWITH, _E, "Text", (), "Starts with"),
    (NodeKind.TEXT_ENDSWITH, _E, "Text", (), "Ends with"),
    (NodeKind.TEXT_SPLIT, _E, "Text", (), "Split into a list"),
    (NodeKind.TEXT_JOIN_LIST, _E, "Text", (), "Join a list with a separator"),
    (NodeKind.TEXT_REPLACE_ALL, _E, "Text", (), "Replace every literal occurrence"),
    (NodeKind.TEXT_REPLACE_REGEX, _E, "Text", (), "Replace regex matches"),
    (NodeKind.TEXT_REVERSE, _E, "Text", (), "Reverse"),
    (NodeKind.TEXT_TRIM, _E, "Text", (), "Trim whitespace"),
    (NodeKind.TEXT_PRINT, _S, "Text", (), "Print to standard output"),

    (NodeKind.LISTS_CREATE_WITH, _E, "Lists", (), "Create a list"),
    (NodeKind.LISTS_LENGTH, _E, "Lists", (), "Null-safe size"),
    (NodeKind.LISTS_IS_EMPTY, _E, "Lists", (), "Null-safe emptiness"),
    (NodeKind.LISTS_GET_INDEX, _E, "Lists", (), "Bounds-checked get"),
    (NodeKind.LISTS_INDEX_OF, _E, "Lists", (), "Index of an item"),
    (NodeKind.LISTS_PICK_RANDOM, _E, "Lists", (), "Random item or null"),
    (NodeKind.LISTS_COPY, _E, "Lists", (), "Shallow copy"),
    (NodeKind.LISTS_APPEND, _S, "Lists", (), "Append an item"),
    (NodeKind.LISTS_REMOVE_AT, _S, "Lists", (), "Remove by index"),
    (NodeKind.LISTS_SORT, _S, "Lists", (), "Sort in place"),
    (NodeKind.LISTS_REVERSE, _S, "Lists", (), "Reverse in place"),
    (NodeKind.LISTS_SHUFFLE, _S, "Lists", (), "Shuffle in place"),

    (NodeKind.MAPS_CREATE_WITH, _E, "Maps", (), "Create a map"),
    (NodeKind.MAP_GET, _E, "Maps", (), "Null-safe get"),
    (NodeKind.MAP_KEYS, _E, "Maps", (), "Keys as a list"),
    (NodeKind.MAP_VALUES, _E, "Maps", (), "Values as a list"),
    (NodeKind.MAP_CONTAINS_KEY, _E, "Maps", (), "Contains key"),
    (NodeKind.MAP_SIZE, _E, "Maps", (), "Null-safe size"),
    (NodeKind.MAP_IS_EMPTY, _E, "Maps", (), "Null-safe emptiness"),
    (NodeKind.MAP_PUT, _S, "Maps", (), "Put an entry"),
    (NodeKind.MAP_REMOVE, _S, "Maps", (), "Remove an entry"),
    (NodeKind.MAP_CLEAR, _S, "Maps", (), "Remove every entry"),

    (NodeKind.CONTROLS_IF, _S, "Control", (r"DO\d+", "ELSE"), "if / else if / else"),
    (NodeKind.CONTROLS_REPEAT, _S, "Control", ("DO",), "Repeat n times"),
    (NodeKind.CONTROLS_REPEAT_EXT, _S, "Control", ("DO",), "Repeat n times"),
    (NodeKind.CONTROLS_FOR, _S, "Control", ("DO",), "Counted range loop"),
    (NodeKind.CONTROLS_FOR_EACH, _S, "Control", ("DO",), "Loop over a list"),
    (NodeKind.CONTROLS_WHILE_UNTIL, _S, "Control", ("DO",), "while / until loop"),
    (NodeKind.CONTROLS_FLOW_STATEMENTS, _S, "Control", (), "break / continue"),
    (NodeKind.CONTROLS_TRY_CATCH, _S, "Control", ("TRY", "CATCH"), "try / catch"),
    (NodeKind.THREAD_RUN, _S, "Control", ("DO",), "Run on a background thread"),
    (NodeKind.TIMER_DELAY, _S, "Control", ("DO",), "Run after a delay"),

    (NodeKind.JSON_PARSE, _E, "Utilities", (), "Parse JSON"),
    (NodeKind.JSON_GET, _E, "Utilities", (), "Get a JSON member"),
    (NodeKind.BASE64_ENCODE, _E, "Utilities", (), "Base64 encode"),
    (NodeKind.BASE64_DECODE, _E, "Utilities", (), "Base64 decode"),
    (NodeKind.CRYPTO_HASH, _E, "Utilities", (), "Hex digest"),
    (NodeKind.REGEX_MATCH, _E, "Utilities", (), "Regex full match"),
    (NodeKind.REGEX_REPLACE, _E, "Utilities", (), "Regex replace"),
    (NodeKind.WEB_URL_ENCODE, _E, "Utilities", (), "URL encode"),
    (NodeKind.WEB_URL_DECODE, _E, "Utilities", (), "URL decode"),
    (NodeKind.WEB_HTML_DECODE, _E, "Utilities", (), "Decode HTML"),
    (NodeKind.DATE_CURRENT_MILLIS, _E, "Utilities", (), "Current time in ms"),
    (NodeKind.DATE_NOW_MILLIS, _E, "Utilities", (), "Current time in ms"),
    (NodeKind.DATE_FORMAT, _E, "Utilities", (), "Format a timestamp"),
    (NodeKind.DATE_PARSE, _E, "Utilities", (), "Parse a date to ms"),

    (NodeKind.DEVICE_INFO, _E, "Device", (), "Build information"),
    (NodeKind.DEVICE_GET_LANGUAGE, _E, "Device", (), "Locale language"),
    (NodeKind.DEVICE_IS_DARK_MODE, _E, "Device", (), "Night mode active"),
    (NodeKind.DEVICE_IS_ONLINE, _E, "Device", (), "Network connected"),
    (NodeKind.DEVICE_BATTERY_LEVEL, _E, "Device", (), "Battery percentage"),
    (NodeKind.ANDROID_CLIPBOARD_GET, _E, "Device", (), "Clipboard text"),
    (NodeKind.PREFS_GET, _E, "Device", (), "Read a shared preference"),
    (NodeKind.FILE_READ, _E, "Device", (), "Read a private file"),
    (NodeKind.FILE_EXISTS, _E, "Device", (), "File exists"),
    (NodeKind.FILE_DELETE, _E, "Device", (), "Delete a file"),
    (NodeKind.FILE_LIST, _E, "Device", (), "List a directory"),
    (NodeKind.NETWORK_GET, _E, "Device", (), "Blocking HTTP GET"),
    (NodeKind.NETWORK_POST, _E, "Device", (), "Blocking HTTP POST"),
    (NodeKind.HTTP_GET, _S, "Device", ("ON_SUCCESS", "ON_ERROR"), "Asynchronous HTTP GET"),
    (NodeKind.FILE_WRITE, _S, "Device", (), "Write a private file"),
    (NodeKind.PREFS_STORE, _S, "Device", (), "Store a shared preference"),
    (NodeKind.VIBRATOR_VIBRATE, _S, "Device", (), "Vibrate"),
    (NodeKind.DEVICE_VIBRATE, _S, "Device", (), "Vibrate"),
    (NodeKind.ANDROID_TOAST, _S, "Device", (), "Show a toast"),
    (NodeKind.TOAST_SHOW, _S, "Device", (), "Show a toast"),
    (NodeKind.ANDROID_LOG, _S, "Device", (), "Write to logcat"),
    (NodeKind.ANDROID_CLIPBOARD_SET, _S, "Device", (), "Set clipboard text"),
    (NodeKind.CLIPBOARD_COPY, _S, "Device", (), "Set clipboard text"),
    (NodeKind.ANDROID_OPEN_URL, _S, "Device", (), "Open a URL"),
    (NodeKind.INTENT_OPEN, _S, "Device", (), "Open a URL"),
    (NodeKind.ANDROID_SHARE_TEXT, _S, "Device", (), "Share text"),

    (NodeKind.AI2_CUSTOM_EXPRESSION, _E, "Advanced", (), "Raw Java expression"),
    (NodeKind.AI2_CUSTOM_CODE, _S, "Advanced", (), "Raw Java statements"),
    (NodeKind.NATIVE_FIELD_GET, _E, "Advanced", (), "Read a Java field"),
    (NodeKind.NATIVE_FIELD_SET, _S, "Advanced", (), "Write a Java field"),
    (NodeKind.NATIVE_CALL, _E, "Advanced", (), "Call a Java method"),
]


class NodeRegistry:
    """Lookup table from NodeKind to NodeDefinition."""

    def __init__(self):
        self._definitions: Dict[NodeKind, NodeDefinition] = {}

    @classmethod
    def default(cls) -> 'NodeRegistry':
        """Registry holding every built-in block kind."""
        registry = cls()
        for kind, category, palette, statement_inputs, description in _BUILTIN_DEFINITIONS:
            registry.register(NodeDefinition(
                kind=kind,
                category=category,
                palette=palette,
                statement_inputs=statement_inputs,
                description=description,
            ))
        return registry

    def register(self, definition: NodeDefinition, replace: bool = False) -> None:
        """Add a definition; re-registering a kind requires ``replace=True``."""
        if definition.kind == NodeKind.UNKNOWN:
            raise ValueError("Cannot register a definition for NodeKind.UNKNOWN")
        if definition.kind in self._definitions and not replace:
            raise ValueError(f"Node kind already registered: {definition.kind.value}")
        self._definitions[definition.kind] = definition
        logger.debug(f"Registered node kind {definition.kind.value} ({definition.category.value})")

    def get(self, kind: NodeKind) -> Optional[NodeDefinition]:
        return self._definitions.get(kind)

    def category_of(self, kind: NodeKind) -> Optional[NodeCategory]:
        definition = self._definitions.get(kind)
        return definition.category if definition else None

    def is_expression(self, kind: NodeKind) -> bool:
        return self.category_of(kind) == NodeCategory.EXPRESSION

    def is_statement(self, kind: NodeKind) -> bool:
        return self.category_of(kind) == NodeCategory.STATEMENT

    def is_statement_input(self, kind: NodeKind, socket: str) -> bool:
        definition = self._definitions.get(kind)
        return bool(definition and definition.has_statement_input(socket))

    def definitions(self) -> List[NodeDefinition]:
        return list(self._definitions.values())

    def search(self, query: str, limit: int = 50) -> List[NodeDefinition]:
        results = [d for d in self._definitions.values() if d.matches_search(query)]
        return results[:limit]

    def by_palette(self) -> Dict[str, List[NodeDefinition]]:
        grouped: Dict[str, List[NodeDefinition]] = {}
        for definition in self._definitions.values():
            grouped.setdefault(definition.palette, []).append(definition)
        return grouped

    def __contains__(self, kind: NodeKind) -> bool:
        return kind in self._definitions

    def __len__(self) -> int:
        return len(self._definitions)
