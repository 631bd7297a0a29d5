"""
Identifier and literal sanitizer.

Pure string transforms used by every generator: HTML-entity decoding, case
conversion, Java identifier coercion, string-literal escaping and type-directed
default values.  None of these functions raise; malformed input always yields
a usable Java fragment.
"""

import re
from enum import Enum
from typing import List, NamedTuple, Optional


CAMEL_PLACEHOLDER = "_id"
PASCAL_PLACEHOLDER = "MyIdentifier"

JAVA_KEYWORDS = frozenset({
    'abstract', 'assert', 'boolean', 'break', 'byte', 'case', 'catch', 'char',
    'class', 'const', 'continue', 'default', 'do', 'double', 'else', 'enum',
    'extends', 'final', 'finally', 'float', 'for', 'goto', 'if', 'implements',
    'import', 'instanceof', 'int', 'interface', 'long', 'native', 'new',
    'package', 'private', 'protected', 'public', 'return', 'short', 'static',
    'strictfp', 'super', 'switch', 'synchronized', 'this', 'throw', 'throws',
    'transient', 'try', 'void', 'volatile', 'while', 'true', 'false', 'null',
    'var', 'yield', 'record',
})

_HTML_ENTITIES = (
    ("&lt;", "<"),
    ("&gt;", ">"),
    ("&amp;", "&"),
    ("&quot;", '"'),
    ("&#39;", "'"),
)

_WORD_SPLIT = re.compile(r'[^0-9A-Za-z]+')
_ILLEGAL_IDENTIFIER_CHARS = re.compile(r'[^A-Za-z0-9_$]')
_UNDERSCORE_RUN = re.compile(r'_{2,}')
_ILLEGAL_TYPE_CHARS = re.compile(r'[^A-Za-z0-9_$.<>\[\],?]')
_ILLEGAL_IMPORT_CHARS = re.compile(r'[^A-Za-z0-9_$.*]')
_INT_LITERAL = re.compile(r'^[-+]?\d+$')
_FLOAT_LITERAL = re.compile(r'^[-+]?(\d+\.?\d*|\.\d+)([eE][-+]?\d+)?[fFdD]?$')


class IdentifierCase(Enum):
    """Casing applied by to_identifier."""
    CAMEL = "camel"    # routines, variables, fields
    PASCAL = "pascal"  # classes, property accessors, events


class Param(NamedTuple):
    """One entry of a ``name:type`` parameter list."""
    name: str
    type: str


def decode_html_entities(text: Optional[str]) -> str:
    """Decode the handful of entities the block editor produces."""
    if not text:
        return ""
    result = str(text)
    for entity, char in _HTML_ENTITIES:
        result = result.replace(entity, char)
    return result


def to_pascal_case(text: Optional[str]) -> str:
    words = [w for w in _WORD_SPLIT.split(str(text or "")) if w]
    return "".join(w[0].upper() + w[1:] for w in words)


def to_camel_case(text: Optional[str]) -> str:
    pascal = to_pascal_case(text)
    return pascal[0].lower() + pascal[1:] if pascal else pascal


def to_identifier(raw, casing: IdentifierCase = IdentifierCase.CAMEL) -> str:
    """
    Coerce user input into a valid Java identifier.

    The result always matches ``[A-Za-z_$][A-Za-z0-9_$]*`` and is never a
    reserved word.  Empty input yields ``_id`` (camel) or ``MyIdentifier``
    (pascal).
    """
    placeholder = PASCAL_PLACEHOLDER if casing == IdentifierCase.PASCAL else CAMEL_PLACEHOLDER
    text = decode_html_entities("" if raw is None else str(raw)).strip()
    if not text:
        return placeholder

    base = to_pascal_case(text) if casing == IdentifierCase.PASCAL else to_camel_case(text)
    cleaned = _UNDERSCORE_RUN.sub("_", _ILLEGAL_IDENTIFIER_CHARS.sub("_", base))
    if not cleaned:
        return placeholder
    if cleaned[0].isdigit():
        cleaned = "_" + cleaned
    if cleaned in JAVA_KEYWORDS:
        cleaned += "_"
    return cleaned


def escape_quotes(text) -> str:
    """Backslash-escape double quotes."""
    return ("" if text is None else str(text)).replace('"', '\\"')


def java_string_literal(text) -> str:
    """Quoted Java string literal with backslashes, quotes and newlines escaped."""
    value = "" if text is None else str(text)
    value = value.replace("\\", "\\\\")
    value = escape_quotes(value)
    value = value.replace("\r", "\\r").replace("\n", "\\n").replace("\t", "\\t")
    return f'"{value}"'


def is_string_type(type_name: str) -> bool:
    t = (type_name or "").strip()
    return t == "String" or t.lower().endswith("string")


def is_list_type(type_name: str) -> bool:
    t = (type_name or "").strip()
    return t.startswith("java.util.List") or t.startswith("List") or t.startswith("ArrayList")


def is_map_type(type_name: str) -> bool:
    t = (type_name or "").strip()
    return t.startswith("java.util.Map") or t.startswith("Map") or t.startswith("HashMap")


def render_default(type_name: str, literal) -> str:
    """Java initializer for a field of *type_name* from the user's default text."""
    t = (type_name or "").strip()
    raw = decode_html_entities("" if literal is None else str(literal))
    text = raw.strip()

    if is_string_type(t):
        return java_string_literal(raw)
    if t == "boolean" or t == "Boolean":
        return "true" if text.lower() == "true" else "false"
    if t in ("int", "Integer", "long", "Long", "short", "Short", "byte", "Byte"):
        return text.lstrip("+") if _INT_LITERAL.match(text) else "0"
    if t in ("float", "Float", "double", "Double"):
        if _FLOAT_LITERAL.match(text):
            return f"{text.lstrip('+').rstrip('fFdD')}f"
        return "0f"
    if is_list_type(t):
        return "new java.util.ArrayList<>()"
    if is_map_type(t):
        return "new java.util.HashMap<>()"
    return text if text else "null"


def default_return_value(type_name: str) -> str:
    """Value returned when a routine falls off the end of its body."""
    t = (type_name or "").strip()
    if t == "boolean":
        return "false"
    if t in ("int", "long", "short", "byte"):
        return "0"
    if t == "float":
        return "0f"
    if t == "double":
        return "0.0"
    if is_string_type(t):
        return '""'
    return "null"


def sanitize_java_type(raw, default: str = "Object") -> str:
    """Strip whitespace and characters that cannot appear in a Java type."""
    text = _ILLEGAL_TYPE_CHARS.sub("", decode_html_entities("" if raw is None else str(raw)))
    return text or default


def parse_params(text) -> List[Param]:
    """Parse ``name:type, name:type`` into Param entries; type defaults to Object."""
    params: List[Param] = []
    seen = set()
    for chunk in str(text or "").split(","):
        pair = decode_html_entities(chunk.strip()).strip()
        if not pair:
            continue
        name_raw, _, type_raw = pair.partition(":")
        name = to_identifier(name_raw.strip() or "param")
        if name in seen:
            suffix = 2
            while f"{name}{suffix}" in seen:
                suffix += 1
            name = f"{name}{suffix}"
        seen.add(name)
        params.append(Param(name, sanitize_java_type(type_raw.strip())))
    return params


def split_list(text) -> List[str]:
    """Split a comma separated field into trimmed, non-empty entries."""
    return [s.strip() for s in str(text or "").split(",") if s.strip()]


def sanitize_package(text, default: str = "com.example") -> str:
    """Dotted package name built only from valid identifier segments."""
    raw = decode_html_entities("" if text is None else str(text))
    raw = re.sub(r'[^A-Za-z0-9_.]', '', raw)
    segments = []
    for segment in raw.split("."):
        if not segment:
            continue
        if segment[0].isdigit():
            segment = "_" + segment
        if segment in JAVA_KEYWORDS:
            segment += "_"
        segments.append(segment)
    return ".".join(segments) if segments else default


def sanitize_import(entry) -> str:
    """Normalize one extra-import entry to ``a.b.C`` or ``a.b.*``; '' if unusable."""
    text = decode_html_entities("" if entry is None else str(entry)).strip()
    if text.startswith("import "):
        text = text[len("import "):]
    text = _ILLEGAL_IMPORT_CHARS.sub("", text.rstrip(";"))
    return text.strip(".")


def comment_text(text) -> str:
    """Single-line text safe to place after ``//``."""
    return re.sub(r'[\r\n]+', ' ', "" if text is None else str(text)).strip()
