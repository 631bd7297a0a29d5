"""
Unit assembler: one App Inventor extension class from a block graph.

Walks the unit root's property, routine and event containers and stitches
the generated members into a complete Java source file with the package
clause, the fixed import block and the component annotations the App
Inventor runtime expects.
"""

import re
import logging
from typing import List, Optional, Tuple

from .config import GeneratorConfig
from .expression_generator import ExpressionGenerator
from .models import BlockGraph, GenerationContext, NameCounter, Node, NodeKind
from .node_registry import NodeRegistry
from .sanitizer import (
    IdentifierCase, comment_text, default_return_value, java_string_literal,
    parse_params, render_default, sanitize_import, sanitize_java_type,
    sanitize_package, split_list, to_identifier
)
from .statement_generator import StatementGenerator


logger = logging.getLogger(__name__)

FIXED_IMPORTS = (
    "android.content.Context",
    "com.google.appinventor.components.annotations.*",
    "com.google.appinventor.components.runtime.*",
    "com.google.appinventor.components.runtime.util.*",
    "java.util.*",
    "java.net.*",
    "java.io.*",
    "org.json.*",
    "android.os.Handler",
    "android.os.Looper",
    "android.util.Base64",
    "java.text.SimpleDateFormat",
    "java.security.MessageDigest",
    "java.util.regex.*",
    "android.os.Build",
    "android.widget.Toast",
    "android.content.Intent",
    "android.net.Uri",
    "android.content.ClipData",
    "android.content.ClipboardManager",
    "android.os.Vibrator",
)

_VERSION = re.compile(r'^\d+$')


class ExtensionAssembler:
    """
    Generates the Java source of an App Inventor extension.

    Each call to ``generate`` is an independent pass over a snapshot of the
    graph with fresh generators and a fresh temporary-name counter, so the
    same graph always yields the same text.
    """

    def __init__(self, registry: Optional[NodeRegistry] = None,
                 config: Optional[GeneratorConfig] = None):
        self.registry = registry if registry is not None else NodeRegistry.default()
        self.config = config or GeneratorConfig()
        self.logger = logging.getLogger(__name__)

    def generate(self, graph: BlockGraph) -> str:
        """Java source for *graph*, or a placeholder comment if it has no unit root."""
        snapshot = graph.snapshot()
        root = snapshot.find_root(NodeKind.AI2_EXTENSION)
        if root is None:
            self.logger.info("No extension root block found; emitting placeholder")
            return self.config.missing_root_message

        expressions = ExpressionGenerator(snapshot, self.registry, self.config)
        statements = StatementGenerator(snapshot, self.registry, self.config,
                                        expressions, NameCounter())

        package = sanitize_package(root.get_field("PACKAGE"), self.config.default_package)
        class_name = to_identifier(root.text_field("CLASSNAME", self.config.default_class_name),
                                   IdentifierCase.PASCAL)
        self.logger.info(f"Generating extension {package}.{class_name}")

        properties, property_names = self._properties(snapshot, root, statements)
        methods = [
            self._method(snapshot, node, statements, property_names)
            for node in self._members(snapshot, root, "METHODS", NodeKind.AI2_METHOD)
        ]
        events = [self._event(node) for node in self._members(snapshot, root, "EVENTS", NodeKind.AI2_EVENT)]

        lines = [f"package {package};", ""]
        lines.extend(self._imports(root))
        lines.append("")
        lines.extend(self._annotations(root))
        lines.extend(self._class_header(class_name))
        for member in properties + methods + events:
            lines.append("")
            lines.extend(statements.indent(member))
        lines.append("}")

        self.logger.info(
            f"Generated {class_name}: {len(properties)} properties, "
            f"{len(methods)} methods, {len(events)} events"
        )
        return "\n".join(lines) + "\n"

    # Unit header -----------------------------------------------------------

    def _imports(self, root: Node) -> List[str]:
        imports = list(FIXED_IMPORTS)
        for entry in split_list(root.get_field("IMPORTS")):
            name = sanitize_import(entry)
            if name and name not in imports:
                imports.append(name)
        return [f"import {name};" for name in imports]

    def _annotations(self, root: Node) -> List[str]:
        lines: List[str] = []
        description = root.text_field("DESC", self.config.default_description)
        author = root.get_field("AUTHOR")
        if author is not None:
            lines.extend([
                "/**",
                f" * {_doc_text(description)}",
                " *",
                f" * @author {_doc_text(author)}",
                " */",
            ])

        version = root.text_field("VERSION", "1").strip()
        if not _VERSION.match(version) or int(version) < 1:
            version = "1"
        designer = (f"@DesignerComponent(version = {int(version)}, "
                    f"description = {java_string_literal(description)}, "
                    "category = ComponentCategory.EXTENSION, nonVisible = true, iconName = \"\"")
        help_url = root.get_field("HELP_URL")
        if help_url is not None:
            designer += f", helpUrl = {java_string_literal(str(help_url).strip())}"
        lines.append(designer + ")")
        lines.append("@SimpleObject(external = true)")

        libraries = split_list(root.get_field("LIBRARIES"))
        if libraries:
            lines.append(f"@UsesLibraries(libraries = {java_string_literal(','.join(libraries))})")
        return lines

    def _class_header(self, class_name: str) -> List[str]:
        pad = " " * self.config.indent_size
        return [
            f"public class {class_name} extends AndroidNonvisibleComponent {{",
            "",
            f"{pad}private final Context context;",
            "",
            f"{pad}public {class_name}(ComponentContainer container) {{",
            f"{pad}{pad}super(container.$form());",
            f"{pad}{pad}this.context = container.$context();",
            f"{pad}}}",
        ]

    # Members ---------------------------------------------------------------

    def _members(self, graph: BlockGraph, root: Node, socket: str, kind: NodeKind) -> List[Node]:
        """Declarations of *kind* in a container chain; other kinds are skipped."""
        members = []
        for node in graph.chain(graph.statement(root, socket), self.config.max_chain_length):
            if node.kind == kind:
                members.append(node)
            else:
                self.logger.debug(f"Skipping {node.type} block in {socket} container")
        return members

    def _properties(self, graph: BlockGraph, root: Node,
                    statements: StatementGenerator) -> Tuple[List[List[str]], List[str]]:
        members: List[List[str]] = []
        names: List[str] = []
        for node in self._members(graph, root, "PROPERTIES", NodeKind.AI2_PROPERTY):
            raw_name = node.text_field("NAME", "Property")
            java_type = sanitize_java_type(node.get_field("TYPE"), "String")
            field_name = to_identifier(raw_name)
            accessor = to_identifier(raw_name, IdentifierCase.PASCAL)
            default = render_default(java_type, node.get_field("DEFAULT"))
            names.append(field_name)

            lines = [
                f"private {java_type} {field_name} = {default};",
                "",
                f"@SimpleProperty(description = {java_string_literal(raw_name + ' value')})",
                f"public {java_type} {accessor}() {{",
                *statements.indent([f"return this.{field_name};"]),
                "}",
            ]
            if not node.flag_field("READONLY"):
                lines.extend([
                    "",
                    f"@SimpleProperty(description = {java_string_literal('Set ' + raw_name)})",
                    f"public void {accessor}({java_type} value) {{",
                    *statements.indent([f"this.{field_name} = value;"]),
                    "}",
                ])
            members.append(lines)
        return members, names

    def _method(self, graph: BlockGraph, node: Node, statements: StatementGenerator,
                property_names: List[str]) -> List[str]:
        raw_name = node.text_field("NAME", "method")
        return_type = sanitize_java_type(node.get_field("RET"), "void")
        name = to_identifier(raw_name)
        params = parse_params(node.get_field("PARAMS"))
        signature = ", ".join(f"{p.type} {p.name}" for p in params)

        ctx = GenerationContext(
            properties=frozenset(property_names),
            parameters=frozenset(p.name for p in params),
            expected_return_type=return_type,
        )
        head = graph.statement(node, "BODY")
        body = statements.generate_chain(head, ctx)

        last = None
        for last in graph.chain(head, self.config.max_chain_length):
            pass
        if return_type != "void" and (last is None or last.kind != NodeKind.AI2_RETURN):
            body.append(f"return {default_return_value(return_type)};")

        return [
            f"@SimpleFunction(description = {java_string_literal(raw_name + ' function')})",
            f"public {return_type} {name}({signature}) throws Exception {{",
            *statements.indent(body),
            "}",
        ]

    def _event(self, node: Node) -> List[str]:
        raw_name = node.text_field("NAME", "Event")
        name = to_identifier(raw_name, IdentifierCase.PASCAL)
        params = parse_params(node.get_field("PARAMS"))
        signature = ", ".join(f"{p.type} {p.name}" for p in params)
        args = ", ".join(["this", java_string_literal(name)] + [p.name for p in params])
        pad = " " * self.config.indent_size
        return [
            f"@SimpleEvent(description = {java_string_literal(raw_name + ' event')})",
            f"public void {name}({signature}) {{",
            f"{pad}EventDispatcher.dispatchEvent({args});",
            "}",
        ]


def _doc_text(text) -> str:
    return comment_text(text).replace("*/", "* /")


def generate_java(graph: BlockGraph, registry: Optional[NodeRegistry] = None,
                  config: Optional[GeneratorConfig] = None) -> str:
    """Generate the extension source for *graph* in one pass."""
    return ExtensionAssembler(registry, config).generate(graph)
