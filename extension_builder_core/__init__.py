"""
Extension Builder Core - converts visual block programs into App Inventor 2 extension source.

This package turns a graph of connected blocks into a complete Java component class:
identifier and literal sanitization, expression and statement generation, and assembly
of the extension unit with the annotations the App Inventor runtime expects.
"""

__version__ = "0.1.0"
__author__ = "Extension Builder Team"

from .config import GeneratorConfig
from .exceptions import GraphError, NodeNotFoundError, InvalidConnectionError, WorkspaceFormatError
from .models import (
    NodeKind, Node, BlockGraph, GraphBuilder, GenerationContext, NameCounter
)
from .node_registry import NodeRegistry, NodeDefinition, NodeCategory
from .workspace_loader import load_workspace
from .expression_generator import ExpressionGenerator
from .statement_generator import StatementGenerator
from .unit_assembler import ExtensionAssembler, generate_java
from .artifacts import BuildResult, build_extension, source_file_path

__all__ = [
    'GeneratorConfig',
    'GraphError', 'NodeNotFoundError', 'InvalidConnectionError', 'WorkspaceFormatError',
    'NodeKind', 'Node', 'BlockGraph', 'GraphBuilder', 'GenerationContext', 'NameCounter',
    'NodeRegistry', 'NodeDefinition', 'NodeCategory',
    'load_workspace',
    'ExpressionGenerator', 'StatementGenerator', 'ExtensionAssembler', 'generate_java',
    'BuildResult', 'build_extension', 'source_file_path',
]
