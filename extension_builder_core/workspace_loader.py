"""
Workspace loader: Blockly workspace JSON to BlockGraph.

Reads the serialization the block editor saves (``blocks.blocks[]`` with
``fields``, ``inputs``, ``next`` and ``extraState`` per block, plus the
workspace ``variables`` list).  Blockly does not record whether an input is a
value or a statement input, so the registry decides; for kinds the registry
does not describe, the child block's own category decides.
"""

import json
import logging
import uuid
from typing import Any, Dict, List, Optional, Tuple, Union

from .exceptions import WorkspaceFormatError
from .models import BlockGraph, Node, NodeKind
from .node_registry import NodeRegistry


logger = logging.getLogger(__name__)


def load_workspace(data: Union[str, bytes, Dict[str, Any]],
                   registry: Optional[NodeRegistry] = None) -> BlockGraph:
    """Build a BlockGraph from a serialized Blockly workspace."""
    registry = registry if registry is not None else NodeRegistry.default()
    if isinstance(data, (str, bytes)):
        try:
            data = json.loads(data)
        except ValueError as e:
            raise WorkspaceFormatError(f"Workspace is not valid JSON: {e}")
    if not isinstance(data, dict):
        raise WorkspaceFormatError("Workspace must be a JSON object",
                                   {'received': type(data).__name__})

    graph = BlockGraph()
    graph.variables = _read_variables(data.get('variables'))

    section = data.get('blocks', {})
    if isinstance(section, dict):
        top_blocks = section.get('blocks', [])
    else:
        top_blocks = section
    if not isinstance(top_blocks, list):
        raise WorkspaceFormatError("Workspace 'blocks' section must hold a list of blocks")

    for block in top_blocks:
        _load_tree(graph, block, registry)

    logger.info(f"Loaded workspace with {len(graph.nodes)} blocks "
                f"({len(graph.top_level)} top-level, {len(graph.variables)} variables)")
    return graph


def _read_variables(entries: Any) -> Dict[str, str]:
    variables: Dict[str, str] = {}
    if not isinstance(entries, list):
        return variables
    for entry in entries:
        if isinstance(entry, dict) and entry.get('id') and entry.get('name'):
            variables[str(entry['id'])] = str(entry['name'])
    return variables


def _load_tree(graph: BlockGraph, block: Any, registry: NodeRegistry) -> None:
    """Load one top-level block and everything it owns, without recursion."""
    root = _make_node(graph, block)
    graph.add_node(root, top_level=True)

    # (block json, node) pairs whose children still have to be attached
    pending: List[Tuple[Dict[str, Any], Node]] = [(block, root)]
    while pending:
        source, parent = pending.pop()

        inputs = source.get('inputs') or {}
        if not isinstance(inputs, dict):
            raise WorkspaceFormatError(f"Block {parent.id} has malformed inputs")
        for socket, connection in inputs.items():
            child_block = _connected_block(connection)
            if child_block is None:
                continue
            child = _make_node(graph, child_block)
            graph.add_node(child, top_level=False)
            if _is_statement_input(registry, parent, str(socket), child):
                parent.statements[str(socket)] = child.id
            else:
                parent.values[str(socket)] = child.id
            pending.append((child_block, child))

        next_block = _connected_block(source.get('next'))
        if next_block is not None:
            successor = _make_node(graph, next_block)
            graph.add_node(successor, top_level=False)
            parent.next_id = successor.id
            pending.append((next_block, successor))


def _connected_block(connection: Any) -> Optional[Dict[str, Any]]:
    if not isinstance(connection, dict):
        return None
    block = connection.get('block') or connection.get('shadow')
    return block if isinstance(block, dict) else None


def _make_node(graph: BlockGraph, block: Any) -> Node:
    if not isinstance(block, dict):
        raise WorkspaceFormatError("Block entries must be JSON objects")
    block_type = block.get('type')
    if not isinstance(block_type, str) or not block_type:
        raise WorkspaceFormatError("Block is missing its type", {'block_id': block.get('id')})

    node_id = str(block.get('id') or uuid.uuid4())
    if node_id in graph.nodes:
        logger.warning(f"Duplicate block id {node_id}; assigning a new id")
        node_id = str(uuid.uuid4())

    extra_state = block.get('extraState')
    return Node(
        id=node_id,
        type=block_type,
        fields=_read_fields(block.get('fields')),
        extra_state=dict(extra_state) if isinstance(extra_state, dict) else {},
    )


def _read_fields(fields: Any) -> Dict[str, Any]:
    result: Dict[str, Any] = {}
    if not isinstance(fields, dict):
        return result
    for name, value in fields.items():
        if isinstance(value, dict):
            # Variable fields are serialized as {"id": ...}
            value = value.get('id') or value.get('name')
        if value is not None:
            result[str(name)] = value
    return result


def _is_statement_input(registry: NodeRegistry, parent: Node, socket: str, child: Node) -> bool:
    if parent.kind in registry:
        return registry.is_statement_input(parent.kind, socket)
    if child.kind == NodeKind.UNKNOWN:
        return False
    return not registry.is_expression(child.kind)
