"""
Graph-related exceptions for the Extension Builder Core.

Code generation itself never raises; these are only used by the graph
mutation API and by the workspace loader when a document is not a workspace.
"""

from typing import Optional, Any, Dict


class GraphError(Exception):
    """Base exception for all block-graph errors."""
    
    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.details = details or {}


class NodeNotFoundError(GraphError):
    """Raised when a node id is not present in the graph."""
    
    def __init__(self, node_id: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(f"Node not found: {node_id}", details)
        self.node_id = node_id


class InvalidConnectionError(GraphError):
    """Raised when a socket or chain link cannot be made."""
    
    def __init__(self, message: str, parent_id: str = "", socket: str = "",
                 details: Optional[Dict[str, Any]] = None):
        super().__init__(message, details)
        self.parent_id = parent_id
        self.socket = socket


class WorkspaceFormatError(GraphError):
    """Raised when a serialized workspace document cannot be read at all."""
    pass
