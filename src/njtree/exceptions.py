"""
Error types raised by njtree.

Every error carries a short message and, where useful, a suggestion on
how to fix the calling code or the input data.
"""

from typing import Optional


class NJTreeError(Exception):
    """Base exception for njtree errors."""

    def __init__(self, message: str, suggestion: Optional[str] = None):
        self.message = message
        self.suggestion = suggestion
        super().__init__(self.full_message)

    @property
    def full_message(self) -> str:
        if self.suggestion:
            return f"{self.message}\n\nSuggestion: {self.suggestion}"
        return self.message


class InvalidConfigurationError(NJTreeError, ValueError):
    """Raised when an engine is constructed with an invalid setting."""


class InvalidInputError(NJTreeError, ValueError):
    """Raised when a distance matrix or tree cannot be used as input."""


class InvalidIndexError(NJTreeError, IndexError):
    """Raised on out-of-range matrix or child access."""

    def __init__(self, index: int, size: int, what: str = "index"):
        super().__init__(
            message=f"{what} {index} is out of range for size {size}",
        )
        self.index = index
        self.size = size


class UnsupportedOperationError(NJTreeError):
    """Raised when a node operation makes no sense for the node's state."""


class IdentifierInvariantError(NJTreeError, ValueError):
    """Raised when a node id would break id uniqueness."""

    def __init__(self, node_id: int, node_count: int):
        super().__init__(
            message=(
                f"attempt to use node id {node_id} while the node count is "
                f"{node_count}"
            ),
            suggestion=(
                "Explicit ids must not be lower than the allocator's node "
                "count. Let the allocator assign ids instead."
            ),
        )
        self.node_id = node_id
        self.node_count = node_count


class NodeNotFoundError(NJTreeError, LookupError):
    """Raised when a tree lookup matches no node, or more than one."""
