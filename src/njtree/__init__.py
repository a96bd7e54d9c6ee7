"""Neighbor-Joining trees from pairwise distance matrices."""

from .config import NeighborJoiningConfig
from .exceptions import (
    IdentifierInvariantError,
    InvalidConfigurationError,
    InvalidIndexError,
    InvalidInputError,
    NJTreeError,
    NodeNotFoundError,
    UnsupportedOperationError,
)
from .matrix import DistanceMatrix
from .nj_core import NeighborJoining, neighbor_joining_core
from .tree import (
    DEFAULT_ALLOCATOR,
    DISTANCE_DEFAULT,
    BinaryCharacters,
    Node,
    NodeIdAllocator,
    Tree,
)

__version__ = "0.1.0"

__all__ = [
    "BinaryCharacters",
    "DEFAULT_ALLOCATOR",
    "DISTANCE_DEFAULT",
    "DistanceMatrix",
    "IdentifierInvariantError",
    "InvalidConfigurationError",
    "InvalidIndexError",
    "InvalidInputError",
    "NJTreeError",
    "NeighborJoining",
    "NeighborJoiningConfig",
    "Node",
    "NodeIdAllocator",
    "NodeNotFoundError",
    "Tree",
    "UnsupportedOperationError",
    "neighbor_joining_core",
]
