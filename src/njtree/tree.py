import copy
import threading

from dataclasses import dataclass, field
from typing import Any, Dict, Iterator, List, Optional, Set

from .exceptions import (
    IdentifierInvariantError,
    InvalidIndexError,
    NodeNotFoundError,
    UnsupportedOperationError,
)


# Branch length of a node whose distance to its parent was never set.
DISTANCE_DEFAULT = -1024.0


# ----------------------------------------------------------------------
# 1. Node ids
# ----------------------------------------------------------------------

class NodeIdAllocator:
    """
    Hands out strictly increasing node ids.

    Ids are never reused. Metadata-only copies of a node share the id of
    their source through borrow() instead of consuming a fresh one.
    """

    def __init__(self, start: int = 0):
        self._next = start
        self._lock = threading.Lock()

    @property
    def node_count(self) -> int:
        """The next id to be issued (= number of ids issued when starting at 0)."""
        with self._lock:
            return self._next

    def allocate(self) -> int:
        with self._lock:
            node_id = self._next
            self._next += 1
            return node_id

    def reserve(self, node_id: int) -> int:
        """Accept an explicit id not lower than node_count and skip past it."""
        with self._lock:
            if node_id < self._next:
                raise IdentifierInvariantError(node_id, self._next)
            self._next = node_id + 1
            return node_id

    def borrow(self, node_id: int) -> int:
        """Return an already issued id without allocating a new one."""
        with self._lock:
            if not 0 <= node_id < self._next:
                raise IdentifierInvariantError(node_id, self._next)
            return node_id


DEFAULT_ALLOCATOR = NodeIdAllocator()


# ----------------------------------------------------------------------
# 2. Per-node character payload
# ----------------------------------------------------------------------

@dataclass
class BinaryCharacters:
    """Characters present at, gained at, or lost at a node."""

    present: Set[str] = field(default_factory=set)
    gained: Set[str] = field(default_factory=set)
    lost: Set[str] = field(default_factory=set)

    def present_and_gained(self) -> Set[str]:
        return self.present | self.gained


# ----------------------------------------------------------------------
# 3. Node
# ----------------------------------------------------------------------

class Node:
    """
    Node of a phylogenetic tree.

    name          : taxon or internal node name ("" if none)
    length        : branch length to parent (DISTANCE_DEFAULT if unset)
    children      : ordered child nodes (empty for leaves)
    parent        : back reference to the parent (None for the root)
    collapse      : display flag; collapsed nodes count as one leaf in
                    next_external_node_respecting_collapse()
    sum_ext_nodes : number of external descendants (1 for a leaf)
    x, y          : layout coordinates

    taxonomy, sequence, characters and confidence are payloads attached
    by higher layers; the tree code only stores them.
    """

    __slots__ = (
        "id", "name", "length", "children", "parent", "collapse",
        "sum_ext_nodes", "x", "y", "taxonomy", "sequence", "characters",
        "confidence", "_allocator",
    )

    def __init__(
        self,
        name: str = "",
        length: float = DISTANCE_DEFAULT,
        allocator: Optional[NodeIdAllocator] = None,
        _borrowed_id: Optional[int] = None,
    ):
        self._allocator: NodeIdAllocator = allocator or DEFAULT_ALLOCATOR
        if _borrowed_id is None:
            self.id: int = self._allocator.allocate()
        else:
            self.id = self._allocator.borrow(_borrowed_id)
        self.name: str = "" if name is None else str(name)
        self.length: float = float(length)
        self.children: List["Node"] = []
        self.parent: Optional["Node"] = None
        self.collapse: bool = False
        self.sum_ext_nodes: int = 1
        self.x: float = 0.0
        self.y: float = 0.0
        self.taxonomy: Any = None
        self.sequence: Any = None
        self.characters: Optional[BinaryCharacters] = None
        self.confidence: Dict[str, float] = {}

    def set_id(self, node_id: int):
        """Assign an explicit id; it must not be lower than the node count."""
        self.id = self._allocator.reserve(node_id)

    # ------------------------------------------------------------------
    # Structure
    # ------------------------------------------------------------------

    def is_external(self) -> bool:
        return not self.children

    def is_internal(self) -> bool:
        return bool(self.children)

    def is_root(self) -> bool:
        return self.parent is None

    def is_leaf(self) -> bool:
        return not self.children

    def has_length(self) -> bool:
        return self.length != DISTANCE_DEFAULT

    def add_child(self, child: "Node"):
        """
        Append child and point its parent at this node.

        The child is not removed from a previous parent and cycles are not
        checked; use reparent() to move a node between parents.
        """
        self.children.append(child)
        child.parent = self

    def child(self, i: int) -> "Node":
        if self.is_external():
            raise UnsupportedOperationError(
                "attempt to get a child node of an external node"
            )
        if not 0 <= i < len(self.children):
            raise InvalidIndexError(i, len(self.children), what="child index")
        return self.children[i]

    def first_child(self) -> "Node":
        return self.child(0)

    def last_child(self) -> "Node":
        return self.child(len(self.children) - 1)

    def set_child(self, i: int, node: "Node"):
        """Put node at position i, or append it if i is past the end."""
        node.parent = self
        if i >= len(self.children):
            self.children.append(node)
        else:
            self.children[i] = node

    def remove_child(self, i: int) -> "Node":
        removed = self.child(i)
        del self.children[i]
        return removed

    def reparent(self, new_parent: Optional["Node"]):
        """Detach from the current parent and append to new_parent."""
        if self.parent is not None:
            self.parent.remove_child(self.child_index())
        self.parent = None
        if new_parent is not None:
            new_parent.add_child(self)

    def child_index(self) -> int:
        if self.is_root():
            raise UnsupportedOperationError(
                "cannot get the child index of a root node"
            )
        for i, sibling in enumerate(self.parent.children):
            if sibling is self:
                return i
        raise UnsupportedOperationError(
            f"node {self!r} is not among the children of its parent"
        )

    def is_first_child(self) -> bool:
        return self.child_index() == 0

    def is_last_child(self) -> bool:
        return self.child_index() == len(self.parent.children) - 1

    def is_first_external_node(self) -> bool:
        if self.is_internal():
            return False
        node = self
        while not node.is_root():
            if not node.is_first_child():
                return False
            node = node.parent
        return True

    def is_last_external_node(self) -> bool:
        if self.is_internal():
            return False
        return self._is_rightmost()

    def _is_rightmost(self) -> bool:
        node = self
        while not node.is_root():
            if not node.is_last_child():
                return False
            node = node.parent
        return True

    # ------------------------------------------------------------------
    # External node walks
    # ------------------------------------------------------------------

    def all_external_descendants(self) -> List["Node"]:
        """
        Leaves below this node in left-to-right order (a leaf returns itself).

        Walks from the leftmost to the rightmost leaf via
        next_external_node(), so the cost is proportional to the number of
        leaves rather than the size of the subtree.
        """
        if self.is_external():
            return [self]
        first = self
        while first.is_internal():
            first = first.children[0]
        last = self
        while last.is_internal():
            last = last.children[-1]
        nodes = []
        node = first
        while node is not last:
            nodes.append(node)
            node = node.next_external_node()
        nodes.append(last)
        return nodes

    def all_external_descendant_names(self) -> List[str]:
        return [n.name for n in self.all_external_descendants()]

    def next_external_node(self) -> Optional["Node"]:
        """
        Next leaf of the whole tree in left-to-right order, None after the
        last leaf.
        """
        if self.is_internal():
            raise UnsupportedOperationError(
                "attempt to get the next external node of an internal node"
            )
        return self._next_unit(respect_collapse=False)

    def next_external_node_respecting_collapse(self) -> Optional["Node"]:
        """
        Like next_external_node(), but collapsed nodes count as leaves.

        Starting below a collapsed ancestor skips the rest of that
        ancestor's subtree.
        """
        if self.is_internal() and not self.collapse:
            raise UnsupportedOperationError(
                "attempt to get the next external node of an uncollapsed "
                "internal node"
            )
        return self._next_unit(respect_collapse=True)

    def _next_unit(self, respect_collapse: bool) -> Optional["Node"]:
        node = self
        if respect_collapse:
            # the topmost collapsed ancestor stands for everything below it
            ancestor = self.parent
            while ancestor is not None:
                if ancestor.collapse:
                    node = ancestor
                ancestor = ancestor.parent
        while not node.is_root():
            parent = node.parent
            i = node.child_index()
            if i + 1 < len(parent.children):
                current = parent.children[i + 1]
                while current.is_internal() and not (respect_collapse and current.collapse):
                    current = current.children[0]
                return current
            node = parent
        return None

    def previous_external_node(self) -> "Node":
        if self.is_internal():
            raise UnsupportedOperationError(
                "cannot get the previous external node of an internal node"
            )
        if self.is_root():
            raise UnsupportedOperationError(
                "cannot get the previous external node of a root node"
            )
        if self.is_first_external_node():
            raise UnsupportedOperationError(
                "attempt to get the previous external node of the first "
                "external node"
            )
        node = self
        while node.is_first_child():
            node = node.parent
        current = node.parent.children[node.child_index() - 1]
        while current.is_internal():
            current = current.children[-1]
        return current

    # ------------------------------------------------------------------
    # Whole-subtree iteration
    # ------------------------------------------------------------------

    def iter_preorder(self) -> Iterator["Node"]:
        stack = [self]
        while stack:
            node = stack.pop()
            yield node
            stack.extend(reversed(node.children))

    def iter_postorder(self) -> Iterator["Node"]:
        stack = [(self, False)]
        while stack:
            node, expanded = stack.pop()
            if expanded or node.is_external():
                yield node
            else:
                stack.append((node, True))
                stack.extend((ch, False) for ch in reversed(node.children))

    # ------------------------------------------------------------------
    # Copies
    # ------------------------------------------------------------------

    def _copy_data(self, payload) -> "Node":
        node = Node(
            name=self.name,
            length=self.length,
            allocator=self._allocator,
            _borrowed_id=self.id,
        )
        node.collapse = self.collapse
        node.sum_ext_nodes = self.sum_ext_nodes
        node.x = self.x
        node.y = self.y
        node.taxonomy = payload(self.taxonomy)
        node.sequence = payload(self.sequence)
        node.characters = payload(self.characters)
        node.confidence = dict(self.confidence)
        return node

    def copy_node_data(self) -> "Node":
        """
        New node with this node's data (payloads deep-copied) and id.
        Parent and children are not copied.
        """
        return self._copy_data(copy.deepcopy)

    def copy_node_data_shallow(self) -> "Node":
        """Like copy_node_data(), but the payload objects are shared."""
        return self._copy_data(lambda value: value)

    # ------------------------------------------------------------------
    # Equality & ordering
    # ------------------------------------------------------------------

    def __eq__(self, other: Any) -> bool:
        """Based on name, sequence and taxonomy."""
        if self is other:
            return True
        if not isinstance(other, Node):
            return NotImplemented
        if self.name != other.name:
            return False
        has_seq = self.sequence is not None and other.sequence is not None
        has_tax = self.taxonomy is not None and other.taxonomy is not None
        if has_seq and has_tax:
            return self.sequence == other.sequence and self.taxonomy == other.taxonomy
        if has_seq:
            return self.sequence == other.sequence
        if has_tax:
            return self.taxonomy == other.taxonomy
        return len(self.name) > 0

    def __hash__(self) -> int:
        if not self.name and self.sequence is None and self.taxonomy is None:
            return object.__hash__(self)
        return hash(self.name)

    def __lt__(self, other: "Node") -> bool:
        if not isinstance(other, Node):
            return NotImplemented
        return self.name < other.name

    def __repr__(self) -> str:
        return f"Node('{self.name}', id={self.id})"

    def __str__(self) -> str:
        if self.name:
            return f"{self.name} [{self.id}]"
        return f"[{self.id}]"


# ----------------------------------------------------------------------
# 4. Tree
# ----------------------------------------------------------------------

class Tree:
    """
    A root node plus a flag telling whether the rooting is meaningful.

    Neighbor-Joining trees are unrooted: their root only exists so the
    tree can be traversed.
    """

    __slots__ = ("root", "rooted", "name")

    def __init__(self, root: Optional[Node] = None, rooted: bool = False, name: str = ""):
        self.root: Optional[Node] = root
        self.rooted: bool = rooted
        self.name: str = name

    def is_empty(self) -> bool:
        return self.root is None

    def iter_preorder(self) -> Iterator[Node]:
        if self.root is None:
            return iter(())
        return self.root.iter_preorder()

    def iter_postorder(self) -> Iterator[Node]:
        if self.root is None:
            return iter(())
        return self.root.iter_postorder()

    def __iter__(self) -> Iterator[Node]:
        return self.iter_preorder()

    def first_external_node(self) -> Node:
        if self.root is None:
            raise NodeNotFoundError("tree is empty")
        node = self.root
        while node.is_internal():
            node = node.children[0]
        return node

    def external_nodes(self) -> List[Node]:
        if self.root is None:
            return []
        return self.root.all_external_descendants()

    def number_of_external_nodes(self) -> int:
        return len(self.external_nodes())

    def get_node(self, name: str) -> Node:
        """The unique node called name."""
        matches = [n for n in self.iter_preorder() if n.name == name]
        if not matches:
            raise NodeNotFoundError(f"no node named '{name}'")
        if len(matches) > 1:
            raise NodeNotFoundError(
                f"{len(matches)} nodes are named '{name}'",
                suggestion="Use get_node_by_id() for trees with duplicate names.",
            )
        return matches[0]

    def get_node_by_id(self, node_id: int) -> Node:
        for node in self.iter_preorder():
            if node.id == node_id:
                return node
        raise NodeNotFoundError(f"no node with id {node_id}")

    def recalculate_number_of_external_descendants(self):
        for node in self.iter_postorder():
            if node.is_external():
                node.sum_ext_nodes = 1
            else:
                node.sum_ext_nodes = sum(ch.sum_ext_nodes for ch in node.children)

    def __repr__(self) -> str:
        return f"Tree(root={self.root!r}, rooted={self.rooted})"
