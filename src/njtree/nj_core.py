import logging

import numpy as np

from typing import Iterable, List, Optional, Sequence

from pydantic import ValidationError

from .config import NeighborJoiningConfig
from .exceptions import InvalidConfigurationError, InvalidInputError
from .matrix import DistanceMatrix
from .rounding import round_half_up
from .tree import Node, NodeIdAllocator, Tree

logger = logging.getLogger(__name__)


# ----------------------------------------------------------------------
# 1. Engine
# ----------------------------------------------------------------------

class NeighborJoining:
    """
    Saitou-Nei Neighbor Joining over a DistanceMatrix.

    Parameters
    ----------
    verbose : bool
        Log every join ("Node A joins B") at INFO level.
    max_fraction_digits : int, optional
        Round branch lengths half-up to this many fraction digits (1-9).
    check_distances : bool
        Reject negative or non-finite distances before clustering.
    allocator : NodeIdAllocator, optional
        Source of node ids; the process-wide allocator by default.
    config : NeighborJoiningConfig, optional
        Complete configuration; overrides the keyword settings above.

    Notes
    -----
    The working state is the matrix's own array plus a mapping from
    logical OTU slots to physical rows. Joining two OTUs stores the new
    composite in the first OTU's row and drops the second OTU's slot from
    the mapping, so no row is ever physically removed. Only the upper
    triangle (row < column) is read and written.
    """

    def __init__(
        self,
        verbose: bool = False,
        max_fraction_digits: Optional[int] = None,
        check_distances: bool = True,
        allocator: Optional[NodeIdAllocator] = None,
        config: Optional[NeighborJoiningConfig] = None,
    ):
        if config is None:
            try:
                config = NeighborJoiningConfig(
                    verbose=verbose,
                    max_fraction_digits=max_fraction_digits,
                    check_distances=check_distances,
                )
            except ValidationError as e:
                raise InvalidConfigurationError(
                    "maximum fraction digits for distances is out of range: "
                    f"{max_fraction_digits}",
                    suggestion="Use an integer between 1 and 9, or None.",
                ) from e
        self.config = config
        self.allocator = allocator

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def execute(self, matrix: DistanceMatrix, in_place: bool = True) -> Tree:
        """
        Build an unrooted tree from matrix.

        With in_place=True (default) the matrix's upper triangle is
        overwritten with intermediate distances and must not be reused.
        """
        n = matrix.size()
        if n < 2:
            raise InvalidInputError(
                f"Neighbor Joining needs at least 2 taxa, got {n}"
            )
        if not in_place:
            matrix = matrix.copy()
        D = matrix.values
        if self.config.check_distances:
            _check_distances(D)

        # nodes[row] is the subtree currently stored in physical row `row`
        nodes: List[Node] = []
        for i in range(n):
            ident = matrix.identifier(i)
            nodes.append(self._new_node(ident if ident is not None else str(i)))
        mapping = np.arange(n)
        logger.debug("Neighbor Joining on %d taxa", n)

        while n > 2:
            # 1) net divergences over the active OTUs
            sub = D[np.ix_(mapping, mapping)]
            upper = np.triu(sub, 1)
            sym = upper + upper.T
            r = sym.sum(axis=1)

            # 2) transformed distances, i < j only
            M = sub - (r[:, None] + r[None, :]) / (n - 2)
            M[np.tril_indices(n)] = np.inf

            # 3) first minimum in row-major order; never randomized
            otu1, otu2 = np.unravel_index(np.argmin(M), M.shape)
            otu1, otu2 = int(otu1), int(otu2)

            # 4) branch lengths to the new node
            d = sym[otu1, otu2]
            d1 = d / 2 + (r[otu1] - r[otu2]) / (2 * (n - 2))
            d2 = d - d1

            # 5-6) merge under a new internal node
            node_1 = nodes[mapping[otu1]]
            node_2 = nodes[mapping[otu2]]
            node_1.length = self._emit(d1)
            node_2.length = self._emit(d2)
            joined = self._new_node()
            joined.add_child(node_1)
            joined.add_child(node_2)
            joined.sum_ext_nodes = node_1.sum_ext_nodes + node_2.sum_ext_nodes
            self._report(node_1, node_2)

            # 7) distances from the new node, stored in otu1's row
            others = np.array([k for k in range(n) if k not in (otu1, otu2)], dtype=int)
            new_d = (sym[otu1, others] + sym[otu2, others] - d) / 2
            rows = mapping[np.minimum(otu1, others)]
            cols = mapping[np.maximum(otu1, others)]
            D[rows, cols] = new_d

            # 8) bookkeeping: otu2 is dropped from the mapping
            nodes[mapping[otu1]] = joined
            mapping = np.delete(mapping, otu2)
            n -= 1

        # Final two OTUs hang from the root with half the distance each
        last = self._emit(D[mapping[0], mapping[1]] / 2)
        node_1 = nodes[mapping[0]]
        node_2 = nodes[mapping[1]]
        node_1.length = last
        node_2.length = last
        root = self._new_node()
        root.add_child(node_1)
        root.add_child(node_2)
        root.sum_ext_nodes = node_1.sum_ext_nodes + node_2.sum_ext_nodes
        self._report(node_1, node_2)

        return Tree(root=root, rooted=False)

    def execute_all(self, matrices: Iterable[DistanceMatrix], in_place: bool = True) -> List[Tree]:
        """One tree per matrix, in input order."""
        return [self.execute(m, in_place=in_place) for m in matrices]

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _new_node(self, name: str = "") -> Node:
        return Node(name=name, allocator=self.allocator)

    def _emit(self, value: float) -> float:
        digits = self.config.max_fraction_digits
        if digits is None:
            return float(value)
        return round_half_up(value, digits)

    def _report(self, n1: Node, n2: Node):
        if self.config.verbose:
            logger.info("Node %s joins %s", n1.name or n1.id, n2.name or n2.id)


def _check_distances(D: np.ndarray):
    upper = D[np.triu_indices(D.shape[0], 1)]
    if not np.all(np.isfinite(upper)):
        raise InvalidInputError(
            "distance matrix contains non-finite values",
            suggestion="Replace NaN/inf distances or pass check_distances=False.",
        )
    if np.any(upper < 0):
        raise InvalidInputError(
            f"distance matrix contains negative values (min {upper.min():g})",
            suggestion="Distances must be >= 0; pass check_distances=False to run anyway.",
        )


# ----------------------------------------------------------------------
# 2. Functional entry point: numpy 2D array + labels
# ----------------------------------------------------------------------

def neighbor_joining_core(D, labels: Sequence[str], **engine_kwargs) -> Tree:
    """
    Neighbor Joining on a plain array.

    Parameters
    ----------
    D : array-like (n x n)
        Symmetric distance matrix with zeros on the diagonal.
    labels : list[str]
        Taxon labels of length n.
    **engine_kwargs
        Passed on to NeighborJoining.

    Returns
    -------
    tree : Tree
        Unrooted tree; its root node joins the last two clusters, each
        at half of their remaining distance.
    """
    D = np.asarray(D, dtype=float)
    if D.ndim != 2 or D.shape[0] != D.shape[1]:
        raise InvalidInputError("D must be a square matrix")
    if len(labels) != D.shape[0]:
        raise InvalidInputError("len(labels) must match matrix size")
    dm = DistanceMatrix.from_array(D, [str(label) for label in labels])
    return NeighborJoining(**engine_kwargs).execute(dm)
