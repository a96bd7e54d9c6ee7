"""
Layout coordinates and cut-distance clusters for NJ trees.

- x is the distance from the root (horizontal axis of a phylogram).
- y gives every visible leaf its own row; collapsed nodes occupy a single
  row and hide their descendants.
- Internal nodes sit at the mean row of their children.
"""

import logging

from typing import Dict, List, Tuple

from .tree import Node, Tree

logger = logging.getLogger(__name__)


# ----------------------------------------------------------------------
# Helpers: depths and rows
# ----------------------------------------------------------------------

def _branch(node: Node) -> float:
    return node.length if node.has_length() else 0.0


def assign_depths(tree: Tree) -> float:
    """Set node.x to the cumulative distance from the root; return the max."""
    if tree.is_empty():
        return 0.0
    max_depth = 0.0
    for node in tree.iter_preorder():
        if node.is_root():
            node.x = 0.0
        else:
            node.x = node.parent.x + _branch(node)
        max_depth = max(max_depth, node.x)
    return max_depth


def _first_visible(root: Node, respect_collapse: bool) -> Node:
    node = root
    while node.is_internal() and not (respect_collapse and node.collapse):
        node = node.children[0]
    return node


def _visible_units(root: Node, respect_collapse: bool) -> List[Node]:
    units = []
    node = _first_visible(root, respect_collapse)
    while node is not None:
        units.append(node)
        if respect_collapse:
            node = node.next_external_node_respecting_collapse()
        else:
            node = node.next_external_node()
    return units


def assign_coordinates(tree: Tree, respect_collapse: bool = True) -> float:
    """
    Compute plotting layout for every node of tree.

    x = distance from root, y = visible row (leaves and collapsed nodes
    in consecutive rows, internal nodes = mean of their children, hidden
    nodes = row of their collapsed ancestor).

    Returns the maximum depth.
    """
    if tree.is_empty():
        return 0.0
    max_depth = assign_depths(tree)

    rows = _visible_units(tree.root, respect_collapse)
    for row, unit in enumerate(rows):
        unit.y = float(row)
        for hidden in unit.iter_preorder():
            hidden.y = float(row)
    visible = set(id(unit) for unit in rows)

    for node in tree.iter_postorder():
        if id(node) in visible or node.is_external():
            continue
        if _is_hidden(node, respect_collapse):
            continue
        ys = [ch.y for ch in node.children]
        node.y = sum(ys) / len(ys)

    logger.debug("Layout: %d rows, max depth %g", len(rows), max_depth)
    return max_depth


def _is_hidden(node: Node, respect_collapse: bool) -> bool:
    if not respect_collapse:
        return False
    ancestor = node.parent
    while ancestor is not None:
        if ancestor.collapse:
            return True
        ancestor = ancestor.parent
    return False


# ----------------------------------------------------------------------
# Clustering by cut distance from root
# ----------------------------------------------------------------------

def clusters_by_cut(tree: Tree, cut_distance: float) -> Tuple[List[Node], Dict[int, int]]:
    """
    Clusters induced by a vertical cut at `cut_distance` from the root.

    Rule:
      - For each edge (parent -> child) with parent_depth < cut <= child_depth,
        the child subtree is a cluster.
      - Leaves not in such subtrees form singleton clusters.
      - If no edge is cut, the whole tree is one cluster.

    Returns the cluster root nodes and a map node.id -> cluster index.
    Node depths (node.x) are recomputed.
    """
    eps = 1e-9
    if tree.is_empty():
        return [], {}
    assign_depths(tree)

    cluster_roots: List[Node] = []
    for node in tree.iter_preorder():
        if node.is_root():
            continue
        if node.parent.x < cut_distance <= node.x + eps:
            cluster_roots.append(node)

    cluster_for_node: Dict[int, int] = {}

    # No edge cut -> single cluster (whole tree)
    if not cluster_roots:
        for node in tree.iter_preorder():
            cluster_for_node[node.id] = 0
        return [tree.root], cluster_for_node

    # Subtrees to the right of the cut
    for cid, croot in enumerate(cluster_roots):
        for node in croot.iter_preorder():
            cluster_for_node.setdefault(node.id, cid)

    # Leaves above the cut as singleton clusters
    for leaf in tree.external_nodes():
        if leaf.id not in cluster_for_node:
            cluster_for_node[leaf.id] = len(cluster_roots)
            cluster_roots.append(leaf)

    return cluster_roots, cluster_for_node
