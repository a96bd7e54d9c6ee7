"""
Adapter: njtree Tree -> Orange hierarchical.Tree

This module converts a NJ tree (branch lengths on Node.length) into
Orange's hierarchical.Tree with absolute heights, suitable for
DendrogramWidget (including non-ultrametric trees).

Intended usage:
    tree = neighbor_joining_core(D, labels)
    orange_tree = tree_to_orange(tree, {label: i for i, label in enumerate(labels)})
"""

from dataclasses import dataclass
from typing import Dict, Tuple

from Orange.clustering.hierarchical import Tree as OrangeTree

from .layout import assign_depths
from .tree import Node, Tree


@dataclass(frozen=True)
class ClusterValue:
    height: float
    first: int          # leaf-order position (inclusive)
    last: int           # leaf-order position (exclusive)
    index: int          # original row index for leaves, -1 for internal nodes
    range: Tuple[int, int]
    members: Tuple[int, ...]  # original row indices contained in this subtree


def tree_to_orange(tree: Tree, label_to_index: Dict[str, int]) -> OrangeTree:
    # 1) absolute heights: leaves furthest from the root sit at height 0
    max_h = assign_depths(tree)
    leaf_pos = 0

    def _build(node: Node) -> OrangeTree:
        nonlocal leaf_pos
        height = max_h - node.x
        if node.is_external():
            orig_idx = label_to_index[node.name]
            pos = leaf_pos
            leaf_pos += 1

            val = ClusterValue(
                height=height,
                first=pos,
                last=pos + 1,
                index=orig_idx,
                range=(pos, pos + 1),
                members=(orig_idx,),
            )
            return OrangeTree(val, ())

        children = tuple(_build(ch) for ch in node.children)
        first = min(ch.value.first for ch in children)
        last = max(ch.value.last for ch in children)
        members = tuple(i for ch in children for i in ch.value.members)

        val = ClusterValue(
            height=height,
            first=first,
            last=last,
            index=-1,
            range=(first, last),
            members=members,
        )
        return OrangeTree(val, children)

    return _build(tree.root)


__all__ = [
    "ClusterValue",
    "tree_to_orange",
]
