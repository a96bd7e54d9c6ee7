"""
Characters specific to subtrees.

For a node N, a character is specific to N's subtree when some leaf below
N has it present or gained and no leaf outside N's subtree has it. In the
strict (default) mode every leaf below N must also carry it.
"""

import logging

from typing import List, Set, Tuple

from .tree import Node, Tree

logger = logging.getLogger(__name__)


def leaf_characters(leaf: Node) -> Set[str]:
    """Present and gained characters of a single node (empty if none)."""
    if leaf.characters is None:
        return set()
    return leaf.characters.present_and_gained()


def all_external_characters(node: Node) -> Set[str]:
    """Union of present and gained characters over the leaves below node."""
    chars: Set[str] = set()
    for leaf in node.all_external_descendants():
        chars |= leaf_characters(leaf)
    return chars


def subtree_specific_characters(tree: Tree, simple: bool = False) -> List[Tuple[Node, List[str]]]:
    """
    (node, sorted specific characters) for every non-root node, in postorder.

    Leaves are only reported when simple is True.
    """
    if tree.is_empty():
        return []
    all_leaves = tree.external_nodes()
    logger.debug(
        "Sum of all external characters: %d",
        len(all_external_characters(tree.root)),
    )

    results = []
    for node in tree.iter_postorder():
        if node.is_root() or (node.is_external() and not simple):
            continue
        inside = node.all_external_descendants()
        inside_ids = set(leaf.id for leaf in inside)
        outside_chars: Set[str] = set()
        for leaf in all_leaves:
            if leaf.id not in inside_ids:
                outside_chars |= leaf_characters(leaf)

        inside_sets = [leaf_characters(leaf) for leaf in inside]
        candidates = set().union(*inside_sets) - outside_chars
        if not simple:
            candidates = set(c for c in candidates if all(c in s for s in inside_sets))
        results.append((node, sorted(candidates)))
    return results
