"""
Support values for the internal branches of a reference tree.

Each non-root internal node of the reference tree defines a split of the
leaf set (leaves below it vs. the rest). Its support is the number of
candidate trees (e.g. NJ trees built from resampled matrices) that
contain the same split, optionally as a fraction of all candidates.
Splits are compared unrooted, by leaf name.
"""

import logging

from typing import FrozenSet, Optional, Sequence, Set

from .exceptions import InvalidInputError
from .rounding import round_half_up
from .tree import Tree

logger = logging.getLogger(__name__)


def _canonical(side: FrozenSet[str], taxa: FrozenSet[str], anchor: str) -> FrozenSet[str]:
    # the side that does not contain the anchor taxon
    return taxa - side if anchor in side else side


def tree_splits(tree: Tree) -> Set[FrozenSet[str]]:
    """Non-trivial unrooted splits of tree, each as the side without the anchor taxon."""
    taxa = frozenset(tree.root.all_external_descendant_names())
    anchor = min(taxa)
    splits = set()
    for node in tree.iter_preorder():
        if node.is_root() or node.is_external():
            continue
        split = _canonical(frozenset(node.all_external_descendant_names()), taxa, anchor)
        if 1 < len(split) < len(taxa) - 1:
            splits.add(split)
    return splits


def evaluate(
    label: str,
    candidate_trees: Sequence[Tree],
    reference_tree: Tree,
    normalize: bool = True,
    digits: Optional[int] = None,
):
    """
    Annotate reference_tree's internal nodes with support among candidate_trees.

    The value is stored as node.confidence[label]: a count of supporting
    candidates, or the supporting fraction when normalize is True,
    rounded half-up to digits fraction digits when given. Branches that
    carry no information in an unrooted tree (trivial splits) get no value.
    """
    if reference_tree.is_empty():
        raise InvalidInputError("reference tree is empty")
    taxa = frozenset(reference_tree.root.all_external_descendant_names())
    if len(taxa) != reference_tree.number_of_external_nodes():
        raise InvalidInputError(
            "reference tree has duplicate leaf names",
            suggestion="Support is computed from leaf names, which must be unique.",
        )

    candidate_splits = []
    for i, candidate in enumerate(candidate_trees):
        if candidate.is_empty():
            raise InvalidInputError(f"candidate tree {i} is empty")
        names =frozenset(candidate.root.all_external_descendant_names())
        if names != taxa:
            raise InvalidInputError(
                f"candidate tree {i} has a different leaf set than the reference tree"
            )
        candidate_splits.append(tree_splits(candidate))

    anchor = min(taxa)
    total = len(candidate_splits)
    annotated = 0
    for node in reference_tree.iter_preorder():
        if node.is_root() or node.is_external():
            continue
        split = _canonical(frozenset(node.all_external_descendant_names()), taxa, anchor)
        if not 1 < len(split) < len(taxa) - 1:
            continue
        value = float(sum(1 for splits in candidate_splits if split in splits))
        if normalize and total > 0:
            value /= total
        if digits is not None:
            value = round_half_up(value, digits)
        node.confidence[label] = value
        annotated += 1

    logger.debug(
        "Evaluated '%s' support for %d branches against %d trees",
        label, annotated, total,
    )
