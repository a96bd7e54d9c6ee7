import numpy as np

from Orange.misc import DistMatrix

from .matrix import DistanceMatrix
from .nj_core import NeighborJoining
from .tree import Tree


# ----------------------------------------------------------------------
# Wrapper for Orange DistMatrix
# ----------------------------------------------------------------------

def orange_to_distance_matrix(dm: DistMatrix, labels=None) -> DistanceMatrix:
    """
    Copy an Orange.misc.DistMatrix into a DistanceMatrix.

    Labels are taken from `labels`, else from dm.row_items if available,
    otherwise generated as T0, T1, ...
    """
    D = np.asarray(dm, dtype=float)

    if labels is not None:
        labels = [str(l) for l in labels]
    elif getattr(dm, "row_items", None) is not None:
        labels = [str(item) for item in dm.row_items]
    else:
        labels = [f"T{i}" for i in range(D.shape[0])]

    return DistanceMatrix.from_array(D, labels)


def neighbor_joining_orange(dm: DistMatrix, labels=None, **engine_kwargs) -> Tree:
    """
    Run Neighbor-Joining on an Orange.misc.DistMatrix.

    Parameters
    ----------
    dm : DistMatrix
        Orange distance matrix (e.g. from Orange.distance.Euclidean(table)).
    labels : sequence of str, optional
        Taxon labels, see orange_to_distance_matrix().
    **engine_kwargs
        Passed on to NeighborJoining.

    Returns
    -------
    tree : Tree
        The resulting NJ tree. dm itself is left untouched.
    """
    return NeighborJoining(**engine_kwargs).execute(orange_to_distance_matrix(dm, labels))
