import numpy as np

from typing import List, Optional, Sequence

from .exceptions import InvalidIndexError, InvalidInputError


# ----------------------------------------------------------------------
# Symmetric distance matrix with per-row identifiers
# ----------------------------------------------------------------------

class DistanceMatrix:
    """
    Square matrix of pairwise distances between taxa.

    size        : number of taxa n
    values      : (n x n) float array; the NJ engine only reads the
                  upper triangle (i < j)
    identifiers : one optional label per row

    ``set`` writes both orientations so the matrix stays symmetric.
    Running NeighborJoining.execute() in place overwrites the upper
    triangle; treat the matrix as consumed afterwards or pass a copy().
    """

    __slots__ = ("_values", "_identifiers")

    def __init__(self, size: int, identifiers: Optional[Sequence[Optional[str]]] = None):
        if size < 0:
            raise InvalidInputError(f"matrix size must not be negative, got {size}")
        self._values: np.ndarray = np.zeros((size, size), dtype=float)
        self._identifiers: List[Optional[str]] = [None] * size
        if identifiers is not None:
            if len(identifiers) != size:
                raise InvalidInputError(
                    f"got {len(identifiers)} identifiers for a matrix of size {size}"
                )
            self._identifiers = [None if i is None else str(i) for i in identifiers]

    @classmethod
    def from_array(
        cls,
        values,
        identifiers: Optional[Sequence[Optional[str]]] = None,
        check_symmetric: bool = True,
    ) -> "DistanceMatrix":
        """
        Build a matrix from a 2D array-like.

        Parameters
        ----------
        values : array-like (n x n)
            Pairwise distances.
        identifiers : sequence of str, optional
            Taxon labels of length n.
        check_symmetric : bool
            Reject input where values[i, j] != values[j, i].
        """
        D = np.array(values, dtype=float)
        if D.ndim != 2 or D.shape[0] != D.shape[1]:
            raise InvalidInputError(
                f"distance matrix must be square, got shape {D.shape}",
                suggestion="Pass an n x n array of pairwise distances.",
            )
        if check_symmetric and not np.allclose(D, D.T, equal_nan=True):
            raise InvalidInputError(
                "distance matrix is not symmetric",
                suggestion=(
                    "Symmetrize the input (e.g. (D + D.T) / 2) or pass "
                    "check_symmetric=False to use the upper triangle only."
                ),
            )
        dm = cls(D.shape[0], identifiers)
        dm._values = D
        return dm

    # ------------------------------------------------------------------
    # Queries and mutators
    # ------------------------------------------------------------------

    def size(self) -> int:
        return self._values.shape[0]

    def __len__(self) -> int:
        return self.size()

    def _check(self, i: int) -> int:
        n = self.size()
        if not 0 <= i < n:
            raise InvalidIndexError(i, n, what="matrix index")
        return i

    def get(self, i: int, j: int) -> float:
        return float(self._values[self._check(i), self._check(j)])

    def set(self, i: int, j: int, value: float):
        self._check(i)
        self._check(j)
        self._values[i, j] = value
        self._values[j, i] = value

    def identifier(self, i: int) -> Optional[str]:
        return self._identifiers[self._check(i)]

    def set_identifier(self, i: int, name: Optional[str]):
        self._identifiers[self._check(i)] = None if name is None else str(name)

    @property
    def identifiers(self) -> List[Optional[str]]:
        return list(self._identifiers)

    @property
    def values(self) -> np.ndarray:
        return self._values

    def reorder(self, order: Sequence[int]) -> "DistanceMatrix":
        """
        Return a new matrix whose row/column k is this matrix's row/column
        order[k].
        """
        n = self.size()
        order = [int(i) for i in order]
        if sorted(order) != list(range(n)):
            raise InvalidInputError(
                f"row order must be a permutation of 0..{n - 1}, got {order}"
            )
        idx = np.asarray(order, dtype=int)
        dm = DistanceMatrix(n, [self._identifiers[i] for i in order])
        dm._values = self._values[np.ix_(idx, idx)].copy()
        return dm

    def copy(self) -> "DistanceMatrix":
        dm = DistanceMatrix(self.size(), self._identifiers)
        dm._values = self._values.copy()
        return dm

    def __repr__(self) -> str:
        return f"DistanceMatrix(size={self.size()}, identifiers={self._identifiers!r})"
