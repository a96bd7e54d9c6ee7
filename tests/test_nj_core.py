import unittest
import numpy as np

from skbio import DistanceMatrix as SkbioDistanceMatrix, TreeNode as SkbioTree
from skbio.tree import nj as skbio_nj
from skbio.tree import path_dists

from Bio.Phylo.TreeConstruction import DistanceTreeConstructor, DistanceMatrix as BioDistanceMatrix
from Bio import Phylo
from io import StringIO

from njtree import (
    DistanceMatrix,
    InvalidConfigurationError,
    InvalidInputError,
    NeighborJoining,
    NeighborJoiningConfig,
    NodeIdAllocator,
    neighbor_joining_core,
)
from njtree.rounding import round_half_up

# ----------------------------------------------------------------------
# Test matrix generator
# ----------------------------------------------------------------------

def generate_test_matrices():

    labels = ["A", "B", "C", "D"]
    D = np.array([
        [0, 5, 9, 9],
        [5, 0, 10, 10],
        [9, 10, 0, 8],
        [9, 10, 8, 0],
    ], dtype=float)
    yield D, labels

    labels = ["A", "B", "C", "D", "E", "F"]
    D = np.array([
        [0, 2, 4, 4, 7, 7],
        [2, 0, 4, 4, 7, 7],
        [4, 4, 0, 2, 7, 7],
        [4, 4, 2, 0, 7, 7],
        [7, 7, 7, 7, 0, 4],
        [7, 7, 7, 7, 4, 0],
    ], dtype=float)
    yield D, labels

    labels = [f"T{i}" for i in range(8)]
    D = np.array([
        [0, 2, 4, 6, 6, 8, 8, 8],
        [2, 0, 4, 6, 6, 8, 8, 8],
        [4, 4, 0, 6, 6, 8, 8, 8],
        [6, 6, 6, 0, 2, 8, 8, 8],
        [6, 6, 6, 2, 0, 8, 8, 8],
        [8, 8, 8, 8, 8, 0, 4, 4],
        [8, 8, 8, 8, 8, 4, 0, 2],
        [8, 8, 8, 8, 8, 4, 2, 0],
    ], dtype=float)
    yield D, labels

    labels = [f"L{i}" for i in range(10)]
    D = np.array([
        [0,2,4,4,6,6,8,8,8,8],
        [2,0,4,4,6,6,8,8,8,8],
        [4,4,0,2,6,6,8,8,8,8],
        [4,4,2,0,6,6,8,8,8,8],
        [6,6,6,6,0,2,8,8,8,8],
        [6,6,6,6,2,0,8,8,8,8],
        [8,8,8,8,8,8,0,2,4,4],
        [8,8,8,8,8,8,2,0,4,4],
        [8,8,8,8,8,8,4,4,0,2],
        [8,8,8,8,8,8,4,4,2,0],
    ], dtype=float)
    yield D, labels

# ----------------------------------------------------------------------
# Helpers
# ----------------------------------------------------------------------

def to_skbio(node):
    """
    Copy an njtree subtree into a scikit-bio TreeNode.
    """
    length = node.length if not node.is_root() else None
    name = node.name if node.is_external() else None
    return SkbioTree(
        name=name,
        length=length,
        children=[to_skbio(ch) for ch in node.children],
    )

def assert_trees_equivalent(tree1, tree2, places=6):
    """
    Two trees are equivalent iff their patristic distance matrices match.
    """
    dist = path_dists(
        trees=[tree1, tree2],
        use_length=True,
        metric="euclidean"
    )
    assert abs(dist[0, 1]) < 10 ** (-places)

def leaf_partitions(tree):
    """Leaf-name set below every internal node."""
    return {
        frozenset(n.all_external_descendant_names())
        for n in tree.iter_preorder() if n.is_internal()
    }

def patristic(tree, a, b):
    """Sum of branch lengths on the path between the leaves named a and b."""
    def to_root(node):
        path = {}
        dist = 0.0
        while node is not None:
            path[node.id] = dist
            if node.parent is not None:
                dist += node.length
            node = node.parent
        return path
    pa = to_root(tree.get_node(a))
    node, dist = tree.get_node(b), 0.0
    while node.id not in pa:
        dist += node.length
        node = node.parent
    return dist + pa[node.id]

# ----------------------------------------------------------------------
# Tests
# ----------------------------------------------------------------------

class TestNeighborJoining(unittest.TestCase):

    def test_against_scikit_bio(self):
        """
        Compare against scikit-bio NJ
        """
        for D, labels in generate_test_matrices():
            with self.subTest(labels=labels):
                dm = SkbioDistanceMatrix(D, labels)
                ref_tree = skbio_nj(dm)
                my_tree = to_skbio(neighbor_joining_core(D, labels).root)
                assert_trees_equivalent(ref_tree, my_tree)

    def test_against_biopython(self):
        """
        Compare against Biopython NJ
        """
        constructor = DistanceTreeConstructor()
        for D, labels in generate_test_matrices():
            with self.subTest(labels=labels):
                lower = [list(D[i, :i + 1]) for i in range(len(D))]
                dm = BioDistanceMatrix(labels, lower)
                ref_tree = constructor.nj(dm)
                handle = StringIO()
                Phylo.write(ref_tree, handle, "newick")
                ref_skbio = SkbioTree.read([handle.getvalue()])
                my_tree = to_skbio(neighbor_joining_core(D, labels).root)
                assert_trees_equivalent(ref_skbio, my_tree)

    def test_additive_matrix_is_reproduced(self):
        D, labels = next(generate_test_matrices())
        tree = neighbor_joining_core(D, labels)
        for i in range(len(labels)):
            for j in range(i + 1, len(labels)):
                self.assertAlmostEqual(patristic(tree, labels[i], labels[j]), D[i, j])

    def test_leaf_count_preserved(self):
        """
        NJ must preserve all input taxa.
        """
        for D, labels in generate_test_matrices():
            tree = neighbor_joining_core(D, labels)
            leaves = []
            def walk(n):
                if n.is_leaf():
                    leaves.append(n.name)
                for c in n.children:
                    walk(c)
            walk(tree.root)
            self.assertCountEqual(leaves, labels)
            self.assertEqual(tree.root.sum_ext_nodes, len(labels))

    def test_result_is_unrooted(self):
        for D, labels in generate_test_matrices():
            self.assertFalse(neighbor_joining_core(D, labels).rooted)

    def test_invalid_input_raises(self):
        D = np.array([[0, 1], [1, 0]])
        with self.assertRaises(ValueError):
            neighbor_joining_core(D, ["A"])

    def test_single_taxon_raises(self):
        with self.assertRaises(InvalidInputError):
            NeighborJoining().execute(DistanceMatrix(1, ["A"]))

    def test_two_taxa(self):
        D = np.array([[0, 4], [4, 0]], float)
        labels = ["A", "B"]
        tree = neighbor_joining_core(D, labels)
        self.assertEqual(len(tree.root.children), 2)
        self.assertEqual([ch.length for ch in tree.root.children], [2.0, 2.0])
        self.assertEqual(tree.root.all_external_descendant_names(), ["A", "B"])

    def test_all_equal_distances(self):
        labels = ["A", "B", "C", "D"]
        D = np.ones((4, 4)) - np.eye(4)
        tree = neighbor_joining_core(D, labels)
        self.assertEqual(len([n for n in tree.root.children]), 2)

    def test_deterministic(self):
        D, labels = next(generate_test_matrices())
        t1 = neighbor_joining_core(D, labels)
        t2 = neighbor_joining_core(D, labels)
        self.assertEqual(leaf_partitions(t1), leaf_partitions(t2))
        self.assertNotEqual(t1.root.id, t2.root.id)

    def test_three_taxa_branch_lengths(self):
        D = np.array([
            [0, 3, 4],
            [3, 0, 5],
            [4, 5, 0],
        ], dtype=float)
        tree = neighbor_joining_core(D, ["A", "B", "C"])
        a, b, c = (tree.get_node(x) for x in "ABC")
        self.assertIs(a.parent, b.parent)
        self.assertAlmostEqual(a.length, 1.0)
        self.assertAlmostEqual(b.length, 2.0)
        self.assertAlmostEqual(a.parent.length, 1.5)
        self.assertAlmostEqual(c.length, 1.5)
        self.assertAlmostEqual(a.length + a.parent.length + c.length, 4.0)
        self.assertAlmostEqual(b.length + b.parent.length + c.length, 5.0)

    def test_tie_break_takes_first_pair_in_row_major_order(self):
        # M(A, D) == M(B, C) is the minimum; (0, 3) comes before (1, 2)
        D = np.array([
            [0, 6, 6, 2],
            [6, 0, 2, 6],
            [6, 2, 0, 6],
            [2, 6, 6, 0],
        ], dtype=float)
        tree = neighbor_joining_core(D, ["A", "B", "C", "D"])
        first_join = tree.get_node("A").parent
        self.assertEqual(first_join.all_external_descendant_names(), ["A", "D"])

    def test_five_taxa_leaf_order(self):
        labels = ["A", "B", "C", "D", "E"]
        D = np.array([
            [0, 5, 9, 9, 8],
            [5, 0, 10, 10, 9],
            [9, 10, 0, 8, 7],
            [9, 10, 8, 0, 3],
            [8, 9, 7, 3, 0],
        ], dtype=float)
        tree = neighbor_joining_core(D, labels)
        expected = []
        def walk(n):
            if n.is_external():
                expected.append(n)
            for c in n.children:
                walk(c)
        walk(tree.root)
        leaves = tree.root.all_external_descendants()
        self.assertEqual(len(leaves), 5)
        self.assertEqual([id(n) for n in leaves], [id(n) for n in expected])
        self.assertCountEqual([n.name for n in leaves], labels)


class TestEngineOptions(unittest.TestCase):

    def test_rounding_of_branch_lengths(self):
        for distance, expected in [(2.469, 1.23), (2.47, 1.24)]:
            with self.subTest(distance=distance):
                dm = DistanceMatrix.from_array([[0, distance], [distance, 0]], ["A", "B"])
                tree = NeighborJoining(max_fraction_digits=2).execute(dm)
                self.assertEqual([ch.length for ch in tree.root.children], [expected, expected])

    def test_rounding_digits_out_of_range(self):
        for digits in (0, 10, -1):
            with self.subTest(digits=digits):
                with self.assertRaises(InvalidConfigurationError):
                    NeighborJoining(max_fraction_digits=digits)

    def test_config_object(self):
        engine = NeighborJoining(config=NeighborJoiningConfig(max_fraction_digits=1))
        dm = DistanceMatrix.from_array([[0, 1], [1, 0]], ["A", "B"])
        tree = engine.execute(dm)
        self.assertEqual(tree.root.children[0].length, 0.5)

    def test_execute_consumes_matrix_in_place(self):
        D, labels = next(generate_test_matrices())
        dm = DistanceMatrix.from_array(D, labels)
        NeighborJoining().execute(dm)
        self.assertFalse(np.array_equal(dm.values, D))

    def test_execute_copy_leaves_matrix_untouched(self):
        D, labels = next(generate_test_matrices())
        dm = DistanceMatrix.from_array(D, labels)
        NeighborJoining().execute(dm, in_place=False)
        np.testing.assert_array_equal(dm.values, D)

    def test_execute_all_preserves_order(self):
        matrices = [DistanceMatrix.from_array(D, labels) for D, labels in generate_test_matrices()]
        sizes = [m.size() for m in matrices]
        trees = NeighborJoining().execute_all(matrices)
        self.assertEqual([t.number_of_external_nodes() for t in trees], sizes)

    def test_unnamed_rows_get_index_names(self):
        dm = DistanceMatrix(3)
        dm.set(0, 1, 3)
        dm.set(0, 2, 4)
        dm.set(1, 2, 5)
        tree = NeighborJoining().execute(dm)
        self.assertEqual(sorted(tree.root.all_external_descendant_names()), ["0", "1", "2"])

    def test_empty_identifier_is_kept(self):
        dm = DistanceMatrix.from_array([[0, 1], [1, 0]], ["", "B"])
        tree = NeighborJoining().execute(dm)
        self.assertEqual(tree.root.all_external_descendant_names(), ["", "B"])

    def test_negative_distances(self):
        D = np.array([[0, -1, 2], [-1, 0, 2], [2, 2, 0]], dtype=float)
        with self.assertRaises(InvalidInputError):
            NeighborJoining().execute(DistanceMatrix.from_array(D))
        tree = NeighborJoining(check_distances=False).execute(DistanceMatrix.from_array(D))
        self.assertEqual(tree.number_of_external_nodes(), 3)

    def test_non_finite_distances(self):
        D = np.array([[0, np.nan], [np.nan, 0]])
        with self.assertRaises(InvalidInputError):
            NeighborJoining().execute(DistanceMatrix.from_array(D))

    def test_custom_allocator(self):
        allocator = NodeIdAllocator(start=1000)
        D, labels = next(generate_test_matrices())
        tree = NeighborJoining(allocator=allocator).execute(DistanceMatrix.from_array(D, labels))
        ids = [n.id for n in tree.iter_preorder()]
        self.assertEqual(sorted(ids), list(range(1000, 1000 + 2 * len(labels) - 1)))

    def test_verbose_logs_every_join(self):
        D, labels = next(generate_test_matrices())
        with self.assertLogs("njtree.nj_core", level="INFO") as cm:
            NeighborJoining(verbose=True).execute(DistanceMatrix.from_array(D, labels))
        joins = [r for r in cm.output if "joins" in r]
        self.assertEqual(len(joins), len(labels) - 1)


class TestRoundHalfUp(unittest.TestCase):

    def test_half_up(self):
        for value, digits, expected in [
            (1.2345, 2, 1.23),
            (1.235, 2, 1.24),
            (1.225, 2, 1.23),
            (0.5, 1, 0.5),
            (2.0, 9, 2.0),
            (-1.235, 2, -1.24),
        ]:
            with self.subTest(value=value, digits=digits):
                self.assertEqual(round_half_up(value, digits), expected)


if __name__ == "__main__":
    unittest.main()
