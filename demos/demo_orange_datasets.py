import logging

import Orange.distance as odist

from Orange.data import Table

from njtree.layout import assign_coordinates, clusters_by_cut
from njtree.nj_orange import neighbor_joining_orange


# ----------------------------------------------------------------------
# Unified distance-computation wrapper
# ----------------------------------------------------------------------

def compute_distance_matrix(table, metric="euclidean"):
    if metric == "euclidean":
        return odist.Euclidean(table)
    elif metric == "manhattan":
        return odist.Manhattan(table)
    elif metric == "hamming":
        return odist.Hamming(table)
    else:
        raise ValueError(f"Unknown metric: {metric}")


def summarize(tree, n_cuts=4):
    max_depth = assign_coordinates(tree)
    print(f"  leaves: {tree.number_of_external_nodes()}, depth: {max_depth:.3f}")
    for k in range(1, n_cuts + 1):
        cut = max_depth * k / (n_cuts + 1)
        roots, _ = clusters_by_cut(tree, cut)
        print(f"  cut at {cut:.3f}: {len(roots)} clusters")


# ----------------------------------------------------------------------
# 1. Iris (Euclidean)
# ----------------------------------------------------------------------

def demo_iris_euclidean():
    print("Demo 1: Iris (Euclidean)")

    table = Table("iris")

    s0 = [i for i in range(150) if table[i].get_class() == "Iris-setosa"][:15]
    s1 = [i for i in range(150) if table[i].get_class() == "Iris-versicolor"][:15]
    s2 = [i for i in range(150) if table[i].get_class() == "Iris-virginica"][:15]

    idx = s0 + s1 + s2
    table = table[idx]

    dm = compute_distance_matrix(table, metric="euclidean")

    labels = [f"{inst.get_class()}_{i}" for i, inst in enumerate(table)]

    tree = neighbor_joining_orange(dm, labels=labels, max_fraction_digits=4)
    summarize(tree)


# ----------------------------------------------------------------------
# 2. Zoo (Manhattan)
# ----------------------------------------------------------------------

def demo_zoo_manhattan():
    print("Demo 2: Zoo (Manhattan)")

    table = Table("zoo")
    dm = compute_distance_matrix(table, metric="manhattan")

    name_var = None
    for var in table.domain.metas:
        if var.name.lower() == "name":
            name_var = var
            break

    if name_var is None:
        raise RuntimeError("Zoo dataset: could not find meta variable 'name'.")

    labels = [str(inst[name_var]) for inst in table]

    tree = neighbor_joining_orange(dm, labels=labels, verbose=True)
    summarize(tree)


# ----------------------------------------------------------------------
# Run all demos
# ----------------------------------------------------------------------

def main():
    logging.basicConfig(level=logging.INFO, format="%(name)s: %(message)s")
    demo_iris_euclidean()
    demo_zoo_manhattan()


if __name__ == "__main__":
    main()
