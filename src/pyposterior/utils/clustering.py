"""Centrality-seeded k-means clustering of chain positions."""

from dataclasses import dataclass

import numpy as np
from sklearn.cluster import KMeans

from .types import ChainPositions, FloatArray, IntArray


@dataclass
class ClusteringResult:
    """Outcome of a k-means run."""

    assignments: IntArray  # cluster label of every point, in [0, k)
    centers: FloatArray
    n_iter: int
    converged: bool


def centrality_seeds(points: ChainPositions, k: int) -> IntArray:
    """Indices of the k most central points.

    Each point i spreads a unit of weight over all points j in proportion to
    the squared distance between them. The points that receive the least
    total weight are the most central ones. The ordering is stable, so ties
    go to the earlier point.
    """
    points = np.asarray(points, dtype=float)
    diff = points[:, None, :] - points[None, :, :]
    costs = np.sum(diff**2, axis=-1)
    sums = costs.sum(axis=1, keepdims=True)
    costs = np.divide(costs, sums, out=np.zeros_like(costs), where=sums > 0)
    scores = costs.sum(axis=0)
    return np.argsort(scores, kind="stable")[:k]


def centrality_kmeans(
    points: ChainPositions,
    k: int,
    max_iter: int = 100,
    tol: float = 1e-6,
) -> ClusteringResult:
    """Partition points into k clusters with k-means seeded by centrality.

    Makes use of sklearn.cluster.KMeans with a fixed initialisation, so the
    result is deterministic for given points.

    Parameters
    ----------
    points : ChainPositions
        Array of shape (n_points, n_dims).
    k : int
        Number of clusters, 1 <= k <= n_points.
    max_iter : int, optional
        Maximum number of Lloyd iterations. Default is 100.
    tol : float, optional
        Relative tolerance on the change of the cluster centers. Default is 1e-6.

    Returns
    -------
    ClusteringResult
        The clustering is reported as converged only if KMeans stopped
        before max_iter and every cluster is non-empty.
    """
    points = np.asarray(points, dtype=float)
    if points.ndim != 2:
        raise ValueError("points must be a 2D array of shape (n_points, n_dims).")
    if not 1 <= k <= points.shape[0]:
        raise ValueError(f"Number of clusters {k} must be in [1, {points.shape[0]}].")

    seeds = points[centrality_seeds(points, k)]
    kmeans = KMeans(n_clusters=k, init=seeds, n_init=1, max_iter=max_iter, tol=tol)
    kmeans.fit(points)

    assignments = np.asarray(kmeans.labels_, dtype=int)
    all_clusters_used = np.unique(assignments).size == k
    return ClusteringResult(
        assignments=assignments,
        centers=kmeans.cluster_centers_,
        n_iter=int(kmeans.n_iter_),
        converged=bool(kmeans.n_iter_ < max_iter and all_clusters_used),
    )
