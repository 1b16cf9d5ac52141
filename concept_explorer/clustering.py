#!/usr/bin/env python3
"""
Clustering Engine for ConceptExplorer
=====================================

Partitions sentence vectors into primary concepts.

Two modes, both on cosine distance over L2-normalized vectors:
  - kmeans:        Lloyd's algorithm, k distinct initial points chosen by a
                   seeded permutation (same seed + same input = same output)
  - hierarchical:  average-linkage agglomeration, dendrogram cut either to
                   exactly k clusters (cut_type='count') or at a percentile
                   of the merge-distance range (cut_type='granularity')

An optional soft-membership pass spreads each sentence over the clusters
whose centroids it is close to (softmax over negative distances).

Detail concepts re-run the engine on the members of one primary cluster
with k = max(2, round(sqrt(size / 2))). Only one level deep.

Basic Usage:
    >>> from concept_explorer.clustering import cluster
    >>> result = cluster(X, k=5, mode='kmeans', seed=42)
    >>> result.assignments[:10]
    array([0, 0, 1, 2, 0, 3, 1, 4, 4, 2])

License: MIT
"""

import math
import numpy as np
from dataclasses import dataclass
from scipy.cluster.hierarchy import cut_tree, fcluster, linkage
from scipy.spatial.distance import pdist
from typing import Dict, Optional, Tuple

from .config import SOFTMAX_TEMPERATURE, MEMBERSHIP_FLOOR
from .errors import DegenerateClusteringError
from .vectors import normalize_rows

__all__ = [
    'ClusteringResult',
    'cluster',
    'kmeans',
    'build_dendrogram',
    'cut_by_count',
    'cut_by_granularity',
    'compute_centroids',
    'soft_memberships',
    'hard_memberships',
    'relabel',
    'count_distinct',
    'round_half_up',
    'detail_k',
    'cluster_details',
]


@dataclass
class ClusteringResult:
    """
    Output of one clustering call.

    Attributes:
        assignments: (n,) hard cluster index per vector, 0..k-1
        centroids: (k, d) normalized centroids
        memberships: (n, k) membership weights; one-hot under hard
                     assignment, rows sum to 1 under soft membership
        k: Number of clusters
    """
    assignments: np.ndarray
    centroids: np.ndarray
    memberships: np.ndarray
    k: int

    @property
    def sizes(self) -> np.ndarray:
        return np.bincount(self.assignments, minlength=self.k)


# =============================================================================
# Helpers
# =============================================================================

def round_half_up(x: float) -> int:
    return int(math.floor(x + 0.5))


def count_distinct(vectors: np.ndarray, decimals: int = 8) -> int:
    """Number of distinct rows after rounding."""
    if len(vectors) == 0:
        return 0
    return len(np.unique(np.round(vectors, decimals), axis=0))


def relabel(assignments: np.ndarray) -> np.ndarray:
    """Renumber cluster labels 0..k-1 in order of first appearance."""
    mapping: Dict[int, int] = {}
    out = np.empty(len(assignments), dtype=int)
    for i, a in enumerate(assignments):
        a = int(a)
        if a not in mapping:
            mapping[a] = len(mapping)
        out[i] = mapping[a]
    return out


def compute_centroids(
    vectors: np.ndarray,
    assignments: np.ndarray,
    k: int,
    weights: Optional[np.ndarray] = None
) -> np.ndarray:
    """
    Normalized cluster centroids.

    Args:
        vectors: (n, d) normalized vectors
        assignments: (n,) hard labels
        k: Number of clusters
        weights: Optional (n, k) membership matrix; centroids become the
                 membership-weighted means

    Returns:
        (k, d) array of normalized centroids
    """
    if weights is None:
        centroids = np.zeros((k, vectors.shape[1]))
        for j in range(k):
            mask = assignments == j
            if mask.any():
                centroids[j] = vectors[mask].mean(axis=0)
    else:
        centroids = (weights.T @ vectors) / (weights.sum(axis=0)[:, None] + 1e-10)
    return normalize_rows(centroids)


# =============================================================================
# K-Means (cosine)
# =============================================================================

def kmeans(
    vectors: np.ndarray,
    k: int,
    seed: int = 42,
    max_iter: int = 50
) -> Tuple[np.ndarray, np.ndarray]:
    """
    Spherical k-means with deterministic seeded initialization.

    Initial centroids are the first k distinct vectors of a seeded random
    permutation. Points are assigned to the centroid with the highest
    cosine similarity; centroids are normalized member means. A cluster
    that empties is reseeded with the point farthest from its own centroid.

    Args:
        vectors: (n, d) array
        k: Number of clusters (never changed during the run)
        seed: Initialization seed
        max_iter: Iteration cap

    Returns:
        (assignments, centroids), labels renumbered by first appearance

    Raises:
        DegenerateClusteringError: if k < 1 or k exceeds the number of
            distinct vectors
    """
    X = normalize_rows(vectors)
    n = len(X)
    if k < 1:
        raise DegenerateClusteringError(f"k must be >= 1, got {k}")
    distinct = count_distinct(X)
    if k > distinct:
        raise DegenerateClusteringError(
            f"k={k} exceeds the number of distinct vectors ({distinct})"
        )

    # Seeded shuffle, first k distinct points
    rng = np.random.default_rng(seed)
    chosen = []
    seen = set()
    for i in rng.permutation(n):
        key = np.round(X[i], 8).tobytes()
        if key in seen:
            continue
        seen.add(key)
        chosen.append(i)
        if len(chosen) == k:
            break
    centroids = X[chosen].copy()

    assignments = np.full(n, -1, dtype=int)
    for _ in range(max_iter):
        sims = X @ centroids.T
        new_assignments = np.argmax(sims, axis=1)

        for j in range(k):
            if np.any(new_assignments == j):
                continue
            own = sims[np.arange(n), new_assignments]
            counts = np.bincount(new_assignments, minlength=k)
            movable = np.where(counts[new_assignments] > 1)[0]
            if len(movable) == 0:
                raise DegenerateClusteringError(f"Cluster {j} is empty and cannot be reseeded")
            new_assignments[movable[np.argmin(own[movable])]] = j

        if np.array_equal(new_assignments, assignments):
            break
        assignments = new_assignments

        for j in range(k):
            centroids[j] = normalize_rows(X[assignments == j].mean(axis=0))

    labels = relabel(assignments)
    order = [int(assignments[np.argmax(labels == j)]) for j in range(k)]
    return labels, centroids[order]


# =============================================================================
# Hierarchical (average linkage)
# =============================================================================

def build_dendrogram(vectors: np.ndarray) -> np.ndarray:
    """
    Average-linkage agglomeration on cosine distance.

    Average linkage never produces inversions, so merge distances are
    non-decreasing.

    Returns:
        (n-1, 4) scipy linkage matrix: [cluster_a, cluster_b, distance, size]
    """
    X = normalize_rows(vectors)
    n = len(X)
    if n < 2:
        return np.zeros((0, 4))
    distances = np.clip(np.nan_to_num(pdist(X, 'cosine'), nan=1.0), 0.0, 2.0)
    return linkage(distances, method='average')


def cut_by_count(merges: np.ndarray, n: int, k: int) -> np.ndarray:
    """Cut the dendrogram into exactly k clusters."""
    if not 1 <= k <= n:
        raise DegenerateClusteringError(f"Cannot cut {n} points into {k} clusters")
    if n == 1:
        return np.zeros(1, dtype=int)
    # cut_tree replays merges in order, so tied heights still give exactly k
    return relabel(cut_tree(merges, n_clusters=[k])[:, 0])


def cut_by_granularity(merges: np.ndarray, n: int, percent: float) -> np.ndarray:
    """
    Cut at a percentile of the merge-distance range.

    Merges with distance <= min + (max - min) * percent / 100 are applied;
    a lower percent leaves more, finer clusters.
    """
    if n < 2 or len(merges) == 0:
        return np.zeros(n, dtype=int)
    distances = merges[:, 2]
    lo, hi = float(distances.min()), float(distances.max())
    threshold = lo + (hi - lo) * percent / 100.0
    return relabel(fcluster(merges, threshold + 1e-12, criterion='distance'))


# =============================================================================
# Membership
# =============================================================================

def hard_memberships(assignments: np.ndarray, k: int) -> np.ndarray:
    W = np.zeros((len(assignments), k))
    W[np.arange(len(assignments)), assignments] = 1.0
    return W


def soft_memberships(
    vectors: np.ndarray,
    centroids: np.ndarray,
    assignments: np.ndarray,
    temperature: float = SOFTMAX_TEMPERATURE,
    floor: float = MEMBERSHIP_FLOOR
) -> np.ndarray:
    """
    Softmax over negative cosine distances to every centroid.

    Weights below `floor` are dropped (the hard-assigned cluster is always
    kept) and each row is renormalized to sum to 1.

    Returns:
        (n, k) membership matrix
    """
    X = normalize_rows(vectors)
    C = normalize_rows(centroids)
    distances = 1.0 - X @ C.T
    logits = -distances / temperature
    logits -= logits.max(axis=1, keepdims=True)
    W = np.exp(logits)
    W /= W.sum(axis=1, keepdims=True)

    keep = W >= floor
    keep[np.arange(len(X)), assignments] = True
    W = np.where(keep, W, 0.0)
    W /= W.sum(axis=1, keepdims=True)
    return W


# =============================================================================
# Main Entry Point
# =============================================================================

def cluster(
    vectors: np.ndarray,
    k: int,
    mode: str = 'kmeans',
    seed: int = 42,
    soft_membership: bool = False,
    cut_type: str = 'count',
    granularity_percent: float = 60.0,
    dendrogram: np.ndarray = None
) -> ClusteringResult:
    """
    Partition vectors into clusters.

    Args:
        vectors: (n, d) array (normalized internally)
        k: Number of clusters (ignored for granularity cuts)
        mode: 'kmeans' or 'hierarchical'
        seed: k-means initialization seed
        soft_membership: Spread memberships over nearby clusters
        cut_type: 'count' or 'granularity' (hierarchical only)
        granularity_percent: Cut height percentile (granularity cut only)
        dendrogram: Precomputed merge table for these vectors

    Returns:
        ClusteringResult

    Raises:
        DegenerateClusteringError: if no valid partition exists for k
    """
    X = normalize_rows(vectors)
    n = len(X)
    if n == 0:
        raise DegenerateClusteringError("No vectors to cluster")

    if mode == 'kmeans':
        assignments, centroids = kmeans(X, k, seed=seed)
    elif mode == 'hierarchical':
        merges = build_dendrogram(X) if dendrogram is None else dendrogram
        if cut_type == 'granularity':
            assignments = cut_by_granularity(merges, n, granularity_percent)
        else:
            distinct = count_distinct(X)
            if k < 1 or k > distinct:
                raise DegenerateClusteringError(
                    f"k={k} exceeds the number of distinct vectors ({distinct})"
                )
            assignments = cut_by_count(merges, n, k)
        k = int(assignments.max()) + 1
        centroids = compute_centroids(X, assignments, k)
    else:
        raise ValueError(f"Unknown clustering mode: {mode}")

    sizes = np.bincount(assignments, minlength=k)
    if len(sizes) != k or np.any(sizes == 0):
        raise DegenerateClusteringError(f"Partition has an empty cluster: sizes={sizes.tolist()}")

    if soft_membership:
        memberships = soft_memberships(X, centroids, assignments)
    else:
        memberships = hard_memberships(assignments, k)

    return ClusteringResult(assignments=assignments, centroids=centroids,
                            memberships=memberships, k=k)


# =============================================================================
# Detail (second-level) Clustering
# =============================================================================

def detail_k(size: int) -> int:
    """k for re-clustering a concept of the given size."""
    return max(2, round_half_up(math.sqrt(size / 2)))


def cluster_details(
    vectors: np.ndarray,
    assignments: np.ndarray,
    min_size: int = 6,
    seed: int = 42,
    mode: str = 'kmeans'
) -> Dict[int, Tuple[np.ndarray, np.ndarray]]:
    """
    Re-cluster the members of every primary cluster of at least min_size.

    Returns:
        Dict mapping primary cluster index to (member_indices, sub_assignments)
    """
    X = normalize_rows(vectors)
    details = {}
    for c in range(int(assignments.max()) + 1 if len(assignments) else 0):
        members = np.where(assignments == c)[0]
        if len(members) < max(min_size, 2):
            continue
        k = min(detail_k(len(members)), count_distinct(X[members]))
        if k < 2:
            continue
        try:
            sub = cluster(X[members], k, mode=mode, seed=seed)
        except DegenerateClusteringError:
            continue
        details[c] = (members, sub.assignments)
    return details
