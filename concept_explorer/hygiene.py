"""
Cluster Hygiene
===============

Post-processing passes over a hard clustering, applied in order:

  1. merge_small_clusters():    fold undersized clusters into their nearest
                                neighbour by centroid similarity
  2. split_dominant_clusters(): re-split any cluster holding more than a
                                threshold share of sentences with a local
                                k=2 k-means, for a bounded number of rounds
  3. merge_similar_clusters():  optional; merge near-duplicate concepts as
                                long as the result stays under a size cap

All passes keep every sentence assigned and never leave an empty cluster.
Assignments are returned renumbered 0..k-1 by first appearance.

License: MIT
"""

import warnings
import numpy as np
from typing import Tuple

from .clustering import compute_centroids, kmeans, relabel, round_half_up
from .errors import DegenerateClusteringError
from .models import MergeDiagnostics, SplitRecord, DominanceDiagnostics
from .vectors import normalize_rows

__all__ = [
    'auto_min_cluster_size',
    'merge_small_clusters',
    'split_dominant_clusters',
    'merge_similar_clusters',
    'largest_share',
]


def auto_min_cluster_size(n_sentences: int) -> int:
    """Default size floor: max(2, round(n * 0.02))."""
    return max(2, round_half_up(n_sentences * 0.02))


def largest_share(assignments: np.ndarray) -> float:
    if len(assignments) == 0:
        return 0.0
    return float(np.bincount(assignments).max() / len(assignments))


def _n_clusters(assignments: np.ndarray) -> int:
    return len(np.unique(assignments))


# =============================================================================
# Minimum Cluster Size
# =============================================================================

def merge_small_clusters(
    vectors: np.ndarray,
    assignments: np.ndarray,
    min_size: int
) -> Tuple[np.ndarray, MergeDiagnostics]:
    """
    Merge clusters smaller than min_size into their nearest cluster.

    The smallest undersized cluster (lowest label on ties) is merged first,
    into the cluster whose centroid is most cosine-similar to its own.
    Repeats until no cluster is undersized or a single cluster remains.

    Returns:
        (assignments, MergeDiagnostics)
    """
    X = normalize_rows(vectors)
    labels = relabel(assignments)
    before = _n_clusters(labels)
    merged = 0

    while True:
        k = int(labels.max()) + 1
        if k <= 1:
            break
        sizes = np.bincount(labels, minlength=k)
        small = [c for c in range(k) if sizes[c] < min_size]
        if not small:
            break
        target = min(small, key=lambda c: (sizes[c], c))

        centroids = compute_centroids(X, labels, k)
        sims = centroids @ centroids[target]
        sims[target] = -np.inf
        nearest = int(np.argmax(sims))

        labels = relabel(np.where(labels == target, nearest, labels))
        merged += 1

    diagnostics = MergeDiagnostics(
        before_size=before,
        after_size=_n_clusters(labels),
        merged_count=merged,
        min_size=int(min_size),
    )
    return labels, diagnostics


# =============================================================================
# Dominance Cap
# =============================================================================

def split_dominant_clusters(
    vectors: np.ndarray,
    assignments: np.ndarray,
    threshold: float = 0.35,
    max_rounds: int = 10,
    seed: int = 42,
    level: str = 'primary',
    warn: bool = True
) -> Tuple[np.ndarray, DominanceDiagnostics]:
    """
    Split clusters whose share of all sentences exceeds threshold.

    Each round splits the largest dominant cluster that can still be split
    (at least two distinct member vectors) with k=2 k-means on its members.

    Args:
        vectors: (n, d) array
        assignments: (n,) hard labels
        threshold: Maximum allowed share of sentences per cluster
        max_rounds: Maximum number of splits
        seed: Seed of the local k-means
        level: 'primary' or 'detail', recorded in diagnostics
        warn: Warn when a dominant cluster remains

    Returns:
        (assignments, DominanceDiagnostics); diagnostics.resolved is False
        if a dominant cluster remains
    """
    X = normalize_rows(vectors)
    labels = relabel(assignments)
    n = len(labels)
    diagnostics = DominanceDiagnostics(level=level, threshold=threshold)
    unsplittable = set()

    while diagnostics.rounds < max_rounds:
        k = int(labels.max()) + 1
        sizes = np.bincount(labels, minlength=k)
        dominant = [c for c in np.argsort(-sizes, kind='stable')
                    if sizes[c] / n > threshold and int(c) not in unsplittable]
        if not dominant:
            break
        target = int(dominant[0])
        members = np.where(labels == target)[0]
        try:
            sub, _ = kmeans(X[members], 2, seed=seed)
        except DegenerateClusteringError:
            unsplittable.add(target)
            continue

        new_label = k
        labels = labels.copy()
        labels[members[sub == 1]] = new_label
        diagnostics.splits.append(SplitRecord(
            level=level,
            original_size=int(len(members)),
            resulting_sizes=[int(np.sum(sub == 0)), int(np.sum(sub == 1))],
        ))
        diagnostics.rounds += 1
        # Labels of untouched clusters stay put, so unsplittable ids remain valid

    labels = relabel(labels)
    diagnostics.resolved = largest_share(labels) <= threshold
    if warn and not diagnostics.resolved:
        warnings.warn(
            f"Dominance cap ({level}) unresolved after {diagnostics.rounds} rounds: "
            f"largest share {largest_share(labels):.2f} > {threshold:.2f}"
        )
    return labels, diagnostics


# =============================================================================
# Semantic Merge
# =============================================================================

def merge_similar_clusters(
    vectors: np.ndarray,
    assignments: np.ndarray,
    threshold: float = 0.85,
    max_share: float = 0.3
) -> Tuple[np.ndarray, int]:
    """
    Merge near-duplicate clusters.

    The most similar pair of centroids at or above `threshold` is merged
    (smaller into larger) unless the merged cluster would exceed
    `max_share` of all sentences; repeats until no pair qualifies.

    Returns:
        (assignments, number_of_merges)
    """
    X = normalize_rows(vectors)
    labels = relabel(assignments)
    n = len(labels)
    merges = 0

    while True:
        k = int(labels.max()) + 1
        if k <= 1:
            break
        sizes = np.bincount(labels, minlength=k)
        centroids = compute_centroids(X, labels, k)
        sims = centroids @ centroids.T
        np.fill_diagonal(sims, -np.inf)

        best = None
        for i in range(k):
            for j in range(i + 1, k):
                if sims[i, j] < threshold:
                    continue
                if (sizes[i] + sizes[j]) / n > max_share:
                    continue
                if best is None or sims[i, j] > sims[best]:
                    best = (i, j)
        if best is None:
            break

        i, j = best
        keep, drop = (i, j) if sizes[i] >= sizes[j] else (j, i)
        labels = relabel(np.where(labels == drop, keep, labels))
        merges += 1

    return labels, merges
