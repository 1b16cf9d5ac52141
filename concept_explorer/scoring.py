"""
Composite objective for hyperparameter search.

Each function computes one raw component of the score; composite_score()
weighs them with ScoreWeights:

    score = w_coh * coherence + w_sep * separation + w_stab * stability
            - w_dom * dominance - w_micro * micro_clusters
            - w_label * label_penalty - w_k * k
"""

import numpy as np
from typing import Callable, List, Optional, Sequence, Set

from sklearn.metrics import adjusted_rand_score

from .config import ScoreWeights
from .errors import DegenerateClusteringError
from .models import ComponentScores

__all__ = [
    'coherence',
    'separation',
    'dominance_penalty',
    'micro_cluster_penalty',
    'label_penalty',
    'bootstrap_stability',
    'perturbation_stability',
    'composite_score',
]


def coherence(vectors: np.ndarray, labels: np.ndarray, centroids: np.ndarray) -> float:
    """Mean cosine similarity of each (normalized) vector to its centroid."""
    sims = np.sum(vectors * centroids[labels], axis=1)
    return float(np.mean(sims))


def separation(centroids: np.ndarray) -> float:
    """Mean pairwise cosine distance between centroids (0 for a single cluster)."""
    k = len(centroids)
    if k < 2:
        return 0.0
    sims = centroids @ centroids.T
    iu = np.triu_indices(k, 1)
    return float(np.mean(1.0 - sims[iu]))


def dominance_penalty(labels: np.ndarray, threshold: float = 0.35) -> float:
    """0 up to the threshold share, then rising linearly to 1 at share 1."""
    share = np.bincount(labels).max() / len(labels)
    if share <= threshold:
        return 0.0
    return float((share - threshold) / (1.0 - threshold + 1e-10))


def micro_cluster_penalty(labels: np.ndarray, min_size: int = 2) -> float:
    """Fraction of clusters at or near (min_size + 1) the size floor."""
    sizes = np.bincount(labels)
    sizes = sizes[sizes > 0]
    return float(np.mean(sizes <= min_size + 1))


def label_penalty(term_sets: Sequence[Set[str]]) -> float:
    """
    Mean, over clusters, of the largest Jaccard overlap between the
    cluster's top terms and any other cluster's. Clusters without terms
    count as fully overlapping.
    """
    k = len(term_sets)
    if k < 2:
        return 0.0
    overlaps = []
    for i in range(k):
        if not term_sets[i]:
            overlaps.append(1.0)
            continue
        best = 0.0
        for j in range(k):
            if i == j or not term_sets[j]:
                continue
            union = term_sets[i] | term_sets[j]
            best = max(best, len(term_sets[i] & term_sets[j]) / len(union))
        overlaps.append(best)
    return float(np.mean(overlaps))


# =============================================================================
# Stability
# =============================================================================

def bootstrap_stability(
    vectors: np.ndarray,
    labels: np.ndarray,
    cluster_fn: Callable[[np.ndarray], np.ndarray],
    resamples: int = 5,
    fraction: float = 0.8,
    seed: int = 0
) -> float:
    """
    Mean adjusted Rand index between the full clustering (restricted to a
    subset) and a re-clustering of that subset.

    A subset that cannot be clustered counts as zero agreement.
    """
    n = len(vectors)
    if resamples <= 0 or n < 3:
        return 1.0
    rng = np.random.default_rng(seed)
    m = max(2, int(round(n * fraction)))
    agreements = []
    for _ in range(resamples):
        idx = np.sort(rng.choice(n, size=m, replace=False))
        try:
            sub = cluster_fn(vectors[idx])
        except DegenerateClusteringError:
            agreements.append(0.0)
            continue
        agreements.append(adjusted_rand_score(labels[idx], sub))
    return float(np.mean(agreements))


def perturbation_stability(
    vectors: np.ndarray,
    labels: np.ndarray,
    cluster_fn: Callable[[np.ndarray], np.ndarray],
    perturbations: int = 3,
    noise: float = 0.05,
    seed: int = 0
) -> float:
    """
    Mean adjusted Rand index between the clustering and clusterings of
    Gaussian-noise perturbed copies of the vectors.
    """
    if perturbations <= 0:
        return 1.0
    rng = np.random.default_rng(seed)
    scale = noise / np.sqrt(vectors.shape[1])
    agreements = []
    for _ in range(perturbations):
        noisy = vectors + rng.normal(0.0, scale, size=vectors.shape)
        try:
            sub = cluster_fn(noisy)
        except DegenerateClusteringError:
            agreements.append(0.0)
            continue
        agreements.append(adjusted_rand_score(labels, sub))
    return float(np.mean(agreements))


# =============================================================================
# Composite
# =============================================================================

def composite_score(components: ComponentScores, weights: ScoreWeights) -> float:
    return float(
        weights.coherence * components.coherence
        + weights.separation * components.separation
        + weights.stability * components.stability
        - weights.dominance * components.dominance
        - weights.micro_clusters * components.micro_clusters
        - weights.label_penalty * components.label_penalty
        - weights.k_penalty * components.k_penalty
    )
