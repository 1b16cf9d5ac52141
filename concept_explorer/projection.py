#!/usr/bin/env python3
"""
Dimensionality Reduction & Axis Interpretation
==============================================

Projects juror and concept vectors into a few principal dimensions and
names each dimension by its extreme nodes.

Principal axes come from the eigendecomposition of the covariance matrix
of the node vectors (or of the Gram matrix when there are fewer nodes than
embedding dimensions). Axis 0 always explains the most variance. Axes are
only comparable within one run.

Dimension count:
  - manual:    a fixed number of dimensions
  - elbow:     the first index i >= 1 where the variance gap
               ev[i] - ev[i+1] falls below elbow_fraction * (ev[0] - ev[1])
  - threshold: the smallest N explaining varianceThreshold of the total

Anchor axes bypass PCA: the direction runs from the negative pole's
seed-phrase centroid to the positive pole's, and every node is scored by
its cosine projection on it.

Basic Usage:
    >>> pca = principal_axes(node_vectors)
    >>> n_dims = select_num_dimensions('threshold', pca.explained_variances,
    ...                                pca.total_variance, variance_threshold=0.9)
    >>> coords = pca.transform(node_vectors, n_dims)

License: MIT
"""

import numpy as np
from numpy.linalg import norm, eigh
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Sequence

from .errors import ConfigurationError
from .models import AnchorAxis, AxisLabel, VarianceStats
from .vectors import embed_phrases, normalize_rows

__all__ = [
    'PCAResult',
    'principal_axes',
    'select_num_dimensions',
    'label_axes',
    'anchor_direction',
    'score_anchor_axes',
]


# =============================================================================
# Principal Axes
# =============================================================================

@dataclass
class PCAResult:
    """
    Principal axes of a set of vectors.

    Attributes:
        mean: (d,) mean vector
        components: (m, d) unit principal directions, most variance first
        explained_variances: (m,) variance along each component, descending
        total_variance: Sum of variances over all directions
    """
    mean: np.ndarray
    components: np.ndarray
    explained_variances: np.ndarray
    total_variance: float

    @property
    def n_components(self) -> int:
        return len(self.explained_variances)

    @property
    def cumulative_variances(self) -> np.ndarray:
        return np.cumsum(self.explained_variances)

    def transform(self, vectors: np.ndarray, n_dims: int) -> np.ndarray:
        """Coordinates on the first n_dims axes, zero-padded past n_components."""
        X = np.atleast_2d(np.asarray(vectors, dtype=float)) - self.mean
        out = np.zeros((len(X), n_dims))
        m = min(n_dims, self.n_components)
        if m > 0:
            out[:, :m] = X @ self.components[:m].T
        return out

    def variance_stats(self) -> VarianceStats:
        return VarianceStats(
            explained_variances=[float(v) for v in self.explained_variances],
            cumulative_variances=[float(v) for v in self.cumulative_variances],
            total_variance=float(self.total_variance),
        )


def principal_axes(vectors: np.ndarray, max_components: int = 30) -> PCAResult:
    """
    Principal axes of the rows of `vectors`.

    Component signs are fixed so each component's largest absolute loading
    is positive, making the projection deterministic.

    Args:
        vectors: (n, d) array
        max_components: Maximum number of components kept

    Returns:
        PCAResult
    """
    X = np.atleast_2d(np.asarray(vectors, dtype=float))
    n, d = X.shape
    mean = X.mean(axis=0)
    if n < 2:
        return PCAResult(mean, np.zeros((0, d)), np.zeros(0), 0.0)

    Xc = X - mean
    if d <= n:
        evals, evecs = eigh(Xc.T @ Xc / (n - 1))
        order = np.argsort(evals)[::-1]
        evals = evals[order]
        components = evecs[:, order].T
    else:
        # Fewer points than dimensions: same non-zero spectrum from the Gram matrix
        evals, U = eigh(Xc @ Xc.T / (n - 1))
        order = np.argsort(evals)[::-1]
        evals = evals[order]
        components = (Xc.T @ U[:, order]).T
        components = components / (norm(components, axis=1, keepdims=True) + 1e-10)

    evals = np.clip(evals, 0.0, None)
    total = float(evals.sum())
    tol = 1e-10 * max(total, 1e-12)
    m = min(max_components, int(np.sum(evals > tol)))
    components = components[:m]
    for i in range(m):
        if components[i, np.argmax(np.abs(components[i]))] < 0:
            components[i] = -components[i]

    return PCAResult(mean, components, evals[:m], total)


def select_num_dimensions(
    mode: str,
    explained_variances: Sequence[float],
    total_variance: float,
    num_dimensions: int = 3,
    variance_threshold: float = 0.9,
    elbow_fraction: float = 0.1
) -> int:
    """
    Choose how many principal axes to keep.

    Args:
        mode: 'manual', 'elbow' or 'threshold'
        explained_variances: Descending variances per component
        total_variance: Total variance
        num_dimensions: Fixed count for 'manual'
        variance_threshold: Target explained fraction for 'threshold'
        elbow_fraction: Gap ratio for 'elbow'

    Returns:
        Number of dimensions, at least 1 and at most the number of
        components (when there is at least one)
    """
    ev = np.asarray(explained_variances, dtype=float)
    m = len(ev)
    cap = max(1, m)

    if mode == 'manual':
        return max(1, min(num_dimensions, cap))

    if mode == 'threshold':
        if m == 0 or total_variance <= 0:
            return 1
        ratios = np.cumsum(ev) / total_variance
        hits = np.where(ratios >= variance_threshold - 1e-12)[0]
        return int(hits[0]) + 1 if len(hits) else m

    if mode == 'elbow':
        if m < 3:
            return 1
        gaps = ev[:-1] - ev[1:]
        if gaps[0] <= 1e-12:
            return max(1, int(np.argmax(gaps)) + 1)
        for i in range(1, len(gaps)):
            if gaps[i] < elbow_fraction * gaps[0]:
                return i
        return m

    raise ConfigurationError(f"Unknown dimension mode: {mode}")


# =============================================================================
# Axis Labels
# =============================================================================

def label_axes(
    coords: np.ndarray,
    node_ids: Sequence[str],
    descriptions: Dict[str, str]
) -> List[AxisLabel]:
    """
    Name each axis by the nodes at its two extremes.

    Args:
        coords: (n_nodes, n_dims) projected coordinates
        node_ids: Node id per row
        descriptions: Human-readable description per node id

    Returns:
        One AxisLabel per dimension; the negative pole is the node with the
        minimal coordinate, the positive pole the maximal one (first node
        wins ties)
    """
    labels = []
    if len(node_ids) == 0:
        return labels
    for axis in range(coords.shape[1]):
        lo = int(np.argmin(coords[:, axis]))
        hi = int(np.argmax(coords[:, axis]))
        negative = descriptions.get(node_ids[lo], node_ids[lo])
        positive = descriptions.get(node_ids[hi], node_ids[hi])
        labels.append(AxisLabel(
            axis_index=axis,
            name=f"{negative} vs {positive}",
            negative_pole=negative,
            positive_pole=positive,
            negative_node_id=node_ids[lo],
            positive_node_id=node_ids[hi],
        ))
    return labels


# =============================================================================
# Anchor Axes
# =============================================================================

def anchor_direction(axis: AnchorAxis, embedder: Any, timeout: Optional[float] = None) -> np.ndarray:
    """
    Unit direction from the negative to the positive seed-phrase centroid.

    Cached on the axis; recomputed only when its seed phrases change.

    Raises:
        ConfigurationError: if a pole has no seed phrases
        ExternalServiceError: if embedding the seed phrases fails or a pole
            takes longer than timeout seconds
    """
    if axis._direction is not None and axis._seed_key == axis.seed_key:
        return axis._direction
    if not axis.negative_pole.seed_phrases or not axis.positive_pole.seed_phrases:
        raise ConfigurationError(f"Anchor axis '{axis.id}' needs seed phrases on both poles")

    negative = normalize_rows(embed_phrases(embedder, axis.negative_pole.seed_phrases, timeout))
    positive = normalize_rows(embed_phrases(embedder, axis.positive_pole.seed_phrases, timeout))
    negative_centroid = normalize_rows(negative.mean(axis=0))
    positive_centroid = normalize_rows(positive.mean(axis=0))

    direction = positive_centroid - negative_centroid
    direction = direction / (norm(direction) + 1e-10)
    axis._direction = direction
    axis._seed_key = axis.seed_key
    return direction


def score_anchor_axes(
    axes: Sequence[AnchorAxis],
    node_vectors: Dict[str, np.ndarray],
    embedder: Any,
    timeout: Optional[float] = None
) -> Dict[str, Dict[str, float]]:
    """
    Signed projection of every node on every anchor axis.

    Returns:
        {node_id: {axis_id: score in [-1, 1]}}
    """
    scores: Dict[str, Dict[str, float]] = {node_id: {} for node_id in node_vectors}
    for axis in axes:
        direction = anchor_direction(axis, embedder, timeout)
        for node_id, vec in node_vectors.items():
            v = np.asarray(vec, dtype=float)
            scores[node_id][axis.id] = float(np.dot(v / (norm(v) + 1e-10), direction))
    return scores
