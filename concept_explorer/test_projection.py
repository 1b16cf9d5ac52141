"""Tests for principal axes, dimension selection and anchor axes."""

import threading
import time

import numpy as np
import pytest

from concept_explorer.errors import ConfigurationError, ExternalServiceError
from concept_explorer.models import AnchorAxis, AnchorPole
from concept_explorer.projection import (
    principal_axes, select_num_dimensions, label_axes, anchor_direction, score_anchor_axes
)


# =============================================================================
# Principal Axes
# =============================================================================

def test_axes_ordered_by_variance():
    rng = np.random.default_rng(0)
    X = rng.normal(size=(200, 3)) * np.array([3.0, 1.0, 0.1])
    pca = principal_axes(X)
    ev = pca.explained_variances
    assert np.all(np.diff(ev) <= 0)
    assert pca.n_components == 3
    assert abs(pca.components[0, 0]) > 0.95
    assert ev.sum() == pytest.approx(pca.total_variance)


def test_component_signs_are_fixed():
    rng = np.random.default_rng(1)
    X = rng.normal(size=(50, 4))
    for component in principal_axes(X).components:
        assert component[np.argmax(np.abs(component))] > 0
    assert np.allclose(principal_axes(-X).explained_variances,
                       principal_axes(X).explained_variances)


def test_fewer_points_than_dimensions_matches_svd():
    rng = np.random.default_rng(2)
    X = rng.normal(size=(5, 12))
    pca = principal_axes(X)
    Xc = X - X.mean(axis=0)
    _, s, Vt = np.linalg.svd(Xc, full_matrices=False)
    expected = s ** 2 / (len(X) - 1)
    assert pca.n_components == 4
    assert np.allclose(pca.explained_variances, expected[:4])
    assert pca.total_variance == pytest.approx(expected.sum())
    for i in range(4):
        assert abs(np.dot(pca.components[i], Vt[i])) == pytest.approx(1.0, abs=1e-6)


def test_transform_zero_pads_missing_axes():
    rng = np.random.default_rng(3)
    X = np.zeros((10, 3))
    X[:, :2] = rng.normal(size=(10, 2))
    pca = principal_axes(X)
    assert pca.n_components == 2
    coords = pca.transform(X, 4)
    assert coords.shape == (10, 4)
    assert np.allclose(coords[:, 2:], 0.0)


def test_single_vector_has_no_axes():
    pca = principal_axes(np.ones((1, 4)))
    assert pca.n_components == 0
    assert pca.transform(np.ones((1, 4)), 2).shape == (1, 2)


def test_variance_stats():
    pca = principal_axes(np.random.default_rng(4).normal(size=(20, 3)))
    stats = pca.variance_stats()
    assert stats.cumulative_variances[-1] == pytest.approx(sum(stats.explained_variances))


# =============================================================================
# Dimension Selection
# =============================================================================

def test_threshold_mode():
    assert select_num_dimensions('threshold', [0.5, 0.3, 0.15, 0.05], 1.0,
                                 variance_threshold=0.9) == 3
    assert select_num_dimensions('threshold', [0.5, 0.3, 0.15, 0.05], 1.0,
                                 variance_threshold=0.5) == 1


def test_elbow_mode():
    assert select_num_dimensions('elbow', [10, 2, 1.9, 1.8], 15.7) == 1
    assert select_num_dimensions('elbow', [5, 4, 3, 0.5, 0.45], 12.95) == 3
    assert select_num_dimensions('elbow', [1.0, 0.5], 1.5) == 1


def test_elbow_without_qualifying_gap_keeps_all():
    assert select_num_dimensions('elbow', [4, 3, 2, 1], 10) == 4


def test_manual_mode_is_clamped():
    assert select_num_dimensions('manual', [3, 2, 1], 6, num_dimensions=2) == 2
    assert select_num_dimensions('manual', [3, 2, 1], 6, num_dimensions=5) == 3


def test_unknown_mode_rejected():
    with pytest.raises(ConfigurationError):
        select_num_dimensions('scree', [3, 2, 1], 6)


# =============================================================================
# Axis Labels
# =============================================================================

def test_axis_poles_are_extreme_nodes():
    coords = np.array([[-1.0, 0.0], [2.0, 1.0], [0.0, -3.0]])
    labels = label_axes(coords, ['a', 'b', 'c'], {'a': 'Alpha', 'b': 'Beta'})
    assert len(labels) == 2
    assert labels[0].name == 'Alpha vs Beta'
    assert labels[0].negative_node_id == 'a'
    assert labels[1].negative_pole == 'c'
    assert labels[1].positive_node_id == 'b'
    for label in labels:
        column = coords[:, label.axis_index]
        assert column[['a', 'b', 'c'].index(label.negative_node_id)] == column.min()
        assert column[['a', 'b', 'c'].index(label.positive_node_id)] == column.max()


# =============================================================================
# Anchor Axes
# =============================================================================

class CountingEmbedder:
    VECTORS = {'dark': [1.0, 0.0, 0.0], 'gloomy': [1.0, 0.1, 0.0],
               'bright': [0.0, 1.0, 0.0], 'airy': [0.0, 0.0, 1.0]}

    def __init__(self):
        self.calls = 0

    def embed(self, text):
        self.calls += 1
        return self.VECTORS[text]


def _axis(negative=('dark',), positive=('bright',)):
    return AnchorAxis(id='light', name='Dark vs Bright',
                      negative_pole=AnchorPole('dark', list(negative)),
                      positive_pole=AnchorPole('bright', list(positive)))


def test_anchor_direction_points_from_negative_to_positive():
    direction = anchor_direction(_axis(), CountingEmbedder())
    assert np.allclose(direction, np.array([-1.0, 1.0, 0.0]) / np.sqrt(2))


def test_anchor_direction_is_cached_until_seeds_change():
    embedder = CountingEmbedder()
    axis = _axis()
    first = anchor_direction(axis, embedder)
    calls = embedder.calls
    assert np.array_equal(anchor_direction(axis, embedder), first)
    assert embedder.calls == calls

    axis.positive_pole.seed_phrases.append('airy')
    changed = anchor_direction(axis, embedder)
    assert embedder.calls > calls
    assert not np.allclose(changed, first)


def test_anchor_axis_needs_seed_phrases():
    with pytest.raises(ConfigurationError):
        anchor_direction(_axis(negative=()), CountingEmbedder())


def test_anchor_embedding_failure():
    def broken(text):
        raise RuntimeError("offline")

    with pytest.raises(ExternalServiceError):
        anchor_direction(_axis(), broken)


def test_slow_anchor_embedding_times_out():
    release = threading.Event()

    def stalled(text):
        release.wait(5.0)
        return [1.0, 0.0, 0.0]

    started = time.monotonic()
    try:
        with pytest.raises(ExternalServiceError, match="timed out"):
            anchor_direction(_axis(), stalled, timeout=0.1)
    finally:
        release.set()
    assert time.monotonic() - started < 2.0


def test_score_anchor_axes():
    scores = score_anchor_axes([_axis()], {'juror:A': np.array([0.0, 2.0, 0.0]),
                                           'concept:0': np.array([1.0, 0.0, 0.0])},
                               CountingEmbedder())
    assert scores['juror:A']['light'] == pytest.approx(1 / np.sqrt(2))
    assert scores['concept:0']['light'] == pytest.approx(-1 / np.sqrt(2))
