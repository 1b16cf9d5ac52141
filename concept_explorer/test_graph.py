"""Tests for juror vectors, evidence ranking and graph links."""

import numpy as np
import pytest

from concept_explorer.graph import (
    build_juror_vectors, rank_evidence, majority_stance, juror_concept_links,
    concept_concept_links, juror_juror_links, mark_bridges
)
from concept_explorer.models import GraphLink

JURORS = ['A', 'A', 'B']
MEMBERSHIPS = np.array([[1.0, 0.0], [0.5, 0.5], [0.0, 1.0]])
CONCEPTS = ['concept:0', 'concept:1']


def test_juror_vectors_sum_to_one():
    vectors = build_juror_vectors(JURORS, MEMBERSHIPS, CONCEPTS)
    assert vectors['A'] == pytest.approx({'concept:0': 0.75, 'concept:1': 0.25})
    assert vectors['B'] == {'concept:1': 1.0}
    for vector in vectors.values():
        assert sum(vector.values()) == pytest.approx(1.0)


def test_majority_stance():
    assert majority_stance(['praise', 'critique', 'critique']) == 'critique'
    assert majority_stance(['critique', 'praise']) == 'praise'
    assert majority_stance([]) == 'neutral'


def test_juror_concept_links_carry_stance_and_evidence():
    vectors = build_juror_vectors(JURORS, MEMBERSHIPS, CONCEPTS)
    links = juror_concept_links(JURORS, ['praise', 'critique', 'suggestion'],
                                ['s0', 's1', 's2'], MEMBERSHIPS, CONCEPTS, vectors,
                                min_edge_weight=0.3)
    pairs = {(l.source, l.target): l for l in links}
    assert set(pairs) == {('juror:A', 'concept:0'), ('juror:B', 'concept:1')}
    link = pairs[('juror:A', 'concept:0')]
    assert link.kind == 'juror-concept'
    assert link.weight == pytest.approx(0.75)
    assert link.stance == 'praise'
    assert link.evidence_ids == ['s0', 's1']
    assert pairs[('juror:B', 'concept:1')].stance == 'suggestion'


def test_concept_concept_links_above_threshold():
    centroids = np.array([[1.0, 0.0], [0.8, 0.6], [0.0, 1.0]])
    links = concept_concept_links(['c0', 'c1', 'c2'], centroids, threshold=0.7)
    assert [(l.source, l.target) for l in links] == [('c0', 'c1')]
    assert links[0].weight == pytest.approx(0.8)


def test_juror_juror_links():
    vectors = {'A': {'c0': 1.0}, 'B': {'c0': 0.9, 'c1': 0.1}, 'C': {'c1': 1.0}}
    links = juror_juror_links(vectors, ['c0', 'c1'], threshold=0.6)
    assert [(l.source, l.target) for l in links] == [('juror:A', 'juror:B')]
    assert juror_juror_links({'A': {'c0': 1.0}}, ['c0']) == []


def test_rank_evidence_blends_similarity_and_frequency():
    vectors = np.array([[1.0, 0.0], [0.8, 0.6], [0.0, 1.0]])
    centroid = np.array([1.0, 0.0])
    bm25 = np.array([0.0, 0.0, 10.0])
    assert rank_evidence(vectors, [0, 1, 2], centroid, bm25, 1.0, 0.0, top_n=2) == [0, 1]
    assert rank_evidence(vectors, [0, 1, 2], centroid, bm25, 0.0, 1.0, top_n=1) == [2]
    assert rank_evidence(vectors, [], centroid, bm25) == []


# =============================================================================
# Bridges
# =============================================================================

def _link(a, b):
    return GraphLink(source=a, target=b, kind='juror-concept', weight=1.0)


KINDS = {'concept:0': 'concept', 'concept:1': 'concept', 'juror:A': 'juror', 'juror:B': 'juror'}


def test_bridge_between_concept_groups():
    links = [_link('juror:A', 'concept:0'), _link('juror:A', 'concept:1'),
             _link('juror:B', 'concept:1')]
    assert mark_bridges(links, KINDS) == 2
    assert links[0].is_bridge and links[1].is_bridge
    # A leaf juror edge separates no concepts
    assert not links[2].is_bridge


def test_cycle_has_no_bridges():
    links = [_link('juror:A', 'concept:0'), _link('juror:A', 'concept:1'),
             GraphLink(source='concept:0', target='concept:1', kind='concept-concept', weight=0.9)]
    assert mark_bridges(links, KINDS) == 0
    assert not any(l.is_bridge for l in links)
