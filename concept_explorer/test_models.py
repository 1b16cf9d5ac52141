"""Tests for parameters, validation and data-model serialization."""

import numpy as np
import pytest

from concept_explorer.config import AnalysisParams, ScoreWeights
from concept_explorer.errors import ConfigurationError, InputError
from concept_explorer.models import (
    Sentence, Concept, CandidateResult, ComponentScores, SearchOutcome,
    AnchorAxis, AnchorPole, DominanceDiagnostics, SplitRecord
)


# =============================================================================
# Parameters
# =============================================================================

def test_default_params_are_valid():
    params = AnalysisParams()
    assert params.validate() is params


@pytest.mark.parametrize("overrides", [
    {'clustering_mode': 'spectral'},
    {'cut_type': 'height'},
    {'dimension_mode': 'scree'},
    {'k_concepts': 0},
    {'k_min': 10, 'k_max': 5},
    {'k_min_override': 8, 'k_max_override': 3},
    {'granularity_percent': 120},
    {'dominance_cap_threshold': 0.0},
    {'semantic_weight': 0.5, 'frequency_weight': 0.3},
    {'min_cluster_size': 0},
    {'unit_windows': ()},
    {'seed_candidates': 0},
    {'label_timeout': 0},
    {'embed_timeout': -1.0},
    {'score_weights': ScoreWeights(coherence=-1.0)},
])
def test_invalid_params_rejected(overrides):
    with pytest.raises(ConfigurationError):
        AnalysisParams(**overrides).validate()


def test_configuration_error_is_a_value_error():
    assert issubclass(ConfigurationError, ValueError)
    assert issubclass(InputError, ValueError)


def test_params_round_trip():
    params = AnalysisParams(k_concepts=4, auto_k=True, unit_windows=(1, 3),
                            score_weights=ScoreWeights(k_penalty=0.01))
    data = params.to_dict()
    assert data['unit_windows'] == [1, 3]
    assert data['score_weights']['k_penalty'] == 0.01
    assert AnalysisParams.from_dict(data) == params


def test_unknown_params_rejected():
    with pytest.raises(ConfigurationError):
        AnalysisParams.from_dict({'k_concepts': 3, 'clusters': 4})


# =============================================================================
# Models
# =============================================================================

def test_sentence_round_trip():
    s = Sentence(id='s1', juror='Juror A', text='Great daylight.', stance='praise',
                 embedding=np.array([0.1, 0.2]))
    again = Sentence.from_dict(s.to_dict())
    assert again == s
    assert np.allclose(again.embedding, s.embedding)


def test_concept_levels():
    primary = Concept(id='concept:0', label='glass', size=10, centroid=np.zeros(2))
    detail = Concept(id='concept:0.1', label='glass', size=4, centroid=np.zeros(2),
                     parent_id='concept:0', level='detail')
    assert not primary.is_detail
    assert detail.is_detail
    assert Concept.from_dict(detail.to_dict()) == detail


def test_search_outcome_summary():
    outcome = SearchOutcome(kind='k', best=None, leaderboard=[
        CandidateResult('k', {'k': 2}, 0.4, ComponentScores(coherence=0.9)),
        CandidateResult('k', {'k': 3}, 0.0, ComponentScores(), valid=False, reason='degenerate'),
        CandidateResult('k', {'k': 4}, 0.3, ComponentScores(coherence=0.8)),
    ])
    outcome.best = outcome.leaderboard[0]
    assert outcome.best_score == 0.4
    assert outcome.n_valid == 2
    assert SearchOutcome.from_dict(outcome.to_dict()) == outcome


def test_anchor_axis_round_trip_drops_cached_direction():
    axis = AnchorAxis('light', 'Dark vs Bright', AnchorPole('dark', ['dark']),
                      AnchorPole('bright', ['bright', 'airy']))
    axis._direction = np.ones(3)
    data = axis.to_dict()
    assert '_direction' not in data
    again = AnchorAxis.from_dict(data)
    assert again == axis
    assert again._direction is None
    assert again.seed_key == (('dark',), ('bright', 'airy'))


def test_dominance_diagnostics_round_trip():
    diag = DominanceDiagnostics(level='detail', threshold=0.4,
                                splits=[SplitRecord('detail', 12, [7, 5])], rounds=1)
    assert DominanceDiagnostics.from_dict(diag.to_dict()) == diag
