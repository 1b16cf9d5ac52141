"""End-to-end tests for ConceptExplorer."""

import json
import threading
import time
from collections import defaultdict

import numpy as np
import pytest

from concept_explorer import (
    ConceptExplorer, AnalysisParams, AnalysisResult, AnchorAxis, AnchorPole, Sentence,
    InputError, ConfigurationError, AnalysisCancelled
)
from concept_explorer.core import main
from concept_explorer.conftest import make_directions, make_sentences


def _analyze(sentences, **params):
    return ConceptExplorer(sentences, AnalysisParams(**params), verbose=False).analyze()


# =============================================================================
# Basic Analysis
# =============================================================================

def test_two_topics_two_jurors(two_topic_corpus):
    sentences, _ = two_topic_corpus
    result = _analyze(sentences, k_concepts=2)

    assert [c.id for c in result.primary_concepts] == ['concept:0', 'concept:1']
    assert sorted(c.size for c in result.primary_concepts) == [5, 5]
    assert set(result.juror_vectors) == {'Juror A', 'Juror B'}
    for vector in result.juror_vectors.values():
        assert sum(vector.values()) == pytest.approx(1.0)
        assert all(0 < w <= 1 for w in vector.values())
    # Juror A wrote 3 of its 5 sentences on the first topic
    assert result.juror_vectors['Juror A'] == pytest.approx({'concept:0': 0.6, 'concept:1': 0.4})

    kinds = {n.kind for n in result.nodes}
    assert kinds == {'concept', 'juror'}
    assert len(result.nodes) == 4
    juror_links = [l for l in result.links if l.kind == 'juror-concept']
    assert len(juror_links) == 4
    assert all(l.stance in ('praise', 'critique', 'suggestion', 'neutral') for l in juror_links)
    assert all(l.evidence_ids for l in juror_links)


def test_every_sentence_assigned(three_topic_corpus):
    sentences, _ = three_topic_corpus
    result = _analyze(sentences, k_concepts=3, clustering_mode='hierarchical')
    assert set(result.assignments) == {s.id for s in sentences}
    assert set(result.assignments.values()) == {'concept:0', 'concept:1', 'concept:2'}
    assert sum(c.size for c in result.primary_concepts) == len(sentences)


def test_same_snapshot_same_result(three_topic_corpus):
    sentences, _ = three_topic_corpus
    first = _analyze(sentences, k_concepts=3, soft_membership=True)
    second = _analyze(sentences, k_concepts=3, soft_membership=True)
    assert first.to_dict() == second.to_dict()


def test_concept_metadata(three_topic_corpus):
    sentences, _ = three_topic_corpus
    result = _analyze(sentences, k_concepts=3, clustering_mode='hierarchical')
    for concept in result.primary_concepts:
        assert concept.top_terms
        assert 0 < len(concept.representative_sentence_ids) <= 8
        assert all(result.assignments[sid] == concept.id
                   for sid in concept.representative_sentence_ids)
        assert concept.label_source == 'rule'
        node = result.node(concept.id)
        assert sum(node.meta['stance_counts'].values()) == concept.size
        assert sum(node.meta['juror_distribution'].values()) == concept.size


def test_soft_memberships_sum_to_one(three_topic_corpus):
    sentences, _ = three_topic_corpus
    result = _analyze(sentences, k_concepts=3, soft_membership=True)
    totals = defaultdict(float)
    for m in result.memberships:
        assert 0 < m.weight <= 1
        totals[m.sentence_id] += m.weight
    assert len(totals) == len(sentences)
    assert all(t == pytest.approx(1.0) for t in totals.values())


def test_projection_and_axis_labels(three_topic_corpus):
    sentences, _ = three_topic_corpus
    result = _analyze(sentences, k_concepts=3, num_dimensions=2)
    assert result.applied_num_dimensions == 2
    assert len(result.axis_labels) == 2
    assert all(len(n.pc_values) == 2 for n in result.nodes)
    ev = result.variance_stats.explained_variances
    assert ev == sorted(ev, reverse=True)
    assert 0 <= result.health['overall_score'] <= 1


def test_threshold_dimension_mode(three_topic_corpus):
    sentences, _ = three_topic_corpus
    result = _analyze(sentences, k_concepts=3, dimension_mode='threshold', variance_threshold=0.5)
    stats = result.variance_stats
    n = result.applied_num_dimensions
    assert stats.cumulative_variances[n - 1] / stats.total_variance >= 0.5
    if n > 1:
        assert stats.cumulative_variances[n - 2] / stats.total_variance < 0.5


def test_hierarchical_granularity(three_topic_corpus):
    sentences, _ = three_topic_corpus
    result = _analyze(sentences, clustering_mode='hierarchical', cut_type='granularity',
                      granularity_percent=50)
    assert result.stats['total_concepts'] == len(result.primary_concepts) >= 1


# =============================================================================
# Errors, Progress, Cancellation
# =============================================================================

def test_too_few_sentences_for_k(two_topic_corpus):
    sentences, _ = two_topic_corpus
    with pytest.raises(InputError):
        _analyze(sentences, k_concepts=20)


def test_single_sentence_rejected(two_topic_corpus):
    sentences, _ = two_topic_corpus
    with pytest.raises(InputError):
        _analyze(sentences[:1], k_concepts=1)


def test_contradictory_params_rejected(two_topic_corpus):
    sentences, _ = two_topic_corpus
    with pytest.raises(ConfigurationError):
        ConceptExplorer(sentences, AnalysisParams(k_min_override=9, k_max_override=3),
                        verbose=False)


def test_k_clamped_to_distinct_vectors():
    base = np.eye(3)
    sentences = [Sentence(id=f"s{i}", juror=f"J{i % 2}", text='facade glass', stance='praise',
                          embedding=base[i % 3]) for i in range(6)]
    with pytest.warns(UserWarning):
        result = _analyze(sentences, k_concepts=5)
    assert len(result.primary_concepts) == 3


def test_progress_events_end_with_single_done(two_topic_corpus):
    sentences, _ = two_topic_corpus
    events = []
    ConceptExplorer(sentences, AnalysisParams(k_concepts=2), verbose=False).analyze(events.append)
    progress = [e['progress'] for e in events]
    assert progress == sorted(progress)
    assert all(0 <= p <= 100 for p in progress)
    terminal = [e for e in events if e.get('done') or 'error' in e]
    assert terminal == [events[-1]]
    assert events[-1]['done'] is True


def test_failed_run_ends_with_single_error(two_topic_corpus):
    sentences, _ = two_topic_corpus
    events = []
    explorer = ConceptExplorer(sentences, AnalysisParams(k_concepts=20), verbose=False)
    with pytest.raises(InputError):
        explorer.analyze(events.append)
    terminal = [e for e in events if e.get('done') or 'error' in e]
    assert terminal == [events[-1]]
    assert 'error' in events[-1]


def test_cancelled_run(two_topic_corpus):
    sentences, _ = two_topic_corpus
    cancel = threading.Event()
    cancel.set()
    events = []
    explorer = ConceptExplorer(sentences, AnalysisParams(k_concepts=2, auto_k=True),
                               verbose=False)
    with pytest.raises(AnalysisCancelled):
        explorer.analyze(events.append, cancel_event=cancel)
    assert 'error' in events[-1]
    assert not any(e.get('done') for e in events)


# =============================================================================
# Searches, Hygiene, Detail Concepts
# =============================================================================

def test_all_searches(three_topic_corpus):
    sentences, _ = three_topic_corpus
    result = _analyze(sentences, auto_k=True, auto_seed=True, auto_unit=True, auto_weights=True,
                      k_min_override=2, k_max_override=4, seed_candidates=3,
                      unit_windows=(1, 2), stability_resamples=2)
    assert set(result.searches) == {'unit', 'weights', 'k', 'seed'}
    assert 2 <= result.chosen['k'] <= 4
    assert result.chosen['unit_window'] in (1, 2)
    assert result.chosen['semantic_weight'] + result.chosen['frequency_weight'] == \
        pytest.approx(1.0)
    assert result.chosen['seed'] == result.searches['seed'].best.params['seed']
    assert len(result.primary_concepts) == result.chosen['k']


def test_k_search_picks_topic_count(three_topic_corpus):
    sentences, _ = three_topic_corpus
    result = _analyze(sentences, auto_k=True, clustering_mode='hierarchical',
                      k_min_override=2, k_max_override=6)
    assert result.chosen['k'] == 3
    assert result.searches['k'].reasoning


def test_min_cluster_size_merges_small_concept():
    sentences, _ = make_sentences([3, 7])
    result = _analyze(sentences, k_concepts=2, min_cluster_size=4)
    assert [c.size for c in result.primary_concepts] == [10]
    assert result.hygiene['merge']['merged_count'] == 1


def test_dominance_cap_diagnostics():
    sentences, _ = make_sentences([10, 10, 5, 5])
    result = _analyze(sentences, k_concepts=2, clustering_mode='hierarchical',
                      dominance_cap=True, dominance_cap_threshold=0.4)
    diag = result.hygiene['dominance'][0]
    assert diag['level'] == 'primary'
    assert diag['resolved']
    assert max(c.size for c in result.primary_concepts) <= 0.4 * 30


def test_detail_concepts(three_topic_corpus):
    sentences, _ = three_topic_corpus
    result = _analyze(sentences, k_concepts=3, clustering_mode='hierarchical',
                      detail_concepts=True)
    details = result.detail_concepts
    assert len(details) == 6
    assert result.stats['total_detail_concepts'] == 6
    for detail in details:
        parent = result.concept(detail.parent_id)
        assert not parent.is_detail
        assert detail.id in parent.detail_concept_ids
        assert detail.id.startswith(parent.id + '.')
        assert not detail.detail_concept_ids
    for parent in result.primary_concepts:
        assert sum(result.concept(d).size for d in parent.detail_concept_ids) == parent.size


# =============================================================================
# Labels and Anchor Axes
# =============================================================================

def test_synthesized_labels(two_topic_corpus):
    sentences, _ = two_topic_corpus

    def synth(request):
        return {'title': 'Daylight and Facade Quality', 'one_liner': 'More light wanted.'}

    result = ConceptExplorer(sentences, AnalysisParams(k_concepts=2), synthesizer=synth,
                             verbose=False).analyze()
    assert all(c.label_source == 'synthesizer' for c in result.concepts)
    assert result.concepts[0].one_liner == 'More light wanted.'


def test_echoing_synthesizer_falls_back(two_topic_corpus):
    sentences, _ = two_topic_corpus

    def echo(request):
        return {'title': request['sentences'][0]}

    with pytest.warns(UserWarning):
        result = ConceptExplorer(sentences, AnalysisParams(k_concepts=2), synthesizer=echo,
                                 verbose=False).analyze()
    assert all(c.label_source in ('rule', 'fallback') for c in result.concepts)


def _light_axis():
    return AnchorAxis('light', 'Topic 0 vs Topic 1', AnchorPole('first', ['first topic']),
                      AnchorPole('second', ['second topic']))


def test_anchor_axes_score_nodes(two_topic_corpus):
    sentences, truth = two_topic_corpus
    dirs = make_directions(2)
    vectors = {'first topic': dirs[0], 'second topic': dirs[1]}
    explorer = ConceptExplorer(sentences, AnalysisParams(k_concepts=2),
                               embedder=lambda text: vectors[text],
                               anchor_axes=[_light_axis()], verbose=False)
    result = explorer.analyze()
    first = result.node('concept:0').anchor_scores['light']
    second = result.node('concept:1').anchor_scores['light']
    assert first < 0 < second
    assert all(-1 <= n.anchor_scores['light'] <= 1 for n in result.nodes)


def test_anchor_axes_without_embedder_skipped(two_topic_corpus):
    sentences, _ = two_topic_corpus
    explorer = ConceptExplorer(sentences, AnalysisParams(k_concepts=2),
                               anchor_axes=[_light_axis()], verbose=False)
    with pytest.warns(UserWarning):
        result = explorer.analyze()
    assert all(n.anchor_scores == {} for n in result.nodes)


def test_stalled_anchor_embedder_is_bounded(two_topic_corpus):
    sentences, _ = two_topic_corpus
    release = threading.Event()

    def stalled(text):
        release.wait(5.0)
        return make_directions(2)[0]

    explorer = ConceptExplorer(sentences, AnalysisParams(k_concepts=2, embed_timeout=0.1),
                               embedder=stalled, anchor_axes=[_light_axis()], verbose=False)
    started = time.monotonic()
    try:
        with pytest.warns(UserWarning, match="timed out"):
            result = explorer.analyze()
    finally:
        release.set()
    assert time.monotonic() - started < 3.0
    assert all(n.anchor_scores == {} for n in result.nodes)


# =============================================================================
# Serialization and CLI
# =============================================================================

def test_result_json_round_trip(three_topic_corpus, tmp_path):
    sentences, _ = three_topic_corpus
    result = _analyze(sentences, k_concepts=3, auto_k=True, k_min_override=2,
                      k_max_override=3, stability_resamples=1)
    path = tmp_path / 'analysis.json'
    result.save(path)
    loaded = AnalysisResult.load(path)
    assert loaded.to_dict() == result.to_dict()
    assert loaded.searches['k'].best.params == result.searches['k'].best.params


def _write_records(path, sentences):
    path.write_text(json.dumps([s.to_dict() for s in sentences]), encoding='utf-8')


def test_from_json(two_topic_corpus, tmp_path):
    sentences, _ = two_topic_corpus
    path = tmp_path / 'sentences.json'
    path.write_text(json.dumps({
        'sentences': [s.to_dict() for s in sentences],
        'params': {'k_concepts': 2},
    }), encoding='utf-8')
    explorer = ConceptExplorer.from_json(path, verbose=False)
    assert explorer.params.k_concepts == 2
    assert len(explorer.analyze().primary_concepts) == 2


def test_cli(two_topic_corpus, tmp_path, capsys):
    sentences, _ = two_topic_corpus
    src = tmp_path / 'sentences.json'
    out = tmp_path / 'analysis.json'
    _write_records(src, sentences)
    assert main([str(src), '-o', str(out), '--k', '2']) == 0
    assert len(AnalysisResult.load(out).primary_concepts) == 2
    assert 'Found 2 concepts' in capsys.readouterr().out


def test_cli_quiet_prints_nothing(two_topic_corpus, tmp_path, capsys):
    sentences, _ = two_topic_corpus
    src = tmp_path / 'sentences.json'
    out = tmp_path / 'analysis.json'
    _write_records(src, sentences)
    assert main([str(src), '-o', str(out), '--k', '2', '--quiet']) == 0
    assert out.exists()
    assert capsys.readouterr().out == ''


def test_cli_rejects_impossible_k(two_topic_corpus, tmp_path):
    sentences, _ = two_topic_corpus
    src = tmp_path / 'sentences.json'
    _write_records(src, sentences)
    with pytest.raises(SystemExit):
        main([str(src), '--k', '50', '--quiet'])
