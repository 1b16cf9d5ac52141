#!/usr/bin/env python3
"""
Hyperparameter Search for ConceptExplorer
=========================================

One generic search, run_search(), evaluates a finite list of candidate
configurations with a caller-supplied evaluator, scores each with the
composite objective, and keeps the best valid one. Candidates whose
clustering degenerates stay in the leaderboard with valid=False.

Four instantiations share it:

  - search_unit_window():      text-unit window (1, 2, 3 sentences)
  - search_evidence_weights(): (semantic, frequency) evidence blend,
                               on a grid summing to 1
  - search_k():                number of primary concepts, with a small
                               per-K penalty; smaller K wins near-ties
  - search_seed():             k-means seed, stability measured over noisy
                               re-clusterings, hygiene applied, label
                               penalty included

When several are enabled the pipeline runs them in the order
unit -> weights -> K -> seed, each starting from the winners so far.
Candidate sets never depend on another search's results.

Candidates are independent, so evaluation can be spread over a thread
pool (n_jobs > 1). Cancellation abandons all outstanding evaluations.

Basic Usage:
    >>> outcome = search_k(store, params, unit_window=1, seed=42)
    >>> outcome.best.params['k'], outcome.best_score

License: MIT
"""

import threading
import warnings
import numpy as np
from concurrent.futures import ThreadPoolExecutor
from typing import Any, Callable, Dict, List, Optional, Sequence, Tuple

from .clustering import build_dendrogram, cluster, compute_centroids
from .config import AnalysisParams, ScoreWeights
from .errors import AnalysisCancelled, DegenerateClusteringError
from .graph import concept_bm25_scores, rank_evidence
from .health import apply_concept_count_policy
from .hygiene import auto_min_cluster_size, merge_small_clusters, split_dominant_clusters
from .models import CandidateResult, ComponentScores, SearchOutcome
from .scoring import (
    coherence, separation, dominance_penalty, micro_cluster_penalty,
    label_penalty, bootstrap_stability, perturbation_stability, composite_score
)
from .terms import BM25Index, contrastive_top_terms, tokenize
from .vectors import VectorStore

__all__ = [
    'run_search',
    'evaluate_clustering',
    'k_search_range',
    'seed_candidates',
    'weight_grid',
    'search_unit_window',
    'search_evidence_weights',
    'search_k',
    'search_seed',
]

ProgressFn = Callable[[int, int], None]


# =============================================================================
# Generic Search
# =============================================================================

def run_search(
    kind: str,
    candidates: Sequence[Dict[str, Any]],
    evaluate: Callable[[Dict[str, Any]], ComponentScores],
    weights: ScoreWeights,
    n_jobs: int = 1,
    cancel_event: Optional[threading.Event] = None,
    progress: Optional[ProgressFn] = None,
    prefer_earlier_within: float = 0.0
) -> SearchOutcome:
    """
    Evaluate every candidate and pick the best valid one.

    Args:
        kind: Search name recorded on every CandidateResult
        candidates: Parameter dicts, in preference order
        evaluate: candidate -> ComponentScores; raises
                  DegenerateClusteringError for invalid candidates
        weights: Composite score weights
        n_jobs: Worker threads (1 = sequential)
        cancel_event: Set to abandon the search
        progress: Called as progress(done, total) after each candidate
        prefer_earlier_within: Earlier candidates within this distance of
                               the top score win

    Returns:
        SearchOutcome (best is None when no candidate is valid)

    Raises:
        AnalysisCancelled: if cancel_event is set during the search
    """
    total = len(candidates)

    def trial(candidate: Dict[str, Any]) -> CandidateResult:
        if cancel_event is not None and cancel_event.is_set():
            raise AnalysisCancelled(f"{kind} search cancelled")
        try:
            components = evaluate(candidate)
        except DegenerateClusteringError as e:
            return CandidateResult(kind=kind, params=dict(candidate), score=0.0,
                                   components=ComponentScores(), valid=False, reason=str(e))
        return CandidateResult(kind=kind, params=dict(candidate),
                               score=composite_score(components, weights),
                               components=components, valid=True)

    leaderboard: List[CandidateResult] = []
    if n_jobs <= 1 or total <= 1:
        for candidate in candidates:
            leaderboard.append(trial(candidate))
            if progress is not None:
                progress(len(leaderboard), total)
    else:
        with ThreadPoolExecutor(max_workers=n_jobs) as pool:
            futures = [pool.submit(trial, c) for c in candidates]
            try:
                for future in futures:
                    leaderboard.append(future.result())
                    if progress is not None:
                        progress(len(leaderboard), total)
            except AnalysisCancelled:
                for future in futures:
                    future.cancel()
                raise

    return SearchOutcome(kind=kind, best=_select_best(leaderboard, prefer_earlier_within),
                         leaderboard=leaderboard)


def _select_best(leaderboard: List[CandidateResult], epsilon: float) -> Optional[CandidateResult]:
    valid = [c for c in leaderboard if c.valid]
    if not valid:
        return None
    top = max(c.score for c in valid)
    for c in valid:
        if c.score >= top - epsilon:
            return c


# =============================================================================
# Shared Clustering Evaluator
# =============================================================================

def _top_term_sets(token_lists, labels: np.ndarray, k: int, top_n: int = 5):
    return [set(contrastive_top_terms(token_lists, np.where(labels == c)[0], top_n))
            for c in range(k)]


def evaluate_clustering(
    vectors: np.ndarray,
    k: int,
    params: AnalysisParams,
    seed: int,
    stability: str = 'bootstrap',
    apply_hygiene: bool = False,
    token_lists: Optional[List[List[str]]] = None,
    include_k_penalty: bool = False,
    dendrogram: Optional[np.ndarray] = None
) -> ComponentScores:
    """
    Cluster once and compute the raw score components.

    Args:
        vectors: (n, d) normalized vectors
        k: Number of clusters
        params: Analysis parameters (mode, cut, hygiene settings)
        seed: k-means seed
        stability: 'bootstrap' (subsets) or 'perturbation' (noisy copies)
        apply_hygiene: Run min-size merge and dominance cap (when enabled in
                       params) before scoring
        token_lists: Tokenized sentences; enables the label penalty
        include_k_penalty: Record k as the k-penalty component
        dendrogram: Precomputed merge table (hierarchical mode)

    Raises:
        DegenerateClusteringError: if the clustering is invalid
    """
    n = len(vectors)
    result = cluster(vectors, k, mode=params.clustering_mode, seed=seed,
                     cut_type=params.cut_type,
                     granularity_percent=params.granularity_percent,
                     dendrogram=dendrogram)
    if params.cut_type == 'count' and result.k < k:
        raise DegenerateClusteringError(f"Produced {result.k} clusters, {k} requested")

    raw_labels = result.assignments
    labels = raw_labels
    min_size = params.min_cluster_size or auto_min_cluster_size(n)
    if apply_hygiene:
        if params.min_cluster_size is not None or params.auto_min_cluster_size:
            labels, _ = merge_small_clusters(vectors, labels, min_size)
        if params.dominance_cap:
            labels, _ = split_dominant_clusters(
                vectors, labels, params.dominance_cap_threshold,
                params.dominance_max_rounds, seed, warn=False)
    n_clusters = int(labels.max()) + 1
    centroids = compute_centroids(vectors, labels, n_clusters)

    def recluster(V: np.ndarray) -> np.ndarray:
        return cluster(V, result.k, mode=params.clustering_mode, seed=seed,
                       cut_type='count').assignments

    if stability == 'perturbation':
        stab = perturbation_stability(vectors, raw_labels, recluster,
                                      params.seed_perturbations, params.seed_noise,
                                      seed=params.cluster_seed)
    else:
        stab = bootstrap_stability(vectors, raw_labels, recluster,
                                   params.stability_resamples, params.stability_fraction,
                                   seed=params.cluster_seed)

    return ComponentScores(
        coherence=coherence(vectors, labels, centroids),
        separation=separation(centroids),
        stability=stab,
        dominance=dominance_penalty(labels, params.dominance_cap_threshold),
        micro_clusters=micro_cluster_penalty(labels, min_size),
        label_penalty=(label_penalty(_top_term_sets(token_lists, labels, n_clusters))
                       if token_lists is not None else 0.0),
        k_penalty=float(result.k) if include_k_penalty else 0.0,
    )


# =============================================================================
# Candidate Sets
# =============================================================================

def k_search_range(params: AnalysisParams, n_sentences: int) -> Tuple[int, int]:
    """
    Inclusive K range for K search.

    Overrides replace the defaults. The concept-count policy (if enabled)
    caps only the default upper bound and never drops below an explicit
    k_min_override. The upper bound is always capped by the corpus size;
    a lower bound above it is lowered with a warning. Lower bound >= 2.
    """
    lo = params.k_min_override if params.k_min_override is not None else params.k_min
    hi = params.k_max_override if params.k_max_override is not None else params.k_max
    lo = max(2, lo)
    if params.apply_concept_policy and params.k_max_override is None:
        cap = apply_concept_count_policy(hi, n_sentences).adjusted_k
        if params.k_min_override is not None:
            cap = max(cap, lo)
        hi = min(hi, cap)
    hi = min(hi, n_sentences)
    if lo > hi:
        warnings.warn(f"K range starts at {lo} but {n_sentences} sentences allow at most "
                      f"K={hi}; searching K={hi}")
        lo = hi
    return lo, hi


def seed_candidates(base_seed: int, count: int) -> List[int]:
    """The base seed followed by count-1 distinct seeds drawn from it."""
    seeds = [int(base_seed)]
    rng = np.random.default_rng(base_seed)
    while len(seeds) < count:
        s = int(rng.integers(0, 2**31 - 1))
        if s not in seeds:
            seeds.append(s)
    return seeds


def weight_grid(step: float = 0.1) -> List[Tuple[float, float]]:
    """(semantic, frequency) pairs summing to 1, semantic ascending."""
    n_steps = max(1, int(round(1.0 / step)))
    pairs = []
    for i in range(n_steps + 1):
        s = round(i / n_steps, 6)
        pairs.append((s, round(1.0 - s, 6)))
    return pairs


# =============================================================================
# Instantiations
# =============================================================================

def search_unit_window(
    store: VectorStore,
    params: AnalysisParams,
    k: int,
    seed: int,
    cancel_event: Optional[threading.Event] = None,
    progress: Optional[ProgressFn] = None
) -> SearchOutcome:
    """Pick the text-unit window whose clustering scores best."""
    candidates = [{'unit_window': int(w)} for w in params.unit_windows]

    def evaluate(candidate):
        vectors = store.unit_vectors(candidate['unit_window'])
        return evaluate_clustering(vectors, k, params, seed)

    outcome = run_search('unit', candidates, evaluate, params.score_weights,
                         n_jobs=params.n_jobs, cancel_event=cancel_event, progress=progress)
    if outcome.best is not None:
        outcome.reasoning = (
            f"Window of {outcome.best.params['unit_window']} sentence(s) scored "
            f"{outcome.best.score:.3f} ({outcome.n_valid}/{len(candidates)} valid)"
        )
    else:
        outcome.reasoning = "No unit window produced a valid clustering"
    return outcome


def search_evidence_weights(
    store: VectorStore,
    params: AnalysisParams,
    unit_window: int,
    k: int,
    seed: int,
    token_lists: Optional[List[List[str]]] = None,
    cancel_event: Optional[threading.Event] = None,
    progress: Optional[ProgressFn] = None
) -> SearchOutcome:
    """
    Pick the (semantic, frequency) blend for representative evidence.

    The clustering is fixed; each weight pair selects a representative set
    per concept, judged by:
      coherence:     mean of 0.5 * centroid similarity + 0.5 * normalized
                     BM25 over the chosen sentences (central and salient)
      separation:    mean margin of each chosen sentence's similarity to its
                     own centroid over the closest other centroid
      stability:     mean Jaccard agreement of the chosen sets with those of
                     the neighbouring grid points
      label_penalty: vocabulary overlap between concepts' chosen sentences
    """
    if token_lists is None:
        token_lists = [tokenize(t) for t in store.texts]
    vectors = store.unit_vectors(unit_window)
    grid = weight_grid(params.weight_grid_step)
    candidates = [{'semantic_weight': s, 'frequency_weight': f} for s, f in grid]

    try:
        base = cluster(vectors, k, mode=params.clustering_mode, seed=seed,
                       cut_type=params.cut_type,
                       granularity_percent=params.granularity_percent)
    except DegenerateClusteringError as e:
        leaderboard = [CandidateResult(kind='weights', params=c, score=0.0,
                                       components=ComponentScores(), valid=False, reason=str(e))
                       for c in candidates]
        return SearchOutcome(kind='weights', best=None, leaderboard=leaderboard,
                             reasoning=f"Clustering degenerate, weights not searched: {e}")

    index = BM25Index(token_lists)
    groups = []
    for c in range(base.k):
        members = np.where(base.assignments == c)[0]
        terms = contrastive_top_terms(token_lists, members, params.top_terms)
        bm25 = concept_bm25_scores(index, members, terms)
        peak = bm25.max() if len(bm25) else 0.0
        norm_bm25 = dict(zip(members.tolist(), (bm25 / peak if peak > 0 else bm25).tolist()))
        groups.append((members, bm25, norm_bm25))

    centroids = base.centroids
    sims = vectors @ centroids.T

    def representatives(s: float, f: float) -> List[List[int]]:
        return [rank_evidence(vectors, members, centroids[c], bm25, s, f,
                              params.representative_count)
                for c, (members, bm25, _) in enumerate(groups)]

    chosen_by_pair = {pair: representatives(*pair) for pair in grid}

    def evaluate(candidate):
        pair = (candidate['semantic_weight'], candidate['frequency_weight'])
        reps = chosen_by_pair[pair]
        quality, margins = [], []
        for c, rows in enumerate(reps):
            norm_bm25 = groups[c][2]
            quality.append(np.mean([0.5 * max(0.0, sims[r, c]) + 0.5 * norm_bm25[r]
                                    for r in rows]))
            for r in rows:
                others = np.delete(sims[r], c)
                margins.append(sims[r, c] - (others.max() if len(others) else 0.0))

        pos = grid.index(pair)
        neighbours = [grid[p] for p in (pos - 1, pos + 1) if 0 <= p < len(grid)]
        agreement = []
        for other in neighbours:
            for a, b in zip(reps, chosen_by_pair[other]):
                union = set(a) | set(b)
                agreement.append(len(set(a) & set(b)) / len(union) if union else 1.0)

        rep_terms = [set(t for r in rows for t in token_lists[r]) for rows in reps]
        return ComponentScores(
            coherence=float(np.mean(quality)),
            separation=float(np.mean(margins)) if margins else 0.0,
            stability=float(np.mean(agreement)) if agreement else 1.0,
            label_penalty=label_penalty(rep_terms),
        )

    outcome = run_search('weights', candidates, evaluate, params.score_weights,
                         n_jobs=params.n_jobs, cancel_event=cancel_event, progress=progress)
    if outcome.best is not None:
        best = outcome.best.params
        outcome.reasoning = (
            f"Evidence blend semantic={best['semantic_weight']:.1f} / "
            f"frequency={best['frequency_weight']:.1f} scored {outcome.best.score:.3f}"
        )
    return outcome


def search_k(
    store: VectorStore,
    params: AnalysisParams,
    unit_window: int,
    seed: int,
    cancel_event: Optional[threading.Event] = None,
    progress: Optional[ProgressFn] = None
) -> SearchOutcome:
    """
    Pick the number of primary concepts.

    Every K in k_search_range() is scored with a per-K penalty; among
    candidates within k_tie_epsilon of the best score the smallest K wins.
    """
    vectors = store.unit_vectors(unit_window)
    lo, hi = k_search_range(params, len(store))
    candidates = [{'k': k} for k in range(lo, hi + 1)]
    dendrogram = build_dendrogram(vectors) if params.clustering_mode == 'hierarchical' else None

    def evaluate(candidate):
        return evaluate_clustering(vectors, candidate['k'], params, seed,
                                   include_k_penalty=True, dendrogram=dendrogram)

    outcome = run_search('k', candidates, evaluate, params.score_weights,
                         n_jobs=params.n_jobs, cancel_event=cancel_event, progress=progress,
                         prefer_earlier_within=params.k_tie_epsilon)
    if outcome.best is not None:
        outcome.reasoning = (
            f"K={outcome.best.params['k']} chosen from {lo}-{hi} "
            f"(score {outcome.best.score:.3f}, best {outcome.best_score:.3f}, "
            f"ties within {params.k_tie_epsilon} prefer smaller K)"
        )
    else:
        outcome.reasoning = f"No valid K in {lo}-{hi}"
    return outcome


def search_seed(
    store: VectorStore,
    params: AnalysisParams,
    unit_window: int,
    k: int,
    token_lists: Optional[List[List[str]]] = None,
    cancel_event: Optional[threading.Event] = None,
    progress: Optional[ProgressFn] = None
) -> SearchOutcome:
    """Pick the k-means seed whose hygienic clustering scores best."""
    if token_lists is None:
        token_lists = [tokenize(t) for t in store.texts]
    vectors = store.unit_vectors(unit_window)
    candidates = [{'seed': s} for s in seed_candidates(params.cluster_seed, params.seed_candidates)]

    def evaluate(candidate):
        return evaluate_clustering(vectors, k, params, candidate['seed'],
                                   stability='perturbation', apply_hygiene=True,
                                   token_lists=token_lists)

    outcome = run_search('seed', candidates, evaluate, params.score_weights,
                         n_jobs=params.n_jobs, cancel_event=cancel_event, progress=progress)
    if outcome.best is not None:
        outcome.reasoning = (
            f"Seed {outcome.best.params['seed']} best of {len(candidates)} "
            f"(score {outcome.best.score:.3f}, {params.seed_perturbations} perturbations each)"
        )
    else:
        outcome.reasoning = f"No seed among {len(candidates)} produced a valid clustering"
    return outcome
