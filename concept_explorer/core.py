#!/usr/bin/env python3
"""
ConceptExplorer: Juror-Concept Extraction and Embedding
=======================================================

Turns stance-tagged juror sentences (with embeddings) into an explainable
juror <-> concept graph:

  1. Concepts:   clusters of semantically related sentences (k-means or
                 hierarchical), cleaned by hygiene passes, optionally with
                 one level of detail concepts
  2. Embedding:  jurors and concepts projected onto a few principal axes,
                 each axis named by its extreme nodes, plus user-defined
                 anchor axes scored from seed phrases
  3. Graph:      weighted juror-concept, concept-concept and juror-juror
                 links with stances, evidence and bridge flags

Cluster count, seed, text-unit window and evidence-ranking weights can be
tuned automatically by multi-candidate search (auto_k, auto_seed,
auto_unit, auto_weights), run in the order unit -> weights -> K -> seed.

Every run is a pure computation over an immutable snapshot (sentences,
embeddings, parameters) and yields one immutable AnalysisResult. For a
fixed snapshot and cluster_seed, with auto_seed off, results are
identical across runs.

Basic Usage:
  >>> from concept_explorer import ConceptExplorer, AnalysisParams
  >>> ce = ConceptExplorer.from_records(records, params=AnalysisParams(k_concepts=6))
  >>> result = ce.analyze(progress=print)
  >>> [c.label for c in result.primary_concepts]
  ['lighting · facade · glass', 'circulation · stairs · access', ...]
  >>> result.save("analysis.json")

Command line:
  $ concept-explorer sentences.json -o analysis.json --k 6 --auto-seed

License: MIT
"""

__version__ = "0.1.0"

import json
import threading
import warnings
import numpy as np
from collections import Counter
from pathlib import Path
from typing import Any, Callable, Dict, Iterable, List, Optional, Sequence, Union

from .clustering import (
    cluster, cluster_details, compute_centroids, count_distinct, soft_memberships,
    hard_memberships
)
from .config import AnalysisParams, STANCES
from .errors import (
    AnalysisCancelled, ConfigurationError, DegenerateClusteringError,
    ExternalServiceError, InputError
)
from .graph import (
    build_juror_vectors, concept_bm25_scores, rank_evidence, juror_concept_links,
    concept_concept_links, juror_juror_links, mark_bridges
)
from .health import apply_concept_count_policy, evaluate_report_health
from .hygiene import (
    auto_min_cluster_size, merge_small_clusters, split_dominant_clusters,
    merge_similar_clusters
)
from .labels import label_concept
from .models import (
    AnalysisResult, AnchorAxis, Concept, GraphNode, MembershipWeight, Sentence
)
from .projection import principal_axes, select_num_dimensions, label_axes, score_anchor_axes
from .search import search_unit_window, search_evidence_weights, search_k, search_seed
from .terms import BM25Index, contrastive_top_terms, tokenize
from .vectors import VectorStore

__all__ = ['ConceptExplorer', 'ProgressReporter', 'main']

ProgressCallback = Callable[[Dict[str, Any]], None]


# =============================================================================
# Progress Channel
# =============================================================================

class ProgressReporter:
    """
    Emits {'progress': 0-100, 'step': str} events to a callback, followed
    by at most one terminal event carrying 'done': True or 'error': message.
    """

    def __init__(self, callback: Optional[ProgressCallback] = None, verbose: bool = False):
        self.callback = callback
        self.verbose = verbose
        self.finished = False
        self.last = 0

    def __call__(self, progress: float, step: str):
        if self.finished:
            return
        self.last = max(self.last, int(round(progress)))
        if self.verbose:
            print(f"  [{self.last:3d}%] {step}")
        if self.callback is not None:
            self.callback({'progress': self.last, 'step': step})

    def band(self, start: float, end: float, step: str) -> Callable[[int, int], None]:
        """Map search progress (done, total) onto [start, end]."""
        def report(done: int, total: int):
            self(start + (end - start) * done / max(total, 1), f"{step} ({done}/{total})")
        return report

    def done(self, step: str = 'Analysis complete'):
        if self.finished:
            return
        self.finished = True
        if self.callback is not None:
            self.callback({'progress': 100, 'step': step, 'done': True})

    def error(self, message: str):
        if self.finished:
            return
        self.finished = True
        if self.callback is not None:
            self.callback({'progress': self.last, 'step': 'Analysis failed', 'error': message})


def _check_cancel(cancel_event: Optional[threading.Event]):
    if cancel_event is not None and cancel_event.is_set():
        raise AnalysisCancelled("Analysis cancelled")


# =============================================================================
# Core ConceptExplorer Class
# =============================================================================

class ConceptExplorer:
    """
    Concept extraction and embedding over one snapshot of juror sentences.

    Pipeline of analyze():
      1. Searches (if enabled): unit window -> evidence weights -> K -> seed
      2. Clustering and hygiene (min-size merge, dominance cap, semantic merge)
      3. Concepts: centroids, top terms, representative evidence, labels,
         optional detail concepts
      4. Juror vectors, PCA projection, axis labels, anchor-axis scores
      5. Graph links, bridges, report health

    Example:
        >>> ce = ConceptExplorer(sentences, AnalysisParams(k_concepts=2))
        >>> result = ce.analyze()
        >>> result.juror_vectors['Juror A']
        {'concept:0': 0.8, 'concept:1': 0.2}
    """

    def __init__(
        self,
        sentences: Union[VectorStore, Sequence[Sentence]],
        params: AnalysisParams = None,
        embedder: Any = None,
        synthesizer: Any = None,
        anchor_axes: Sequence[AnchorAxis] = None,
        verbose: bool = True
    ):
        """
        Initialize ConceptExplorer.

        Args:
            sentences: Sentences with embeddings, or a prepared VectorStore
            params: Analysis parameters (validated immediately)
            embedder: Embedding provider, needed for anchor axes
            synthesizer: Optional label synthesizer
            anchor_axes: User-defined anchor axes
            verbose: Print progress messages

        Raises:
            ConfigurationError: on contradictory parameters
            InputError: on an empty or malformed corpus
        """
        self.params = (params if params is not None else AnalysisParams()).validate()
        self.store = sentences if isinstance(sentences, VectorStore) else VectorStore(sentences)
        self.embedder = embedder
        self.synthesizer = synthesizer
        self.anchor_axes = list(anchor_axes or [])
        self.verbose = verbose

        if verbose:
            print(f"ConceptExplorer initialized with {len(self.store)} sentences "
                  f"from {len(self.store.juror_blocks)} jurors ({self.store.dim}d)")

    @classmethod
    def from_records(
        cls,
        records: Iterable[Dict[str, Any]],
        embedder: Any = None,
        **kwargs
    ) -> 'ConceptExplorer':
        """Build from plain dicts (see VectorStore.from_records)."""
        params = kwargs.get('params') or AnalysisParams()
        store = VectorStore.from_records(records, embedder, timeout=params.embed_timeout)
        return cls(store, embedder=embedder, **kwargs)

    @classmethod
    def from_json(cls, filepath: Union[str, Path], **kwargs) -> 'ConceptExplorer':
        """
        Load a JSON file holding either a list of sentence records or an
        object with 'sentences' and optional 'params' and 'anchor_axes'.
        """
        data = json.loads(Path(filepath).read_text(encoding='utf-8'))
        if isinstance(data, list):
            data = {'sentences': data}
        if 'params' in data and 'params' not in kwargs:
            kwargs['params'] = AnalysisParams.from_dict(data['params'])
        if 'anchor_axes' in data and 'anchor_axes' not in kwargs:
            kwargs['anchor_axes'] = [AnchorAxis.from_dict(a) for a in data['anchor_axes']]
        embedder = kwargs.pop('embedder', None)
        return cls.from_records(data['sentences'], embedder=embedder, **kwargs)

    def __repr__(self) -> str:
        return (f"ConceptExplorer(sentences={len(self.store)}, "
                f"jurors={len(self.store.juror_blocks)}, k={self.params.k_concepts})")

    # =========================================================================
    # Analysis
    # =========================================================================

    def analyze(
        self,
        progress: Optional[ProgressCallback] = None,
        cancel_event: Optional[threading.Event] = None
    ) -> AnalysisResult:
        """
        Run the full pipeline.

        Args:
            progress: Called with progress event dicts
            cancel_event: Set from another thread to cancel the run

        Returns:
            AnalysisResult

        Raises:
            InputError: corpus too small for the requested concept count
            ConfigurationError: contradictory parameters
            AnalysisCancelled: cancel_event was set
        """
        reporter = ProgressReporter(progress, verbose=self.verbose)
        try:
            result = self._run(reporter, cancel_event)
        except Exception as e:
            reporter.error(str(e))
            raise
        reporter.done()
        return result

    def _validate_corpus(self):
        p = self.params
        n = len(self.store)
        if n < 2:
            raise InputError(f"At least 2 sentences are required, got {n}")
        if not p.auto_k and p.cut_type == 'count' and n < p.k_concepts:
            raise InputError(
                f"Corpus has {n} sentences, fewer than the {p.k_concepts} concepts requested"
            )

    # -------------------------------------------------------------------------
    # Searches
    # -------------------------------------------------------------------------

    def _run_searches(self, report: ProgressReporter, cancel_event, token_lists) -> tuple:
        """Run enabled searches in the order unit -> weights -> K -> seed."""
        p = self.params
        n = len(self.store)
        chosen = {
            'unit_window': p.unit_window,
            'semantic_weight': p.semantic_weight,
            'frequency_weight': p.frequency_weight,
            'k': min(p.k_concepts, n),
            'seed': p.cluster_seed,
        }
        searches = {}

        if p.auto_unit:
            report(5, 'Searching text-unit window')
            outcome = search_unit_window(self.store, p, chosen['k'], chosen['seed'],
                                         cancel_event, report.band(5, 15, 'Unit window'))
            searches['unit'] = outcome
            if outcome.best is not None:
                chosen['unit_window'] = outcome.best.params['unit_window']
            else:
                warnings.warn(f"Unit-window search found no valid candidate; "
                              f"keeping window {chosen['unit_window']}")

        if p.auto_weights:
            _check_cancel(cancel_event)
            report(15, 'Searching evidence weights')
            outcome = search_evidence_weights(self.store, p, chosen['unit_window'], chosen['k'],
                                              chosen['seed'], token_lists, cancel_event,
                                              report.band(15, 25, 'Evidence weights'))
            searches['weights'] = outcome
            if outcome.best is not None:
                chosen['semantic_weight'] = outcome.best.params['semantic_weight']
                chosen['frequency_weight'] = outcome.best.params['frequency_weight']

        if p.auto_k:
            _check_cancel(cancel_event)
            if p.clustering_mode == 'hierarchical' and p.cut_type == 'granularity':
                warnings.warn("K search skipped: granularity cuts do not use K")
            else:
                report(25, 'Searching number of concepts')
                outcome = search_k(self.store, p, chosen['unit_window'], chosen['seed'],
                                   cancel_event, report.band(25, 45, 'K search'))
                searches['k'] = outcome
                if outcome.best is not None:
                    chosen['k'] = outcome.best.params['k']
                else:
                    warnings.warn(f"K search found no valid candidate; keeping K={chosen['k']}")

        if p.auto_seed:
            _check_cancel(cancel_event)
            if p.clustering_mode != 'kmeans':
                warnings.warn("Seed search skipped: hierarchical clustering does not use a seed")
            else:
                report(45, 'Searching cluster seed')
                outcome = search_seed(self.store, p, chosen['unit_window'], chosen['k'],
                                      token_lists, cancel_event,
                                      report.band(45, 60, 'Seed search'))
                searches['seed'] = outcome
                if outcome.best is not None:
                    chosen['seed'] = outcome.best.params['seed']

        return chosen, searches

    # -------------------------------------------------------------------------
    # Concepts
    # -------------------------------------------------------------------------

    def _build_concept(
        self,
        concept_id: str,
        members: np.ndarray,
        centroid: np.ndarray,
        vectors: np.ndarray,
        token_lists: List[List[str]],
        index: BM25Index,
        chosen: Dict[str, Any],
        level: str = 'primary',
        parent_id: Optional[str] = None
    ) -> Concept:
        p = self.params
        top_terms = contrastive_top_terms(token_lists, members, p.top_terms)
        bm25 = concept_bm25_scores(index, members, top_terms)
        reps = rank_evidence(vectors, members, centroid, bm25,
                             chosen['semantic_weight'], chosen['frequency_weight'],
                             p.representative_count)
        evidence = [self.store.texts[r] for r in reps]
        label, one_liner, source = label_concept(concept_id, top_terms, evidence,
                                                 self.synthesizer, p.label_timeout)
        return Concept(
            id=concept_id,
            label=label,
            size=int(len(members)),
            centroid=centroid,
            top_terms=top_terms,
            representative_sentence_ids=[self.store.ids[r] for r in reps],
            parent_id=parent_id,
            level=level,
            one_liner=one_liner,
            label_source=source,
        )

    # -------------------------------------------------------------------------
    # Pipeline
    # -------------------------------------------------------------------------

    def _run(self, report: ProgressReporter, cancel_event) -> AnalysisResult:
        p = self.params
        store = self.store
        n = len(store)

        report(0, 'Preparing corpus')
        self._validate_corpus()
        token_lists = [tokenize(t) for t in store.texts]

        chosen, searches = self._run_searches(report, cancel_event, token_lists)
        _check_cancel(cancel_event)

        # ---------------------------------------------------------------------
        # Clustering and hygiene
        # ---------------------------------------------------------------------
        report(60, 'Clustering sentences')
        vectors = store.unit_vectors(chosen['unit_window'])
        if p.cut_type == 'count':
            distinct = count_distinct(vectors)
            if chosen['k'] > distinct:
                warnings.warn(f"K={chosen['k']} exceeds {distinct} distinct vectors; "
                              f"clamping K to {distinct}")
                chosen['k'] = distinct
        try:
            base = cluster(vectors, chosen['k'], mode=p.clustering_mode, seed=chosen['seed'],
                           cut_type=p.cut_type, granularity_percent=p.granularity_percent)
        except DegenerateClusteringError as e:
            raise InputError(f"Corpus cannot be clustered: {e}") from e
        labels = base.assignments

        hygiene: Dict[str, Any] = {'merge': None, 'dominance': [], 'semantic_merges': 0}
        if p.min_cluster_size is not None or p.auto_min_cluster_size:
            min_size = p.min_cluster_size or auto_min_cluster_size(n)
            labels, merge_diag = merge_small_clusters(vectors, labels, min_size)
            hygiene['merge'] = merge_diag.to_dict()
            if self.verbose and merge_diag.merged_count:
                print(f"  Merged {merge_diag.merged_count} clusters below size {min_size}")
        if p.dominance_cap:
            labels, dom_diag = split_dominant_clusters(
                vectors, labels, p.dominance_cap_threshold, p.dominance_max_rounds,
                chosen['seed'], level='primary')
            hygiene['dominance'].append(dom_diag.to_dict())
        if p.semantic_merge:
            labels, merged = merge_similar_clusters(vectors, labels, p.semantic_merge_threshold,
                                                    p.max_concept_share)
            hygiene['semantic_merges'] = merged

        k = int(labels.max()) + 1
        centroids = compute_centroids(vectors, labels, k)
        if p.soft_membership:
            memberships = soft_memberships(vectors, centroids, labels)
            centroids = compute_centroids(vectors, labels, k, weights=memberships)
        else:
            memberships = hard_memberships(labels, k)
        _check_cancel(cancel_event)

        # ---------------------------------------------------------------------
        # Concepts
        # ---------------------------------------------------------------------
        report(68, 'Building concepts')
        index = BM25Index(token_lists)
        concept_ids = [f"concept:{c}" for c in range(k)]
        concepts = []
        for c, concept_id in enumerate(concept_ids):
            members = np.where(labels == c)[0]
            concepts.append(self._build_concept(concept_id, members, centroids[c], vectors,
                                                token_lists, index, chosen))

        policy = apply_concept_count_policy(k, n)
        if p.detail_concepts or (p.auto_k and policy.requires_hierarchy):
            report(74, 'Building detail concepts')
            details = cluster_details(vectors, labels, p.detail_min_size, chosen['seed'],
                                      mode=p.clustering_mode)
            for c, (members, sub) in details.items():
                if p.dominance_cap:
                    sub, dom_diag = split_dominant_clusters(
                        vectors[members], sub, p.dominance_cap_threshold,
                        p.dominance_max_rounds, chosen['seed'], level='detail')
                    hygiene['dominance'].append(dom_diag.to_dict())
                parent = concepts[c]
                for j in range(int(sub.max()) + 1):
                    rows = members[sub == j]
                    detail_id = f"{parent.id}.{j}"
                    centroid = compute_centroids(vectors[rows], np.zeros(len(rows), dtype=int), 1)[0]
                    concepts.append(self._build_concept(detail_id, rows, centroid, vectors,
                                                        token_lists, index, chosen,
                                                        level='detail', parent_id=parent.id))
                    parent.detail_concept_ids.append(detail_id)
        _check_cancel(cancel_event)

        # ---------------------------------------------------------------------
        # Juror vectors and projection
        # ---------------------------------------------------------------------
        report(80, 'Projecting jurors and concepts')
        juror_vectors = build_juror_vectors(store.jurors, memberships, concept_ids)
        juror_centroids = store.juror_centroids(vectors)
        jurors = list(store.juror_blocks)
        juror_node_ids = [f"juror:{j}" for j in jurors]

        node_ids = concept_ids + juror_node_ids
        node_matrix = np.vstack([centroids] + [juror_centroids[j][None, :] for j in jurors])
        pca = principal_axes(node_matrix, p.max_scan_dimensions)
        n_dims = select_num_dimensions(p.dimension_mode, pca.explained_variances,
                                       pca.total_variance, p.num_dimensions,
                                       p.variance_threshold, p.elbow_fraction)
        coords = pca.transform(node_matrix, n_dims)

        primary = concepts[:k]
        descriptions = {c.id: ', '.join(c.top_terms[:3]) or c.label for c in primary}
        labels_by_id = {c.id: c.label for c in primary}
        for juror, node_id in zip(jurors, juror_node_ids):
            top = sorted(juror_vectors[juror].items(), key=lambda kv: -kv[1])[:2]
            descriptions[node_id] = f"{juror} ({' / '.join(labels_by_id[cid] for cid, _ in top)})"
        axis_labels = label_axes(coords, node_ids, descriptions)

        anchor_scores: Dict[str, Dict[str, float]] = {node_id: {} for node_id in node_ids}
        if self.anchor_axes:
            if self.embedder is None:
                warnings.warn("Anchor axes given without an embedder; anchor scores skipped")
            else:
                node_vectors = dict(zip(node_ids, node_matrix))
                try:
                    anchor_scores = score_anchor_axes(self.anchor_axes, node_vectors,
                                                      self.embedder, p.embed_timeout)
                except ExternalServiceError as e:
                    warnings.warn(f"Anchor axes skipped: {e}")
        _check_cancel(cancel_event)

        # ---------------------------------------------------------------------
        # Graph
        # ---------------------------------------------------------------------
        report(90, 'Assembling graph')
        nodes = []
        for c, concept in enumerate(primary):
            rows = np.where(labels == c)[0]
            nodes.append(GraphNode(
                id=concept.id,
                kind='concept',
                label=concept.label,
                size=concept.size,
                pc_values=[float(v) for v in coords[c]],
                anchor_scores=anchor_scores.get(concept.id, {}),
                meta={
                    'top_terms': list(concept.top_terms),
                    'representative_sentence_ids': list(concept.representative_sentence_ids),
                    'detail_concept_ids': list(concept.detail_concept_ids),
                    'juror_distribution': dict(Counter(store.jurors[r] for r in rows)),
                    'stance_counts': {s: sum(1 for r in rows if store.stances[r] == s)
                                      for s in STANCES},
                },
            ))
        for i, (juror, node_id) in enumerate(zip(jurors, juror_node_ids)):
            vec = juror_vectors[juror]
            nodes.append(GraphNode(
                id=node_id,
                kind='juror',
                label=juror,
                size=len(store.juror_blocks[juror]),
                pc_values=[float(v) for v in coords[k + i]],
                anchor_scores=anchor_scores.get(node_id, {}),
                meta={'top_concepts': [cid for cid, _ in
                                       sorted(vec.items(), key=lambda kv: -kv[1])[:3]]},
            ))

        links = juror_concept_links(store.jurors, store.stances, store.ids, memberships,
                                    concept_ids, juror_vectors, p.min_edge_weight)
        links += concept_concept_links(concept_ids, centroids, p.similarity_threshold)
        links += juror_juror_links(juror_vectors, concept_ids, p.similarity_threshold)
        n_bridges = mark_bridges(links, {node.id: node.kind for node in nodes})

        membership_list = [
            MembershipWeight(store.ids[i], concept_ids[c], float(memberships[i, c]))
            for i in range(n) for c in range(k) if memberships[i, c] > 0
        ]

        variance = pca.variance_stats()
        if pca.total_variance > 0 and pca.n_components > 0:
            explained = variance.cumulative_variances[min(n_dims, pca.n_components) - 1]
            axis_variance = explained / pca.total_variance
        else:
            axis_variance = 0.0
        health = evaluate_report_health(
            n, k, axis_variance,
            [len(node.meta['juror_distribution']) for node in nodes if node.kind == 'concept'],
        )

        chosen['k'] = k
        if self.verbose:
            print(f"  {k} concepts, {len(links)} links ({n_bridges} bridges), "
                  f"{n_dims} dimensions")

        return AnalysisResult(
            nodes=nodes,
            links=links,
            concepts=concepts,
            juror_vectors=juror_vectors,
            memberships=membership_list,
            assignments={store.ids[i]: concept_ids[labels[i]] for i in range(n)},
            axis_labels=axis_labels,
            anchor_axes=list(self.anchor_axes),
            variance_stats=variance,
            applied_num_dimensions=n_dims,
            searches=searches,
            hygiene=hygiene,
            health=health,
            chosen=dict(chosen),
            params=p.to_dict(),
            stats={
                'total_sentences': n,
                'total_jurors': len(jurors),
                'total_concepts': k,
                'total_detail_concepts': len(concepts) - k,
                'bridges': n_bridges,
                'policy': policy.reasoning,
            },
        )


# =============================================================================
# Command-Line Interface
# =============================================================================

def main(argv: Sequence[str] = None):
    """Command-line interface for ConceptExplorer."""
    import argparse

    parser = argparse.ArgumentParser(
        description='ConceptExplorer: juror-concept extraction and embedding',
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Input:
  A JSON list of sentence records {id, juror, text, stance, embedding}, or an
  object {"sentences": [...], "params": {...}, "anchor_axes": [...]}.

Examples:
  # Six concepts with k-means
  concept-explorer sentences.json -o analysis.json --k 6

  # Let the engine choose K and the seed
  concept-explorer sentences.json -o analysis.json --auto-k --auto-seed

  # Hierarchical clustering cut at 40% of the merge range
  concept-explorer sentences.json --mode hierarchical --cut-type granularity --granularity 40
        """
    )

    parser.add_argument('input', type=str, help='Path to sentence JSON')
    parser.add_argument('-o', '--output', type=str, help='Write the analysis result JSON here')
    parser.add_argument('--k', type=int, help='Number of concepts')
    parser.add_argument('--mode', choices=['kmeans', 'hierarchical'], help='Clustering mode')
    parser.add_argument('--cut-type', choices=['count', 'granularity'], help='Dendrogram cut')
    parser.add_argument('--granularity', type=float, help='Granularity percent (0-100)')
    parser.add_argument('--seed', type=int, help='Cluster seed')
    parser.add_argument('--soft', action='store_true', help='Soft membership')
    parser.add_argument('--detail', action='store_true', help='Build detail concepts')
    parser.add_argument('--min-cluster-size', type=int, help='Merge clusters below this size')
    parser.add_argument('--dominance-cap', type=float, metavar='SHARE',
                        help='Split clusters above this share of sentences')
    parser.add_argument('--auto-k', action='store_true', help='Search the number of concepts')
    parser.add_argument('--k-min', type=int, help='Lower bound for K search')
    parser.add_argument('--k-max', type=int, help='Upper bound for K search')
    parser.add_argument('--auto-seed', action='store_true', help='Search the cluster seed')
    parser.add_argument('--auto-unit', action='store_true', help='Search the text-unit window')
    parser.add_argument('--auto-weights', action='store_true', help='Search evidence weights')
    parser.add_argument('--dimension-mode', choices=['manual', 'elbow', 'threshold'])
    parser.add_argument('--dims', type=int, help='Number of dimensions (manual mode)')
    parser.add_argument('--variance-threshold', type=float, help='Threshold mode target')
    parser.add_argument('--n-jobs', type=int, help='Worker threads for searches')
    parser.add_argument('--quiet', action='store_true', help='Suppress progress output')

    args = parser.parse_args(argv)

    data = json.loads(Path(args.input).read_text(encoding='utf-8'))
    if isinstance(data, list):
        data = {'sentences': data}
    params_data = dict(data.get('params', {}))

    overrides = {
        'k_concepts': args.k,
        'clustering_mode': args.mode,
        'cut_type': args.cut_type,
        'granularity_percent': args.granularity,
        'cluster_seed': args.seed,
        'min_cluster_size': args.min_cluster_size,
        'k_min_override': args.k_min,
        'k_max_override': args.k_max,
        'dimension_mode': args.dimension_mode,
        'num_dimensions': args.dims,
        'variance_threshold': args.variance_threshold,
        'n_jobs': args.n_jobs,
    }
    params_data.update({key: value for key, value in overrides.items() if value is not None})
    for flag, key in ((args.soft, 'soft_membership'), (args.detail, 'detail_concepts'),
                      (args.auto_k, 'auto_k'), (args.auto_seed, 'auto_seed'),
                      (args.auto_unit, 'auto_unit'), (args.auto_weights, 'auto_weights')):
        if flag:
            params_data[key] = True
    if args.dominance_cap is not None:
        params_data['dominance_cap'] = True
        params_data['dominance_cap_threshold'] = args.dominance_cap

    try:
        params = AnalysisParams.from_dict(params_data)
        explorer = ConceptExplorer.from_records(
            data['sentences'],
            params=params,
            anchor_axes=[AnchorAxis.from_dict(a) for a in data.get('anchor_axes', [])],
            verbose=not args.quiet,
        )
        result = explorer.analyze()
    except (InputError, ConfigurationError) as e:
        parser.error(str(e))

    if not args.quiet:
        print(f"\nFound {len(result.primary_concepts)} concepts:")
        for concept in result.primary_concepts:
            print(f"  {concept.id:<12} {concept.size:>4}  {concept.label}")
        if result.axis_labels:
            print("\nAxes:")
            for axis in result.axis_labels:
                print(f"  PC{axis.axis_index + 1}: {axis.name}")

    if args.output:
        result.save(args.output)
        if not args.quiet:
            print(f"\nWrote {args.output}")
    return 0


if __name__ == "__main__":
    main()
