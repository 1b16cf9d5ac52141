"""
Graph Assembler
===============

Combines concepts, jurors, evidence sentences and projected coordinates
into the final node/link graph.

Links:
  - juror-concept:   non-zero juror-vector entries above min_edge_weight,
                     with majority stance and contributing evidence ids
  - concept-concept: centroid cosine similarity above similarity_threshold
  - juror-juror:     juror-vector cosine similarity above the same threshold

Bridges are edges whose removal separates two groups of concepts. They
are flagged (structural_role='bridge') for display only and never change
weights.

Evidence ranking picks each concept's representative sentences by

    semantic_weight * max(0, centroid_similarity)
        + frequency_weight * normalized_bm25

License: MIT
"""

import numpy as np
import networkx as nx
from collections import Counter
from typing import Dict, List, Sequence

from .config import STANCES
from .models import GraphLink
from .terms import BM25Index
from .vectors import normalize_rows

__all__ = [
    'build_juror_vectors',
    'concept_bm25_scores',
    'rank_evidence',
    'majority_stance',
    'juror_concept_links',
    'concept_concept_links',
    'juror_juror_links',
    'mark_bridges',
]


# =============================================================================
# Juror Vectors
# =============================================================================

def build_juror_vectors(
    jurors: Sequence[str],
    memberships: np.ndarray,
    concept_ids: Sequence[str]
) -> Dict[str, Dict[str, float]]:
    """
    Sum each juror's sentence memberships per concept, normalized to 1.

    Args:
        jurors: Juror of each sentence (n,)
        memberships: (n, k) membership weights
        concept_ids: Concept id of each column

    Returns:
        {juror: {concept_id: weight}} with only non-zero entries
    """
    totals: Dict[str, np.ndarray] = {}
    for row, juror in enumerate(jurors):
        if juror not in totals:
            totals[juror] = np.zeros(len(concept_ids))
        totals[juror] += memberships[row]

    vectors = {}
    for juror, weights in totals.items():
        total = weights.sum()
        vectors[juror] = {
            concept_ids[c]: float(weights[c] / total)
            for c in range(len(concept_ids))
            if weights[c] > 0 and total > 0
        }
    return vectors


# =============================================================================
# Evidence Ranking
# =============================================================================

def concept_bm25_scores(index: BM25Index, member_indices: Sequence[int],
                        query_terms: Sequence[str]) -> np.ndarray:
    """BM25 score of each member sentence against the concept's top terms."""
    if not query_terms:
        return np.zeros(len(member_indices))
    return index.scores(query_terms, member_indices)


def rank_evidence(
    vectors: np.ndarray,
    member_indices: Sequence[int],
    centroid: np.ndarray,
    bm25_scores: np.ndarray,
    semantic_weight: float = 0.7,
    frequency_weight: float = 0.3,
    top_n: int = 8
) -> List[int]:
    """
    Pick the representative sentences of a concept.

    Args:
        vectors: (n, d) normalized sentence vectors
        member_indices: Rows belonging to the concept
        centroid: Normalized concept centroid
        bm25_scores: Raw BM25 score per member (same order as member_indices)
        semantic_weight, frequency_weight: Blend weights
        top_n: Number of sentences to keep

    Returns:
        Row indices of the top_n members, best first (ties keep corpus order)
    """
    members = np.asarray(member_indices, dtype=int)
    if len(members) == 0:
        return []
    semantic = np.maximum(0.0, vectors[members] @ centroid)
    bm25 = np.asarray(bm25_scores, dtype=float)
    peak = bm25.max() if len(bm25) else 0.0
    frequency = bm25 / peak if peak > 0 else np.zeros(len(members))
    blended = semantic_weight * semantic + frequency_weight * frequency
    order = np.argsort(-blended, kind='stable')[:top_n]
    return [int(members[i]) for i in order]


# =============================================================================
# Links
# =============================================================================

def majority_stance(stances: Sequence[str]) -> str:
    """Most frequent stance; ties go to the earlier entry of STANCES."""
    if not stances:
        return 'neutral'
    counts = Counter(stances)
    return max(STANCES, key=lambda s: (counts.get(s, 0), -STANCES.index(s)))


def juror_concept_links(
    jurors: Sequence[str],
    stances: Sequence[str],
    sentence_ids: Sequence[str],
    memberships: np.ndarray,
    concept_ids: Sequence[str],
    juror_vectors: Dict[str, Dict[str, float]],
    min_edge_weight: float = 0.05
) -> List[GraphLink]:
    links = []
    for juror, vector in juror_vectors.items():
        rows = [i for i, j in enumerate(jurors) if j == juror]
        for c, concept_id in enumerate(concept_ids):
            weight = vector.get(concept_id, 0.0)
            if weight <= 0 or weight < min_edge_weight:
                continue
            contributing = [i for i in rows if memberships[i, c] > 0]
            links.append(GraphLink(
                source=f"juror:{juror}",
                target=concept_id,
                kind='juror-concept',
                weight=float(weight),
                stance=majority_stance([stances[i] for i in contributing]),
                evidence_ids=[sentence_ids[i] for i in contributing],
            ))
    return links


def concept_concept_links(
    concept_ids: Sequence[str],
    centroids: np.ndarray,
    threshold: float = 0.6
) -> List[GraphLink]:
    C = normalize_rows(centroids)
    sims = C @ C.T
    links = []
    for i in range(len(concept_ids)):
        for j in range(i + 1, len(concept_ids)):
            if sims[i, j] >= threshold:
                links.append(GraphLink(source=concept_ids[i], target=concept_ids[j],
                                       kind='concept-concept', weight=float(sims[i, j])))
    return links


def juror_juror_links(
    juror_vectors: Dict[str, Dict[str, float]],
    concept_ids: Sequence[str],
    threshold: float = 0.6
) -> List[GraphLink]:
    """Links between jurors whose concept profiles are cosine-similar."""
    jurors = list(juror_vectors)
    if len(jurors) < 2:
        return []
    dense = np.array([[juror_vectors[j].get(c, 0.0) for c in concept_ids] for j in jurors])
    dense = normalize_rows(dense)
    sims = dense @ dense.T
    links = []
    for a in range(len(jurors)):
        for b in range(a + 1, len(jurors)):
            if sims[a, b] >= threshold:
                links.append(GraphLink(source=f"juror:{jurors[a]}", target=f"juror:{jurors[b]}",
                                       kind='juror-juror', weight=float(sims[a, b])))
    return links


# =============================================================================
# Bridges
# =============================================================================

def mark_bridges(links: List[GraphLink], node_kinds: Dict[str, str]) -> int:
    """
    Flag links whose removal would split the concepts of their component.

    Args:
        links: Graph links (modified in place)
        node_kinds: {node_id: 'juror' | 'concept'}

    Returns:
        Number of links flagged as bridges
    """
    G = nx.Graph()
    G.add_nodes_from(node_kinds)
    for link in links:
        G.add_edge(link.source, link.target)

    bridge_edges = set()
    for u, v in nx.bridges(G):
        H = G.copy()
        H.remove_edge(u, v)
        side_u = nx.node_connected_component(H, u)
        side_v = nx.node_connected_component(H, v)
        if (any(node_kinds.get(x) == 'concept' for x in side_u)
                and any(node_kinds.get(x) == 'concept' for x in side_v)):
            bridge_edges.add(frozenset((u, v)))

    count = 0
    for link in links:
        if frozenset((link.source, link.target)) in bridge_edges:
            link.structural_role = 'bridge'
            count += 1
    return count
