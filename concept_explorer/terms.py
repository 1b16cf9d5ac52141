"""
Term statistics: tokenization, BM25 and contrastive top terms.

Used for concept top terms, rule-based labels, the label penalty of the
seed search, and the frequency half of evidence ranking.
"""

import re
import math
import numpy as np
from collections import Counter
from rank_bm25 import BM25Okapi
from typing import Dict, List, Sequence

__all__ = [
    'STOPWORDS',
    'tokenize',
    'stem',
    'BM25Index',
    'contrastive_top_terms',
]


STOPWORDS = frozenset("""
a about above after again against all also am an and any are aren't as at be
because been before being below between both but by can can't cannot could
couldn't did didn't do does doesn't doing don't down during each few for from
further had hadn't has hasn't have haven't having he he'd he'll he's her here
here's hers herself him himself his how how's i i'd i'll i'm i've if in into is
isn't it it's its itself just let's me more most mustn't my myself no nor not
of off on once only or other ought our ours ourselves out over own really
same shan't she she'd she'll she's should shouldn't so some such than that
that's the their theirs them themselves then there there's these they they'd
they'll they're they've this those through to too under until up very was
wasn't we we'd we'll we're we've were weren't what what's when when's where
where's which while who who's whom why why's will with won't would wouldn't
you you'd you'll you're you've your yours yourself yourselves quite rather
much many well still even though however also yet like think thought feel
felt seems seem something thing things way lot bit maybe perhaps
""".split())

_TOKEN_RE = re.compile(r"[a-z][a-z'\-]*[a-z]|[a-z]")
_STEM_SUFFIXES = ('ation', 'ition', 'tion', 'sion', 'ingly', 'edly',
                  'ing', 'ed', 'est', 'er', 'ly', 'es', 's')


def tokenize(text: str) -> List[str]:
    """Lowercase word tokens without stopwords or tokens under 3 characters."""
    return [t for t in _TOKEN_RE.findall(text.lower())
            if len(t) >= 3 and t not in STOPWORDS]


def stem(term: str) -> str:
    """Strip one common English suffix, keeping a stem of at least 3 characters."""
    token = term.lower().strip().split()[0] if term.strip() else ''
    for suffix in _STEM_SUFFIXES:
        if token.endswith(suffix) and len(token) - len(suffix) >= 3:
            return token[:-len(suffix)]
    return token


# =============================================================================
# BM25
# =============================================================================

class BM25Index(BM25Okapi):
    """
    Okapi BM25 over a list of tokenized sentences (rank_bm25).

    The idf is replaced by the always-positive form
    idf(t) = log(1 + (N - df + 0.5) / (df + 0.5)), so a term present in most
    sentences still scores above zero. Query terms are counted once.
    """

    def __init__(self, token_lists: Sequence[Sequence[str]], k1: float = 1.2, b: float = 0.75):
        corpus = [list(tokens) for tokens in token_lists]
        if not corpus:
            raise ValueError("BM25Index needs at least one document")
        super().__init__(corpus, k1=k1, b=b)
        if self.avgdl == 0:
            self.avgdl = 1.0

    def _calc_idf(self, nd: Dict[str, int]) -> None:
        for term, count in nd.items():
            self.idf[term] = math.log(1.0 + (self.corpus_size - count + 0.5) / (count + 0.5))

    def scores(self, query_terms: Sequence[str], doc_indices: Sequence[int] = None) -> np.ndarray:
        query = list(dict.fromkeys(query_terms))
        if doc_indices is None:
            return np.asarray(self.get_scores(query), dtype=float)
        return np.asarray(self.get_batch_scores(query, [int(i) for i in doc_indices]), dtype=float)


# =============================================================================
# Contrastive Top Terms
# =============================================================================

def contrastive_top_terms(
    token_lists: Sequence[Sequence[str]],
    member_indices: Sequence[int],
    top_n: int = 6,
    max_df_fraction: float = 0.8
) -> List[str]:
    """
    Terms frequent and prevalent in a group of sentences but rare elsewhere.

    score = (tf_in - tf_out) * prevalence * log2(max(tf_in / tf_out, 1) + 1)

    Terms found in fewer than 2 member sentences are ignored for groups of 4
    or more, as are terms present in more than `max_df_fraction` of the whole
    corpus. Results are deduplicated by stem and by substring.
    """
    members = list(member_indices)
    if not members:
        return []
    member_set = set(members)
    others = [i for i in range(len(token_lists)) if i not in member_set]
    min_df = 2 if len(members) >= 4 else 1

    in_tf = Counter()
    in_df = Counter()
    for i in members:
        counts = Counter(token_lists[i])
        in_tf.update(counts)
        in_df.update(counts.keys())

    out_tf = Counter()
    corpus_df = Counter(in_df)
    for i in others:
        counts = Counter(token_lists[i])
        out_tf.update(counts)
        corpus_df.update(counts.keys())

    n_corpus = len(token_lists)
    scored = []
    for term, df in in_df.items():
        if df < min_df:
            continue
        if n_corpus >= 5 and corpus_df[term] > max_df_fraction * n_corpus:
            continue
        tf_in = in_tf[term] / len(members)
        tf_out = out_tf[term] / len(others) if others else 0.0
        prevalence = df / len(members)
        ratio = tf_in / tf_out if tf_out > 0 else tf_in
        score = (tf_in - tf_out) * prevalence * math.log2(max(ratio, 1.0) + 1.0)
        if score > 0:
            scored.append((score, term))

    # Highest score first, alphabetical among ties
    scored.sort(key=lambda x: (-x[0], x[1]))

    picked: List[str] = []
    seen_stems = set()
    for _, term in scored:
        s = stem(term)
        if s in seen_stems:
            continue
        if any(term in p or p in term for p in picked):
            continue
        seen_stems.add(s)
        picked.append(term)
        if len(picked) >= top_n:
            break
    return picked
