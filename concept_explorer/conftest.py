"""
Shared fixtures: synthetic juror corpora with known topic structure.

Each topic is a random unit direction; its sentences are the direction
plus small Gaussian noise, and their texts use the topic's vocabulary.
"""

import numpy as np
import pytest

from concept_explorer.config import STANCES
from concept_explorer.models import Sentence

TOPIC_WORDS = [
    ['lighting', 'daylight', 'facade', 'glass', 'shadow'],
    ['circulation', 'stairs', 'corridor', 'access', 'ramp'],
    ['budget', 'costs', 'materials', 'timber', 'concrete'],
    ['landscape', 'garden', 'trees', 'courtyard', 'planting'],
]
QUALIFIERS = ['strong', 'unclear', 'generous']


def make_directions(n: int, dim: int = 16, seed: int = 1) -> np.ndarray:
    rng = np.random.default_rng(seed)
    D = rng.normal(size=(n, dim))
    return D / np.linalg.norm(D, axis=1, keepdims=True)


def make_vectors(sizes, dim: int = 16, noise: float = 0.05, seed: int = 0):
    """Clustered vectors: returns (vectors, true_labels)."""
    rng = np.random.default_rng(seed)
    dirs = make_directions(len(sizes), dim, seed + 1)
    vectors, labels = [], []
    for c, size in enumerate(sizes):
        for _ in range(size):
            vectors.append(dirs[c] + rng.normal(0, noise, dim))
            labels.append(c)
    return np.array(vectors), np.array(labels)


def make_sentences(sizes, jurors=('Juror A', 'Juror B'), dim: int = 16,
                   noise: float = 0.05, seed: int = 0):
    """Sentences grouped by topic, jurors assigned round-robin."""
    vectors, labels = make_vectors(sizes, dim, noise, seed)
    sentences = []
    for i, (vec, c) in enumerate(zip(vectors, labels)):
        words = TOPIC_WORDS[c % len(TOPIC_WORDS)]
        text = (f"The {words[i % 5]} and {words[(i + 2) % 5]} "
                f"feel {QUALIFIERS[i % 3]} in this scheme")
        sentences.append(Sentence(
            id=f"s{i}",
            juror=jurors[i % len(jurors)],
            text=text,
            stance=STANCES[i % len(STANCES)],
            embedding=vec,
        ))
    return sentences, labels


@pytest.fixture
def two_topic_corpus():
    """10 sentences, 2 topics of 5, 2 jurors."""
    return make_sentences([5, 5])


@pytest.fixture
def three_topic_corpus():
    """30 sentences, 3 topics of 10, 3 jurors."""
    return make_sentences([10, 10, 10], jurors=('Juror A', 'Juror B', 'Juror C'))


@pytest.fixture
def three_topic_vectors():
    return make_vectors([10, 10, 10])
