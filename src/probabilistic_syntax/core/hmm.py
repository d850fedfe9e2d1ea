"""Second-order (trigram) hidden Markov model for part-of-speech tagging.

Estimates, with add-k smoothing::

    P(w | t)          = (c(w, t) + k) / (c(t) + k * V)
    P(t3 | t1, t2)    = (c(t1, t2, t3) + k) / (c(t1, t2) + k * T)
    P(t at position 0) = (c_initial(t) + k) / (N + k * T)

where ``V`` is the vocabulary size, ``T`` the number of tags and ``N`` the
number of training sentences. Words are lowercased and every sentence is
padded with two ``START`` symbols for transition counting.
"""

import logging
import math
from collections import Counter, defaultdict
from typing import Dict, Hashable, List, Sequence, Tuple

import numpy as np

from .model import StatisticalModel
from ..data.tokens import Token
from ..errors import ConfigurationError, TrainingDataError

logger = logging.getLogger(__name__)

START = "<START>"
ALGORITHMS = ("viterbi", "trigram")


def _normalize_word(word) -> str:
    if isinstance(word, Token):
        word = word.text if word.text is not None else ""
    return str(word).lower()


class HMMTagger(StatisticalModel):
    """Trigram HMM tagger.

    Parameters
    ----------
    smoothing_k : float, default=0.001
        Add-k smoothing constant; also the probability returned for unseen
        words, contexts and tags

    Attributes
    ----------
    tags : List[Hashable]
        Tag inventory, sorted by string form
    vocabulary : frozenset
        Lowercased training words
    emission_probs : Dict[str, Dict[Hashable, float]]
        ``word -> tag -> P(word | tag)``
    transition_probs : Dict[Tuple[Hashable, Hashable], Dict[Hashable, float]]
        ``(t1, t2) -> t3 -> P(t3 | t1, t2)``
    initial_probs : Dict[Hashable, float]
        ``tag -> P(tag at position 0)``
    """

    def __init__(self, smoothing_k: float = 0.001):
        super().__init__()
        if not smoothing_k > 0:
            raise ConfigurationError(f"smoothing_k must be positive, got {smoothing_k}")
        self.smoothing_k = smoothing_k
        self.tags: List[Hashable] = []
        self.vocabulary = frozenset()
        self.emission_probs: Dict[str, Dict[Hashable, float]] = {}
        self.transition_probs: Dict[Tuple[Hashable, Hashable], Dict[Hashable, float]] = {}
        self.initial_probs: Dict[Hashable, float] = {}

    def train(self, training_data, **options) -> 'HMMTagger':
        """Estimate smoothed probabilities from ``(words, tags)`` pairs.

        Parameters
        ----------
        training_data : Sequence[Tuple[Sequence[str], Sequence[Hashable]]]
            Tagged sentences; words may be strings or tokens

        Returns
        -------
        HMMTagger
            A new trained tagger; ``self`` is not modified

        Raises
        ------
        TrainingDataError
            If the data is empty or a sentence has mismatched lengths
        """
        if not training_data:
            raise TrainingDataError("Training data is empty")

        sentences = []
        for i, example in enumerate(training_data):
            try:
                words, tags = example
            except (TypeError, ValueError) as exc:
                raise TrainingDataError(f"Sentence {i}: expected a (words, tags) pair") from exc
            words, tags = [_normalize_word(w) for w in words], list(tags)
            if len(words) != len(tags):
                raise TrainingDataError(f"Sentence {i}: {len(words)} words but {len(tags)} tags")
            sentences.append((words, tags))

        emission_counts: Dict[str, Counter] = defaultdict(Counter)
        tag_counts: Counter = Counter()
        transition_counts: Dict[Tuple[Hashable, Hashable], Counter] = defaultdict(Counter)
        initial_counts: Counter = Counter()

        for words, tags in sentences:
            for word, tag in zip(words, tags):
                emission_counts[word][tag] += 1
                tag_counts[tag] += 1
            if tags:
                initial_counts[tags[0]] += 1
            padded = [START, START] + tags
            for t1, t2, t3 in zip(padded, padded[1:], padded[2:]):
                transition_counts[(t1, t2)][t3] += 1

        k = self.smoothing_k
        tags = sorted(tag_counts, key=str)
        vocab_size = len(emission_counts)
        num_tags = len(tags)

        trained = self._copy()
        trained.tags = tags
        trained.vocabulary = frozenset(emission_counts)
        trained.emission_probs = {
            word: {tag: (counts[tag] + k) / (tag_counts[tag] + k * vocab_size) for tag in tags}
            for word, counts in emission_counts.items()
        }

        contexts = [START] + tags
        trained.transition_probs = {}
        for t1 in contexts:
            for t2 in contexts:
                counts = transition_counts.get((t1, t2), Counter())
                total = sum(counts.values()) + k * num_tags
                trained.transition_probs[(t1, t2)] = {tag: (counts[tag] + k) / total for tag in tags}

        total_initial = sum(initial_counts.values()) + k * num_tags
        trained.initial_probs = {tag: (initial_counts[tag] + k) / total_initial for tag in tags}

        trained.metadata = {
            'model_type': 'hmm',
            'trained_at': self._timestamp(),
            'training_size': len(sentences),
            'num_tags': num_tags,
            'vocab_size': vocab_size
        }
        logger.info("Trained HMM tagger: %d sentences, %d tags, vocabulary %d",
                    len(sentences), num_tags, vocab_size)
        return trained

    def emission_probability(self, word, tag: Hashable) -> float:
        probs = self.emission_probs.get(_normalize_word(word))
        if probs is None:
            return self.smoothing_k
        return probs.get(tag, self.smoothing_k)

    def transition_probability(self, t1: Hashable, t2: Hashable, t3: Hashable) -> float:
        probs = self.transition_probs.get((t1, t2))
        if probs is None:
            return self.smoothing_k
        return probs.get(t3, self.smoothing_k)

    def initial_probability(self, tag: Hashable) -> float:
        return self.initial_probs.get(tag, self.smoothing_k)

    def _log_emissions(self, words: Sequence[str]) -> np.ndarray:
        return np.log(np.array([[self.emission_probability(w, tag) for tag in self.tags]
                                for w in words]))

    def _log_transitions(self) -> np.ndarray:
        """``Q[a, b, c] = log P(c | a, b)`` with index 0 of the first two axes for ``START``."""
        contexts = [START] + self.tags
        return np.log(np.array([[[self.transition_probability(a, b, c) for c in self.tags]
                                 for b in contexts] for a in contexts]))

    def predict(self, words: Sequence, algorithm: str = "viterbi", **options) -> List[Hashable]:
        """Tag a sentence.

        Parameters
        ----------
        words : Sequence[str or Token]
            Sentence to tag
        algorithm : str, default="viterbi"
            ``"viterbi"`` runs the approximate trigram decoder that fixes the
            tag two positions back to the best-scoring tag at that position.
            ``"trigram"`` runs exact second-order Viterbi over tag pairs.

        Returns
        -------
        List[Hashable]
            One tag per word; ``[]`` for empty input
        """
        if algorithm not in ALGORITHMS:
            raise ConfigurationError(f"Unknown algorithm {algorithm!r}. Available: {list(ALGORITHMS)}")
        words = [_normalize_word(w) for w in words]
        self._require_trained()
        if not words:
            return []

        emissions = self._log_emissions(words)
        transitions = self._log_transitions()
        initial = np.log(np.array([self.initial_probability(tag) for tag in self.tags]))

        if algorithm == "trigram" and len(words) > 1:
            path = self._trigram_viterbi(emissions, transitions, initial)
        else:
            path = self._approximate_viterbi(emissions, transitions, initial)
        return [self.tags[j] for j in path]

    def _approximate_viterbi(self, emissions, transitions, initial) -> List[int]:
        n, num_tags = emissions.shape
        scores = np.zeros((n, num_tags))
        backpointers = np.zeros((n, num_tags), dtype=int)
        scores[0] = initial + emissions[0]

        for t in range(1, n):
            # Offset by one: index 0 of the context axes is START.
            prev_prev = 0 if t == 1 else int(np.argmax(scores[t - 2])) + 1
            candidates = scores[t - 1][:, None] + transitions[prev_prev, 1:, :]
            backpointers[t] = np.argmax(candidates, axis=0)
            scores[t] = candidates[backpointers[t], np.arange(num_tags)] + emissions[t]

        best = int(np.argmax(scores[n - 1]))
        path = [best]
        for t in range(n - 1, 0, -1):
            best = int(backpointers[t, best])
            path.append(best)
        return path[::-1]

    def _trigram_viterbi(self, emissions, transitions, initial) -> List[int]:
        n, num_tags = emissions.shape
        tag_transitions = transitions[1:, 1:, :]

        # pi[u, v]: best score of a prefix ending in tags (u, v)
        pi = (initial + emissions[0])[:, None] + transitions[0, 1:, :] + emissions[1][None, :]
        backpointers = [None, None]
        for t in range(2, n):
            candidates = pi[:, :, None] + tag_transitions
            best_w = np.argmax(candidates, axis=0)
            backpointers.append(best_w)
            pi = np.take_along_axis(candidates, best_w[None, :, :], axis=0)[0] + emissions[t][None, :]

        u, v = np.unravel_index(int(np.argmax(pi)), pi.shape)
        path = [int(u), int(v)]
        for t in range(n - 1, 1, -1):
            path.insert(0, int(backpointers[t][path[0], path[1]]))
        return path

    def sequence_log_probability(self, words: Sequence, tags: Sequence[Hashable]) -> float:
        """Joint ``log P(words, tags)`` under the model's factorization."""
        words = [_normalize_word(w) for w in words]
        tags = list(tags)
        if not words:
            return 0.0
        log_prob = math.log(self.initial_probability(tags[0]))
        log_prob += math.log(self.emission_probability(words[0], tags[0]))
        padded = [START] + tags
        for t in range(1, len(tags)):
            log_prob += math.log(self.transition_probability(padded[t - 1], padded[t], padded[t + 1]))
            log_prob += math.log(self.emission_probability(words[t], tags[t]))
        return log_prob

    def __repr__(self) -> str:
        return f"HMMTagger(smoothing_k={self.smoothing_k}, tags={len(self.tags)}, vocabulary={len(self.vocabulary)})"
