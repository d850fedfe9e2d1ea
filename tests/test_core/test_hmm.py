"""Tests for the trigram HMM tagger."""

import math

import pytest

from probabilistic_syntax import HMMTagger
from probabilistic_syntax.core.hmm import START
from probabilistic_syntax.data import Token
from probabilistic_syntax.errors import ConfigurationError, NotTrainedError, TrainingDataError


@pytest.fixture
def trained_pos(pos_examples):
    return HMMTagger().train(pos_examples)


class TestTraining:

    def test_single_sentence(self):
        tagger = HMMTagger().train([(["the", "cat"], ["det", "noun"])])
        assert tagger.predict(["the", "cat"]) == ["det", "noun"]

    def test_train_returns_new_model(self, pos_examples):
        tagger = HMMTagger()
        trained = tagger.train(pos_examples)
        assert trained is not tagger
        assert tagger.tags == []
        assert trained.is_trained

    def test_metadata(self, trained_pos, pos_examples):
        assert trained_pos.metadata['training_size'] == len(pos_examples)
        assert trained_pos.metadata['num_tags'] == 3
        assert trained_pos.metadata['vocab_size'] == len(trained_pos.vocabulary)

    def test_words_are_lowercased(self):
        tagger = HMMTagger().train([(["The", "Cat"], ["det", "noun"])])
        assert tagger.vocabulary == frozenset({"the", "cat"})
        assert tagger.predict(["THE", "cat"]) == ["det", "noun"]

    def test_accepts_tokens(self):
        tagger = HMMTagger().train([([Token(text="the"), Token(text="cat")], ["det", "noun"])])
        assert tagger.predict([Token(text="the"), "cat"]) == ["det", "noun"]

    def test_empty_data(self):
        with pytest.raises(TrainingDataError):
            HMMTagger().train([])

    def test_length_mismatch(self):
        with pytest.raises(TrainingDataError):
            HMMTagger().train([(["the", "cat"], ["det"])])

    @pytest.mark.parametrize("example", [("the", "cat", "det"), None, ["the"]])
    def test_malformed_example(self, example):
        with pytest.raises(TrainingDataError):
            HMMTagger().train([example])

    def test_invalid_smoothing(self):
        with pytest.raises(ConfigurationError):
            HMMTagger(smoothing_k=0)


class TestProbabilities:

    def test_emission_formula(self, pos_examples):
        k = 0.001
        tagger = HMMTagger(smoothing_k=k).train(pos_examples)
        vocab_size = len(tagger.vocabulary)
        # "the" appears twice as det; det occurs 4 times
        assert tagger.emission_probability("the", "det") == pytest.approx((2 + k) / (4 + k * vocab_size))

    def test_unseen_inputs_are_strictly_positive(self, trained_pos):
        assert trained_pos.emission_probability("zebra", "noun") == trained_pos.smoothing_k
        assert trained_pos.transition_probability("verb", "verb", "verb") > 0
        assert trained_pos.transition_probability("x", "y", "z") == trained_pos.smoothing_k
        assert trained_pos.initial_probability("adj") == trained_pos.smoothing_k

    def test_transition_tables_normalized(self, trained_pos):
        contexts = [START] + trained_pos.tags
        for t1 in contexts:
            for t2 in contexts:
                total = sum(trained_pos.transition_probability(t1, t2, t3) for t3 in trained_pos.tags)
                assert total == pytest.approx(1.0)

    def test_initial_probabilities_normalized(self, trained_pos):
        assert sum(trained_pos.initial_probs.values()) == pytest.approx(1.0)
        assert trained_pos.initial_probability("det") > trained_pos.initial_probability("verb")

    def test_sequence_log_probability_prefers_gold(self, trained_pos):
        gold = trained_pos.sequence_log_probability(["the", "cat", "sleeps"], ["det", "noun", "verb"])
        wrong = trained_pos.sequence_log_probability(["the", "cat", "sleeps"], ["verb", "det", "noun"])
        assert gold > wrong
        assert math.isfinite(wrong)


class TestPrediction:

    @pytest.mark.parametrize("algorithm", ["viterbi", "trigram"])
    def test_fits_training_data(self, trained_pos, pos_examples, algorithm):
        for words, tags in pos_examples:
            assert trained_pos.predict(words, algorithm=algorithm) == tags

    @pytest.mark.parametrize("algorithm", ["viterbi", "trigram"])
    def test_output_length(self, trained_pos, algorithm):
        assert len(trained_pos.predict(["a", "zebra", "sees", "the", "dog"], algorithm=algorithm)) == 5
        assert trained_pos.predict([], algorithm=algorithm) == []

    def test_single_word(self, trained_pos):
        assert trained_pos.predict(["the"], algorithm="trigram") == ["det"]

    def test_unknown_word_uses_context(self, trained_pos):
        assert trained_pos.predict(["the", "zebra", "sleeps"])[1] == "noun"

    def test_exact_decoder_never_scores_worse(self, trained_pos):
        words = ["the", "dog", "sees", "cats", "sleep"]
        approximate = trained_pos.predict(words, algorithm="viterbi")
        exact = trained_pos.predict(words, algorithm="trigram")
        assert (trained_pos.sequence_log_probability(words, exact)
                >= trained_pos.sequence_log_probability(words, approximate) - 1e-9)

    def test_unknown_algorithm(self, trained_pos):
        with pytest.raises(ConfigurationError):
            trained_pos.predict(["the"], algorithm="beam")

    def test_untrained(self):
        with pytest.raises(NotTrainedError):
            HMMTagger().predict(["the"])

    def test_untrained_empty_input(self):
        with pytest.raises(NotTrainedError):
            HMMTagger().predict([])

    def test_save_load_roundtrip(self, trained_pos, tmp_path):
        path = tmp_path / "pos.hmm"
        trained_pos.save(path)
        loaded = HMMTagger.load(path)
        words = ["a", "cat", "sees", "the", "dog"]
        assert loaded.predict(words) == trained_pos.predict(words)
