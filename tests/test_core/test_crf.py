"""Tests for the linear-chain CRF.

Covers validation before training, the training loop (loss behaviour,
convergence, warm starts), prediction and persistence.
"""

import math

import numpy as np
import pytest
from numpy.testing import assert_allclose

from probabilistic_syntax import CRF
from probabilistic_syntax.core import FeatureOptions
from probabilistic_syntax.errors import (
    ConfigurationError,
    IncompatibleModelError,
    NotTrainedError,
    TrainingDataError
)


@pytest.fixture
def trained_ner(ner_labels, ner_examples):
    return CRF(ner_labels).train(ner_examples, iterations=60, learning_rate=0.1,
                                 regularization=0.1, random_state=0)


class TestConstruction:

    def test_new_model_is_untrained(self, ner_labels):
        crf = CRF(ner_labels)
        assert crf.labels == ner_labels
        assert crf.feature_weights == {}
        assert not crf.is_trained

    @pytest.mark.parametrize("call", [
        lambda crf: crf.predict(["John", "sleeps"]),
        lambda crf: crf.predict_with_score(["John"]),
        lambda crf: crf.marginals(["John"]),
        lambda crf: crf.score(["John"], ["none"]),
        lambda crf: crf.log_likelihood(["John"], ["none"]),
    ])
    def test_untrained_model_refuses_inference(self, ner_labels, call):
        with pytest.raises(NotTrainedError):
            call(CRF(ner_labels))

    @pytest.mark.parametrize("labels", [[], ["a", "a"]])
    def test_invalid_labels(self, labels):
        with pytest.raises(ConfigurationError):
            CRF(labels)


class TestValidation:

    def test_empty_data(self, ner_labels):
        with pytest.raises(TrainingDataError):
            CRF(ner_labels).train([])

    def test_length_mismatch(self, ner_labels):
        with pytest.raises(TrainingDataError):
            CRF(ner_labels).train([(["John", "runs"], ["person"])])

    def test_unknown_label(self, ner_labels):
        with pytest.raises(TrainingDataError):
            CRF(ner_labels).train([(["Acme"], ["org"])])

    @pytest.mark.parametrize("options", [
        {'iterations': 0},
        {'learning_rate': -0.1},
        {'regularization': -1.0},
        {'method': 'lbfgs'},
        {'convergence_threshold': -1.0},
    ])
    def test_bad_options(self, ner_labels, ner_examples, options):
        with pytest.raises(ConfigurationError):
            CRF(ner_labels).train(ner_examples, **options)

    def test_failed_validation_leaves_weights_untouched(self, trained_ner):
        weights_before = {f: dict(w) for f, w in trained_ner.feature_weights.items()}
        with pytest.raises(TrainingDataError):
            trained_ner.train([(["x"], ["unknown"])])
        assert trained_ner.feature_weights == weights_before


class TestTraining:

    def test_train_returns_new_model(self, ner_labels, ner_examples):
        crf = CRF(ner_labels)
        trained = crf.train(ner_examples, iterations=5, random_state=0)

        assert trained is not crf
        assert crf.feature_weights == {}
        assert trained.is_trained

    def test_metadata(self, trained_ner, ner_examples):
        metadata = trained_ner.metadata
        assert metadata['training_size'] == len(ner_examples)
        assert metadata['num_features'] == len(trained_ner.feature_weights)
        assert len(metadata['loss_history']) >= metadata['iterations']
        assert metadata['final_loss'] == pytest.approx(metadata['loss_history'][-1])
        assert 'trained_at' in metadata
        assert isinstance(metadata['converged'], bool)

    def test_transition_table_is_total(self, trained_ner, ner_labels):
        assert set(trained_ner.transition_weights) == {(p, c) for p in ner_labels for c in ner_labels}

    def test_loss_non_increasing_with_small_learning_rate(self):
        examples = [
            (["John", "runs"], ["person", "none"]),
            (["Paris", "is", "big"], ["place", "none", "none"]),
            (["Mary", "likes", "Rome"], ["person", "none", "place"]),
        ]
        trained = CRF(["person", "place", "none"]).train(
            examples, iterations=50, learning_rate=0.01, regularization=0.0, method="sgd",
            convergence_threshold=0.0, loss_threshold=0.0, random_state=1)

        losses = trained.metadata['loss_history']
        assert len(losses) == 50
        assert all(later <= earlier + 1e-9 for earlier, later in zip(losses, losses[1:]))

    @pytest.mark.parametrize("method", ["sgd", "momentum", "adagrad"])
    def test_all_methods_reduce_loss(self, ner_labels, ner_examples, method):
        trained = CRF(ner_labels).train(ner_examples, iterations=30, method=method,
                                        regularization=0.0, loss_threshold=0.0, random_state=0)
        losses = trained.metadata['loss_history']
        assert losses[-1] < losses[0]

    def test_large_gradient_threshold_stops_immediately(self, ner_labels, ner_examples):
        trained = CRF(ner_labels).train(ner_examples, iterations=50, convergence_threshold=1e6)
        assert trained.metadata['converged'] is True
        assert trained.metadata['iterations'] == 0

    def test_seeded_training_is_reproducible(self, ner_labels, ner_examples):
        first = CRF(ner_labels).train(ner_examples, iterations=5, random_state=7)
        second = CRF(ner_labels).train(ner_examples, iterations=5, random_state=7)
        assert first.feature_weights == second.feature_weights

    def test_warm_start_keeps_existing_features(self, trained_ner, ner_examples):
        retrained = trained_ner.train([(["Tokyo"], ["place"])], iterations=1, random_state=0,
                                      convergence_threshold=1e6)
        assert set(trained_ner.feature_weights) <= set(retrained.feature_weights)
        for feature, weights in trained_ner.feature_weights.items():
            assert retrained.feature_weights[feature] == weights

    def test_feature_options_are_kept_for_prediction(self, ner_labels, ner_examples):
        options = FeatureOptions(use_gazetteers=False, max_affix_length=2)
        trained = CRF(ner_labels).train(ner_examples, iterations=3, feature_options=options)

        assert trained.feature_options == options
        assert not any(f.startswith("in_gazetteer") for f in trained.feature_weights)


class TestPrediction:

    def test_fits_training_data(self, trained_ner, ner_examples):
        for tokens, labels in ner_examples:
            assert trained_ner.predict(tokens) == labels

    def test_prediction_length(self, trained_ner):
        assert len(trained_ner.predict(["Anna", "visited", "Rome", "today"])) == 4
        assert trained_ner.predict([]) == []

    def test_predict_with_score_matches_score(self, trained_ner):
        tokens = ["Mary", "likes", "London"]
        labels, score = trained_ner.predict_with_score(tokens)
        assert score == pytest.approx(trained_ner.score(tokens, labels))

    def test_marginals_are_distributions(self, trained_ner, ner_labels):
        marginals = trained_ner.marginals(["John", "visited", "Berlin"])
        assert len(marginals) == 3
        for distribution in marginals:
            assert set(distribution) == set(ner_labels)
            assert sum(distribution.values()) == pytest.approx(1.0)

    def test_log_likelihood_is_a_log_probability(self, trained_ner):
        value = trained_ner.log_likelihood(["John", "lives", "in", "London"],
                                           ["person", "none", "none", "place"])
        assert value <= 0.0
        assert math.isfinite(value)


class TestPersistence:

    def test_save_load_roundtrip(self, trained_ner, tmp_path):
        path = tmp_path / "ner.crf"
        trained_ner.save(path)
        loaded = CRF.load(path)

        sentence = ["David", "visited", "Paris"]
        assert loaded.predict(sentence) == trained_ner.predict(sentence)
        assert loaded.metadata == trained_ner.metadata
        assert_allclose(
            [loaded.marginals(sentence)[0][label] for label in loaded.labels],
            [trained_ner.marginals(sentence)[0][label] for label in trained_ner.labels]
        )

    def test_load_wrong_model_type(self, tmp_path, pos_examples):
        from probabilistic_syntax import HMMTagger

        path = tmp_path / "tagger.hmm"
        HMMTagger().train(pos_examples).save(path)
        with pytest.raises(IncompatibleModelError):
            CRF.load(path)
