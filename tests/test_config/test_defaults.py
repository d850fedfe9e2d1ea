"""Tests for configuration defaults functionality.

Tests the preset task configurations and the validation that flags
questionable training parameters.
"""

import dataclasses

import pytest

from probabilistic_syntax.config.defaults import (
    DefaultConfig,
    NER_CONFIG,
    POS_CONFIG,
    TASK_CONFIGS,
    HMM_ALGORITHMS,
    EXPORT_FORMATS,
    MAX_AFFIX_LENGTH,
    RECOMMENDED_MAX_BEAM,
    validate_config
)
from probabilistic_syntax.core.optimizer import METHODS


class TestPresetConfigurations:
    """Test suite for preset configurations."""

    def test_task_configs_registry(self):
        assert set(TASK_CONFIGS) == {"ner", "pos", "minimal"}
        assert TASK_CONFIGS["ner"] is NER_CONFIG
        assert TASK_CONFIGS["pos"] is POS_CONFIG

    @pytest.mark.parametrize("name", sorted(TASK_CONFIGS))
    def test_presets_are_valid(self, name):
        """Every shipped preset should pass validation without warnings."""
        assert validate_config(TASK_CONFIGS[name]) == []

    @pytest.mark.parametrize("name", sorted(TASK_CONFIGS))
    def test_presets_use_known_values(self, name):
        config = TASK_CONFIGS[name]
        assert config.optimizer in METHODS
        assert config.hmm_algorithm in HMM_ALGORITHMS
        assert all(fmt in EXPORT_FORMATS for fmt in config.export_formats)

    def test_ner_uses_gazetteers(self):
        assert NER_CONFIG.use_gazetteers is True
        assert POS_CONFIG.use_gazetteers is False


class TestValidateConfig:
    """Test suite for validate_config."""

    @pytest.fixture
    def base(self):
        return NER_CONFIG

    @pytest.mark.parametrize("changes, fragment", [
        ({'max_affix_length': MAX_AFFIX_LENGTH + 1}, "Affix length"),
        ({'optimizer': "lbfgs"}, "Optimizer"),
        ({'learning_rate': 5.0}, "Learning rate"),
        ({'crf_iterations': 3}, "CRF iterations"),
        ({'regularization': 0.0}, "No regularization"),
        ({'hmm_algorithm': "beam"}, "HMM algorithm"),
        ({'beam_width': 0}, "Beam width"),
        ({'beam_width': RECOMMENDED_MAX_BEAM + 1}, "Beam width"),
        ({'cnf': False}, "CNF"),
        ({'export_formats': ["gif"]}, "Export formats"),
    ])
    def test_single_warning(self, base, changes, fragment):
        warnings = validate_config(dataclasses.replace(base, **changes))
        assert len(warnings) == 1
        assert fragment in warnings[0]

    def test_multiple_warnings_accumulate(self, base):
        config = dataclasses.replace(base, optimizer="lbfgs", cnf=False, crf_iterations=1)
        assert len(validate_config(config)) == 3

    def test_default_export_formats(self):
        config = DefaultConfig(
            use_gazetteers=True, max_affix_length=3, crf_iterations=50, learning_rate=0.1,
            regularization=1.0, optimizer="sgd", convergence_threshold=0.01, loss_threshold=1e-4,
            hmm_smoothing=0.001, hmm_algorithm="viterbi", start_symbol="s", pcfg_smoothing=0.001,
            beam_width=10, cnf=True, figure_dpi=200
        )
        assert config.export_formats == ["png"]
        assert validate_config(config) == []
