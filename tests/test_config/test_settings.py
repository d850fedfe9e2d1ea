"""Tests for configuration settings functionality."""

import logging

import pytest
from unittest.mock import patch

from probabilistic_syntax.config import settings as settings_module
from probabilistic_syntax.config.settings import (
    Settings,
    get_config,
    set_config
)
from probabilistic_syntax.config.random_state import get_global_seed
from probabilistic_syntax.core import FeatureOptions
from probabilistic_syntax.errors import ConfigurationError


@pytest.fixture(autouse=True)
def reset_global_config():
    """Isolate tests from the module-level configuration cache."""
    with patch.object(settings_module, '_GLOBAL_CONFIG', None):
        yield


class TestSettingsDataclass:
    """Test suite for the Settings dataclass."""

    def test_settings_default_initialization(self):
        """Test Settings initialization with default values."""
        settings = Settings()

        assert settings.use_gazetteers is True
        assert settings.max_affix_length == 4
        assert settings.crf_iterations == 100
        assert settings.learning_rate == 0.1
        assert settings.optimizer == "momentum"
        assert settings.hmm_smoothing == 0.001
        assert settings.start_symbol == "s"
        assert settings.beam_width == 10
        assert settings.export_formats == ["pdf", "png"]
        assert settings.random_seed is None
        assert settings.verbose is False

    def test_settings_custom_initialization(self):
        """Test Settings initialization with custom values."""
        settings = Settings(crf_iterations=20, optimizer="adagrad", random_seed=7)

        assert settings.crf_iterations == 20
        assert settings.optimizer == "adagrad"
        assert settings.random_seed == 7
        # Defaults preserved
        assert settings.regularization == 1.0

    @pytest.mark.parametrize("field, value", [
        ("max_affix_length", -1),
        ("crf_iterations", 0),
        ("learning_rate", 0.0),
        ("regularization", -0.5),
        ("hmm_smoothing", 0.0),
        ("pcfg_smoothing", -1.0),
        ("beam_width", -3),
    ])
    def test_invalid_values_rejected(self, field, value):
        """Test that out-of-range values raise ConfigurationError."""
        with pytest.raises(ConfigurationError):
            Settings(**{field: value})

    def test_questionable_values_logged_when_verbose(self, caplog):
        """Test that validation warnings are logged, not raised."""
        with caplog.at_level(logging.WARNING, logger=settings_module.__name__):
            Settings(regularization=0.0, verbose=True)
        assert any("regularization" in record.message for record in caplog.records)

    def test_update_returns_new_settings(self):
        """Test that update leaves the original untouched."""
        original = Settings()
        updated = original.update(beam_width=3)

        assert updated.beam_width == 3
        assert original.beam_width == 10
        assert updated is not original


class TestSettingsFromPreset:
    """Test suite for Settings.from_preset() method."""

    def test_from_preset_ner(self):
        settings = Settings.from_preset("ner")
        assert settings.use_gazetteers is True
        assert settings.optimizer == "momentum"

    def test_from_preset_pos(self):
        settings = Settings.from_preset("pos")
        assert settings.use_gazetteers is False
        assert settings.crf_iterations == 150
        assert settings.hmm_algorithm == "trigram"

    def test_from_preset_minimal(self):
        settings = Settings.from_preset("minimal")
        assert settings.optimizer == "sgd"
        assert settings.export_formats == ["png"]

    def test_from_preset_invalid_preset(self):
        """Test error handling for invalid preset name."""
        with pytest.raises(ConfigurationError, match="Unknown preset 'invalid'"):
            Settings.from_preset("invalid")


class TestSettingsFromToml:
    """Test suite for TOML loading and saving."""

    def test_from_toml_file_not_found(self, tmp_path):
        with pytest.raises(FileNotFoundError, match="Configuration file not found"):
            Settings.from_toml(tmp_path / "nonexistent.toml")

    def test_from_toml_sectioned_structure(self, tmp_path):
        """Test loading TOML with one table per component."""
        path = tmp_path / "config.toml"
        path.write_text(
            "[crf]\n"
            "crf_iterations = 40\n"
            "optimizer = \"sgd\"\n"
            "\n"
            "[pcfg]\n"
            "beam_width = 4\n"
            "\n"
            "[advanced]\n"
            "random_seed = 3\n",
            encoding="utf-8"
        )
        settings = Settings.from_toml(path)

        assert settings.crf_iterations == 40
        assert settings.optimizer == "sgd"
        assert settings.beam_width == 4
        assert settings.random_seed == 3
        assert settings.learning_rate == 0.1

    def test_from_toml_flat_structure(self, tmp_path):
        path = tmp_path / "flat.toml"
        path.write_text("hmm_smoothing = 0.5\nverbose = true\n", encoding="utf-8")
        settings = Settings.from_toml(path)

        assert settings.hmm_smoothing == 0.5
        assert settings.verbose is True

    def test_unknown_keys_rejected(self):
        with pytest.raises(ConfigurationError, match="alphabet_size"):
            Settings.from_dict({'crf': {'alphabet_size': 15}})

    def test_toml_roundtrip(self, tmp_path):
        """Test that saved settings load back unchanged."""
        original = Settings(crf_iterations=12, export_formats=["svg"], language="de")
        path = tmp_path / "nested" / "settings.toml"
        original.to_toml(path)

        assert path.exists()
        assert Settings.from_toml(path) == original

    def test_to_dict_omits_unset_seed(self):
        assert 'random_seed' not in Settings().to_dict()['advanced']
        assert Settings(random_seed=5).to_dict()['advanced']['random_seed'] == 5


class TestModelOptions:
    """Test suite for the keyword arguments handed to the models."""

    def test_crf_options(self):
        options = Settings(optimizer="adagrad", random_seed=9).crf_options()

        assert options['method'] == "adagrad"
        assert options['random_state'] == 9
        assert options['iterations'] == 100
        assert isinstance(options['feature_options'], FeatureOptions)

    def test_feature_options(self):
        options = Settings(use_gazetteers=False, max_affix_length=2).feature_options()
        assert options.use_gazetteers is False
        assert options.max_affix_length == 2

    def test_pcfg_options(self):
        assert Settings(beam_width=0).pcfg_options() == {'beam_width': 0, 'start_symbol': "s"}


class TestGlobalConfig:
    """Test suite for the global configuration accessors."""

    def test_get_config_uses_preset(self, tmp_path, monkeypatch):
        monkeypatch.chdir(tmp_path)
        with patch.object(settings_module.Path, 'home', return_value=tmp_path):
            config = get_config(preset="pos")
        assert config.crf_iterations == 150

    def test_get_config_is_cached(self, tmp_path):
        path = tmp_path / "config.toml"
        Settings(beam_width=2).to_toml(path)

        first = get_config(config_path=path)
        assert get_config() is first
        assert get_config(reload=True, config_path=path) is not first

    def test_set_config_seeds_globally(self):
        set_config(Settings(random_seed=1234))
        assert get_config().random_seed == 1234
        assert get_global_seed() == 1234
