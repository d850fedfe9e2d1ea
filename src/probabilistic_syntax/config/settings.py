"""Main configuration settings with TOML loading support."""

import logging
from dataclasses import dataclass, field, asdict, fields
from typing import List, Optional, Dict, Any, Union
from pathlib import Path

try:
    import tomllib  # Python 3.11+
except ImportError:
    import tomli as tomllib

import tomli_w

from .defaults import TASK_CONFIGS, DefaultConfig, validate_config
from ..errors import ConfigurationError

logger = logging.getLogger(__name__)

SECTIONS = ('features', 'crf', 'hmm', 'pcfg', 'visualization', 'advanced')


@dataclass
class Settings:
    """Main configuration settings for Probabilistic Syntax.

    Can be loaded from TOML files for user customization while providing
    sensible defaults for the supported tasks.
    """

    # Feature extraction
    use_gazetteers: bool = True
    max_affix_length: int = 4

    # CRF training
    crf_iterations: int = 100
    learning_rate: float = 0.1
    regularization: float = 1.0
    optimizer: str = "momentum"
    convergence_threshold: float = 0.01
    loss_threshold: float = 1e-4

    # HMM
    hmm_smoothing: float = 0.001
    hmm_algorithm: str = "viterbi"

    # PCFG
    start_symbol: str = "s"
    pcfg_smoothing: float = 0.001
    beam_width: int = 10
    cnf: bool = True

    # Visualization
    figure_dpi: int = 300
    export_formats: List[str] = field(default_factory=lambda: ["pdf", "png"])
    output_dir: str = "output"

    # Reproducibility
    random_seed: Optional[int] = None

    # Advanced settings
    language: str = "en"
    verbose: bool = False

    def __post_init__(self):
        """Validate settings after initialization."""
        if self.max_affix_length < 0:
            raise ConfigurationError(f"max_affix_length must be non-negative, got {self.max_affix_length}")
        if self.crf_iterations < 1:
            raise ConfigurationError(f"crf_iterations must be positive, got {self.crf_iterations}")
        if self.learning_rate <= 0:
            raise ConfigurationError(f"learning_rate must be positive, got {self.learning_rate}")
        if self.regularization < 0:
            raise ConfigurationError(f"regularization must be non-negative, got {self.regularization}")
        if self.hmm_smoothing <= 0 or self.pcfg_smoothing <= 0:
            raise ConfigurationError("Smoothing constants must be positive")
        if self.beam_width < 0:
            raise ConfigurationError(f"beam_width must be non-negative, got {self.beam_width}")

        for warning in validate_config(self.to_default_config()):
            if self.verbose:
                logger.warning("Configuration warning: %s", warning)
            else:
                logger.debug("Configuration warning: %s", warning)

    def to_default_config(self) -> DefaultConfig:
        names = {f.name for f in fields(DefaultConfig)}
        return DefaultConfig(**{k: v for k, v in asdict(self).items() if k in names})

    @classmethod
    def from_preset(cls, preset: str) -> 'Settings':
        """Create settings from a preset configuration.

        Parameters
        ----------
        preset : str
            Preset name ('ner', 'pos', 'minimal')

        Returns
        -------
        Settings
            Settings object with preset values
        """
        if preset not in TASK_CONFIGS:
            raise ConfigurationError(f"Unknown preset '{preset}'. Available: {list(TASK_CONFIGS.keys())}")

        config = asdict(TASK_CONFIGS[preset])
        config['export_formats'] = list(config['export_formats'])
        return cls(**config)

    @classmethod
    def from_dict(cls, config_data: Dict[str, Any]) -> 'Settings':
        """Build settings from a sectioned or flat mapping (TOML or YAML content)."""
        settings_data = {}
        for section in SECTIONS:
            if isinstance(config_data.get(section), dict):
                settings_data.update(config_data[section])

        # Also handle flat structure
        for key, value in config_data.items():
            if not isinstance(value, dict):
                settings_data[key] = value

        known = {f.name for f in fields(cls)}
        unknown = sorted(set(settings_data) - known)
        if unknown:
            raise ConfigurationError(f"Unknown configuration keys: {unknown}")
        return cls(**settings_data)

    @classmethod
    def from_toml(cls, toml_path: Union[str, Path]) -> 'Settings':
        """Load settings from TOML file.

        Parameters
        ----------
        toml_path : Union[str, Path]
            Path to TOML configuration file

        Returns
        -------
        Settings
            Settings object with values from TOML file

        Raises
        ------
        FileNotFoundError
            If TOML file doesn't exist
        ConfigurationError
            If the file contains unknown keys or invalid values
        """
        toml_path = Path(toml_path)
        if not toml_path.exists():
            raise FileNotFoundError(f"Configuration file not found: {toml_path}")

        with open(toml_path, 'rb') as f:
            config_data = tomllib.load(f)

        return cls.from_dict(config_data)

    def to_dict(self) -> Dict[str, Dict[str, Any]]:
        """Settings organized into TOML sections."""
        return {
            'features': {
                'use_gazetteers': self.use_gazetteers,
                'max_affix_length': self.max_affix_length
            },
            'crf': {
                'crf_iterations': self.crf_iterations,
                'learning_rate': self.learning_rate,
                'regularization': self.regularization,
                'optimizer': self.optimizer,
                'convergence_threshold': self.convergence_threshold,
                'loss_threshold': self.loss_threshold
            },
            'hmm': {
                'hmm_smoothing': self.hmm_smoothing,
                'hmm_algorithm': self.hmm_algorithm
            },
            'pcfg': {
                'start_symbol': self.start_symbol,
                'pcfg_smoothing': self.pcfg_smoothing,
                'beam_width': self.beam_width,
                'cnf': self.cnf
            },
            'visualization': {
                'figure_dpi': self.figure_dpi,
                'export_formats': list(self.export_formats),
                'output_dir': self.output_dir
            },
            # TOML has no null; an unset seed is omitted
            'advanced': {k: v for k, v in {
                'random_seed': self.random_seed,
                'language': self.language,
                'verbose': self.verbose
            }.items() if v is not None}
        }

    def to_toml(self, toml_path: Union[str, Path]) -> None:
        """Save settings to TOML file.

        Parameters
        ----------
        toml_path : Union[str, Path]
            Path where to save TOML configuration file
        """
        toml_path = Path(toml_path)
        toml_path.parent.mkdir(parents=True, exist_ok=True)
        with open(toml_path, 'wb') as f:
            tomli_w.dump(self.to_dict(), f)

    def update(self, **kwargs) -> 'Settings':
        """Create new Settings with updated values.

        Parameters
        ----------
        **kwargs
            Settings fields to update

        Returns
        -------
        Settings
            New Settings object with updated values
        """
        current_dict = asdict(self)
        current_dict.update(kwargs)
        return Settings(**current_dict)

    def feature_options(self):
        from ..core.features import FeatureOptions
        return FeatureOptions(use_gazetteers=self.use_gazetteers, max_affix_length=self.max_affix_length)

    def crf_options(self) -> Dict[str, Any]:
        """Keyword arguments for :meth:`CRF.train`."""
        return {
            'iterations': self.crf_iterations,
            'learning_rate': self.learning_rate,
            'regularization': self.regularization,
            'method': self.optimizer,
            'convergence_threshold': self.convergence_threshold,
            'loss_threshold': self.loss_threshold,
            'feature_options': self.feature_options(),
            'random_state': self.random_seed,
            'verbose': self.verbose
        }

    def pcfg_options(self) -> Dict[str, Any]:
        """Keyword arguments for :meth:`PCFG.predict` and :meth:`PCFG.evaluate`."""
        return {
            'beam_width': self.beam_width,
            'start_symbol': self.start_symbol
        }


# Global configuration instance
_GLOBAL_CONFIG: Optional[Settings] = None


def get_config(config_path: Optional[Union[str, Path]] = None,
               preset: Optional[str] = None,
               reload: bool = False) -> Settings:
    """Get global configuration settings.

    Parameters
    ----------
    config_path : Optional[Union[str, Path]]
        Path to TOML configuration file. If None, looks for default locations.
    preset : Optional[str]
        Preset configuration name ('ner', 'pos', 'minimal').
        Ignored if config_path is provided.
    reload : bool
        Force reload configuration even if already loaded

    Returns
    -------
    Settings
        Global configuration settings
    """
    global _GLOBAL_CONFIG

    if _GLOBAL_CONFIG is not None and not reload:
        return _GLOBAL_CONFIG

    if config_path is not None:
        _GLOBAL_CONFIG = Settings.from_toml(config_path)
    else:
        default_paths = [
            Path('probabilistic_syntax.toml'),
            Path.home() / '.probabilistic_syntax.toml',
            Path.cwd() / 'config' / 'probabilistic_syntax.toml'
        ]

        config_loaded = False
        for path in default_paths:
            if path.exists():
                try:
                    _GLOBAL_CONFIG = Settings.from_toml(path)
                    config_loaded = True
                    break
                except (tomllib.TOMLDecodeError, ConfigurationError, TypeError) as e:
                    logger.warning("Could not load config from %s: %s", path, e)
                    continue

        if not config_loaded:
            _GLOBAL_CONFIG = Settings.from_preset(preset) if preset is not None else Settings()

    if _GLOBAL_CONFIG.random_seed is not None:
        from .random_state import set_global_seed
        set_global_seed(_GLOBAL_CONFIG.random_seed)

    return _GLOBAL_CONFIG


def set_config(settings: Settings) -> None:
    """Set global configuration settings.

    Parameters
    ----------
    settings : Settings
        Settings object to use as global configuration
    """
    global _GLOBAL_CONFIG
    _GLOBAL_CONFIG = settings

    if settings.random_seed is not None:
        from .random_state import set_global_seed
        set_global_seed(settings.random_seed)
