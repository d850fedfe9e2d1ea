"""Default configuration parameters for the tagging and parsing tasks."""

from dataclasses import dataclass, field
from typing import List

from ..core.optimizer import METHODS


@dataclass
class DefaultConfig:
    """Base configuration structure for training taggers and parsers."""

    # Feature extraction
    use_gazetteers: bool
    max_affix_length: int

    # CRF training
    crf_iterations: int
    learning_rate: float
    regularization: float
    optimizer: str
    convergence_threshold: float
    loss_threshold: float

    # HMM
    hmm_smoothing: float
    hmm_algorithm: str

    # PCFG
    start_symbol: str
    pcfg_smoothing: float
    beam_width: int
    cnf: bool

    # Visualization
    figure_dpi: int
    export_formats: List[str] = field(default_factory=lambda: ["png"])


# Named-entity recognition: gazetteers on, heavier regularization
NER_CONFIG = DefaultConfig(
    use_gazetteers=True,
    max_affix_length=4,
    crf_iterations=100,
    learning_rate=0.1,
    regularization=1.0,
    optimizer="momentum",
    convergence_threshold=0.01,
    loss_threshold=1e-4,
    hmm_smoothing=0.001,
    hmm_algorithm="viterbi",
    start_symbol="s",
    pcfg_smoothing=0.001,
    beam_width=10,
    cnf=True,
    figure_dpi=300,
    export_formats=["pdf", "png"]
)

# Part-of-speech tagging: gazetteers add little, affixes matter more
POS_CONFIG = DefaultConfig(
    use_gazetteers=False,
    max_affix_length=4,
    crf_iterations=150,
    learning_rate=0.1,
    regularization=0.5,
    optimizer="adagrad",
    convergence_threshold=0.01,
    loss_threshold=1e-4,
    hmm_smoothing=0.001,
    hmm_algorithm="trigram",
    start_symbol="s",
    pcfg_smoothing=0.001,
    beam_width=10,
    cnf=True,
    figure_dpi=300,
    export_formats=["pdf", "png"]
)

TASK_CONFIGS = {
    "ner": NER_CONFIG,
    "pos": POS_CONFIG,
    "minimal": DefaultConfig(
        use_gazetteers=False,
        max_affix_length=2,
        crf_iterations=20,
        learning_rate=0.1,
        regularization=1.0,
        optimizer="sgd",
        convergence_threshold=0.05,
        loss_threshold=1e-3,
        hmm_smoothing=0.01,
        hmm_algorithm="viterbi",
        start_symbol="s",
        pcfg_smoothing=0.01,
        beam_width=5,
        cnf=True,
        figure_dpi=150,
        export_formats=["png"]
    )
}

HMM_ALGORITHMS = ["viterbi", "trigram"]
EXPORT_FORMATS = ["pdf", "png", "svg"]

# Practical limits
MAX_AFFIX_LENGTH = 10
MAX_LEARNING_RATE = 1.0
RECOMMENDED_MAX_BEAM = 50


def validate_config(config: DefaultConfig) -> List[str]:
    """Validate configuration parameters and return list of warnings."""
    warnings = []

    if config.max_affix_length > MAX_AFFIX_LENGTH:
        warnings.append(f"Affix length {config.max_affix_length} produces many sparse features")

    if config.optimizer not in METHODS:
        warnings.append(f"Optimizer '{config.optimizer}' not recognized")

    if config.learning_rate > MAX_LEARNING_RATE:
        warnings.append(f"Learning rate {config.learning_rate} is high and may diverge")

    if config.crf_iterations < 10:
        warnings.append(f"Only {config.crf_iterations} CRF iterations; training will likely stop early")

    if config.regularization == 0:
        warnings.append("No regularization; CRF weights can grow without bound on separable data")

    if config.hmm_algorithm not in HMM_ALGORITHMS:
        warnings.append(f"HMM algorithm '{config.hmm_algorithm}' not recognized")

    if config.beam_width == 0 or config.beam_width > RECOMMENDED_MAX_BEAM:
        warnings.append(f"Beam width {config.beam_width} may make CYK parsing slow")

    if not config.cnf:
        warnings.append("CYK parsing needs a CNF grammar; non-binary rules will be ignored")

    unknown_formats = [fmt for fmt in config.export_formats if fmt not in EXPORT_FORMATS]
    if unknown_formats:
        warnings.append(f"Export formats {unknown_formats} not recognized")

    return warnings
