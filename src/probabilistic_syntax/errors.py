"""Exception hierarchy for probabilistic syntax models.

Every public entry point validates its inputs up front and raises one of these
errors before touching any model table.
"""


class ProbabilisticSyntaxError(Exception):
    """Base class for all errors raised by this package."""


class ConfigurationError(ProbabilisticSyntaxError, ValueError):
    """An option value is outside its accepted range."""


class TrainingDataError(ProbabilisticSyntaxError, ValueError):
    """Training or evaluation data is malformed (empty, mismatched lengths, ...)."""


class NotTrainedError(ProbabilisticSyntaxError, RuntimeError):
    """A prediction was requested from a model that has no learned tables."""


class ParseError(ProbabilisticSyntaxError):
    """The grammar cannot derive the requested start symbol over the input."""


class ModelIOError(ProbabilisticSyntaxError, OSError):
    """Saving or loading a serialized model failed."""


class IncompatibleModelError(ModelIOError):
    """A serialized model uses an unknown format version or model type."""
