"""
Exception hierarchy for modelkit.

I/O failures are reported with the builtin ``OSError`` family and sampler
exhaustion with ``StopIteration``; everything specific to the model
lifecycle derives from ``ModelKitError``.
"""


class ModelKitError(Exception):
    """Base class for all modelkit errors."""


class EngineError(ModelKitError):
    """Raised when an engine cannot be found or initialized."""


class MalformedModelError(ModelKitError):
    """Raised when persisted model data does not parse as a valid graph or parameter set."""


class UnsupportedConversionError(ModelKitError, TypeError):
    """Raised when a data type conversion has no defined implementation."""


class UseAfterCloseError(ModelKitError, RuntimeError):
    """Raised when a closed model or manager is used."""
