# fieldsim/errors.py
"""
Exception and warning types raised or reported by the engine.

ConfigurationError fails fast and leaves the engine untouched.
NumericalInstabilityWarning is only ever reported, never raised.
ResourceInitializationError aborts engine construction.
"""


class ConfigurationError(ValueError):
    """Invalid resolution/scale, unknown model or unknown/unsupported parameter."""


class NumericalInstabilityWarning(RuntimeWarning):
    """Field left the model's clamp range before clamping, or went non-finite."""


class ResourceInitializationError(RuntimeError):
    """Field buffer allocation failed; the engine cannot run without it."""
