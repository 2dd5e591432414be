"""Exceptions raised by spike-and-slab models and their hosts.

Configuration errors are caller bugs and abort immediately. Numerical instability is raised when a conditional mean stops being finite, rather than letting NaN flow into the samples. Exhausting the visible rejection budget is not an error: it is logged and absorbed by the sampler.
"""


class SpikeSlabError(Exception):
    """Base class for errors raised by this package."""


class ConfigurationError(SpikeSlabError, ValueError):
    """Invalid dimensions, hyperparameters, or parameter values."""


class UninitializedError(ConfigurationError):
    """A parameter store was used before `reset` was called."""


class NumericalInstabilityError(SpikeSlabError, ArithmeticError):
    """A computed mean or variance is not finite."""
