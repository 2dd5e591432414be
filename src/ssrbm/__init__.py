from .errors import (
    ConfigurationError,
    NumericalInstabilityError,
    SpikeSlabError,
    UninitializedError,
)
from .geometry import Optimizer
from .initialization import (
    ConstantInitialization,
    GaussianInitialization,
    Initializer,
    SpikeSlabInitialization,
    UniformInitialization,
    ZeroInitialization,
)
from .models import RBMVariant, SpikeSlabRBM, VisibleSample, spike_slab_rbm
from .random import JaxRandomSource, RandomSource
from .store import ParameterStore
from .training import ContrastiveDivergence

__all__ = [
    "ConfigurationError",
    "ConstantInitialization",
    "ContrastiveDivergence",
    "GaussianInitialization",
    "Initializer",
    "JaxRandomSource",
    "NumericalInstabilityError",
    "Optimizer",
    "ParameterStore",
    "RBMVariant",
    "RandomSource",
    "SpikeSlabError",
    "SpikeSlabInitialization",
    "SpikeSlabRBM",
    "UniformInitialization",
    "UninitializedError",
    "VisibleSample",
    "ZeroInitialization",
    "spike_slab_rbm",
]
