from .spike_slab import SpikeSlabRBM, VisibleSample, spike_slab_rbm
from .variant import RBMVariant

__all__ = [
    "RBMVariant",
    "SpikeSlabRBM",
    "VisibleSample",
    "spike_slab_rbm",
]
