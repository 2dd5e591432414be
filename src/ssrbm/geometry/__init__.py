from .manifold import Block, Manifold, Triple
from .optimizer import Optimizer, OptState

__all__ = [
    "Block",
    "Manifold",
    "OptState",
    "Optimizer",
    "Triple",
]
