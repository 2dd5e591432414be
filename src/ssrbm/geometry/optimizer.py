"""Optax optimizers bound to the flat parameter array of a model.

An `Optimizer` pairs an `optax` transformation with the manifold whose points it moves. The manifold fixes the length every parameter and gradient array must have, so a gradient computed for one model cannot silently update the parameters of another.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import NewType

from jax import Array
from optax import (
    GradientTransformation,
    ScalarOrSchedule,
    adamw,
    apply_updates,
    sgd,
)

from ..errors import ConfigurationError
from .manifold import Manifold

OptState = NewType("OptState", object)
"""Opaque optax state carried between updates."""


@dataclass(frozen=True)
class Optimizer[M: Manifold]:
    """Descent on the flat parameters of `opt_man` with gradients laid out like them."""

    optimizer: GradientTransformation
    opt_man: M

    @classmethod
    def adamw(
        cls,
        man: M,
        learning_rate: ScalarOrSchedule = 0.1,
        b1: float = 0.9,
        b2: float = 0.999,
        weight_decay: float = 0.0001,
    ) -> Optimizer[M]:
        """AdamW, the usual choice for persistent contrastive divergence."""
        return cls(adamw(learning_rate, b1=b1, b2=b2, weight_decay=weight_decay), man)

    @classmethod
    def sgd(
        cls,
        man: M,
        learning_rate: ScalarOrSchedule = 0.1,
        momentum: float = 0.0,
    ) -> Optimizer[M]:
        """Plain stochastic gradient descent.

        Args:
            man: Model whose parameters are optimized
            learning_rate: Step size or schedule
            momentum: Momentum coefficient (0 disables momentum)

        Returns:
            SGD optimizer for `man`
        """
        return cls(sgd(learning_rate, momentum=momentum), man)

    def _check_shape(self, name: str, array: Array) -> None:
        expected = (self.opt_man.dim,)
        if array.shape != expected:
            raise ConfigurationError(
                f"Expected {name} of shape {expected}, got {array.shape}"
            )

    def init(self, params: Array) -> OptState:
        """Optimizer state for a parameter array of `opt_man`."""
        self._check_shape("parameters", params)
        return OptState(self.optimizer.init(params))

    def update(
        self,
        opt_state: OptState,
        grads: Array,
        params: Array,
    ) -> tuple[OptState, Array]:
        """Move the parameters one step against the gradient.

        Args:
            opt_state: Current optimizer state
            grads: Gradient with the parameter layout of `opt_man`
            params: Current parameters

        Returns:
            Tuple of (new optimizer state, updated parameters)
        """
        self._check_shape("parameters", params)
        self._check_shape("gradient", grads)
        updates, new_opt_state = self.optimizer.update(grads, opt_state, params)
        return OptState(new_opt_state), apply_updates(params, updates)
