"""
problem.py

The immutable ODE problem: model, initial state, time span and parameters.
"""

from dataclasses import dataclass, replace
from typing import Tuple

import numpy as np

from .model import ODEModel


@dataclass(frozen=True)
class ODEProblem:
    """
    An initial value problem for an ODEModel.

    Attributes:
        model: The ODE definition.
        u0: Initial state, one value per model state.
        t_span: Integration window (t0, t1) with t1 > t0.
        p: Parameter vector, one value per model parameter.
    """

    model: ODEModel
    u0: Tuple[float, ...]
    t_span: Tuple[float, float]
    p: Tuple[float, ...]

    def __post_init__(self):
        # Normalise to tuples of floats so the problem cannot be mutated via
        # an array passed in by the caller.
        object.__setattr__(self, "u0", tuple(float(v) for v in np.ravel(self.u0)))
        object.__setattr__(self, "p", tuple(float(v) for v in np.ravel(self.p)))
        t_span = tuple(float(v) for v in self.t_span)
        object.__setattr__(self, "t_span", t_span)

        if len(self.u0) != self.model.n_states:
            raise ValueError(
                f"Initial state has {len(self.u0)} components, model "
                f"'{self.model.name}' has {self.model.n_states} states."
            )
        if len(self.p) != self.model.n_parameters:
            raise ValueError(
                f"Parameter vector has {len(self.p)} components, model "
                f"'{self.model.name}' has {self.model.n_parameters} parameters."
            )
        if len(t_span) != 2 or not t_span[1] > t_span[0]:
            raise ValueError(f"t_span must be (t0, t1) with t1 > t0, got {self.t_span}.")
        if not np.all(np.isfinite(self.u0 + self.t_span + self.p)):
            raise ValueError("Initial state, time span and parameters must be finite.")

    @property
    def n_states(self) -> int:
        return self.model.n_states

    @property
    def n_parameters(self) -> int:
        return self.model.n_parameters

    @property
    def state_names(self) -> Tuple[str, ...]:
        return self.model.state_names

    @property
    def parameter_names(self) -> Tuple[str, ...]:
        return self.model.parameter_names

    def remake(self, **changes) -> "ODEProblem":
        """
        Returns a NEW problem with the given fields replaced, e.g.
        ``problem.remake(p=(0.5, 2.0))``.
        """
        return replace(self, **changes)
