"""
model.py

Declarative description of an ODE system du/dt = f(u, p, t).

The right-hand side is written once against an array namespace ``xp`` so the
same definition can be evaluated by NumPy (forward simulation), by
``jax.numpy`` (NumPyro) and by ``pytensor.tensor`` (PyMC).
"""

from typing import Callable, Optional, Sequence

import numpy as np

from .errors import ModelEvaluationError


class ODEModel:
    """
    An ordinary differential equation with named states and parameters.
    """

    def __init__(
        self,
        rhs: Callable[..., Sequence],
        state_names: Sequence[str],
        parameter_names: Sequence[str],
        name: str = "ode",
        stan_rhs: Optional[str] = None,
        validate: Optional[Callable[[np.ndarray], None]] = None,
    ):
        """
        Args:
            rhs: Right-hand side f(u, p, t, xp=numpy) returning one derivative
                per state. Must only use functions from ``xp``.
            state_names: Names of the state components, in order.
            parameter_names: Names of the parameters, in order.
            name: Label used in logs and generated code.
            stan_rhs: Body of the Stan function
                ``vector ode_rhs(real t, vector u, vector theta)``. It must
                assign the pre-declared ``vector[N] du``. Only needed by the
                Stan backend.
            validate: Optional hook called with the parameter vector that
                raises ModelEvaluationError when the derivative is undefined.
        """
        if len(state_names) == 0:
            raise ValueError("An ODE model needs at least one state.")
        if len(set(parameter_names)) != len(parameter_names):
            raise ValueError(f"Duplicate parameter names: {list(parameter_names)}")

        self.rhs = rhs
        self.state_names = tuple(state_names)
        self.parameter_names = tuple(parameter_names)
        self.name = name
        self.stan_rhs = stan_rhs
        self._validate = validate

    @property
    def n_states(self) -> int:
        return len(self.state_names)

    @property
    def n_parameters(self) -> int:
        return len(self.parameter_names)

    def validate_parameters(self, p: Sequence[float]) -> None:
        """Raises ModelEvaluationError if the model is undefined at p."""
        p = np.asarray(p, dtype=float)
        if p.shape != (self.n_parameters,):
            raise ValueError(
                f"Model '{self.name}' expects {self.n_parameters} parameters, "
                f"got shape {p.shape}."
            )
        if self._validate is not None:
            self._validate(p)

    def derivative(self, u: Sequence[float], p: Sequence[float], t: float) -> np.ndarray:
        """
        Evaluates du/dt with NumPy.

        Args:
            u: State vector of shape (n_states,).
            p: Parameter vector of shape (n_parameters,).
            t: Time.

        Returns:
            The derivative vector of shape (n_states,).
        """
        self.validate_parameters(p)
        du = np.asarray(self.rhs(np.asarray(u, dtype=float), np.asarray(p, dtype=float), t), dtype=float)
        if not np.all(np.isfinite(du)):
            raise ModelEvaluationError(
                f"Model '{self.name}' produced a non-finite derivative at t={t} "
                f"for parameters {list(p)}."
            )
        return du

    def __call__(self, t: float, u: np.ndarray, p: Sequence[float]) -> np.ndarray:
        # scipy.integrate.solve_ivp calling convention f(t, y, *args)
        return self.derivative(u, p, t)

    def __repr__(self) -> str:
        return (
            f"ODEModel(name={self.name!r}, states={list(self.state_names)}, "
            f"parameters={list(self.parameter_names)})"
        )
