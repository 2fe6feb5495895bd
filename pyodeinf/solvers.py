"""
solvers.py

Forward simulation of an ODEProblem with scipy's adaptive integrators.
"""

import logging
from typing import Union

import numpy as np
from scipy.integrate import solve_ivp

from .errors import IntegrationFailure
from .problem import ODEProblem

logger = logging.getLogger(__name__)


class Trajectory:
    """
    Continuous solution of an ODEProblem, backed by the solver's dense
    interpolant. Evaluable at any time inside the integration window.
    """

    def __init__(self, problem: ODEProblem, solution, method: str):
        """
        Args:
            problem: The problem that was integrated.
            solution: The OdeResult returned by solve_ivp with dense_output=True.
            method: Name of the integration method used.
        """
        self.problem = problem
        self.method = method
        self._sol = solution.sol
        self.t = solution.t
        # solve_ivp stores states as (n_states, n_times)
        self.y = solution.y.T
        self.nfev = solution.nfev

    @property
    def t_span(self):
        return self.problem.t_span

    @property
    def n_states(self) -> int:
        return self.problem.n_states

    def _check_times(self, t: np.ndarray) -> None:
        t0, t1 = self.t_span
        slack = 1e-12 * max(1.0, abs(t1))
        if np.any(t < t0 - slack) or np.any(t > t1 + slack):
            raise ValueError(
                f"Requested times outside the integration window [{t0}, {t1}]."
            )

    def __call__(self, t: Union[float, np.ndarray]) -> np.ndarray:
        """
        Interpolated state(s).

        Args:
            t: A time or array of times within t_span.

        Returns:
            Array of shape (n_states,) for a scalar t, else (len(t), n_states).
        """
        t_arr = np.asarray(t, dtype=float)
        self._check_times(np.atleast_1d(t_arr))
        values = self._sol(np.clip(t_arr, *self.t_span))
        return values.T

    def derivative(self, t: float) -> np.ndarray:
        """The model derivative du/dt evaluated on the interpolated state at t."""
        return self.problem.model.derivative(self(t), self.problem.p, t)

    def __repr__(self) -> str:
        return (
            f"Trajectory(model={self.problem.model.name!r}, t_span={self.t_span}, "
            f"method={self.method!r}, points={len(self.t)})"
        )


def simulate(
    problem: ODEProblem,
    method: str = "DOP853",
    rtol: float = 1e-9,
    atol: float = 1e-12,
    max_step: float = np.inf,
) -> Trajectory:
    """
    Integrates the problem over its time span.

    Args:
        problem: The initial value problem.
        method: Integration method passed to solve_ivp (e.g. 'DOP853', 'RK45').
        rtol: Relative tolerance for solver.
        atol: Absolute tolerance for solver.
        max_step: Largest step the solver may take.

    Returns:
        A Trajectory with dense output over problem.t_span.

    Raises:
        ModelEvaluationError: If the model is undefined for problem.p.
        IntegrationFailure: If the solver cannot meet its tolerances.
    """
    problem.model.validate_parameters(problem.p)

    sol = solve_ivp(
        problem.model,
        problem.t_span,
        np.asarray(problem.u0),
        method=method,
        rtol=rtol,
        atol=atol,
        max_step=max_step,
        dense_output=True,
        args=(problem.p,),
    )
    if not sol.success:
        t_reached = float(sol.t[-1]) if len(sol.t) else None
        raise IntegrationFailure(sol.message, t_reached)

    trajectory = Trajectory(problem, sol, method)
    logger.debug(
        "Integrated %s over %s with %s: %d steps, %d evaluations",
        problem.model.name,
        problem.t_span,
        method,
        len(trajectory.t),
        trajectory.nfev,
    )
    return trajectory


def solve_trajectory(problem: ODEProblem, t_points: np.ndarray, **solver_kwargs) -> np.ndarray:
    """
    Integrates the problem and evaluates the solution at the given times.

    Args:
        problem: The initial value problem.
        t_points: Times within problem.t_span.
        **solver_kwargs: Extra kwargs for simulate (method, rtol, atol...).

    Returns:
        Solution array of shape (n_times, n_states).
    """
    return simulate(problem, **solver_kwargs)(np.asarray(t_points, dtype=float))
