"""
pendulum.py

The damped single pendulum, parameterised by its damping coefficient omega
and its length L.

State vector u = [theta, theta_dot]
"""

from typing import Sequence, Tuple

import numpy as np

from .errors import ModelEvaluationError
from .model import ODEModel
from .problem import ODEProblem


GRAVITY = 9.8


def pendulum_rhs(u, p, t, xp=np):
    """
    Equations of motion of the damped pendulum.

    Args:
        u: State vector [angle, angular velocity].
        p: Parameters [omega, L].
        t: Time (unused in autonomous system).
        xp: Array namespace providing ``sin``.

    Returns:
        [d(theta)/dt, d(theta_dot)/dt]
    """
    omega, L = p[0], p[1]
    return [u[1], -omega * u[1] - (GRAVITY / L) * xp.sin(u[0])]


def _validate_pendulum(p: np.ndarray) -> None:
    if not np.all(np.isfinite(p)):
        raise ModelEvaluationError(f"Pendulum parameters must be finite, got {list(p)}.")
    if p[1] == 0:
        raise ModelEvaluationError("Pendulum length L must be non-zero.")


PENDULUM_STAN = f"""
    du[1] = u[2];
    du[2] = -theta[1] * u[2] - ({GRAVITY} / theta[2]) * sin(u[1]);
"""

PENDULUM = ODEModel(
    rhs=pendulum_rhs,
    state_names=("theta", "theta_dot"),
    parameter_names=("omega", "L"),
    name="pendulum",
    stan_rhs=PENDULUM_STAN,
    validate=_validate_pendulum,
)


def pendulum_problem(
    u0: Sequence[float] = (1.0, 0.1),
    t_span: Tuple[float, float] = (0.0, 10.0),
    p: Sequence[float] = (1.0, 2.5),
) -> ODEProblem:
    """Returns the damped pendulum problem with the given initial state and parameters."""
    return ODEProblem(PENDULUM, u0, t_span, p)


def period(L: float, g: float = GRAVITY) -> float:
    """
    Small-angle period T = 2*pi*sqrt(L/g) of the undamped pendulum.
    """
    return 2 * np.pi * np.sqrt(L / g)
