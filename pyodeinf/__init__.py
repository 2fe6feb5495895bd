"""
pyodeinf: Bayesian parameter estimation for ODE models.

Simulate a model with scipy, generate noisy synthetic observations, declare
priors, and sample the parameter posterior with one of several
interchangeable MCMC backends (NumPyro, PyMC, CmdStan).
"""

from .errors import (
    PyodeinfError,
    ModelEvaluationError,
    IntegrationFailure,
    PriorCountMismatch,
    BackendFailure,
)
from .model import ODEModel
from .problem import ODEProblem
from .solvers import Trajectory, simulate, solve_trajectory
from .data import DEFAULT_NOISE_STD, ObservationSet, generate_synthetic_data
from .priors import (
    Prior,
    Uniform,
    Normal,
    LogNormal,
    InverseGamma,
    Exponential,
    PriorSet,
    DEFAULT_NOISE_PRIOR,
)
from .chain import Chain
from .inference import (
    InferenceBackend,
    InferenceDriver,
    InferenceRequest,
    available_backends,
    register_backend,
)
from .pendulum import GRAVITY, PENDULUM, pendulum_problem, pendulum_rhs

__all__ = [
    # Errors
    "PyodeinfError",
    "ModelEvaluationError",
    "IntegrationFailure",
    "PriorCountMismatch",
    "BackendFailure",
    # Problem definition
    "ODEModel",
    "ODEProblem",
    # Simulation
    "Trajectory",
    "simulate",
    "solve_trajectory",
    # Synthetic data
    "DEFAULT_NOISE_STD",
    "ObservationSet",
    "generate_synthetic_data",
    # Priors
    "Prior",
    "Uniform",
    "Normal",
    "LogNormal",
    "InverseGamma",
    "Exponential",
    "PriorSet",
    "DEFAULT_NOISE_PRIOR",
    # Inference
    "Chain",
    "InferenceBackend",
    "InferenceDriver",
    "InferenceRequest",
    "available_backends",
    "register_backend",
    # Pendulum
    "GRAVITY",
    "PENDULUM",
    "pendulum_problem",
    "pendulum_rhs",
]
