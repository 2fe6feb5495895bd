"""
inference.py

The inference driver: validates an estimation request and dispatches it to
one of several interchangeable MCMC backends.

Every backend targets the same posterior:

    theta_k ~ priors[k]
    sigma   ~ noise_prior
    y_ij    ~ Normal(u_j(t_i; theta), sigma)

where u(t; theta) is the solution of the ODE problem with parameters theta.
"""

import importlib
import logging
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Dict, Optional, Sequence, Tuple, Union

import numpy as np

from .chain import Chain
from .data import ObservationSet
from .errors import BackendFailure, PriorCountMismatch, PyodeinfError
from .priors import DEFAULT_NOISE_PRIOR, Prior, PriorSet
from .problem import ODEProblem

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class InferenceRequest:
    """
    Everything a backend needs to sample the posterior.

    Attributes:
        problem: The ODE problem; its p is only used as a reference value.
        times: Observation times, strictly increasing, inside problem.t_span.
        data: Observed states of shape (len(times), problem.n_states).
        priors: One prior per model parameter.
        noise_prior: Prior on the observation noise standard deviation.
        num_samples: Number of posterior draws requested per chain.
        parameter_names: Labels of the parameters in the returned chain.
        method: Integration method selector (backend specific meaning).
        seed: Random seed for the sampler.
    """

    problem: ODEProblem
    times: np.ndarray
    data: np.ndarray
    priors: PriorSet
    noise_prior: Prior
    num_samples: int
    parameter_names: Tuple[str, ...]
    method: Optional[str] = None
    seed: Optional[int] = None


class InferenceBackend(ABC):
    """
    Base class for sampling backends. A backend receives a validated
    InferenceRequest and returns a Chain with one column per parameter.
    """

    name: str = "backend"

    @abstractmethod
    def sample(self, request: InferenceRequest) -> Chain:
        pass

    def __repr__(self) -> str:
        return f"{type(self).__name__}(name={self.name!r})"


# Backends are imported on first use so only the selected library is loaded.
_BACKENDS: Dict[str, str] = {
    "numpyro": "pyodeinf.backends.numpyro_nuts:NumPyroBackend",
    "pymc": "pyodeinf.backends.pymc_sampler:PyMCBackend",
    "stan": "pyodeinf.backends.cmdstan:StanBackend",
}


def register_backend(name: str, target: Union[str, type]) -> None:
    """
    Registers a backend under a selector name.

    Args:
        name: Selector used with InferenceDriver(backend=name).
        target: An InferenceBackend subclass, or 'module:ClassName'.
    """
    _BACKENDS[name] = target


def available_backends() -> Tuple[str, ...]:
    return tuple(_BACKENDS)


def _resolve_backend(name: str) -> type:
    try:
        target = _BACKENDS[name]
    except KeyError:
        raise ValueError(
            f"Unknown backend '{name}'. Available: {', '.join(available_backends())}"
        ) from None
    if isinstance(target, str):
        module_name, class_name = target.split(":")
        try:
            module = importlib.import_module(module_name)
        except ImportError as exc:
            raise BackendFailure(name, f"Could not import backend: {exc}") from exc
        target = getattr(module, class_name)
    return target


class InferenceDriver:
    """
    Estimates ODE parameters with a chosen backend.

    Example:
        >>> driver = InferenceDriver("numpyro", num_warmup=500)
        >>> chain = driver.infer(problem, t, data, [Uniform(0.1, 3.0), Normal(3.0, 1.0)])
    """

    def __init__(self, backend: Union[str, InferenceBackend] = "numpyro", **backend_options):
        """
        Args:
            backend: A registered backend name ('numpyro', 'pymc', 'stan') or
                a ready InferenceBackend instance.
            **backend_options: Private configuration forwarded to the backend
                constructor (warmup length, tolerances...).
        """
        if isinstance(backend, InferenceBackend):
            if backend_options:
                raise ValueError("backend_options cannot be combined with a backend instance.")
            self.backend = backend
        else:
            backend_cls = _resolve_backend(backend)
            self.backend = backend_cls(**backend_options)

    @property
    def backend_name(self) -> str:
        return self.backend.name

    def infer(
        self,
        problem: ODEProblem,
        times: Sequence[float],
        data: np.ndarray,
        priors: Sequence[Prior],
        num_samples: int = 1000,
        parameter_names: Optional[Sequence[str]] = None,
        method: Optional[str] = None,
        noise_prior: Prior = DEFAULT_NOISE_PRIOR,
        seed: Optional[Union[int, np.random.Generator]] = None,
    ) -> Chain:
        """
        Samples the posterior over the problem's parameters.

        Args:
            problem: The ODE problem whose parameters are estimated.
            times: Observation times.
            data: Observations of shape (len(times), n_states).
            priors: One prior per parameter, in parameter order.
            num_samples: Posterior draws requested (per chain).
            parameter_names: Labels for the chain; defaults to the model's.
            method: Integration method selector passed to the backend.
            noise_prior: Prior on the observation noise standard deviation.
            seed: Random seed for the sampler. A Generator is reduced to an
                integer seed drawn from it.

        Returns:
            The posterior Chain.

        Raises:
            PriorCountMismatch: If len(priors) != problem.n_parameters.
            BackendFailure: If the backend fails for any reason.
        """
        request = self._build_request(
            problem, times, data, priors, num_samples, parameter_names, method, noise_prior, seed
        )

        name = self.backend_name
        logger.info(
            "Sampling %d draws of %s with backend '%s'",
            request.num_samples,
            list(request.parameter_names),
            name,
        )
        start = time.perf_counter()
        try:
            chain = self.backend.sample(request)
        except PyodeinfError:
            raise
        except Exception as exc:
            raise BackendFailure(name, f"{type(exc).__name__}: {exc}") from exc
        elapsed = time.perf_counter() - start

        if not isinstance(chain, Chain) or chain.n_parameters != problem.n_parameters:
            raise BackendFailure(
                name, f"Backend returned {chain!r}, expected {problem.n_parameters} parameters per sample."
            )
        chain.info.setdefault("wall_time", elapsed)
        logger.info("Backend '%s' finished in %.2fs (%d draws)", name, elapsed, chain.num_samples)
        return chain

    def infer_observations(
        self,
        problem: ODEProblem,
        observations: ObservationSet,
        priors: Sequence[Prior],
        **kwargs,
    ) -> Chain:
        """Same as infer, with times and data taken from an ObservationSet."""
        return self.infer(problem, observations.times, observations.values, priors, **kwargs)

    @staticmethod
    def _build_request(
        problem, times, data, priors, num_samples, parameter_names, method, noise_prior, seed
    ) -> InferenceRequest:
        if not isinstance(priors, PriorSet):
            priors = tuple(priors)
        if len(priors) != problem.n_parameters:
            raise PriorCountMismatch(problem.n_parameters, len(priors))
        priors = priors if isinstance(priors, PriorSet) else PriorSet(priors)

        if parameter_names is None:
            parameter_names = problem.parameter_names
        parameter_names = tuple(parameter_names)
        if len(parameter_names) != problem.n_parameters:
            raise ValueError(
                f"Got {len(parameter_names)} parameter names for {problem.n_parameters} parameters."
            )
        if len(set(parameter_names)) != len(parameter_names):
            raise ValueError(f"Parameter names must be unique, got {list(parameter_names)}.")

        observations = ObservationSet(times, data)
        t0, t1 = problem.t_span
        if observations.times[0] < t0 or observations.times[-1] > t1:
            raise ValueError(f"Observation times must lie inside the time span [{t0}, {t1}].")
        if observations.n_states != problem.n_states:
            raise ValueError(
                f"Data has {observations.n_states} columns, problem has {problem.n_states} states."
            )
        if not np.all(np.isfinite(observations.values)):
            raise ValueError("Observed data must be finite.")

        if int(num_samples) < 1:
            raise ValueError(f"num_samples must be at least 1, got {num_samples}.")
        if not isinstance(noise_prior, Prior):
            raise TypeError(f"noise_prior must be a Prior, got {type(noise_prior).__name__}.")
        if isinstance(seed, np.random.Generator):
            # backends take integer seeds
            seed = int(seed.integers(2**31 - 1))
        elif seed is not None and not isinstance(seed, (int, np.integer)):
            raise TypeError(f"seed must be an int or a numpy Generator, got {type(seed).__name__}.")

        return InferenceRequest(
            problem=problem,
            times=observations.times,
            data=observations.values,
            priors=priors,
            noise_prior=noise_prior,
            num_samples=int(num_samples),
            parameter_names=parameter_names,
            method=method,
            seed=seed,
        )
