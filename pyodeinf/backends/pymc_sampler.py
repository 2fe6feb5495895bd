"""
pymc_sampler.py

Probabilistic-programming backend: a PyMC model whose forward solution comes
from pymc.ode.DifferentialEquation (scipy odeint with forward sensitivities).
"""

import logging

import numpy as np
import pymc as pm
import pytensor.tensor as pt
from pymc.ode import DifferentialEquation

from ..chain import Chain
from ..inference import InferenceBackend, InferenceRequest
from ..priors import Prior
from ._common import initial_values, stack_draws

logger = logging.getLogger(__name__)

_STEP_METHODS = ("nuts", "metropolis", "slice", "demetropolisz")


def to_pymc(name: str, prior: Prior):
    """Declares a random variable for the prior in the current pm.Model."""
    params = prior.params
    if prior.family == "uniform":
        return pm.Uniform(name, lower=params["low"], upper=params["high"])
    if prior.family == "normal":
        return pm.Normal(name, mu=params["mu"], sigma=params["sigma"])
    if prior.family == "lognormal":
        return pm.LogNormal(name, mu=params["mu"], sigma=params["sigma"])
    if prior.family == "inverse_gamma":
        return pm.InverseGamma(name, alpha=params["alpha"], beta=params["beta"])
    if prior.family == "exponential":
        return pm.Exponential(name, lam=params["rate"])
    raise ValueError(f"No PyMC equivalent for prior family '{prior.family}'.")


class PyMCBackend(InferenceBackend):
    """
    PyMC sampler. NUTS by default; gradient free step methods are available
    for models whose sensitivities are expensive.
    """

    name = "pymc"

    def __init__(
        self,
        tune: int = 1000,
        chains: int = 1,
        cores: int = 1,
        step: str = "nuts",
        target_accept: float = 0.8,
        progressbar: bool = False,
    ):
        """
        Args:
            tune: Tuning steps per chain, discarded.
            chains: Number of chains.
            cores: Number of chains run in parallel.
            step: One of 'nuts', 'metropolis', 'slice', 'demetropolisz'.
            target_accept: NUTS step size adaptation target.
            progressbar: Show PyMC's progress bar.
        """
        step = step.lower()
        if step not in _STEP_METHODS:
            raise ValueError(f"Unknown step method '{step}'. Choose from {_STEP_METHODS}.")
        self.tune = int(tune)
        self.chains = int(chains)
        self.cores = int(cores)
        self.step = step
        self.target_accept = float(target_accept)
        self.progressbar = progressbar

    def _step_method(self):
        # Must be called inside the model context.
        if self.step == "nuts":
            return pm.NUTS(target_accept=self.target_accept)
        if self.step == "metropolis":
            return pm.Metropolis()
        if self.step == "slice":
            return pm.Slice()
        return pm.DEMetropolisZ()

    def sample(self, request: InferenceRequest) -> Chain:
        problem = request.problem
        names = request.parameter_names
        if request.method is not None:
            logger.debug("pymc backend integrates with scipy odeint; ignoring method=%r", request.method)

        noise_name = "sigma" if "sigma" not in names else "noise_sigma"

        def rhs(u, t, theta):
            return problem.model.rhs(u, theta, t, xp=pt)

        ode = DifferentialEquation(
            func=rhs,
            times=np.asarray(request.times),
            n_states=problem.n_states,
            n_theta=problem.n_parameters,
            t0=problem.t_span[0],
        )

        initvals = dict(zip(names, initial_values(request.priors)))
        initvals[noise_name] = request.noise_prior.median

        with pm.Model():
            theta = [to_pymc(name, prior) for name, prior in zip(names, request.priors)]
            sigma = to_pymc(noise_name, request.noise_prior)
            solution = ode(y0=list(problem.u0), theta=theta)
            pm.Normal("y", mu=solution, sigma=sigma, observed=request.data)

            idata = pm.sample(
                draws=request.num_samples,
                tune=self.tune,
                chains=self.chains,
                cores=self.cores,
                step=self._step_method(),
                initvals=initvals,
                random_seed=request.seed,
                progressbar=self.progressbar,
                compute_convergence_checks=False,
            )

        posterior = idata.posterior
        draws = {name: posterior[name].values for name in list(names) + [noise_name]}
        samples = stack_draws(self.name, draws, names)

        return Chain(
            samples,
            names,
            backend=self.name,
            extras={"sigma": draws[noise_name].reshape(-1)},
            num_chains=self.chains,
            info={"tune": self.tune, "step": self.step},
        )
