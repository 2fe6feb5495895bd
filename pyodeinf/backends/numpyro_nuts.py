"""
numpyro_nuts.py

Gradient based backend: the ODE is integrated inside a NumPyro model with
jax.experimental.ode.odeint (adaptive Dormand-Prince) and the posterior is
sampled with NUTS.
"""

import logging

import jax
import jax.numpy as jnp
import numpy as np
import numpyro
import numpyro.distributions as dist
from jax.experimental.ode import odeint
from numpyro.infer import MCMC, NUTS, init_to_value

from ..chain import Chain
from ..inference import InferenceBackend, InferenceRequest
from ..priors import Prior
from ._common import initial_values, observation_offsets, stack_draws

logger = logging.getLogger(__name__)

# double precision for the in-model ODE solve; this is a process-wide JAX setting
numpyro.enable_x64()


def to_numpyro(prior: Prior) -> dist.Distribution:
    """Translates a Prior into the equivalent numpyro distribution."""
    params = prior.params
    if prior.family == "uniform":
        return dist.Uniform(params["low"], params["high"])
    if prior.family == "normal":
        return dist.Normal(params["mu"], params["sigma"])
    if prior.family == "lognormal":
        return dist.LogNormal(params["mu"], params["sigma"])
    if prior.family == "inverse_gamma":
        return dist.InverseGamma(params["alpha"], params["beta"])
    if prior.family == "exponential":
        return dist.Exponential(params["rate"])
    raise ValueError(f"No numpyro equivalent for prior family '{prior.family}'.")


class NumPyroBackend(InferenceBackend):
    """
    NUTS sampler from NumPyro.

    Importing this module switches JAX to 64-bit floats for the whole process.
    """

    name = "numpyro"

    def __init__(
        self,
        num_warmup: int = 1000,
        num_chains: int = 1,
        target_accept_prob: float = 0.8,
        rtol: float = 1e-6,
        atol: float = 1e-6,
        mxstep: int = 1000,
        progress_bar: bool = False,
    ):
        """
        Args:
            num_warmup: Adaptation steps per chain, discarded.
            num_chains: Number of chains, run sequentially.
            target_accept_prob: Step size adaptation target.
            rtol: Relative tolerance of the in-model ODE solver.
            atol: Absolute tolerance of the in-model ODE solver.
            mxstep: Maximum solver steps between two output times.
            progress_bar: Show numpyro's progress bar.
        """
        self.num_warmup = int(num_warmup)
        self.num_chains = int(num_chains)
        self.target_accept_prob = float(target_accept_prob)
        self.rtol = rtol
        self.atol = atol
        self.mxstep = mxstep
        self.progress_bar = progress_bar

    def _build_model(self, request: InferenceRequest, noise_name: str):
        problem = request.problem
        names = request.parameter_names
        priors = list(request.priors)
        t_grid, skip = observation_offsets(problem.t_span[0], request.times)
        t_grid = jnp.asarray(t_grid)
        u0 = jnp.asarray(problem.u0)

        def rhs(u, t, theta):
            return jnp.stack(problem.model.rhs(u, theta, t, xp=jnp))

        def model(data=None):
            theta = jnp.stack(
                [numpyro.sample(name, to_numpyro(prior)) for name, prior in zip(names, priors)]
            )
            solution = odeint(
                rhs, u0, t_grid, theta, rtol=self.rtol, atol=self.atol, mxstep=self.mxstep
            )
            sigma = numpyro.sample(noise_name, to_numpyro(request.noise_prior))
            numpyro.sample("y", dist.Normal(solution[skip:], sigma), obs=data)

        return model

    def sample(self, request: InferenceRequest) -> Chain:
        if request.method is not None:
            logger.debug("numpyro backend integrates with Dormand-Prince; ignoring method=%r", request.method)

        noise_name = "sigma" if "sigma" not in request.parameter_names else "noise_sigma"
        init = dict(zip(request.parameter_names, initial_values(request.priors)))
        init[noise_name] = request.noise_prior.median

        kernel = NUTS(
            self._build_model(request, noise_name),
            target_accept_prob=self.target_accept_prob,
            init_strategy=init_to_value(values=init),
        )
        mcmc = MCMC(
            kernel,
            num_warmup=self.num_warmup,
            num_samples=request.num_samples,
            num_chains=self.num_chains,
            chain_method="sequential",
            progress_bar=self.progress_bar,
        )
        seed = 0 if request.seed is None else int(request.seed)
        mcmc.run(
            jax.random.PRNGKey(seed),
            data=jnp.asarray(request.data),
            extra_fields=("diverging",),
        )

        draws = {k: np.asarray(v) for k, v in mcmc.get_samples().items()}
        samples = stack_draws(self.name, draws, request.parameter_names)
        divergences = int(np.sum(np.asarray(mcmc.get_extra_fields()["diverging"])))
        if divergences:
            logger.info("numpyro reported %d divergent transitions", divergences)

        return Chain(
            samples,
            request.parameter_names,
            backend=self.name,
            extras={"sigma": draws[noise_name]},
            num_chains=self.num_chains,
            info={"num_warmup": self.num_warmup, "divergences": divergences},
        )
