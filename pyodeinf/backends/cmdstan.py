"""
cmdstan.py

External-process backend. The model, priors and likelihood are written out
as a Stan program, compiled once with cmdstanpy, and the compiled sampler is
run by cmdstanpy as a child process. Its CSV output is read back into a Chain.
"""

import hashlib
import logging
import subprocess
import tempfile
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator, Optional, Sequence, Union

import numpy as np
from cmdstanpy import CmdStanModel

from ..chain import Chain
from ..errors import BackendFailure
from ..inference import InferenceBackend, InferenceRequest
from ..model import ODEModel
from ..priors import Prior
from ._common import initial_values, observation_offsets, stack_draws

logger = logging.getLogger(__name__)

BACKEND_NAME = "stan"

# scipy method names map onto the closest Stan ODE solver
_STAN_SOLVERS = {
    None: "ode_rk45_tol",
    "RK45": "ode_rk45_tol",
    "RK23": "ode_rk45_tol",
    "DOP853": "ode_rk45_tol",
    "BDF": "ode_bdf_tol",
    "Radau": "ode_bdf_tol",
    "LSODA": "ode_bdf_tol",
    "rk45": "ode_rk45_tol",
    "ckrk": "ode_ckrk_tol",
    "adams": "ode_adams_tol",
    "bdf": "ode_bdf_tol",
}


def _stan_real(value: float) -> str:
    return repr(float(value))


def stan_distribution(prior: Prior) -> str:
    """Right-hand side of a Stan sampling statement for the prior."""
    p = prior.params
    if prior.family == "uniform":
        args = (p["low"], p["high"])
    elif prior.family in ("normal", "lognormal"):
        args = (p["mu"], p["sigma"])
    elif prior.family == "inverse_gamma":
        args = (p["alpha"], p["beta"])
    elif prior.family == "exponential":
        args = (p["rate"],)
    else:
        raise ValueError(f"No Stan equivalent for prior family '{prior.family}'.")
    stan_name = {"inverse_gamma": "inv_gamma"}.get(prior.family, prior.family)
    return f"{stan_name}({', '.join(_stan_real(a) for a in args)})"


def stan_bounds(prior: Prior) -> str:
    """Constraint declaration matching the prior's support, e.g. '<lower=0.1, upper=3.0>'."""
    lower, upper = prior.support
    parts = []
    if np.isfinite(lower):
        parts.append(f"lower={_stan_real(lower)}")
    if np.isfinite(upper):
        parts.append(f"upper={_stan_real(upper)}")
    return f"<{', '.join(parts)}>" if parts else ""


def stan_solver(method: Optional[str]) -> str:
    try:
        return _STAN_SOLVERS[method]
    except KeyError:
        raise ValueError(
            f"No Stan ODE solver for method '{method}'. "
            f"Known: {sorted(k for k in _STAN_SOLVERS if k)}"
        ) from None


def stan_program(
    model: ODEModel,
    priors: Sequence[Prior],
    noise_prior: Prior,
    method: Optional[str] = None,
) -> str:
    """
    Generates the Stan program for the ODE posterior.

    Parameters are declared as scalars theta_1..theta_K (with the bounds of
    their prior's support) and gathered into the vector theta.

    Args:
        model: ODE model; its stan_rhs must be set.
        priors: One prior per parameter.
        noise_prior: Prior on the observation noise sigma.
        method: Integration method selector.

    Returns:
        The Stan source code.
    """
    if not model.stan_rhs:
        raise ValueError(f"Model '{model.name}' has no Stan right-hand side (stan_rhs).")

    K = len(priors)
    solver = stan_solver(method)
    declarations = "\n".join(
        f"  real{stan_bounds(prior)} theta_{k + 1};" for k, prior in enumerate(priors)
    )
    statements = "\n".join(
        f"  theta_{k + 1} ~ {stan_distribution(prior)};" for k, prior in enumerate(priors)
    )
    theta = ", ".join(f"theta_{k + 1}" for k in range(K))

    return f"""// {model.name}: generated by pyodeinf
functions {{
  vector ode_rhs(real t, vector u, vector theta) {{
    vector[{model.n_states}] du;
{model.stan_rhs.rstrip()}
    return du;
  }}
}}
data {{
  int<lower=1> T;
  int<lower=1> N;
  int<lower=0, upper=1> S;
  array[T] vector[N] y;
  real t0;
  array[T - S] real ts;
  vector[N] u0;
  real<lower=0> rel_tol;
  real<lower=0> abs_tol;
  int<lower=1> max_num_steps;
}}
parameters {{
{declarations}
  real{stan_bounds(noise_prior)} sigma;
}}
transformed parameters {{
  vector[{K}] theta = [{theta}]';
}}
model {{
  array[T - S] vector[N] u_hat = {solver}(ode_rhs, u0, t0, ts, rel_tol, abs_tol, max_num_steps, theta);
{statements}
  sigma ~ {stan_distribution(noise_prior)};
  for (i in 1:S) {{
    y[i] ~ normal(u0, sigma);
  }}
  for (i in 1:(T - S)) {{
    y[S + i] ~ normal(u_hat[i], sigma);
  }}
}}
"""


@contextmanager
def sampler_run(backend: str = BACKEND_NAME) -> Iterator[Path]:
    """
    Scope of one CmdStan sampling run. Yields a fresh output directory for the
    sampler's CSV files, which is removed on every exit path. cmdstanpy reaps
    the sampler processes it spawns and terminates them when a timeout expires;
    any failure it reports is re-raised as BackendFailure.

    Raises:
        BackendFailure: If the sampler cannot be launched, times out, exits
            with an error or produces output that cannot be read.
    """
    with tempfile.TemporaryDirectory(prefix="pyodeinf_") as output_dir:
        try:
            yield Path(output_dir)
        except subprocess.TimeoutExpired as exc:
            raise BackendFailure(backend, f"Sampler did not finish within {exc.timeout}s.") from exc
        except (RuntimeError, ValueError, OSError) as exc:
            # TimeoutError from cmdstanpy's own timer is an OSError
            raise BackendFailure(backend, f"{type(exc).__name__}: {exc}") from exc


class StanBackend(InferenceBackend):
    """
    CmdStan sampler (NUTS), run by cmdstanpy as an external process.
    """

    name = BACKEND_NAME

    def __init__(
        self,
        num_warmup: int = 1000,
        num_chains: int = 1,
        adapt_delta: float = 0.8,
        rel_tol: float = 1e-6,
        abs_tol: float = 1e-6,
        max_num_steps: int = 100000,
        timeout: Optional[float] = None,
        build_dir: Optional[Union[str, Path]] = None,
    ):
        """
        Args:
            num_warmup: Adaptation iterations per chain, discarded.
            num_chains: Number of chains, run one after another.
            adapt_delta: Step size adaptation target.
            rel_tol: Relative tolerance of the Stan ODE solver.
            abs_tol: Absolute tolerance of the Stan ODE solver.
            max_num_steps: Step budget of the Stan ODE solver.
            timeout: Seconds to wait for the sampler; None waits forever.
            build_dir: Where generated programs and executables are cached.
        """
        self.num_warmup = int(num_warmup)
        self.num_chains = int(num_chains)
        self.adapt_delta = float(adapt_delta)
        self.rel_tol = rel_tol
        self.abs_tol = abs_tol
        self.max_num_steps = int(max_num_steps)
        self.timeout = timeout
        if build_dir is None:
            build_dir = Path(tempfile.gettempdir()) / "pyodeinf_stan"
        self.build_dir = Path(build_dir)

    def compile(self, code: str, model_name: str) -> CmdStanModel:
        """Writes the program under build_dir (keyed by its hash) and compiles it."""
        self.build_dir.mkdir(parents=True, exist_ok=True)
        digest = hashlib.sha1(code.encode("utf-8")).hexdigest()[:12]
        stan_file = self.build_dir / f"{model_name}_{digest}.stan"
        if not stan_file.exists():
            stan_file.write_text(code)
        logger.debug("Compiling Stan program %s", stan_file)
        return CmdStanModel(stan_file=str(stan_file))

    def _data(self, request: InferenceRequest) -> dict:
        problem = request.problem
        t0 = problem.t_span[0]
        _, skip = observation_offsets(t0, request.times)
        # Stan integrates from t0 to times strictly after it; an observation
        # at t0 itself is compared with u0 directly.
        S = 1 - skip
        return {
            "T": len(request.times),
            "N": problem.n_states,
            "S": S,
            "y": request.data,
            "t0": t0,
            "ts": request.times[S:],
            "u0": np.asarray(problem.u0),
            "rel_tol": self.rel_tol,
            "abs_tol": self.abs_tol,
            "max_num_steps": self.max_num_steps,
        }

    def sample(self, request: InferenceRequest) -> Chain:
        problem = request.problem
        code = stan_program(problem.model, list(request.priors), request.noise_prior, request.method)
        try:
            model = self.compile(code, problem.model.name)
        except (RuntimeError, ValueError, OSError) as exc:
            raise BackendFailure(self.name, f"Could not compile Stan program: {exc}") from exc

        columns = [f"theta_{k + 1}" for k in range(problem.n_parameters)]
        inits = dict(zip(columns, initial_values(request.priors)))
        inits["sigma"] = request.noise_prior.median
        seed = 0 if request.seed is None else int(request.seed)

        with sampler_run(self.name) as output_dir:
            fit = model.sample(
                data=self._data(request),
                inits=inits,
                seed=seed,
                chains=self.num_chains,
                parallel_chains=1,
                iter_warmup=self.num_warmup,
                iter_sampling=request.num_samples,
                adapt_delta=self.adapt_delta,
                timeout=self.timeout,
                output_dir=str(output_dir),
                show_progress=False,
            )
            # draws are read from the CSV files, before output_dir is removed
            df = fit.draws_pd()

        if df.empty:
            raise BackendFailure(self.name, "Sampler output contains no draws.")
        draws = {name: df[name].to_numpy() for name in df.columns}
        samples = stack_draws(self.name, draws, columns)
        if "sigma" not in draws:
            raise BackendFailure(self.name, "Sampler output is missing 'sigma'.")

        return Chain(
            samples,
            request.parameter_names,
            backend=self.name,
            extras={"sigma": draws["sigma"]},
            num_chains=self.num_chains,
            info={"num_warmup": self.num_warmup, "exe_file": str(model.exe_file)},
        )
