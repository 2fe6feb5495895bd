"""
Sampling backends for the inference driver.

Modules:
    numpyro_nuts - NUTS on a JAX model (gradient based HMC).
    pymc_sampler - PyMC model with pymc.ode.DifferentialEquation.
    cmdstan      - Generated Stan program run as a CmdStan child process.

Each module imports its sampling library at the top, so they are loaded on
demand by pyodeinf.inference rather than imported here.
"""

from ._common import initial_values, observation_offsets

__all__ = ["initial_values", "observation_offsets"]
