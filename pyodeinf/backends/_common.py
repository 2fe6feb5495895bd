"""
Helpers shared by the sampling backends.
"""

from typing import Dict, Sequence, Tuple

import numpy as np

from ..errors import BackendFailure
from ..priors import PriorSet


def observation_offsets(t0: float, times: np.ndarray) -> Tuple[np.ndarray, int]:
    """
    Integrators that start from the first requested time need t0 prepended.

    Returns:
        The time grid to integrate over, and how many leading rows of the
        solution to drop to line up with ``times``.
    """
    if times[0] > t0:
        return np.concatenate([[t0], times]), 1
    return np.asarray(times), 0


def initial_values(priors: PriorSet) -> np.ndarray:
    """Prior medians, used as a stable starting point for the samplers."""
    return np.array([prior.median for prior in priors])


def stack_draws(backend: str, draws: Dict[str, np.ndarray], names: Sequence[str]) -> np.ndarray:
    """
    Arranges per-parameter draws into an array of shape (num_samples, n_names).
    """
    try:
        columns = [np.asarray(draws[name], dtype=float).reshape(-1) for name in names]
    except KeyError as exc:
        raise BackendFailure(backend, f"Sampler output is missing parameter {exc}.") from exc
    samples = np.column_stack(columns)
    if samples.shape[0] == 0:
        raise BackendFailure(backend, "Sampler returned no draws.")
    if not np.all(np.isfinite(samples)):
        raise BackendFailure(backend, "Sampler returned non-finite draws.")
    return samples
