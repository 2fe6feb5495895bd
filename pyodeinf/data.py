"""
data.py

Noisy synthetic observations sampled from a simulated trajectory.
"""

from typing import Iterator, Optional, Sequence, Tuple, Union

import numpy as np
import pandas as pd

from .solvers import Trajectory


DEFAULT_NOISE_STD = 0.01


def _as_increasing_times(times: Sequence[float]) -> np.ndarray:
    times = np.asarray(times, dtype=float)
    if times.ndim != 1 or len(times) == 0:
        raise ValueError("Observation times must be a non-empty 1D sequence.")
    if np.any(np.diff(times) <= 0):
        raise ValueError("Observation times must be strictly increasing.")
    return times


class ObservationSet:
    """
    Ordered (time, noisy state) pairs. Times are strictly increasing and
    values has shape (n_times, n_states). Both arrays are read-only.
    """

    def __init__(self, times: Sequence[float], values: np.ndarray):
        times = _as_increasing_times(times)
        values = np.array(values, dtype=float)
        if values.ndim == 1 and len(values) == len(times):
            # one value per time: a single-state model
            values = values.reshape(-1, 1)
        values = np.atleast_2d(values)
        if values.shape[0] != len(times):
            raise ValueError(
                f"Got {len(times)} times but {values.shape[0]} observation rows."
            )
        times.setflags(write=False)
        values.setflags(write=False)
        self._times = times
        self._values = values

    @property
    def times(self) -> np.ndarray:
        return self._times

    @property
    def values(self) -> np.ndarray:
        return self._values

    @property
    def n_states(self) -> int:
        return self._values.shape[1]

    def __len__(self) -> int:
        return len(self._times)

    def __iter__(self) -> Iterator[Tuple[float, np.ndarray]]:
        return iter(zip(self._times, self._values))

    def to_dataframe(self, state_names: Optional[Sequence[str]] = None) -> pd.DataFrame:
        """Returns a DataFrame with a 't' column followed by one column per state."""
        if state_names is None:
            state_names = [f"u{i + 1}" for i in range(self.n_states)]
        df = pd.DataFrame(self._values, columns=list(state_names))
        df.insert(0, "t", self._times)
        return df

    def __repr__(self) -> str:
        return f"ObservationSet(n={len(self)}, n_states={self.n_states})"


def generate_synthetic_data(
    trajectory: Trajectory,
    times: Sequence[float],
    noise_std: Union[float, Sequence[float]] = DEFAULT_NOISE_STD,
    seed: Optional[Union[int, np.random.Generator]] = None,
) -> ObservationSet:
    """
    Samples the trajectory at the given times and adds independent Gaussian
    noise to every state component.

    Args:
        trajectory: Simulated trajectory to observe.
        times: Strictly increasing observation times inside trajectory.t_span.
        noise_std: Noise standard deviation, scalar or one per state component.
        seed: Seed or Generator for the noise. Fix it for reproducible data.

    Returns:
        The noisy ObservationSet.
    """
    times = _as_increasing_times(times)
    t0, t1 = trajectory.t_span
    if times[0] < t0 or times[-1] > t1:
        raise ValueError(
            f"Observation times must lie inside the time span [{t0}, {t1}]."
        )

    sigma = np.broadcast_to(np.asarray(noise_std, dtype=float), (trajectory.n_states,))
    if np.any(sigma <= 0) or not np.all(np.isfinite(sigma)):
        raise ValueError(f"noise_std must be positive and finite, got {noise_std}.")

    rng = np.random.default_rng(seed)
    clean = trajectory(times)
    noise = rng.normal(0.0, 1.0, size=clean.shape) * sigma

    return ObservationSet(times, clean + noise)
