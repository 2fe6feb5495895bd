"""
chain.py

Container for posterior samples returned by an inference backend.
"""

from typing import Any, Dict, Optional, Sequence, Union

import numpy as np
import pandas as pd


class Chain:
    """
    Posterior draws of the model parameters.

    Multiple sampler chains are flattened into one sequence of draws; the
    number of chains is kept in ``num_chains``.
    """

    def __init__(
        self,
        samples: np.ndarray,
        parameter_names: Sequence[str],
        backend: str,
        extras: Optional[Dict[str, np.ndarray]] = None,
        num_chains: int = 1,
        info: Optional[Dict[str, Any]] = None,
    ):
        """
        Args:
            samples: Array of shape (num_samples, n_parameters).
            parameter_names: One label per column of samples.
            backend: Name of the backend that produced the draws.
            extras: Other sampled quantities (e.g. the noise 'sigma'), each
                with num_samples rows.
            num_chains: Number of independent sampler chains that were merged.
            info: Backend metadata (warmup length, wall time...).
        """
        samples = np.asarray(samples, dtype=float)
        if samples.ndim != 2:
            raise ValueError(f"Samples must be 2D (draws, parameters), got shape {samples.shape}.")
        if samples.shape[1] != len(parameter_names):
            raise ValueError(
                f"Samples have {samples.shape[1]} columns but {len(parameter_names)} "
                "parameter names were given."
            )
        self.samples = samples
        self.parameter_names = tuple(parameter_names)
        self.backend = backend
        self.extras = {k: np.asarray(v) for k, v in (extras or {}).items()}
        self.num_chains = int(num_chains)
        self.info = dict(info or {})

    @property
    def num_samples(self) -> int:
        return self.samples.shape[0]

    @property
    def n_parameters(self) -> int:
        return self.samples.shape[1]

    def __len__(self) -> int:
        return self.num_samples

    def __getitem__(self, name: str) -> np.ndarray:
        if name in self.parameter_names:
            return self.samples[:, self.parameter_names.index(name)]
        if name in self.extras:
            return self.extras[name]
        raise KeyError(f"No parameter named '{name}' in chain.")

    def mean(self) -> np.ndarray:
        return self.samples.mean(axis=0)

    def std(self) -> np.ndarray:
        return self.samples.std(axis=0, ddof=1)

    def quantile(self, q: Union[float, Sequence[float]]) -> np.ndarray:
        return np.quantile(self.samples, q, axis=0)

    def to_dataframe(self) -> pd.DataFrame:
        """One column per parameter, followed by scalar extras such as sigma."""
        df = pd.DataFrame(self.samples, columns=list(self.parameter_names))
        for name, values in self.extras.items():
            if values.ndim == 1 and len(values) == self.num_samples:
                df[name] = values
        return df

    def summary(self) -> pd.DataFrame:
        """Mean, standard deviation and 5/50/95% quantiles per column."""
        df = self.to_dataframe()
        return pd.DataFrame(
            {
                "mean": df.mean(),
                "std": df.std(),
                "5%": df.quantile(0.05),
                "50%": df.quantile(0.5),
                "95%": df.quantile(0.95),
            }
        )

    def __repr__(self) -> str:
        return (
            f"Chain(backend={self.backend!r}, num_samples={self.num_samples}, "
            f"parameters={list(self.parameter_names)})"
        )
