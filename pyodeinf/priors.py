"""
priors.py

Declarative prior distributions, one per model parameter.

Each prior records its family and parameters so every backend can translate
it into its own distribution object. Densities and draws are delegated to
scipy.stats.
"""

from abc import ABC, abstractmethod
from collections import OrderedDict
from typing import Iterator, Optional, Sequence, Tuple, Union

import numpy as np
from scipy import stats


class Prior(ABC):
    """
    Base class for a univariate prior distribution.
    """

    family: str = ""

    @property
    @abstractmethod
    def params(self) -> "OrderedDict[str, float]":
        """Distribution parameters, in the order the family's constructor takes them."""
        pass

    @abstractmethod
    def _frozen(self):
        """The equivalent frozen scipy.stats distribution."""
        pass

    @property
    def support(self) -> Tuple[float, float]:
        """Lower and upper bound of the support (may be infinite)."""
        lower, upper = self._frozen().support()
        return float(lower), float(upper)

    @property
    def mean(self) -> float:
        return float(self._frozen().mean())

    @property
    def median(self) -> float:
        return float(self._frozen().median())

    def logpdf(self, x: Union[float, np.ndarray]) -> Union[float, np.ndarray]:
        """Log density, -inf outside the support."""
        return self._frozen().logpdf(x)

    def sample(
        self,
        size: Optional[Union[int, Tuple[int, ...]]] = None,
        seed: Optional[Union[int, np.random.Generator]] = None,
    ) -> Union[float, np.ndarray]:
        return self._frozen().rvs(size=size, random_state=np.random.default_rng(seed))

    def __eq__(self, other) -> bool:
        return type(self) is type(other) and self.params == other.params

    def __hash__(self) -> int:
        return hash((self.family, tuple(self.params.items())))

    def __repr__(self) -> str:
        args = ", ".join(f"{k}={v!r}" for k, v in self.params.items())
        return f"{type(self).__name__}({args})"


def _positive(name: str, value: float) -> float:
    value = float(value)
    if not value > 0 or not np.isfinite(value):
        raise ValueError(f"{name} must be positive and finite, got {value}.")
    return value


def _finite(name: str, value: float) -> float:
    value = float(value)
    if not np.isfinite(value):
        raise ValueError(f"{name} must be finite, got {value}.")
    return value


class Uniform(Prior):
    family = "uniform"

    def __init__(self, low: float, high: float):
        self.low = _finite("low", low)
        self.high = _finite("high", high)
        if not self.high > self.low:
            raise ValueError(f"Uniform prior needs low < high, got ({low}, {high}).")

    @property
    def params(self):
        return OrderedDict(low=self.low, high=self.high)

    @property
    def support(self) -> Tuple[float, float]:
        # exact bounds; loc + scale can round past high
        return self.low, self.high

    def _frozen(self):
        return stats.uniform(loc=self.low, scale=self.high - self.low)


class Normal(Prior):
    family = "normal"

    def __init__(self, mu: float, sigma: float):
        self.mu = _finite("mu", mu)
        self.sigma = _positive("sigma", sigma)

    @property
    def params(self):
        return OrderedDict(mu=self.mu, sigma=self.sigma)

    def _frozen(self):
        return stats.norm(loc=self.mu, scale=self.sigma)


class LogNormal(Prior):
    """Distribution of exp(X) with X ~ Normal(mu, sigma)."""

    family = "lognormal"

    def __init__(self, mu: float, sigma: float):
        self.mu = _finite("mu", mu)
        self.sigma = _positive("sigma", sigma)

    @property
    def params(self):
        return OrderedDict(mu=self.mu, sigma=self.sigma)

    def _frozen(self):
        return stats.lognorm(s=self.sigma, scale=np.exp(self.mu))


class InverseGamma(Prior):
    """Inverse gamma with shape alpha and scale beta."""

    family = "inverse_gamma"

    def __init__(self, alpha: float, beta: float):
        self.alpha = _positive("alpha", alpha)
        self.beta = _positive("beta", beta)

    @property
    def params(self):
        return OrderedDict(alpha=self.alpha, beta=self.beta)

    def _frozen(self):
        return stats.invgamma(a=self.alpha, scale=self.beta)


class Exponential(Prior):
    family = "exponential"

    def __init__(self, rate: float):
        self.rate = _positive("rate", rate)

    @property
    def params(self):
        return OrderedDict(rate=self.rate)

    def _frozen(self):
        return stats.expon(scale=1.0 / self.rate)


class PriorSet:
    """
    An ordered, immutable collection of priors in parameter order.
    """

    def __init__(self, priors: Sequence[Prior]):
        priors = tuple(priors)
        for prior in priors:
            if not isinstance(prior, Prior):
                raise TypeError(f"Expected a Prior, got {type(prior).__name__}.")
        self._priors = priors

    def __len__(self) -> int:
        return len(self._priors)

    def __iter__(self) -> Iterator[Prior]:
        return iter(self._priors)

    def __getitem__(self, index: int) -> Prior:
        return self._priors[index]

    def logpdf(self, theta: Sequence[float]) -> float:
        """Joint log density of independent priors."""
        theta = np.asarray(theta, dtype=float)
        if theta.shape != (len(self),):
            raise ValueError(f"Expected {len(self)} values, got shape {theta.shape}.")
        return float(sum(prior.logpdf(x) for prior, x in zip(self._priors, theta)))

    def sample(self, size: int, seed: Optional[Union[int, np.random.Generator]] = None) -> np.ndarray:
        """Draws of shape (size, len(self))."""
        rng = np.random.default_rng(seed)
        return np.column_stack([prior.sample(size, rng) for prior in self._priors])

    def __repr__(self) -> str:
        return f"PriorSet({list(self._priors)})"


DEFAULT_NOISE_PRIOR = InverseGamma(2.0, 3.0)
