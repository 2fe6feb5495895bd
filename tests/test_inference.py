"""
Tests for the inference driver, using instrumented in-process backends.
"""

import pytest
import numpy as np

from pyodeinf import (
    BackendFailure,
    Chain,
    InferenceBackend,
    InferenceDriver,
    Normal,
    PriorCountMismatch,
    Uniform,
    available_backends,
    generate_synthetic_data,
    pendulum_problem,
    register_backend,
    simulate,
)
from pyodeinf.inference import InferenceRequest

# --- Fixtures ---


class RecordingBackend(InferenceBackend):
    """Returns prior draws and records every request it receives."""

    name = "recording"

    def __init__(self):
        self.requests = []

    def sample(self, request: InferenceRequest) -> Chain:
        self.requests.append(request)
        samples = request.priors.sample(request.num_samples, seed=request.seed)
        return Chain(samples, request.parameter_names, backend=self.name)


class NeverCalledBackend(InferenceBackend):
    name = "never"

    def sample(self, request):
        raise AssertionError("Backend must not be invoked.")


class CrashingBackend(InferenceBackend):
    name = "crashing"

    def sample(self, request):
        raise RuntimeError("sampler exploded")


class WrongWidthBackend(InferenceBackend):
    name = "wrong_width"

    def sample(self, request):
        return Chain(np.zeros((10, 1)), ("omega",), backend=self.name)


@pytest.fixture(scope="module")
def problem():
    return pendulum_problem()


@pytest.fixture(scope="module")
def observations(problem):
    return generate_synthetic_data(simulate(problem), np.arange(1.0, 11.0), 0.01, seed=42)


@pytest.fixture
def priors():
    return [Uniform(0.1, 3.0), Normal(3.0, 1.0)]


# --- Validation ---


@pytest.mark.parametrize("n_priors", [0, 1, 3])
def test_prior_count_mismatch_fails_before_backend(problem, observations, n_priors):
    driver = InferenceDriver(NeverCalledBackend())
    priors = [Uniform(0.1, 3.0)] * n_priors

    with pytest.raises(PriorCountMismatch) as info:
        driver.infer_observations(problem, observations, priors)
    assert info.value.expected == 2
    assert info.value.got == n_priors


def test_prior_count_checked_before_data(problem):
    """Even with malformed data, the prior count is reported first."""
    driver = InferenceDriver(NeverCalledBackend())
    with pytest.raises(PriorCountMismatch):
        driver.infer(problem, [2.0, 1.0], np.zeros((3, 5)), [Normal(0.0, 1.0)])


@pytest.mark.parametrize(
    "times, data",
    [
        (np.arange(1.0, 11.0), np.zeros((10, 3))),  # wrong number of states
        (np.arange(1.0, 11.0), np.zeros((9, 2))),  # wrong number of rows
        (np.arange(2.0, 13.0), np.zeros((11, 2))),  # outside the time span
        (np.array([1.0, 1.0]), np.zeros((2, 2))),  # not increasing
        (np.array([1.0, 2.0]), np.array([[0.0, np.nan], [0.0, 0.0]])),
    ],
)
def test_invalid_observations_fail_before_backend(problem, priors, times, data):
    driver = InferenceDriver(NeverCalledBackend())
    with pytest.raises(ValueError):
        driver.infer(problem, times, data, priors)


def test_parameter_name_count_is_checked(problem, observations, priors):
    driver = InferenceDriver(NeverCalledBackend())
    with pytest.raises(ValueError):
        driver.infer_observations(problem, observations, priors, parameter_names=["omega"])


def test_invalid_sample_count(problem, observations, priors):
    driver = InferenceDriver(NeverCalledBackend())
    with pytest.raises(ValueError):
        driver.infer_observations(problem, observations, priors, num_samples=0)


@pytest.mark.parametrize("seed", [1.5, "42", [1, 2]])
def test_invalid_seed_fails_before_backend(problem, observations, priors, seed):
    driver = InferenceDriver(NeverCalledBackend())
    with pytest.raises(TypeError):
        driver.infer_observations(problem, observations, priors, seed=seed)


# --- Dispatch ---


def test_request_is_forwarded(problem, observations, priors):
    backend = RecordingBackend()
    chain = InferenceDriver(backend).infer_observations(
        problem,
        observations,
        priors,
        num_samples=200,
        parameter_names=["ω", "L"],
        method="RK45",
        seed=5,
    )

    (request,) = backend.requests
    assert request.num_samples == 200
    assert request.parameter_names == ("ω", "L")
    assert request.method == "RK45"
    assert request.seed == 5
    assert list(request.priors) == priors
    np.testing.assert_array_equal(request.data, observations.values)

    assert chain.num_samples == 200
    assert chain.parameter_names == ("ω", "L")
    assert chain.n_parameters == problem.n_parameters
    assert "wall_time" in chain.info


def test_generator_seed_becomes_an_integer(problem, observations, priors):
    backend = RecordingBackend()
    driver = InferenceDriver(backend)
    driver.infer_observations(problem, observations, priors, num_samples=5, seed=np.random.default_rng(3))
    driver.infer_observations(problem, observations, priors, num_samples=5, seed=np.random.default_rng(3))

    first, second = backend.requests
    assert isinstance(first.seed, int)
    assert first.seed == second.seed


def test_default_parameter_names(problem, observations, priors):
    chain = InferenceDriver(RecordingBackend()).infer_observations(problem, observations, priors)
    assert chain.parameter_names == ("omega", "L")
    assert chain.num_samples == 1000


def test_backend_errors_are_wrapped(problem, observations, priors):
    driver = InferenceDriver(CrashingBackend())
    with pytest.raises(BackendFailure) as info:
        driver.infer_observations(problem, observations, priors)

    assert info.value.backend == "crashing"
    assert isinstance(info.value.__cause__, RuntimeError)


def test_wrong_chain_width_is_a_backend_failure(problem, observations, priors):
    with pytest.raises(BackendFailure):
        InferenceDriver(WrongWidthBackend()).infer_observations(problem, observations, priors)


# --- Registry ---


def test_builtin_backends_are_registered():
    assert {"numpyro", "pymc", "stan"} <= set(available_backends())


def test_unknown_backend_name():
    with pytest.raises(ValueError):
        InferenceDriver("metropolis-by-hand")


def test_register_backend_by_class(problem, observations, priors):
    register_backend("recording", RecordingBackend)
    driver = InferenceDriver("recording")

    assert driver.backend_name == "recording"
    chain = driver.infer_observations(problem, observations, priors, num_samples=10)
    assert chain.num_samples == 10


def test_options_need_a_backend_name():
    with pytest.raises(ValueError):
        InferenceDriver(RecordingBackend(), num_warmup=10)
