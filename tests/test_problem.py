"""
Tests for the ODEProblem container.
"""

import dataclasses

import pytest
import numpy as np

from pyodeinf import ODEProblem, PENDULUM, pendulum_problem


def test_fields_are_normalised_to_tuples():
    u0 = np.array([1.0, 0.1])
    problem = ODEProblem(PENDULUM, u0, [0, 10], np.array([1.0, 2.5]))

    assert problem.u0 == (1.0, 0.1)
    assert problem.p == (1.0, 2.5)
    assert problem.t_span == (0.0, 10.0)

    # Mutating the caller's array does not leak into the problem
    u0[0] = 99.0
    assert problem.u0 == (1.0, 0.1)


def test_problem_is_frozen():
    problem = pendulum_problem()
    with pytest.raises(dataclasses.FrozenInstanceError):
        problem.p = (2.0, 2.0)


def test_remake_returns_new_problem():
    problem = pendulum_problem()
    other = problem.remake(p=(0.5, 1.0))

    assert other.p == (0.5, 1.0)
    assert other.u0 == problem.u0
    assert problem.p == (1.0, 2.5)


def test_metadata_comes_from_model():
    problem = pendulum_problem()
    assert problem.n_states == 2
    assert problem.n_parameters == 2
    assert problem.parameter_names == ("omega", "L")
    assert problem.state_names == ("theta", "theta_dot")


@pytest.mark.parametrize(
    "kwargs",
    [
        {"u0": (1.0,)},
        {"p": (1.0, 2.5, 3.0)},
        {"t_span": (10.0, 0.0)},
        {"t_span": (0.0, 0.0)},
        {"u0": (np.nan, 0.0)},
        {"p": (np.nan, 2.5)},
        {"p": (1.0, np.inf)},
    ],
)
def test_invalid_problems_raise(kwargs):
    args = {"u0": (1.0, 0.1), "t_span": (0.0, 10.0), "p": (1.0, 2.5)}
    args.update(kwargs)
    with pytest.raises(ValueError):
        ODEProblem(PENDULUM, **args)


def test_non_finite_parameters_rejected_at_construction():
    with pytest.raises(ValueError):
        pendulum_problem(p=(np.nan, 2.5))
