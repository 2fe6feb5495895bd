import pytest
import numpy as np

import pyodeinf.pendulum as pendulum
from pyodeinf import ModelEvaluationError, IntegrationFailure, ODEModel, ODEProblem
from pyodeinf.solvers import simulate, solve_trajectory

# --- Fixtures ---


@pytest.fixture
def problem():
    """The tutorial problem: omega=1.0, L=2.5, u0=[1.0, 0.1], t in [0, 10]."""
    return pendulum.pendulum_problem()


@pytest.fixture
def trajectory(problem):
    return simulate(problem)


# --- 1. Model Definition ---


def test_derivative_matches_equations():
    u = np.array([0.3, -0.2])
    p = np.array([1.0, 2.5])
    du = pendulum.PENDULUM.derivative(u, p, 0.0)

    expected = [-0.2, -1.0 * -0.2 - (9.8 / 2.5) * np.sin(0.3)]
    np.testing.assert_allclose(du, expected)


def test_derivative_is_time_independent():
    u, p = [1.0, 0.1], [0.5, 1.5]
    np.testing.assert_array_equal(
        pendulum.PENDULUM.derivative(u, p, 0.0), pendulum.PENDULUM.derivative(u, p, 7.3)
    )


def test_zero_length_is_undefined():
    with pytest.raises(ModelEvaluationError):
        pendulum.PENDULUM.derivative([1.0, 0.1], [1.0, 0.0], 0.0)


def test_non_finite_parameters_are_undefined():
    with pytest.raises(ModelEvaluationError):
        pendulum.PENDULUM.derivative([1.0, 0.1], [np.nan, 2.5], 0.0)


def test_rhs_uses_array_namespace():
    """The right-hand side only touches xp, so any namespace with sin works."""

    class Recorder:
        calls = []

        @classmethod
        def sin(cls, x):
            cls.calls.append(x)
            return 0.0

    du = pendulum.pendulum_rhs([0.4, 0.0], [1.0, 2.0], 0.0, xp=Recorder)
    assert Recorder.calls == [0.4]
    assert du == [0.0, 0.0]


def test_model_metadata():
    assert pendulum.PENDULUM.state_names == ("theta", "theta_dot")
    assert pendulum.PENDULUM.parameter_names == ("omega", "L")
    assert pendulum.PENDULUM.n_states == 2
    assert pendulum.PENDULUM.n_parameters == 2


# --- 2. Forward Simulator ---


def test_initial_state_is_reproduced(problem, trajectory):
    np.testing.assert_allclose(trajectory(0.0), problem.u0, atol=1e-12)


def test_solver_statistics_are_kept(trajectory):
    assert trajectory.method == "DOP853"
    assert trajectory.nfev >= len(trajectory.t)


def test_trajectory_satisfies_ode(problem, trajectory):
    """
    A central finite difference of the interpolated trajectory should match
    the model derivative everywhere inside the window.
    """
    h = 1e-5
    for t in np.linspace(0.1, 9.9, 25):
        fd = (trajectory(t + h) - trajectory(t - h)) / (2 * h)
        exact = pendulum.PENDULUM.derivative(trajectory(t), problem.p, t)
        np.testing.assert_allclose(fd, exact, atol=1e-5)


def test_derivative_on_trajectory(problem, trajectory):
    np.testing.assert_allclose(
        trajectory.derivative(2.0),
        pendulum.PENDULUM.derivative(trajectory(2.0), problem.p, 2.0),
    )


def test_evaluation_between_grid_points(trajectory):
    """Dense output gives values between the solver's own steps."""
    t_mid = 0.5 * (trajectory.t[0] + trajectory.t[1])
    assert t_mid not in trajectory.t
    assert trajectory(t_mid).shape == (2,)


def test_vector_evaluation_shape(trajectory):
    t = np.linspace(0, 10, 7)
    assert trajectory(t).shape == (7, 2)


def test_out_of_range_times_raise(trajectory):
    with pytest.raises(ValueError):
        trajectory(10.5)
    with pytest.raises(ValueError):
        trajectory(np.array([-1.0, 1.0]))


def test_small_angle_period():
    """
    Undamped, a small oscillation returns to its start after T = 2*pi*sqrt(L/g).
    """
    L = 2.5
    T = pendulum.period(L)
    problem = pendulum.pendulum_problem(u0=(0.001, 0.0), t_span=(0.0, T), p=(0.0, L))
    y_final = solve_trajectory(problem, [T])[0]

    np.testing.assert_allclose(y_final, [0.001, 0.0], rtol=1e-2, atol=1e-5)


def test_damping_dissipates_energy(problem):
    """E = 0.5 * theta_dot^2 + (g/L) * (1 - cos(theta)) decreases when omega > 0."""
    t = np.linspace(0, 10, 200)
    sol = solve_trajectory(problem, t)
    L = problem.p[1]
    energy = 0.5 * sol[:, 1] ** 2 + (pendulum.GRAVITY / L) * (1 - np.cos(sol[:, 0]))

    assert np.all(np.diff(energy) <= 1e-8)
    assert energy[-1] < 0.01 * energy[0]


def test_rk45_agrees_with_default_method(problem):
    t = np.linspace(0, 10, 11)
    sol_default = solve_trajectory(problem, t)
    sol_rk45 = solve_trajectory(problem, t, method="RK45", rtol=1e-10, atol=1e-12)
    np.testing.assert_allclose(sol_default, sol_rk45, atol=1e-6)


def test_zero_length_fails_before_integrating(problem):
    with pytest.raises(ModelEvaluationError):
        simulate(problem.remake(p=(1.0, 0.0)))


def test_integration_failure_is_reported():
    """du/dt = u^2 with u(0) = 1 blows up at t = 1."""
    blowup = ODEModel(lambda u, p, t, xp=np: [u[0] ** 2], ("u",), ("k",), name="blowup")
    problem = ODEProblem(blowup, (1.0,), (0.0, 2.0), (0.0,))

    with pytest.raises(IntegrationFailure) as info:
        simulate(problem, method="RK45")
    assert info.value.t_reached is not None
    assert info.value.t_reached < 1.0 + 1e-3
