"""
errors.py

Exception hierarchy shared by the simulator, the data generator and the
inference driver.
"""

from typing import Optional


class PyodeinfError(Exception):
    """Base class for all errors raised by pyodeinf."""


class ModelEvaluationError(PyodeinfError, ValueError):
    """
    Raised when a parameter vector makes the model derivative undefined
    (e.g. a pendulum of zero length), or the derivative is not finite.
    """


class IntegrationFailure(PyodeinfError, RuntimeError):
    """
    Raised when the forward simulator cannot meet its error tolerances.

    Attributes:
        message: The message reported by the underlying solver.
        t_reached: The last time the solver reached before failing.
    """

    def __init__(self, message: str, t_reached: Optional[float] = None):
        self.message = message
        self.t_reached = t_reached
        if t_reached is not None:
            super().__init__(f"Integration failed at t={t_reached:.6g}: {message}")
        else:
            super().__init__(f"Integration failed: {message}")


class PriorCountMismatch(PyodeinfError, ValueError):
    """
    Raised when the number of priors differs from the number of model
    parameters. Checked before any backend is invoked.
    """

    def __init__(self, expected: int, got: int):
        self.expected = expected
        self.got = got
        super().__init__(
            f"Expected {expected} priors (one per parameter), got {got}."
        )


class BackendFailure(PyodeinfError, RuntimeError):
    """
    Raised when a sampling backend errors, crashes, fails to launch, or
    produces output that cannot be parsed into a chain.

    Attributes:
        backend: Name of the backend that failed.
    """

    def __init__(self, backend: str, message: str):
        self.backend = backend
        super().__init__(f"[{backend}] {message}")
