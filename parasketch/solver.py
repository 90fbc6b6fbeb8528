"""
parasketch - Constraint Solver
Gauss-Seidel Relaxation über die Constraint-Liste

Pro Iteration wird jeder Constraint in Listenreihenfolge ausgewertet; liegt
sein Residuum über der Toleranz, macht er einen Relaxationsschritt. Die
Reihenfolge ist Teil des beobachtbaren Verhaltens.
"""

from dataclasses import dataclass
from enum import Enum, auto
from typing import Callable, Optional, Sequence

import numpy as np
from loguru import logger

from .config.feature_flags import is_enabled
from .config.tolerances import Tolerances
from .constraints import Constraint


class SolverStatus(Enum):
    CONVERGED = auto()
    MAX_ITERATIONS = auto()
    NO_CONSTRAINTS = auto()


@dataclass
class SolverResult:
    """Ergebnis des Constraint-Solvers"""
    converged: bool
    iterations: int
    max_error: float
    status: SolverStatus = SolverStatus.CONVERGED
    message: str = ""

    @property
    def success(self) -> bool:
        return self.converged


def constraint_residuals(constraints: Sequence[Constraint]) -> np.ndarray:
    """Residuen aller Constraints als Array (Listenreihenfolge)"""
    return np.fromiter((c.error() for c in constraints), dtype=float, count=len(constraints))


class ConstraintSolver:
    """
    Iterativer Relaxations-Solver.

    Kein Jacobian, kein Newton-Schritt: jeder Constraint korrigiert nur
    seine eigenen Punkte. Der Solver verändert ausschließlich Koordinaten
    (und Radien), nie die Constraint-Liste.
    """

    def __init__(self, max_iterations: int = Tolerances.SOLVER_MAX_ITERATIONS,
                 tolerance: float = Tolerances.SOLVER_TOLERANCE):
        self.max_iterations = max_iterations
        self.tolerance = tolerance
        self.progress_callback: Optional[Callable[[int, float], None]] = None  # Live-Updates
        self.callback_interval = Tolerances.SOLVER_CALLBACK_INTERVAL

    def solve(self, constraints: Sequence[Constraint]) -> SolverResult:
        """
        Löst das Constraint-System.

        Args:
            constraints: Constraints in Anwendungsreihenfolge

        Returns:
            SolverResult mit converged, iterations und max_error
        """
        if not constraints:
            return SolverResult(True, 0, 0.0, SolverStatus.NO_CONSTRAINTS, "Keine Constraints")

        tol = self.tolerance
        debug = is_enabled("solver_debug")
        callbacks = self.progress_callback is not None and is_enabled("solver_progress_callbacks")

        for iteration in range(self.max_iterations):
            max_error = 0.0
            for c in constraints:
                err = c.error()
                if err > max_error:
                    max_error = err
                if err > tol:
                    c.apply()

            if debug:
                logger.debug(f"[Solver] Iteration {iteration + 1}: max_error={max_error:.3e}")
            if callbacks and (iteration + 1) % self.callback_interval == 0:
                self.progress_callback(iteration + 1, max_error)

            if max_error <= tol:
                return SolverResult(True, iteration + 1, max_error, SolverStatus.CONVERGED,
                                    f"Konvergiert nach {iteration + 1} Iterationen")

        max_error = float(np.max(constraint_residuals(constraints)))
        logger.debug(f"[Solver] Keine Konvergenz nach {self.max_iterations} Iterationen "
                     f"(max_error={max_error:.3e}, {len(constraints)} Constraints)")
        return SolverResult(False, self.max_iterations, max_error, SolverStatus.MAX_ITERATIONS,
                            f"Maximale Iterationen ({self.max_iterations}) erreicht")


def solve(constraints: Sequence[Constraint],
          max_iterations: int = Tolerances.SOLVER_MAX_ITERATIONS,
          tolerance: float = Tolerances.SOLVER_TOLERANCE) -> SolverResult:
    """Kurzform: ``ConstraintSolver(max_iterations, tolerance).solve(constraints)``"""
    return ConstraintSolver(max_iterations, tolerance).solve(constraints)
