"""
parasketch - Feature Flags
==========================

Debug-Schalter für den Sketch-Kern. Alle Flags sind standardmäßig aus.
"""

from typing import Dict

FEATURE_FLAGS: Dict[str, bool] = {
    # Debug-Modi
    "solver_debug": False,  # Iterations-Logging im Gauss-Seidel Solver ([Solver])
    "edit_debug": False,  # Transaktionen und Edit-Operationen ([Scene], [Trim], [Split])

    # Solver
    "solver_progress_callbacks": True,  # progress_callback im ConstraintSolver aufrufen
}


def is_enabled(flag: str) -> bool:
    """
    Prüft ob ein Feature-Flag aktiviert ist.

    Args:
        flag: Name des Feature-Flags

    Returns:
        True wenn aktiviert, False wenn nicht aktiviert oder unbekannt
    """
    return FEATURE_FLAGS.get(flag, False)


def set_flag(flag: str, value: bool) -> None:
    """
    Setzt ein Feature-Flag zur Laufzeit.
    Nützlich für Tests und Debugging.
    """
    FEATURE_FLAGS[flag] = value


def get_all_flags() -> Dict[str, bool]:
    """Gibt alle Feature-Flags zurück."""
    return FEATURE_FLAGS.copy()
