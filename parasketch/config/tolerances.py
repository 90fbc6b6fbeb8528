"""
parasketch - Zentralisierte Toleranz-Konfiguration
==================================================

Alle numerischen Schwellwerte des Sketch-Kerns an einem Ort.

Verwendung:
    from parasketch.config.tolerances import Tolerances

    tol = Tolerances.SOLVER_TOLERANCE
"""


class Tolerances:
    """
    Zentrale Toleranz-Konstanten.

    Kategorien:
    - EPSILON_*: Numerische Stabilität
    - MERGE_*: Punkt-Zusammenführung beim Anlegen von Shapes
    - SOLVER_*: Gauss-Seidel Relaxation
    - EDIT_*: Topologie-Operationen (Trim, Split, Merge)
    """

    # =========================================================================
    # Mathematische Epsilon-Werte
    # =========================================================================

    # Nenner unterhalb dieses Werts -> Relaxationsschritt wird übersprungen
    EPSILON_MATH = 1e-9

    # =========================================================================
    # Punkt-Merge
    # =========================================================================

    # get_or_create_point liefert einen bestehenden Punkt unterhalb dieser Distanz
    MERGE_TOLERANCE = 1e-4

    # =========================================================================
    # Solver
    # =========================================================================

    SOLVER_TOLERANCE = 1e-6
    SOLVER_MAX_ITERATIONS = 200

    # Fortschritts-Callback alle N Iterationen
    SOLVER_CALLBACK_INTERVAL = 10

    # =========================================================================
    # Edit-Operationen
    # =========================================================================

    # |cross| der Einheitsrichtungen unterhalb -> kollinear (~0.6°)
    COLLINEAR_CROSS = 0.01

    # Parameter-Klemmung für Trim/Split gegen Null-Längen-Segmente
    TRIM_PARAM_MIN = 0.01
    TRIM_PARAM_MAX = 0.99

    # =========================================================================
    # Szene / Dimensionen
    # =========================================================================

    # Fallback für get_bounds() bei leerer Szene
    DEFAULT_BOUNDS = (-10.0, -10.0, 10.0, 10.0)

    DEFAULT_DIMENSION_OFFSET = 10.0


def merge_tolerance() -> float:
    """Gibt die Standard-Merge-Toleranz zurück."""
    return Tolerances.MERGE_TOLERANCE


def solver_tolerance() -> float:
    """Gibt die Standard-Solver-Toleranz zurück."""
    return Tolerances.SOLVER_TOLERANCE
