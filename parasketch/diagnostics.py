"""
parasketch - Constraint Diagnostics
===================================

Residuen-Report und grobe Freiheitsgrad-Abschätzung einer Szene.

Der Relaxations-Solver erkennt keine Über- oder Unterbestimmtheit; diese
Diagnose ist eine Heuristik für den Nutzer, kein Beweis.

Usage:
    from parasketch.diagnostics import analyze_scene

    diagnosis = analyze_scene(scene)
    if diagnosis.is_under_constrained:
        print(f"DOF: {diagnosis.degrees_of_freedom}")
    print(diagnosis.to_user_report())
"""

from dataclasses import dataclass, field
from enum import Enum, auto
from typing import Any, Dict, List, Tuple

import numpy as np
from loguru import logger

from .config.tolerances import Tolerances
from .constraints import Constraint, ConstraintStatus, ConstraintType
from .solver import constraint_residuals


class DiagnosisType(Enum):
    """Typ der Constraint-Diagnose."""
    FULLY_CONSTRAINED = auto()      # Vollständig bestimmt
    UNDER_CONSTRAINED = auto()      # Unterbestimmt
    OVER_CONSTRAINED = auto()       # Mehr Bedingungen als Freiheitsgrade
    INCONSISTENT = auto()           # Verletzte Constraints nach dem Lösen


# DOF-Verbrauch pro Constraint-Art
_CONSTRAINT_DOF_COST = {
    ConstraintType.COINCIDENT: 2,      # Zwei Punkte werden zu einem
    ConstraintType.FIXED: 2,           # x und y
    ConstraintType.MIDPOINT: 2,
    ConstraintType.DISTANCE: 1,
    ConstraintType.HORIZONTAL: 1,
    ConstraintType.VERTICAL: 1,
    ConstraintType.PARALLEL: 1,
    ConstraintType.PERPENDICULAR: 1,
    ConstraintType.ANGLE: 1,
    ConstraintType.EQUAL_LENGTH: 1,
    ConstraintType.LENGTH: 1,
    ConstraintType.RADIUS: 1,
    ConstraintType.TANGENT: 1,
    ConstraintType.POINT_ON_LINE: 1,
    ConstraintType.POINT_ON_CIRCLE: 1,
    ConstraintType.DIMENSION: 1,
}


@dataclass
class ConstraintReport:
    """Residuum eines einzelnen Constraints."""
    constraint: Constraint
    error: float
    status: ConstraintStatus

    def to_dict(self) -> Dict[str, Any]:
        return {
            'constraint_id': self.constraint.id,
            'constraint_type': self.constraint.type.value,
            'error': self.error,
            'status': self.status.name,
        }


@dataclass
class SceneDiagnosis:
    """
    Ergebnis von analyze_scene().

    Attributes:
        degrees_of_freedom: geschätzte verbleibende Freiheitsgrade (>= 0)
        total_variables: freie Koordinaten und Radien
        total_constraints: geschätzter DOF-Verbrauch der aktiven Constraints
        max_error / rms_error: über alle aktiven Constraints
        worst: die am stärksten verletzten Constraints, absteigend
    """
    diagnosis_type: DiagnosisType
    degrees_of_freedom: int = 0
    total_variables: int = 0
    total_constraints: int = 0
    max_error: float = 0.0
    rms_error: float = 0.0
    status_counts: Dict[str, int] = field(default_factory=dict)
    worst: List[ConstraintReport] = field(default_factory=list)

    @property
    def is_fully_constrained(self) -> bool:
        return self.diagnosis_type == DiagnosisType.FULLY_CONSTRAINED

    @property
    def is_under_constrained(self) -> bool:
        return self.diagnosis_type == DiagnosisType.UNDER_CONSTRAINED

    @property
    def is_over_constrained(self) -> bool:
        return self.diagnosis_type == DiagnosisType.OVER_CONSTRAINED

    @property
    def is_inconsistent(self) -> bool:
        return self.diagnosis_type == DiagnosisType.INCONSISTENT

    def to_user_report(self) -> str:
        lines = ["Constraint-Diagnose", "=" * 40, ""]
        names = {
            DiagnosisType.FULLY_CONSTRAINED: "Vollständig bestimmt",
            DiagnosisType.UNDER_CONSTRAINED: "Unterbestimmt",
            DiagnosisType.OVER_CONSTRAINED: "Überbestimmt",
            DiagnosisType.INCONSISTENT: "Inkonsistent (verletzte Constraints)",
        }
        lines.append(f"Status: {names[self.diagnosis_type]}")
        lines.append(f"Freiheitsgrade: {self.degrees_of_freedom}")
        lines.append(f"Variablen: {self.total_variables}, Constraints: {self.total_constraints}")
        lines.append(f"Max. Fehler: {self.max_error:.3e}, RMS: {self.rms_error:.3e}")
        if self.worst:
            lines.append("")
            lines.append("Größte Residuen:")
            for report in self.worst:
                lines.append(f"  - {report.constraint}: {report.error:.3e}")
        return "\n".join(lines)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'diagnosis_type': self.diagnosis_type.name,
            'degrees_of_freedom': self.degrees_of_freedom,
            'total_variables': self.total_variables,
            'total_constraints': self.total_constraints,
            'max_error': self.max_error,
            'rms_error': self.rms_error,
            'status_counts': dict(self.status_counts),
            'worst': [r.to_dict() for r in self.worst],
        }


def calculate_scene_dof(scene) -> Tuple[int, int, int]:
    """
    Schätzt die Freiheitsgrade der Szene.

    - freier Punkt: 2 (x, y), fixierter Punkt: 0
    - Kreis / Bogen: +1 (Radius); Bogenwinkel sind keine Solver-Variablen
    - jeder aktive Constraint verbraucht laut _CONSTRAINT_DOF_COST

    Returns:
        (dof, total_variables, constraint_dof)
    """
    total_variables = sum(2 for p in scene.points if not p.fixed)
    total_variables += len(scene.circles) + len(scene.arcs)

    constraint_dof = 0
    for c in scene.constraints:
        if not c.is_active:
            continue
        if c.type == ConstraintType.FIXED:
            # Fixierte Punkte sind schon aus den Variablen herausgenommen
            continue
        constraint_dof += _CONSTRAINT_DOF_COST.get(c.type, 1)

    return max(0, total_variables - constraint_dof), total_variables, constraint_dof


def analyze_scene(scene, tolerance: float = Tolerances.SOLVER_TOLERANCE,
                  worst_count: int = 5) -> SceneDiagnosis:
    """
    Bewertet den aktuellen Zustand (ohne zu lösen).

    Verletzte Constraints haben Vorrang vor der DOF-Zählung: eine Szene mit
    Residuen über tolerance ist INCONSISTENT.
    """
    active = [c for c in scene.constraints if c.is_active]
    residuals = constraint_residuals(active)
    dof, total_vars, constraint_dof = calculate_scene_dof(scene)

    counts = {status.name: 0 for status in ConstraintStatus}
    for c in scene.constraints:
        counts[c.status(tolerance).name] += 1

    worst: List[ConstraintReport] = []
    if residuals.size:
        order = np.argsort(residuals)[::-1][:worst_count]
        worst = [ConstraintReport(active[i], float(residuals[i]), ConstraintStatus.VIOLATED)
                 for i in order if residuals[i] > tolerance]
        max_error = float(residuals.max())
        rms_error = float(np.sqrt(np.mean(residuals ** 2)))
    else:
        max_error = rms_error = 0.0

    if worst:
        diagnosis_type = DiagnosisType.INCONSISTENT
    elif dof > 0:
        diagnosis_type = DiagnosisType.UNDER_CONSTRAINED
    elif constraint_dof > total_vars:
        diagnosis_type = DiagnosisType.OVER_CONSTRAINED
    else:
        diagnosis_type = DiagnosisType.FULLY_CONSTRAINED

    logger.debug(f"[Diagnostics] {diagnosis_type.name}, DOF={dof}, max_error={max_error:.3e}")
    return SceneDiagnosis(diagnosis_type, dof, total_vars, constraint_dof,
                          max_error, rms_error, counts, worst)


def get_constraint_report(scene) -> str:
    """Kurzform für den Nutzer-Report."""
    return analyze_scene(scene).to_user_report()
