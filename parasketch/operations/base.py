"""
parasketch - Base Classes for Edit Operations
=============================================

Abstrakte Basisklassen für alle topologischen Edit-Operationen.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, replace
from enum import Enum, auto
from typing import TYPE_CHECKING, Any, Callable, Dict, List, Optional

from loguru import logger

from ..constraints import Constraint
from ..dimensions import DimensionConstraint
from ..errors import EditOperationError
from ..geometry import Arc2D, Circle2D, Point2D, Primitive, Segment2D
from ..solver import SolverResult

if TYPE_CHECKING:
    from ..scene import Scene


class ResultStatus(Enum):
    SUCCESS = auto()
    WARNING = auto()  # Übernommen, aber der Solver hat nicht konvergiert
    NO_TARGET = auto()  # Nichts zu tun, Szene unverändert
    ERROR = auto()  # Zurückgerollt


@dataclass
class OperationResult:
    """
    Ergebnis einer Edit-Operation.

    data trägt das erzeugte oder geänderte Primitive (bzw. eine Liste davon),
    solve das SolverResult des letzten Lösens während der Operation.
    WARNING setzt run_atomic selbst, wenn dieses Lösen nicht konvergiert ist;
    die Änderung bleibt dann bestehen.
    """
    status: ResultStatus
    message: str = ""
    data: Any = None
    solve: Optional[SolverResult] = None

    @property
    def success(self) -> bool:
        return self.status in (ResultStatus.SUCCESS, ResultStatus.WARNING)

    @property
    def is_error(self) -> bool:
        return self.status is ResultStatus.ERROR

    @classmethod
    def ok(cls, message: str = "", data: Any = None) -> 'OperationResult':
        return cls(ResultStatus.SUCCESS, message, data)

    @classmethod
    def no_target(cls, message: str = "Kein Ziel gefunden") -> 'OperationResult':
        return cls(ResultStatus.NO_TARGET, message)

    @classmethod
    def error(cls, message: str) -> 'OperationResult':
        return cls(ResultStatus.ERROR, message)


class SketchOperation(ABC):
    """
    Abstrakte Basisklasse für Edit-Operationen.

    Jede Operation hat:
    - Referenz auf die Szene
    - execute() Methode
    - Strukturiertes Ergebnis

    Mutationen laufen über run_atomic(): entweder gelten danach alle
    Invarianten der Szene, oder der alte Zustand ist wiederhergestellt.
    """

    name = "Operation"

    def __init__(self, scene: 'Scene'):
        self.scene = scene
        self._last_result: Optional[OperationResult] = None

    @property
    def last_result(self) -> Optional[OperationResult]:
        """Letztes Ergebnis der Operation."""
        return self._last_result

    @abstractmethod
    def execute(self, *args, **kwargs) -> OperationResult:
        """
        Führt die Operation aus.

        Returns:
            OperationResult mit Status und Details
        """
        pass

    def can_execute(self, *args, **kwargs) -> bool:
        """
        Prüft ob die Operation ausgeführt werden kann.
        Override in Subklassen für Validierung.
        """
        return True

    def _finish(self, result: OperationResult) -> OperationResult:
        self._last_result = result
        return result

    def run_atomic(self, body: Callable[[], OperationResult]) -> OperationResult:
        """
        Führt body() in einer Szenen-Transaktion aus.

        EditOperationError -> Rollback, Ergebnis ERROR.
        Ein Ergebnis ohne success -> Rollback.
        Hat body() gelöst, hängt das SolverResult am Ergebnis; ohne
        Konvergenz wird SUCCESS zu WARNING.
        """
        before = self.scene.last_solve_result
        result = OperationResult.error(f"{self.name} abgebrochen")
        with self.scene.transaction(self.name) as txn:
            try:
                result = body()
            except EditOperationError as exc:
                result = OperationResult.error(str(exc))
                raise
            solved = self.scene.last_solve_result
            if solved is not None and solved is not before:
                result.solve = solved
                if result.status is ResultStatus.SUCCESS and not solved.converged:
                    logger.debug(f"[{self.name}] Solver nicht konvergiert (max_error={solved.max_error:.2e})")
                    result.status = ResultStatus.WARNING
                    result.message = f"{result.message}; Solver nicht konvergiert ({solved.max_error:.2e})"
            if result.success:
                txn.commit()
        return self._finish(result)


# =============================================================================
# Gemeinsame Umverdrahtungs-Helfer
# =============================================================================

def rewire_point(shape: Primitive, old: Point2D, new: Point2D) -> bool:
    """Ersetzt die Referenz old durch new in einem Segment, Kreis oder Bogen."""
    replaced = False
    if isinstance(shape, Segment2D):
        if shape.p1 is old:
            shape.p1 = new
            replaced = True
        if shape.p2 is old:
            shape.p2 = new
            replaced = True
    elif isinstance(shape, (Circle2D, Arc2D)):
        if shape.center is old:
            shape.center = new
            replaced = True
    return replaced


def retarget(c: Constraint, mapping: Dict[int, Primitive]) -> Constraint:
    """
    Kopie von c, deren Referenzen laut mapping (id(alt) -> neu) ersetzt sind.
    Wert, min/max und Variablentabelle bleiben erhalten; die Kopie hat keine id.
    """
    changes = {name: mapping[id(getattr(c, name))] for name in c.REF_FIELDS
               if id(getattr(c, name)) in mapping}
    return replace(c, id=None, **changes)


def regular_constraints_on(scene: 'Scene', prim: Primitive) -> List[Constraint]:
    """Constraints, die prim direkt referenzieren (ohne Bemaßungs-Einträge)."""
    return [c for c in scene.constraints
            if not isinstance(c, DimensionConstraint) and c.references(prim)]


def require_in_scene(scene: 'Scene', *prims: Primitive) -> None:
    for prim in prims:
        scene._require(prim)
