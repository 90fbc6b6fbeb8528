"""
parasketch - Move Operations
============================

Direktes Verschieben von Punkten und Shapes; keine Constraints werden
hinzugefügt oder entfernt, danach wird gelöst.
"""

from loguru import logger

from ..dimensions import Dimension
from ..geometry import Point2D, Primitive, Text2D
from .base import OperationResult, SketchOperation, require_in_scene


class MovePointOperation(SketchOperation):

    name = "MovePoint"

    def can_execute(self, pt: Point2D) -> bool:
        return not pt.fixed

    def execute(self, pt: Point2D, x: float, y: float) -> OperationResult:
        require_in_scene(self.scene, pt)
        if not self.can_execute(pt):
            return self._finish(OperationResult.no_target("Punkt ist fixiert"))
        return self.run_atomic(lambda: self._move(pt, x, y))

    def _move(self, pt: Point2D, x: float, y: float) -> OperationResult:
        pt.move_to(x, y)
        self.scene.solve()
        return OperationResult.ok("Punkt verschoben", pt)


class MoveShapeOperation(SketchOperation):
    """
    Verschiebt ein Shape um (dx, dy).

    Segmente/Kreise/Bögen: alle nicht fixierten definierenden Punkte.
    Texte und Bemaßungen: ihr eigener Ankerpunkt.
    """

    name = "MoveShape"

    def execute(self, shape: Primitive, dx: float, dy: float) -> OperationResult:
        require_in_scene(self.scene, shape)
        return self.run_atomic(lambda: self._move(shape, dx, dy))

    def _move(self, shape: Primitive, dx: float, dy: float) -> OperationResult:
        if isinstance(shape, (Text2D, Dimension)):
            shape.translate(dx, dy)
        else:
            moved = 0
            # Set, damit ein doppelt referenzierter Punkt nur einmal wandert
            seen = set()
            for p in shape.defining_points():
                if p.fixed or id(p) in seen:
                    continue
                seen.add(id(p))
                p.translate(dx, dy)
                moved += 1
            logger.debug(f"[Move] {type(shape).__name__} {shape.id}: {moved} Punkte um ({dx}, {dy})")
        self.scene.solve()
        return OperationResult.ok("Shape verschoben", shape)


def move_point(scene, pt: Point2D, x: float, y: float) -> bool:
    """False, wenn pt fixiert ist (Szene unverändert)."""
    return MovePointOperation(scene).execute(pt, x, y).success


def move_shape(scene, shape: Primitive, dx: float, dy: float) -> bool:
    return MoveShapeOperation(scene).execute(shape, dx, dy).success
